"""
Expense claim intake.

Receipts are hashed for exact-duplicate detection, read by the vision model
for a similar-receipt check, and small claims whose receipt total matches
the claimed amount exactly are approved without an admin.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils.dateparse import parse_date

from core.exceptions import LifecycleError, PreconditionFailed, ValidationFailed
from hr_payroll.models import Employee
from hr_payroll.utils import local_now, month_bounds, money
from .models import Claim, PayrollItem
from .receipt_ai import extract_receipt_data, receipt_hash

logger = logging.getLogger(__name__)

AUTO_APPROVE_LIMIT = Decimal('100')
ACCOMMODATION_CAP = Decimal('80')
MERCHANT_MAX_LENGTH = 200


def claim_categories():
    return [{'value': value, 'label': str(label)} for value, label in Claim.CATEGORY_CHOICES]


def claim_snapshot(claim):
    employee = claim.employee
    return {
        'id': claim.pk,
        'employee_id': claim.employee_id,
        'employee_name': employee.name,
        'emp_code': employee.employee_id,
        'department_name': employee.department.name if employee.department_id else None,
        'claim_date': claim.claim_date,
        'category': claim.category,
        'category_label': claim.get_category_display(),
        'description': claim.description,
        'amount': claim.amount,
        'original_amount': claim.original_amount,
        'amount_capped': claim.amount_capped,
        'receipt_url': claim.receipt_url,
        'receipt_hash': claim.receipt_hash,
        'ai_extracted_amount': claim.ai_extracted_amount,
        'ai_extracted_merchant': claim.ai_extracted_merchant,
        'ai_extracted_date': claim.ai_extracted_date,
        'ai_confidence': claim.ai_confidence,
        'auto_approved': claim.auto_approved,
        'status': claim.status,
        'approved_at': claim.approved_at,
        'rejection_reason': claim.rejection_reason,
        'linked_payroll_item_id': claim.linked_payroll_item_id,
        'created_at': claim.created_at,
    }


def find_duplicate(company_id, hash_value, exclude_id=None):
    qs = Claim.objects.select_related('employee').filter(
        company_id=company_id, receipt_hash=hash_value,
    ).exclude(status='rejected')
    if exclude_id:
        qs = qs.exclude(pk=exclude_id)
    return qs.order_by('pk').first()


def find_similar(company_id, merchant, receipt_date, amount, exclude_id=None):
    if not merchant or not receipt_date or amount is None:
        return None
    qs = Claim.objects.select_related('employee').filter(
        company_id=company_id,
        ai_extracted_merchant__iexact=merchant[:MERCHANT_MAX_LENGTH],
        ai_extracted_date=receipt_date,
        ai_extracted_amount=amount,
    ).exclude(status='rejected')
    if exclude_id:
        qs = qs.exclude(pk=exclude_id)
    return qs.order_by('pk').first()


def _ai_amount(value):
    if value is None:
        return None
    try:
        return money(value)
    except (InvalidOperation, ValueError, TypeError):
        return None


def _ai_date(value):
    if not value:
        return None
    try:
        return parse_date(str(value)[:10])
    except ValueError:
        return None


def verify_receipt(image, claimed_amount, company_id, exclude_id=None):
    """
    Run the duplicate checks and the auto-approval gate for one receipt.

    Returns a dict with ``can_auto_approve``, ``is_rejected`` and
    ``rejection_reason``, the hash, the extracted data and any warnings.
    """
    result = {
        'can_auto_approve': False,
        'requires_manual_approval': True,
        'is_rejected': False,
        'rejection_reason': None,
        'receipt_hash': receipt_hash(image),
        'ai_data': None,
        'amount_match': False,
        'duplicate_info': None,
        'warnings': [],
    }

    duplicate = find_duplicate(company_id, result['receipt_hash'], exclude_id)
    if duplicate is not None:
        result['is_rejected'] = True
        result['rejection_reason'] = (
            f"Duplicate receipt detected. This receipt was already submitted by "
            f"{duplicate.employee.name} on claim #{duplicate.pk}."
        )
        result['duplicate_info'] = {'id': duplicate.pk, 'employee_name': duplicate.employee.name}
        return result

    ai_data = extract_receipt_data(image)
    result['ai_data'] = ai_data
    amount = _ai_amount(ai_data.get('amount'))
    if not ai_data.get('success') or ai_data.get('confidence') == 'unreadable' or amount is None:
        result['warnings'].append('Could not automatically read receipt. Manual verification required.')
        return result

    similar = find_similar(company_id, ai_data.get('merchant'), _ai_date(ai_data.get('date')), amount, exclude_id)
    if similar is not None:
        result['is_rejected'] = True
        result['rejection_reason'] = (
            f"Duplicate receipt detected. A similar receipt (same merchant, date, and amount) "
            f"was already submitted by {similar.employee.name} on claim #{similar.pk}."
        )
        result['duplicate_info'] = {'id': similar.pk, 'employee_name': similar.employee.name}
        return result

    claimed = money(claimed_amount)
    currency = ai_data.get('currency') or 'MYR'
    result['amount_match'] = amount == claimed
    if not result['amount_match']:
        result['warnings'].append(
            f"Amount mismatch: Receipt shows {currency} {amount}, but claimed amount is {currency} {claimed}."
        )
        return result

    if claimed > AUTO_APPROVE_LIMIT:
        result['warnings'].append('Claim amount exceeds RM 100. Manual approval required.')
        return result

    result['can_auto_approve'] = True
    result['requires_manual_approval'] = False
    return result


def allowed_types_for(employee):
    department = employee.department if employee.department_id else None
    allowed = department.allowed_claim_types if department is not None else None
    if not allowed:
        return {
            'restricted': False,
            'allowed_types': None,
            'department_name': department.name if department is not None else None,
        }
    return {
        'restricted': True,
        'allowed_types': [str(t).lower() for t in allowed],
        'department_name': department.name,
    }


class ClaimsService:

    def __init__(self, tenant):
        self.tenant = tenant

    def _qs(self):
        return self.tenant.scope(Claim.objects.select_related('employee', 'employee__department'))

    def _claim(self, claim_id, lock=False):
        qs = self._qs()
        if lock:
            qs = qs.select_for_update(of=('self',))
        return self.tenant.get(qs, 'Claim not found', pk=claim_id)

    def _check_category(self, employee, category):
        valid = {value for value, _ in Claim.CATEGORY_CHOICES}
        if category not in valid:
            raise ValidationFailed(f'Invalid category: {category}')
        restriction = allowed_types_for(employee)
        if restriction['restricted'] and category not in restriction['allowed_types']:
            raise ValidationFailed(
                f"{restriction['department_name']} employees can only claim: "
                f"{', '.join(restriction['allowed_types'])}",
                extra={'allowedTypes': restriction['allowed_types']},
            )

    @staticmethod
    def _apply_cap(claim):
        claim.amount_capped = False
        claim.original_amount = None
        if claim.category == 'accommodation' and claim.amount > ACCOMMODATION_CAP:
            claim.original_amount = claim.amount
            claim.amount = ACCOMMODATION_CAP
            claim.amount_capped = True

    @staticmethod
    def _apply_verification(claim, verification):
        claim.receipt_hash = verification['receipt_hash']
        ai_data = verification.get('ai_data') or {}
        claim.ai_extracted_amount = _ai_amount(ai_data.get('amount'))
        claim.ai_extracted_merchant = (ai_data.get('merchant') or '')[:MERCHANT_MAX_LENGTH]
        claim.ai_extracted_date = _ai_date(ai_data.get('date'))
        claim.ai_confidence = ai_data.get('confidence') or ''
        claim.ai_verification = {
            'amount_match': verification['amount_match'],
            'can_auto_approve': verification['can_auto_approve'],
            'warnings': verification['warnings'],
            'items_detected': ai_data.get('items_detected'),
            'currency': ai_data.get('currency'),
        }

    def list(self, employee_id=None, status=None, month=None, year=None, unlinked_only=False):
        qs = self._qs()
        if employee_id:
            qs = qs.filter(employee_id=employee_id)
        if status:
            qs = qs.filter(status=status)
        if month and year:
            qs = qs.filter(claim_date__month=month, claim_date__year=year)
        if unlinked_only:
            qs = qs.filter(linked_payroll_item__isnull=True)
        return [claim_snapshot(c) for c in qs.order_by('-created_at')]

    def pending_count(self):
        return {'count': self._qs().filter(status='pending').count()}

    def summary(self, month=None, year=None):
        qs = self.tenant.scope(Claim.objects.all())
        if month and year:
            qs = qs.filter(claim_date__month=month, claim_date__year=year)
        rows = qs.values('category').annotate(
            count=Count('id'),
            total_amount=Sum('amount', filter=Q(status='approved')),
            pending_amount=Sum('amount', filter=Q(status='pending')),
            pending_count=Count('id', filter=Q(status='pending')),
            approved_count=Count('id', filter=Q(status='approved')),
            rejected_count=Count('id', filter=Q(status='rejected')),
        ).order_by('category')
        return list(rows)

    def for_payroll(self, month, year, employee_id=None):
        start, end = month_bounds(year, month)
        qs = self.tenant.scope(Claim.objects.all()).filter(
            status='approved',
            linked_payroll_item__isnull=True,
            claim_date__range=(start, end),
        )
        if employee_id:
            qs = qs.filter(employee_id=employee_id)
        return list(qs.values('employee_id').annotate(total_claims=Sum('amount')).order_by('employee_id'))

    def allowed_types(self, employee_id):
        employee = self.tenant.get(
            Employee.objects.select_related('department'), 'Employee not found', pk=employee_id
        )
        return allowed_types_for(employee)

    def create(self, data):
        employee = self.tenant.get(
            Employee.objects.select_related('department'), 'Employee not found', pk=data['employee_id']
        )
        category = str(data['category']).lower()
        self._check_category(employee, category)
        amount = data['amount']
        if amount <= 0:
            raise ValidationFailed('Amount must be greater than zero')

        claim = Claim(
            company=self.tenant.company,
            employee=employee,
            claim_date=data['claim_date'],
            category=category,
            description=data.get('description') or '',
            amount=money(amount),
        )

        image = data.get('receipt_image') or ''
        receipt_url = data.get('receipt_url') or ''
        if not image and receipt_url.startswith('data:'):
            image = receipt_url
        claim.receipt_url = receipt_url or image

        warnings = []
        verification = None
        if image:
            verification = verify_receipt(image, amount, self.tenant.company_id)
            if verification['is_rejected']:
                raise PreconditionFailed(
                    verification['rejection_reason'],
                    extra={'duplicate': verification['duplicate_info']},
                )
            self._apply_verification(claim, verification)
            warnings.extend(verification['warnings'])

        self._apply_cap(claim)
        if claim.amount_capped:
            warnings.append(f'Accommodation claims are capped at RM {ACCOMMODATION_CAP}.')
        claim.save()
        logger.info(f"Claim {claim.pk} created for {employee.employee_id}: {claim.category} {claim.amount}")

        if verification is not None and verification['can_auto_approve'] and not claim.amount_capped:
            self._auto_approve(claim, warnings)

        claim.refresh_from_db()
        result = claim_snapshot(claim)
        result['warnings'] = warnings
        result['auto_approval_result'] = {
            'auto_approved': claim.auto_approved,
            'amount_match': verification['amount_match'] if verification else False,
        }
        return result

    def _auto_approve(self, claim, warnings):
        try:
            with transaction.atomic():
                Claim.objects.filter(pk=claim.pk, status='pending').update(
                    status='approved',
                    auto_approved=True,
                    approved_at=local_now(),
                )
            logger.info(f"Claim {claim.pk} auto-approved")
        except Exception as e:
            logger.warning(f"Auto-approval failed for claim {claim.pk}: {e}")
            warnings.append('Auto-approval failed. Manual approval required.')

    def update(self, claim_id, data):
        with transaction.atomic():
            claim = self._claim(claim_id, lock=True)
            if claim.status != 'pending' or claim.linked_payroll_item_id:
                raise LifecycleError('Claim not pending or already linked to payroll')

            if 'category' in data:
                claim.category = str(data['category']).lower()
                self._check_category(claim.employee, claim.category)
            if 'claim_date' in data:
                claim.claim_date = data['claim_date']
            if 'description' in data:
                claim.description = data.get('description') or ''
            if 'amount' in data:
                claim.amount = money(data['amount'])
            elif claim.amount_capped and claim.original_amount is not None:
                claim.amount = claim.original_amount

            image = data.get('receipt_image') or ''
            if data.get('receipt_url') is not None:
                claim.receipt_url = data.get('receipt_url') or ''
                if not image and claim.receipt_url.startswith('data:'):
                    image = claim.receipt_url
            if image:
                verification = verify_receipt(image, claim.amount, self.tenant.company_id, exclude_id=claim.pk)
                if verification['is_rejected']:
                    raise PreconditionFailed(
                        verification['rejection_reason'],
                        extra={'duplicate': verification['duplicate_info']},
                    )
                self._apply_verification(claim, verification)

            self._apply_cap(claim)
            claim.save()
        return claim_snapshot(claim)

    def approve(self, claim_id, notes=''):
        with transaction.atomic():
            claim = self._claim(claim_id, lock=True)
            if claim.status != 'pending':
                raise LifecycleError(f'Claim is already {claim.status}')
            claim.status = 'approved'
            claim.approved_by = self.tenant.user
            claim.approved_at = local_now()
            if notes:
                claim.ai_verification = {**(claim.ai_verification or {}), 'approval_notes': notes}
            claim.save()
        logger.info(f"Claim {claim.pk} approved")
        return {'message': 'Claim approved', 'claim': claim_snapshot(claim)}

    def reject(self, claim_id, reason):
        if not reason:
            raise ValidationFailed('Rejection reason is required')
        with transaction.atomic():
            claim = self._claim(claim_id, lock=True)
            if claim.status != 'pending':
                raise LifecycleError(f'Claim is already {claim.status}')
            claim.status = 'rejected'
            claim.rejection_reason = reason
            claim.approved_by = self.tenant.user
            claim.approved_at = local_now()
            claim.save()
        return {'message': 'Claim rejected', 'claim': claim_snapshot(claim)}

    def revert(self, claim_id):
        with transaction.atomic():
            claim = self._claim(claim_id, lock=True)
            if claim.status != 'approved':
                raise LifecycleError('Only approved claims can be reverted')
            if claim.linked_payroll_item_id:
                raise LifecycleError('Cannot revert a claim already linked to payroll')
            claim.status = 'pending'
            claim.approved_by = None
            claim.approved_at = None
            claim.auto_approved = False
            claim.save()
        return {'message': 'Claim reverted to pending', 'claim': claim_snapshot(claim)}

    def bulk_approve(self, claim_ids):
        if not claim_ids or not isinstance(claim_ids, (list, tuple)):
            raise ValidationFailed('Claim IDs are required')
        with transaction.atomic():
            qs = self.tenant.scope(Claim.objects.all()).filter(
                pk__in=claim_ids, status='pending', linked_payroll_item__isnull=True,
            )
            approved_ids = list(qs.values_list('pk', flat=True))
            Claim.objects.filter(pk__in=approved_ids).update(
                status='approved', approved_by=self.tenant.user, approved_at=local_now(),
            )
        return {'message': f'{len(approved_ids)} claims approved', 'approved_ids': approved_ids}

    def link_to_payroll(self, employee_id, payroll_item_id, month, year):
        payroll_item = self.tenant.get(
            PayrollItem.objects.all(), 'Payroll item not found',
            field_name='payroll_run__company', pk=payroll_item_id,
        )
        if payroll_item.employee_id != employee_id:
            raise ValidationFailed('Payroll item does not belong to this employee')
        start, end = month_bounds(year, month)
        with transaction.atomic():
            qs = self.tenant.scope(Claim.objects.all()).filter(
                employee_id=employee_id,
                status='approved',
                linked_payroll_item__isnull=True,
                claim_date__range=(start, end),
            )
            linked_ids = list(qs.values_list('pk', flat=True))
            Claim.objects.filter(pk__in=linked_ids).update(linked_payroll_item=payroll_item)
        return {'message': f'{len(linked_ids)} claims linked to payroll', 'linked_ids': linked_ids}

    def delete(self, claim_id):
        with transaction.atomic():
            claim = self._claim(claim_id, lock=True)
            if claim.status != 'pending' or claim.linked_payroll_item_id:
                raise LifecycleError('Claim not pending or already linked to payroll')
            claim.delete()
        return {'message': 'Claim deleted'}

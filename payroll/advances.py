import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Case, Count, DecimalField, F, Q, Sum, When
from django.db.models.functions import Coalesce, Least

from core.exceptions import LifecycleError, ValidationFailed
from hr_payroll.models import Employee
from hr_payroll.utils import add_months, local_today, money
from .models import PayrollItem, SalaryAdvance, SalaryAdvanceDeduction

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')

# amount taken in the next payroll: everything for "full", one installment otherwise
DUE_THIS_MONTH = Case(
    When(deduction_method='installment', installment_amount__isnull=False,
         then=Least('installment_amount', 'remaining_balance')),
    default=F('remaining_balance'),
    output_field=DecimalField(max_digits=10, decimal_places=2),
)


def advance_snapshot(advance):
    return {
        'id': advance.pk,
        'employee_id': advance.employee_id,
        'employee_name': advance.employee.name,
        'emp_code': advance.employee.employee_id,
        'amount': advance.amount,
        'advance_date': advance.advance_date,
        'reason': advance.reason,
        'deduction_method': advance.deduction_method,
        'installment_amount': advance.installment_amount,
        'total_deducted': advance.total_deducted,
        'remaining_balance': advance.remaining_balance,
        'expected_deduction_month': advance.expected_deduction_month,
        'expected_deduction_year': advance.expected_deduction_year,
        'status': advance.status,
        'remarks': advance.remarks,
        'created_at': advance.created_at,
    }


def due_by(year, month):
    """Advances whose first deduction month is on or before (year, month)."""
    return Q(expected_deduction_year__lt=year) | Q(expected_deduction_year=year, expected_deduction_month__lte=month)


class AdvanceService:

    def __init__(self, tenant):
        self.tenant = tenant

    def _qs(self):
        return self.tenant.scope(SalaryAdvance.objects.select_related('employee'))

    def _advance(self, advance_id, lock=False):
        qs = self._qs()
        if lock:
            qs = qs.select_for_update(of=('self',))
        return self.tenant.get(qs, 'Advance not found', pk=advance_id)

    def list(self, employee_id=None, status=None, month=None, year=None):
        qs = self._qs()
        if employee_id:
            qs = qs.filter(employee_id=employee_id)
        if status:
            qs = qs.filter(status=status)
        if month and year:
            qs = qs.filter(advance_date__month=month, advance_date__year=year)
        return [advance_snapshot(a) for a in qs]

    def summary(self, month, year, department_id=None, outlet_id=None):
        qs = self.tenant.scope(SalaryAdvance.objects.all()).filter(status='active').filter(due_by(year, month))
        if department_id:
            qs = qs.filter(employee__department_id=department_id)
        if outlet_id:
            qs = qs.filter(employee__outlet_id=outlet_id)
        rows = qs.values(
            'employee_id', employee_name=F('employee__name'), emp_code=F('employee__employee_id'),
        ).annotate(
            total_advances=Sum('amount'),
            total_deducted=Sum('total_deducted'),
            total_remaining=Sum('remaining_balance'),
            deduction_this_month=Sum(DUE_THIS_MONTH),
        ).order_by('employee__name')
        return list(rows)

    def pending(self, employee_id, month=None, year=None):
        employee = self.tenant.get(Employee.objects.all(), 'Employee not found', pk=employee_id)
        today = local_today()
        totals = SalaryAdvance.objects.filter(
            employee=employee, status='active',
        ).filter(
            due_by(year or today.year, month or today.month)
        ).aggregate(
            pending_amount=Coalesce(Sum(DUE_THIS_MONTH), ZERO, output_field=DecimalField()),
            advance_count=Count('id'),
        )
        return {'pending_amount': money(totals['pending_amount']), 'advance_count': totals['advance_count']}

    def create(self, data):
        employee = self.tenant.get(Employee.objects.all(), 'Employee not found', pk=data['employee_id'])
        amount = money(data['amount'])
        if amount <= 0:
            raise ValidationFailed('Amount must be greater than zero')

        method = data.get('deduction_method') or 'full'
        if method not in ('full', 'installment'):
            raise ValidationFailed('Invalid deduction method')
        installment = data.get('installment_amount')
        if method == 'installment' and not installment:
            raise ValidationFailed('Installment amount required for installment deduction')

        next_month = add_months(local_today(), 1)
        advance = SalaryAdvance.objects.create(
            company=self.tenant.company,
            employee=employee,
            amount=amount,
            advance_date=data['advance_date'],
            reason=data.get('reason') or '',
            deduction_method=method,
            installment_amount=money(installment) if installment else None,
            remaining_balance=amount,
            expected_deduction_month=data.get('expected_deduction_month') or next_month.month,
            expected_deduction_year=data.get('expected_deduction_year') or next_month.year,
            status='active',
            approved_by=self.tenant.user,
            remarks=data.get('remarks') or '',
        )
        logger.info(f"Salary advance {advance.pk} of {amount} created for {employee.employee_id}")
        return advance_snapshot(advance)

    def update(self, advance_id, data):
        with transaction.atomic():
            advance = self._advance(advance_id, lock=True)
            if advance.status in ('completed', 'cancelled'):
                raise LifecycleError(f'Cannot edit {advance.status} advance')
            if advance.deductions.filter(payroll_item__isnull=False).exists():
                raise LifecycleError('Cannot edit advance linked to payroll')

            if data.get('amount') is not None:
                amount = money(data['amount'])
                if amount < advance.total_deducted:
                    raise ValidationFailed('Amount cannot be less than the amount already deducted')
                advance.amount = amount
            for field in ('reason', 'remarks'):
                if data.get(field) is not None:
                    setattr(advance, field, data[field])
            if data.get('deduction_method'):
                if data['deduction_method'] not in ('full', 'installment'):
                    raise ValidationFailed('Invalid deduction method')
                advance.deduction_method = data['deduction_method']
            if data.get('installment_amount') is not None:
                advance.installment_amount = money(data['installment_amount'])
            if advance.deduction_method == 'installment' and not advance.installment_amount:
                raise ValidationFailed('Installment amount required for installment deduction')
            for field in ('expected_deduction_month', 'expected_deduction_year'):
                if data.get(field) is not None:
                    setattr(advance, field, data[field])

            advance.remaining_balance = advance.amount - advance.total_deducted
            advance.status = 'completed' if advance.remaining_balance <= 0 else 'active'
            advance.save()
        return advance_snapshot(advance)

    def cancel(self, advance_id):
        with transaction.atomic():
            advance = self._advance(advance_id, lock=True)
            if advance.status not in ('pending', 'active'):
                raise LifecycleError('Cannot cancel this advance')
            advance.status = 'cancelled'
            advance.save(update_fields=['status', 'updated_at'])
        return {'message': 'Advance cancelled', 'advance': advance_snapshot(advance)}

    def deduct(self, advance_id, amount, payroll_item_id=None, month=None, year=None):
        """
        Record one deduction against an active advance under a row lock.
        The deduction is capped at the remaining balance.
        """
        requested = money(amount)
        if requested <= 0:
            raise ValidationFailed('Deduction amount must be greater than zero')
        payroll_item = None
        if payroll_item_id:
            payroll_item = self.tenant.get(
                PayrollItem.objects.all(), 'Payroll item not found',
                field_name='payroll_run__company', pk=payroll_item_id,
            )

        with transaction.atomic():
            advance = self._advance(advance_id, lock=True)
            if advance.status != 'active':
                raise LifecycleError('Advance is not active')

            actual = min(requested, advance.remaining_balance)
            today = local_today()
            SalaryAdvanceDeduction.objects.create(
                advance=advance,
                amount=actual,
                deduction_date=today,
                month=month or today.month,
                year=year or today.year,
                payroll_item=payroll_item,
                created_by=self.tenant.user,
            )
            advance.total_deducted += actual
            advance.remaining_balance = advance.amount - advance.total_deducted
            advance.status = 'completed' if advance.remaining_balance <= 0 else 'active'
            advance.save(update_fields=['total_deducted', 'remaining_balance', 'status', 'updated_at'])

        logger.info(f"Advance {advance.pk}: deducted {actual}, remaining {advance.remaining_balance}")
        return {
            'message': 'Deduction recorded',
            'deducted': actual,
            'remaining': advance.remaining_balance,
            'status': advance.status,
        }

    def history(self, advance_id):
        advance = self._advance(advance_id)
        deductions = advance.deductions.select_related('payroll_item__payroll_run').order_by('deduction_date', 'created_at')
        return [
            {
                'id': d.pk,
                'amount': d.amount,
                'deduction_date': d.deduction_date,
                'month': d.month,
                'year': d.year,
                'payroll_item_id': d.payroll_item_id,
                'payroll_month': d.payroll_item.payroll_run.month if d.payroll_item_id else None,
                'payroll_year': d.payroll_item.payroll_run.year if d.payroll_item_id else None,
                'remarks': d.remarks,
            }
            for d in deductions
        ]

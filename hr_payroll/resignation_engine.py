"""
Resignation lifecycle.

    pending --approve--> clearing --process--> completed
    pending --reject--> rejected
    pending --withdraw--> withdrawn
    pending|clearing --cancel--> cancelled

Approval seeds the exit clearance checklist and puts the employee on
notice. Processing exits the employee and clears their future roster and
leave in one transaction.
"""
import logging
from collections import OrderedDict
from decimal import Decimal

from django.conf import settings
from django.db import transaction

from core.exceptions import LifecycleError, NotFound, PreconditionFailed, ValidationFailed
from payroll.final_settlement import (
    calculate_final_settlement, prorate_salary, required_notice_days, save_final_settlement, unpaid_claims,
)
from .leave_service import adjust_used_days
from .models import (
    ClearanceItem, ClearanceTemplate, Employee, LeaveBalance, LeaveRequest, LeaveType, Resignation, Schedule,
)
from .utils import local_now, local_today, money

logger = logging.getLogger(__name__)

PROCESS_CANCEL_REASON = 'Auto-cancelled due to resignation'
CLEANUP_CANCEL_REASON = 'Auto-cancelled due to resignation (cleanup)'


def resignation_snapshot(resignation):
    employee = resignation.employee
    return {
        'id': resignation.pk,
        'employee_id': resignation.employee_id,
        'employee_name': employee.name,
        'emp_code': employee.employee_id,
        'outlet_id': employee.outlet_id,
        'department_id': employee.department_id,
        'join_date': employee.join_date,
        'notice_date': resignation.notice_date,
        'last_working_day': resignation.last_working_day,
        'reason': resignation.reason,
        'remarks': resignation.remarks,
        'status': resignation.status,
        'required_notice_days': resignation.required_notice_days,
        'actual_notice_days': resignation.actual_notice_days,
        'notice_waived': resignation.notice_waived,
        'leave_encashment_days': resignation.leave_encashment_days,
        'leave_encashment_amount': resignation.leave_encashment_amount,
        'clearance_completed': resignation.clearance_completed,
        'clearance_completed_at': resignation.clearance_completed_at,
        'approved_at': resignation.approved_at,
        'rejection_reason': resignation.rejection_reason,
        'final_salary_amount': resignation.final_salary_amount,
        'settlement_date': resignation.settlement_date,
        'settlement_breakdown': resignation.settlement_breakdown,
        'processed_at': resignation.processed_at,
        'created_at': resignation.created_at,
    }


def clearance_item_snapshot(item):
    return {
        'id': item.pk,
        'category': item.category,
        'item_name': item.item_name,
        'sort_order': item.sort_order,
        'is_completed': item.is_completed,
        'completed_by': item.completed_by_id,
        'completed_by_name': item.completed_by.get_full_name() or item.completed_by.username if item.completed_by_id else None,
        'completed_at': item.completed_at,
        'remarks': item.remarks,
    }


def leave_snapshot(leave):
    return {
        'id': leave.pk,
        'start_date': leave.start_date,
        'end_date': leave.end_date,
        'total_days': leave.total_days,
        'leave_type_name': leave.leave_type.name,
        'status': leave.status,
    }


def clearance_templates_for(company):
    """Active templates of the company, else those of the default template company."""
    templates = ClearanceTemplate.objects.filter(company=company, is_active=True).order_by('sort_order', 'id')
    if templates.exists():
        return list(templates)
    return list(
        ClearanceTemplate.objects.filter(
            company_id=settings.DEFAULT_TEMPLATE_COMPANY_ID, is_active=True,
        ).order_by('sort_order', 'id')
    )


def seed_clearance(resignation):
    templates = clearance_templates_for(resignation.company)
    ClearanceItem.objects.bulk_create([
        ClearanceItem(
            company=resignation.company,
            resignation=resignation,
            employee_id=resignation.employee_id,
            category=t.category,
            item_name=t.item_name,
            sort_order=t.sort_order,
        )
        for t in templates
    ])
    return len(templates)


def future_leaves(employee_id, last_working_day, status):
    return LeaveRequest.objects.select_related('leave_type').filter(
        employee_id=employee_id, status=status, start_date__gt=last_working_day,
    ).order_by('start_date')


def cancel_future_leaves(employee_id, last_working_day, reason):
    """
    Cancel pending and approved leave starting after the last working day.
    Approved paid leave gives its days back to the balance of its start year.
    """
    now = local_now()
    pending = list(future_leaves(employee_id, last_working_day, 'pending').select_for_update(of=('self',)))
    for leave in pending:
        leave.status = 'cancelled'
        leave.rejection_reason = reason
        leave.cancelled_at = now
        leave.save(update_fields=['status', 'rejection_reason', 'cancelled_at', 'updated_at'])

    approved = list(future_leaves(employee_id, last_working_day, 'approved').select_for_update(of=('self',)))
    for leave in approved:
        adjust_used_days(leave, -leave.total_days)
        leave.status = 'cancelled'
        leave.rejection_reason = f'{reason} (after last working day)' if reason == PROCESS_CANCEL_REASON else reason
        leave.cancelled_at = now
        leave.save(update_fields=['status', 'rejection_reason', 'cancelled_at', 'updated_at'])
    return len(pending), len(approved)


class ResignationEngine:

    def __init__(self, tenant):
        self.tenant = tenant

    def _qs(self):
        return self.tenant.scope(Resignation.objects.select_related('employee', 'company'))

    def _resignation(self, resignation_id, lock=False):
        qs = self._qs()
        if lock:
            qs = qs.select_for_update(of=('self',))
        return self.tenant.get(qs, 'Resignation not found', pk=resignation_id)

    # ---------- listing ----------

    def list(self, status=None, outlet_id=None):
        qs = self._qs()
        if status:
            qs = qs.filter(status=status)
        if outlet_id:
            qs = qs.filter(employee__outlet_id=outlet_id)
        return [resignation_snapshot(r) for r in qs.order_by('-created_at')]

    def detail(self, resignation_id):
        resignation = self._resignation(resignation_id)
        data = resignation_snapshot(resignation)
        data['clearance'] = self.clearance(resignation_id)
        return data

    def clearance_templates(self):
        return [
            {'id': t.pk, 'category': t.category, 'item_name': t.item_name, 'sort_order': t.sort_order}
            for t in clearance_templates_for(self.tenant.company)
        ]

    # ---------- lifecycle ----------

    def create(self, data):
        notice_date, last_working_day = data['notice_date'], data['last_working_day']
        if last_working_day < notice_date:
            raise ValidationFailed('Last working day cannot be before the notice date')

        with transaction.atomic():
            employee = self.tenant.get(
                Employee.objects.select_for_update(), 'Employee not found', pk=data['employee_id']
            )
            active = Resignation.objects.filter(employee=employee).exclude(status__in=Resignation.INACTIVE_STATUSES)
            if active.exists():
                raise PreconditionFailed('Active resignation already exists for this employee')

            resignation = Resignation.objects.create(
                company=self.tenant.company,
                employee=employee,
                notice_date=notice_date,
                last_working_day=last_working_day,
                reason=data.get('reason') or '',
                remarks=data.get('remarks') or '',
                required_notice_days=required_notice_days(employee.service_months(notice_date)),
                actual_notice_days=(last_working_day - notice_date).days,
            )
        logger.info(
            f"Resignation {resignation.pk} created for {employee.employee_id}, "
            f"required notice {resignation.required_notice_days} days"
        )
        return resignation_snapshot(resignation)

    def update(self, resignation_id, data):
        with transaction.atomic():
            resignation = self._resignation(resignation_id, lock=True)
            if resignation.status != 'pending':
                raise LifecycleError('Resignation not pending')
            if data.get('notice_date'):
                resignation.notice_date = data['notice_date']
            if data.get('last_working_day'):
                resignation.last_working_day = data['last_working_day']
            if resignation.last_working_day < resignation.notice_date:
                raise ValidationFailed('Last working day cannot be before the notice date')
            for field in ('reason', 'remarks'):
                if data.get(field) is not None:
                    setattr(resignation, field, data[field])
            if data.get('leave_encashment_days') is not None:
                resignation.leave_encashment_days = data['leave_encashment_days']
            if data.get('leave_encashment_amount') is not None:
                resignation.leave_encashment_amount = money(data['leave_encashment_amount'])
            resignation.actual_notice_days = (resignation.last_working_day - resignation.notice_date).days
            resignation.save()
        return resignation_snapshot(resignation)

    def approve(self, resignation_id):
        with transaction.atomic():
            resignation = self._resignation(resignation_id, lock=True)
            if resignation.status != 'pending':
                raise LifecycleError('Resignation not pending')
            resignation.status = 'clearing'
            resignation.approved_by = self.tenant.user
            resignation.approved_at = local_now()
            resignation.save()

            Employee.objects.filter(pk=resignation.employee_id).update(
                employment_status='notice', last_working_day=resignation.last_working_day,
            )
            count = seed_clearance(resignation)
        logger.info(f"Resignation {resignation.pk} approved with {count} clearance items")
        return {'message': 'Resignation approved. Exit clearance checklist generated.', 'clearance_items': count}

    def reject(self, resignation_id, reason):
        if not reason:
            raise ValidationFailed('Rejection reason is required')
        with transaction.atomic():
            resignation = self._resignation(resignation_id, lock=True)
            if resignation.status != 'pending':
                raise LifecycleError('Resignation not pending')
            resignation.status = 'rejected'
            resignation.rejection_reason = reason
            resignation.approved_by = self.tenant.user
            resignation.approved_at = local_now()
            resignation.save()
        return {'message': 'Resignation rejected', 'resignation': resignation_snapshot(resignation)}

    def withdraw(self, resignation_id):
        with transaction.atomic():
            resignation = self._resignation(resignation_id, lock=True)
            if resignation.status != 'pending':
                raise LifecycleError('Resignation not pending')
            resignation.status = 'withdrawn'
            resignation.save(update_fields=['status', 'updated_at'])
        return {'message': 'Resignation withdrawn'}

    def cancel(self, resignation_id):
        with transaction.atomic():
            resignation = self._resignation(resignation_id, lock=True)
            if resignation.status not in ('pending', 'clearing'):
                raise LifecycleError('Resignation cannot be cancelled')
            resignation.status = 'cancelled'
            resignation.clearance_completed = False
            resignation.clearance_completed_at = None
            resignation.save()
            Employee.objects.filter(
                pk=resignation.employee_id, employment_status__in=('notice', 'resigned_pending'),
            ).update(employment_status='employed', last_working_day=None)
            resignation.clearance_items.all().delete()
        logger.info(f"Resignation {resignation.pk} cancelled")
        return {'message': 'Resignation cancelled. Employee reverted to active.'}

    def delete(self, resignation_id):
        with transaction.atomic():
            resignation = self._resignation(resignation_id, lock=True)
            if resignation.status != 'pending':
                raise LifecycleError('Only pending resignations can be deleted')
            resignation.delete()
        return {'message': 'Resignation deleted'}

    def waive_notice(self, resignation_id, waive=True):
        with transaction.atomic():
            resignation = self._resignation(resignation_id, lock=True)
            if resignation.status not in ('pending', 'clearing'):
                raise LifecycleError('Resignation already completed')
            resignation.notice_waived = bool(waive)
            resignation.save(update_fields=['notice_waived', 'updated_at'])
        message = 'Notice period waived' if waive else 'Notice waiver removed'
        return {'message': message, 'resignation': resignation_snapshot(resignation)}

    # ---------- clearance ----------

    def clearance(self, resignation_id):
        resignation = self._resignation(resignation_id)
        items = [clearance_item_snapshot(i) for i in resignation.clearance_items.select_related('completed_by')]
        grouped = OrderedDict()
        for item in items:
            grouped.setdefault(item['category'], []).append(item)
        total = len(items)
        completed = sum(1 for i in items if i['is_completed'])
        return {
            'items': items,
            'grouped': grouped,
            'total': total,
            'completed': completed,
            'progress': round(completed * 100 / total) if total else 0,
        }

    def update_clearance_item(self, resignation_id, item_id, is_completed, remarks=None):
        with transaction.atomic():
            resignation = self._resignation(resignation_id, lock=True)
            item = resignation.clearance_items.filter(pk=item_id).first()
            if item is None:
                raise NotFound('Clearance item not found')
            item.is_completed = bool(is_completed)
            item.completed_by = self.tenant.user if item.is_completed else None
            item.completed_at = local_now() if item.is_completed else None
            if remarks is not None:
                item.remarks = remarks
            item.save()

            total = resignation.clearance_items.count()
            completed = resignation.clearance_items.filter(is_completed=True).count()
            all_complete = total > 0 and total == completed
            resignation.clearance_completed = all_complete
            resignation.clearance_completed_at = local_now() if all_complete else None
            resignation.save(update_fields=['clearance_completed', 'clearance_completed_at', 'updated_at'])
        return {
            'item': clearance_item_snapshot(item),
            'clearance_completed': all_complete,
            'total': total,
            'completed': completed,
        }

    def generate_clearance(self, resignation_id):
        with transaction.atomic():
            resignation = self._resignation(resignation_id, lock=True)
            resignation.clearance_items.all().delete()
            count = seed_clearance(resignation)
            resignation.clearance_completed = False
            resignation.clearance_completed_at = None
            resignation.save(update_fields=['clearance_completed', 'clearance_completed_at', 'updated_at'])
        return {'message': 'Clearance items regenerated', 'count': count}

    # ---------- leave ----------

    def check_leaves(self, resignation_id):
        resignation = self._resignation(resignation_id)
        approved = [leave_snapshot(l) for l in future_leaves(resignation.employee_id, resignation.last_working_day, 'approved')]
        pending = [leave_snapshot(l) for l in future_leaves(resignation.employee_id, resignation.last_working_day, 'pending')]
        return {
            'last_working_day': resignation.last_working_day,
            'approved_leaves': approved,
            'pending_leaves': pending,
            'total_approved_days': sum((l['total_days'] for l in approved), Decimal('0')),
            'total_pending_days': sum((l['total_days'] for l in pending), Decimal('0')),
            'has_leaves_to_cancel': bool(approved or pending),
        }

    def cleanup_leaves(self, resignation_id):
        resignation = self._resignation(resignation_id)
        with transaction.atomic():
            pending, approved = cancel_future_leaves(
                resignation.employee_id, resignation.last_working_day, CLEANUP_CANCEL_REASON
            )
        return {'message': 'Leave cleanup completed', 'cancelled': {'pending': pending, 'approved': approved}}

    def leave_entitlement(self, resignation_id):
        """
        Per paid leave type for the year of the last working day: the yearly
        entitlement prorated by months served in that year.
        """
        resignation = self._resignation(resignation_id)
        employee = resignation.employee
        lwd = resignation.last_working_day
        start = lwd.replace(month=1, day=1)
        if employee.join_date and employee.join_date > start:
            start = employee.join_date
        months_served = max(0, (lwd.year - start.year) * 12 + lwd.month - start.month + 1)

        balances = {
            b.leave_type_id: b
            for b in LeaveBalance.objects.filter(employee=employee, year=lwd.year)
        }
        rows = []
        for leave_type in self.tenant.scope(LeaveType.objects.all()).filter(is_paid=True).order_by('code'):
            balance = balances.get(leave_type.pk)
            entitled = balance.entitled_days if balance else leave_type.default_days
            carried = balance.carried_forward if balance else Decimal('0')
            used = balance.used_days if balance else Decimal('0')
            prorated = money(Decimal(entitled) * months_served / 12)
            remaining = prorated + carried - used
            rows.append({
                'leave_type_id': leave_type.pk,
                'code': leave_type.code,
                'name': leave_type.name,
                'full_entitlement': entitled,
                'prorated_entitlement': prorated,
                'carried_forward': carried,
                'used': used,
                'remaining': remaining,
                'encashable': max(Decimal('0'), remaining),
            })
        return {
            'employee_id': employee.pk,
            'year': lwd.year,
            'reference_date': lwd,
            'months_served': months_served,
            'leave_types': rows,
        }

    # ---------- settlement and exit ----------

    def settlement(self, resignation_id, waive_notice=None, save=False):
        with transaction.atomic():
            resignation = self._resignation(resignation_id, lock=save)
            result = calculate_final_settlement(resignation, waive_notice=waive_notice)
            if not save:
                return result
            save_final_settlement(resignation, result)
        return {
            'message': 'Settlement calculated and saved',
            'settlement': result,
            'resignation': resignation_snapshot(resignation),
        }

    def process(self, resignation_id, data=None):
        data = data or {}
        override = bool(data.get('override_clearance'))
        with transaction.atomic():
            resignation = self._resignation(resignation_id, lock=True)
            if resignation.status == 'completed':
                raise LifecycleError('Resignation already processed')
            if resignation.status != 'clearing':
                raise LifecycleError('Resignation must be approved before processing')

            if not resignation.clearance_completed and not override:
                total = resignation.clearance_items.count()
                completed = resignation.clearance_items.filter(is_completed=True).count()
                raise PreconditionFailed(
                    f'Exit clearance incomplete ({completed}/{total}). '
                    f'Complete all clearance items or use override.',
                    extra={'clearance_total': total, 'clearance_completed': completed},
                )

            lwd = resignation.last_working_day
            if data.get('final_salary_amount') is not None:
                resignation.final_salary_amount = money(data['final_salary_amount'])
            elif resignation.final_salary_amount is None:
                save_final_settlement(resignation, calculate_final_settlement(resignation))

            resignation.status = 'completed'
            resignation.settlement_date = data.get('settlement_date') or local_today()
            resignation.processed_by = self.tenant.user
            resignation.processed_at = local_now()
            resignation.save()

            Employee.objects.filter(pk=resignation.employee_id).update(
                status='inactive', employment_status='exited', resign_date=lwd,
            )
            deleted, _ = Schedule.objects.filter(employee_id=resignation.employee_id, schedule_date__gt=lwd).delete()
            pending, approved = cancel_future_leaves(resignation.employee_id, lwd, PROCESS_CANCEL_REASON)

        logger.info(
            f"Resignation {resignation.pk} processed: {deleted} schedules deleted, "
            f"{pending + approved} leave requests cancelled"
        )
        return {
            'message': 'Resignation processed successfully. Employee status updated to exited.',
            'cleanup': {
                'future_schedules_deleted': deleted,
                'pending_leave_cancelled': pending,
                'approved_leave_cancelled': approved,
            },
        }

    def preview_settlement(self, employee_id, last_working_day):
        """Quick estimate for an employee without a resignation on file."""
        if not employee_id or not last_working_day:
            raise ValidationFailed('Employee ID and last working day are required')
        employee = self.tenant.get(Employee.objects.all(), 'Employee not found', pk=employee_id)
        lwd = last_working_day
        company_settings = self.tenant.company.get_settings()
        basic = employee.default_basic_salary or Decimal('0')
        daily_rate = basic / company_settings.settlement_working_days_per_month

        prorated, worked, in_month = prorate_salary(basic, lwd)
        encash_days = sum(
            (b.remaining_days for b in LeaveBalance.objects.select_related('leave_type').filter(
                employee=employee, year=lwd.year, leave_type__is_paid=True,
            ) if b.remaining_days > 0),
            Decimal('0'),
        )
        encash_amount = money(encash_days * daily_rate * company_settings.settlement_leave_encashment_rate)
        claims = money(sum((c.amount for c in unpaid_claims(employee)), Decimal('0')))
        return {
            'basic_salary': basic,
            'working_days_worked': worked,
            'working_days_in_month': in_month,
            'pro_rated_salary': prorated,
            'leave_encashment_days': encash_days,
            'leave_encashment_amount': encash_amount,
            'pending_claims': claims,
            'total_final_settlement': money(prorated + encash_amount + claims),
        }

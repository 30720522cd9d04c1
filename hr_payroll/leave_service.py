import logging
from decimal import Decimal

from django.db import transaction

from core.exceptions import LifecycleError, PreconditionFailed, ValidationFailed
from .models import Employee, LeaveBalance, LeaveRequest, LeaveType
from .utils import local_now

logger = logging.getLogger(__name__)


def adjust_used_days(leave_request, delta):
    """
    Move used_days on the balance matching the request's leave type and the
    year of its start date. Unpaid leave never touches balances.
    """
    if not leave_request.leave_type.is_paid:
        return None
    balance, _ = LeaveBalance.objects.select_for_update().get_or_create(
        employee_id=leave_request.employee_id,
        leave_type_id=leave_request.leave_type_id,
        year=leave_request.start_date.year,
    )
    balance.used_days = max(Decimal('0'), balance.used_days + Decimal(delta))
    balance.save(update_fields=['used_days', 'updated_at'])
    return balance


class LeaveService:

    def __init__(self, tenant):
        self.tenant = tenant

    def _request(self, request_id):
        return self.tenant.get(
            LeaveRequest.objects.select_related('leave_type', 'employee').select_for_update(),
            'Leave request not found', pk=request_id,
        )

    def list(self, status=None, employee_id=None, year=None):
        qs = self.tenant.scope(LeaveRequest.objects.select_related('employee', 'leave_type'))
        if status:
            qs = qs.filter(status=status)
        if employee_id:
            qs = qs.filter(employee_id=employee_id)
        if year:
            qs = qs.filter(start_date__year=year)
        return qs

    def create(self, data):
        employee = self.tenant.get(Employee.objects.all(), 'Employee not found', pk=data['employee_id'])
        leave_type = self.tenant.get(LeaveType.objects.all(), 'Leave type not found', pk=data['leave_type_id'])
        start_date, end_date = data['start_date'], data['end_date']
        if end_date < start_date:
            raise ValidationFailed('End date cannot be earlier than start date')
        total_days = data.get('total_days')
        if total_days is None:
            total_days = Decimal((end_date - start_date).days + 1)
        return LeaveRequest.objects.create(
            company=self.tenant.company,
            employee=employee,
            leave_type=leave_type,
            start_date=start_date,
            end_date=end_date,
            total_days=total_days,
            reason=data.get('reason') or '',
        )

    def approve(self, request_id):
        with transaction.atomic():
            leave = self._request(request_id)
            if leave.status != 'pending':
                raise LifecycleError(f'Leave request is already {leave.status}')
            balance = adjust_used_days(leave, leave.total_days)
            if balance is not None and balance.remaining_days < 0:
                raise PreconditionFailed('Insufficient leave balance')
            leave.status = 'approved'
            leave.approved_by = self.tenant.user
            leave.approved_at = local_now()
            leave.save()
        logger.info(f"Leave request {leave.pk} approved for {leave.employee.employee_id}")
        return leave

    def reject(self, request_id, reason=''):
        with transaction.atomic():
            leave = self._request(request_id)
            if leave.status != 'pending':
                raise LifecycleError(f'Leave request is already {leave.status}')
            leave.status = 'rejected'
            leave.rejection_reason = reason or ''
            leave.approved_by = self.tenant.user
            leave.approved_at = local_now()
            leave.save()
        return leave

    def cancel(self, request_id, reason=''):
        with transaction.atomic():
            leave = self._request(request_id)
            if leave.status not in ('pending', 'approved'):
                raise LifecycleError(f'Leave request is already {leave.status}')
            if leave.status == 'approved':
                adjust_used_days(leave, -leave.total_days)
            leave.status = 'cancelled'
            leave.cancelled_at = local_now()
            if reason:
                leave.rejection_reason = reason
            leave.save()
        return leave

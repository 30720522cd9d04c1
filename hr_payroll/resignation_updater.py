import logging

from django.db import transaction

from .models import Employee, LeaveRequest
from .utils import local_now, local_today

logger = logging.getLogger(__name__)

AUTO_REJECT_REASON = 'Auto-rejected: past last working day due to resignation'


def run_resignation_updater(today=None):
    """
    Move employees still on notice after their last working day to
    ``resigned_pending`` and reject their pending leave beyond that day.
    """
    today = today or local_today()
    results = {'transitioned': 0, 'leavesRejected': 0, 'errors': []}

    employees = Employee.objects.filter(
        employment_status='notice',
        last_working_day__lt=today,
        resignations__status='clearing',
    ).distinct()

    for employee in employees:
        try:
            with transaction.atomic():
                Employee.objects.filter(pk=employee.pk, employment_status='notice').update(
                    employment_status='resigned_pending', updated_at=local_now(),
                )
                rejected = LeaveRequest.objects.filter(
                    employee=employee, status='pending', start_date__gt=employee.last_working_day,
                ).update(status='rejected', rejection_reason=AUTO_REJECT_REASON, updated_at=local_now())
            results['transitioned'] += 1
            results['leavesRejected'] += rejected
            logger.info(
                f"Resignation updater: {employee.employee_id} moved to resigned_pending, {rejected} leaves rejected"
            )
        except Exception as e:
            logger.error(f"Resignation updater failed for employee {employee.pk}: {e}")
            results['errors'].append({'employee_id': employee.pk, 'error': str(e)})

    logger.info(
        f"Resignation updater done: {results['transitioned']} transitioned, "
        f"{results['leavesRejected']} leaves rejected"
    )
    return results

import logging
from datetime import timedelta

from core.models import Company
from core.notifications import notify
from .models import Department, Employee, Holiday, Schedule
from .utils import local_today

logger = logging.getLogger(__name__)

WORKING_STATUSES = ('scheduled', 'completed')


def format_holiday_date(value):
    """e.g. 'Monday, 1 September 2025'"""
    return f"{value.strftime('%A')}, {value.day} {value.strftime('%B %Y')}"


def send_holiday_notification(employee, holiday, formatted_date, results):
    try:
        created = notify(
            holiday.company,
            f'Public Holiday: {holiday.name}',
            f'No work on {formatted_date}. Enjoy your holiday!',
            employee=employee,
            notification_type='public_holiday',
            reference_type='public_holiday',
            reference_id=holiday.pk,
            once=True,
        )
    except Exception as e:
        logger.warning(f"Holiday notification failed for employee {employee.pk}: {e}")
        return
    if created is not None:
        results['notificationsSent'] += 1


def notify_department_company(holiday, results):
    formatted_date = format_holiday_date(holiday.date)
    company = holiday.company

    for department in Department.objects.filter(company=company).order_by('name'):
        working = Schedule.objects.filter(
            employee__department=department,
            schedule_date=holiday.date,
            status__in=WORKING_STATUSES,
        ).exists()
        if working:
            results['outletsWorking'] += 1
            logger.info(f"Department {department.name} works on {holiday.name}, no notifications")
            continue

        results['outletsClosed'] += 1
        for employee in Employee.objects.filter(department=department, status='active'):
            send_holiday_notification(employee, holiday, formatted_date, results)

    # employees without a department go by their own roster
    loose = Employee.objects.filter(company=company, department__isnull=True, status='active')
    for employee in loose:
        rostered = Schedule.objects.filter(
            employee=employee, schedule_date=holiday.date, status__in=WORKING_STATUSES,
        ).exists()
        if not rostered:
            send_holiday_notification(employee, holiday, formatted_date, results)


def run_holiday_notifier(target_date=None, days_ahead=1):
    """
    Tell employees of closed departments about the public holiday on
    ``target_date`` (tomorrow by default).

    Outlet-grouped companies follow their shift rosters and are skipped, as
    are companies with holiday notifications turned off. Each (employee,
    holiday) is notified at most once so reruns are harmless.
    """
    target_date = target_date or (local_today() + timedelta(days=days_ahead))
    results = {
        'holidaysProcessed': 0,
        'notificationsSent': 0,
        'outletsWorking': 0,
        'outletsClosed': 0,
        'errors': [],
    }

    holidays = Holiday.objects.select_related('company').filter(
        date=target_date,
        company__is_active=True,
        company__holiday_notifications_enabled=True,
    )
    for holiday in holidays:
        results['holidaysProcessed'] += 1
        if holiday.company.grouping_type == Company.GROUPING_OUTLET:
            logger.info(f"Skipping outlet-based company {holiday.company.name} for {holiday.name}")
            continue
        try:
            notify_department_company(holiday, results)
        except Exception as e:
            logger.error(f"Holiday notifier failed for holiday {holiday.pk}: {e}")
            results['errors'].append(str(e))

    logger.info(
        f"Holiday notifier for {target_date}: {results['notificationsSent']} sent, "
        f"{results['outletsWorking']} working, {results['outletsClosed']} closed"
    )
    return results

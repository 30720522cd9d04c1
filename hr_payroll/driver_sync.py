"""
Driver attendance pulled from the OrderOps external API.

OrderOps reports one shift per driver per day with MYT timestamps
("2026-01-26 08:43:10"). A shift becomes a single-session clock record
(clock_in_1 .. clock_out_2) on the driver-sync company. Reruns are safe: an
existing record only gains a missing clock-out.
"""
import logging
from datetime import timedelta

import requests
from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils.dateparse import parse_date

from core.exceptions import UpstreamError, ValidationFailed
from core.models import Company
from .attendance_engine import apply_totals
from .models import ClockRecord, Employee
from .utils import local_today, parse_time

logger = logging.getLogger(__name__)

SYNC_NOTE = 'Synced from OrderOps'
OUTSTATION_NOTE = 'Synced from OrderOps (Outstation)'

# vehicle ids and pickup entries reported as drivers
SKIP_DRIVERS = ('2 JC 2', '2JC2', 'Self Pick Up')

# OrderOps driver_name -> employee code
DRIVER_MAPPING = {
    'IZWAN': 'IZUWAN',
    'AIMAN': 'AIMAN',
    'ALIF': 'ALIFF',
    'ALIFF': 'ALIFF',
    'IZUL': 'IZZUL',
    'IZZUL': 'IZZUL',
    'HAFIZ': 'HAFIZ',
    'SALLEH': 'SALLEH',
    'DIN': 'ADIN',
    'ADIN': 'ADIN',
    'ADAM': 'ADAM',
    'ASLIE': 'ASLIE',
    'SAIFUL': 'SAIFUL',
    'FAKHRUL': 'FAKHRUL',
    'MAHADI': 'MAHADI',
    'ASRI': 'ASRI',
    'FAIQ': 'FAIQ',
    'PIAN': 'PIAN',
    'SHUKRI': 'SHUKRI',
    'SYUKRI': 'SYUKRI',
    'SABAH': 'SABAH',
    'IQZAT': 'IQZAT',
    'OYENG': 'SHUKRI',
}


def shifts_url(date=None, start=None, end=None):
    base = settings.AAALIVE_API_URL.rstrip('/')
    if start and end:
        return f'{base}/shifts/range', {'start_date': start, 'end_date': end}
    return f'{base}/shifts', {'shift_date': date or local_today().isoformat()}


def fetch_shifts(date=None, start=None, end=None):
    """
    Raw upstream payload for one day or a date range.
    Raises UpstreamError on missing configuration, transport errors and non-2xx answers.
    """
    if not settings.AAALIVE_API_KEY:
        raise UpstreamError('AAALIVE_API_KEY not configured')
    url, params = shifts_url(date, start, end)
    try:
        response = requests.get(
            url, params=params, headers={'X-API-Key': settings.AAALIVE_API_KEY},
            timeout=settings.AAALIVE_TIMEOUT_SECONDS,
        )
    except requests.exceptions.Timeout:
        logger.warning(f"OrderOps request timed out: {url}")
        raise UpstreamError('OrderOps API timed out')
    except requests.exceptions.RequestException as e:
        logger.warning(f"OrderOps request failed: {e}")
        raise UpstreamError('OrderOps API unreachable', details=str(e))

    if not response.ok:
        logger.warning(f"OrderOps API error {response.status_code}: {response.text[:200]}")
        raise UpstreamError(f'OrderOps API error ({response.status_code})', details=response.text)
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamError('OrderOps API returned invalid JSON', details=str(e))


def shifts_of(payload):
    if isinstance(payload, list):
        return payload
    return payload.get('shifts') or payload.get('data') or []


def split_myt(value):
    """'2026-01-26 08:43:10' -> (date(2026, 1, 26), time(8, 43, 10))"""
    if not value:
        return None, None
    parts = str(value).strip().split(' ')
    return parse_date(parts[0]), parse_time(parts[1]) if len(parts) > 1 else None


def sync_company():
    return Company.objects.filter(pk=settings.AAALIVE_COMPANY_ID).first()


def match_employee(company, driver_name):
    """Mapped employee code first, then an employee code or name match."""
    active = Employee.objects.filter(company=company, status='active')
    mapped = DRIVER_MAPPING.get(driver_name.upper())
    if mapped:
        employee = active.filter(employee_id__iexact=mapped).first()
        if employee is not None:
            return employee
    return active.filter(Q(employee_id__iexact=driver_name) | Q(name__icontains=driver_name)).order_by('pk').first()


def sync_shift(company, shift):
    """Upsert one shift. Returns (outcome, detail) with outcome in created/updated/skipped/failed."""
    driver_name = (shift.get('driver_name') or '').strip()
    work_date, clock_in = split_myt(shift.get('clock_in_at_myt'))
    _, clock_out = split_myt(shift.get('clock_out_at_myt'))

    if not driver_name or not work_date:
        return 'failed', {'shift': shift, 'error': 'Missing driver_name or date'}
    if driver_name in SKIP_DRIVERS:
        return 'skipped', {'driver_name': driver_name, 'reason': 'Vehicle ID, not a driver'}

    employee = match_employee(company, driver_name)
    if employee is None:
        return 'failed', {'shift': shift, 'error': f'Driver not found: {driver_name}'}

    detail = {'employee_id': employee.employee_id, 'name': employee.name, 'date': work_date}
    with transaction.atomic():
        record = ClockRecord.objects.select_for_update().filter(employee=employee, work_date=work_date).first()
        if record is not None:
            if clock_out and record.clock_out_2 is None:
                record.clock_out_2 = clock_out
                apply_totals(record, company)
                record.save()
                return 'updated', dict(detail, action='updated')
            return 'skipped', dict(detail, reason='Already exists')

        record = ClockRecord(
            company=company,
            employee=employee,
            outlet_id=employee.outlet_id,
            work_date=work_date,
            clock_in_1=clock_in,
            clock_out_2=clock_out,
            location_in_1=(shift.get('clock_in_location') or '')[:100],
            location_out_2=(shift.get('clock_out_location') or '')[:100],
            notes=OUTSTATION_NOTE if shift.get('is_outstation') else SYNC_NOTE,
        )
        apply_totals(record, company)
        record.save()
    return 'created', dict(detail, action='created', outstation=bool(shift.get('is_outstation')))


def sync_driver_attendance(date=None, start=None, end=None):
    """
    Pull shifts for a day (default today) or a range and upsert them.

    Each shift commits on its own so one bad shift never loses the others.
    Upstream failures raise UpstreamError.
    """
    company = sync_company()
    if company is None:
        raise ValidationFailed(f'Driver sync company {settings.AAALIVE_COMPANY_ID} not found')

    shifts = shifts_of(fetch_shifts(date, start, end))
    details = {'created': [], 'updated': [], 'skipped': [], 'failed': []}
    for shift in shifts:
        try:
            outcome, detail = sync_shift(company, shift)
        except Exception as e:
            logger.error(f"Driver sync failed for shift {shift.get('driver_name')}: {e}")
            outcome, detail = 'failed', {'shift': shift, 'error': str(e)}
        details[outcome].append(detail)

    summary = {
        'total': len(shifts),
        'synced': len(details['created']) + len(details['updated']),
        'skipped': len(details['skipped']),
        'failed': len(details['failed']),
    }
    logger.info(
        f"Driver sync {date or f'{start}..{end}'}: {summary['synced']} synced, "
        f"{summary['skipped']} skipped, {summary['failed']} failed"
    )
    return {'success': True, 'summary': summary, 'details': details}


def run_driver_sync(today=None):
    """Scheduled run: yesterday, then today for shifts completed since."""
    today = today or local_today()
    results = {}
    for label, day in (('yesterday', today - timedelta(days=1)), ('today', today)):
        try:
            results[label] = sync_driver_attendance(date=day.isoformat())
        except (UpstreamError, ValidationFailed) as e:
            logger.warning(f"Driver sync for {day} skipped: {e.message}")
            results[label] = {'success': False, 'error': e.message}
    return results


def test_connection(date=None):
    date = date or local_today().isoformat()
    payload = fetch_shifts(date=date)
    shifts = shifts_of(payload)
    return {
        'success': True,
        'date': date,
        'shiftsCount': len(shifts),
        'sample': shifts[0] if shifts else None,
        'fields': sorted(shifts[0].keys()) if shifts and isinstance(shifts[0], dict) else [],
    }


def list_drivers():
    company = sync_company()
    if company is None:
        return {'count': 0, 'drivers': []}
    drivers = Employee.objects.select_related('department', 'position').filter(
        company=company, status='active',
    ).filter(
        Q(department__name__icontains='driver') | Q(position__name__icontains='driver')
    ).order_by('name')
    rows = [
        {
            'id': e.pk,
            'employee_id': e.employee_id,
            'name': e.name,
            'department': e.department.name if e.department_id else None,
        }
        for e in drivers
    ]
    return {'count': len(rows), 'drivers': rows}

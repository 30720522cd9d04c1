import logging
from collections import OrderedDict
from decimal import Decimal

from django.db import transaction
from rest_framework.exceptions import AuthenticationFailed

from core.exceptions import Forbidden, LifecycleError, PreconditionFailed, ValidationFailed
from .attendance_processor import EVENT_FIELDS, get_processor, minutes_to_hours
from .models import ClockRecord, Employee, Schedule, ShiftTemplate
from .schedule_store import ScheduleStore
from .utils import local_now, money, month_bounds

logger = logging.getLogger(__name__)

ACTION_MEANINGS = OrderedDict([
    ('clock_in_1', 'Start work'),
    ('clock_out_1', 'Break start'),
    ('clock_in_2', 'After break'),
    ('clock_out_2', 'End work'),
])

LOCATION_FIELDS = {
    'clock_in_1': 'location_in_1',
    'clock_out_1': 'location_out_1',
    'clock_in_2': 'location_in_2',
    'clock_out_2': 'location_out_2',
}

PHOTO_FIELDS = {
    'clock_in_1': 'photo_in_1',
    'clock_out_1': 'photo_out_1',
    'clock_in_2': 'photo_in_2',
    'clock_out_2': 'photo_out_2',
}

DERIVED_FIELDS = ('total_work_minutes', 'total_break_minutes', 'ot_minutes', 'total_hours', 'ot_hours')


def validate_action(action):
    if action not in ACTION_MEANINGS:
        raise ValidationFailed(f"Invalid action. Must be one of: {', '.join(ACTION_MEANINGS)}")


def scheduled_shift_start(record):
    """The shift start is always read from the roster at compute time."""
    return (
        Schedule.objects.filter(employee_id=record.employee_id, schedule_date=record.work_date)
        .values_list('shift_start', flat=True)
        .first()
    )


def compute_totals(record, company=None):
    company = company or record.company
    processor = get_processor(company)
    return processor.calculate(record, shift_start=scheduled_shift_start(record))


def apply_totals(record, company=None):
    """Recompute derived totals in place; returns True when anything changed."""
    totals = compute_totals(record, company)
    changed = False
    for name, value in totals.items():
        if getattr(record, name) != value:
            setattr(record, name, value)
            changed = True
    return changed


def set_hours(record, total_hours=None, ot_hours=None):
    """Admin override of totals, keeping clock times untouched."""
    if total_hours is not None:
        record.total_hours = money(total_hours)
        record.total_work_minutes = int(round(Decimal(str(total_hours)) * 60))
    if ot_hours is not None:
        record.ot_hours = money(ot_hours)
        record.ot_minutes = int(round(Decimal(str(ot_hours)) * 60))


# ==================== EMPLOYEE SELF-SERVICE ====================

def authenticate_employee(employee_code, ic_number):
    """Employee code plus IC check used by the clock terminal."""
    if not employee_code or not ic_number:
        raise ValidationFailed('Employee ID and IC number are required')

    normalized = Employee.normalize_ic(ic_number)
    candidates = Employee.objects.select_related('company', 'outlet').filter(employee_id=str(employee_code).strip())
    employee = next((e for e in candidates if e.ic_number and Employee.normalize_ic(e.ic_number) == normalized), None)
    if employee is None:
        raise AuthenticationFailed('Invalid Employee ID or IC number')
    if employee.status != 'active':
        raise Forbidden('Employee account is not active')
    return employee


def clock_action(employee_code, ic_number, action, lat=None, lng=None, photo=None, outlet_id=None):
    """
    Record one clock event for today at server time.

    Events must be recorded in order and each one only once per day.
    """
    validate_action(action)
    employee = authenticate_employee(employee_code, ic_number)
    now = local_now()
    today = now.date()
    event_time = now.time().replace(microsecond=0)

    with transaction.atomic():
        record = (
            ClockRecord.objects.select_for_update()
            .filter(employee=employee, work_date=today)
            .first()
        )

        if record is None:
            if action != 'clock_in_1':
                raise PreconditionFailed('Must clock in first (clock_in_1) before other actions')
            record = ClockRecord(
                company=employee.company,
                employee=employee,
                work_date=today,
                outlet_id=outlet_id or employee.outlet_id,
                has_schedule=Schedule.objects.filter(
                    employee=employee, schedule_date=today
                ).exclude(status='off').exists(),
            )
        else:
            if getattr(record, action) is not None:
                raise PreconditionFailed(f'{action} already recorded for today')
            expected = record.next_action()
            if expected != action:
                raise PreconditionFailed(f'Next expected action is {expected}')

        setattr(record, action, event_time)
        if lat is not None and lng is not None:
            setattr(record, LOCATION_FIELDS[action], f'{lat},{lng}')
        if photo:
            setattr(record, PHOTO_FIELDS[action], photo)
        apply_totals(record, employee.company)
        record.save()

    logger.info(f"{employee.employee_id} recorded {action} at {event_time} on {today}")
    next_action = record.next_action()
    return {
        'message': f'{ACTION_MEANINGS[action]} recorded',
        'action': action,
        'action_meaning': ACTION_MEANINGS[action],
        'time': event_time.strftime('%H:%M:%S'),
        'record': record,
        'next_action': next_action,
        'next_action_meaning': ACTION_MEANINGS.get(next_action),
    }


def today_status(employee_code, ic_number):
    employee = authenticate_employee(employee_code, ic_number)
    today = local_now().date()
    record = ClockRecord.objects.filter(employee=employee, work_date=today).first()
    if record is None:
        return {
            'status': 'no_record',
            'employee': employee,
            'record': None,
            'next_action': 'clock_in_1',
            'next_action_meaning': ACTION_MEANINGS['clock_in_1'],
        }
    next_action = record.next_action()
    return {
        'status': 'completed' if next_action is None else 'in_progress',
        'employee': employee,
        'record': record,
        'next_action': next_action,
        'next_action_meaning': ACTION_MEANINGS.get(next_action),
    }


def history(employee_code, ic_number, year=None, month=None):
    employee = authenticate_employee(employee_code, ic_number)
    now = local_now()
    year = year or now.year
    month = month or now.month
    start, end = month_bounds(year, month)
    records = list(
        ClockRecord.objects.filter(employee=employee, work_date__range=(start, end)).order_by('-work_date')
    )
    return {
        'employee': employee,
        'records': records,
        'summary': {
            'total_days': len(records),
            'approved_days': sum(1 for r in records if r.status == 'approved'),
            'total_work_hours': money(sum((r.total_hours for r in records), Decimal('0'))),
            'total_ot_hours': money(sum((r.ot_hours for r in records), Decimal('0'))),
        },
    }


# ==================== ADMIN ====================

class AttendanceEngine:
    """Admin-side attendance operations for one tenant."""

    def __init__(self, tenant):
        self.tenant = tenant

    def _record(self, record_id, lock=False):
        qs = ClockRecord.objects.select_related('employee', 'company')
        if lock:
            qs = qs.select_for_update()
        return self.tenant.get(qs, 'Attendance record not found', pk=record_id)

    def _employee(self, employee_id):
        return self.tenant.get(Employee.objects.all(), 'Employee not found', pk=employee_id)

    def _now(self):
        return local_now()

    # ---------------------------------------------------------------- list

    def list(self, filters):
        qs = self.tenant.scope(
            ClockRecord.objects.select_related('employee', 'employee__department', 'outlet', 'approved_by')
        )
        if self.tenant.admin_role == 'supervisor' and self.tenant.outlet is not None:
            qs = qs.filter(outlet=self.tenant.outlet)
        elif filters.get('outlet_id'):
            qs = qs.filter(outlet_id=filters['outlet_id'])
        if filters.get('employee_id'):
            qs = qs.filter(employee_id=filters['employee_id'])
        if filters.get('status'):
            qs = qs.filter(status=filters['status'])
        if filters.get('month') and filters.get('year'):
            qs = qs.filter(work_date__year=filters['year'], work_date__month=filters['month'])
        if filters.get('start_date'):
            qs = qs.filter(work_date__gte=filters['start_date'])
        if filters.get('end_date'):
            qs = qs.filter(work_date__lte=filters['end_date'])
        if filters.get('region'):
            qs = qs.filter(employee__region=filters['region'])
        return qs.order_by('-work_date', 'employee__name')

    # -------------------------------------------------------------- writes

    def upsert(self, data):
        """Admin create-or-update for (employee, work_date)."""
        employee = self._employee(data['employee_id'])
        work_date = data['work_date']
        with transaction.atomic():
            record, created = ClockRecord.objects.select_for_update().get_or_create(
                employee=employee,
                work_date=work_date,
                defaults={'company': self.tenant.company, 'outlet_id': data.get('outlet_id') or employee.outlet_id},
            )
            for event in EVENT_FIELDS:
                if event in data:
                    setattr(record, event, data[event])
            if data.get('notes') is not None:
                record.notes = data['notes']
            record.has_schedule = Schedule.objects.filter(
                employee=employee, schedule_date=work_date
            ).exclude(status='off').exists()
            apply_totals(record, self.tenant.company)
            record.save()
        return record, created

    def set_action(self, record_id, action, time_value=None, location=None, photo=None):
        """
        Admin write or correction of one event; ordering is not enforced here.
        Location and photo are kept when not given. Totals are recomputed as
        on every other write.
        """
        validate_action(action)
        with transaction.atomic():
            record = self._record(record_id, lock=True)
            value = time_value or self._now().time().replace(microsecond=0)
            setattr(record, action, value)
            if location:
                setattr(record, LOCATION_FIELDS[action], location)
            if photo:
                setattr(record, PHOTO_FIELDS[action], photo)
            apply_totals(record, self.tenant.company)
            record.save()
        logger.info(f"Admin {self.tenant.actor_id} set {action}={value} on record {record.pk}")
        return record

    def create_manual(self, data):
        """Hours-only record, created approved."""
        employee = self._employee(data['employee_id'])
        work_date = data['work_date']
        if ClockRecord.objects.filter(employee=employee, work_date=work_date).exists():
            raise PreconditionFailed('Attendance record already exists for this date')
        record = ClockRecord(
            company=self.tenant.company,
            employee=employee,
            work_date=work_date,
            outlet_id=data.get('outlet_id') or employee.outlet_id,
            status='approved',
            approved_by=self.tenant.user,
            approved_at=self._now(),
            notes=data.get('notes') or 'Manual entry',
        )
        set_hours(record, data.get('total_hours', 0), data.get('ot_hours', 0))
        record.save()
        return record

    def update_hours(self, record_id, total_hours=None, ot_hours=None):
        if total_hours is None and ot_hours is None:
            raise ValidationFailed('total_hours or ot_hours is required')
        record = self._record(record_id)
        set_hours(record, total_hours, ot_hours)
        record.save()
        return record

    # ------------------------------------------------------------ approval

    def _require_pending(self, record):
        if record.status != 'pending':
            raise LifecycleError(f'Record is already {record.status}')

    def _stamp_approved(self, record):
        record.status = 'approved'
        record.approved_by = self.tenant.user
        record.approved_at = self._now()
        record.rejection_reason = ''

    def approve(self, record_id):
        with transaction.atomic():
            record = self._record(record_id, lock=True)
            self._require_pending(record)
            self._stamp_approved(record)
            record.save()
        return record

    def reject(self, record_id, reason):
        if not reason:
            raise ValidationFailed('Rejection reason is required')
        with transaction.atomic():
            record = self._record(record_id, lock=True)
            self._require_pending(record)
            record.status = 'rejected'
            record.rejection_reason = reason
            record.approved_by = self.tenant.user
            record.approved_at = self._now()
            record.save()
        return record

    def revert(self, record_id):
        with transaction.atomic():
            record = self._record(record_id, lock=True)
            if record.status == 'pending':
                raise LifecycleError('Record is already pending')
            record.status = 'pending'
            record.approved_by = None
            record.approved_at = None
            record.rejection_reason = ''
            record.save()
        return record

    def approve_with_schedule(self, record_id, shift_template_id, is_public_holiday=False):
        template = self.tenant.get(ShiftTemplate.objects.all(), 'Shift template not found', pk=shift_template_id)
        store = ScheduleStore(self.tenant)
        with transaction.atomic():
            record = self._record(record_id, lock=True)
            self._require_pending(record)
            store.upsert_from_template(record.employee, record.work_date, template, is_public_holiday)
            record.has_schedule = True
            apply_totals(record, self.tenant.company)
            self._stamp_approved(record)
            record.save()
        return record

    def approve_without_schedule(self, record_id, total_hours=None, ot_hours=None):
        with transaction.atomic():
            record = self._record(record_id, lock=True)
            self._require_pending(record)
            set_hours(record, total_hours, ot_hours)
            self._stamp_approved(record)
            record.save()
        return record

    def bulk_approve(self, record_ids):
        if not record_ids:
            raise ValidationFailed('record_ids is required')
        qs = self.tenant.scope(ClockRecord.objects.filter(pk__in=record_ids, status='pending'))
        updated = qs.update(status='approved', approved_by=self.tenant.user, approved_at=self._now())
        return {'message': f'{updated} records approved', 'updated': updated}

    # ------------------------------------------------------------------ OT

    def approve_ot(self, record_id):
        record = self._record(record_id)
        record.ot_approved = True
        record.ot_approved_by = self.tenant.user
        record.ot_approved_at = self._now()
        record.ot_rejection_reason = ''
        record.save()
        return record

    def reject_ot(self, record_id, reason):
        if not reason:
            raise ValidationFailed('Reason is required to reject OT')
        record = self._record(record_id)
        record.ot_approved = False
        record.ot_approved_by = self.tenant.user
        record.ot_approved_at = self._now()
        record.ot_rejection_reason = reason
        record.save()
        return record

    def bulk_approve_ot(self, record_ids):
        if not record_ids:
            raise ValidationFailed('record_ids is required')
        qs = self.tenant.scope(ClockRecord.objects.filter(pk__in=record_ids, ot_minutes__gt=0))
        updated = qs.update(ot_approved=True, ot_approved_by=self.tenant.user, ot_approved_at=self._now())
        return {'message': f'OT approved for {updated} records', 'updated': updated}

    # --------------------------------------------------------- recalculate

    def recalculate(self, year, month):
        """
        Recompute derived totals for a month, writing only rows that change.
        Running it twice leaves the second run with nothing to update.
        """
        start, end = month_bounds(year, month)
        records = self.tenant.scope(ClockRecord.objects.all()).filter(
            work_date__range=(start, end), clock_in_1__isnull=False
        )
        total = updated = 0
        for record in records.iterator():
            total += 1
            if apply_totals(record, self.tenant.company):
                record.save(update_fields=list(DERIVED_FIELDS) + ['updated_at'])
                updated += 1
        logger.info(f"Recalculated {updated}/{total} records for company {self.tenant.company_id} {year}-{month:02d}")
        return {'message': f'Recalculated {updated} of {total} records', 'total': total, 'updated': updated}

    # -------------------------------------------------------------- review

    def needs_review(self):
        return self.tenant.scope(
            ClockRecord.objects.select_related('employee', 'outlet')
        ).filter(needs_admin_review=True).order_by('-work_date')

    def mark_reviewed(self, record_id, total_work_minutes=None, ot_minutes=None, notes=None):
        record = self._record(record_id)
        if total_work_minutes is not None:
            record.total_work_minutes = int(total_work_minutes)
            record.total_hours = minutes_to_hours(record.total_work_minutes)
        if ot_minutes is not None:
            record.ot_minutes = int(ot_minutes)
            record.ot_hours = minutes_to_hours(record.ot_minutes)
        if notes:
            record.notes = f'{record.notes}\n{notes}'.strip()
        record.needs_admin_review = False
        record.reviewed_by = self.tenant.user
        record.reviewed_at = self._now()
        record.save()
        return record

    def auto_clockout_stats(self, year=None, month=None):
        qs = self.tenant.scope(ClockRecord.objects.filter(is_auto_clock_out=True))
        if year and month:
            qs = qs.filter(work_date__year=year, work_date__month=month)
        return {
            'auto_clockout_count': qs.count(),
            'pending_review_count': qs.filter(needs_admin_review=True).count(),
            'reviewed_count': qs.filter(needs_admin_review=False, reviewed_at__isnull=False).count(),
        }

    # ------------------------------------------------------------- reports

    def summary(self, year, month):
        """Totals grouped outlet > position > employee."""
        start, end = month_bounds(year, month)
        records = self.tenant.scope(
            ClockRecord.objects.select_related('employee', 'employee__position', 'outlet')
        ).filter(work_date__range=(start, end))

        outlets = OrderedDict()
        for record in records.order_by('outlet__name', 'employee__name'):
            outlet_key = record.outlet_id
            outlet = outlets.setdefault(outlet_key, {
                'outlet_id': record.outlet_id,
                'outlet_name': record.outlet.name if record.outlet else 'Unassigned',
                'total_hours': Decimal('0'),
                'total_ot_hours': Decimal('0'),
                'positions': OrderedDict(),
            })
            position = record.employee.position
            position_name = position.name if position else 'No Position'
            group = outlet['positions'].setdefault(position_name, {'position': position_name, 'employees': OrderedDict()})
            row = group['employees'].setdefault(record.employee_id, {
                'employee_id': record.employee_id,
                'employee_code': record.employee.employee_id,
                'name': record.employee.name,
                'days_worked': 0,
                'total_hours': Decimal('0'),
                'ot_hours': Decimal('0'),
            })
            row['days_worked'] += 1
            row['total_hours'] += record.total_hours
            row['ot_hours'] += record.ot_hours
            outlet['total_hours'] += record.total_hours
            outlet['total_ot_hours'] += record.ot_hours

        result = []
        for outlet in outlets.values():
            outlet['positions'] = [
                {'position': g['position'], 'employees': list(g['employees'].values())}
                for g in outlet['positions'].values()
            ]
            result.append(outlet)
        return result

    def ot_for_payroll(self, year, month):
        """Approved records with approved OT; hourly rate is basic / 26 / 8."""
        start, end = month_bounds(year, month)
        records = self.tenant.scope(
            ClockRecord.objects.select_related('employee')
        ).filter(work_date__range=(start, end), status='approved', ot_approved=True, ot_minutes__gt=0)

        per_employee = OrderedDict()
        for record in records.order_by('employee__employee_id', 'work_date'):
            row = per_employee.setdefault(record.employee_id, {
                'employee': record.employee,
                'ot_hours': Decimal('0'),
                'days': 0,
            })
            row['ot_hours'] += record.ot_hours
            row['days'] += 1

        result = []
        for row in per_employee.values():
            employee = row['employee']
            hourly = employee.hourly_rate
            result.append({
                'employee_id': employee.pk,
                'employee_code': employee.employee_id,
                'name': employee.name,
                'ot_days': row['days'],
                'ot_hours': money(row['ot_hours']),
                'hourly_rate': money(hourly),
                'ot_rate': employee.ot_rate,
                'ot_pay': money(hourly * row['ot_hours'] * employee.ot_rate),
            })
        return result

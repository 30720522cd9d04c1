import logging
from datetime import timedelta

from django.db import transaction
from django.db.models import Count, Q

from core.exceptions import Forbidden, NotFound, PreconditionFailed, ValidationFailed
from .models import (
    ClockRecord, Department, Employee, ExtraShiftRequest, Schedule,
    ScheduleAuditLog, ShiftTemplate,
)
from .utils import (
    daterange, format_time, js_day_of_week, local_today, local_now,
    month_bounds, parse_month, parse_time,
)
from core.models import Outlet

logger = logging.getLogger(__name__)

SUPERVISOR_MIN_DAYS_AHEAD = 3
ROSTER_EXCLUDED_ROLES = ('manager', 'admin', 'director', 'boss', 'super_admin')
DAY_NAMES = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')


def schedule_snapshot(schedule):
    template = schedule.shift_template
    return {
        'id': schedule.pk,
        'date': schedule.schedule_date.isoformat(),
        'shift_template_id': schedule.shift_template_id,
        'shift_code': template.code if template else None,
        'shift_color': template.color if template else None,
        'is_off': template.is_off if template else schedule.status == 'off',
        'is_public_holiday': schedule.is_public_holiday,
        'shift_start': format_time(schedule.shift_start),
        'shift_end': format_time(schedule.shift_end),
        'status': schedule.status,
    }


def template_snapshot(template):
    return {
        'id': template.pk,
        'name': template.name,
        'code': template.code,
        'start_time': format_time(template.start_time),
        'end_time': format_time(template.end_time),
        'break_duration': template.break_duration,
        'color': template.color,
        'is_off': template.is_off,
    }


class ScheduleStore:
    """
    Rosters, shift templates and role-based edit windows for one tenant.
    """

    def __init__(self, tenant):
        self.tenant = tenant

    # ------------------------------------------------------------------
    # lookups

    def _employee(self, employee_id):
        return self.tenant.get(Employee.objects.select_related('position'), 'Employee not found', pk=employee_id)

    def _template(self, template_id):
        return self.tenant.get(ShiftTemplate.objects.all(), 'Shift template not found', pk=template_id)

    def _schedule(self, schedule_id):
        return self.tenant.get(
            Schedule.objects.select_related('employee', 'shift_template'), 'Schedule not found', pk=schedule_id
        )

    @staticmethod
    def _time(value, name):
        try:
            return parse_time(value)
        except (TypeError, ValueError):
            raise ValidationFailed(f"{name} must be a time (HH:MM)")

    # ------------------------------------------------------------------
    # permissions

    def _caller_roles(self):
        admin_role = self.tenant.admin_role
        position_role = self.tenant.position_role
        if admin_role in ('manager', 'supervisor') and not position_role:
            position_role = admin_role
        return admin_role, position_role

    def get_permissions(self):
        admin_role, position_role = self._caller_roles()
        today = local_today()

        if self.tenant.is_elevated or position_role == 'manager':
            can_edit_all, future_only, min_date, restriction = True, False, None, None
        elif position_role == 'supervisor':
            can_edit_all, future_only = False, True
            min_date = (today + timedelta(days=SUPERVISOR_MIN_DAYS_AHEAD)).isoformat()
            restriction = f"You can only edit schedules from {min_date} onwards (T+{SUPERVISOR_MIN_DAYS_AHEAD})"
        else:
            can_edit_all, future_only, min_date = False, False, None
            restriction = 'You do not have permission to edit schedules'

        return {
            'admin_role': admin_role,
            'position_role': position_role,
            'position_name': self.tenant.position_name,
            'can_edit_all': can_edit_all,
            'can_edit_future_only': future_only,
            'min_edit_date': min_date,
            'restriction_message': restriction,
        }

    def check_can_edit(self, schedule_date):
        """
        admin / boss / director / super_admin and managers edit any date.
        Supervisors edit from today + 3 onwards. Everybody else is refused.
        """
        _, position_role = self._caller_roles()
        if self.tenant.is_elevated or position_role == 'manager':
            return
        if position_role == 'supervisor':
            today = local_today()
            if schedule_date < today:
                raise Forbidden('Supervisors cannot edit past schedules')
            if schedule_date < today + timedelta(days=SUPERVISOR_MIN_DAYS_AHEAD):
                raise Forbidden(f'Supervisors can only edit schedules {SUPERVISOR_MIN_DAYS_AHEAD} or more days in advance')
            return
        raise Forbidden('You do not have permission to edit schedules')

    @staticmethod
    def check_employee_can_be_scheduled(employee, schedule_date):
        if employee.status == 'resigned' or employee.employment_status == 'exited':
            raise PreconditionFailed('Cannot create schedules for resigned employees')
        if employee.last_working_day and schedule_date > employee.last_working_day:
            raise PreconditionFailed(
                f"Cannot create schedules after employee's last working day ({employee.last_working_day.isoformat()})"
            )

    # ------------------------------------------------------------------
    # audit

    def _audit(self, action, schedule=None, employee=None, old_value=None, new_value=None, reason=''):
        try:
            with transaction.atomic():
                ScheduleAuditLog.objects.create(
                    company=self.tenant.company,
                    schedule_id_ref=schedule.pk if schedule else None,
                    employee=employee or (schedule.employee if schedule else None),
                    action=action,
                    old_value=old_value,
                    new_value=new_value,
                    reason=reason,
                    changed_by=self.tenant.user,
                )
        except Exception as e:
            logger.warning(f"Schedule audit log failed for {action}: {e}")

    # ------------------------------------------------------------------
    # listing

    def list(self, params):
        qs = self.tenant.scope(Schedule.objects.select_related('employee', 'shift_template', 'outlet', 'department'))
        if params.get('employee_id'):
            qs = qs.filter(employee_id=params['employee_id'])
        if params.get('outlet_id'):
            qs = qs.filter(outlet_id=params['outlet_id'])
        if params.get('department_id'):
            qs = qs.filter(department_id=params['department_id'])
        if params.get('start_date'):
            qs = qs.filter(schedule_date__gte=params['start_date'])
        if params.get('end_date'):
            qs = qs.filter(schedule_date__lte=params['end_date'])
        if params.get('month') and params.get('year'):
            qs = qs.filter(schedule_date__year=params['year'], schedule_date__month=params['month'])
        return qs.order_by('schedule_date', 'employee__name')

    def calendar(self, year, month, outlet_id=None, department_id=None):
        """Per-date schedule counts for a month."""
        start, end = month_bounds(year, month)
        qs = self.tenant.scope(Schedule.objects.filter(schedule_date__range=(start, end)))
        if outlet_id:
            qs = qs.filter(outlet_id=outlet_id)
        if department_id:
            qs = qs.filter(department_id=department_id)
        rows = qs.values('schedule_date').annotate(
            total=Count('id'),
            working=Count('id', filter=~Q(status='off')),
            public_holiday=Count('id', filter=Q(is_public_holiday=True)),
        ).order_by('schedule_date')
        counts = {row['schedule_date']: row for row in rows}
        days = []
        for day in daterange(start, end):
            row = counts.get(day, {})
            days.append({
                'date': day.isoformat(),
                'total': row.get('total', 0),
                'working': row.get('working', 0),
                'public_holiday': row.get('public_holiday', 0),
            })
        return {'year': year, 'month': month, 'days': days}

    def employee_month(self, employee_id, year, month):
        employee = self._employee(employee_id)
        start, end = month_bounds(year, month)
        schedules = self.tenant.scope(
            Schedule.objects.select_related('shift_template')
        ).filter(employee=employee, schedule_date__range=(start, end)).order_by('schedule_date')
        return {
            'employee_id': employee.pk,
            'employee_code': employee.employee_id,
            'name': employee.name,
            'year': year,
            'month': month,
            'schedules': [schedule_snapshot(s) for s in schedules],
        }

    # ------------------------------------------------------------------
    # create / update / delete

    def _apply_template(self, schedule, template):
        schedule.shift_template = template
        schedule.shift_start = template.start_time
        schedule.shift_end = template.end_time
        schedule.break_duration = template.break_duration
        schedule.status = 'off' if template.is_off else 'scheduled'

    def create(self, data):
        employee = self._employee(data.get('employee_id'))
        schedule_date = data['schedule_date']

        if schedule_date < local_today() and not self.tenant.is_elevated:
            raise PreconditionFailed('Cannot create schedules for past dates')
        self.check_employee_can_be_scheduled(employee, schedule_date)

        if Schedule.objects.filter(employee=employee, schedule_date=schedule_date).exists():
            raise PreconditionFailed('Schedule already exists for this employee on this date')

        schedule = Schedule(
            company=self.tenant.company,
            employee=employee,
            schedule_date=schedule_date,
            outlet_id=data.get('outlet_id') or employee.outlet_id,
            department_id=data.get('department_id') or employee.department_id,
            is_public_holiday=bool(data.get('is_public_holiday', False)),
            notes=data.get('notes') or '',
            created_by=self.tenant.user,
        )
        if data.get('shift_template_id'):
            self._apply_template(schedule, self._template(data['shift_template_id']))
        else:
            schedule.shift_start = self._time(data.get('shift_start'), 'shift_start')
            schedule.shift_end = self._time(data.get('shift_end'), 'shift_end')
            if data.get('break_duration') is not None:
                schedule.break_duration = int(data['break_duration'])
            schedule.status = data.get('status') or 'scheduled'
        schedule.save()

        logger.info(f"Schedule {schedule.pk} created for {employee.employee_id} on {schedule_date}")
        self._audit('create', schedule, new_value=schedule_snapshot(schedule))
        return schedule

    def bulk_create(self, data):
        employee = self._employee(data.get('employee_id'))
        start_date, end_date = data['start_date'], data['end_date']
        if end_date < start_date:
            raise ValidationFailed('end_date must not be before start_date')

        if employee.status == 'resigned' or employee.employment_status == 'exited':
            raise PreconditionFailed('Cannot create schedules for resigned employees')

        days_of_week = data.get('days_of_week')
        days_of_week = set(range(7)) if days_of_week is None else set(days_of_week)

        today = local_today()
        template = self._template(data['shift_template_id']) if data.get('shift_template_id') else None
        shift_start = self._time(data.get('shift_start'), 'shift_start')
        shift_end = self._time(data.get('shift_end'), 'shift_end')

        candidates = []
        for day in daterange(start_date, end_date):
            if js_day_of_week(day) not in days_of_week:
                continue
            if employee.last_working_day and day > employee.last_working_day:
                continue
            if day < today and not self.tenant.is_elevated:
                continue
            candidates.append(day)

        existing = set(
            Schedule.objects.filter(employee=employee, schedule_date__in=candidates)
            .values_list('schedule_date', flat=True)
        )
        new_dates = [d for d in candidates if d not in existing]
        if not new_dates:
            raise PreconditionFailed('All dates in this range already have schedules')

        rows = []
        for day in new_dates:
            schedule = Schedule(
                company=self.tenant.company,
                employee=employee,
                schedule_date=day,
                outlet_id=data.get('outlet_id') or employee.outlet_id,
                department_id=data.get('department_id') or employee.department_id,
                is_public_holiday=bool(data.get('is_public_holiday', False)),
                created_by=self.tenant.user,
            )
            if template:
                self._apply_template(schedule, template)
            else:
                schedule.shift_start = shift_start
                schedule.shift_end = shift_end
                schedule.status = 'scheduled'
            rows.append(schedule)

        with transaction.atomic():
            Schedule.objects.bulk_create(rows)

        created = list(
            Schedule.objects.select_related('shift_template')
            .filter(employee=employee, schedule_date__in=new_dates).order_by('schedule_date')
        )
        self._audit('create', employee=employee, new_value={
            'bulk': True, 'dates': [d.isoformat() for d in new_dates],
        })
        logger.info(f"Bulk created {len(created)} schedules for {employee.employee_id}")
        return {
            'message': f'Created {len(created)} schedules',
            'created': len(created),
            'skipped': len(candidates) - len(new_dates),
            'schedules': created,
        }

    def update(self, schedule_id, data):
        schedule = self._schedule(schedule_id)
        self.check_can_edit(schedule.schedule_date)
        before = schedule_snapshot(schedule)

        new_date = data.get('schedule_date')
        if new_date and new_date != schedule.schedule_date:
            self.check_can_edit(new_date)
            self.check_employee_can_be_scheduled(schedule.employee, new_date)
            clash = Schedule.objects.filter(employee=schedule.employee, schedule_date=new_date).exclude(pk=schedule.pk)
            if clash.exists():
                raise PreconditionFailed('Schedule already exists for this employee on this date')
            schedule.schedule_date = new_date

        if data.get('shift_template_id'):
            self._apply_template(schedule, self._template(data['shift_template_id']))
        for field_name in ('shift_start', 'shift_end'):
            if field_name in data:
                setattr(schedule, field_name, self._time(data[field_name], field_name))
        if 'break_duration' in data and data['break_duration'] is not None:
            schedule.break_duration = int(data['break_duration'])
        for field_name in ('status', 'notes'):
            if field_name in data and data[field_name] is not None:
                setattr(schedule, field_name, data[field_name])
        if 'is_public_holiday' in data:
            schedule.is_public_holiday = bool(data['is_public_holiday'])
        schedule.updated_by = self.tenant.user
        schedule.save()

        self._audit('update', schedule, old_value=before, new_value=schedule_snapshot(schedule))
        return schedule

    def delete(self, schedule_id):
        schedule = self._schedule(schedule_id)
        if schedule.schedule_date < local_today() and not self.tenant.is_elevated:
            raise PreconditionFailed('Cannot delete past schedules')
        linked = ClockRecord.objects.filter(employee=schedule.employee, work_date=schedule.schedule_date)
        if linked.exists():
            raise PreconditionFailed('Cannot delete schedule with linked attendance records')

        snapshot = schedule_snapshot(schedule)
        employee = schedule.employee
        schedule.delete()
        self._audit('delete', employee=employee, old_value=snapshot)
        return snapshot

    # ------------------------------------------------------------------
    # templates

    def templates(self, include_inactive=False):
        qs = self.tenant.scope(ShiftTemplate.objects.all())
        if not include_inactive:
            qs = qs.filter(is_active=True)
        return qs.order_by('start_time', 'name')

    def save_template(self, data, template_id=None):
        template = self._template(template_id) if template_id else ShiftTemplate(company=self.tenant.company)
        for field_name in ('name', 'code', 'color'):
            if data.get(field_name) is not None:
                setattr(template, field_name, data[field_name])
        for field_name in ('start_time', 'end_time'):
            if field_name in data:
                setattr(template, field_name, self._time(data[field_name], field_name))
        if data.get('break_duration') is not None:
            template.break_duration = int(data['break_duration'])
        for field_name in ('is_off', 'is_active'):
            if field_name in data:
                setattr(template, field_name, bool(data[field_name]))

        if not template.name or not template.code:
            raise ValidationFailed('Name and code are required')
        if not template.is_off and (template.start_time is None or template.end_time is None):
            raise ValidationFailed('Start and end time are required for working shifts')
        template.save()
        return template

    def delete_template(self, template_id):
        template = self._template(template_id)
        template.is_active = False
        template.save(update_fields=['is_active', 'updated_at'])
        return template

    # ------------------------------------------------------------------
    # roster

    def _sync_has_schedule(self, employee, schedule_date):
        ClockRecord.objects.filter(
            employee=employee, work_date=schedule_date, has_schedule=False
        ).update(has_schedule=True)

    def upsert_from_template(self, employee, schedule_date, template, is_public_holiday=False,
                             outlet_id=None, department_id=None):
        """Insert or update the (employee, date) schedule from a template."""
        schedule, created = Schedule.objects.get_or_create(
            employee=employee,
            schedule_date=schedule_date,
            defaults={
                'company': self.tenant.company,
                'outlet_id': outlet_id or employee.outlet_id,
                'department_id': department_id or employee.department_id,
                'created_by': self.tenant.user,
            },
        )
        before = None if created else schedule_snapshot(schedule)
        self._apply_template(schedule, template)
        schedule.is_public_holiday = bool(is_public_holiday)
        if outlet_id:
            schedule.outlet_id = outlet_id
        if department_id:
            schedule.department_id = department_id
        schedule.updated_by = self.tenant.user
        schedule.save()

        if not template.is_off:
            self._sync_has_schedule(employee, schedule_date)

        self._audit('assign', schedule, old_value=before, new_value=schedule_snapshot(schedule))
        return schedule, created

    def assign(self, data):
        schedule_date = data['schedule_date']
        self.check_can_edit(schedule_date)
        employee = self._employee(data.get('employee_id'))
        self.check_employee_can_be_scheduled(employee, schedule_date)
        template = self._template(data.get('shift_template_id'))
        with transaction.atomic():
            return self.upsert_from_template(
                employee, schedule_date, template,
                is_public_holiday=data.get('is_public_holiday', False),
                outlet_id=data.get('outlet_id'),
                department_id=data.get('department_id'),
            )

    def bulk_assign(self, assignments, outlet_id=None, department_id=None):
        results = {'created': 0, 'updated': 0, 'errors': [], 'skipped': 0}

        for item in assignments:
            employee_id = item.get('employee_id')
            schedule_date = item['schedule_date']
            try:
                self.check_can_edit(schedule_date)
            except Forbidden as e:
                results['errors'].append({'employee_id': employee_id, 'date': schedule_date.isoformat(), 'error': e.message})
                results['skipped'] += 1
                continue

            try:
                employee = self._employee(employee_id)
                self.check_employee_can_be_scheduled(employee, schedule_date)
                template = self._template(item.get('shift_template_id'))
                with transaction.atomic():
                    _, created = self.upsert_from_template(
                        employee, schedule_date, template,
                        is_public_holiday=item.get('is_public_holiday', False),
                        outlet_id=outlet_id, department_id=department_id,
                    )
                results['created' if created else 'updated'] += 1
            except (NotFound, PreconditionFailed, ValidationFailed) as e:
                results['errors'].append({'employee_id': employee_id, 'date': schedule_date.isoformat(), 'error': e.message})

        processed = results['created'] + results['updated']
        return {'message': f'Processed {processed} assignments', **results}

    def clear(self, employee_id, schedule_date):
        self.check_can_edit(schedule_date)
        employee = self._employee(employee_id)
        schedules = self.tenant.scope(Schedule.objects.filter(employee=employee, schedule_date=schedule_date))
        for schedule in schedules:
            self._audit('delete', schedule, old_value=schedule_snapshot(schedule), reason='roster clear')
        deleted, _ = schedules.delete()
        return {'message': 'Schedule cleared successfully', 'deleted': deleted}

    def _roster_employees(self, outlet_id=None, department_id=None):
        qs = self.tenant.scope(Employee.objects.select_related('position')).filter(status='active')
        if outlet_id:
            qs = qs.filter(outlet_id=outlet_id)
        if department_id:
            qs = qs.filter(department_id=department_id)
        return qs.exclude(position__role__in=ROSTER_EXCLUDED_ROLES).order_by('employee_id')

    def weekly(self, start_date, outlet_id=None, department_id=None):
        if not outlet_id and not department_id:
            raise ValidationFailed('outlet_id or department_id is required')
        if outlet_id:
            self.tenant.get(Outlet.objects.all(), 'Outlet not found', pk=outlet_id)
        else:
            self.tenant.get(Department.objects.all(), 'Department not found', pk=department_id)

        end_date = start_date + timedelta(days=6)
        dates = list(daterange(start_date, end_date))
        employees = list(self._roster_employees(outlet_id, department_id))

        schedules = self.tenant.scope(Schedule.objects.select_related('shift_template')).filter(
            employee__in=employees, schedule_date__range=(start_date, end_date)
        )
        by_key = {(s.employee_id, s.schedule_date): s for s in schedules}

        roster = []
        for employee in employees:
            shifts = {}
            for day in dates:
                schedule = by_key.get((employee.pk, day))
                shifts[day.isoformat()] = schedule_snapshot(schedule) if schedule else None
            roster.append({
                'employee_id': employee.pk,
                'employee_code': employee.employee_id,
                'name': employee.name,
                'role': employee.position_role,
                'shifts': shifts,
            })

        result = {'outlet_id': int(outlet_id)} if outlet_id else {'department_id': int(department_id)}
        result.update({
            'start_date': start_date.isoformat(),
            'end_date': end_date.isoformat(),
            'dates': [{'date': d.isoformat(), 'day': DAY_NAMES[d.weekday()], 'dayNum': d.day} for d in dates],
            'templates': [template_snapshot(t) for t in self.templates()],
            'roster': roster,
        })
        return result

    def monthly(self, department_id, month):
        self.tenant.get(Department.objects.all(), 'Department not found', pk=department_id)
        try:
            year, month_num = parse_month(month)
        except (TypeError, ValueError):
            raise ValidationFailed('month must be YYYY-MM')
        start, end = month_bounds(year, month_num)

        employees = list(self._roster_employees(department_id=department_id))
        schedules = self.tenant.scope(Schedule.objects.select_related('shift_template')).filter(
            department_id=department_id, schedule_date__range=(start, end)
        ).order_by('schedule_date')
        per_employee = {}
        for schedule in schedules:
            per_employee.setdefault(schedule.employee_id, []).append(schedule_snapshot(schedule))

        return {
            'department_id': int(department_id),
            'month': month,
            'start_date': start.isoformat(),
            'end_date': end.isoformat(),
            'templates': [template_snapshot(t) for t in self.templates()],
            'roster': [
                {
                    'employee_id': e.pk,
                    'employee_code': e.employee_id,
                    'name': e.name,
                    'role': e.position_role,
                    'shifts': per_employee.get(e.pk, []),
                }
                for e in employees
            ],
        }

    def copy_month(self, department_id, from_month, to_month):
        """
        Copy a department's templated schedules into another month.

        Dates are shifted by the distance between the two month starts and
        dropped when they fall outside the target month. Employees who have left,
        or whose last working day is before the shifted date, are skipped. The
        target month is cleared first so a repeat copy gives the same result.
        """
        self.tenant.get(Department.objects.all(), 'Department not found', pk=department_id)
        try:
            from_year, from_num = parse_month(from_month)
            to_year, to_num = parse_month(to_month)
        except (TypeError, ValueError):
            raise ValidationFailed('from_month and to_month must be YYYY-MM')

        from_start, from_end = month_bounds(from_year, from_num)
        to_start, to_end = month_bounds(to_year, to_num)

        source = list(
            self.tenant.scope(Schedule.objects.select_related('shift_template', 'employee')).filter(
                department_id=department_id,
                schedule_date__range=(from_start, from_end),
                shift_template__isnull=False,
            )
        )
        if not source:
            raise PreconditionFailed('No schedules found in source month to copy')

        offset = to_start - from_start
        copied = skipped = 0
        with transaction.atomic():
            self.tenant.scope(Schedule.objects.filter(
                department_id=department_id, schedule_date__range=(to_start, to_end)
            )).delete()

            for original in source:
                target_date = original.schedule_date + offset
                if target_date.month != to_num or target_date.year != to_year:
                    continue
                try:
                    self.check_employee_can_be_scheduled(original.employee, target_date)
                except PreconditionFailed:
                    skipped += 1
                    continue
                schedule, _ = Schedule.objects.get_or_create(
                    employee=original.employee,
                    schedule_date=target_date,
                    defaults={'company': self.tenant.company, 'created_by': self.tenant.user},
                )
                self._apply_template(schedule, original.shift_template)
                schedule.department_id = department_id
                schedule.outlet_id = original.outlet_id
                schedule.save()
                copied += 1

        logger.info(
            f"Copied {copied} schedules for department {department_id} from {from_month} to {to_month}, skipped {skipped}"
        )
        return {
            'message': f'Copied {copied} schedules from {from_month} to {to_month}',
            'copied': copied,
            'skipped': skipped,
        }

    # ------------------------------------------------------------------
    # extra shift requests

    def extra_shift_requests(self, status=None, outlet_id=None):
        qs = self.tenant.scope(ExtraShiftRequest.objects.select_related('employee', 'outlet', 'shift_template'))
        if status:
            qs = qs.filter(status=status)
        if outlet_id:
            qs = qs.filter(outlet_id=outlet_id)
        return qs.order_by('-created_at')

    def create_extra_shift_request(self, data):
        employee = self._employee(data.get('employee_id'))
        template = self._template(data['shift_template_id']) if data.get('shift_template_id') else None
        return ExtraShiftRequest.objects.create(
            company=self.tenant.company,
            employee=employee,
            outlet_id=data.get('outlet_id') or employee.outlet_id,
            request_date=data['request_date'],
            shift_template=template,
            shift_start=self._time(data.get('shift_start'), 'shift_start') or (template.start_time if template else None),
            shift_end=self._time(data.get('shift_end'), 'shift_end') or (template.end_time if template else None),
            reason=data.get('reason') or '',
        )

    def _pending_request(self, request_id):
        request = self.tenant.get(
            ExtraShiftRequest.objects.select_related('employee', 'shift_template'), 'Request not found', pk=request_id
        )
        if request.status != 'pending':
            raise PreconditionFailed('Request has already been processed')
        return request

    def approve_extra_shift(self, request_id):
        request = self._pending_request(request_id)
        self.check_employee_can_be_scheduled(request.employee, request.request_date)
        if Schedule.objects.filter(employee=request.employee, schedule_date=request.request_date).exists():
            raise PreconditionFailed('Schedule already exists for this employee on this date')

        with transaction.atomic():
            schedule = Schedule(
                company=self.tenant.company,
                employee=request.employee,
                schedule_date=request.request_date,
                outlet_id=request.outlet_id or request.employee.outlet_id,
                department_id=request.employee.department_id,
                shift_start=request.shift_start,
                shift_end=request.shift_end,
                status='scheduled',
                notes='Extra shift',
                created_by=self.tenant.user,
            )
            if request.shift_template_id:
                self._apply_template(schedule, request.shift_template)
            schedule.save()

            request.status = 'approved'
            request.approved_by = self.tenant.user
            request.approved_at = local_now()
            request.schedule = schedule
            request.save()

        self._audit('approve', schedule, new_value=schedule_snapshot(schedule), reason='extra shift')
        return {'message': 'Extra shift request approved', 'schedule': schedule_snapshot(schedule)}

    def reject_extra_shift(self, request_id, reason=''):
        request = self._pending_request(request_id)
        request.status = 'rejected'
        request.approved_by = self.tenant.user
        request.approved_at = local_now()
        request.rejection_reason = reason or ''
        request.save()
        return {'message': 'Extra shift request rejected'}

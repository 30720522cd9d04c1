from datetime import date, time, timedelta

import pytest
from django.db import IntegrityError, transaction

from core.exceptions import Forbidden, PreconditionFailed, ValidationFailed
from core.tenant import TenantContext
from hr_payroll.models import ExtraShiftRequest, Position, Schedule, ScheduleAuditLog, ShiftTemplate
from hr_payroll.schedule_store import ScheduleStore
from hr_payroll.utils import local_today


@pytest.fixture
def supervisor(mimix):
    return TenantContext(company=mimix, admin_role='staff', position_role='supervisor', position_name='Supervisor')


@pytest.fixture
def crew_member(mimix, outlet, crew_position, make_employee):
    return make_employee(mimix, outlet=outlet, position=crew_position)


def assignment(employee, template, schedule_date):
    return {'employee_id': employee.pk, 'shift_template_id': template.pk, 'schedule_date': schedule_date}


class TestEditWindow:

    @pytest.mark.parametrize('days_ahead', [0, 1, 2])
    def test_supervisor_cannot_edit_the_next_three_days(self, supervisor, crew_member, day_shift, days_ahead):
        store = ScheduleStore(supervisor)
        with pytest.raises(Forbidden):
            store.assign(assignment(crew_member, day_shift, local_today() + timedelta(days=days_ahead)))
        assert not Schedule.objects.exists()

    def test_supervisor_can_edit_from_day_three(self, supervisor, crew_member, day_shift):
        schedule, created = ScheduleStore(supervisor).assign(
            assignment(crew_member, day_shift, local_today() + timedelta(days=3))
        )
        assert created is True
        assert schedule.shift_start == day_shift.start_time

    def test_supervisor_cannot_edit_the_past(self, supervisor):
        with pytest.raises(Forbidden, match='past'):
            ScheduleStore(supervisor).check_can_edit(local_today() - timedelta(days=1))

    def test_admin_edits_any_date(self, mimix_admin):
        ScheduleStore(mimix_admin).check_can_edit(local_today() - timedelta(days=30))

    def test_manager_position_edits_any_date(self, mimix):
        manager = TenantContext(company=mimix, admin_role='staff', position_role='manager')
        ScheduleStore(manager).check_can_edit(local_today())

    def test_crew_cannot_edit(self, mimix):
        crew = TenantContext(company=mimix, admin_role='staff', position_role='crew')
        with pytest.raises(Forbidden):
            ScheduleStore(crew).check_can_edit(local_today() + timedelta(days=10))

    def test_permissions_report_the_supervisor_window(self, supervisor):
        permissions = ScheduleStore(supervisor).get_permissions()
        assert permissions['can_edit_all'] is False
        assert permissions['can_edit_future_only'] is True
        assert permissions['min_edit_date'] == (local_today() + timedelta(days=3)).isoformat()


class TestRoster:

    def test_assign_twice_updates_the_same_row(self, mimix_admin, mimix, crew_member, day_shift):
        store = ScheduleStore(mimix_admin)
        when = local_today() + timedelta(days=5)
        off = ShiftTemplate.objects.create(company=mimix, name='Off', code='OFF', is_off=True)

        store.assign(assignment(crew_member, day_shift, when))
        schedule, created = store.assign(assignment(crew_member, off, when))

        assert created is False
        assert schedule.status == 'off'
        assert Schedule.objects.filter(employee=crew_member, schedule_date=when).count() == 1
        assert ScheduleAuditLog.objects.filter(employee=crew_member, action='assign').count() == 2

    def test_database_refuses_a_second_row_for_the_day(self, mimix, crew_member):
        Schedule.objects.create(company=mimix, employee=crew_member, schedule_date=date(2025, 3, 3))
        with pytest.raises(IntegrityError), transaction.atomic():
            Schedule.objects.create(company=mimix, employee=crew_member, schedule_date=date(2025, 3, 3))

    def test_bulk_assign_skips_days_outside_the_window(self, supervisor, crew_member, day_shift):
        today = local_today()
        result = ScheduleStore(supervisor).bulk_assign([
            assignment(crew_member, day_shift, today + timedelta(days=1)),
            assignment(crew_member, day_shift, today + timedelta(days=4)),
        ])
        assert result['created'] == 1
        assert result['skipped'] == 1
        assert len(result['errors']) == 1

    def test_no_schedules_after_the_last_working_day(self, mimix_admin, crew_member, day_shift):
        crew_member.last_working_day = local_today() + timedelta(days=3)
        crew_member.save()
        with pytest.raises(PreconditionFailed):
            ScheduleStore(mimix_admin).assign(assignment(crew_member, day_shift, local_today() + timedelta(days=4)))

    def test_clear_removes_the_day(self, mimix_admin, crew_member, day_shift):
        store = ScheduleStore(mimix_admin)
        when = local_today() + timedelta(days=6)
        store.assign(assignment(crew_member, day_shift, when))

        result = store.clear(crew_member.pk, when)

        assert result['deleted'] == 1
        assert not Schedule.objects.filter(employee=crew_member).exists()


class TestBulkCreate:

    def test_only_the_requested_weekdays_are_created(self, mimix_admin, mimix, crew_member, day_shift):
        Schedule.objects.create(company=mimix, employee=crew_member, schedule_date=date(2030, 3, 6))

        result = ScheduleStore(mimix_admin).bulk_create({
            'employee_id': crew_member.pk,
            'start_date': date(2030, 3, 4),
            'end_date': date(2030, 3, 17),
            'days_of_week': [1, 3, 5],
            'shift_template_id': day_shift.pk,
        })

        assert result['created'] == 5
        assert result['skipped'] == 1
        assert [s.schedule_date for s in result['schedules']] == [
            date(2030, 3, 4), date(2030, 3, 8), date(2030, 3, 11), date(2030, 3, 13), date(2030, 3, 15),
        ]
        assert all(s.shift_template_id == day_shift.pk for s in result['schedules'])

    def test_every_day_when_no_weekdays_are_given(self, mimix_admin, crew_member, day_shift):
        result = ScheduleStore(mimix_admin).bulk_create({
            'employee_id': crew_member.pk,
            'start_date': date(2030, 3, 4),
            'end_date': date(2030, 3, 10),
            'shift_template_id': day_shift.pk,
        })
        assert result['created'] == 7
        assert result['skipped'] == 0

    def test_a_fully_scheduled_range_is_refused(self, mimix_admin, mimix, crew_member, day_shift):
        Schedule.objects.create(company=mimix, employee=crew_member, schedule_date=date(2030, 3, 4))
        with pytest.raises(PreconditionFailed, match='already have schedules'):
            ScheduleStore(mimix_admin).bulk_create({
                'employee_id': crew_member.pk,
                'start_date': date(2030, 3, 4),
                'end_date': date(2030, 3, 4),
                'shift_template_id': day_shift.pk,
            })


class TestRosterViews:

    @pytest.fixture
    def manager(self, mimix, outlet, make_employee):
        position = Position.objects.create(company=mimix, name='Outlet Manager', role='manager')
        return make_employee(mimix, outlet=outlet, position=position)

    def test_weekly_roster_lists_crew_for_seven_days(self, mimix_admin, mimix, outlet, crew_member, manager, day_shift):
        start = date(2030, 3, 4)
        Schedule.objects.create(
            company=mimix, employee=crew_member, outlet=outlet, schedule_date=date(2030, 3, 6),
            shift_template=day_shift, shift_start=day_shift.start_time, shift_end=day_shift.end_time,
        )

        weekly = ScheduleStore(mimix_admin).weekly(start, outlet_id=outlet.pk)

        assert weekly['outlet_id'] == outlet.pk
        assert weekly['end_date'] == '2030-03-10'
        assert [d['day'] for d in weekly['dates']] == ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']
        assert [row['employee_id'] for row in weekly['roster']] == [crew_member.pk]
        shifts = weekly['roster'][0]['shifts']
        assert len(shifts) == 7
        assert shifts['2030-03-06']['shift_code'] == 'D'
        assert shifts['2030-03-06']['shift_start'] == '09:00'
        assert shifts['2030-03-05'] is None
        assert [t['code'] for t in weekly['templates']] == ['D']

    def test_weekly_roster_needs_an_outlet_or_department(self, mimix_admin):
        with pytest.raises(ValidationFailed):
            ScheduleStore(mimix_admin).weekly(date(2030, 3, 4))

    def test_monthly_roster_groups_shifts_per_employee(self, aa_admin, aa_alive, department, make_employee):
        night = ShiftTemplate.objects.create(company=aa_alive, name='Night', code='N', start_time=time(22, 0), end_time=time(6, 0))
        driver = make_employee(aa_alive, department=department)
        idle = make_employee(aa_alive, department=department)
        for day in (2, 3):
            Schedule.objects.create(
                company=aa_alive, employee=driver, department=department, schedule_date=date(2030, 3, day),
                shift_template=night,
            )

        monthly = ScheduleStore(aa_admin).monthly(department.pk, '2030-03')

        assert (monthly['start_date'], monthly['end_date']) == ('2030-03-01', '2030-03-31')
        by_employee = {row['employee_id']: row['shifts'] for row in monthly['roster']}
        assert [s['date'] for s in by_employee[driver.pk]] == ['2030-03-02', '2030-03-03']
        assert by_employee[idle.pk] == []

    def test_monthly_roster_rejects_a_bad_month(self, aa_admin, department):
        with pytest.raises(ValidationFailed):
            ScheduleStore(aa_admin).monthly(department.pk, 'March')


class TestCopyMonth:

    @pytest.fixture
    def night(self, aa_alive):
        return ShiftTemplate.objects.create(
            company=aa_alive, name='Night', code='N', start_time=time(22, 0), end_time=time(6, 0),
        )

    @pytest.fixture
    def driver(self, aa_alive, department, make_employee):
        return make_employee(aa_alive, department=department)

    def roster(self, employee, template, days):
        for day in days:
            Schedule.objects.create(
                company=employee.company, employee=employee, department=employee.department,
                schedule_date=day, shift_template=template,
            )

    def test_dates_shift_by_whole_months_and_overflow_is_dropped(self, aa_admin, driver, night):
        self.roster(driver, night, [date(2030, 1, d) for d in range(1, 32)])

        result = ScheduleStore(aa_admin).copy_month(driver.department_id, '2030-01', '2030-02')

        assert result['copied'] == 28
        assert result['skipped'] == 0
        february = Schedule.objects.filter(employee=driver, schedule_date__month=2).order_by('schedule_date')
        assert february.count() == 28
        assert february.first().schedule_date == date(2030, 2, 1)
        assert february.first().shift_template_id == night.pk
        assert not Schedule.objects.filter(employee=driver, schedule_date__month=3).exists()

    def test_copying_again_gives_the_same_month(self, aa_admin, driver, night):
        self.roster(driver, night, [date(2030, 1, 6), date(2030, 1, 7)])
        store = ScheduleStore(aa_admin)

        store.copy_month(driver.department_id, '2030-01', '2030-02')
        again = store.copy_month(driver.department_id, '2030-01', '2030-02')

        assert again['copied'] == 2
        assert list(
            Schedule.objects.filter(employee=driver, schedule_date__month=2)
            .order_by('schedule_date').values_list('schedule_date', flat=True)
        ) == [date(2030, 2, 6), date(2030, 2, 7)]

    def test_days_after_the_last_working_day_are_skipped(self, aa_admin, driver, night):
        driver.last_working_day = date(2030, 1, 20)
        driver.save()
        self.roster(driver, night, [date(2030, 1, d) for d in range(1, 21)])

        result = ScheduleStore(aa_admin).copy_month(driver.department_id, '2030-01', '2030-02')

        assert result['copied'] == 0
        assert result['skipped'] == 20
        assert not Schedule.objects.filter(employee=driver, schedule_date__month=2).exists()

    def test_resigned_employees_are_skipped(self, aa_admin, aa_alive, department, driver, night, make_employee):
        leaver = make_employee(aa_alive, department=department, status='resigned')
        self.roster(driver, night, [date(2030, 1, 6)])
        self.roster(leaver, night, [date(2030, 1, 6)])

        result = ScheduleStore(aa_admin).copy_month(department.pk, '2030-01', '2030-02')

        assert (result['copied'], result['skipped']) == (1, 1)
        assert not Schedule.objects.filter(employee=leaver, schedule_date__month=2).exists()

    def test_an_empty_source_month_is_refused(self, aa_admin, department):
        with pytest.raises(PreconditionFailed):
            ScheduleStore(aa_admin).copy_month(department.pk, '2030-01', '2030-02')


class TestExtraShifts:

    @pytest.fixture
    def extra_request(self, mimix, outlet, crew_member, day_shift):
        return ExtraShiftRequest.objects.create(
            company=mimix, employee=crew_member, outlet=outlet, request_date=date(2030, 3, 9), shift_template=day_shift,
        )

    def test_approval_creates_the_schedule(self, mimix_admin, extra_request, crew_member):
        result = ScheduleStore(mimix_admin).approve_extra_shift(extra_request.pk)

        extra_request.refresh_from_db()
        assert extra_request.status == 'approved'
        assert extra_request.schedule_id == result['schedule']['id']
        assert result['schedule']['shift_code'] == 'D'
        assert Schedule.objects.get(employee=crew_member).notes == 'Extra shift'

    def test_no_extra_shift_after_the_last_working_day(self, mimix_admin, extra_request, crew_member):
        crew_member.last_working_day = date(2030, 3, 8)
        crew_member.save()

        with pytest.raises(PreconditionFailed, match='last working day'):
            ScheduleStore(mimix_admin).approve_extra_shift(extra_request.pk)

        extra_request.refresh_from_db()
        assert extra_request.status == 'pending'
        assert not Schedule.objects.filter(employee=crew_member).exists()

    def test_no_extra_shift_for_exited_employees(self, mimix_admin, extra_request, crew_member):
        crew_member.employment_status = 'exited'
        crew_member.save()
        with pytest.raises(PreconditionFailed, match='resigned'):
            ScheduleStore(mimix_admin).approve_extra_shift(extra_request.pk)

from datetime import date, datetime, time
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from core.exceptions import LifecycleError, NotFound, PreconditionFailed, ValidationFailed
from core.models import Notification
from hr_payroll import attendance_engine
from hr_payroll.attendance_engine import AttendanceEngine, apply_totals, clock_action, compute_totals
from hr_payroll.auto_clockout import run_auto_clockout
from hr_payroll.models import ClockRecord, Schedule


@pytest.fixture
def frozen_clock(monkeypatch):
    moments = {'now': datetime(2025, 1, 10, 8, 55, 0)}
    monkeypatch.setattr(attendance_engine, 'local_now', lambda: moments['now'])
    return moments


def clock_record(employee, work_date, **events):
    record = ClockRecord(company=employee.company, employee=employee, work_date=work_date, **events)
    apply_totals(record)
    record.save()
    return record


class TestRegimeScenarios:

    def test_mimix_overtime_uses_the_rostered_shift_start(self, mimix, outlet, make_employee):
        employee = make_employee(mimix, outlet=outlet)
        Schedule.objects.create(
            company=mimix, employee=employee, schedule_date=date(2025, 1, 6),
            shift_start=time(9, 0), shift_end=time(18, 0),
        )
        record = clock_record(
            employee, date(2025, 1, 6),
            clock_in_1=time(8, 55), clock_out_1=time(12, 30), clock_in_2=time(13, 20), clock_out_2=time(18, 50),
        )
        assert record.total_work_minutes == 590
        assert record.total_hours == Decimal('9.83')
        assert record.ot_hours == Decimal('1.00')

    def test_aa_alive_overtime(self, aa_alive, department, make_employee):
        employee = make_employee(aa_alive, department=department)
        record = clock_record(
            employee, date(2025, 1, 6),
            clock_in_1=time(8, 0), clock_out_1=time(12, 0), clock_in_2=time(13, 0), clock_out_2=time(19, 30),
        )
        assert record.total_work_minutes == 630
        assert record.total_break_minutes == 60
        assert record.ot_hours == Decimal('1.50')

    def test_shift_start_is_read_at_compute_time(self, mimix, make_employee):
        employee = make_employee(mimix)
        record = clock_record(employee, date(2025, 1, 7), clock_in_1=time(8, 30), clock_out_2=time(17, 30))
        assert record.total_work_minutes == 540

        Schedule.objects.create(company=mimix, employee=employee, schedule_date=date(2025, 1, 7), shift_start=time(9, 0))
        assert compute_totals(record)['total_work_minutes'] == 510


class TestClockTerminal:

    def test_events_are_recorded_in_order(self, mimix, make_employee, frozen_clock):
        employee = make_employee(mimix, ic_number='900101-14-5555')

        result = clock_action(employee.employee_id, '900101145555', 'clock_in_1')
        assert result['next_action'] == 'clock_out_1'

        frozen_clock['now'] = datetime(2025, 1, 10, 12, 30, 0)
        clock_action(employee.employee_id, '900101-14-5555', 'clock_out_1')

        record = ClockRecord.objects.get(employee=employee, work_date=date(2025, 1, 10))
        assert record.clock_in_1 == time(8, 55)
        assert record.clock_out_1 == time(12, 30)
        assert record.clock_in_2 is None

    def test_first_event_must_be_clock_in(self, mimix, make_employee, frozen_clock):
        employee = make_employee(mimix)
        with pytest.raises(PreconditionFailed):
            clock_action(employee.employee_id, employee.ic_number, 'clock_out_1')
        assert not ClockRecord.objects.exists()

    def test_out_of_order_and_repeated_events_are_refused(self, mimix, make_employee, frozen_clock):
        employee = make_employee(mimix)
        clock_action(employee.employee_id, employee.ic_number, 'clock_in_1')

        with pytest.raises(PreconditionFailed, match='Next expected action is clock_out_1'):
            clock_action(employee.employee_id, employee.ic_number, 'clock_out_2')
        with pytest.raises(PreconditionFailed, match='already recorded'):
            clock_action(employee.employee_id, employee.ic_number, 'clock_in_1')

        record = ClockRecord.objects.get(employee=employee)
        filled = [name for name in ClockRecord.EVENT_FIELDS if getattr(record, name) is not None]
        assert filled == ['clock_in_1']

    def test_one_record_per_employee_and_day(self, mimix, make_employee):
        employee = make_employee(mimix)
        ClockRecord.objects.create(company=mimix, employee=employee, work_date=date(2025, 1, 10))
        with pytest.raises(IntegrityError), transaction.atomic():
            ClockRecord.objects.create(company=mimix, employee=employee, work_date=date(2025, 1, 10))

    def test_media_retention_date_is_six_months_after_work_date(self, mimix, make_employee):
        employee = make_employee(mimix)
        record = ClockRecord.objects.create(company=mimix, employee=employee, work_date=date(2025, 8, 31))
        assert record.media_retention_eligible_at == date(2026, 2, 28)


class TestAdminEngine:

    def test_approve_then_revert(self, mimix, mimix_admin, make_employee):
        record = clock_record(make_employee(mimix), date(2025, 1, 6), clock_in_1=time(9, 0), clock_out_2=time(18, 0))
        engine = AttendanceEngine(mimix_admin)

        assert engine.approve(record.pk).status == 'approved'
        with pytest.raises(LifecycleError):
            engine.approve(record.pk)
        assert engine.revert(record.pk).status == 'pending'

    def test_recalculate_is_idempotent(self, mimix, mimix_admin, make_employee):
        record = clock_record(make_employee(mimix), date(2025, 1, 6), clock_in_1=time(9, 0), clock_out_2=time(19, 0))
        ClockRecord.objects.filter(pk=record.pk).update(total_work_minutes=0, ot_minutes=0)
        engine = AttendanceEngine(mimix_admin)

        first = engine.recalculate(2025, 1)
        second = engine.recalculate(2025, 1)

        assert first['updated'] == 1
        assert second['updated'] == 0
        record.refresh_from_db()
        assert record.total_work_minutes == 600
        assert record.ot_minutes == 90

    def test_ot_for_payroll_uses_approved_ot_only(self, mimix, mimix_admin, make_employee):
        employee = make_employee(mimix, default_basic_salary=Decimal('2600.00'))
        approved = clock_record(employee, date(2025, 1, 6), clock_in_1=time(9, 0), clock_out_2=time(19, 30))
        clock_record(employee, date(2025, 1, 7), clock_in_1=time(9, 0), clock_out_2=time(19, 30))
        ClockRecord.objects.filter(pk=approved.pk).update(status='approved', ot_approved=True)

        rows = AttendanceEngine(mimix_admin).ot_for_payroll(2025, 1)

        assert len(rows) == 1
        assert rows[0]['ot_hours'] == Decimal('2.00')
        # 2600 / 26 / 8 = 12.50 an hour at 1.5x
        assert rows[0]['ot_pay'] == Decimal('37.50')

    def test_other_tenants_records_are_not_found(self, mimix, aa_alive, aa_admin, make_employee):
        record = clock_record(make_employee(mimix), date(2025, 1, 6), clock_in_1=time(9, 0))
        with pytest.raises(NotFound):
            AttendanceEngine(aa_admin).approve(record.pk)


class TestAdminDecisions:

    @pytest.fixture
    def early_record(self, mimix, make_employee):
        return clock_record(make_employee(mimix), date(2025, 1, 6), clock_in_1=time(8, 30), clock_out_2=time(19, 0))

    def test_approve_with_schedule_rosters_the_day_and_recomputes(self, mimix_admin, early_record, day_shift):
        assert early_record.total_work_minutes == 630

        record = AttendanceEngine(mimix_admin).approve_with_schedule(early_record.pk, day_shift.pk)

        schedule = Schedule.objects.get(employee=early_record.employee, schedule_date=date(2025, 1, 6))
        assert schedule.shift_template == day_shift
        assert schedule.shift_start == time(9, 0)
        assert record.status == 'approved'
        assert record.has_schedule is True
        assert record.total_work_minutes == 600
        assert record.ot_minutes == 90

    def test_approve_with_schedule_overwrites_an_existing_shift(self, mimix_admin, early_record, day_shift):
        Schedule.objects.create(
            company=early_record.company, employee=early_record.employee, schedule_date=date(2025, 1, 6),
            shift_start=time(10, 0), shift_end=time(19, 0),
        )
        AttendanceEngine(mimix_admin).approve_with_schedule(early_record.pk, day_shift.pk)

        assert Schedule.objects.filter(employee=early_record.employee).count() == 1
        assert Schedule.objects.get(employee=early_record.employee).shift_start == time(9, 0)

    def test_approve_with_schedule_requires_a_pending_record(self, mimix_admin, early_record, day_shift):
        engine = AttendanceEngine(mimix_admin)
        engine.approve(early_record.pk)
        with pytest.raises(LifecycleError):
            engine.approve_with_schedule(early_record.pk, day_shift.pk)
        assert not Schedule.objects.exists()

    def test_ot_approval_and_rejection(self, mimix_admin, early_record):
        engine = AttendanceEngine(mimix_admin)

        with pytest.raises(ValidationFailed, match='Reason is required'):
            engine.reject_ot(early_record.pk, '')

        rejected = engine.reject_ot(early_record.pk, 'Not pre-approved')
        assert rejected.ot_approved is False
        assert rejected.ot_rejection_reason == 'Not pre-approved'

        approved = engine.approve_ot(early_record.pk)
        approved.refresh_from_db()
        assert approved.ot_approved is True
        assert approved.ot_approved_at is not None
        assert approved.ot_rejection_reason == ''

    def test_mark_reviewed_overrides_totals_and_clears_the_flag(self, mimix_admin, early_record):
        ClockRecord.objects.filter(pk=early_record.pk).update(needs_admin_review=True, notes='Auto clock-out')

        record = AttendanceEngine(mimix_admin).mark_reviewed(
            early_record.pk, total_work_minutes=480, ot_minutes=0, notes='Left at 17:00',
        )

        record.refresh_from_db()
        assert record.needs_admin_review is False
        assert record.reviewed_at is not None
        assert record.total_work_minutes == 480
        assert record.total_hours == Decimal('8.00')
        assert record.ot_hours == Decimal('0.00')
        assert record.notes == 'Auto clock-out\nLeft at 17:00'


class TestAutoClockout:

    @pytest.fixture
    def open_record(self, mimix, make_employee):
        employee = make_employee(mimix)
        Schedule.objects.create(
            company=mimix, employee=employee, schedule_date=date(2025, 1, 10),
            shift_start=time(9, 0), shift_end=time(18, 0),
        )
        return clock_record(
            employee, date(2025, 1, 10),
            clock_in_1=time(9, 0), clock_out_1=time(12, 0), clock_in_2=time(12, 45),
        )

    def test_closes_at_the_scheduled_shift_end(self, open_record):
        result = run_auto_clockout(target_date=date(2025, 1, 10))

        assert result['processed'] == 1
        open_record.refresh_from_db()
        assert open_record.clock_out_2 == time(18, 0)
        assert open_record.is_auto_clock_out is True
        assert open_record.needs_admin_review is True
        assert open_record.total_work_minutes == 540
        assert Notification.objects.filter(reference_id=open_record.pk, notification_type='auto_clock_out').exists()

    def test_second_run_changes_nothing(self, open_record):
        first = run_auto_clockout(target_date=date(2025, 1, 10))
        open_record.refresh_from_db()
        updated_at = open_record.updated_at

        second = run_auto_clockout(target_date=date(2025, 1, 10))

        assert first['record_ids'] == [open_record.pk]
        assert second['record_ids'] == []
        open_record.refresh_from_db()
        assert open_record.updated_at == updated_at

    def test_without_schedule_closes_after_a_standard_day(self, aa_alive, make_employee):
        record = clock_record(make_employee(aa_alive), date(2025, 1, 10), clock_in_1=time(8, 0))
        run_auto_clockout(target_date=date(2025, 1, 10), company_id=aa_alive.pk)
        record.refresh_from_db()
        assert record.clock_out_2 == time(17, 0)
        assert record.total_work_minutes == 540

    def test_open_break_is_closed_as_zero_length(self, mimix, make_employee):
        record = clock_record(make_employee(mimix), date(2025, 1, 10), clock_in_1=time(9, 0), clock_out_1=time(13, 0))
        run_auto_clockout(target_date=date(2025, 1, 10))
        record.refresh_from_db()
        assert record.clock_in_2 == time(13, 0)
        assert record.clock_out_2 == time(17, 30)

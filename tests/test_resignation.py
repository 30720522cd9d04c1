from datetime import date, time
from decimal import Decimal

import pytest

from core.exceptions import LifecycleError, PreconditionFailed
from hr_payroll import resignation_engine
from hr_payroll.models import (
    ClearanceItem, ClearanceTemplate, Employee, LeaveBalance, LeaveRequest, LeaveType, Resignation, Schedule,
)
from hr_payroll.resignation_engine import ResignationEngine
from hr_payroll.resignation_updater import AUTO_REJECT_REASON, run_resignation_updater


@pytest.fixture
def engine(mimix_admin):
    return ResignationEngine(mimix_admin)


@pytest.fixture
def leaver(mimix, make_employee):
    return make_employee(mimix, default_basic_salary=Decimal('3000.00'), join_date=date(2022, 1, 1))


@pytest.fixture
def annual_leave(mimix):
    return LeaveType.objects.create(company=mimix, name='Annual Leave', code='AL', is_paid=True, default_days=12)


@pytest.fixture
def checklist(mimix):
    ClearanceTemplate.objects.create(company=mimix, category='Assets', item_name='Return uniform', sort_order=1)
    ClearanceTemplate.objects.create(company=mimix, category='Access', item_name='Revoke POS login', sort_order=2)


@pytest.fixture
def clearing(engine, leaver, checklist):
    created = engine.create({
        'employee_id': leaver.pk, 'notice_date': date(2025, 3, 1), 'last_working_day': date(2025, 4, 30),
    })
    engine.approve(created['id'])
    return Resignation.objects.get(pk=created['id'])


@pytest.fixture
def exit_state(mimix, leaver, annual_leave, clearing):
    """Roster around the last working day plus one approved AL of 3 days after it."""
    for day in (date(2025, 4, 30), date(2025, 5, 1), date(2025, 5, 2)):
        Schedule.objects.create(
            company=mimix, employee=leaver, schedule_date=day, shift_start=time(9, 0), shift_end=time(18, 0),
        )
    leave = LeaveRequest.objects.create(
        company=mimix, employee=leaver, leave_type=annual_leave, status='approved',
        start_date=date(2025, 5, 5), end_date=date(2025, 5, 7), total_days=Decimal('3'),
    )
    balance = LeaveBalance.objects.create(
        employee=leaver, leave_type=annual_leave, year=2025, entitled_days=12, used_days=Decimal('5'),
    )
    return leave, balance


class TestLifecycle:

    def test_notice_requirement_follows_service_length(self, engine, leaver):
        created = engine.create({
            'employee_id': leaver.pk, 'notice_date': date(2025, 3, 1), 'last_working_day': date(2025, 3, 31),
        })
        assert created['status'] == 'pending'
        assert created['required_notice_days'] == 42
        assert created['actual_notice_days'] == 30

    def test_only_one_active_resignation(self, engine, leaver, clearing):
        with pytest.raises(PreconditionFailed):
            engine.create({'employee_id': leaver.pk, 'notice_date': date(2025, 3, 2), 'last_working_day': date(2025, 4, 30)})

    def test_approval_puts_employee_on_notice_and_seeds_clearance(self, clearing, leaver):
        leaver.refresh_from_db()
        assert clearing.status == 'clearing'
        assert leaver.employment_status == 'notice'
        assert leaver.last_working_day == date(2025, 4, 30)
        assert list(clearing.clearance_items.values_list('item_name', flat=True)) == [
            'Return uniform', 'Revoke POS login',
        ]

    def test_cancel_restores_employment(self, engine, clearing, leaver):
        engine.cancel(clearing.pk)
        leaver.refresh_from_db()
        assert leaver.employment_status == 'employed'
        assert leaver.last_working_day is None
        assert not ClearanceItem.objects.filter(resignation=clearing).exists()

    def test_completing_every_item_completes_clearance(self, engine, clearing):
        items = list(clearing.clearance_items.all())
        engine.update_clearance_item(clearing.pk, items[0].pk, True)
        result = engine.update_clearance_item(clearing.pk, items[1].pk, True)
        assert result['clearance_completed'] is True

        result = engine.update_clearance_item(clearing.pk, items[1].pk, False)
        assert result['clearance_completed'] is False


class TestProcess:

    def test_process_exits_the_employee_and_clears_the_future(self, engine, clearing, leaver, exit_state):
        leave, balance = exit_state

        result = engine.process(clearing.pk, {'override_clearance': True})

        assert result['cleanup']['future_schedules_deleted'] == 2
        assert result['cleanup']['approved_leave_cancelled'] == 1
        assert list(Schedule.objects.filter(employee=leaver).values_list('schedule_date', flat=True)) == [
            date(2025, 4, 30),
        ]
        leave.refresh_from_db()
        balance.refresh_from_db()
        leaver.refresh_from_db()
        clearing.refresh_from_db()
        assert leave.status == 'cancelled'
        assert balance.used_days == Decimal('2')
        assert leaver.status == 'inactive'
        assert leaver.employment_status == 'exited'
        assert leaver.resign_date == date(2025, 4, 30)
        assert clearing.status == 'completed'
        assert clearing.final_salary_amount is not None

    def test_incomplete_clearance_blocks_processing(self, engine, clearing, leaver):
        with pytest.raises(PreconditionFailed, match=r'\(0/2\)'):
            engine.process(clearing.pk)
        leaver.refresh_from_db()
        assert leaver.employment_status == 'notice'

    def test_pending_resignation_cannot_be_processed(self, engine, leaver):
        created = engine.create({
            'employee_id': leaver.pk, 'notice_date': date(2025, 3, 1), 'last_working_day': date(2025, 4, 30),
        })
        with pytest.raises(LifecycleError):
            engine.process(created['id'], {'override_clearance': True})

    def test_a_failure_leaves_everything_as_it_was(self, engine, clearing, leaver, exit_state, monkeypatch):
        leave, balance = exit_state

        def explode(*args, **kwargs):
            raise RuntimeError('leave store unavailable')

        monkeypatch.setattr(resignation_engine, 'cancel_future_leaves', explode)

        with pytest.raises(RuntimeError):
            engine.process(clearing.pk, {'override_clearance': True, 'final_salary_amount': Decimal('1000')})

        leaver.refresh_from_db()
        leave.refresh_from_db()
        balance.refresh_from_db()
        clearing.refresh_from_db()
        assert leaver.status == 'active'
        assert leaver.employment_status == 'notice'
        assert Schedule.objects.filter(employee=leaver).count() == 3
        assert leave.status == 'approved'
        assert balance.used_days == Decimal('5')
        assert clearing.status == 'clearing'
        assert clearing.final_salary_amount is None

    def test_cleanup_leaves_can_run_before_processing(self, engine, clearing, mimix, leaver, annual_leave):
        LeaveRequest.objects.create(
            company=mimix, employee=leaver, leave_type=annual_leave,
            start_date=date(2025, 5, 12), end_date=date(2025, 5, 12), total_days=1,
        )
        before = engine.check_leaves(clearing.pk)
        result = engine.cleanup_leaves(clearing.pk)
        assert before['has_leaves_to_cancel'] is True
        assert result['cancelled'] == {'pending': 1, 'approved': 0}


class TestResignationUpdater:

    def test_moves_overdue_notice_to_resigned_pending(self, clearing, leaver, mimix, annual_leave):
        late_leave = LeaveRequest.objects.create(
            company=mimix, employee=leaver, leave_type=annual_leave,
            start_date=date(2025, 5, 5), end_date=date(2025, 5, 5), total_days=1,
        )

        results = run_resignation_updater(today=date(2025, 5, 1))

        assert results['transitioned'] == 1
        assert results['leavesRejected'] == 1
        leaver.refresh_from_db()
        late_leave.refresh_from_db()
        assert leaver.employment_status == 'resigned_pending'
        assert late_leave.status == 'rejected'
        assert late_leave.rejection_reason == AUTO_REJECT_REASON

    def test_nothing_happens_before_the_last_working_day(self, clearing, leaver):
        results = run_resignation_updater(today=date(2025, 4, 30))
        assert results['transitioned'] == 0
        assert Employee.objects.get(pk=leaver.pk).employment_status == 'notice'

    def test_rerun_is_harmless(self, clearing):
        run_resignation_updater(today=date(2025, 5, 1))
        assert run_resignation_updater(today=date(2025, 5, 1))['transitioned'] == 0

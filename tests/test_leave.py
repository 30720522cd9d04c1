from datetime import date
from decimal import Decimal

import pytest

from core.exceptions import LifecycleError, PreconditionFailed, ValidationFailed
from hr_payroll.leave_service import LeaveService
from hr_payroll.models import LeaveBalance, LeaveType


@pytest.fixture
def annual(mimix):
    return LeaveType.objects.create(company=mimix, name='Annual', code='AL', is_paid=True, default_days=Decimal('8'))


@pytest.fixture
def unpaid(mimix):
    return LeaveType.objects.create(company=mimix, name='Unpaid', code='UL', is_paid=False)


@pytest.fixture
def employee(mimix, make_employee):
    return make_employee(mimix)


@pytest.fixture
def balance(employee, annual):
    return LeaveBalance.objects.create(
        employee=employee, leave_type=annual, year=2025, entitled_days=Decimal('8'), used_days=Decimal('2'),
    )


@pytest.fixture
def service(mimix_admin):
    return LeaveService(mimix_admin)


def request_leave(service, employee, leave_type, start, end):
    return service.create({
        'employee_id': employee.pk, 'leave_type_id': leave_type.pk, 'start_date': start, 'end_date': end,
    })


def test_days_are_counted_inclusively(service, employee, annual):
    leave = request_leave(service, employee, annual, date(2025, 3, 3), date(2025, 3, 5))
    assert leave.total_days == Decimal('3')
    assert leave.status == 'pending'


def test_end_before_start_is_refused(service, employee, annual):
    with pytest.raises(ValidationFailed):
        request_leave(service, employee, annual, date(2025, 3, 5), date(2025, 3, 3))


def test_approval_consumes_the_balance(service, employee, annual, balance):
    leave = request_leave(service, employee, annual, date(2025, 3, 3), date(2025, 3, 5))

    assert service.approve(leave.pk).status == 'approved'

    balance.refresh_from_db()
    assert balance.used_days == Decimal('5')
    assert balance.remaining_days == Decimal('3')


def test_approval_beyond_the_balance_rolls_back(service, employee, annual, balance):
    leave = request_leave(service, employee, annual, date(2025, 3, 3), date(2025, 3, 9))

    with pytest.raises(PreconditionFailed, match='Insufficient leave balance'):
        service.approve(leave.pk)

    balance.refresh_from_db()
    leave.refresh_from_db()
    assert balance.used_days == Decimal('2')
    assert leave.status == 'pending'


def test_rejection_leaves_the_balance_alone(service, employee, annual, balance):
    leave = request_leave(service, employee, annual, date(2025, 3, 3), date(2025, 3, 5))

    rejected = service.reject(leave.pk, 'Peak season')

    assert rejected.rejection_reason == 'Peak season'
    balance.refresh_from_db()
    assert balance.used_days == Decimal('2')
    with pytest.raises(LifecycleError):
        service.approve(leave.pk)


def test_cancelling_an_approved_request_restores_the_days(service, employee, annual, balance):
    leave = request_leave(service, employee, annual, date(2025, 3, 3), date(2025, 3, 5))
    service.approve(leave.pk)

    cancelled = service.cancel(leave.pk, 'Plans changed')

    assert cancelled.status == 'cancelled'
    assert cancelled.cancelled_at is not None
    balance.refresh_from_db()
    assert balance.used_days == Decimal('2')


def test_cancelling_a_pending_request_does_not_touch_the_balance(service, employee, annual, balance):
    leave = request_leave(service, employee, annual, date(2025, 3, 3), date(2025, 3, 3))
    service.cancel(leave.pk)
    balance.refresh_from_db()
    assert balance.used_days == Decimal('2')


def test_rejected_requests_cannot_be_cancelled(service, employee, annual, balance):
    leave = request_leave(service, employee, annual, date(2025, 3, 3), date(2025, 3, 3))
    service.reject(leave.pk)
    with pytest.raises(LifecycleError):
        service.cancel(leave.pk)


def test_unpaid_leave_never_touches_balances(service, employee, unpaid):
    leave = request_leave(service, employee, unpaid, date(2025, 3, 3), date(2025, 3, 14))

    service.approve(leave.pk)
    service.cancel(leave.pk)

    assert not LeaveBalance.objects.filter(employee=employee).exists()

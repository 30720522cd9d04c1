from datetime import date
from decimal import Decimal

import pytest

from core.exceptions import LifecycleError, ValidationFailed
from payroll.advances import AdvanceService
from payroll.models import SalaryAdvance


@pytest.fixture
def service(mimix_admin):
    return AdvanceService(mimix_admin)


@pytest.fixture
def advance(service, mimix, make_employee):
    created = service.create({
        'employee_id': make_employee(mimix).pk, 'amount': Decimal('500'), 'advance_date': date(2025, 1, 5),
        'deduction_method': 'installment', 'installment_amount': Decimal('200'),
        'expected_deduction_month': 2, 'expected_deduction_year': 2025,
    })
    return SalaryAdvance.objects.get(pk=created['id'])


def test_new_advance_owes_everything(advance):
    assert advance.status == 'active'
    assert advance.remaining_balance == Decimal('500.00')
    assert advance.total_deducted == Decimal('0.00')


def test_installments_need_an_amount(service, mimix, make_employee):
    with pytest.raises(ValidationFailed):
        service.create({
            'employee_id': make_employee(mimix).pk, 'amount': Decimal('500'), 'advance_date': date(2025, 1, 5),
            'deduction_method': 'installment',
        })


def test_deductions_never_exceed_the_balance(service, advance):
    service.deduct(advance.pk, Decimal('200'))
    service.deduct(advance.pk, Decimal('200'))
    result = service.deduct(advance.pk, Decimal('200'))

    assert result['deducted'] == Decimal('100.00')
    assert result['remaining'] == Decimal('0.00')
    assert result['status'] == 'completed'
    advance.refresh_from_db()
    assert advance.total_deducted + advance.remaining_balance == advance.amount
    assert [row['amount'] for row in service.history(advance.pk)] == [
        Decimal('200.00'), Decimal('200.00'), Decimal('100.00'),
    ]


def test_completed_advances_take_no_more_deductions(service, advance):
    service.deduct(advance.pk, Decimal('500'))
    with pytest.raises(LifecycleError):
        service.deduct(advance.pk, Decimal('1'))


def test_pending_amount_is_one_installment(service, advance):
    pending = service.pending(advance.employee_id, month=2, year=2025)
    assert pending == {'pending_amount': Decimal('200.00'), 'advance_count': 1}
    assert service.pending(advance.employee_id, month=1, year=2025)['advance_count'] == 0


def test_cancelled_advances_are_not_deducted(service, advance):
    service.cancel(advance.pk)
    with pytest.raises(LifecycleError):
        service.deduct(advance.pk, Decimal('50'))


def test_deduct_endpoint(admin_client, advance):
    response = admin_client.post(f'/api/advances/{advance.pk}/deduct/', {'amount': 600}, format='json')
    assert response.status_code == 200
    assert response.json()['deducted'] == 500.0
    assert response.json()['status'] == 'completed'

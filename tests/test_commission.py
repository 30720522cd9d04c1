from datetime import date, timedelta
from decimal import Decimal

import pytest

from core.exceptions import LifecycleError, PreconditionFailed, ValidationFailed
from hr_payroll.models import Schedule, ShiftTemplate
from payroll.commission_engine import CommissionEngine, commission_period


def roster(employee, days, outlet=None, department=None, public_holiday=False, **kwargs):
    for day in days:
        Schedule.objects.create(
            company=employee.company, employee=employee, schedule_date=day,
            outlet=outlet, department=department, is_public_holiday=public_holiday, **kwargs,
        )


def period_days(count, start=date(2025, 1, 15)):
    return [start + timedelta(days=i) for i in range(count)]


@pytest.fixture
def engine(mimix_admin):
    return CommissionEngine(mimix_admin)


@pytest.fixture
def sales(engine, outlet):
    row, _ = engine.save_sales({
        'outlet_id': outlet.pk, 'period_month': 2, 'period_year': 2025, 'total_sales': '120000',
    })
    return row


def test_period_runs_from_the_15th_to_the_14th():
    assert commission_period(2025, 2) == (date(2025, 1, 15), date(2025, 2, 14))
    assert commission_period(2025, 1) == (date(2024, 12, 15), date(2025, 1, 14))


class TestCalculate:

    def test_pool_is_split_by_effective_shifts(self, engine, sales, mimix, outlet, make_employee):
        alice = make_employee(mimix, name='Alice', outlet=outlet)
        bob = make_employee(mimix, name='Bob', outlet=outlet)
        days = period_days(22)
        roster(alice, days[:20], outlet=outlet)
        roster(alice, days[20:21], outlet=outlet, public_holiday=True)
        roster(bob, days, outlet=outlet)

        result = engine.calculate(sales.pk)

        assert result['commission_pool'] == Decimal('7200.00')
        assert result['total_effective_shifts'] == 44
        assert result['per_shift_value'] == Decimal('163.6364')
        payouts = {p['employee_name']: p for p in result['payouts']}
        assert payouts['Alice']['normal_shifts'] == 20
        assert payouts['Alice']['ph_shifts'] == 1
        assert payouts['Alice']['effective_shifts'] == 22
        assert payouts['Alice']['commission_amount'] == Decimal('3600.00')
        assert payouts['Bob']['commission_amount'] == Decimal('3600.00')
        assert sum(p['commission_amount'] for p in result['payouts']) == Decimal('7200.00')

    def test_payouts_conserve_the_pool_within_rounding(self, engine, sales, mimix, outlet, make_employee):
        days = period_days(31)
        for count in (7, 11, 13):
            roster(make_employee(mimix, outlet=outlet), days[:count], outlet=outlet)
        roster(make_employee(mimix, outlet=outlet), days[:3], outlet=outlet, public_holiday=True)

        result = engine.calculate(sales.pk)

        total = sum(p['commission_amount'] for p in result['payouts'])
        assert abs(total - result['commission_pool']) < Decimal('0.01') * len(result['payouts'])
        for payout in result['payouts']:
            assert payout['effective_shifts'] == payout['normal_shifts'] + 2 * payout['ph_shifts']
            expected = payout['effective_shifts'] * result['per_shift_value']
            assert abs(payout['commission_amount'] - expected) <= Decimal('0.005') * payout['effective_shifts']

    def test_off_days_and_other_outlets_are_not_counted(self, engine, sales, mimix, outlet, make_employee):
        from core.models import Outlet
        elsewhere = Outlet.objects.create(company=mimix, name='Outlet Two', code='O2')
        off = ShiftTemplate.objects.create(company=mimix, name='Off', code='OFF', is_off=True)
        employee = make_employee(mimix, outlet=outlet)
        days = period_days(6)
        roster(employee, days[:2], outlet=outlet)
        roster(employee, days[2:4], outlet=outlet, shift_template=off, status='off')
        roster(employee, days[4:], outlet=elsewhere)
        roster(employee, [date(2025, 2, 15)], outlet=outlet)

        result = engine.calculate(sales.pk)

        assert result['total_effective_shifts'] == 2

    def test_other_companies_shifts_on_the_same_outlet_are_not_counted(
            self, engine, sales, mimix, aa_alive, outlet, make_employee):
        own = make_employee(mimix, outlet=outlet)
        foreign = make_employee(aa_alive)
        roster(own, period_days(3), outlet=outlet)
        roster(foreign, period_days(5), outlet=outlet)

        result = engine.calculate(sales.pk)

        assert result['total_effective_shifts'] == 3
        assert [p['employee_id'] for p in result['payouts']] == [own.pk]

    def test_recalculating_replaces_the_payouts(self, engine, sales, mimix, outlet, make_employee):
        roster(make_employee(mimix, outlet=outlet), period_days(4), outlet=outlet)
        engine.calculate(sales.pk)
        engine.calculate(sales.pk)
        assert sales.payouts.count() == 1

    def test_no_shifts_means_no_payouts(self, engine, sales):
        result = engine.calculate(sales.pk)
        assert result['payouts'] == []
        assert result['per_shift_value'] == Decimal('0')


class TestLifecycle:

    def test_finalized_rows_are_frozen_until_reverted(self, engine, sales, mimix, outlet, make_employee):
        roster(make_employee(mimix, outlet=outlet), period_days(2), outlet=outlet)
        engine.calculate(sales.pk)
        engine.finalize(sales.pk)

        with pytest.raises(LifecycleError):
            engine.calculate(sales.pk)
        with pytest.raises(LifecycleError):
            engine.save_sales({'outlet_id': outlet.pk, 'period_month': 2, 'period_year': 2025, 'total_sales': 1})

        engine.revert(sales.pk)
        engine.calculate(sales.pk)

    def test_finalize_needs_payouts(self, engine, sales):
        with pytest.raises(PreconditionFailed):
            engine.finalize(sales.pk)

    def test_outlet_or_department_but_not_both(self, engine, outlet, mimix):
        from hr_payroll.models import Department
        department = Department.objects.create(company=mimix, name='Kitchen')
        with pytest.raises(ValidationFailed):
            engine.save_sales({
                'outlet_id': outlet.pk, 'department_id': department.pk,
                'period_month': 2, 'period_year': 2025, 'total_sales': 100,
            })

    def test_saving_again_updates_the_period(self, engine, sales, outlet):
        updated, created = engine.save_sales({
            'outlet_id': outlet.pk, 'period_month': 2, 'period_year': 2025,
            'total_sales': '50000', 'commission_rate': '5',
        })
        assert created is False
        assert updated.pk == sales.pk
        assert updated.commission_pool == Decimal('2500.00')


def test_sales_endpoint_returns_created_then_ok(admin_client, outlet):
    body = {'outlet_id': outlet.pk, 'period_month': 3, 'period_year': 2025, 'total_sales': 1000}
    first = admin_client.post('/api/commission/sales/', body, format='json')
    second = admin_client.post('/api/commission/sales/', body, format='json')
    assert first.status_code == 201
    assert second.status_code == 200
    assert first.json()['commission_pool'] == 60.0

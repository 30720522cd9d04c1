"""
Final pay for a resigning employee.

Salary for the last month is prorated on weekdays (Mon-Fri) worked, never on
calendar days. Unused paid leave is encashed at basic / working days per
month, approved claims not yet paid are added, and a short notice period is
bought out by the employee.
"""
import json
import logging
from decimal import Decimal

from django.core.serializers.json import DjangoJSONEncoder

from hr_payroll.models import LeaveBalance
from hr_payroll.utils import count_weekdays, local_now, money, month_bounds
from .models import Claim, PayrollItem
from .statutory import statutory_for_employee

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def weekdays_in_month(year, month):
    return count_weekdays(*month_bounds(year, month))


def weekdays_up_to(day):
    return count_weekdays(day.replace(day=1), day)


def prorate_salary(basic_salary, last_working_day):
    worked = weekdays_up_to(last_working_day)
    in_month = weekdays_in_month(last_working_day.year, last_working_day.month)
    amount = money(Decimal(basic_salary) * worked / in_month) if in_month else ZERO
    return amount, worked, in_month


def required_notice_days(service_months):
    """Employment Act 1955 s.12(2): 4 weeks under 2 years, 6 weeks under 5 years, else 8 weeks."""
    if service_months < 24:
        return 28
    if service_months < 60:
        return 42
    return 56


def already_paid(employee, year, month):
    return PayrollItem.objects.filter(
        employee=employee,
        payroll_run__year=year,
        payroll_run__month=month,
        payroll_run__status='finalized',
    ).exists()


def unpaid_claims(employee):
    return Claim.objects.filter(
        employee=employee, status='approved', linked_payroll_item__isnull=True,
    ).order_by('claim_date')


def leave_encashment(employee, year, daily_rate, rate):
    total_days = Decimal('0')
    breakdown = []
    balances = LeaveBalance.objects.select_related('leave_type').filter(
        employee=employee, year=year, leave_type__is_paid=True,
    )
    for balance in balances:
        remaining = balance.remaining_days
        if remaining <= 0:
            continue
        total_days += remaining
        breakdown.append({
            'type': balance.leave_type.code,
            'name': balance.leave_type.name,
            'entitled': balance.entitled_days,
            'used': balance.used_days,
            'carried_forward': balance.carried_forward,
            'remaining': remaining,
        })
    return total_days, money(total_days * daily_rate * rate), breakdown


def calculate_final_settlement(resignation, waive_notice=None):
    employee = resignation.employee
    company = resignation.company
    company_settings = company.get_settings()
    lwd = resignation.last_working_day
    basic = employee.default_basic_salary or ZERO
    daily_rate = basic / company_settings.settlement_working_days_per_month

    # 1. prorated salary
    paid = already_paid(employee, lwd.year, lwd.month)
    prorated, worked, in_month = prorate_salary(basic, lwd)
    if paid:
        prorated, worked = ZERO, 0

    # 2. leave encashment
    encash_days, encash_amount, leave_breakdown = leave_encashment(
        employee, lwd.year, daily_rate, company_settings.settlement_leave_encashment_rate
    )

    # 3. pending claims
    claims = list(unpaid_claims(employee))
    claims_amount = money(sum((c.amount for c in claims), ZERO))

    # 4. prorated bonus
    annual_bonus = employee.default_bonus or ZERO
    bonus_months = 0
    prorated_bonus = ZERO
    if company_settings.settlement_include_prorated_bonus and annual_bonus > 0:
        bonus_months = lwd.month
        prorated_bonus = money(annual_bonus / 12 * bonus_months)

    # 5. notice buy-out
    required = resignation.required_notice_days or required_notice_days(
        employee.service_months(resignation.notice_date)
    )
    actual = (lwd - resignation.notice_date).days
    shortfall = max(0, required - actual)
    waived = resignation.notice_waived if waive_notice is None else waive_notice
    buyout_amount = ZERO
    buyout_type = None
    if shortfall > 0 and not waived:
        buyout_amount = money(daily_rate * shortfall)
        buyout_type = 'employee_pays'

    # 6. statutory on salary and bonus
    statutory = {'epf_employee': ZERO, 'socso_employee': ZERO, 'eis_employee': ZERO, 'pcb': ZERO, 'total': ZERO}
    if prorated > 0 or prorated_bonus > 0:
        result = statutory_for_employee(employee, prorated + prorated_bonus, on=lwd)
        statutory = {
            'epf_employee': result['epf']['employee'],
            'socso_employee': result['socso']['employee'],
            'eis_employee': result['eis']['employee'],
            'pcb': result['pcb'],
            'total': result['total_employee_deductions'],
        }

    gross = money(prorated + encash_amount + claims_amount + prorated_bonus)
    deductions = statutory['total'] + buyout_amount
    net = money(gross - deductions)
    rounded_daily = money(daily_rate)

    breakdown = {
        'prorated_salary': {
            'working_days_worked': worked,
            'working_days_in_month': in_month,
            'daily_rate': rounded_daily,
            'amount': prorated,
            'already_paid': paid,
            'calculation_method': 'working_days',
        },
        'leave_encashment': {
            'total_days': encash_days,
            'encashment_rate': company_settings.settlement_leave_encashment_rate,
            'daily_rate': rounded_daily,
            'breakdown': leave_breakdown,
            'amount': encash_amount,
        },
        'pending_claims': {
            'count': len(claims),
            'claims': [
                {'id': c.pk, 'claim_date': c.claim_date, 'category': c.category,
                 'description': c.description, 'amount': c.amount}
                for c in claims
            ],
            'amount': claims_amount,
        },
        'prorated_bonus': {
            'annual_bonus': annual_bonus,
            'months_worked': bonus_months,
            'enabled': company_settings.settlement_include_prorated_bonus,
            'amount': prorated_bonus,
        },
        'notice_buyout': {
            'required_days': required,
            'actual_days': actual,
            'shortfall_days': shortfall,
            'waived': bool(waived),
            'type': buyout_type,
            'daily_rate': rounded_daily,
            'amount': buyout_amount,
        },
        'statutory_deductions': statutory,
        'totals': {'gross': gross, 'deductions': money(deductions), 'net': net},
    }
    return {
        'resignation_id': resignation.pk,
        'employee': {
            'id': employee.pk,
            'employee_id': employee.employee_id,
            'name': employee.name,
            'company': company.name,
        },
        'dates': {
            'notice_date': resignation.notice_date,
            'last_working_day': lwd,
            'join_date': employee.join_date,
        },
        'basic_salary': basic,
        'final_amount': net,
        'breakdown': breakdown,
        'calculated_at': local_now().isoformat(),
    }


def save_final_settlement(resignation, settlement):
    """Persist the breakdown as JSON along with the net and the encashment figures."""
    breakdown = settlement['breakdown']
    resignation.settlement_breakdown = json.loads(json.dumps(breakdown, cls=DjangoJSONEncoder))
    resignation.final_salary_amount = settlement['final_amount']
    resignation.leave_encashment_days = breakdown['leave_encashment']['total_days']
    resignation.leave_encashment_amount = breakdown['leave_encashment']['amount']
    resignation.actual_notice_days = breakdown['notice_buyout']['actual_days']
    resignation.save(update_fields=[
        'settlement_breakdown', 'final_salary_amount', 'leave_encashment_days',
        'leave_encashment_amount', 'actual_notice_days', 'updated_at',
    ])
    logger.info(f"Final settlement saved for resignation {resignation.pk}: net {settlement['final_amount']}")
    return resignation

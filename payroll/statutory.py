"""
Malaysian statutory deductions: EPF, SOCSO, EIS and PCB (monthly tax).

All amounts are Decimal and rounded to sen. PCB uses the computerised
method for a standalone month, projecting the current gross over the year.
"""
import math
from decimal import Decimal, ROUND_FLOOR

from hr_payroll.utils import money

ZERO = Decimal('0')

EPF_WAGE_CEILING = Decimal('20000')
SOCSO_EIS_CEILING = Decimal('5000')
SOCSO_MAX = (Decimal('24.75'), Decimal('69.05'))
EIS_RATE = Decimal('0.002')

# (upper bound of wage band, employee, employer)
SOCSO_TABLE = [(Decimal(ceiling), Decimal(ee), Decimal(er)) for ceiling, ee, er in [
    ('30', '0.10', '0.40'),
    ('50', '0.20', '0.70'),
    ('70', '0.30', '1.00'),
    ('100', '0.40', '1.40'),
    ('140', '0.60', '2.00'),
    ('200', '0.85', '2.70'),
    ('300', '1.25', '4.00'),
    ('400', '1.75', '5.50'),
    ('500', '2.25', '7.00'),
    ('600', '2.75', '8.50'),
    ('700', '3.25', '10.00'),
    ('800', '3.75', '11.50'),
    ('900', '4.25', '13.00'),
    ('1000', '4.75', '14.50'),
    ('1100', '5.25', '16.00'),
    ('1200', '5.75', '17.50'),
    ('1300', '6.25', '19.00'),
    ('1400', '6.75', '20.50'),
    ('1500', '7.25', '22.00'),
    ('1600', '7.75', '23.50'),
    ('1700', '8.25', '25.00'),
    ('1800', '8.75', '26.50'),
    ('1900', '9.25', '28.00'),
    ('2000', '9.75', '29.50'),
    ('2100', '10.25', '31.00'),
    ('2200', '10.75', '32.50'),
    ('2300', '11.25', '34.00'),
    ('2400', '11.75', '35.50'),
    ('2500', '12.25', '37.00'),
    ('2600', '12.75', '38.50'),
    ('2700', '13.25', '40.00'),
    ('2800', '13.75', '41.50'),
    ('2900', '14.25', '43.00'),
    ('3000', '14.75', '44.50'),
    ('3100', '15.25', '46.00'),
    ('3200', '15.75', '47.50'),
    ('3300', '16.25', '49.00'),
    ('3400', '16.75', '50.50'),
    ('3500', '17.25', '52.00'),
    ('3600', '17.75', '53.50'),
    ('3700', '18.25', '55.00'),
    ('3800', '18.75', '56.50'),
    ('3900', '19.25', '58.00'),
    ('4000', '19.75', '59.50'),
    ('5000', '24.75', '69.05'),
]]

SELF_RELIEF = Decimal('9000')
SOCSO_RELIEF = Decimal('350')
EIS_RELIEF = Decimal('350')
SPOUSE_RELIEF = Decimal('4000')
CHILD_RELIEF = Decimal('2000')
EPF_RELIEF_CAP = Decimal('4000')
PCB_MINIMUM = Decimal('10')

# (lower bound M, rate R, B for category 1/3, B for category 2)
TAX_BRACKETS = [(Decimal(m), Decimal(r), Decimal(b1), Decimal(b2)) for m, r, b1, b2 in [
    ('0', '0', '0', '0'),
    ('5000', '0.01', '-400', '-800'),
    ('20000', '0.03', '-250', '-650'),
    ('35000', '0.06', '200', '-200'),
    ('50000', '0.11', '1100', '700'),
    ('70000', '0.19', '3300', '2900'),
    ('100000', '0.25', '9000', '8600'),
    ('400000', '0.26', '84000', '83600'),
    ('600000', '0.28', '136000', '135600'),
    ('2000000', '0.30', '528000', '527600'),
]]


def calculate_epf(gross, age=30):
    gross = Decimal(gross)
    if age > 60:
        employee_rate, employer_rate = ZERO, Decimal('0.04')
    else:
        employee_rate = Decimal('0.11')
        employer_rate = Decimal('0.13') if gross <= 5000 else Decimal('0.12')
    wage = min(gross, EPF_WAGE_CEILING)
    return {'employee': money(wage * employee_rate), 'employer': money(wage * employer_rate)}


def calculate_socso(gross, age=30):
    gross = Decimal(gross)
    if gross <= 0:
        return {'employee': ZERO, 'employer': ZERO}
    if gross > SOCSO_EIS_CEILING:
        employee, employer = SOCSO_MAX
    else:
        employee, employer = next(
            ((ee, er) for ceiling, ee, er in SOCSO_TABLE if gross <= ceiling), SOCSO_MAX
        )
    if age >= 60:
        employee = ZERO
    return {'employee': employee, 'employer': employer}


def calculate_eis(gross, age=30):
    if age >= 57:
        return {'employee': ZERO, 'employer': ZERO}
    amount = money(min(Decimal(gross), SOCSO_EIS_CEILING) * EIS_RATE)
    return {'employee': amount, 'employer': amount}


def _bracket_for(chargeable):
    chosen = TAX_BRACKETS[0]
    for bracket in TAX_BRACKETS:
        # bands start one ringgit above the previous ceiling
        if chargeable > bracket[0] or bracket[0] == 0:
            chosen = bracket
    return chosen


def calculate_pcb(gross, epf_employee, marital_status='single', spouse_working=False,
                  children_count=0, month=1):
    """
    Monthly tax deduction: [(P - M) x R + B] / n.

    P is the projected chargeable income after reliefs, n the months left in
    the year. The result is floored to sen, rounded up to the next 5 sen and
    waived entirely below RM10.
    """
    remaining = 13 - month
    projected = Decimal(gross) * remaining
    epf_relief = min(Decimal(epf_employee) * remaining, EPF_RELIEF_CAP)
    category_2 = marital_status == 'married' and not spouse_working

    reliefs = SELF_RELIEF + SOCSO_RELIEF + EIS_RELIEF + epf_relief
    reliefs += CHILD_RELIEF * int(children_count or 0)
    if category_2:
        reliefs += SPOUSE_RELIEF

    chargeable = max(ZERO, projected - reliefs)
    lower, rate, b1, b2 = _bracket_for(chargeable)
    annual_tax = max(ZERO, (chargeable - lower) * rate + (b2 if category_2 else b1))
    monthly = max(ZERO, annual_tax / remaining)

    monthly = monthly.quantize(Decimal('0.01'), rounding=ROUND_FLOOR)
    monthly = Decimal(math.ceil(monthly * 20)) / 20
    if monthly < PCB_MINIMUM:
        return ZERO
    return money(monthly)


def calculate_all_statutory(gross, marital_status='single', spouse_working=False,
                            children_count=0, age=30):
    gross = money(gross)
    epf = calculate_epf(gross, age)
    socso = calculate_socso(gross, age)
    eis = calculate_eis(gross, age)
    pcb = calculate_pcb(gross, epf['employee'], marital_status, spouse_working, children_count)

    total_employee = epf['employee'] + socso['employee'] + eis['employee'] + pcb
    return {
        'epf': epf,
        'socso': socso,
        'eis': eis,
        'pcb': pcb,
        'total_employee_deductions': money(total_employee),
        'total_employer_contributions': money(epf['employer'] + socso['employer'] + eis['employer']),
        'gross_salary': gross,
        'net_salary': money(gross - total_employee),
    }


def statutory_for_employee(employee, gross, on=None):
    """Run all deductions using the employee's own tax profile and IC-derived age."""
    return calculate_all_statutory(
        gross,
        marital_status=employee.marital_status or 'single',
        spouse_working=bool(employee.spouse_working),
        children_count=employee.children_count or 0,
        age=employee.get_age(on),
    )

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal

from django.db import transaction
from django.db.models import Q

from core.exceptions import LifecycleError, PreconditionFailed, ValidationFailed
from core.models import Outlet
from hr_payroll.models import Department, Employee, Schedule
from hr_payroll.utils import local_now, money
from .models import CommissionPayout, OutletSales

logger = logging.getLogger(__name__)

FOUR_PLACES = Decimal('0.0001')


def commission_period(year, month):
    """Schedule dates covered by payout month ``month``: 15th of the previous month to the 14th."""
    start_year, start_month = (year - 1, 12) if month == 1 else (year, month - 1)
    return date(start_year, start_month, 15), date(year, month, 14)


def count_shifts(sales, start, end):
    """
    Per-employee normal and public-holiday shift counts for the sales row's
    outlet or department. Off-day templates and non-scheduled statuses are
    not counted.
    """
    schedules = Schedule.objects.filter(
        company_id=sales.company_id,
        schedule_date__range=(start, end),
    ).filter(
        Q(status='scheduled') | Q(status__isnull=True)
    ).exclude(
        shift_template__is_off=True
    )
    if sales.outlet_id:
        schedules = schedules.filter(outlet_id=sales.outlet_id)
    else:
        schedules = schedules.filter(department_id=sales.department_id)

    counts = defaultdict(lambda: {'normal_shifts': 0, 'ph_shifts': 0})
    for employee_id, is_ph in schedules.values_list('employee_id', 'is_public_holiday'):
        counts[employee_id]['ph_shifts' if is_ph else 'normal_shifts'] += 1

    for row in counts.values():
        row['effective_shifts'] = row['normal_shifts'] + 2 * row['ph_shifts']
    return dict(counts)


def sales_snapshot(sales):
    return {
        'id': sales.pk,
        'outlet_id': sales.outlet_id,
        'outlet_name': sales.outlet.name if sales.outlet_id else None,
        'department_id': sales.department_id,
        'department_name': sales.department.name if sales.department_id else None,
        'supervisor_name': (
            sales.outlet.supervisor.name if sales.outlet_id and sales.outlet.supervisor_id else None
        ),
        'period_month': sales.period_month,
        'period_year': sales.period_year,
        'total_sales': sales.total_sales,
        'commission_rate': sales.commission_rate,
        'commission_pool': sales.commission_pool,
        'total_effective_shifts': sales.total_effective_shifts,
        'per_shift_value': sales.per_shift_value,
        'status': sales.status,
        'finalized_at': sales.finalized_at,
        'notes': sales.notes,
    }


def payout_snapshot(payout):
    return {
        'id': payout.pk,
        'outlet_sales_id': payout.outlet_sales_id,
        'employee_id': payout.employee_id,
        'employee_name': payout.employee.name,
        'employee_code': payout.employee.employee_id,
        'normal_shifts': payout.normal_shifts,
        'ph_shifts': payout.ph_shifts,
        'effective_shifts': payout.effective_shifts,
        'commission_amount': payout.commission_amount,
    }


class CommissionEngine:

    def __init__(self, tenant):
        self.tenant = tenant

    def _sales(self, sales_id, lock=False):
        qs = OutletSales.objects.select_related('outlet', 'outlet__supervisor', 'department')
        if lock:
            qs = qs.select_for_update(of=('self',))
        return self.tenant.get(qs, 'Outlet sales record not found', pk=sales_id)

    def list(self, outlet_id=None, department_id=None, year=None, month=None, status=None):
        qs = self.tenant.scope(
            OutletSales.objects.select_related('outlet', 'outlet__supervisor', 'department')
        )
        if outlet_id:
            qs = qs.filter(outlet_id=outlet_id)
        if department_id:
            qs = qs.filter(department_id=department_id)
        if year:
            qs = qs.filter(period_year=year)
        if month:
            qs = qs.filter(period_month=month)
        if status:
            qs = qs.filter(status=status)
        return [sales_snapshot(s) for s in qs]

    def detail(self, sales_id):
        sales = self._sales(sales_id)
        data = sales_snapshot(sales)
        data['payouts'] = [
            payout_snapshot(p)
            for p in sales.payouts.select_related('employee').order_by('employee__name')
        ]
        return data

    def save_sales(self, data):
        """Create or update the sales row for (outlet or department, month, year)."""
        outlet_id = data.get('outlet_id')
        department_id = data.get('department_id')
        month, year = data.get('period_month'), data.get('period_year')
        if bool(outlet_id) == bool(department_id):
            raise ValidationFailed('Exactly one of outlet_id or department_id is required')
        if not month or not year or data.get('total_sales') is None:
            raise ValidationFailed('Outlet ID, period, and total sales are required')
        if not 1 <= int(month) <= 12:
            raise ValidationFailed('period_month must be between 1 and 12')

        lookup = {'period_month': int(month), 'period_year': int(year)}
        if outlet_id:
            lookup['outlet'] = self.tenant.get(Outlet.objects.all(), 'Outlet not found', pk=outlet_id)
        else:
            lookup['department'] = self.tenant.get(Department.objects.all(), 'Department not found', pk=department_id)

        total_sales = money(data['total_sales'])
        rate = money(data.get('commission_rate') or Decimal('6.00'))
        with transaction.atomic():
            existing = OutletSales.objects.select_for_update().filter(**lookup).first()
            if existing is not None and existing.status == 'finalized':
                raise LifecycleError('Cannot update finalized record. Revert first.')
            sales, created = OutletSales.objects.update_or_create(
                **lookup,
                defaults={
                    'company': self.tenant.company,
                    'total_sales': total_sales,
                    'commission_rate': rate,
                    'commission_pool': money(total_sales * rate / 100),
                    'notes': data.get('notes') or '',
                },
            )
            if created:
                sales.created_by = self.tenant.user
                sales.save(update_fields=['created_by'])
        return self._sales(sales.pk), created

    def calculate(self, sales_id):
        with transaction.atomic():
            sales = self._sales(sales_id, lock=True)
            if sales.status == 'finalized':
                raise LifecycleError('Cannot recalculate finalized record. Revert first.')

            start, end = commission_period(sales.period_year, sales.period_month)
            shifts = count_shifts(sales, start, end)
            total_effective = sum(row['effective_shifts'] for row in shifts.values())
            per_shift = sales.commission_pool / total_effective if total_effective else Decimal('0')

            sales.total_effective_shifts = total_effective
            sales.per_shift_value = per_shift.quantize(FOUR_PLACES)
            sales.save(update_fields=['total_effective_shifts', 'per_shift_value', 'updated_at'])

            sales.payouts.all().delete()
            CommissionPayout.objects.bulk_create([
                CommissionPayout(
                    outlet_sales=sales,
                    employee_id=employee_id,
                    normal_shifts=row['normal_shifts'],
                    ph_shifts=row['ph_shifts'],
                    effective_shifts=row['effective_shifts'],
                    commission_amount=money(per_shift * row['effective_shifts']),
                )
                for employee_id, row in shifts.items()
                if row['effective_shifts'] > 0
            ])

        logger.info(
            f"Commission calculated for sales {sales.pk}: {total_effective} effective shifts, "
            f"{len(shifts)} employees"
        )
        payouts = sales.payouts.select_related('employee').order_by('employee__name')
        payout_month = f'{sales.period_year}-{sales.period_month:02d}'
        return {
            'outlet_sales_id': sales.pk,
            'period': payout_month,
            'period_label': f'{start.isoformat()} to {end.isoformat()}',
            'period_start': start.isoformat(),
            'period_end': end.isoformat(),
            'payout_month': payout_month,
            'total_sales': sales.total_sales,
            'commission_rate': sales.commission_rate,
            'commission_pool': sales.commission_pool,
            'total_effective_shifts': total_effective,
            'per_shift_value': sales.per_shift_value,
            'payouts': [payout_snapshot(p) for p in payouts],
        }

    def finalize(self, sales_id):
        with transaction.atomic():
            sales = self._sales(sales_id, lock=True)
            if sales.status == 'finalized':
                raise LifecycleError('Already finalized')
            if not sales.payouts.exists():
                raise PreconditionFailed('No commission payouts calculated. Calculate commissions first.')
            sales.status = 'finalized'
            sales.finalized_at = local_now()
            sales.finalized_by = self.tenant.user
            sales.save()
        logger.info(f"Commission sales {sales.pk} finalized")
        return {'message': 'Commission period finalized successfully'}

    def revert(self, sales_id):
        with transaction.atomic():
            sales = self._sales(sales_id, lock=True)
            if sales.status != 'finalized':
                raise LifecycleError('Only finalized records can be reverted')
            sales.status = 'draft'
            sales.finalized_at = None
            sales.finalized_by = None
            sales.save()
        return {'message': 'Commission period reverted to draft'}

    def delete(self, sales_id):
        with transaction.atomic():
            sales = self._sales(sales_id, lock=True)
            if sales.status == 'finalized':
                raise LifecycleError('Cannot delete finalized record. Revert first.')
            sales.delete()
        return {'message': 'Outlet sales record deleted successfully'}

    def employee_payouts(self, employee_id, year=None):
        employee = self.tenant.get(Employee.objects.all(), 'Employee not found', pk=employee_id)
        payouts = CommissionPayout.objects.select_related(
            'employee', 'outlet_sales', 'outlet_sales__outlet', 'outlet_sales__department'
        ).filter(employee=employee, outlet_sales__company_id=self.tenant.company_id)
        if year:
            payouts = payouts.filter(outlet_sales__period_year=year)
        payouts = payouts.order_by('-outlet_sales__period_year', '-outlet_sales__period_month')

        rows = []
        for payout in payouts:
            sales = payout.outlet_sales
            row = payout_snapshot(payout)
            row.update({
                'period_month': sales.period_month,
                'period_year': sales.period_year,
                'total_sales': sales.total_sales,
                'commission_rate': sales.commission_rate,
                'commission_pool': sales.commission_pool,
                'per_shift_value': sales.per_shift_value,
                'sales_status': sales.status,
                'outlet_name': sales.outlet.name if sales.outlet_id else None,
                'department_name': sales.department.name if sales.department_id else None,
            })
            rows.append(row)
        return rows

    def targets(self):
        """Outlets, or departments for department-grouped companies, eligible for sales entry."""
        company = self.tenant.company
        if company.is_outlet_grouped:
            outlets = self.tenant.scope(Outlet.objects.select_related('supervisor')).filter(is_active=True)
            return [
                {
                    'id': o.pk,
                    'type': 'outlet',
                    'name': o.name,
                    'code': o.code,
                    'supervisor_id': o.supervisor_id,
                    'supervisor_name': o.supervisor.name if o.supervisor_id else None,
                    'supervisor_code': o.supervisor.employee_id if o.supervisor_id else None,
                }
                for o in outlets.order_by('name')
            ]
        departments = self.tenant.scope(Department.objects.all()).filter(is_active=True)
        return [
            {'id': d.pk, 'type': 'department', 'name': d.name, 'code': d.code}
            for d in departments.order_by('name')
        ]

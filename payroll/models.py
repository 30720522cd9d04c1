# ==================== payroll/models.py ====================
"""
Commission, claims, salary advances and the monthly payroll run.
Imports Employee from hr_payroll app
"""

from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from core.models import Company, Outlet
from hr_payroll.models import Department, Employee


# ==================== PAYROLL RUN ====================

class PayrollRun(models.Model):
    """Monthly payroll for a company"""
    STATUS_CHOICES = (
        ('draft', _('Draft')),
        ('finalized', _('Finalized')),
    )

    company = models.ForeignKey(Company, on_delete=models.CASCADE, verbose_name=_("Company"))
    year = models.PositiveIntegerField(_("Year"))
    month = models.PositiveIntegerField(_("Month"))
    status = models.CharField(_("Status"), max_length=20, choices=STATUS_CHOICES, default='draft')
    finalized_at = models.DateTimeField(_("Finalized At"), null=True, blank=True)
    finalized_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        verbose_name=_("Finalized By")
    )
    remarks = models.TextField(_("Remarks"), blank=True, null=True)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    def __str__(self):
        return f"{self.company.name} - {self.year}-{self.month:02d}"

    class Meta:
        verbose_name = _("Payroll Run")
        verbose_name_plural = _("Payroll Runs")
        unique_together = ('company', 'year', 'month')
        ordering = ['-year', '-month']


class PayrollItem(models.Model):
    """One employee's line in a payroll run"""
    payroll_run = models.ForeignKey(
        PayrollRun,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_("Payroll Run")
    )
    employee = models.ForeignKey(
        Employee,
        on_delete=models.CASCADE,
        related_name='payroll_items',
        verbose_name=_("Employee")
    )
    basic_salary = models.DecimalField(_("Basic Salary"), max_digits=10, decimal_places=2, default=0)
    commission = models.DecimalField(_("Commission"), max_digits=10, decimal_places=2, default=0)
    ot_amount = models.DecimalField(_("Overtime Amount"), max_digits=10, decimal_places=2, default=0)
    claims_amount = models.DecimalField(_("Claims"), max_digits=10, decimal_places=2, default=0)
    bonus = models.DecimalField(_("Bonus"), max_digits=10, decimal_places=2, default=0)
    advance_deduction = models.DecimalField(_("Advance Deduction"), max_digits=10, decimal_places=2, default=0)
    epf_employee = models.DecimalField(_("EPF (Employee)"), max_digits=10, decimal_places=2, default=0)
    socso_employee = models.DecimalField(_("SOCSO (Employee)"), max_digits=10, decimal_places=2, default=0)
    eis_employee = models.DecimalField(_("EIS (Employee)"), max_digits=10, decimal_places=2, default=0)
    pcb = models.DecimalField(_("PCB"), max_digits=10, decimal_places=2, default=0)
    gross_salary = models.DecimalField(_("Gross Salary"), max_digits=12, decimal_places=2, default=0)
    total_deductions = models.DecimalField(_("Total Deductions"), max_digits=12, decimal_places=2, default=0)
    net_salary = models.DecimalField(_("Net Salary"), max_digits=12, decimal_places=2, default=0)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    def __str__(self):
        return f"{self.employee.name} - {self.payroll_run}"

    class Meta:
        verbose_name = _("Payroll Item")
        verbose_name_plural = _("Payroll Items")
        unique_together = ('payroll_run', 'employee')
        ordering = ['-payroll_run__year', '-payroll_run__month', 'employee__name']


# ==================== COMMISSION ====================

class OutletSales(models.Model):
    """
    Monthly sales figure for an outlet or a department.

    Payout month M covers schedule dates from the 15th of M-1 up to the
    14th of M inclusive.
    """
    STATUS_CHOICES = (
        ('draft', _('Draft')),
        ('finalized', _('Finalized')),
    )

    company = models.ForeignKey(Company, on_delete=models.CASCADE, verbose_name=_("Company"))
    outlet = models.ForeignKey(
        Outlet, on_delete=models.CASCADE, null=True, blank=True,
        related_name='sales', verbose_name=_("Outlet")
    )
    department = models.ForeignKey(
        Department, on_delete=models.CASCADE, null=True, blank=True,
        related_name='sales', verbose_name=_("Department")
    )
    period_month = models.PositiveIntegerField(_("Payout Month"))
    period_year = models.PositiveIntegerField(_("Payout Year"))
    total_sales = models.DecimalField(_("Total Sales"), max_digits=14, decimal_places=2, default=0)
    commission_rate = models.DecimalField(_("Commission Rate (%)"), max_digits=5, decimal_places=2, default=Decimal('6.00'))
    commission_pool = models.DecimalField(_("Commission Pool"), max_digits=14, decimal_places=2, default=0)
    total_effective_shifts = models.PositiveIntegerField(_("Total Effective Shifts"), default=0)
    per_shift_value = models.DecimalField(_("Per Shift Value"), max_digits=14, decimal_places=4, default=0)
    status = models.CharField(_("Status"), max_length=20, choices=STATUS_CHOICES, default='draft')
    finalized_at = models.DateTimeField(_("Finalized At"), null=True, blank=True)
    finalized_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Finalized By"))
    notes = models.TextField(_("Notes"), blank=True)
    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='+', verbose_name=_("Created By")
    )
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    def __str__(self):
        target = self.outlet.name if self.outlet_id else (self.department.name if self.department_id else '-')
        return f"{target} - {self.period_year}-{self.period_month:02d}"

    def clean(self):
        if bool(self.outlet_id) == bool(self.department_id):
            raise ValidationError(_("Sales must reference exactly one of outlet or department"))

    class Meta:
        verbose_name = _("Outlet Sales")
        verbose_name_plural = _("Outlet Sales")
        ordering = ['-period_year', '-period_month']
        constraints = [
            models.UniqueConstraint(
                fields=['outlet', 'period_month', 'period_year'],
                condition=Q(outlet__isnull=False),
                name='unique_outlet_sales_period',
            ),
            models.UniqueConstraint(
                fields=['department', 'period_month', 'period_year'],
                condition=Q(department__isnull=False),
                name='unique_department_sales_period',
            ),
        ]


class CommissionPayout(models.Model):
    outlet_sales = models.ForeignKey(
        OutletSales, on_delete=models.CASCADE, related_name='payouts', verbose_name=_("Sales Period")
    )
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='commission_payouts', verbose_name=_("Employee"))
    normal_shifts = models.PositiveIntegerField(_("Normal Shifts"), default=0)
    ph_shifts = models.PositiveIntegerField(_("Public Holiday Shifts"), default=0)
    effective_shifts = models.PositiveIntegerField(_("Effective Shifts"), default=0)
    commission_amount = models.DecimalField(_("Commission Amount"), max_digits=12, decimal_places=2, default=0)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)

    def __str__(self):
        return f"{self.employee.name} - {self.commission_amount}"

    class Meta:
        verbose_name = _("Commission Payout")
        verbose_name_plural = _("Commission Payouts")
        unique_together = ('outlet_sales', 'employee')
        ordering = ['-commission_amount']


# ==================== CLAIMS ====================

class Claim(models.Model):
    """Expense claim with AI-assisted receipt verification"""
    CATEGORY_CHOICES = (
        ('travel', _('Travel/Transport')),
        ('parking', _('Parking')),
        ('toll', _('Toll')),
        ('meal', _('Meal/Entertainment')),
        ('accommodation', _('Accommodation')),
        ('medical', _('Medical')),
        ('phone', _('Phone/Internet')),
        ('office_supplies', _('Office Supplies')),
        ('fuel', _('Fuel/Petrol')),
        ('other', _('Other')),
    )
    STATUS_CHOICES = (
        ('pending', _('Pending')),
        ('approved', _('Approved')),
        ('rejected', _('Rejected')),
        ('paid', _('Paid')),
    )
    CONFIDENCE_CHOICES = (
        ('high', _('High')),
        ('low', _('Low')),
        ('unreadable', _('Unreadable')),
    )

    company = models.ForeignKey(Company, on_delete=models.CASCADE, verbose_name=_("Company"))
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='claims', verbose_name=_("Employee"))
    claim_date = models.DateField(_("Claim Date"))
    category = models.CharField(_("Category"), max_length=30, choices=CATEGORY_CHOICES)
    description = models.TextField(_("Description"), blank=True)
    amount = models.DecimalField(_("Amount"), max_digits=10, decimal_places=2)
    original_amount = models.DecimalField(_("Original Amount"), max_digits=10, decimal_places=2, null=True, blank=True)
    amount_capped = models.BooleanField(_("Amount Capped"), default=False)

    receipt_url = models.TextField(_("Receipt"), blank=True)
    receipt_hash = models.CharField(_("Receipt Hash"), max_length=64, blank=True, db_index=True)
    ai_extracted_amount = models.DecimalField(_("AI Amount"), max_digits=10, decimal_places=2, null=True, blank=True)
    ai_extracted_merchant = models.CharField(_("AI Merchant"), max_length=200, blank=True)
    ai_extracted_date = models.DateField(_("AI Date"), null=True, blank=True)
    ai_confidence = models.CharField(_("AI Confidence"), max_length=20, choices=CONFIDENCE_CHOICES, blank=True)
    ai_verification = models.JSONField(_("AI Verification"), null=True, blank=True)
    auto_approved = models.BooleanField(_("Auto Approved"), default=False)

    status = models.CharField(_("Status"), max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Approved By"))
    approved_at = models.DateTimeField(_("Approved At"), null=True, blank=True)
    rejection_reason = models.TextField(_("Rejection Reason"), blank=True)
    linked_payroll_item = models.ForeignKey(
        PayrollItem, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='claims', verbose_name=_("Payroll Item")
    )
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    def __str__(self):
        return f"{self.employee.name} - {self.get_category_display()} - {self.amount}"

    class Meta:
        verbose_name = _("Claim")
        verbose_name_plural = _("Claims")
        ordering = ['-claim_date', '-created_at']


# ==================== ADVANCE/LOAN ====================

class SalaryAdvance(models.Model):
    """
    Employee salary advance. amount == total_deducted + remaining_balance
    holds after every deduction.
    """
    STATUS_CHOICES = (
        ('pending', _('Pending')),
        ('active', _('Active')),
        ('completed', _('Completed')),
        ('cancelled', _('Cancelled')),
    )
    DEDUCTION_METHOD_CHOICES = (
        ('full', _('Full')),
        ('installment', _('Installment')),
    )

    company = models.ForeignKey(Company, on_delete=models.CASCADE, verbose_name=_("Company"))
    employee = models.ForeignKey(
        Employee,
        on_delete=models.CASCADE,
        related_name='salary_advances',
        verbose_name=_("Employee")
    )
    amount = models.DecimalField(_("Amount"), max_digits=10, decimal_places=2)
    advance_date = models.DateField(_("Advance Date"))
    reason = models.TextField(_("Reason"), blank=True)
    deduction_method = models.CharField(_("Deduction Method"), max_length=20, choices=DEDUCTION_METHOD_CHOICES, default='full')
    installment_amount = models.DecimalField(_("Installment Amount"), max_digits=10, decimal_places=2, null=True, blank=True)
    total_deducted = models.DecimalField(_("Total Deducted"), max_digits=10, decimal_places=2, default=Decimal('0.00'))
    remaining_balance = models.DecimalField(_("Remaining Balance"), max_digits=10, decimal_places=2, default=Decimal('0.00'))
    expected_deduction_month = models.PositiveIntegerField(_("Expected Deduction Month"), null=True, blank=True)
    expected_deduction_year = models.PositiveIntegerField(_("Expected Deduction Year"), null=True, blank=True)
    status = models.CharField(_("Status"), max_length=20, choices=STATUS_CHOICES, default='active')
    approved_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        verbose_name=_("Approved By")
    )
    remarks = models.TextField(_("Remarks"), blank=True)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    def __str__(self):
        return f"{self.employee.name} - {self.amount} - {self.get_status_display()}"

    class Meta:
        verbose_name = _("Salary Advance")
        verbose_name_plural = _("Salary Advances")
        ordering = ['-advance_date', '-created_at']


class SalaryAdvanceDeduction(models.Model):
    advance = models.ForeignKey(
        SalaryAdvance, on_delete=models.CASCADE, related_name='deductions', verbose_name=_("Advance")
    )
    amount = models.DecimalField(_("Amount"), max_digits=10, decimal_places=2)
    deduction_date = models.DateField(_("Deduction Date"))
    month = models.PositiveIntegerField(_("Month"), null=True, blank=True)
    year = models.PositiveIntegerField(_("Year"), null=True, blank=True)
    payroll_item = models.ForeignKey(
        PayrollItem, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='advance_deductions', verbose_name=_("Payroll Item")
    )
    remarks = models.TextField(_("Remarks"), blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Created By"))
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)

    def __str__(self):
        return f"{self.advance} - {self.amount}"

    class Meta:
        verbose_name = _("Advance Deduction")
        verbose_name_plural = _("Advance Deductions")
        ordering = ['-deduction_date', '-created_at']

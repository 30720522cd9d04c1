# ==================== payroll/admin.py ====================

from django.contrib import admin, messages
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline

from core.exceptions import HRMSError
from core.tenant import TenantContext
from .claims_intake import ClaimsService
from .commission_engine import CommissionEngine
from .models import (
    Claim, CommissionPayout, OutletSales, PayrollItem, PayrollRun, SalaryAdvance, SalaryAdvanceDeduction,
)


# ==================== BASE ADMIN ====================

class PayrollBaseAdmin(ModelAdmin):
    """Base admin for payroll models"""
    search_help_text = _("Search by employee name or code")
    list_per_page = 25
    empty_value_display = _("Not set")

    def run_service(self, request, queryset, call, done_message):
        done = 0
        for obj in queryset:
            tenant = TenantContext(company=obj.company, user=request.user, admin_role='admin')
            try:
                call(tenant, obj)
                done += 1
            except HRMSError as e:
                self.message_user(request, f'{obj}: {e.message}', messages.WARNING)
        self.message_user(request, done_message.format(count=done))


# ==================== PAYROLL RUN ====================

class PayrollItemInline(TabularInline):
    model = PayrollItem
    extra = 0
    fields = ('employee', 'basic_salary', 'commission', 'ot_amount', 'claims_amount', 'gross_salary', 'net_salary')
    readonly_fields = fields
    show_change_link = True


@admin.register(PayrollRun)
class PayrollRunAdmin(PayrollBaseAdmin):
    list_display = ('company', 'year', 'month', 'status', 'finalized_at')
    list_filter = ('company', 'status', 'year')
    ordering = ('-year', '-month')
    inlines = [PayrollItemInline]


@admin.register(PayrollItem)
class PayrollItemAdmin(PayrollBaseAdmin):
    list_display = ('employee', 'payroll_run', 'gross_salary', 'total_deductions', 'net_salary')
    list_filter = ('payroll_run__year', 'payroll_run__month')
    search_fields = ('employee__name', 'employee__employee_id')

    fieldsets = (
        (_("Earnings"), {
            'fields': ('payroll_run', 'employee', 'basic_salary', 'commission', 'ot_amount', 'claims_amount', 'bonus'),
            'classes': ('tab',)
        }),
        (_("Deductions"), {
            'fields': ('advance_deduction', 'epf_employee', 'socso_employee', 'eis_employee', 'pcb'),
            'classes': ('tab',)
        }),
        (_("Totals"), {
            'fields': ('gross_salary', 'total_deductions', 'net_salary'),
            'classes': ('tab',)
        }),
    )


# ==================== COMMISSION ====================

class CommissionPayoutInline(TabularInline):
    model = CommissionPayout
    extra = 0
    fields = ('employee', 'normal_shifts', 'ph_shifts', 'effective_shifts', 'commission_amount')
    readonly_fields = fields


@admin.register(OutletSales)
class OutletSalesAdmin(PayrollBaseAdmin):
    list_display = (
        'outlet', 'department', 'period_month', 'period_year', 'total_sales',
        'commission_rate', 'commission_pool', 'per_shift_value', 'status',
    )
    list_filter = ('company', 'status', 'period_year', 'period_month')
    readonly_fields = ('commission_pool', 'total_effective_shifts', 'per_shift_value', 'finalized_at', 'finalized_by')
    inlines = [CommissionPayoutInline]
    actions = ['calculate_commission']

    @admin.action(description=_("Calculate commission"))
    def calculate_commission(self, request, queryset):
        self.run_service(
            request, queryset,
            lambda tenant, obj: CommissionEngine(tenant).calculate(obj.pk),
            '{count} sales periods calculated.',
        )


# ==================== CLAIMS ====================

@admin.register(Claim)
class ClaimAdmin(PayrollBaseAdmin):
    list_display = (
        'employee', 'claim_date', 'category', 'amount', 'amount_capped',
        'ai_confidence', 'auto_approved', 'status', 'linked_payroll_item',
    )
    list_filter = ('company', 'status', 'category', 'ai_confidence', 'auto_approved')
    search_fields = ('employee__name', 'employee__employee_id', 'description', 'ai_extracted_merchant')
    date_hierarchy = 'claim_date'
    readonly_fields = (
        'receipt_hash', 'ai_extracted_amount', 'ai_extracted_merchant', 'ai_extracted_date',
        'ai_confidence', 'ai_verification', 'auto_approved', 'approved_by', 'approved_at',
    )
    actions = ['approve_claims']

    @admin.action(description=_("Approve selected claims"))
    def approve_claims(self, request, queryset):
        self.run_service(
            request, queryset,
            lambda tenant, obj: ClaimsService(tenant).approve(obj.pk),
            '{count} claims approved.',
        )


# ==================== ADVANCE ====================

class SalaryAdvanceDeductionInline(TabularInline):
    model = SalaryAdvanceDeduction
    extra = 0
    fields = ('amount', 'deduction_date', 'month', 'year', 'payroll_item', 'remarks')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(SalaryAdvance)
class SalaryAdvanceAdmin(PayrollBaseAdmin):
    list_display = (
        'employee', 'amount', 'advance_date', 'deduction_method',
        'total_deducted', 'remaining_balance', 'status',
    )
    list_filter = ('company', 'status', 'deduction_method')
    search_fields = ('employee__name', 'employee__employee_id', 'reason')
    ordering = ('-advance_date',)
    readonly_fields = ('total_deducted', 'remaining_balance')
    inlines = [SalaryAdvanceDeductionInline]

    fieldsets = (
        (_("Required Fields"), {
            'fields': ('company', 'employee', 'amount', 'advance_date'),
            'classes': ('tab',)
        }),
        (_("Deduction"), {
            'fields': (
                'deduction_method', 'installment_amount', 'expected_deduction_month',
                'expected_deduction_year', 'total_deducted', 'remaining_balance',
            ),
            'classes': ('tab',)
        }),
        (_("Status"), {
            'fields': ('status', 'approved_by', 'reason', 'remarks'),
            'classes': ('tab',)
        }),
    )

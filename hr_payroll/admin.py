from django.contrib import admin, messages
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.decorators import display

from core.exceptions import HRMSError
from core.tenant import TenantContext
from .attendance_engine import AttendanceEngine, apply_totals
from .leave_service import LeaveService
from .models import (
    ClearanceItem, ClearanceTemplate, ClockRecord, DataRetentionLog, Department, Employee,
    ExtraShiftRequest, Holiday, LeaveBalance, LeaveRequest, LeaveType, Position, Resignation,
    Schedule, ScheduleAuditLog, ShiftTemplate,
)

STATUS_COLORS = {
    'pending': 'warning',
    'approved': 'success',
    'rejected': 'danger',
    'cancelled': 'info',
    'clearing': 'warning',
    'completed': 'success',
    'withdrawn': 'info',
}


class HRBaseAdmin(ModelAdmin):
    list_per_page = 25
    empty_value_display = _("Not set")

    def run_for_each(self, request, queryset, action):
        """Apply a service call to each selected row, reporting failures row by row."""
        done = 0
        for obj in queryset:
            tenant = TenantContext(company=obj.company, user=request.user, admin_role='admin')
            try:
                action(tenant, obj)
                done += 1
            except HRMSError as e:
                self.message_user(request, f'{obj}: {e.message}', messages.WARNING)
        return done


# ==================== ORGANISATION ====================

@admin.register(Department)
class DepartmentAdmin(HRBaseAdmin):
    list_display = ('name', 'code', 'company', 'is_active')
    list_filter = ('company', 'is_active')
    search_fields = ('name', 'code')


@admin.register(Position)
class PositionAdmin(HRBaseAdmin):
    list_display = ('name', 'role', 'company')
    list_filter = ('company', 'role')
    search_fields = ('name',)


@admin.register(Employee)
class EmployeeAdmin(HRBaseAdmin):
    list_display = (
        'employee_id', 'name', 'company', 'outlet', 'department', 'position',
        'status_badge', 'employment_status', 'join_date',
    )
    list_filter = ('company', 'status', 'employment_status', 'department', 'outlet')
    search_fields = ('employee_id', 'name', 'ic_number', 'email')
    list_select_related = ('company', 'outlet', 'department', 'position')

    fieldsets = (
        (_("Required Fields"), {
            'fields': ('company', 'employee_id', 'name', 'ic_number', 'join_date'),
            'classes': ('tab',)
        }),
        (_("Placement"), {
            'fields': ('outlet', 'department', 'position', 'region'),
            'classes': ('tab',)
        }),
        (_("Contact"), {
            'fields': ('email', 'phone'),
            'classes': ('tab',)
        }),
        (_("Employment"), {
            'fields': ('status', 'employment_status', 'last_working_day', 'resign_date'),
            'classes': ('tab',)
        }),
        (_("Pay"), {
            'fields': ('default_basic_salary', 'default_bonus', 'ot_rate'),
            'classes': ('tab',)
        }),
        (_("Tax Profile"), {
            'fields': ('marital_status', 'spouse_working', 'children_count'),
            'classes': ('tab',)
        }),
    )

    @display(description=_('Status'), label={'active': 'success', 'inactive': 'danger'})
    def status_badge(self, obj):
        return obj.status


@admin.register(Holiday)
class HolidayAdmin(HRBaseAdmin):
    list_display = ('name', 'date', 'company')
    list_filter = ('company',)
    search_fields = ('name',)
    date_hierarchy = 'date'


# ==================== SCHEDULING ====================

@admin.register(ShiftTemplate)
class ShiftTemplateAdmin(HRBaseAdmin):
    list_display = ('code', 'name', 'company', 'start_time', 'end_time', 'break_duration', 'is_off', 'is_active')
    list_filter = ('company', 'is_off', 'is_active')
    search_fields = ('code', 'name')


@admin.register(Schedule)
class ScheduleAdmin(HRBaseAdmin):
    list_display = ('employee', 'schedule_date', 'shift_template', 'shift_start', 'shift_end', 'status', 'is_public_holiday')
    list_filter = ('company', 'status', 'is_public_holiday', 'outlet', 'department')
    search_fields = ('employee__employee_id', 'employee__name')
    list_select_related = ('employee', 'shift_template')
    autocomplete_fields = ('employee',)
    date_hierarchy = 'schedule_date'


@admin.register(ScheduleAuditLog)
class ScheduleAuditLogAdmin(HRBaseAdmin):
    list_display = ('action', 'schedule_id_ref', 'employee', 'changed_by', 'created_at')
    list_filter = ('action', 'company')
    search_fields = ('employee__name', 'reason')
    readonly_fields = ('old_value', 'new_value', 'created_at')


@admin.register(ExtraShiftRequest)
class ExtraShiftRequestAdmin(HRBaseAdmin):
    list_display = ('employee', 'request_date', 'shift_template', 'status', 'approved_by')
    list_filter = ('company', 'status')
    search_fields = ('employee__name', 'employee__employee_id')


# ==================== ATTENDANCE ====================

@admin.register(ClockRecord)
class ClockRecordAdmin(HRBaseAdmin):
    list_display = (
        'employee', 'work_date', 'clock_in_1', 'clock_out_1', 'clock_in_2', 'clock_out_2',
        'total_hours', 'ot_hours', 'status_badge', 'ot_approved', 'needs_admin_review',
    )
    list_filter = ('company', 'status', 'ot_approved', 'is_auto_clock_out', 'needs_admin_review', 'outlet')
    search_fields = ('employee__employee_id', 'employee__name')
    list_select_related = ('employee', 'outlet')
    date_hierarchy = 'work_date'
    readonly_fields = (
        'total_work_minutes', 'total_break_minutes', 'ot_minutes',
        'media_retention_eligible_at', 'media_deleted_at', 'created_at', 'updated_at',
    )
    exclude = ('photo_in_1', 'photo_out_1', 'photo_in_2', 'photo_out_2')
    actions = ['approve_records', 'recompute_totals']

    @display(description=_('Status'), label=STATUS_COLORS)
    def status_badge(self, obj):
        return obj.status

    @admin.action(description=_("Approve selected records"))
    def approve_records(self, request, queryset):
        done = self.run_for_each(request, queryset, lambda tenant, obj: AttendanceEngine(tenant).approve(obj.pk))
        self.message_user(request, f'{done} records approved.')

    @admin.action(description=_("Recompute worked minutes"))
    def recompute_totals(self, request, queryset):
        changed = 0
        for record in queryset.select_related('company'):
            if apply_totals(record, record.company):
                record.save()
                changed += 1
        self.message_user(request, f'{changed} records updated.')


# ==================== LEAVE ====================

@admin.register(LeaveType)
class LeaveTypeAdmin(HRBaseAdmin):
    list_display = ('code', 'name', 'company', 'is_paid', 'default_days')
    list_filter = ('company', 'is_paid')
    search_fields = ('code', 'name')


@admin.register(LeaveBalance)
class LeaveBalanceAdmin(HRBaseAdmin):
    list_display = ('employee', 'leave_type', 'year', 'entitled_days', 'carried_forward', 'used_days', 'remaining')
    list_filter = ('year', 'leave_type')
    search_fields = ('employee__employee_id', 'employee__name')
    autocomplete_fields = ('employee',)

    @display(description=_('Remaining'))
    def remaining(self, obj):
        return obj.remaining_days


@admin.register(LeaveRequest)
class LeaveRequestAdmin(HRBaseAdmin):
    list_display = ('employee', 'leave_type', 'start_date', 'end_date', 'total_days', 'status_badge')
    list_filter = ('company', 'status', 'leave_type')
    search_fields = ('employee__employee_id', 'employee__name', 'reason')
    date_hierarchy = 'start_date'
    actions = ['approve_requests']

    @display(description=_('Status'), label=STATUS_COLORS)
    def status_badge(self, obj):
        return obj.status

    @admin.action(description=_("Approve selected leave requests"))
    def approve_requests(self, request, queryset):
        done = self.run_for_each(request, queryset, lambda tenant, obj: LeaveService(tenant).approve(obj.pk))
        self.message_user(request, f'{done} leave requests approved.')


# ==================== RESIGNATION ====================

class ClearanceItemInline(TabularInline):
    model = ClearanceItem
    extra = 0
    fields = ('category', 'item_name', 'is_completed', 'completed_by', 'completed_at', 'remarks')
    readonly_fields = ('completed_by', 'completed_at')


@admin.register(Resignation)
class ResignationAdmin(HRBaseAdmin):
    list_display = (
        'employee', 'notice_date', 'last_working_day', 'required_notice_days',
        'actual_notice_days', 'status_badge', 'clearance_completed', 'final_salary_amount',
    )
    list_filter = ('company', 'status', 'notice_waived', 'clearance_completed')
    search_fields = ('employee__employee_id', 'employee__name')
    readonly_fields = ('settlement_breakdown', 'processed_by', 'processed_at', 'created_at', 'updated_at')
    inlines = [ClearanceItemInline]

    @display(description=_('Status'), label=STATUS_COLORS)
    def status_badge(self, obj):
        return obj.status


@admin.register(ClearanceTemplate)
class ClearanceTemplateAdmin(HRBaseAdmin):
    list_display = ('item_name', 'category', 'company', 'sort_order', 'is_active')
    list_filter = ('company', 'category', 'is_active')
    ordering = ('company', 'sort_order')


# ==================== RETENTION ====================

@admin.register(DataRetentionLog)
class DataRetentionLogAdmin(HRBaseAdmin):
    list_display = ('table_name', 'record_id', 'record_date', 'employee', 'data_type', 'retention_policy', 'deleted_by', 'created_at')
    list_filter = ('data_type', 'retention_policy', 'verified')
    search_fields = ('deleted_by', 'employee__name')
    readonly_fields = [f.name for f in DataRetentionLog._meta.fields]

    def has_add_permission(self, request):
        return False

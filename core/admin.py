from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.decorators import display

from .models import Company, Notification, Outlet, UserProfile


# ==================== COMPANY ADMIN ====================

class OutletInline(TabularInline):
    model = Outlet
    extra = 0
    fields = ['code', 'name', 'supervisor', 'min_staff', 'is_active']
    show_change_link = True


@admin.register(Company)
class CompanyAdmin(ModelAdmin):
    list_display = [
        'company_code', 'name', 'attendance_regime', 'grouping_type',
        'holiday_notifications_enabled', 'is_active', 'created_at'
    ]
    list_filter = ['is_active', 'attendance_regime', 'grouping_type', 'country']
    search_fields = ['company_code', 'name', 'city', 'registration_number']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [OutletInline]

    fieldsets = (
        (_('Basic Information'), {
            'fields': (
                'company_code', 'name', 'is_active'
            )
        }),
        (_('Address Information'), {
            'fields': (
                'address_line1', 'city', 'state', 'country'
            )
        }),
        (_('Business Information'), {
            'fields': (
                'registration_number', 'currency'
            )
        }),
        (_('Rules'), {
            'fields': (
                'attendance_regime', 'grouping_type', 'holiday_notifications_enabled', 'settings'
            )
        }),
        (_('Metadata'), {
            'fields': (
                'created_at', 'updated_at'
            )
        }),
    )


# ==================== OUTLET ADMIN ====================

@admin.register(Outlet)
class OutletAdmin(ModelAdmin):
    list_display = ['code', 'name', 'company', 'supervisor', 'min_staff', 'is_active']
    list_filter = ['company', 'is_active']
    search_fields = ['code', 'name', 'address']
    list_select_related = ['company', 'supervisor']
    autocomplete_fields = ['company']


# ==================== USER PROFILE ADMIN ====================

@admin.register(UserProfile)
class UserProfileAdmin(ModelAdmin):
    list_display = ['user', 'company', 'role', 'outlet', 'employee', 'is_active', 'created_at']
    list_filter = ['company', 'role', 'is_active']
    search_fields = [
        'user__username', 'user__email', 'user__first_name', 'user__last_name',
        'employee__employee_id', 'employee__name',
    ]
    readonly_fields = ['created_at', 'updated_at']
    list_select_related = ['user', 'company', 'outlet', 'employee']
    autocomplete_fields = ['user', 'company']

    fieldsets = (
        (_('Core Information'), {
            'fields': (
                'user', 'company', 'role', 'is_active'
            )
        }),
        (_('Scope'), {
            'fields': (
                'outlet', 'employee', 'phone_number'
            )
        }),
        (_('Metadata'), {
            'fields': (
                'created_at', 'updated_at'
            )
        }),
    )


# ==================== NOTIFICATION ADMIN ====================

@admin.register(Notification)
class NotificationAdmin(ModelAdmin):
    list_display = ['title', 'company', 'employee', 'notification_type', 'read_badge', 'created_at']
    list_filter = ['notification_type', 'is_read', 'company']
    search_fields = ['title', 'message', 'employee__name']
    readonly_fields = ['created_at', 'updated_at']
    list_select_related = ['company', 'employee']
    date_hierarchy = 'created_at'
    actions = ['mark_as_read']

    @display(description=_('Read'), label={'yes': 'success', 'no': 'warning'})
    def read_badge(self, obj):
        return 'yes' if obj.is_read else 'no'

    @admin.action(description=_('Mark selected notifications as read'))
    def mark_as_read(self, request, queryset):
        updated = queryset.filter(is_read=False).update(is_read=True)
        self.message_user(request, f'{updated} notifications marked as read.')

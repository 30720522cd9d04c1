from django.conf import settings
from django.urls import reverse_lazy
from django.utils.translation import gettext_lazy as _


def admin_changelist(app_label, model_name):
    return reverse_lazy(f"admin:{app_label}_{model_name}_changelist")


def nav_item(title, icon, app_label, model_name):
    return {
        "title": title,
        "icon": icon,
        "link": admin_changelist(app_label, model_name),
        "permission": lambda request: request.user.has_perm(f"{app_label}.view_{model_name}"),
    }


def get_navigation_for_user(request):
    """Return navigation for sidebar"""
    return [
        {
            "title": _("Organisation"),
            "separator": True,
            "collapsible": True,
            "items": [
                nav_item(_("Companies"), "business", "core", "company"),
                nav_item(_("Outlets"), "storefront", "core", "outlet"),
                nav_item(_("User Profiles"), "account_circle", "core", "userprofile"),
                nav_item(_("Departments"), "apartment", "hr_payroll", "department"),
                nav_item(_("Positions"), "badge", "hr_payroll", "position"),
                nav_item(_("Employees"), "people", "hr_payroll", "employee"),
                nav_item(_("Holidays"), "celebration", "hr_payroll", "holiday"),
                nav_item(_("Notifications"), "notifications", "core", "notification"),
            ],
        },
        {
            "title": _("Attendance & Scheduling"),
            "separator": True,
            "collapsible": True,
            "items": [
                nav_item(_("Clock Records"), "schedule", "hr_payroll", "clockrecord"),
                nav_item(_("Schedules"), "calendar_month", "hr_payroll", "schedule"),
                nav_item(_("Shift Templates"), "view_timeline", "hr_payroll", "shifttemplate"),
                nav_item(_("Extra Shift Requests"), "more_time", "hr_payroll", "extrashiftrequest"),
                nav_item(_("Schedule Audit Log"), "history", "hr_payroll", "scheduleauditlog"),
            ],
        },
        {
            "title": _("Leave & Exit"),
            "separator": True,
            "collapsible": True,
            "items": [
                nav_item(_("Leave Requests"), "event_busy", "hr_payroll", "leaverequest"),
                nav_item(_("Leave Balances"), "account_balance", "hr_payroll", "leavebalance"),
                nav_item(_("Leave Types"), "category", "hr_payroll", "leavetype"),
                nav_item(_("Resignations"), "logout", "hr_payroll", "resignation"),
                nav_item(_("Clearance Templates"), "checklist", "hr_payroll", "clearancetemplate"),
                nav_item(_("Retention Log"), "delete_sweep", "hr_payroll", "dataretentionlog"),
            ],
        },
        {
            "title": _("Payroll"),
            "separator": True,
            "collapsible": True,
            "items": [
                nav_item(_("Payroll Runs"), "payments", "payroll", "payrollrun"),
                nav_item(_("Outlet Sales"), "point_of_sale", "payroll", "outletsales"),
                nav_item(_("Claims"), "receipt_long", "payroll", "claim"),
                nav_item(_("Salary Advances"), "request_quote", "payroll", "salaryadvance"),
            ],
        },
    ]


UNFOLD = {
    "SITE_TITLE": "HRMS",
    "SITE_HEADER": "HRMS",
    "SITE_URL": "/",
    "SHOW_HISTORY": True,
    "SHOW_VIEW_ON_SITE": False,
    "ENVIRONMENT": "config.unfold_admin.environment_callback",
    "COLORS": {
        "primary": {
            "50": "oklch(0.97 0.013 240)",
            "100": "oklch(0.93 0.024 240)",
            "200": "oklch(0.86 0.055 240)",
            "300": "oklch(0.78 0.108 240)",
            "400": "oklch(0.69 0.155 240)",
            "500": "oklch(0.58 0.191 240)",
            "600": "oklch(0.49 0.204 240)",
            "700": "oklch(0.42 0.195 240)",
            "800": "oklch(0.35 0.155 240)",
            "900": "oklch(0.28 0.108 240)",
        },
    },
    "SIDEBAR": {
        "show_search": True,
        "show_all_applications": False,
        "navigation": get_navigation_for_user,
    },
}


def environment_callback(request):
    """Show environment indicator"""
    return ["Development", "success"] if settings.DEBUG else ["Production", "danger"]

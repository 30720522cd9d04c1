from django.urls import path

from .views import attendance_views
from .views import leave_views
from .views import resignation_views
from .views import schedule_views
from .views import system_views

app_name = 'hr_payroll'

urlpatterns = [
    # ==================== ATTENDANCE ====================
    path('attendance/', attendance_views.AttendanceListView.as_view(), name='attendance_list'),
    path('attendance/summary/', attendance_views.AttendanceSummaryView.as_view(), name='attendance_summary'),
    path('attendance/recalculate/', attendance_views.AttendanceRecalculateView.as_view(), name='attendance_recalculate'),
    path('attendance/manual/', attendance_views.AttendanceManualView.as_view(), name='attendance_manual'),
    path('attendance/bulk-approve/', attendance_views.AttendanceBulkApproveView.as_view(), name='attendance_bulk_approve'),
    path('attendance/bulk-approve-ot/', attendance_views.AttendanceBulkApproveOTView.as_view(), name='attendance_bulk_approve_ot'),
    path('attendance/ot-for-payroll/<int:year>/<int:month>/', attendance_views.OTForPayrollView.as_view(), name='attendance_ot_for_payroll'),
    path('attendance/needs-review/', attendance_views.NeedsReviewView.as_view(), name='attendance_needs_review'),
    path('attendance/trigger-auto-clockout/', attendance_views.TriggerAutoClockoutView.as_view(), name='attendance_trigger_auto_clockout'),
    path('attendance/auto-clockout-stats/', attendance_views.AutoClockoutStatsView.as_view(), name='attendance_auto_clockout_stats'),
    path('attendance/<int:pk>/approve/', attendance_views.AttendanceApproveView.as_view(), name='attendance_approve'),
    path('attendance/<int:pk>/reject/', attendance_views.AttendanceRejectView.as_view(), name='attendance_reject'),
    path('attendance/<int:pk>/revert/', attendance_views.AttendanceRevertView.as_view(), name='attendance_revert'),
    path('attendance/<int:pk>/approve-with-schedule/', attendance_views.AttendanceApproveWithScheduleView.as_view(), name='attendance_approve_with_schedule'),
    path('attendance/<int:pk>/approve-without-schedule/', attendance_views.AttendanceApproveWithoutScheduleView.as_view(), name='attendance_approve_without_schedule'),
    path('attendance/<int:pk>/approve-ot/', attendance_views.AttendanceApproveOTView.as_view(), name='attendance_approve_ot'),
    path('attendance/<int:pk>/reject-ot/', attendance_views.AttendanceRejectOTView.as_view(), name='attendance_reject_ot'),
    path('attendance/<int:pk>/hours/', attendance_views.AttendanceHoursView.as_view(), name='attendance_hours'),
    path('attendance/<int:pk>/mark-reviewed/', attendance_views.MarkReviewedView.as_view(), name='attendance_mark_reviewed'),
    path('attendance/<int:pk>/action/<str:action>/', attendance_views.AttendanceActionView.as_view(), name='attendance_action'),

    # employee terminal
    path('attendance/employee/clock/', attendance_views.EmployeeClockView.as_view(), name='employee_clock'),
    path('attendance/employee/today/', attendance_views.EmployeeTodayView.as_view(), name='employee_today'),
    path('attendance/employee/history/', attendance_views.EmployeeHistoryView.as_view(), name='employee_history'),

    # ==================== SCHEDULES ====================
    path('schedules/', schedule_views.ScheduleListView.as_view(), name='schedule_list'),
    path('schedules/bulk/', schedule_views.ScheduleBulkView.as_view(), name='schedule_bulk'),
    path('schedules/calendar/', schedule_views.ScheduleCalendarView.as_view(), name='schedule_calendar'),
    path('schedules/permissions/', schedule_views.SchedulePermissionsView.as_view(), name='schedule_permissions'),
    path('schedules/employees/<int:employee_id>/month/<int:year>/<int:month>/', schedule_views.EmployeeMonthScheduleView.as_view(), name='schedule_employee_month'),
    path('schedules/templates/', schedule_views.ShiftTemplateListView.as_view(), name='shift_template_list'),
    path('schedules/templates/<int:pk>/', schedule_views.ShiftTemplateDetailView.as_view(), name='shift_template_detail'),
    path('schedules/<int:pk>/', schedule_views.ScheduleDetailView.as_view(), name='schedule_detail'),

    # roster
    path('schedules/roster/weekly/', schedule_views.RosterWeeklyView.as_view(), name='roster_weekly'),
    path('schedules/roster/assign/', schedule_views.RosterAssignView.as_view(), name='roster_assign'),
    path('schedules/roster/bulk-assign/', schedule_views.RosterBulkAssignView.as_view(), name='roster_bulk_assign'),
    path('schedules/roster/clear/', schedule_views.RosterClearView.as_view(), name='roster_clear'),
    path('schedules/roster/department/weekly/', schedule_views.DepartmentWeeklyView.as_view(), name='department_roster_weekly'),
    path('schedules/roster/department/monthly/', schedule_views.DepartmentMonthlyView.as_view(), name='department_roster_monthly'),
    path('schedules/roster/department/assign/', schedule_views.RosterAssignView.as_view(), name='department_roster_assign'),
    path('schedules/roster/department/bulk-assign/', schedule_views.RosterBulkAssignView.as_view(), name='department_roster_bulk_assign'),
    path('schedules/roster/department/copy-month/', schedule_views.DepartmentCopyMonthView.as_view(), name='department_roster_copy_month'),

    # extra shifts
    path('schedules/extra-shift-requests/', schedule_views.ExtraShiftRequestListView.as_view(), name='extra_shift_list'),
    path('schedules/extra-shift-requests/<int:pk>/approve/', schedule_views.ExtraShiftApproveView.as_view(), name='extra_shift_approve'),
    path('schedules/extra-shift-requests/<int:pk>/reject/', schedule_views.ExtraShiftRejectView.as_view(), name='extra_shift_reject'),

    # ==================== LEAVE ====================
    path('leave/requests/', leave_views.LeaveRequestListView.as_view(), name='leave_request_list'),
    path('leave/requests/<int:pk>/approve/', leave_views.LeaveApproveView.as_view(), name='leave_approve'),
    path('leave/requests/<int:pk>/reject/', leave_views.LeaveRejectView.as_view(), name='leave_reject'),
    path('leave/requests/<int:pk>/cancel/', leave_views.LeaveCancelView.as_view(), name='leave_cancel'),
    path('leave/balances/<int:employee_id>/', leave_views.LeaveBalanceListView.as_view(), name='leave_balances'),

    # ==================== RESIGNATIONS ====================
    path('resignations/', resignation_views.ResignationListView.as_view(), name='resignation_list'),
    path('resignations/calculate-settlement/', resignation_views.SettlementPreviewView.as_view(), name='resignation_settlement_preview'),
    path('resignations/clearance-templates/', resignation_views.ClearanceTemplateListView.as_view(), name='clearance_templates'),
    path('resignations/<int:pk>/', resignation_views.ResignationDetailView.as_view(), name='resignation_detail'),
    path('resignations/<int:pk>/approve/', resignation_views.ResignationApproveView.as_view(), name='resignation_approve'),
    path('resignations/<int:pk>/reject/', resignation_views.ResignationRejectView.as_view(), name='resignation_reject'),
    path('resignations/<int:pk>/withdraw/', resignation_views.ResignationWithdrawView.as_view(), name='resignation_withdraw'),
    path('resignations/<int:pk>/cancel/', resignation_views.ResignationCancelView.as_view(), name='resignation_cancel'),
    path('resignations/<int:pk>/waive-notice/', resignation_views.ResignationWaiveNoticeView.as_view(), name='resignation_waive_notice'),
    path('resignations/<int:pk>/clearance/', resignation_views.ClearanceView.as_view(), name='resignation_clearance'),
    path('resignations/<int:pk>/clearance/generate/', resignation_views.ClearanceGenerateView.as_view(), name='resignation_clearance_generate'),
    path('resignations/<int:pk>/clearance/<int:item_id>/', resignation_views.ClearanceItemView.as_view(), name='resignation_clearance_item'),
    path('resignations/<int:pk>/check-leaves/', resignation_views.ResignationCheckLeavesView.as_view(), name='resignation_check_leaves'),
    path('resignations/<int:pk>/cleanup-leaves/', resignation_views.ResignationCleanupLeavesView.as_view(), name='resignation_cleanup_leaves'),
    path('resignations/<int:pk>/leave-entitlement/', resignation_views.ResignationLeaveEntitlementView.as_view(), name='resignation_leave_entitlement'),
    path('resignations/<int:pk>/settlement/', resignation_views.ResignationSettlementView.as_view(), name='resignation_settlement'),
    path('resignations/<int:pk>/process/', resignation_views.ResignationProcessView.as_view(), name='resignation_process'),

    # ==================== ADMIN ====================
    path('admin/retention/status/', system_views.RetentionStatusView.as_view(), name='retention_status'),
    path('admin/retention/pending/', system_views.RetentionPendingView.as_view(), name='retention_pending'),
    path('admin/retention/logs/', system_views.RetentionLogsView.as_view(), name='retention_logs'),
    path('admin/retention/cleanup/', system_views.RetentionCleanupView.as_view(), name='retention_cleanup'),
    path('admin/aaalive/test/', system_views.AAALiveTestView.as_view(), name='aaalive_test'),
    path('admin/aaalive/shifts/', system_views.AAALiveShiftsView.as_view(), name='aaalive_shifts'),
    path('admin/aaalive/drivers/', system_views.AAALiveDriversView.as_view(), name='aaalive_drivers'),
    path('admin/aaalive/sync/', system_views.AAALiveSyncView.as_view(), name='aaalive_sync'),
    path('jobs/', system_views.JobListView.as_view(), name='job_list'),
    path('jobs/<str:name>/run/', system_views.JobRunView.as_view(), name='job_run'),
]

from django.urls import path

from . import views

app_name = 'payroll'

urlpatterns = [
    # ==================== COMMISSION ====================
    path('commission/sales/', views.OutletSalesListView.as_view(), name='sales_list'),
    path('commission/sales/<int:pk>/', views.OutletSalesDetailView.as_view(), name='sales_detail'),
    path('commission/sales/<int:pk>/calculate/', views.CommissionCalculateView.as_view(), name='commission_calculate'),
    path('commission/sales/<int:pk>/finalize/', views.CommissionFinalizeView.as_view(), name='commission_finalize'),
    path('commission/sales/<int:pk>/revert/', views.CommissionRevertView.as_view(), name='commission_revert'),
    path('commission/payouts/employee/<int:employee_id>/', views.EmployeeCommissionPayoutsView.as_view(), name='commission_employee_payouts'),
    path('commission/outlets/', views.CommissionTargetsView.as_view(), name='commission_outlets'),

    # ==================== CLAIMS ====================
    path('claims/', views.ClaimListView.as_view(), name='claim_list'),
    path('claims/categories/', views.ClaimCategoriesView.as_view(), name='claim_categories'),
    path('claims/pending-count/', views.ClaimPendingCountView.as_view(), name='claim_pending_count'),
    path('claims/summary/', views.ClaimSummaryView.as_view(), name='claim_summary'),
    path('claims/for-payroll/', views.ClaimsForPayrollView.as_view(), name='claims_for_payroll'),
    path('claims/allowed-types/<int:employee_id>/', views.ClaimAllowedTypesView.as_view(), name='claim_allowed_types'),
    path('claims/bulk-approve/', views.ClaimBulkApproveView.as_view(), name='claim_bulk_approve'),
    path('claims/link-to-payroll/', views.ClaimLinkToPayrollView.as_view(), name='claim_link_to_payroll'),
    path('claims/<int:pk>/', views.ClaimDetailView.as_view(), name='claim_detail'),
    path('claims/<int:pk>/approve/', views.ClaimApproveView.as_view(), name='claim_approve'),
    path('claims/<int:pk>/reject/', views.ClaimRejectView.as_view(), name='claim_reject'),
    path('claims/<int:pk>/revert/', views.ClaimRevertView.as_view(), name='claim_revert'),

    # ==================== SALARY ADVANCES ====================
    path('advances/', views.AdvanceListView.as_view(), name='advance_list'),
    path('advances/summary/', views.AdvanceSummaryView.as_view(), name='advance_summary'),
    path('advances/pending/<int:employee_id>/', views.AdvancePendingView.as_view(), name='advance_pending'),
    path('advances/<int:pk>/', views.AdvanceDetailView.as_view(), name='advance_detail'),
    path('advances/<int:pk>/cancel/', views.AdvanceCancelView.as_view(), name='advance_cancel'),
    path('advances/<int:pk>/deduct/', views.AdvanceDeductView.as_view(), name='advance_deduct'),
    path('advances/<int:pk>/history/', views.AdvanceHistoryView.as_view(), name='advance_history'),
]

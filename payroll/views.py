from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.response import Response

from core.views.base_views import TenantAPIView
from hr_payroll.serializers import MonthYearQuerySerializer, ReasonSerializer
from hr_payroll.utils import local_today
from .advances import AdvanceService
from .claims_intake import ClaimsService, claim_categories
from .commission_engine import CommissionEngine, sales_snapshot
from .serializers import (
    AdvanceFilterSerializer, AdvanceSummaryQuerySerializer, AdvanceWriteSerializer, ClaimFilterSerializer,
    ClaimIdsSerializer, ClaimsForPayrollQuerySerializer, ClaimWriteSerializer, DeductSerializer,
    LinkToPayrollSerializer, NotesSerializer, SalesFilterSerializer, SalesWriteSerializer, YearQuerySerializer,
)


# ==================== COMMISSION ====================

class OutletSalesListView(TenantAPIView):
    """Monthly sales per outlet (or department) and the commission pool derived from them."""

    @swagger_auto_schema(query_serializer=SalesFilterSerializer)
    def get(self, request):
        return Response(CommissionEngine(self.tenant).list(**self.validated(SalesFilterSerializer, request.query_params)))

    @swagger_auto_schema(request_body=SalesWriteSerializer)
    def post(self, request):
        sales, created = CommissionEngine(self.tenant).save_sales(self.validated(SalesWriteSerializer))
        return Response(
            sales_snapshot(sales),
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class OutletSalesDetailView(TenantAPIView):

    def get(self, request, pk):
        return Response(CommissionEngine(self.tenant).detail(pk))

    def delete(self, request, pk):
        return Response(CommissionEngine(self.tenant).delete(pk))


class CommissionCalculateView(TenantAPIView):

    def post(self, request, pk):
        return Response(CommissionEngine(self.tenant).calculate(pk))


class CommissionFinalizeView(TenantAPIView):

    def post(self, request, pk):
        return Response(CommissionEngine(self.tenant).finalize(pk))


class CommissionRevertView(TenantAPIView):

    def post(self, request, pk):
        return Response(CommissionEngine(self.tenant).revert(pk))


class EmployeeCommissionPayoutsView(TenantAPIView):

    @swagger_auto_schema(query_serializer=YearQuerySerializer)
    def get(self, request, employee_id):
        year = self.validated(YearQuerySerializer, request.query_params).get('year')
        return Response(CommissionEngine(self.tenant).employee_payouts(employee_id, year))


class CommissionTargetsView(TenantAPIView):

    def get(self, request):
        return Response(CommissionEngine(self.tenant).targets())


# ==================== CLAIMS ====================

class ClaimListView(TenantAPIView):

    @swagger_auto_schema(query_serializer=ClaimFilterSerializer)
    def get(self, request):
        return Response(ClaimsService(self.tenant).list(**self.validated(ClaimFilterSerializer, request.query_params)))

    @swagger_auto_schema(request_body=ClaimWriteSerializer)
    def post(self, request):
        claim = ClaimsService(self.tenant).create(self.validated(ClaimWriteSerializer))
        return Response(claim, status=status.HTTP_201_CREATED)


class ClaimDetailView(TenantAPIView):

    @swagger_auto_schema(request_body=ClaimWriteSerializer)
    def put(self, request, pk):
        return Response(ClaimsService(self.tenant).update(pk, self.validated(ClaimWriteSerializer, partial=True)))

    def delete(self, request, pk):
        return Response(ClaimsService(self.tenant).delete(pk))


class ClaimCategoriesView(TenantAPIView):

    def get(self, request):
        return Response(claim_categories())


class ClaimPendingCountView(TenantAPIView):

    def get(self, request):
        return Response(ClaimsService(self.tenant).pending_count())


class ClaimSummaryView(TenantAPIView):

    @swagger_auto_schema(query_serializer=MonthYearQuerySerializer)
    def get(self, request):
        return Response(ClaimsService(self.tenant).summary(**self.validated(MonthYearQuerySerializer, request.query_params)))


class ClaimsForPayrollView(TenantAPIView):

    @swagger_auto_schema(query_serializer=ClaimsForPayrollQuerySerializer)
    def get(self, request):
        data = self.validated(ClaimsForPayrollQuerySerializer, request.query_params)
        return Response(ClaimsService(self.tenant).for_payroll(
            data['month'], data['year'], employee_id=data.get('employee_id'),
        ))


class ClaimAllowedTypesView(TenantAPIView):

    def get(self, request, employee_id):
        return Response(ClaimsService(self.tenant).allowed_types(employee_id))


class ClaimApproveView(TenantAPIView):

    @swagger_auto_schema(request_body=NotesSerializer)
    def post(self, request, pk):
        return Response(ClaimsService(self.tenant).approve(pk, self.validated(NotesSerializer)['notes']))


class ClaimRejectView(TenantAPIView):

    @swagger_auto_schema(request_body=ReasonSerializer)
    def post(self, request, pk):
        return Response(ClaimsService(self.tenant).reject(pk, self.validated(ReasonSerializer)['reason']))


class ClaimRevertView(TenantAPIView):

    def post(self, request, pk):
        return Response(ClaimsService(self.tenant).revert(pk))


class ClaimBulkApproveView(TenantAPIView):

    @swagger_auto_schema(request_body=ClaimIdsSerializer)
    def post(self, request):
        return Response(ClaimsService(self.tenant).bulk_approve(self.validated(ClaimIdsSerializer)['claim_ids']))


class ClaimLinkToPayrollView(TenantAPIView):

    @swagger_auto_schema(request_body=LinkToPayrollSerializer)
    def post(self, request):
        data = self.validated(LinkToPayrollSerializer)
        return Response(ClaimsService(self.tenant).link_to_payroll(
            data['employee_id'], data['payroll_item_id'], data['month'], data['year'],
        ))


# ==================== SALARY ADVANCES ====================

class AdvanceListView(TenantAPIView):

    @swagger_auto_schema(query_serializer=AdvanceFilterSerializer)
    def get(self, request):
        return Response(AdvanceService(self.tenant).list(**self.validated(AdvanceFilterSerializer, request.query_params)))

    @swagger_auto_schema(request_body=AdvanceWriteSerializer)
    def post(self, request):
        advance = AdvanceService(self.tenant).create(self.validated(AdvanceWriteSerializer))
        return Response(advance, status=status.HTTP_201_CREATED)


class AdvanceDetailView(TenantAPIView):

    @swagger_auto_schema(request_body=AdvanceWriteSerializer)
    def put(self, request, pk):
        return Response(AdvanceService(self.tenant).update(pk, self.validated(AdvanceWriteSerializer, partial=True)))


class AdvanceSummaryView(TenantAPIView):

    @swagger_auto_schema(query_serializer=AdvanceSummaryQuerySerializer)
    def get(self, request):
        data = self.validated(AdvanceSummaryQuerySerializer, request.query_params)
        today = local_today()
        return Response(AdvanceService(self.tenant).summary(
            data.get('month', today.month),
            data.get('year', today.year),
            department_id=data.get('department_id'),
            outlet_id=data.get('outlet_id'),
        ))


class AdvancePendingView(TenantAPIView):

    @swagger_auto_schema(query_serializer=MonthYearQuerySerializer)
    def get(self, request, employee_id):
        return Response(AdvanceService(self.tenant).pending(
            employee_id, **self.validated(MonthYearQuerySerializer, request.query_params)
        ))


class AdvanceCancelView(TenantAPIView):

    def post(self, request, pk):
        return Response(AdvanceService(self.tenant).cancel(pk))


class AdvanceDeductView(TenantAPIView):

    @swagger_auto_schema(request_body=DeductSerializer)
    def post(self, request, pk):
        data = self.validated(DeductSerializer)
        return Response(AdvanceService(self.tenant).deduct(
            pk, data['amount'],
            payroll_item_id=data.get('payroll_item_id'),
            month=data.get('month'),
            year=data.get('year'),
        ))


class AdvanceHistoryView(TenantAPIView):

    def get(self, request, pk):
        return Response(AdvanceService(self.tenant).history(pk))

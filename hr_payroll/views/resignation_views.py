from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.response import Response

from core.views.base_views import TenantAPIView
from ..resignation_engine import ResignationEngine
from ..serializers import (
    ClearanceItemUpdateSerializer, ReasonSerializer, ResignationFilterSerializer, ResignationProcessSerializer,
    ResignationWriteSerializer, SettlementOptionsSerializer, SettlementPreviewSerializer, WaiveNoticeSerializer,
)


class ResignationEngineMixin:

    @property
    def engine(self):
        return ResignationEngine(self.tenant)


class ResignationListView(ResignationEngineMixin, TenantAPIView):

    @swagger_auto_schema(query_serializer=ResignationFilterSerializer)
    def get(self, request):
        return Response(self.engine.list(**self.validated(ResignationFilterSerializer, request.query_params)))

    @swagger_auto_schema(request_body=ResignationWriteSerializer)
    def post(self, request):
        return Response(
            self.engine.create(self.validated(ResignationWriteSerializer)), status=status.HTTP_201_CREATED,
        )


class ResignationDetailView(ResignationEngineMixin, TenantAPIView):

    def get(self, request, pk):
        return Response(self.engine.detail(pk))

    @swagger_auto_schema(request_body=ResignationWriteSerializer)
    def put(self, request, pk):
        return Response(self.engine.update(pk, self.validated(ResignationWriteSerializer, partial=True)))

    def delete(self, request, pk):
        return Response(self.engine.delete(pk))


class ResignationApproveView(ResignationEngineMixin, TenantAPIView):

    def post(self, request, pk):
        return Response(self.engine.approve(pk))


class ResignationRejectView(ResignationEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=ReasonSerializer)
    def post(self, request, pk):
        return Response(self.engine.reject(pk, self.validated(ReasonSerializer)['reason']))


class ResignationWithdrawView(ResignationEngineMixin, TenantAPIView):

    def post(self, request, pk):
        return Response(self.engine.withdraw(pk))


class ResignationCancelView(ResignationEngineMixin, TenantAPIView):

    def post(self, request, pk):
        return Response(self.engine.cancel(pk))


class ResignationWaiveNoticeView(ResignationEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=WaiveNoticeSerializer)
    def post(self, request, pk):
        return Response(self.engine.waive_notice(pk, self.validated(WaiveNoticeSerializer)['waive']))


class ResignationProcessView(ResignationEngineMixin, TenantAPIView):
    """Complete the exit: employee becomes exited and future commitments are removed."""

    @swagger_auto_schema(request_body=ResignationProcessSerializer)
    def post(self, request, pk):
        return Response(self.engine.process(pk, self.validated(ResignationProcessSerializer)))


class ResignationSettlementView(ResignationEngineMixin, TenantAPIView):

    @swagger_auto_schema(query_serializer=SettlementOptionsSerializer)
    def get(self, request, pk):
        waive = self.validated(SettlementOptionsSerializer, request.query_params).get('waive_notice')
        return Response(self.engine.settlement(pk, waive_notice=waive))

    @swagger_auto_schema(request_body=SettlementOptionsSerializer)
    def post(self, request, pk):
        waive = self.validated(SettlementOptionsSerializer).get('waive_notice')
        return Response(self.engine.settlement(pk, waive_notice=waive, save=True))


class SettlementPreviewView(ResignationEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=SettlementPreviewSerializer)
    def post(self, request):
        data = self.validated(SettlementPreviewSerializer)
        return Response(self.engine.preview_settlement(data['employee_id'], data['last_working_day']))


# ==================== CLEARANCE ====================

class ClearanceTemplateListView(ResignationEngineMixin, TenantAPIView):

    def get(self, request):
        return Response(self.engine.clearance_templates())


class ClearanceView(ResignationEngineMixin, TenantAPIView):

    def get(self, request, pk):
        return Response(self.engine.clearance(pk))


class ClearanceGenerateView(ResignationEngineMixin, TenantAPIView):

    def post(self, request, pk):
        return Response(self.engine.generate_clearance(pk))


class ClearanceItemView(ResignationEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=ClearanceItemUpdateSerializer)
    def post(self, request, pk, item_id):
        data = self.validated(ClearanceItemUpdateSerializer)
        return Response(self.engine.update_clearance_item(pk, item_id, data['is_completed'], data.get('remarks')))

    put = post


# ==================== LEAVE ====================

class ResignationCheckLeavesView(ResignationEngineMixin, TenantAPIView):

    def get(self, request, pk):
        return Response(self.engine.check_leaves(pk))


class ResignationCleanupLeavesView(ResignationEngineMixin, TenantAPIView):

    def post(self, request, pk):
        return Response(self.engine.cleanup_leaves(pk))


class ResignationLeaveEntitlementView(ResignationEngineMixin, TenantAPIView):

    def get(self, request, pk):
        return Response(self.engine.leave_entitlement(pk))

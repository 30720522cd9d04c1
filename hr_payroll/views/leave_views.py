from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.response import Response

from core.views.base_views import TenantAPIView
from ..leave_service import LeaveService
from ..models import LeaveBalance
from ..serializers import (
    LeaveBalanceSerializer, LeaveCreateSerializer, LeaveFilterSerializer, LeaveRequestSerializer,
    ReasonSerializer, YearQuerySerializer,
)
from ..utils import local_today


class LeaveRequestListView(TenantAPIView):

    @swagger_auto_schema(query_serializer=LeaveFilterSerializer)
    def get(self, request):
        leaves = LeaveService(self.tenant).list(**self.validated(LeaveFilterSerializer, request.query_params))
        return Response(LeaveRequestSerializer(leaves, many=True).data)

    @swagger_auto_schema(request_body=LeaveCreateSerializer)
    def post(self, request):
        leave = LeaveService(self.tenant).create(self.validated(LeaveCreateSerializer))
        return Response(LeaveRequestSerializer(leave).data, status=status.HTTP_201_CREATED)


class LeaveApproveView(TenantAPIView):

    def post(self, request, pk):
        return Response(LeaveRequestSerializer(LeaveService(self.tenant).approve(pk)).data)


class LeaveRejectView(TenantAPIView):

    @swagger_auto_schema(request_body=ReasonSerializer)
    def post(self, request, pk):
        leave = LeaveService(self.tenant).reject(pk, self.validated(ReasonSerializer)['reason'])
        return Response(LeaveRequestSerializer(leave).data)


class LeaveCancelView(TenantAPIView):

    @swagger_auto_schema(request_body=ReasonSerializer)
    def post(self, request, pk):
        leave = LeaveService(self.tenant).cancel(pk, self.validated(ReasonSerializer)['reason'])
        return Response(LeaveRequestSerializer(leave).data)


class LeaveBalanceListView(TenantAPIView):

    @swagger_auto_schema(query_serializer=YearQuerySerializer)
    def get(self, request, employee_id):
        year = self.validated(YearQuerySerializer, request.query_params).get('year', local_today().year)
        balances = self.tenant.scope(
            LeaveBalance.objects.select_related('leave_type'), field_name='employee__company'
        ).filter(employee_id=employee_id, year=year)
        return Response(LeaveBalanceSerializer(balances, many=True).data)

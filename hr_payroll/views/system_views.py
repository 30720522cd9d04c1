from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.response import Response

from core.exceptions import NotFound
from core.views.base_views import TenantAPIView
from .. import driver_sync
from ..retention import RetentionService
from ..scheduler import JobNotFound, scheduler
from ..serializers import (
    DriverSyncSerializer, JobRunSerializer, OptionalDateSerializer, PageQuerySerializer,
    RetentionCleanupSerializer, RetentionLogQuerySerializer, ShiftQuerySerializer,
)


def iso(value):
    return value.isoformat() if value else None


# ==================== DATA RETENTION ====================

class RetentionStatusView(TenantAPIView):

    def get(self, request):
        self.tenant.require_elevated()
        return Response(RetentionService(self.tenant).status())


class RetentionPendingView(TenantAPIView):

    @swagger_auto_schema(query_serializer=PageQuerySerializer)
    def get(self, request):
        self.tenant.require_elevated()
        return Response(RetentionService(self.tenant).pending(
            **self.validated(PageQuerySerializer, request.query_params)
        ))


class RetentionLogsView(TenantAPIView):

    @swagger_auto_schema(query_serializer=RetentionLogQuerySerializer)
    def get(self, request):
        self.tenant.require_elevated()
        return Response(RetentionService(self.tenant).logs(
            **self.validated(RetentionLogQuerySerializer, request.query_params)
        ))


class RetentionCleanupView(TenantAPIView):
    """Blank expired clock photos. Defaults to a dry run."""

    @swagger_auto_schema(request_body=RetentionCleanupSerializer)
    def post(self, request):
        return Response(RetentionService(self.tenant).cleanup(**self.validated(RetentionCleanupSerializer)))


# ==================== AAALIVE DRIVER SYNC ====================

class AAALiveTestView(TenantAPIView):

    @swagger_auto_schema(query_serializer=OptionalDateSerializer)
    def get(self, request):
        self.tenant.require_elevated()
        target = self.validated(OptionalDateSerializer, request.query_params).get('date')
        return Response(driver_sync.test_connection(iso(target)))


class AAALiveShiftsView(TenantAPIView):

    @swagger_auto_schema(query_serializer=ShiftQuerySerializer)
    def get(self, request):
        self.tenant.require_elevated()
        data = self.validated(ShiftQuerySerializer, request.query_params)
        payload = driver_sync.fetch_shifts(
            date=iso(data.get('date')), start=iso(data.get('start_date')), end=iso(data.get('end_date')),
        )
        shifts = driver_sync.shifts_of(payload)
        return Response({'count': len(shifts), 'shifts': shifts})


class AAALiveDriversView(TenantAPIView):

    def get(self, request):
        self.tenant.require_elevated()
        return Response(driver_sync.list_drivers())


class AAALiveSyncView(TenantAPIView):

    @swagger_auto_schema(request_body=DriverSyncSerializer)
    def post(self, request):
        self.tenant.require_elevated()
        data = self.validated(DriverSyncSerializer)
        if data.get('start'):
            result = driver_sync.sync_driver_attendance(start=iso(data['start']), end=iso(data['end']))
        else:
            result = driver_sync.sync_driver_attendance(date=iso(data.get('date')))
        return Response(result)


# ==================== JOBS ====================

class JobListView(TenantAPIView):

    def get(self, request):
        self.tenant.require_super_admin('Only super admin can manage jobs')
        return Response([
            {'name': name, 'schedule': list(scheduler.jobs[name][0]), 'running': scheduler.is_running(name)}
            for name in scheduler.names()
        ])


class JobRunView(TenantAPIView):

    @swagger_auto_schema(request_body=JobRunSerializer)
    def post(self, request, name):
        self.tenant.require_super_admin('Only super admin can manage jobs')
        data = self.validated(JobRunSerializer)
        try:
            outcome = scheduler.run_now(name, on=data.get('date'), dry_run=data['dry_run'])
        except JobNotFound:
            raise NotFound(f'Unknown job {name}')
        return Response(outcome, status=status.HTTP_200_OK if outcome['success'] else status.HTTP_409_CONFLICT)

from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.response import Response

from core.views.base_views import TenantAPIView
from ..schedule_store import ScheduleStore, schedule_snapshot
from ..serializers import (
    CalendarQuerySerializer, CopyMonthSerializer, DepartmentMonthlyQuerySerializer, DepartmentWeeklyQuerySerializer,
    ExtraShiftCreateSerializer, ExtraShiftFilterSerializer, ExtraShiftRequestSerializer, IncludeInactiveSerializer,
    ReasonSerializer, RosterAssignSerializer, RosterBulkAssignSerializer, RosterClearSerializer,
    ScheduleBulkSerializer, ScheduleFilterSerializer, ScheduleSerializer, ScheduleWriteSerializer,
    ShiftTemplateSerializer, ShiftTemplateWriteSerializer, WeeklyRosterQuerySerializer,
)
from ..utils import local_today


class ScheduleStoreMixin:

    @property
    def store(self):
        return ScheduleStore(self.tenant)


# ==================== SCHEDULES ====================

class ScheduleListView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(query_serializer=ScheduleFilterSerializer)
    def get(self, request):
        schedules = self.store.list(self.validated(ScheduleFilterSerializer, request.query_params))
        return Response(ScheduleSerializer(schedules, many=True).data)

    @swagger_auto_schema(request_body=ScheduleWriteSerializer)
    def post(self, request):
        schedule = self.store.create(self.validated(ScheduleWriteSerializer))
        return Response(ScheduleSerializer(schedule).data, status=status.HTTP_201_CREATED)


class ScheduleDetailView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(request_body=ScheduleWriteSerializer)
    def put(self, request, pk):
        schedule = self.store.update(pk, self.validated(ScheduleWriteSerializer, partial=True))
        return Response(ScheduleSerializer(schedule).data)

    def delete(self, request, pk):
        deleted = self.store.delete(pk)
        return Response({'message': 'Schedule deleted successfully', 'schedule': deleted})


class ScheduleBulkView(ScheduleStoreMixin, TenantAPIView):
    """Create one schedule per day of a date range for one employee."""

    @swagger_auto_schema(request_body=ScheduleBulkSerializer)
    def post(self, request):
        result = self.store.bulk_create(self.validated(ScheduleBulkSerializer))
        result['schedules'] = ScheduleSerializer(result['schedules'], many=True).data
        return Response(result, status=status.HTTP_201_CREATED)


class ScheduleCalendarView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(query_serializer=CalendarQuerySerializer)
    def get(self, request):
        today = local_today()
        data = self.validated(CalendarQuerySerializer, request.query_params)
        return Response(self.store.calendar(
            data.get('year', today.year),
            data.get('month', today.month),
            outlet_id=data.get('outlet_id'),
            department_id=data.get('department_id'),
        ))


class EmployeeMonthScheduleView(ScheduleStoreMixin, TenantAPIView):

    def get(self, request, employee_id, year, month):
        return Response(self.store.employee_month(employee_id, year, month))


class SchedulePermissionsView(ScheduleStoreMixin, TenantAPIView):

    def get(self, request):
        return Response(self.store.get_permissions())


# ==================== SHIFT TEMPLATES ====================

class ShiftTemplateListView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(query_serializer=IncludeInactiveSerializer)
    def get(self, request):
        include_inactive = self.validated(IncludeInactiveSerializer, request.query_params)['include_inactive']
        return Response(ShiftTemplateSerializer(self.store.templates(include_inactive), many=True).data)

    @swagger_auto_schema(request_body=ShiftTemplateWriteSerializer)
    def post(self, request):
        template = self.store.save_template(self.validated(ShiftTemplateWriteSerializer))
        return Response(ShiftTemplateSerializer(template).data, status=status.HTTP_201_CREATED)


class ShiftTemplateDetailView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(request_body=ShiftTemplateWriteSerializer)
    def put(self, request, pk):
        data = self.validated(ShiftTemplateWriteSerializer, partial=True)
        return Response(ShiftTemplateSerializer(self.store.save_template(data, template_id=pk)).data)

    def delete(self, request, pk):
        template = self.store.delete_template(pk)
        return Response({'message': 'Shift template deactivated', 'id': template.pk})


# ==================== ROSTER ====================

class RosterWeeklyView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(query_serializer=WeeklyRosterQuerySerializer)
    def get(self, request):
        data = self.validated(WeeklyRosterQuerySerializer, request.query_params)
        return Response(self.store.weekly(
            data.get('start_date') or local_today(),
            outlet_id=data.get('outlet_id'),
            department_id=data.get('department_id'),
        ))


class RosterAssignView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(request_body=RosterAssignSerializer)
    def post(self, request):
        schedule, created = self.store.assign(self.validated(RosterAssignSerializer))
        return Response(
            {
                'message': 'Shift assigned successfully' if created else 'Shift updated successfully',
                'schedule': schedule_snapshot(schedule),
            },
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class RosterBulkAssignView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(request_body=RosterBulkAssignSerializer)
    def post(self, request):
        data = self.validated(RosterBulkAssignSerializer)
        return Response(self.store.bulk_assign(
            data['assignments'],
            outlet_id=data.get('outlet_id'),
            department_id=data.get('department_id'),
        ))


class RosterClearView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(request_body=RosterClearSerializer)
    def delete(self, request):
        data = self.validated(RosterClearSerializer, request.data or request.query_params)
        return Response(self.store.clear(data['employee_id'], data['schedule_date']))


class DepartmentMonthlyView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(query_serializer=DepartmentMonthlyQuerySerializer)
    def get(self, request):
        data = self.validated(DepartmentMonthlyQuerySerializer, request.query_params)
        month = data.get('month') or local_today().strftime('%Y-%m')
        return Response(self.store.monthly(data['department_id'], month))


class DepartmentWeeklyView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(query_serializer=DepartmentWeeklyQuerySerializer)
    def get(self, request):
        data = self.validated(DepartmentWeeklyQuerySerializer, request.query_params)
        return Response(self.store.weekly(data.get('start_date') or local_today(), department_id=data['department_id']))


class DepartmentCopyMonthView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(request_body=CopyMonthSerializer)
    def post(self, request):
        data = self.validated(CopyMonthSerializer)
        return Response(self.store.copy_month(data['department_id'], data['from_month'], data['to_month']))


# ==================== EXTRA SHIFTS ====================

class ExtraShiftRequestListView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(query_serializer=ExtraShiftFilterSerializer)
    def get(self, request):
        data = self.validated(ExtraShiftFilterSerializer, request.query_params)
        requests = self.store.extra_shift_requests(status=data.get('status'), outlet_id=data.get('outlet_id'))
        return Response(ExtraShiftRequestSerializer(requests, many=True).data)

    @swagger_auto_schema(request_body=ExtraShiftCreateSerializer)
    def post(self, request):
        extra = self.store.create_extra_shift_request(self.validated(ExtraShiftCreateSerializer))
        return Response(ExtraShiftRequestSerializer(extra).data, status=status.HTTP_201_CREATED)


class ExtraShiftApproveView(ScheduleStoreMixin, TenantAPIView):

    def post(self, request, pk):
        return Response(self.store.approve_extra_shift(pk))


class ExtraShiftRejectView(ScheduleStoreMixin, TenantAPIView):

    @swagger_auto_schema(request_body=ReasonSerializer)
    def post(self, request, pk):
        return Response(self.store.reject_extra_shift(pk, self.validated(ReasonSerializer)['reason']))

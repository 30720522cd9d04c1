from drf_yasg.utils import swagger_auto_schema
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.views.base_views import TenantAPIView
from ..attendance_engine import AttendanceEngine, clock_action, history, today_status
from ..auto_clockout import run_auto_clockout
from ..serializers import (
    ActionTimeSerializer, ApproveWithScheduleSerializer, AttendanceFilterSerializer, AttendanceUpsertSerializer,
    ClockActionSerializer, ClockRecordSerializer, EmployeeBriefSerializer, EmployeeIdentitySerializer,
    HoursSerializer, ManualAttendanceSerializer, MarkReviewedSerializer, MonthYearQuerySerializer,
    MonthYearSerializer, OptionalDateSerializer, ReasonSerializer, RecordIdsSerializer,
)
from ..utils import local_today


class AttendanceEngineMixin:

    @property
    def engine(self):
        return AttendanceEngine(self.tenant)


# ==================== ADMIN ====================

class AttendanceListView(AttendanceEngineMixin, TenantAPIView):
    """List clock records or create/update the record of (employee, date)."""

    @swagger_auto_schema(query_serializer=AttendanceFilterSerializer)
    def get(self, request):
        filters = self.validated(AttendanceFilterSerializer, request.query_params)
        return Response(ClockRecordSerializer(self.engine.list(filters), many=True).data)

    @swagger_auto_schema(request_body=AttendanceUpsertSerializer)
    def post(self, request):
        record, created = self.engine.upsert(self.validated(AttendanceUpsertSerializer))
        return Response(
            ClockRecordSerializer(record).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class AttendanceActionView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=ActionTimeSerializer)
    def put(self, request, pk, action):
        data = self.validated(ActionTimeSerializer)
        record = self.engine.set_action(
            pk, action, data.get('time'), location=data.get('location'), photo=data.get('photo'),
        )
        return Response(ClockRecordSerializer(record).data)


class AttendanceApproveView(AttendanceEngineMixin, TenantAPIView):

    def post(self, request, pk):
        return Response(ClockRecordSerializer(self.engine.approve(pk)).data)


class AttendanceRejectView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=ReasonSerializer)
    def post(self, request, pk):
        record = self.engine.reject(pk, self.validated(ReasonSerializer)['reason'])
        return Response(ClockRecordSerializer(record).data)


class AttendanceRevertView(AttendanceEngineMixin, TenantAPIView):

    def post(self, request, pk):
        return Response(ClockRecordSerializer(self.engine.revert(pk)).data)


class AttendanceApproveWithScheduleView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=ApproveWithScheduleSerializer)
    def post(self, request, pk):
        data = self.validated(ApproveWithScheduleSerializer)
        record = self.engine.approve_with_schedule(pk, data['shift_template_id'], data['is_public_holiday'])
        return Response(ClockRecordSerializer(record).data)


class AttendanceApproveWithoutScheduleView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=HoursSerializer)
    def post(self, request, pk):
        data = self.validated(HoursSerializer)
        record = self.engine.approve_without_schedule(pk, data.get('total_hours'), data.get('ot_hours'))
        return Response(ClockRecordSerializer(record).data)


class AttendanceBulkApproveView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=RecordIdsSerializer)
    def post(self, request):
        return Response(self.engine.bulk_approve(self.validated(RecordIdsSerializer)['record_ids']))


class AttendanceApproveOTView(AttendanceEngineMixin, TenantAPIView):

    def post(self, request, pk):
        return Response(ClockRecordSerializer(self.engine.approve_ot(pk)).data)


class AttendanceRejectOTView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=ReasonSerializer)
    def post(self, request, pk):
        record = self.engine.reject_ot(pk, self.validated(ReasonSerializer)['reason'])
        return Response(ClockRecordSerializer(record).data)


class AttendanceBulkApproveOTView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=RecordIdsSerializer)
    def post(self, request):
        return Response(self.engine.bulk_approve_ot(self.validated(RecordIdsSerializer)['record_ids']))


class AttendanceManualView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=ManualAttendanceSerializer)
    def post(self, request):
        record = self.engine.create_manual(self.validated(ManualAttendanceSerializer))
        return Response(ClockRecordSerializer(record).data, status=status.HTTP_201_CREATED)


class AttendanceHoursView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=HoursSerializer)
    def patch(self, request, pk):
        data = self.validated(HoursSerializer)
        record = self.engine.update_hours(pk, data.get('total_hours'), data.get('ot_hours'))
        return Response(ClockRecordSerializer(record).data)


class AttendanceRecalculateView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=MonthYearSerializer)
    def post(self, request):
        data = self.validated(MonthYearSerializer)
        return Response(self.engine.recalculate(data['year'], data['month']))


class AttendanceSummaryView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(query_serializer=MonthYearQuerySerializer)
    def get(self, request):
        today = local_today()
        data = self.validated(MonthYearQuerySerializer, request.query_params)
        return Response(self.engine.summary(data.get('year', today.year), data.get('month', today.month)))


class OTForPayrollView(AttendanceEngineMixin, TenantAPIView):

    def get(self, request, year, month):
        return Response(self.engine.ot_for_payroll(year, month))


class NeedsReviewView(AttendanceEngineMixin, TenantAPIView):

    def get(self, request):
        return Response(ClockRecordSerializer(self.engine.needs_review(), many=True).data)


class MarkReviewedView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(request_body=MarkReviewedSerializer)
    def post(self, request, pk):
        data = self.validated(MarkReviewedSerializer)
        record = self.engine.mark_reviewed(
            pk, data.get('total_work_minutes'), data.get('ot_minutes'), data.get('notes'),
        )
        return Response(ClockRecordSerializer(record).data)


class TriggerAutoClockoutView(TenantAPIView):

    @swagger_auto_schema(request_body=OptionalDateSerializer)
    def post(self, request):
        self.tenant.require_elevated()
        target = self.validated(OptionalDateSerializer).get('date')
        return Response(run_auto_clockout(target_date=target, company_id=self.tenant.company_id))


class AutoClockoutStatsView(AttendanceEngineMixin, TenantAPIView):

    @swagger_auto_schema(query_serializer=MonthYearQuerySerializer)
    def get(self, request):
        data = self.validated(MonthYearQuerySerializer, request.query_params)
        return Response(self.engine.auto_clockout_stats(data.get('year'), data.get('month')))


# ==================== EMPLOYEE TERMINAL ====================

class EmployeeClockView(APIView):
    """
    Clock terminal. The caller proves identity with employee code plus IC
    number instead of a token.
    """
    permission_classes = [permissions.AllowAny]

    @swagger_auto_schema(request_body=ClockActionSerializer)
    def post(self, request):
        serializer = ClockActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = clock_action(
            data['employee_id'], data['ic_number'], data['action'],
            lat=data.get('lat'), lng=data.get('lng'), photo=data.get('photo'), outlet_id=data.get('outlet_id'),
        )
        result['record'] = ClockRecordSerializer(result['record']).data
        return Response(result)


class EmployeeTodayView(APIView):
    permission_classes = [permissions.AllowAny]

    @swagger_auto_schema(request_body=EmployeeIdentitySerializer)
    def post(self, request):
        serializer = EmployeeIdentitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = today_status(serializer.validated_data['employee_id'], serializer.validated_data['ic_number'])
        result['employee'] = EmployeeBriefSerializer(result['employee']).data
        if result['record'] is not None:
            result['record'] = ClockRecordSerializer(result['record']).data
        return Response(result)


class EmployeeHistoryView(APIView):
    permission_classes = [permissions.AllowAny]

    @swagger_auto_schema(request_body=EmployeeIdentitySerializer)
    def post(self, request):
        serializer = EmployeeIdentitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = history(data['employee_id'], data['ic_number'], data.get('year'), data.get('month'))
        result['employee'] = EmployeeBriefSerializer(result['employee']).data
        result['records'] = ClockRecordSerializer(result['records'], many=True).data
        return Response(result)

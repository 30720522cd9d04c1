from rest_framework import serializers

from .models import (
    ClockRecord, Employee, ExtraShiftRequest, LeaveBalance, LeaveRequest, Resignation, Schedule, ShiftTemplate,
)


class EmployeeBriefSerializer(serializers.ModelSerializer):
    """Employee fields safe to hand back to the clock terminal"""
    outlet_name = serializers.CharField(source='outlet.name', read_only=True, default=None)

    class Meta:
        model = Employee
        fields = ['id', 'employee_id', 'name', 'outlet_id', 'outlet_name', 'department_id']


class ClockRecordSerializer(serializers.ModelSerializer):
    employee_code = serializers.CharField(source='employee.employee_id', read_only=True)
    employee_name = serializers.CharField(source='employee.name', read_only=True)
    outlet_name = serializers.CharField(source='outlet.name', read_only=True, default=None)
    next_action = serializers.SerializerMethodField()

    class Meta:
        model = ClockRecord
        fields = [
            'id', 'employee_id', 'employee_code', 'employee_name', 'outlet_id', 'outlet_name', 'work_date',
            'clock_in_1', 'clock_out_1', 'clock_in_2', 'clock_out_2',
            'location_in_1', 'location_out_1', 'location_in_2', 'location_out_2',
            'total_work_minutes', 'total_break_minutes', 'ot_minutes', 'total_hours', 'ot_hours',
            'status', 'approved_by', 'approved_at', 'rejection_reason',
            'has_schedule', 'is_auto_clock_out', 'needs_admin_review', 'reviewed_at',
            'ot_approved', 'ot_approved_at', 'ot_rejection_reason', 'notes', 'next_action',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_next_action(self, obj):
        return obj.next_action()


class ShiftTemplateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ShiftTemplate
        fields = ['id', 'name', 'code', 'start_time', 'end_time', 'break_duration', 'color', 'is_off', 'is_active']


class ScheduleSerializer(serializers.ModelSerializer):
    employee_code = serializers.CharField(source='employee.employee_id', read_only=True)
    employee_name = serializers.CharField(source='employee.name', read_only=True)
    shift_code = serializers.CharField(source='shift_template.code', read_only=True, default=None)
    shift_color = serializers.CharField(source='shift_template.color', read_only=True, default=None)

    class Meta:
        model = Schedule
        fields = [
            'id', 'employee_id', 'employee_code', 'employee_name', 'outlet_id', 'department_id',
            'schedule_date', 'shift_template_id', 'shift_code', 'shift_color', 'shift_start', 'shift_end',
            'break_duration', 'is_public_holiday', 'status', 'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ExtraShiftRequestSerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source='employee.name', read_only=True)
    outlet_name = serializers.CharField(source='outlet.name', read_only=True, default=None)
    shift_code = serializers.CharField(source='shift_template.code', read_only=True, default=None)

    class Meta:
        model = ExtraShiftRequest
        fields = [
            'id', 'employee_id', 'employee_name', 'outlet_id', 'outlet_name', 'request_date',
            'shift_template_id', 'shift_code', 'shift_start', 'shift_end', 'reason', 'status',
            'approved_at', 'rejection_reason', 'schedule_id', 'created_at',
        ]
        read_only_fields = fields


class LeaveRequestSerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source='employee.name', read_only=True)
    leave_type_code = serializers.CharField(source='leave_type.code', read_only=True)
    leave_type_name = serializers.CharField(source='leave_type.name', read_only=True)

    class Meta:
        model = LeaveRequest
        fields = [
            'id', 'employee_id', 'employee_name', 'leave_type_id', 'leave_type_code', 'leave_type_name',
            'start_date', 'end_date', 'total_days', 'reason', 'status', 'approved_at',
            'rejection_reason', 'cancelled_at', 'created_at',
        ]
        read_only_fields = fields


class LeaveBalanceSerializer(serializers.ModelSerializer):
    leave_type_code = serializers.CharField(source='leave_type.code', read_only=True)
    remaining_days = serializers.DecimalField(max_digits=6, decimal_places=2, read_only=True)

    class Meta:
        model = LeaveBalance
        fields = ['id', 'employee_id', 'leave_type_id', 'leave_type_code', 'year',
                  'entitled_days', 'carried_forward', 'used_days', 'remaining_days']
        read_only_fields = fields


# ==================== REQUEST BODIES ====================

HOURS = {'max_digits': 6, 'decimal_places': 2, 'min_value': 0}
MONTH = r'^\d{4}-(0[1-9]|1[0-2])$'


class MonthYearQuerySerializer(serializers.Serializer):
    month = serializers.IntegerField(required=False, min_value=1, max_value=12)
    year = serializers.IntegerField(required=False, min_value=2000)


class MonthYearSerializer(serializers.Serializer):
    month = serializers.IntegerField(min_value=1, max_value=12)
    year = serializers.IntegerField(min_value=2000)


class RecordIdsSerializer(serializers.Serializer):
    record_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class OptionalDateSerializer(serializers.Serializer):
    date = serializers.DateField(required=False, allow_null=True)


# ---------- attendance ----------

class ClockActionSerializer(serializers.Serializer):
    """Body of the employee clock terminal"""
    employee_id = serializers.CharField()
    ic_number = serializers.CharField()
    action = serializers.ChoiceField(choices=list(ClockRecord.EVENT_FIELDS))
    lat = serializers.FloatField(required=False, allow_null=True)
    lng = serializers.FloatField(required=False, allow_null=True)
    photo = serializers.CharField(required=False, allow_blank=True)
    outlet_id = serializers.IntegerField(required=False, allow_null=True)


class EmployeeIdentitySerializer(serializers.Serializer):
    employee_id = serializers.CharField()
    ic_number = serializers.CharField()
    year = serializers.IntegerField(required=False)
    month = serializers.IntegerField(required=False, min_value=1, max_value=12)


class AttendanceFilterSerializer(MonthYearQuerySerializer):
    employee_id = serializers.IntegerField(required=False)
    outlet_id = serializers.IntegerField(required=False)
    status = serializers.ChoiceField(choices=ClockRecord.STATUS_CHOICES, required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    region = serializers.CharField(required=False)


class AttendanceUpsertSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField()
    work_date = serializers.DateField()
    outlet_id = serializers.IntegerField(required=False, allow_null=True)
    clock_in_1 = serializers.TimeField(required=False, allow_null=True)
    clock_out_1 = serializers.TimeField(required=False, allow_null=True)
    clock_in_2 = serializers.TimeField(required=False, allow_null=True)
    clock_out_2 = serializers.TimeField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ActionTimeSerializer(serializers.Serializer):
    time = serializers.TimeField(required=False, allow_null=True)
    location = serializers.CharField(required=False, allow_blank=True, max_length=100)
    photo = serializers.CharField(required=False, allow_blank=True)


class HoursSerializer(serializers.Serializer):
    total_hours = serializers.DecimalField(required=False, allow_null=True, **HOURS)
    ot_hours = serializers.DecimalField(required=False, allow_null=True, **HOURS)


class ManualAttendanceSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField()
    work_date = serializers.DateField()
    outlet_id = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    total_hours = serializers.DecimalField(default=0, **HOURS)
    ot_hours = serializers.DecimalField(default=0, **HOURS)


class ApproveWithScheduleSerializer(serializers.Serializer):
    shift_template_id = serializers.IntegerField()
    is_public_holiday = serializers.BooleanField(default=False)


class MarkReviewedSerializer(serializers.Serializer):
    total_work_minutes = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    ot_minutes = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


# ---------- schedules ----------

class ScheduleFilterSerializer(MonthYearQuerySerializer):
    employee_id = serializers.IntegerField(required=False)
    outlet_id = serializers.IntegerField(required=False)
    department_id = serializers.IntegerField(required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)


class ScheduleWriteSerializer(serializers.Serializer):
    """Create body; updates validate the same fields with partial=True."""
    employee_id = serializers.IntegerField()
    schedule_date = serializers.DateField()
    shift_template_id = serializers.IntegerField(required=False, allow_null=True)
    shift_start = serializers.TimeField(required=False, allow_null=True)
    shift_end = serializers.TimeField(required=False, allow_null=True)
    break_duration = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    status = serializers.ChoiceField(choices=Schedule.STATUS_CHOICES, required=False)
    is_public_holiday = serializers.BooleanField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    outlet_id = serializers.IntegerField(required=False, allow_null=True)
    department_id = serializers.IntegerField(required=False, allow_null=True)


class ScheduleBulkSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    days_of_week = serializers.ListField(
        child=serializers.IntegerField(min_value=0, max_value=6), required=False, allow_null=True,
        help_text='Sunday = 0 ... Saturday = 6; all days when omitted',
    )
    shift_template_id = serializers.IntegerField(required=False, allow_null=True)
    shift_start = serializers.TimeField(required=False, allow_null=True)
    shift_end = serializers.TimeField(required=False, allow_null=True)
    is_public_holiday = serializers.BooleanField(default=False)
    outlet_id = serializers.IntegerField(required=False, allow_null=True)
    department_id = serializers.IntegerField(required=False, allow_null=True)

    def validate(self, attrs):
        if attrs['end_date'] < attrs['start_date']:
            raise serializers.ValidationError({'end_date': 'end_date must not be before start_date'})
        return attrs


class CalendarQuerySerializer(MonthYearQuerySerializer):
    outlet_id = serializers.IntegerField(required=False)
    department_id = serializers.IntegerField(required=False)


class ShiftTemplateWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    code = serializers.CharField(max_length=20)
    start_time = serializers.TimeField(required=False, allow_null=True)
    end_time = serializers.TimeField(required=False, allow_null=True)
    break_duration = serializers.IntegerField(required=False, min_value=0)
    color = serializers.CharField(required=False, max_length=20)
    is_off = serializers.BooleanField(required=False)
    is_active = serializers.BooleanField(required=False)


class IncludeInactiveSerializer(serializers.Serializer):
    include_inactive = serializers.BooleanField(default=False)


class WeeklyRosterQuerySerializer(serializers.Serializer):
    start_date = serializers.DateField(required=False)
    outlet_id = serializers.IntegerField(required=False)
    department_id = serializers.IntegerField(required=False)


class DepartmentWeeklyQuerySerializer(serializers.Serializer):
    department_id = serializers.IntegerField()
    start_date = serializers.DateField(required=False)


class DepartmentMonthlyQuerySerializer(serializers.Serializer):
    department_id = serializers.IntegerField()
    month = serializers.RegexField(MONTH, required=False, help_text='YYYY-MM')


class RosterAssignSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField()
    schedule_date = serializers.DateField()
    shift_template_id = serializers.IntegerField()
    is_public_holiday = serializers.BooleanField(default=False)
    outlet_id = serializers.IntegerField(required=False, allow_null=True)
    department_id = serializers.IntegerField(required=False, allow_null=True)


class RosterBulkAssignSerializer(serializers.Serializer):
    assignments = RosterAssignSerializer(many=True, allow_empty=False)
    outlet_id = serializers.IntegerField(required=False, allow_null=True)
    department_id = serializers.IntegerField(required=False, allow_null=True)


class RosterClearSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField()
    schedule_date = serializers.DateField()


class CopyMonthSerializer(serializers.Serializer):
    department_id = serializers.IntegerField()
    from_month = serializers.RegexField(MONTH, help_text='YYYY-MM')
    to_month = serializers.RegexField(MONTH, help_text='YYYY-MM')


class ExtraShiftFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ExtraShiftRequest.STATUS_CHOICES, required=False)
    outlet_id = serializers.IntegerField(required=False)


class ExtraShiftCreateSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField()
    request_date = serializers.DateField()
    shift_template_id = serializers.IntegerField(required=False, allow_null=True)
    shift_start = serializers.TimeField(required=False, allow_null=True)
    shift_end = serializers.TimeField(required=False, allow_null=True)
    outlet_id = serializers.IntegerField(required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True)


# ---------- leave ----------

class LeaveFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=LeaveRequest.STATUS_CHOICES, required=False)
    employee_id = serializers.IntegerField(required=False)
    year = serializers.IntegerField(required=False)


class LeaveCreateSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField()
    leave_type_id = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    total_days = serializers.DecimalField(max_digits=5, decimal_places=1, min_value=0, required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True)


class YearQuerySerializer(serializers.Serializer):
    year = serializers.IntegerField(required=False, min_value=2000)


# ---------- resignations ----------

class ResignationFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Resignation.STATUS_CHOICES, required=False)
    outlet_id = serializers.IntegerField(required=False)


class ResignationWriteSerializer(serializers.Serializer):
    """Create body; updates validate the same fields with partial=True."""
    employee_id = serializers.IntegerField()
    notice_date = serializers.DateField()
    last_working_day = serializers.DateField()
    reason = serializers.CharField(required=False, allow_blank=True)
    remarks = serializers.CharField(required=False, allow_blank=True)
    leave_encashment_days = serializers.DecimalField(max_digits=6, decimal_places=2, required=False, allow_null=True)
    leave_encashment_amount = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)


class WaiveNoticeSerializer(serializers.Serializer):
    waive = serializers.BooleanField(default=True)


class SettlementOptionsSerializer(serializers.Serializer):
    waive_notice = serializers.BooleanField(required=False, allow_null=True)


class SettlementPreviewSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField()
    last_working_day = serializers.DateField()


class ResignationProcessSerializer(serializers.Serializer):
    override_clearance = serializers.BooleanField(default=False)
    final_salary_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    settlement_date = serializers.DateField(required=False, allow_null=True)


class ClearanceItemUpdateSerializer(serializers.Serializer):
    is_completed = serializers.BooleanField()
    remarks = serializers.CharField(required=False, allow_blank=True, allow_null=True)


# ---------- admin ----------

class PageQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(default=50, min_value=1)
    offset = serializers.IntegerField(default=0, min_value=0)


class RetentionLogQuerySerializer(PageQuerySerializer):
    limit = serializers.IntegerField(default=100, min_value=1)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)


class RetentionCleanupSerializer(serializers.Serializer):
    dry_run = serializers.BooleanField(default=True)
    limit = serializers.IntegerField(default=100, min_value=1)


class ShiftQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)


class DriverSyncSerializer(serializers.Serializer):
    """Either one ``date`` or a ``start``/``end`` range; no body means yesterday and today."""
    date = serializers.DateField(required=False, allow_null=True)
    start = serializers.DateField(required=False, allow_null=True)
    end = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        if bool(attrs.get('start')) != bool(attrs.get('end')):
            raise serializers.ValidationError('start and end must be given together')
        if attrs.get('start') and attrs['end'] < attrs['start']:
            raise serializers.ValidationError({'end': 'end must not be before start'})
        return attrs


class JobRunSerializer(serializers.Serializer):
    date = serializers.DateField(required=False, allow_null=True)
    dry_run = serializers.BooleanField(default=False)

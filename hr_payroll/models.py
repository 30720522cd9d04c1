import re
from datetime import date
from decimal import Decimal

from django.db import models
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from core.models import Company, Outlet
from .utils import add_months, local_today, span_minutes


# ==================== ORGANISATION ====================

class Department(models.Model):
    """
    Functional group of a company. Department-grouped companies build their
    rosters and commission pools per department.
    """
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='departments', verbose_name=_("Company"))
    name = models.CharField(_("Name"), max_length=100)
    code = models.CharField(_("Code"), max_length=20, blank=True)
    allowed_claim_types = models.JSONField(
        _("Allowed Claim Types"),
        null=True,
        blank=True,
        help_text=_("Claim categories this department may submit. Empty means all.")
    )
    is_active = models.BooleanField(_("Is Active"), default=True)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    def __str__(self):
        return f"{self.name} - {self.company.name}"

    class Meta:
        verbose_name = _("Department")
        verbose_name_plural = _("Departments")
        unique_together = ('company', 'name')
        ordering = ['name']


class Position(models.Model):
    ROLE_CHOICES = [
        ('manager', _('Manager')),
        ('supervisor', _('Supervisor')),
        ('crew', _('Crew')),
        ('admin', _('Admin')),
        ('director', _('Director')),
        ('boss', _('Boss')),
        ('super_admin', _('Super Admin')),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='positions', verbose_name=_("Company"))
    name = models.CharField(_("Name"), max_length=100)
    role = models.CharField(_("Role"), max_length=20, choices=ROLE_CHOICES, default='crew')
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.get_role_display()})"

    class Meta:
        verbose_name = _("Position")
        verbose_name_plural = _("Positions")
        unique_together = ('company', 'name')
        ordering = ['name']


# ==================== EMPLOYEE INFORMATION ====================

class Employee(models.Model):

    STATUS_CHOICES = [
        ('active', _('Active')),
        ('resigned', _('Resigned')),
        ('inactive', _('Inactive')),
    ]

    EMPLOYMENT_STATUS_CHOICES = [
        ('employed', _('Employed')),
        ('notice', _('Serving Notice')),
        ('resigned_pending', _('Resigned (Pending Processing)')),
        ('exited', _('Exited')),
    ]

    MARITAL_CHOICES = [
        ('single', _('Single')),
        ('married', _('Married')),
        ('divorced', _('Divorced')),
        ('widowed', _('Widowed')),
    ]

    # --- Organisation ---
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='employees', verbose_name=_("Company"))
    outlet = models.ForeignKey(
        Outlet,
        on_delete=models.SET_NULL,
        related_name='employees',
        verbose_name=_("Outlet"),
        blank=True,
        null=True
    )
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        related_name='employees',
        verbose_name=_("Department"),
        blank=True,
        null=True
    )
    position = models.ForeignKey(
        Position,
        on_delete=models.SET_NULL,
        related_name='employees',
        verbose_name=_("Position"),
        blank=True,
        null=True
    )

    # --- Identifiers ---
    employee_id = models.CharField(_("Employee ID"), max_length=50, db_index=True)
    name = models.CharField(_("Full Name"), max_length=200)
    ic_number = models.CharField(_("IC Number"), max_length=20, blank=True)
    email = models.EmailField(_("Email"), blank=True)
    phone = models.CharField(_("Phone"), max_length=20, blank=True)
    region = models.CharField(_("Region"), max_length=50, blank=True)

    # --- Lifecycle ---
    join_date = models.DateField(_("Join Date"), null=True, blank=True)
    status = models.CharField(_("Status"), max_length=20, choices=STATUS_CHOICES, default='active', db_index=True)
    employment_status = models.CharField(
        _("Employment Status"),
        max_length=20,
        choices=EMPLOYMENT_STATUS_CHOICES,
        default='employed'
    )
    last_working_day = models.DateField(_("Last Working Day"), null=True, blank=True)
    resign_date = models.DateField(_("Resign Date"), null=True, blank=True)

    # --- Pay ---
    default_basic_salary = models.DecimalField(_("Basic Salary"), max_digits=10, decimal_places=2, default=Decimal('0.00'))
    default_bonus = models.DecimalField(_("Annual Bonus"), max_digits=10, decimal_places=2, default=Decimal('0.00'))
    ot_rate = models.DecimalField(
        _("OT Rate Multiplier"),
        max_digits=4,
        decimal_places=2,
        default=Decimal('1.50')
    )

    # --- Tax reliefs ---
    marital_status = models.CharField(_("Marital Status"), max_length=20, choices=MARITAL_CHOICES, default='single')
    spouse_working = models.BooleanField(_("Spouse Working"), default=False)
    children_count = models.PositiveIntegerField(_("Number of Children"), default=0)

    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        verbose_name = _("Employee")
        verbose_name_plural = _("Employees")
        unique_together = ('company', 'employee_id')
        ordering = ['employee_id']

    def __str__(self):
        return f"{self.name} ({self.employee_id})"

    def save(self, *args, **kwargs):
        if self.ic_number:
            self.ic_number = self.normalize_ic(self.ic_number)
        super().save(*args, **kwargs)

    @staticmethod
    def normalize_ic(value):
        """Strip dashes, spaces and anything else that is not a digit."""
        return re.sub(r'\D', '', value or '')

    @property
    def position_role(self):
        return self.position.role if self.position_id else None

    def get_age(self, on=None):
        """
        Age derived from the YYMMDD prefix of a Malaysian IC.
        Falls back to 30 when the IC cannot be parsed.
        """
        on = on or local_today()
        ic = self.normalize_ic(self.ic_number)
        if len(ic) < 6:
            return 30
        try:
            yy, mm, dd = int(ic[0:2]), int(ic[2:4]), int(ic[4:6])
            century = 1900 if yy > on.year % 100 else 2000
            born = date(century + yy, mm, dd)
        except ValueError:
            return 30
        return on.year - born.year - ((on.month, on.day) < (born.month, born.day))

    def service_months(self, on=None):
        """Whole months of service up to the given date."""
        if not self.join_date:
            return 0
        on = on or local_today()
        months = (on.year - self.join_date.year) * 12 + (on.month - self.join_date.month)
        if on.day < self.join_date.day:
            months -= 1
        return max(0, months)

    @property
    def hourly_rate(self):
        """Payroll OT hourly rate: basic / 26 days / 8 hours."""
        return (self.default_basic_salary or Decimal('0')) / Decimal('26') / Decimal('8')


class Holiday(models.Model):
    """
    Represents a company public holiday.
    """
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='holidays', verbose_name=_("Company"))
    name = models.CharField(_("Name"), max_length=100)
    date = models.DateField(_("Date"))
    description = models.TextField(_("Description"), blank=True, null=True)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    def __str__(self):
        return f"{self.name} - {self.date}"

    class Meta:
        verbose_name = _("Public Holiday")
        verbose_name_plural = _("Public Holidays")
        unique_together = ('company', 'date')
        ordering = ['-date']


# ==================== ROSTER ====================

class ShiftTemplate(models.Model):
    """
    Reusable shift definition. Off templates mark a non-working day.
    """
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='shift_templates', verbose_name=_("Company"))
    name = models.CharField(_("Name"), max_length=100)
    code = models.CharField(_("Code"), max_length=20)
    start_time = models.TimeField(_("Start Time"), null=True, blank=True)
    end_time = models.TimeField(_("End Time"), null=True, blank=True)
    break_duration = models.PositiveIntegerField(_("Break Duration (minutes)"), default=60)
    color = models.CharField(_("Colour"), max_length=20, default='#3B82F6')
    is_off = models.BooleanField(_("Off Day"), default=False)
    is_active = models.BooleanField(_("Is Active"), default=True)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        verbose_name = _("Shift Template")
        verbose_name_plural = _("Shift Templates")
        ordering = ['start_time', 'name']

    def __str__(self):
        return f"{self.code} - {self.name}"

    def clean(self):
        if not self.is_off and (self.start_time is None or self.end_time is None):
            raise ValidationError(_("Working shifts need a start and end time"))

    @property
    def duration_minutes(self):
        """Length of the shift, rolling over midnight for overnight shifts."""
        return span_minutes(self.start_time, self.end_time)


class Schedule(models.Model):
    STATUS_CHOICES = [
        ('scheduled', _('Scheduled')),
        ('off', _('Off')),
        ('completed', _('Completed')),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='schedules', verbose_name=_("Company"))
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='schedules', verbose_name=_("Employee"))
    outlet = models.ForeignKey(
        Outlet, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='schedules', verbose_name=_("Outlet")
    )
    department = models.ForeignKey(
        Department, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='schedules', verbose_name=_("Department")
    )
    schedule_date = models.DateField(_("Date"), db_index=True)
    shift_template = models.ForeignKey(
        ShiftTemplate, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='schedules', verbose_name=_("Shift Template")
    )
    shift_start = models.TimeField(_("Shift Start"), null=True, blank=True)
    shift_end = models.TimeField(_("Shift End"), null=True, blank=True)
    break_duration = models.PositiveIntegerField(_("Break Duration (minutes)"), default=60)
    is_public_holiday = models.BooleanField(_("Public Holiday"), default=False)
    status = models.CharField(_("Status"), max_length=20, choices=STATUS_CHOICES, default='scheduled', null=True, blank=True)
    notes = models.TextField(_("Notes"), blank=True)
    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='created_schedules', verbose_name=_("Created By")
    )
    updated_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='updated_schedules', verbose_name=_("Updated By")
    )
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        verbose_name = _("Schedule")
        verbose_name_plural = _("Schedules")
        unique_together = ('employee', 'schedule_date')
        ordering = ['schedule_date', 'shift_start']

    def __str__(self):
        return f"{self.employee.name} - {self.schedule_date}"


class ScheduleAuditLog(models.Model):
    ACTION_CHOICES = [
        ('create', _('Create')),
        ('update', _('Update')),
        ('delete', _('Delete')),
        ('assign', _('Assign')),
        ('approve', _('Approve')),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, verbose_name=_("Company"))
    schedule_id_ref = models.PositiveIntegerField(_("Schedule ID"), null=True, blank=True)
    employee = models.ForeignKey(Employee, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Employee"))
    action = models.CharField(_("Action"), max_length=20, choices=ACTION_CHOICES)
    old_value = models.JSONField(_("Old Value"), null=True, blank=True)
    new_value = models.JSONField(_("New Value"), null=True, blank=True)
    reason = models.CharField(_("Reason"), max_length=255, blank=True)
    changed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Changed By"))
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)

    class Meta:
        verbose_name = _("Schedule Audit Log")
        verbose_name_plural = _("Schedule Audit Logs")
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.action} schedule #{self.schedule_id_ref}"


class ExtraShiftRequest(models.Model):
    STATUS_CHOICES = [
        ('pending', _('Pending')),
        ('approved', _('Approved')),
        ('rejected', _('Rejected')),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, verbose_name=_("Company"))
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='extra_shift_requests', verbose_name=_("Employee"))
    outlet = models.ForeignKey(Outlet, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Outlet"))
    request_date = models.DateField(_("Requested Date"))
    shift_template = models.ForeignKey(ShiftTemplate, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Shift Template"))
    shift_start = models.TimeField(_("Shift Start"), null=True, blank=True)
    shift_end = models.TimeField(_("Shift End"), null=True, blank=True)
    reason = models.TextField(_("Reason"), blank=True)
    status = models.CharField(_("Status"), max_length=20, choices=STATUS_CHOICES, default='pending')
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Approved By"))
    approved_at = models.DateTimeField(_("Approved At"), null=True, blank=True)
    rejection_reason = models.TextField(_("Rejection Reason"), blank=True)
    schedule = models.ForeignKey(Schedule, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Schedule"))
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        verbose_name = _("Extra Shift Request")
        verbose_name_plural = _("Extra Shift Requests")
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.employee.name} - {self.request_date} ({self.status})"


# ==================== ATTENDANCE ====================

class ClockRecord(models.Model):
    """
    One timesheet row per employee per work date.

    The four events are filled in order: clock_in_1 (start work),
    clock_out_1 (break start), clock_in_2 (after break), clock_out_2
    (end work). Derived totals are recomputed by the attendance engine on
    every write.
    """
    STATUS_CHOICES = [
        ('pending', _('Pending')),
        ('approved', _('Approved')),
        ('rejected', _('Rejected')),
    ]

    EVENT_FIELDS = ('clock_in_1', 'clock_out_1', 'clock_in_2', 'clock_out_2')
    MEDIA_RETENTION_MONTHS = 6

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='clock_records', verbose_name=_("Company"))
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='clock_records', verbose_name=_("Employee"))
    outlet = models.ForeignKey(Outlet, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Outlet"))
    work_date = models.DateField(_("Work Date"), db_index=True)

    clock_in_1 = models.TimeField(_("Clock In"), null=True, blank=True)
    clock_out_1 = models.TimeField(_("Break Start"), null=True, blank=True)
    clock_in_2 = models.TimeField(_("Break End"), null=True, blank=True)
    clock_out_2 = models.TimeField(_("Clock Out"), null=True, blank=True)

    location_in_1 = models.CharField(_("Clock In Location"), max_length=100, blank=True)
    location_out_1 = models.CharField(_("Break Start Location"), max_length=100, blank=True)
    location_in_2 = models.CharField(_("Break End Location"), max_length=100, blank=True)
    location_out_2 = models.CharField(_("Clock Out Location"), max_length=100, blank=True)

    photo_in_1 = models.TextField(_("Clock In Photo"), blank=True)
    photo_out_1 = models.TextField(_("Break Start Photo"), blank=True)
    photo_in_2 = models.TextField(_("Break End Photo"), blank=True)
    photo_out_2 = models.TextField(_("Clock Out Photo"), blank=True)

    total_work_minutes = models.IntegerField(_("Work Minutes"), default=0)
    total_break_minutes = models.IntegerField(_("Break Minutes"), default=0)
    ot_minutes = models.IntegerField(_("OT Minutes"), default=0)
    total_hours = models.DecimalField(_("Work Hours"), max_digits=6, decimal_places=2, default=Decimal('0.00'))
    ot_hours = models.DecimalField(_("OT Hours"), max_digits=6, decimal_places=2, default=Decimal('0.00'))

    status = models.CharField(_("Status"), max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)
    approved_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='approved_clock_records', verbose_name=_("Approved By")
    )
    approved_at = models.DateTimeField(_("Approved At"), null=True, blank=True)
    rejection_reason = models.TextField(_("Rejection Reason"), blank=True)

    has_schedule = models.BooleanField(_("Has Schedule"), default=False)
    is_auto_clock_out = models.BooleanField(_("Auto Clock-Out"), default=False)
    needs_admin_review = models.BooleanField(_("Needs Admin Review"), default=False)
    reviewed_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='reviewed_clock_records', verbose_name=_("Reviewed By")
    )
    reviewed_at = models.DateTimeField(_("Reviewed At"), null=True, blank=True)

    ot_approved = models.BooleanField(_("OT Approved"), null=True, blank=True)
    ot_approved_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='ot_decisions', verbose_name=_("OT Decided By")
    )
    ot_approved_at = models.DateTimeField(_("OT Decided At"), null=True, blank=True)
    ot_rejection_reason = models.TextField(_("OT Rejection Reason"), blank=True)

    notes = models.TextField(_("Notes"), blank=True)

    media_retention_eligible_at = models.DateField(_("Media Retention Eligible At"), null=True, blank=True)
    media_deleted_at = models.DateTimeField(_("Media Deleted At"), null=True, blank=True)
    media_deletion_logged = models.BooleanField(_("Media Deletion Logged"), default=False)

    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        verbose_name = _("Clock Record")
        verbose_name_plural = _("Clock Records")
        unique_together = ('employee', 'work_date')
        ordering = ['-work_date', 'employee__employee_id']

    def __str__(self):
        return f"{self.employee.name} - {self.work_date}"

    def save(self, *args, **kwargs):
        if self.media_retention_eligible_at is None and self.work_date:
            self.media_retention_eligible_at = add_months(self.work_date, self.MEDIA_RETENTION_MONTHS)
        super().save(*args, **kwargs)

    def next_action(self):
        for event in self.EVENT_FIELDS:
            if getattr(self, event) is None:
                return event
        return None


# ==================== LEAVE ====================

class LeaveType(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='leave_types', verbose_name=_("Company"))
    name = models.CharField(_("Name"), max_length=100)
    code = models.CharField(_("Code"), max_length=20)
    is_paid = models.BooleanField(_("Paid"), default=True)
    default_days = models.DecimalField(_("Default Days"), max_digits=5, decimal_places=1, default=Decimal('0'))
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    def __str__(self):
        return f"{self.name} - {self.company.name}"

    class Meta:
        verbose_name = _("Leave Type")
        verbose_name_plural = _("Leave Types")
        unique_together = ('company', 'code')
        ordering = ['name']


class LeaveBalance(models.Model):
    """
    Tracks the leave balance for each employee by leave type and year.
    """
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='leave_balances', verbose_name=_("Employee"))
    leave_type = models.ForeignKey(LeaveType, on_delete=models.CASCADE, verbose_name=_("Leave Type"))
    year = models.PositiveIntegerField(_("Year"))
    entitled_days = models.DecimalField(_("Entitled Days"), max_digits=6, decimal_places=2, default=Decimal('0'))
    carried_forward = models.DecimalField(_("Carried Forward"), max_digits=6, decimal_places=2, default=Decimal('0'))
    used_days = models.DecimalField(_("Used Days"), max_digits=6, decimal_places=2, default=Decimal('0'))
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    def __str__(self):
        return f"{self.employee.employee_id} - {self.leave_type.name} ({self.year})"

    @property
    def remaining_days(self):
        return self.entitled_days + self.carried_forward - self.used_days

    class Meta:
        verbose_name = _("Leave Balance")
        verbose_name_plural = _("Leave Balances")
        unique_together = ('employee', 'leave_type', 'year')
        ordering = ['employee__employee_id', 'year']


class LeaveRequest(models.Model):
    STATUS_CHOICES = (
        ('pending', _('Pending')),
        ('approved', _('Approved')),
        ('rejected', _('Rejected')),
        ('cancelled', _('Cancelled')),
    )

    company = models.ForeignKey(Company, on_delete=models.CASCADE, verbose_name=_("Company"))
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='leave_requests', verbose_name=_("Employee"))
    leave_type = models.ForeignKey(LeaveType, on_delete=models.CASCADE, verbose_name=_("Leave Type"))
    start_date = models.DateField(_("Start Date"))
    end_date = models.DateField(_("End Date"))
    total_days = models.DecimalField(_("Total Days"), max_digits=5, decimal_places=1, default=Decimal('1'))
    reason = models.TextField(_("Reason"), blank=True)
    status = models.CharField(_("Status"), max_length=20, choices=STATUS_CHOICES, default='pending')
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, verbose_name=_("Approved By"), null=True, blank=True)
    approved_at = models.DateTimeField(_("Approved At"), null=True, blank=True)
    rejection_reason = models.TextField(_("Rejection Reason"), blank=True)
    cancelled_at = models.DateTimeField(_("Cancelled At"), null=True, blank=True)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    def __str__(self):
        return f"{self.employee.employee_id} - {self.start_date} to {self.end_date}"

    def clean(self):
        if self.end_date < self.start_date:
            raise ValidationError(_("End date cannot be earlier than start date"))

    class Meta:
        verbose_name = _("Leave Request")
        verbose_name_plural = _("Leave Requests")
        ordering = ['-start_date']


# ==================== RESIGNATION ====================

class Resignation(models.Model):
    """
    Employee resignation and exit workflow.

    pending -> clearing -> completed, with rejected / withdrawn / cancelled
    as side exits. Only one non-terminal row may exist per employee.
    """
    STATUS_CHOICES = [
        ('pending', _('Pending')),
        ('clearing', _('Clearing')),
        ('completed', _('Completed')),
        ('rejected', _('Rejected')),
        ('withdrawn', _('Withdrawn')),
        ('cancelled', _('Cancelled')),
    ]
    INACTIVE_STATUSES = ('cancelled', 'withdrawn', 'rejected')

    company = models.ForeignKey(Company, on_delete=models.CASCADE, verbose_name=_("Company"))
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='resignations', verbose_name=_("Employee"))
    notice_date = models.DateField(_("Notice Date"))
    last_working_day = models.DateField(_("Last Working Day"))
    reason = models.TextField(_("Reason"), blank=True)
    remarks = models.TextField(_("Remarks"), blank=True)
    status = models.CharField(_("Status"), max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)

    required_notice_days = models.PositiveIntegerField(_("Required Notice Days"), default=0)
    actual_notice_days = models.IntegerField(_("Actual Notice Days"), default=0)
    notice_waived = models.BooleanField(_("Notice Waived"), default=False)
    leave_encashment_days = models.DecimalField(_("Encashment Days"), max_digits=6, decimal_places=2, default=Decimal('0'))
    leave_encashment_amount = models.DecimalField(_("Encashment Amount"), max_digits=10, decimal_places=2, default=Decimal('0'))

    clearance_completed = models.BooleanField(_("Clearance Completed"), default=False)
    clearance_completed_at = models.DateTimeField(_("Clearance Completed At"), null=True, blank=True)

    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_resignations', verbose_name=_("Approved By"))
    approved_at = models.DateTimeField(_("Approved At"), null=True, blank=True)
    rejection_reason = models.TextField(_("Rejection Reason"), blank=True)

    settlement_breakdown = models.JSONField(_("Settlement Breakdown"), null=True, blank=True)
    final_salary_amount = models.DecimalField(_("Final Settlement Amount"), max_digits=12, decimal_places=2, null=True, blank=True)
    settlement_date = models.DateField(_("Settlement Date"), null=True, blank=True)
    processed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='processed_resignations', verbose_name=_("Processed By"))
    processed_at = models.DateTimeField(_("Processed At"), null=True, blank=True)

    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    def __str__(self):
        return f"{self.employee.name} - {self.last_working_day} ({self.status})"

    class Meta:
        verbose_name = _("Resignation")
        verbose_name_plural = _("Resignations")
        ordering = ['-created_at']


class ClearanceTemplate(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='clearance_templates', verbose_name=_("Company"))
    category = models.CharField(_("Category"), max_length=50)
    item_name = models.CharField(_("Item"), max_length=200)
    sort_order = models.PositiveIntegerField(_("Sort Order"), default=0)
    is_active = models.BooleanField(_("Is Active"), default=True)

    def __str__(self):
        return f"{self.category}: {self.item_name}"

    class Meta:
        verbose_name = _("Clearance Template")
        verbose_name_plural = _("Clearance Templates")
        ordering = ['sort_order', 'id']


class ClearanceItem(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE, verbose_name=_("Company"))
    resignation = models.ForeignKey(Resignation, on_delete=models.CASCADE, related_name='clearance_items', verbose_name=_("Resignation"))
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, verbose_name=_("Employee"))
    category = models.CharField(_("Category"), max_length=50)
    item_name = models.CharField(_("Item"), max_length=200)
    sort_order = models.PositiveIntegerField(_("Sort Order"), default=0)
    is_completed = models.BooleanField(_("Completed"), default=False)
    completed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Completed By"))
    completed_at = models.DateTimeField(_("Completed At"), null=True, blank=True)
    remarks = models.TextField(_("Remarks"), blank=True)

    def __str__(self):
        return f"{self.item_name} ({'done' if self.is_completed else 'open'})"

    class Meta:
        verbose_name = _("Clearance Item")
        verbose_name_plural = _("Clearance Items")
        ordering = ['sort_order', 'category', 'id']


# ==================== DATA RETENTION ====================

class DataRetentionLog(models.Model):
    """Append-only audit of media deletions."""
    company = models.ForeignKey(Company, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Company"))
    table_name = models.CharField(_("Table"), max_length=100)
    record_id = models.PositiveIntegerField(_("Record ID"))
    record_date = models.DateField(_("Record Date"), null=True, blank=True)
    employee = models.ForeignKey(Employee, on_delete=models.SET_NULL, null=True, blank=True, verbose_name=_("Employee"))
    data_type = models.CharField(_("Data Type"), max_length=50)
    fields_cleared = models.JSONField(_("Fields Cleared"), default=list)
    retention_policy = models.CharField(_("Retention Policy"), max_length=50)
    deleted_by = models.CharField(_("Deleted By"), max_length=100)
    verified = models.BooleanField(_("Verified"), default=False)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)

    def __str__(self):
        return f"{self.table_name}#{self.record_id} {self.data_type}"

    class Meta:
        verbose_name = _("Data Retention Log")
        verbose_name_plural = _("Data Retention Logs")
        ordering = ['-created_at']

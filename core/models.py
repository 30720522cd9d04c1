from django.db import models
from django.conf import settings
from django.utils.translation import gettext_lazy as _
from django.core.exceptions import ValidationError

from .company_settings import CompanySettings


# ==================== BASE MODELS ====================

class TimeStampedModel(models.Model):
    """Abstract base model with timestamp fields"""
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        abstract = True


class Company(TimeStampedModel):
    """
    Tenant of the HRMS.

    Every operational row carries a company and every query is filtered by it.
    The attendance regime decides how daily totals and overtime are derived,
    the grouping type decides whether rosters and commission are organised
    by outlet or by department.
    """
    REGIME_MIMIX = 'mimix'
    REGIME_AA_ALIVE = 'aa_alive'
    REGIME_CHOICES = [
        (REGIME_MIMIX, _('Mimix (8h30 shift, clamped start, 30-minute OT steps)')),
        (REGIME_AA_ALIVE, _('AA Alive (9h shift, two sessions, raw OT)')),
    ]

    GROUPING_OUTLET = 'outlet'
    GROUPING_DEPARTMENT = 'department'
    GROUPING_CHOICES = [
        (GROUPING_OUTLET, _('Outlet')),
        (GROUPING_DEPARTMENT, _('Department')),
    ]

    company_code = models.CharField(
        _("Company Code"),
        max_length=20,
        unique=True,
        db_index=True,
        help_text=_("Unique identifier for the company")
    )
    name = models.CharField(_("Company Name"), max_length=200, db_index=True)

    address_line1 = models.CharField(_("Address Line 1"), max_length=255, blank=True)
    city = models.CharField(_("City"), max_length=100, blank=True)
    state = models.CharField(_("State"), max_length=100, blank=True)
    country = models.CharField(_("Country"), max_length=100, default='Malaysia')
    registration_number = models.CharField(_("Registration Number"), max_length=50, blank=True)
    currency = models.CharField(_("Currency"), max_length=10, default='MYR')

    attendance_regime = models.CharField(
        _("Attendance Regime"),
        max_length=20,
        choices=REGIME_CHOICES,
        default=REGIME_MIMIX,
    )
    grouping_type = models.CharField(
        _("Roster Grouping"),
        max_length=20,
        choices=GROUPING_CHOICES,
        default=GROUPING_DEPARTMENT,
    )
    holiday_notifications_enabled = models.BooleanField(
        _("Holiday Notifications Enabled"),
        default=True,
        help_text=_("If disabled, the public holiday notifier skips this company")
    )
    settings = models.JSONField(
        _("Settings"),
        default=dict,
        blank=True,
        help_text=_("Settlement and commission configuration")
    )

    is_active = models.BooleanField(_("Is Active"), default=True, db_index=True)

    class Meta:
        verbose_name = _("Company")
        verbose_name_plural = _("Companies")
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.company_code})"

    def clean(self):
        super().clean()
        if self.settings is not None and not isinstance(self.settings, dict):
            raise ValidationError({'settings': _('Settings must be a JSON object.')})

    @property
    def is_aa_alive(self):
        return self.attendance_regime == self.REGIME_AA_ALIVE

    @property
    def is_outlet_grouped(self):
        return self.grouping_type == self.GROUPING_OUTLET

    def get_settings(self):
        """Typed view over the JSON settings blob."""
        return CompanySettings.from_dict(self.settings)


class Outlet(TimeStampedModel):
    """A physical store belonging to a company."""
    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name='outlets',
        verbose_name=_("Company")
    )
    name = models.CharField(_("Name"), max_length=150)
    code = models.CharField(_("Code"), max_length=30, blank=True)
    address = models.CharField(_("Address"), max_length=255, blank=True)
    supervisor = models.ForeignKey(
        'hr_payroll.Employee',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='supervised_outlets',
        verbose_name=_("Supervisor")
    )
    min_staff = models.PositiveIntegerField(_("Minimum Staff"), default=0)
    is_active = models.BooleanField(_("Is Active"), default=True)

    class Meta:
        verbose_name = _("Outlet")
        verbose_name_plural = _("Outlets")
        ordering = ['name']
        unique_together = ('company', 'name')

    def __str__(self):
        return f"{self.name} - {self.company.name}"


class UserProfile(TimeStampedModel):
    """
    Admin-side identity of a login user.

    The admin role decides elevated access. When the user is also an employee,
    the employee's position role (manager / supervisor / crew) narrows what
    the user may do with schedules.
    """
    ROLE_SUPER_ADMIN = 'super_admin'
    ROLE_BOSS = 'boss'
    ROLE_ADMIN = 'admin'
    ROLE_DIRECTOR = 'director'
    ROLE_HR = 'hr'
    ROLE_MANAGER = 'manager'
    ROLE_SUPERVISOR = 'supervisor'
    ROLE_STAFF = 'staff'
    ROLE_CHOICES = [
        (ROLE_SUPER_ADMIN, _('Super Admin')),
        (ROLE_BOSS, _('Boss')),
        (ROLE_ADMIN, _('Admin')),
        (ROLE_DIRECTOR, _('Director')),
        (ROLE_HR, _('HR')),
        (ROLE_MANAGER, _('Manager')),
        (ROLE_SUPERVISOR, _('Supervisor')),
        (ROLE_STAFF, _('Staff')),
    ]
    ELEVATED_ROLES = (ROLE_SUPER_ADMIN, ROLE_BOSS, ROLE_ADMIN, ROLE_DIRECTOR)

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='profile',
        verbose_name=_("User")
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.PROTECT,
        related_name='user_profiles',
        verbose_name=_("Company"),
        null=True,
        blank=True,
        help_text=_("Empty only for super admins, who select a company per request")
    )
    outlet = models.ForeignKey(
        Outlet,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='user_profiles',
        verbose_name=_("Outlet")
    )
    employee = models.ForeignKey(
        'hr_payroll.Employee',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='user_profiles',
        verbose_name=_("Employee")
    )
    role = models.CharField(_("Admin Role"), max_length=20, choices=ROLE_CHOICES, default=ROLE_STAFF)
    phone_number = models.CharField(_("Phone Number"), max_length=20, blank=True)
    is_active = models.BooleanField(_("Is Active"), default=True, db_index=True)

    class Meta:
        verbose_name = _("User Profile")
        verbose_name_plural = _("User Profiles")
        ordering = ['-created_at']

    def __str__(self):
        company = self.company.name if self.company else _("All companies")
        return f"{self.get_full_name()} - {company}"

    def clean(self):
        super().clean()
        if not self.company and self.role != self.ROLE_SUPER_ADMIN:
            raise ValidationError({
                'company': _('User must be associated with a company.')
            })

    def get_full_name(self):
        return self.user.get_full_name() or self.user.username

    @property
    def is_elevated(self):
        return self.role in self.ELEVATED_ROLES

    @property
    def position_role(self):
        if self.employee_id and self.employee.position_id:
            return self.employee.position.role
        return None


class Notification(TimeStampedModel):
    """
    Persisted notification row. Delivery is handled elsewhere.

    Employee notifications carry an employee; admin notifications leave it
    empty and are addressed to the company's admins.
    """
    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name='notifications',
        verbose_name=_("Company")
    )
    employee = models.ForeignKey(
        'hr_payroll.Employee',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='notifications',
        verbose_name=_("Employee")
    )
    notification_type = models.CharField(_("Type"), max_length=50)
    title = models.CharField(_("Title"), max_length=200)
    message = models.TextField(_("Message"))
    reference_type = models.CharField(_("Reference Type"), max_length=50, blank=True)
    reference_id = models.PositiveIntegerField(_("Reference ID"), null=True, blank=True)
    is_read = models.BooleanField(_("Is Read"), default=False)

    class Meta:
        verbose_name = _("Notification")
        verbose_name_plural = _("Notifications")
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['employee', 'reference_type', 'reference_id']),
        ]

    def __str__(self):
        return self.title

from rest_framework import serializers

from hr_payroll.serializers import MonthYearQuerySerializer, MonthYearSerializer, YearQuerySerializer
from .models import Claim, OutletSales, SalaryAdvance

MONEY = {'max_digits': 12, 'decimal_places': 2}


# ==================== COMMISSION ====================

class SalesFilterSerializer(MonthYearQuerySerializer):
    outlet_id = serializers.IntegerField(required=False)
    department_id = serializers.IntegerField(required=False)
    status = serializers.ChoiceField(choices=OutletSales.STATUS_CHOICES, required=False)


class SalesWriteSerializer(serializers.Serializer):
    """Sales of one outlet or one department for a payout month"""
    outlet_id = serializers.IntegerField(required=False, allow_null=True)
    department_id = serializers.IntegerField(required=False, allow_null=True)
    period_month = serializers.IntegerField(min_value=1, max_value=12)
    period_year = serializers.IntegerField(min_value=2000)
    total_sales = serializers.DecimalField(min_value=0, max_digits=14, decimal_places=2)
    commission_rate = serializers.DecimalField(required=False, allow_null=True, min_value=0, max_digits=5, decimal_places=2)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if bool(attrs.get('outlet_id')) == bool(attrs.get('department_id')):
            raise serializers.ValidationError('Exactly one of outlet_id or department_id is required')
        return attrs


# ==================== CLAIMS ====================

class ClaimFilterSerializer(MonthYearQuerySerializer):
    employee_id = serializers.IntegerField(required=False)
    status = serializers.ChoiceField(choices=Claim.STATUS_CHOICES, required=False)
    unlinked_only = serializers.BooleanField(default=False)


class ClaimWriteSerializer(serializers.Serializer):
    """Create body; updates validate the same fields with partial=True."""
    employee_id = serializers.IntegerField()
    claim_date = serializers.DateField()
    category = serializers.CharField(max_length=30)
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    description = serializers.CharField(required=False, allow_blank=True)
    receipt_image = serializers.CharField(required=False, allow_blank=True, help_text='base64 or data URL')
    receipt_url = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_category(self, value):
        value = value.lower()
        if value not in dict(Claim.CATEGORY_CHOICES):
            raise serializers.ValidationError(f'Unknown claim category {value}')
        return value


class ClaimsForPayrollQuerySerializer(MonthYearSerializer):
    employee_id = serializers.IntegerField(required=False)


class NotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class ClaimIdsSerializer(serializers.Serializer):
    claim_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


class LinkToPayrollSerializer(MonthYearSerializer):
    employee_id = serializers.IntegerField()
    payroll_item_id = serializers.IntegerField()


# ==================== SALARY ADVANCES ====================

class AdvanceFilterSerializer(MonthYearQuerySerializer):
    employee_id = serializers.IntegerField(required=False)
    status = serializers.ChoiceField(choices=SalaryAdvance.STATUS_CHOICES, required=False)


class AdvanceWriteSerializer(serializers.Serializer):
    """Create body; updates validate the same fields with partial=True."""
    employee_id = serializers.IntegerField()
    amount = serializers.DecimalField(**MONEY)
    advance_date = serializers.DateField()
    reason = serializers.CharField(required=False, allow_blank=True)
    remarks = serializers.CharField(required=False, allow_blank=True)
    deduction_method = serializers.ChoiceField(choices=SalaryAdvance.DEDUCTION_METHOD_CHOICES, required=False)
    installment_amount = serializers.DecimalField(required=False, allow_null=True, min_value=0, **MONEY)
    expected_deduction_month = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=12)
    expected_deduction_year = serializers.IntegerField(required=False, allow_null=True, min_value=2000)


class AdvanceSummaryQuerySerializer(MonthYearQuerySerializer):
    department_id = serializers.IntegerField(required=False)
    outlet_id = serializers.IntegerField(required=False)


class DeductSerializer(MonthYearQuerySerializer):
    amount = serializers.DecimalField(**MONEY)
    payroll_item_id = serializers.IntegerField(required=False, allow_null=True)

"""
Typed view over ``Company.settings``.

Unknown keys are kept in ``extras`` so newer configuration survives a
round trip through older code.
"""
from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation


def _to_decimal(value, default):
    if value is None or value == '':
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def _to_bool(value, default):
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


@dataclass
class CompanySettings:
    settlement_notice_period_days: int = 30
    settlement_include_prorated_bonus: bool = False
    settlement_leave_encashment_rate: Decimal = Decimal('1.0')
    settlement_working_days_per_month: int = 22
    indoor_sales_basic: Decimal = None
    indoor_sales_commission_rate: Decimal = None
    extras: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data):
        data = dict(data or {})
        defaults = cls()
        known = {f.name for f in fields(cls)} - {'extras'}

        try:
            notice = int(data.get('settlement_notice_period_days', defaults.settlement_notice_period_days))
        except (TypeError, ValueError):
            notice = defaults.settlement_notice_period_days
        try:
            working_days = int(data.get('settlement_working_days_per_month',
                                        defaults.settlement_working_days_per_month))
        except (TypeError, ValueError):
            working_days = defaults.settlement_working_days_per_month
        if working_days <= 0:
            working_days = defaults.settlement_working_days_per_month

        return cls(
            settlement_notice_period_days=notice,
            settlement_include_prorated_bonus=_to_bool(
                data.get('settlement_include_prorated_bonus'), defaults.settlement_include_prorated_bonus
            ),
            settlement_leave_encashment_rate=_to_decimal(
                data.get('settlement_leave_encashment_rate'), defaults.settlement_leave_encashment_rate
            ),
            settlement_working_days_per_month=working_days,
            indoor_sales_basic=_to_decimal(data.get('indoor_sales_basic'), None),
            indoor_sales_commission_rate=_to_decimal(data.get('indoor_sales_commission_rate'), None),
            extras={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self):
        data = dict(self.extras)
        data.update({
            'settlement_notice_period_days': self.settlement_notice_period_days,
            'settlement_include_prorated_bonus': self.settlement_include_prorated_bonus,
            'settlement_leave_encashment_rate': float(self.settlement_leave_encashment_rate),
            'settlement_working_days_per_month': self.settlement_working_days_per_month,
        })
        if self.indoor_sales_basic is not None:
            data['indoor_sales_basic'] = float(self.indoor_sales_basic)
        if self.indoor_sales_commission_rate is not None:
            data['indoor_sales_commission_rate'] = float(self.indoor_sales_commission_rate)
        return data

import calendar
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.utils import timezone

TWO_PLACES = Decimal('0.01')


def money(value):
    """Round to 2 decimal places, half up."""
    if value is None:
        value = 0
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def local_now():
    """Current time in the configured company time zone."""
    return timezone.localtime(timezone.now())


def local_today():
    return local_now().date()


def add_months(value, months):
    """Calendar month arithmetic, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def month_bounds(year, month):
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def daterange(start, end):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def count_weekdays(start, end):
    """Mon-Fri days between start and end inclusive."""
    if end < start:
        return 0
    return sum(1 for d in daterange(start, end) if d.weekday() < 5)


def minutes_of(value):
    """Minutes since midnight for a time (seconds ignored)."""
    if value is None:
        return None
    return value.hour * 60 + value.minute


def span_minutes(start, end):
    """Minutes from start to end, rolling over midnight when end < start."""
    if start is None or end is None:
        return 0
    diff = minutes_of(end) - minutes_of(start)
    if diff < 0:
        diff += 1440
    return diff


def add_minutes_to_time(value, minutes):
    base = datetime.combine(date(2000, 1, 1), value)
    return (base + timedelta(minutes=minutes)).time()


def js_day_of_week(value):
    """Day of week with Sunday = 0 ... Saturday = 6."""
    return (value.weekday() + 1) % 7


def format_time(value):
    return value.strftime('%H:%M') if value else None


def parse_time(value):
    """Accepts HH:MM or HH:MM:SS strings (or time objects)."""
    if value in (None, ''):
        return None
    if hasattr(value, 'hour'):
        return value
    parts = [int(p) for p in str(value).strip().split(':')]
    while len(parts) < 3:
        parts.append(0)
    return datetime.min.replace(hour=parts[0], minute=parts[1], second=parts[2]).time()


def parse_month(value):
    """'YYYY-MM' -> (year, month)."""
    year, month = str(value).split('-')[:2]
    return int(year), int(month)

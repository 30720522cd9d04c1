import logging
from decimal import Decimal, ROUND_HALF_UP

from .utils import minutes_of, span_minutes

logger = logging.getLogger(__name__)

EVENT_FIELDS = ('clock_in_1', 'clock_out_1', 'clock_in_2', 'clock_out_2')


def minutes_to_hours(minutes):
    return (Decimal(minutes or 0) / Decimal(60)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


class AttendanceProcessor:
    """
    Derives daily totals from the four clock events of a record.

    Subclasses implement one company regime each. ``record`` may be a model
    instance or a dict carrying clock_in_1 .. clock_out_2 as ``datetime.time``.
    """
    regime = None
    STANDARD_WORK_MINUTES = 510

    def __init__(self, config_data=None):
        if config_data is None:
            config_data = {}
        self.standard_work_minutes = int(config_data.get('standard_work_minutes', self.STANDARD_WORK_MINUTES))

    def get_config_summary(self):
        return {
            'regime': self.regime,
            'standard_work_minutes': self.standard_work_minutes,
        }

    @staticmethod
    def _times(record):
        if isinstance(record, dict):
            return tuple(record.get(name) for name in EVENT_FIELDS)
        return tuple(getattr(record, name) for name in EVENT_FIELDS)

    def calculate(self, record, shift_start=None):
        in_1, out_1, in_2, out_2 = self._times(record)
        work_minutes, break_minutes = self._work_and_break(in_1, out_1, in_2, out_2, shift_start)
        ot_minutes = self._overtime(work_minutes)
        return {
            'total_work_minutes': work_minutes,
            'total_break_minutes': break_minutes,
            'ot_minutes': ot_minutes,
            'total_hours': minutes_to_hours(work_minutes),
            'ot_hours': minutes_to_hours(ot_minutes),
        }

    def _work_and_break(self, in_1, out_1, in_2, out_2, shift_start):
        raise NotImplementedError

    def _overtime(self, work_minutes):
        return max(0, work_minutes - self.standard_work_minutes)


class MimixAttendanceProcessor(AttendanceProcessor):
    """
    8h30 standard day.

    Early arrivals are clamped to the scheduled shift start. A break of up to
    an hour is paid; only the excess is deducted. OT under an hour is dropped
    and the rest is floored to 30-minute steps.
    """
    regime = 'mimix'
    STANDARD_WORK_MINUTES = 510
    PAID_BREAK_MINUTES = 60
    MINIMUM_OT_MINUTES = 60
    OT_STEP_MINUTES = 30

    def _work_and_break(self, in_1, out_1, in_2, out_2, shift_start):
        if in_1 is None:
            return 0, 0

        start = in_1
        if shift_start is not None and minutes_of(in_1) < minutes_of(shift_start):
            start = shift_start

        last_out = out_2 if out_2 is not None else out_1
        if last_out is None:
            return 0, 0

        gross = span_minutes(start, last_out)

        break_minutes = 0
        if out_1 is not None and in_2 is not None:
            break_minutes = span_minutes(out_1, in_2)

        # mid-day view: the open second session is outside the counted span
        deduction = 0
        if out_2 is not None:
            deduction = max(0, break_minutes - self.PAID_BREAK_MINUTES)
        return max(0, gross - deduction), break_minutes

    def _overtime(self, work_minutes):
        raw = max(0, work_minutes - self.standard_work_minutes)
        if raw < self.MINIMUM_OT_MINUTES:
            return 0
        return (raw // self.OT_STEP_MINUTES) * self.OT_STEP_MINUTES


class AAAliveAttendanceProcessor(AttendanceProcessor):
    """
    9h standard day, two sessions summed directly.

    The break is reported but never deducted and OT is not rounded.
    """
    regime = 'aa_alive'
    STANDARD_WORK_MINUTES = 540

    def _work_and_break(self, in_1, out_1, in_2, out_2, shift_start):
        if in_1 is not None and out_2 is not None and out_1 is None and in_2 is None:
            return span_minutes(in_1, out_2), 0

        total = 0
        if in_1 is not None and out_1 is not None:
            total += span_minutes(in_1, out_1)
        if in_2 is not None and out_2 is not None:
            total += span_minutes(in_2, out_2)

        break_minutes = 0
        if out_1 is not None and in_2 is not None:
            break_minutes = span_minutes(out_1, in_2)
        return total, break_minutes


PROCESSORS = {
    MimixAttendanceProcessor.regime: MimixAttendanceProcessor,
    AAAliveAttendanceProcessor.regime: AAAliveAttendanceProcessor,
}


def get_processor(company, config_data=None):
    """Processor for the company's attendance regime."""
    processor_class = PROCESSORS.get(company.attendance_regime)
    if processor_class is None:
        logger.warning(
            f"Unknown attendance regime '{company.attendance_regime}' for company {company.pk}, using mimix"
        )
        processor_class = MimixAttendanceProcessor
    return processor_class(config_data)

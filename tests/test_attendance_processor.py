from datetime import time
from decimal import Decimal

import pytest

from hr_payroll.attendance_processor import (
    AAAliveAttendanceProcessor, MimixAttendanceProcessor, get_processor, minutes_to_hours,
)


def events(in_1=None, out_1=None, in_2=None, out_2=None):
    return {'clock_in_1': in_1, 'clock_out_1': out_1, 'clock_in_2': in_2, 'clock_out_2': out_2}


class TestMimix:

    def setup_method(self):
        self.processor = MimixAttendanceProcessor()

    def test_early_arrival_is_clamped_to_shift_start(self):
        totals = self.processor.calculate(
            events(time(8, 55), time(12, 30), time(13, 20), time(18, 50)), shift_start=time(9, 0),
        )
        assert totals['total_work_minutes'] == 590
        assert totals['total_break_minutes'] == 50
        assert totals['ot_minutes'] == 60
        assert totals['total_hours'] == Decimal('9.83')
        assert totals['ot_hours'] == Decimal('1.00')

    def test_without_schedule_the_clock_in_counts(self):
        totals = self.processor.calculate(events(time(8, 55), None, None, time(17, 25)))
        assert totals['total_work_minutes'] == 510
        assert totals['ot_minutes'] == 0

    def test_only_break_beyond_an_hour_is_deducted(self):
        totals = self.processor.calculate(events(time(9, 0), time(12, 0), time(13, 30), time(18, 0)))
        # 540 gross, 90 break, 30 over the paid hour
        assert totals['total_work_minutes'] == 510
        assert totals['total_break_minutes'] == 90

    def test_long_break_is_not_deducted_while_the_second_session_is_open(self):
        totals = self.processor.calculate(events(time(9, 0), time(12, 0), time(14, 0)))
        assert totals['total_work_minutes'] == 180
        assert totals['total_break_minutes'] == 120

        closed = self.processor.calculate(events(time(9, 0), time(12, 0), time(14, 0), time(15, 0)))
        assert closed['total_work_minutes'] == 300

    @pytest.mark.parametrize('out_2, expected_ot', [
        (time(18, 29), 0),     # raw 59
        (time(18, 30), 60),    # raw 60
        (time(18, 59), 60),    # raw 89 floors to 60
        (time(19, 0), 90),     # raw 90
        (time(20, 15), 150),   # raw 165 floors to 150
    ])
    def test_ot_threshold_and_half_hour_floor(self, out_2, expected_ot):
        totals = self.processor.calculate(events(time(9, 0), None, None, out_2))
        assert totals['ot_minutes'] == expected_ot

    def test_overnight_shift_rolls_over_midnight(self):
        totals = self.processor.calculate(events(time(22, 0), None, None, time(6, 30)))
        assert totals['total_work_minutes'] == 510

    def test_nothing_to_count_before_any_clock_out(self):
        totals = self.processor.calculate(events(time(9, 0)))
        assert totals['total_work_minutes'] == 0
        assert totals['ot_hours'] == Decimal('0.00')


class TestAAAlive:

    def setup_method(self):
        self.processor = AAAliveAttendanceProcessor()

    def test_two_sessions_are_summed_and_break_is_not_deducted(self):
        totals = self.processor.calculate(events(time(8, 0), time(12, 0), time(13, 0), time(19, 30)))
        assert totals['total_work_minutes'] == 630
        assert totals['total_break_minutes'] == 60
        assert totals['ot_minutes'] == 90
        assert totals['ot_hours'] == Decimal('1.50')

    def test_ot_is_not_rounded(self):
        totals = self.processor.calculate(events(time(8, 0), None, None, time(17, 7)))
        assert totals['total_work_minutes'] == 547
        assert totals['ot_minutes'] == 7

    def test_shift_start_is_ignored(self):
        totals = self.processor.calculate(events(time(7, 0), None, None, time(16, 0)), shift_start=time(9, 0))
        assert totals['total_work_minutes'] == 540

    def test_overnight_session(self):
        totals = self.processor.calculate(events(time(20, 0), time(23, 0), time(23, 30), time(5, 30)))
        assert totals['total_work_minutes'] == 180 + 360


def test_processor_follows_company_regime(mimix, aa_alive):
    assert isinstance(get_processor(mimix), MimixAttendanceProcessor)
    assert isinstance(get_processor(aa_alive), AAAliveAttendanceProcessor)


def test_minutes_to_hours_rounds_half_up():
    assert minutes_to_hours(590) == Decimal('9.83')
    assert minutes_to_hours(0) == Decimal('0.00')

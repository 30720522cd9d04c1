import logging
from datetime import timedelta

from django.db import transaction

from core.notifications import notify_safely
from .attendance_engine import apply_totals
from .attendance_processor import get_processor
from .models import ClockRecord, Schedule
from .utils import add_minutes_to_time, format_time, local_today

logger = logging.getLogger(__name__)

AUTO_CLOSE_NOTE = 'Auto-closed at midnight'


def close_record(record):
    """
    Close one open record in place.

    The scheduled shift end wins; otherwise the regime's standard workday is
    counted from clock_in_1. A started but unfinished break is closed as a
    zero-length break.
    """
    company = record.company
    processor = get_processor(company)

    shift_end = (
        Schedule.objects.filter(employee_id=record.employee_id, schedule_date=record.work_date)
        .values_list('shift_end', flat=True)
        .first()
    )
    close_time = shift_end or add_minutes_to_time(record.clock_in_1, processor.standard_work_minutes)

    if record.clock_out_1 is not None and record.clock_in_2 is None:
        record.clock_in_2 = record.clock_out_1
    record.clock_out_2 = close_time

    record.is_auto_clock_out = True
    record.needs_admin_review = True
    record.notes = f'{record.notes}\n{AUTO_CLOSE_NOTE}'.strip() if record.notes else AUTO_CLOSE_NOTE
    apply_totals(record, company)
    record.save()
    return close_time


def run_auto_clockout(target_date=None, company_id=None):
    """
    Close yesterday's records that have a clock-in but no end-of-day event.

    Each record is closed in its own transaction; a failing record is logged
    and counted and the rest carry on. Closed records are flagged so a rerun
    selects nothing.
    """
    target_date = target_date or (local_today() - timedelta(days=1))
    records = ClockRecord.objects.select_related('company', 'employee').filter(
        work_date=target_date,
        clock_in_1__isnull=False,
        clock_out_2__isnull=True,
        is_auto_clock_out=False,
    )
    if company_id:
        records = records.filter(company_id=company_id)

    processed = failed = 0
    closed = []
    for record_id in list(records.values_list('pk', flat=True)):
        try:
            with transaction.atomic():
                record = (
                    ClockRecord.objects.select_for_update()
                    .select_related('company', 'employee')
                    .get(pk=record_id)
                )
                if record.is_auto_clock_out or record.clock_out_2 is not None:
                    continue
                close_time = close_record(record)
            processed += 1
            closed.append(record.pk)
            logger.info(
                f"Auto clock-out: {record.employee.employee_id} on {target_date} closed at {format_time(close_time)}"
            )
            notify_safely(
                record.company,
                'Auto Clock-Out Review Required',
                f"{record.employee.name} did not clock out on {target_date.isoformat()}. "
                f"The record was closed at {format_time(close_time)} and needs review.",
                notification_type='auto_clock_out',
                reference_type='clock_in_record',
                reference_id=record.pk,
            )
        except Exception as e:
            failed += 1
            logger.error(f"Auto clock-out failed for record {record_id}: {e}")

    logger.info(f"Auto clock-out for {target_date}: {processed} closed, {failed} failed")
    return {
        'success': failed == 0,
        'date': target_date.isoformat(),
        'processed': processed,
        'failed': failed,
        'record_ids': closed,
    }

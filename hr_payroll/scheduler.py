"""
In-process cron for the nightly jobs.

Cron expressions use the five standard fields and are evaluated in the
configured TIME_ZONE. Each job runs on its own worker thread under a
per-job lock, so a slow run is skipped rather than stacked.
"""
import logging
import threading
import time
from datetime import timedelta

from django.db import close_old_connections, transaction

from .auto_clockout import run_auto_clockout
from .driver_sync import run_driver_sync
from .holiday_notifier import run_holiday_notifier
from .resignation_updater import run_resignation_updater
from .utils import local_now, local_today

logger = logging.getLogger(__name__)

# field ranges: minute, hour, day of month, month, day of week (0 = Sunday)
CRON_RANGES = ((0, 59), (0, 23), (1, 31), (1, 12), (0, 6))


class JobNotFound(KeyError):
    pass


class _DryRunRollback(Exception):
    pass


def parse_cron_field(field, low, high):
    """'*', '5', '1,15', '*/10' or '1-5' -> set of allowed values."""
    values = set()
    for part in field.split(','):
        step = 1
        if '/' in part:
            part, step = part.split('/', 1)
            step = int(step)
        if part == '*':
            start, end = low, high
        elif '-' in part:
            start, end = (int(p) for p in part.split('-', 1))
        else:
            start = end = int(part)
        if start < low or end > high or start > end:
            raise ValueError(f"Cron field '{field}' out of range {low}-{high}")
        values.update(range(start, end + 1, step))
    return values


def parse_cron(expression):
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Cron expression '{expression}' must have five fields")
    return tuple(parse_cron_field(f, low, high) for f, (low, high) in zip(fields, CRON_RANGES))


def cron_matches(expression, moment):
    minutes, hours, days, months, weekdays = parse_cron(expression)
    return (
        moment.minute in minutes
        and moment.hour in hours
        and moment.day in days
        and moment.month in months
        and (moment.weekday() + 1) % 7 in weekdays
    )


# run date -> job arguments; the run date is the local day the job believes it is
def _auto_clockout(on):
    return run_auto_clockout(target_date=on - timedelta(days=1))


def _resignation_updater(on):
    return run_resignation_updater(today=on)


def _driver_sync(on):
    return run_driver_sync(today=on)


def _holiday_notifier(on):
    return run_holiday_notifier(target_date=on + timedelta(days=1))


JOBS = {
    'auto_clockout': (('5 0 * * *',), _auto_clockout),
    'resignation_updater': (('30 0 * * *',), _resignation_updater),
    'driver_sync': (('30 3 * * *', '0 10 * * *'), _driver_sync),
    'holiday_notifier': (('0 9 * * *',), _holiday_notifier),
}


class JobScheduler:

    def __init__(self, jobs=None, tick_seconds=30):
        self.jobs = dict(JOBS if jobs is None else jobs)
        for crons, _ in self.jobs.values():
            for expression in crons:
                parse_cron(expression)
        self.tick_seconds = tick_seconds
        self._locks = {name: threading.Lock() for name in self.jobs}
        self._last_fired = {}
        self._stop_event = threading.Event()
        self._thread = None
        self._workers = {}
        self.last_outcomes = {}

    def names(self):
        return sorted(self.jobs)

    def is_running(self, name):
        return self._locks[name].locked()

    def run_now(self, name, on=None, dry_run=False):
        """
        Run one job synchronously. Returns the job result, or a
        ``{success: False}`` summary when the job is already running or fails.
        With ``dry_run`` every database write of the run is rolled back.
        """
        if name not in self.jobs:
            raise JobNotFound(name)
        _, runner = self.jobs[name]
        lock = self._locks[name]
        if not lock.acquire(blocking=False):
            logger.warning(f"Job {name} is already running, skipped")
            return {'success': False, 'error': f'{name} is already running'}

        on = on or local_today()
        try:
            logger.info(f"Job {name} started for {on}{' (dry run)' if dry_run else ''}")
            if dry_run:
                result = self._dry_run(runner, on)
            else:
                result = runner(on)
            logger.info(f"Job {name} finished")
            return {'success': True, 'job': name, 'dry_run': dry_run, 'result': result}
        except Exception as e:
            logger.exception(f"Job {name} failed: {e}")
            return {'success': False, 'job': name, 'error': str(e)}
        finally:
            lock.release()

    @staticmethod
    def _dry_run(runner, on):
        result = None
        try:
            with transaction.atomic():
                result = runner(on)
                raise _DryRunRollback()
        except _DryRunRollback:
            pass
        return result

    def due(self, moment):
        """Names of jobs whose cron matches ``moment`` and have not fired in that minute."""
        minute = moment.replace(second=0, microsecond=0)
        names = []
        for name, (crons, _) in self.jobs.items():
            if self._last_fired.get(name) == minute:
                continue
            if any(cron_matches(expression, moment) for expression in crons):
                names.append(name)
        return names

    def tick(self, moment=None):
        moment = moment or local_now()
        fired = []
        for name in self.due(moment):
            self._last_fired[name] = moment.replace(second=0, microsecond=0)
            worker = threading.Thread(target=self._run_in_thread, args=(name,), name=f'job-{name}', daemon=True)
            self._workers[name] = worker
            worker.start()
            fired.append(name)
        return fired

    def _run_in_thread(self, name):
        close_old_connections()
        outcome = {'success': False, 'job': name, 'error': 'worker exited early'}
        try:
            outcome = self.run_now(name)
        finally:
            self.last_outcomes[name] = outcome
            close_old_connections()
            logger.info(f"Job thread {name} exited (success={outcome.get('success')})")

    def join_workers(self, timeout=30.0):
        """
        Wait up to ``timeout`` seconds in total for fired jobs to finish.
        Returns the names of jobs still running afterwards.
        """
        deadline = time.monotonic() + timeout
        workers = list(self._workers.items())
        for _, worker in workers:
            worker.join(timeout=max(0.0, deadline - time.monotonic()))
        pending = sorted(name for name, worker in workers if worker.is_alive())
        for name, worker in workers:
            if not worker.is_alive() and self._workers.get(name) is worker:
                del self._workers[name]
        if pending:
            logger.warning(f"Jobs still running after {timeout}s: {', '.join(pending)}")
        return pending

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name='hrms-scheduler', daemon=True)
        self._thread.start()
        logger.info(f"Scheduler started with jobs: {', '.join(self.names())}")

    def stop(self, timeout=30.0):
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self.join_workers(timeout=timeout)
        logger.info("Scheduler stopped")

    def _loop(self):
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.exception(f"Scheduler tick failed: {e}")
            self._stop_event.wait(timeout=self.tick_seconds)


scheduler = JobScheduler()

import json
import threading
from datetime import date, datetime, time
from io import StringIO
from unittest import mock

import pytest
from django.core.management import CommandError, call_command

from core.exceptions import Forbidden, UpstreamError
from core.models import Notification
from core.tenant import TenantContext
from hr_payroll import driver_sync
from hr_payroll.holiday_notifier import run_holiday_notifier
from hr_payroll.models import ClockRecord, DataRetentionLog, Department, Holiday, Schedule
from hr_payroll.retention import RetentionService
from hr_payroll.scheduler import JobNotFound, JobScheduler, cron_matches, parse_cron, parse_cron_field

MERDEKA = date(2025, 8, 31)


class TestHolidayNotifier:

    @pytest.fixture
    def merdeka(self, aa_alive):
        return Holiday.objects.create(company=aa_alive, name='Merdeka Day', date=MERDEKA)

    def test_closed_departments_are_told_once(self, aa_alive, department, merdeka, make_employee):
        staff = [make_employee(aa_alive, department=department) for _ in range(2)]

        first = run_holiday_notifier(target_date=MERDEKA)
        second = run_holiday_notifier(target_date=MERDEKA)

        assert first['holidaysProcessed'] == 1
        assert first['outletsClosed'] == 1
        assert first['notificationsSent'] == 2
        assert second['notificationsSent'] == 0
        note = Notification.objects.get(employee=staff[0])
        assert note.notification_type == 'public_holiday'
        assert note.message == 'No work on Sunday, 31 August 2025. Enjoy your holiday!'

    def test_a_rostered_department_works_through(self, aa_alive, department, merdeka, make_employee):
        kitchen = Department.objects.create(company=aa_alive, name='Kitchen')
        cook = make_employee(aa_alive, department=kitchen)
        make_employee(aa_alive, department=department)
        Schedule.objects.create(company=aa_alive, employee=cook, department=kitchen, schedule_date=MERDEKA)

        results = run_holiday_notifier(target_date=MERDEKA)

        assert results['outletsWorking'] == 1
        assert results['outletsClosed'] == 1
        assert not Notification.objects.filter(employee=cook).exists()

    def test_outlet_companies_and_opted_out_companies_are_skipped(self, mimix, aa_alive, merdeka, make_employee):
        Holiday.objects.create(company=mimix, name='Merdeka Day', date=MERDEKA)
        make_employee(mimix)
        make_employee(aa_alive)
        aa_alive.holiday_notifications_enabled = False
        aa_alive.save()

        results = run_holiday_notifier(target_date=MERDEKA)

        assert results['holidaysProcessed'] == 1
        assert results['notificationsSent'] == 0
        assert not Notification.objects.exists()


def upstream(payload, ok=True, status_code=200):
    response = mock.Mock(ok=ok, status_code=status_code, text=json.dumps(payload))
    response.json.return_value = payload
    return response


class TestDriverSync:

    SHIFTS = [
        {'driver_name': 'IZWAN', 'clock_in_at_myt': '2025-01-06 08:00:00',
         'clock_out_at_myt': '2025-01-06 18:00:00', 'is_outstation': True},
        {'driver_name': '2 JC 2', 'clock_in_at_myt': '2025-01-06 07:00:00'},
        {'driver_name': 'NOBODY', 'clock_in_at_myt': '2025-01-06 07:30:00'},
    ]

    @pytest.fixture
    def driver(self, aa_alive, department, make_employee, settings):
        settings.AAALIVE_COMPANY_ID = aa_alive.pk
        return make_employee(aa_alive, employee_id='IZUWAN', name='Muhammad Izuwan', department=department)

    @pytest.fixture
    def api(self, monkeypatch):
        get = mock.Mock(return_value=upstream(self.SHIFTS))
        monkeypatch.setattr(driver_sync.requests, 'get', get)
        return get

    def test_shifts_become_single_session_records(self, driver, api):
        result = driver_sync.sync_driver_attendance(date='2025-01-06')

        assert result['summary'] == {'total': 3, 'synced': 1, 'skipped': 1, 'failed': 1}
        assert api.call_args.kwargs['headers'] == {'X-API-Key': 'test-key'}
        assert api.call_args.kwargs['params'] == {'shift_date': '2025-01-06'}
        record = ClockRecord.objects.get(employee=driver)
        assert (record.clock_in_1, record.clock_out_2) == (time(8, 0), time(18, 0))
        assert record.clock_out_1 is None
        assert record.total_work_minutes == 600
        assert record.ot_minutes == 60
        assert record.notes == driver_sync.OUTSTATION_NOTE

    def test_rerun_only_fills_a_missing_clock_out(self, driver, api):
        api.return_value = upstream([dict(self.SHIFTS[0], clock_out_at_myt=None)])
        driver_sync.sync_driver_attendance(date='2025-01-06')
        assert ClockRecord.objects.get(employee=driver).clock_out_2 is None

        api.return_value = upstream(self.SHIFTS[:1])
        updated = driver_sync.sync_driver_attendance(date='2025-01-06')
        again = driver_sync.sync_driver_attendance(date='2025-01-06')

        assert len(updated['details']['updated']) == 1
        assert again['summary']['skipped'] == 1
        assert ClockRecord.objects.filter(employee=driver).count() == 1

    def test_range_requests_use_the_range_endpoint(self, driver, api):
        driver_sync.sync_driver_attendance(start='2025-01-01', end='2025-01-07')
        assert api.call_args.args[0].endswith('/shifts/range')
        assert api.call_args.kwargs['params'] == {'start_date': '2025-01-01', 'end_date': '2025-01-07'}

    def test_upstream_errors_raise(self, driver, api):
        api.return_value = upstream({'error': 'down'}, ok=False, status_code=503)
        with pytest.raises(UpstreamError):
            driver_sync.sync_driver_attendance(date='2025-01-06')

    def test_missing_key_raises(self, driver, api, settings):
        settings.AAALIVE_API_KEY = ''
        with pytest.raises(UpstreamError):
            driver_sync.fetch_shifts(date='2025-01-06')
        api.assert_not_called()

    def test_scheduled_run_reports_failures_per_day(self, driver, api):
        api.return_value = upstream({}, ok=False, status_code=500)
        results = driver_sync.run_driver_sync(today=date(2025, 1, 7))
        assert results['yesterday']['success'] is False
        assert results['today']['success'] is False


class TestRetention:

    @pytest.fixture
    def old_record(self, mimix, make_employee):
        return ClockRecord.objects.create(
            company=mimix, employee=make_employee(mimix), work_date=date(2024, 1, 2),
            clock_in_1=time(9, 0), photo_in_1='c2VsZmll', location_in_1='3.139,101.6869',
        )

    @pytest.fixture
    def recent_record(self, mimix, make_employee):
        return ClockRecord.objects.create(
            company=mimix, employee=make_employee(mimix), work_date=date.today(),
            clock_in_1=time(9, 0), photo_in_1='c2VsZmll',
        )

    def test_dry_run_deletes_nothing(self, mimix, old_record, recent_record):
        result = RetentionService(TenantContext.system(mimix)).cleanup()

        assert result['mode'] == 'dry_run'
        assert result['would_delete'] == 1
        old_record.refresh_from_db()
        assert old_record.photo_in_1 == 'c2VsZmll'

    def test_live_run_blanks_media_and_logs_it(self, mimix, old_record, recent_record):
        result = RetentionService(TenantContext.system(mimix)).cleanup(dry_run=False)

        assert result['mode'] == 'live'
        assert result['deleted'] == 1
        old_record.refresh_from_db()
        assert old_record.photo_in_1 == ''
        assert old_record.location_in_1 == ''
        assert old_record.media_deleted_at is not None
        log = DataRetentionLog.objects.get(record_id=old_record.pk)
        assert log.fields_cleared == ['photo_in_1', 'location_in_1']
        assert RetentionService(TenantContext.system(mimix)).cleanup()['would_delete'] == 0

    def test_company_admins_cannot_clean_up(self, mimix_admin, old_record):
        with pytest.raises(Forbidden):
            RetentionService(mimix_admin).cleanup(dry_run=False)

    def test_cleanup_endpoint(self, super_admin_client, admin_client, mimix, old_record):
        denied = admin_client.post('/api/admin/retention/cleanup/', {'dry_run': False}, format='json')
        response = super_admin_client.post(
            '/api/admin/retention/cleanup/', {'dry_run': False}, format='json', HTTP_X_COMPANY_ID=str(mimix.pk),
        )
        assert denied.status_code == 403
        assert response.status_code == 200
        assert response.json()['deleted'] == 1


class TestCron:

    def test_fields(self):
        assert parse_cron_field('*/15', 0, 59) == {0, 15, 30, 45}
        assert parse_cron_field('1-3,10', 0, 23) == {1, 2, 3, 10}
        with pytest.raises(ValueError):
            parse_cron_field('61', 0, 59)

    def test_five_fields_required(self):
        with pytest.raises(ValueError):
            parse_cron('5 0 * *')

    @pytest.mark.parametrize('expression, moment, expected', [
        ('5 0 * * *', datetime(2025, 1, 11, 0, 5), True),
        ('5 0 * * *', datetime(2025, 1, 11, 0, 6), False),
        ('0 9 * * 0', datetime(2025, 1, 12, 9, 0), True),
        ('0 9 * * 1-5', datetime(2025, 1, 12, 9, 0), False),
    ])
    def test_matching(self, expression, moment, expected):
        assert cron_matches(expression, moment) is expected

    def test_due_jobs_fire_once_per_minute(self):
        jobs = JobScheduler()
        moment = datetime(2025, 1, 11, 3, 30, 10)
        assert jobs.due(moment) == ['driver_sync']
        jobs._last_fired['driver_sync'] = moment.replace(second=0)
        assert jobs.due(moment.replace(second=40)) == []

    def test_fired_workers_are_joined_and_their_outcome_kept(self):
        ran = []
        jobs = JobScheduler(jobs={'ping': (('* * * * *',), lambda on: ran.append(on) or 'pong')})

        assert jobs.tick(datetime(2025, 1, 11, 3, 30)) == ['ping']

        assert jobs.join_workers(timeout=5) == []
        assert len(ran) == 1
        assert jobs.last_outcomes['ping']['result'] == 'pong'

    def test_slow_workers_are_reported_until_they_finish(self):
        release = threading.Event()
        jobs = JobScheduler(jobs={'slow': (('* * * * *',), lambda on: release.wait(5))})
        jobs.tick(datetime(2025, 1, 11, 3, 30))

        assert jobs.join_workers(timeout=0.05) == ['slow']

        release.set()
        assert jobs.join_workers(timeout=5) == []
        assert jobs.last_outcomes['slow']['success'] is True


class TestJobRuns:

    @pytest.fixture
    def open_record(self, mimix, make_employee):
        return ClockRecord.objects.create(
            company=mimix, employee=make_employee(mimix), work_date=date(2025, 1, 10), clock_in_1=time(9, 0),
        )

    def test_unknown_job(self):
        with pytest.raises(JobNotFound):
            JobScheduler().run_now('payroll')

    def test_failing_job_reports_instead_of_raising(self):
        def broken(on):
            raise RuntimeError('boom')

        outcome = JobScheduler(jobs={'broken': (('* * * * *',), broken)}).run_now('broken', on=date(2025, 1, 1))

        assert outcome == {'success': False, 'job': 'broken', 'error': 'boom'}

    def test_dry_run_rolls_back(self, open_record):
        outcome = JobScheduler().run_now('auto_clockout', on=date(2025, 1, 11), dry_run=True)

        assert outcome['success'] is True
        assert outcome['result']['processed'] == 1
        open_record.refresh_from_db()
        assert open_record.clock_out_2 is None
        assert open_record.is_auto_clock_out is False

    def test_real_run_closes_yesterday(self, open_record):
        outcome = JobScheduler().run_now('auto_clockout', on=date(2025, 1, 11))
        open_record.refresh_from_db()
        assert outcome['result']['record_ids'] == [open_record.pk]
        assert open_record.is_auto_clock_out is True

    def test_management_command(self, open_record):
        out = StringIO()
        call_command('run_job', 'auto_clockout', date='2025-01-11', dry_run=True, stdout=out)
        assert 'DRY RUN' in out.getvalue()
        assert '"processed": 1' in out.getvalue()
        open_record.refresh_from_db()
        assert open_record.is_auto_clock_out is False

    def test_management_command_rejects_bad_dates(self, db):
        with pytest.raises(CommandError):
            call_command('run_job', 'auto_clockout', date='11/01/2025', stdout=StringIO())

    def test_run_endpoint(self, super_admin_client, mimix, open_record):
        response = super_admin_client.post(
            '/api/jobs/auto_clockout/run/', {'date': '2025-01-11', 'dry_run': True},
            format='json', HTTP_X_COMPANY_ID=str(mimix.pk),
        )
        assert response.status_code == 200
        assert response.json()['result']['processed'] == 1

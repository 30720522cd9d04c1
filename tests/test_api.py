from datetime import date, time, timedelta

import pytest
from rest_framework.test import APIClient

from hr_payroll.models import ClockRecord, Schedule
from hr_payroll.utils import local_today


@pytest.fixture
def crew_member(mimix, outlet, crew_position, make_employee):
    return make_employee(mimix, outlet=outlet, position=crew_position, ic_number='920202-10-1234')


class TestErrorEnvelope:

    def test_missing_token_is_unauthorized(self, db):
        response = APIClient().get('/api/attendance/')
        assert response.status_code == 401
        assert response.json()['error'] == 'Unauthorized'

    def test_service_errors_keep_their_status_and_message(self, admin_client):
        response = admin_client.post(
            '/api/attendance/manual/', {'employee_id': 999999, 'work_date': '2025-01-06'}, format='json',
        )
        assert response.status_code == 404
        body = response.json()
        assert body['error'] == 'Not found'
        assert body['message'] == 'Employee not found'

    def test_serializer_errors_carry_details(self, admin_client):
        response = admin_client.post('/api/attendance/bulk-approve/', {'record_ids': []}, format='json')
        assert response.status_code == 400
        body = response.json()
        assert body['error'] == 'Validation failed'
        assert 'record_ids' in body['details']

    def test_malformed_fields_are_rejected_before_any_write(self, admin_client, crew_member):
        response = admin_client.post('/api/attendance/manual/', {
            'employee_id': crew_member.pk, 'work_date': '06/01/2025', 'total_hours': 'eight',
        }, format='json')
        assert response.status_code == 400
        assert set(response.json()['details']) == {'work_date', 'total_hours'}
        assert not ClockRecord.objects.exists()

    def test_query_strings_are_validated_too(self, admin_client):
        response = admin_client.get('/api/attendance/', {'month': '13'})
        assert response.status_code == 400
        assert 'month' in response.json()['details']


class TestTenantIsolation:

    def test_records_of_another_company_are_invisible(self, admin_client, aa_alive, make_employee):
        foreign = make_employee(aa_alive)
        record = ClockRecord.objects.create(
            company=aa_alive, employee=foreign, work_date=date(2025, 1, 6), clock_in_1=time(8, 0),
        )

        listing = admin_client.get('/api/attendance/')
        approve = admin_client.post(f'/api/attendance/{record.pk}/approve/')

        assert listing.status_code == 200
        assert listing.json() == []
        assert approve.status_code == 404
        record.refresh_from_db()
        assert record.status == 'pending'

    def test_super_admin_picks_the_company_by_header(self, super_admin_client, mimix, crew_member):
        ClockRecord.objects.create(company=mimix, employee=crew_member, work_date=date(2025, 1, 6))

        without_header = super_admin_client.get('/api/attendance/')
        with_header = super_admin_client.get('/api/attendance/', HTTP_X_COMPANY_ID=str(mimix.pk))

        assert without_header.status_code == 403
        assert with_header.status_code == 200
        assert len(with_header.json()) == 1

    def test_header_is_ignored_for_company_admins(self, aa_admin_client, mimix, crew_member):
        ClockRecord.objects.create(company=mimix, employee=crew_member, work_date=date(2025, 1, 6))
        response = aa_admin_client.get('/api/attendance/', HTTP_X_COMPANY_ID=str(mimix.pk))
        assert response.status_code == 200
        assert response.json() == []


class TestEmployeeClock:

    def test_clock_in_without_a_token(self, crew_member):
        response = APIClient().post('/api/attendance/employee/clock/', {
            'employee_id': crew_member.employee_id,
            'ic_number': '920202-10-1234',
            'action': 'clock_in_1',
            'lat': 3.139,
            'lng': 101.6869,
        }, format='json')

        assert response.status_code == 200
        body = response.json()
        assert body['action'] == 'clock_in_1'
        assert body['next_action'] == 'clock_out_1'
        record = ClockRecord.objects.get(employee=crew_member)
        assert record.location_in_1 == '3.139,101.6869'

    def test_wrong_ic_is_unauthorized(self, crew_member):
        response = APIClient().post('/api/attendance/employee/clock/', {
            'employee_id': crew_member.employee_id,
            'ic_number': '000000000000',
            'action': 'clock_in_1',
        }, format='json')
        assert response.status_code == 401
        assert not ClockRecord.objects.exists()

    def test_today_status_before_any_event(self, crew_member):
        response = APIClient().post('/api/attendance/employee/today/', {
            'employee_id': crew_member.employee_id,
            'ic_number': crew_member.ic_number,
        }, format='json')
        assert response.status_code == 200
        assert response.json()['status'] == 'no_record'


class TestRosterEditWindow:

    def assign(self, client, employee, template, days_ahead):
        return client.post('/api/schedules/roster/assign/', {
            'employee_id': employee.pk,
            'shift_template_id': template.pk,
            'schedule_date': (local_today() + timedelta(days=days_ahead)).isoformat(),
        }, format='json')

    @pytest.mark.parametrize('days_ahead', [0, 1, 2])
    def test_supervisor_is_refused_inside_the_window(self, supervisor_client, crew_member, day_shift, days_ahead):
        response = self.assign(supervisor_client, crew_member, day_shift, days_ahead)
        assert response.status_code == 403
        assert response.json()['error'] == 'Forbidden'

    def test_supervisor_assigns_from_day_three(self, supervisor_client, crew_member, day_shift):
        response = self.assign(supervisor_client, crew_member, day_shift, 3)
        assert response.status_code == 201
        assert Schedule.objects.filter(employee=crew_member).count() == 1

    def test_admin_assigns_today(self, admin_client, crew_member, day_shift):
        assert self.assign(admin_client, crew_member, day_shift, 0).status_code == 201


class TestJobsEndpoints:

    def test_company_admin_cannot_run_jobs(self, admin_client):
        assert admin_client.get('/api/jobs/').status_code == 403
        assert admin_client.post('/api/jobs/auto_clockout/run/', {}, format='json').status_code == 403

    def test_super_admin_lists_jobs(self, super_admin_client, mimix):
        response = super_admin_client.get('/api/jobs/', HTTP_X_COMPANY_ID=str(mimix.pk))
        assert response.status_code == 200
        assert {job['name'] for job in response.json()} == {
            'auto_clockout', 'resignation_updater', 'driver_sync', 'holiday_notifier',
        }

    def test_unknown_job_is_not_found(self, super_admin_client, mimix):
        response = super_admin_client.post('/api/jobs/payroll/run/', {}, format='json', HTTP_X_COMPANY_ID=str(mimix.pk))
        assert response.status_code == 404


class TestAuthToken:

    def test_token_pair_for_valid_credentials(self, mimix, make_user):
        make_user('token-user', company=mimix)
        response = APIClient().post('/api/auth/token/', {'username': 'token-user', 'password': 'secret-pass'}, format='json')
        assert response.status_code == 200
        assert 'access' in response.json()

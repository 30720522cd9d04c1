from datetime import date, time
from decimal import Decimal

import pytest
from django.contrib.auth.models import User
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from core.models import Company, Outlet, UserProfile
from core.tenant import TenantContext
from hr_payroll.models import Department, Employee, Position, ShiftTemplate


@pytest.fixture
def mimix(db):
    return Company.objects.create(
        company_code='MIMIX', name='Mimix A Sdn Bhd',
        attendance_regime='mimix', grouping_type='outlet',
    )


@pytest.fixture
def aa_alive(db):
    return Company.objects.create(
        company_code='AAALIVE', name='AA Alive Sdn Bhd',
        attendance_regime='aa_alive', grouping_type='department',
    )


@pytest.fixture
def outlet(mimix):
    return Outlet.objects.create(company=mimix, name='Outlet One', code='O1')


@pytest.fixture
def department(aa_alive):
    return Department.objects.create(company=aa_alive, name='Operations', code='OPS')


@pytest.fixture
def crew_position(mimix):
    return Position.objects.create(company=mimix, name='Crew', role='crew')


@pytest.fixture
def supervisor_position(mimix):
    return Position.objects.create(company=mimix, name='Outlet Supervisor', role='supervisor')


@pytest.fixture
def make_employee(db):
    counter = {'n': 0}

    def _make(company, **kwargs):
        counter['n'] += 1
        defaults = {
            'employee_id': f'E{counter["n"]:03d}',
            'name': f'Employee {counter["n"]}',
            'ic_number': f'900101-14-{counter["n"]:04d}',
            'join_date': date(2022, 1, 1),
            'default_basic_salary': Decimal('3000.00'),
        }
        defaults.update(kwargs)
        return Employee.objects.create(company=company, **defaults)

    return _make


@pytest.fixture
def make_user(db):
    def _make(username, company=None, role='admin', employee=None, outlet=None):
        user = User.objects.create_user(username=username, password='secret-pass')
        UserProfile.objects.create(user=user, company=company, role=role, employee=employee, outlet=outlet)
        return user

    return _make


def jwt_client(user):
    client = APIClient()
    token = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token.access_token}')
    return client


@pytest.fixture
def admin_client(mimix, make_user):
    return jwt_client(make_user('mimix-admin', company=mimix, role='admin'))


@pytest.fixture
def aa_admin_client(aa_alive, make_user):
    return jwt_client(make_user('aa-admin', company=aa_alive, role='admin'))


@pytest.fixture
def staff_client(mimix, make_user):
    return jwt_client(make_user('mimix-staff', company=mimix, role='staff'))


@pytest.fixture
def super_admin_client(make_user):
    return jwt_client(make_user('root', company=None, role='super_admin'))


@pytest.fixture
def supervisor_client(mimix, outlet, supervisor_position, make_employee, make_user):
    employee = make_employee(mimix, outlet=outlet, position=supervisor_position)
    return jwt_client(make_user('mimix-sup', company=mimix, role='staff', employee=employee, outlet=outlet))


@pytest.fixture
def mimix_admin(mimix):
    return TenantContext(company=mimix, admin_role='admin')


@pytest.fixture
def aa_admin(aa_alive):
    return TenantContext(company=aa_alive, admin_role='admin')


@pytest.fixture
def day_shift(mimix):
    return ShiftTemplate.objects.create(
        company=mimix, name='Day', code='D', start_time=time(9, 0), end_time=time(18, 0),
    )

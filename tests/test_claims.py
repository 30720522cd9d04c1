import json
from datetime import date
from decimal import Decimal
from unittest import mock

import pytest
import requests

from core.exceptions import PreconditionFailed, ValidationFailed
from hr_payroll.models import Department
from payroll import receipt_ai
from payroll.claims_intake import ClaimsService
from payroll.models import Claim
from payroll.receipt_ai import receipt_hash

RECEIPT = 'data:image/jpeg;base64,' + 'QUJDREVGR0hJSktMTU5PUA=='


def vision_reply(**fields):
    payload = {'merchant': 'Kedai Runcit Ah Seng', 'date': '2025-01-10', 'confidence': 'high', 'currency': 'MYR'}
    payload.update(fields)
    response = mock.Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = {'choices': [{'message': {'content': json.dumps(payload)}}]}
    return response


@pytest.fixture
def vision(settings, monkeypatch):
    settings.OPENAI_API_KEY = 'sk-test'
    post = mock.Mock(return_value=vision_reply(amount=42.5))
    monkeypatch.setattr(receipt_ai.requests, 'post', post)
    return post


@pytest.fixture
def service(mimix_admin):
    return ClaimsService(mimix_admin)


def claim_data(employee, **kwargs):
    data = {'employee_id': employee.pk, 'claim_date': date(2025, 1, 10), 'category': 'meal', 'amount': Decimal('42.50')}
    data.update(kwargs)
    return data


def test_hash_ignores_the_data_url_prefix():
    assert receipt_hash(RECEIPT) == receipt_hash('QUJDREVGR0hJSktMTU5PUA==')


def test_matching_small_receipt_is_approved_automatically(service, vision, mimix, make_employee):
    result = service.create(claim_data(make_employee(mimix), receipt_image=RECEIPT))

    assert result['status'] == 'approved'
    assert result['auto_approved'] is True
    assert result['ai_extracted_amount'] == Decimal('42.50')
    assert result['ai_extracted_merchant'] == 'Kedai Runcit Ah Seng'
    assert vision.call_args.kwargs['headers'] == {'Authorization': 'Bearer sk-test'}


def test_amount_mismatch_stays_pending(service, vision, mimix, make_employee):
    result = service.create(claim_data(make_employee(mimix), amount=Decimal('50.00'), receipt_image=RECEIPT))
    assert result['status'] == 'pending'
    assert any('Amount mismatch' in w for w in result['warnings'])


def test_large_claims_need_an_admin(service, vision, mimix, make_employee):
    vision.return_value = vision_reply(amount=150)
    result = service.create(claim_data(make_employee(mimix), amount=Decimal('150'), receipt_image=RECEIPT))
    assert result['status'] == 'pending'
    assert result['auto_approved'] is False


def test_same_receipt_from_another_employee_is_rejected(service, vision, mimix, make_employee):
    first = make_employee(mimix, name='Siti Aminah')
    second = make_employee(mimix, name='Rahman')
    original = service.create(claim_data(first, receipt_image=RECEIPT))

    with pytest.raises(PreconditionFailed) as excinfo:
        service.create(claim_data(second, receipt_url=RECEIPT))

    assert 'Siti Aminah' in excinfo.value.message
    assert excinfo.value.extra['duplicate']['id'] == original['id']
    assert Claim.objects.count() == 1
    assert vision.call_count == 1


def test_same_merchant_date_and_amount_is_rejected(service, vision, mimix, make_employee):
    service.create(claim_data(make_employee(mimix, name='Siti Aminah'), receipt_image=RECEIPT))
    with pytest.raises(PreconditionFailed, match='similar receipt'):
        service.create(claim_data(make_employee(mimix), receipt_image=RECEIPT + 'AA'))


def test_similar_check_matches_merchants_longer_than_the_stored_column(service, vision, mimix, make_employee):
    vision.return_value = vision_reply(amount=42.5, merchant='Restoran Nasi Kandar ' * 12)
    first = service.create(claim_data(make_employee(mimix, name='Siti Aminah'), receipt_image=RECEIPT))
    assert len(first['ai_extracted_merchant']) == 200

    with pytest.raises(PreconditionFailed, match='similar receipt'):
        service.create(claim_data(make_employee(mimix), receipt_image=RECEIPT + 'AA'))


def test_accommodation_is_capped_and_never_auto_approved(service, vision, mimix, make_employee):
    vision.return_value = vision_reply(amount=80)
    result = service.create(claim_data(
        make_employee(mimix), category='accommodation', amount=Decimal('120'), receipt_image=RECEIPT,
    ))

    assert result['amount'] == Decimal('80.00')
    assert result['original_amount'] == Decimal('120.00')
    assert result['amount_capped'] is True
    assert result['status'] == 'pending'


def test_without_an_api_key_the_receipt_is_unreadable(service, settings, mimix, make_employee, monkeypatch):
    settings.OPENAI_API_KEY = ''
    post = mock.Mock()
    monkeypatch.setattr(receipt_ai.requests, 'post', post)

    result = service.create(claim_data(make_employee(mimix), receipt_image=RECEIPT))

    post.assert_not_called()
    assert result['status'] == 'pending'
    assert result['ai_confidence'] == 'unreadable'


def test_vision_timeout_falls_back_to_manual(service, vision, mimix, make_employee):
    vision.side_effect = requests.exceptions.Timeout()
    result = service.create(claim_data(make_employee(mimix), receipt_image=RECEIPT))
    assert result['status'] == 'pending'
    assert result['receipt_hash'] == receipt_hash(RECEIPT)


def test_fenced_model_output_is_parsed():
    parsed = receipt_ai.parse_extraction('```json\n{"amount": 12.3, "confidence": "sure"}\n```')
    assert parsed['amount'] == 12.3
    assert parsed['confidence'] == 'low'


def test_department_restricts_claim_categories(service, mimix, make_employee):
    drivers = Department.objects.create(company=mimix, name='Drivers', allowed_claim_types=['fuel', 'toll'])
    employee = make_employee(mimix, department=drivers)
    with pytest.raises(ValidationFailed, match='fuel, toll'):
        service.create(claim_data(employee))


def test_claim_endpoint_reports_duplicates_with_the_first_submitter(admin_client, vision, mimix, make_employee):
    first = make_employee(mimix, name='Siti Aminah')
    second = make_employee(mimix)
    Claim.objects.create(
        company=mimix, employee=first, claim_date=date(2025, 1, 9), category='meal',
        amount=Decimal('42.50'), receipt_hash=receipt_hash(RECEIPT),
    )

    response = admin_client.post('/api/claims/', claim_data(second, receipt_image=RECEIPT), format='json')

    assert response.status_code == 400
    body = response.json()
    assert 'Siti Aminah' in body['message']
    assert body['duplicate']['employee_name'] == 'Siti Aminah'

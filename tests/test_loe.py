from datetime import timedelta

import pytest

from advisor_platform.models.loe import LOE
from advisor_platform.utils.dates import utcnow
from advisor_platform.utils.errors import ValidationError


@pytest.fixture
def loe(client, auth_headers, make_client):
    client_id = make_client()
    r = client.post(f'/api/loe-automation/clients/{client_id}/create-loe', headers=auth_headers,
                    json={'custom_notes': 'Quarterly reviews included'})
    assert r.status_code == 201, r.get_json()
    return r.get_json()['loe']


def test_create_loe_is_sent_with_access_url(loe):
    assert loe['status'] == 'sent'
    assert len(loe['access_token']) == 64
    assert loe['client_access_url'] == f"http://frontend.test/loe-automation/sign/{loe['access_token']}"
    assert loe['content']['custom_notes'] == 'Quarterly reviews included'
    assert loe['content']['services']
    assert loe['content']['fees']


def test_client_list_shows_latest_status(client, auth_headers, loe, make_client):
    make_client(email='second@example.com')
    clients = client.get('/api/loe-automation/clients', headers=auth_headers).get_json()['clients']
    statuses = {c['email']: c['loe_status'] for c in clients}
    assert statuses == {'client@example.com': 'sent', 'second@example.com': 'not_sent'}


def test_view_marks_viewed_and_sign_once(client, auth_headers, loe):
    token = loe['access_token']

    r = client.get(f'/api/loe-automation/client/{token}')
    assert r.status_code == 200
    assert r.get_json()['loe']['status'] == 'viewed'
    assert r.get_json()['advisor']['firm_name'] == 'Rao Wealth'

    assert client.post(f'/api/loe-automation/client/{token}/sign', json={}).status_code == 400

    r = client.post(f'/api/loe-automation/client/{token}/sign',
                    json={'signature': 'data:image/png;base64,AAAA', 'ip_address': '10.0.0.1'})
    signed = r.get_json()['loe']
    assert r.status_code == 200
    assert signed['status'] == 'signed'
    assert signed['signatures']['client']['ip_address'] == '10.0.0.1'
    assert 'data' not in signed['signatures']['client']

    r = client.post(f'/api/loe-automation/client/{token}/sign', json={'signature': 'again'})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'This LOE has already been signed'

    details = client.get(f"/api/loe-automation/clients/{loe['client_id']}/loe-details", headers=auth_headers)
    assert details.get_json()['latest']['status'] == 'signed'


def test_expired_loe_is_gone(app, client, loe):
    with app.app_context():
        record = LOE.find_by_token(loe['access_token'])
        record.expires_at = utcnow() - timedelta(days=1)
        record.save()

    r = client.get(f"/api/loe-automation/client/{loe['access_token']}")
    assert r.status_code == 410

    with app.app_context():
        assert LOE.find_by_token(loe['access_token']).status == 'expired'


def test_unknown_token(client):
    assert client.get('/api/loe-automation/client/nope').status_code == 404


def test_default_expiry_is_seven_days():
    loe = LOE(advisor_id='a', client_id='c')
    remaining = loe.expires_at - utcnow()
    assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)
    assert loe.client_access_url.startswith('http://localhost:5173/loe-automation/sign/')


def test_unknown_status_is_rejected():
    with pytest.raises(ValidationError):
        LOE(advisor_id='a', client_id='c', status='archived')

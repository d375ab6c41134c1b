from datetime import timedelta
import io
import json

from advisor_platform.models.client_invitation import ClientInvitation
from advisor_platform.utils.dates import utcnow
from advisor_platform.utils.file_handler import CASFileHandler, detect_cas_type, summarize_cas_text
from conftest import register_advisor


def invite(client, headers, email='new.client@example.com'):
    r = client.post('/api/clients/manage/invitations', headers=headers, json={
        'client_email': email,
        'client_first_name': 'Meera',
        'client_last_name': 'Shah',
    })
    assert r.status_code == 201, r.get_json()
    return r.get_json()


def test_list_clients_paginates_and_searches(client, auth_headers, make_client):
    for i in range(3):
        make_client(email=f'client{i}@example.com')

    r = client.get('/api/clients/manage?limit=2&page=1', headers=auth_headers)
    body = r.get_json()
    assert r.status_code == 200
    assert len(body['clients']) == 2
    assert body['pagination'] == {
        'current_page': 1, 'total_pages': 2, 'total_clients': 3,
        'limit': 2, 'has_next': True, 'has_prev': False,
    }

    r = client.get('/api/clients/manage?search=client1', headers=auth_headers)
    assert [c['email'] for c in r.get_json()['clients']] == ['client1@example.com']


def test_clients_are_isolated_between_advisors(client, auth_headers, make_client):
    client_id = make_client()
    _, other_headers = register_advisor(client, email='other@example.com')

    r = client.get(f'/api/clients/manage/{client_id}', headers=other_headers)
    assert r.status_code == 404

    r = client.get(f'/api/clients/manage/{client_id}', headers=auth_headers)
    assert r.status_code == 200
    assert r.get_json()['client']['full_name'] == 'Ravi Kumar'


def test_malformed_client_id_is_400(client, auth_headers):
    r = client.get('/api/clients/manage/not-an-id', headers=auth_headers)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Invalid client ID format'


def test_update_and_delete_client(client, auth_headers, make_client):
    client_id = make_client()

    r = client.put(f'/api/clients/manage/{client_id}', headers=auth_headers, json={'status': 'bogus'})
    assert r.status_code == 400

    r = client.put(f'/api/clients/manage/{client_id}', headers=auth_headers,
                   json={'phone_number': '9999', 'financials': {'annual_income': 600000}})
    assert r.status_code == 200
    assert r.get_json()['client']['phone_number'] == '9999'

    r = client.get(f'/api/clients/manage/{client_id}/financial-summary', headers=auth_headers)
    assert r.get_json()['summary']['monthly_income'] == 50000

    r = client.delete(f'/api/clients/manage/{client_id}', headers=auth_headers)
    assert r.status_code == 200
    assert client.get(f'/api/clients/manage/{client_id}', headers=auth_headers).status_code == 404


def test_dashboard_stats(client, auth_headers, make_client):
    make_client(email='a@example.com', cas_data={'parsed_data': {'total_value': 1500.5}})
    make_client(email='b@example.com', status='invited', cas_data={'parsed_data': None})

    stats = client.get('/api/clients/manage/dashboard/stats', headers=auth_headers).get_json()['stats']
    assert stats['total_clients'] == 2
    assert stats['status_counts']['active'] == 1
    assert stats['onboarding_completion_rate'] == 50
    assert stats['total_portfolio_value'] == 1500.5
    assert stats['clients_with_cas'] == 1


def test_invitation_creates_invited_client_with_url(client, auth_headers):
    body = invite(client, auth_headers)
    token = body['invitation']['token']

    assert body['invitation_url'] == f'http://frontend.test/client-onboarding/{token}'
    assert body['invitation']['status'] == 'sent'
    assert body['client']['status'] == 'invited'

    r = client.get(f"/api/client-invitations/client/{body['client']['id']}", headers=auth_headers)
    assert r.get_json()['count'] == 1


def test_onboarding_draft_and_completion(client, auth_headers):
    body = invite(client, auth_headers)
    token = body['invitation']['token']

    r = client.get(f'/api/clients/onboarding/{token}')
    assert r.status_code == 200
    assert r.get_json()['advisor']['firm_name'] == 'Rao Wealth'

    r = client.post(f'/api/clients/onboarding/{token}/draft',
                    json={'step_number': 2, 'step_data': {'annual_income': 900000}})
    assert r.status_code == 200
    drafts = client.get(f'/api/clients/onboarding/{token}/draft').get_json()
    assert drafts['drafts'] == {'2': {'annual_income': 900000}}
    assert drafts['onboarding_step'] == 2

    r = client.post(f'/api/clients/onboarding/{token}', json={'first_name': 'Meera'})
    assert r.status_code == 400

    r = client.post(f'/api/clients/onboarding/{token}', json={
        'first_name': 'Meera', 'last_name': 'Shah', 'email': 'new.client@example.com',
        'financials': {'annual_income': 900000},
    })
    assert r.status_code == 200

    client_id = r.get_json()['client_id']
    record = client.get(f'/api/clients/manage/{client_id}', headers=auth_headers).get_json()['client']
    assert record['status'] == 'active'
    assert record['form_drafts'] == {}

    # a completed form cannot be reopened
    assert client.get(f'/api/clients/onboarding/{token}').status_code == 400


def test_onboarding_unknown_and_expired_tokens(app, client, auth_headers):
    assert client.get('/api/clients/onboarding/unknown-token').status_code == 404

    token = invite(client, auth_headers)['invitation']['token']
    with app.app_context():
        invitation = ClientInvitation.find_by_token(token)
        invitation.expires_at = utcnow() - timedelta(hours=1)
        invitation.save()

    r = client.get(f'/api/clients/onboarding/{token}')
    assert r.status_code == 410
    assert client.get(f'/api/client-invitations/token/{token}').status_code == 410


def test_bulk_import_csv(client, auth_headers, make_client):
    make_client(email='exists@example.com')
    csv_data = (
        'first_name,last_name,email,phone\n'
        'Anil,Mehta,anil@example.com,111\n'
        'Dup,Client,exists@example.com,222\n'
        ',Missing,missing@example.com,333\n'
    )
    r = client.post('/api/clients/manage/bulk-import', headers=auth_headers,
                    data={'file': (io.BytesIO(csv_data.encode()), 'clients.csv')},
                    content_type='multipart/form-data')
    body = r.get_json()
    assert r.status_code == 201
    assert body['created'] == 1
    assert body['skipped'] == 1
    assert body['errors'][0]['row'] == 3


def test_cas_upload_requires_pdf(client, auth_headers, make_client):
    client_id = make_client()
    r = client.post(f'/api/clients/manage/{client_id}/cas/upload', headers=auth_headers,
                    data={'casFile': (io.BytesIO(b'not a pdf'), 'statement.txt')},
                    content_type='multipart/form-data')
    assert r.status_code == 400

    assert client.get(f'/api/clients/manage/{client_id}/cas', headers=auth_headers).status_code == 404


def test_invitations_are_capped_per_client(client, auth_headers):
    for _ in range(5):
        invite(client, auth_headers)

    r = client.post('/api/clients/manage/invitations', headers=auth_headers, json={
        'client_email': 'new.client@example.com',
        'client_first_name': 'Meera',
        'client_last_name': 'Shah',
    })
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Maximum of 5 invitations reached for this client'


def test_invitation_status_filter_is_validated(client, auth_headers):
    invite(client, auth_headers)

    r = client.get('/api/clients/manage/invitations?status=bogus', headers=auth_headers)
    assert r.status_code == 400

    r = client.get('/api/clients/manage/invitations?status=sent', headers=auth_headers)
    assert r.get_json()['count'] == 1

    counts = client.get('/api/client-invitations/advisor/all', headers=auth_headers).get_json()['status_counts']
    assert counts['sent'] == 1
    assert counts['cancelled'] == 0


def test_bulk_import_rejects_non_utf8_file(client, auth_headers):
    csv_data = 'first_name,last_name,email\nJosé,Núñez,jose@example.com\n'.encode('latin-1')
    r = client.post('/api/clients/manage/bulk-import', headers=auth_headers,
                    data={'file': (io.BytesIO(csv_data), 'clients.csv')},
                    content_type='multipart/form-data')
    assert r.status_code == 400
    assert r.get_json()['error'] == 'File must be UTF-8 encoded'


def test_bulk_import_json_reports_non_text_fields(client, auth_headers):
    rows = [
        {'first_name': 'Anil', 'last_name': 'Mehta', 'email': 12345},
        {'first_name': 'Kiran', 'last_name': 'Das', 'email': 'kiran@example.com'},
    ]
    r = client.post('/api/clients/manage/bulk-import', headers=auth_headers,
                    data={'file': (io.BytesIO(json.dumps(rows).encode()), 'clients.json')},
                    content_type='multipart/form-data')
    body = r.get_json()
    assert r.status_code == 201
    assert body['created'] == 1
    assert body['errors'] == [{'row': 1, 'error': 'Fields must be text: email'}]


def upload_cas(client, url, headers=None, content=b'%PDF-1.4 statement'):
    r = client.post(url, headers=headers or {},
                    data={'casFile': (io.BytesIO(content), 'statement.pdf')},
                    content_type='multipart/form-data')
    assert r.status_code == 201, r.get_json()
    return r.get_json()


def test_cas_parse_records_statement_summary(client, auth_headers, make_client, monkeypatch):
    text = ('Consolidated Account Statement\nCDSL\nPAN: ABCDE1234F\n'
            'Equity Fund Total 1,00,000.00\nGrand Total: 2,50,000.50\n')
    monkeypatch.setattr(CASFileHandler, 'extract_text', lambda self, path, password=None: (text, 3))
    client_id = make_client()
    base = f'/api/clients/manage/{client_id}/cas'
    upload_cas(client, f'{base}/upload', auth_headers)

    r = client.post(f'{base}/parse', headers=auth_headers, json={})
    parsed = r.get_json()['parsed_data']
    assert r.status_code == 200
    assert parsed['cas_type'] == 'CDSL'
    assert parsed['page_count'] == 3
    assert parsed['pan_numbers'] == ['ABCDE1234F']
    assert parsed['total_value'] == 250000.5

    cas = client.get(base, headers=auth_headers).get_json()['cas_data']
    assert cas['parse_status'] == 'parsed'
    assert 'file_path' not in cas and 'password' not in cas


def test_corrupt_cas_file_is_a_parse_error(client, auth_headers, make_client):
    client_id = make_client()
    base = f'/api/clients/manage/{client_id}/cas'
    upload_cas(client, f'{base}/upload', auth_headers, content=b'this is not a pdf at all')

    r = client.post(f'{base}/parse', headers=auth_headers, json={})
    assert r.status_code == 400
    assert r.get_json()['error'].startswith('Failed to parse CAS file')

    cas = client.get(base, headers=auth_headers).get_json()['cas_data']
    assert cas['parse_status'] == 'error'
    assert cas['parse_error']


def test_onboarding_cas_parse_error(client, auth_headers):
    token = invite(client, auth_headers)['invitation']['token']
    base = f'/api/clients/onboarding/{token}/cas'
    upload_cas(client, f'{base}/upload', content=b'this is not a pdf at all')

    assert client.post(f'{base}/parse', json={}).status_code == 400
    assert client.get(f'{base}/status').get_json()['parse_status'] == 'error'


def test_detect_cas_type():
    assert detect_cas_type('Central Depository Services (India) Limited') == 'CDSL'
    assert detect_cas_type('statement from nsdl') == 'NSDL'
    assert detect_cas_type('Registrar statement') == 'UNKNOWN'


def test_summarize_cas_text_without_totals():
    summary = summarize_cas_text('NSDL statement for PQRST6789Z and ABCDE1234F and PQRST6789Z', 1)
    assert summary['cas_type'] == 'NSDL'
    assert summary['pan_numbers'] == ['ABCDE1234F', 'PQRST6789Z']
    assert summary['total_value'] is None

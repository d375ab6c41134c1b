import pytest

from advisor_platform.models.mutual_fund_recommendation import MutualFundRecommendation
from advisor_platform.utils.errors import ValidationError


def recommendation_payload(client_id, **overrides):
    payload = {
        'client_id': client_id,
        'fund_name': ' Flexi Cap Fund ',
        'fund_house_name': 'Parag Parikh',
        'recommended_monthly_sip': 5000,
        'sip_start_date': '2026-01-01',
        'expected_exit_date': '2031-01-01',
        'exit_conditions': 'Exit when the goal corpus is reached',
        'reason_for_recommendation': 'Diversified equity exposure',
        'risk_profile': 'Moderate',
        'investment_goal': 'Wealth Creation',
    }
    payload.update(overrides)
    return payload


@pytest.mark.parametrize('overrides, message', [
    ({'recommended_monthly_sip': 50}, 'Recommended monthly SIP must be at least 100'),
    ({'expected_exit_date': '2025-01-01'}, 'Expected exit date must be after the SIP start date'),
    ({'risk_profile': 'Reckless'}, 'Invalid risk profile'),
    ({'investment_goal': 'Yacht'}, 'Invalid investment goal'),
])
def test_model_validation(overrides, message):
    values = recommendation_payload('c', **overrides)
    del values['client_id']
    with pytest.raises(ValidationError) as excinfo:
        MutualFundRecommendation(client_id='c', advisor_id='a', **values)
    assert excinfo.value.message.startswith(message)


def test_create_list_and_summary(client, auth_headers, make_client):
    client_id = make_client()

    r = client.post('/api/mutual-fund-recommend/', headers=auth_headers,
                    json=recommendation_payload({'_id': client_id}))
    assert r.status_code == 201, r.get_json()
    recommendation = r.get_json()['recommendation']
    assert recommendation['fund_name'] == 'Flexi Cap Fund'
    assert recommendation['sip_start_date'] == '2026-01-01T00:00:00Z'
    assert recommendation['status'] == 'active'

    client.post('/api/mutual-fund-recommend/', headers=auth_headers,
                json=recommendation_payload(client_id, recommended_monthly_sip=2000, risk_profile='Aggressive'))

    body = client.get(f'/api/mutual-fund-recommend/client/{client_id}', headers=auth_headers).get_json()
    assert len(body['recommendations']) == 2
    assert body['summary']['total_monthly_sip'] == 7000
    assert body['summary']['by_risk_profile'] == {'Conservative': 0, 'Moderate': 1, 'Aggressive': 1}

    r = client.put(f"/api/mutual-fund-recommend/{recommendation['id']}", headers=auth_headers,
                   json={'status': 'on_hold'})
    assert r.get_json()['recommendation']['status'] == 'on_hold'

    summary = client.get('/api/mutual-fund-recommend/summary', headers=auth_headers).get_json()['summary']
    assert summary['count'] == 2
    assert summary['total_monthly_sip'] == 2000
    assert summary['clients_count'] == 1

    summary = client.get('/api/mutual-fund-recommend/summary?status=on_hold',
                         headers=auth_headers).get_json()['summary']
    assert summary['count'] == 1


def test_create_requires_fields(client, auth_headers, make_client):
    payload = recommendation_payload(make_client())
    del payload['exit_conditions']
    r = client.post('/api/mutual-fund-recommend/', headers=auth_headers, json=payload)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Missing required fields: exit_conditions'


def test_update_validation_and_delete(client, auth_headers, make_client):
    client_id = make_client()
    recommendation_id = client.post('/api/mutual-fund-recommend/', headers=auth_headers,
                                    json=recommendation_payload(client_id)).get_json()['recommendation']['id']
    url = f'/api/mutual-fund-recommend/{recommendation_id}'

    assert client.put(url, headers=auth_headers, json={}).status_code == 400
    assert client.put(url, headers=auth_headers, json={'recommended_monthly_sip': 10}).status_code == 400

    assert client.delete(url, headers=auth_headers).status_code == 200
    assert client.get(url, headers=auth_headers).status_code == 404
    assert client.get('/api/mutual-fund-recommend/not-an-id', headers=auth_headers).status_code == 400


def test_fund_details_without_ai_key(client, auth_headers):
    r = client.post('/api/mutual-fund-recommend/claude/fund-details', headers=auth_headers,
                    json={'fund_name': 'Flexi Cap Fund', 'fund_house_name': 'Parag Parikh'})
    details = r.get_json()['fund_details']
    assert r.status_code == 200
    assert details['available'] is False
    assert details['fund_name'] == 'Flexi Cap Fund'
    assert details['expense_ratio'] == 'N/A'

    r = client.post('/api/mutual-fund-recommend/claude/fund-details', headers=auth_headers,
                    json={'fund_name': 'Flexi Cap Fund'})
    assert r.status_code == 400

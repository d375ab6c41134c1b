def test_overview_without_estate_information(client, auth_headers, make_client):
    client_id = make_client(assets={'savings': 500000})

    r = client.get(f'/api/estate-planning/client/{client_id}', headers=auth_headers)
    body = r.get_json()
    assert r.status_code == 200
    assert body['estate_information'] is None
    assert body['summary']['net_estate_value'] == 500000
    assert body['summary']['documents']['completion_ratio'] == 0
    assert 'Consider creating a will and estate plan' in body['summary']['recommendations']['estate_protection']


def test_information_upsert_and_summary(client, auth_headers, make_client):
    client_id = make_client(assets={'savings': 100000})

    r = client.post(f'/api/estate-planning/client/{client_id}/information', headers=auth_headers, json={
        'real_estate_properties': [{
            'property_type': 'residential',
            'financial_details': {'current_market_value': 4000000},
            'ownership_details': {'ownership_percentage': 50},
            'property_loan': {'outstanding_amount': 500000},
        }],
        'legal_documents_status': {'nominations': {'all_updated': True}},
    })
    assert r.status_code == 201
    assert sorted(r.get_json()['updated_sections']) == ['legal_documents_status', 'real_estate_properties']

    r = client.post(f'/api/estate-planning/client/{client_id}/information', headers=auth_headers,
                    json={'family_structure': {'marital_status': 'married'}})
    assert r.status_code == 200
    info = r.get_json()['estate_information']
    assert info['family_structure'] == {'marital_status': 'married'}
    assert info['real_estate_properties']

    summary = client.get(f'/api/estate-planning/client/{client_id}', headers=auth_headers).get_json()['summary']
    assert summary['gross_estate_value'] == 2100000
    assert summary['total_liabilities'] == 500000
    assert summary['net_estate_value'] == 1600000
    assert summary['documents']['completed'] == ['nominations']


def test_information_rejects_malformed_sections(client, auth_headers, make_client):
    client_id = make_client()
    r = client.post(f'/api/estate-planning/client/{client_id}/information', headers=auth_headers,
                    json={'real_estate_properties': {'not': 'a list'}})
    assert r.status_code == 400


def test_will_marks_document_completed(client, auth_headers, make_client):
    client_id = make_client()
    assert client.get(f'/api/estate-planning/client/{client_id}/will', headers=auth_headers).status_code == 404

    r = client.post(f'/api/estate-planning/client/{client_id}/will', headers=auth_headers,
                    json={'will_type': 'registered', 'executor': 'Sita Kumar'})
    assert r.status_code == 200

    will = client.get(f'/api/estate-planning/client/{client_id}/will', headers=auth_headers).get_json()['will']
    assert will['executor'] == 'Sita Kumar'

    info = client.get(f'/api/estate-planning/client/{client_id}/information', headers=auth_headers) \
        .get_json()['estate_information']
    assert info['legal_documents_status']['will_details']['has_will'] is True
    assert info['legal_documents_status']['will_details']['will_type'] == 'registered'


def test_summary_reads_formatted_property_amounts(client, auth_headers, make_client):
    client_id = make_client()
    r = client.post(f'/api/estate-planning/client/{client_id}/information', headers=auth_headers, json={
        'real_estate_properties': [{
            'financial_details': {'current_market_value': '45,00,000'},
            'ownership_details': {'ownership_percentage': ''},
            'property_loan': {'outstanding_amount': '5,00,000'},
        }],
    })
    assert r.status_code == 201

    r = client.get(f'/api/estate-planning/client/{client_id}', headers=auth_headers)
    summary = r.get_json()['summary']
    assert r.status_code == 200
    assert summary['gross_estate_value'] == 4500000
    assert summary['total_liabilities'] == 500000

from conftest import register_advisor


def test_register_returns_token_and_advisor(client):
    advisor, headers = register_advisor(client)
    assert advisor['email'] == 'advisor@example.com'
    assert 'password_hash' not in advisor
    assert headers['Authorization'].startswith('Bearer ')


def test_register_rejects_short_password_and_duplicates(client):
    r = client.post('/api/auth/register', json={
        'email': 'a@example.com', 'password': 'short', 'first_name': 'A', 'last_name': 'B',
    })
    assert r.status_code == 400
    assert r.get_json() == {'success': False, 'error': 'Password must be at least 8 characters'}

    register_advisor(client, email='dup@example.com')
    r = client.post('/api/auth/register', json={
        'email': 'DUP@example.com', 'password': 'password123', 'first_name': 'A', 'last_name': 'B',
    })
    assert r.status_code == 400


def test_register_requires_fields(client):
    r = client.post('/api/auth/register', json={'email': 'a@example.com'})
    assert r.status_code == 400
    assert 'password' in r.get_json()['error']


def test_login_success_and_bad_credentials(client, advisor):
    r = client.post('/api/auth/login', json={'email': 'advisor@example.com', 'password': 'password123'})
    assert r.status_code == 200
    assert r.get_json()['token']

    r = client.post('/api/auth/login', json={'email': 'advisor@example.com', 'password': 'wrong-password'})
    assert r.status_code == 401
    assert r.get_json()['success'] is False


def test_protected_routes_require_bearer_token(client):
    r = client.get('/api/auth/profile')
    assert r.status_code == 401
    assert r.get_json() == {'success': False, 'error': 'Authentication required'}

    r = client.get('/api/auth/profile', headers={'Authorization': 'Bearer not-a-jwt'})
    assert r.status_code == 401


def test_profile_update_and_change_password(client, auth_headers):
    r = client.put('/api/auth/profile', json={'firm_name': ' New Firm ', 'phone': '555'}, headers=auth_headers)
    assert r.status_code == 200
    assert r.get_json()['advisor']['firm_name'] == 'New Firm'

    r = client.post('/api/auth/change-password', headers=auth_headers,
                    json={'current_password': 'nope-nope', 'new_password': 'newpassword1'})
    assert r.status_code == 400

    r = client.post('/api/auth/change-password', headers=auth_headers,
                    json={'current_password': 'password123', 'new_password': 'newpassword1'})
    assert r.status_code == 200

    r = client.post('/api/auth/login', json={'email': 'advisor@example.com', 'password': 'newpassword1'})
    assert r.status_code == 200


def test_request_id_is_echoed_or_generated(client):
    r = client.get('/api/health', headers={'X-Request-Id': 'abc-123'})
    assert r.status_code == 200
    assert r.headers['X-Request-Id'] == 'abc-123'

    r = client.get('/api/health')
    assert r.headers['X-Request-Id']


def test_unknown_route_is_json_404(client):
    r = client.get('/api/does-not-exist')
    assert r.status_code == 404
    assert r.get_json() == {'success': False, 'error': 'Route not found'}

import json
import re

import httpx
import pytest
from bson import ObjectId

from advisor_platform.client import ApiClient, ApiClientError, SessionExpired, TokenStore
from advisor_platform.client.api import generate_request_id


class Recorder:
    """MockTransport handler that answers from a route table and keeps the requests"""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        status, body = self.routes.get((request.method, request.url.path), (404, {'error': 'Route not found'}))
        return httpx.Response(status, json=body)


def make_api(routes, token=None):
    recorder = Recorder(routes)
    api = ApiClient('http://advisor.test', token_store=TokenStore(token),
                    transport=httpx.MockTransport(recorder))
    return api, recorder


def test_request_id_format():
    assert re.match(r'^REQ_\d+_[a-z0-9]{9}$', generate_request_id())
    assert generate_request_id() != generate_request_id()


def test_login_stores_token_and_sends_bearer():
    api, recorder = make_api({
        ('POST', '/api/auth/login'): (200, {'success': True, 'token': 'jwt-1', 'advisor': {'id': 'a1'}}),
        ('GET', '/api/clients/manage'): (200, {'success': True, 'clients': []}),
    })

    api.auth.login('advisor@example.com', 'password123')
    assert api.tokens.token == 'jwt-1'
    assert api.tokens.advisor == {'id': 'a1'}

    api.clients.list(page=2)
    login, listing = recorder.requests
    assert 'Authorization' not in login.headers
    assert listing.headers['Authorization'] == 'Bearer jwt-1'
    assert listing.url.params['page'] == '2'
    assert re.match(r'^REQ_\d+_[a-z0-9]{9}$', listing.headers['X-Request-Id'])


def test_unauthorized_clears_tokens():
    api, _ = make_api({('GET', '/api/auth/profile'): (401, {'success': False, 'error': 'Invalid or expired token'})},
                      token='stale')

    with pytest.raises(SessionExpired) as excinfo:
        api.auth.profile()
    assert excinfo.value.status_code == 401
    assert excinfo.value.message == 'Invalid or expired token'
    assert not api.tokens.is_authenticated


def test_error_response_raises_with_payload():
    api, _ = make_api({('GET', '/api/plans/' + 'a' * 24): (404, {'success': False, 'error': 'Plan not found'})},
                      token='jwt')

    with pytest.raises(ApiClientError) as excinfo:
        api.plans.get('a' * 24)
    assert excinfo.value.status_code == 404
    assert excinfo.value.payload['error'] == 'Plan not found'
    assert api.tokens.token == 'jwt'


def test_ids_are_normalised_before_building_paths():
    client_id = str(ObjectId())
    api, recorder = make_api({
        ('POST', '/api/plans/'): (201, {'success': True}),
        ('GET', f'/api/clients/manage/{client_id}'): (200, {'success': True}),
    }, token='jwt')

    api.plans.create({'_id': {'$oid': client_id}}, 'cash_flow')
    api.clients.get(ObjectId(client_id))

    create, fetch = recorder.requests
    assert create.url.path == '/api/plans/'
    assert json.loads(create.content)['client_id'] == client_id
    assert fetch.url.path == f'/api/clients/manage/{client_id}'

    with pytest.raises(ValueError):
        api.clients.get('[object Object]')


def test_logout_clears_tokens_even_on_failure():
    api, _ = make_api({('POST', '/api/auth/logout'): (500, {'success': False, 'error': 'boom'})}, token='jwt')

    with pytest.raises(ApiClientError):
        api.auth.logout()
    assert api.tokens.token is None


def test_transport_failure_is_wrapped():
    def broken(request):
        raise httpx.ConnectError('connection refused', request=request)

    api = ApiClient('http://advisor.test', transport=httpx.MockTransport(broken))
    with pytest.raises(ApiClientError) as excinfo:
        api.estate.overview(str(ObjectId()))
    assert excinfo.value.status_code is None


def test_transport_failures_do_not_leak_request_timings():
    def broken(request):
        raise httpx.ConnectError('connection refused', request=request)

    api = ApiClient('http://advisor.test', transport=httpx.MockTransport(broken))
    for _ in range(3):
        with pytest.raises(ApiClientError):
            api.get('/clients/manage')
    assert api._started == {}

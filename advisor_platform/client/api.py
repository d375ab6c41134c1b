import os
import random
import string
import time

import httpx
import structlog

from advisor_platform.utils.ids import extract_client_id

logger = structlog.get_logger(__name__)

DEFAULT_SERVER_URL = 'http://localhost:5000'
DEFAULT_TIMEOUT = 30


class ApiClientError(Exception):
    """Non-2xx response from the API"""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


class SessionExpired(ApiClientError):
    """The server rejected the bearer token; stored credentials were cleared"""


class TokenStore:
    """In-memory token and advisor profile for one client session"""

    def __init__(self, token=None, advisor=None):
        self.token = token
        self.advisor = advisor

    def set(self, token, advisor=None):
        self.token = token
        self.advisor = advisor

    def clear(self):
        self.token = None
        self.advisor = None

    @property
    def is_authenticated(self):
        return bool(self.token)


def generate_request_id():
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"REQ_{int(time.time() * 1000)}_{suffix}"


def _require_id(value, label):
    extracted = extract_client_id(value)
    if not extracted:
        raise ValueError(f'A valid {label} is required')
    return extracted


class ApiClient:
    """
    Synchronous client for the advisor REST API.

    Every request carries the stored bearer token and a fresh request id.
    A 401 from any endpoint clears the token store and raises
    ``SessionExpired``; other error responses raise ``ApiClientError``.
    """

    def __init__(self, server_url=None, token_store=None, timeout=DEFAULT_TIMEOUT, transport=None):
        server_url = server_url or os.getenv('ADVISOR_API_URL', DEFAULT_SERVER_URL)
        self.tokens = token_store or TokenStore()
        self._started = {}
        self.http = httpx.Client(
            base_url=f"{server_url.rstrip('/')}/api",
            timeout=timeout,
            headers={'Accept': 'application/json'},
            event_hooks={'request': [self._on_request], 'response': [self._on_response]},
            transport=transport,
        )

        self.auth = AuthApi(self)
        self.clients = ClientsApi(self)
        self.plans = PlansApi(self)
        self.meetings = MeetingsApi(self)
        self.transcriptions = TranscriptionsApi(self)
        self.loe = LOEApi(self)
        self.exit_strategies = ExitStrategiesApi(self)
        self.recommendations = RecommendationsApi(self)
        self.estate = EstateApi(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        self.http.close()

    def _on_request(self, request):
        if self.tokens.token:
            request.headers['Authorization'] = f'Bearer {self.tokens.token}'
        request_id = generate_request_id()
        request.headers['X-Request-Id'] = request_id
        self._started[request_id] = time.monotonic()

    def _on_response(self, response):
        request = response.request
        started = self._started.pop(request.headers.get('X-Request-Id'), None)
        duration_ms = round((time.monotonic() - started) * 1000) if started else None
        logger.info("api_response", method=request.method, url=str(request.url),
                    status=response.status_code, duration_ms=duration_ms)

        if response.status_code == 401:
            response.read()
            self.tokens.clear()
            logger.warning("api_session_expired", url=str(request.url))
            raise SessionExpired(_error_message(response, 'Session expired'), 401, _payload(response))

    def _forget_request(self, error):
        try:
            request_id = error.request.headers.get('X-Request-Id')
        except RuntimeError:
            return
        self._started.pop(request_id, None)

    def request(self, method, path, **kwargs):
        try:
            response = self.http.request(method, path, **kwargs)
        except httpx.TransportError as e:
            self._forget_request(e)
            logger.error("api_request_failed", method=method, path=path, error=str(e))
            raise ApiClientError(f'Request failed: {e}') from e

        payload = _payload(response)
        if response.is_error:
            raise ApiClientError(_error_message(response, response.reason_phrase), response.status_code, payload)
        return payload

    def get(self, path, params=None):
        return self.request('GET', path, params=params)

    def post(self, path, json=None, **kwargs):
        return self.request('POST', path, json=json, **kwargs)

    def put(self, path, json=None):
        return self.request('PUT', path, json=json)

    def patch(self, path, json=None):
        return self.request('PATCH', path, json=json)

    def delete(self, path):
        return self.request('DELETE', path)


def _payload(response):
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {'raw': response.text}
    return data if isinstance(data, dict) else {'data': data}


def _error_message(response, default):
    return _payload(response).get('error') or default


class _Resource:
    def __init__(self, api):
        self.api = api


class AuthApi(_Resource):

    def _remember(self, payload):
        if payload.get('token'):
            self.api.tokens.set(payload['token'], payload.get('advisor'))
        return payload

    def register(self, email, password, first_name, last_name, **extra):
        body = {'email': email, 'password': password, 'first_name': first_name, 'last_name': last_name, **extra}
        return self._remember(self.api.post('/auth/register', json=body))

    def login(self, email, password):
        return self._remember(self.api.post('/auth/login', json={'email': email, 'password': password}))

    def logout(self):
        try:
            return self.api.post('/auth/logout')
        finally:
            self.api.tokens.clear()

    def profile(self):
        return self.api.get('/auth/profile')

    def update_profile(self, **fields):
        return self.api.put('/auth/profile', json=fields)

    def change_password(self, current_password, new_password):
        return self.api.post('/auth/change-password',
                             json={'current_password': current_password, 'new_password': new_password})


class ClientsApi(_Resource):

    def list(self, **params):
        return self.api.get('/clients/manage', params=params or None)

    def dashboard_stats(self):
        return self.api.get('/clients/manage/dashboard/stats')

    def get(self, client_id):
        return self.api.get(f"/clients/manage/{_require_id(client_id, 'client ID')}")

    def update(self, client_id, data):
        return self.api.put(f"/clients/manage/{_require_id(client_id, 'client ID')}", json=data)

    def delete(self, client_id):
        return self.api.delete(f"/clients/manage/{_require_id(client_id, 'client ID')}")

    def financial_summary(self, client_id):
        return self.api.get(f"/clients/manage/{_require_id(client_id, 'client ID')}/financial-summary")

    def invitations(self):
        return self.api.get('/clients/manage/invitations')

    def send_invitation(self, client_email, client_first_name, client_last_name, **extra):
        body = {
            'client_email': client_email,
            'client_first_name': client_first_name,
            'client_last_name': client_last_name,
            **extra,
        }
        return self.api.post('/clients/manage/invitations', json=body)

    def invitation_history(self, client_id):
        return self.api.get(f"/client-invitations/client/{_require_id(client_id, 'client ID')}")

    def bulk_import(self, file_path):
        with open(file_path, 'rb') as f:
            return self.api.post('/clients/manage/bulk-import', files={'file': (os.path.basename(file_path), f)})

    def upload_cas(self, client_id, file_path, password=None):
        client_id = _require_id(client_id, 'client ID')
        with open(file_path, 'rb') as f:
            return self.api.post(
                f'/clients/manage/{client_id}/cas/upload',
                files={'casFile': (os.path.basename(file_path), f, 'application/pdf')},
                data={'password': password} if password else None,
            )

    def parse_cas(self, client_id):
        return self.api.post(f"/clients/manage/{_require_id(client_id, 'client ID')}/cas/parse")

    def get_cas(self, client_id):
        return self.api.get(f"/clients/manage/{_require_id(client_id, 'client ID')}/cas")

    def delete_cas(self, client_id):
        return self.api.delete(f"/clients/manage/{_require_id(client_id, 'client ID')}/cas")


class PlansApi(_Resource):

    def create(self, client_id, plan_type, plan_data=None):
        body = {'client_id': _require_id(client_id, 'client ID'), 'plan_type': plan_type,
                'plan_data': plan_data or {}}
        return self.api.post('/plans/', json=body)

    def for_client(self, client_id):
        return self.api.get(f"/plans/client/{_require_id(client_id, 'client ID')}")

    def get(self, plan_id):
        return self.api.get(f"/plans/{_require_id(plan_id, 'plan ID')}")

    def update(self, plan_id, plan_data):
        return self.api.put(f"/plans/{_require_id(plan_id, 'plan ID')}", json={'plan_data': plan_data})

    def archive(self, plan_id):
        return self.api.delete(f"/plans/{_require_id(plan_id, 'plan ID')}")

    def set_status(self, plan_id, status):
        return self.api.patch(f"/plans/{_require_id(plan_id, 'plan ID')}/status", json={'status': status})

    def review(self, plan_id, notes):
        return self.api.post(f"/plans/{_require_id(plan_id, 'plan ID')}/review", json={'notes': notes})

    def clone(self, plan_id, target_client_id=None):
        body = {'target_client_id': extract_client_id(target_client_id)} if target_client_id else {}
        return self.api.post(f"/plans/{_require_id(plan_id, 'plan ID')}/clone", json=body)

    def performance(self, plan_id):
        return self.api.get(f"/plans/{_require_id(plan_id, 'plan ID')}/performance")

    def analyze_debt(self, client_id, client_data=None):
        body = {'client_data': client_data} if client_data else {}
        return self.api.post(f"/plans/analyze-debt/{_require_id(client_id, 'client ID')}", json=body)

    def save_debt_strategy(self, plan_id, debt_strategy):
        return self.api.put(f"/plans/{_require_id(plan_id, 'plan ID')}/debt-strategy",
                            json={'debt_strategy': debt_strategy})

    def debt_recommendations(self, plan_id):
        return self.api.get(f"/plans/{_require_id(plan_id, 'plan ID')}/debt-recommendations")

    def analyze_goals(self, selected_goals, client_data=None):
        return self.api.post('/plans/analyze-goals',
                             json={'selected_goals': selected_goals, 'client_data': client_data or {}})

    def ai_recommendations(self, plan_id):
        return self.api.post(f"/plans/{_require_id(plan_id, 'plan ID')}/ai-recommendations")


class MeetingsApi(_Resource):

    def create(self, client_id, scheduled_at=None, meeting_type='scheduled'):
        body = {'client_id': _require_id(client_id, 'client ID'), 'meeting_type': meeting_type}
        if scheduled_at:
            body['scheduled_at'] = scheduled_at if isinstance(scheduled_at, str) else scheduled_at.isoformat()
        return self.api.post('/meetings/create', json=body)

    def instant(self, client_id):
        return self.api.post('/meetings/instant', json={'client_id': _require_id(client_id, 'client ID')})

    def for_advisor(self, **params):
        return self.api.get('/meetings/advisor', params=params or None)

    def for_client(self, client_id):
        return self.api.get(f"/meetings/client/{_require_id(client_id, 'client ID')}")

    def get(self, meeting_id):
        return self.api.get(f"/meetings/{_require_id(meeting_id, 'meeting ID')}")

    def update_status(self, meeting_id, status):
        return self.api.patch(f"/meetings/{_require_id(meeting_id, 'meeting ID')}/status", json={'status': status})

    def analytics(self, time_range='month'):
        return self.api.get('/meetings/analytics', params={'time_range': time_range})

    def calendar(self, year, month):
        return self.api.get('/meetings/calendar', params={'year': year, 'month': month})

    def clients_with_transcripts(self):
        return self.api.get('/meetings/transcripts/clients')

    def start_transcription(self, meeting_id, **options):
        return self.api.post(f"/meetings/{_require_id(meeting_id, 'meeting ID')}/transcription/start", json=options)

    def stop_transcription(self, meeting_id):
        return self.api.post(f"/meetings/{_require_id(meeting_id, 'meeting ID')}/transcription/stop")

    def add_transcript_message(self, meeting_id, participant_id, text, **extra):
        body = {'meeting_id': _require_id(meeting_id, 'meeting ID'), 'participant_id': participant_id,
                'text': text, **extra}
        return self.api.post('/meetings/transcript/message', json=body)

    def transcript(self, meeting_id):
        return self.api.get(f"/meetings/{_require_id(meeting_id, 'meeting ID')}/transcript")

    def summarize_transcript(self, meeting_id):
        return self.api.post(f"/meetings/{_require_id(meeting_id, 'meeting ID')}/transcript/summary")

    def fetch_transcription(self, meeting_id):
        return self.api.post(f"/meetings/{_require_id(meeting_id, 'meeting ID')}/fetch-transcription")

    def start_recording(self, meeting_id):
        return self.api.post(f"/meetings/{_require_id(meeting_id, 'meeting ID')}/recording/start")

    def stop_recording(self, meeting_id):
        return self.api.post(f"/meetings/{_require_id(meeting_id, 'meeting ID')}/recording/stop")


class TranscriptionsApi(_Resource):

    def sync(self):
        return self.api.post('/transcriptions/sync')

    def for_advisor(self, status=None, limit=50):
        params = {'limit': limit}
        if status:
            params['status'] = status
        return self.api.get('/transcriptions/advisor', params=params)

    def get(self, transcription_id):
        return self.api.get(f"/transcriptions/{_require_id(transcription_id, 'transcription ID')}")

    def fetch(self, transcription_id):
        return self.api.post(f"/transcriptions/{_require_id(transcription_id, 'transcription ID')}/fetch")

    def retry_failed(self):
        return self.api.post('/transcriptions/retry-failed')


class LOEApi(_Resource):

    def clients(self):
        return self.api.get('/loe-automation/clients')

    def details(self, client_id):
        return self.api.get(f"/loe-automation/clients/{_require_id(client_id, 'client ID')}/loe-details")

    def create(self, client_id, custom_notes=''):
        return self.api.post(f"/loe-automation/clients/{_require_id(client_id, 'client ID')}/create-loe",
                             json={'custom_notes': custom_notes})

    def view(self, access_token):
        return self.api.get(f'/loe-automation/client/{access_token}')

    def sign(self, access_token, signature, ip_address=None, user_agent=None):
        body = {'signature': signature}
        if ip_address:
            body['ip_address'] = ip_address
        if user_agent:
            body['user_agent'] = user_agent
        return self.api.post(f'/loe-automation/client/{access_token}/sign', json=body)


class ExitStrategiesApi(_Resource):

    def clients_with_funds(self):
        return self.api.get('/mutual-fund-exit-strategies/clients-with-funds')

    def create(self, data):
        body = {**data, 'client_id': _require_id(data.get('client_id'), 'client ID')}
        return self.api.post('/mutual-fund-exit-strategies/strategies', json=body)

    def validate_step(self, step, data):
        return self.api.post(f'/mutual-fund-exit-strategies/strategies/validate-step/{int(step)}', json=data)

    def for_client(self, client_id):
        return self.api.get(f"/mutual-fund-exit-strategies/strategies/client/{_require_id(client_id, 'client ID')}")

    def get(self, strategy_id):
        return self.api.get(f"/mutual-fund-exit-strategies/strategies/{_require_id(strategy_id, 'strategy ID')}")

    def update(self, strategy_id, data):
        return self.api.put(f"/mutual-fund-exit-strategies/strategies/{_require_id(strategy_id, 'strategy ID')}",
                            json=data)

    def delete(self, strategy_id):
        return self.api.delete(f"/mutual-fund-exit-strategies/strategies/{_require_id(strategy_id, 'strategy ID')}")

    def summary(self):
        return self.api.get('/mutual-fund-exit-strategies/summary')


class RecommendationsApi(_Resource):

    def for_client(self, client_id):
        return self.api.get(f"/mutual-fund-recommend/client/{_require_id(client_id, 'client ID')}")

    def create(self, data):
        body = {**data, 'client_id': _require_id(data.get('client_id'), 'client ID')}
        return self.api.post('/mutual-fund-recommend/', json=body)

    def get(self, recommendation_id):
        return self.api.get(f"/mutual-fund-recommend/{_require_id(recommendation_id, 'recommendation ID')}")

    def update(self, recommendation_id, data):
        return self.api.put(f"/mutual-fund-recommend/{_require_id(recommendation_id, 'recommendation ID')}",
                            json=data)

    def delete(self, recommendation_id):
        return self.api.delete(f"/mutual-fund-recommend/{_require_id(recommendation_id, 'recommendation ID')}")

    def summary(self):
        return self.api.get('/mutual-fund-recommend/summary')

    def fund_details(self, fund_name, fund_house_name):
        return self.api.post('/mutual-fund-recommend/claude/fund-details',
                             json={'fund_name': fund_name, 'fund_house_name': fund_house_name})


class EstateApi(_Resource):

    def overview(self, client_id):
        return self.api.get(f"/estate-planning/client/{_require_id(client_id, 'client ID')}")

    def save_information(self, client_id, sections):
        return self.api.post(f"/estate-planning/client/{_require_id(client_id, 'client ID')}/information",
                             json=sections)

    def information(self, client_id):
        return self.api.get(f"/estate-planning/client/{_require_id(client_id, 'client ID')}/information")

    def save_will(self, client_id, will):
        return self.api.post(f"/estate-planning/client/{_require_id(client_id, 'client ID')}/will", json=will)

    def will(self, client_id):
        return self.api.get(f"/estate-planning/client/{_require_id(client_id, 'client ID')}/will")

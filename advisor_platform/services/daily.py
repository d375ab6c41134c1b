import time

from flask import current_app
import httpx
import structlog

from advisor_platform.utils.errors import ExternalServiceError

logger = structlog.get_logger(__name__)

ROOM_EXPIRY_SECONDS = 86400
TRANSCRIPTION_TEMPLATE = '{domain_name}/{room_name}/{mtg_session_id}_{epoch_time}.vtt'


class DailyClient:
    """Thin client for the Daily.co REST API"""

    def __init__(self, api_key, base_url='https://api.daily.co/v1', timeout=30, transport=None):
        self.api_key = api_key
        self.transport = transport
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def _headers(self):
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }

    def _request(self, method, path, **kwargs):
        if not self.api_key:
            raise ExternalServiceError('Daily.co API key is not configured', status_code=503)

        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error("daily_request_failed", method=method, path=path, error=str(e))
            raise ExternalServiceError(f'Daily.co request failed: {e}')

        if response.status_code >= 400:
            try:
                details = response.json()
            except ValueError:
                details = response.text
            logger.error("daily_error_response", method=method, path=path,
                         status_code=response.status_code, details=details)
            raise ExternalServiceError('Daily.co API error', status_code=response.status_code, details=details)

        return response.json()

    def create_room(self, room_name):
        payload = {
            'name': room_name,
            'privacy': 'private',
            'properties': {
                'max_participants': 5,
                'exp': int(time.time()) + ROOM_EXPIRY_SECONDS,
                'enable_screenshare': True,
                'enable_chat': True,
                'enable_transcription': True,
                'enable_transcription_storage': True,
                'transcription_template': TRANSCRIPTION_TEMPLATE,
            },
        }
        room = self._request('POST', '/rooms', json=payload)
        logger.info("daily_room_created", room_name=room_name, room_id=room.get('id'))
        return room

    def create_meeting_token(self, room_name, user_name, user_id, is_owner=False):
        properties = {
            'room_name': room_name,
            'user_name': user_name,
            'user_id': str(user_id),
            'is_owner': is_owner,
        }
        if is_owner:
            properties['permissions'] = {'canAdmin': ['transcription']}
        data = self._request('POST', '/meeting-tokens', json={'properties': properties})
        return data.get('token')

    def create_meeting_tokens(self, room_name, advisor_id, client_id, client_name):
        return {
            'advisor_token': self.create_meeting_token(room_name, 'Advisor', advisor_id, is_owner=True),
            'client_token': self.create_meeting_token(room_name, client_name, client_id),
        }

    def list_transcripts(self, room_id=None, limit=100):
        params = {'limit': limit}
        if room_id:
            params['roomId'] = room_id
        data = self._request('GET', '/transcript', params=params)
        return data.get('data') or []

    def get_transcript_access_link(self, transcript_id):
        data = self._request('GET', f'/transcript/{transcript_id}/access-link')
        return data.get('link')

    def download_text(self, url):
        """Fetch a transcript file from a signed access link"""
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("daily_download_failed", error=str(e))
            raise ExternalServiceError(f'Transcript download failed: {e}')
        return response.text

    def fetch_transcript_content(self, transcript_id):
        link = self.get_transcript_access_link(transcript_id)
        if not link:
            raise ExternalServiceError('Daily.co returned no access link for transcript', status_code=404)
        return self.download_text(link)

    def start_recording(self, room_name):
        return self._request('POST', f'/rooms/{room_name}/recordings/start', json={})

    def stop_recording(self, room_name):
        return self._request('POST', f'/rooms/{room_name}/recordings/stop', json={})


def get_daily_client():
    """The app-wide Daily client; tests install a fake under app.extensions"""
    client = current_app.extensions.get('daily_client')
    if client is None:
        client = DailyClient(current_app.config.get('DAILY_API_KEY'), current_app.config['DAILY_API_URL'])
        current_app.extensions['daily_client'] = client
    return client

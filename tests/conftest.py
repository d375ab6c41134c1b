import mongomock
import pytest

from advisor_platform.config import database
from advisor_platform.utils.errors import ExternalServiceError


class FakeDaily:
    """In-memory stand-in for the Daily.co REST client"""

    def __init__(self):
        self.rooms = []
        self.transcripts = []
        self.contents = {}
        self.recordings = []

    def create_room(self, room_name):
        room = {'id': f'room-{len(self.rooms) + 1}', 'name': room_name,
                'url': f'https://advisor.daily.co/{room_name}'}
        self.rooms.append(room)
        return room

    def create_meeting_tokens(self, room_name, advisor_id, client_id, client_name):
        return {'advisor_token': f'adv-{room_name}', 'client_token': f'cli-{room_name}'}

    def list_transcripts(self, room_id=None, limit=100):
        return list(self.transcripts)

    def fetch_transcript_content(self, transcript_id):
        if transcript_id not in self.contents:
            raise ExternalServiceError('Daily.co returned no access link for transcript', status_code=404)
        return self.contents[transcript_id]

    def start_recording(self, room_name):
        self.recordings.append(('start', room_name))
        return {'recordingId': f'rec-{room_name}'}

    def stop_recording(self, room_name):
        self.recordings.append(('stop', room_name))
        return {}


@pytest.fixture
def fake_daily():
    return FakeDaily()


@pytest.fixture
def app(monkeypatch, tmp_path, fake_daily):
    monkeypatch.setattr(database, 'MongoClient', mongomock.MongoClient)

    from advisor_platform.app import create_app

    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'JWT_SECRET': 'test-jwt-secret',
        'MONGODB_URI': 'mongodb://localhost:27017/test',
        'MONGODB_DB': 'advisor_platform_test',
        'GOOGLE_API_KEY': None,
        'DAILY_API_KEY': 'test-daily-key',
        'FRONTEND_URL': 'http://frontend.test',
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        'FLASK_ENV': 'testing',
    })
    app.extensions['daily_client'] = fake_daily
    yield app
    database.db_instance.close()


@pytest.fixture
def client(app):
    return app.test_client()


def register_advisor(client, email='advisor@example.com', password='password123'):
    r = client.post('/api/auth/register', json={
        'email': email,
        'password': password,
        'first_name': 'Asha',
        'last_name': 'Rao',
        'firm_name': 'Rao Wealth',
    })
    assert r.status_code == 201, r.get_json()
    body = r.get_json()
    return body['advisor'], {'Authorization': f"Bearer {body['token']}"}


@pytest.fixture
def advisor(client):
    return register_advisor(client)


@pytest.fixture
def auth_headers(advisor):
    return advisor[1]


@pytest.fixture
def make_client(app, advisor):
    """Insert a client owned by the registered advisor"""
    from advisor_platform.models.client import Client

    def _make(email='client@example.com', **values):
        with app.app_context():
            values.setdefault('status', 'active')
            record = Client(advisor_id=advisor[0]['id'], first_name='Ravi', last_name='Kumar',
                            email=email, **values)
            record.save()
            return record.id

    return _make

import pytest

from test_meetings import VTT


@pytest.fixture
def meeting(client, auth_headers, make_client):
    r = client.post('/api/meetings/instant', headers=auth_headers, json={'client_id': make_client()})
    assert r.status_code == 201
    return r.get_json()['meeting']


def sync(client, headers):
    r = client.post('/api/transcriptions/sync', headers=headers)
    assert r.status_code == 200
    return r.get_json()


def test_sync_creates_then_updates(client, auth_headers, meeting, fake_daily):
    fake_daily.transcripts = [
        {'transcriptId': 't-1', 'roomId': 'room-1', 'roomName': meeting['room_name'],
         'status': 't_processing', 'duration': 120},
        {'transcriptId': 't-x', 'roomId': 'room-unknown', 'roomName': 'elsewhere', 'status': 't_finished'},
    ]
    assert sync(client, auth_headers) == {
        'success': True, 'created': 1, 'updated': 0, 'unmatched': 1, 'total': 2,
    }

    fake_daily.transcripts[0]['status'] = 't_finished'
    body = sync(client, auth_headers)
    assert body['created'] == 0
    assert body['updated'] == 1

    listed = client.get('/api/transcriptions/advisor', headers=auth_headers).get_json()
    assert listed['count'] == 1
    transcription = listed['transcriptions'][0]
    assert transcription['status'] == 'completed'
    assert transcription['daily_status'] == 't_finished'
    assert transcription['meeting_id'] == meeting['id']
    assert 'content' not in transcription


def test_fetch_stores_content_on_transcription_and_meeting(client, auth_headers, meeting, fake_daily):
    fake_daily.transcripts = [{'transcriptId': 't-1', 'roomId': 'room-1', 'status': 't_finished'}]
    fake_daily.contents['t-1'] = VTT
    sync(client, auth_headers)
    transcription_id = client.get('/api/transcriptions/advisor', headers=auth_headers) \
        .get_json()['transcriptions'][0]['id']

    r = client.post(f'/api/transcriptions/{transcription_id}/fetch', headers=auth_headers)
    assert r.status_code == 200
    assert r.get_json()['transcription']['fetch_status'] == 'completed'

    full = client.get(f'/api/transcriptions/{transcription_id}', headers=auth_headers).get_json()['transcription']
    assert full['content'] == VTT
    assert full['parsed']['summary']['participant_count'] == 2

    stored = client.get(f"/api/meetings/{meeting['id']}", headers=auth_headers).get_json()['meeting']
    assert stored['transcript']['transcript_id'] == 't-1'
    assert stored['transcript']['final_transcript'].startswith('Advisor: Welcome')


def test_failed_fetch_is_recorded_and_retried(app, client, auth_headers, meeting, fake_daily):
    fake_daily.transcripts = [{'transcriptId': 't-1', 'roomId': 'room-1', 'status': 't_finished'}]
    sync(client, auth_headers)
    transcription_id = client.get('/api/transcriptions/advisor', headers=auth_headers) \
        .get_json()['transcriptions'][0]['id']

    r = client.post(f'/api/transcriptions/{transcription_id}/fetch', headers=auth_headers)
    body = r.get_json()
    assert r.status_code == 502
    assert body['success'] is False
    assert body['transcription']['fetch_status'] == 'failed'
    assert body['transcription']['fetch_attempts'] == 1

    fake_daily.contents['t-1'] = VTT
    r = client.post('/api/transcriptions/retry-failed', headers=auth_headers)
    assert r.get_json() == {'success': True, 'retried': 1, 'succeeded': 1, 'failed': 0}


def test_retry_respects_max_attempts(app, client, auth_headers, meeting, fake_daily):
    app.config['MAX_FETCH_ATTEMPTS'] = 1
    fake_daily.transcripts = [{'transcriptId': 't-1', 'roomId': 'room-1', 'status': 't_finished'}]
    sync(client, auth_headers)
    transcription_id = client.get('/api/transcriptions/advisor', headers=auth_headers) \
        .get_json()['transcriptions'][0]['id']
    client.post(f'/api/transcriptions/{transcription_id}/fetch', headers=auth_headers)

    r = client.post('/api/transcriptions/retry-failed', headers=auth_headers)
    assert r.get_json()['retried'] == 0


def test_invalid_transcription_id(client, auth_headers):
    assert client.get('/api/transcriptions/123', headers=auth_headers).status_code == 400
    assert client.get('/api/transcriptions/64b7f0c2a1b2c3d4e5f60718', headers=auth_headers).status_code == 404

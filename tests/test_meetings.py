from datetime import datetime, timedelta

import pytest

from advisor_platform.models.meeting import Meeting
from conftest import register_advisor

VTT = """WEBVTT

00:00:00.000 --> 00:00:03.000
Advisor: Welcome to the review.

00:00:03.000 --> 00:00:06.000
Client: Thanks, happy to be here.
"""


@pytest.fixture
def meeting(client, auth_headers, make_client):
    client_id = make_client()
    r = client.post('/api/meetings/create', headers=auth_headers, json={
        'client_id': client_id,
        'scheduled_at': '2024-05-15T10:00:00Z',
    })
    assert r.status_code == 201, r.get_json()
    return r.get_json()['meeting']


def test_create_meeting_uses_daily_room_and_tokens(meeting, fake_daily):
    assert meeting['room_url'] == fake_daily.rooms[0]['url']
    assert meeting['daily_room_id'] == 'room-1'
    assert meeting['client_meeting_link'] == f"{meeting['room_url']}?t=cli-{meeting['room_name']}"
    assert meeting['advisor_meeting_link'].endswith(f"?t=adv-{meeting['room_name']}")
    assert meeting['scheduled_at'] == '2024-05-15T10:00:00Z'
    assert meeting['client']['first_name'] == 'Ravi'


def test_meeting_type_is_validated(client, auth_headers, make_client):
    r = client.post('/api/meetings/create', headers=auth_headers,
                    json={'client_id': make_client(), 'meeting_type': 'party'})
    assert r.status_code == 400


def test_status_completion_sets_duration_in_minutes():
    meeting = Meeting(advisor_id='a', client_id='c', room_name='r', room_url='https://x/r')
    meeting.save = lambda: meeting

    meeting.update_status('active')
    meeting.started_at = meeting.started_at - timedelta(minutes=44, seconds=40)
    meeting.update_status('completed')

    assert meeting.status == 'completed'
    assert meeting.duration == 45


def test_compile_final_transcript_groups_speakers():
    meeting = Meeting(advisor_id='a', client_id='c', room_name='r', room_url='https://x/r')
    meeting.save = lambda: meeting
    base = datetime(2024, 5, 15, 10, 0)

    meeting.add_transcript_message('p1', 'Asha', 'Hello there.', is_final=True, timestamp=base)
    meeting.add_transcript_message('p1', 'Asha', 'Shall we begin?', is_final=True,
                                   timestamp=base + timedelta(seconds=2))
    meeting.add_transcript_message('p2', 'Ravi', 'Yes', is_final=True, timestamp=base + timedelta(seconds=4))
    meeting.add_transcript_message('p2', 'Ravi', 'interim', is_final=False, timestamp=base + timedelta(seconds=5))

    assert meeting.compile_final_transcript() == 'Asha:\nHello there. Shall we begin? \n\nRavi:\nYes'
    speakers = {s['participant_id']: s for s in meeting.transcript['speakers']}
    assert speakers['p1']['message_count'] == 2
    assert speakers['p1']['total_speaking_time'] == pytest.approx(2.0)


def test_onboarding_meeting_does_not_need_client():
    meeting = Meeting(advisor_id='a', room_name='r', room_url='u', is_onboarding_meeting=True,
                      meeting_type='onboarding')
    assert meeting.client_id is None


def test_live_transcript_flow(client, auth_headers, meeting):
    meeting_id = meeting['id']
    r = client.post(f'/api/meetings/{meeting_id}/transcription/start', headers=auth_headers, json={})
    assert r.get_json()['transcript']['status'] == 'active'

    for text in ('We should review the portfolio risk today.', 'I will send the tax documents.'):
        r = client.post('/api/meetings/transcript/message', headers=auth_headers, json={
            'meeting_id': meeting_id, 'participant_id': 'p1', 'participant_name': 'Asha',
            'text': text, 'is_final': True,
        })
        assert r.status_code == 201

    r = client.post(f'/api/meetings/{meeting_id}/transcription/stop', headers=auth_headers, json={})
    assert r.get_json()['transcript']['message_count'] == 2

    transcript = client.get(f'/api/meetings/{meeting_id}/transcript', headers=auth_headers).get_json()
    assert transcript['has_transcript'] is True
    assert transcript['transcript']['final_transcript'].startswith('Asha:\n')

    r = client.post(f'/api/meetings/{meeting_id}/transcript/summary', headers=auth_headers)
    summary = r.get_json()['summary']
    assert summary['ai_generated'] is False
    assert summary['action_items']


def test_transcript_message_requires_fields(client, auth_headers, meeting):
    r = client.post('/api/meetings/transcript/message', headers=auth_headers, json={'meeting_id': meeting['id']})
    assert r.status_code == 400


def test_fetch_transcription_from_daily(client, auth_headers, meeting, fake_daily):
    fake_daily.transcripts = [
        {'transcriptId': 't-2', 'roomId': 'room-1', 'status': 't_processing'},
        {'transcriptId': 't-1', 'roomId': 'room-1', 'status': 't_finished'},
    ]
    fake_daily.contents['t-1'] = VTT

    r = client.post(f"/api/meetings/{meeting['id']}/fetch-transcription", headers=auth_headers)
    body = r.get_json()
    assert r.status_code == 200
    assert body['transcript_id'] == 't-1'
    assert [s['speaker_name'] for s in body['parsed_transcript']['speakers']] == ['Advisor', 'Client']

    stored = client.get(f"/api/meetings/{meeting['id']}", headers=auth_headers).get_json()['meeting']
    assert stored['transcript']['status'] == 'completed'
    assert stored['transcript']['fetch_status'] == 'completed'


def test_fetch_transcription_with_invalid_content_is_a_failed_fetch(client, auth_headers, meeting, fake_daily):
    fake_daily.transcripts = [{'transcriptId': 't-1', 'roomId': 'room-1', 'status': 't_finished'}]
    fake_daily.contents['t-1'] = '<html>Access denied</html>'

    r = client.post(f"/api/meetings/{meeting['id']}/fetch-transcription", headers=auth_headers)
    assert r.status_code == 400

    stored = client.get(f"/api/meetings/{meeting['id']}", headers=auth_headers).get_json()['meeting']
    assert stored['has_transcript'] is False
    assert stored['transcript']['status'] == 'not_started'
    assert stored['transcript']['transcript_content'] is None
    assert stored['transcript']['fetch_status'] == 'failed'
    assert stored['transcript']['fetch_attempts'] == 1


def test_failed_transcript_download_is_recorded(client, auth_headers, meeting, fake_daily):
    fake_daily.transcripts = [{'transcriptId': 't-9', 'roomId': 'room-1', 'status': 't_finished'}]

    r = client.post(f"/api/meetings/{meeting['id']}/fetch-transcription", headers=auth_headers)
    assert r.status_code == 404

    transcript = client.get(f"/api/meetings/{meeting['id']}", headers=auth_headers).get_json()['meeting']['transcript']
    assert transcript['fetch_attempts'] == 1
    assert transcript['fetch_status'] == 'failed'
    assert transcript['fetch_error'] == 'Daily.co returned no access link for transcript'


def test_fetch_transcription_without_finished_transcript(client, auth_headers, meeting):
    r = client.post(f"/api/meetings/{meeting['id']}/fetch-transcription", headers=auth_headers)
    assert r.status_code == 404


def test_recording_start_and_stop(client, auth_headers, meeting, fake_daily):
    r = client.post(f"/api/meetings/{meeting['id']}/recording/start", headers=auth_headers, json={})
    assert r.get_json()['recording']['status'] == 'active'
    r = client.post(f"/api/meetings/{meeting['id']}/recording/stop", headers=auth_headers)
    assert r.get_json()['recording']['status'] == 'completed'
    assert [action for action, _ in fake_daily.recordings] == ['start', 'stop']


def test_advisor_listing_analytics_and_calendar(client, auth_headers, meeting):
    r = client.get('/api/meetings/advisor', headers=auth_headers)
    assert r.get_json()['count'] == 1

    r = client.get('/api/meetings/analytics?time_range=all', headers=auth_headers)
    assert r.get_json()['analytics']['total_meetings'] == 1
    assert client.get('/api/meetings/analytics?time_range=decade', headers=auth_headers).status_code == 400

    r = client.get('/api/meetings/calendar?year=2024&month=5', headers=auth_headers)
    calendar = r.get_json()['calendar']
    assert calendar['meeting_count'] == 1
    assert client.get('/api/meetings/calendar?year=2024&month=13', headers=auth_headers).status_code == 400


def test_meetings_of_another_advisor_are_hidden(client, meeting):
    _, other_headers = register_advisor(client, email='other@example.com')
    assert client.get(f"/api/meetings/{meeting['id']}", headers=other_headers).status_code == 404

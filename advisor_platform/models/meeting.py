import secrets

from advisor_platform.models.base import MongoModel
from advisor_platform.utils.dates import utcnow, parse_datetime
from advisor_platform.utils.errors import ValidationError
from advisor_platform.utils.webvtt import parse_webvtt

MEETING_STATUSES = ('scheduled', 'active', 'completed', 'cancelled')
MEETING_TYPES = ('scheduled', 'instant', 'onboarding')
WORDS_PER_MINUTE = 150

DAILY_STATUS_MAP = {
    't_finished': 'completed',
    't_processing': 'active',
    't_error': 'error',
    't_expired': 'error',
}


def map_daily_status(daily_status):
    return DAILY_STATUS_MAP.get(daily_status, daily_status)


def empty_transcript():
    return {
        'status': 'not_started',
        'transcript_id': None,
        'instance_id': None,
        'started_at': None,
        'stopped_at': None,
        'started_by': None,
        'language': 'en',
        'model': 'nova-2-general',
        'settings': {},
        'transcript_content': None,
        'fetch_status': 'pending',
        'fetch_attempts': 0,
        'fetch_error': None,
        'fetched_at': None,
        'real_time_messages': [],
        'final_transcript': None,
        'parsed_transcript': None,
        'speakers': [],
        'summary': None,
    }


def empty_recording():
    return {
        'status': 'not_started',
        'recording_id': None,
        'started_at': None,
        'stopped_at': None,
        'started_by': None,
        'layout': None,
        'download_url': None,
        'duration': None,
        'file_size': None,
        'settings': {},
    }


class Meeting(MongoModel):
    collection_name = 'meetings'
    fields = (
        'advisor_id', 'client_id', 'room_name', 'room_url', 'daily_room_id',
        'scheduled_at', 'started_at', 'ended_at', 'duration', 'status',
        'meeting_type', 'is_onboarding_meeting', 'invitation_id', 'tokens',
        'participants', 'transcript', 'recording', 'notes',
    )

    def __init__(self, advisor_id, room_name, room_url, client_id=None, status='scheduled',
                 meeting_type='scheduled', duration=0, **values):
        if status not in MEETING_STATUSES:
            raise ValidationError(f"Invalid meeting status: {status}")
        if meeting_type not in MEETING_TYPES:
            raise ValidationError(f"Invalid meeting type: {meeting_type}")
        if client_id is None and not values.get('is_onboarding_meeting'):
            raise ValidationError("Client ID is required")

        super().__init__(
            advisor_id=advisor_id,
            client_id=client_id,
            room_name=room_name,
            room_url=room_url,
            status=status,
            meeting_type=meeting_type,
            duration=duration,
            **values
        )
        self.scheduled_at = self.scheduled_at or utcnow()
        self.tokens = self.tokens or {}
        self.participants = self.participants or []
        self.transcript = {**empty_transcript(), **(self.transcript or {})}
        self.recording = {**empty_recording(), **(self.recording or {})}
        self.notes = self.notes or ''
        self.is_onboarding_meeting = bool(self.is_onboarding_meeting)

    # Links

    def _link(self, token_key):
        token = self.tokens.get(token_key)
        if self.room_url and token:
            return f"{self.room_url}?t={token}"
        return self.room_url

    @property
    def client_meeting_link(self):
        return self._link('client_token')

    @property
    def advisor_meeting_link(self):
        return self._link('advisor_token')

    @property
    def has_transcript(self):
        return (
            self.transcript.get('status') == 'completed'
            or bool(self.transcript.get('real_time_messages'))
            or bool(self.transcript.get('transcript_content'))
        )

    # Lookups

    @staticmethod
    def find_owned(meeting_id, advisor_id):
        meeting = Meeting.find_by_id(meeting_id)
        if meeting is None or meeting.advisor_id != advisor_id:
            return None
        return meeting

    @staticmethod
    def find_by_advisor(advisor_id, limit=20, status=None, meeting_type=None):
        query = {'advisor_id': advisor_id}
        if status:
            query['status'] = status
        if meeting_type:
            query['meeting_type'] = meeting_type
        return Meeting.find(query, limit=limit)

    @staticmethod
    def find_by_client(client_id, advisor_id):
        return Meeting.find({'client_id': client_id, 'advisor_id': advisor_id})

    @staticmethod
    def find_by_daily_transcript(room_id=None, room_name=None, transcript_id=None):
        """Match a Daily transcript back to its meeting by any of its ids"""
        clauses = []
        if room_id:
            clauses.append({'daily_room_id': room_id})
        if room_name:
            clauses.append({'room_name': room_name})
        if transcript_id:
            clauses.append({'transcript.transcript_id': transcript_id})
        if not clauses:
            return None
        return Meeting.find_one({'$or': clauses})

    # Status

    def mark_as_started(self):
        self.status = 'active'
        self.started_at = utcnow()
        return self.save()

    def mark_as_completed(self):
        self.status = 'completed'
        self.ended_at = utcnow()
        if self.started_at:
            self.duration = round((self.ended_at - self.started_at).total_seconds() / 60)
        return self.save()

    def update_status(self, status):
        if status not in MEETING_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(MEETING_STATUSES)}")
        if status == 'active':
            return self.mark_as_started()
        if status == 'completed':
            return self.mark_as_completed()
        self.status = status
        return self.save()

    # Transcription

    def start_transcription(self, instance_id=None, started_by=None, language='en',
                            model='nova-2-general', profanity_filter=False, punctuate=True):
        self.transcript.update({
            'status': 'active',
            'instance_id': instance_id,
            'started_at': utcnow(),
            'started_by': started_by,
            'language': language or 'en',
            'model': model or 'nova-2-general',
            'settings': {
                'profanity_filter': bool(profanity_filter),
                'punctuate': punctuate is not False,
            },
        })
        return self.save()

    def stop_transcription(self, stopped_by=None):
        self.transcript['status'] = 'completed'
        self.transcript['stopped_at'] = utcnow()
        self.transcript['stopped_by'] = stopped_by
        return self.save()

    def add_transcript_message(self, participant_id, participant_name, text, is_final=False,
                               timestamp=None, confidence=None, instance_id=None):
        message = {
            'message_id': f"{participant_id}_{secrets.token_hex(6)}",
            'timestamp': parse_datetime(timestamp) or utcnow(),
            'participant_id': participant_id,
            'participant_name': participant_name,
            'text': text,
            'is_final': bool(is_final),
            'confidence': confidence,
            'instance_id': instance_id,
        }
        self.transcript['real_time_messages'].append(message)
        self._update_speaker_stats(participant_id, participant_name, text)
        self.save()
        return message

    def _update_speaker_stats(self, participant_id, participant_name, text):
        speakers = self.transcript['speakers']
        speaker = next((s for s in speakers if s['participant_id'] == participant_id), None)
        if speaker is None:
            speaker = {
                'participant_id': participant_id,
                'participant_name': participant_name,
                'total_speaking_time': 0.0,
                'message_count': 0,
            }
            speakers.append(speaker)

        speaker['message_count'] += 1
        word_count = len(text.split())
        speaker['total_speaking_time'] += word_count / WORDS_PER_MINUTE * 60

    def compile_final_transcript(self):
        """Join final messages in time order, with a header whenever the speaker changes"""
        final_messages = sorted(
            (m for m in self.transcript['real_time_messages'] if m.get('is_final')),
            key=lambda m: m['timestamp'],
        )

        parts = []
        current_speaker = None
        for message in final_messages:
            if message['participant_name'] != current_speaker:
                parts.append(f"\n\n{message['participant_name']}:\n")
                current_speaker = message['participant_name']
            parts.append(f"{message['text']} ")

        transcript = ''.join(parts).strip()
        self.transcript['final_transcript'] = transcript
        return transcript

    def transcript_text(self):
        """Best available plain-text transcript"""
        parsed = self.transcript.get('parsed_transcript') or {}
        return (
            self.transcript.get('final_transcript')
            or parsed.get('full_text')
            or self.compile_final_transcript()
        )

    def add_ai_summary(self, key_points=None, action_items=None, decisions=None, ai_generated=True):
        self.transcript['summary'] = {
            'key_points': key_points or [],
            'action_items': action_items or [],
            'decisions': decisions or [],
            'ai_generated': ai_generated,
            'generated_at': utcnow(),
        }
        self.save()
        return self.transcript['summary']

    def store_vtt(self, content, transcript_id=None):
        """Keep downloaded WebVTT content and its parsed form; invalid content is a failed fetch"""
        if transcript_id:
            self.transcript['transcript_id'] = transcript_id
        parsed = parse_webvtt(content)
        if parsed is None:
            self.mark_fetch_failed('Transcript is not valid WebVTT')
            return None

        self.transcript.update({
            'status': 'completed',
            'transcript_content': content,
            'parsed_transcript': parsed,
            'final_transcript': parsed['full_text'],
            'fetch_status': 'completed',
            'fetch_error': None,
            'fetched_at': utcnow(),
        })
        self.save()
        return parsed

    def mark_fetch_failed(self, error):
        self.transcript['fetch_status'] = 'failed'
        self.transcript['fetch_error'] = str(error)
        return self.save()

    # Recording

    def start_recording(self, recording_id=None, started_by=None, layout=None,
                        record_video=True, record_audio=True, record_screen=False):
        self.recording.update({
            'status': 'active',
            'recording_id': recording_id,
            'started_at': utcnow(),
            'started_by': started_by,
            'layout': layout or 'default',
            'settings': {
                'record_video': record_video is not False,
                'record_audio': record_audio is not False,
                'record_screen': bool(record_screen),
            },
        })
        return self.save()

    def stop_recording(self, stopped_by=None):
        self.recording['status'] = 'completed'
        self.recording['stopped_at'] = utcnow()
        self.recording['stopped_by'] = stopped_by
        if self.recording.get('started_at'):
            elapsed = self.recording['stopped_at'] - self.recording['started_at']
            self.recording['duration'] = round(elapsed.total_seconds())
        return self.save()

    def to_dict(self, client=None):
        data = super().to_dict()
        data['client_meeting_link'] = self.client_meeting_link
        data['advisor_meeting_link'] = self.advisor_meeting_link
        data['has_transcript'] = self.has_transcript
        if client is not None:
            data['client'] = client.to_summary()
        return data

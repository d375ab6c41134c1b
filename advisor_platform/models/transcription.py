from advisor_platform.models.base import MongoModel
from advisor_platform.models.meeting import map_daily_status
from advisor_platform.utils.dates import utcnow
from advisor_platform.utils.webvtt import parse_webvtt


class Transcription(MongoModel):
    collection_name = 'transcriptions'
    fields = (
        'advisor_id', 'meeting_id', 'client_id', 'daily_transcript_id', 'daily_room_id',
        'room_name', 'duration', 'status', 'daily_status', 'fetch_status', 'fetch_attempts',
        'last_fetch_attempt', 'last_fetch_error', 'content', 'parsed', 'fetched_at',
    )

    def __init__(self, advisor_id, daily_transcript_id, status='active', fetch_status='pending',
                 fetch_attempts=0, duration=0, **values):
        super().__init__(
            advisor_id=advisor_id,
            daily_transcript_id=daily_transcript_id,
            status=status,
            fetch_status=fetch_status,
            fetch_attempts=fetch_attempts,
            duration=duration,
            **values
        )

    @staticmethod
    def find_by_daily_id(daily_transcript_id):
        return Transcription.find_one({'daily_transcript_id': daily_transcript_id})

    @staticmethod
    def find_owned(transcription_id, advisor_id):
        transcription = Transcription.find_by_id(transcription_id)
        if transcription is None or transcription.advisor_id != advisor_id:
            return None
        return transcription

    @staticmethod
    def find_by_advisor(advisor_id, status=None, limit=50):
        query = {'advisor_id': advisor_id}
        if status:
            query['status'] = status
        return Transcription.find(query, limit=limit)

    @staticmethod
    def find_retryable(advisor_id, max_attempts):
        return Transcription.find({
            'advisor_id': advisor_id,
            'fetch_status': 'failed',
            'fetch_attempts': {'$lt': max_attempts},
        })

    def apply_daily_data(self, daily_transcript):
        """Copy status and duration from a Daily transcript listing entry"""
        self.daily_status = daily_transcript.get('status')
        self.status = map_daily_status(self.daily_status)
        self.duration = daily_transcript.get('duration') or self.duration
        self.daily_room_id = daily_transcript.get('roomId') or self.daily_room_id
        self.room_name = daily_transcript.get('roomName') or self.room_name
        return self

    def mark_as_fetching(self):
        self.fetch_status = 'fetching'
        self.fetch_attempts = (self.fetch_attempts or 0) + 1
        self.last_fetch_attempt = utcnow()
        return self.save()

    def mark_fetch_completed(self, content):
        parsed = parse_webvtt(content)
        if parsed is None:
            return self.mark_fetch_failed('Transcript is not valid WebVTT')

        self.fetch_status = 'completed'
        self.content = content
        self.parsed = parsed
        self.fetched_at = utcnow()
        self.last_fetch_error = None
        return self.save()

    def mark_fetch_failed(self, error):
        self.fetch_status = 'failed'
        self.last_fetch_error = str(error)
        self.last_fetch_attempt = utcnow()
        return self.save()

    def to_dict(self, include_content=False):
        data = super().to_dict()
        if not include_content:
            data.pop('content')
        return data

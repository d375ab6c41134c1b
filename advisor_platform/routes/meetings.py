from datetime import datetime, timedelta
import time

from bson import ObjectId
from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user
import structlog

from advisor_platform.agents.transcript_summary_agent import TranscriptSummaryAgent
from advisor_platform.models.client import Client
from advisor_platform.models.meeting import Meeting, MEETING_STATUSES, MEETING_TYPES
from advisor_platform.routes.common import get_owned_client, int_arg, json_body
from advisor_platform.services.daily import get_daily_client
from advisor_platform.utils.analytics import calendar_grid, meeting_analytics, week_start
from advisor_platform.utils.auth_middleware import validate_json_data
from advisor_platform.utils.dates import parse_datetime, utcnow
from advisor_platform.utils.errors import ExternalServiceError, NotFoundError, ValidationError
from advisor_platform.utils.ids import to_object_id

logger = structlog.get_logger(__name__)

meetings_bp = Blueprint('meetings', __name__)


def _owned_meeting(meeting_id):
    to_object_id(meeting_id, 'meeting ID')
    meeting = Meeting.find_owned(meeting_id, current_user.id)
    if meeting is None:
        raise NotFoundError('Meeting not found')
    return meeting


def _clients_by_id(meetings):
    ids = {m.client_id for m in meetings if m.client_id}
    clients = Client.find({'_id': {'$in': [ObjectId(i) for i in ids]}}) if ids else []
    return {client.id: client for client in clients}


def _meeting_dicts(meetings):
    clients = _clients_by_id(meetings)
    return [meeting.to_dict(client=clients.get(meeting.client_id)) for meeting in meetings]


def _open_meeting(client, meeting_type, scheduled_at):
    """Create the Daily room, both meeting tokens and the meeting document"""
    daily = get_daily_client()
    room_name = f"meeting-{current_user.id}-{client.id}-{int(time.time() * 1000)}"

    room = daily.create_room(room_name)
    tokens = daily.create_meeting_tokens(room_name, current_user.id, client.id, client.full_name)

    meeting = Meeting(
        advisor_id=current_user.id,
        client_id=client.id,
        room_name=room.get('name') or room_name,
        room_url=room['url'],
        daily_room_id=room.get('id'),
        scheduled_at=scheduled_at,
        meeting_type=meeting_type,
        tokens=tokens,
    )
    meeting.save()

    logger.info("meeting_created", advisor_id=current_user.id, client_id=client.id,
                meeting_id=meeting.id, meeting_type=meeting_type, room_name=meeting.room_name)
    return meeting


@meetings_bp.route('/create', methods=['POST'])
@login_required
@validate_json_data(['client_id'])
def create_meeting():
    data = json_body()
    client = get_owned_client(data['client_id'])

    meeting_type = data.get('meeting_type') or 'scheduled'
    if meeting_type not in MEETING_TYPES:
        raise ValidationError(f"Invalid meeting type. Must be one of: {', '.join(MEETING_TYPES)}")

    scheduled_at = utcnow()
    if data.get('scheduled_at'):
        try:
            scheduled_at = parse_datetime(data['scheduled_at'])
        except ValueError:
            logger.warning("invalid_scheduled_at", provided=data['scheduled_at'])
            scheduled_at = utcnow()

    meeting = _open_meeting(client, meeting_type, scheduled_at)
    return jsonify({
        'success': True,
        'message': 'Meeting created successfully',
        'meeting': meeting.to_dict(client=client)
    }), 201


@meetings_bp.route('/instant', methods=['POST'])
@login_required
@validate_json_data(['client_id'])
def create_instant_meeting():
    client = get_owned_client(json_body()['client_id'])
    meeting = _open_meeting(client, 'instant', utcnow())
    return jsonify({
        'success': True,
        'message': 'Instant meeting created successfully',
        'meeting': meeting.to_dict(client=client)
    }), 201


@meetings_bp.route('/advisor', methods=['GET'])
@login_required
def get_advisor_meetings():
    limit = int_arg('limit', 20, minimum=1, maximum=200)
    status = request.args.get('status') or None
    meeting_type = request.args.get('type') or None
    if status and status not in MEETING_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(MEETING_STATUSES)}")

    meetings = Meeting.find_by_advisor(current_user.id, limit=limit, status=status, meeting_type=meeting_type)
    return jsonify({'success': True, 'meetings': _meeting_dicts(meetings), 'count': len(meetings)}), 200


@meetings_bp.route('/client/<client_id>', methods=['GET'])
@login_required
def get_client_meetings(client_id):
    client = get_owned_client(client_id)
    meetings = Meeting.find_by_client(client.id, current_user.id)
    return jsonify({
        'success': True,
        'client': client.to_summary(),
        'meetings': [meeting.to_dict(client=client) for meeting in meetings],
        'count': len(meetings),
    }), 200


@meetings_bp.route('/transcripts/clients', methods=['GET'])
@login_required
def get_clients_with_transcripts():
    """Clients that have at least one meeting with a transcript"""
    meetings = [m for m in Meeting.find_by_advisor(current_user.id, limit=None) if m.has_transcript]
    clients = _clients_by_id(meetings)

    grouped = {}
    for meeting in meetings:
        client = clients.get(meeting.client_id)
        if client is None:
            continue
        entry = grouped.setdefault(client.id, {
            'client': client.to_summary(),
            'meeting_count': 0,
            'latest_meeting_at': None,
            'meeting_ids': [],
        })
        entry['meeting_count'] += 1
        entry['meeting_ids'].append(meeting.id)
        when = meeting.scheduled_at or meeting.created_at
        if entry['latest_meeting_at'] is None or when > entry['latest_meeting_at']:
            entry['latest_meeting_at'] = when

    results = sorted(grouped.values(), key=lambda e: e['latest_meeting_at'], reverse=True)
    return jsonify({'success': True, 'clients': results, 'count': len(results)}), 200


@meetings_bp.route('/analytics', methods=['GET'])
@login_required
def get_meeting_analytics():
    time_range = request.args.get('time_range', 'month')
    meetings = [m.to_document() for m in Meeting.find_by_advisor(current_user.id, limit=None)]

    try:
        analytics = meeting_analytics(meetings, time_range)
    except ValueError as e:
        raise ValidationError(str(e))

    return jsonify({'success': True, 'analytics': analytics}), 200


def _calendar_entry(meeting, clients):
    client = clients.get(meeting.client_id)
    return {
        'id': meeting.id,
        'scheduled_at': meeting.scheduled_at,
        'status': meeting.status,
        'meeting_type': meeting.meeting_type,
        'duration': meeting.duration,
        'client_name': client.full_name if client else None,
        'client_id': meeting.client_id,
    }


@meetings_bp.route('/calendar', methods=['GET'])
@login_required
def get_meeting_calendar():
    now = utcnow()
    year = int_arg('year', now.year, minimum=1970, maximum=9999)
    month = int_arg('month', now.month)
    if not 1 <= month <= 12:
        raise ValidationError('month must be between 1 and 12')

    grid_start = datetime.combine(week_start(datetime(year, month, 1).date()), datetime.min.time())
    grid_end = grid_start + timedelta(days=42)
    meetings = Meeting.find({
        'advisor_id': current_user.id,
        'scheduled_at': {'$gte': grid_start, '$lt': grid_end},
    })

    clients = _clients_by_id(meetings)
    entries = [_calendar_entry(meeting, clients) for meeting in meetings]
    return jsonify({'success': True, 'calendar': calendar_grid(entries, year, month)}), 200


@meetings_bp.route('/health/check', methods=['GET'])
def meetings_health():
    return jsonify({
        'success': True,
        'service': 'meetings',
        'daily_configured': bool(current_app.config.get('DAILY_API_KEY')),
        'timestamp': utcnow(),
    }), 200


@meetings_bp.route('/<meeting_id>', methods=['GET'])
@login_required
def get_meeting(meeting_id):
    meeting = _owned_meeting(meeting_id)
    client = Client.find_by_id(meeting.client_id) if meeting.client_id else None
    return jsonify({'success': True, 'meeting': meeting.to_dict(client=client)}), 200


@meetings_bp.route('/<meeting_id>/status', methods=['PATCH'])
@login_required
@validate_json_data(['status'])
def update_meeting_status(meeting_id):
    meeting = _owned_meeting(meeting_id)
    meeting.update_status(json_body()['status'])

    logger.info("meeting_status_updated", meeting_id=meeting.id, status=meeting.status,
                duration=meeting.duration)
    return jsonify({'success': True, 'meeting': meeting.to_dict()}), 200


# ============================================================================
# TRANSCRIPTION
# ============================================================================

@meetings_bp.route('/<meeting_id>/transcription/start', methods=['POST'])
@login_required
def start_transcription(meeting_id):
    meeting = _owned_meeting(meeting_id)
    data = json_body()
    meeting.start_transcription(
        instance_id=data.get('instance_id'),
        started_by=data.get('started_by') or current_user.id,
        language=data.get('language'),
        model=data.get('model'),
        profanity_filter=data.get('profanity_filter', False),
        punctuate=data.get('punctuate', True),
    )
    logger.info("transcription_started", meeting_id=meeting.id)
    return jsonify({'success': True, 'transcript': _transcript_status(meeting)}), 200


@meetings_bp.route('/<meeting_id>/transcription/stop', methods=['POST'])
@login_required
def stop_transcription(meeting_id):
    meeting = _owned_meeting(meeting_id)
    meeting.compile_final_transcript()
    meeting.stop_transcription(json_body().get('stopped_by') or current_user.id)
    logger.info("transcription_stopped", meeting_id=meeting.id,
                messages=len(meeting.transcript['real_time_messages']))
    return jsonify({'success': True, 'transcript': _transcript_status(meeting)}), 200


def _transcript_status(meeting):
    transcript = meeting.transcript
    return {
        'status': transcript['status'],
        'started_at': transcript['started_at'],
        'stopped_at': transcript['stopped_at'],
        'message_count': len(transcript['real_time_messages']),
        'speakers': transcript['speakers'],
    }


@meetings_bp.route('/transcript/message', methods=['POST'])
@login_required
@validate_json_data(['meeting_id', 'participant_id', 'text'])
def add_transcript_message():
    """Real-time transcript message pushed by the meeting UI"""
    data = json_body()
    meeting = _owned_meeting(data['meeting_id'])

    message = meeting.add_transcript_message(
        participant_id=data['participant_id'],
        participant_name=data.get('participant_name') or 'Unknown',
        text=data['text'],
        is_final=data.get('is_final', False),
        timestamp=data.get('timestamp'),
        confidence=data.get('confidence'),
        instance_id=data.get('instance_id'),
    )
    return jsonify({'success': True, 'message_id': message['message_id']}), 201


@meetings_bp.route('/<meeting_id>/transcript', methods=['GET'])
@login_required
def get_transcript(meeting_id):
    meeting = _owned_meeting(meeting_id)
    if meeting.transcript['real_time_messages']:
        meeting.compile_final_transcript()
        meeting.save()

    transcript = dict(meeting.transcript)
    transcript.pop('transcript_content', None)
    return jsonify({
        'success': True,
        'meeting_id': meeting.id,
        'has_transcript': meeting.has_transcript,
        'transcript': transcript,
    }), 200


@meetings_bp.route('/<meeting_id>/transcript/summary', methods=['POST'])
@login_required
def generate_transcript_summary(meeting_id):
    meeting = _owned_meeting(meeting_id)
    text = meeting.transcript_text()
    if not text:
        raise ValidationError('No final transcript available for this meeting')

    agent = TranscriptSummaryAgent(current_app.config.get('GOOGLE_API_KEY'), current_app.config['GEMINI_MODEL'])
    result = agent.summarize(text)
    summary = meeting.add_ai_summary(
        key_points=result['key_points'],
        action_items=result['action_items'],
        decisions=result['decisions'],
        ai_generated=result['ai_generated'],
    )

    logger.info("transcript_summary_generated", meeting_id=meeting.id, ai_generated=result['ai_generated'])
    return jsonify({'success': True, 'summary': summary}), 200


@meetings_bp.route('/<meeting_id>/fetch-transcription', methods=['POST'])
@login_required
def fetch_transcription(meeting_id):
    """Pull the finished Daily transcript for this meeting's room"""
    meeting = _owned_meeting(meeting_id)
    daily = get_daily_client()

    candidates = [
        t for t in daily.list_transcripts(room_id=meeting.daily_room_id)
        if t.get('roomId') == meeting.daily_room_id or t.get('roomName') == meeting.room_name
    ]
    finished = [t for t in candidates if t.get('status') == 't_finished']
    if not finished:
        raise NotFoundError('No finished transcription found for this meeting')

    # Daily lists newest first
    latest = finished[0]
    meeting.transcript['fetch_attempts'] = (meeting.transcript.get('fetch_attempts') or 0) + 1
    try:
        content = daily.fetch_transcript_content(latest['transcriptId'])
    except ExternalServiceError as e:
        meeting.mark_fetch_failed(e.message)
        logger.warning("meeting_transcript_fetch_failed", meeting_id=meeting.id,
                       attempts=meeting.transcript['fetch_attempts'], error=e.message)
        raise
    parsed = meeting.store_vtt(content, transcript_id=latest['transcriptId'])
    if parsed is None:
        raise ValidationError('Downloaded transcript is not valid WebVTT')

    logger.info("transcription_fetched", meeting_id=meeting.id, transcript_id=latest['transcriptId'],
                speakers=len(parsed['speakers']))
    return jsonify({
        'success': True,
        'transcript_id': latest['transcriptId'],
        'parsed_transcript': parsed,
    }), 200


# ============================================================================
# RECORDING
# ============================================================================

@meetings_bp.route('/<meeting_id>/recording/start', methods=['POST'])
@login_required
def start_recording(meeting_id):
    meeting = _owned_meeting(meeting_id)
    data = json_body()
    response = get_daily_client().start_recording(meeting.room_name)

    meeting.start_recording(
        recording_id=response.get('recordingId') or response.get('id'),
        started_by=current_user.id,
        layout=data.get('layout'),
        record_video=data.get('record_video', True),
        record_audio=data.get('record_audio', True),
        record_screen=data.get('record_screen', False),
    )
    logger.info("recording_started", meeting_id=meeting.id)
    return jsonify({'success': True, 'recording': meeting.recording}), 200


@meetings_bp.route('/<meeting_id>/recording/stop', methods=['POST'])
@login_required
def stop_recording(meeting_id):
    meeting = _owned_meeting(meeting_id)
    get_daily_client().stop_recording(meeting.room_name)
    meeting.stop_recording(current_user.id)
    logger.info("recording_stopped", meeting_id=meeting.id, duration=meeting.recording['duration'])
    return jsonify({'success': True, 'recording': meeting.recording}), 200

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user
import structlog

from advisor_platform.models.meeting import Meeting
from advisor_platform.models.transcription import Transcription
from advisor_platform.routes.common import int_arg
from advisor_platform.services.daily import get_daily_client
from advisor_platform.utils.errors import ExternalServiceError, NotFoundError
from advisor_platform.utils.ids import to_object_id

logger = structlog.get_logger(__name__)

transcriptions_bp = Blueprint('transcriptions', __name__)


def _owned_transcription(transcription_id):
    to_object_id(transcription_id, 'transcription ID')
    transcription = Transcription.find_owned(transcription_id, current_user.id)
    if transcription is None:
        raise NotFoundError('Transcription not found')
    return transcription


def fetch_content(transcription):
    """Download and parse one transcript, recording the attempt either way"""
    transcription.mark_as_fetching()
    try:
        content = get_daily_client().fetch_transcript_content(transcription.daily_transcript_id)
    except ExternalServiceError as e:
        transcription.mark_fetch_failed(e.message)
        logger.warning("transcription_fetch_failed", transcription_id=transcription.id,
                       attempts=transcription.fetch_attempts, error=e.message)
        return transcription

    transcription.mark_fetch_completed(content)
    if transcription.fetch_status == 'completed' and transcription.meeting_id:
        meeting = Meeting.find_by_id(transcription.meeting_id)
        if meeting is not None:
            meeting.store_vtt(content, transcript_id=transcription.daily_transcript_id)

    logger.info("transcription_fetched", transcription_id=transcription.id,
                fetch_status=transcription.fetch_status)
    return transcription


@transcriptions_bp.route('/sync', methods=['POST'])
@login_required
def sync_transcriptions():
    """Upsert Daily transcripts that belong to this advisor's meetings"""
    daily_transcripts = get_daily_client().list_transcripts()
    created, updated, unmatched = 0, 0, 0

    for item in daily_transcripts:
        meeting = Meeting.find_by_daily_transcript(
            room_id=item.get('roomId'),
            room_name=item.get('roomName'),
            transcript_id=item.get('transcriptId'),
        )
        if meeting is None or meeting.advisor_id != current_user.id:
            unmatched += 1
            continue

        transcription = Transcription.find_by_daily_id(item['transcriptId'])
        if transcription is None:
            transcription = Transcription(
                advisor_id=current_user.id,
                daily_transcript_id=item['transcriptId'],
                meeting_id=meeting.id,
                client_id=meeting.client_id,
            )
            created += 1
        else:
            updated += 1

        transcription.apply_daily_data(item)
        transcription.save()

        meeting.transcript['transcript_id'] = item['transcriptId']
        meeting.save()

    logger.info("transcriptions_synced", advisor_id=current_user.id, created=created,
                updated=updated, unmatched=unmatched)
    return jsonify({
        'success': True,
        'created': created,
        'updated': updated,
        'unmatched': unmatched,
        'total': len(daily_transcripts),
    }), 200


@transcriptions_bp.route('/advisor', methods=['GET'])
@login_required
def get_advisor_transcriptions():
    limit = int_arg('limit', 50, minimum=1, maximum=200)
    transcriptions = Transcription.find_by_advisor(current_user.id, status=request.args.get('status'), limit=limit)
    return jsonify({
        'success': True,
        'transcriptions': [t.to_dict() for t in transcriptions],
        'count': len(transcriptions),
    }), 200


@transcriptions_bp.route('/<transcription_id>', methods=['GET'])
@login_required
def get_transcription(transcription_id):
    transcription = _owned_transcription(transcription_id)
    return jsonify({'success': True, 'transcription': transcription.to_dict(include_content=True)}), 200


@transcriptions_bp.route('/<transcription_id>/fetch', methods=['POST'])
@login_required
def fetch_transcription(transcription_id):
    transcription = fetch_content(_owned_transcription(transcription_id))
    if transcription.fetch_status != 'completed':
        return jsonify({
            'success': False,
            'error': transcription.last_fetch_error or 'Transcript fetch failed',
            'transcription': transcription.to_dict(),
        }), 502
    return jsonify({'success': True, 'transcription': transcription.to_dict()}), 200


@transcriptions_bp.route('/retry-failed', methods=['POST'])
@login_required
def retry_failed():
    max_attempts = current_app.config['MAX_FETCH_ATTEMPTS']
    retried = [fetch_content(t) for t in Transcription.find_retryable(current_user.id, max_attempts)]
    succeeded = sum(1 for t in retried if t.fetch_status == 'completed')

    logger.info("transcriptions_retried", advisor_id=current_user.id, retried=len(retried), succeeded=succeeded)
    return jsonify({
        'success': True,
        'retried': len(retried),
        'succeeded': succeeded,
        'failed': len(retried) - succeeded,
    }), 200

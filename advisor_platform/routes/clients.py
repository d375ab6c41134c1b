#routes/clients.py
import csv
import io
import json
import math

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user
import structlog

from advisor_platform.models.advisor import Advisor
from advisor_platform.models.client import Client, CLIENT_STATUSES, ONBOARDING_STAGES
from advisor_platform.models.client_invitation import ClientInvitation, INVITATION_STATUSES
from advisor_platform.routes.common import get_owned_client, int_arg, json_body
from advisor_platform.utils.auth_middleware import validate_json_data
from advisor_platform.utils.calculations import financial_summary
from advisor_platform.utils.dates import utcnow
from advisor_platform.utils.errors import GoneError, NotFoundError, ValidationError
from advisor_platform.utils.file_handler import CASFileHandler

logger = structlog.get_logger(__name__)

clients_bp = Blueprint('clients', __name__)

EDITABLE_FIELDS = (
    'first_name', 'last_name', 'phone_number', 'pan_number', 'date_of_birth', 'gender',
    'address', 'occupation', 'status', 'financials', 'assets', 'debts_and_liabilities',
    'goals', 'investment_profile', 'is_active',
)
ONBOARDING_SECTIONS = ('financials', 'assets', 'debts_and_liabilities', 'goals', 'investment_profile')
PERSONAL_FIELDS = ('first_name', 'last_name', 'phone_number', 'pan_number', 'date_of_birth',
                   'gender', 'address', 'occupation')
BULK_IMPORT_EXTENSIONS = ('csv', 'json')


def _cas_handler():
    return CASFileHandler(current_app.config['UPLOAD_FOLDER'], current_app.config['CAS_MAX_FILE_SIZE'])


def _invitation_url(token):
    return f"{current_app.config['FRONTEND_URL'].rstrip('/')}/client-onboarding/{token}"


# ============================================================================
# CLIENT MANAGEMENT
# ============================================================================

@clients_bp.route('/manage', methods=['GET'])
@login_required
def list_clients():
    """Paginated, searchable client list"""
    page = int_arg('page', 1, minimum=1)
    limit = int_arg('limit', 10, minimum=1, maximum=100)
    status = request.args.get('status') or None
    if status and status not in CLIENT_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(CLIENT_STATUSES)}")

    clients, total = Client.search(
        current_user.id,
        search=request.args.get('search'),
        status=status,
        sort=request.args.get('sort', 'created_at'),
        order=request.args.get('order', 'desc'),
        page=page,
        limit=limit,
    )
    total_pages = math.ceil(total / limit) if total else 0

    logger.info("clients_listed", advisor_id=current_user.id, total=total, page=page)

    return jsonify({
        'success': True,
        'clients': [client.to_dict() for client in clients],
        'pagination': {
            'current_page': page,
            'total_pages': total_pages,
            'total_clients': total,
            'limit': limit,
            'has_next': page < total_pages,
            'has_prev': page > 1,
        }
    }), 200


@clients_bp.route('/manage/dashboard/stats', methods=['GET'])
@login_required
def dashboard_stats():
    clients = Client.find_by_advisor(current_user.id)

    status_counts = {status: 0 for status in CLIENT_STATUSES}
    portfolio_total = 0
    for client in clients:
        status_counts[client.status] = status_counts.get(client.status, 0) + 1
        portfolio_total += client.portfolio_value()

    total = len(clients)
    completed = status_counts.get('active', 0)
    pending_invitations = ClientInvitation.count({
        'advisor_id': current_user.id,
        'status': {'$in': ['pending', 'sent', 'opened']},
    })

    return jsonify({
        'success': True,
        'stats': {
            'total_clients': total,
            'status_counts': status_counts,
            'onboarding_completion_rate': round(completed / total * 100, 2) if total else 0,
            'pending_invitations': pending_invitations,
            'total_portfolio_value': round(portfolio_total, 2),
            'clients_with_cas': sum(1 for c in clients if (c.cas_data or {}).get('parsed_data')),
            'recent_clients': [client.to_summary() for client in clients[:5]],
        }
    }), 200


@clients_bp.route('/manage/<client_id>', methods=['GET'])
@login_required
def get_client(client_id):
    client = get_owned_client(client_id)
    return jsonify({'success': True, 'client': client.to_dict()}), 200


@clients_bp.route('/manage/<client_id>', methods=['PUT'])
@login_required
def update_client(client_id):
    client = get_owned_client(client_id)
    data = json_body()

    if 'status' in data and data['status'] not in CLIENT_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(CLIENT_STATUSES)}")

    if 'email' in data:
        new_email = (data['email'] or '').lower().strip()
        if not new_email:
            raise ValidationError('Email cannot be empty')
        existing = Client.find_by_email(current_user.id, new_email)
        if existing and existing.id != client.id:
            raise ValidationError('Another client already uses this email')
        client.email = new_email

    updated = [field for field in EDITABLE_FIELDS if field in data]
    for field in updated:
        setattr(client, field, data[field])
    client.save()

    logger.info("client_updated", advisor_id=current_user.id, client_id=client.id, fields=updated)
    return jsonify({'success': True, 'message': 'Client updated successfully', 'client': client.to_dict()}), 200


@clients_bp.route('/manage/<client_id>', methods=['DELETE'])
@login_required
def delete_client(client_id):
    """Delete client, its invitations and any stored CAS file"""
    client = get_owned_client(client_id)

    cas_path = (client.cas_data or {}).get('file_path')
    if cas_path:
        _cas_handler().cleanup_file(cas_path)

    removed = ClientInvitation.collection().delete_many({'client_id': client.id, 'advisor_id': current_user.id})
    client.delete()

    logger.info("client_deleted", advisor_id=current_user.id, client_id=client.id,
                invitations_removed=removed.deleted_count)
    return jsonify({'success': True, 'message': 'Client deleted successfully'}), 200


@clients_bp.route('/manage/<client_id>/financial-summary', methods=['GET'])
@login_required
def client_financial_summary(client_id):
    client = get_owned_client(client_id)
    return jsonify({
        'success': True,
        'client_id': client.id,
        'summary': financial_summary(client.to_document())
    }), 200


# ============================================================================
# INVITATIONS
# ============================================================================

@clients_bp.route('/manage/invitations', methods=['GET'])
@login_required
def list_invitations():
    status = request.args.get('status') or None
    if status and status not in INVITATION_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(INVITATION_STATUSES)}")
    limit = int_arg('limit', 50, minimum=1, maximum=200)
    invitations = ClientInvitation.find_by_advisor(current_user.id, status=status, limit=limit)

    results = []
    for invitation in invitations:
        if invitation.is_expired and invitation.status in ('pending', 'sent', 'opened'):
            invitation.mark_expired()
        results.append(invitation.to_dict())

    return jsonify({'success': True, 'invitations': results, 'count': len(results)}), 200


@clients_bp.route('/manage/invitations', methods=['POST'])
@login_required
@validate_json_data(['client_email', 'client_first_name', 'client_last_name'])
def send_invitation():
    """Create (or reuse) an invited client and issue an onboarding invitation"""
    data = json_body()
    email = data['client_email'].lower().strip()
    max_invitations = current_app.config['MAX_INVITATIONS_PER_CLIENT']

    if ClientInvitation.count_for_email(current_user.id, email) >= max_invitations:
        raise ValidationError(f'Maximum of {max_invitations} invitations reached for this client')

    client = Client.find_by_email(current_user.id, email)
    if client is None:
        client = Client(
            advisor_id=current_user.id,
            first_name=data['client_first_name'].strip(),
            last_name=data['client_last_name'].strip(),
            email=email,
            status='invited',
        )
        client.save()
    elif client.status == 'active':
        raise ValidationError('Client has already completed onboarding')

    invitation = ClientInvitation(
        advisor_id=current_user.id,
        client_id=client.id,
        client_email=email,
        client_first_name=data['client_first_name'].strip(),
        client_last_name=data['client_last_name'].strip(),
        notes=data.get('notes'),
        expiry_hours=current_app.config['INVITATION_EXPIRY_HOURS'],
        invitation_source=data.get('invitation_source') or 'manual',
    )
    invitation.save()
    invitation.mark_sent()

    logger.info("client_invitation_sent", advisor_id=current_user.id, client_id=client.id,
                invitation_id=invitation.id)

    return jsonify({
        'success': True,
        'message': 'Invitation created successfully',
        'invitation': invitation.to_dict(),
        'invitation_url': _invitation_url(invitation.token),
        'client': client.to_summary(),
    }), 201


# ============================================================================
# BULK IMPORT
# ============================================================================

def _read_import_rows(file):
    extension = file.filename.rsplit('.', 1)[-1].lower() if '.' in file.filename else ''
    if extension not in BULK_IMPORT_EXTENSIONS:
        raise ValidationError('Only CSV and JSON files are supported for bulk import')

    try:
        raw = file.read().decode('utf-8-sig')
    except UnicodeDecodeError:
        raise ValidationError('File must be UTF-8 encoded')

    if extension == 'json':
        try:
            rows = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f'Invalid JSON file: {e}')
        if isinstance(rows, dict):
            rows = rows.get('clients', [])
        if not isinstance(rows, list):
            raise ValidationError('JSON file must contain a list of clients')
        return rows

    return list(csv.DictReader(io.StringIO(raw)))


@clients_bp.route('/manage/bulk-import', methods=['POST'])
@login_required
def bulk_import():
    file = request.files.get('file')
    if not file or not file.filename:
        raise ValidationError('No file provided')

    rows = _read_import_rows(file)
    created, skipped, errors = [], 0, []

    for index, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            errors.append({'row': index, 'error': 'Row is not an object'})
            continue

        row = {str(k).strip().lower(): (v.strip() if isinstance(v, str) else v) for k, v in row.items() if k}
        missing = [field for field in ('first_name', 'last_name', 'email') if not row.get(field)]
        if missing:
            errors.append({'row': index, 'error': f"Missing required fields: {', '.join(missing)}"})
            continue
        invalid = [field for field in ('first_name', 'last_name', 'email') if not isinstance(row[field], str)]
        if invalid:
            errors.append({'row': index, 'error': f"Fields must be text: {', '.join(invalid)}"})
            continue

        if Client.find_by_email(current_user.id, row['email']):
            skipped += 1
            continue

        client = Client(
            advisor_id=current_user.id,
            first_name=row['first_name'],
            last_name=row['last_name'],
            email=row['email'],
            phone_number=row.get('phone_number') or row.get('phone'),
            pan_number=row.get('pan_number'),
            status='active' if row.get('status') == 'active' else 'invited',
        )
        client.save()
        created.append(client.to_summary())

    logger.info("clients_bulk_imported", advisor_id=current_user.id, created=len(created),
                skipped=skipped, errors=len(errors))

    return jsonify({
        'success': True,
        'message': f'{len(created)} clients imported',
        'created': len(created),
        'skipped': skipped,
        'errors': errors,
        'clients': created,
    }), 201 if created else 200


# ============================================================================
# CAS (Consolidated Account Statement)
# ============================================================================

def _store_cas_upload(client, file, password):
    handler = _cas_handler()
    previous = (client.cas_data or {}).get('file_path')

    try:
        file_path, size = handler.save_file(file, client.id)
    except ValueError as e:
        raise ValidationError(str(e))

    if previous and previous != file_path:
        handler.cleanup_file(previous)

    client.cas_data = {
        'file_name': file.filename,
        'file_path': file_path,
        'file_size': size,
        'password': password or None,
        'upload_date': utcnow(),
        'parse_status': 'uploaded',
        'parsed_data': None,
        'parse_error': None,
    }
    client.save()
    return client.cas_data


def _parse_cas(client, password=None):
    cas = dict(client.cas_data or {})
    if not cas.get('file_path'):
        raise NotFoundError('No CAS file uploaded for this client')

    try:
        parsed = _cas_handler().parse_statement(cas['file_path'], password or cas.get('password'))
    except (ValueError, OSError) as e:
        cas.update({'parse_status': 'error', 'parse_error': str(e)})
        client.cas_data = cas
        client.save()
        logger.warning("cas_parse_failed", client_id=client.id, error=str(e))
        raise ValidationError(f'Failed to parse CAS file: {e}')

    cas.update({
        'parse_status': 'parsed',
        'parsed_data': parsed,
        'parse_error': None,
        'cas_type': parsed['cas_type'],
        'parsed_at': utcnow(),
    })
    client.cas_data = cas
    client.save()
    logger.info("cas_parsed", client_id=client.id, cas_type=parsed['cas_type'], pages=parsed['page_count'])
    return parsed


def _public_cas(cas_data):
    cas = dict(cas_data or {})
    cas.pop('file_path', None)
    cas.pop('password', None)
    return cas


@clients_bp.route('/manage/<client_id>/cas/upload', methods=['POST'])
@login_required
def upload_cas(client_id):
    client = get_owned_client(client_id)
    file = request.files.get('casFile')
    if not file or not file.filename:
        raise ValidationError('No CAS file provided')

    cas = _store_cas_upload(client, file, request.form.get('password'))
    logger.info("cas_uploaded", advisor_id=current_user.id, client_id=client.id, size=cas['file_size'])
    return jsonify({'success': True, 'message': 'CAS file uploaded successfully', 'cas_data': _public_cas(cas)}), 201


@clients_bp.route('/manage/<client_id>/cas/parse', methods=['POST'])
@login_required
def parse_cas(client_id):
    client = get_owned_client(client_id)
    parsed = _parse_cas(client, json_body().get('password'))
    return jsonify({'success': True, 'message': 'CAS file parsed successfully', 'parsed_data': parsed}), 200


@clients_bp.route('/manage/<client_id>/cas', methods=['GET'])
@login_required
def get_cas(client_id):
    client = get_owned_client(client_id)
    if not client.cas_data:
        raise NotFoundError('No CAS data found for this client')
    return jsonify({'success': True, 'cas_data': _public_cas(client.cas_data)}), 200


@clients_bp.route('/manage/<client_id>/cas', methods=['DELETE'])
@login_required
def delete_cas(client_id):
    client = get_owned_client(client_id)
    if not client.cas_data:
        raise NotFoundError('No CAS data found for this client')

    _cas_handler().cleanup_file(client.cas_data.get('file_path'))
    client.cas_data = None
    client.save()

    logger.info("cas_deleted", advisor_id=current_user.id, client_id=client.id)
    return jsonify({'success': True, 'message': 'CAS data deleted successfully'}), 200


# ============================================================================
# PUBLIC ONBOARDING
# ============================================================================

def _open_invitation(token):
    """Resolve an onboarding token to (invitation, client) or raise"""
    invitation = ClientInvitation.find_by_token(token)
    if invitation is None:
        raise NotFoundError('Invalid invitation link')
    if invitation.status == 'completed':
        raise ValidationError('This onboarding form has already been completed')
    if invitation.is_expired:
        invitation.mark_expired()
        raise GoneError('This invitation link has expired')

    client = Client.find_by_id(invitation.client_id)
    if client is None:
        raise NotFoundError('Client record not found for this invitation')
    return invitation, client


@clients_bp.route('/onboarding/<token>', methods=['GET'])
def get_onboarding_form(token):
    invitation, client = _open_invitation(token)
    invitation.mark_opened()
    advisor = Advisor.find_by_id(invitation.advisor_id)

    logger.info("onboarding_form_opened", invitation_id=invitation.id, client_id=client.id)

    return jsonify({
        'success': True,
        'client': {
            'first_name': client.first_name,
            'last_name': client.last_name,
            'email': client.email,
        },
        'advisor': advisor.public_profile() if advisor else None,
        'stages': {str(k): v for k, v in ONBOARDING_STAGES.items()},
        'drafts': client.form_drafts,
        'expires_at': invitation.expires_at,
        'time_remaining': invitation.time_remaining,
    }), 200


@clients_bp.route('/onboarding/<token>', methods=['POST'])
def submit_onboarding_form(token):
    """Complete onboarding: personal details plus financial sections"""
    invitation, client = _open_invitation(token)
    data = json_body()

    missing = [field for field in ('first_name', 'last_name', 'email') if not (data.get(field) or '').strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}",
                              details={'stage': 1, 'fields': missing})

    email = data['email'].lower().strip()
    if email != client.email:
        existing = Client.find_by_email(client.advisor_id, email)
        if existing and existing.id != client.id:
            raise ValidationError('Another client already uses this email')
        client.email = email

    for field in PERSONAL_FIELDS:
        if field in data:
            value = data[field]
            setattr(client, field, value.strip() if isinstance(value, str) else value)
    for section in ONBOARDING_SECTIONS:
        if section in data:
            setattr(client, section, data[section])

    client.status = 'active'
    client.onboarding_step = len(ONBOARDING_STAGES)
    client.onboarding_completed_at = utcnow()
    client.form_drafts = {}
    client.save()
    invitation.mark_completed()

    logger.info("onboarding_completed", client_id=client.id, advisor_id=client.advisor_id)

    return jsonify({
        'success': True,
        'message': 'Onboarding completed successfully',
        'client_id': client.id,
    }), 200


@clients_bp.route('/onboarding/<token>/draft', methods=['POST'])
@validate_json_data(['step_number', 'step_data'])
def save_onboarding_draft(token):
    _, client = _open_invitation(token)
    data = json_body()

    try:
        step_number = int(data['step_number'])
    except (TypeError, ValueError):
        raise ValidationError('step_number must be an integer')
    if step_number not in ONBOARDING_STAGES:
        raise ValidationError(f'step_number must be between 1 and {len(ONBOARDING_STAGES)}')
    if not isinstance(data['step_data'], dict):
        raise ValidationError('step_data must be an object')

    client.save_draft(step_number, data['step_data'])
    logger.info("onboarding_draft_saved", client_id=client.id, step_number=step_number)

    return jsonify({
        'success': True,
        'message': 'Draft saved',
        'step_number': step_number,
        'saved_at': client.updated_at,
    }), 200


@clients_bp.route('/onboarding/<token>/draft', methods=['GET'])
def get_onboarding_draft(token):
    _, client = _open_invitation(token)
    return jsonify({
        'success': True,
        'drafts': client.form_drafts,
        'onboarding_step': client.onboarding_step,
    }), 200


@clients_bp.route('/onboarding/<token>/cas/upload', methods=['POST'])
def onboarding_upload_cas(token):
    _, client = _open_invitation(token)
    file = request.files.get('casFile')
    if not file or not file.filename:
        raise ValidationError('No CAS file provided')

    cas = _store_cas_upload(client, file, request.form.get('password'))
    return jsonify({'success': True, 'message': 'CAS file uploaded successfully', 'cas_data': _public_cas(cas)}), 201


@clients_bp.route('/onboarding/<token>/cas/parse', methods=['POST'])
def onboarding_parse_cas(token):
    _, client = _open_invitation(token)
    parsed = _parse_cas(client, json_body().get('password'))
    return jsonify({'success': True, 'parsed_data': parsed}), 200


@clients_bp.route('/onboarding/<token>/cas/status', methods=['GET'])
def onboarding_cas_status(token):
    _, client = _open_invitation(token)
    cas = client.cas_data or {}
    return jsonify({
        'success': True,
        'has_cas': bool(cas),
        'parse_status': cas.get('parse_status'),
        'cas_type': cas.get('cas_type'),
    }), 200

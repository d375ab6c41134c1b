from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user
import structlog

from advisor_platform.models.advisor import Advisor
from advisor_platform.models.client import Client
from advisor_platform.models.loe import LOE
from advisor_platform.routes.common import get_owned_client, json_body
from advisor_platform.utils.errors import GoneError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

loe_automation_bp = Blueprint('loe_automation', __name__)


def _loe_by_token(access_token):
    loe = LOE.find_by_token(access_token)
    if loe is None:
        raise NotFoundError('LOE not found or invalid access token')
    return loe


@loe_automation_bp.route('/clients', methods=['GET'])
@login_required
def get_clients_with_loe_status():
    """Advisor clients with the status of their most recent LOE"""
    clients = Client.find_by_advisor(current_user.id, active_only=True)

    results = []
    for client in clients:
        latest = LOE.latest_for_client(client.id, current_user.id)
        results.append({
            **client.to_summary(),
            'loe_status': latest.status if latest else 'not_sent',
            'loe_id': latest.id if latest else None,
            'loe_sent_at': latest.sent_at if latest else None,
            'loe_signed_at': latest.signed_at if latest else None,
        })

    logger.info("loe_clients_listed", advisor_id=current_user.id, count=len(results))
    return jsonify({'success': True, 'clients': results, 'count': len(results)}), 200


@loe_automation_bp.route('/clients/<client_id>/loe-details', methods=['GET'])
@login_required
def get_client_loe_details(client_id):
    client = get_owned_client(client_id)
    loes = LOE.find_for_client(client.id, current_user.id)
    return jsonify({
        'success': True,
        'client': client.to_summary(),
        'loes': [loe.to_dict() for loe in loes],
        'latest': loes[0].to_dict() if loes else None,
    }), 200


@loe_automation_bp.route('/clients/<client_id>/create-loe', methods=['POST'])
@login_required
def create_loe(client_id):
    client = get_owned_client(client_id)
    data = json_body()

    loe = LOE(
        advisor_id=current_user.id,
        client_id=client.id,
        frontend_url=current_app.config['FRONTEND_URL'],
        expiry_days=current_app.config['LOE_EXPIRY_DAYS'],
        custom_notes=data.get('custom_notes', ''),
    )
    loe.mark_as_sent()

    logger.info("loe_created", advisor_id=current_user.id, client_id=client.id, loe_id=loe.id)
    return jsonify({
        'success': True,
        'message': 'LOE created and sent successfully',
        'loe': loe.to_dict(),
        'client_access_url': loe.client_access_url,
    }), 201


# ============================================================================
# PUBLIC SIGNING
# ============================================================================

@loe_automation_bp.route('/client/<access_token>', methods=['GET'])
def get_loe_for_client(access_token):
    """Public view of an LOE; opening it marks it viewed"""
    loe = _loe_by_token(access_token)

    if not loe.is_signed and loe.is_expired:
        loe.mark_as_expired()
        raise GoneError('This LOE has expired')

    loe.mark_as_viewed()
    client = Client.find_by_id(loe.client_id)
    advisor = Advisor.find_by_id(loe.advisor_id)

    return jsonify({
        'success': True,
        'loe': loe.to_dict(),
        'client': client.to_summary() if client else None,
        'advisor': advisor.public_profile() if advisor else None,
    }), 200


@loe_automation_bp.route('/client/<access_token>/sign', methods=['POST'])
def sign_loe(access_token):
    loe = _loe_by_token(access_token)
    data = json_body()

    if loe.is_signed:
        raise ValidationError('This LOE has already been signed')
    if loe.is_expired:
        loe.mark_as_expired()
        raise GoneError('This LOE has expired')
    if not data.get('signature'):
        raise ValidationError('Signature is required')

    loe.save_signature(
        data['signature'],
        ip_address=data.get('ip_address') or request.remote_addr,
        user_agent=data.get('user_agent') or request.headers.get('User-Agent'),
    )

    logger.info("loe_signed", loe_id=loe.id, client_id=loe.client_id)
    return jsonify({'success': True, 'message': 'LOE signed successfully', 'loe': loe.to_dict()}), 200


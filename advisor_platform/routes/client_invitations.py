from flask import Blueprint, jsonify
from flask_login import login_required, current_user
import structlog

from advisor_platform.models.client_invitation import ClientInvitation, INVITATION_STATUSES
from advisor_platform.routes.common import get_owned_client
from advisor_platform.utils.errors import GoneError, NotFoundError

logger = structlog.get_logger(__name__)

client_invitations_bp = Blueprint('client_invitations', __name__)


@client_invitations_bp.route('/client/<client_id>', methods=['GET'])
@login_required
def get_client_invitations(client_id):
    """Invitation history for one client"""
    client = get_owned_client(client_id)
    invitations = ClientInvitation.find({'client_id': client.id, 'advisor_id': current_user.id})

    return jsonify({
        'success': True,
        'client': client.to_summary(),
        'invitations': [invitation.to_dict() for invitation in invitations],
        'count': len(invitations),
    }), 200


@client_invitations_bp.route('/advisor/all', methods=['GET'])
@login_required
def get_advisor_invitations():
    invitations = ClientInvitation.find_by_advisor(current_user.id)

    status_counts = {status: 0 for status in INVITATION_STATUSES}
    for invitation in invitations:
        status_counts[invitation.status] = status_counts.get(invitation.status, 0) + 1

    return jsonify({
        'success': True,
        'invitations': [invitation.to_dict() for invitation in invitations],
        'count': len(invitations),
        'status_counts': status_counts,
    }), 200


@client_invitations_bp.route('/token/<token>', methods=['GET'])
def get_invitation_by_token(token):
    """Public lookup used by the onboarding page before it loads the form"""
    invitation = ClientInvitation.find_by_token(token)
    if invitation is None:
        raise NotFoundError('Invitation not found')

    if invitation.is_expired and invitation.status != 'completed':
        invitation.mark_expired()
        raise GoneError('Invitation has expired')

    return jsonify({
        'success': True,
        'invitation': invitation.to_dict(include_token=False),
        'time_remaining': invitation.time_remaining,
    }), 200

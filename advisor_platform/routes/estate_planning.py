from flask import Blueprint, jsonify
from flask_login import login_required, current_user
import structlog

from advisor_platform.models.estate_information import EstateInformation, ESTATE_SECTIONS, estate_summary
from advisor_platform.routes.common import get_owned_client, json_body
from advisor_platform.utils.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

estate_planning_bp = Blueprint('estate_planning', __name__)


@estate_planning_bp.route('/client/<client_id>', methods=['GET'])
@login_required
def get_estate_planning(client_id):
    """Client data, stored estate sections and the computed estate summary"""
    client = get_owned_client(client_id)
    estate = EstateInformation.find_by_client(client.id)

    logger.info("estate_planning_loaded", advisor_id=current_user.id, client_id=client.id,
                has_estate_information=estate is not None)

    return jsonify({
        'success': True,
        'client': client.to_dict(),
        'estate_information': estate.to_dict() if estate else None,
        'summary': estate_summary(client, estate),
    }), 200


@estate_planning_bp.route('/client/<client_id>/information', methods=['POST'])
@login_required
def save_estate_information(client_id):
    client = get_owned_client(client_id)
    data = json_body()

    invalid = [s for s in ESTATE_SECTIONS if s in data and data[s] is not None
               and not isinstance(data[s], list if s == 'real_estate_properties' else dict)]
    if invalid:
        raise ValidationError(f"Invalid section format: {', '.join(invalid)}")

    estate = EstateInformation.find_by_client(client.id)
    created = estate is None
    if created:
        estate = EstateInformation(client_id=client.id, advisor_id=current_user.id)

    updated = estate.update_sections(data)

    logger.info("estate_information_saved", client_id=client.id, created=created, sections=updated)
    return jsonify({
        'success': True,
        'message': 'Estate information saved successfully',
        'estate_information': estate.to_dict(),
        'updated_sections': updated,
    }), 201 if created else 200


@estate_planning_bp.route('/client/<client_id>/information', methods=['GET'])
@login_required
def get_estate_information(client_id):
    client = get_owned_client(client_id)
    estate = EstateInformation.find_by_client(client.id)
    if estate is None:
        raise NotFoundError('No estate information found for this client')
    return jsonify({'success': True, 'estate_information': estate.to_dict()}), 200


@estate_planning_bp.route('/client/<client_id>/will', methods=['POST'])
@login_required
def save_will(client_id):
    client = get_owned_client(client_id)
    data = json_body()
    if not data:
        raise ValidationError('Will details are required')

    estate = EstateInformation.find_by_client(client.id)
    if estate is None:
        estate = EstateInformation(client_id=client.id, advisor_id=current_user.id)
    estate.save_will(data)

    logger.info("will_saved", client_id=client.id)
    return jsonify({'success': True, 'message': 'Will saved successfully', 'will': estate.will}), 200


@estate_planning_bp.route('/client/<client_id>/will', methods=['GET'])
@login_required
def get_will(client_id):
    client = get_owned_client(client_id)
    estate = EstateInformation.find_by_client(client.id)
    if estate is None or not estate.will:
        raise NotFoundError('No will found for this client')
    return jsonify({'success': True, 'will': estate.will}), 200

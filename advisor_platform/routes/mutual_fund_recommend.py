from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user
import structlog

from advisor_platform.agents.fund_details_agent import FundDetailsAgent
from advisor_platform.models.mutual_fund_recommendation import (
    MutualFundRecommendation, REQUIRED_FIELDS, recommendation_summary,
)
from advisor_platform.routes.common import get_owned_client, json_body
from advisor_platform.utils.auth_middleware import validate_json_data
from advisor_platform.utils.errors import NotFoundError, ValidationError
from advisor_platform.utils.ids import extract_client_id, to_object_id

logger = structlog.get_logger(__name__)

mutual_fund_recommend_bp = Blueprint('mutual_fund_recommend', __name__)


def get_fund_details_agent():
    return FundDetailsAgent(current_app.config.get('GOOGLE_API_KEY'), current_app.config['GEMINI_MODEL'])


def _owned_recommendation(recommendation_id):
    to_object_id(recommendation_id, 'recommendation ID')
    recommendation = MutualFundRecommendation.find_owned(recommendation_id, current_user.id)
    if recommendation is None:
        raise NotFoundError('Recommendation not found')
    return recommendation


@mutual_fund_recommend_bp.route('/client/<client_id>', methods=['GET'])
@login_required
def get_client_recommendations(client_id):
    client = get_owned_client(client_id)
    recommendations = MutualFundRecommendation.find_by_client(client.id, current_user.id)
    return jsonify({
        'success': True,
        'client': client.to_summary(),
        'recommendations': [r.to_dict() for r in recommendations],
        'summary': recommendation_summary(recommendations),
    }), 200


@mutual_fund_recommend_bp.route('/', methods=['POST'])
@login_required
@validate_json_data(REQUIRED_FIELDS)
def create_recommendation():
    data = json_body()
    client = get_owned_client(extract_client_id(data['client_id']))

    values = {field: data[field] for field in REQUIRED_FIELDS[1:]}
    recommendation = MutualFundRecommendation(
        client_id=client.id,
        advisor_id=current_user.id,
        ai_response=data.get('ai_response'),
        notes=data.get('notes'),
        **values
    )
    recommendation.save()

    logger.info("recommendation_created", advisor_id=current_user.id, client_id=client.id,
                recommendation_id=recommendation.id, fund_name=recommendation.fund_name)
    return jsonify({
        'success': True,
        'message': 'Recommendation saved successfully',
        'recommendation': recommendation.to_dict(),
    }), 201


@mutual_fund_recommend_bp.route('/summary', methods=['GET'])
@login_required
def get_summary():
    recommendations = MutualFundRecommendation.find_by_advisor(current_user.id, status=request.args.get('status'))
    summary = recommendation_summary(recommendations)
    summary['clients_count'] = len({r.client_id for r in recommendations})
    return jsonify({'success': True, 'summary': summary}), 200


@mutual_fund_recommend_bp.route('/<recommendation_id>', methods=['GET'])
@login_required
def get_recommendation(recommendation_id):
    recommendation = _owned_recommendation(recommendation_id)
    return jsonify({'success': True, 'recommendation': recommendation.to_dict()}), 200


@mutual_fund_recommend_bp.route('/<recommendation_id>', methods=['PUT'])
@login_required
def update_recommendation(recommendation_id):
    recommendation = _owned_recommendation(recommendation_id)
    data = json_body()
    if not data:
        raise ValidationError('No fields to update')

    recommendation.apply_update(data)
    logger.info("recommendation_updated", recommendation_id=recommendation.id)
    return jsonify({
        'success': True,
        'message': 'Recommendation updated successfully',
        'recommendation': recommendation.to_dict(),
    }), 200


@mutual_fund_recommend_bp.route('/<recommendation_id>', methods=['DELETE'])
@login_required
def delete_recommendation(recommendation_id):
    recommendation = _owned_recommendation(recommendation_id)
    recommendation.delete()
    logger.info("recommendation_deleted", recommendation_id=recommendation_id)
    return jsonify({'success': True, 'message': 'Recommendation deleted successfully'}), 200


@mutual_fund_recommend_bp.route('/claude/fund-details', methods=['POST'])
@login_required
@validate_json_data(['fund_name', 'fund_house_name'])
def get_fund_details():
    """AI lookup of public fund details; unavailable details still answer 200"""
    data = json_body()
    details = get_fund_details_agent().get_fund_details(data['fund_name'].strip(), data['fund_house_name'].strip())

    logger.info("fund_details_requested", fund_name=data['fund_name'], available=details['available'])
    return jsonify({'success': True, 'fund_details': details}), 200

from flask import Blueprint, current_app, jsonify
from flask_login import login_required, current_user
import structlog

from advisor_platform.agents.plan_analysis_agent import PlanAnalysisAgent
from advisor_platform.models.client import Client
from advisor_platform.models.plan import Plan
from advisor_platform.routes.common import get_owned_client, json_body
from advisor_platform.utils.auth_middleware import validate_json_data
from advisor_platform.utils.dates import utcnow
from advisor_platform.utils.errors import NotFoundError, ValidationError
from advisor_platform.utils.ids import to_object_id

logger = structlog.get_logger(__name__)

plans_bp = Blueprint('plans', __name__)


def get_plan_agent():
    return PlanAnalysisAgent(current_app.config.get('GOOGLE_API_KEY'), current_app.config['GEMINI_MODEL'])


def _owned_plan(plan_id):
    to_object_id(plan_id, 'plan ID')
    plan = Plan.find_owned(plan_id, current_user.id)
    if plan is None:
        raise NotFoundError('Plan not found')
    return plan


@plans_bp.route('/', methods=['POST'])
@login_required
@validate_json_data(['client_id', 'plan_type'])
def create_plan():
    data = json_body()
    client = get_owned_client(data['client_id'])

    plan = Plan(
        client_id=client.id,
        advisor_id=current_user.id,
        plan_type=data['plan_type'],
        plan_data=data.get('plan_data') or {},
    )
    plan.save()

    logger.info("plan_created", advisor_id=current_user.id, client_id=client.id,
                plan_id=plan.id, plan_type=plan.plan_type)
    return jsonify({'success': True, 'message': 'Plan created successfully', 'plan': plan.to_dict()}), 201


@plans_bp.route('/client/<client_id>', methods=['GET'])
@login_required
def get_client_plans(client_id):
    client = get_owned_client(client_id)
    plans = Plan.find_by_client(client.id, current_user.id)
    return jsonify({'success': True, 'plans': [plan.to_dict() for plan in plans], 'count': len(plans)}), 200


@plans_bp.route('/<plan_id>', methods=['GET'])
@login_required
def get_plan(plan_id):
    plan = _owned_plan(plan_id)
    return jsonify({'success': True, 'plan': plan.to_dict()}), 200


@plans_bp.route('/<plan_id>', methods=['PUT'])
@login_required
def update_plan(plan_id):
    plan = _owned_plan(plan_id)
    data = json_body()

    plan_data = data.get('plan_data')
    if plan_data is not None and not isinstance(plan_data, dict):
        raise ValidationError('plan_data must be an object')

    plan.update_data(plan_data or {})
    logger.info("plan_updated", plan_id=plan.id, version=plan.version)
    return jsonify({'success': True, 'message': 'Plan updated successfully', 'plan': plan.to_dict()}), 200


@plans_bp.route('/<plan_id>', methods=['DELETE'])
@login_required
def archive_plan(plan_id):
    plan = _owned_plan(plan_id)
    plan.archive()
    logger.info("plan_archived", plan_id=plan.id)
    return jsonify({'success': True, 'message': 'Plan archived successfully'}), 200


@plans_bp.route('/<plan_id>/status', methods=['PATCH'])
@login_required
@validate_json_data(['status'])
def change_plan_status(plan_id):
    plan = _owned_plan(plan_id)
    previous = plan.status
    plan.change_status(json_body()['status'])

    logger.info("plan_status_changed", plan_id=plan.id, from_status=previous, to_status=plan.status)
    return jsonify({'success': True, 'plan': plan.to_dict()}), 200


@plans_bp.route('/<plan_id>/review', methods=['POST'])
@login_required
@validate_json_data(['notes'])
def review_plan(plan_id):
    plan = _owned_plan(plan_id)
    data = json_body()
    review = plan.add_review(data['notes'], reviewed_by=data.get('reviewed_by') or current_user.full_name)
    return jsonify({'success': True, 'review': review, 'review_count': len(plan.review_history)}), 201


@plans_bp.route('/<plan_id>/clone', methods=['POST'])
@login_required
def clone_plan(plan_id):
    plan = _owned_plan(plan_id)
    target_client_id = json_body().get('target_client_id')
    if target_client_id:
        target_client_id = get_owned_client(target_client_id).id

    copy = plan.clone(target_client_id)
    logger.info("plan_cloned", plan_id=plan.id, new_plan_id=copy.id, client_id=copy.client_id)
    return jsonify({'success': True, 'message': 'Plan cloned successfully', 'plan': copy.to_dict()}), 201


@plans_bp.route('/<plan_id>/performance', methods=['GET'])
@login_required
def plan_performance(plan_id):
    plan = _owned_plan(plan_id)
    return jsonify({'success': True, 'performance': plan.performance()}), 200


# ============================================================================
# ANALYSIS
# ============================================================================

@plans_bp.route('/analyze-debt/<client_id>', methods=['POST'])
@login_required
def analyze_debt(client_id):
    """Debt strategy from posted client data, falling back to the stored client"""
    client = get_owned_client(client_id)
    client_data = json_body().get('client_data') or client.to_document()

    analysis = get_plan_agent().analyze_debt(client_data)
    logger.info("debt_analyzed", client_id=client.id,
                debt_health=analysis['financial_metrics']['debt_health'])
    return jsonify({'success': True, 'analysis': analysis}), 200


@plans_bp.route('/<plan_id>/debt-strategy', methods=['PUT'])
@login_required
@validate_json_data(['debt_strategy'])
def save_debt_strategy(plan_id):
    plan = _owned_plan(plan_id)
    debt_strategy = json_body()['debt_strategy']
    if not isinstance(debt_strategy, dict):
        raise ValidationError('debt_strategy must be an object')
    plan.debt_strategy = {**debt_strategy, 'saved_at': utcnow()}
    plan.save()
    return jsonify({'success': True, 'message': 'Debt strategy saved', 'debt_strategy': plan.debt_strategy}), 200


@plans_bp.route('/<plan_id>/debt-recommendations', methods=['GET'])
@login_required
def get_debt_recommendations(plan_id):
    plan = _owned_plan(plan_id)
    if plan.debt_strategy:
        return jsonify({'success': True, 'debt_strategy': plan.debt_strategy, 'source': 'saved'}), 200

    client = Client.find_by_id(plan.client_id)
    if client is None:
        raise NotFoundError('Client not found for this plan')
    analysis = get_plan_agent().analyze_debt(client.to_document())
    return jsonify({'success': True, 'debt_strategy': analysis, 'source': 'computed'}), 200


@plans_bp.route('/analyze-goals', methods=['POST'])
@login_required
@validate_json_data(['selected_goals'])
def analyze_goals():
    data = json_body()
    if not isinstance(data['selected_goals'], list):
        raise ValidationError('selected_goals must be a list')

    analysis = get_plan_agent().analyze_goals(data['selected_goals'], data.get('client_data') or {})
    return jsonify({'success': True, 'analysis': analysis}), 200


@plans_bp.route('/<plan_id>/ai-recommendations', methods=['POST'])
@login_required
def generate_ai_recommendations(plan_id):
    plan = _owned_plan(plan_id)
    client = Client.find_by_id(plan.client_id)
    client_data = client.to_document() if client else {}

    result = get_plan_agent().generate_plan_recommendations(plan.plan_data, client_data)
    plan.ai_recommendations = {**result, 'generated_at': utcnow()}
    plan.save()

    logger.info("plan_recommendations_generated", plan_id=plan.id, ai_generated=result['ai_generated'])
    return jsonify({'success': True, 'ai_recommendations': plan.ai_recommendations}), 200

from flask import Blueprint, jsonify
from flask_login import login_required, current_user
import structlog

from advisor_platform.models.client import Client
from advisor_platform.models.mutual_fund_exit_strategy import (
    MutualFundExitStrategy, PRIORITIES, STRATEGY_STATUSES, WIZARD_STEPS,
    missing_required_fields, validate_step, validate_strategy,
)
from advisor_platform.models.mutual_fund_recommendation import MutualFundRecommendation
from advisor_platform.routes.common import get_owned_client, json_body
from advisor_platform.utils.errors import ForbiddenError, NotFoundError, ValidationError
from advisor_platform.utils.ids import extract_client_id, is_valid_object_id

logger = structlog.get_logger(__name__)

mutual_fund_exit_bp = Blueprint('mutual_fund_exit', __name__)


def _existing_funds(client):
    """Holdings recorded for a client, from the parsed CAS or the assets form"""
    parsed = (client.cas_data or {}).get('parsed_data') or {}
    holdings = parsed.get('holdings') or (client.assets or {}).get('mutual_funds') or []

    funds = []
    for index, holding in enumerate(holdings):
        if not isinstance(holding, dict):
            continue
        funds.append({
            'fund_id': str(holding.get('isin') or holding.get('fund_id') or f'{client.id}-cas-{index}'),
            'fund_name': holding.get('fund_name') or holding.get('scheme_name') or 'Unnamed fund',
            'fund_category': holding.get('fund_category') or holding.get('category') or 'Other',
            'current_value': holding.get('current_value') or holding.get('value') or 0,
            'units': holding.get('units'),
            'nav': holding.get('nav'),
            'fund_type': 'existing',
            'source': 'cas',
        })
    return funds


def _recommended_funds(client_id, advisor_id):
    return [
        {
            'fund_id': recommendation.id,
            'fund_name': recommendation.fund_name,
            'fund_category': recommendation.investment_goal,
            'fund_house_name': recommendation.fund_house_name,
            'recommended_monthly_sip': recommendation.recommended_monthly_sip,
            'fund_type': 'recommended',
            'source': 'financial_plan',
        }
        for recommendation in MutualFundRecommendation.find_by_client(client_id, advisor_id)
        if recommendation.status == 'active'
    ]


def _strategy_for_advisor(strategy_id):
    """24-hex id check, then ownership: foreign strategies are forbidden, not hidden"""
    if not is_valid_object_id(strategy_id):
        raise ValidationError('Invalid strategy ID format')

    strategy = MutualFundExitStrategy.find_by_id(strategy_id)
    if strategy is None or not strategy.is_active:
        raise NotFoundError('Exit strategy not found')
    if strategy.advisor_id != current_user.id:
        raise ForbiddenError('Access denied to this exit strategy')
    return strategy


@mutual_fund_exit_bp.route('/clients-with-funds', methods=['GET'])
@login_required
def get_clients_with_funds():
    clients = Client.find_by_advisor(current_user.id, active_only=True)

    results = []
    for client in clients:
        existing = _existing_funds(client)
        recommended = _recommended_funds(client.id, current_user.id)
        if not existing and not recommended:
            continue
        strategies = MutualFundExitStrategy.find_by_client(client.id, current_user.id)
        results.append({
            **client.to_summary(),
            'existing_funds': existing,
            'recommended_funds': recommended,
            'exit_strategies_count': len(strategies),
            'funds_with_strategy': sorted({s.fund_id for s in strategies}),
        })

    logger.info("exit_clients_listed", advisor_id=current_user.id, count=len(results))
    return jsonify({'success': True, 'clients': results, 'count': len(results)}), 200


@mutual_fund_exit_bp.route('/strategies', methods=['POST'])
@login_required
def create_strategy():
    data = json_body()

    missing = missing_required_fields(data)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", details={'missing': missing})

    client = get_owned_client(extract_client_id(data['client_id']))

    errors = validate_strategy(data)
    if errors:
        raise ValidationError('Exit strategy validation failed', details=errors)

    if MutualFundExitStrategy.find_active(client.id, data['fund_id']):
        raise ValidationError('An active exit strategy already exists for this fund')

    strategy = MutualFundExitStrategy(
        client_id=client.id,
        advisor_id=current_user.id,
        fund_id=data['fund_id'],
        fund_name=data['fund_name'],
        fund_category=data['fund_category'],
        fund_type=data['fund_type'],
        source=data['source'],
        status=data.get('status') or 'draft',
        priority=data.get('priority') or 'medium',
        **{section: dict(data.get(section) or {}) for section in WIZARD_STEPS.values()}
    )
    strategy.save()

    logger.info("exit_strategy_created", advisor_id=current_user.id, client_id=client.id,
                strategy_id=strategy.id, fund_id=strategy.fund_id)
    return jsonify({
        'success': True,
        'message': 'Exit strategy created successfully',
        'strategy': strategy.to_dict(),
    }), 201


@mutual_fund_exit_bp.route('/strategies/validate-step/<int:step>', methods=['POST'])
@login_required
def validate_wizard_step(step):
    if step not in WIZARD_STEPS:
        raise ValidationError(f'Unknown wizard step: {step}')
    errors = validate_step(step, json_body())
    return jsonify({'success': True, 'step': step, 'section': WIZARD_STEPS[step],
                    'is_valid': not errors, 'errors': errors}), 200


@mutual_fund_exit_bp.route('/strategies/client/<client_id>', methods=['GET'])
@login_required
def get_client_strategies(client_id):
    client = get_owned_client(client_id)
    strategies = MutualFundExitStrategy.find_by_client(client.id, current_user.id)
    return jsonify({
        'success': True,
        'client': client.to_summary(),
        'strategies': [strategy.to_dict() for strategy in strategies],
        'count': len(strategies),
    }), 200


@mutual_fund_exit_bp.route('/strategies/<strategy_id>', methods=['GET'])
@login_required
def get_strategy(strategy_id):
    strategy = _strategy_for_advisor(strategy_id)
    return jsonify({'success': True, 'strategy': strategy.to_dict()}), 200


@mutual_fund_exit_bp.route('/strategies/<strategy_id>', methods=['PUT'])
@login_required
def update_strategy(strategy_id):
    strategy = _strategy_for_advisor(strategy_id)
    data = json_body()

    errors = {}
    for step, section in WIZARD_STEPS.items():
        if not data.get(section):
            continue
        if isinstance(data[section], dict):
            merged = {section: {**getattr(strategy, section), **data[section]}}
        else:
            merged = {section: data[section]}
        errors.update(validate_step(step, merged))
    if errors:
        raise ValidationError('Exit strategy validation failed', details=errors)

    previous_status = strategy.status
    strategy.apply_update(data, updated_by=current_user.id)

    logger.info("exit_strategy_updated", strategy_id=strategy.id, version=strategy.version,
                from_status=previous_status, to_status=strategy.status)
    return jsonify({
        'success': True,
        'message': 'Exit strategy updated successfully',
        'strategy': strategy.to_dict(),
    }), 200


@mutual_fund_exit_bp.route('/strategies/<strategy_id>', methods=['DELETE'])
@login_required
def delete_strategy(strategy_id):
    strategy = _strategy_for_advisor(strategy_id)
    strategy.soft_delete(updated_by=current_user.id)
    logger.info("exit_strategy_deleted", strategy_id=strategy.id)
    return jsonify({'success': True, 'message': 'Exit strategy deleted successfully'}), 200


@mutual_fund_exit_bp.route('/summary', methods=['GET'])
@login_required
def get_summary():
    strategies = MutualFundExitStrategy.find_by_advisor(current_user.id)

    by_status = {status: 0 for status in STRATEGY_STATUSES}
    by_priority = {priority: 0 for priority in PRIORITIES}
    total_value = 0.0
    total_tax = 0.0
    for strategy in strategies:
        by_status[strategy.status] += 1
        by_priority[strategy.priority] += 1
        total_value += strategy.current_value
        total_tax += strategy.tax_implications.get('tax_amount') or 0

    return jsonify({
        'success': True,
        'summary': {
            'total_strategies': len(strategies),
            'by_status': by_status,
            'by_priority': by_priority,
            'total_value_under_exit': round(total_value, 2),
            'total_tax_liability': round(total_tax, 2),
            'clients_count': len({s.client_id for s in strategies}),
        },
    }), 200

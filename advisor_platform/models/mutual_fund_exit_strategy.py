from advisor_platform.models.base import MongoModel
from advisor_platform.utils.calculations import calculate_tax, net_benefit_percentage
from advisor_platform.utils.dates import utcnow, parse_datetime
from advisor_platform.utils.errors import ValidationError

FUND_TYPES = ('existing', 'recommended')
SOURCES = ('cas', 'financial_plan')
EXIT_RATIONALES = ('underperformance', 'goal_achievement', 'rebalancing', 'risk_adjustment',
                   'liquidity_needs', 'other')
EXIT_TRIGGERS = ('target_achieved', 'stop_loss', 'time_based', 'market_condition', 'fund_performance', 'other')
URGENCIES = ('immediate', 'short_term', 'medium_term', 'long_term')
HOLDING_PERIODS = ('short_term', 'long_term')
RISK_TOLERANCES = ('conservative', 'moderate', 'aggressive')
RISK_LEVELS = ('low', 'medium', 'high')
EXIT_RISK_FACTORS = ('market_volatility', 'liquidity_risk', 'timing_risk', 'tax_risk', 'other')
STEP_STATUSES = ('pending', 'in_progress', 'completed')
ACKNOWLEDGMENT_METHODS = ('digital', 'physical', 'verbal')
STRATEGY_STATUSES = ('draft', 'pending_approval', 'approved', 'in_execution', 'completed', 'cancelled')
PRIORITIES = ('low', 'medium', 'high', 'urgent')

SECTIONS = (
    'primary_exit_analysis', 'timing_strategy', 'tax_implications',
    'alternative_investment_strategy', 'financial_goal_assessment', 'risk_analysis',
    'execution_action_plan', 'cost_benefit_analysis', 'advisor_certification',
    'client_acknowledgment',
)

# Wizard step number -> section it edits
WIZARD_STEPS = {index + 1: section for index, section in enumerate(SECTIONS)}

REQUIRED_FIELDS = (
    'client_id', 'fund_id', 'fund_name', 'fund_category', 'fund_type', 'source',
    'primary_exit_analysis', 'timing_strategy', 'tax_implications',
    'alternative_investment_strategy', 'financial_goal_assessment', 'risk_analysis',
    'execution_action_plan', 'cost_benefit_analysis',
)

# Fields each step insists on: (field, message)
STEP_REQUIRED = {
    1: (('exit_rationale', 'Exit rationale is required'),
        ('detailed_reason', 'Detailed reason is required')),
    2: (('recommended_exit_date', 'Recommended exit date is required'),
        ('market_conditions', 'Market conditions are required')),
}

# Enumerated fields per section, checked whenever a value is present
STEP_ENUMS = {
    'primary_exit_analysis': {'exit_rationale': EXIT_RATIONALES},
    'timing_strategy': {'urgency': URGENCIES},
    'tax_implications': {'holding_period': HOLDING_PERIODS},
    'financial_goal_assessment': {'risk_tolerance': RISK_TOLERANCES},
    'risk_analysis': {'current_risk_level': RISK_LEVELS},
    'client_acknowledgment': {'acknowledgment_method': ACKNOWLEDGMENT_METHODS},
}

STEP_LIST_ENUMS = {
    'timing_strategy': {'exit_triggers': EXIT_TRIGGERS},
    'risk_analysis': {'exit_risk_factors': EXIT_RISK_FACTORS},
}

STEP_NUMBERS = {
    'primary_exit_analysis': ('current_value', 'units', 'nav'),
    'tax_implications': ('tax_rate', 'tax_amount'),
    'cost_benefit_analysis': ('exit_load', 'transaction_costs', 'tax_savings', 'opportunity_cost', 'net_benefit'),
}


def _is_number(value):
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    try:
        float(str(value))
        return True
    except ValueError:
        return False


def validate_step(step, data):
    """
    Validate one wizard step of an exit strategy.

    ``data`` is the whole strategy payload; only the section belonging to
    ``step`` is inspected. Returns ``{section: {field: message}}``, empty
    when the step is valid.
    """
    if step not in WIZARD_STEPS:
        raise ValueError(f"Unknown wizard step: {step}")

    section = WIZARD_STEPS[step]
    values = (data or {}).get(section) or {}
    if not isinstance(values, dict):
        return {section: {'section': 'Must be an object'}}
    errors = {}

    for field, message in STEP_REQUIRED.get(step, ()):
        value = values.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors[field] = message

    for field, allowed in STEP_ENUMS.get(section, {}).items():
        value = values.get(field)
        if value not in (None, '') and value not in allowed:
            errors[field] = f"Must be one of: {', '.join(allowed)}"

    for field, allowed in STEP_LIST_ENUMS.get(section, {}).items():
        chosen = values.get(field) or []
        if not isinstance(chosen, list):
            errors[field] = 'Must be a list'
            continue
        invalid = [v for v in chosen if v not in allowed]
        if invalid:
            errors[field] = f"Invalid values: {', '.join(map(str, invalid))}"

    for field in STEP_NUMBERS.get(section, ()):
        value = values.get(field)
        if value not in (None, '') and not _is_number(value):
            errors[field] = 'Must be a number'

    if step == 2 and values.get('recommended_exit_date') and 'recommended_exit_date' not in errors:
        try:
            parse_datetime(values['recommended_exit_date'])
        except ValueError:
            errors['recommended_exit_date'] = 'Invalid date'

    if step == 7:
        plan_steps = values.get('steps') or []
        if not isinstance(plan_steps, list):
            errors['steps'] = 'Must be a list'
            plan_steps = []
        for index, plan_step in enumerate(plan_steps):
            if not isinstance(plan_step, dict):
                errors[f'steps.{index}'] = 'Must be an object'
                continue
            status = plan_step.get('status')
            if status and status not in STEP_STATUSES:
                errors[f'steps.{index}.status'] = f"Must be one of: {', '.join(STEP_STATUSES)}"

    return {section: errors} if errors else {}


def validate_strategy(data):
    """Validate every wizard step; returns merged errors"""
    errors = {}
    for step in WIZARD_STEPS:
        errors.update(validate_step(step, data))
    return errors


def missing_required_fields(data):
    return [field for field in REQUIRED_FIELDS if data.get(field) in (None, '', {})]


class MutualFundExitStrategy(MongoModel):
    collection_name = 'mutual_fund_exit_strategies'
    fields = (
        'client_id', 'advisor_id', 'fund_id', 'fund_name', 'fund_category', 'fund_type', 'source',
    ) + SECTIONS + ('status', 'priority', 'created_by', 'updated_by', 'version', 'is_active')

    def __init__(self, client_id, advisor_id, fund_id, fund_name, fund_category, fund_type, source,
                 status='draft', priority='medium', version=1, is_active=True, **values):
        if fund_type not in FUND_TYPES:
            raise ValidationError(f"Invalid fund type. Must be one of: {', '.join(FUND_TYPES)}")
        if source not in SOURCES:
            raise ValidationError(f"Invalid source. Must be one of: {', '.join(SOURCES)}")
        if status not in STRATEGY_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(STRATEGY_STATUSES)}")
        if priority not in PRIORITIES:
            raise ValidationError(f"Invalid priority. Must be one of: {', '.join(PRIORITIES)}")

        super().__init__(
            client_id=client_id,
            advisor_id=advisor_id,
            fund_id=str(fund_id),
            fund_name=fund_name,
            fund_category=fund_category,
            fund_type=fund_type,
            source=source,
            status=status,
            priority=priority,
            version=version,
            is_active=is_active,
            **values
        )
        for section in SECTIONS:
            if getattr(self, section) is None:
                setattr(self, section, {})
        self.created_by = self.created_by or advisor_id
        self.advisor_certification.setdefault('certified_by', advisor_id)

    @property
    def current_value(self):
        value = self.primary_exit_analysis.get('current_value') or 0
        return float(value) if _is_number(value) else 0.0

    @property
    def net_benefit_percentage(self):
        return net_benefit_percentage(self.cost_benefit_analysis.get('net_benefit'), self.current_value)

    @staticmethod
    def find_by_client(client_id, advisor_id):
        return MutualFundExitStrategy.find({'client_id': client_id, 'advisor_id': advisor_id, 'is_active': True})

    @staticmethod
    def find_by_advisor(advisor_id):
        return MutualFundExitStrategy.find({'advisor_id': advisor_id, 'is_active': True})

    @staticmethod
    def find_active(client_id, fund_id):
        return MutualFundExitStrategy.find_one({'client_id': client_id, 'fund_id': str(fund_id), 'is_active': True})

    def calculate_tax_implications(self):
        tax = calculate_tax(self.current_value, self.tax_implications.get('holding_period'))
        self.tax_implications.update(tax)
        return self.tax_implications

    def _normalize_dates(self):
        exit_date = self.timing_strategy.get('recommended_exit_date')
        if isinstance(exit_date, str) and exit_date:
            self.timing_strategy['recommended_exit_date'] = parse_datetime(exit_date)

    def apply_update(self, data, updated_by):
        """Merge an update payload; approval stamps the certification date"""
        previous_status = self.status
        for section in SECTIONS:
            if isinstance(data.get(section), dict):
                setattr(self, section, {**getattr(self, section), **data[section]})
        for field in ('fund_name', 'fund_category'):
            if data.get(field):
                setattr(self, field, data[field])
        if data.get('priority'):
            if data['priority'] not in PRIORITIES:
                raise ValidationError(f"Invalid priority. Must be one of: {', '.join(PRIORITIES)}")
            self.priority = data['priority']
        if data.get('status'):
            if data['status'] not in STRATEGY_STATUSES:
                raise ValidationError(f"Invalid status. Must be one of: {', '.join(STRATEGY_STATUSES)}")
            self.status = data['status']

        if self.status == 'approved' and previous_status != 'approved':
            self.advisor_certification['certification_date'] = utcnow()

        self.updated_by = updated_by
        self.version = (self.version or 1) + 1
        return self.save()

    def save(self):
        self._normalize_dates()
        self.calculate_tax_implications()
        if self.status == 'approved' and not self.advisor_certification.get('certification_date'):
            self.advisor_certification['certification_date'] = utcnow()
        return super().save()

    def soft_delete(self, updated_by):
        self.is_active = False
        self.status = 'cancelled'
        self.updated_by = updated_by
        return self.save()

    def to_dict(self):
        data = super().to_dict()
        data['total_value'] = self.current_value
        data['net_benefit_percentage'] = self.net_benefit_percentage
        return data

from advisor_platform.models.base import MongoModel
from advisor_platform.utils.dates import parse_datetime
from advisor_platform.utils.errors import ValidationError

RISK_PROFILES = ('Conservative', 'Moderate', 'Aggressive')
INVESTMENT_GOALS = ('Wealth Creation', 'Retirement', 'Child Education', 'Emergency Fund', 'Other Reason')
RECOMMENDATION_STATUSES = ('active', 'completed', 'cancelled', 'on_hold')
MIN_MONTHLY_SIP = 100

REQUIRED_FIELDS = (
    'client_id', 'fund_name', 'fund_house_name', 'recommended_monthly_sip', 'sip_start_date',
    'expected_exit_date', 'exit_conditions', 'reason_for_recommendation', 'risk_profile',
    'investment_goal',
)
EDITABLE_FIELDS = REQUIRED_FIELDS[1:] + ('ai_response', 'status', 'notes')


class MutualFundRecommendation(MongoModel):
    collection_name = 'mutual_fund_recommendations'
    fields = (
        'client_id', 'advisor_id', 'fund_name', 'fund_house_name', 'recommended_monthly_sip',
        'sip_start_date', 'expected_exit_date', 'exit_conditions', 'reason_for_recommendation',
        'risk_profile', 'investment_goal', 'ai_response', 'status', 'notes',
    )

    def __init__(self, client_id, advisor_id, status='active', **values):
        super().__init__(client_id=client_id, advisor_id=advisor_id, status=status, **values)
        self.validate()

    def validate(self):
        if self.risk_profile not in RISK_PROFILES:
            raise ValidationError(f"Invalid risk profile. Must be one of: {', '.join(RISK_PROFILES)}")
        if self.investment_goal not in INVESTMENT_GOALS:
            raise ValidationError(f"Invalid investment goal. Must be one of: {', '.join(INVESTMENT_GOALS)}")
        if self.status not in RECOMMENDATION_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(RECOMMENDATION_STATUSES)}")

        try:
            self.recommended_monthly_sip = float(self.recommended_monthly_sip)
        except (TypeError, ValueError):
            raise ValidationError('Recommended monthly SIP must be a number')
        if self.recommended_monthly_sip < MIN_MONTHLY_SIP:
            raise ValidationError(f'Recommended monthly SIP must be at least {MIN_MONTHLY_SIP}')

        try:
            self.sip_start_date = parse_datetime(self.sip_start_date)
            self.expected_exit_date = parse_datetime(self.expected_exit_date)
        except ValueError:
            raise ValidationError('Invalid SIP start or expected exit date')
        if self.sip_start_date and self.expected_exit_date and self.expected_exit_date <= self.sip_start_date:
            raise ValidationError('Expected exit date must be after the SIP start date')

        for field in ('fund_name', 'fund_house_name', 'exit_conditions', 'reason_for_recommendation'):
            value = getattr(self, field)
            setattr(self, field, value.strip() if isinstance(value, str) else value)

    @staticmethod
    def find_owned(recommendation_id, advisor_id):
        recommendation = MutualFundRecommendation.find_by_id(recommendation_id)
        if recommendation is None or recommendation.advisor_id != advisor_id:
            return None
        return recommendation

    @staticmethod
    def find_by_client(client_id, advisor_id):
        return MutualFundRecommendation.find({'client_id': client_id, 'advisor_id': advisor_id})

    @staticmethod
    def find_by_advisor(advisor_id, status=None):
        query = {'advisor_id': advisor_id}
        if status:
            query['status'] = status
        return MutualFundRecommendation.find(query)

    def apply_update(self, data):
        for field in EDITABLE_FIELDS:
            if field in data:
                setattr(self, field, data[field])
        self.validate()
        return self.save()


def recommendation_summary(recommendations):
    by_risk = {profile: 0 for profile in RISK_PROFILES}
    by_goal = {}
    total_sip = 0.0
    for recommendation in recommendations:
        by_risk[recommendation.risk_profile] = by_risk.get(recommendation.risk_profile, 0) + 1
        by_goal[recommendation.investment_goal] = by_goal.get(recommendation.investment_goal, 0) + 1
        if recommendation.status == 'active':
            total_sip += recommendation.recommended_monthly_sip or 0
    return {
        'count': len(recommendations),
        'total_monthly_sip': round(total_sip, 2),
        'by_risk_profile': by_risk,
        'by_investment_goal': by_goal,
    }

from pymongo import DESCENDING

from advisor_platform.models.base import MongoModel
from advisor_platform.utils.dates import utcnow
from advisor_platform.utils.errors import ValidationError

PLAN_TYPES = ('cash_flow', 'goal_based', 'hybrid')
PLAN_STATUSES = ('draft', 'active', 'completed', 'archived')
STATUS_TRANSITIONS = {
    'draft': ('active', 'archived'),
    'active': ('completed', 'archived'),
    'completed': ('archived',),
    'archived': (),
}


class Plan(MongoModel):
    collection_name = 'plans'
    fields = (
        'client_id', 'advisor_id', 'plan_type', 'status', 'plan_data',
        'review_history', 'debt_strategy', 'goal_analysis', 'ai_recommendations',
        'version', 'is_active', 'cloned_from',
    )

    def __init__(self, client_id, advisor_id, plan_type, status='draft', version=1, is_active=True, **values):
        if plan_type not in PLAN_TYPES:
            raise ValidationError(f"Invalid plan type. Must be one of: {', '.join(PLAN_TYPES)}")
        super().__init__(
            client_id=client_id,
            advisor_id=advisor_id,
            plan_type=plan_type,
            status=status,
            version=version,
            is_active=is_active,
            **values
        )
        self.plan_data = self.plan_data or {}
        self.review_history = self.review_history or []

    @staticmethod
    def find_owned(plan_id, advisor_id):
        plan = Plan.find_by_id(plan_id)
        if plan is None or plan.advisor_id != advisor_id:
            return None
        return plan

    @staticmethod
    def find_by_client(client_id, advisor_id, include_archived=False):
        query = {'client_id': client_id, 'advisor_id': advisor_id}
        if not include_archived:
            query['is_active'] = True
        return Plan.find(query, sort=[('created_at', DESCENDING)])

    def update_data(self, plan_data):
        """Merge new plan data and bump the version"""
        self.plan_data = {**self.plan_data, **plan_data}
        self.version = (self.version or 1) + 1
        return self.save()

    def change_status(self, new_status):
        if new_status not in PLAN_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(PLAN_STATUSES)}")
        if new_status not in STATUS_TRANSITIONS.get(self.status, ()):
            raise ValidationError(f"Cannot change plan status from {self.status} to {new_status}")
        self.status = new_status
        if new_status == 'archived':
            self.is_active = False
        return self.save()

    def archive(self):
        self.status = 'archived'
        self.is_active = False
        return self.save()

    def add_review(self, notes, reviewed_by=None):
        review = {
            'notes': notes,
            'reviewed_by': reviewed_by,
            'reviewed_at': utcnow(),
            'version': self.version,
        }
        self.review_history.append(review)
        self.save()
        return review

    def clone(self, target_client_id=None):
        """New draft copy of this plan, optionally for another client"""
        copy = Plan(
            client_id=target_client_id or self.client_id,
            advisor_id=self.advisor_id,
            plan_type=self.plan_type,
            plan_data=dict(self.plan_data),
            debt_strategy=self.debt_strategy,
            goal_analysis=self.goal_analysis,
            cloned_from=self.id,
        )
        return copy.save()

    def performance(self):
        """Goal progress computed from the plan's goal entries"""
        goals = self.plan_data.get('goals') or []
        progress = []
        for goal in goals:
            target = goal.get('target_amount') or 0
            current = goal.get('current_amount') or 0
            percent = round(current / target * 100, 2) if target else 0
            progress.append({
                'title': goal.get('title') or goal.get('type') or 'Goal',
                'target_amount': target,
                'current_amount': current,
                'progress_percentage': min(percent, 100),
                'on_track': percent >= 100 or goal.get('on_track', False),
            })

        overall = round(sum(g['progress_percentage'] for g in progress) / len(progress), 2) if progress else 0
        return {
            'plan_id': self.id,
            'status': self.status,
            'version': self.version,
            'goal_count': len(progress),
            'goals': progress,
            'overall_progress': overall,
            'review_count': len(self.review_history),
            'last_reviewed_at': self.review_history[-1]['reviewed_at'] if self.review_history else None,
        }

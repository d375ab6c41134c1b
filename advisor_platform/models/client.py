import re

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING

from advisor_platform.models.base import MongoModel

CLIENT_STATUSES = ('invited', 'onboarding', 'active', 'inactive')
ONBOARDING_STAGES = {
    1: 'Personal Information & KYC',
    2: 'Income & Employment Analysis',
    3: 'Financial Goals & Retirement',
    4: 'Assets & Liabilities Mapping',
    5: 'Investment Profile & CAS Upload',
}
SORT_FIELDS = {
    'created_at': 'created_at',
    'name': 'first_name',
    'email': 'email',
    'status': 'status',
}


class Client(MongoModel):
    collection_name = 'clients'
    fields = (
        'advisor_id', 'first_name', 'last_name', 'email', 'phone_number',
        'pan_number', 'date_of_birth', 'gender', 'address', 'occupation',
        'status', 'onboarding_step', 'form_drafts', 'financials', 'assets',
        'debts_and_liabilities', 'goals', 'investment_profile', 'cas_data',
        'is_active', 'onboarding_completed_at',
    )

    def __init__(self, advisor_id, first_name, last_name, email, status='invited',
                 onboarding_step=0, is_active=True, **values):
        super().__init__(
            advisor_id=advisor_id,
            first_name=first_name,
            last_name=last_name,
            email=email.lower().strip() if email else email,
            status=status,
            onboarding_step=onboarding_step,
            is_active=is_active,
            **values
        )
        self.form_drafts = self.form_drafts or {}
        self.financials = self.financials or {}
        self.assets = self.assets or {}
        self.debts_and_liabilities = self.debts_and_liabilities or {}
        self.goals = self.goals or []

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @staticmethod
    def find_owned(client_id, advisor_id):
        """Find a client only if it belongs to the advisor"""
        try:
            object_id = ObjectId(str(client_id))
        except (InvalidId, TypeError):
            return None
        return Client.find_one({'_id': object_id, 'advisor_id': advisor_id})

    @staticmethod
    def find_by_email(advisor_id, email):
        return Client.find_one({'advisor_id': advisor_id, 'email': email.lower().strip()})

    @staticmethod
    def search(advisor_id, search=None, status=None, sort='created_at', order='desc', page=1, limit=10):
        """Paginated client listing; returns (clients, total)"""
        query = {'advisor_id': advisor_id}
        if status:
            query['status'] = status
        if search:
            pattern = re.compile(re.escape(search.strip()), re.IGNORECASE)
            query['$or'] = [
                {'first_name': pattern},
                {'last_name': pattern},
                {'email': pattern},
                {'phone_number': pattern},
            ]

        sort_field = SORT_FIELDS.get(sort, 'created_at')
        direction = ASCENDING if order == 'asc' else DESCENDING
        page = max(1, page)
        limit = max(1, min(limit, 100))

        total = Client.count(query)
        clients = Client.find(query, sort=[(sort_field, direction)], skip=(page - 1) * limit, limit=limit)
        return clients, total

    @staticmethod
    def find_by_advisor(advisor_id, active_only=False):
        query = {'advisor_id': advisor_id}
        if active_only:
            query['is_active'] = True
        return Client.find(query)

    def save_draft(self, step_number, step_data):
        """Store a partial onboarding step"""
        self.form_drafts[str(step_number)] = step_data
        self.onboarding_step = max(self.onboarding_step or 0, step_number)
        if self.status == 'invited':
            self.status = 'onboarding'
        return self.save()

    def portfolio_value(self):
        cas_total = ((self.cas_data or {}).get('parsed_data') or {}).get('total_value')
        return cas_total or 0

    def to_summary(self):
        """Short form used in lists and populated references"""
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'phone_number': self.phone_number,
            'status': self.status,
        }

    def to_dict(self):
        data = super().to_dict()
        data['full_name'] = self.full_name
        cas = dict(self.cas_data or {})
        # Server paths and PDF passwords stay server-side
        cas.pop('file_path', None)
        cas.pop('password', None)
        data['cas_data'] = cas or None
        return data

from datetime import timedelta
import secrets

from advisor_platform.models.base import MongoModel
from advisor_platform.utils.dates import utcnow
from advisor_platform.utils.errors import ValidationError

LOE_STATUSES = ('draft', 'sent', 'viewed', 'signed', 'expired')

DEFAULT_SERVICES = [
    'Comprehensive Financial Planning and Analysis',
    'Investment Advisory and Portfolio Management',
    'Risk Assessment and Management Strategies',
    'Retirement Planning and Wealth Preservation',
    'Tax-Efficient Investment Strategies',
    'Regular Portfolio Reviews and Rebalancing',
]

DEFAULT_FEES = [
    'Initial Financial Planning Fee: $5,000',
    'Ongoing Advisory Fee: 1% of assets under management',
    'Reduced fee of 0.75% for assets above $1,000,000',
    'Quarterly billing in advance',
]


class LOE(MongoModel):
    """Letter of engagement sent to a client for digital signature"""

    collection_name = 'loe_automations'
    fields = (
        'advisor_id', 'client_id', 'status', 'access_token', 'client_access_url',
        'content', 'signatures', 'sent_at', 'viewed_at', 'signed_at', 'expires_at',
    )

    def __init__(self, advisor_id, client_id, status='draft', frontend_url=None,
                 expiry_days=7, custom_notes='', **values):
        if status not in LOE_STATUSES:
            raise ValidationError(f"Invalid LOE status. Must be one of: {', '.join(LOE_STATUSES)}")
        super().__init__(advisor_id=advisor_id, client_id=client_id, status=status, **values)
        if not self.access_token:
            self.access_token = secrets.token_hex(32)
            self.client_access_url = f"{(frontend_url or 'http://localhost:5173').rstrip('/')}" \
                                     f"/loe-automation/sign/{self.access_token}"
        self.content = self.content or {
            'custom_notes': custom_notes or '',
            'services': list(DEFAULT_SERVICES),
            'fees': list(DEFAULT_FEES),
        }
        self.signatures = self.signatures or {}
        self.expires_at = self.expires_at or utcnow() + timedelta(days=expiry_days)

    @property
    def is_expired(self):
        return utcnow() > self.expires_at

    @property
    def is_signed(self):
        return self.status == 'signed'

    @staticmethod
    def find_by_token(token):
        return LOE.find_one({'access_token': token})

    @staticmethod
    def latest_for_client(client_id, advisor_id):
        found = LOE.find({'client_id': client_id, 'advisor_id': advisor_id}, limit=1)
        return found[0] if found else None

    @staticmethod
    def find_for_client(client_id, advisor_id):
        return LOE.find({'client_id': client_id, 'advisor_id': advisor_id})

    def mark_as_sent(self):
        self.status = 'sent'
        self.sent_at = utcnow()
        return self.save()

    def mark_as_viewed(self):
        if self.status == 'sent':
            self.status = 'viewed'
            self.viewed_at = utcnow()
            self.save()
        return self

    def mark_as_expired(self):
        if self.status != 'expired':
            self.status = 'expired'
            self.save()
        return self

    def save_signature(self, signature, ip_address=None, user_agent=None):
        now = utcnow()
        self.signatures['client'] = {
            'data': signature,
            'signed_at': now,
            'ip_address': ip_address,
            'user_agent': user_agent,
        }
        self.status = 'signed'
        self.signed_at = now
        return self.save()

    def to_dict(self, include_signature=False):
        data = super().to_dict()
        if not include_signature:
            client_signature = dict(data['signatures'].get('client') or {})
            client_signature.pop('data', None)
            data['signatures'] = {'client': client_signature} if client_signature else {}
        data['is_expired'] = self.is_expired
        return data

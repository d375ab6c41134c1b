from datetime import timedelta
import secrets

from advisor_platform.models.base import MongoModel
from advisor_platform.utils.dates import utcnow

INVITATION_STATUSES = ('pending', 'sent', 'opened', 'completed', 'expired', 'cancelled')


class ClientInvitation(MongoModel):
    collection_name = 'client_invitations'
    fields = (
        'advisor_id', 'client_id', 'client_email', 'client_first_name', 'client_last_name',
        'token', 'status', 'sent_at', 'opened_at', 'completed_at', 'expires_at',
        'invitation_source', 'notes', 'meeting_id',
    )

    def __init__(self, advisor_id, client_id, client_email, token=None, status='pending',
                 expires_at=None, expiry_hours=48, invitation_source='manual', **values):
        super().__init__(
            advisor_id=advisor_id,
            client_id=client_id,
            client_email=client_email.lower().strip(),
            token=token or secrets.token_hex(32),
            status=status,
            expires_at=expires_at or utcnow() + timedelta(hours=expiry_hours),
            invitation_source=invitation_source,
            **values
        )

    @property
    def is_expired(self):
        return self.status == 'expired' or utcnow() > self.expires_at

    @property
    def time_remaining(self):
        """Seconds until expiry, never negative"""
        return max(0, int((self.expires_at - utcnow()).total_seconds()))

    @staticmethod
    def find_by_token(token):
        return ClientInvitation.find_one({'token': token})

    @staticmethod
    def find_by_advisor(advisor_id, status=None, limit=None):
        query = {'advisor_id': advisor_id}
        if status:
            query['status'] = status
        return ClientInvitation.find(query, limit=limit)

    @staticmethod
    def find_for_client(client_id, advisor_id):
        return ClientInvitation.find_one({'client_id': client_id, 'advisor_id': advisor_id})

    @staticmethod
    def count_for_email(advisor_id, email):
        return ClientInvitation.count({'advisor_id': advisor_id, 'client_email': email.lower().strip()})

    def mark_sent(self):
        self.status = 'sent'
        self.sent_at = utcnow()
        return self.save()

    def mark_opened(self):
        if self.status in ('pending', 'sent'):
            self.status = 'opened'
            self.opened_at = utcnow()
            self.save()
        return self

    def mark_completed(self):
        self.status = 'completed'
        self.completed_at = utcnow()
        return self.save()

    def mark_expired(self):
        if self.status != 'expired':
            self.status = 'expired'
            self.save()
        return self

    def to_dict(self, include_token=True):
        data = super().to_dict()
        if not include_token:
            data.pop('token')
        data['is_expired'] = self.is_expired
        data['time_remaining'] = self.time_remaining
        return data

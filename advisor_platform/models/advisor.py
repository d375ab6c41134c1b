from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from advisor_platform.models.base import MongoModel


class Advisor(UserMixin, MongoModel):
    collection_name = 'advisors'
    fields = ('email', 'password_hash', 'first_name', 'last_name', 'firm_name', 'phone', 'active', 'last_login_at')

    def __init__(self, email, active=True, **values):
        super().__init__(email=email, active=active, **values)

    @property
    def is_active(self):
        return self.active is not False

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if password is correct"""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @staticmethod
    def find_by_email(email):
        """Find advisor by email"""
        return Advisor.find_one({'email': email.lower().strip()})

    def to_dict(self):
        """Convert advisor to dictionary"""
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'firm_name': self.firm_name,
            'phone': self.phone,
            'is_active': self.is_active,
            'created_at': self.created_at,
        }

    def public_profile(self):
        """What clients see on invitation and LOE pages"""
        return {
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'phone': self.phone,
            'firm_name': self.firm_name,
        }

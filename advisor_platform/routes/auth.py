from flask import Blueprint, jsonify
from flask_login import login_required, current_user
import structlog

from advisor_platform.models.advisor import Advisor
from advisor_platform.routes.common import json_body
from advisor_platform.utils.auth_middleware import issue_token, validate_json_data
from advisor_platform.utils.dates import utcnow
from advisor_platform.utils.errors import AuthenticationError, ValidationError

logger = structlog.get_logger(__name__)

auth_bp = Blueprint('auth', __name__)

MIN_PASSWORD_LENGTH = 8
PROFILE_FIELDS = ('first_name', 'last_name', 'firm_name', 'phone')


@auth_bp.route('/register', methods=['POST'])
@validate_json_data(['email', 'password', 'first_name', 'last_name'])
def register():
    """Register a new advisor"""
    data = json_body()
    email = data['email'].lower().strip()
    password = data['password']

    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')

    if Advisor.find_by_email(email):
        raise ValidationError('Advisor with this email already exists')

    advisor = Advisor(
        email=email,
        first_name=data['first_name'].strip(),
        last_name=data['last_name'].strip(),
        firm_name=(data.get('firm_name') or '').strip() or None,
        phone=(data.get('phone') or '').strip() or None,
    )
    advisor.set_password(password)
    advisor.save()

    logger.info("advisor_registered", advisor_id=advisor.id)

    return jsonify({
        'success': True,
        'message': 'Registration successful',
        'token': issue_token(advisor.id),
        'advisor': advisor.to_dict()
    }), 201


@auth_bp.route('/login', methods=['POST'])
@validate_json_data(['email', 'password'])
def login():
    """Exchange credentials for a bearer token"""
    data = json_body()
    advisor = Advisor.find_by_email(data['email'])

    if not advisor or not advisor.check_password(data['password']):
        logger.warning("login_failed", email=data['email'].lower().strip())
        raise AuthenticationError('Invalid email or password')

    if not advisor.is_active:
        raise AuthenticationError('Account is deactivated')

    advisor.last_login_at = utcnow()
    advisor.save()

    logger.info("advisor_logged_in", advisor_id=advisor.id)

    return jsonify({
        'success': True,
        'message': 'Login successful',
        'token': issue_token(advisor.id),
        'advisor': advisor.to_dict()
    }), 200


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Tokens are stateless; the client discards its copy"""
    logger.info("advisor_logged_out", advisor_id=current_user.id)
    return jsonify({'success': True, 'message': 'Logout successful'}), 200


@auth_bp.route('/profile', methods=['GET'])
@login_required
def get_profile():
    return jsonify({'success': True, 'advisor': current_user.to_dict()}), 200


@auth_bp.route('/profile', methods=['PUT'])
@login_required
def update_profile():
    """Update advisor profile"""
    data = json_body()

    for field in PROFILE_FIELDS:
        if field in data:
            value = data[field]
            setattr(current_user, field, value.strip() if isinstance(value, str) else value)

    if 'email' in data:
        new_email = data['email'].lower().strip()
        if new_email != current_user.email:
            if Advisor.find_by_email(new_email):
                raise ValidationError('Email already taken')
            current_user.email = new_email

    current_user.save()

    return jsonify({
        'success': True,
        'message': 'Profile updated successfully',
        'advisor': current_user.to_dict()
    }), 200


@auth_bp.route('/change-password', methods=['POST'])
@login_required
@validate_json_data(['current_password', 'new_password'])
def change_password():
    data = json_body()

    if not current_user.check_password(data['current_password']):
        raise ValidationError('Current password is incorrect')

    if len(data['new_password']) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'New password must be at least {MIN_PASSWORD_LENGTH} characters')

    current_user.set_password(data['new_password'])
    current_user.save()

    logger.info("advisor_password_changed", advisor_id=current_user.id)
    return jsonify({'success': True, 'message': 'Password changed successfully'}), 200

from datetime import timedelta
from functools import wraps

from flask import current_app, jsonify, request
import jwt
import structlog

from advisor_platform.utils.dates import utcnow

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = 'HS256'


def issue_token(advisor_id):
    """Create a signed bearer token for an advisor"""
    now = utcnow()
    payload = {
        'sub': str(advisor_id),
        'iat': now,
        'exp': now + timedelta(hours=current_app.config['JWT_EXPIRES_HOURS']),
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET'], algorithm=JWT_ALGORITHM)


def decode_token(token):
    """Return the advisor id inside a bearer token, or None if it is not valid"""
    try:
        payload = jwt.decode(token, current_app.config['JWT_SECRET'], algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("token_expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning("token_invalid", error=str(e))
        return None
    return payload.get('sub')


def bearer_token_from_request(req=None):
    req = req or request
    header = req.headers.get('Authorization', '')
    if not header.lower().startswith('bearer '):
        return None
    token = header[7:].strip()
    return token or None


def load_advisor_from_request(req):
    """Flask-Login request loader: resolve the Authorization header to an Advisor"""
    from advisor_platform.models.advisor import Advisor

    token = bearer_token_from_request(req)
    if not token:
        return None

    advisor_id = decode_token(token)
    if not advisor_id:
        return None

    advisor = Advisor.find_by_id(advisor_id)
    if advisor is None or not advisor.is_active:
        return None
    return advisor


def unauthorized_response():
    return jsonify({'success': False, 'error': 'Authentication required'}), 401


def validate_json_data(required_fields):
    """Reject requests whose JSON body is missing any of the required fields"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            data = request.get_json(silent=True)
            if data is None or not isinstance(data, dict):
                return jsonify({'success': False, 'error': 'Request body must be JSON'}), 400

            missing = [field for field in required_fields if data.get(field) in (None, '')]
            if missing:
                return jsonify({
                    'success': False,
                    'error': f"Missing required fields: {', '.join(missing)}"
                }), 400

            return f(*args, **kwargs)
        return decorated_function
    return decorator

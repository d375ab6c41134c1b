from flask import jsonify
from werkzeug.exceptions import HTTPException
import structlog

from advisor_platform.config.settings import is_development

logger = structlog.get_logger(__name__)


class ApiError(Exception):
    """Error that maps directly onto a JSON error response"""

    status_code = 500

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self, include_details=True):
        payload = {'success': False, 'error': self.message}
        if include_details and self.details is not None:
            payload['details'] = self.details
        return payload


class ValidationError(ApiError):
    status_code = 400


class InvalidIdError(ValidationError):
    pass


class AuthenticationError(ApiError):
    status_code = 401


class ForbiddenError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class GoneError(ApiError):
    status_code = 410


class ExternalServiceError(ApiError):
    status_code = 502


def register_error_handlers(app):
    """Render every error as {'success': False, 'error': ...}"""

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            logger.error("api_error", error=error.message, status_code=error.status_code)
        else:
            logger.warning("api_error", error=error.message, status_code=error.status_code)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'error': 'Route not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'success': False, 'error': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def file_too_large(error):
        return jsonify({'success': False, 'error': 'File too large'}), 413

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'success': False, 'error': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        logger.exception("unhandled_error", error=str(error))
        payload = {'success': False, 'error': 'Internal server error'}
        if is_development(app):
            payload['details'] = str(error)
        return jsonify(payload), 500

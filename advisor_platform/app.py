# app.py
from datetime import date, datetime
import os
import uuid

from bson import ObjectId
from flask import Flask, g, jsonify, request
from flask.json.provider import DefaultJSONProvider
from flask_cors import CORS
from flask_login import LoginManager
import structlog

from advisor_platform.config.database import db_instance
from advisor_platform.config.logging import bind_request_id, clear_request_context, configure_logging
from advisor_platform.config.settings import is_development, load_config
from advisor_platform.models.advisor import Advisor
from advisor_platform.routes.auth import auth_bp
from advisor_platform.routes.clients import clients_bp
from advisor_platform.routes.client_invitations import client_invitations_bp
from advisor_platform.routes.plans import plans_bp
from advisor_platform.routes.meetings import meetings_bp
from advisor_platform.routes.transcriptions import transcriptions_bp
from advisor_platform.routes.mutual_fund_exit import mutual_fund_exit_bp
from advisor_platform.routes.mutual_fund_recommend import mutual_fund_recommend_bp
from advisor_platform.routes.estate_planning import estate_planning_bp
from advisor_platform.routes.loe_automation import loe_automation_bp
from advisor_platform.utils.auth_middleware import load_advisor_from_request, unauthorized_response
from advisor_platform.utils.dates import isoformat
from advisor_platform.utils.errors import register_error_handlers

logger = structlog.get_logger(__name__)


class MongoJSONProvider(DefaultJSONProvider):
    """ISO-8601 dates and string ObjectIds in every JSON response"""

    @staticmethod
    def default(o):
        if isinstance(o, datetime):
            return isoformat(o)
        if isinstance(o, date):
            return o.isoformat()
        if isinstance(o, ObjectId):
            return str(o)
        return DefaultJSONProvider.default(o)


def create_app(config_overrides=None):
    """Application factory"""
    app = Flask(__name__)
    app.json = MongoJSONProvider(app)

    load_config(app, config_overrides)
    configure_logging(app.config['LOG_LEVEL'])

    # Ensure upload directory exists
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    # Initialize extensions
    CORS(app, supports_credentials=True)

    # Initialize database
    db_instance.initialize(app)

    # Bearer tokens are resolved per request; there is no cookie session
    login_manager = LoginManager()
    login_manager.init_app(app)
    login_manager.request_loader(load_advisor_from_request)
    login_manager.unauthorized_handler(unauthorized_response)

    @login_manager.user_loader
    def load_user(advisor_id):
        return Advisor.find_by_id(advisor_id)

    @app.before_request
    def start_request():
        g.request_id = request.headers.get('X-Request-Id') or uuid.uuid4().hex
        bind_request_id(g.request_id)

    @app.after_request
    def finish_request(response):
        response.headers['X-Request-Id'] = g.get('request_id', '')
        logger.info("request_completed", method=request.method, path=request.path,
                    status=response.status_code)
        return response

    @app.teardown_request
    def teardown(exc):
        clear_request_context()

    register_error_handlers(app)

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(clients_bp, url_prefix='/api/clients')
    app.register_blueprint(client_invitations_bp, url_prefix='/api/client-invitations')
    app.register_blueprint(plans_bp, url_prefix='/api/plans')
    app.register_blueprint(meetings_bp, url_prefix='/api/meetings')
    app.register_blueprint(transcriptions_bp, url_prefix='/api/transcriptions')
    app.register_blueprint(mutual_fund_exit_bp, url_prefix='/api/mutual-fund-exit-strategies')
    app.register_blueprint(mutual_fund_recommend_bp, url_prefix='/api/mutual-fund-recommend')
    app.register_blueprint(estate_planning_bp, url_prefix='/api/estate-planning')
    app.register_blueprint(loe_automation_bp, url_prefix='/api/loe-automation')

    @app.route('/api/health')
    def health():
        return jsonify({'success': True, 'status': 'ok', 'service': 'advisor-platform'}), 200

    return app


if __name__ == '__main__':
    app = create_app()

    if not app.config['GOOGLE_API_KEY']:
        logger.warning("google_api_key_missing", detail="AI features will use rule-based fallbacks")
    if not app.config['DAILY_API_KEY']:
        logger.warning("daily_api_key_missing", detail="Meeting rooms cannot be created")

    logger.info("starting_server", upload_folder=app.config['UPLOAD_FOLDER'],
                database=app.config['MONGODB_DB'], port=app.config['PORT'])

    app.run(
        host='0.0.0.0',
        port=app.config['PORT'],
        debug=is_development(app)
    )

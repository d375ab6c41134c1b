import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration read from the environment"""

    SECRET_KEY = os.getenv('SECRET_KEY', 'change-me-in-production')
    JWT_SECRET = os.getenv('JWT_SECRET') or SECRET_KEY
    JWT_EXPIRES_HOURS = int(os.getenv('JWT_EXPIRES_HOURS', 24))

    MONGODB_URI = os.getenv('MONGODB_URI', 'mongodb://localhost:27017/advisor_platform')
    MONGODB_DB = os.getenv('MONGODB_DB', 'advisor_platform')

    GOOGLE_API_KEY = os.getenv('GOOGLE_API_KEY')
    GEMINI_MODEL = os.getenv('GEMINI_MODEL', 'gemini-2.5-flash')

    DAILY_API_KEY = os.getenv('DAILY_API_KEY')
    DAILY_API_URL = os.getenv('DAILY_API_URL', 'https://api.daily.co/v1')

    FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:5173')
    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', 'uploads')
    MAX_CONTENT_LENGTH = int(os.getenv('MAX_CONTENT_LENGTH', 16777216))  # 16MB
    CAS_MAX_FILE_SIZE = int(os.getenv('CAS_MAX_FILE_SIZE', 10485760))  # 10MB

    INVITATION_EXPIRY_HOURS = int(os.getenv('INVITATION_EXPIRY_HOURS', 48))
    MAX_INVITATIONS_PER_CLIENT = int(os.getenv('MAX_INVITATIONS_PER_CLIENT', 5))
    LOE_EXPIRY_DAYS = int(os.getenv('LOE_EXPIRY_DAYS', 7))
    MAX_FETCH_ATTEMPTS = int(os.getenv('MAX_FETCH_ATTEMPTS', 3))

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    FLASK_ENV = os.getenv('FLASK_ENV', 'production')
    PORT = int(os.getenv('PORT', 5000))


def load_config(app, overrides=None):
    """Apply Config plus any overrides to the Flask app"""
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
    return app.config


def is_development(app):
    return app.config.get('FLASK_ENV') == 'development'

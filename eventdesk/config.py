import os
from pathlib import Path
from typing import Any, Dict

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DB_PATH = BASE_DIR / 'eventdesk.db'


def _env(name: str, default: str = '') -> str:
    return os.environ.get(f'EVENTDESK_{name}', default).strip()


class Config:
    """Application settings, read from ``EVENTDESK_*`` environment variables."""

    SECRET_KEY = _env('SECRET_KEY', 'dev-secret-key-change-me')
    SQLALCHEMY_DATABASE_URI = _env('DATABASE_URL', f'sqlite:///{DEFAULT_DB_PATH}')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = _env('COOKIE_SECURE', '0') == '1'

    # datetime-local form values are interpreted in this zone and stored as UTC
    DISPLAY_TIMEZONE = _env('DISPLAY_TIMEZONE', 'UTC')
    LOG_LEVEL = _env('LOG_LEVEL', 'INFO').upper()

    # A provider is offered on the login page only when it has a client id.
    OAUTH_PROVIDERS: Dict[str, Dict[str, Any]] = {
        'google': {
            'label': 'Google',
            'client_id': _env('GOOGLE_CLIENT_ID'),
            'client_secret': _env('GOOGLE_CLIENT_SECRET'),
            'authorize_url': 'https://accounts.google.com/o/oauth2/v2/auth',
            'token_url': 'https://oauth2.googleapis.com/token',
            'userinfo_url': 'https://openidconnect.googleapis.com/v1/userinfo',
            'scope': 'openid email profile',
        },
    }
    OAUTH_TIMEOUT = int(_env('OAUTH_TIMEOUT', '15'))


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    LOG_LEVEL = 'WARNING'
    OAUTH_PROVIDERS: Dict[str, Dict[str, Any]] = {
        'google': dict(
            Config.OAUTH_PROVIDERS['google'],
            client_id='test-client',
            client_secret='test-secret',
        ),
    }

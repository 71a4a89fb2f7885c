"""
Configuration classes for the Sustainability Tracker service
Loads settings from environment variables
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from services.errors import ConfigurationError

load_dotenv()


class Config:
    """Application configuration"""

    # Flask
    APP_ENV = os.environ.get('APP_ENV', 'production')
    DEBUG = os.environ.get('FLASK_ENV') == 'development' or os.environ.get('FLASK_DEBUG') == '1'

    # Entry store
    STORE_BACKEND = os.environ.get('STORE_BACKEND', 'supabase')
    SUPABASE_URL = os.environ.get('SUPABASE_URL')
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get('SUPABASE_SERVICE_ROLE_KEY')
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or 'entries.db'

    # Generative text provider
    GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY')
    GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-2.0-flash')
    GEMINI_BASE_URL = os.environ.get('GEMINI_BASE_URL', 'https://generativelanguage.googleapis.com/v1beta')
    GEMINI_TIMEOUT_SECONDS = float(os.environ.get('GEMINI_TIMEOUT_SECONDS', '20'))

    # Rate limiting
    FEEDBACK_RATE_LIMIT = os.environ.get('FEEDBACK_RATE_LIMIT', '30 per hour')
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')

    # Monitoring / logging
    SENTRY_DSN = os.environ.get('SENTRY_DSN')
    SENTRY_TRACES_SAMPLE_RATE = float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE', '0.1'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')


@dataclass(frozen=True)
class FeedbackSettings:
    """Settings the feedback service needs, captured once from the app config."""

    store_backend: str = 'supabase'
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    database_path: str = 'entries.db'
    gemini_api_key: Optional[str] = None
    gemini_model: str = 'gemini-2.0-flash'
    gemini_base_url: str = 'https://generativelanguage.googleapis.com/v1beta'
    gemini_timeout: float = 20.0

    @classmethod
    def from_config(cls, config) -> 'FeedbackSettings':
        return cls(
            store_backend=config.get('STORE_BACKEND') or 'supabase',
            supabase_url=config.get('SUPABASE_URL'),
            supabase_service_key=config.get('SUPABASE_SERVICE_ROLE_KEY'),
            database_path=config.get('DATABASE_PATH') or 'entries.db',
            gemini_api_key=config.get('GEMINI_API_KEY'),
            gemini_model=config.get('GEMINI_MODEL') or 'gemini-2.0-flash',
            gemini_base_url=config.get('GEMINI_BASE_URL') or cls.gemini_base_url,
            gemini_timeout=float(config.get('GEMINI_TIMEOUT_SECONDS') or 20.0),
        )

    @classmethod
    def from_env(cls) -> 'FeedbackSettings':
        """Settings for scripts running outside the Flask app."""
        return cls.from_config({k: getattr(Config, k) for k in dir(Config) if k.isupper()})

    def missing(self) -> list:
        """Names of required settings that are not configured."""
        missing = []
        if self.store_backend == 'supabase':
            if not self.supabase_url:
                missing.append('SUPABASE_URL')
            if not self.supabase_service_key:
                missing.append('SUPABASE_SERVICE_ROLE_KEY')
        elif self.store_backend != 'sqlite':
            missing.append('STORE_BACKEND')
        if not self.gemini_api_key:
            missing.append('GEMINI_API_KEY')
        return missing

    def require(self) -> None:
        missing = self.missing()
        if missing:
            raise ConfigurationError('Missing environment variables', missing=missing)

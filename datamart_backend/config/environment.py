"""
Environment Configuration for the DataMart backend

Builds a single AppConfig from environment variables at process start.
The instance is handed to create_app() and from there to the messaging
service, the Paystack client and the admin services, so nothing reads
os.environ after start-up.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name, default):
    value = os.environ.get(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(',') if item.strip()]


@dataclass
class AppConfig:
    # Flask / auth
    SECRET_KEY: str = 'datamart-backend-secret-key'
    MONGO_URI: str = 'mongodb://localhost:27017/datamart'
    JWT_EXPIRATION_HOURS: int = 24

    # mNotify SMS
    MNOTIFY_API_KEY: str = ''
    MNOTIFY_SENDER_ID: str = 'DataMartGH'
    MNOTIFY_BASE_URL: str = 'https://apps.mnotify.net/smsapi'
    SMS_TIMEOUT_SECONDS: int = 10

    # Paystack
    PAYSTACK_SECRET_KEY: str = ''
    PAYSTACK_BASE_URL: str = 'https://api.paystack.co'
    PAYSTACK_TIMEOUT_SECONDS: int = 15

    # Admin operations
    BULK_BATCH_SIZE: int = 10
    EXPOSE_ERROR_DETAILS: bool = False

    # HTTP surface
    RATE_LIMITS: List[str] = field(default_factory=lambda: ['50000 per day', '5000 per hour'])
    CORS_ORIGINS: List[str] = field(default_factory=lambda: ['*'])
    LOG_LEVEL: str = 'INFO'
    TESTING: bool = False

    @property
    def jwt_expiration_delta(self):
        return timedelta(hours=self.JWT_EXPIRATION_HOURS)

    @classmethod
    def from_env(cls):
        """Read the configuration from the process environment."""
        production = os.environ.get('FLASK_ENV', os.environ.get('NODE_ENV', 'production')) == 'production'
        return cls(
            SECRET_KEY=os.environ.get('SECRET_KEY', cls.SECRET_KEY),
            MONGO_URI=os.environ.get('MONGO_URI', cls.MONGO_URI),
            JWT_EXPIRATION_HOURS=int(os.environ.get('JWT_EXPIRATION_HOURS', cls.JWT_EXPIRATION_HOURS)),
            MNOTIFY_API_KEY=os.environ.get('MNOTIFY_API_KEY', ''),
            MNOTIFY_SENDER_ID=os.environ.get('MNOTIFY_SENDER_ID', cls.MNOTIFY_SENDER_ID),
            MNOTIFY_BASE_URL=os.environ.get('MNOTIFY_BASE_URL', cls.MNOTIFY_BASE_URL),
            SMS_TIMEOUT_SECONDS=int(os.environ.get('SMS_TIMEOUT_SECONDS', cls.SMS_TIMEOUT_SECONDS)),
            PAYSTACK_SECRET_KEY=os.environ.get('PAYSTACK_SECRET_KEY', ''),
            PAYSTACK_BASE_URL=os.environ.get('PAYSTACK_BASE_URL', cls.PAYSTACK_BASE_URL),
            PAYSTACK_TIMEOUT_SECONDS=int(os.environ.get('PAYSTACK_TIMEOUT_SECONDS', cls.PAYSTACK_TIMEOUT_SECONDS)),
            BULK_BATCH_SIZE=int(os.environ.get('BULK_BATCH_SIZE', cls.BULK_BATCH_SIZE)),
            EXPOSE_ERROR_DETAILS=_env_bool('EXPOSE_ERROR_DETAILS', default=not production),
            RATE_LIMITS=_env_list('RATE_LIMITS', ['50000 per day', '5000 per hour']),
            CORS_ORIGINS=_env_list('CORS_ORIGINS', ['*']),
            LOG_LEVEL=os.environ.get('LOG_LEVEL', cls.LOG_LEVEL),
        )

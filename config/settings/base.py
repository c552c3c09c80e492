"""Base settings for all environments.

Common configuration of the rental checkout core: where the booking API
lives, how to talk to Stripe, Celery, and structured logging.
Environment-specific overrides live in `dev.py`, `prod.py` and `test.py`.
"""

from pathlib import Path

import structlog
from dotenv import load_dotenv

from config.env import get_env, get_env_float, get_env_int

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Optionally load .env file
load_dotenv(BASE_DIR / ".env")

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = get_env('DJANGO_SECRET_KEY', 'replace-me-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = False

ALLOWED_HOSTS: list[str] = get_env('DJANGO_ALLOWED_HOSTS', '*').split(',')

# Application definition

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    # Third-party apps
    'rest_framework',
    # Domain apps
    'apps.rentals',
]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'UTC'

USE_I18N = True

USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Booking API (REST backend owning reservations)
RENTAL_API_BASE_URL = get_env('RENTAL_API_BASE_URL', 'http://localhost:5000/api')
RENTAL_API_TOKEN = get_env('RENTAL_API_TOKEN', '')
RENTAL_API_TIMEOUT = get_env_float('RENTAL_API_TIMEOUT', 30)
RENTAL_CURRENCY = get_env('RENTAL_CURRENCY', 'USD')

# Stripe: the client side only ever needs the publishable key
STRIPE_PUBLISHABLE_KEY = get_env('STRIPE_PUBLISHABLE_KEY', 'pk_test_placeholder')

# Background retry of the backend payment sync
PAYMENT_SYNC_MAX_RETRIES = get_env_int('PAYMENT_SYNC_MAX_RETRIES', 5)
PAYMENT_SYNC_RETRY_BACKOFF = get_env_int('PAYMENT_SYNC_RETRY_BACKOFF', 30)  # seconds, doubled per retry

# Celery configuration (Broker and Result backend handled in environment)
CELERY_BROKER_URL = get_env('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = get_env('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')
CELERY_TASK_SERIALIZER = 'json'
CELERY_ACCEPT_CONTENT = ['json']

# Logging
structlog.configure(
    processors=[
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

LOG_LEVEL = get_env('LOG_LEVEL', 'INFO')

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": "structlog.stdlib.ProcessorFormatter",
            "processor": structlog.processors.JSONRenderer(),
            "foreign_pre_chain": [
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
            ],
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "level": LOG_LEVEL,
        }
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "apps": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "shared": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "apps.rentals.infrastructure": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "celery": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}

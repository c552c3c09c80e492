"""Test settings: no network defaults, in-memory broker and database."""

from .base import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

RENTAL_API_BASE_URL = 'http://booking-api.test/api'
RENTAL_API_TOKEN = 'test-token'
RENTAL_API_TIMEOUT = 5
STRIPE_PUBLISHABLE_KEY = 'pk_test_123'

PAYMENT_SYNC_MAX_RETRIES = 3
PAYMENT_SYNC_RETRY_BACKOFF = 1

CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

"""Production settings for the rental checkout core.

Sensitive values must come from environment variables; missing ones
fail start-up instead of falling back to development defaults.
"""

from .base import *  # noqa: F401,F403
from config.env import get_env

# Never run with debug enabled in production
DEBUG = False

# Allowed hosts should be defined explicitly via environment variable
ALLOWED_HOSTS = get_env('DJANGO_ALLOWED_HOSTS', '').split(',')

SECRET_KEY = get_env('DJANGO_SECRET_KEY', required=True)
RENTAL_API_BASE_URL = get_env('RENTAL_API_BASE_URL', required=True)
STRIPE_PUBLISHABLE_KEY = get_env('STRIPE_PUBLISHABLE_KEY', required=True)
CELERY_BROKER_URL = get_env('CELERY_BROKER_URL', required=True)

"""Development settings for the rental checkout core.

Debug on and verbose logging. Background tasks still go through the
broker, so run a Celery worker next to the local booking API.
Do not use these settings in production!
"""

from .base import *  # noqa: F401,F403

# Enable debug mode for development
DEBUG = True

ALLOWED_HOSTS = ['*']

LOGGING["loggers"]["apps"]["level"] = "DEBUG"  # noqa: F405

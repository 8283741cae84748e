"""
WSGI config for the Timeclock project.

It exposes the WSGI callable as a module-level variable named ``application``.

Usage with Gunicorn:
    gunicorn config.wsgi:application --bind 0.0.0.0:8000
"""

import os

from django.core.wsgi import get_wsgi_application

# Default to production settings in WSGI context
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.production")

application = get_wsgi_application()

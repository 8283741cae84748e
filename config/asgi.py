"""
ASGI config for the Timeclock project.

It exposes the ASGI callable as a module-level variable named ``application``.

Usage with Uvicorn:
    uvicorn config.asgi:application --host 0.0.0.0 --port 8000
"""

import os

from django.core.asgi import get_asgi_application

# Default to production settings in ASGI context
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.production")

application = get_asgi_application()

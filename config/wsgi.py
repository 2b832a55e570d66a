"""
WSGI config for DealRush project.

Serves the REST API only; the live price feed needs config/asgi.py.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

application = get_wsgi_application()

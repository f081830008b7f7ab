"""
WSGI config for the payments backend.

Exposes the WSGI callable as a module-level variable named `application`.
Run it with any WSGI server, e.g. ``gunicorn config.wsgi`` from ``app/``.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()

"""
WSGI config for the referralnet project.

It exposes the WSGI callable as a module-level variable named ``application``.
WebSocket feeds are only served through ``referralnet.asgi``.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'referralnet.settings')

application = get_wsgi_application()

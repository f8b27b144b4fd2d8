"""WSGI entry point for medportal; exposes ``application``."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'medportal.settings')

application = get_wsgi_application()

"""
WSGI config for the timesheet backend.

Run with a threaded server so /api/events/ streams do not hold up requests.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

application = get_wsgi_application()

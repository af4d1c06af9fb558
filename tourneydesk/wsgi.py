"""
WSGI config for tourneydesk project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "tourneydesk.settings")

application = get_wsgi_application()

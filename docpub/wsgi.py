"""
WSGI config for docpub project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "docpub.settings")

application = get_wsgi_application()

# docpub/celery.py
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "docpub.settings")

app = Celery("docpub")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

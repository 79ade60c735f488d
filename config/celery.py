import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("booking_engine")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# No beat schedule: finished stays are completed lazily by BookingLifecycle
app.conf.timezone = "UTC"

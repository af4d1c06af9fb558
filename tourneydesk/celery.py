"""
Celery configuration for TourneyDesk
"""
import os

from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "tourneydesk.settings")

app = Celery("tourneydesk")

# All celery-related configuration keys use the `CELERY_` prefix in settings.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

# Celery Beat schedule for periodic tasks
app.conf.beat_schedule = {
    "update-tournament-statuses": {
        "task": "tournaments.tasks.update_tournament_statuses",
        "schedule": crontab(minute="*"),  # Run every minute
    },
}

"""
Celery tasks for tournaments app
"""
import logging

from django.core.cache import cache
from django.utils import timezone

from celery import shared_task

from .models import Tournament
from .status import calculate_tournament_status, stored_status_for

logger = logging.getLogger(__name__)


@shared_task
def update_tournament_statuses():
    """
    Update tournament statuses from their dates
    Runs every minute via Celery Beat
    """
    now = timezone.now()
    updated = 0
    unchanged = 0
    updates = []

    for tournament in Tournament.objects.exclude(status__in=["ongoing", "completed"]):
        new_status = stored_status_for(calculate_tournament_status(tournament, now=now, check_matches=False))
        if new_status == tournament.status:
            unchanged += 1
            continue

        updates.append({"id": tournament.id, "name": tournament.name, "old": tournament.status, "new": new_status})
        Tournament.objects.filter(pk=tournament.pk).update(status=new_status, updated_at=now)
        updated += 1

    # Clear cache if any updates occurred
    if updated > 0:
        cache.delete("tournaments:list:all")
        logger.info(f"Updated status of {updated} tournament(s)")

    return {
        "updated": updated,
        "unchanged": unchanged,
        "updates": updates,
        "timestamp": now.isoformat(),
    }

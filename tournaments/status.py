"""
Tournament status derived from the calendar and match progress
"""
import logging
from datetime import datetime, time
from typing import List, Optional, Tuple

from django.db.models import Count, Q
from django.utils import timezone
from django.utils.dateparse import parse_date

from .models import Match, Tournament

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    "planning": "Planning",
    "recruiting": "Recruiting",
    "before_event": "Before event",
    "ongoing": "Ongoing",
    "completed": "Completed",
}

# Calculated statuses that have no stored counterpart
STORED_STATUS = {"recruiting": "planning", "before_event": "planning"}


def parse_tournament_dates(tournament_dates) -> List:
    """Sorted date objects from the {"1": "YYYY-MM-DD"} mapping; unparseable values are skipped"""
    if not isinstance(tournament_dates, dict):
        return []
    dates = []
    for value in tournament_dates.values():
        if not value:
            continue
        try:
            parsed = parse_date(str(value)[:10])
        except ValueError:
            parsed = None
        if parsed is not None:
            dates.append(parsed)
    return sorted(dates)


def event_window(tournament_dates) -> Tuple[Optional[datetime], Optional[datetime]]:
    """First day 00:00 and last day 23:59:59 in the current time zone"""
    dates = parse_tournament_dates(tournament_dates)
    if not dates:
        return None, None
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(dates[0], time.min), tz)
    end = timezone.make_aware(datetime.combine(dates[-1], time.max), tz)
    return start, end


def format_tournament_period(tournament_dates) -> str:
    dates = parse_tournament_dates(tournament_dates)
    if not dates:
        return "Not set"
    if len(dates) == 1:
        return dates[0].isoformat()
    return f"{dates[0].isoformat()} - {dates[-1].isoformat()}"


def _matches_with_teams(tournament: Tournament):
    return Match.objects.filter(block__tournament=tournament, team1__isnull=False, team2__isnull=False)


def with_progress_counts(queryset):
    """
    Annotate a Tournament queryset with the counts list views need.

    registered_team_count, started_match_count and open_match_count let
    serializers and calculate_tournament_status skip per-row queries.
    """
    paired = Q(blocks__matches__team1__isnull=False, blocks__matches__team2__isnull=False)
    return queryset.annotate(
        registered_team_count=Count("teams", filter=Q(teams__participation_status="confirmed"), distinct=True),
        started_match_count=Count(
            "blocks__matches", filter=paired & ~Q(blocks__matches__match_status="scheduled"), distinct=True
        ),
        open_match_count=Count(
            "blocks__matches",
            filter=paired
            & Q(blocks__matches__is_confirmed=False)
            & ~Q(blocks__matches__match_status="cancelled"),
            distinct=True,
        ),
    )


def all_matches_completed(tournament: Tournament) -> bool:
    """True when every match with both teams is confirmed or cancelled (vacuously true without matches)"""
    open_count = getattr(tournament, "open_match_count", None)
    if open_count is not None:
        return open_count == 0
    matches = _matches_with_teams(tournament)
    total = matches.count()
    if total == 0:
        return True
    completed = matches.filter(is_confirmed=True).count() + matches.filter(
        is_confirmed=False, match_status="cancelled"
    ).count()
    return completed == total


def has_started_matches(tournament: Tournament) -> bool:
    started = getattr(tournament, "started_match_count", None)
    if started is not None:
        return started > 0
    return _matches_with_teams(tournament).exclude(match_status="scheduled").exists()


def calculate_tournament_status(
    tournament: Tournament, now: Optional[datetime] = None, check_matches: bool = True
) -> str:
    """
    Work out the status shown for a tournament.

    Rules, first match wins: before the public start date the tournament is
    planning; a stored completed status stays completed only when every
    match is done (otherwise ongoing); a stored ongoing status is kept; any
    started match makes it ongoing; then the recruitment window, the gap
    before the event and the event days decide. Without dates the status
    is before_event.

    Args:
        tournament: Tournament instance
        now: reference time (defaults to timezone.now())
        check_matches: consult match progress; the periodic task skips it

    Returns:
        One of planning, recruiting, before_event, ongoing, completed
    """
    now = now or timezone.now()

    if tournament.public_start_date and now < tournament.public_start_date:
        return "planning"

    if tournament.status == "completed":
        if check_matches and not all_matches_completed(tournament):
            return "ongoing"
        return "completed"
    if tournament.status == "ongoing":
        return "ongoing"

    if check_matches and has_started_matches(tournament):
        return "ongoing"

    recruitment_start = tournament.recruitment_start_date
    recruitment_end = tournament.recruitment_end_date
    event_start, event_end = event_window(tournament.tournament_dates)

    if recruitment_start and recruitment_end and recruitment_start <= now <= recruitment_end:
        return "recruiting"
    if recruitment_start and now < recruitment_start:
        return "planning"
    if recruitment_end and event_start and recruitment_end < now < event_start:
        return "before_event"
    if event_start and event_end and event_start <= now <= event_end:
        return "ongoing"
    if event_end and now > event_end:
        return "completed"
    return "before_event" if check_matches else "planning"


def get_status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def stored_status_for(calculated: str) -> str:
    return STORED_STATUS.get(calculated, calculated)

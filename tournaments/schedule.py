"""
Match schedule calculation and creation of a tournament's blocks and matches
"""
import logging
from typing import Dict, List, Optional

from django.db import transaction

from .models import Match, MatchBlock, MatchTemplate, Tournament
from .standings import unified_block_name

logger = logging.getLogger(__name__)


def time_to_minutes(value: str) -> int:
    """'09:30' -> 570"""
    hours, minutes = str(value).strip().split(":")[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    """570 -> '09:30'"""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(value: str, minutes: int) -> str:
    return minutes_to_time(time_to_minutes(value) + minutes)


def _has_suggested_time(template: MatchTemplate) -> bool:
    return bool(template.suggested_start_time and str(template.suggested_start_time).strip())


def _select_court(
    template: MatchTemplate,
    index: int,
    courts: List[int],
    block_courts: Dict[str, int],
    custom_assignment: Optional[Dict],
) -> int:
    """Court for a template without a fixed court: custom match, custom block, block map, then round robin"""
    custom_assignment = custom_assignment or {}
    match_assignments = custom_assignment.get("match_assignments") or {}
    block_assignments = custom_assignment.get("block_assignments") or {}

    assigned = match_assignments.get(template.match_number) or match_assignments.get(str(template.match_number))
    if assigned:
        return int(assigned)
    if template.block_name and block_assignments.get(template.block_name):
        return int(block_assignments[template.block_name])
    if template.block_name and template.block_name in block_courts:
        return block_courts[template.block_name]
    return courts[index % len(courts)]


def _calculate_day(
    templates: List[MatchTemplate], date: str, day_number: int, settings: Dict, custom_assignment: Optional[Dict]
) -> Dict:
    courts = settings.get("available_courts") or list(range(1, settings["court_count"] + 1))
    start = time_to_minutes(settings["start_time"])
    duration = settings["match_duration_minutes"]
    break_minutes = settings["break_duration_minutes"]

    block_names = []
    for template in templates:
        if template.block_name and template.block_name not in block_names:
            block_names.append(template.block_name)
    block_courts = {name: courts[index % len(courts)] for index, name in enumerate(block_names)}

    court_end_times = {court: start for court in courts}
    priority_groups: Dict[int, List[MatchTemplate]] = {}
    for template in templates:
        priority_groups.setdefault(template.execution_priority, []).append(template)

    matches = []
    required_courts = 0
    for priority in sorted(priority_groups):
        group = sorted(priority_groups[priority], key=lambda t: t.match_number)
        required_courts = max(required_courts, len(group))
        group_start = max(court_end_times.values())

        for index, template in enumerate(group):
            if template.court_number and template.court_number > 0:
                court = template.court_number
            else:
                court = _select_court(template, index, courts, block_courts, custom_assignment)
            court_end = court_end_times.get(court, start)

            if _has_suggested_time(template):
                match_start = time_to_minutes(template.suggested_start_time)
            elif template.block_name:
                match_start = court_end
            else:
                match_start = max(group_start, court_end)

            match_end = match_start + duration
            if _has_suggested_time(template):
                court_end_times[court] = max(court_end, match_end + break_minutes)
            else:
                court_end_times[court] = match_end + break_minutes

            matches.append(
                {
                    "template": template,
                    "match_number": template.match_number,
                    "match_code": template.match_code,
                    "date": date,
                    "start_time": minutes_to_time(match_start),
                    "end_time": minutes_to_time(match_end),
                    "court_number": court,
                    "time_slot": priority,
                }
            )

    total = 0
    if matches:
        total = max(time_to_minutes(m["end_time"]) for m in matches) - min(
            time_to_minutes(m["start_time"]) for m in matches
        )
    return {
        "date": date,
        "day_number": day_number,
        "matches": matches,
        "total_duration": minutes_to_time(total) if total > 0 else "0:00",
        "required_courts": required_courts,
        "time_slots": len(priority_groups),
    }


def check_time_conflicts(days: List[Dict]) -> List[Dict]:
    """Teams (by template display name) scheduled into overlapping matches on the same day"""
    conflicts: Dict[str, Dict] = {}
    for day in days:
        team_matches: Dict[str, List[Dict]] = {}
        for match in day["matches"]:
            template = match["template"]
            for name in (template.team1_display_name, template.team2_display_name):
                if name:
                    team_matches.setdefault(name, []).append(match)

        for team_name, matches in team_matches.items():
            ordered = sorted(matches, key=lambda m: time_to_minutes(m["start_time"]))
            for first, second in zip(ordered, ordered[1:]):
                if time_to_minutes(first["end_time"]) > time_to_minutes(second["start_time"]):
                    entry = conflicts.setdefault(team_name, {"team": team_name, "conflicts": []})
                    entry["conflicts"].append(
                        {
                            "match1": first["match_code"],
                            "match2": second["match_code"],
                            "description": (
                                f"{first['start_time']}-{first['end_time']} overlaps "
                                f"{second['start_time']}-{second['end_time']}"
                            ),
                        }
                    )
    return list(conflicts.values())


def calculate_schedule(
    templates: List[MatchTemplate], settings: Dict, custom_assignment: Optional[Dict] = None
) -> Dict:
    """
    Lay out match templates over the tournament days and courts.

    Args:
        templates: MatchTemplate instances
        settings: court_count, optional available_courts, match_duration_minutes,
            break_duration_minutes, start_time (HH:MM) and tournament_dates
            ({day_number: "YYYY-MM-DD"})
        custom_assignment: optional {"match_assignments": {match_number: court},
            "block_assignments": {block_name: court}}

    Returns:
        Dict with days, total_matches, total_duration, warnings, feasible
        and time_conflicts
    """
    warnings = []
    feasible = True
    dates = {int(day): date for day, date in (settings.get("tournament_dates") or {}).items() if date}

    by_day: Dict[int, List[MatchTemplate]] = {}
    for template in templates:
        by_day.setdefault(template.day_number, []).append(template)

    days = []
    for day_number in sorted(by_day):
        date = dates.get(day_number)
        if not date:
            warnings.append(f"No date is set for day {day_number}")
            feasible = False
            continue

        day = _calculate_day(by_day[day_number], date, day_number, settings, custom_assignment)
        if day["required_courts"] > settings["court_count"]:
            warnings.append(
                f"{date}: {day['required_courts']} courts needed but only {settings['court_count']} available"
            )
            feasible = False
        days.append(day)

    scheduled = [m for day in days for m in day["matches"]]
    total = 0
    if scheduled:
        total = max(time_to_minutes(m["end_time"]) for m in scheduled) - min(
            time_to_minutes(m["start_time"]) for m in scheduled
        )

    time_conflicts = check_time_conflicts(days)
    if time_conflicts:
        feasible = False
        for conflict in time_conflicts:
            warnings.append(f"Matches of {conflict['team']} overlap")

    return {
        "days": sorted(days, key=lambda d: d["date"]),
        "total_matches": len(templates),
        "total_duration": minutes_to_time(total) if total > 0 else "0:00",
        "warnings": warnings,
        "feasible": feasible,
        "time_conflicts": time_conflicts,
    }


def schedule_settings(tournament: Tournament) -> Dict:
    return {
        "court_count": tournament.court_count,
        "match_duration_minutes": tournament.match_duration_minutes,
        "break_duration_minutes": tournament.break_duration_minutes,
        "start_time": tournament.start_time,
        "tournament_dates": tournament.tournament_dates or {},
    }


def serialize_schedule(schedule: Dict) -> Dict:
    """Schedule with templates replaced by their display fields, for API responses"""
    days = []
    for day in schedule["days"]:
        matches = []
        for match in day["matches"]:
            template = match["template"]
            row = {key: value for key, value in match.items() if key != "template"}
            row.update(
                phase=template.phase,
                block_name=template.block_name,
                round_name=template.round_name,
                team1_display_name=template.team1_display_name,
                team2_display_name=template.team2_display_name,
            )
            matches.append(row)
        days.append(dict(day, matches=matches))
    return dict(schedule, days=days)


def _block_name_for(template: MatchTemplate) -> str:
    if not template.block_name or template.block_name == "default":
        return unified_block_name(template.phase)
    return template.block_name


def create_matches_from_format(tournament: Tournament, custom_schedule: Optional[Dict] = None) -> List[Match]:
    """
    Create the blocks and matches of a new tournament from its format.

    Templates without a block go into the phase's unified block. Start times
    and courts come from calculate_schedule unless custom_schedule
    ({match_number: {"start_time", "court_number"}}) fixes them.

    Returns:
        Created Match instances
    """
    templates = list(tournament.format.templates.order_by("match_number"))
    if not templates:
        raise ValueError("The selected format has no match templates")

    schedule = calculate_schedule(templates, schedule_settings(tournament))
    for warning in schedule["warnings"]:
        logger.warning(f"Schedule for tournament {tournament.id}: {warning}")
    slots = {m["match_number"]: m for day in schedule["days"] for m in day["matches"]}
    dates = tournament.tournament_dates or {}
    first_date = next(iter(tournament.sorted_dates()), None)
    custom_schedule = custom_schedule or {}

    created = []
    with transaction.atomic():
        blocks: Dict[tuple, MatchBlock] = {}
        for template in templates:
            key = (template.phase, _block_name_for(template))
            if key not in blocks:
                blocks[key], _ = MatchBlock.objects.get_or_create(
                    tournament=tournament,
                    phase=template.phase,
                    block_name=key[1],
                    defaults={"display_round_name": template.round_name or template.phase},
                )

        for template in templates:
            slot = slots.get(template.match_number) or {}
            custom = custom_schedule.get(template.match_number) or custom_schedule.get(str(template.match_number)) or {}
            start_time = custom.get("start_time") or slot.get("start_time") or tournament.start_time
            court_number = custom.get("court_number") or slot.get("court_number") or template.court_number or 1
            tournament_date = dates.get(str(template.day_number)) or first_date

            created.append(
                Match.objects.create(
                    block=blocks[(template.phase, _block_name_for(template))],
                    tournament_date=tournament_date,
                    match_number=template.match_number,
                    match_code=template.match_code,
                    team1_display_name=template.team1_display_name,
                    team2_display_name=template.team2_display_name,
                    court_number=court_number,
                    start_time=start_time,
                )
            )

    logger.info(f"Created {len(blocks)} block(s) and {len(created)} match(es) for tournament {tournament.id}")
    return created

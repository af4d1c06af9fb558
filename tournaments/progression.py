"""
Knockout bracket progression: moving winners and losers into later matches
"""
import logging
from typing import Dict, List, Optional

from .models import Match, Tournament, TournamentTeam
from .standings import resolve_template_sources

logger = logging.getLogger(__name__)


def get_progression_targets(tournament: Tournament, match_code: str, phase: str) -> Dict[str, List[Dict]]:
    """
    Later matches fed by the result of match_code.

    Returns:
        {"winner": [{"match_code", "slot"}], "loser": [...]}
    """
    winner_source = f"{match_code}_winner"
    loser_source = f"{match_code}_loser"
    targets = {"winner": [], "loser": []}

    for template in tournament.format.templates.filter(phase=phase):
        for slot, source in zip(("team1", "team2"), resolve_template_sources(tournament, template)):
            if source == winner_source:
                targets["winner"].append({"match_code": template.match_code, "slot": slot})
            elif source == loser_source:
                targets["loser"].append({"match_code": template.match_code, "slot": slot})
    return targets


def _place_team(tournament: Tournament, phase: str, target: Dict, entry: TournamentTeam) -> bool:
    """Put a team into a slot that still shows its template placeholder or is empty"""
    slot = target["slot"]
    match = Match.objects.filter(
        block__tournament=tournament, block__phase=phase, match_code=target["match_code"]
    ).first()
    if match is None:
        return False

    template = tournament.format.templates.filter(phase=phase, match_code=target["match_code"]).first()
    placeholder = getattr(template, f"{slot}_display_name", None) if template else None
    current_name = getattr(match, f"{slot}_display_name")
    if current_name != placeholder and getattr(match, f"{slot}_id") is not None:
        logger.info(f"{match.match_code} {slot} already holds {current_name}, not replacing")
        return False

    setattr(match, slot, entry)
    setattr(match, f"{slot}_display_name", entry.display_name)
    match.save(update_fields=[slot, f"{slot}_display_name", "updated_at"])
    return True


def update_progression(
    tournament: Tournament,
    match_code: str,
    phase: str,
    winner: Optional[TournamentTeam],
    loser: Optional[TournamentTeam],
) -> int:
    """Returns the number of slots filled"""
    targets = get_progression_targets(tournament, match_code, phase)
    filled = 0
    if winner is not None:
        for target in targets["winner"]:
            filled += _place_team(tournament, phase, target, winner)
    if loser is not None:
        for target in targets["loser"]:
            filled += _place_team(tournament, phase, target, loser)
    if filled:
        logger.info(f"Advanced teams from {match_code} into {filled} slot(s)")
    return filled


def process_match_progression(match: Match) -> int:
    """
    Advance the winner and loser of a confirmed match. Draws and matches
    without a winner advance nobody.
    """
    if match.is_draw or match.winner_id is None:
        return 0

    loser = None
    if match.has_both_teams:
        loser = match.team2 if match.winner_id == match.team1_id else match.team1
    return update_progression(match.tournament, match.match_code, match.phase, match.winner, loser)


def recalculate_all_progression(tournament: Tournament) -> int:
    """Replay every confirmed final match in execution order"""
    priorities = {
        t.match_code: t.execution_priority for t in tournament.format.templates.filter(phase="final")
    }
    matches = Match.objects.filter(
        block__tournament=tournament, block__phase="final", is_confirmed=True
    ).select_related("block__tournament", "team1", "team2", "winner")
    ordered = sorted(matches, key=lambda m: (priorities.get(m.match_code, 0), m.match_code))

    filled = 0
    for match in ordered:
        filled += process_match_progression(match)
    logger.info(f"Replayed progression of {len(ordered)} match(es) in tournament {tournament.id}")
    return filled

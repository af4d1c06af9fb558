"""
Promotion of preliminary block finishers into the final bracket
"""
import logging
from typing import Dict, List

from django.db import transaction

from .models import Match, Tournament, TournamentTeam
from .standings import (
    BLOCK_POSITION_SOURCE,
    analyze_promotion_eligibility,
    check_block_complete,
    get_required_promotion_positions,
    resolve_template_sources,
)

logger = logging.getLogger(__name__)


def _completed_block_rankings(tournament: Tournament) -> Dict[str, List[Dict]]:
    """Rankings of preliminary blocks whose matches are all decided"""
    rankings = {}
    blocks = tournament.blocks.filter(phase="preliminary", team_rankings__isnull=False).order_by("block_name")
    for block in blocks:
        if block.team_rankings and check_block_complete(block):
            rankings[block.block_name] = block.team_rankings
        else:
            logger.debug(f"Block {block.block_name} of tournament {tournament.id} not complete, skipping promotion")
    return rankings


def _final_sources(tournament: Tournament) -> Dict[str, tuple]:
    """match_code -> (team1_source, team2_source) for final templates, overrides applied"""
    return {
        template.match_code: resolve_template_sources(tournament, template)
        for template in tournament.format.templates.filter(phase="final")
    }


def extract_promotions(tournament: Tournament, block_rankings: Dict[str, List[Dict]]) -> Dict[str, Dict]:
    """
    Map block position sources ("A_1") to the team holding that place.

    A shared position promotes the first listed team and logs a warning so
    an administrator can fix the ranking manually.
    """
    required = set()
    for sources in _final_sources(tournament).values():
        for source in sources:
            if source and BLOCK_POSITION_SOURCE.match(source):
                required.add(source)

    promotions = {}
    for source in sorted(required):
        block_name, position = BLOCK_POSITION_SOURCE.match(source).groups()
        rankings = block_rankings.get(block_name)
        if rankings is None:
            continue
        holders = [row for row in rankings if row.get("position") == int(position)]
        if not holders:
            logger.warning(f"No team at {source} in tournament {tournament.id}")
            continue
        if len(holders) > 1:
            logger.warning(
                f"Tie at {source} in tournament {tournament.id}: "
                f"{', '.join(row['team_name'] for row in holders)}; promoting {holders[0]['team_name']}"
            )
        promotions[source] = holders[0]
    return promotions


def promote_teams_to_final(tournament: Tournament) -> int:
    """
    Fill final bracket slots from every completed preliminary block.

    Confirmed final matches are updated too so a manual re-ranking can
    correct an earlier promotion.

    Returns:
        Number of final matches updated
    """
    block_rankings = _completed_block_rankings(tournament)
    if not block_rankings:
        return 0

    promotions = extract_promotions(tournament, block_rankings)
    if not promotions:
        return 0

    entries = TournamentTeam.objects.in_bulk([row["tournament_team_id"] for row in promotions.values()])
    sources = _final_sources(tournament)
    updated = 0

    with transaction.atomic():
        final_matches = Match.objects.select_for_update().filter(block__tournament=tournament, block__phase="final")
        for match in final_matches.order_by("match_code"):
            if match.match_code not in sources:
                continue
            changed_fields = []
            for slot, source in zip(("team1", "team2"), sources[match.match_code]):
                row = promotions.get(source)
                entry = entries.get(row["tournament_team_id"]) if row else None
                if entry is None:
                    continue
                changed = getattr(match, f"{slot}_id") != entry.id
                if changed or getattr(match, f"{slot}_display_name") != entry.display_name:
                    setattr(match, slot, entry)
                    setattr(match, f"{slot}_display_name", entry.display_name)
                    changed_fields += [slot, f"{slot}_display_name"]
            if changed_fields:
                if match.is_confirmed:
                    logger.warning(f"Updating teams of confirmed final match {match.match_code}")
                match.save(update_fields=changed_fields + ["updated_at"])
                updated += 1

    logger.info(f"Promoted teams into {updated} final match(es) of tournament {tournament.id}")
    return updated


def promotion_status(tournament: Tournament) -> Dict:
    """
    Per block promotion readiness for the admin screens.

    Returns:
        Dict with blocks (completion, required positions, ties, promoted
        teams) and the number of final slots still waiting for a team
    """
    blocks = []
    for block in tournament.blocks.filter(phase="preliminary").order_by("block_order", "block_name"):
        rankings = block.team_rankings or []
        required_positions = get_required_promotion_positions(tournament, block.block_name)
        eligibility = analyze_promotion_eligibility(rankings, required_positions)
        blocks.append(
            {
                "match_block_id": block.id,
                "block_name": block.block_name,
                "is_complete": check_block_complete(block),
                "has_rankings": bool(rankings),
                "required_positions": required_positions,
                "has_ties": eligibility["has_ties"],
                "tied_positions": eligibility["tied_positions"],
                "promoted_teams": [
                    {"source": f"{block.block_name}_{row['position']}", "team_name": row.get("team_name")}
                    for row in rankings
                    if row.get("position") in required_positions
                ],
            }
        )

    final_matches = Match.objects.filter(block__tournament=tournament, block__phase="final")
    pending_slots = sum(
        (match.team1_id is None) + (match.team2_id is None) for match in final_matches.only("team1", "team2")
    )
    return {
        "tournament_id": tournament.id,
        "blocks": blocks,
        "all_blocks_complete": bool(blocks) and all(b["is_complete"] for b in blocks),
        "pending_final_slots": pending_slots,
    }

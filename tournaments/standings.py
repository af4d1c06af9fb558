"""
Block standings: league tables, template based knockout rankings and the
hooks that keep MatchBlock.team_rankings current after results change
"""
import logging
import re
from typing import Dict, List, Optional

from django.utils import timezone

from .models import Match, MatchBlock, MatchOverride, MatchTemplate, Tournament, TournamentTeam
from .point_system import get_point_system
from .rules import get_rule_periods
from .scoring import parse_total_score, regular_goals
from .tie_breaking import TieBreakingEngine, parse_tie_breaking_rules

logger = logging.getLogger(__name__)

BLOCK_POSITION_SOURCE = re.compile(r"^([A-Z]+)_(\d+)$")
DEFAULT_PROMOTION_POSITIONS = [1, 2]

# Position given to a knockout team whose finishing place is not decided yet
UNDECIDED_POSITION = 0


def unified_block_name(phase: str) -> str:
    return f"{phase}_unified"


def is_unified_block(block: MatchBlock) -> bool:
    return block.block_name == unified_block_name(block.phase)


def active_teams(tournament: Tournament):
    """Entries still taking part: confirmed and not withdrawn"""
    return (
        tournament.teams.filter(participation_status="confirmed")
        .exclude(withdrawal_status="withdrawal_approved")
        .select_related("team")
    )


def _team_row(entry: TournamentTeam) -> Dict:
    return {
        "tournament_team_id": entry.id,
        "team_id": entry.team_id,
        "team_name": entry.team_name,
        "team_omission": entry.team_omission,
        "position": 0,
        "points": 0,
        "matches_played": 0,
        "wins": 0,
        "draws": 0,
        "losses": 0,
        "goals_for": 0,
        "goals_against": 0,
        "goal_difference": 0,
    }


def _block_teams(block: MatchBlock) -> List[TournamentTeam]:
    if block.phase == "final":
        entries = {}
        for match in block.matches.select_related("team1", "team2"):
            for entry in (match.team1, match.team2):
                if entry is not None:
                    entries[entry.id] = entry
        return sorted(entries.values(), key=lambda e: e.team_name)

    teams = active_teams(block.tournament)
    if not is_unified_block(block):
        teams = teams.filter(assigned_block=block.block_name)
    return list(teams.order_by("team_name"))


def counted_matches(block: MatchBlock):
    """Confirmed matches with both teams; cancelled ones only count as walkovers"""
    return (
        block.matches.filter(is_confirmed=True, team1__isnull=False, team2__isnull=False)
        .exclude(match_status="cancelled", is_walkover=False)
        .select_related("team1", "team2")
    )


def match_goals(match: Match, tournament: Tournament, rule_periods: Optional[List[str]] = None):
    """
    Goals counted for standings as (team1_goals, team2_goals).

    Walkovers use the tournament's walkover goals (0-0 when both sides were
    absent); soccer leaves penalty shoot-out goals out.
    """
    if match.is_walkover:
        if match.is_draw:
            return 0, 0
        winner_goals = tournament.walkover_winner_goals
        loser_goals = tournament.walkover_loser_goals
        if match.winner_id == match.team1_id:
            return winner_goals, loser_goals
        return loser_goals, winner_goals

    sport_code = tournament.sport_code
    if sport_code == "soccer":
        return (
            regular_goals(match.team1_scores, sport_code, rule_periods),
            regular_goals(match.team2_scores, sport_code, rule_periods),
        )
    return parse_total_score(match.team1_scores), parse_total_score(match.team2_scores)


def _outcome(match: Match, team_id: int, goals: int, opponent_goals: int) -> str:
    if match.is_draw:
        return "draw"
    if goals != opponent_goals:
        return "win" if goals > opponent_goals else "loss"
    # Level on counted goals, decided by a shoot-out
    return "win" if match.winner_id == team_id else "loss"


def calculate_head_to_head(team_a: Dict, team_b: Dict, matches: List[Dict], point_system: Dict) -> Dict:
    """Points and goals each side earned in the matches between the two teams"""
    result = {"team_a_points": 0, "team_b_points": 0, "team_a_goals": 0, "team_b_goals": 0, "matches": 0}
    a_id = team_a["tournament_team_id"]
    b_id = team_b["tournament_team_id"]
    for match in matches:
        if {match["team1_id"], match["team2_id"]} != {a_id, b_id}:
            continue
        result["matches"] += 1
        a_is_team1 = match["team1_id"] == a_id
        a_goals = match["team1_goals"] if a_is_team1 else match["team2_goals"]
        b_goals = match["team2_goals"] if a_is_team1 else match["team1_goals"]
        result["team_a_goals"] += a_goals
        result["team_b_goals"] += b_goals
        if match["is_draw"]:
            result["team_a_points"] += point_system["draw"]
            result["team_b_points"] += point_system["draw"]
        elif match["winner_team_id"] == a_id:
            result["team_a_points"] += point_system["win"]
            result["team_b_points"] += point_system["loss"]
        elif match["winner_team_id"] == b_id:
            result["team_b_points"] += point_system["win"]
            result["team_a_points"] += point_system["loss"]
    return result


def _level(row: Dict, other: Dict) -> bool:
    return (row["points"], row["goal_difference"], row["goals_for"]) == (
        other["points"],
        other["goal_difference"],
        other["goals_for"],
    )


def _default_order(rows: List[Dict], matches: List[Dict], point_system: Dict) -> List[Dict]:
    """
    Sort by points, goal difference, goals for, head to head and name.

    A team shares the previous team's position only when the two are level
    on every statistic and on their head to head result.
    """
    ordered = sorted(rows, key=lambda r: (-r["points"], -r["goal_difference"], -r["goals_for"], r["team_name"]))

    # Level pairs are swapped when the head to head favours the lower placed team
    changed = True
    while changed:
        changed = False
        for index in range(len(ordered) - 1):
            upper, lower = ordered[index], ordered[index + 1]
            if not _level(upper, lower):
                continue
            h2h = calculate_head_to_head(upper, lower, matches, point_system)
            if (h2h["team_b_points"], h2h["team_b_goals"]) > (h2h["team_a_points"], h2h["team_a_goals"]):
                ordered[index], ordered[index + 1] = lower, upper
                changed = True

    for index, row in enumerate(ordered):
        row["position"] = index + 1
        if index == 0:
            continue
        previous = ordered[index - 1]
        if not _level(row, previous):
            continue
        h2h = calculate_head_to_head(previous, row, matches, point_system)
        if h2h["team_a_points"] == h2h["team_b_points"] and h2h["team_a_goals"] == h2h["team_b_goals"]:
            row["position"] = previous["position"]
    return ordered


def _engine_order(rows: List[Dict], matches: List[Dict], sport_code: str, rules: List[Dict]) -> Optional[List[Dict]]:
    """Order rows with the configured tie-breaking rules; None when no rule changed anything"""
    engine_teams = [dict(row, team_id=row["tournament_team_id"], master_team_id=row["team_id"]) for row in rows]
    result = TieBreakingEngine(sport_code).calculate(engine_teams, matches, rules)
    if not result["tie_breaking_applied"]:
        return None

    if result["lotteries_required"]:
        logger.warning(f"Tie-breaking left groups for a lottery: {result['lotteries_required']}")

    ordered = []
    for team in result["teams"]:
        row = dict(team, team_id=team["master_team_id"])
        row.pop("master_team_id", None)
        row.pop("win_rate", None)
        ordered.append(row)
    return ordered


def calculate_block_standings(block: MatchBlock) -> List[Dict]:
    """
    Compute the league table of a block from its counted matches.

    Args:
        block: MatchBlock instance

    Returns:
        Standings rows ordered by position; teams that have not played yet
        are placed after every team with a result
    """
    tournament = block.tournament
    point_system = get_point_system(tournament)
    rule_periods = get_rule_periods(tournament, block.phase)

    rows = {entry.id: _team_row(entry) for entry in _block_teams(block)}
    match_rows = []

    for match in counted_matches(block):
        team1_goals, team2_goals = match_goals(match, tournament, rule_periods)
        match_rows.append(
            {
                "team1_id": match.team1_id,
                "team2_id": match.team2_id,
                "team1_goals": team1_goals,
                "team2_goals": team2_goals,
                "winner_team_id": match.winner_id,
                "is_draw": match.is_draw,
            }
        )

        for team_id, goals, opponent_goals in (
            (match.team1_id, team1_goals, team2_goals),
            (match.team2_id, team2_goals, team1_goals),
        ):
            row = rows.get(team_id)
            if row is None:
                continue
            outcome = _outcome(match, team_id, goals, opponent_goals)
            row["matches_played"] += 1
            row["goals_for"] += goals
            row["goals_against"] += opponent_goals
            if outcome == "draw":
                row["draws"] += 1
                row["points"] += point_system["draw"]
            elif outcome == "win":
                row["wins"] += 1
                row["points"] += point_system["win"]
            else:
                row["losses"] += 1
                row["points"] += point_system["loss"]

    for row in rows.values():
        row["goal_difference"] = row["goals_for"] - row["goals_against"]

    played = [row for row in rows.values() if row["matches_played"] > 0]
    not_played = sorted((row for row in rows.values() if row["matches_played"] == 0), key=lambda r: r["team_name"])

    ordered = None
    rule = tournament.get_rule(block.phase)
    if rule is not None and rule.tie_breaking_enabled and played:
        rules = parse_tie_breaking_rules(rule.tie_breaking_rules)
        if rules:
            ordered = _engine_order(played, match_rows, tournament.sport_code, rules)
    if ordered is None:
        ordered = _default_order(played, match_rows, point_system)

    last_position = max((row["position"] for row in ordered), default=0)
    for index, row in enumerate(not_played):
        row["position"] = last_position + index + 1

    return ordered + not_played


# ============================================================================
# BLOCK COMPLETION AND PROMOTION CHECKS
# ============================================================================


def check_block_complete(block: MatchBlock) -> bool:
    """A block is complete when it has matches with both teams and all are confirmed or cancelled"""
    matches = list(block.matches.filter(team1__isnull=False, team2__isnull=False))
    return bool(matches) and all(match.is_complete() for match in matches)


def resolve_template_sources(tournament: Tournament, template: MatchTemplate):
    """Team sources of a template with this tournament's overrides applied"""
    override = MatchOverride.objects.filter(tournament=tournament, match_code=template.match_code).first()
    team1_source = template.team1_source
    team2_source = template.team2_source
    if override is not None:
        team1_source = override.team1_source_override or team1_source
        team2_source = override.team2_source_override or team2_source
    return team1_source, team2_source


def get_required_promotion_positions(tournament: Tournament, block_name: str) -> List[int]:
    """
    Positions of a preliminary block that feed the final bracket.

    Returns:
        Sorted positions, [] for knockout preliminaries and [1, 2] when no
        final template references the block
    """
    if tournament.format.preliminary_format_type == "tournament":
        return []

    positions = set()
    for template in tournament.format.templates.filter(phase="final"):
        for source in resolve_template_sources(tournament, template):
            matched = BLOCK_POSITION_SOURCE.match(source or "")
            if matched and matched.group(1) == block_name:
                positions.add(int(matched.group(2)))

    return sorted(positions) if positions else list(DEFAULT_PROMOTION_POSITIONS)


def analyze_promotion_eligibility(rankings: List[Dict], required_positions: List[int]) -> Dict:
    """
    Find ties at the positions that decide promotion.

    Returns:
        Dict with has_ties and tied_positions ([{"position", "team_ids", "team_names"}])
    """
    tied_positions = []
    for position in required_positions:
        holders = [row for row in rankings if row.get("position") == position]
        if len(holders) > 1:
            tied_positions.append(
                {
                    "position": position,
                    "team_ids": [row.get("tournament_team_id") for row in holders],
                    "team_names": [row.get("team_name") for row in holders],
                }
            )
    return {"has_ties": bool(tied_positions), "tied_positions": tied_positions}


def check_block_completion_and_promote(block: MatchBlock) -> bool:
    """
    Promote teams into the final once the block is decided.

    Returns:
        True when promotion was attempted
    """
    if not check_block_complete(block):
        return False

    tournament = block.tournament
    rankings = block.team_rankings or []
    required_positions = get_required_promotion_positions(tournament, block.block_name)
    eligibility = analyze_promotion_eligibility(rankings, required_positions)
    if eligibility["has_ties"]:
        for tie in eligibility["tied_positions"]:
            logger.warning(
                f"Manual ranking needed: tournament {tournament.id} block {block.block_name} "
                f"position {tie['position']} shared by {', '.join(tie['team_names'])}"
            )
        return False

    from .promotion import promote_teams_to_final

    promote_teams_to_final(tournament)
    return True


def save_block_rankings(block: MatchBlock, rankings: List[Dict]):
    block.team_rankings = rankings
    block.save(update_fields=["team_rankings", "updated_at"])


def update_block_rankings_on_match_confirm(block: MatchBlock, match: Optional[Match] = None):
    """
    Refresh stored rankings after a result changes.

    Knockout phases record template positions; league blocks recompute the
    table and try to promote. Promotion failures are logged and never undo
    the result.
    """
    tournament = block.tournament
    if tournament.format.phase_format_type(block.phase) == "tournament":
        if match is not None:
            handle_template_positions(match)
        else:
            target = get_ranking_block(tournament, block.phase) or block
            save_block_rankings(target, calculate_template_based_rankings(tournament, block.phase))
        return

    rankings = calculate_block_standings(block)
    save_block_rankings(block, rankings)
    logger.info(f"Updated rankings for block {block.id} ({block.block_name}): {len(rankings)} teams")

    if block.phase != "preliminary":
        return
    try:
        check_block_completion_and_promote(block)
    except Exception:
        logger.exception(f"Promotion check failed for block {block.id}")


def clear_block_rankings_if_incomplete(block: MatchBlock) -> bool:
    """Drop stored rankings once a block has no confirmed match left"""
    if block.matches.filter(is_confirmed=True).exists():
        return False
    if block.team_rankings:
        save_block_rankings(block, None)
        logger.info(f"Cleared rankings for block {block.id}")
    return True


def recalculate_all_rankings(tournament: Tournament) -> int:
    """Recompute every block of the tournament; returns the number of blocks updated"""
    updated = 0
    for block in tournament.blocks.all():
        if tournament.format.phase_format_type(block.phase) == "tournament":
            if is_unified_block(block) or get_ranking_block(tournament, block.phase) is None:
                save_block_rankings(block, calculate_template_based_rankings(tournament, block.phase))
                updated += 1
            continue
        if clear_block_rankings_if_incomplete(block):
            continue
        save_block_rankings(block, calculate_block_standings(block))
        updated += 1
    logger.info(f"Recalculated rankings for {updated} block(s) of tournament {tournament.id}")
    return updated


# ============================================================================
# KNOCKOUT (TEMPLATE BASED) RANKINGS
# ============================================================================


def get_ranking_block(tournament: Tournament, phase: str) -> Optional[MatchBlock]:
    """The block holding rankings of a knockout phase: its unified block if any"""
    return tournament.blocks.filter(phase=phase, block_name=unified_block_name(phase)).first()


def _phase_templates(tournament: Tournament, phase: str) -> Dict[str, MatchTemplate]:
    return {t.match_code: t for t in tournament.format.templates.filter(phase=phase)}


def _knockout_position(entry_id: int, matches: List[Match], templates: Dict[str, MatchTemplate]) -> int:
    """Best place a team's confirmed knockout matches award it; 0 while undecided"""
    positions = []
    for match in matches:
        template = templates.get(match.match_code)
        if not match.is_confirmed or template is None or match.winner_id is None:
            continue
        if match.winner_id == entry_id:
            if template.winner_position:
                positions.append(template.winner_position)
        elif template.loser_position_start:
            positions.append(template.loser_position_start)
    return min(positions) if positions else UNDECIDED_POSITION


def calculate_template_based_rankings(tournament: Tournament, phase: str = "final") -> List[Dict]:
    """
    Rank a knockout phase from the positions its templates award.

    Returns:
        Rows (team info and position) sorted by position; undecided teams
        have position 0 and come last
    """
    templates = _phase_templates(tournament, phase)
    matches = list(
        Match.objects.filter(block__tournament=tournament, block__phase=phase).select_related("team1", "team2")
    )

    entries = {}
    team_matches: Dict[int, List[Match]] = {}
    for match in matches:
        for entry in (match.team1, match.team2):
            if entry is None:
                continue
            entries[entry.id] = entry
            team_matches.setdefault(entry.id, []).append(match)

    rankings = []
    for entry_id, entry in entries.items():
        row = {
            "tournament_team_id": entry.id,
            "team_id": entry.team_id,
            "team_name": entry.team_name,
            "team_omission": entry.team_omission,
            "position": _knockout_position(entry_id, team_matches[entry_id], templates),
        }
        rankings.append(row)

    rankings.sort(key=lambda r: (r["position"] == UNDECIDED_POSITION, r["position"], r["team_name"]))
    return rankings


def _set_position(rankings: List[Dict], entry: TournamentTeam, position: int) -> bool:
    existing = next((row for row in rankings if row.get("tournament_team_id") == entry.id), None)
    if existing is not None and (existing.get("position") or 0) > 0:
        return False
    if existing is not None:
        rankings.remove(existing)
    rankings.append(
        {
            "tournament_team_id": entry.id,
            "team_id": entry.team_id,
            "team_name": entry.team_name,
            "team_omission": entry.team_omission,
            "position": position,
        }
    )
    return True


def handle_template_positions(match: Match) -> bool:
    """
    Record the places a knockout match awards to its winner and loser.

    Positions already set (including manual rankings) are never overwritten.

    Returns:
        True when the stored rankings changed
    """
    if match.winner_id is None:
        return False

    tournament = match.tournament
    template = tournament.format.templates.filter(phase=match.phase, match_code=match.match_code).first()
    if template is None:
        return False

    block = get_ranking_block(tournament, match.phase) or match.block
    rankings = list(block.team_rankings or [])
    loser = match.team2 if match.winner_id == match.team1_id else match.team1

    changed = False
    if loser is not None and template.loser_position_start:
        changed |= _set_position(rankings, loser, template.loser_position_start)
    if template.winner_position:
        changed |= _set_position(rankings, match.winner, template.winner_position)

    if changed:
        rankings.sort(key=lambda r: (r["position"] == UNDECIDED_POSITION, r["position"]))
        save_block_rankings(block, rankings)
        logger.info(f"Recorded knockout positions from {match.match_code} in block {block.id}")
    return changed


def has_manual_rankings(tournament: Tournament) -> bool:
    """True when a final block already holds a decided position"""
    for block in tournament.blocks.filter(phase="final").exclude(team_rankings__isnull=True):
        if any((row.get("position") or 0) > 0 for row in block.team_rankings or []):
            return True
    return False


# ============================================================================
# TOURNAMENT STANDINGS
# ============================================================================


def get_tournament_standings(tournament: Tournament) -> List[Dict]:
    """
    Standings of every block shown for the tournament.

    Knockout phases show their unified block, league phases their group
    blocks. Stored rankings are used as is; missing ones are computed.
    """
    result = []
    for phase in ("preliminary", "final"):
        blocks = list(tournament.blocks.filter(phase=phase))
        if not blocks:
            continue

        knockout = tournament.format.phase_format_type(phase) == "tournament"
        unified = [b for b in blocks if is_unified_block(b)]
        if knockout:
            blocks = unified or blocks[:1]
        else:
            blocks = [b for b in blocks if not is_unified_block(b)] or unified

        for block in blocks:
            rankings = block.team_rankings
            if not rankings:
                if knockout:
                    rankings = calculate_template_based_rankings(tournament, phase)
                else:
                    rankings = calculate_block_standings(block)
            result.append(
                {
                    "match_block_id": block.id,
                    "phase": block.phase,
                    "display_round_name": block.display_round_name,
                    "block_name": block.block_name,
                    "teams": rankings,
                    "remarks": block.remarks,
                    "generated_at": timezone.now().isoformat(),
                }
            )
    return result

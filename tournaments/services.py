"""
Service layer for match results, draws and manual rankings
Handles the write paths that change results and keep rankings in step
"""
import logging
import re
from typing import Dict, List, Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from .models import Match, MatchBlock, Tournament, TournamentTeam
from .progression import process_match_progression
from .promotion import promote_teams_to_final
from .rules import get_rule_periods
from .scoring import determine_pk_winner, format_score_array, parse_score_array, regular_goals
from .standings import (
    clear_block_rankings_if_incomplete,
    get_ranking_block,
    is_unified_block,
    update_block_rankings_on_match_confirm,
)
from .status import all_matches_completed

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"([A-Za-z]+)(\d+)")
CANCELLATION_TYPES = ("no_show_both", "no_show_team1", "no_show_team2", "no_count")
BYE_REMARK = "Walkover by bye (automatic)"


def sync_tournament_completion(tournament: Tournament) -> str:
    """Mark the tournament completed when every match is done, reopen it otherwise"""
    has_matches = Match.objects.filter(block__tournament=tournament, team1__isnull=False, team2__isnull=False).exists()
    if has_matches and all_matches_completed(tournament):
        if tournament.status != "completed":
            tournament.status = "completed"
            tournament.save(update_fields=["status", "updated_at"])
            logger.info(f"Tournament {tournament.id} completed")
    elif tournament.status == "completed":
        tournament.status = "ongoing"
        tournament.save(update_fields=["status", "updated_at"])
        logger.info(f"Tournament {tournament.id} reopened")
    return tournament.status


class MatchResultService:
    """Score entry, confirmation and cancellation of matches"""

    @staticmethod
    def record_scores(
        match: Match,
        team1_scores,
        team2_scores,
        winner_id: Optional[int] = None,
        remarks: Optional[str] = None,
    ) -> Match:
        """
        Store period scores and the outcome, leaving the result pending confirmation.

        The winner is the side with more goals, leaving soccer shoot-outs out.
        Level scores fall back to the shoot-out, then to a draw. An explicit
        winner_id overrides.
        """
        if match.is_confirmed:
            raise ValueError("Match result is already confirmed")
        if match.match_status == "cancelled":
            raise ValueError("Match is cancelled")
        if not match.has_both_teams:
            raise ValueError("Both teams must be set before entering scores")

        tournament = match.tournament
        rule_periods = get_rule_periods(tournament, match.phase)
        team1_array = parse_score_array(team1_scores)
        team2_array = parse_score_array(team2_scores)
        team1_total = regular_goals(team1_array, tournament.sport_code, rule_periods)
        team2_total = regular_goals(team2_array, tournament.sport_code, rule_periods)

        if winner_id is not None:
            if winner_id not in (match.team1_id, match.team2_id):
                raise ValueError("Winner must be one of the match teams")
            winner = winner_id
        elif team1_total != team2_total:
            winner = match.team1_id if team1_total > team2_total else match.team2_id
        else:
            pk = determine_pk_winner(team1_array, team2_array, rule_periods)
            winner = {1: match.team1_id, 2: match.team2_id}.get(pk["pk_winner"])

        match.team1_scores = format_score_array(team1_array)
        match.team2_scores = format_score_array(team2_array)
        match.period_count = max(len(team1_array), len(team2_array))
        match.winner_id = winner
        match.is_draw = winner is None
        match.match_status = "completed"
        match.result_status = "pending"
        if remarks is not None:
            match.remarks = remarks
        match.save()
        logger.info(f"Scores recorded for {match.match_code}: {match.team1_scores} - {match.team2_scores}")
        return match

    @staticmethod
    def _after_result_change(match: Match, progress: bool = True):
        """Rankings, progression and tournament status; failures never undo the result"""
        try:
            update_block_rankings_on_match_confirm(match.block, match)
            if progress:
                process_match_progression(match)
        except Exception:
            logger.exception(f"Post-result processing failed for match {match.id} ({match.match_code})")

        try:
            sync_tournament_completion(match.tournament)
        except Exception:
            logger.exception(f"Tournament status update failed after match {match.id}")

    @staticmethod
    def confirm_match(match: Match, confirmed_by: str = "") -> Match:
        if match.is_confirmed:
            raise ValueError("Match result is already confirmed")
        if match.match_status == "cancelled":
            raise ValueError("Cancelled matches cannot be confirmed")
        if not match.has_both_teams:
            raise ValueError("Both teams must be set before confirming")

        with transaction.atomic():
            match.is_confirmed = True
            match.confirmed_at = timezone.now()
            match.confirmed_by = confirmed_by
            match.result_status = "confirmed"
            match.match_status = "completed"
            match.save()

        logger.info(f"Match {match.match_code} confirmed by {confirmed_by or 'system'}")
        MatchResultService._after_result_change(match)
        return match

    @staticmethod
    def unconfirm_match(match: Match) -> Match:
        if not match.is_confirmed:
            raise ValueError("Match result is not confirmed")
        if match.match_status == "cancelled":
            raise ValueError("Cancelled matches must be uncancelled instead")

        match.is_confirmed = False
        match.confirmed_at = None
        match.confirmed_by = ""
        match.result_status = "pending"
        match.match_status = "completed"
        match.save()
        logger.info(f"Match {match.match_code} unconfirmed")

        MatchResultService._refresh_block(match.block)
        return match

    @staticmethod
    def _refresh_block(block: MatchBlock):
        try:
            if not clear_block_rankings_if_incomplete(block):
                update_block_rankings_on_match_confirm(block)
        except Exception:
            logger.exception(f"Ranking refresh failed for block {block.id}")
        try:
            sync_tournament_completion(block.tournament)
        except Exception:
            logger.exception(f"Tournament status update failed for block {block.id}")

    @staticmethod
    def cancellation_result(match: Match, cancellation_type: str) -> Dict:
        """Scores and winner a cancellation records (no_count records nothing)"""
        tournament = match.tournament
        winner_goals = str(tournament.walkover_winner_goals)
        loser_goals = str(tournament.walkover_loser_goals)
        if cancellation_type == "no_show_both":
            return {"team1_scores": "0", "team2_scores": "0", "winner_id": None, "is_draw": True}
        if cancellation_type == "no_show_team1":
            return {
                "team1_scores": loser_goals,
                "team2_scores": winner_goals,
                "winner_id": match.team2_id,
                "is_draw": False,
            }
        if cancellation_type == "no_show_team2":
            return {
                "team1_scores": winner_goals,
                "team2_scores": loser_goals,
                "winner_id": match.team1_id,
                "is_draw": False,
            }
        raise ValueError(f"Unsupported cancellation type: {cancellation_type}")

    @staticmethod
    def cancel_match(match: Match, cancellation_type: str, cancelled_by: str = "") -> Match:
        """
        Cancel a match. Absences are recorded as confirmed walkovers that count
        in standings; no_count cancels without a result.
        """
        if cancellation_type not in CANCELLATION_TYPES:
            raise ValueError("Invalid cancellation type")
        if match.match_status == "cancelled":
            raise ValueError("Match is already cancelled")
        if match.is_confirmed:
            raise ValueError("Match is confirmed; unconfirm it before cancelling")

        match.match_status = "cancelled"
        match.cancellation_type = cancellation_type
        if cancellation_type != "no_count":
            result = MatchResultService.cancellation_result(match, cancellation_type)
            match.team1_scores = result["team1_scores"]
            match.team2_scores = result["team2_scores"]
            match.winner_id = result["winner_id"]
            match.is_draw = result["is_draw"]
            match.is_walkover = True
            match.is_confirmed = True
            match.confirmed_at = timezone.now()
            match.confirmed_by = cancelled_by
            match.result_status = "confirmed"
            match.remarks = "Match cancelled"
        match.save()
        logger.info(f"Match {match.match_code} cancelled ({cancellation_type})")

        if cancellation_type != "no_count":
            MatchResultService._after_result_change(match)
        else:
            try:
                sync_tournament_completion(match.tournament)
            except Exception:
                logger.exception(f"Tournament status update failed after cancelling match {match.id}")
        return match

    @staticmethod
    def uncancel_match(match: Match) -> Dict:
        if match.match_status != "cancelled":
            raise ValueError("Match is not cancelled")

        previous_type = match.cancellation_type
        was_recorded = match.is_confirmed
        match.match_status = "scheduled"
        match.cancellation_type = None
        if was_recorded:
            match.team1_scores = None
            match.team2_scores = None
            match.winner = None
            match.is_draw = False
            match.is_walkover = False
            match.is_confirmed = False
            match.confirmed_at = None
            match.confirmed_by = ""
            match.result_status = "none"
        match.save()
        logger.info(f"Match {match.match_code} uncancelled (was {previous_type})")

        MatchResultService._refresh_block(match.block)
        return {"match": match, "previous_cancellation_type": previous_type}


class DrawService:
    """Block assignment of teams and filling preliminary match slots"""

    @staticmethod
    def get_draw(tournament: Tournament) -> List[Dict]:
        blocks = {}
        for entry in tournament.teams.exclude(assigned_block__isnull=True).exclude(assigned_block=""):
            blocks.setdefault(entry.assigned_block, []).append(
                {
                    "tournament_team_id": entry.id,
                    "team_name": entry.team_name,
                    "team_omission": entry.team_omission,
                    "block_position": entry.block_position,
                }
            )
        return [
            {"block_name": name, "teams": sorted(teams, key=lambda t: t["block_position"] or 0)}
            for name, teams in sorted(blocks.items())
        ]

    @staticmethod
    def _reset_byes(tournament: Tournament) -> int:
        byes = Match.objects.filter(block__tournament=tournament, is_walkover=True, is_confirmed=True).filter(
            Q(team1__isnull=True) | Q(team2__isnull=True)
        )
        return byes.update(
            is_confirmed=False,
            is_walkover=False,
            winner=None,
            team1_scores=None,
            team2_scores=None,
            result_status="none",
            confirmed_at=None,
        )

    @staticmethod
    def save_draw(tournament: Tournament, blocks: List[Dict], matches: Optional[List[Dict]] = None) -> Dict:
        """
        Store block assignments and fill match slots.

        Args:
            blocks: [{"block_name": "A", "teams": [{"tournament_team_id", "block_position"}]}]
            matches: optional explicit slots [{"match_id", "team1_tournament_team_id",
                "team2_tournament_team_id"}]

        Returns:
            Dict with assigned_teams, filled_matches and auto_confirmed counts
        """
        for block in blocks:
            used = set()
            for team in block.get("teams", []):
                position = team.get("block_position")
                if position in used:
                    raise ValueError(f"Block {block['block_name']} position {position} is used by more than one team")
                used.add(position)

        entries = {entry.id: entry for entry in tournament.teams.all()}
        summary = {"assigned_teams": 0, "filled_matches": 0, "auto_confirmed": 0}

        with transaction.atomic():
            DrawService._reset_byes(tournament)
            tournament.teams.update(assigned_block=None, block_position=None)

            position_map = {}
            for block in blocks:
                for index, team in enumerate(block.get("teams", [])):
                    entry = entries.get(team.get("tournament_team_id"))
                    if entry is None:
                        raise ValueError(f"Team {team.get('tournament_team_id')} is not entered in this tournament")
                    position = team.get("block_position") or index + 1
                    TournamentTeam.objects.filter(pk=entry.pk).update(
                        assigned_block=block["block_name"], block_position=position
                    )
                    position_map[(block["block_name"], position)] = entry
                    summary["assigned_teams"] += 1

            tournament_matches = Match.objects.filter(block__tournament=tournament)
            for slot in matches or []:
                match = tournament_matches.filter(pk=slot.get("match_id")).first()
                if match is None:
                    continue
                match.team1 = entries.get(slot.get("team1_tournament_team_id"))
                match.team2 = entries.get(slot.get("team2_tournament_team_id"))
                match.save(update_fields=["team1", "team2", "updated_at"])
                summary["filled_matches"] += 1

            for match in tournament_matches.filter(block__phase="preliminary").select_related("block"):
                team1 = DrawService._entry_for_placeholder(match.block, match.team1_display_name, position_map)
                team2 = DrawService._entry_for_placeholder(match.block, match.team2_display_name, position_map)
                if team1 is not None and team2 is not None:
                    match.team1 = team1
                    match.team2 = team2
                    match.save(update_fields=["team1", "team2", "updated_at"])
                    summary["filled_matches"] += 1

        summary["auto_confirmed"] = DrawService.auto_confirm_byes(tournament)
        logger.info(f"Draw saved for tournament {tournament.id}: {summary}")
        return summary

    @staticmethod
    def _entry_for_placeholder(block: MatchBlock, display_name: str, position_map: Dict):
        matched = PLACEHOLDER_PATTERN.match(display_name or "")
        if not matched:
            return None
        block_name = matched.group(1) if is_unified_block(block) else block.block_name
        return position_map.get((block_name, int(matched.group(2))))

    @staticmethod
    def auto_confirm_byes(tournament: Tournament) -> int:
        """Confirm bye matches holding exactly one team as walkovers and advance the team"""
        bye_codes = set(tournament.format.templates.filter(is_bye_match=True).values_list("match_code", flat=True))
        candidates = list(
            Match.objects.filter(block__tournament=tournament, is_confirmed=False).select_related(
                "block__tournament", "team1", "team2"
            )
        )
        confirmed = 0
        for match in candidates:
            if (match.team1_id is None) == (match.team2_id is None):
                continue
            if match.match_code not in bye_codes and match.phase != "preliminary":
                continue
            match.winner = match.team1 or match.team2
            match.team1_scores = "0"
            match.team2_scores = "0"
            match.is_draw = False
            match.is_walkover = True
            match.is_confirmed = True
            match.confirmed_at = timezone.now()
            match.result_status = "confirmed"
            match.match_status = "completed"
            match.remarks = BYE_REMARK
            match.save()
            confirmed += 1
            try:
                process_match_progression(match)
            except Exception:
                logger.exception(f"Progression failed for bye {match.match_code}")
        return confirmed


class ManualRankingService:
    """Administrator overrides of stored block rankings"""

    @staticmethod
    def get_rankings(tournament: Tournament) -> List[Dict]:
        return [
            {
                "match_block_id": block.id,
                "phase": block.phase,
                "display_round_name": block.display_round_name,
                "block_name": block.block_name,
                "team_rankings": block.team_rankings or [],
                "remarks": block.remarks,
            }
            for block in tournament.blocks.filter(phase="preliminary").order_by("block_order", "id")
        ]

    @staticmethod
    def _validate_positions(rankings: List[Dict], label: str):
        count = len(rankings)
        invalid = sorted(
            row.get("position")
            for row in rankings
            if not isinstance(row.get("position"), int) or not 1 <= row.get("position") <= count
        )
        if invalid:
            raise ValueError(f"Invalid positions in {label}: {', '.join(str(p) for p in invalid)}")

    @staticmethod
    def update_rankings(tournament: Tournament, blocks: List[Dict], final_tournament: Optional[Dict] = None) -> int:
        """
        Replace stored rankings and re-run promotion.

        Args:
            blocks: [{"match_block_id", "team_rankings", "remarks"}]
            final_tournament: optional {"team_rankings", "remarks"} for the final block

        Returns:
            Number of blocks updated
        """
        updated = 0
        with transaction.atomic():
            for data in blocks:
                rankings = data.get("team_rankings") or []
                block = tournament.blocks.filter(pk=data.get("match_block_id")).first()
                if block is None:
                    raise ValueError(f"Block {data.get('match_block_id')} not found")
                ManualRankingService._validate_positions(rankings, f"block {block.block_name}")
                block.team_rankings = sorted(rankings, key=lambda r: r["position"])
                block.remarks = data.get("remarks") or ""
                block.save(update_fields=["team_rankings", "remarks", "updated_at"])
                updated += 1

            if final_tournament:
                final_block = get_ranking_block(tournament, "final") or tournament.blocks.filter(phase="final").first()
                if final_block is not None:
                    rankings = final_tournament.get("team_rankings") or []
                    ManualRankingService._validate_positions(rankings, "the final bracket")
                    final_block.team_rankings = sorted(rankings, key=lambda r: r["position"])
                    final_block.remarks = final_tournament.get("remarks") or ""
                    final_block.save(update_fields=["team_rankings", "remarks", "updated_at"])
                    updated += 1

        try:
            promote_teams_to_final(tournament)
        except Exception:
            logger.exception(f"Promotion after manual ranking failed for tournament {tournament.id}")

        logger.info(f"Manual rankings saved for {updated} block(s) of tournament {tournament.id}")
        return updated

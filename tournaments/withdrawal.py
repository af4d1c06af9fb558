"""
Team withdrawal: request, approval and rejection, and the match and block
adjustments that follow an approval
"""
import logging
from typing import Dict

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from .models import Match, TournamentTeam
from .standings import recalculate_all_rankings

logger = logging.getLogger(__name__)

WALKOVER_REMARK = "Walkover after withdrawal (automatic)"
CANCELLED_REMARK = "Cancelled after withdrawal (needs manual review)"


def _append_remark(existing: str, note: str) -> str:
    return f"{existing} | {note}" if existing else note


def _team_matches(entry: TournamentTeam):
    return Match.objects.filter(block__tournament=entry.tournament).filter(Q(team1=entry) | Q(team2=entry))


def request_withdrawal(entry: TournamentTeam, reason: str) -> TournamentTeam:
    if entry.withdrawal_status in ("withdrawal_requested", "withdrawal_approved"):
        raise ValueError("A withdrawal has already been requested for this team")
    if not reason or not reason.strip():
        raise ValueError("A withdrawal reason is required")

    entry.withdrawal_status = "withdrawal_requested"
    entry.withdrawal_reason = reason.strip()
    entry.withdrawal_requested_at = timezone.now()
    entry.save(update_fields=["withdrawal_status", "withdrawal_reason", "withdrawal_requested_at", "updated_at"])
    logger.info(f"Withdrawal requested for {entry.team_name} in tournament {entry.tournament_id}")
    return entry


def reject_withdrawal(entry: TournamentTeam, processed_by: str, comment: str = "") -> TournamentTeam:
    if entry.withdrawal_status != "withdrawal_requested":
        raise ValueError("There is no pending withdrawal request for this team")

    entry.withdrawal_status = "withdrawal_rejected"
    entry.withdrawal_processed_at = timezone.now()
    entry.withdrawal_processed_by = processed_by
    entry.withdrawal_admin_comment = comment
    entry.save()
    logger.info(f"Withdrawal of {entry.team_name} rejected by {processed_by}")
    return entry


def approve_withdrawal(entry: TournamentTeam, processed_by: str, comment: str = "") -> Dict:
    """Approve a pending request and run the follow-up processing"""
    if entry.withdrawal_status != "withdrawal_requested":
        raise ValueError("There is no pending withdrawal request for this team")

    entry.withdrawal_status = "withdrawal_approved"
    entry.withdrawal_processed_at = timezone.now()
    entry.withdrawal_processed_by = processed_by
    entry.withdrawal_admin_comment = comment
    entry.save()
    return process_withdrawal_approval(entry, processed_by)


def _walkover_for(match: Match, entry: TournamentTeam):
    tournament = match.tournament
    withdrawn_is_team1 = match.team1_id == entry.id
    winner_goals = str(tournament.walkover_winner_goals)
    loser_goals = str(tournament.walkover_loser_goals)

    match.team1_scores = loser_goals if withdrawn_is_team1 else winner_goals
    match.team2_scores = winner_goals if withdrawn_is_team1 else loser_goals
    match.winner_id = match.team2_id if withdrawn_is_team1 else match.team1_id
    match.is_draw = False
    match.is_walkover = True
    match.match_status = "completed"
    match.result_status = "pending"
    match.remarks = _append_remark(match.remarks, WALKOVER_REMARK)
    match.save()


def process_withdrawal_approval(entry: TournamentTeam, processed_by: str = "") -> Dict:
    """
    Adjust matches, rankings and block positions after a withdrawal is approved.

    Scheduled matches with an opponent become walkovers for the opponent
    (left unconfirmed for review), ongoing matches are cancelled and
    confirmed matches are left alone.

    Returns:
        Dict with walkovers, cancelled, skipped and shifted_positions counts
    """
    summary = {"walkovers": 0, "cancelled": 0, "skipped": 0, "shifted_positions": 0}

    try:
        with transaction.atomic():
            for match in _team_matches(entry).select_related("block__tournament"):
                if match.is_confirmed:
                    summary["skipped"] += 1
                    continue
                if match.match_status == "scheduled":
                    if match.has_both_teams:
                        _walkover_for(match, entry)
                        summary["walkovers"] += 1
                    else:
                        summary["skipped"] += 1
                elif match.match_status == "ongoing":
                    match.match_status = "cancelled"
                    match.remarks = _append_remark(match.remarks, CANCELLED_REMARK)
                    match.save(update_fields=["match_status", "remarks", "updated_at"])
                    summary["cancelled"] += 1
                else:
                    summary["skipped"] += 1

            if entry.assigned_block and entry.block_position:
                summary["shifted_positions"] = (
                    TournamentTeam.objects.filter(
                        tournament=entry.tournament,
                        assigned_block=entry.assigned_block,
                        block_position__gt=entry.block_position,
                        withdrawal_status="active",
                    )
                    .exclude(pk=entry.pk)
                    .update(block_position=F("block_position") - 1)
                )

        recalculate_all_rankings(entry.tournament)
    except Exception as e:
        logger.error(f"Withdrawal processing failed for {entry.team_name}: {str(e)}")
        entry.remarks = _append_remark(entry.remarks, f"Error: {str(e)} ({timezone.now().isoformat()})")
        entry.save(update_fields=["remarks", "updated_at"])
        raise

    entry.remarks = _append_remark(entry.remarks, f"Processed: {timezone.now().isoformat()}")
    entry.save(update_fields=["remarks", "updated_at"])
    logger.info(f"Withdrawal of {entry.team_name} processed by {processed_by or 'system'}: {summary}")
    return summary


def analyze_withdrawal_impact(entry: TournamentTeam) -> Dict:
    matches = _team_matches(entry)
    affected = matches.count()
    return {
        "affected_matches": affected,
        "block_adjustment": bool(entry.assigned_block),
        "ranking_update": affected > 0,
        "manual_review_required": matches.filter(is_confirmed=True).exists(),
    }

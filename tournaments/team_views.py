import logging

from django.db import IntegrityError, transaction

from rest_framework import generics, permissions, status
from rest_framework.response import Response

from accounts.models import Team
from accounts.permissions import IsAdminUser

from .models import Tournament, TournamentTeam
from .serializers import (
    TournamentTeamRegistrationSerializer,
    TournamentTeamSerializer,
    WithdrawalProcessSerializer,
    WithdrawalRequestSerializer,
)
from .status import calculate_tournament_status
from .views import visible_tournaments
from .withdrawal import analyze_withdrawal_impact, approve_withdrawal, reject_withdrawal, request_withdrawal

logger = logging.getLogger(__name__)


def _get_entry(pk, entry_id):
    try:
        return TournamentTeam.objects.select_related("tournament", "team").get(pk=entry_id, tournament_id=pk)
    except TournamentTeam.DoesNotExist:
        return None


def _owns_entry(user, entry):
    return user.is_tournament_admin or entry.team.user_id == user.id


# ============= Entries =============


class TournamentTeamListView(generics.ListAPIView):
    """
    Teams entered in a tournament
    GET /api/tournaments/<id>/teams/?block=<block_name>&withdrawal_status=<status>
    """

    serializer_class = TournamentTeamSerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None

    def list(self, request, *args, **kwargs):
        if not visible_tournaments(request).filter(pk=self.kwargs["pk"]).exists():
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)
        return super().list(request, *args, **kwargs)

    def get_queryset(self):
        queryset = TournamentTeam.objects.filter(tournament_id=self.kwargs["pk"]).prefetch_related("players__player")
        block = self.request.query_params.get("block")
        withdrawal_status = self.request.query_params.get("withdrawal_status")
        if block:
            queryset = queryset.filter(assigned_block=block)
        if withdrawal_status:
            queryset = queryset.filter(withdrawal_status=withdrawal_status)
        return queryset


class TournamentTeamRegisterView(generics.GenericAPIView):
    """
    Enter a team with its players
    POST /api/tournaments/<id>/teams/register/
    Team accounts enter their own team during recruitment; admins pass team_id
    """

    serializer_class = TournamentTeamRegistrationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        try:
            tournament = Tournament.objects.get(pk=pk)
        except Tournament.DoesNotExist:
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)

        if request.user.is_tournament_admin:
            try:
                team = Team.objects.get(pk=request.data.get("team_id"), is_active=True)
            except (Team.DoesNotExist, ValueError, TypeError):
                return Response({"error": "Team not found"}, status=status.HTTP_404_NOT_FOUND)
        else:
            team = getattr(request.user, "team", None)
            if team is None:
                return Response({"error": "Only team accounts can register"}, status=status.HTTP_403_FORBIDDEN)
            if calculate_tournament_status(tournament, check_matches=False) != "recruiting":
                return Response({"error": "Registration is not open"}, status=status.HTTP_400_BAD_REQUEST)

        if tournament.teams.filter(team=team).exclude(participation_status="cancelled").exists():
            return Response({"error": "This team is already registered"}, status=status.HTTP_400_BAD_REQUEST)

        serializer = self.get_serializer(data=request.data, context={"team": team, "tournament": tournament})
        serializer.is_valid(raise_exception=True)

        try:
            with transaction.atomic():
                entry = serializer.save()
        except IntegrityError:
            return Response({"error": "This team name is already entered"}, status=status.HTTP_400_BAD_REQUEST)

        logger.info(f"Team {team.id} entered tournament {tournament.id} as {entry.participation_status}")
        return Response(
            {"message": "Team registered successfully!", "entry": TournamentTeamSerializer(entry).data},
            status=status.HTTP_201_CREATED,
        )


class TournamentTeamDetailView(generics.GenericAPIView):
    """
    Entry details and cancellation before the draw
    GET/DELETE /api/tournaments/<id>/teams/<entry_id>/
    """

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk, entry_id):
        entry = _get_entry(pk, entry_id)
        if entry is None or not _owns_entry(request.user, entry):
            return Response({"error": "Entry not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(TournamentTeamSerializer(entry).data)

    def delete(self, request, pk, entry_id):
        entry = _get_entry(pk, entry_id)
        if entry is None or not _owns_entry(request.user, entry):
            return Response({"error": "Entry not found"}, status=status.HTTP_404_NOT_FOUND)
        if entry.assigned_block or entry.matches_as_team1.exists() or entry.matches_as_team2.exists():
            return Response(
                {"error": "Teams already placed in the draw must withdraw instead"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        entry.delete()
        logger.info(f"Entry {entry_id} of tournament {pk} removed by {request.user.email}")
        return Response({"message": "Entry cancelled"}, status=status.HTTP_200_OK)


# ============= Withdrawals =============


class WithdrawalListView(generics.ListAPIView):
    """
    Pending and processed withdrawals of a tournament
    GET /api/tournaments/<id>/withdrawals/
    """

    serializer_class = TournamentTeamSerializer
    permission_classes = [IsAdminUser]
    pagination_class = None

    def get_queryset(self):
        return (
            TournamentTeam.objects.filter(tournament_id=self.kwargs["pk"])
            .exclude(withdrawal_status="active")
            .order_by("-withdrawal_requested_at")
        )


class WithdrawalView(generics.GenericAPIView):
    """
    Request (team) or process (admin) a withdrawal
    POST /api/tournaments/<id>/teams/<entry_id>/withdrawal/ {"withdrawal_reason": "..."}
    PUT /api/tournaments/<id>/teams/<entry_id>/withdrawal/ {"action": "approve" | "reject", "admin_comment": ""}
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk, entry_id):
        entry = _get_entry(pk, entry_id)
        if entry is None or not _owns_entry(request.user, entry):
            return Response({"error": "Entry not found"}, status=status.HTTP_404_NOT_FOUND)

        serializer = WithdrawalRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            request_withdrawal(entry, serializer.validated_data["withdrawal_reason"])
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({"message": "Withdrawal requested", "entry": TournamentTeamSerializer(entry).data})

    def put(self, request, pk, entry_id):
        if not request.user.is_tournament_admin:
            return Response({"error": "Only administrators can process withdrawals"}, status=status.HTTP_403_FORBIDDEN)

        entry = _get_entry(pk, entry_id)
        if entry is None:
            return Response({"error": "Entry not found"}, status=status.HTTP_404_NOT_FOUND)

        serializer = WithdrawalProcessSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        action = serializer.validated_data["action"]
        comment = serializer.validated_data["admin_comment"]

        try:
            if action == "approve":
                summary = approve_withdrawal(entry, request.user.email, comment)
            else:
                reject_withdrawal(entry, request.user.email, comment)
                summary = None
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        entry.refresh_from_db()
        return Response(
            {
                "message": f"Withdrawal {'approved' if action == 'approve' else 'rejected'}",
                "entry": TournamentTeamSerializer(entry).data,
                "summary": summary,
            }
        )


class WithdrawalImpactView(generics.GenericAPIView):
    """
    What approving a withdrawal would change
    GET /api/tournaments/<id>/teams/<entry_id>/withdrawal/impact/
    """

    permission_classes = [IsAdminUser]

    def get(self, request, pk, entry_id):
        entry = _get_entry(pk, entry_id)
        if entry is None:
            return Response({"error": "Entry not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(analyze_withdrawal_impact(entry))

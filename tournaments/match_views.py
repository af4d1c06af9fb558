import logging

from rest_framework import generics, permissions, status
from rest_framework.response import Response

from accounts.permissions import IsAdminUser

from .models import Match
from .serializers import CancelMatchSerializer, MatchSerializer, ScoreEntrySerializer
from .services import MatchResultService
from .views import visible_tournaments

logger = logging.getLogger(__name__)


def _get_match(match_id):
    try:
        return Match.objects.select_related("block__tournament__format", "team1", "team2").get(pk=match_id)
    except Match.DoesNotExist:
        return None


class TournamentMatchListView(generics.ListAPIView):
    """
    Matches of a tournament
    GET /api/tournaments/<id>/matches/?phase=<phase>&block=<block_name>&date=<YYYY-MM-DD>
    """

    serializer_class = MatchSerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None

    def list(self, request, *args, **kwargs):
        if not visible_tournaments(request).filter(pk=self.kwargs["pk"]).exists():
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)
        return super().list(request, *args, **kwargs)

    def get_queryset(self):
        queryset = Match.objects.filter(block__tournament_id=self.kwargs["pk"])
        queryset = queryset.select_related("block", "team1", "team2")
        phase = self.request.query_params.get("phase")
        block = self.request.query_params.get("block")
        date = self.request.query_params.get("date")
        if phase:
            queryset = queryset.filter(block__phase=phase)
        if block:
            queryset = queryset.filter(block__block_name=block)
        if date:
            queryset = queryset.filter(tournament_date=date)
        return queryset


class MatchDetailView(generics.GenericAPIView):
    """
    Get a single match
    GET /api/tournaments/matches/<match_id>/
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request, match_id):
        match = _get_match(match_id)
        if match is None or not visible_tournaments(request).filter(pk=match.block.tournament_id).exists():
            return Response({"error": "Match not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(MatchSerializer(match).data)


class MatchScoreView(generics.GenericAPIView):
    """
    Enter the period scores of a match (result stays pending until confirmed)
    PUT /api/tournaments/matches/<match_id>/scores/
    Body: {"team1_scores": [1, 0], "team2_scores": [0, 0], "winner_id": null, "remarks": ""}
    """

    serializer_class = ScoreEntrySerializer
    permission_classes = [IsAdminUser]

    def put(self, request, match_id):
        match = _get_match(match_id)
        if match is None:
            return Response({"error": "Match not found"}, status=status.HTTP_404_NOT_FOUND)

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            MatchResultService.record_scores(
                match,
                data["team1_scores"],
                data["team2_scores"],
                winner_id=data.get("winner_id"),
                remarks=data.get("remarks"),
            )
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({"message": "Scores saved", "match": MatchSerializer(match).data})


class MatchConfirmView(generics.GenericAPIView):
    """
    Confirm a match result; rankings, promotion and progression follow
    POST /api/tournaments/matches/<match_id>/confirm/
    """

    permission_classes = [IsAdminUser]

    def post(self, request, match_id):
        match = _get_match(match_id)
        if match is None:
            return Response({"error": "Match not found"}, status=status.HTTP_404_NOT_FOUND)

        try:
            MatchResultService.confirm_match(match, confirmed_by=request.user.email)
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        match.refresh_from_db()
        return Response({"message": "Match result confirmed", "match": MatchSerializer(match).data})


class MatchUnconfirmView(generics.GenericAPIView):
    """
    Take back a confirmation so the result can be corrected
    POST /api/tournaments/matches/<match_id>/unconfirm/
    """

    permission_classes = [IsAdminUser]

    def post(self, request, match_id):
        match = _get_match(match_id)
        if match is None:
            return Response({"error": "Match not found"}, status=status.HTTP_404_NOT_FOUND)

        try:
            MatchResultService.unconfirm_match(match)
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        logger.info(f"Match {match.id} unconfirmed by {request.user.email}")
        return Response({"message": "Match confirmation removed", "match": MatchSerializer(match).data})


class MatchCancelView(generics.GenericAPIView):
    """
    Cancel a match
    POST /api/tournaments/matches/<match_id>/cancel/
    Body: {"cancellation_type": "no_show_both" | "no_show_team1" | "no_show_team2" | "no_count"}
    """

    serializer_class = CancelMatchSerializer
    permission_classes = [IsAdminUser]

    def post(self, request, match_id):
        match = _get_match(match_id)
        if match is None:
            return Response({"error": "Match not found"}, status=status.HTTP_404_NOT_FOUND)

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            MatchResultService.cancel_match(
                match, serializer.validated_data["cancellation_type"], cancelled_by=request.user.email
            )
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({"message": "Match cancelled", "match": MatchSerializer(match).data})


class MatchUncancelView(generics.GenericAPIView):
    """
    Restore a cancelled match to scheduled
    POST /api/tournaments/matches/<match_id>/uncancel/
    """

    permission_classes = [IsAdminUser]

    def post(self, request, match_id):
        match = _get_match(match_id)
        if match is None:
            return Response({"error": "Match not found"}, status=status.HTTP_404_NOT_FOUND)

        try:
            result = MatchResultService.uncancel_match(match)
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(
            {
                "message": "Match cancellation removed",
                "previous_cancellation_type": result["previous_cancellation_type"],
                "match": MatchSerializer(result["match"]).data,
            }
        )

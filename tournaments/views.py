import logging

from django.conf import settings
from django.core.cache import cache
from django.db import transaction

from rest_framework import generics, permissions, status
from rest_framework.response import Response

from accounts.permissions import IsAdminUser

from .models import SportType, Tournament, TournamentFormat, TournamentRule
from .point_system import get_point_system_info
from .promotion import promote_teams_to_final, promotion_status
from .rules import create_default_rules, get_sport_rule_config
from .schedule import calculate_schedule, create_matches_from_format, schedule_settings, serialize_schedule
from .serializers import (
    DrawSerializer,
    ManualRankingsSerializer,
    SchedulePreviewSerializer,
    SportTypeSerializer,
    TournamentFormatSerializer,
    TournamentListSerializer,
    TournamentRuleSerializer,
    TournamentSerializer,
)
from .services import DrawService, ManualRankingService
from .standings import get_tournament_standings
from .status import calculate_tournament_status, format_tournament_period, get_status_label, with_progress_counts
from .tie_breaking import get_available_rules, get_default_rules

logger = logging.getLogger(__name__)

TOURNAMENT_LIST_CACHE_KEY = "tournaments:list:all"


def _is_admin(request):
    return request.user.is_authenticated and request.user.is_tournament_admin


def visible_tournaments(request):
    """Tournaments the requester may see: admins see all, everyone else only open ones"""
    queryset = Tournament.objects.all()
    if not _is_admin(request):
        queryset = queryset.filter(visibility="open")
    return queryset


def _get_tournament(pk, request=None):
    queryset = Tournament.objects.all() if request is None else visible_tournaments(request)
    try:
        return queryset.select_related("format", "sport_type", "format__sport_type").get(pk=pk)
    except Tournament.DoesNotExist:
        return None


# ============= Master data =============


class SportTypeListView(generics.ListAPIView):
    """
    Sport master list
    GET /api/tournaments/sport-types/
    """

    queryset = SportType.objects.all()
    serializer_class = SportTypeSerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None


class TournamentFormatListView(generics.ListAPIView):
    """
    Formats available for new tournaments
    GET /api/tournaments/formats/?team_count=<n>&sport=<code>
    """

    serializer_class = TournamentFormatSerializer
    permission_classes = [IsAdminUser]
    pagination_class = None

    def get_queryset(self):
        queryset = TournamentFormat.objects.select_related("sport_type")
        team_count = self.request.query_params.get("team_count")
        sport = self.request.query_params.get("sport")
        if team_count and team_count.isdigit():
            queryset = queryset.filter(target_team_count=int(team_count))
        if sport:
            queryset = queryset.filter(sport_type__sport_code=sport)
        return queryset


# ============= Tournament Views =============


class TournamentListView(generics.ListAPIView):
    """
    List published tournaments with Redis cache
    GET /api/tournaments/
    Cache: Only for the unfiltered public list
    """

    serializer_class = TournamentListSerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None

    def list(self, request, *args, **kwargs):
        if not request.query_params and not _is_admin(request):
            cached_data = cache.get(TOURNAMENT_LIST_CACHE_KEY)
            if cached_data is not None:
                return Response(cached_data)

            serializer = self.get_serializer(self.get_queryset(), many=True)
            cache.set(TOURNAMENT_LIST_CACHE_KEY, serializer.data, timeout=settings.TOURNAMENT_LIST_CACHE_TTL)
            return Response(serializer.data)

        return super().list(request, *args, **kwargs)

    def get_queryset(self):
        queryset = visible_tournaments(self.request).select_related("event", "format__sport_type", "sport_type")
        queryset = with_progress_counts(queryset)

        status_param = self.request.query_params.get("status")
        event = self.request.query_params.get("event")
        if status_param:
            queryset = queryset.filter(status=status_param)
        if event and event.isdigit():
            queryset = queryset.filter(event_id=int(event))
        return queryset


class TournamentDetailView(generics.RetrieveAPIView):
    """
    Get tournament details
    GET /api/tournaments/<id>/
    """

    serializer_class = TournamentSerializer
    permission_classes = [permissions.AllowAny]

    def get_queryset(self):
        queryset = visible_tournaments(self.request).select_related("event", "format__sport_type", "sport_type")
        return with_progress_counts(queryset)


class TournamentCreateView(generics.CreateAPIView):
    """
    Admin creates a tournament with its rules, blocks and matches
    POST /api/tournaments/create/
    """

    serializer_class = TournamentSerializer
    permission_classes = [IsAdminUser]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            with transaction.atomic():
                tournament = serializer.save(created_by=request.user)
                create_default_rules(tournament)
                matches = create_matches_from_format(tournament, request.data.get("custom_schedule"))
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        logger.info(f"Tournament {tournament.id} created by {request.user.email} with {len(matches)} matches")
        return Response(
            {
                "message": "Tournament created successfully!",
                "tournament": TournamentSerializer(tournament).data,
                "match_count": len(matches),
            },
            status=status.HTTP_201_CREATED,
        )


class TournamentManageView(generics.RetrieveUpdateDestroyAPIView):
    """
    Admin updates or deletes a tournament
    GET/PUT/PATCH/DELETE /api/tournaments/<id>/manage/
    """

    queryset = Tournament.objects.select_related("format", "sport_type")
    serializer_class = TournamentSerializer
    permission_classes = [IsAdminUser]

    def update(self, request, *args, **kwargs):
        tournament = self.get_object()
        if "format" not in request.data or str(request.data["format"]) == str(tournament.format_id):
            return super().update(request, *args, **kwargs)

        if tournament.blocks.filter(matches__is_confirmed=True).exists():
            return Response(
                {"error": "The format cannot be changed after results are confirmed"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        if tournament.status in ("ongoing", "completed"):
            return Response(
                {"error": f"The format of a {tournament.status} tournament cannot be changed"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        # Blocks, matches, overrides and the draw all belong to the old format
        try:
            with transaction.atomic():
                response = super().update(request, *args, **kwargs)
                tournament = Tournament.objects.select_related("format").get(pk=tournament.pk)
                tournament.match_overrides.all().delete()
                tournament.blocks.all().delete()
                tournament.teams.update(assigned_block=None, block_position=None)
                matches = create_matches_from_format(tournament)
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        logger.info(f"Tournament {tournament.id} moved to format {tournament.format_id} with {len(matches)} matches")
        response.data["match_count"] = len(matches)
        return response

    def perform_destroy(self, instance):
        logger.info(f"Tournament {instance.id} ({instance.name}) deleted by {self.request.user.email}")
        instance.delete()


class TournamentStatusView(generics.GenericAPIView):
    """
    Calendar and match based status of a tournament
    GET /api/tournaments/<id>/status/
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request, pk):
        tournament = _get_tournament(pk, request)
        if tournament is None:
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)

        calculated = calculate_tournament_status(tournament)
        return Response(
            {
                "tournament_id": tournament.id,
                "stored_status": tournament.status,
                "calculated_status": calculated,
                "status_label": get_status_label(calculated),
                "tournament_period": format_tournament_period(tournament.tournament_dates),
            }
        )


class TournamentStandingsView(generics.GenericAPIView):
    """
    Block standings and final bracket rankings
    GET /api/tournaments/<id>/standings/
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request, pk):
        tournament = _get_tournament(pk, request)
        if tournament is None:
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)

        return Response(
            {
                "tournament_id": tournament.id,
                "tournament_name": tournament.name,
                "point_system": get_point_system_info(tournament),
                "standings": get_tournament_standings(tournament),
            }
        )


# ============= Schedule =============


class SchedulePreviewView(generics.GenericAPIView):
    """
    Preview the schedule of a format before creating the tournament
    POST /api/tournaments/schedule-preview/
    """

    serializer_class = SchedulePreviewSerializer
    permission_classes = [IsAdminUser]

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        try:
            tournament_format = TournamentFormat.objects.get(pk=data.pop("format_id"))
        except TournamentFormat.DoesNotExist:
            return Response({"error": "Format not found"}, status=status.HTTP_404_NOT_FOUND)

        templates = list(tournament_format.templates.order_by("match_number"))
        if not templates:
            return Response({"error": "The selected format has no match templates"}, status=status.HTTP_400_BAD_REQUEST)

        custom_assignment = data.pop("custom_assignment", None)
        schedule = calculate_schedule(templates, data, custom_assignment)
        return Response(serialize_schedule(schedule))


class TournamentScheduleView(generics.GenericAPIView):
    """
    Schedule of an existing tournament's format with its current settings
    GET /api/tournaments/<id>/schedule/
    """

    permission_classes = [IsAdminUser]

    def get(self, request, pk):
        tournament = _get_tournament(pk)
        if tournament is None:
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)

        templates = list(tournament.format.templates.order_by("match_number"))
        return Response(serialize_schedule(calculate_schedule(templates, schedule_settings(tournament))))


# ============= Rules =============


class TournamentRulesView(generics.GenericAPIView):
    """
    Competition rules of both phases, with the sport's rule options
    GET /api/tournaments/<id>/rules/
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request, pk):
        tournament = _get_tournament(pk, request)
        if tournament is None:
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)

        sport_code = tournament.sport_code
        config = get_sport_rule_config(sport_code) or {}
        return Response(
            {
                "sport_code": sport_code,
                "rules": TournamentRuleSerializer(tournament.rules.order_by("phase"), many=True).data,
                "available_periods": config.get("periods", []),
                "available_tie_breaking_rules": get_available_rules(sport_code),
                "default_tie_breaking_rules": get_default_rules(sport_code),
                "point_system": get_point_system_info(tournament),
            }
        )


class TournamentRuleUpdateView(generics.GenericAPIView):
    """
    Update the rule of one phase
    PUT /api/tournaments/<id>/rules/<phase>/
    """

    serializer_class = TournamentRuleSerializer
    permission_classes = [IsAdminUser]

    def put(self, request, pk, phase):
        tournament = _get_tournament(pk)
        if tournament is None:
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)
        if phase not in ("preliminary", "final"):
            return Response({"error": "Phase must be preliminary or final"}, status=status.HTTP_400_BAD_REQUEST)

        rule = tournament.get_rule(phase) or TournamentRule(tournament=tournament, phase=phase)
        serializer = self.get_serializer(rule, data=request.data, partial=True, context={"tournament": tournament})
        serializer.is_valid(raise_exception=True)
        serializer.save()
        logger.info(f"Rules for {phase} of tournament {tournament.id} updated by {request.user.email}")

        return Response({"message": "Rules updated successfully!", "rule": serializer.data})


# ============= Draw and rankings =============


class DrawView(generics.GenericAPIView):
    """
    Block assignment of entered teams
    GET/PUT /api/tournaments/<id>/draw/
    """

    serializer_class = DrawSerializer
    permission_classes = [IsAdminUser]

    def get(self, request, pk):
        tournament = _get_tournament(pk)
        if tournament is None:
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)

        return Response({"tournament_id": tournament.id, "blocks": DrawService.get_draw(tournament)})

    def put(self, request, pk):
        tournament = _get_tournament(pk)
        if tournament is None:
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            summary = DrawService.save_draw(
                tournament, serializer.validated_data["blocks"], serializer.validated_data.get("matches")
            )
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({"message": "Draw saved successfully!", **summary})


class ManualRankingsView(generics.GenericAPIView):
    """
    Stored block rankings and their manual correction
    GET/PUT /api/tournaments/<id>/manual-rankings/
    """

    serializer_class = ManualRankingsSerializer
    permission_classes = [IsAdminUser]

    def get(self, request, pk):
        tournament = _get_tournament(pk)
        if tournament is None:
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)

        return Response({"tournament_id": tournament.id, "blocks": ManualRankingService.get_rankings(tournament)})

    def put(self, request, pk):
        tournament = _get_tournament(pk)
        if tournament is None:
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            updated = ManualRankingService.update_rankings(
                tournament, serializer.validated_data["blocks"], serializer.validated_data.get("final_tournament")
            )
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({"message": "Rankings updated successfully!", "updated_blocks": updated})


class PromotionStatusView(generics.GenericAPIView):
    """
    Promotion readiness, and a manual promotion run
    GET/POST /api/tournaments/<id>/promotion/
    """

    permission_classes = [IsAdminUser]

    def get(self, request, pk):
        tournament = _get_tournament(pk)
        if tournament is None:
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)

        return Response(promotion_status(tournament))

    def post(self, request, pk):
        tournament = _get_tournament(pk)
        if tournament is None:
            return Response({"error": "Tournament not found"}, status=status.HTTP_404_NOT_FOUND)

        updated = promote_teams_to_final(tournament)
        return Response({"message": f"{updated} final match(es) updated", "updated_matches": updated})

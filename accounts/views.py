import logging

from django.contrib.auth import authenticate
from django.shortcuts import get_object_or_404

from rest_framework import generics, permissions, status
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from .models import Player, Team
from .permissions import IsAdminOrTeamOwner, IsAdminUser
from .serializers import LoginSerializer, PlayerSerializer, TeamRegistrationSerializer, TeamSerializer, UserSerializer

logger = logging.getLogger(__name__)


def _token_payload(user):
    refresh = RefreshToken.for_user(user)
    return {"refresh": str(refresh), "access": str(refresh.access_token)}


class TeamRegistrationView(generics.CreateAPIView):
    """
    Team account registration
    POST /api/accounts/team/register/
    """

    serializer_class = TeamRegistrationSerializer
    permission_classes = [permissions.AllowAny]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f"Team account registered: {user.email}")

        return Response(
            {
                "user": UserSerializer(user).data,
                "team": TeamSerializer(user.team).data,
                "tokens": _token_payload(user),
                "message": "Team registered successfully!",
            },
            status=status.HTTP_201_CREATED,
        )


class LoginView(APIView):
    """
    Login API for admins and team accounts
    POST /api/accounts/login/
    """

    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = authenticate(
            request,
            username=serializer.validated_data["email"],
            password=serializer.validated_data["password"],
        )

        if user is None:
            return Response({"error": "Invalid credentials"}, status=status.HTTP_401_UNAUTHORIZED)

        return Response(
            {
                "user": UserSerializer(user).data,
                "tokens": _token_payload(user),
                "message": "Login successful!",
            },
            status=status.HTTP_200_OK,
        )


class CurrentUserView(APIView):
    """
    Get current logged-in user details
    GET /api/accounts/me/
    """

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        user = request.user
        team_data = None
        if user.user_type == "team" and hasattr(user, "team"):
            team_data = TeamSerializer(user.team).data

        return Response({"user": UserSerializer(user).data, "team": team_data}, status=status.HTTP_200_OK)


# ============= Master team and player management =============


class TeamListCreateView(generics.ListCreateAPIView):
    """
    Master team list and creation (admins only)
    GET/POST /api/accounts/teams/
    """

    serializer_class = TeamSerializer
    permission_classes = [IsAdminUser]

    def get_queryset(self):
        queryset = Team.objects.prefetch_related("players")
        search = self.request.query_params.get("search")
        if search:
            queryset = queryset.filter(team_name__icontains=search)
        active = self.request.query_params.get("active")
        if active is not None:
            queryset = queryset.filter(is_active=active.lower() in ("1", "true", "yes"))
        return queryset


class TeamDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    Retrieve, update or delete a master team
    GET/PUT/PATCH/DELETE /api/accounts/teams/<id>/
    """

    queryset = Team.objects.prefetch_related("players")
    serializer_class = TeamSerializer
    permission_classes = [IsAdminOrTeamOwner]

    def perform_destroy(self, instance):
        if not self.request.user.is_tournament_admin:
            raise PermissionDenied("Only administrators can delete teams.")
        if instance.tournament_entries.exists():
            # Keep history intact for teams that already entered a tournament
            instance.is_active = False
            instance.save(update_fields=["is_active", "updated_at"])
            logger.info(f"Team {instance.id} deactivated instead of deleted (has tournament entries)")
            return
        instance.delete()


class TeamPlayersView(generics.ListCreateAPIView):
    """
    Players of a master team
    GET/POST /api/accounts/teams/<team_id>/players/
    """

    serializer_class = PlayerSerializer
    permission_classes = [IsAdminOrTeamOwner]

    def get_team(self):
        team = get_object_or_404(Team, pk=self.kwargs["team_id"])
        self.check_object_permissions(self.request, team)
        return team

    def get_queryset(self):
        return Player.objects.filter(team=self.get_team())

    def perform_create(self, serializer):
        serializer.save(team=self.get_team())


class PlayerDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    Retrieve, update or delete a player
    GET/PUT/PATCH/DELETE /api/accounts/players/<id>/
    """

    queryset = Player.objects.select_related("team")
    serializer_class = PlayerSerializer
    permission_classes = [IsAdminOrTeamOwner]

from django.urls import path

from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    CurrentUserView,
    LoginView,
    PlayerDetailView,
    TeamDetailView,
    TeamListCreateView,
    TeamPlayersView,
    TeamRegistrationView,
)

urlpatterns = [
    # Authentication
    path("team/register/", TeamRegistrationView.as_view(), name="team-register"),
    path("login/", LoginView.as_view(), name="login"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("me/", CurrentUserView.as_view(), name="current-user"),
    # Master teams and players
    path("teams/", TeamListCreateView.as_view(), name="team-list"),
    path("teams/<int:pk>/", TeamDetailView.as_view(), name="team-detail"),
    path("teams/<int:team_id>/players/", TeamPlayersView.as_view(), name="team-players"),
    path("players/<int:pk>/", PlayerDetailView.as_view(), name="player-detail"),
]

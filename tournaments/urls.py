from django.urls import path

from .match_views import (
    MatchCancelView,
    MatchConfirmView,
    MatchDetailView,
    MatchScoreView,
    MatchUncancelView,
    MatchUnconfirmView,
    TournamentMatchListView,
)
from .team_views import (
    TournamentTeamDetailView,
    TournamentTeamListView,
    TournamentTeamRegisterView,
    WithdrawalImpactView,
    WithdrawalListView,
    WithdrawalView,
)
from .views import (
    DrawView,
    ManualRankingsView,
    PromotionStatusView,
    SchedulePreviewView,
    SportTypeListView,
    TournamentCreateView,
    TournamentDetailView,
    TournamentFormatListView,
    TournamentListView,
    TournamentManageView,
    TournamentRulesView,
    TournamentRuleUpdateView,
    TournamentScheduleView,
    TournamentStandingsView,
    TournamentStatusView,
)

urlpatterns = [
    # Master data
    path("sport-types/", SportTypeListView.as_view(), name="sport-type-list"),
    path("formats/", TournamentFormatListView.as_view(), name="format-list"),
    path("schedule-preview/", SchedulePreviewView.as_view(), name="schedule-preview"),
    # Tournaments
    path("", TournamentListView.as_view(), name="tournament-list"),
    path("create/", TournamentCreateView.as_view(), name="tournament-create"),
    path("<int:pk>/", TournamentDetailView.as_view(), name="tournament-detail"),
    path("<int:pk>/manage/", TournamentManageView.as_view(), name="tournament-manage"),
    path("<int:pk>/status/", TournamentStatusView.as_view(), name="tournament-status"),
    path("<int:pk>/standings/", TournamentStandingsView.as_view(), name="tournament-standings"),
    path("<int:pk>/schedule/", TournamentScheduleView.as_view(), name="tournament-schedule"),
    path("<int:pk>/promotion/", PromotionStatusView.as_view(), name="tournament-promotion"),
    # Rules
    path("<int:pk>/rules/", TournamentRulesView.as_view(), name="tournament-rules"),
    path("<int:pk>/rules/<str:phase>/", TournamentRuleUpdateView.as_view(), name="tournament-rule-update"),
    # Draw and rankings
    path("<int:pk>/draw/", DrawView.as_view(), name="tournament-draw"),
    path("<int:pk>/manual-rankings/", ManualRankingsView.as_view(), name="tournament-manual-rankings"),
    # Entries and withdrawals
    path("<int:pk>/teams/", TournamentTeamListView.as_view(), name="tournament-team-list"),
    path("<int:pk>/teams/register/", TournamentTeamRegisterView.as_view(), name="tournament-team-register"),
    path("<int:pk>/teams/<int:entry_id>/", TournamentTeamDetailView.as_view(), name="tournament-team-detail"),
    path("<int:pk>/teams/<int:entry_id>/withdrawal/", WithdrawalView.as_view(), name="tournament-team-withdrawal"),
    path(
        "<int:pk>/teams/<int:entry_id>/withdrawal/impact/",
        WithdrawalImpactView.as_view(),
        name="tournament-team-withdrawal-impact",
    ),
    path("<int:pk>/withdrawals/", WithdrawalListView.as_view(), name="tournament-withdrawal-list"),
    # Matches
    path("<int:pk>/matches/", TournamentMatchListView.as_view(), name="tournament-match-list"),
    path("matches/<int:match_id>/", MatchDetailView.as_view(), name="match-detail"),
    path("matches/<int:match_id>/scores/", MatchScoreView.as_view(), name="match-scores"),
    path("matches/<int:match_id>/confirm/", MatchConfirmView.as_view(), name="match-confirm"),
    path("matches/<int:match_id>/unconfirm/", MatchUnconfirmView.as_view(), name="match-unconfirm"),
    path("matches/<int:match_id>/cancel/", MatchCancelView.as_view(), name="match-cancel"),
    path("matches/<int:match_id>/uncancel/", MatchUncancelView.as_view(), name="match-uncancel"),
]

"""
Pytest fixtures and configuration for TourneyDesk tests
"""
from django.core.cache import cache

import pytest
from rest_framework.test import APIClient

from tests.factories import (
    SportTypeFactory,
    TeamFactory,
    TournamentFactory,
    TournamentFormatFactory,
    TournamentTeamFactory,
    UserFactory,
    create_final_templates,
    create_league_templates,
)
from tournaments.models import Match
from tournaments.rules import create_default_rules
from tournaments.schedule import create_matches_from_format
from tournaments.services import DrawService, MatchResultService


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "cache: tests exercising the tournament list cache")


@pytest.fixture(autouse=True)
def clear_cache():
    """Clear the cache before and after each test"""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return DRF API client"""
    return APIClient()


@pytest.fixture
def anonymous_client():
    """Unauthenticated client, separate from the one the role fixtures log in"""
    return APIClient()


@pytest.fixture
def admin_user(db):
    """Create a tournament administrator"""
    return UserFactory(user_type="admin", email="admin@test.com", username="admin")


@pytest.fixture
def team_user(db):
    """Create a team account with its master team"""
    user = UserFactory(user_type="team")
    TeamFactory(user=user)
    return user


@pytest.fixture
def admin_client(api_client, admin_user):
    """Return API client authenticated as administrator"""
    api_client.force_authenticate(user=admin_user)
    return api_client


@pytest.fixture
def team_client(api_client, team_user):
    """Return API client authenticated as a team account"""
    api_client.force_authenticate(user=team_user)
    return api_client


@pytest.fixture
def pk_sport(db):
    return SportTypeFactory(sport_code="pk_championship", sport_name="PK Championship")


@pytest.fixture
def soccer_sport(db):
    return SportTypeFactory(
        sport_code="soccer",
        sport_name="Soccer",
        max_period_count=5,
        regular_period_count=2,
    )


@pytest.fixture
def league_format(pk_sport):
    """Two blocks of four playing a round robin, then a four team knockout"""
    tournament_format = TournamentFormatFactory(format_name="8 teams: 2 blocks + knockout", sport_type=pk_sport)
    next_number = create_league_templates(tournament_format)
    create_final_templates(tournament_format, start_number=next_number)
    return tournament_format


@pytest.fixture
def tournament(league_format):
    """Tournament with rules, blocks and matches created from the league format"""
    tournament = TournamentFactory(format=league_format, sport_type=league_format.sport_type)
    create_default_rules(tournament)
    create_matches_from_format(tournament)
    return tournament


@pytest.fixture
def entries(tournament):
    """Eight confirmed entries"""
    return [TournamentTeamFactory(tournament=tournament) for _ in range(8)]


@pytest.fixture
def drawn_tournament(tournament, entries):
    """Tournament with entries drawn into blocks A and B (entries 0-3 in A, 4-7 in B)"""
    DrawService.save_draw(
        tournament,
        [
            {
                "block_name": "A",
                "teams": [{"tournament_team_id": e.id, "block_position": i + 1} for i, e in enumerate(entries[:4])],
            },
            {
                "block_name": "B",
                "teams": [{"tournament_team_id": e.id, "block_position": i + 1} for i, e in enumerate(entries[4:])],
            },
        ],
    )
    for entry in entries:
        entry.refresh_from_db()
    return tournament


@pytest.fixture
def play():
    """Record and confirm a result: play(match, team1_scores, team2_scores)"""

    def _play(match, team1_scores, team2_scores, winner_id=None):
        match.refresh_from_db()
        MatchResultService.record_scores(match, team1_scores, team2_scores, winner_id=winner_id)
        MatchResultService.confirm_match(match, confirmed_by="admin@test.com")
        match.refresh_from_db()
        return match

    return _play


@pytest.fixture
def play_block(play):
    """Play every match of a block so that block positions finish 1, 2, 3, 4"""

    def _play_block(tournament, block_name):
        matches = Match.objects.filter(block__tournament=tournament, block__block_name=block_name)
        for match in matches.order_by("match_number"):
            play(match, [1], [0])

    return _play_block


@pytest.fixture
def match_by_code():
    """Fetch a match by code: match_by_code(tournament, "SF1")"""

    def _match_by_code(tournament, code):
        return Match.objects.select_related("block__tournament").get(block__tournament=tournament, match_code=code)

    return _match_by_code

"""
Test cases for point system resolution
"""
import pytest

from tests.factories import SportTypeFactory, TournamentFactory, TournamentFormatFactory, TournamentRuleFactory
from tournaments.point_system import get_point_system, get_point_system_info


@pytest.mark.django_db
def test_rule_point_system_takes_precedence(pk_sport):
    tournament = TournamentFactory(format=TournamentFormatFactory(sport_type=pk_sport), sport_type=pk_sport)
    TournamentRuleFactory(tournament=tournament, phase="preliminary", point_system={"win": 2, "draw": 1, "loss": 0})

    info = get_point_system_info(tournament)

    assert info["source"] == "rules"
    assert info["point_system"] == {"win": 2, "draw": 1, "loss": 0}


@pytest.mark.django_db
def test_zero_values_are_honoured(pk_sport):
    """Test a configured zero is kept instead of replaced by the default"""
    tournament = TournamentFactory(format=TournamentFormatFactory(sport_type=pk_sport), sport_type=pk_sport)
    TournamentRuleFactory(tournament=tournament, phase="preliminary", point_system={"win": 3, "draw": 0, "loss": 0})

    assert get_point_system(tournament)["draw"] == 0


@pytest.mark.django_db
def test_missing_keys_fall_back_to_defaults(pk_sport):
    tournament = TournamentFactory(format=TournamentFormatFactory(sport_type=pk_sport), sport_type=pk_sport)
    TournamentRuleFactory(tournament=tournament, phase="preliminary", point_system={"win": "4"})

    assert get_point_system(tournament) == {"win": 4, "draw": 1, "loss": 0}


@pytest.mark.django_db
def test_win_rate_sport_uses_sport_point_system():
    sport = SportTypeFactory(
        sport_code="baseball", sport_name="Baseball", supports_point_system=False, ranking_method="win_rate"
    )
    tournament = TournamentFactory(format=TournamentFormatFactory(sport_type=sport), sport_type=sport)
    TournamentRuleFactory(tournament=tournament, phase="preliminary")

    info = get_point_system_info(tournament)

    assert info["source"] == "sport"
    assert info["point_system"] == {"win": 1, "draw": 0.5, "loss": 0}


@pytest.mark.django_db
def test_legacy_tournament_points_without_rules(pk_sport):
    tournament = TournamentFactory(
        format=TournamentFormatFactory(sport_type=pk_sport),
        sport_type=pk_sport,
        win_points=2,
        draw_points=1,
        loss_points=0,
    )

    info = get_point_system_info(tournament)

    assert info["source"] == "legacy"
    assert info["point_system"] == {"win": 2, "draw": 1, "loss": 0}

"""
Test cases for sport rule defaults and soccer period validation
"""
import pytest

from tests.factories import TournamentFactory, TournamentFormatFactory
from tournaments.rules import (
    create_default_rules,
    default_rules_for,
    expected_score_length,
    get_rule_periods,
    parse_active_periods,
    period_display_label,
    validate_soccer_periods,
)


@pytest.mark.parametrize(
    "periods,is_valid",
    [
        (["1"], True),
        (["1", "2"], True),
        (["1", "2", "5"], True),
        (["1", "2", "3", "4"], True),
        (["1", "2", "3", "4", "5"], True),
        ([], False),
        (["2"], False),
        (["1", "3"], False),
        (["1", "2", "3"], False),
        (["1", "2", "3", "5"], False),
    ],
)
def test_validate_soccer_periods(periods, is_valid):
    valid, error, _ = validate_soccer_periods(periods)
    assert valid is is_valid
    assert (error is None) is is_valid


def test_soccer_period_warnings():
    """Test valid but unusual period layouts carry a warning"""
    _, _, single = validate_soccer_periods(["1"])
    _, _, shoot_out = validate_soccer_periods(["1", "2", "5"])
    _, _, full = validate_soccer_periods(["1", "2", "3", "4", "5"])
    assert single is not None
    assert shoot_out is not None
    assert full is None


def test_expected_score_length_and_label():
    assert expected_score_length(["1"]) == 1
    assert expected_score_length(["1", "2"]) == 2
    assert expected_score_length(["1", "2", "5"]) == 3
    assert expected_score_length(["1", "2", "3", "4"]) == 4
    assert expected_score_length(["1", "2", "3", "4", "5"]) == 5
    assert period_display_label(["1", "2", "5"]) == "Halves and shoot-out"


def test_parse_active_periods_skips_garbage():
    assert parse_active_periods(["1", 2, "x", None]) == [1, 2]
    assert parse_active_periods(None) == []


def test_unknown_sport_uses_single_period_defaults():
    defaults = default_rules_for("curling")
    assert defaults["preliminary"]["active_periods"] == ["1"]


def test_default_rules_are_independent_copies():
    first = default_rules_for("soccer")
    first["final"]["active_periods"].append("9")
    assert default_rules_for("soccer")["final"]["active_periods"] == ["1", "2", "3", "4", "5"]


@pytest.mark.django_db
def test_create_default_rules_for_soccer(soccer_sport):
    tournament = TournamentFactory(format=TournamentFormatFactory(sport_type=soccer_sport), sport_type=soccer_sport)

    created = create_default_rules(tournament)

    assert len(created) == 2
    assert get_rule_periods(tournament, "preliminary") == ["1", "2"]
    assert get_rule_periods(tournament, "final") == ["1", "2", "3", "4", "5"]
    assert tournament.get_rule("final").use_penalty is True


@pytest.mark.django_db
def test_create_default_rules_keeps_existing(tournament):
    """Test a second call leaves the configured rules alone"""
    rule = tournament.get_rule("preliminary")
    rule.active_periods = ["1", "2"]
    rule.save()

    assert create_default_rules(tournament) == []
    assert get_rule_periods(tournament, "preliminary") == ["1", "2"]

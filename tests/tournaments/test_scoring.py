"""
Test cases for score parsing and penalty shoot-out detection
"""
import pytest

from tournaments.scoring import (
    detect_pk_data,
    determine_pk_winner,
    format_score_array,
    format_score_display,
    is_valid_score,
    parse_score_array,
    parse_total_score,
    regular_goals,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, [0]),
        ("", [0]),
        ("[1,2,0]", [1, 2, 0]),
        ("1,2", [1, 2]),
        ("3", [3]),
        (4, [4]),
        (b"[2,1]", [2, 1]),
        ([1, "2", "x"], [1, 2, 0]),
        ("[]", [0]),
        ("[broken", [0]),
        ("abc", [0]),
        ("3.5", [3]),
        ("3abc", [3]),
        ("[1,2", [0, 2]),
        ("2, x", [2, 0]),
    ],
)
def test_parse_score_array(value, expected):
    """Test every stored score encoding parses to a list of goals"""
    assert parse_score_array(value) == expected


def test_parse_total_score_sums_periods():
    assert parse_total_score("[1,2,3]") == 6
    assert parse_total_score(None) == 0


def test_format_score_array():
    """Test scores are stored as compact JSON arrays"""
    assert format_score_array([2, 1]) == "[2,1]"
    assert format_score_array(3) == "[3]"
    assert format_score_array("1,0") == "[1,0]"
    assert format_score_array([]) == "[0]"
    assert format_score_array(None) == "[0]"


def test_format_score_display_and_validity():
    assert format_score_display("[1,0,3]") == "1-0-3"
    assert is_valid_score("[0,1]") is True
    assert is_valid_score("[0,0]") is False


def test_detect_pk_by_pattern():
    """Test shoot-out detection from array length alone"""
    assert detect_pk_data([1, 1])["has_pk"] is False
    three = detect_pk_data([1, 1, 4])
    assert three["pk_index"] == 2
    assert three["total_regular_goals"] == 2
    assert three["pk_goals"] == 4
    five = detect_pk_data([1, 0, 0, 1, 3])
    assert five["regular_count"] == 4
    assert five["pk_goals"] == 3
    assert detect_pk_data([])["detection_method"] == "empty_array"


def test_detect_pk_by_rule_periods():
    """Test the phase rule decides the layout when the length matches"""
    result = detect_pk_data([1, 0, 0, 1, 2], ["1", "2", "3", "4", "5"])
    assert result["detection_method"] == "rule_based_5_elements"
    assert result["total_regular_goals"] == 2
    assert result["pk_goals"] == 2

    # Length mismatch falls back to the pattern
    fallback = detect_pk_data([1, 0, 3], ["1", "2", "3", "4", "5"])
    assert fallback["detection_method"] == "pattern_3_regular_pk"


def test_determine_pk_winner():
    result = determine_pk_winner("[1,1,4]", "[2,0,3]")
    assert result["is_actual_pk_game"] is True
    assert result["pk_winner"] == 1

    no_pk = determine_pk_winner("[1,1]", "[0,2]")
    assert no_pk["is_actual_pk_game"] is False
    assert no_pk["pk_winner"] is None


def test_regular_goals_excludes_shoot_out_for_soccer_only():
    assert regular_goals("[1,1,4]", "soccer") == 2
    assert regular_goals("[1,1,4]", "pk_championship") == 6

"""
Score parsing and penalty shoot-out detection

Match scores are stored per period as text. Over time several encodings have
been written to the database ("[1,0]", "1,0", "3", bare numbers), so every
reader goes through parse_score_array.
"""
import json
import math
import re
from typing import Dict, List, Optional, Union

ScoreValue = Union[None, int, float, str, bytes, List[Union[int, float, str]]]

LEADING_INT = re.compile(r"^[+-]?\d+")


def _to_int(value) -> int:
    """Coerce one period value, treating anything non-numeric as 0"""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return 0
        return int(math.floor(value))
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            try:
                number = float(value.strip())
            except ValueError:
                return 0
            return 0 if math.isnan(number) else int(math.floor(number))
    return 0


def _leading_int(text: str) -> int:
    """Integer prefix of a legacy score part ("3.5" and "3abc" give 3), 0 when there is none"""
    matched = LEADING_INT.match(text.strip())
    return int(matched.group()) if matched else 0


def parse_score_array(value: ScoreValue) -> List[int]:
    """
    Parse a stored score into a list of per-period goals.

    Args:
        value: None, a number, bytes, a JSON array string ("[1,2]"),
            a comma separated string ("1,2") or a single number string

    Returns:
        List of integers; never empty ([0] when nothing usable is found)
    """
    if value is None:
        return [0]

    if isinstance(value, (list, tuple)):
        return [_to_int(v) for v in value] or [0]

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if isinstance(value, float) and math.isnan(value):
            return [0]
        return [int(value)]

    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="ignore")

    if not isinstance(value, str):
        return [0]

    text = value.strip()
    if not text:
        return [0]

    if text.startswith("[") and text.endswith("]"):
        try:
            parsed = json.loads(text)
        except ValueError:
            return [0]
        if isinstance(parsed, list):
            return [_to_int(v) for v in parsed] or [0]
        return [_to_int(parsed)]

    if "," in text:
        return [_leading_int(part) for part in text.split(",")]

    return [_leading_int(text)]


def parse_total_score(value: ScoreValue) -> int:
    """Sum of all periods"""
    return sum(parse_score_array(value))


def format_score_array(scores) -> str:
    """Serialize scores for storage, e.g. [2, 1] -> "[2,1]" """
    if scores is None:
        return "[0]"
    if isinstance(scores, (int, float)) and not isinstance(scores, bool):
        return f"[{_to_int(scores)}]"
    if isinstance(scores, str):
        scores = parse_score_array(scores)
    values = [_to_int(v) for v in scores]
    if not values:
        return "[0]"
    return json.dumps(values, separators=(",", ":"))


def is_valid_score(value: ScoreValue) -> bool:
    """A score counts as entered when any period is above zero"""
    return any(v > 0 for v in parse_score_array(value))


def format_score_display(value: ScoreValue, separator: str = "-") -> str:
    return separator.join(str(v) for v in parse_score_array(value))


# ============================================================================
# PENALTY SHOOT-OUT DETECTION
# ============================================================================


def _detection(pk_index, regular_count, total_regular_goals, pk_goals, method) -> Dict:
    return {
        "pk_index": pk_index,
        "regular_count": regular_count,
        "total_regular_goals": total_regular_goals,
        "pk_goals": pk_goals,
        "has_pk": pk_goals > 0,
        "detection_method": method,
    }


def _detect_by_rule(scores: List[int], rule_periods: List[str]) -> Optional[Dict]:
    periods = {str(p) for p in rule_periods}
    if "1" not in periods or "2" not in periods:
        return None

    has_pk_rule = "5" in periods
    expected_length = 4 if "3" in periods and "4" in periods else 2
    if has_pk_rule:
        expected_length += 1

    if len(scores) != expected_length:
        return None

    regular_count = expected_length - 1 if has_pk_rule else expected_length
    pk_index = expected_length - 1 if has_pk_rule else -1
    pk_goals = scores[pk_index] if has_pk_rule else 0
    return _detection(
        pk_index, regular_count, sum(scores[:regular_count]), pk_goals, f"rule_based_{expected_length}_elements"
    )


def _detect_by_pattern(scores: List[int]) -> Dict:
    length = len(scores)
    if length == 2:
        return _detection(-1, 2, scores[0] + scores[1], 0, "pattern_2_no_pk")
    if length == 3:
        return _detection(2, 2, scores[0] + scores[1], scores[2], "pattern_3_regular_pk")
    if length == 4:
        return _detection(-1, 4, sum(scores), 0, "pattern_4_extra_no_pk")
    if length == 5:
        return _detection(4, 4, sum(scores[:4]), scores[4], "pattern_5_extra_pk")
    if length > 5:
        return _detection(length - 1, length - 1, sum(scores[:-1]), scores[-1], f"pattern_{length}_abnormal_last_pk")
    return _detection(-1, 1, scores[0], 0, "pattern_1_abnormal")


def detect_pk_data(scores: List[int], rule_periods: Optional[List[str]] = None) -> Dict:
    """
    Work out which period (if any) holds penalty shoot-out goals.

    When the phase rule enables periods 1 and 2 the expected array length is
    derived from it (2, 4 with extra time, +1 with a shoot-out). Otherwise,
    or when the length does not match, the layout is inferred from the
    array length alone.

    Returns:
        Dict with pk_index (-1 when none), regular_count, total_regular_goals,
        pk_goals, has_pk and detection_method
    """
    scores = [_to_int(s) for s in scores] if scores else []
    if not scores:
        return _detection(-1, 0, 0, 0, "empty_array")

    if rule_periods:
        result = _detect_by_rule(scores, rule_periods)
        if result:
            return result

    return _detect_by_pattern(scores)


def determine_pk_winner(team1_scores: ScoreValue, team2_scores: ScoreValue, rule_periods=None) -> Dict:
    """
    Compare both sides' shoot-out goals.

    Returns:
        Dict with team1_pk, team2_pk (detection dicts), is_actual_pk_game and
        pk_winner (1, 2 or None when no shoot-out decided the match)
    """
    team1_pk = detect_pk_data(parse_score_array(team1_scores), rule_periods)
    team2_pk = detect_pk_data(parse_score_array(team2_scores), rule_periods)
    is_actual_pk_game = team1_pk["has_pk"] or team2_pk["has_pk"]

    pk_winner = None
    if is_actual_pk_game and team1_pk["pk_goals"] != team2_pk["pk_goals"]:
        pk_winner = 1 if team1_pk["pk_goals"] > team2_pk["pk_goals"] else 2

    return {
        "team1_pk": team1_pk,
        "team2_pk": team2_pk,
        "is_actual_pk_game": is_actual_pk_game,
        "pk_winner": pk_winner,
    }


def regular_goals(value: ScoreValue, sport_code: str, rule_periods: Optional[List[str]] = None) -> int:
    """Goals that count towards standings; soccer excludes shoot-out goals"""
    scores = parse_score_array(value)
    if sport_code == "soccer":
        return detect_pk_data(scores, rule_periods)["total_regular_goals"]
    return sum(scores)

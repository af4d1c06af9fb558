"""
Sport rule defaults and period configuration checks
"""
import logging
from typing import Dict, List, Optional, Tuple

from .models import Tournament, TournamentRule

logger = logging.getLogger(__name__)

# Period numbers: 1/2 regular halves, 3/4 extra time halves, 5 penalty shoot-out
SPORT_RULE_CONFIGS: Dict[str, Dict] = {
    "pk_championship": {
        "periods": [{"period_number": 1, "period_name": "Penalty kicks", "is_default": True, "is_required": True}],
        "preliminary": {
            "use_extra_time": False,
            "use_penalty": False,
            "active_periods": ["1"],
            "win_condition": "score",
        },
        "final": {"use_extra_time": False, "use_penalty": False, "active_periods": ["1"], "win_condition": "score"},
    },
    "soccer": {
        "periods": [
            {"period_number": 1, "period_name": "1st half", "is_default": True, "is_required": True},
            {"period_number": 2, "period_name": "2nd half", "is_default": True, "is_required": True},
            {"period_number": 3, "period_name": "Extra time 1st half", "is_default": False, "is_required": False},
            {"period_number": 4, "period_name": "Extra time 2nd half", "is_default": False, "is_required": False},
            {"period_number": 5, "period_name": "Penalty shoot-out", "is_default": False, "is_required": False},
        ],
        "preliminary": {
            "use_extra_time": False,
            "use_penalty": False,
            "active_periods": ["1", "2"],
            "win_condition": "score",
        },
        "final": {
            "use_extra_time": True,
            "use_penalty": True,
            "active_periods": ["1", "2", "3", "4", "5"],
            "win_condition": "score",
        },
    },
    "baseball": {
        "periods": [{"period_number": 1, "period_name": "Nine innings", "is_default": True, "is_required": True}],
        "preliminary": {
            "use_extra_time": False,
            "use_penalty": False,
            "active_periods": ["1"],
            "win_condition": "score",
        },
        "final": {"use_extra_time": False, "use_penalty": False, "active_periods": ["1"], "win_condition": "score"},
    },
    "track_and_field": {
        "periods": [{"period_number": 1, "period_name": "Timing", "is_default": True, "is_required": True}],
        "preliminary": {
            "use_extra_time": False,
            "use_penalty": False,
            "active_periods": ["1"],
            "win_condition": "time",
        },
        "final": {"use_extra_time": False, "use_penalty": False, "active_periods": ["1"], "win_condition": "time"},
    },
}

VALID_SOCCER_PERIOD_COMBINATIONS = [
    [1],
    [1, 2],
    [1, 2, 5],
    [1, 2, 3, 4],
    [1, 2, 3, 4, 5],
]


def get_sport_rule_config(sport_code: str) -> Optional[Dict]:
    return SPORT_RULE_CONFIGS.get(sport_code)


def default_rules_for(sport_code: str) -> Dict[str, Dict]:
    """Default rule values per phase; unknown sports use the single-period layout"""
    config = SPORT_RULE_CONFIGS.get(sport_code) or SPORT_RULE_CONFIGS["pk_championship"]
    return {
        "preliminary": dict(config["preliminary"], active_periods=list(config["preliminary"]["active_periods"])),
        "final": dict(config["final"], active_periods=list(config["final"]["active_periods"])),
    }


def create_default_rules(tournament: Tournament) -> List[TournamentRule]:
    """Create the preliminary and final rules of a new tournament, keeping existing ones"""
    created = []
    for phase, values in default_rules_for(tournament.sport_code).items():
        rule, was_created = TournamentRule.objects.get_or_create(tournament=tournament, phase=phase, defaults=values)
        if was_created:
            created.append(rule)
    logger.info(f"Created {len(created)} default rule(s) for tournament {tournament.id}")
    return created


def parse_active_periods(value) -> List[int]:
    """Normalize stored active periods (list of strings or numbers) to ints"""
    if not value:
        return []
    periods = []
    for item in value:
        try:
            periods.append(int(item))
        except (TypeError, ValueError):
            continue
    return periods


def get_rule_periods(tournament: Tournament, phase: str) -> List[str]:
    rule = tournament.get_rule(phase)
    if not rule or not rule.active_periods:
        return []
    return [str(p) for p in rule.active_periods]


def validate_soccer_periods(active_periods) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Check a soccer period selection.

    Returns:
        (is_valid, error, warning)
    """
    if not active_periods:
        return False, "No periods selected.", None

    numbers = sorted(set(parse_active_periods(active_periods)))
    if numbers == [1]:
        return True, None, "Single period match: second half, extra time and shoot-out are not used."
    if 1 not in numbers:
        return False, "The first half is required.", None
    if 2 not in numbers:
        return False, "The second half is required unless the match is a single period.", None

    has_extra_first = 3 in numbers
    has_extra_second = 4 in numbers
    if has_extra_first != has_extra_second:
        missing = "extra time 1st half" if not has_extra_first else "extra time 2nd half"
        return False, f"Extra time needs both halves; {missing} is missing.", None

    if numbers not in VALID_SOCCER_PERIOD_COMBINATIONS:
        return False, "Invalid period combination.", None

    if 5 in numbers and not has_extra_first:
        return True, None, "Shoot-out follows regular time directly because extra time is disabled."

    return True, None, None


def expected_score_length(active_periods) -> int:
    """Number of score entries a match under this configuration records"""
    numbers = set(parse_active_periods(active_periods))
    if numbers == {1}:
        return 1
    has_extra = 3 in numbers and 4 in numbers
    if has_extra and 5 in numbers:
        return 5
    if has_extra:
        return 4
    if 5 in numbers:
        return 3
    return 2


def period_display_label(active_periods) -> str:
    numbers = set(parse_active_periods(active_periods))
    if numbers == {1}:
        return "Single period"
    if {1, 2, 3, 4, 5} <= numbers:
        return "Halves, extra time and shoot-out"
    if {1, 2, 3, 4} <= numbers:
        return "Halves and extra time"
    if {1, 2, 5} <= numbers:
        return "Halves and shoot-out"
    if {1, 2} <= numbers:
        return "Halves only"
    return "Custom"

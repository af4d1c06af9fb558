"""
Tie-breaking rules per sport and the engine that applies them to standings
"""
import json
import logging
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_TIE_BREAKING_RULES = 5

_POINTS = {"type": "points", "label": "Points", "description": "Win 3, draw 1, loss 0"}
_GOAL_DIFFERENCE = {"type": "goal_difference", "label": "Goal difference", "description": "Goals for minus against"}
_GOALS_FOR = {"type": "goals_for", "label": "Goals for", "description": "Total goals scored"}
_HEAD_TO_HEAD = {"type": "head_to_head", "label": "Head to head", "description": "Result between the tied teams"}
_LOTTERY = {"type": "lottery", "label": "Lottery", "description": "Drawn by the organisers"}
_WIN_RATE = {"type": "win_rate", "label": "Win rate", "description": "Wins divided by matches played"}

SPORT_TIE_BREAKING_RULES: Dict[str, List[Dict]] = {
    "pk_championship": [_POINTS, _GOAL_DIFFERENCE, _GOALS_FOR, _HEAD_TO_HEAD, _LOTTERY],
    "soccer": [_POINTS, _GOAL_DIFFERENCE, _GOALS_FOR, _HEAD_TO_HEAD, _LOTTERY],
    "baseball": [
        _WIN_RATE,
        {"type": "win_count", "label": "Wins", "description": "Matches won"},
        {"type": "run_difference", "label": "Run difference", "description": "Runs scored minus runs allowed"},
        {"type": "runs_scored", "label": "Runs scored", "description": "Total runs scored"},
        _HEAD_TO_HEAD,
        _LOTTERY,
    ],
    "track_and_field": [
        {"type": "best_time", "label": "Best time", "description": "Fastest recorded time, lower ranks higher"},
        {"type": "points", "label": "Total points", "description": "Sum of event points"},
        {"type": "win_count", "label": "Event wins", "description": "Events finished first"},
        {"type": "podium_count", "label": "Podiums", "description": "Events finished in the top three"},
        _LOTTERY,
    ],
    "basketball": [
        _WIN_RATE,
        {"type": "point_difference", "label": "Point difference", "description": "Points scored minus conceded"},
        {"type": "points_scored", "label": "Points scored", "description": "Total points scored"},
        _HEAD_TO_HEAD,
        _LOTTERY,
    ],
}


def _ordered(*types):
    return [{"type": rule_type, "order": index} for index, rule_type in enumerate(types, start=1)]


DEFAULT_TIE_BREAKING_RULES: Dict[str, List[Dict]] = {
    "pk_championship": _ordered("points", "goal_difference", "goals_for", "head_to_head", "lottery"),
    "soccer": _ordered("points", "goal_difference", "goals_for", "head_to_head", "lottery"),
    "baseball": _ordered("win_rate", "run_difference", "runs_scored", "head_to_head", "lottery"),
    "track_and_field": _ordered("best_time", "points", "win_count", "podium_count", "lottery"),
    "basketball": _ordered("win_rate", "point_difference", "points_scored", "head_to_head", "lottery"),
}


def get_available_rules(sport_code: str) -> List[Dict]:
    return SPORT_TIE_BREAKING_RULES.get(sport_code) or SPORT_TIE_BREAKING_RULES["pk_championship"]


def get_default_rules(sport_code: str) -> List[Dict]:
    rules = DEFAULT_TIE_BREAKING_RULES.get(sport_code) or DEFAULT_TIE_BREAKING_RULES["pk_championship"]
    return [dict(rule) for rule in rules]


def validate_tie_breaking_rules(rules, sport_code: str) -> Tuple[bool, List[str]]:
    """
    Validate an ordered rule list for a sport.

    Returns:
        (is_valid, errors)
    """
    errors = []
    if not isinstance(rules, list) or not rules:
        return False, ["No tie-breaking rules configured"]

    if len(rules) > MAX_TIE_BREAKING_RULES:
        errors.append(f"At most {MAX_TIE_BREAKING_RULES} tie-breaking rules are allowed")

    types = [rule.get("type") if isinstance(rule, dict) else None for rule in rules]
    if len(types) != len(set(types)):
        errors.append("The same rule type cannot be used more than once")

    available = {rule["type"] for rule in get_available_rules(sport_code)}
    for rule_type in types:
        if rule_type not in available:
            errors.append(f"'{rule_type}' is not available for {sport_code}")

    try:
        orders = sorted(int(rule.get("order")) for rule in rules)
    except (AttributeError, TypeError, ValueError):
        orders = []
    if orders != list(range(1, len(rules) + 1)):
        errors.append("Rule order must run consecutively from 1")

    return not errors, errors


def parse_tie_breaking_rules(value) -> List[Dict]:
    """Normalize stored rules (list or JSON text) sorted by order; [] when unusable"""
    if not value:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, list):
        return []
    try:
        rules = [{"type": str(rule["type"]), "order": int(rule["order"])} for rule in value]
    except (KeyError, TypeError, ValueError):
        return []
    return sorted(rules, key=lambda r: r["order"])


def stringify_tie_breaking_rules(rules: List[Dict]) -> str:
    return json.dumps(sorted(rules, key=lambda r: r["order"]))


def requires_lottery(rules: List[Dict]) -> bool:
    """True when the last rule in order is a lottery"""
    if not rules:
        return False
    return max(rules, key=lambda r: r["order"])["type"] == "lottery"


def get_rule_label(rule_type: str, sport_code: str) -> str:
    for rule in get_available_rules(sport_code):
        if rule["type"] == rule_type:
            return rule["label"]
    return rule_type


def get_rule_description(rule_type: str, sport_code: str) -> str:
    for rule in get_available_rules(sport_code):
        if rule["type"] == rule_type:
            return rule["description"]
    return ""


# ============================================================================
# ENGINE
# ============================================================================


def _stats_key(team: Dict):
    return (team["points"], team["goal_difference"], team["goals_for"])


def _is_unique(values: List) -> bool:
    return len(values) <= 1 or len(set(values)) == len(values)


class TieBreakingEngine:
    """
    Applies ordered tie-breaking rules to teams that finish level on
    points, goal difference and goals for.

    Each calculator returns (sorted_teams, resolved, key); a rule resolves a
    group when every team gets a distinct value. Lottery never resolves, so
    an unresolved group is reported in lotteries_required for a manual
    ranking.
    """

    def __init__(self, sport_code: str):
        self.sport_code = sport_code
        self.calculators: Dict[str, Callable] = {
            "points": self._by_points,
            "head_to_head": self._by_head_to_head,
            "lottery": self._by_lottery,
        }
        if sport_code in ("soccer", "pk_championship"):
            self.calculators.update(
                goal_difference=self._by_goal_difference,
                goals_for=self._by_goals_for,
                fair_play=self._by_fair_play,
            )
        elif sport_code == "baseball":
            self.calculators.update(
                win_rate=self._by_win_rate,
                win_count=self._by_win_count,
                run_difference=self._by_goal_difference,
                runs_scored=self._by_goals_for,
            )
        elif sport_code == "track_and_field":
            self.calculators.update(
                best_time=self._by_best_time,
                win_count=self._by_win_count,
                podium_count=self._by_podium_count,
            )
        elif sport_code == "basketball":
            self.calculators.update(
                win_rate=self._by_win_rate,
                point_difference=self._by_goal_difference,
                points_scored=self._by_goals_for,
            )

    def calculate(self, teams: List[Dict], matches: List[Dict], rules: List[Dict]) -> Dict:
        """
        Rank teams applying the tie-breaking rules.

        Args:
            teams: standings rows (team_id, team_name, points, wins, draws,
                losses, matches_played, goals_for, goals_against,
                goal_difference, optional best_time / fair_play_points)
            matches: confirmed matches (team1_id, team2_id, team1_goals,
                team2_goals, winner_team_id, is_draw)
            rules: [{"type": ..., "order": ...}]

        Returns:
            Dict with teams (positions assigned), tie_breaking_applied,
            lotteries_required (comma joined team ids per group),
            calculations and requires_manual_ranking
        """
        ordered_rules = sorted(rules or [], key=lambda r: r["order"])
        basic_sorted = sorted(
            teams, key=lambda t: (-t["points"], -t["goal_difference"], -t["goals_for"], t["team_name"])
        )

        calculations = []
        lotteries_required = []
        tie_breaking_applied = False
        ranked = []

        for start_position, group in self._group_by_statistics(basic_sorted):
            if len(group) == 1:
                ranked.append(dict(group[0], position=start_position))
                continue

            group_teams = list(group)
            team_ids = [t["team_id"] for t in group]
            resolved = False
            last_key = None

            for rule in ordered_rules:
                calculator = self.calculators.get(rule["type"])
                if calculator is None:
                    continue
                group_teams, resolved, key = calculator(group_teams, matches)
                if key is not None:
                    last_key = key
                calculations.append(
                    {
                        "rule_type": rule["type"],
                        "teams_affected": team_ids,
                        "description": f"Ranked by {get_rule_label(rule['type'], self.sport_code)}"
                        f" ({len(group)} teams)",
                        "result": "resolved" if resolved else "unresolved",
                    }
                )
                if resolved:
                    tie_breaking_applied = True
                    break

            if resolved:
                for offset, team in enumerate(group_teams):
                    ranked.append(dict(team, position=start_position + offset))
                continue

            lotteries_required.append(",".join(str(t["team_id"]) for t in group_teams))
            calculations.append(
                {
                    "rule_type": "lottery",
                    "teams_affected": [t["team_id"] for t in group_teams],
                    "description": "A lottery is required to separate these teams",
                    "result": "lottery_required",
                }
            )
            ranked.extend(self._shared_positions(group_teams, start_position, last_key))

        ranked.sort(key=lambda t: t["position"])
        return {
            "teams": ranked,
            "tie_breaking_applied": tie_breaking_applied,
            "lotteries_required": lotteries_required,
            "calculations": calculations,
            "requires_manual_ranking": bool(lotteries_required),
        }

    # ------------------------------------------------------------------ helpers

    @staticmethod
    def _group_by_statistics(teams: List[Dict]):
        groups = []
        position = 1
        index = 0
        while index < len(teams):
            group = [teams[index]]
            while index + len(group) < len(teams) and _stats_key(teams[index + len(group)]) == _stats_key(teams[index]):
                group.append(teams[index + len(group)])
            groups.append((position, group))
            position += len(group)
            index += len(group)
        return groups

    @staticmethod
    def _shared_positions(teams: List[Dict], start_position: int, key: Optional[Callable]) -> List[Dict]:
        """Teams separated by the last rule keep their order, level teams share a position"""
        if key is None:
            return [dict(team, position=start_position) for team in teams]
        result = []
        position = start_position
        for offset, team in enumerate(teams):
            if offset and key(team) != key(teams[offset - 1]):
                position = start_position + offset
            result.append(dict(team, position=position))
        return result

    @staticmethod
    def _sort_desc(teams: List[Dict], key: Callable):
        ordered = sorted(teams, key=key, reverse=True)
        return ordered, _is_unique([key(t) for t in ordered]), key

    # -------------------------------------------------------------- calculators

    def _by_points(self, teams, matches):
        return self._sort_desc(teams, lambda t: t["points"])

    def _by_goal_difference(self, teams, matches):
        return self._sort_desc(teams, lambda t: t["goal_difference"])

    def _by_goals_for(self, teams, matches):
        return self._sort_desc(teams, lambda t: t["goals_for"])

    def _by_win_rate(self, teams, matches):
        rated = [dict(t, win_rate=(t["wins"] / t["matches_played"]) if t["matches_played"] else 0) for t in teams]
        return self._sort_desc(rated, lambda t: t["win_rate"])

    def _by_win_count(self, teams, matches):
        return self._sort_desc(teams, lambda t: t["wins"])

    def _by_podium_count(self, teams, matches):
        # No per-event placings are recorded, wins stand in for podiums
        return self._sort_desc(teams, lambda t: t["wins"])

    def _by_fair_play(self, teams, matches):
        ordered = sorted(teams, key=lambda t: t.get("fair_play_points") or 0)
        values = [t.get("fair_play_points") or 0 for t in ordered]
        return ordered, _is_unique(values), lambda t: t.get("fair_play_points") or 0

    def _by_best_time(self, teams, matches):
        with_time = sorted((t for t in teams if (t.get("best_time") or 0) > 0), key=lambda t: t["best_time"])
        without_time = [t for t in teams if (t.get("best_time") or 0) <= 0]
        resolved = _is_unique([t["best_time"] for t in with_time]) and len(without_time) <= 1
        return with_time + without_time, resolved, lambda t: t.get("best_time") or 0

    def _by_head_to_head(self, teams, matches):
        if len(teams) != 2:
            return teams, False, None

        first, second = teams
        ids = {first["team_id"], second["team_id"]}
        direct = [m for m in matches if {m["team1_id"], m["team2_id"]} == ids]
        if not direct:
            return teams, False, None

        first_points = 0
        second_points = 0
        first_goals = 0
        second_goals = 0
        for match in direct:
            if match["is_draw"]:
                first_points += 1
                second_points += 1
            elif match["winner_team_id"] == first["team_id"]:
                first_points += 3
            elif match["winner_team_id"] == second["team_id"]:
                second_points += 3
            if match["team1_id"] == first["team_id"]:
                first_goals += match["team1_goals"]
                second_goals += match["team2_goals"]
            else:
                first_goals += match["team2_goals"]
                second_goals += match["team1_goals"]

        if first_points != second_points:
            return (teams if first_points > second_points else [second, first]), True, None
        if first_goals != second_goals:
            return (teams if first_goals > second_goals else [second, first]), True, None
        return teams, False, None

    def _by_lottery(self, teams, matches):
        return teams, False, None

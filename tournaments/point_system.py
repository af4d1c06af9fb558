"""
Match point system resolution (points for a win, draw and loss)
"""
import logging
from typing import Dict

from .models import Tournament

logger = logging.getLogger(__name__)

DEFAULT_POINT_SYSTEM = {"win": 3, "draw": 1, "loss": 0}
WIN_RATE_POINT_SYSTEM = {"win": 1, "draw": 0.5, "loss": 0}
TIME_POINT_SYSTEM = {"win": 0, "draw": 0, "loss": 0}


def _number(value, fallback):
    if value is None or value == "":
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return int(number) if number.is_integer() else number


def _legacy_point_system(tournament: Tournament) -> Dict:
    return {
        "win": _number(tournament.win_points, DEFAULT_POINT_SYSTEM["win"]),
        "draw": _number(tournament.draw_points, DEFAULT_POINT_SYSTEM["draw"]),
        "loss": _number(tournament.loss_points, DEFAULT_POINT_SYSTEM["loss"]),
    }


def get_point_system_info(tournament: Tournament) -> Dict:
    """
    Resolve the point system and where it came from.

    Order: the preliminary rule's point_system (sports with a point system),
    the sport's ranking method (win rate / time sports), then the
    tournament's own win/draw/loss points.

    Returns:
        Dict with point_system, source ("rules" | "sport" | "legacy"),
        supports_point_system and ranking_method
    """
    sport = tournament.sport_type or tournament.format.sport_type
    supports_point_system = sport.supports_point_system if sport else True
    ranking_method = sport.ranking_method if sport else "points"

    rule = tournament.get_rule("preliminary")
    if rule is not None and sport is not None:
        if supports_point_system and rule.point_system:
            configured = rule.point_system
            if isinstance(configured, dict):
                point_system = {
                    key: _number(configured.get(key), DEFAULT_POINT_SYSTEM[key]) for key in DEFAULT_POINT_SYSTEM
                }
                return {
                    "point_system": point_system,
                    "source": "rules",
                    "supports_point_system": supports_point_system,
                    "ranking_method": ranking_method,
                }
            logger.warning(f"Ignoring malformed point_system on rule {rule.id}: {configured!r}")

        if not supports_point_system:
            sport_systems = {"win_rate": WIN_RATE_POINT_SYSTEM, "time": TIME_POINT_SYSTEM}
            if ranking_method in sport_systems:
                return {
                    "point_system": dict(sport_systems[ranking_method]),
                    "source": "sport",
                    "supports_point_system": supports_point_system,
                    "ranking_method": ranking_method,
                }

    return {
        "point_system": _legacy_point_system(tournament),
        "source": "legacy",
        "supports_point_system": supports_point_system,
        "ranking_method": ranking_method,
    }


def get_point_system(tournament: Tournament) -> Dict:
    return get_point_system_info(tournament)["point_system"]

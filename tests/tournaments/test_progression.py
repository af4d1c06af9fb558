"""
Test cases for knockout progression and template based final rankings
"""
import pytest

from tests.factories import TournamentFactory
from tournaments.models import MatchTemplate
from tournaments.progression import get_progression_targets, recalculate_all_progression
from tournaments.services import MatchResultService
from tournaments.standings import calculate_template_based_rankings, get_ranking_block, recalculate_all_rankings


@pytest.fixture
def semi_finals_ready(drawn_tournament, play_block):
    """Both blocks played: SF1 is A1st vs B2nd, SF2 is B1st vs A2nd"""
    play_block(drawn_tournament, "A")
    play_block(drawn_tournament, "B")
    return drawn_tournament


@pytest.mark.django_db
def test_progression_targets(league_format):
    tournament = TournamentFactory(format=league_format)

    targets = get_progression_targets(tournament, "SF1", "final")

    assert targets["winner"] == [{"match_code": "F1", "slot": "team1"}]
    assert targets["loser"] == [{"match_code": "T1", "slot": "team1"}]


@pytest.mark.django_db
def test_semi_final_results_fill_final_and_third_place(semi_finals_ready, entries, play, match_by_code):
    play(match_by_code(semi_finals_ready, "SF1"), [2], [1])
    play(match_by_code(semi_finals_ready, "SF2"), [0], [3])

    final = match_by_code(semi_finals_ready, "F1")
    third_place = match_by_code(semi_finals_ready, "T1")
    assert (final.team1_id, final.team2_id) == (entries[0].id, entries[1].id)
    assert (third_place.team1_id, third_place.team2_id) == (entries[5].id, entries[4].id)
    assert final.team1_display_name == entries[0].display_name


@pytest.mark.django_db
def test_draw_advances_nobody(semi_finals_ready, play, match_by_code):
    play(match_by_code(semi_finals_ready, "SF1"), [1], [1])

    assert match_by_code(semi_finals_ready, "F1").team1_id is None


@pytest.mark.django_db
def test_full_bracket_rankings_and_completion(semi_finals_ready, entries, play, match_by_code):
    """Test final places come from the templates and the tournament completes"""
    play(match_by_code(semi_finals_ready, "SF1"), [2], [1])
    play(match_by_code(semi_finals_ready, "SF2"), [1], [0])
    play(match_by_code(semi_finals_ready, "T1"), [1], [0])
    play(match_by_code(semi_finals_ready, "F1"), [0], [2])

    ranking_block = get_ranking_block(semi_finals_ready, "final")
    ranking_block.refresh_from_db()
    positions = {row["tournament_team_id"]: row["position"] for row in ranking_block.team_rankings}
    assert positions == {entries[4].id: 1, entries[0].id: 2, entries[5].id: 3, entries[1].id: 4}

    calculated = calculate_template_based_rankings(semi_finals_ready, "final")
    assert [row["position"] for row in calculated] == [1, 2, 3, 4]

    semi_finals_ready.refresh_from_db()
    assert semi_finals_ready.status == "completed"


@pytest.mark.django_db
def test_undecided_teams_rank_last(semi_finals_ready, entries, play, match_by_code):
    play(match_by_code(semi_finals_ready, "SF1"), [2], [1])

    rankings = calculate_template_based_rankings(semi_finals_ready, "final")

    assert all(row["position"] == 0 for row in rankings)
    assert len(rankings) == 4


@pytest.mark.django_db
def test_filled_slot_is_not_replaced(semi_finals_ready, entries, play, match_by_code):
    """Test a slot set by hand keeps its team when progression runs again"""
    semi_final = play(match_by_code(semi_finals_ready, "SF1"), [2], [1])
    final = match_by_code(semi_finals_ready, "F1")
    final.team1 = entries[7]
    final.team1_display_name = entries[7].display_name
    final.save()

    recalculate_all_progression(semi_finals_ready)

    final.refresh_from_db()
    assert final.team1_id == entries[7].id
    assert semi_final.winner_id == entries[0].id


@pytest.mark.django_db
def test_unconfirm_recomputes_final_rankings(semi_finals_ready, entries, play, match_by_code):
    play(match_by_code(semi_finals_ready, "SF1"), [2], [1])
    play(match_by_code(semi_finals_ready, "SF2"), [1], [0])
    final = play(match_by_code(semi_finals_ready, "F1"), [1], [0])

    MatchResultService.unconfirm_match(final)

    ranking_block = get_ranking_block(semi_finals_ready, "final")
    ranking_block.refresh_from_db()
    assert all(row["position"] == 0 for row in ranking_block.team_rankings)


def _final_positions(tournament):
    ranking_block = get_ranking_block(tournament, "final")
    ranking_block.refresh_from_db()
    return {row["tournament_team_id"]: row["position"] for row in ranking_block.team_rankings}


@pytest.mark.django_db
def test_recalculation_mid_bracket_leaves_open_places_undecided(semi_finals_ready, entries, play, match_by_code):
    """Test a recalculation between the semi-finals and the final does not guess the final places"""
    MatchTemplate.objects.filter(format=semi_finals_ready.format, match_code__in=["SF1", "SF2"]).update(
        loser_position_start=3
    )
    play(match_by_code(semi_finals_ready, "SF1"), [2], [1])
    play(match_by_code(semi_finals_ready, "SF2"), [1], [0])

    recalculate_all_rankings(semi_finals_ready)

    assert _final_positions(semi_finals_ready) == {
        entries[0].id: 0,
        entries[4].id: 0,
        entries[5].id: 3,
        entries[1].id: 3,
    }

    play(match_by_code(semi_finals_ready, "F1"), [0], [2])

    positions = _final_positions(semi_finals_ready)
    assert positions[entries[4].id] == 1
    assert positions[entries[0].id] == 2


@pytest.mark.django_db
def test_unconfirm_third_place_match_keeps_final_places(semi_finals_ready, entries, play, match_by_code):
    play(match_by_code(semi_finals_ready, "SF1"), [2], [1])
    play(match_by_code(semi_finals_ready, "SF2"), [1], [0])
    third_place = play(match_by_code(semi_finals_ready, "T1"), [1], [0])
    play(match_by_code(semi_finals_ready, "F1"), [0], [2])

    MatchResultService.unconfirm_match(third_place)

    assert _final_positions(semi_finals_ready) == {
        entries[4].id: 1,
        entries[0].id: 2,
        entries[5].id: 0,
        entries[1].id: 0,
    }

    MatchResultService.confirm_match(match_by_code(semi_finals_ready, "T1"), confirmed_by="admin@test.com")

    positions = _final_positions(semi_finals_ready)
    assert (positions[entries[5].id], positions[entries[1].id]) == (3, 4)

"""
Test cases for the tournament, rules, draw, ranking and match endpoints
"""
from django.core.management import CommandError, call_command
from django.db import connection
from django.test.utils import CaptureQueriesContext

import pytest
from rest_framework import status

from tests.factories import TournamentFactory, TournamentFormatFactory, TournamentTeamFactory, create_league_templates
from tournaments.models import Match, MatchOverride, Tournament


def _draw_payload(entries):
    return {
        "blocks": [
            {
                "block_name": "A",
                "teams": [{"tournament_team_id": e.id, "block_position": i + 1} for i, e in enumerate(entries[:4])],
            },
            {
                "block_name": "B",
                "teams": [{"tournament_team_id": e.id, "block_position": i + 1} for i, e in enumerate(entries[4:])],
            },
        ]
    }


# ============================================================================
# TOURNAMENTS
# ============================================================================


@pytest.mark.django_db
def test_public_list_hides_preparing_tournaments(api_client, league_format):
    TournamentFactory(format=league_format, name="Open Cup")
    TournamentFactory(format=league_format, name="Secret Cup", visibility="preparing")

    response = api_client.get("/api/tournaments/")

    assert response.status_code == status.HTTP_200_OK
    assert [t["name"] for t in response.data] == ["Open Cup"]
    assert response.data[0]["calculated_status"] == "recruiting"
    assert response.data[0]["sport_code"] == "pk_championship"


@pytest.mark.django_db
def test_admin_list_shows_everything(admin_client, league_format):
    TournamentFactory(format=league_format)
    TournamentFactory(format=league_format, visibility="preparing")

    response = admin_client.get("/api/tournaments/")

    assert len(response.data) == 2


@pytest.mark.django_db
def test_list_counts_come_from_annotations(admin_client, drawn_tournament, match_by_code):
    TournamentTeamFactory(tournament=drawn_tournament, participation_status="waitlisted")
    Match.objects.filter(pk=match_by_code(drawn_tournament, "A1").pk).update(match_status="ongoing")

    response = admin_client.get("/api/tournaments/")

    row = response.data[0]
    assert row["registered_teams"] == 8
    assert row["calculated_status"] == "ongoing"


@pytest.mark.django_db
def test_list_query_count_does_not_grow_per_tournament(admin_client, league_format):
    TournamentFactory(format=league_format)

    with CaptureQueriesContext(connection) as single:
        admin_client.get("/api/tournaments/")

    for _ in range(4):
        TournamentTeamFactory(tournament=TournamentFactory(format=league_format))

    with CaptureQueriesContext(connection) as several:
        response = admin_client.get("/api/tournaments/")

    assert len(response.data) == 5
    assert len(several) == len(single)


@pytest.mark.django_db
def test_admin_creates_tournament_with_matches(admin_client, league_format, pk_sport):
    data = {
        "name": "Spring Cup",
        "format": league_format.id,
        "sport_type": pk_sport.id,
        "team_count": 8,
        "court_count": 2,
        "tournament_dates": {"1": "2026-11-20"},
        "start_time": "09:00",
        "visibility": "open",
    }

    response = admin_client.post("/api/tournaments/create/", data, format="json")

    assert response.status_code == status.HTTP_201_CREATED
    assert response.data["match_count"] == 16
    tournament = Tournament.objects.get(name="Spring Cup")
    assert tournament.created_by.email == "admin@test.com"
    assert sorted(tournament.rules.values_list("phase", flat=True)) == ["final", "preliminary"]
    assert Match.objects.filter(block__tournament=tournament).count() == 16


@pytest.mark.django_db
def test_create_rejects_bad_input(admin_client, league_format):
    data = {
        "name": "Broken Cup",
        "format": league_format.id,
        "team_count": 8,
        "start_time": "9am",
        "tournament_dates": {"first": "2026-11-20"},
    }

    response = admin_client.post("/api/tournaments/create/", data, format="json")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "start_time" in response.data
    assert "tournament_dates" in response.data


@pytest.mark.django_db
def test_create_with_empty_format_rolls_back(admin_client):
    data = {"name": "Empty Cup", "format": TournamentFormatFactory().id, "team_count": 4}

    response = admin_client.post("/api/tournaments/create/", data, format="json")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "no match templates" in response.data["error"]
    assert not Tournament.objects.filter(name="Empty Cup").exists()


@pytest.mark.django_db
def test_team_cannot_create_tournament(team_client, league_format):
    response = team_client.post("/api/tournaments/create/", {"name": "Nope", "format": league_format.id}, format="json")

    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
def test_preparing_tournament_detail_is_admin_only(anonymous_client, admin_client, league_format):
    tournament = TournamentFactory(format=league_format, visibility="preparing")

    assert anonymous_client.get(f"/api/tournaments/{tournament.id}/").status_code == status.HTTP_404_NOT_FOUND
    admin_response = admin_client.get(f"/api/tournaments/{tournament.id}/")
    assert admin_response.status_code == status.HTTP_200_OK
    assert admin_response.data["tournament_period"] == tournament.tournament_dates["1"]


@pytest.mark.django_db
def test_format_locked_after_confirmed_result(admin_client, drawn_tournament, play, match_by_code):
    play(match_by_code(drawn_tournament, "A1"), [1], [0])
    other_format = TournamentFormatFactory()

    response = admin_client.patch(
        f"/api/tournaments/{drawn_tournament.id}/manage/", {"format": other_format.id}, format="json"
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "format cannot be changed" in response.data["error"]


@pytest.mark.django_db
def test_format_change_rebuilds_blocks_and_matches(admin_client, drawn_tournament, pk_sport):
    """Test switching format replaces the old blocks, matches, overrides and draw"""
    single_block = TournamentFormatFactory(sport_type=pk_sport, target_team_count=4)
    create_league_templates(single_block, block_names=("Z",))
    MatchOverride.objects.create(tournament=drawn_tournament, match_code="SF1", team1_source_override="A_2")

    response = admin_client.patch(
        f"/api/tournaments/{drawn_tournament.id}/manage/", {"format": single_block.id}, format="json"
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.data["match_count"] == 6
    codes = Match.objects.filter(block__tournament=drawn_tournament).values_list("match_code", flat=True)
    assert sorted(codes) == ["Z1", "Z2", "Z3", "Z4", "Z5", "Z6"]
    assert list(drawn_tournament.blocks.values_list("block_name", flat=True)) == ["Z"]
    assert not MatchOverride.objects.filter(tournament=drawn_tournament).exists()
    assert not drawn_tournament.teams.filter(assigned_block__isnull=False).exists()


@pytest.mark.django_db
def test_format_change_to_empty_format_keeps_old_matches(admin_client, drawn_tournament, league_format):
    response = admin_client.patch(
        f"/api/tournaments/{drawn_tournament.id}/manage/", {"format": TournamentFormatFactory().id}, format="json"
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "no match templates" in response.data["error"]
    drawn_tournament.refresh_from_db()
    assert drawn_tournament.format_id == league_format.id
    assert Match.objects.filter(block__tournament=drawn_tournament).count() == 16


@pytest.mark.django_db
def test_format_change_rejected_once_ongoing(admin_client, tournament, pk_sport):
    Tournament.objects.filter(pk=tournament.pk).update(status="ongoing")
    other_format = TournamentFormatFactory(sport_type=pk_sport)
    create_league_templates(other_format, block_names=("Z",))

    url = f"/api/tournaments/{tournament.id}/manage/"
    response = admin_client.patch(url, {"format": other_format.id}, format="json")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "ongoing" in response.data["error"]
    assert Match.objects.filter(block__tournament=tournament).count() == 16


@pytest.mark.django_db
def test_preparing_tournament_data_is_hidden_from_public(
    anonymous_client, admin_client, drawn_tournament, match_by_code
):
    Tournament.objects.filter(pk=drawn_tournament.pk).update(visibility="preparing")
    match = match_by_code(drawn_tournament, "A1")

    for suffix in ("status/", "standings/", "rules/", "matches/", "teams/"):
        url = f"/api/tournaments/{drawn_tournament.id}/{suffix}"
        assert anonymous_client.get(url).status_code == status.HTTP_404_NOT_FOUND, url
        assert admin_client.get(url).status_code == status.HTTP_200_OK, url

    assert anonymous_client.get(f"/api/tournaments/matches/{match.id}/").status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
def test_status_endpoint(api_client, tournament):
    response = api_client.get(f"/api/tournaments/{tournament.id}/status/")

    assert response.status_code == status.HTTP_200_OK
    assert response.data["stored_status"] == "planning"
    assert response.data["calculated_status"] == "recruiting"
    assert response.data["status_label"] == "Recruiting"


@pytest.mark.django_db
def test_unknown_tournament_returns_404(api_client):
    assert api_client.get("/api/tournaments/999999/status/").status_code == status.HTTP_404_NOT_FOUND
    assert api_client.get("/api/tournaments/999999/matches/").status_code == status.HTTP_404_NOT_FOUND


# ============================================================================
# SCHEDULE
# ============================================================================


@pytest.mark.django_db
def test_schedule_preview(admin_client, league_format):
    data = {
        "format_id": league_format.id,
        "court_count": 2,
        "match_duration_minutes": 15,
        "break_duration_minutes": 5,
        "start_time": "09:00",
        "tournament_dates": {"1": "2026-11-20"},
    }

    response = admin_client.post("/api/tournaments/schedule-preview/", data, format="json")

    assert response.status_code == status.HTTP_200_OK
    assert response.data["total_matches"] == 16
    first = response.data["days"][0]["matches"][0]
    assert "template" not in first
    assert first["phase"] == "preliminary"
    assert first["start_time"] == "09:00"


@pytest.mark.django_db
def test_schedule_preview_unknown_format(admin_client):
    data = {
        "format_id": 999999,
        "court_count": 1,
        "match_duration_minutes": 15,
        "break_duration_minutes": 5,
        "start_time": "09:00",
        "tournament_dates": {"1": "2026-11-20"},
    }

    response = admin_client.post("/api/tournaments/schedule-preview/", data, format="json")

    assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
def test_tournament_schedule(admin_client, tournament):
    response = admin_client.get(f"/api/tournaments/{tournament.id}/schedule/")

    assert response.status_code == status.HTTP_200_OK
    assert response.data["feasible"] is True


# ============================================================================
# RULES
# ============================================================================


@pytest.mark.django_db
def test_get_rules(api_client, tournament):
    response = api_client.get(f"/api/tournaments/{tournament.id}/rules/")

    assert response.status_code == status.HTTP_200_OK
    assert len(response.data["rules"]) == 2
    assert response.data["sport_code"] == "pk_championship"
    assert response.data["default_tie_breaking_rules"][0] == {"type": "points", "order": 1}
    assert response.data["point_system"]["source"] == "legacy"


@pytest.mark.django_db
def test_update_point_system(admin_client, tournament):
    response = admin_client.put(
        f"/api/tournaments/{tournament.id}/rules/preliminary/",
        {"point_system": {"win": 2, "draw": 1, "loss": 0}},
        format="json",
    )

    assert response.status_code == status.HTTP_200_OK
    assert tournament.get_rule("preliminary").point_system == {"win": 2, "draw": 1, "loss": 0}
    info = admin_client.get(f"/api/tournaments/{tournament.id}/rules/").data["point_system"]
    assert info["source"] == "rules"


@pytest.mark.django_db
def test_rule_update_validation(admin_client, tournament):
    url = f"/api/tournaments/{tournament.id}/rules/preliminary/"

    bad_points = admin_client.put(url, {"point_system": {"win": "three"}}, format="json")
    assert bad_points.status_code == status.HTTP_400_BAD_REQUEST

    bad_rules = admin_client.put(
        url,
        {"tie_breaking_enabled": True, "tie_breaking_rules": [{"type": "run_difference", "order": 1}]},
        format="json",
    )
    assert bad_rules.status_code == status.HTTP_400_BAD_REQUEST
    assert "tie_breaking_rules" in bad_rules.data

    bad_phase = admin_client.put(f"/api/tournaments/{tournament.id}/rules/semi/", {}, format="json")
    assert bad_phase.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
def test_soccer_period_validation(admin_client, soccer_sport, league_format):
    tournament = TournamentFactory(format=league_format, sport_type=soccer_sport)
    url = f"/api/tournaments/{tournament.id}/rules/final/"

    invalid = admin_client.put(url, {"active_periods": ["1", "3"]}, format="json")
    valid = admin_client.put(url, {"active_periods": [1, 2, 5]}, format="json")

    assert invalid.status_code == status.HTTP_400_BAD_REQUEST
    assert valid.status_code == status.HTTP_200_OK
    assert valid.data["rule"]["active_periods"] == ["1", "2", "5"]


# ============================================================================
# DRAW, STANDINGS AND RANKINGS
# ============================================================================


@pytest.mark.django_db
def test_save_and_read_draw(admin_client, tournament, entries):
    response = admin_client.put(f"/api/tournaments/{tournament.id}/draw/", _draw_payload(entries), format="json")

    assert response.status_code == status.HTTP_200_OK
    assert response.data["assigned_teams"] == 8
    assert response.data["filled_matches"] == 12

    draw = admin_client.get(f"/api/tournaments/{tournament.id}/draw/").data
    assert [block["block_name"] for block in draw["blocks"]] == ["A", "B"]


@pytest.mark.django_db
def test_draw_rejects_duplicate_positions(admin_client, tournament, entries):
    payload = _draw_payload(entries)
    payload["blocks"][0]["teams"][1]["block_position"] = 1

    response = admin_client.put(f"/api/tournaments/{tournament.id}/draw/", payload, format="json")

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
def test_draw_is_admin_only(team_client, tournament):
    assert team_client.get(f"/api/tournaments/{tournament.id}/draw/").status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
def test_standings_endpoint(api_client, drawn_tournament, play_block):
    play_block(drawn_tournament, "A")

    response = api_client.get(f"/api/tournaments/{drawn_tournament.id}/standings/")

    assert response.status_code == status.HTTP_200_OK
    blocks = {row["block_name"]: row for row in response.data["standings"]}
    assert set(blocks) == {"A", "B", "final_unified"}
    assert [team["position"] for team in blocks["A"]["teams"]] == [1, 2, 3, 4]
    assert response.data["point_system"]["point_system"] == {"win": 3, "draw": 1, "loss": 0}


@pytest.mark.django_db
def test_manual_rankings(admin_client, drawn_tournament, play_block):
    play_block(drawn_tournament, "A")
    url = f"/api/tournaments/{drawn_tournament.id}/manual-rankings/"
    block = next(b for b in admin_client.get(url).data["blocks"] if b["block_name"] == "A")
    rows = block["team_rankings"]
    swapped = [dict(rows[1], position=1), dict(rows[0], position=2)] + rows[2:]

    response = admin_client.put(
        url,
        {"blocks": [{"match_block_id": block["match_block_id"], "team_rankings": swapped, "remarks": "Lottery"}]},
        format="json",
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.data["updated_blocks"] == 1
    stored = drawn_tournament.blocks.get(pk=block["match_block_id"])
    assert stored.team_rankings[0]["tournament_team_id"] == rows[1]["tournament_team_id"]
    assert stored.remarks == "Lottery"


@pytest.mark.django_db
def test_manual_rankings_reject_positions_out_of_range(admin_client, drawn_tournament, play_block):
    play_block(drawn_tournament, "A")
    url = f"/api/tournaments/{drawn_tournament.id}/manual-rankings/"
    block = next(b for b in admin_client.get(url).data["blocks"] if b["block_name"] == "A")
    rows = [dict(row, position=5) if i == 0 else row for i, row in enumerate(block["team_rankings"])]

    response = admin_client.put(
        url, {"blocks": [{"match_block_id": block["match_block_id"], "team_rankings": rows}]}, format="json"
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "Invalid positions" in response.data["error"]


@pytest.mark.django_db
def test_promotion_status_and_run(admin_client, drawn_tournament, play_block):
    play_block(drawn_tournament, "A")
    url = f"/api/tournaments/{drawn_tournament.id}/promotion/"

    status_data = admin_client.get(url).data
    blocks = {block["block_name"]: block for block in status_data["blocks"]}
    assert blocks["A"]["is_complete"] is True
    assert blocks["B"]["is_complete"] is False
    assert status_data["all_blocks_complete"] is False

    response = admin_client.post(url)
    assert response.status_code == status.HTTP_200_OK
    assert "updated_matches" in response.data


# ============================================================================
# MATCHES
# ============================================================================


@pytest.mark.django_db
def test_match_list_filters(api_client, drawn_tournament):
    url = f"/api/tournaments/{drawn_tournament.id}/matches/"

    assert len(api_client.get(url).data) == 16
    assert len(api_client.get(url, {"block": "A"}).data) == 6
    assert len(api_client.get(url, {"phase": "final"}).data) == 4


@pytest.mark.django_db
def test_score_confirm_unconfirm_flow(admin_client, drawn_tournament, entries, match_by_code):
    match = match_by_code(drawn_tournament, "A1")
    base = f"/api/tournaments/matches/{match.id}"

    scores = admin_client.put(f"{base}/scores/", {"team1_scores": [2], "team2_scores": [0]}, format="json")
    assert scores.status_code == status.HTTP_200_OK
    assert scores.data["match"]["result_status"] == "pending"
    assert scores.data["match"]["score_display"] == "2 : 0"

    confirm = admin_client.post(f"{base}/confirm/")
    assert confirm.status_code == status.HTTP_200_OK
    assert confirm.data["match"]["is_confirmed"] is True
    assert confirm.data["match"]["winner"] == entries[0].id

    assert admin_client.post(f"{base}/confirm/").status_code == status.HTTP_400_BAD_REQUEST

    unconfirm = admin_client.post(f"{base}/unconfirm/")
    assert unconfirm.status_code == status.HTTP_200_OK
    assert unconfirm.data["match"]["is_confirmed"] is False


@pytest.mark.django_db
def test_score_entry_validation(admin_client, drawn_tournament, match_by_code):
    match = match_by_code(drawn_tournament, "A1")

    response = admin_client.put(
        f"/api/tournaments/matches/{match.id}/scores/", {"team1_scores": [-1], "team2_scores": [0]}, format="json"
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
def test_cancel_and_uncancel(admin_client, drawn_tournament, entries, match_by_code):
    match = match_by_code(drawn_tournament, "A2")
    base = f"/api/tournaments/matches/{match.id}"

    invalid = admin_client.post(f"{base}/cancel/", {"cancellation_type": "rain"}, format="json")
    assert invalid.status_code == status.HTTP_400_BAD_REQUEST

    cancel = admin_client.post(f"{base}/cancel/", {"cancellation_type": "no_show_team1"}, format="json")
    assert cancel.status_code == status.HTTP_200_OK
    assert cancel.data["match"]["match_status"] == "cancelled"
    assert cancel.data["match"]["winner"] == match.team2_id

    uncancel = admin_client.post(f"{base}/uncancel/")
    assert uncancel.status_code == status.HTTP_200_OK
    assert uncancel.data["previous_cancellation_type"] == "no_show_team1"
    assert uncancel.data["match"]["match_status"] == "scheduled"


@pytest.mark.django_db
def test_match_writes_are_admin_only(team_client, anonymous_client, drawn_tournament, match_by_code):
    match = match_by_code(drawn_tournament, "A1")

    response = team_client.put(
        f"/api/tournaments/matches/{match.id}/scores/", {"team1_scores": [1], "team2_scores": [0]}, format="json"
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert anonymous_client.get(f"/api/tournaments/matches/{match.id}/").status_code == status.HTTP_200_OK


@pytest.mark.django_db
def test_missing_match_returns_404(admin_client):
    assert admin_client.post("/api/tournaments/matches/999999/confirm/").status_code == status.HTTP_404_NOT_FOUND


# ============================================================================
# MANAGEMENT COMMAND
# ============================================================================


@pytest.mark.django_db
def test_recalculate_standings_command(drawn_tournament, play_block, capsys):
    play_block(drawn_tournament, "A")
    block = drawn_tournament.blocks.get(block_name="A")
    block.team_rankings = None
    block.save()

    call_command("recalculate_standings", "--tournament", str(drawn_tournament.id), "--progression")

    block.refresh_from_db()
    assert [row["position"] for row in block.team_rankings] == [1, 2, 3, 4]
    assert "Done:" in capsys.readouterr().out


@pytest.mark.django_db
def test_recalculate_standings_unknown_tournament():
    with pytest.raises(CommandError, match="not found"):
        call_command("recalculate_standings", "--tournament", "999999")


@pytest.mark.django_db
def test_api_responses_are_not_cached_by_browsers(api_client, tournament):
    response = api_client.get(f"/api/tournaments/{tournament.id}/standings/")

    assert response["Cache-Control"] == "no-cache, no-store, must-revalidate, max-age=0"
    assert response["Pragma"] == "no-cache"

import re

from rest_framework import serializers

from accounts.models import Player

from .models import (
    Match,
    MatchTemplate,
    SportType,
    Tournament,
    TournamentEvent,
    TournamentFormat,
    TournamentPlayer,
    TournamentRule,
    TournamentTeam,
)
from .rules import validate_soccer_periods
from .scoring import format_score_display
from .status import calculate_tournament_status, format_tournament_period, parse_tournament_dates
from .tie_breaking import validate_tie_breaking_rules

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class SportTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = SportType
        fields = "__all__"


class TournamentEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = TournamentEvent
        fields = "__all__"
        read_only_fields = ("created_at", "updated_at")


class MatchTemplateSerializer(serializers.ModelSerializer):
    class Meta:
        model = MatchTemplate
        exclude = ("format",)


class TournamentFormatSerializer(serializers.ModelSerializer):
    template_count = serializers.IntegerField(source="templates.count", read_only=True)

    class Meta:
        model = TournamentFormat
        fields = (
            "id",
            "format_name",
            "sport_type",
            "target_team_count",
            "format_description",
            "preliminary_format_type",
            "final_format_type",
            "template_count",
        )


class TournamentSerializer(serializers.ModelSerializer):
    sport_code = serializers.CharField(read_only=True)
    calculated_status = serializers.SerializerMethodField()
    tournament_period = serializers.SerializerMethodField()
    registered_teams = serializers.SerializerMethodField()
    format_name = serializers.CharField(source="format.format_name", read_only=True)

    class Meta:
        model = Tournament
        fields = "__all__"
        read_only_fields = ("created_by", "created_at", "updated_at")

    def get_calculated_status(self, obj):
        return calculate_tournament_status(obj)

    def get_tournament_period(self, obj):
        return format_tournament_period(obj.tournament_dates)

    def get_registered_teams(self, obj):
        count = getattr(obj, "registered_team_count", None)
        if count is None:
            count = obj.teams.filter(participation_status="confirmed").count()
        return count

    def validate_tournament_dates(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Tournament dates must map day numbers to dates: {"1": "2024-05-03"}')
        for day, date in value.items():
            if not str(day).isdigit():
                raise serializers.ValidationError(f"Invalid day number: {day}")
            if date and not parse_tournament_dates({day: date}):
                raise serializers.ValidationError(f"Invalid date for day {day}: {date}")
        return value

    def validate_start_time(self, value):
        if not TIME_PATTERN.match(value):
            raise serializers.ValidationError("Start time must be HH:MM")
        return value

    def validate_court_count(self, value):
        if value < 1:
            raise serializers.ValidationError("At least one court is required")
        return value

    def validate(self, attrs):
        start = attrs.get("recruitment_start_date", getattr(self.instance, "recruitment_start_date", None))
        end = attrs.get("recruitment_end_date", getattr(self.instance, "recruitment_end_date", None))
        if start and end and start > end:
            raise serializers.ValidationError({"recruitment_end_date": "Recruitment must end after it starts"})
        return attrs


class TournamentListSerializer(serializers.ModelSerializer):
    """Simplified serializer for list views"""

    event_name = serializers.CharField(source="event.event_name", read_only=True, default=None)
    format_name = serializers.CharField(source="format.format_name", read_only=True)
    sport_code = serializers.CharField(read_only=True)
    calculated_status = serializers.SerializerMethodField()
    tournament_period = serializers.SerializerMethodField()
    registered_teams = serializers.SerializerMethodField()

    class Meta:
        model = Tournament
        fields = (
            "id",
            "name",
            "event_name",
            "format_name",
            "sport_code",
            "team_count",
            "registered_teams",
            "status",
            "calculated_status",
            "tournament_period",
            "visibility",
            "recruitment_start_date",
            "recruitment_end_date",
        )

    def get_calculated_status(self, obj):
        return calculate_tournament_status(obj)

    def get_tournament_period(self, obj):
        return format_tournament_period(obj.tournament_dates)

    def get_registered_teams(self, obj):
        count = getattr(obj, "registered_team_count", None)
        if count is None:
            count = obj.teams.filter(participation_status="confirmed").count()
        return count


class TournamentRuleSerializer(serializers.ModelSerializer):
    class Meta:
        model = TournamentRule
        fields = (
            "id",
            "phase",
            "use_extra_time",
            "use_penalty",
            "active_periods",
            "win_condition",
            "point_system",
            "tie_breaking_rules",
            "tie_breaking_enabled",
            "notes",
            "updated_at",
        )
        read_only_fields = ("id", "phase", "updated_at")

    def validate_active_periods(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("Active periods must be a list")
        return [str(v) for v in value]

    def validate_point_system(self, value):
        if value is None:
            return value
        if not isinstance(value, dict):
            raise serializers.ValidationError('Point system must look like {"win": 3, "draw": 1, "loss": 0}')
        for key in ("win", "draw", "loss"):
            if not isinstance(value.get(key), (int, float)) or isinstance(value.get(key), bool):
                raise serializers.ValidationError(f"Point system needs a numeric '{key}' value")
        return value

    def validate(self, attrs):
        sport_code = self.context["tournament"].sport_code

        if sport_code == "soccer" and "active_periods" in attrs:
            is_valid, error, _ = validate_soccer_periods(attrs["active_periods"])
            if not is_valid:
                raise serializers.ValidationError({"active_periods": error})

        enabled = attrs.get("tie_breaking_enabled", getattr(self.instance, "tie_breaking_enabled", False))
        rules = attrs.get("tie_breaking_rules", getattr(self.instance, "tie_breaking_rules", None))
        if enabled or attrs.get("tie_breaking_rules"):
            is_valid, errors = validate_tie_breaking_rules(rules, sport_code)
            if not is_valid:
                raise serializers.ValidationError({"tie_breaking_rules": errors})
        return attrs


# ============= Entries =============


class TournamentPlayerSerializer(serializers.ModelSerializer):
    player_name = serializers.CharField(source="player.player_name", read_only=True)

    class Meta:
        model = TournamentPlayer
        fields = ("id", "player", "player_name", "jersey_number", "player_status")


class TournamentTeamSerializer(serializers.ModelSerializer):
    players = TournamentPlayerSerializer(many=True, read_only=True)

    class Meta:
        model = TournamentTeam
        fields = (
            "id",
            "tournament",
            "team",
            "team_name",
            "team_omission",
            "assigned_block",
            "block_position",
            "participation_status",
            "withdrawal_status",
            "withdrawal_reason",
            "withdrawal_requested_at",
            "withdrawal_processed_at",
            "withdrawal_processed_by",
            "withdrawal_admin_comment",
            "remarks",
            "players",
            "registered_at",
        )
        read_only_fields = fields


class EntryPlayerSerializer(serializers.Serializer):
    player_id = serializers.IntegerField()
    jersey_number = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=999)


class TournamentTeamRegistrationSerializer(serializers.Serializer):
    """
    Enter a master team into a tournament
    Body: {"team_id": 1, "team_name": "...", "team_omission": "...", "players": [{"player_id": 3}]}
    """

    team_id = serializers.IntegerField(required=False)
    team_name = serializers.CharField(required=False, max_length=100)
    team_omission = serializers.CharField(required=False, allow_blank=True, max_length=20)
    players = EntryPlayerSerializer(many=True, required=False)

    def validate_players(self, value):
        jerseys = [p["jersey_number"] for p in value if p.get("jersey_number") is not None]
        if len(jerseys) != len(set(jerseys)):
            raise serializers.ValidationError("Jersey numbers must be unique within a team")
        ids = [p["player_id"] for p in value]
        if len(ids) != len(set(ids)):
            raise serializers.ValidationError("A player can only be registered once")
        return value

    def validate(self, attrs):
        team = self.context["team"]
        tournament = self.context["tournament"]
        attrs["team_name"] = (attrs.get("team_name") or team.team_name).strip()
        if tournament.teams.filter(team_name=attrs["team_name"]).exists():
            raise serializers.ValidationError({"team_name": "This team name is already entered"})

        player_ids = [p["player_id"] for p in attrs.get("players", [])]
        found = set(Player.objects.filter(team=team, id__in=player_ids, is_active=True).values_list("id", flat=True))
        missing = [pid for pid in player_ids if pid not in found]
        if missing:
            raise serializers.ValidationError({"players": f"Players not found on this team: {missing}"})
        return attrs

    def create(self, validated_data):
        team = self.context["team"]
        tournament = self.context["tournament"]
        confirmed = tournament.teams.filter(participation_status="confirmed").count()

        entry = TournamentTeam.objects.create(
            tournament=tournament,
            team=team,
            team_name=validated_data["team_name"],
            team_omission=validated_data.get("team_omission") or team.team_omission,
            participation_status="confirmed" if confirmed < tournament.team_count else "waitlisted",
        )
        players = {p.id: p for p in Player.objects.filter(team=team)}
        for item in validated_data.get("players", []):
            player = players[item["player_id"]]
            TournamentPlayer.objects.create(
                tournament_team=entry,
                player=player,
                jersey_number=item.get("jersey_number", player.jersey_number),
            )
        return entry


class WithdrawalRequestSerializer(serializers.Serializer):
    withdrawal_reason = serializers.CharField(max_length=1000)


class WithdrawalProcessSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=("approve", "reject"))
    admin_comment = serializers.CharField(required=False, allow_blank=True, default="")


# ============= Matches =============


class MatchSerializer(serializers.ModelSerializer):
    phase = serializers.CharField(source="block.phase", read_only=True)
    block_name = serializers.CharField(source="block.block_name", read_only=True)
    team1_name = serializers.SerializerMethodField()
    team2_name = serializers.SerializerMethodField()
    score_display = serializers.SerializerMethodField()

    class Meta:
        model = Match
        fields = (
            "id",
            "phase",
            "block_name",
            "tournament_date",
            "match_number",
            "match_code",
            "team1",
            "team2",
            "team1_display_name",
            "team2_display_name",
            "team1_name",
            "team2_name",
            "court_number",
            "start_time",
            "team1_scores",
            "team2_scores",
            "score_display",
            "period_count",
            "winner",
            "is_draw",
            "is_walkover",
            "match_status",
            "result_status",
            "cancellation_type",
            "remarks",
            "is_confirmed",
            "confirmed_at",
        )
        read_only_fields = fields

    def get_team1_name(self, obj):
        return obj.team1.display_name if obj.team1 else obj.team1_display_name

    def get_team2_name(self, obj):
        return obj.team2.display_name if obj.team2 else obj.team2_display_name

    def get_score_display(self, obj):
        if obj.team1_scores is None and obj.team2_scores is None:
            return None
        return f"{format_score_display(obj.team1_scores)} : {format_score_display(obj.team2_scores)}"


class ScoreEntrySerializer(serializers.Serializer):
    """Scores as a list of period goals ([1, 0]) or a stored string ("[1,0]", "1,0", "3")"""

    team1_scores = serializers.JSONField()
    team2_scores = serializers.JSONField()
    winner_id = serializers.IntegerField(required=False, allow_null=True)
    remarks = serializers.CharField(required=False, allow_blank=True)

    def _check(self, value):
        values = value if isinstance(value, list) else [value]
        for item in values:
            if isinstance(item, bool) or (isinstance(item, (int, float)) and item < 0):
                raise serializers.ValidationError("Scores must be non-negative numbers")
        return value

    def validate_team1_scores(self, value):
        return self._check(value)

    def validate_team2_scores(self, value):
        return self._check(value)


class CancelMatchSerializer(serializers.Serializer):
    cancellation_type = serializers.ChoiceField(choices=Match.CANCELLATION_TYPE_CHOICES)


# ============= Draw and rankings =============


class DrawTeamSerializer(serializers.Serializer):
    tournament_team_id = serializers.IntegerField()
    block_position = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class DrawBlockSerializer(serializers.Serializer):
    block_name = serializers.CharField(max_length=30)
    teams = DrawTeamSerializer(many=True)


class DrawMatchSerializer(serializers.Serializer):
    match_id = serializers.IntegerField()
    team1_tournament_team_id = serializers.IntegerField(required=False, allow_null=True)
    team2_tournament_team_id = serializers.IntegerField(required=False, allow_null=True)


class DrawSerializer(serializers.Serializer):
    blocks = DrawBlockSerializer(many=True)
    matches = DrawMatchSerializer(many=True, required=False)


class RankingRowSerializer(serializers.Serializer):
    tournament_team_id = serializers.IntegerField()
    team_id = serializers.IntegerField(required=False, allow_null=True)
    team_name = serializers.CharField()
    team_omission = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    position = serializers.IntegerField()
    points = serializers.FloatField(required=False, allow_null=True)
    matches_played = serializers.IntegerField(required=False, allow_null=True)
    wins = serializers.IntegerField(required=False, allow_null=True)
    draws = serializers.IntegerField(required=False, allow_null=True)
    losses = serializers.IntegerField(required=False, allow_null=True)
    goals_for = serializers.IntegerField(required=False, allow_null=True)
    goals_against = serializers.IntegerField(required=False, allow_null=True)
    goal_difference = serializers.IntegerField(required=False, allow_null=True)


class BlockRankingSerializer(serializers.Serializer):
    match_block_id = serializers.IntegerField()
    team_rankings = RankingRowSerializer(many=True)
    remarks = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class FinalRankingSerializer(serializers.Serializer):
    team_rankings = RankingRowSerializer(many=True)
    remarks = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ManualRankingsSerializer(serializers.Serializer):
    blocks = BlockRankingSerializer(many=True)
    final_tournament = FinalRankingSerializer(required=False, allow_null=True)


class SchedulePreviewSerializer(serializers.Serializer):
    format_id = serializers.IntegerField()
    court_count = serializers.IntegerField(min_value=1)
    available_courts = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False)
    match_duration_minutes = serializers.IntegerField(min_value=1)
    break_duration_minutes = serializers.IntegerField(min_value=0)
    start_time = serializers.CharField()
    tournament_dates = serializers.DictField(child=serializers.CharField(allow_blank=True))
    custom_assignment = serializers.DictField(required=False)

    def validate_start_time(self, value):
        if not TIME_PATTERN.match(value):
            raise serializers.ValidationError("Start time must be HH:MM")
        return value

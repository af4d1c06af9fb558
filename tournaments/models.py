from django.conf import settings
from django.db import models

from accounts.models import Player, Team

PHASE_CHOICES = (
    ("preliminary", "Preliminary"),
    ("final", "Final"),
)


class SportType(models.Model):
    """
    Sport master data: drives scoring periods, point system and tie-break rules
    """

    RANKING_METHOD_CHOICES = (
        ("points", "Points"),
        ("win_rate", "Win rate"),
        ("time", "Time"),
    )

    sport_name = models.CharField(max_length=50)
    sport_code = models.CharField(max_length=30, unique=True)
    max_period_count = models.PositiveIntegerField(default=2)
    regular_period_count = models.PositiveIntegerField(default=2)
    supports_point_system = models.BooleanField(default=True)
    supports_draws = models.BooleanField(default=True)
    ranking_method = models.CharField(max_length=20, choices=RANKING_METHOD_CHOICES, default="points")
    period_definitions = models.JSONField(
        default=list, blank=True, help_text='Period labels: [{"period_number": 1, "period_name": "1st half"}, ...]'
    )

    def __str__(self):
        return self.sport_name

    class Meta:
        db_table = "sport_types"
        ordering = ["id"]


class TournamentEvent(models.Model):
    """
    Umbrella event grouping one or more tournament divisions
    """

    event_name = models.CharField(max_length=200)
    organizer = models.CharField(max_length=200, blank=True)
    venue = models.CharField(max_length=200, blank=True)
    description = models.TextField(blank=True)
    event_start_date = models.DateField(null=True, blank=True)
    event_end_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.event_name

    class Meta:
        db_table = "tournament_events"
        ordering = ["-event_start_date", "-created_at"]


class TournamentFormat(models.Model):
    """
    Reusable tournament format: the set of match templates for a team count
    """

    FORMAT_TYPE_CHOICES = (
        ("league", "League"),
        ("tournament", "Knockout"),
    )

    format_name = models.CharField(max_length=100)
    sport_type = models.ForeignKey(SportType, on_delete=models.PROTECT, related_name="formats", null=True, blank=True)
    target_team_count = models.PositiveIntegerField()
    format_description = models.TextField(blank=True)
    preliminary_format_type = models.CharField(max_length=20, choices=FORMAT_TYPE_CHOICES, default="league")
    final_format_type = models.CharField(max_length=20, choices=FORMAT_TYPE_CHOICES, default="tournament")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.format_name} ({self.target_team_count} teams)"

    def phase_format_type(self, phase):
        return self.final_format_type if phase == "final" else self.preliminary_format_type

    class Meta:
        db_table = "tournament_formats"
        ordering = ["target_team_count", "format_name"]


class MatchTemplate(models.Model):
    """
    Match definition belonging to a format.

    team1_source / team2_source describe where a team comes from once the
    bracket advances: "A_1" (block A, 1st place) or "M1_winner" / "M1_loser".
    """

    format = models.ForeignKey(TournamentFormat, on_delete=models.CASCADE, related_name="templates")
    match_number = models.PositiveIntegerField()
    match_code = models.CharField(max_length=20)
    match_type = models.CharField(max_length=20, default="regular")
    phase = models.CharField(max_length=20, choices=PHASE_CHOICES)
    round_name = models.CharField(max_length=50, blank=True)
    block_name = models.CharField(max_length=20, blank=True)
    team1_source = models.CharField(max_length=30, blank=True)
    team2_source = models.CharField(max_length=30, blank=True)
    team1_display_name = models.CharField(max_length=50, blank=True)
    team2_display_name = models.CharField(max_length=50, blank=True)
    day_number = models.PositiveIntegerField(default=1)
    execution_priority = models.PositiveIntegerField(default=1)
    court_number = models.PositiveIntegerField(null=True, blank=True)
    suggested_start_time = models.CharField(max_length=5, blank=True, help_text="HH:MM")
    winner_position = models.PositiveIntegerField(null=True, blank=True)
    loser_position_start = models.PositiveIntegerField(null=True, blank=True)
    loser_position_end = models.PositiveIntegerField(null=True, blank=True)
    position_note = models.CharField(max_length=100, blank=True)
    is_bye_match = models.BooleanField(default=False)

    def __str__(self):
        return f"{self.format.format_name} {self.match_code}"

    class Meta:
        db_table = "match_templates"
        ordering = ["format", "match_number"]
        unique_together = ("format", "match_code")


class Tournament(models.Model):
    """
    A tournament division: teams, schedule and results for one competition
    """

    STATUS_CHOICES = (
        ("planning", "Planning"),
        ("ongoing", "Ongoing"),
        ("completed", "Completed"),
    )

    # Values produced by calculated status; never stored
    CALCULATED_STATUS_CHOICES = STATUS_CHOICES + (
        ("recruiting", "Recruiting"),
        ("before_event", "Before event"),
    )

    VISIBILITY_CHOICES = (
        ("open", "Open"),
        ("preparing", "Preparing"),
    )

    event = models.ForeignKey(
        TournamentEvent, on_delete=models.SET_NULL, null=True, blank=True, related_name="tournaments"
    )
    name = models.CharField(max_length=200)
    format = models.ForeignKey(TournamentFormat, on_delete=models.PROTECT, related_name="tournaments")
    sport_type = models.ForeignKey(
        SportType, on_delete=models.PROTECT, related_name="tournaments", null=True, blank=True
    )

    team_count = models.PositiveIntegerField()
    court_count = models.PositiveIntegerField(default=1)
    tournament_dates = models.JSONField(default=dict, blank=True, help_text='Day number to date: {"1": "2024-05-03"}')
    start_time = models.CharField(max_length=5, default="09:00", help_text="First match start, HH:MM")
    match_duration_minutes = models.PositiveIntegerField(default=15)
    break_duration_minutes = models.PositiveIntegerField(default=5)

    # Legacy point settings, used when no phase rule defines a point system
    win_points = models.IntegerField(default=3)
    draw_points = models.IntegerField(default=1)
    loss_points = models.IntegerField(default=0)
    walkover_winner_goals = models.PositiveIntegerField(default=settings.WALKOVER_WINNER_GOALS)
    walkover_loser_goals = models.PositiveIntegerField(default=settings.WALKOVER_LOSER_GOALS)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="planning")
    visibility = models.CharField(max_length=20, choices=VISIBILITY_CHOICES, default="preparing")
    public_start_date = models.DateTimeField(null=True, blank=True)
    recruitment_start_date = models.DateTimeField(null=True, blank=True)
    recruitment_end_date = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="tournaments_created"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def sport_code(self):
        sport = self.sport_type or self.format.sport_type
        return sport.sport_code if sport else "pk_championship"

    def get_rule(self, phase):
        return self.rules.filter(phase=phase).first()

    def sorted_dates(self):
        """Return tournament dates ordered by day number"""
        dates = self.tournament_dates or {}
        return [dates[key] for key in sorted(dates, key=lambda k: int(k)) if dates[key]]

    class Meta:
        db_table = "tournaments"
        ordering = ["-created_at"]


class TournamentRule(models.Model):
    """
    Per-phase competition rules (periods, point system, tie-breaking)
    """

    WIN_CONDITION_CHOICES = (
        ("score", "Score"),
        ("time", "Time"),
        ("points", "Points"),
    )

    tournament = models.ForeignKey(Tournament, on_delete=models.CASCADE, related_name="rules")
    phase = models.CharField(max_length=20, choices=PHASE_CHOICES)
    use_extra_time = models.BooleanField(default=False)
    use_penalty = models.BooleanField(default=False)
    active_periods = models.JSONField(default=list, blank=True, help_text='Enabled periods: ["1", "2", "5"]')
    win_condition = models.CharField(max_length=20, choices=WIN_CONDITION_CHOICES, default="score")
    point_system = models.JSONField(
        null=True, blank=True, help_text='Match points: {"win": 3, "draw": 1, "loss": 0}'
    )
    tie_breaking_rules = models.JSONField(
        null=True, blank=True, help_text='Ordered rules: [{"type": "points", "order": 1}, ...]'
    )
    tie_breaking_enabled = models.BooleanField(default=False)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.tournament.name} - {self.phase}"

    class Meta:
        db_table = "tournament_rules"
        unique_together = ("tournament", "phase")


class TournamentTeam(models.Model):
    """
    A team's entry in a tournament
    """

    PARTICIPATION_CHOICES = (
        ("confirmed", "Confirmed"),
        ("waitlisted", "Waitlisted"),
        ("cancelled", "Cancelled"),
    )

    WITHDRAWAL_STATUS_CHOICES = (
        ("active", "Active"),
        ("withdrawal_requested", "Withdrawal requested"),
        ("withdrawal_approved", "Withdrawal approved"),
        ("withdrawal_rejected", "Withdrawal rejected"),
    )

    tournament = models.ForeignKey(Tournament, on_delete=models.CASCADE, related_name="teams")
    team = models.ForeignKey(Team, on_delete=models.PROTECT, related_name="tournament_entries")
    team_name = models.CharField(max_length=100)
    team_omission = models.CharField(max_length=20, blank=True)
    assigned_block = models.CharField(max_length=20, blank=True, null=True)
    block_position = models.PositiveIntegerField(null=True, blank=True)
    participation_status = models.CharField(max_length=20, choices=PARTICIPATION_CHOICES, default="confirmed")

    withdrawal_status = models.CharField(max_length=30, choices=WITHDRAWAL_STATUS_CHOICES, default="active")
    withdrawal_reason = models.TextField(blank=True)
    withdrawal_requested_at = models.DateTimeField(null=True, blank=True)
    withdrawal_processed_at = models.DateTimeField(null=True, blank=True)
    withdrawal_processed_by = models.CharField(max_length=150, blank=True)
    withdrawal_admin_comment = models.TextField(blank=True)
    remarks = models.TextField(blank=True)

    registered_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.team_name} - {self.tournament.name}"

    @property
    def display_name(self):
        return self.team_omission or self.team_name

    @property
    def is_active(self):
        return self.participation_status == "confirmed" and self.withdrawal_status != "withdrawal_approved"

    class Meta:
        db_table = "tournament_teams"
        ordering = ["assigned_block", "block_position", "team_name"]
        unique_together = ("tournament", "team_name")


class TournamentPlayer(models.Model):
    """
    A player registered on a tournament team
    """

    PLAYER_STATUS_CHOICES = (
        ("active", "Active"),
        ("withdrawn", "Withdrawn"),
    )

    tournament_team = models.ForeignKey(TournamentTeam, on_delete=models.CASCADE, related_name="players")
    player = models.ForeignKey(Player, on_delete=models.PROTECT, related_name="tournament_entries")
    jersey_number = models.PositiveIntegerField(null=True, blank=True)
    player_status = models.CharField(max_length=20, choices=PLAYER_STATUS_CHOICES, default="active")
    registered_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.player.player_name} - {self.tournament_team.team_name}"

    class Meta:
        db_table = "tournament_players"
        unique_together = ("tournament_team", "player")


class MatchBlock(models.Model):
    """
    A block (group) of matches within a phase; stores the computed rankings.

    team_rankings format:
        [{"team_id": 4, "team_name": "...", "position": 1, "points": 6, "matches_played": 2, ...}, ...]
    """

    tournament = models.ForeignKey(Tournament, on_delete=models.CASCADE, related_name="blocks")
    phase = models.CharField(max_length=20, choices=PHASE_CHOICES)
    display_round_name = models.CharField(max_length=50, blank=True)
    block_name = models.CharField(max_length=30)
    match_type = models.CharField(max_length=20, default="regular")
    block_order = models.PositiveIntegerField(default=0)
    team_rankings = models.JSONField(null=True, blank=True)
    remarks = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.tournament.name} {self.phase} {self.block_name}"

    class Meta:
        db_table = "match_blocks"
        ordering = ["tournament", "phase", "block_order", "block_name"]
        unique_together = ("tournament", "phase", "block_name")


class Match(models.Model):
    """
    A single scheduled match, from scheduling through confirmed result
    """

    MATCH_STATUS_CHOICES = (
        ("scheduled", "Scheduled"),
        ("ongoing", "Ongoing"),
        ("completed", "Completed"),
        ("cancelled", "Cancelled"),
    )

    RESULT_STATUS_CHOICES = (
        ("none", "None"),
        ("pending", "Pending"),
        ("confirmed", "Confirmed"),
    )

    CANCELLATION_TYPE_CHOICES = (
        ("no_show_both", "Both teams absent"),
        ("no_show_team1", "Team 1 absent"),
        ("no_show_team2", "Team 2 absent"),
        ("no_count", "Not counted"),
    )

    block = models.ForeignKey(MatchBlock, on_delete=models.CASCADE, related_name="matches")
    tournament_date = models.DateField(null=True, blank=True)
    match_number = models.PositiveIntegerField()
    match_code = models.CharField(max_length=20)
    team1 = models.ForeignKey(
        TournamentTeam, on_delete=models.SET_NULL, null=True, blank=True, related_name="matches_as_team1"
    )
    team2 = models.ForeignKey(
        TournamentTeam, on_delete=models.SET_NULL, null=True, blank=True, related_name="matches_as_team2"
    )
    team1_display_name = models.CharField(max_length=100, blank=True)
    team2_display_name = models.CharField(max_length=100, blank=True)
    court_number = models.PositiveIntegerField(null=True, blank=True)
    start_time = models.CharField(max_length=5, blank=True, help_text="HH:MM")

    # Per-period goals stored as text, e.g. "[1,0]" or "3"
    team1_scores = models.CharField(max_length=100, blank=True, null=True)
    team2_scores = models.CharField(max_length=100, blank=True, null=True)
    period_count = models.PositiveIntegerField(default=1)
    winner = models.ForeignKey(
        TournamentTeam, on_delete=models.SET_NULL, null=True, blank=True, related_name="matches_won"
    )
    is_draw = models.BooleanField(default=False)
    is_walkover = models.BooleanField(default=False)

    match_status = models.CharField(max_length=20, choices=MATCH_STATUS_CHOICES, default="scheduled")
    result_status = models.CharField(max_length=20, choices=RESULT_STATUS_CHOICES, default="none")
    cancellation_type = models.CharField(max_length=20, choices=CANCELLATION_TYPE_CHOICES, null=True, blank=True)
    remarks = models.TextField(blank=True)

    is_confirmed = models.BooleanField(default=False)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    confirmed_by = models.CharField(max_length=150, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.match_code}: {self.team1_display_name} vs {self.team2_display_name}"

    @property
    def tournament(self):
        return self.block.tournament

    @property
    def phase(self):
        return self.block.phase

    @property
    def has_both_teams(self):
        return self.team1_id is not None and self.team2_id is not None

    def is_complete(self):
        """Confirmed or cancelled matches need no further input"""
        return self.is_confirmed or self.match_status == "cancelled"

    class Meta:
        db_table = "matches"
        ordering = ["tournament_date", "start_time", "court_number", "match_number"]
        unique_together = ("block", "match_code")
        verbose_name_plural = "matches"


class MatchOverride(models.Model):
    """
    Manual replacement of a template's team source for one tournament
    """

    tournament = models.ForeignKey(Tournament, on_delete=models.CASCADE, related_name="match_overrides")
    match_code = models.CharField(max_length=20)
    team1_source_override = models.CharField(max_length=30, blank=True, null=True)
    team2_source_override = models.CharField(max_length=30, blank=True, null=True)
    override_reason = models.TextField(blank=True)
    overridden_by = models.CharField(max_length=150, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.tournament.name} {self.match_code} override"

    class Meta:
        db_table = "match_overrides"
        unique_together = ("tournament", "match_code")

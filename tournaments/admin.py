from django.contrib import admin

from .models import (
    Match,
    MatchBlock,
    MatchOverride,
    MatchTemplate,
    SportType,
    Tournament,
    TournamentEvent,
    TournamentFormat,
    TournamentPlayer,
    TournamentRule,
    TournamentTeam,
)


@admin.register(SportType)
class SportTypeAdmin(admin.ModelAdmin):
    list_display = ("sport_name", "sport_code", "ranking_method", "supports_point_system", "supports_draws")
    search_fields = ("sport_name", "sport_code")


@admin.register(TournamentEvent)
class TournamentEventAdmin(admin.ModelAdmin):
    list_display = ("event_name", "organizer", "venue", "event_start_date", "event_end_date")
    search_fields = ("event_name", "organizer")


class MatchTemplateInline(admin.TabularInline):
    model = MatchTemplate
    extra = 0
    fields = (
        "match_number",
        "match_code",
        "phase",
        "block_name",
        "team1_source",
        "team2_source",
        "team1_display_name",
        "team2_display_name",
        "day_number",
        "execution_priority",
        "winner_position",
    )


@admin.register(TournamentFormat)
class TournamentFormatAdmin(admin.ModelAdmin):
    list_display = ("format_name", "sport_type", "target_team_count", "preliminary_format_type", "final_format_type")
    list_filter = ("sport_type", "preliminary_format_type", "final_format_type")
    search_fields = ("format_name",)
    inlines = [MatchTemplateInline]


class TournamentRuleInline(admin.StackedInline):
    model = TournamentRule
    extra = 0


@admin.register(Tournament)
class TournamentAdmin(admin.ModelAdmin):
    list_display = ("name", "event", "format", "status", "visibility", "team_count", "court_count", "created_at")
    list_filter = ("status", "visibility", "sport_type")
    search_fields = ("name", "event__event_name")
    ordering = ("-created_at",)
    inlines = [TournamentRuleInline]


class TournamentPlayerInline(admin.TabularInline):
    model = TournamentPlayer
    extra = 0


@admin.register(TournamentTeam)
class TournamentTeamAdmin(admin.ModelAdmin):
    list_display = (
        "team_name",
        "tournament",
        "assigned_block",
        "block_position",
        "participation_status",
        "withdrawal_status",
    )
    list_filter = ("participation_status", "withdrawal_status")
    search_fields = ("team_name", "team_omission", "tournament__name")
    inlines = [TournamentPlayerInline]


@admin.register(MatchBlock)
class MatchBlockAdmin(admin.ModelAdmin):
    list_display = ("tournament", "phase", "block_name", "display_round_name", "block_order")
    list_filter = ("phase",)
    search_fields = ("tournament__name", "block_name")


@admin.register(Match)
class MatchAdmin(admin.ModelAdmin):
    list_display = (
        "match_code",
        "block",
        "team1_display_name",
        "team2_display_name",
        "team1_scores",
        "team2_scores",
        "match_status",
        "is_confirmed",
    )
    list_filter = ("match_status", "result_status", "is_confirmed", "block__phase")
    search_fields = ("match_code", "team1_display_name", "team2_display_name", "block__tournament__name")


@admin.register(MatchOverride)
class MatchOverrideAdmin(admin.ModelAdmin):
    list_display = ("tournament", "match_code", "team1_source_override", "team2_source_override", "overridden_by")
    search_fields = ("tournament__name", "match_code")

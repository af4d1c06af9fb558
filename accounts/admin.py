from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Player, Team, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("email", "username", "user_type", "is_staff", "created_at")
    list_filter = ("user_type", "is_staff", "is_active")
    search_fields = ("email", "username")
    ordering = ("-created_at",)

    fieldsets = BaseUserAdmin.fieldsets + (("Custom Fields", {"fields": ("user_type", "phone_number")}),)

    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Custom Fields", {"fields": ("email", "user_type", "phone_number")}),
    )


class PlayerInline(admin.TabularInline):
    model = Player
    extra = 0


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ("team_name", "team_omission", "contact_person", "contact_email", "is_active")
    list_filter = ("is_active",)
    search_fields = ("team_name", "team_omission", "contact_email")
    inlines = [PlayerInline]


@admin.register(Player)
class PlayerAdmin(admin.ModelAdmin):
    list_display = ("player_name", "team", "jersey_number", "is_active")
    list_filter = ("is_active",)
    search_fields = ("player_name", "team__team_name")

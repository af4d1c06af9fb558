from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """
    Custom User model with role-based authentication
    """

    USER_TYPE_CHOICES = (
        ("admin", "Admin"),
        ("team", "Team"),
    )

    email = models.EmailField(unique=True)
    user_type = models.CharField(max_length=10, choices=USER_TYPE_CHOICES, default="team")
    phone_number = models.CharField(max_length=20, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    def __str__(self):
        return f"{self.email} - {self.user_type}"

    @property
    def is_tournament_admin(self):
        return self.user_type == "admin" or self.is_superuser

    class Meta:
        db_table = "users"


class Team(models.Model):
    """
    Master team record, reused across tournaments
    """

    user = models.OneToOneField(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="team")
    team_name = models.CharField(max_length=100)
    team_omission = models.CharField(max_length=20, blank=True, help_text="Short name shown on brackets")
    contact_person = models.CharField(max_length=100, blank=True)
    contact_email = models.EmailField(blank=True)
    contact_phone = models.CharField(max_length=20, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.team_name

    class Meta:
        db_table = "teams"
        ordering = ["team_name"]


class Player(models.Model):
    """
    Master player record belonging to a team
    """

    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="players")
    player_name = models.CharField(max_length=100)
    jersey_number = models.PositiveIntegerField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.player_name} ({self.team.team_name})"

    class Meta:
        db_table = "players"
        ordering = ["team", "jersey_number", "player_name"]

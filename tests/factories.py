"""
Factory Boy factories for creating test data
"""
from datetime import timedelta

from django.utils import timezone

import factory
from factory.django import DjangoModelFactory
from faker import Faker

from accounts.models import Player, Team, User
from tournaments.models import (
    Match,
    MatchBlock,
    MatchTemplate,
    SportType,
    Tournament,
    TournamentFormat,
    TournamentPlayer,
    TournamentRule,
    TournamentTeam,
)

fake = Faker()

# Round robin order for a block of four
ROUND_ROBIN_4 = [(1, 2), (3, 4), (1, 3), (2, 4), (1, 4), (2, 3)]


class UserFactory(DjangoModelFactory):
    """Factory for User model"""

    class Meta:
        model = User
        django_get_or_create = ("email",)

    email = factory.Sequence(lambda n: f"user{n}@test.com")
    username = factory.Sequence(lambda n: f"user{n}")
    password = factory.PostGenerationMethodCall("set_password", "testpass123")
    user_type = "team"
    is_active = True
    is_staff = False
    is_superuser = False


class TeamFactory(DjangoModelFactory):
    """Factory for the master Team model"""

    class Meta:
        model = Team

    user = None
    team_name = factory.Sequence(lambda n: f"{fake.city()} FC {n}")
    team_omission = factory.Sequence(lambda n: f"T{n}")
    contact_person = factory.LazyAttribute(lambda _: fake.name())
    contact_email = factory.LazyAttribute(lambda _: fake.email())
    contact_phone = factory.LazyAttribute(lambda _: fake.numerify("090-####-####"))


class PlayerFactory(DjangoModelFactory):
    """Factory for the master Player model"""

    class Meta:
        model = Player

    team = factory.SubFactory(TeamFactory)
    player_name = factory.LazyAttribute(lambda _: fake.name())
    jersey_number = factory.Sequence(lambda n: n % 99 + 1)


class SportTypeFactory(DjangoModelFactory):
    """Factory for SportType model"""

    class Meta:
        model = SportType
        django_get_or_create = ("sport_code",)

    sport_name = "PK Championship"
    sport_code = "pk_championship"
    max_period_count = 1
    regular_period_count = 1
    supports_point_system = True
    supports_draws = True
    ranking_method = "points"


class TournamentFormatFactory(DjangoModelFactory):
    """Factory for TournamentFormat model"""

    class Meta:
        model = TournamentFormat

    format_name = factory.Sequence(lambda n: f"Format {n}")
    sport_type = factory.SubFactory(SportTypeFactory)
    target_team_count = 8
    preliminary_format_type = "league"
    final_format_type = "tournament"


class MatchTemplateFactory(DjangoModelFactory):
    """Factory for MatchTemplate model"""

    class Meta:
        model = MatchTemplate

    format = factory.SubFactory(TournamentFormatFactory)
    match_number = factory.Sequence(lambda n: n + 1)
    match_code = factory.Sequence(lambda n: f"M{n + 1}")
    phase = "preliminary"
    round_name = "Preliminary"
    day_number = 1
    execution_priority = 1


class TournamentFactory(DjangoModelFactory):
    """Factory for Tournament model"""

    class Meta:
        model = Tournament

    name = factory.LazyAttribute(lambda _: f"{fake.city()} Cup")
    format = factory.SubFactory(TournamentFormatFactory)
    team_count = 8
    court_count = 2
    start_time = "09:00"
    match_duration_minutes = 15
    break_duration_minutes = 5
    visibility = "open"
    status = "planning"

    @factory.lazy_attribute
    def tournament_dates(self):
        return {"1": (timezone.now() + timedelta(days=30)).date().isoformat()}

    @factory.lazy_attribute
    def recruitment_start_date(self):
        return timezone.now() - timedelta(days=1)

    @factory.lazy_attribute
    def recruitment_end_date(self):
        return timezone.now() + timedelta(days=10)


class TournamentRuleFactory(DjangoModelFactory):
    """Factory for TournamentRule model"""

    class Meta:
        model = TournamentRule
        django_get_or_create = ("tournament", "phase")

    tournament = factory.SubFactory(TournamentFactory)
    phase = "preliminary"
    active_periods = ["1"]


class TournamentTeamFactory(DjangoModelFactory):
    """Factory for TournamentTeam model"""

    class Meta:
        model = TournamentTeam

    tournament = factory.SubFactory(TournamentFactory)
    team = factory.SubFactory(TeamFactory)
    team_name = factory.LazyAttribute(lambda o: o.team.team_name)
    team_omission = factory.LazyAttribute(lambda o: o.team.team_omission)
    participation_status = "confirmed"


class TournamentPlayerFactory(DjangoModelFactory):
    """Factory for TournamentPlayer model"""

    class Meta:
        model = TournamentPlayer

    tournament_team = factory.SubFactory(TournamentTeamFactory)
    player = factory.SubFactory(PlayerFactory, team=factory.SelfAttribute("..tournament_team.team"))


class MatchBlockFactory(DjangoModelFactory):
    """Factory for MatchBlock model"""

    class Meta:
        model = MatchBlock
        django_get_or_create = ("tournament", "phase", "block_name")

    tournament = factory.SubFactory(TournamentFactory)
    phase = "preliminary"
    block_name = "A"
    display_round_name = "Preliminary"


class MatchFactory(DjangoModelFactory):
    """Factory for Match model"""

    class Meta:
        model = Match

    block = factory.SubFactory(MatchBlockFactory)
    match_number = factory.Sequence(lambda n: n + 1)
    match_code = factory.Sequence(lambda n: f"M{n + 1}")
    start_time = "09:00"
    court_number = 1
    team1_display_name = factory.LazyAttribute(lambda o: o.team1.display_name if o.team1 else "")
    team2_display_name = factory.LazyAttribute(lambda o: o.team2.display_name if o.team2 else "")
    team1 = None
    team2 = None


def create_league_templates(tournament_format, block_names=("A", "B"), start_number=1):
    """Round robin templates for blocks of four (A1 vs A2, ...); returns the next match number"""
    number = start_number
    for pair_index, (first, second) in enumerate(ROUND_ROBIN_4):
        for block_name in block_names:
            MatchTemplateFactory(
                format=tournament_format,
                match_number=number,
                match_code=f"{block_name}{pair_index + 1}",
                phase="preliminary",
                round_name="Preliminary",
                block_name=block_name,
                team1_display_name=f"{block_name}{first}",
                team2_display_name=f"{block_name}{second}",
                execution_priority=pair_index + 1,
            )
            number += 1
    return number


def create_final_templates(tournament_format, start_number=13, priority=7):
    """Semi-finals from blocks A and B, third place match and final"""
    rows = [
        ("SF1", "A_1", "B_2", "A 1st", "B 2nd", priority, None, None),
        ("SF2", "B_1", "A_2", "B 1st", "A 2nd", priority, None, None),
        ("T1", "SF1_loser", "SF2_loser", "SF1 loser", "SF2 loser", priority + 1, 3, 4),
        ("F1", "SF1_winner", "SF2_winner", "SF1 winner", "SF2 winner", priority + 1, 1, 2),
    ]
    for offset, (code, source1, source2, name1, name2, exec_priority, winner_pos, loser_pos) in enumerate(rows):
        MatchTemplateFactory(
            format=tournament_format,
            match_number=start_number + offset,
            match_code=code,
            phase="final",
            round_name="Final tournament",
            block_name="",
            team1_source=source1,
            team2_source=source2,
            team1_display_name=name1,
            team2_display_name=name2,
            execution_priority=exec_priority,
            winner_position=winner_pos,
            loser_position_start=loser_pos,
        )

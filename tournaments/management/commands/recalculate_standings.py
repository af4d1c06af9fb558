from django.core.management.base import BaseCommand, CommandError

from tournaments.models import Tournament
from tournaments.progression import recalculate_all_progression
from tournaments.promotion import promote_teams_to_final
from tournaments.services import sync_tournament_completion
from tournaments.standings import recalculate_all_rankings


class Command(BaseCommand):
    help = "Recompute block rankings of a tournament, optionally replaying bracket progression"

    def add_arguments(self, parser):
        parser.add_argument("--tournament", type=int, required=True, help="Tournament ID")
        parser.add_argument(
            "--progression",
            action="store_true",
            help="Also re-run promotion to the final and replay confirmed final matches",
        )

    def handle(self, *args, **options):
        tournament_id = options["tournament"]

        try:
            tournament = Tournament.objects.select_related("format").get(id=tournament_id)
        except Tournament.DoesNotExist:
            raise CommandError(f"Tournament {tournament_id} not found")

        updated = recalculate_all_rankings(tournament)
        self.stdout.write(f"Rankings recalculated for {updated} block(s)")

        if options["progression"]:
            promoted = promote_teams_to_final(tournament)
            filled = recalculate_all_progression(tournament)
            self.stdout.write(f"Promotion updated {promoted} match(es), progression filled {filled} slot(s)")

        status = sync_tournament_completion(tournament)
        self.stdout.write(self.style.SUCCESS(f"Done: {tournament.name} is {status}"))

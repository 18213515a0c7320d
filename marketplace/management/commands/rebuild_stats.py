# marketplace/management/commands/rebuild_stats.py
from django.core.management.base import BaseCommand, CommandError

from marketplace.models import User
from marketplace.services.stats import rebuild_actor_stats


class Command(BaseCommand):
    help = 'Recompute actor stats from the stats credit ledger.'

    def add_arguments(self, parser):
        parser.add_argument('--user', type=int, help='Only rebuild the stats of this user id.')

    def handle(self, *args, **options):
        actors = User.objects.filter(user_type__in=[User.UserType.RESTAURANT, User.UserType.NGO])
        if options['user'] is not None:
            actors = actors.filter(pk=options['user'])
            if not actors.exists():
                raise CommandError(f"No restaurant or NGO with id {options['user']}.")

        count = 0
        for actor in actors.order_by('pk'):
            stats = rebuild_actor_stats(actor)
            count += 1
            if options['verbosity'] > 1:
                self.stdout.write(f"{actor.name}: {stats.total_points} points, {stats.total_kg} kg")
        self.stdout.write(self.style.SUCCESS(f"Rebuilt stats for {count} actors."))

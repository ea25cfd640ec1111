from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from ip_reputation.relays import RelayRegistry, SEED_RELAYS


class Command(BaseCommand):
    help = "Fetch the anonymizing relay list once and report how many addresses it holds"

    def add_arguments(self, parser):
        parser.add_argument("--url", default=None, help="Override RELAY_LIST_URL")

    def handle(self, *args, **options):
        url = options["url"] or settings.RELAY_LIST_URL
        registry = RelayRegistry(
            source_url=url,
            timeout=getattr(settings, "RELAY_FETCH_TIMEOUT", 5.0),
            seed=SEED_RELAYS,
        )
        if not registry.refresh():
            raise CommandError(f"Relay list fetch from {url} failed, seed list would be used")
        self.stdout.write(f"Relay list OK: {registry.size} addresses from {url}")

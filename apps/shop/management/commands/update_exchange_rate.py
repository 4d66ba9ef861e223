from django.core.management.base import BaseCommand, CommandError

from apps.shop.services import LiveRateUnavailable, fetch_live_rate, set_exchange_rate


class Command(BaseCommand):
    help = "Fetch the live USD to AFN rate, add the shop margin and store it. Meant to run from cron."

    def handle(self, *args, **options):
        try:
            market_rate, adjusted_rate = fetch_live_rate()
        except LiveRateUnavailable as exc:
            raise CommandError(str(exc)) from exc
        set_exchange_rate(rate=adjusted_rate, source="live")
        self.stdout.write(self.style.SUCCESS(f"Exchange rate: market {market_rate}, stored {adjusted_rate}"))

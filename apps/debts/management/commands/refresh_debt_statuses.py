from django.core.management.base import BaseCommand

from apps.debts.services import refresh_statuses


class Command(BaseCommand):
    help = "Re-derive ACTIVE / DUE_SOON / OVERDUE for open debts. Meant to run from cron."

    def handle(self, *args, **options):
        updated = refresh_statuses()
        self.stdout.write(self.style.SUCCESS(f"Debt statuses updated: {updated}"))

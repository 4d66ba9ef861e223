from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from apps.accounts.models import User, UserRole
from apps.accounts.services import sync_role_group


class Command(BaseCommand):
    help = "Create one auth group per shop role. With --sync-users, put every user in the group of their role."

    def add_arguments(self, parser):
        parser.add_argument("--sync-users", action="store_true", help="Add each user to the group matching their role")

    def handle(self, *args, **options):
        for role in UserRole.values:
            group, created = Group.objects.get_or_create(name=role)
            action = "created" if created else "exists"
            self.stdout.write(self.style.SUCCESS(f"{group.name}: {action}"))

        if not options["sync_users"]:
            return

        synced = sum(1 for user in User.objects.all() if sync_role_group(user))
        self.stdout.write(self.style.SUCCESS(f"Users synced: {synced}"))

from django.core.management import call_command
from django.core.management.base import BaseCommand


class Command(BaseCommand):
    help = (
        "Seed a demo tenant: company, user, system chart of accounts and "
        "a posted opening voucher (wraps create_demo_tenant)."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--company",
            type=str,
            default="Demo Ltd",
            help="Name of the demo company (default: Demo Ltd)",
        )
        parser.add_argument(
            "--username",
            type=str,
            default="demo",
            help="Login of the demo bookkeeper (default: demo)",
        )

    def handle(self, *args, **options):
        com_name = options["company"]
        username = options["username"]
        self.stdout.write(self.style.NOTICE(
            f"Seeding voucher ledger for {com_name} (user {username})..."))
        call_command("create_demo_tenant", company_name=com_name,
                     username=username, stdout=self.stdout)
        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully!"))

from django.core.management.base import BaseCommand, CommandError

from ledger_core.models import Company
from ledger_core.services.system_accounts import ensure_system_accounts


class Command(BaseCommand):
    help = "Create the system chart of accounts for one company or all of them."

    def add_arguments(self, parser):
        group = parser.add_mutually_exclusive_group(required=True)
        group.add_argument(
            "--company",
            help="Slug of the company to seed.",
        )
        group.add_argument(
            "--all",
            action="store_true",
            help="Seed every active company.",
        )

    def handle(self, *args, **options):
        if options["all"]:
            companies = Company.objects.filter(is_active=True).order_by("slug")
        else:
            companies = Company.objects.filter(slug=options["company"])
            if not companies.exists():
                raise CommandError(f"Company '{options['company']}' not found")

        for company in companies:
            created, existing = ensure_system_accounts(company)
            self.stdout.write(
                self.style.SUCCESS(
                    f"{company.slug}: {created} created, {existing} already present"
                )
            )

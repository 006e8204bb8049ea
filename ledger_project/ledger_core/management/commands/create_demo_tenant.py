import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils.text import slugify

from ledger_core.models import Account, Company, Currency
from ledger_core.services.system_accounts import ensure_system_accounts
from ledger_core.services.vouchers import create_voucher
from ledger_core.services.workflow import (approve_voucher, post_voucher,
                                           submit_voucher)

User = get_user_model()


class Command(BaseCommand):
    help = (
        "Create a demo company and user, seed the system accounts and post "
        "one opening voucher through the full workflow."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--company-name",
            default="Demo Company",
            help="Name of the demo company to create.",
        )
        parser.add_argument(
            "--username", default="demo", help="Username for the demo user."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo user."
        )

    @staticmethod
    def unique_slug_for_company(name, max_tries=100):
        # "Test Ltd" -> "test-ltd", then "test-ltd-1", "test-ltd-2", ...
        base = slugify(name) or "company"
        slug = base
        i = 1
        while Company.objects.filter(slug=slug).exists():
            slug = f"{base}-{i}"
            i += 1
            if i > max_tries:
                raise CommandError("Couldn't generate unique slug")
        return slug

    @transaction.atomic
    def handle(self, *args, **options):
        company_name = options["company_name"]
        username = options["username"]
        password = options["password"]

        # 1. Company
        usd, _ = Currency.objects.get_or_create(
            code="USD", defaults={"name": "US Dollar", "symbol": "$"}
        )
        company, _ = Company.objects.get_or_create(
            name=company_name,
            defaults={
                "default_currency": usd,
                "slug": self.unique_slug_for_company(company_name),
            },
        )
        self.stdout.write(self.style.SUCCESS(f"Company: {company}"))

        # 2. User
        user, created = User.objects.get_or_create(
            username=username, defaults={"email": f"{username}@example.com"}
        )
        if created:
            user.set_password(password)
            user.save()
        self.stdout.write(self.style.SUCCESS(f"User: {user.username}"))

        # 3. Chart of accounts
        created_count, _ = ensure_system_accounts(company)
        self.stdout.write(
            self.style.SUCCESS(f"System accounts created: {created_count}"))

        # 4. Opening capital: Dr Bank / Cr Capital
        bank = Account.objects.get(company=company, code="1020")
        capital = Account.objects.get(company=company, code="3020")
        result = create_voucher(
            company.pk,
            user.pk,
            date=datetime.date.today(),
            narration="Opening capital",
            lines=[
                {"account_id": bank.pk, "debit": Decimal("10000.00")},
                {"account_id": capital.pk, "credit": Decimal("10000.00")},
            ],
        )
        if not result.success:
            raise CommandError(result.error)

        voucher_id = result.voucher.pk
        for step in (submit_voucher, approve_voucher, post_voucher):
            result = step(voucher_id, user.pk, company.pk, "ADMIN")
            if not result.success:
                raise CommandError(result.error)

        self.stdout.write(
            self.style.SUCCESS(
                f"Posted {result.voucher.voucher_no} ({result.voucher.status})"
            )
        )

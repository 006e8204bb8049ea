import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model

from ledger_core.models import (Account, AccountType, Company, Currency,
                                Project, Voucher, VoucherLine, VoucherStatus)
from ledger_core.services.vouchers import create_voucher
from ledger_core.services.workflow import (approve_voucher, post_voucher,
                                           submit_voucher)

User = get_user_model()

D = Decimal


class LedgerFixtureMixin:
    """Company with a small chart of accounts and two users."""

    def setUp(self):
        super().setUp()
        self.usd = Currency.objects.create(code="USD", name="US Dollar")
        self.company = Company.objects.create(
            name="Test Co", slug="test-co", default_currency=self.usd
        )
        self.accountant = User.objects.create_user(username="acc", password="pw")
        self.clerk = User.objects.create_user(username="clerk", password="pw")

        self.cash = self.make_account("1010", "Cash", AccountType.ASSET)
        self.bank = self.make_account("1020", "Bank - Main Account", AccountType.ASSET)
        self.payable = self.make_account("2010", "Accounts Payable", AccountType.LIABILITY)
        self.capital = self.make_account("3020", "Capital", AccountType.EQUITY)
        self.income = self.make_account("4010", "Sales Revenue", AccountType.INCOME)
        self.expense = self.make_account("5010", "Direct Materials", AccountType.EXPENSE)
        self.project = Project.objects.create(company=self.company, name="Bridge")

    def make_account(self, code, name, ac_type, company=None, **kwargs):
        return Account.objects.create(
            company=company or self.company, code=code, name=name,
            ac_type=ac_type, **kwargs,
        )

    def create_draft(self, lines=None, date=datetime.date(2025, 1, 15), **kwargs):
        """Draft voucher; default lines are Cash 1000 / Income 1000."""
        if lines is None:
            lines = [
                {"account_id": self.cash.pk, "debit": D("1000.00")},
                {"account_id": self.income.pk, "credit": D("1000.00")},
            ]
        result = create_voucher(
            self.company.pk, self.clerk.pk, date=date, lines=lines, **kwargs
        )
        assert result.success, result.error
        return result.voucher

    def post(self, voucher):
        for step in (submit_voucher, approve_voucher, post_voucher):
            result = step(voucher.pk, self.accountant.pk, self.company.pk, "ACCOUNTANT")
            assert result.success, result.error
        return result.voucher

    def create_posted(self, lines=None, **kwargs):
        return self.post(self.create_draft(lines, **kwargs))

    def force_lines(self, voucher, pairs, status=VoucherStatus.POSTED):
        """Write lines and status directly, skipping every check.
        Used to fake data the services would never produce."""
        VoucherLine.objects.bulk_create(
            [
                VoucherLine(voucher=voucher, company=voucher.company,
                            account=account, debit=debit, credit=credit)
                for account, debit, credit in pairs
            ]
        )
        Voucher.objects.filter(pk=voucher.pk).update(status=status)

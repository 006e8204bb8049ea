import datetime
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.test import TestCase

from ledger_core.exceptions import NotFoundError
from ledger_core.models import (Account, Company, Currency, Voucher,
                                VoucherLine)
from ledger_core.services.ledger import get_account_ledger
from ledger_core.services.statements import get_trial_balance
from ledger_core.services.system_accounts import ensure_system_accounts
from ledger_core.services.vouchers import create_voucher
from ledger_core.services.workflow import (approve_voucher, post_voucher,
                                           submit_voucher)

from .helpers import LedgerFixtureMixin


class TenantIsolationManagerTests(LedgerFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.company_b = Company.objects.create(
            name="Company B", default_currency=self.usd, slug="com_b"
        )
        self.cash_b = self.make_account("1010", "Cash", "ASSET", company=self.company_b)
        self.income_b = self.make_account("4010", "Sales", "INCOME", company=self.company_b)

        # one voucher per company
        self.voucher_a = self.create_posted()
        result = create_voucher(
            self.company_b.pk, self.clerk.pk, date=datetime.date(2025, 1, 15),
            lines=[
                {"account_id": self.cash_b.pk, "debit": Decimal("250.00")},
                {"account_id": self.income_b.pk, "credit": Decimal("250.00")},
            ],
        )
        self.voucher_b = result.voucher

    def test_for_company_returns_only_that_company_objects(self):
        """Compare voucher primary keys"""
        self.assertListEqual(
            list(
                Voucher.objects.for_company(self.company)
                .order_by("id")
                .values_list("pk", flat=True)
            ),
            [self.voucher_a.pk],
        )
        self.assertListEqual(
            list(
                Voucher.objects.for_company(self.company_b.pk)
                .order_by("id")
                .values_list("pk", flat=True)
            ),
            [self.voucher_b.pk],
        )

    def test_get_other_company_object_raises_does_not_exist(self):
        with self.assertRaises(Voucher.DoesNotExist):
            Voucher.objects.for_company(self.company).get(pk=self.voucher_b.pk)

    def test_same_code_lives_in_both_companies(self):
        self.assertEqual(Account.objects.filter(code="1010").count(), 2)
        self.assertEqual(Account.objects.active(self.company_b).count(), 2)

    def test_line_cannot_point_at_other_company_account(self):
        draft = self.create_draft()
        with self.assertRaises(ValidationError):
            VoucherLine.objects.create(
                voucher=draft, account=self.cash_b, debit=Decimal("1"))

    def test_statements_are_per_company(self):
        tb_a = get_trial_balance(self.company.pk)
        self.assertEqual(tb_a["total_debit"], Decimal("1000.00"))
        # company B's voucher is still a draft
        self.assertEqual(get_trial_balance(self.company_b.pk)["entries"], [])

    def test_ledger_of_other_company_account_is_not_found(self):
        with self.assertRaises(NotFoundError):
            get_account_ledger(self.cash_b.pk, self.company.pk)

    def test_foreign_voucher_cannot_be_moved(self):
        result = submit_voucher(self.voucher_b.pk, self.clerk.pk, self.company.pk, "OWNER")
        self.assertEqual(result.error_type, "not_found")


@pytest.mark.django_db
def test_full_cycle_stays_inside_tenant(django_user_model):
    usd = Currency.objects.create(code="USD", name="US Dollar")
    c1 = Company.objects.create(name="Company A", default_currency=usd, slug="com_a")
    c2 = Company.objects.create(name="Company B", default_currency=usd, slug="com_b")
    u1 = django_user_model.objects.create_user(username="alice", password="pw")
    ensure_system_accounts(c1)
    ensure_system_accounts(c2)

    bank = Account.objects.for_company(c1).get(code="1020")
    capital = Account.objects.for_company(c1).get(code="3020")
    result = create_voucher(
        c1.pk, u1.pk, date=datetime.date(2025, 5, 1),
        lines=[
            {"account_id": bank.pk, "debit": Decimal("700")},
            {"account_id": capital.pk, "credit": Decimal("700")},
        ],
    )
    assert result.success, result.error
    for step in (submit_voucher, approve_voucher, post_voucher):
        assert step(result.voucher.pk, u1.pk, c1.pk, "OWNER").success

    assert get_trial_balance(c1.pk)["total_debit"] == Decimal("700")
    assert get_trial_balance(c2.pk)["total_debit"] == Decimal("0")
    other_bank = Account.objects.for_company(c2).get(code="1020")
    assert get_account_ledger(other_bank.pk, c2.pk)["entries"] == []

import datetime

from django.core.exceptions import ValidationError
from django.db.models import ProtectedError
from django.test import TestCase, override_settings

from ledger_core.models import (AuditLog, Company, CompanySequence, Project,
                                Voucher, VoucherLine, VoucherStatus)
from ledger_core.services.numbering import next_voucher_number
from ledger_core.services.vouchers import (create_voucher,
                                           delete_draft_voucher,
                                           replace_voucher_lines,
                                           update_draft_voucher)

from .helpers import D, LedgerFixtureMixin


class CreateVoucherTests(LedgerFixtureMixin, TestCase):

    def test_creates_draft_with_lines_and_number(self):
        voucher = self.create_draft(narration="Cash sale")
        self.assertEqual(voucher.status, VoucherStatus.DRAFT)
        self.assertEqual(voucher.voucher_no, "V-2025-000001")
        self.assertEqual(voucher.created_by_id, self.clerk.pk)
        self.assertEqual(voucher.narration, "Cash sale")
        self.assertEqual(voucher.compute_totals(), (D("1000.00"), D("1000.00")))

        log = AuditLog.objects.get(object_id=str(voucher.pk))
        self.assertEqual(log.action, "create")
        self.assertEqual(len(log.changes["lines_added"]), 2)

    def test_accepts_iso_date_strings(self):
        voucher = self.create_draft(date="2025-06-30")
        self.assertEqual(voucher.date, datetime.date(2025, 6, 30))

    def test_unbalanced_lines_are_refused(self):
        result = create_voucher(
            self.company.pk, self.clerk.pk, date=datetime.date(2025, 1, 1),
            lines=[
                {"account_id": self.cash.pk, "debit": D("500")},
                {"account_id": self.income.pk, "credit": D("450")},
            ],
        )
        self.assertFalse(result.success)
        self.assertIn("not balanced", result.error)
        self.assertFalse(Voucher.objects.exists())
        # no number is consumed by a refused voucher
        self.assertFalse(CompanySequence.objects.exists())

    def test_non_finite_amount_is_refused(self):
        for bad in ("NaN", float("nan"), "Infinity"):
            result = create_voucher(
                self.company.pk, self.clerk.pk, date=datetime.date(2025, 1, 1),
                lines=[
                    {"account_id": self.cash.pk, "debit": bad},
                    {"account_id": self.income.pk, "credit": D("10")},
                ],
            )
            self.assertFalse(result.success)
            self.assertEqual(result.error_type, "validation_error")
            self.assertIn("Invalid amount", result.error)
        self.assertFalse(Voucher.objects.exists())

    def test_unknown_or_foreign_account_is_refused(self):
        other = Company.objects.create(name="Other", slug="other")
        foreign = self.make_account("1010", "Cash", "ASSET", company=other)
        result = create_voucher(
            self.company.pk, self.clerk.pk, date=datetime.date(2025, 1, 1),
            lines=[
                {"account_id": foreign.pk, "debit": D("10")},
                {"account_id": self.income.pk, "credit": D("10")},
            ],
        )
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Line 1: account not found")

    def test_inactive_account_is_refused(self):
        self.cash.is_active = False
        self.cash.save()
        result = create_voucher(
            self.company.pk, self.clerk.pk, date=datetime.date(2025, 1, 1),
            lines=[
                {"account_id": self.cash.pk, "debit": D("10")},
                {"account_id": self.income.pk, "credit": D("10")},
            ],
        )
        self.assertFalse(result.success)
        self.assertIn("inactive", result.error)

    def test_office_expense_cannot_have_project(self):
        result = create_voucher(
            self.company.pk, self.clerk.pk, date=datetime.date(2025, 1, 1),
            expense_type="OFFICE_EXPENSE", project_id=self.project.pk,
            lines=[
                {"account_id": self.expense.pk, "debit": D("10")},
                {"account_id": self.cash.pk, "credit": D("10")},
            ],
        )
        self.assertFalse(result.success)
        self.assertIn("Office expense", result.error)

    def test_lines_inherit_voucher_project_unless_company_level(self):
        voucher = self.create_draft(
            project_id=self.project.pk,
            expense_type="PROJECT_EXPENSE",
            lines=[
                {"account_id": self.expense.pk, "debit": D("75")},
                {"account_id": self.cash.pk, "credit": D("75"), "company_level": True},
            ],
        )
        lines = {line.account_id: line for line in voucher.lines.all()}
        self.assertEqual(lines[self.expense.pk].project_id, self.project.pk)
        self.assertIsNone(lines[self.cash.pk].project_id)

    def test_project_of_another_company_is_refused(self):
        other = Company.objects.create(name="Other", slug="other")
        foreign_project = Project.objects.create(company=other, name="Tower")
        result = create_voucher(
            self.company.pk, self.clerk.pk, date=datetime.date(2025, 1, 1),
            project_id=foreign_project.pk,
            lines=[
                {"account_id": self.expense.pk, "debit": D("10")},
                {"account_id": self.cash.pk, "credit": D("10")},
            ],
        )
        self.assertFalse(result.success)
        self.assertEqual(result.error_type, "validation_error")

    def test_inactive_company_is_not_found(self):
        self.company.is_active = False
        self.company.save()
        result = create_voucher(
            self.company.pk, self.clerk.pk, date=datetime.date(2025, 1, 1),
            lines=[],
        )
        self.assertEqual(result.error_type, "not_found")


class EditDraftTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.voucher = self.create_draft()

    def test_replace_lines_is_wholesale(self):
        old_ids = set(self.voucher.lines.values_list("id", flat=True))
        result = replace_voucher_lines(
            self.voucher.pk, self.clerk.pk, self.company.pk,
            [
                {"account_id": self.bank.pk, "debit": D("600")},
                {"account_id": self.cash.pk, "debit": D("400")},
                {"account_id": self.income.pk, "credit": D("1000")},
            ],
        )
        self.assertTrue(result.success, result.error)
        new_ids = set(self.voucher.lines.values_list("id", flat=True))
        self.assertEqual(len(new_ids), 3)
        self.assertFalse(old_ids & new_ids)

        log = AuditLog.objects.get(object_id=str(self.voucher.pk), action="update")
        self.assertEqual(len(log.changes["lines_removed"]), 2)
        self.assertEqual(len(log.changes["lines_added"]), 3)

    def test_failed_replacement_leaves_old_lines(self):
        old_ids = set(self.voucher.lines.values_list("id", flat=True))
        result = replace_voucher_lines(
            self.voucher.pk, self.clerk.pk, self.company.pk,
            [
                {"account_id": self.bank.pk, "debit": D("600")},
                {"account_id": 999999, "credit": D("600")},
            ],
        )
        self.assertFalse(result.success)
        self.assertEqual(set(self.voucher.lines.values_list("id", flat=True)), old_ids)

    def test_header_edit(self):
        result = update_draft_voucher(
            self.voucher.pk, self.clerk.pk, self.company.pk,
            narration="Corrected", date="2025-01-20", project_id=self.project.pk,
        )
        self.assertTrue(result.success, result.error)
        self.assertEqual(result.voucher.narration, "Corrected")
        self.assertEqual(result.voucher.date, datetime.date(2025, 1, 20))
        self.assertEqual(result.voucher.project_id, self.project.pk)

        log = AuditLog.objects.get(object_id=str(self.voucher.pk), action="update")
        changed = {item["field"] for item in log.changes["fields"]}
        self.assertEqual(changed, {"narration", "date", "project"})

    def test_submitted_voucher_cannot_be_edited(self):
        self.post(self.voucher)
        result = replace_voucher_lines(
            self.voucher.pk, self.clerk.pk, self.company.pk,
            [
                {"account_id": self.cash.pk, "debit": D("1")},
                {"account_id": self.income.pk, "credit": D("1")},
            ],
        )
        self.assertFalse(result.success)
        self.assertIn("Only draft vouchers can be edited", result.error)

    def test_delete_draft(self):
        pk = self.voucher.pk
        result = delete_draft_voucher(pk, self.clerk.pk, self.company.pk)
        self.assertTrue(result.success)
        self.assertFalse(Voucher.objects.filter(pk=pk).exists())
        self.assertFalse(VoucherLine.objects.filter(voucher_id=pk).exists())

        log = AuditLog.objects.get(object_id=str(pk), action="delete")
        self.assertIsNone(log.after)
        self.assertEqual(len(log.changes["lines_removed"]), 2)

    def test_posted_voucher_cannot_be_deleted(self):
        self.post(self.voucher)
        result = delete_draft_voucher(self.voucher.pk, self.clerk.pk, self.company.pk)
        self.assertFalse(result.success)
        self.assertTrue(Voucher.objects.filter(pk=self.voucher.pk).exists())


class NumberingTests(LedgerFixtureMixin, TestCase):

    def test_numbers_increase_per_company_and_year(self):
        d2025 = datetime.date(2025, 5, 1)
        self.assertEqual(next_voucher_number(self.company, d2025), "V-2025-000001")
        self.assertEqual(next_voucher_number(self.company, d2025), "V-2025-000002")
        # a new year restarts
        self.assertEqual(
            next_voucher_number(self.company, datetime.date(2026, 1, 1)), "V-2026-000001")

        other = Company.objects.create(name="Other", slug="other")
        self.assertEqual(next_voucher_number(other, d2025), "V-2025-000001")

    @override_settings(LEDGER_VOUCHER_PREFIX="JV", LEDGER_VOUCHER_NUMBER_WIDTH=4)
    def test_prefix_and_width_are_configurable(self):
        self.assertEqual(
            next_voucher_number(self.company, datetime.date(2025, 1, 1)), "JV-2025-0001")


class ModelGuardTests(LedgerFixtureMixin, TestCase):

    def test_posted_lines_are_frozen(self):
        voucher = self.create_posted()
        line = voucher.lines.first()
        line.description = "edited later"
        with self.assertRaises(ValidationError):
            line.save()
        with self.assertRaises(ValidationError):
            line.delete()

    def test_cannot_unpost(self):
        voucher = Voucher.objects.get(pk=self.create_posted().pk)
        voucher.status = VoucherStatus.DRAFT
        with self.assertRaises(ValidationError):
            voucher.save()

    def test_posted_header_is_frozen(self):
        posted = self.create_posted()
        for field, value in (("narration", "rewritten"),
                             ("date", datetime.date(2024, 12, 31)),
                             ("project_id", self.project.pk)):
            voucher = Voucher.objects.get(pk=posted.pk)
            setattr(voucher, field, value)
            with self.assertRaisesMessage(ValidationError, "posted voucher is immutable"):
                voucher.save()
        self.assertEqual(Voucher.objects.get(pk=posted.pk).date, datetime.date(2025, 1, 15))

    def test_line_with_both_sides_is_invalid(self):
        voucher = self.create_draft()
        with self.assertRaises(ValidationError):
            VoucherLine.objects.create(
                voucher=voucher, account=self.cash, debit=D("1"), credit=D("1"))

    def test_used_account_cannot_be_deleted(self):
        self.create_draft()
        with self.assertRaises(ProtectedError):
            self.cash.delete()

    def test_posted_voucher_delete_is_blocked(self):
        voucher = Voucher.objects.get(pk=self.create_posted().pk)
        with self.assertRaises(ValidationError):
            voucher.delete()

    def test_account_parent_must_share_company(self):
        other = Company.objects.create(name="Other", slug="other")
        foreign_parent = self.make_account("1000", "Assets", "ASSET", company=other)
        child = self.cash
        child.parent = foreign_parent
        with self.assertRaises(ValidationError):
            child.full_clean()

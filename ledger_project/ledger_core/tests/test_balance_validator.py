from decimal import Decimal
from types import SimpleNamespace

from django.test import SimpleTestCase, override_settings

from ledger_core.services.validation import (to_date, validate_voucher_balance)
from ledger_core.exceptions import VoucherValidationError


class BalanceValidatorTests(SimpleTestCase):

    def test_balanced_lines_pass(self):
        check = validate_voucher_balance([
            {"debit": Decimal("1000.00"), "credit": 0},
            {"debit": 0, "credit": Decimal("1000.00")},
        ])
        self.assertTrue(check.valid)
        self.assertIsNone(check.error)
        self.assertEqual(check.total_debit, Decimal("1000.00"))
        self.assertEqual(check.total_credit, Decimal("1000.00"))

    def test_unbalanced_lines_report_exact_difference(self):
        check = validate_voucher_balance([
            {"debit": "500", "credit": "0"},
            {"debit": "0", "credit": "450"},
        ])
        self.assertFalse(check.valid)
        self.assertIn("not balanced", check.error)
        self.assertIn("Difference: 50", check.error)

    def test_single_line_is_rejected_first(self):
        # even though it is also unbalanced, the line count is reported
        check = validate_voucher_balance([{"debit": 100, "credit": 0}])
        self.assertFalse(check.valid)
        self.assertEqual(check.error, "At least 2 voucher lines are required")

    def test_empty_input(self):
        self.assertFalse(validate_voucher_balance([]).valid)

    def test_line_with_both_sides_is_rejected(self):
        check = validate_voucher_balance([
            {"debit": 100, "credit": 100},
            {"debit": 0, "credit": 0},
        ])
        self.assertFalse(check.valid)
        self.assertIn("both debit and credit", check.error)

    def test_negative_amount_is_rejected(self):
        check = validate_voucher_balance([
            {"debit": -100, "credit": 0},
            {"debit": 0, "credit": -100},
        ])
        self.assertFalse(check.valid)
        self.assertIn(">= 0", check.error)

    def test_zero_line_is_rejected(self):
        check = validate_voucher_balance([
            {"debit": 100, "credit": 0},
            {"debit": 0, "credit": 100},
            {"debit": 0, "credit": 0},
        ])
        self.assertFalse(check.valid)
        self.assertIn("Line 3", check.error)

    def test_accepts_objects_with_attributes(self):
        lines = [
            SimpleNamespace(debit=Decimal("10.00"), credit=Decimal("0")),
            SimpleNamespace(debit=Decimal("0"), credit=Decimal("10.00")),
        ]
        self.assertTrue(validate_voucher_balance(lines).valid)

    def test_floats_are_read_through_str(self):
        # 0.1 + 0.2 != 0.3 in binary floating point
        check = validate_voucher_balance(
            [
                {"debit": 0.1, "credit": 0},
                {"debit": 0.2, "credit": 0},
                {"debit": 0, "credit": 0.3},
            ],
            epsilon=Decimal("0"),
        )
        self.assertTrue(check.valid)

    def test_difference_within_epsilon_passes(self):
        lines = [
            {"debit": "100.00", "credit": 0},
            {"debit": 0, "credit": "99.99"},
        ]
        self.assertTrue(validate_voucher_balance(lines, epsilon="0.01").valid)
        self.assertFalse(validate_voucher_balance(lines, epsilon="0.001").valid)

    @override_settings(LEDGER_BALANCE_EPSILON="0.5")
    def test_default_epsilon_comes_from_settings(self):
        lines = [
            {"debit": "100.00", "credit": 0},
            {"debit": 0, "credit": "99.60"},
        ]
        self.assertTrue(validate_voucher_balance(lines).valid)

    def test_garbage_amount_is_a_validation_failure(self):
        check = validate_voucher_balance([
            {"debit": "abc", "credit": 0},
            {"debit": 0, "credit": 1},
        ])
        self.assertFalse(check.valid)
        self.assertIn("Invalid amount", check.error)

    def test_non_finite_amounts_are_validation_failures(self):
        for bad in ("NaN", float("nan"), "Infinity", float("-inf"), Decimal("sNaN")):
            check = validate_voucher_balance([
                {"debit": bad, "credit": 0},
                {"debit": 0, "credit": 10},
            ])
            self.assertFalse(check.valid, bad)
            self.assertIn("Invalid amount", check.error)


class ToDateTests(SimpleTestCase):

    def test_parses_iso_string(self):
        self.assertEqual(to_date("2025-03-01").isoformat(), "2025-03-01")

    def test_rejects_garbage(self):
        with self.assertRaises(VoucherValidationError):
            to_date("01/03/2025")

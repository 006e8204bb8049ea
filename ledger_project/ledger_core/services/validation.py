import datetime
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import NamedTuple, Optional

from django.utils.dateparse import parse_date

from ..conf import balance_epsilon
from ..exceptions import UnbalancedVoucherError, VoucherValidationError

MIN_LINES = 2


class BalanceCheck(NamedTuple):
    valid: bool
    error: Optional[str] = None
    total_debit: Decimal = Decimal("0")
    total_credit: Decimal = Decimal("0")


# ------------------------------------
# Double-entry balance validation
# ------------------------------------
def to_amount(value) -> Decimal:
    """Coerce a line amount to Decimal. Floats go through str() so 0.1
    stays 0.1 instead of its binary approximation."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise VoucherValidationError(f"Invalid amount: {value!r}")
    # NaN and Infinity parse fine but break every comparison after
    if not amount.is_finite():
        raise VoucherValidationError(f"Invalid amount: {value!r}")
    return amount


def _field(line, name):
    # Lines arrive either as request payload dicts or as VoucherLine rows
    if isinstance(line, Mapping):
        return line.get(name)
    return getattr(line, name, None)


def assert_voucher_balanced(lines, epsilon=None):
    """
    Raise unless ``lines`` form a valid double entry.

    Rules, in order:
      1. at least two lines
      2. per line: no negatives, not both sides, not both zero
      3. |sum(debit) - sum(credit)| <= epsilon

    Returns (total_debit, total_credit).
    """
    lines = list(lines)
    if len(lines) < MIN_LINES:
        raise VoucherValidationError(
            f"At least {MIN_LINES} voucher lines are required")

    total_debit = Decimal("0")
    total_credit = Decimal("0")
    for index, line in enumerate(lines, start=1):
        debit = to_amount(_field(line, "debit"))
        credit = to_amount(_field(line, "credit"))
        if debit < 0 or credit < 0:
            raise VoucherValidationError(
                f"Line {index}: debit and credit must be >= 0")
        if debit > 0 and credit > 0:
            raise VoucherValidationError(
                f"Line {index}: a line cannot have both debit and credit")
        if debit == 0 and credit == 0:
            raise VoucherValidationError(
                f"Line {index}: either debit or credit must be greater than 0")
        total_debit += debit
        total_credit += credit

    if epsilon is None:
        epsilon = balance_epsilon()
    difference = abs(total_debit - total_credit)
    if difference > to_amount(epsilon):
        raise UnbalancedVoucherError(
            f"Voucher is not balanced. Debit: {total_debit}, "
            f"Credit: {total_credit}, Difference: {difference}"
        )
    return total_debit, total_credit


def validate_voucher_balance(lines, epsilon=None) -> BalanceCheck:
    """Pure check used by submit, post and the draft editors.

    Never raises for bad input; the reason comes back in ``error``.
    """
    try:
        total_debit, total_credit = assert_voucher_balanced(lines, epsilon)
    except VoucherValidationError as exc:
        return BalanceCheck(valid=False, error=exc.message)
    return BalanceCheck(
        valid=True, total_debit=total_debit, total_credit=total_credit)


def to_date(value):
    """Accept date objects or ISO 'YYYY-MM-DD' strings."""
    if value is None or isinstance(value, datetime.date):
        return value
    parsed = parse_date(str(value))
    if parsed is None:
        raise VoucherValidationError(f"Invalid date: {value!r}")
    return parsed

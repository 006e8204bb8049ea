from decimal import Decimal

from django.conf import settings

""" Ledger knobs read from Django settings, with defaults
    so the app also works in a bare settings module. """


def balance_epsilon(company=None):
    """Largest |debits - credits| still treated as balanced.

    Company currency wins (its minor unit), then LEDGER_BALANCE_EPSILON.
    """
    currency = getattr(company, "default_currency", None) if company else None
    if currency is not None:
        return currency.minor_unit
    return Decimal(str(getattr(settings, "LEDGER_BALANCE_EPSILON", "0.01")))


def voucher_prefix():
    return getattr(settings, "LEDGER_VOUCHER_PREFIX", "V")


def voucher_number_width():
    return int(getattr(settings, "LEDGER_VOUCHER_NUMBER_WIDTH", 6))

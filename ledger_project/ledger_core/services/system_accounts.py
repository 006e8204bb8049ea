import logging
from typing import NamedTuple

from django.db import transaction

from ..models import Account, AccountType

logger = logging.getLogger(__name__)


class SystemAccount(NamedTuple):
    code: str
    name: str
    ac_type: str


# Accounts every company needs before the first voucher
SYSTEM_ACCOUNTS = (
    SystemAccount("1010", "Cash", AccountType.ASSET),
    SystemAccount("1020", "Bank - Main Account", AccountType.ASSET),
    SystemAccount("1030", "Accounts Receivable", AccountType.ASSET),
    SystemAccount("1040", "Inventory", AccountType.ASSET),
    SystemAccount("2010", "Accounts Payable", AccountType.LIABILITY),
    SystemAccount("3010", "Owner Equity", AccountType.EQUITY),
    SystemAccount("3020", "Capital", AccountType.EQUITY),
    SystemAccount("4010", "Sales Revenue", AccountType.INCOME),
    SystemAccount("5010", "Direct Materials", AccountType.EXPENSE),
    SystemAccount("5020", "Direct Labor", AccountType.EXPENSE),
    SystemAccount("5030", "Site Overhead", AccountType.EXPENSE),
    SystemAccount("5090", "Miscellaneous Expenses", AccountType.EXPENSE),
)

DEFAULT_CASH_CODE = "1010"
DEFAULT_BANK_CODE = "1020"


@transaction.atomic
def ensure_system_accounts(company):
    """
    Create whichever system accounts ``company`` is missing.
    Existing codes are left alone, even if renamed. Safe to re-run.

    Returns (created, existing) counts.
    """
    existing_codes = set(
        Account.objects.for_company(company)
        .filter(code__in=[a.code for a in SYSTEM_ACCOUNTS])
        .values_list("code", flat=True)
    )
    missing = [a for a in SYSTEM_ACCOUNTS if a.code not in existing_codes]
    Account.objects.bulk_create(
        [
            Account(
                company=company,
                code=a.code,
                name=a.name,
                ac_type=a.ac_type,
                is_system=True,
            )
            for a in missing
        ],
        ignore_conflicts=True,  # a concurrent run may have won
    )
    if missing:
        logger.info(
            "Created %d system accounts", len(missing),
            extra={"company_id": getattr(company, "pk", company)},
        )
    return len(missing), len(existing_codes)


def _default_account(company, code, keyword):
    accounts = Account.objects.active(company).filter(ac_type=AccountType.ASSET)
    return (
        accounts.filter(code=code).first()
        or accounts.filter(name__icontains=keyword).order_by("code").first()
    )


def get_default_cash_account(company):
    """System cash account, else the first active asset named like cash."""
    return _default_account(company, DEFAULT_CASH_CODE, "Cash")


def get_default_bank_account(company):
    return _default_account(company, DEFAULT_BANK_CODE, "Bank")

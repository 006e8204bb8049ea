from decimal import Decimal

from django.db.models import Sum

from ..exceptions import NotFoundError
from ..models import Account, AccountType, VoucherLine
from ..models.account import DEBIT_NORMAL_TYPES

ZERO = Decimal("0.00")

# Cash/bank books pick accounts by name
CASH_ACCOUNT_KEYWORD = "Cash"
BANK_ACCOUNT_KEYWORD = "Bank"


def signed_impact(ac_type, debit, credit) -> Decimal:
    """How much a line moves an account's balance.

    ASSET/EXPENSE grow with debits, LIABILITY/EQUITY/INCOME with credits.
    """
    debit = debit or ZERO
    credit = credit or ZERO
    if ac_type in DEBIT_NORMAL_TYPES:
        return debit - credit
    return credit - debit


def qualifying_lines(company_id):
    """Lines of POSTED and REVERSED vouchers for one company.

    REVERSED originals stay in: their reversal voucher is POSTED and
    cancels them. Dropping REVERSED would leave the reversal alone.
    """
    return VoucherLine.objects.for_company(company_id).qualifying()


def _account_dict(account):
    return {
        "id": account.pk,
        "code": account.code,
        "name": account.name,
        "ac_type": account.ac_type,
        "is_active": account.is_active,
    }


def get_account_ledger(account_id, company_id, date_from=None, date_to=None):
    """
    Running-balance statement of one account.

    Opening balance = every qualifying line dated strictly before
    ``date_from``. Entries are ordered by voucher date, voucher number,
    then line creation, so the same data always gives the same ledger.
    """
    account = Account.objects.find(account_id, company=company_id)
    if account is None:
        raise NotFoundError("Account not found")

    lines = qualifying_lines(company_id).filter(account=account)

    opening = ZERO
    if date_from:
        totals = lines.filter(voucher__date__lt=date_from).aggregate(
            debit=Sum("debit"), credit=Sum("credit"))
        opening = signed_impact(account.ac_type, totals["debit"], totals["credit"])

    period_lines = (
        lines.in_period(date_from, date_to)
        .select_related("voucher")
        .order_by("voucher__date", "voucher__voucher_no", "created_at", "id")
    )

    running = opening
    total_debit = ZERO
    total_credit = ZERO
    entries = []
    for line in period_lines:
        running += signed_impact(account.ac_type, line.debit, line.credit)
        total_debit += line.debit
        total_credit += line.credit
        entries.append({
            "line_id": line.pk,
            "voucher_id": line.voucher_id,
            "voucher_no": line.voucher.voucher_no,
            "date": line.voucher.date,
            "voucher_type": line.voucher.voucher_type,
            "status": line.voucher.status,
            "narration": line.voucher.narration,
            "description": line.description,
            "debit": line.debit,
            "credit": line.credit,
            "balance": running,
            "project_id": line.project_id,
            "vendor_id": line.vendor_id,
            "payment_method_id": line.payment_method_id,
        })

    return {
        "account": _account_dict(account),
        "date_from": date_from,
        "date_to": date_to,
        "opening_balance": opening,
        "entries": entries,
        "total_debit": total_debit,
        "total_credit": total_credit,
        "closing_balance": running,
    }


# ---------- Cash & bank books ----------
def find_cash_accounts(company_id):
    return Account.objects.active(company_id).filter(
        ac_type=AccountType.ASSET, name__icontains=CASH_ACCOUNT_KEYWORD)


def find_bank_accounts(company_id):
    return Account.objects.active(company_id).filter(
        ac_type=AccountType.ASSET, name__icontains=BANK_ACCOUNT_KEYWORD)


def _book(accounts, company_id, account_id, date_from, date_to, label):
    if account_id is not None:
        if accounts.find(account_id) is None:
            raise NotFoundError(f"{label} account not found")
        accounts = accounts.filter(pk=account_id)
    return [
        get_account_ledger(account.pk, company_id, date_from, date_to)
        for account in accounts.order_by("code")
    ]


def get_cash_book(company_id, account_id=None, date_from=None, date_to=None):
    """Ledger of one cash account, or of every cash account."""
    return _book(find_cash_accounts(company_id), company_id, account_id,
                 date_from, date_to, "Cash")


def get_bank_book(company_id, account_id=None, date_from=None, date_to=None):
    return _book(find_bank_accounts(company_id), company_id, account_id,
                 date_from, date_to, "Bank")

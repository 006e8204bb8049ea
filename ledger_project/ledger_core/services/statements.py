"""
Financial statements, re-derived from voucher lines on every call.

Everything goes through ``aggregate_lines``: qualifying lines (POSTED and
REVERSED vouchers) summed per account, optionally per project. Nothing
here writes; there is no cached balance to drift out of date.
"""
import logging
from decimal import Decimal

from django.db.models import Sum

from ..exceptions import NotFoundError
from ..models import AccountType, Project
from ..models.account import BALANCE_SHEET_TYPES
from .ledger import ZERO, qualifying_lines, signed_impact

logger = logging.getLogger(__name__)

PROFIT_AND_LOSS_TYPES = (AccountType.INCOME, AccountType.EXPENSE)


def aggregate_lines(company_id, *, date_from=None, date_to=None,
                    ac_types=None, project_id=None, by_project=False):
    """
    Sum qualifying lines per account (and per line project when
    ``by_project``). Rows are ordered by account code.

    Each row: account_id, code, name, ac_type, is_active, project_id
    (when grouped), total_debit, total_credit, balance (signed impact).
    """
    qs = qualifying_lines(company_id).in_period(date_from, date_to)
    if ac_types:
        qs = qs.filter(account__ac_type__in=list(ac_types))
    if project_id is not None:
        qs = qs.filter(project_id=project_id)

    group_fields = ["account_id", "account__code", "account__name",
                    "account__ac_type", "account__is_active"]
    if by_project:
        group_fields.append("project_id")

    rows = (
        qs.values(*group_fields)
        .annotate(total_debit=Sum("debit"), total_credit=Sum("credit"))
        .order_by("account__code", *(["project_id"] if by_project else []))
    )

    result = []
    for row in rows:
        debit = row["total_debit"] or ZERO
        credit = row["total_credit"] or ZERO
        item = {
            "account_id": row["account_id"],
            "code": row["account__code"],
            "name": row["account__name"],
            "ac_type": row["account__ac_type"],
            "is_active": row["account__is_active"],
            "total_debit": debit,
            "total_credit": credit,
            "balance": signed_impact(row["account__ac_type"], debit, credit),
        }
        if by_project:
            item["project_id"] = row["project_id"]
        result.append(item)
    return result


def _total(rows, key="balance") -> Decimal:
    return sum((row[key] for row in rows), ZERO)


def _account_amount(row):
    return {
        "account_id": row["account_id"],
        "code": row["code"],
        "name": row["name"],
        "amount": row["balance"],
    }


# ---------- Trial Balance ----------
def get_trial_balance(company_id, as_of=None):
    """
    Raw debit/credit totals of every account with activity up to
    ``as_of``, inactive accounts included. A non-zero difference means
    corrupted data; it is reported, never hidden.
    """
    rows = aggregate_lines(company_id, date_to=as_of)
    total_debit = _total(rows, "total_debit")
    total_credit = _total(rows, "total_credit")
    difference = total_debit - total_credit

    warnings = []
    if difference != 0:
        warnings.append(
            f"Trial balance is out of balance by {difference} "
            f"(debits {total_debit}, credits {total_credit})"
        )
        logger.warning(
            "Trial balance out of balance",
            extra={"company_id": company_id, "difference": str(difference)},
        )

    return {
        "as_of": as_of,
        "entries": [
            {
                "account_id": row["account_id"],
                "code": row["code"],
                "name": row["name"],
                "ac_type": row["ac_type"],
                "is_active": row["is_active"],
                "debit": row["total_debit"],
                "credit": row["total_credit"],
                "balance": row["balance"],
            }
            for row in rows
        ],
        "total_debit": total_debit,
        "total_credit": total_credit,
        "difference": difference,
        "is_balanced": difference == 0,
        "warnings": warnings,
    }


# ---------- Profit & Loss ----------
def get_profit_and_loss(company_id, date_from=None, date_to=None,
                        project_id=None):
    rows = aggregate_lines(
        company_id, date_from=date_from, date_to=date_to,
        ac_types=PROFIT_AND_LOSS_TYPES, project_id=project_id,
    )
    income = [_account_amount(r) for r in rows if r["ac_type"] == AccountType.INCOME]
    expenses = [_account_amount(r) for r in rows if r["ac_type"] == AccountType.EXPENSE]
    total_income = _total(income, "amount")
    total_expenses = _total(expenses, "amount")
    return {
        "date_from": date_from,
        "date_to": date_to,
        "project_id": project_id,
        "income": income,
        "expenses": expenses,
        "total_income": total_income,
        "total_expenses": total_expenses,
        "net_profit": total_income - total_expenses,
    }


# ---------- Balance Sheet ----------
def get_balance_sheet(company_id, as_of=None):
    """
    Assets vs liabilities + equity up to ``as_of``.

    Income and expense are not closed into equity here, so any P&L
    activity shows up in ``difference``; ``current_earnings`` reports
    that unclosed amount next to it.
    """
    rows = aggregate_lines(company_id, date_to=as_of, ac_types=BALANCE_SHEET_TYPES)

    def section(ac_type):
        return [
            {
                "account_id": r["account_id"],
                "code": r["code"],
                "name": r["name"],
                "balance": r["balance"],
            }
            for r in rows if r["ac_type"] == ac_type
        ]

    assets = section(AccountType.ASSET)
    liabilities = section(AccountType.LIABILITY)
    equity = section(AccountType.EQUITY)
    total_assets = _total(assets)
    total_liabilities = _total(liabilities)
    total_equity = _total(equity)
    total_liabilities_and_equity = total_liabilities + total_equity
    difference = total_assets - total_liabilities_and_equity

    pl_rows = aggregate_lines(company_id, date_to=as_of,
                              ac_types=PROFIT_AND_LOSS_TYPES)
    current_earnings = (
        _total([r for r in pl_rows if r["ac_type"] == AccountType.INCOME])
        - _total([r for r in pl_rows if r["ac_type"] == AccountType.EXPENSE])
    )

    warnings = []
    if difference != 0:
        warnings.append(
            f"Balance sheet difference of {difference} "
            f"(unclosed current earnings: {current_earnings})"
        )
        logger.warning(
            "Balance sheet does not balance",
            extra={"company_id": company_id, "difference": str(difference)},
        )

    return {
        "as_of": as_of,
        "assets": assets,
        "liabilities": liabilities,
        "equity": equity,
        "total_assets": total_assets,
        "total_liabilities": total_liabilities,
        "total_equity": total_equity,
        "total_liabilities_and_equity": total_liabilities_and_equity,
        "difference": difference,
        "current_earnings": current_earnings,
        "warnings": warnings,
    }


# ---------- Project profitability ----------
def _project_summary(project_id, project_name, rows):
    income_rows = [r for r in rows if r["ac_type"] == AccountType.INCOME and r["balance"]]
    expense_rows = [r for r in rows if r["ac_type"] == AccountType.EXPENSE and r["balance"]]
    income = _total(income_rows)
    expenses = _total(expense_rows)
    return {
        "project_id": project_id,
        "project_name": project_name,
        "income": income,
        "expenses": expenses,
        "profit": income - expenses,
        "income_by_account": [_account_amount(r) for r in income_rows],
        "expenses_by_account": [_account_amount(r) for r in expense_rows],
    }


def get_project_profitability(company_id, date_from=None, date_to=None,
                              project_id=None):
    """
    One project: a detail dict with per-account income and expenses.
    No project: a list of summaries, one per line-level project, with
    company-level lines (no project) in a ``project_id=None`` bucket.
    """
    if project_id is not None:
        project = Project.objects.find(project_id, company=company_id)
        if project is None:
            raise NotFoundError("Project not found")
        rows = aggregate_lines(
            company_id, date_from=date_from, date_to=date_to,
            ac_types=PROFIT_AND_LOSS_TYPES, project_id=project.pk,
        )
        return _project_summary(project.pk, project.name, rows)

    rows = aggregate_lines(
        company_id, date_from=date_from, date_to=date_to,
        ac_types=PROFIT_AND_LOSS_TYPES, by_project=True,
    )
    by_project = {}
    for row in rows:
        by_project.setdefault(row["project_id"], []).append(row)

    names = dict(
        Project.objects.for_company(company_id)
        .filter(pk__in=[pk for pk in by_project if pk is not None])
        .values_list("id", "name")
    )
    summaries = [
        _project_summary(pk, names.get(pk), project_rows)
        for pk, project_rows in by_project.items()
    ]
    # named projects alphabetically, unassigned last
    summaries.sort(key=lambda s: (s["project_id"] is None, s["project_name"] or ""))
    return summaries

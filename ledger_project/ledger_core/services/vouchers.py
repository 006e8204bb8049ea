import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from ..conf import balance_epsilon
from ..exceptions import LedgerError, NotFoundError, VoucherValidationError
from ..models import (Account, Company, Voucher, VoucherLine, VoucherStatus,
                      VoucherType)
from .audit_helper import record_change, snapshot_voucher
from .numbering import next_voucher_number
from .validation import assert_voucher_balanced, to_amount, to_date
from .workflow import WorkflowResult, fetch_voucher, lock_voucher

logger = logging.getLogger(__name__)

# "not passed" for fields where None means "clear it"
_UNSET = object()


def _model_error(exc: ValidationError) -> VoucherValidationError:
    return VoucherValidationError("; ".join(exc.messages))


def _load_company(company_id) -> Company:
    try:
        company = (
            Company.objects.select_related("default_currency")
            .filter(pk=company_id, is_active=True)
            .first()
        )
    except (ValueError, TypeError, ValidationError):
        company = None
    if company is None:
        raise NotFoundError("Company not found")
    return company


def _create_lines(voucher, lines_data):
    """
    Validate accounts and insert the lines of a DRAFT voucher.

    Each item: account_id, debit, credit and optionally description,
    project_id, vendor_id, payment_method_id, company_level. A line
    inherits the voucher project unless it is marked company_level.
    """
    account_ids = {item.get("account_id") for item in lines_data}
    accounts = Account.objects.for_company(voucher.company_id).in_bulk(
        [pk for pk in account_ids if pk is not None])

    for index, item in enumerate(lines_data, start=1):
        account = accounts.get(item.get("account_id"))
        if account is None:
            raise VoucherValidationError(f"Line {index}: account not found")
        if not account.is_active:
            raise VoucherValidationError(
                f"Line {index}: account {account.code} - {account.name} "
                "is inactive")

        if item.get("company_level"):
            project_id = None
        else:
            project_id = item.get("project_id", voucher.project_id)

        line = VoucherLine(
            voucher=voucher,
            company_id=voucher.company_id,
            account=account,
            debit=to_amount(item.get("debit")),
            credit=to_amount(item.get("credit")),
            project_id=project_id,
            vendor_id=item.get("vendor_id"),
            payment_method_id=item.get("payment_method_id"),
            description=item.get("description") or "",
        )
        try:
            line.save()  # full_clean(): tenant + amount rules
        except ValidationError as exc:
            raise VoucherValidationError(
                f"Line {index}: {'; '.join(exc.messages)}") from exc


def _lock_draft(voucher_id, company_id, verb):
    voucher = lock_voucher(voucher_id, company_id)
    if voucher.status != VoucherStatus.DRAFT:
        raise VoucherValidationError(
            f"Only draft vouchers can be {verb}; this one is {voucher.status}")
    return voucher


# ---------- Create ----------
def create_voucher(company_id, actor_id, *, date, lines,
                   voucher_type=VoucherType.JOURNAL, expense_type=None,
                   project_id=None, narration="", request_metadata=None,
                   numbering=None) -> WorkflowResult:
    """Create a DRAFT voucher with its lines in one transaction."""
    allocate_number = numbering or next_voucher_number
    try:
        with transaction.atomic():
            company = _load_company(company_id)
            date = to_date(date)
            if date is None:
                raise VoucherValidationError("Voucher date is required")
            assert_voucher_balanced(lines, epsilon=balance_epsilon(company))

            voucher = Voucher(
                company=company,
                voucher_no=allocate_number(company, date),
                date=date,
                voucher_type=voucher_type,
                expense_type=expense_type,
                project_id=project_id,
                narration=narration or "",
                status=VoucherStatus.DRAFT,
                created_by_id=actor_id,
            )
            try:
                voucher.full_clean()
            except ValidationError as exc:
                raise _model_error(exc) from exc
            voucher.save()
            _create_lines(voucher, lines)

            record_change(
                action="create",
                instance=voucher,
                user_id=actor_id,
                company=company,
                before=None,
                after=snapshot_voucher(voucher),
                request_metadata=request_metadata,
            )
    except LedgerError as exc:
        logger.info(
            "Voucher create rejected: %s", exc.message,
            extra={"company_id": company_id, "error_type": exc.error_type},
        )
        return WorkflowResult.fail(exc)

    logger.info("Voucher %s created", voucher.voucher_no,
                extra={"voucher_id": voucher.pk, "company_id": company_id})
    return WorkflowResult.ok(fetch_voucher(voucher.pk))


# ---------- Edit ----------
def update_draft_voucher(voucher_id, actor_id, company_id, *, date=None,
                         narration=None, voucher_type=None,
                         expense_type=_UNSET, project_id=_UNSET, lines=None,
                         request_metadata=None) -> WorkflowResult:
    """
    Edit a DRAFT voucher's header and, when ``lines`` is given, replace
    all of its lines (delete everything, recreate). All or nothing.
    """
    try:
        with transaction.atomic():
            voucher = _lock_draft(voucher_id, company_id, "edited")
            before = snapshot_voucher(voucher)

            if date is not None:
                voucher.date = to_date(date)
            if narration is not None:
                voucher.narration = narration
            if voucher_type is not None:
                voucher.voucher_type = voucher_type
            if expense_type is not _UNSET:
                voucher.expense_type = expense_type
            if project_id is not _UNSET:
                voucher.project_id = project_id
            try:
                voucher.full_clean()
            except ValidationError as exc:
                raise _model_error(exc) from exc
            voucher.save()

            if lines is not None:
                assert_voucher_balanced(
                    lines, epsilon=balance_epsilon(voucher.company))
                voucher.lines.all().delete()
                _create_lines(voucher, lines)

            record_change(
                action="update",
                instance=voucher,
                user_id=actor_id,
                company=voucher.company,
                before=before,
                after=snapshot_voucher(voucher),
                request_metadata=request_metadata,
            )
    except LedgerError as exc:
        logger.info(
            "Voucher update rejected: %s", exc.message,
            extra={"voucher_id": voucher_id, "company_id": company_id,
                   "error_type": exc.error_type},
        )
        return WorkflowResult.fail(exc)

    return WorkflowResult.ok(fetch_voucher(voucher.pk))


def replace_voucher_lines(voucher_id, actor_id, company_id, lines, *,
                          request_metadata=None) -> WorkflowResult:
    return update_draft_voucher(
        voucher_id, actor_id, company_id, lines=lines,
        request_metadata=request_metadata,
    )


# ---------- Delete ----------
def delete_draft_voucher(voucher_id, actor_id, company_id, *,
                         request_metadata=None) -> WorkflowResult:
    try:
        with transaction.atomic():
            voucher = _lock_draft(voucher_id, company_id, "deleted")
            record_change(
                action="delete",
                instance=voucher,
                user_id=actor_id,
                company=voucher.company,
                before=snapshot_voucher(voucher),
                after=None,
                request_metadata=request_metadata,
            )
            voucher.delete()
    except LedgerError as exc:
        return WorkflowResult.fail(exc)

    logger.info("Voucher %s deleted", voucher_id,
                extra={"voucher_id": voucher_id, "company_id": company_id})
    return WorkflowResult.ok()

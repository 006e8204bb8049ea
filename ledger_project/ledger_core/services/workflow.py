import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..conf import balance_epsilon
from ..exceptions import AccountStateError, LedgerError, NotFoundError, TransitionError
from ..models import Voucher, VoucherStatus
from .accounts import AccountDirectory
from .audit_helper import record_change, snapshot_voucher
from .capabilities import WorkflowAction, assert_can_perform
from .sync import notify_status_changed
from .validation import assert_voucher_balanced

logger = logging.getLogger(__name__)

# Single source of truth for legal status changes
TRANSITIONS = {
    VoucherStatus.DRAFT: (VoucherStatus.SUBMITTED,),
    # approve, or reject back to the preparer
    VoucherStatus.SUBMITTED: (VoucherStatus.APPROVED, VoucherStatus.DRAFT),
    VoucherStatus.APPROVED: (VoucherStatus.POSTED,),
    VoucherStatus.POSTED: (VoucherStatus.REVERSED,),
    VoucherStatus.REVERSED: (),
}


class WorkflowResult:
    """
    Outcome of a voucher operation.

    Usage:
        result = post_voucher(voucher.id, user.id, company.id, "ACCOUNTANT")
        if result.success:
            voucher = result.voucher
        else:
            error_message = result.error
    """

    def __init__(self, success: bool, voucher=None, error: str = None,
                 error_type: str = None):
        self.success = success
        self.voucher = voucher
        self.error = error
        self.error_type = error_type

    def __repr__(self):
        if self.success:
            return f"<WorkflowResult ok voucher={getattr(self.voucher, 'pk', None)}>"
        return f"<WorkflowResult {self.error_type}: {self.error}>"

    @classmethod
    def ok(cls, voucher=None):
        return cls(success=True, voucher=voucher)

    @classmethod
    def fail(cls, exc: LedgerError):
        return cls(success=False, error=exc.message, error_type=exc.error_type)

    def as_dict(self):
        if self.success:
            return {"success": True, "voucher": self.voucher}
        return {"success": False, "error": self.error,
                "error_type": self.error_type}


def can_transition(current, requested) -> bool:
    return requested in TRANSITIONS.get(current, ())


def assert_transition(current, requested):
    if not can_transition(current, requested):
        raise TransitionError(current, requested)


def lock_voucher(voucher_id, company_id) -> Voucher:
    """Row-locked fresh copy. Another company's voucher is 'not found'."""
    try:
        return Voucher.objects.select_for_update().get(
            pk=voucher_id, company_id=company_id)
    except (Voucher.DoesNotExist, ValueError, TypeError, ValidationError):
        # a malformed id can never match a row
        raise NotFoundError("Voucher not found")


def fetch_voucher(voucher_id):
    """Voucher with lines and accounts loaded, for handing back to callers."""
    return (
        Voucher.objects.select_related("company", "project", "reversal_of")
        .prefetch_related("lines__account")
        .get(pk=voucher_id)
    )


def assert_accounts_postable(lines, directory):
    """Every line must hit an active leaf account."""
    infos = directory.lookup_many({line.account_id for line in lines})
    for line in lines:
        info = infos.get(line.account_id)
        if info is None:
            raise AccountStateError(f"Account {line.account_id} not found")
        if not info.is_active:
            raise AccountStateError(
                f"Account {info.code} - {info.name} is inactive",
                account_code=info.code,
            )
        if not info.is_leaf:
            raise AccountStateError(
                f"Account {info.code} - {info.name} is a group account "
                "and cannot be posted to",
                account_code=info.code,
            )


# ---------- Transition plumbing ----------
# action -> (target status, actor field, timestamp field)
_STEPS = {
    WorkflowAction.SUBMIT: (VoucherStatus.SUBMITTED, "submitted_by_id", "submitted_at"),
    WorkflowAction.APPROVE: (VoucherStatus.APPROVED, "approved_by_id", "approved_at"),
    WorkflowAction.POST: (VoucherStatus.POSTED, "posted_by_id", "posted_at"),
    WorkflowAction.REJECT: (VoucherStatus.DRAFT, None, None),
}


def _apply_step(voucher, action, actor_id, now):
    target, actor_field, stamp_field = _STEPS[action]
    voucher.status = target
    update_fields = ["status", "updated_at"]
    if actor_field:
        setattr(voucher, actor_field, actor_id)
        setattr(voucher, stamp_field, now)
        update_fields += [actor_field.removesuffix("_id"), stamp_field]
    if action == WorkflowAction.REJECT:
        # back on the preparer's desk; a new submit restamps these
        voucher.submitted_by_id = None
        voucher.submitted_at = None
        update_fields += ["submitted_by", "submitted_at"]
    voucher.save(update_fields=update_fields)


def _run_transition(action, voucher_id, actor_id, company_id, role, *,
                    request_metadata=None, sync_hook=None,
                    account_directory=None) -> WorkflowResult:
    target = _STEPS[action][0]
    try:
        with transaction.atomic():
            voucher = lock_voucher(voucher_id, company_id)
            assert_transition(voucher.status, target)
            assert_can_perform(role, action)

            lines = list(voucher.lines.select_related("account").order_by("id"))
            if action in (WorkflowAction.SUBMIT, WorkflowAction.POST):
                assert_voucher_balanced(
                    lines, epsilon=balance_epsilon(voucher.company))
            if action == WorkflowAction.POST:
                directory = account_directory or AccountDirectory(voucher.company_id)
                assert_accounts_postable(lines, directory)

            before = snapshot_voucher(voucher)
            _apply_step(voucher, action, actor_id, timezone.now())
            after = snapshot_voucher(voucher)

            record_change(
                action=action.lower(),
                instance=voucher,
                user_id=actor_id,
                company=voucher.company,
                before=before,
                after=after,
                request_metadata=request_metadata,
            )
            notify_status_changed(voucher, sync_hook)
    except LedgerError as exc:
        logger.info(
            "Voucher %s rejected: %s", action.lower(), exc.message,
            extra={"voucher_id": voucher_id, "company_id": company_id,
                   "error_type": exc.error_type},
        )
        return WorkflowResult.fail(exc)

    logger.info(
        "Voucher %s %s -> %s", voucher.voucher_no, action.lower(), target,
        extra={"voucher_id": voucher.pk, "company_id": company_id,
               "actor_id": actor_id},
    )
    return WorkflowResult.ok(fetch_voucher(voucher.pk))


# ---------- Public operations ----------
def submit_voucher(voucher_id, actor_id, company_id, role, *,
                   request_metadata=None, sync_hook=None) -> WorkflowResult:
    """DRAFT -> SUBMITTED. Lines must balance."""
    return _run_transition(
        WorkflowAction.SUBMIT, voucher_id, actor_id, company_id, role,
        request_metadata=request_metadata, sync_hook=sync_hook,
    )


def approve_voucher(voucher_id, actor_id, company_id, role, *,
                    request_metadata=None, sync_hook=None) -> WorkflowResult:
    return _run_transition(
        WorkflowAction.APPROVE, voucher_id, actor_id, company_id, role,
        request_metadata=request_metadata, sync_hook=sync_hook,
    )


def post_voucher(voucher_id, actor_id, company_id, role, *,
                 request_metadata=None, sync_hook=None,
                 account_directory=None) -> WorkflowResult:
    """APPROVED -> POSTED. Re-checks balance, then every account must be
    active and a leaf."""
    return _run_transition(
        WorkflowAction.POST, voucher_id, actor_id, company_id, role,
        request_metadata=request_metadata, sync_hook=sync_hook,
        account_directory=account_directory,
    )


def reject_voucher(voucher_id, actor_id, company_id, role, *,
                   request_metadata=None, sync_hook=None) -> WorkflowResult:
    """SUBMITTED -> DRAFT so the preparer can fix the lines."""
    return _run_transition(
        WorkflowAction.REJECT, voucher_id, actor_id, company_id, role,
        request_metadata=request_metadata, sync_hook=sync_hook,
    )

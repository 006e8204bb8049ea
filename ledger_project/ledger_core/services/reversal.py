import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from ..exceptions import DuplicateReversalError, LedgerError, TransitionError
from ..models import Voucher, VoucherLine, VoucherStatus
from .audit_helper import record_change, snapshot_voucher
from .capabilities import WorkflowAction, assert_can_perform
from .numbering import next_voucher_number
from .sync import notify_status_changed
from .validation import to_date
from .workflow import WorkflowResult, fetch_voucher, lock_voucher

logger = logging.getLogger(__name__)


def _already_reversed(original):
    return DuplicateReversalError(
        f"Voucher {original.voucher_no} has already been reversed")


def _mirror_lines(original, reversal):
    """Same accounts and tags, debit and credit swapped (never negated)."""
    return [
        VoucherLine(
            voucher=reversal,
            company_id=reversal.company_id,
            account_id=line.account_id,
            debit=line.credit,
            credit=line.debit,
            project_id=line.project_id,
            vendor_id=line.vendor_id,
            payment_method_id=line.payment_method_id,
            description=line.description,
        )
        for line in original.lines.order_by("id")
    ]


def reverse_voucher(voucher_id, actor_id, company_id, role, *, date=None,
                    narration=None, request_metadata=None, sync_hook=None,
                    numbering=None) -> WorkflowResult:
    """
    Cancel a POSTED voucher by posting its mirror image.

    The original is kept and marked REVERSED; the new voucher points back
    at it through ``reversal_of`` and is POSTED from birth. Both count in
    reports, so together they net to zero.
    """
    allocate_number = numbering or next_voucher_number
    try:
        with transaction.atomic():
            original = lock_voucher(voucher_id, company_id)

            # Checked before status: a second attempt finds the original
            # REVERSED, and "already reversed" is the useful answer
            if Voucher.objects.filter(reversal_of=original).exists():
                raise _already_reversed(original)
            if original.status != VoucherStatus.POSTED:
                raise TransitionError(
                    original.status, VoucherStatus.REVERSED,
                    "Only posted vouchers can be reversed",
                )
            assert_can_perform(role, WorkflowAction.REVERSE)

            now = timezone.now()
            reversal_date = to_date(date) or timezone.localdate()
            try:
                with transaction.atomic():
                    reversal = Voucher.objects.create(
                        company_id=original.company_id,
                        voucher_no=allocate_number(original.company, reversal_date),
                        date=reversal_date,
                        voucher_type=original.voucher_type,
                        expense_type=original.expense_type,
                        project_id=original.project_id,
                        narration=narration or f"Reversal of {original.voucher_no}",
                        status=VoucherStatus.POSTED,
                        created_by_id=actor_id,
                        posted_by_id=actor_id,
                        posted_at=now,
                        reversal_of=original,
                    )
            except IntegrityError:
                # uq_voucher_reversal_of: someone else won the race
                if Voucher.objects.filter(reversal_of=original).exists():
                    raise _already_reversed(original)
                raise

            # bulk_create skips VoucherLine.save(), which freezes lines on
            # non-draft vouchers; this is the one place allowed to do that
            VoucherLine.objects.bulk_create(_mirror_lines(original, reversal))

            before = snapshot_voucher(original)
            original.status = VoucherStatus.REVERSED
            original.reversed_by_id = actor_id
            original.reversed_at = now
            original.save(update_fields=[
                "status", "reversed_by", "reversed_at", "updated_at"])
            after = snapshot_voucher(original)

            record_change(
                action="reverse",
                instance=original,
                user_id=actor_id,
                company=original.company,
                before=before,
                after=after,
                request_metadata=request_metadata,
            )
            record_change(
                action="create",
                instance=reversal,
                user_id=actor_id,
                company=original.company,
                before=None,
                after=snapshot_voucher(reversal),
                request_metadata=request_metadata,
            )
            notify_status_changed(original, sync_hook)
    except LedgerError as exc:
        logger.info(
            "Voucher reverse rejected: %s", exc.message,
            extra={"voucher_id": voucher_id, "company_id": company_id,
                   "error_type": exc.error_type},
        )
        return WorkflowResult.fail(exc)

    logger.info(
        "Voucher %s reversed by %s", original.voucher_no, reversal.voucher_no,
        extra={"voucher_id": original.pk, "reversal_id": reversal.pk,
               "company_id": company_id, "actor_id": actor_id},
    )
    return WorkflowResult.ok(fetch_voucher(reversal.pk))

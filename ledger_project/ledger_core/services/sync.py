import logging

from ..exceptions import LedgerError, LinkedRecordSyncError
from ..models import Voucher
from ..signals import voucher_status_changed

logger = logging.getLogger(__name__)


def notify_status_changed(voucher, sync_hook=None):
    """
    Let linked records follow ``voucher``'s new status.

    ``sync_hook(voucher_id, company_id)`` replaces the signal when given.
    Any failure is re-raised as LinkedRecordSyncError so the surrounding
    atomic block rolls the transition back.
    """
    try:
        if sync_hook is not None:
            sync_hook(voucher.pk, voucher.company_id)
        else:
            # send(), not send_robust(): receiver errors must propagate
            voucher_status_changed.send(
                sender=Voucher,
                voucher_id=voucher.pk,
                company_id=voucher.company_id,
                status=voucher.status,
            )
    except LedgerError:
        raise
    except Exception as exc:
        logger.exception(
            "Linked record sync failed",
            extra={"voucher_id": voucher.pk, "company_id": voucher.company_id},
        )
        raise LinkedRecordSyncError(
            f"Linked record sync failed: {exc}") from exc

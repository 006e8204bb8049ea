from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import Signal, receiver

from .models import Voucher, VoucherStatus

"""
Sent inside the transition's transaction after a voucher changes status.
kwargs: voucher_id, company_id, status.
Receivers keep linked records (purchases, payments, ...) in step;
an exception in a receiver rolls the transition back.
"""
voucher_status_changed = Signal()


"""Only drafts may be deleted; everything else is history.
Accounts with lines are already covered by PROTECT on VoucherLine.account."""


@receiver(pre_delete, sender=Voucher)
def prevent_delete_non_draft_voucher(sender, instance, **kwargs):
    if instance.status != VoucherStatus.DRAFT:
        raise ValidationError(
            f"Cannot delete a {instance.status} voucher. Reverse it instead."
        )

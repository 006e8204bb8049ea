from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager, VoucherLineManager
from .account import Account
from .company import Company
from .dimension import PaymentMethod, Project, Vendor


class VoucherStatus(models.TextChoices):
    DRAFT = "DRAFT", "Draft"  # still editable
    SUBMITTED = "SUBMITTED", "Submitted"  # waiting for approval
    APPROVED = "APPROVED", "Approved"  # ready to post
    POSTED = "POSTED", "Posted"  # counts in the books
    REVERSED = "REVERSED", "Reversed"  # cancelled by a reversal voucher


class VoucherType(models.TextChoices):
    RECEIPT = "RECEIPT", "Receipt"
    PAYMENT = "PAYMENT", "Payment"
    JOURNAL = "JOURNAL", "Journal"
    CONTRA = "CONTRA", "Contra"


class ExpenseType(models.TextChoices):
    PROJECT_EXPENSE = "PROJECT_EXPENSE", "Project expense"
    OFFICE_EXPENSE = "OFFICE_EXPENSE", "Office expense"


# Statuses whose lines count in ledgers and statements
QUALIFYING_STATUSES = (VoucherStatus.POSTED, VoucherStatus.REVERSED)

# POSTED -> REVERSED is the only change a posted voucher accepts
POSTED_MUTABLE_FIELDS = {"status", "reversed_by", "reversed_at", "updated_at"}


def _company_of(model, pk):
    """company_id of a related row, None when the row doesn't exist."""
    return (
        model._base_manager.filter(pk=pk)
        .values_list("company_id", flat=True)
        .first()
    )


# ---------- Voucher (Header) & VoucherLine ----------
class Voucher(models.Model):  # One accounting transaction
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # Sequential per company and year: V-2025-000001
    voucher_no = models.CharField(max_length=32)
    date = models.DateField()
    voucher_type = models.CharField(
        max_length=10, choices=VoucherType.choices,
        default=VoucherType.JOURNAL,
    )
    expense_type = models.CharField(
        max_length=20, choices=ExpenseType.choices, null=True, blank=True
    )
    status = models.CharField(
        max_length=10, choices=VoucherStatus.choices,
        default=VoucherStatus.DRAFT,
    )
    project = models.ForeignKey(
        Project, null=True, blank=True, on_delete=models.PROTECT,
        related_name="vouchers",
    )
    narration = models.TextField(blank=True, default="")

    # Who moved the voucher through each step, and when
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    posted_at = models.DateTimeField(null=True, blank=True)
    reversed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    reversed_at = models.DateTimeField(null=True, blank=True)

    # Set only on reversal vouchers; points back at the cancelled voucher
    reversal_of = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,  # never lose the link in the audit chain
        related_name="reversal_vouchers",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ["-date", "-voucher_no"]
        indexes = [
            models.Index(fields=["company", "date"], name="voucher_company_date_idx"),
            models.Index(fields=["company", "status"], name="voucher_company_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "voucher_no"],
                name="uq_voucher_company_no",
            ),
            # A voucher is reversed at most once (NULLs don't collide)
            models.UniqueConstraint(
                fields=["reversal_of"], name="uq_voucher_reversal_of"
            ),
            # Reversal vouchers are born POSTED
            models.CheckConstraint(
                condition=(
                    models.Q(reversal_of__isnull=True)
                    | models.Q(status__in=["POSTED", "REVERSED"])
                ),
                name="voucher_reversal_is_posted",
            ),
        ]

    def __str__(self):
        return f"{self.voucher_no} {self.date} [{self.status}]"

    @property
    def is_draft(self):
        return self.status == VoucherStatus.DRAFT

    @property
    def is_reversal(self):
        return self.reversal_of_id is not None

    def compute_totals(self):
        """Return (debits, credits) summed over the lines."""
        aggs = self.lines.aggregate(
            total_debit=models.Sum("debit"),
            total_credit=models.Sum("credit"),
        )
        return (
            aggs["total_debit"] or Decimal("0.00"),
            aggs["total_credit"] or Decimal("0.00"),
        )

    def clean(self):
        # Office expenses are company-level, never charged to a project
        if self.expense_type == ExpenseType.OFFICE_EXPENSE and self.project_id:
            raise ValidationError(
                "Office expense vouchers cannot have a project."
            )
        if self.project_id and _company_of(Project, self.project_id) != self.company_id:
            raise ValidationError(
                "Voucher.project must belong to the same company."
            )

    def save(self, *args, **kwargs):
        if self.pk:  # existing row: check history rules against the DB copy
            orig = Voucher.objects.filter(pk=self.pk).first()
            orig_status = orig.status if orig else None
            if orig_status == VoucherStatus.REVERSED:
                raise ValidationError("A reversed voucher is immutable.")
            if orig_status == VoucherStatus.POSTED:
                if self.status not in QUALIFYING_STATUSES:
                    raise ValidationError("Cannot unpost a posted voucher")
                # only the reversal stamps may move on a posted voucher
                changed = [
                    f.name for f in self._meta.concrete_fields
                    if f.name not in POSTED_MUTABLE_FIELDS
                    and getattr(self, f.attname) != getattr(orig, f.attname)
                ]
                if changed:
                    raise ValidationError(
                        f"A posted voucher is immutable (changed: {', '.join(changed)})."
                    )
        super().save(*args, **kwargs)


class VoucherLine(models.Model):  # One debit or credit
    voucher = models.ForeignKey(
        Voucher, on_delete=models.CASCADE, related_name="lines"
    )
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # can't delete an account that has lines -> PROTECT
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="voucher_lines"
    )
    debit = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=0)

    # Optional tags for slicing reports
    project = models.ForeignKey(
        Project, null=True, blank=True, on_delete=models.PROTECT,
        related_name="voucher_lines",
    )
    vendor = models.ForeignKey(
        Vendor, null=True, blank=True, on_delete=models.PROTECT,
        related_name="voucher_lines",
    )
    payment_method = models.ForeignKey(
        PaymentMethod, null=True, blank=True, on_delete=models.PROTECT,
        related_name="voucher_lines",
    )
    description = models.CharField(max_length=400, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    objects = VoucherLineManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "account"], name="vline_company_account_idx"),
            models.Index(fields=["company", "voucher"], name="vline_company_voucher_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="vl_non_negative_amounts",
            ),
            models.CheckConstraint(
                condition=~(models.Q(debit__gt=0) & models.Q(credit__gt=0)),
                name="vl_not_both_sides",
            ),
            models.CheckConstraint(
                condition=~(models.Q(debit=0) & models.Q(credit=0)),
                name="vl_debit_xor_credit_nonzero",
            ),
        ]

    def __str__(self):
        return f"{self.voucher_id} | {self.account_id} | D:{self.debit} C:{self.credit}"

    def clean(self):
        debit = self.debit or 0
        credit = self.credit or 0
        # (redundant with CheckConstraint but gives a readable message)
        if debit < 0 or credit < 0:
            raise ValidationError("Debit and credit must be >= 0")
        if debit > 0 and credit > 0:
            raise ValidationError(
                "A voucher line cannot have both debit and credit"
            )
        if debit == 0 and credit == 0:
            raise ValidationError(
                "A voucher line requires a non-0 debit or credit"
            )

        # Company consistency across every reference
        if self.company_id != _company_of(Voucher, self.voucher_id):
            raise ValidationError(
                "VoucherLine.company must equal Voucher.company"
            )
        for field in ("account", "project", "vendor", "payment_method"):
            related_id = getattr(self, f"{field}_id")
            model = self._meta.get_field(field).related_model
            if related_id and _company_of(model, related_id) != self.company_id:
                raise ValidationError(
                    f"VoucherLine.{field} must belong to the same company."
                )

        # Lines are frozen once the voucher leaves DRAFT
        status = (
            Voucher.objects.filter(pk=self.voucher_id)
            .values_list("status", flat=True)
            .first()
        )
        if status is not None and status != VoucherStatus.DRAFT:
            raise ValidationError(
                f"Cannot modify lines of a {status} voucher."
            )

    def delete(self, *args, **kwargs):
        if not self.voucher.is_draft:
            raise ValidationError(
                "Cannot delete VoucherLine: voucher is no longer a draft."
            )
        return super().delete(*args, **kwargs)

    def save(self, *args, **kwargs):
        # Inherit tenant from the header when the caller didn't set it
        if not self.company_id and self.voucher_id:
            self.company_id = self.voucher.company_id
        self.full_clean()
        super().save(*args, **kwargs)

from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .company import Company


class AccountType(models.TextChoices):
    # Balance Sheet
    ASSET = "ASSET", "Asset"
    LIABILITY = "LIABILITY", "Liability"
    EQUITY = "EQUITY", "Equity"
    # Profit & Loss
    INCOME = "INCOME", "Income"
    EXPENSE = "EXPENSE", "Expense"


# Assets/Expenses grow on the debit side,
# Liabilities/Equity/Income grow on the credit side
DEBIT_NORMAL_TYPES = (AccountType.ASSET, AccountType.EXPENSE)
BALANCE_SHEET_TYPES = (
    AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY)


class Account(models.Model):
    """
    Ledger account in a company's Chart of Accounts.
    - code is unique per company
    - an account with children is a group account and takes no postings
    - ac_type decides the sign of a line's impact and where it is reported
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # e.g. "1010" Cash, "4010" Sales Revenue
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    ac_type = models.CharField(max_length=10, choices=AccountType.choices)

    # Optional hierarchy (1000 Current Assets -> 1010 Cash)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,  # can't delete a parent if children exist
        related_name="children",
    )
    # "soft deactivate": stop new postings without deleting history
    is_active = models.BooleanField(default=True)
    # Seeded by ensure_system_accounts()
    is_system = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ["code"]
        indexes = [
            # Reports group by type
            models.Index(fields=["company", "ac_type"], name="acct_company_type_idx"),
            models.Index(fields=["company", "parent"], name="acct_company_parent_idx"),
        ]
        # Codes repeat across companies but must be unique within one
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_account_code"
            )
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def is_leaf(self):
        """Only leaf accounts may be posted to."""
        return not self.children.exists()

    @property
    def normal_balance(self):
        return "debit" if self.ac_type in DEBIT_NORMAL_TYPES else "credit"

    def clean(self):
        """Enforce company consistency (multi-tenancy)"""
        if self.parent_id:
            if self.pk and self.parent_id == self.pk:
                raise ValidationError("An account cannot be its own parent.")
            if self.parent.company_id != self.company_id:
                raise ValidationError(
                    "Parent & child accounts must belong to the same company"
                )

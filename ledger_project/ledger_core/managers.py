from django.core.exceptions import ValidationError
from django.db import models

# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):
        # Accept either a Company instance or its primary key
        return self.filter(company=company)

    def active(self, company):
        return self.filter(
            company=company,  # enforce tenant scoping
            is_active=True,  # only fetch active records
        )

    def find(self, pk, company=None):
        """Row with primary key ``pk`` (inside ``company`` when given), or
        None. A malformed id is just another missing row."""
        try:
            qs = self if company is None else self.for_company(company)
            return qs.filter(pk=pk).first()
        except (ValueError, TypeError, ValidationError):
            return None


# Attach TenantQuerySet to .objects
class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    pass


# ---------- Voucher lines ----------
class VoucherLineQuerySet(TenantQuerySet):
    def qualifying(self):
        """Lines that count towards balances: posted vouchers and the
        reversed originals (their reversal vouchers are posted too, so the
        pair nets to zero)."""
        from .models.voucher import VoucherStatus

        return self.filter(
            voucher__status__in=[VoucherStatus.POSTED, VoucherStatus.REVERSED]
        )

    def in_period(self, date_from=None, date_to=None):
        qs = self
        if date_from:
            qs = qs.filter(voucher__date__gte=date_from)
        if date_to:
            qs = qs.filter(voucher__date__lte=date_to)
        return qs


class VoucherLineManager(models.Manager.from_queryset(VoucherLineQuerySet)):
    pass

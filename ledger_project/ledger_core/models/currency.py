from decimal import Decimal

from django.db import models


# ---------- Currency ----------
class Currency(models.Model):
    """
    ISO currencies. The ledger is single-currency per company; the
    currency only tells us how fine the smallest amount is.
    """

    code = models.CharField(max_length=3, primary_key=True)  # 'USD', 'BDT'
    name = models.CharField(max_length=64)
    symbol = models.CharField(max_length=8, blank=True, null=True)
    # JPY has 0, most currencies 2, KWD 3
    decimal_places = models.PositiveSmallIntegerField(default=2)

    class Meta:
        verbose_name_plural = "currencies"

    def __str__(self):
        return f"{self.code} ({self.symbol or ''})"

    @property
    def minor_unit(self):
        """Smallest representable amount, e.g. Decimal('0.01')."""
        return Decimal(1).scaleb(-self.decimal_places)

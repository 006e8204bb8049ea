from django.db import models


# ---------- Tenant / Company ----------
class Company(models.Model):
    """Tenant / Organization. Every ledger row hangs off one company."""

    name = models.CharField(max_length=200)
    slug = models.SlugField(  # A URL-friendly identifier
        max_length=80, unique=True  # no two companies can have the same slug
    )
    # Drives the balance tolerance (minor unit), never used for conversion
    default_currency = models.ForeignKey(
        "Currency",
        null=True,
        blank=True,
        # don't allow deleting a currency that a company depends on
        on_delete=models.PROTECT,
        related_name="companies",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name

from django.db import models
from .company import Company


class CompanySequence(models.Model):
    """
    Per-company counter. Rows are locked with select_for_update()
    while a number is handed out, so two writers never share one.
    """

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="sequences"
    )
    # e.g. "voucher:2025"
    name = models.CharField(max_length=64)
    next_value = models.PositiveBigIntegerField(default=1)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_sequence_name"
            )
        ]

    def __str__(self):
        return f"{self.company_id}:{self.name}={self.next_value}"

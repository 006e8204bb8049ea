from django.db import models
from ..managers import TenantManager
from .company import Company

""" Dimensional tags carried by voucher lines.
    Reports slice by them; they never change a line's amount. """


class Project(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_project_name"
            )
        ]

    def __str__(self):
        return self.name


class Vendor(models.Model):  # Supplier a payment line is made out to
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    is_active = models.BooleanField(default=True)

    objects = TenantManager()

    class Meta:
        # Vendor names must be unique per company
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_vendor_name"
            )
        ]

    def __str__(self):
        return self.name


class PaymentMethod(models.Model):
    class MethodType(models.TextChoices):
        CASH = "CASH", "Cash"
        BANK = "BANK", "Bank"
        CHEQUE = "CHEQUE", "Cheque"
        MOBILE = "MOBILE", "Mobile money"

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=100)
    method_type = models.CharField(
        max_length=10, choices=MethodType.choices, default=MethodType.CASH
    )
    is_active = models.BooleanField(default=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_payment_method"
            )
        ]

    def __str__(self):
        return f"{self.name} ({self.method_type})"

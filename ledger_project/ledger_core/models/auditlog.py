from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from ..managers import TenantManager
from .company import Company


# ---------- Audit / Event log ----------
class AuditLog(models.Model):  # Accountability for every ledger mutation
    # Nullable for system-wide events
    company = models.ForeignKey(
        Company, null=True, blank=True, on_delete=models.SET_NULL,
    )
    # Nullable in case the action was automated (import script, command)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    # create, update, delete, submit, approve, post, reject, reverse
    action = models.CharField(max_length=50)
    object_type = models.CharField(max_length=100)  # e.g. "Voucher"
    object_id = models.CharField(max_length=100)

    # Snapshots on either side of the change, and the diff between them
    before = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    after = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    changes = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    # ip / user_agent / url handed over by the HTTP layer
    request_metadata = models.JSONField(
        null=True, blank=True, encoder=DjangoJSONEncoder
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["company", "user"], name="audit_company_user_idx"),
            models.Index(fields=["company", "created_at"], name="audit_company_created_idx"),
            models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
        ]

    def __str__(self):
        return (
            f"[{self.created_at:%Y-%m-%d %H:%M}] {self.user_id} "
            f"{self.action} {self.object_type}({self.object_id})"
        )

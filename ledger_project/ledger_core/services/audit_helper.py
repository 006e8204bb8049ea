import datetime
from decimal import Decimal
from typing import Optional

from django.forms.models import model_to_dict

from ..models import AuditLog, Company

# Never compared: lines get their own per-line diff, updated_at always moves
DIFF_IGNORED_FIELDS = {"lines", "updated_at"}


def _json_safe(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return value


def snapshot_instance(instance, exclude=("updated_at",)) -> dict:
    """Flat, JSON-safe copy of a row. Relations collapse to their ids."""
    data = model_to_dict(instance, exclude=list(exclude))
    data["id"] = instance.pk
    return {key: _json_safe(value) for key, value in data.items()}


def snapshot_voucher(voucher) -> dict:
    """Voucher header plus its lines in id order, read fresh from the DB."""
    data = snapshot_instance(voucher)
    data["lines"] = [
        snapshot_instance(line, exclude=("voucher", "company"))
        for line in voucher.lines.order_by("id")
    ]
    return data


def _field_changes(before: dict, after: dict, ignored=()):
    changes = []
    for key in list(before) + [k for k in after if k not in before]:
        if key in ignored:
            continue
        old, new = before.get(key), after.get(key)
        if old != new:
            changes.append({"field": key, "from": old, "to": new})
    return changes


def create_diff(before: Optional[dict], after: Optional[dict]) -> dict:
    """
    Field-level diff between two snapshots.

    Lines are matched by id: ids only in ``after`` were added, ids only
    in ``before`` were removed, shared ids with different values changed.
    """
    before = before or {}
    after = after or {}

    before_lines = {line["id"]: line for line in before.get("lines") or []}
    after_lines = {line["id"]: line for line in after.get("lines") or []}

    lines_changed = []
    for line_id, old_line in before_lines.items():
        new_line = after_lines.get(line_id)
        if new_line is None:
            continue
        fields = _field_changes(old_line, new_line)
        if fields:
            lines_changed.append({"id": line_id, "fields": fields})

    return {
        "fields": _field_changes(before, after, DIFF_IGNORED_FIELDS),
        "lines_added": [
            line for line_id, line in after_lines.items()
            if line_id not in before_lines
        ],
        "lines_removed": [
            line for line_id, line in before_lines.items()
            if line_id not in after_lines
        ],
        "lines_changed": lines_changed,
    }


def record_change(
    *,
    action: str,
    instance,
    user_id=None,
    company: Optional[Company] = None,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    request_metadata: Optional[dict] = None,
) -> AuditLog:
    """
    Central audit logger.
    Runs in the caller's transaction: if this insert fails the business
    change rolls back with it.
    """
    if not company:
        company = getattr(instance, "company", None)

    return AuditLog.objects.create(
        company=company,
        user_id=user_id,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        before=before,
        after=after,
        changes=create_diff(before, after),
        request_metadata=request_metadata,
    )


def request_metadata(request) -> dict:
    """ip / user_agent / url of an HttpRequest, for record_change()."""
    meta = request.META
    forwarded = meta.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        ip = forwarded.split(",")[0].strip()  # client, proxy1, proxy2
    else:
        ip = meta.get("HTTP_X_REAL_IP") or meta.get("REMOTE_ADDR")
    return {
        "ip": ip,
        "user_agent": meta.get("HTTP_USER_AGENT", ""),
        "url": request.get_full_path(),
    }

"""Audit logging helper utilities."""
from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy.orm import Session

from app.models.audit import AuditLog
from app.utils.time import utcnow


SENSITIVE_KEYS = {
    "email",
    "phone",
    "payment_url",
    "encrypted_data",
    "id_number",
    "account_number",
}


def _mask_value(key: str, value: Any) -> Any:
    if value is None:
        return None

    if key in {"account_number", "id_number"}:
        stripped = str(value).replace(" ", "")
        if len(stripped) <= 4:
            return f"***{stripped}"
        return f"***{stripped[-4:]}"

    if key == "email":
        text = str(value)
        if "@" in text:
            _, domain = text.split("@", 1)
            return f"***@{domain}"
        return "***"

    if key == "phone":
        digits = "".join(ch for ch in str(value) if ch.isdigit())
        return f"***{digits[-2:]}" if digits else "***"

    if key == "payment_url":
        base = str(value).split("?", 1)[0]
        if "/" in base:
            return f"{base.rsplit('/', 1)[0]}/***"
        return "***"

    return "***"


def sanitize_payload_for_audit(data: Any) -> Any:
    """Return a copy of ``data`` with obvious PII fields masked."""

    if isinstance(data, Mapping):
        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                sanitized[key] = _mask_value(key, value)
            else:
                sanitized[key] = sanitize_payload_for_audit(value)
        return sanitized

    if isinstance(data, list):
        return [sanitize_payload_for_audit(item) for item in data]

    return data


def log_audit(
    db: Session,
    *,
    actor: str,
    action: str,
    entity_type: str,
    entity_id: str | int,
    user_id: int | None = None,
    before: dict | None = None,
    after: dict | None = None,
) -> AuditLog:
    """Stage an audit entry in the shared AuditLog table (caller commits)."""

    entry = AuditLog(
        actor=actor,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=sanitize_payload_for_audit(before or {}),
        after_json=sanitize_payload_for_audit(after or {}),
        at=utcnow(),
    )
    db.add(entry)
    return entry


def actor_for_user(user: Any, fallback: str = "system") -> str:
    """Return the canonical actor string for a user object."""

    user_id = getattr(user, "id", None)
    if user_id is None:
        return fallback
    return f"user:{user_id}"

"""Deferred side effects (audit entries, notifications) of lifecycle operations.

Lifecycle services return the effects they want instead of writing them
inline. ``dispatch_effects`` runs after the primary transaction committed and
isolates every failure: an audit or notification error is logged and rolled
back, it never reaches the caller nor undoes the committed transition.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

from sqlalchemy.orm import Session

from app.services.notifications import create_notification
from app.utils.audit import log_audit

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class AuditEffect:
    actor: str
    action: str
    entity_type: str
    entity_id: str
    user_id: int | None = None
    before: dict[str, Any] = field(default_factory=dict)
    after: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NotifyEffect:
    user_id: int
    type: str
    title: str
    message: str
    related_entity_type: str | None = None
    related_entity_id: str | None = None


Effect = Union[AuditEffect, NotifyEffect]


@dataclass
class LifecycleResult(Generic[T]):
    """Value produced by a committed operation plus its pending effects."""

    value: T
    effects: list[Effect] = field(default_factory=list)


def _apply(db: Session, effect: Effect) -> None:
    if isinstance(effect, AuditEffect):
        log_audit(
            db,
            actor=effect.actor,
            action=effect.action,
            entity_type=effect.entity_type,
            entity_id=effect.entity_id,
            user_id=effect.user_id,
            before=effect.before,
            after=effect.after,
        )
    elif isinstance(effect, NotifyEffect):
        create_notification(
            db,
            user_id=effect.user_id,
            type=effect.type,
            title=effect.title,
            message=effect.message,
            related_entity_type=effect.related_entity_type,
            related_entity_id=effect.related_entity_id,
        )
    else:  # pragma: no cover - guarded by the Effect union
        raise TypeError(f"Unknown effect {effect!r}")


def dispatch_effects(db: Session, effects: list[Effect]) -> int:
    """Write effects one by one, each in its own commit. Return the failure count."""

    failures = 0
    for effect in effects:
        try:
            _apply(db, effect)
            db.commit()
        except Exception:  # noqa: BLE001
            db.rollback()
            failures += 1
            logger.exception(
                "Side effect dispatch failed",
                extra={"effect": type(effect).__name__, "detail": getattr(effect, "action", None) or getattr(effect, "type", None)},
            )
    return failures


def run(db: Session, result: LifecycleResult[T]) -> T:
    """Dispatch the effects of ``result`` and hand back its value."""

    dispatch_effects(db, result.effects)
    return result.value


__all__ = [
    "AuditEffect",
    "Effect",
    "LifecycleResult",
    "NotifyEffect",
    "dispatch_effects",
    "run",
]

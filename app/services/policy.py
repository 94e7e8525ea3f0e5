"""Declarative authorization policy for escrow and dispute operations."""
from __future__ import annotations

import logging
from enum import Enum

from app.models.dispute import Dispute
from app.models.escrow import Escrow
from app.models.user import User, UserRole
from app.utils.errors import forbidden

logger = logging.getLogger(__name__)


class Relation(str, Enum):
    """How a caller relates to an escrow (or its dispute)."""

    buyer = "buyer"
    seller = "seller"
    assigned_mediator = "assigned_mediator"
    mediator = "mediator"
    admin = "admin"


_PARTIES = frozenset({Relation.buyer, Relation.seller})
_STAFF = frozenset({Relation.admin, Relation.mediator})

POLICY: dict[str, frozenset[Relation]] = {
    "escrow.view": _PARTIES | {Relation.assigned_mediator, Relation.admin},
    "escrow.initiate_payment": frozenset({Relation.buyer}),
    "escrow.confirm_payment": frozenset({Relation.buyer, Relation.admin}),
    "escrow.start_work": frozenset({Relation.seller}),
    "escrow.release_payment": frozenset({Relation.buyer, Relation.admin}),
    "escrow.cancel": frozenset({Relation.buyer, Relation.admin}),
    "dispute.create": _PARTIES,
    "dispute.view": _PARTIES | _STAFF | {Relation.assigned_mediator},
    "dispute.message": _PARTIES | _STAFF | {Relation.assigned_mediator},
    "dispute.submit_evidence": _PARTIES,
    "dispute.update_status": _STAFF | {Relation.assigned_mediator},
    "dispute.resolve": _STAFF | {Relation.assigned_mediator},
    "dispute.assign_mediator": frozenset({Relation.admin}),
    "dispute.close": frozenset({Relation.admin}),
    "dispute.settle": frozenset({Relation.admin}),
    "review.create": _PARTIES,
}

# Operations a frozen account may not start.
FROZEN_BLOCKED = frozenset(
    {
        "escrow.create",
        "escrow.initiate_payment",
        "escrow.confirm_payment",
        "escrow.start_work",
        "escrow.release_payment",
        "escrow.cancel",
        "dispute.create",
        "dispute.message",
        "dispute.submit_evidence",
        "review.create",
    }
)

_DENIAL_MESSAGES = {
    "escrow.view": "Access denied",
    "escrow.initiate_payment": "Only buyer can initiate payment",
    "escrow.release_payment": "Only buyer can release payment",
    "dispute.create": "Only involved parties can create dispute",
}


def relations_for(user: User, escrow: Escrow, dispute: Dispute | None = None) -> set[Relation]:
    """Return every relation ``user`` holds towards ``escrow``."""

    relations: set[Relation] = set()
    if user.id == escrow.buyer_id:
        relations.add(Relation.buyer)
    if user.id == escrow.seller_id:
        relations.add(Relation.seller)
    mediator_ids = {escrow.mediator_id, dispute.mediator_id if dispute else None} - {None}
    if user.id in mediator_ids:
        relations.add(Relation.assigned_mediator)
    if user.role == UserRole.admin:
        relations.add(Relation.admin)
    if user.role == UserRole.mediator:
        relations.add(Relation.mediator)
    return relations


def authorize(
    operation: str,
    user: User,
    escrow: Escrow,
    *,
    dispute: Dispute | None = None,
) -> set[Relation]:
    """Raise FORBIDDEN unless ``user`` holds a relation allowed for ``operation``."""

    allowed = POLICY[operation]
    held = relations_for(user, escrow, dispute)
    if not held & allowed:
        logger.info(
            "Authorization denied",
            extra={"operation": operation, "user_id": user.id, "escrow_id": escrow.id},
        )
        raise forbidden(_DENIAL_MESSAGES.get(operation, "Operation not permitted for this user"))
    ensure_not_frozen(operation, user)
    return held


def ensure_not_frozen(operation: str, user: User) -> None:
    if operation in FROZEN_BLOCKED and user.is_frozen:
        raise forbidden("Account is frozen", code="ACCOUNT_FROZEN")


__all__ = ["FROZEN_BLOCKED", "POLICY", "Relation", "authorize", "ensure_not_frozen", "relations_for"]

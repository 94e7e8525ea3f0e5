"""Allowed status transitions for escrows and disputes."""
from __future__ import annotations

from enum import Enum
from typing import Mapping, TypeVar

from app.models.dispute import DisputeStatus
from app.models.escrow import EscrowStatus
from app.utils.errors import conflict

S = TypeVar("S", bound=Enum)

ESCROW_TRANSITIONS: dict[EscrowStatus, frozenset[EscrowStatus]] = {
    EscrowStatus.created: frozenset(
        {EscrowStatus.pending_payment, EscrowStatus.funded, EscrowStatus.cancelled}
    ),
    # Re-initiating a pending payment replaces the checkout link.
    EscrowStatus.pending_payment: frozenset(
        {EscrowStatus.pending_payment, EscrowStatus.funded, EscrowStatus.cancelled}
    ),
    EscrowStatus.funded: frozenset(
        {EscrowStatus.in_progress, EscrowStatus.completed, EscrowStatus.disputed}
    ),
    EscrowStatus.in_progress: frozenset({EscrowStatus.completed, EscrowStatus.disputed}),
    # A dispute suspends the lifecycle; only a settlement moves it on.
    EscrowStatus.disputed: frozenset(),
    EscrowStatus.completed: frozenset(),
    EscrowStatus.cancelled: frozenset(),
    EscrowStatus.refunded: frozenset(),
}

# Edges reachable only by settling the escrow's dispute.
SETTLEMENT_TRANSITIONS: dict[EscrowStatus, frozenset[EscrowStatus]] = {
    EscrowStatus.disputed: frozenset({EscrowStatus.completed, EscrowStatus.refunded}),
}

DISPUTE_TRANSITIONS: dict[DisputeStatus, frozenset[DisputeStatus]] = {
    DisputeStatus.open: frozenset(
        {
            DisputeStatus.in_review,
            DisputeStatus.mediation,
            DisputeStatus.escalated,
            DisputeStatus.resolved,
        }
    ),
    DisputeStatus.in_review: frozenset(
        {DisputeStatus.mediation, DisputeStatus.escalated, DisputeStatus.resolved}
    ),
    DisputeStatus.mediation: frozenset({DisputeStatus.escalated, DisputeStatus.resolved}),
    DisputeStatus.escalated: frozenset({DisputeStatus.resolved}),
    DisputeStatus.resolved: frozenset({DisputeStatus.closed}),
    DisputeStatus.closed: frozenset(),
}

TERMINAL_ESCROW_STATUSES = frozenset(
    status
    for status, targets in ESCROW_TRANSITIONS.items()
    if not targets and status not in SETTLEMENT_TRANSITIONS
)
ACTIVE_DISPUTE_STATUSES = frozenset(
    {
        DisputeStatus.open,
        DisputeStatus.in_review,
        DisputeStatus.mediation,
        DisputeStatus.escalated,
    }
)


def _ensure_exhaustive(enum_cls: type[S], table: Mapping[S, frozenset[S]]) -> None:
    missing = set(enum_cls) - set(table)
    if missing:
        raise RuntimeError(
            f"Transition table for {enum_cls.__name__} misses: {sorted(m.value for m in missing)}"
        )


_ensure_exhaustive(EscrowStatus, ESCROW_TRANSITIONS)
_ensure_exhaustive(DisputeStatus, DISPUTE_TRANSITIONS)


def can_transition(current: S, target: S) -> bool:
    table: Mapping = ESCROW_TRANSITIONS if isinstance(current, EscrowStatus) else DISPUTE_TRANSITIONS
    return target in table[current]


def ensure_transition(current: S, target: S, *, entity: str = "Escrow") -> None:
    """Raise a 409 when ``current -> target`` is not a declared edge."""

    if not can_transition(current, target):
        raise conflict(
            "INVALID_TRANSITION",
            f"{entity} cannot move from {current.value} to {target.value}.",
            {"from": current.value, "to": target.value},
        )


def ensure_settlement(current: EscrowStatus, target: EscrowStatus) -> None:
    """Raise a 409 unless settling a dispute may move the escrow to ``target``."""

    if target not in SETTLEMENT_TRANSITIONS.get(current, frozenset()):
        raise conflict(
            "INVALID_TRANSITION",
            f"Escrow cannot be settled from {current.value} to {target.value}.",
            {"from": current.value, "to": target.value},
        )


__all__ = [
    "ACTIVE_DISPUTE_STATUSES",
    "DISPUTE_TRANSITIONS",
    "ESCROW_TRANSITIONS",
    "SETTLEMENT_TRANSITIONS",
    "TERMINAL_ESCROW_STATUSES",
    "can_transition",
    "ensure_settlement",
    "ensure_transition",
]

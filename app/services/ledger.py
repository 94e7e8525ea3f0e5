"""Ledger discipline: transaction entries and derived wallet balances.

Wallet aggregates are never written independently: after every balance
affecting insert, ``recompute_wallet`` sums the escrow's completed
transactions so that
``current_balance == total_funded - total_released - total_refunded`` holds.
Callers own the surrounding database transaction; nothing here commits.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.escrow import Escrow
from app.models.ledger import EscrowWallet, Transaction, TransactionStatus, TransactionType
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

# Which wallet bucket each completed transaction type feeds.
_BUCKETS: dict[TransactionType, str | None] = {
    TransactionType.fund: "total_funded",
    TransactionType.release: "total_released",
    TransactionType.payout: "total_released",
    TransactionType.refund: "total_refunded",
    TransactionType.fee: "platform_amount",
    TransactionType.adjustment: None,
}


def open_wallet(db: Session, escrow: Escrow) -> EscrowWallet:
    """Stage the zeroed wallet that accompanies a new escrow."""

    wallet = EscrowWallet(
        escrow_id=escrow.id,
        total_funded=0,
        total_released=0,
        total_refunded=0,
        current_balance=0,
        buyer_amount=0,
        seller_amount=0,
        platform_amount=0,
    )
    db.add(wallet)
    return wallet


def get_wallet(db: Session, escrow_id: str) -> EscrowWallet | None:
    return db.scalars(select(EscrowWallet).where(EscrowWallet.escrow_id == escrow_id)).first()


def list_transactions(db: Session, escrow_id: str) -> list[Transaction]:
    stmt = (
        select(Transaction)
        .where(Transaction.escrow_id == escrow_id)
        .order_by(Transaction.created_at, Transaction.id)
    )
    return list(db.scalars(stmt).all())


def record_transaction(
    db: Session,
    escrow: Escrow,
    *,
    type: TransactionType,
    amount: int,
    from_user_id: int | None,
    to_user_id: int | None,
    status: TransactionStatus = TransactionStatus.completed,
    description: str | None = None,
    payment_gateway: str | None = None,
    payment_gateway_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Transaction:
    """Insert one ledger entry and refresh the escrow wallet."""

    if amount <= 0:
        raise ValueError(f"Ledger amounts must be positive, got {amount!r}")

    now = utcnow()
    entry = Transaction(
        escrow_id=escrow.id,
        type=type,
        amount=amount,
        currency=escrow.currency,
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        status=status,
        description=description,
        payment_gateway=payment_gateway,
        payment_gateway_id=payment_gateway_id,
        metadata_json=metadata,
        completed_at=now if status == TransactionStatus.completed else None,
    )
    db.add(entry)
    db.flush()
    recompute_wallet(db, escrow.id)
    logger.info(
        "Ledger entry recorded",
        extra={"escrow_id": escrow.id, "type": type.value, "amount": amount, "status": status.value},
    )
    return entry


def _completed_totals(db: Session, escrow_id: str) -> dict[TransactionType, int]:
    stmt = (
        select(Transaction.type, func.coalesce(func.sum(Transaction.amount), 0))
        .where(
            Transaction.escrow_id == escrow_id,
            Transaction.status == TransactionStatus.completed,
        )
        .group_by(Transaction.type)
    )
    return {row[0]: int(row[1]) for row in db.execute(stmt)}


def recompute_wallet(db: Session, escrow_id: str) -> EscrowWallet:
    """Derive every wallet aggregate from the completed transaction history."""

    wallet = get_wallet(db, escrow_id)
    if wallet is None:
        raise LookupError(f"Escrow {escrow_id} has no wallet")

    totals = _completed_totals(db, escrow_id)
    sums = {
        "total_funded": 0,
        "total_released": 0,
        "total_refunded": 0,
        "platform_amount": 0,
    }
    for tx_type, amount in totals.items():
        bucket = _BUCKETS[tx_type]
        if bucket is not None:
            sums[bucket] += amount

    wallet.total_funded = sums["total_funded"]
    wallet.total_released = sums["total_released"]
    wallet.total_refunded = sums["total_refunded"]
    wallet.platform_amount = sums["platform_amount"]
    wallet.current_balance = wallet.total_funded - wallet.total_released - wallet.total_refunded
    wallet.seller_amount = wallet.total_released
    wallet.buyer_amount = wallet.total_refunded
    db.flush()
    return wallet


__all__ = [
    "get_wallet",
    "list_transactions",
    "open_wallet",
    "record_transaction",
    "recompute_wallet",
]

"""Background cron jobs for maintenance tasks."""
from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db import get_sessionmaker
from app.models.escrow import Escrow, EscrowStatus
from app.services import escrow as escrow_service
from app.services.effects import dispatch_effects
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

EXPIRABLE_STATUSES = (EscrowStatus.created, EscrowStatus.pending_payment)


def expire_escrows(db: Session) -> int:
    """Cancel unfunded escrows past ``expires_at``; return how many were expired."""

    now = utcnow()
    stmt = select(Escrow.id).where(
        Escrow.status.in_(EXPIRABLE_STATUSES),
        Escrow.expires_at.is_not(None),
        Escrow.expires_at <= now,
    )
    escrow_ids = list(db.scalars(stmt).all())
    expired = 0
    for escrow_id in escrow_ids:
        try:
            result = escrow_service.cancel_escrow(db, escrow_id, user=None, action="expired")
        except HTTPException:
            # Funded or cancelled by a request between the scan and the lock.
            db.rollback()
            logger.info("Escrow skipped by expiry job", extra={"escrow_id": escrow_id})
            continue
        dispatch_effects(db, result.effects)
        expired += 1
    if expired:
        logger.info("Expired escrows", extra={"count": expired})
    return expired


def expire_escrows_once() -> None:
    """Scheduler entry point: run one expiry pass on a fresh session."""

    db: Session = get_sessionmaker()()
    try:
        expire_escrows(db)
    finally:
        db.close()

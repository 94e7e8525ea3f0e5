"""Back-office operations: listings, statistics, account freezes and provisioning."""
import logging
from datetime import timedelta

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db import atomic, degrade_on_outage
from app.models.api_key import ApiKey
from app.models.audit import AuditLog
from app.models.dispute import Dispute, DisputeStatus
from app.models.escrow import Escrow, EscrowStatus
from app.models.user import User
from app.schemas.admin import EscrowStats
from app.schemas.user import ApiKeyIssue, ApiKeyIssued, FreezeRequest, UserCreate
from app.services.effects import AuditEffect, LifecycleResult, NotifyEffect
from app.utils.apikey import gen_key
from app.utils.audit import actor_for_user
from app.utils.errors import bad_request, error_response, not_found
from app.utils.time import utcnow

logger = logging.getLogger(__name__)


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise not_found("USER_NOT_FOUND", "User not found.")
    return user


@degrade_on_outage(list)
def list_users(db: Session, *, limit: int = 50, offset: int = 0) -> list[User]:
    stmt = select(User).order_by(User.id.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt).all())


@degrade_on_outage(list)
def list_escrows(
    db: Session, *, status_filter: EscrowStatus | None = None, limit: int = 50, offset: int = 0
) -> list[Escrow]:
    stmt = select(Escrow)
    if status_filter is not None:
        stmt = stmt.where(Escrow.status == status_filter)
    stmt = stmt.order_by(Escrow.created_at.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt).all())


@degrade_on_outage(list)
def list_disputes(
    db: Session, *, status_filter: DisputeStatus | None = None, limit: int = 50, offset: int = 0
) -> list[Dispute]:
    stmt = select(Dispute)
    if status_filter is not None:
        stmt = stmt.where(Dispute.status == status_filter)
    stmt = stmt.order_by(Dispute.created_at.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt).all())


def escrow_stats(db: Session) -> EscrowStats:
    """Aggregate escrow counts and volume across the platform."""

    total, volume, average = db.execute(
        select(
            func.count(Escrow.id),
            func.coalesce(func.sum(Escrow.amount), 0),
            func.coalesce(func.avg(Escrow.amount), 0),
        )
    ).one()
    by_status = dict(
        db.execute(select(Escrow.status, func.count(Escrow.id)).group_by(Escrow.status)).all()
    )
    return EscrowStats(
        total_escrows=int(total),
        total_volume=int(volume),
        average_amount=float(average),
        completed_count=int(by_status.get(EscrowStatus.completed, 0)),
        disputed_count=int(by_status.get(EscrowStatus.disputed, 0)),
    )


def freeze_user(db: Session, user_id: int, payload: FreezeRequest, *, admin: User) -> LifecycleResult[User]:
    user = get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise bad_request("CANNOT_FREEZE_SELF", "Admins cannot freeze their own account.")

    before = {"is_frozen": user.is_frozen, "freeze_reason": user.freeze_reason}
    with atomic(db):
        user.is_frozen = True
        user.freeze_reason = payload.reason
    logger.warning("User frozen", extra={"user_id": user.id, "admin_id": admin.id})

    return LifecycleResult(
        user,
        [
            AuditEffect(
                actor=actor_for_user(admin),
                action="frozen",
                entity_type="user",
                entity_id=str(user.id),
                user_id=admin.id,
                before=before,
                after={"is_frozen": True, "freeze_reason": payload.reason},
            ),
            NotifyEffect(
                user_id=user.id,
                type="account_frozen",
                title="Account Frozen",
                message=f"Your account has been frozen: {payload.reason}",
                related_entity_type="user",
                related_entity_id=str(user.id),
            ),
        ],
    )


def unfreeze_user(db: Session, user_id: int, *, admin: User) -> LifecycleResult[User]:
    user = get_user_or_404(db, user_id)

    before = {"is_frozen": user.is_frozen, "freeze_reason": user.freeze_reason}
    with atomic(db):
        user.is_frozen = False
        user.freeze_reason = None
    logger.info("User unfrozen", extra={"user_id": user.id, "admin_id": admin.id})

    return LifecycleResult(
        user,
        [
            AuditEffect(
                actor=actor_for_user(admin),
                action="unfrozen",
                entity_type="user",
                entity_id=str(user.id),
                user_id=admin.id,
                before=before,
                after={"is_frozen": False},
            ),
            NotifyEffect(
                user_id=user.id,
                type="account_unfrozen",
                title="Account Restored",
                message="Your account has been unfrozen.",
                related_entity_type="user",
                related_entity_id=str(user.id),
            ),
        ],
    )


@degrade_on_outage(list)
def list_audit_logs(
    db: Session,
    *,
    entity_type: str | None = None,
    entity_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[AuditLog]:
    stmt = select(AuditLog)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    if entity_id:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    stmt = stmt.order_by(AuditLog.at.desc(), AuditLog.id.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt).all())


def provision_user(db: Session, payload: UserCreate, *, admin: User) -> LifecycleResult[User]:
    user = User(**payload.model_dump())
    try:
        with atomic(db):
            db.add(user)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("USER_CREATE_FAILED", "Could not create user."),
        ) from exc
    db.refresh(user)

    return LifecycleResult(
        user,
        [
            AuditEffect(
                actor=actor_for_user(admin),
                action="created",
                entity_type="user",
                entity_id=str(user.id),
                user_id=admin.id,
                after={"username": user.username, "email": user.email, "role": user.role.value},
            )
        ],
    )


def issue_api_key(
    db: Session, user_id: int, payload: ApiKeyIssue, *, admin: User
) -> LifecycleResult[ApiKeyIssued]:
    """Create a key for ``user_id``; the raw value is only ever returned here."""

    user = get_user_or_404(db, user_id)
    raw, prefix, key_hash = gen_key()
    expires_at = utcnow() + timedelta(days=payload.days_valid) if payload.days_valid else None

    row = ApiKey(
        name=payload.name,
        prefix=prefix,
        key_hash=key_hash,
        user_id=user.id,
        is_active=True,
        expires_at=expires_at,
    )
    try:
        with atomic(db):
            db.add(row)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("APIKEY_EXISTS", "Key name already exists."),
        ) from exc
    db.refresh(row)

    issued = ApiKeyIssued(id=row.id, name=row.name, user_id=user.id, key=raw, expires_at=row.expires_at)
    return LifecycleResult(
        issued,
        [
            AuditEffect(
                actor=actor_for_user(admin),
                action="api_key_issued",
                entity_type="api_key",
                entity_id=str(row.id),
                user_id=admin.id,
                after={"name": row.name, "prefix": row.prefix, "owner_id": user.id},
            )
        ],
    )

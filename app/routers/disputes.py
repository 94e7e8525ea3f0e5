"""Dispute endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.dispute import Dispute, DisputeMessage
from app.models.user import User
from app.schemas.dispute import (
    DisputeCreate,
    DisputeMessageCreate,
    DisputeMessageRead,
    DisputeRead,
    DisputeResolve,
    DisputeSettle,
    DisputeStatusUpdate,
    EvidenceSubmit,
    MediatorAssign,
)
from app.security import get_current_user
from app.services import disputes as dispute_service
from app.services import effects

router = APIRouter(prefix="/disputes", tags=["disputes"])


@router.post("", response_model=DisputeRead, status_code=status.HTTP_201_CREATED)
def create_dispute(
    payload: DisputeCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dispute:
    return effects.run(db, dispute_service.create_dispute(db, payload, user=user))


@router.get("/by-escrow/{escrow_id}", response_model=DisputeRead | None)
def dispute_by_escrow(
    escrow_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dispute | None:
    """Return the escrow's dispute, or ``null`` when none was opened."""

    return dispute_service.get_by_escrow_id(db, escrow_id, user=user)


@router.post(
    "/{dispute_id}/messages",
    response_model=DisputeMessageRead,
    status_code=status.HTTP_201_CREATED,
)
def add_message(
    dispute_id: str,
    payload: DisputeMessageCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> DisputeMessage:
    return effects.run(db, dispute_service.add_message(db, dispute_id, payload, user=user))


@router.get("/{dispute_id}/messages", response_model=list[DisputeMessageRead])
def list_messages(
    dispute_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[DisputeMessage]:
    return dispute_service.get_messages(db, dispute_id, user=user)


@router.post("/{dispute_id}/evidence", response_model=DisputeRead)
def submit_evidence(
    dispute_id: str,
    payload: EvidenceSubmit,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dispute:
    return effects.run(db, dispute_service.submit_evidence(db, dispute_id, payload, user=user))


@router.post("/{dispute_id}/status", response_model=DisputeRead)
def update_status(
    dispute_id: str,
    payload: DisputeStatusUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dispute:
    return effects.run(db, dispute_service.update_status(db, dispute_id, payload, user=user))


@router.post("/{dispute_id}/assign-mediator", response_model=DisputeRead)
def assign_mediator(
    dispute_id: str,
    payload: MediatorAssign,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dispute:
    return effects.run(db, dispute_service.assign_mediator(db, dispute_id, payload, user=user))


@router.post("/{dispute_id}/resolve", response_model=DisputeRead)
def resolve_dispute(
    dispute_id: str,
    payload: DisputeResolve,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dispute:
    return effects.run(db, dispute_service.resolve_dispute(db, dispute_id, payload, user=user))


@router.post("/{dispute_id}/settle", response_model=DisputeRead)
def settle_dispute(
    dispute_id: str,
    payload: DisputeSettle,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dispute:
    """Pay out the balance held after a custom resolution (admin only)."""

    return effects.run(db, dispute_service.settle_dispute(db, dispute_id, payload, user=user))


@router.post("/{dispute_id}/close", response_model=DisputeRead)
def close_dispute(
    dispute_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dispute:
    return effects.run(db, dispute_service.close_dispute(db, dispute_id, user=user))

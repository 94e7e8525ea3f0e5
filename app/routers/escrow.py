"""Escrow lifecycle endpoints."""
from typing import Literal

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.escrow import Escrow
from app.models.user import User
from app.schemas.escrow import (
    CancelPayload,
    EscrowCreate,
    EscrowRead,
    PaymentInitiate,
    PaymentInitiated,
)
from app.schemas.ledger import TransactionRead, WalletRead
from app.security import get_current_user
from app.services import effects
from app.services import escrow as escrow_service

router = APIRouter(
    prefix="/escrows",
    tags=["escrow"],
)


@router.post("", response_model=EscrowRead, status_code=status.HTTP_201_CREATED)
def create_escrow(
    payload: EscrowCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Escrow:
    return effects.run(db, escrow_service.create_escrow(db, payload, buyer=user))


@router.get("/mine", response_model=list[EscrowRead])
def my_escrows(
    role: Literal["buyer", "seller"] = Query(),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[Escrow]:
    return escrow_service.list_my_escrows(db, user, role=role, limit=limit, offset=offset)


@router.get("/{escrow_id}", response_model=EscrowRead)
def read_escrow(
    escrow_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Escrow:
    return escrow_service.get_escrow(db, escrow_id, user=user)


@router.post("/{escrow_id}/initiate-payment", response_model=PaymentInitiated)
def initiate_payment(
    escrow_id: str,
    payload: PaymentInitiate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict[str, str]:
    return effects.run(db, escrow_service.initiate_payment(db, escrow_id, payload, user=user))


@router.post("/{escrow_id}/confirm-payment", response_model=EscrowRead)
def confirm_payment(
    escrow_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Escrow:
    return effects.run(db, escrow_service.confirm_payment(db, escrow_id, user=user))


@router.post("/{escrow_id}/start", response_model=EscrowRead)
def start_work(
    escrow_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Escrow:
    return effects.run(db, escrow_service.start_work(db, escrow_id, user=user))


@router.post("/{escrow_id}/release", response_model=EscrowRead)
def release_payment(
    escrow_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Escrow:
    return effects.run(db, escrow_service.release_payment(db, escrow_id, user=user))


@router.post("/{escrow_id}/cancel", response_model=EscrowRead)
def cancel_escrow(
    escrow_id: str,
    payload: CancelPayload | None = Body(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Escrow:
    return effects.run(db, escrow_service.cancel_escrow(db, escrow_id, payload, user=user))


@router.get("/{escrow_id}/wallet", response_model=WalletRead)
def read_wallet(
    escrow_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return escrow_service.get_wallet(db, escrow_id, user=user)


@router.get("/{escrow_id}/transactions", response_model=list[TransactionRead])
def list_transactions(
    escrow_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return escrow_service.list_transactions(db, escrow_id, user=user)

"""Escrow lifecycle engine.

Every transition validates authorization and the state machine first, then
stages all of its writes (escrow row, ledger entry, wallet) inside one
``atomic`` block. Audit entries and notifications are returned as deferred
effects and dispatched by the caller once the transition is committed.
"""
import logging
from datetime import timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import get_settings
from app.db import atomic, degrade_on_outage
from app.models.escrow import Escrow, EscrowStatus
from app.models.ledger import TransactionType
from app.models.user import User
from app.schemas.escrow import CancelPayload, EscrowCreate, PaymentInitiate
from app.services import ledger
from app.services.effects import AuditEffect, LifecycleResult, NotifyEffect
from app.services.payments import create_payment_session
from app.services.policy import authorize, ensure_not_frozen
from app.services.state_machine import ensure_transition
from app.utils.audit import actor_for_user
from app.utils.errors import bad_request, not_found
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

ENTITY = "escrow"


def _snapshot(escrow: Escrow) -> dict[str, Any]:
    return {
        "status": escrow.status.value,
        "amount": escrow.amount,
        "currency": escrow.currency,
        "payment_id": escrow.payment_id,
    }


def _audit(actor: User | None, action: str, escrow: Escrow, *, before=None, after=None) -> AuditEffect:
    return AuditEffect(
        actor=actor_for_user(actor),
        action=action,
        entity_type=ENTITY,
        entity_id=escrow.id,
        user_id=actor.id if actor is not None else None,
        before=before or {},
        after=after if after is not None else _snapshot(escrow),
    )


def _notify(user_id: int, type_: str, title: str, message: str, escrow: Escrow) -> NotifyEffect:
    return NotifyEffect(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        related_entity_type=ENTITY,
        related_entity_id=escrow.id,
    )


def get_escrow_or_404(db: Session, escrow_id: str, *, for_update: bool = False) -> Escrow:
    """Load an escrow, locking its row when about to mutate it."""

    stmt = select(Escrow).where(Escrow.id == escrow_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    escrow = db.execute(stmt).scalar_one_or_none()
    if escrow is None:
        raise not_found("ESCROW_NOT_FOUND", "Escrow not found")
    return escrow


def create_escrow(db: Session, payload: EscrowCreate, *, buyer: User) -> LifecycleResult[Escrow]:
    """Create an escrow and its zeroed wallet; the caller becomes the buyer."""

    ensure_not_frozen("escrow.create", buyer)
    if payload.seller_id == buyer.id:
        raise bad_request("SELF_ESCROW", "Buyer and seller must be different users.")
    seller = db.get(User, payload.seller_id)
    if seller is None or not seller.is_active:
        raise not_found("USER_NOT_FOUND", "Seller not found.")

    settings = get_settings()
    now = utcnow()
    with atomic(db):
        escrow = Escrow(
            buyer_id=buyer.id,
            seller_id=seller.id,
            title=payload.title,
            description=payload.description,
            amount=payload.amount,
            currency=(payload.currency or settings.DEFAULT_CURRENCY).upper(),
            item_title=payload.item_title,
            item_description=payload.item_description,
            item_images=payload.item_images,
            item_price=payload.item_price,
            status=EscrowStatus.created,
            release_condition=payload.release_condition,
            source_url=payload.source_url,
            source_metadata=payload.source_metadata,
            expires_at=payload.expires_at or now + timedelta(days=settings.ESCROW_DEFAULT_EXPIRY_DAYS),
        )
        db.add(escrow)
        db.flush()
        ledger.open_wallet(db, escrow)
        buyer.total_deals += 1
        seller.total_deals += 1
    db.refresh(escrow)
    logger.info("Escrow created", extra={"escrow_id": escrow.id, "amount": escrow.amount})

    return LifecycleResult(
        escrow,
        [
            _audit(buyer, "created", escrow, after=payload.model_dump(mode="json")),
            _notify(
                seller.id,
                "escrow_created",
                "New Escrow Transaction",
                f'A new escrow transaction has been created for "{escrow.title}"',
                escrow,
            ),
        ],
    )


def get_escrow(db: Session, escrow_id: str, *, user: User) -> Escrow:
    escrow = get_escrow_or_404(db, escrow_id)
    authorize("escrow.view", user, escrow)
    return escrow


@degrade_on_outage(list)
def list_my_escrows(db: Session, user: User, *, role: str, limit: int = 20, offset: int = 0) -> list[Escrow]:
    column = Escrow.buyer_id if role == "buyer" else Escrow.seller_id
    stmt = (
        select(Escrow)
        .where(column == user.id)
        .order_by(Escrow.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(db.scalars(stmt).all())


def initiate_payment(
    db: Session, escrow_id: str, payload: PaymentInitiate, *, user: User
) -> LifecycleResult[dict[str, str]]:
    """Open a gateway checkout. Re-initiating while pending issues a new link."""

    escrow = get_escrow_or_404(db, escrow_id, for_update=True)
    authorize("escrow.initiate_payment", user, escrow)
    ensure_transition(escrow.status, EscrowStatus.pending_payment)

    before = _snapshot(escrow)
    session = create_payment_session(escrow.id, escrow.amount, escrow.currency, payload.payment_method)
    with atomic(db):
        escrow.payment_method = payload.payment_method
        escrow.payment_id = session.payment_id
        escrow.payment_url = session.payment_url
        escrow.status = EscrowStatus.pending_payment
    logger.info("Escrow payment initiated", extra={"escrow_id": escrow.id, "payment_id": session.payment_id})

    return LifecycleResult(
        {"payment_id": session.payment_id, "payment_url": session.payment_url},
        [_audit(user, "payment_initiated", escrow, before=before)],
    )


def confirm_payment(db: Session, escrow_id: str, *, user: User) -> LifecycleResult[Escrow]:
    """Mark the escrow funded and book the full amount into the ledger."""

    escrow = get_escrow_or_404(db, escrow_id, for_update=True)
    authorize("escrow.confirm_payment", user, escrow)
    ensure_transition(escrow.status, EscrowStatus.funded)

    before = _snapshot(escrow)
    now = utcnow()
    with atomic(db):
        escrow.status = EscrowStatus.funded
        escrow.paid_at = now
        escrow.funded_at = now
        ledger.record_transaction(
            db,
            escrow,
            type=TransactionType.fund,
            amount=escrow.amount,
            from_user_id=escrow.buyer_id,
            to_user_id=None,
            description=f"Funding for escrow {escrow.id}",
            payment_gateway=get_settings().PAYMENT_GATEWAY_NAME if escrow.payment_id else None,
            payment_gateway_id=escrow.payment_id,
        )
    logger.info("Escrow funded", extra={"escrow_id": escrow.id, "amount": escrow.amount})

    return LifecycleResult(
        escrow,
        [
            _audit(user, "payment_confirmed", escrow, before=before),
            _notify(
                escrow.seller_id,
                "escrow_funded",
                "Escrow Funded",
                f'Escrow for "{escrow.title}" has been funded',
                escrow,
            ),
        ],
    )


def start_work(db: Session, escrow_id: str, *, user: User) -> LifecycleResult[Escrow]:
    """Seller acknowledges the funding and starts delivering."""

    escrow = get_escrow_or_404(db, escrow_id, for_update=True)
    authorize("escrow.start_work", user, escrow)
    ensure_transition(escrow.status, EscrowStatus.in_progress)

    before = _snapshot(escrow)
    with atomic(db):
        escrow.status = EscrowStatus.in_progress
    logger.info("Escrow work started", extra={"escrow_id": escrow.id})

    return LifecycleResult(
        escrow,
        [
            _audit(user, "work_started", escrow, before=before),
            _notify(
                escrow.buyer_id,
                "escrow_in_progress",
                "Seller Started",
                f'The seller started working on "{escrow.title}"',
                escrow,
            ),
        ],
    )


def release_payment(db: Session, escrow_id: str, *, user: User) -> LifecycleResult[Escrow]:
    """Release the held balance to the seller and complete the escrow."""

    escrow = get_escrow_or_404(db, escrow_id, for_update=True)
    authorize("escrow.release_payment", user, escrow)
    ensure_transition(escrow.status, EscrowStatus.completed)

    before = _snapshot(escrow)
    with atomic(db):
        wallet = ledger.recompute_wallet(db, escrow.id)
        amount = wallet.current_balance
        if amount > 0:
            ledger.record_transaction(
                db,
                escrow,
                type=TransactionType.release,
                amount=amount,
                from_user_id=escrow.buyer_id,
                to_user_id=escrow.seller_id,
                description=f"Release for escrow {escrow.id}",
            )
        mark_completed(db, escrow)
    logger.info("Escrow released", extra={"escrow_id": escrow.id, "amount": amount})

    return LifecycleResult(
        escrow,
        [
            _audit(user, "payment_released", escrow, before=before),
            _notify(
                escrow.seller_id,
                "escrow_released",
                "Payment Released",
                f'Payment for "{escrow.title}" has been released',
                escrow,
            ),
        ],
    )


def mark_completed(db: Session, escrow: Escrow) -> None:
    """Stage the completed status and bump both parties' completed deal counters."""

    escrow.status = EscrowStatus.completed
    escrow.completed_at = utcnow()
    for party_id in (escrow.buyer_id, escrow.seller_id):
        party = db.get(User, party_id)
        if party is not None:
            party.completed_deals += 1


def cancel_escrow(
    db: Session,
    escrow_id: str,
    payload: CancelPayload | None = None,
    *,
    user: User | None,
    action: str = "cancelled",
) -> LifecycleResult[Escrow]:
    """Cancel an unfunded escrow. ``user=None`` means the expiry job."""

    escrow = get_escrow_or_404(db, escrow_id, for_update=True)
    if user is not None:
        authorize("escrow.cancel", user, escrow)
    ensure_transition(escrow.status, EscrowStatus.cancelled)

    before = _snapshot(escrow)
    with atomic(db):
        escrow.status = EscrowStatus.cancelled
        escrow.cancelled_at = utcnow()
    reason = payload.reason if payload else None
    logger.info("Escrow cancelled", extra={"escrow_id": escrow.id, "action": action})

    after = {**_snapshot(escrow), "reason": reason}
    effects: list = [_audit(user, action, escrow, before=before, after=after)]
    if user is not None and escrow.party_role(user.id):
        notify_ids = [escrow.counterparty_of(user.id)]
    else:
        notify_ids = [escrow.buyer_id, escrow.seller_id]
    for party_id in notify_ids:
        effects.append(
            _notify(
                party_id,
                "escrow_cancelled",
                "Escrow Cancelled",
                f'Escrow "{escrow.title}" has been cancelled',
                escrow,
            )
        )
    return LifecycleResult(escrow, effects)


def get_wallet(db: Session, escrow_id: str, *, user: User):
    escrow = get_escrow(db, escrow_id, user=user)
    wallet = ledger.get_wallet(db, escrow.id)
    if wallet is None:
        raise not_found("WALLET_NOT_FOUND", "Escrow wallet not found")
    return wallet


def list_transactions(db: Session, escrow_id: str, *, user: User):
    escrow = get_escrow(db, escrow_id, user=user)
    return ledger.list_transactions(db, escrow.id)

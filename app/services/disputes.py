"""Dispute resolution workflow."""
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db import atomic, degrade_on_outage
from app.models.dispute import Dispute, DisputeMessage, DisputeResolution, DisputeStatus
from app.models.escrow import Escrow, EscrowStatus
from app.models.ledger import TransactionType
from app.models.user import User, UserRole
from app.schemas.dispute import (
    DisputeCreate,
    DisputeMessageCreate,
    DisputeResolve,
    DisputeSettle,
    DisputeStatusUpdate,
    EvidenceSubmit,
    MediatorAssign,
)
from app.services import ledger
from app.services.effects import AuditEffect, Effect, LifecycleResult, NotifyEffect
from app.services.escrow import get_escrow_or_404, mark_completed
from app.services.policy import authorize
from app.services.state_machine import (
    ACTIVE_DISPUTE_STATUSES,
    can_transition,
    ensure_settlement,
    ensure_transition,
)
from app.utils.audit import actor_for_user
from app.utils.errors import bad_request, conflict, not_found
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

ENTITY = "dispute"


def _audit(user: User, action: str, entity_id: str, *, entity_type: str = ENTITY, before=None, after=None) -> AuditEffect:
    return AuditEffect(
        actor=actor_for_user(user),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user.id,
        before=before or {},
        after=after or {},
    )


def _notify(user_id: int, type_: str, title: str, message: str, dispute: Dispute) -> NotifyEffect:
    return NotifyEffect(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        related_entity_type=ENTITY,
        related_entity_id=dispute.id,
    )


def get_dispute_or_404(db: Session, dispute_id: str) -> Dispute:
    dispute = db.get(Dispute, dispute_id)
    if dispute is None:
        raise not_found("DISPUTE_NOT_FOUND", "Dispute not found")
    return dispute


def _load(db: Session, dispute_id: str, *, for_update: bool = False) -> tuple[Dispute, Escrow]:
    dispute = get_dispute_or_404(db, dispute_id)
    escrow = get_escrow_or_404(db, dispute.escrow_id, for_update=for_update)
    return dispute, escrow


def _ensure_active(dispute: Dispute) -> None:
    if dispute.status not in ACTIVE_DISPUTE_STATUSES:
        raise conflict("DISPUTE_NOT_ACTIVE", f"Dispute is {dispute.status.value}.")


def create_dispute(db: Session, payload: DisputeCreate, *, user: User) -> LifecycleResult[Dispute]:
    """Open a dispute and suspend the escrow lifecycle."""

    escrow = get_escrow_or_404(db, payload.escrow_id, for_update=True)
    authorize("dispute.create", user, escrow)
    existing = db.scalars(select(Dispute).where(Dispute.escrow_id == escrow.id)).first()
    if existing is not None:
        raise conflict("DISPUTE_EXISTS", "A dispute already exists for this escrow.", {"dispute_id": existing.id})
    ensure_transition(escrow.status, EscrowStatus.disputed)

    previous_status = escrow.status.value
    other_party = escrow.counterparty_of(user.id)
    try:
        with atomic(db):
            dispute = Dispute(
                escrow_id=escrow.id,
                initiated_by=user.id,
                initiated_against=other_party,
                mediator_id=escrow.mediator_id,
                reason=payload.reason,
                description=payload.description,
                status=DisputeStatus.open,
                resolution=DisputeResolution.pending,
            )
            db.add(dispute)
            escrow.status = EscrowStatus.disputed
    except IntegrityError as exc:
        raise conflict("DISPUTE_EXISTS", "A dispute already exists for this escrow.") from exc
    logger.info("Dispute opened", extra={"dispute_id": dispute.id, "escrow_id": escrow.id})

    return LifecycleResult(
        dispute,
        [
            _audit(user, "created", dispute.id, after=payload.model_dump(mode="json")),
            _audit(
                user,
                "disputed",
                escrow.id,
                entity_type="escrow",
                before={"status": previous_status},
                after={"status": escrow.status.value, "dispute_id": dispute.id},
            ),
            _notify(
                other_party,
                "dispute_created",
                "Dispute Created",
                f'A dispute has been created for escrow "{escrow.title}"',
                dispute,
            ),
        ],
    )


def get_by_escrow_id(db: Session, escrow_id: str, *, user: User) -> Dispute | None:
    escrow = get_escrow_or_404(db, escrow_id)
    dispute = db.scalars(select(Dispute).where(Dispute.escrow_id == escrow_id)).first()
    authorize("dispute.view", user, escrow, dispute=dispute)
    return dispute


def add_message(
    db: Session, dispute_id: str, payload: DisputeMessageCreate, *, user: User
) -> LifecycleResult[DisputeMessage]:
    dispute, escrow = _load(db, dispute_id)
    authorize("dispute.message", user, escrow, dispute=dispute)
    if dispute.status == DisputeStatus.closed:
        raise conflict("DISPUTE_CLOSED", "Dispute is closed.")

    with atomic(db):
        message = DisputeMessage(
            dispute_id=dispute.id,
            sender_id=user.id,
            message=payload.message,
            attachments=payload.attachments,
        )
        db.add(message)
    db.refresh(message)

    recipients = {dispute.initiated_by, dispute.initiated_against, dispute.mediator_id} - {None, user.id}
    effects: list[Effect] = [
        _audit(user, "created", message.id, entity_type="dispute_message", after={"dispute_id": dispute.id})
    ]
    effects.extend(
        _notify(rid, "dispute_message", "New Dispute Message", f'New message on dispute for "{escrow.title}"', dispute)
        for rid in sorted(recipients)
    )
    return LifecycleResult(message, effects)


@degrade_on_outage(list)
def _messages_for(db: Session, dispute_id: str) -> list[DisputeMessage]:
    stmt = (
        select(DisputeMessage)
        .where(DisputeMessage.dispute_id == dispute_id)
        .order_by(DisputeMessage.created_at.asc(), DisputeMessage.id.asc())
    )
    return list(db.scalars(stmt).all())


def get_messages(db: Session, dispute_id: str, *, user: User) -> list[DisputeMessage]:
    """Return the thread oldest first."""

    dispute, escrow = _load(db, dispute_id)
    authorize("dispute.view", user, escrow, dispute=dispute)
    return _messages_for(db, dispute.id)


def submit_evidence(
    db: Session, dispute_id: str, payload: EvidenceSubmit, *, user: User
) -> LifecycleResult[Dispute]:
    dispute, escrow = _load(db, dispute_id)
    authorize("dispute.submit_evidence", user, escrow, dispute=dispute)
    _ensure_active(dispute)

    item = {
        "submitted_by": user.id,
        "description": payload.description,
        "urls": payload.urls,
        "at": utcnow().isoformat(),
    }
    side = escrow.party_role(user.id)
    with atomic(db):
        # JSON columns only detect reassignment, not in-place appends.
        if side == "buyer":
            dispute.buyer_evidence = [*(dispute.buyer_evidence or []), item]
        else:
            dispute.seller_evidence = [*(dispute.seller_evidence or []), item]
    return LifecycleResult(
        dispute, [_audit(user, "evidence_submitted", dispute.id, after={"side": side, "urls": payload.urls})]
    )


def update_status(
    db: Session, dispute_id: str, payload: DisputeStatusUpdate, *, user: User
) -> LifecycleResult[Dispute]:
    dispute, escrow = _load(db, dispute_id)
    authorize("dispute.update_status", user, escrow, dispute=dispute)
    target = DisputeStatus(payload.status)
    ensure_transition(dispute.status, target, entity="Dispute")

    before = {"status": dispute.status.value}
    with atomic(db):
        dispute.status = target
    return LifecycleResult(
        dispute, [_audit(user, "status_changed", dispute.id, before=before, after={"status": target.value})]
    )


def assign_mediator(
    db: Session, dispute_id: str, payload: MediatorAssign, *, user: User
) -> LifecycleResult[Dispute]:
    dispute, escrow = _load(db, dispute_id, for_update=True)
    authorize("dispute.assign_mediator", user, escrow, dispute=dispute)
    _ensure_active(dispute)
    mediator = db.get(User, payload.mediator_id)
    if mediator is None or mediator.role != UserRole.mediator:
        raise bad_request("INVALID_MEDIATOR", "Mediator must be an existing user with the mediator role.")
    if escrow.party_role(mediator.id):
        raise bad_request("INVALID_MEDIATOR", "A party cannot mediate its own dispute.")

    before = {"mediator_id": dispute.mediator_id, "status": dispute.status.value}
    with atomic(db):
        dispute.mediator_id = mediator.id
        escrow.mediator_id = mediator.id
        if can_transition(dispute.status, DisputeStatus.mediation):
            dispute.status = DisputeStatus.mediation
    return LifecycleResult(
        dispute,
        [
            _audit(
                user,
                "mediator_assigned",
                dispute.id,
                before=before,
                after={"mediator_id": mediator.id, "status": dispute.status.value},
            ),
            _notify(
                mediator.id,
                "dispute_assigned",
                "Dispute Assigned",
                f'You have been assigned to mediate the dispute on "{escrow.title}"',
                dispute,
            ),
        ],
    )


def _ensure_escrow_disputed(escrow: Escrow) -> None:
    if escrow.status != EscrowStatus.disputed:
        raise conflict(
            "ESCROW_NOT_DISPUTED",
            f"Escrow is {escrow.status.value}; there is no held balance to settle.",
            {"escrow_status": escrow.status.value},
        )


def _book_shares(db: Session, escrow: Escrow, *, seller_share: int, buyer_share: int, label: str) -> EscrowStatus:
    """Stage the release/refund entries of a settlement and the escrow's final status."""

    target = EscrowStatus.completed if seller_share > 0 else EscrowStatus.refunded
    ensure_settlement(escrow.status, target)

    if seller_share > 0:
        ledger.record_transaction(
            db,
            escrow,
            type=TransactionType.release,
            amount=seller_share,
            from_user_id=escrow.buyer_id,
            to_user_id=escrow.seller_id,
            description=f"{label}: release to seller",
        )
    if buyer_share > 0:
        ledger.record_transaction(
            db,
            escrow,
            type=TransactionType.refund,
            amount=buyer_share,
            from_user_id=None,
            to_user_id=escrow.buyer_id,
            description=f"{label}: refund to buyer",
        )

    if target == EscrowStatus.completed:
        mark_completed(db, escrow)
    else:
        escrow.status = EscrowStatus.refunded
    return target


def _settle(db: Session, escrow: Escrow, resolution: DisputeResolution, details: dict[str, Any]) -> EscrowStatus | None:
    """Book the ledger entries a resolution implies; return the escrow's new status."""

    if resolution == DisputeResolution.custom:
        return None

    balance = ledger.recompute_wallet(db, escrow.id).current_balance
    if resolution == DisputeResolution.full_release:
        seller_share = balance
    elif resolution == DisputeResolution.full_refund:
        seller_share = 0
    else:
        seller_share = int(details["seller_amount"])
        if seller_share >= balance:
            raise bad_request(
                "INVALID_SPLIT",
                "seller_amount must be lower than the escrow balance.",
                {"balance": balance, "seller_amount": seller_share},
            )

    return _book_shares(
        db,
        escrow,
        seller_share=seller_share,
        buyer_share=balance - seller_share,
        label=f"Dispute {resolution.value}",
    )


def _escrow_settled(user: User, dispute: Dispute, escrow: Escrow, new_status: EscrowStatus) -> AuditEffect:
    return _audit(
        user,
        f"dispute_{new_status.value}",
        escrow.id,
        entity_type="escrow",
        before={"status": EscrowStatus.disputed.value},
        after={"status": new_status.value, "dispute_id": dispute.id},
    )


def resolve_dispute(
    db: Session, dispute_id: str, payload: DisputeResolve, *, user: User
) -> LifecycleResult[Dispute]:
    """Record the resolution and drive the escrow to its terminal status."""

    dispute, escrow = _load(db, dispute_id, for_update=True)
    authorize("dispute.resolve", user, escrow, dispute=dispute)
    ensure_transition(dispute.status, DisputeStatus.resolved, entity="Dispute")
    _ensure_escrow_disputed(escrow)

    resolution = DisputeResolution(payload.resolution)
    before = {"status": dispute.status.value, "escrow_status": escrow.status.value}
    with atomic(db):
        new_escrow_status = _settle(db, escrow, resolution, payload.details or {})
        dispute.resolution = resolution
        dispute.resolution_details = payload.details
        dispute.resolution_notes = payload.notes
        dispute.status = DisputeStatus.resolved
        dispute.resolved_at = utcnow()
    logger.info(
        "Dispute resolved",
        extra={"dispute_id": dispute.id, "resolution": resolution.value, "escrow_status": escrow.status.value},
    )

    effects: list[Effect] = [
        _audit(
            user,
            "resolved",
            dispute.id,
            before=before,
            after={"resolution": resolution.value, "details": payload.details, "escrow_status": escrow.status.value},
        )
    ]
    if new_escrow_status is not None:
        effects.append(_escrow_settled(user, dispute, escrow, new_escrow_status))
    for party_id in (dispute.initiated_by, dispute.initiated_against):
        effects.append(
            _notify(
                party_id,
                "dispute_resolved",
                "Dispute Resolved",
                f'The dispute on "{escrow.title}" was resolved ({resolution.value})',
                dispute,
            )
        )
    return LifecycleResult(dispute, effects)


def settle_dispute(
    db: Session, dispute_id: str, payload: DisputeSettle, *, user: User
) -> LifecycleResult[Dispute]:
    """Pay out the balance a custom resolution left held in escrow."""

    dispute, escrow = _load(db, dispute_id, for_update=True)
    authorize("dispute.settle", user, escrow, dispute=dispute)
    if dispute.resolution != DisputeResolution.custom or dispute.status in ACTIVE_DISPUTE_STATUSES:
        raise conflict(
            "DISPUTE_NOT_SETTLEABLE",
            "Only disputes resolved as custom are settled manually.",
            {"status": dispute.status.value, "resolution": dispute.resolution.value if dispute.resolution else None},
        )
    _ensure_escrow_disputed(escrow)

    balance = ledger.recompute_wallet(db, escrow.id).current_balance
    if payload.seller_amount + payload.buyer_amount != balance:
        raise bad_request(
            "INVALID_SETTLEMENT",
            "seller_amount and buyer_amount must add up to the escrow balance.",
            {"balance": balance, "seller_amount": payload.seller_amount, "buyer_amount": payload.buyer_amount},
        )

    with atomic(db):
        new_escrow_status = _book_shares(
            db,
            escrow,
            seller_share=payload.seller_amount,
            buyer_share=payload.buyer_amount,
            label="Dispute custom settlement",
        )
        dispute.resolution_details = {
            **(dispute.resolution_details or {}),
            "settlement": {"seller_amount": payload.seller_amount, "buyer_amount": payload.buyer_amount},
        }
        if payload.notes:
            dispute.resolution_notes = payload.notes
    logger.info(
        "Dispute settled",
        extra={"dispute_id": dispute.id, "escrow_status": escrow.status.value, "balance": balance},
    )

    effects: list[Effect] = [
        _audit(
            user,
            "settled",
            dispute.id,
            after={"seller_amount": payload.seller_amount, "buyer_amount": payload.buyer_amount},
        ),
        _escrow_settled(user, dispute, escrow, new_escrow_status),
    ]
    for party_id in (dispute.initiated_by, dispute.initiated_against):
        effects.append(
            _notify(
                party_id,
                "dispute_settled",
                "Dispute Settled",
                f'The held balance of "{escrow.title}" has been paid out',
                dispute,
            )
        )
    return LifecycleResult(dispute, effects)


def close_dispute(db: Session, dispute_id: str, *, user: User) -> LifecycleResult[Dispute]:
    dispute, escrow = _load(db, dispute_id)
    authorize("dispute.close", user, escrow, dispute=dispute)
    ensure_transition(dispute.status, DisputeStatus.closed, entity="Dispute")

    with atomic(db):
        dispute.status = DisputeStatus.closed
        dispute.closed_at = utcnow()
    return LifecycleResult(
        dispute,
        [_audit(user, "closed", dispute.id, before={"status": "resolved"}, after={"status": "closed"})],
    )

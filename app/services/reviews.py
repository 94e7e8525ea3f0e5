"""Post-deal reviews between escrow parties."""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db import atomic
from app.models.escrow import EscrowStatus
from app.models.review import Review
from app.models.user import User
from app.schemas.review import ReviewCreate
from app.services.effects import AuditEffect, LifecycleResult, NotifyEffect
from app.services.escrow import get_escrow_or_404
from app.services.policy import authorize
from app.utils.audit import actor_for_user
from app.utils.errors import bad_request, conflict

logger = logging.getLogger(__name__)


def create_review(db: Session, payload: ReviewCreate, *, reviewer: User) -> LifecycleResult[Review]:
    """Record a review of the counterparty once the escrow completed."""

    escrow = get_escrow_or_404(db, payload.escrow_id)
    authorize("review.create", reviewer, escrow)
    if payload.reviewee_id != escrow.counterparty_of(reviewer.id):
        raise bad_request("INVALID_REVIEWEE", "Reviewee must be the other party of the escrow.")
    if escrow.status != EscrowStatus.completed:
        raise conflict("ESCROW_NOT_COMPLETED", "Only completed escrows can be reviewed.")

    existing = db.scalars(
        select(Review.id).where(Review.escrow_id == escrow.id, Review.reviewer_id == reviewer.id)
    ).first()
    if existing is not None:
        raise conflict("REVIEW_EXISTS", "You already reviewed this escrow.")

    try:
        with atomic(db):
            review = Review(reviewer_id=reviewer.id, **payload.model_dump())
            db.add(review)
    except IntegrityError as exc:
        raise conflict("REVIEW_EXISTS", "You already reviewed this escrow.") from exc
    db.refresh(review)
    logger.info("Review recorded", extra={"escrow_id": escrow.id, "review_id": review.id})

    return LifecycleResult(
        review,
        [
            AuditEffect(
                actor=actor_for_user(reviewer),
                action="created",
                entity_type="review",
                entity_id=str(review.id),
                user_id=reviewer.id,
                after={"escrow_id": escrow.id, "reviewee_id": review.reviewee_id, "rating": review.rating},
            ),
            NotifyEffect(
                user_id=review.reviewee_id,
                type="review_received",
                title="New Review",
                message=f'You received a {review.rating}-star review for "{escrow.title}"',
                related_entity_type="escrow",
                related_entity_id=escrow.id,
            ),
        ],
    )

"""Dispute and dispute message models."""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum as SqlEnum, ForeignKey, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_uuid


class DisputeStatus(str, PyEnum):
    open = "open"
    in_review = "in_review"
    mediation = "mediation"
    escalated = "escalated"
    resolved = "resolved"
    closed = "closed"


class DisputeResolution(str, PyEnum):
    pending = "pending"
    split = "split"
    full_refund = "full_refund"
    full_release = "full_release"
    custom = "custom"


class Dispute(Base):
    """A disagreement over one escrow. At most one per escrow."""

    __tablename__ = "disputes"
    __table_args__ = (Index("ix_disputes_status", "status"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_uuid)
    escrow_id: Mapped[str] = mapped_column(ForeignKey("escrows.id"), unique=True, nullable=False)
    initiated_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    initiated_against: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    mediator_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[DisputeStatus] = mapped_column(
        SqlEnum(DisputeStatus), default=DisputeStatus.open, nullable=False
    )
    resolution: Mapped[DisputeResolution | None] = mapped_column(
        SqlEnum(DisputeResolution), default=DisputeResolution.pending, nullable=True
    )
    resolution_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    buyer_evidence: Mapped[list | None] = mapped_column(JSON, nullable=True)
    seller_evidence: Mapped[list | None] = mapped_column(JSON, nullable=True)

    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    escrow = relationship("Escrow")
    messages = relationship("DisputeMessage", back_populates="dispute", order_by="DisputeMessage.created_at")

    def is_party(self, user_id: int) -> bool:
        return user_id in (self.initiated_by, self.initiated_against)


class DisputeMessage(Base):
    """One chat entry in a dispute thread. Append only."""

    __tablename__ = "dispute_messages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_uuid)
    dispute_id: Mapped[str] = mapped_column(ForeignKey("disputes.id"), nullable=False, index=True)
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    attachments: Mapped[list | None] = mapped_column(JSON, nullable=True)

    dispute = relationship("Dispute", back_populates="messages")

"""Escrow related models."""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_uuid


class EscrowStatus(str, PyEnum):
    """Lifecycle state of an escrow."""

    created = "created"
    pending_payment = "pending_payment"
    funded = "funded"
    in_progress = "in_progress"
    completed = "completed"
    disputed = "disputed"
    cancelled = "cancelled"
    refunded = "refunded"


class ReleaseCondition(str, PyEnum):
    """What unlocks the release of funds. Only ``manual`` is enforced today."""

    manual = "manual"
    confirmation = "confirmation"
    delivery_proof = "delivery_proof"
    milestone = "milestone"
    auto = "auto"


class Escrow(Base):
    """A single deal between a buyer and a seller."""

    __tablename__ = "escrows"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_escrows_amount_positive"),
        CheckConstraint("buyer_id <> seller_id", name="ck_escrows_distinct_parties"),
        Index("ix_escrows_buyer", "buyer_id"),
        Index("ix_escrows_seller", "seller_id"),
        Index("ix_escrows_status", "status"),
        Index("ix_escrows_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_uuid)
    buyer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    seller_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    mediator_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    item_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    item_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    item_images: Mapped[list | None] = mapped_column(JSON, nullable=True)
    item_price: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    status: Mapped[EscrowStatus] = mapped_column(
        SqlEnum(EscrowStatus), default=EscrowStatus.created, nullable=False
    )
    release_condition: Mapped[ReleaseCondition] = mapped_column(
        SqlEnum(ReleaseCondition), default=ReleaseCondition.manual, nullable=False
    )

    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    platform_fee: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    service_fee: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_fee: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    funded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    wallet = relationship("EscrowWallet", back_populates="escrow", uselist=False)
    transactions = relationship("Transaction", back_populates="escrow", order_by="Transaction.created_at")

    def party_role(self, user_id: int) -> str | None:
        """Return ``"buyer"``/``"seller"`` for a party, ``None`` otherwise."""

        if user_id == self.buyer_id:
            return "buyer"
        if user_id == self.seller_id:
            return "seller"
        return None

    def counterparty_of(self, user_id: int) -> int:
        return self.seller_id if user_id == self.buyer_id else self.buyer_id

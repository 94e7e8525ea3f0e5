"""Escrow wallet and ledger transaction models."""
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


class TransactionType(str, PyEnum):
    fund = "fund"
    release = "release"
    refund = "refund"
    fee = "fee"
    payout = "payout"
    adjustment = "adjustment"


class TransactionStatus(str, PyEnum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


class EscrowWallet(Base):
    """Aggregate balances for one escrow, derived from its transactions."""

    __tablename__ = "escrow_wallets"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_uuid)
    escrow_id: Mapped[str] = mapped_column(ForeignKey("escrows.id"), unique=True, nullable=False)

    total_funded: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_released: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_refunded: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    current_balance: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    buyer_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    seller_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    platform_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    escrow = relationship("Escrow", back_populates="wallet")


class Transaction(Base):
    """One fund movement for an escrow. Never deleted."""

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        Index("ix_transactions_escrow", "escrow_id"),
        Index("ix_transactions_type", "type"),
        Index("ix_transactions_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_uuid)
    escrow_id: Mapped[str] = mapped_column(ForeignKey("escrows.id"), nullable=False)
    type: Mapped[TransactionType] = mapped_column(SqlEnum(TransactionType), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    from_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    to_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    payment_gateway: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_gateway_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[TransactionStatus] = mapped_column(
        SqlEnum(TransactionStatus), default=TransactionStatus.pending, nullable=False
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    escrow = relationship("Escrow", back_populates="transactions")

"""User model."""
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Enum as SqlEnum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class UserRole(str, PyEnum):
    """Platform roles; only ``admin`` and ``mediator`` carry extra rights."""

    user = "user"
    admin = "admin"
    agent_admin = "agent_admin"
    mediator = "mediator"


class KycStatus(str, PyEnum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"
    expired = "expired"


class User(Base):
    """Represents a marketplace account acting as buyer, seller or staff."""

    __tablename__ = "users"
    __table_args__ = (Index("ix_users_kyc_status", "kyc_status"),)

    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    role: Mapped[UserRole] = mapped_column(SqlEnum(UserRole), default=UserRole.user, nullable=False)
    kyc_status: Mapped[KycStatus] = mapped_column(SqlEnum(KycStatus), default=KycStatus.pending, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_frozen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    freeze_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_deals: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_deals: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

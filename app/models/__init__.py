"""ORM models package."""
from .api_key import ApiKey
from .audit import AuditLog
from .base import Base
from .dispute import Dispute, DisputeMessage, DisputeResolution, DisputeStatus
from .escrow import Escrow, EscrowStatus, ReleaseCondition
from .ledger import EscrowWallet, Transaction, TransactionStatus, TransactionType
from .notification import Notification
from .review import Review
from .user import KycStatus, User, UserRole

__all__ = [
    "ApiKey",
    "AuditLog",
    "Base",
    "Dispute",
    "DisputeMessage",
    "DisputeResolution",
    "DisputeStatus",
    "Escrow",
    "EscrowStatus",
    "EscrowWallet",
    "KycStatus",
    "Notification",
    "ReleaseCondition",
    "Review",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "User",
    "UserRole",
]

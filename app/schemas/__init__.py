"""Schema package exports."""
from .admin import AuditLogRead, EscrowStats
from .dispute import (
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
from .escrow import CancelPayload, EscrowCreate, EscrowRead, PaymentInitiate, PaymentInitiated
from .ledger import TransactionRead, WalletRead
from .review import ReviewCreate, ReviewRead
from .user import ApiKeyIssue, ApiKeyIssued, FreezeRequest, NotificationRead, UserCreate, UserRead

__all__ = [
    "ApiKeyIssue",
    "ApiKeyIssued",
    "AuditLogRead",
    "CancelPayload",
    "DisputeCreate",
    "DisputeMessageCreate",
    "DisputeMessageRead",
    "DisputeRead",
    "DisputeResolve",
    "DisputeSettle",
    "DisputeStatusUpdate",
    "EscrowCreate",
    "EscrowRead",
    "EscrowStats",
    "EvidenceSubmit",
    "FreezeRequest",
    "MediatorAssign",
    "NotificationRead",
    "PaymentInitiate",
    "PaymentInitiated",
    "ReviewCreate",
    "ReviewRead",
    "TransactionRead",
    "UserCreate",
    "UserRead",
    "WalletRead",
]

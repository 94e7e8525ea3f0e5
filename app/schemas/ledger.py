"""Wallet and ledger transaction schemas."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from app.models.ledger import TransactionStatus, TransactionType


class WalletRead(BaseModel):
    id: str
    escrow_id: str
    total_funded: int
    total_released: int
    total_refunded: int
    current_balance: int
    buyer_amount: int
    seller_amount: int
    platform_amount: int
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionRead(BaseModel):
    id: str
    escrow_id: str
    type: TransactionType
    amount: int
    currency: str
    from_user_id: int | None
    to_user_id: int | None
    payment_gateway: str | None = None
    payment_gateway_id: str | None = None
    status: TransactionStatus
    description: str | None = None
    metadata_json: dict[str, Any] | None = None
    created_at: datetime
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

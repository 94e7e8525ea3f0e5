"""Escrow schemas."""
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.escrow import EscrowStatus, ReleaseCondition


class EscrowCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    amount: int = Field(gt=0, description="Minor currency units")
    currency: str | None = Field(default=None, pattern="^[A-Za-z]{3}$")
    item_title: str | None = Field(default=None, max_length=255)
    item_description: str | None = None
    item_images: list[str] | None = None
    item_price: int | None = Field(default=None, ge=0)
    seller_id: int = Field(gt=0)
    release_condition: ReleaseCondition = ReleaseCondition.manual
    source_url: str | None = None
    source_metadata: dict[str, Any] | None = None
    expires_at: datetime | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title cannot be blank")
        return value.strip()

    @field_validator("expires_at")
    @classmethod
    def expires_at_in_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class EscrowRead(BaseModel):
    id: str
    buyer_id: int
    seller_id: int
    mediator_id: int | None = None
    title: str
    description: str | None = None
    amount: int
    currency: str
    item_title: str | None = None
    item_description: str | None = None
    item_images: list[str] | None = None
    item_price: int | None = None
    status: EscrowStatus
    release_condition: ReleaseCondition
    payment_method: str | None = None
    payment_id: str | None = None
    payment_url: str | None = None
    platform_fee: int
    service_fee: int
    total_fee: int
    created_at: datetime
    paid_at: datetime | None = None
    funded_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    expires_at: datetime | None = None
    updated_at: datetime
    source_url: str | None = None
    source_metadata: dict[str, Any] | None = None

    model_config = ConfigDict(from_attributes=True)


class PaymentInitiate(BaseModel):
    payment_method: str = Field(min_length=1, max_length=50)


class PaymentInitiated(BaseModel):
    payment_id: str
    payment_url: str


class CancelPayload(BaseModel):
    reason: str | None = Field(default=None, max_length=255)

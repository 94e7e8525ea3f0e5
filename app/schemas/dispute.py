"""Dispute schemas."""
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.dispute import DisputeResolution, DisputeStatus


class DisputeCreate(BaseModel):
    escrow_id: str = Field(min_length=1)
    reason: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)


class DisputeRead(BaseModel):
    id: str
    escrow_id: str
    initiated_by: int
    initiated_against: int
    mediator_id: int | None = None
    reason: str
    description: str
    status: DisputeStatus
    resolution: DisputeResolution | None = None
    resolution_details: dict[str, Any] | None = None
    resolution_notes: str | None = None
    buyer_evidence: list[Any] | None = None
    seller_evidence: list[Any] | None = None
    created_at: datetime
    resolved_at: datetime | None = None
    closed_at: datetime | None = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DisputeMessageCreate(BaseModel):
    message: str = Field(min_length=1)
    attachments: list[str] | None = None


class DisputeMessageRead(BaseModel):
    id: str
    dispute_id: str
    sender_id: int
    message: str
    attachments: list[str] | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EvidenceSubmit(BaseModel):
    description: str = Field(min_length=1)
    urls: list[str] = Field(default_factory=list)


class DisputeStatusUpdate(BaseModel):
    status: Literal["open", "in_review", "mediation", "escalated"]


class MediatorAssign(BaseModel):
    mediator_id: int = Field(gt=0)


class DisputeResolve(BaseModel):
    resolution: Literal["split", "full_refund", "full_release", "custom"]
    details: dict[str, Any] | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def split_needs_seller_amount(self) -> "DisputeResolve":
        if self.resolution == "split":
            amount = (self.details or {}).get("seller_amount")
            if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
                raise ValueError("split resolution requires a positive integer details.seller_amount")
        return self


class DisputeSettle(BaseModel):
    """Manual split of the held balance after a custom resolution."""

    seller_amount: int = Field(ge=0)
    buyer_amount: int = Field(ge=0)
    notes: str | None = None

    @model_validator(mode="after")
    def settlement_moves_money(self) -> "DisputeSettle":
        if self.seller_amount + self.buyer_amount == 0:
            raise ValueError("a settlement must move a positive amount")
        return self

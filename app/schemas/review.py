"""Review schemas."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ReviewCreate(BaseModel):
    escrow_id: str = Field(min_length=1)
    reviewee_id: int
    rating: int = Field(ge=1, le=5)
    title: str | None = Field(default=None, max_length=255)
    comment: str | None = None
    communication_rating: int | None = Field(default=None, ge=1, le=5)
    reliability_rating: int | None = Field(default=None, ge=1, le=5)
    product_quality_rating: int | None = Field(default=None, ge=1, le=5)


class ReviewRead(ReviewCreate):
    id: int
    reviewer_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

"""User schemas."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.user import KycStatus, UserRole


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=20)
    role: UserRole = UserRole.user


class UserRead(BaseModel):
    id: int
    username: str
    email: EmailStr
    phone: str | None = None
    role: UserRole
    kyc_status: KycStatus
    is_active: bool
    is_frozen: bool
    freeze_reason: str | None = None
    total_deals: int
    completed_deals: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FreezeRequest(BaseModel):
    reason: str = Field(min_length=1)


class ApiKeyIssue(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    days_valid: int | None = Field(default=90, ge=1)


class ApiKeyIssued(BaseModel):
    """The raw key is returned exactly once."""

    id: int
    name: str
    user_id: int
    key: str
    expires_at: datetime | None


class NotificationRead(BaseModel):
    id: int
    type: str
    title: str
    message: str
    related_entity_type: str | None = None
    related_entity_id: str | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

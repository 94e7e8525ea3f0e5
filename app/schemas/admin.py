"""Back-office schemas."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class EscrowStats(BaseModel):
    total_escrows: int
    total_volume: int
    average_amount: float
    completed_count: int
    disputed_count: int


class AuditLogRead(BaseModel):
    id: int
    actor: str
    user_id: int | None
    action: str
    entity_type: str
    entity_id: str
    before_json: dict[str, Any]
    after_json: dict[str, Any]
    at: datetime

    model_config = ConfigDict(from_attributes=True)

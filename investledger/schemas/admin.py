# investledger/schemas/admin.py
from pydantic import BaseModel, Field
from typing import Optional, List, Any, Dict
from datetime import datetime
from decimal import Decimal

from investledger.models.transaction import TransactionStatus


class StatusUpdateRequest(BaseModel):
    status: TransactionStatus
    transaction_hash: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None, max_length=500)


class MaturityRunResponse(BaseModel):
    processed_count: int
    total_payout: Decimal
    failed_ids: List[str] = []
    skipped: bool = False


class SettingUpdate(BaseModel):
    value: str


class AuditLogResponse(BaseModel):
    id: str
    actor_type: str
    actor_id: Optional[str] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True

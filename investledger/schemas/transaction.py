# investledger/schemas/transaction.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from investledger.models.transaction import TransactionStatus, TransactionType
from investledger.schemas.common import Pagination


class DepositRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: str
    wallet_address: Optional[str] = None

    @field_validator("wallet_address")
    def wallet_address_length(cls, v):
        if v is not None and len(v) < 10:
            raise ValueError("Invalid wallet address")
        return v


class WithdrawalRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: str
    wallet_address: Optional[str] = None
    bank_details: Optional[str] = None


class TransactionResponse(BaseModel):
    id: str
    user_id: str
    type: TransactionType
    amount: Decimal
    currency: str
    status: TransactionStatus
    description: Optional[str] = None
    reference_id: Optional[str] = None
    payment_method: Optional[str] = None
    wallet_address: Optional[str] = None
    fees: Decimal
    notes: Optional[str] = None
    transaction_hash: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TransactionPage(BaseModel):
    transactions: List[TransactionResponse]
    pagination: Pagination


class TransactionSummary(BaseModel):
    total_deposits: Decimal
    total_withdrawals: Decimal
    total_investments: Decimal
    pending_transactions: int

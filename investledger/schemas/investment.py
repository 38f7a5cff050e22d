# investledger/schemas/investment.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from investledger.models.investment import InvestmentStatus
from investledger.schemas.common import Pagination


class InvestmentCreate(BaseModel):
    package_id: str
    amount: Decimal = Field(..., gt=0)


class InvestmentResponse(BaseModel):
    id: str
    user_id: str
    package_id: str
    amount: Decimal
    expected_return: Decimal
    current_value: Decimal
    status: InvestmentStatus
    start_date: datetime
    end_date: datetime
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvestmentPage(BaseModel):
    investments: List[InvestmentResponse]
    pagination: Pagination


class InvestmentSummary(BaseModel):
    total_investments: int
    total_invested: Decimal
    total_current_value: Decimal
    active_investments: int

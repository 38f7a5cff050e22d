# investledger/schemas/package.py
from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal


class PackageCreate(BaseModel):
    name: str
    description: Optional[str] = None
    min_amount: Decimal = Field(..., gt=0)
    max_amount: Decimal = Field(..., gt=0)
    return_rate: Decimal = Field(..., gt=0)
    duration_days: int = Field(..., gt=0)
    risk_level: str = "medium"

    @model_validator(mode="after")
    def check_bounds(self):
        if self.max_amount < self.min_amount:
            raise ValueError("max_amount must be greater than or equal to min_amount")
        return self


class PackageResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    min_amount: Decimal
    max_amount: Decimal
    return_rate: Decimal
    duration_days: int
    risk_level: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True

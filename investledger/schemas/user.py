# investledger/schemas/user.py
from pydantic import BaseModel, EmailStr
from typing import Optional
from decimal import Decimal


class AccountResponse(BaseModel):
    id: str
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    account_balance: Decimal
    total_invested: Decimal
    total_profit: Decimal
    account_status: str

    class Config:
        from_attributes = True

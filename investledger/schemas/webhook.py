# investledger/schemas/webhook.py
from pydantic import BaseModel, Field
from decimal import Decimal


class CryptoDepositWebhook(BaseModel):
    address: str
    amount: Decimal = Field(..., gt=0)
    confirmations: int = Field(..., ge=0)
    tx_hash: str

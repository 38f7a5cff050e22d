# investledger/models/package.py
import uuid

from sqlalchemy import Column, String, DateTime, Integer, Numeric, Boolean, Text

from investledger.core.clock import utcnow
from investledger.core.database import Base
from investledger.models.types import Money


class InvestmentPackage(Base):
    __tablename__ = "investment_packages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    description = Column(Text)
    min_amount = Column(Money(), nullable=False)
    max_amount = Column(Money(), nullable=False)
    return_rate = Column(Numeric(7, 2), nullable=False)  # percent over the whole term
    duration_days = Column(Integer, nullable=False)
    risk_level = Column(String(20), default="medium")  # low, medium, high
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

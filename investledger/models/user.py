# investledger/models/user.py
import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from investledger.core.clock import utcnow
from investledger.core.database import Base
from investledger.models.types import Money


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    account_balance = Column(Money(), nullable=False, default=0)
    total_invested = Column(Money(), nullable=False, default=0)
    total_profit = Column(Money(), nullable=False, default=0)
    # Weak back-reference to the referring account
    referred_by = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    account_status = Column(String(20), nullable=False, default="active")  # active, closed
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    referrer = relationship("User", remote_side=[id])
    investments = relationship("Investment", back_populates="user")
    transactions = relationship("Transaction", back_populates="user")

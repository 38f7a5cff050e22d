# investledger/models/investment.py
import enum
import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from investledger.core.clock import utcnow
from investledger.core.database import Base
from investledger.models.types import Money, enum_type


class InvestmentStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not InvestmentStatus.ACTIVE

    def can_transition_to(self, new_status: "InvestmentStatus") -> bool:
        return new_status in _INVESTMENT_TRANSITIONS[self]


_INVESTMENT_TRANSITIONS = {
    InvestmentStatus.ACTIVE: frozenset({InvestmentStatus.COMPLETED, InvestmentStatus.CANCELLED}),
    InvestmentStatus.COMPLETED: frozenset(),
    InvestmentStatus.CANCELLED: frozenset(),
}


class Investment(Base):
    __tablename__ = "investments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    package_id = Column(String(36), ForeignKey("investment_packages.id"), nullable=False)
    amount = Column(Money(), nullable=False)
    # Fixed at creation, later package edits never change these
    expected_return = Column(Money(), nullable=False)
    current_value = Column(Money(), nullable=False)
    status = Column(enum_type(InvestmentStatus), nullable=False, default=InvestmentStatus.ACTIVE)
    start_date = Column(DateTime, nullable=False, default=utcnow)
    end_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="investments")
    package = relationship("InvestmentPackage")


Index("ix_investments_status_end_date", Investment.status, Investment.end_date)

# investledger/models/transaction.py
import enum
import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Index, text
from sqlalchemy.orm import relationship

from investledger.core.clock import utcnow
from investledger.core.database import Base
from investledger.models.types import Money, enum_type


class TransactionType(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    INVESTMENT = "investment"
    PAYOUT = "payout"
    REFERRAL = "referral"
    REFUND = "refund"
    PROFIT = "profit"


# Amounts are unsigned magnitudes, the type decides the direction
CREDIT_TYPES = frozenset({
    TransactionType.DEPOSIT,
    TransactionType.PAYOUT,
    TransactionType.REFERRAL,
    TransactionType.REFUND,
    TransactionType.PROFIT,
})
DEBIT_TYPES = frozenset({TransactionType.WITHDRAWAL, TransactionType.INVESTMENT})


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING

    def can_transition_to(self, new_status: "TransactionStatus") -> bool:
        return new_status in _TRANSACTION_TRANSITIONS[self]


_TRANSACTION_TRANSITIONS = {
    TransactionStatus.PENDING: frozenset({
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    }),
    TransactionStatus.COMPLETED: frozenset(),
    TransactionStatus.FAILED: frozenset(),
    TransactionStatus.CANCELLED: frozenset(),
}


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(enum_type(TransactionType), nullable=False, index=True)
    amount = Column(Money(), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(enum_type(TransactionStatus), nullable=False, default=TransactionStatus.PENDING)
    description = Column(Text)
    # Investment id for investment/refund/payout rows, referred user id for referral rows
    reference_id = Column(String(36), index=True)
    payment_method = Column(String(30))
    wallet_address = Column(String(255), index=True)
    bank_details = Column(Text)
    fees = Column(Money(), nullable=False, default=0)
    notes = Column(Text)
    transaction_hash = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="transactions")


Index("ix_transactions_user_type_status", Transaction.user_id, Transaction.type, Transaction.status)

# One referral bonus per referred account
Index(
    "uq_transactions_referral_reference",
    Transaction.reference_id,
    unique=True,
    sqlite_where=text("type = 'referral'"),
    postgresql_where=text("type = 'referral'"),
)

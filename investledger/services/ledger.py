# investledger/services/ledger.py
"""
Ledger primitives.

Every balance mutation runs inside :func:`atomic`, reads the account row with
``FOR UPDATE`` first, and records its transaction row in the same unit of work.
"""

import logging
from contextlib import contextmanager
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterator, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from investledger.core.errors import (
    AccountClosed,
    AccountNotFound,
    InsufficientBalance,
    LedgerError,
    LedgerSystemError,
)
from investledger.models.transaction import (
    CREDIT_TYPES,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from investledger.models.user import User

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@contextmanager
def atomic(db: Session, operation: str = "ledger operation") -> Iterator[Session]:
    """Commit the unit of work on success, roll everything back on any error.

    Domain errors propagate unchanged. Anything else is logged with its
    traceback and surfaced as a generic :class:`LedgerSystemError`.
    """
    try:
        yield db
        db.commit()
    except LedgerError as e:
        db.rollback()
        logger.info(f"{operation} rejected: {e.code}: {e.message}")
        raise
    except Exception as e:
        db.rollback()
        logger.exception(f"{operation} failed and was rolled back")
        raise LedgerSystemError() from e


def lock_account(db: Session, user_id: str) -> User:
    account = db.query(User).filter(User.id == user_id).with_for_update().populate_existing().first()
    if account is None:
        raise AccountNotFound(f"Account {user_id} not found")
    return account


def lock_active_account(db: Session, user_id: str) -> User:
    """Lock an account that may start new money movements. Closed accounts can
    still receive refunds and payouts through :func:`lock_account`."""
    account = lock_account(db, user_id)
    if account.account_status != "active":
        raise AccountClosed(f"Account {user_id} is {account.account_status}")
    return account


def credit(account: User, amount: Decimal) -> Decimal:
    amount = to_money(amount)
    account.account_balance = to_money(account.account_balance) + amount
    return account.account_balance


def debit(account: User, amount: Decimal) -> Decimal:
    """Debit a locked account; the sufficiency check reads the same locked row."""
    amount = to_money(amount)
    balance = to_money(account.account_balance)
    if balance < amount:
        raise InsufficientBalance(
            f"Insufficient balance. Required: ${amount}, available: ${balance}"
        )
    account.account_balance = balance - amount
    return account.account_balance


def record_transaction(
    db: Session,
    *,
    user_id: str,
    type: TransactionType,
    amount: Decimal,
    status: TransactionStatus,
    description: str,
    reference_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    wallet_address: Optional[str] = None,
    bank_details: Optional[str] = None,
    fees: Decimal = Decimal("0"),
    currency: str = "USD",
) -> Transaction:
    transaction = Transaction(
        user_id=user_id,
        type=type,
        amount=to_money(amount),
        status=status,
        description=description,
        reference_id=reference_id,
        payment_method=payment_method,
        wallet_address=wallet_address,
        bank_details=bank_details,
        fees=to_money(fees),
        currency=currency,
    )
    db.add(transaction)
    db.flush()
    return transaction


def expected_balance(db: Session, user_id: str) -> Decimal:
    """Balance implied by the transaction history of one account.

    Withdrawals count from the moment they are requested because the funds
    are held at request time; a failed or cancelled withdrawal drops out.
    """
    rows = (
        db.query(
            Transaction.type,
            Transaction.status,
            func.coalesce(func.sum(Transaction.amount), 0),
            func.coalesce(func.sum(Transaction.fees), 0),
        )
        .filter(Transaction.user_id == user_id)
        .group_by(Transaction.type, Transaction.status)
        .all()
    )

    total = Decimal("0")
    for tx_type, status, amount, fees in rows:
        amount, fees = to_money(amount), to_money(fees)
        if tx_type == TransactionType.WITHDRAWAL:
            if status in (TransactionStatus.PENDING, TransactionStatus.COMPLETED):
                total -= amount + fees
        elif status != TransactionStatus.COMPLETED:
            continue
        elif tx_type in CREDIT_TYPES:
            total += amount
        else:
            total -= amount
    return to_money(total)

# investledger/services/transactions.py
import logging
import math
import secrets
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from investledger.core.config import AppConfig, app_config
from investledger.core.errors import AmountTooLow, ValidationError
from investledger.models.transaction import Transaction, TransactionStatus, TransactionType
from investledger.services.audit import Actor, write_audit
from investledger.services.ledger import atomic, debit, lock_active_account, record_transaction, to_money
from investledger.services.notifications import Notification

logger = logging.getLogger(__name__)

CRYPTO_METHODS = ("bitcoin", "ethereum", "usdt")
PAYMENT_METHODS = CRYPTO_METHODS + ("bank_transfer",)


def _validate_payment_method(payment_method: str) -> None:
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {payment_method}")


def generate_deposit_address() -> str:
    return f"dep_{secrets.token_hex(20)}"


def create_deposit_request(
    db: Session,
    user_id: str,
    amount,
    payment_method: str,
    wallet_address: Optional[str] = None,
    config: AppConfig = app_config,
) -> Transaction:
    """Open a pending deposit. Nothing is credited until it completes."""
    amount = to_money(amount)
    _validate_payment_method(payment_method)
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")

    with atomic(db, "create deposit request"):
        min_deposit = config.get_decimal(db, "min_deposit_amount", to_money(100))
        if amount < min_deposit:
            raise AmountTooLow(f"Minimum deposit amount is ${min_deposit}")

        lock_active_account(db, user_id)

        # Crypto deposits get a one-time address the payment webhook can match
        if wallet_address is None and payment_method in CRYPTO_METHODS:
            wallet_address = generate_deposit_address()

        transaction = record_transaction(
            db,
            user_id=user_id,
            type=TransactionType.DEPOSIT,
            amount=amount,
            status=TransactionStatus.PENDING,
            description=f"Deposit via {payment_method}",
            payment_method=payment_method,
            wallet_address=wallet_address,
        )
        write_audit(
            db, Actor.user(user_id), "deposit_request", "transaction", transaction.id,
            new_values={"amount": amount, "payment_method": payment_method},
        )

    logger.info(f"Deposit request {transaction.id} for {amount} via {payment_method} by {user_id}")
    return transaction


def create_withdrawal_request(
    db: Session,
    user_id: str,
    amount,
    payment_method: str,
    wallet_address: Optional[str] = None,
    bank_details: Optional[str] = None,
    notifier=None,
    config: AppConfig = app_config,
) -> Transaction:
    """Hold amount + fee immediately and open a pending withdrawal.

    A later failed/cancelled transition returns the held funds.
    """
    amount = to_money(amount)
    _validate_payment_method(payment_method)
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    if not wallet_address and not bank_details:
        raise ValidationError("A wallet address or bank details are required")

    with atomic(db, "create withdrawal request"):
        min_withdrawal = config.get_decimal(db, "min_withdrawal_amount", to_money(50))
        if amount < min_withdrawal:
            raise AmountTooLow(f"Minimum withdrawal amount is ${min_withdrawal}")

        fee_percentage = config.get_decimal(db, "withdrawal_fee_percentage")
        fee = to_money(amount * fee_percentage / 100)

        account = lock_active_account(db, user_id)
        debit(account, amount + fee)

        transaction = record_transaction(
            db,
            user_id=user_id,
            type=TransactionType.WITHDRAWAL,
            amount=amount,
            status=TransactionStatus.PENDING,
            description=f"Withdrawal via {payment_method}",
            payment_method=payment_method,
            wallet_address=wallet_address,
            bank_details=bank_details,
            fees=fee,
        )
        write_audit(
            db, Actor.user(user_id), "withdrawal_request", "transaction", transaction.id,
            new_values={"amount": amount, "payment_method": payment_method, "fee": fee},
        )

    logger.info(f"Withdrawal request {transaction.id} for {amount} (+{fee} fee) by {user_id}")
    if notifier is not None:
        notifier.publish(Notification("withdrawal_request", user_id, {"amount": amount, "fees": fee}))
    return transaction


def list_transactions(
    db: Session,
    user_id: str,
    type: Optional[TransactionType] = None,
    status: Optional[TransactionStatus] = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    query = db.query(Transaction).filter(Transaction.user_id == user_id)
    if type:
        query = query.filter(Transaction.type == type)
    if status:
        query = query.filter(Transaction.status == status)

    total = query.count()
    transactions = (
        query.order_by(Transaction.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "transactions": transactions,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }


def _completed_sum(tx_type: TransactionType):
    return func.coalesce(func.sum(case(
        ((Transaction.type == tx_type) & (Transaction.status == TransactionStatus.COMPLETED), Transaction.amount),
        else_=0,
    )), 0)


def get_transaction_summary(db: Session, user_id: str) -> dict:
    deposits, withdrawals, investments, pending = (
        db.query(
            _completed_sum(TransactionType.DEPOSIT),
            _completed_sum(TransactionType.WITHDRAWAL),
            _completed_sum(TransactionType.INVESTMENT),
            func.coalesce(func.sum(case((Transaction.status == TransactionStatus.PENDING, 1), else_=0)), 0),
        )
        .filter(Transaction.user_id == user_id)
        .one()
    )
    return {
        "total_deposits": to_money(deposits),
        "total_withdrawals": to_money(withdrawals),
        "total_investments": to_money(investments),
        "pending_transactions": int(pending),
    }

# investledger/services/status_transitions.py
"""
Transaction status state machine.

    pending -> completed | failed | cancelled

All three targets are terminal. Each transition, its balance side effect, the
referral bonus and the audit row commit together or not at all. Re-delivering
a transition that already happened raises AlreadyProcessed and touches nothing,
so duplicate webhooks and double clicks cannot credit twice.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from investledger.core.clock import utcnow
from investledger.core.config import AppConfig, app_config
from investledger.core.errors import (
    AlreadyProcessed,
    InvalidTransition,
    NotCancellable,
    TransactionNotFound,
    ValidationError,
)
from investledger.models.transaction import Transaction, TransactionStatus, TransactionType
from investledger.services.audit import Actor, write_audit
from investledger.services.ledger import atomic, credit, lock_account, to_money
from investledger.services.notifications import Notification
from investledger.services.referrals import award_referral_bonus

logger = logging.getLogger(__name__)

USER_CANCELLABLE_TYPES = (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


def _parse_status(value) -> TransactionStatus:
    try:
        return TransactionStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status: {value}")


def _check_transition(transaction: Transaction, new_status: TransactionStatus) -> None:
    current = transaction.status
    if current.is_terminal and current == new_status:
        raise AlreadyProcessed(f"Transaction {transaction.id} is already {current.value}.")
    if not current.can_transition_to(new_status):
        raise InvalidTransition(
            f"Cannot move transaction {transaction.id} from {current.value} to {new_status.value}."
        )


def _apply_transition(
    db: Session,
    transaction: Transaction,
    new_status: TransactionStatus,
    actor: Actor,
    config: AppConfig,
    notes: Optional[str] = None,
    tx_hash: Optional[str] = None,
    action: str = "transaction_status_update",
) -> List[Notification]:
    """Apply a legal transition to a locked transaction row.

    Returns the notifications to publish once the caller's unit commits.
    """
    _check_transition(transaction, new_status)

    old_status = transaction.status
    transaction.status = new_status
    if tx_hash:
        transaction.transaction_hash = tx_hash
    if notes:
        transaction.notes = notes
    db.flush()

    notifications = []
    new_values = {"status": new_status, "transaction_hash": tx_hash, "notes": notes}

    if transaction.type == TransactionType.DEPOSIT and new_status == TransactionStatus.COMPLETED:
        account = lock_account(db, transaction.user_id)
        credit(account, transaction.amount)
        referral = award_referral_bonus(
            db,
            account,
            transaction.amount,
            actor,
            config.get_decimal(db, "referral_bonus_percentage"),
        )
        if referral is not None:
            new_values["referral_transaction_id"] = referral.id
        notifications.append(Notification(
            "deposit_confirmation", transaction.user_id, {"amount": transaction.amount},
        ))

    elif transaction.type == TransactionType.WITHDRAWAL and new_status in (
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    ):
        # Funds were held when the withdrawal was requested
        held = to_money(transaction.amount) + to_money(transaction.fees or 0)
        account = lock_account(db, transaction.user_id)
        credit(account, held)
        new_values["refunded"] = held

    write_audit(
        db, actor, action, "transaction", transaction.id,
        old_values={"status": old_status},
        new_values=new_values,
    )
    logger.info(
        f"Transaction {transaction.id} ({transaction.type.value}) "
        f"{old_status.value} -> {new_status.value} by {actor}"
    )
    return notifications


def _publish(notifier, notifications: List[Notification]) -> None:
    if notifier is None:
        return
    for notification in notifications:
        notifier.publish(notification)


def _lock_transaction(db: Session, transaction_id: str, user_id: Optional[str] = None) -> Transaction:
    query = db.query(Transaction).filter(Transaction.id == transaction_id)
    if user_id is not None:
        query = query.filter(Transaction.user_id == user_id)
    transaction = query.with_for_update().populate_existing().first()
    if transaction is None:
        raise TransactionNotFound("Transaction not found.")
    return transaction


def transition_transaction_status(
    db: Session,
    transaction_id: str,
    new_status,
    actor: Actor,
    notes: Optional[str] = None,
    tx_hash: Optional[str] = None,
    notifier=None,
    config: AppConfig = app_config,
) -> Transaction:
    """Admin/webhook entry point for moving a transaction out of pending."""
    new_status = _parse_status(new_status)

    with atomic(db, f"transition transaction {transaction_id}"):
        transaction = _lock_transaction(db, transaction_id)
        notifications = _apply_transition(
            db, transaction, new_status, actor, config, notes=notes, tx_hash=tx_hash,
        )

    _publish(notifier, notifications)
    return transaction


def cancel_pending_transaction(
    db: Session,
    transaction_id: str,
    user_id: str,
    now: Optional[datetime] = None,
    notifier=None,
    config: AppConfig = app_config,
) -> Transaction:
    """Let a user withdraw their own pending deposit or withdrawal request."""
    now = now or utcnow()

    with atomic(db, f"cancel transaction {transaction_id}"):
        transaction = _lock_transaction(db, transaction_id, user_id=user_id)
        if transaction.status != TransactionStatus.PENDING:
            raise NotCancellable("Transaction not found or cannot be cancelled.")
        if transaction.type not in USER_CANCELLABLE_TYPES:
            raise NotCancellable("Only deposit and withdrawal requests can be cancelled.")

        window_hours = config.get_int(db, "transaction_cancel_window_hours", 1)
        if now - transaction.created_at > timedelta(hours=window_hours):
            raise NotCancellable(
                f"Transactions can only be cancelled within {window_hours} hour(s) of creation."
            )

        notifications = _apply_transition(
            db, transaction, TransactionStatus.CANCELLED, Actor.user(user_id), config,
            action="transaction_cancel",
        )

    _publish(notifier, notifications)
    return transaction


def confirm_crypto_deposit(
    db: Session,
    wallet_address: str,
    amount,
    confirmations: int,
    tx_hash: str,
    notifier=None,
    config: AppConfig = app_config,
) -> Optional[Transaction]:
    """Complete the pending deposit matching a one-time deposit address.

    Returns None when there is nothing to do yet (not enough confirmations) or
    nothing left to do (no pending deposit for the address). Both are
    acknowledged to the webhook provider rather than treated as errors.
    """
    received = to_money(amount)
    if received <= 0:
        raise ValidationError("Deposit amount must be greater than 0")

    with atomic(db, f"crypto deposit {tx_hash}"):
        min_confirmations = config.get_int(db, "min_crypto_confirmations", 3)
        if confirmations < min_confirmations:
            logger.info(
                f"Deposit {tx_hash} to {wallet_address} has {confirmations}/{min_confirmations} confirmations"
            )
            return None

        transaction = (
            db.query(Transaction)
            .filter(
                Transaction.wallet_address == wallet_address,
                Transaction.type == TransactionType.DEPOSIT,
                Transaction.status == TransactionStatus.PENDING,
            )
            .with_for_update()
            .populate_existing()
            .first()
        )
        if transaction is None:
            logger.info(f"No pending deposit for {wallet_address}; treating {tx_hash} as already processed")
            return None

        notes = None
        if received != to_money(transaction.amount):
            notes = f"Requested {to_money(transaction.amount)}, received {received}"
            logger.warning(f"Deposit {transaction.id}: {notes}")
            transaction.amount = received

        notifications = _apply_transition(
            db, transaction, TransactionStatus.COMPLETED, Actor.webhook("crypto"), config,
            notes=notes, tx_hash=tx_hash, action="crypto_deposit_confirmed",
        )

    _publish(notifier, notifications)
    return transaction

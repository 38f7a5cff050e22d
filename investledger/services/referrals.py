# investledger/services/referrals.py
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from investledger.models.transaction import Transaction, TransactionStatus, TransactionType
from investledger.models.user import User
from investledger.services.audit import Actor, write_audit
from investledger.services.ledger import credit, lock_account, record_transaction, to_money

logger = logging.getLogger(__name__)


def completed_deposit_count(db: Session, user_id: str) -> int:
    return (
        db.query(Transaction)
        .filter(
            Transaction.user_id == user_id,
            Transaction.type == TransactionType.DEPOSIT,
            Transaction.status == TransactionStatus.COMPLETED,
        )
        .count()
    )


def award_referral_bonus(
    db: Session,
    depositor: User,
    deposited_amount: Decimal,
    actor: Actor,
    bonus_percentage: Decimal,
) -> Optional[Transaction]:
    """Credit the referrer once, on the depositor's first completed deposit.

    Must run inside the deposit-completion unit of work, after the deposit row
    has been flushed as completed. Returns the referral transaction, or None
    when no bonus applies.
    """
    if completed_deposit_count(db, depositor.id) != 1:
        return None
    if not depositor.referred_by:
        return None

    bonus_percentage = Decimal(str(bonus_percentage))
    if bonus_percentage <= 0:
        return None

    bonus_amount = to_money(to_money(deposited_amount) * bonus_percentage / 100)
    if bonus_amount <= 0:
        return None

    referrer = lock_account(db, depositor.referred_by)
    credit(referrer, bonus_amount)

    # The partial unique index on (reference_id) for referral rows rejects a second bonus
    referral = record_transaction(
        db,
        user_id=referrer.id,
        type=TransactionType.REFERRAL,
        amount=bonus_amount,
        status=TransactionStatus.COMPLETED,
        description=f"Referral bonus from user {depositor.id}",
        reference_id=depositor.id,
    )
    write_audit(
        db, actor, "referral_bonus_award", "transaction", referral.id,
        new_values={
            "referrer_id": referrer.id,
            "referred_user_id": depositor.id,
            "bonus_amount": bonus_amount,
            "bonus_percentage": bonus_percentage,
        },
    )
    logger.info(f"Referral bonus {bonus_amount} awarded to {referrer.id} for user {depositor.id}")
    return referral

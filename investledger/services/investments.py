# investledger/services/investments.py
import logging
import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from investledger.core.clock import utcnow
from investledger.core.config import AppConfig, app_config
from investledger.core.errors import (
    InvalidAmount,
    InvestmentNotFound,
    NotCancellable,
    ValidationError,
)
from investledger.models.investment import Investment, InvestmentStatus
from investledger.models.transaction import TransactionStatus, TransactionType
from investledger.services.audit import Actor, write_audit
from investledger.services.ledger import (
    atomic,
    credit,
    debit,
    lock_account,
    lock_active_account,
    record_transaction,
    to_money,
)
from investledger.services.notifications import Notification
from investledger.services.packages import get_active_package

logger = logging.getLogger(__name__)


def create_investment(
    db: Session,
    user_id: str,
    package_id: str,
    amount,
    notifier=None,
    now: Optional[datetime] = None,
) -> Investment:
    """Debit the account and open an investment against an active package.

    Raises PackageNotFound, InvalidAmount, AccountNotFound, AccountClosed or
    InsufficientBalance; nothing is written in any of those cases.
    """
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Investment amount must be greater than 0")
    now = now or utcnow()

    with atomic(db, "create investment"):
        package = get_active_package(db, package_id)
        if amount < package.min_amount or amount > package.max_amount:
            raise InvalidAmount(
                f"Investment amount must be between {package.min_amount} and {package.max_amount}."
            )

        account = lock_active_account(db, user_id)
        debit(account, amount)
        account.total_invested = to_money(account.total_invested) + amount

        investment = Investment(
            user_id=user_id,
            package_id=package.id,
            amount=amount,
            expected_return=to_money(amount * Decimal(str(package.return_rate)) / 100),
            current_value=amount,
            status=InvestmentStatus.ACTIVE,
            start_date=now,
            end_date=now + timedelta(days=package.duration_days),
            created_at=now,
        )
        db.add(investment)
        db.flush()

        record_transaction(
            db,
            user_id=user_id,
            type=TransactionType.INVESTMENT,
            amount=amount,
            status=TransactionStatus.COMPLETED,
            description=f"Investment in {package.name}",
            reference_id=investment.id,
        )
        write_audit(
            db, Actor.user(user_id), "investment_create", "investment", investment.id,
            new_values={"package_id": package.id, "amount": amount, "end_date": investment.end_date.isoformat()},
        )
        package_name = package.name

    logger.info(f"User {user_id} invested {amount} in package {package_id} ({investment.id})")
    if notifier is not None:
        notifier.publish(Notification(
            "investment_confirmation",
            user_id,
            {
                "amount": investment.amount,
                "package_name": package_name,
                "expected_return": investment.expected_return,
                "end_date": investment.end_date.date().isoformat(),
            },
        ))
    return investment


def cancel_investment(
    db: Session,
    investment_id: str,
    user_id: str,
    notifier=None,
    now: Optional[datetime] = None,
    config: AppConfig = app_config,
) -> Investment:
    """Cancel an active investment inside the grace window and refund it."""
    now = now or utcnow()

    with atomic(db, "cancel investment"):
        investment = (
            db.query(Investment)
            .filter(Investment.id == investment_id, Investment.user_id == user_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if investment is None:
            raise InvestmentNotFound("Investment not found.")
        if not investment.status.can_transition_to(InvestmentStatus.CANCELLED):
            raise NotCancellable(f"Investment is {investment.status.value} and cannot be cancelled.")

        window_hours = config.get_int(db, "investment_cancel_window_hours", 24)
        if now - investment.created_at > timedelta(hours=window_hours):
            raise NotCancellable(
                f"Investments can only be cancelled within {window_hours} hours of creation."
            )

        account = lock_account(db, user_id)
        investment.status = InvestmentStatus.CANCELLED
        credit(account, investment.amount)
        account.total_invested = to_money(account.total_invested) - to_money(investment.amount)

        record_transaction(
            db,
            user_id=user_id,
            type=TransactionType.REFUND,
            amount=investment.amount,
            status=TransactionStatus.COMPLETED,
            description="Refund for cancelled investment",
            reference_id=investment.id,
        )
        write_audit(
            db, Actor.user(user_id), "investment_cancel", "investment", investment.id,
            old_values={"status": InvestmentStatus.ACTIVE},
            new_values={"status": InvestmentStatus.CANCELLED, "refund": investment.amount},
        )

    logger.info(f"User {user_id} cancelled investment {investment_id}, refunded {investment.amount}")
    if notifier is not None:
        notifier.publish(Notification("investment_cancelled", user_id, {"amount": investment.amount}))
    return investment


def list_investments(
    db: Session,
    user_id: str,
    status: Optional[InvestmentStatus] = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    query = db.query(Investment).filter(Investment.user_id == user_id)
    if status:
        query = query.filter(Investment.status == status)

    total = query.count()
    investments = (
        query.order_by(Investment.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "investments": investments,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }


def get_investment_summary(db: Session, user_id: str) -> dict:
    total_investments, total_invested, total_current_value, active = (
        db.query(
            func.count(Investment.id),
            func.coalesce(func.sum(Investment.amount), 0),
            func.coalesce(func.sum(Investment.current_value), 0),
            func.coalesce(func.sum(case((Investment.status == InvestmentStatus.ACTIVE, 1), else_=0)), 0),
        )
        .filter(Investment.user_id == user_id)
        .one()
    )
    return {
        "total_investments": total_investments,
        "total_invested": to_money(total_invested),
        "total_current_value": to_money(total_current_value),
        "active_investments": int(active),
    }

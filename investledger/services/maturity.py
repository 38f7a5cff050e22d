# investledger/services/maturity.py
"""
Matured investment payouts.

Each matured investment is paid in its own session and unit of work, so one
bad row is logged and skipped without blocking the rest of the batch. The row
is re-read under lock with ``status == active`` before paying; a second run,
or an overlapping one, finds nothing to pay.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from investledger.core.clock import utcnow
from investledger.core.errors import LedgerError
from investledger.models.investment import Investment, InvestmentStatus
from investledger.models.package import InvestmentPackage
from investledger.models.transaction import TransactionStatus, TransactionType
from investledger.services.audit import Actor, write_audit
from investledger.services.ledger import atomic, credit, lock_account, record_transaction, to_money
from investledger.services.notifications import Notification

logger = logging.getLogger(__name__)


@dataclass
class MaturityBatchResult:
    processed_count: int = 0
    total_payout: Decimal = Decimal("0.00")
    failed_ids: List[str] = field(default_factory=list)


def find_matured_investment_ids(db: Session, now: datetime) -> List[str]:
    rows = (
        db.query(Investment.id)
        .filter(Investment.status == InvestmentStatus.ACTIVE, Investment.end_date <= now)
        .order_by(Investment.end_date.asc())
        .all()
    )
    return [row.id for row in rows]


def pay_out_investment(db: Session, investment_id: str, now: datetime) -> Optional[Notification]:
    """Complete one matured investment. Returns the notification to send, or
    None when the investment was already settled by someone else."""
    with atomic(db, f"payout investment {investment_id}"):
        investment = (
            db.query(Investment)
            .filter(
                Investment.id == investment_id,
                Investment.status == InvestmentStatus.ACTIVE,
                Investment.end_date <= now,
            )
            .with_for_update()
            .populate_existing()
            .first()
        )
        if investment is None:
            return None

        principal = to_money(investment.amount)
        profit = to_money(investment.expected_return)
        payout = principal + profit

        investment.status = InvestmentStatus.COMPLETED
        investment.current_value = payout

        account = lock_account(db, investment.user_id)
        credit(account, payout)
        account.total_invested = to_money(account.total_invested) - principal
        account.total_profit = to_money(account.total_profit) + profit

        package_name = (
            db.query(InvestmentPackage.name)
            .filter(InvestmentPackage.id == investment.package_id)
            .scalar()
        ) or "investment package"

        record_transaction(
            db,
            user_id=investment.user_id,
            type=TransactionType.PAYOUT,
            amount=payout,
            status=TransactionStatus.COMPLETED,
            description=f"Payout for completed investment in {package_name}",
            reference_id=investment.id,
        )
        write_audit(
            db, Actor.system(), "investment_matured", "investment", investment.id,
            old_values={"status": InvestmentStatus.ACTIVE},
            new_values={
                "status": InvestmentStatus.COMPLETED,
                "payout_amount": payout,
                "user_id": investment.user_id,
            },
        )

    return Notification(
        "investment_completed",
        investment.user_id,
        {"payout": payout, "package_name": package_name, "amount": principal},
    )


class MaturityProcessor:
    def __init__(self, session_factory: Callable[[], Session], notifier=None):
        self.session_factory = session_factory
        self.notifier = notifier

    def run_batch(self, now: Optional[datetime] = None) -> MaturityBatchResult:
        now = now or utcnow()
        result = MaturityBatchResult()

        db = self.session_factory()
        try:
            investment_ids = find_matured_investment_ids(db, now)
        finally:
            db.close()

        if not investment_ids:
            logger.info("No matured investments to process.")
            return result

        logger.info(f"Found {len(investment_ids)} matured investment(s) to process.")
        for investment_id in investment_ids:
            db = self.session_factory()
            try:
                notification = pay_out_investment(db, investment_id, now)
            except LedgerError as e:
                # Already rolled back and logged by atomic()
                logger.error(f"Skipping investment {investment_id}: {e.message}")
                result.failed_ids.append(investment_id)
                continue
            finally:
                db.close()

            if notification is None:
                logger.info(f"Investment {investment_id} was already settled, skipping")
                continue

            result.processed_count += 1
            result.total_payout += notification.context["payout"]
            logger.info(f"Paid out investment {investment_id}: {notification.context['payout']}")
            if self.notifier is not None:
                self.notifier.publish(notification)

        logger.info(
            f"Maturity batch done: {result.processed_count} paid, "
            f"{result.total_payout} total, {len(result.failed_ids)} failed"
        )
        return result

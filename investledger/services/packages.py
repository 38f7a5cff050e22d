# investledger/services/packages.py
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from investledger.core.errors import PackageNotFound, ValidationError
from investledger.models.package import InvestmentPackage
from investledger.services.audit import Actor, write_audit
from investledger.services.ledger import atomic, to_money


def list_active_packages(db: Session) -> List[InvestmentPackage]:
    return (
        db.query(InvestmentPackage)
        .filter(InvestmentPackage.is_active.is_(True))
        .order_by(InvestmentPackage.min_amount.asc())
        .all()
    )


def get_active_package(db: Session, package_id: str) -> InvestmentPackage:
    package = (
        db.query(InvestmentPackage)
        .filter(InvestmentPackage.id == package_id, InvestmentPackage.is_active.is_(True))
        .first()
    )
    if package is None:
        raise PackageNotFound("Investment package not found.")
    return package


def create_package(
    db: Session,
    actor: Actor,
    name: str,
    min_amount: Decimal,
    max_amount: Decimal,
    return_rate: Decimal,
    duration_days: int,
    risk_level: str = "medium",
    description: Optional[str] = None,
) -> InvestmentPackage:
    min_amount, max_amount = to_money(min_amount), to_money(max_amount)
    if min_amount <= 0 or max_amount < min_amount:
        raise ValidationError("Package bounds must satisfy 0 < min_amount <= max_amount")
    if Decimal(str(return_rate)) <= 0:
        raise ValidationError("Return rate must be positive")
    if duration_days <= 0:
        raise ValidationError("Duration must be at least one day")

    with atomic(db, "create package"):
        package = InvestmentPackage(
            name=name,
            description=description,
            min_amount=min_amount,
            max_amount=max_amount,
            return_rate=Decimal(str(return_rate)),
            duration_days=duration_days,
            risk_level=risk_level,
            is_active=True,
        )
        db.add(package)
        db.flush()
        write_audit(
            db, actor, "package_create", "investment_package", package.id,
            new_values={
                "name": name,
                "min_amount": min_amount,
                "max_amount": max_amount,
                "return_rate": return_rate,
                "duration_days": duration_days,
            },
        )
    return package


def set_package_active(db: Session, actor: Actor, package_id: str, is_active: bool) -> InvestmentPackage:
    """Toggle availability. Existing investments keep the terms they were created with."""
    with atomic(db, "update package"):
        package = db.query(InvestmentPackage).filter(InvestmentPackage.id == package_id).first()
        if package is None:
            raise PackageNotFound("Investment package not found.")
        old = package.is_active
        package.is_active = is_active
        write_audit(
            db, actor, "package_status_update", "investment_package", package.id,
            old_values={"is_active": old}, new_values={"is_active": is_active},
        )
    return package

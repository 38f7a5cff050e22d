# investledger/routes/investments.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from investledger.models.investment import InvestmentStatus
from investledger.models.user import User
from investledger.routes.deps import get_current_user, get_db, get_notifier
from investledger.schemas.investment import (
    InvestmentCreate,
    InvestmentPage,
    InvestmentResponse,
    InvestmentSummary,
)
from investledger.services import investments as investment_service

router = APIRouter()


@router.post("", response_model=InvestmentResponse, status_code=status.HTTP_201_CREATED)
def create_investment(
    investment_data: InvestmentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    return investment_service.create_investment(
        db, current_user.id, investment_data.package_id, investment_data.amount, notifier=notifier,
    )


@router.get("", response_model=InvestmentPage)
def get_my_investments(
    status_filter: Optional[InvestmentStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return investment_service.list_investments(db, current_user.id, status=status_filter, page=page, limit=limit)


@router.get("/summary", response_model=InvestmentSummary)
def get_summary(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return investment_service.get_investment_summary(db, current_user.id)


@router.post("/{investment_id}/cancel", response_model=InvestmentResponse)
def cancel_investment(
    investment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    return investment_service.cancel_investment(db, investment_id, current_user.id, notifier=notifier)

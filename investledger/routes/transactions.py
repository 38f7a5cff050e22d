# investledger/routes/transactions.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from investledger.models.transaction import TransactionStatus, TransactionType
from investledger.models.user import User
from investledger.routes.deps import get_current_user, get_db, get_notifier
from investledger.schemas.transaction import (
    DepositRequest,
    TransactionPage,
    TransactionResponse,
    TransactionSummary,
    WithdrawalRequest,
)
from investledger.services import transactions as transaction_service
from investledger.services.status_transitions import cancel_pending_transaction

router = APIRouter()


@router.post("/deposit", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
def create_deposit(
    deposit_data: DepositRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return transaction_service.create_deposit_request(
        db,
        current_user.id,
        deposit_data.amount,
        deposit_data.payment_method,
        wallet_address=deposit_data.wallet_address,
    )


@router.post("/withdrawal", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
def create_withdrawal(
    withdrawal_data: WithdrawalRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    return transaction_service.create_withdrawal_request(
        db,
        current_user.id,
        withdrawal_data.amount,
        withdrawal_data.payment_method,
        wallet_address=withdrawal_data.wallet_address,
        bank_details=withdrawal_data.bank_details,
        notifier=notifier,
    )


@router.get("", response_model=TransactionPage)
def get_transactions(
    type_filter: Optional[TransactionType] = Query(default=None, alias="type"),
    status_filter: Optional[TransactionStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return transaction_service.list_transactions(
        db, current_user.id, type=type_filter, status=status_filter, page=page, limit=limit,
    )


@router.get("/summary", response_model=TransactionSummary)
def get_summary(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return transaction_service.get_transaction_summary(db, current_user.id)


@router.delete("/{transaction_id}", response_model=TransactionResponse)
def cancel_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    return cancel_pending_transaction(db, transaction_id, current_user.id, notifier=notifier)

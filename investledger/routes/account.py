# investledger/routes/account.py
from fastapi import APIRouter, Depends

from investledger.models.user import User
from investledger.routes.deps import get_current_user
from investledger.schemas.user import AccountResponse

router = APIRouter()


@router.get("", response_model=AccountResponse)
def get_account(current_user: User = Depends(get_current_user)):
    return current_user

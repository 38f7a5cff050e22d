# investledger/routes/packages.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from investledger.routes.deps import get_db
from investledger.schemas.package import PackageResponse
from investledger.services.packages import list_active_packages

router = APIRouter()


@router.get("", response_model=List[PackageResponse])
def get_packages(db: Session = Depends(get_db)):
    return list_active_packages(db)

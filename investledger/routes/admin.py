# investledger/routes/admin.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from investledger.core.config import app_config
from investledger.routes.deps import get_admin_actor, get_db, get_notifier, get_scheduler
from investledger.schemas.admin import (
    AuditLogResponse,
    MaturityRunResponse,
    SettingUpdate,
    StatusUpdateRequest,
)
from investledger.schemas.package import PackageCreate, PackageResponse
from investledger.schemas.transaction import TransactionResponse
from investledger.services.audit import Actor, list_audit_logs, write_audit
from investledger.services.ledger import atomic
from investledger.services.packages import create_package, set_package_active
from investledger.services.status_transitions import transition_transaction_status

router = APIRouter()


@router.put("/transactions/{transaction_id}/status", response_model=TransactionResponse)
def update_transaction_status(
    transaction_id: str,
    update: StatusUpdateRequest,
    actor: Actor = Depends(get_admin_actor),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    return transition_transaction_status(
        db,
        transaction_id,
        update.status,
        actor,
        notes=update.notes,
        tx_hash=update.transaction_hash,
        notifier=notifier,
    )


@router.post("/maturity/run", response_model=MaturityRunResponse)
def run_maturity_batch(
    actor: Actor = Depends(get_admin_actor),
    scheduler=Depends(get_scheduler),
):
    result = scheduler.trigger_now()
    if result is None:
        return MaturityRunResponse(processed_count=0, total_payout=0, skipped=True)
    return MaturityRunResponse(
        processed_count=result.processed_count,
        total_payout=result.total_payout,
        failed_ids=result.failed_ids,
    )


@router.post("/packages", response_model=PackageResponse, status_code=status.HTTP_201_CREATED)
def add_package(
    package_data: PackageCreate,
    actor: Actor = Depends(get_admin_actor),
    db: Session = Depends(get_db),
):
    return create_package(db, actor, **package_data.model_dump())


@router.put("/packages/{package_id}/active", response_model=PackageResponse)
def toggle_package(
    package_id: str,
    is_active: bool = Query(...),
    actor: Actor = Depends(get_admin_actor),
    db: Session = Depends(get_db),
):
    return set_package_active(db, actor, package_id, is_active)


@router.put("/settings/{key}")
def update_setting(
    key: str,
    update: SettingUpdate,
    actor: Actor = Depends(get_admin_actor),
    db: Session = Depends(get_db),
):
    with atomic(db, f"update setting {key}"):
        old_value = app_config.get(db, key)
        app_config.set(db, key, update.value)
        write_audit(
            db, actor, "setting_update", "system_setting", key,
            old_values={"key": key, "value": old_value},
            new_values={"key": key, "value": update.value},
        )
    return {"key": key, "value": update.value}


@router.get("/audit-logs", response_model=List[AuditLogResponse])
def get_audit_logs(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=500),
    actor: Actor = Depends(get_admin_actor),
    db: Session = Depends(get_db),
):
    return list_audit_logs(db, entity_type=entity_type, entity_id=entity_id, action=action, limit=limit)

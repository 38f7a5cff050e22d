# investledger/services/audit.py
import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from investledger.models.audit import AuditLog


@dataclass(frozen=True)
class Actor:
    kind: str
    id: Optional[str] = None

    @classmethod
    def system(cls) -> "Actor":
        return cls("system")

    @classmethod
    def admin(cls, admin_id: str) -> "Actor":
        return cls("admin", admin_id)

    @classmethod
    def user(cls, user_id: str) -> "Actor":
        return cls("user", user_id)

    @classmethod
    def webhook(cls, source: str) -> "Actor":
        return cls("webhook", source)

    def __str__(self) -> str:
        return f"{self.kind}:{self.id}" if self.id else self.kind


def _jsonable(values: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if values is None:
        return None
    result = {}
    for key, value in values.items():
        if isinstance(value, enum.Enum):
            result[key] = value.value
        elif value is None or isinstance(value, (bool, int, str)):
            result[key] = value
        else:
            result[key] = str(value)
    return result


def write_audit(
    db: Session,
    actor: Actor,
    action: str,
    entity_type: str,
    entity_id: Optional[str],
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Append an audit row inside the caller's unit of work."""
    entry = AuditLog(
        actor_type=actor.kind,
        actor_id=actor.id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_values=_jsonable(old_values),
        new_values=_jsonable(new_values),
    )
    db.add(entry)
    return entry


def list_audit_logs(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100,
) -> List[AuditLog]:
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    if action:
        query = query.filter(AuditLog.action == action)
    return query.order_by(AuditLog.created_at.desc()).limit(limit).all()

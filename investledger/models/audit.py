# investledger/models/audit.py
import uuid

from sqlalchemy import Column, String, DateTime, JSON, Index

from investledger.core.clock import utcnow
from investledger.core.database import Base


class AuditLog(Base):
    """Append-only audit trail. Rows are never updated or deleted."""

    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    actor_type = Column(String(20), nullable=False)  # admin, system, user, webhook
    actor_id = Column(String(100), nullable=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36), nullable=True)
    old_values = Column(JSON)
    new_values = Column(JSON)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)


Index("ix_audit_logs_entity", AuditLog.entity_type, AuditLog.entity_id)

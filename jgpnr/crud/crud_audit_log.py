# jgpnr/crud/crud_audit_log.py
from sqlalchemy.orm import Session

from jgpnr.models.audit_log import AuditLog
from jgpnr.schemas.payment import AuditLogCreate


class CRUDAuditLog:
    """Append-only: entries are never updated or deleted."""

    def create(self, db: Session, *, obj_in: AuditLogCreate) -> AuditLog:
        entry = AuditLog(**obj_in.model_dump())
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry


audit_log_crud = CRUDAuditLog()

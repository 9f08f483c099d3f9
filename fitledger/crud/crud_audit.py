from sqlalchemy.orm import Session
from typing import Optional, List, Any

from fitledger.models.audit_log import AuditLog

def create_audit_log(
    db: Session,
    *,
    action: str,
    entity_type: str,
    entity_id: int,
    user_id: Optional[int] = None,
    old_value: Optional[Any] = None,
    new_value: Optional[Any] = None,
    commit: bool = True,
) -> AuditLog:
    db_obj = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        old_value=old_value,
        new_value=new_value,
    )
    db.add(db_obj)
    if commit:
        db.commit()
        db.refresh(db_obj)
    else:
        db.flush()
    return db_obj

def get_audit_logs(db: Session, *, entity_type: str, entity_id: int) -> List[AuditLog]:
    return (
        db.query(AuditLog)
        .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
        .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
        .all()
    )

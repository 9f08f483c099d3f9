from sqlalchemy.orm import Session
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from fitledger.models.training_session import TrainingSession

def get_session(db: Session, session_id: int) -> Optional[TrainingSession]:
    return db.query(TrainingSession).filter(TrainingSession.id == session_id).first()

def create_session(
    db: Session,
    *,
    trainer_id: int,
    client_id: int,
    session_date: datetime,
    session_value: Decimal,
    package_id: Optional[int] = None,
    location_id: Optional[int] = None,
    notes: Optional[str] = None,
    commit: bool = True,
) -> TrainingSession:
    """
    Insert a session row. Does not check the package balance: callers that
    log sessions against a package go through package_balance.log_session.
    """
    db_obj = TrainingSession(
        trainer_id=trainer_id,
        client_id=client_id,
        package_id=package_id,
        location_id=location_id,
        session_date=session_date,
        session_value=session_value,
        notes=notes,
        validated=False,
        cancelled=False,
    )
    db.add(db_obj)
    if commit:
        db.commit()
        db.refresh(db_obj)
    else:
        db.flush()
    return db_obj

def count_used_sessions(db: Session, *, package_id: int) -> int:
    """
    Count the non-cancelled sessions logged against a package.
    """
    return (
        db.query(TrainingSession)
        .filter(TrainingSession.package_id == package_id, TrainingSession.cancelled == False)
        .count()
    )

def get_sessions_for_trainer(
    db: Session,
    *,
    trainer_id: int,
    period_start: datetime,
    period_end: datetime,
    include_cancelled: bool = False,
    validated_only: bool = False,
    location_id: Optional[int] = None,
) -> List[TrainingSession]:
    """
    Get a trainer's sessions in [period_start, period_end], ordered by
    session date then creation order, which is the order commission tiers are assigned in.
    """
    query = db.query(TrainingSession).filter(
        TrainingSession.trainer_id == trainer_id,
        TrainingSession.session_date >= period_start,
        TrainingSession.session_date <= period_end,
    )
    if not include_cancelled:
        query = query.filter(TrainingSession.cancelled == False)
    if validated_only:
        query = query.filter(TrainingSession.validated == True)
    if location_id is not None:
        query = query.filter(TrainingSession.location_id == location_id)
    return query.order_by(
        TrainingSession.session_date.asc(),
        TrainingSession.created_at.asc(),
        TrainingSession.id.asc(),
    ).all()

def count_validated_sessions_for_trainer(
    db: Session, *, trainer_id: int, period_start: datetime, period_end: datetime
) -> int:
    return (
        db.query(TrainingSession)
        .filter(
            TrainingSession.trainer_id == trainer_id,
            TrainingSession.session_date >= period_start,
            TrainingSession.session_date <= period_end,
            TrainingSession.validated == True,
            TrainingSession.cancelled == False,
        )
        .count()
    )

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload
from typing import Optional, List
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from fitledger.core.package_expiry import calculate_expiry_date
from fitledger.models.client import Client
from fitledger.models.package import Package, Payment
from fitledger.schemas.package import PackageCreate, PaymentCreate

CENT = Decimal("0.01")

def create_package(db: Session, *, obj_in: PackageCreate) -> Package:
    """
    Create a package for a client. A package starts with no payments, so no
    sessions are unlocked until the first payment is recorded.
    """
    session_value = obj_in.session_value
    if session_value is None:
        session_value = (obj_in.total_value / obj_in.total_sessions).quantize(CENT, rounding=ROUND_HALF_UP)

    start_date = obj_in.start_date or datetime.utcnow()
    expires_at = None
    if obj_in.duration_value is not None:
        expires_at = calculate_expiry_date(start_date, obj_in.duration_value, obj_in.duration_unit)

    db_obj = Package(
        client_id=obj_in.client_id,
        name=obj_in.name,
        total_sessions=obj_in.total_sessions,
        total_value=obj_in.total_value,
        session_value=session_value,
        start_date=start_date,
        expires_at=expires_at,
        is_active=True,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def get_package(db: Session, package_id: int) -> Optional[Package]:
    """
    Get a single package by ID with payments and sessions eagerly loaded.
    """
    return (
        db.query(Package)
        .options(selectinload(Package.payments), selectinload(Package.sessions))
        .filter(Package.id == package_id)
        .first()
    )

def get_package_for_update(db: Session, package_id: int) -> Optional[Package]:
    """
    Get a package and hold a row lock on it until the current transaction ends.
    Every balance check-then-write goes through this so concurrent writers
    against one package are serialized. SQLite ignores FOR UPDATE; engines
    set up with `enable_sqlite_write_locks` take the database write lock
    when the transaction begins instead.
    """
    return (
        db.query(Package)
        .filter(Package.id == package_id)
        .with_for_update()
        .populate_existing()
        .first()
    )

def get_packages_by_client(
    db: Session, *, client_id: int, is_active: Optional[bool] = None
) -> List[Package]:
    query = db.query(Package).filter(Package.client_id == client_id)
    if is_active is not None:
        query = query.filter(Package.is_active == is_active)
    return query.order_by(Package.created_at.desc(), Package.id.desc()).all()

def get_packages_sold_by_trainer(
    db: Session,
    *,
    trainer_id: int,
    period_start: datetime,
    period_end: datetime,
    location_id: Optional[int] = None,
) -> List[Package]:
    """
    Active packages created in [period_start, period_end] for clients whose
    primary trainer is `trainer_id`. These count as that trainer's sales.
    """
    query = (
        db.query(Package)
        .join(Client, Package.client_id == Client.id)
        .filter(
            Client.primary_trainer_id == trainer_id,
            Package.is_active == True,
            Package.created_at >= period_start,
            Package.created_at <= period_end,
        )
    )
    if location_id is not None:
        query = query.filter(Client.location_id == location_id)
    return query.order_by(Package.created_at.asc(), Package.id.asc()).all()

def get_paid_amount(db: Session, *, package_id: int) -> Decimal:
    """
    Sum of payments on a package, read from the database rather than any loaded collection.
    """
    total = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(Payment.package_id == package_id).scalar()
    return Decimal(str(total)).quantize(CENT)

def get_payment(db: Session, payment_id: int) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.id == payment_id).first()

def get_payments_by_package(db: Session, *, package_id: int) -> List[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.package_id == package_id)
        .order_by(Payment.payment_date.asc(), Payment.id.asc())
        .all()
    )

def create_payment(
    db: Session, *, package_id: int, obj_in: PaymentCreate, created_by_id: Optional[int] = None, commit: bool = True
) -> Payment:
    data = obj_in.model_dump(exclude_none=True)
    db_obj = Payment(package_id=package_id, created_by_id=created_by_id, **data)
    db.add(db_obj)
    if commit:
        db.commit()
        db.refresh(db_obj)
    else:
        db.flush()
    return db_obj

def delete_payment(db: Session, *, db_obj: Payment, commit: bool = True) -> Payment:
    db.delete(db_obj)
    if commit:
        db.commit()
    else:
        db.flush()
    return db_obj

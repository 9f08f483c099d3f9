import logging
from sqlalchemy.orm import Session
from typing import Optional, List

from fitledger.models.client import Client
from fitledger.models.package import Package
from fitledger.schemas.client import ClientCreate

logger = logging.getLogger(__name__)

def create_client(db: Session, *, obj_in: ClientCreate) -> Client:
    db_obj = Client(**obj_in.model_dump())
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def get_client(db: Session, client_id: int) -> Optional[Client]:
    return db.query(Client).filter(Client.id == client_id).first()

def get_clients_by_organization(
    db: Session, *, organization_id: int, is_active: Optional[bool] = True, skip: int = 0, limit: int = 100
) -> List[Client]:
    query = db.query(Client).filter(Client.organization_id == organization_id)
    if is_active is not None:
        query = query.filter(Client.is_active == is_active)
    return query.order_by(Client.name).offset(skip).limit(limit).all()

def deactivate_client(db: Session, *, client_id: int) -> Optional[Client]:
    """
    Logically delete a client and archive all of their packages.
    Sessions are kept for commission history. Returns None if the client does not exist.
    """
    db_obj = get_client(db, client_id)
    if not db_obj:
        return None
    db_obj.is_active = False
    archived = (
        db.query(Package)
        .filter(Package.client_id == client_id, Package.is_active == True)
        .update({Package.is_active: False}, synchronize_session="fetch")
    )
    db.commit()
    db.refresh(db_obj)
    logger.info(f"Deactivated client ID: {client_id}, archived {archived} package(s)")
    return db_obj

def reactivate_client(db: Session, *, client_id: int, reactivate_packages: bool = True) -> Optional[Client]:
    """
    Reactivate a client, optionally bringing their archived packages back with them.
    """
    db_obj = get_client(db, client_id)
    if not db_obj:
        return None
    db_obj.is_active = True
    restored = 0
    if reactivate_packages:
        restored = (
            db.query(Package)
            .filter(Package.client_id == client_id, Package.is_active == False)
            .update({Package.is_active: True}, synchronize_session="fetch")
        )
    db.commit()
    db.refresh(db_obj)
    logger.info(f"Reactivated client ID: {client_id}, restored {restored} package(s)")
    return db_obj

def delete_client(db: Session, *, client_id: int) -> Optional[Client]:
    """
    Permanently delete a client together with their packages, payments and sessions.
    USE WITH CAUTION.
    """
    db_obj = get_client(db, client_id)
    if db_obj:
        db.delete(db_obj)
        db.commit()
        return db_obj
    return None

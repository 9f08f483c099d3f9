from sqlalchemy.orm import Session
from typing import Optional, List

from fitledger.models.organization import Organization
from fitledger.models.location import Location
from fitledger.models.commission import LegacyCommissionTier
from fitledger.schemas.organization import OrganizationCreate, LocationCreate, LegacyCommissionTierCreate

def create_organization(db: Session, *, obj_in: OrganizationCreate) -> Organization:
    db_obj = Organization(**obj_in.model_dump())
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def get_organization(db: Session, organization_id: int) -> Optional[Organization]:
    return db.query(Organization).filter(Organization.id == organization_id).first()

def get_organizations(db: Session, *, skip: int = 0, limit: int = 1000) -> List[Organization]:
    return db.query(Organization).order_by(Organization.id).offset(skip).limit(limit).all()

def create_location(db: Session, *, obj_in: LocationCreate) -> Location:
    db_obj = Location(**obj_in.model_dump())
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def create_legacy_commission_tier(db: Session, *, obj_in: LegacyCommissionTierCreate) -> LegacyCommissionTier:
    """
    Insert a v1 tier row. Only seed data and tests create these; the
    application reads them once, during the v2 migration.
    """
    db_obj = LegacyCommissionTier(**obj_in.model_dump())
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def get_legacy_commission_tiers(db: Session, *, organization_id: int) -> List[LegacyCommissionTier]:
    return (
        db.query(LegacyCommissionTier)
        .filter(LegacyCommissionTier.organization_id == organization_id)
        .order_by(LegacyCommissionTier.min_sessions.asc(), LegacyCommissionTier.id.asc())
        .all()
    )

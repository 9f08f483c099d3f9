from sqlalchemy.orm import Session, selectinload
from typing import Optional, List

from fitledger.core.commission_tiers import validate_tiers
from fitledger.models.commission import CommissionProfile, CommissionTier, CommissionCalculation
from fitledger.models.user import User
from fitledger.schemas.commission import CommissionProfileCreate, CommissionTierCreate, CommissionReport

def _build_tier(tier_in: CommissionTierCreate) -> CommissionTier:
    data = tier_in.model_dump()
    if not data.get("name"):
        data["name"] = f"Tier {tier_in.tier_level}"
    return CommissionTier(**data)

def create_commission_profile(
    db: Session, *, obj_in: CommissionProfileCreate, commit: bool = True
) -> CommissionProfile:
    """
    Create a profile with its tiers. The tier set has already been checked by
    CommissionProfileCreate, so every saved profile covers a count of 0.
    """
    data = obj_in.model_dump(exclude={"tiers"})
    db_obj = CommissionProfile(**data)
    db_obj.tiers = [_build_tier(t) for t in obj_in.tiers]
    db.add(db_obj)
    if commit:
        db.commit()
        db.refresh(db_obj)
    else:
        db.flush()
    return db_obj

def replace_profile_tiers(
    db: Session, *, db_obj: CommissionProfile, tiers_in: List[CommissionTierCreate]
) -> CommissionProfile:
    """
    Swap a profile's tier set. Raises CommissionConfigurationError (nothing is
    written) when the new tiers would leave session counts uncovered.
    """
    validate_tiers(tiers_in, db_obj.calculation_method)
    db_obj.tiers.clear()
    db.flush()  # old tiers must be gone before the unique (profile, level) rows come back
    db_obj.tiers.extend(_build_tier(t) for t in tiers_in)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def get_commission_profile(db: Session, profile_id: int) -> Optional[CommissionProfile]:
    return (
        db.query(CommissionProfile)
        .options(selectinload(CommissionProfile.tiers))
        .filter(CommissionProfile.id == profile_id)
        .first()
    )

def get_profiles_by_organization(
    db: Session, *, organization_id: int, active_only: bool = False
) -> List[CommissionProfile]:
    query = (
        db.query(CommissionProfile)
        .options(selectinload(CommissionProfile.tiers))
        .filter(CommissionProfile.organization_id == organization_id)
    )
    if active_only:
        query = query.filter(CommissionProfile.is_active == True)
    return query.order_by(CommissionProfile.is_default.desc(), CommissionProfile.name).all()

def count_profiles_for_organization(db: Session, *, organization_id: int) -> int:
    return db.query(CommissionProfile).filter(CommissionProfile.organization_id == organization_id).count()

def delete_commission_profile(db: Session, *, profile_id: int) -> Optional[CommissionProfile]:
    """
    Delete a profile and its tiers. Trainers who used it are left unassigned
    and report as unconfigured until given a new profile.
    """
    db_obj = db.query(CommissionProfile).filter(CommissionProfile.id == profile_id).first()
    if not db_obj:
        return None
    db.query(User).filter(User.commission_profile_id == profile_id).update(
        {User.commission_profile_id: None}, synchronize_session="fetch"
    )
    db.delete(db_obj)
    db.commit()
    return db_obj

def create_commission_calculation(
    db: Session, *, report: CommissionReport, organization_id: int
) -> CommissionCalculation:
    """
    Persist a commission report as a point-in-time calculation record.
    """
    db_obj = CommissionCalculation(
        organization_id=organization_id,
        user_id=report.trainer_id,
        profile_id=report.profile_id,
        period_start=report.period_start,
        period_end=report.period_end,
        status=report.status.value,
        calculation_method=report.calculation_method,
        session_count=report.session_count,
        validated_count=report.validated_count,
        packages_sold=report.packages_sold,
        session_commission=report.session_commission,
        sales_commission=report.sales_commission,
        tier_bonus=report.tier_bonus,
        total_commission=report.total_commission,
        tier_reached=report.tier_reached,
        snapshot=report.model_dump(mode="json", include={"message", "trigger_type", "breakdown", "sales"}),
        calculated_at=report.calculated_at,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def get_calculation_history(db: Session, *, user_id: int, limit: int = 12) -> List[CommissionCalculation]:
    """
    Get a trainer's saved calculations, most recent period first.
    """
    return (
        db.query(CommissionCalculation)
        .filter(CommissionCalculation.user_id == user_id)
        .order_by(CommissionCalculation.period_end.desc(), CommissionCalculation.id.desc())
        .limit(limit)
        .all()
    )

from sqlalchemy.orm import Session, joinedload, selectinload
from typing import Optional, List

from fitledger.models.user import User
from fitledger.models.commission import CommissionProfile
from fitledger.models.enums import Role
from fitledger.schemas.user import UserCreate, UserUpdate

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()

def get_user_with_profile(db: Session, user_id: int) -> Optional[User]:
    """
    Get a user with their commission profile and its tiers eagerly loaded.
    """
    return (
        db.query(User)
        .options(joinedload(User.commission_profile).selectinload(CommissionProfile.tiers))
        .filter(User.id == user_id)
        .first()
    )

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()

def create_user(db: Session, *, obj_in: UserCreate) -> User:
    db_obj = User(**obj_in.model_dump())
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def update_user(db: Session, *, db_obj: User, obj_in: UserUpdate) -> User:
    update_data = obj_in.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def get_trainers_by_organization(
    db: Session, *, organization_id: int, active_only: bool = True
) -> List[User]:
    """
    Get the trainers of an organization, ordered by id, with commission profiles and tiers loaded.
    """
    query = (
        db.query(User)
        .options(selectinload(User.commission_profile).selectinload(CommissionProfile.tiers))
        .filter(User.organization_id == organization_id, User.role == Role.TRAINER)
    )
    if active_only:
        query = query.filter(User.is_active == True)
    return query.order_by(User.id).all()

def get_trainers_without_profile(db: Session, *, organization_id: int) -> List[User]:
    return (
        db.query(User)
        .filter(
            User.organization_id == organization_id,
            User.role == Role.TRAINER,
            User.commission_profile_id.is_(None),
        )
        .order_by(User.id)
        .all()
    )

def assign_commission_profile(
    db: Session, *, db_obj: User, profile_id: Optional[int], commit: bool = True
) -> User:
    db_obj.commission_profile_id = profile_id
    db.add(db_obj)
    if commit:
        db.commit()
        db.refresh(db_obj)
    else:
        db.flush()
    return db_obj

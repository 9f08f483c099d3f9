import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
import os

# Add project root to sys.path to allow imports from fitledger
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import uuid
from datetime import datetime
from decimal import Decimal

from fitledger.db.base_class import Base
from fitledger.db.session import enable_sqlite_write_locks
import fitledger.models  # noqa: F401  registers every table on Base.metadata
from fitledger.crud import (
    crud_client,
    crud_commission,
    crud_organization,
    crud_package,
    crud_training_session,
    crud_user,
)
from fitledger.models.enums import CalculationMethod, Role, TriggerType
from fitledger.models.user import User as UserModel
from fitledger.schemas.client import ClientCreate
from fitledger.schemas.commission import CommissionProfileCreate, CommissionTierCreate
from fitledger.schemas.organization import LocationCreate, OrganizationCreate
from fitledger.schemas.package import PackageCreate, PaymentCreate
from fitledger.schemas.user import UserCreate

# Use a separate file-based SQLite database for testing
TEST_SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = enable_sqlite_write_locks(create_engine(
    TEST_SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
))
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session")
def test_engine():
    Base.metadata.create_all(bind=engine)
    yield engine


@pytest.fixture(scope="function")
def db_session(test_engine):
    """
    Provides a database session for each test function.
    Tables are dropped and recreated for each test to keep tests isolated.
    """
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


# Helpers, importable from tests as `from tests.conftest import ...`

def create_trainer(db: Session, organization_id: int, role: Role = Role.TRAINER, **kwargs) -> UserModel:
    return crud_user.create_user(db, obj_in=UserCreate(
        email=f"{role.value.lower()}_{uuid.uuid4().hex[:6]}@example.com",
        name=kwargs.pop("name", f"{role.value.title()} {uuid.uuid4().hex[:4]}"),
        role=role,
        organization_id=organization_id,
        **kwargs,
    ))


def create_percentage_profile(db: Session, organization_id: int, tiers, **kwargs):
    """tiers: list of (threshold, percent) pairs, in tier order."""
    return crud_commission.create_commission_profile(db, obj_in=CommissionProfileCreate(
        organization_id=organization_id,
        name=kwargs.pop("name", f"Profile {uuid.uuid4().hex[:6]}"),
        calculation_method=CalculationMethod.PERCENTAGE,
        trigger_type=kwargs.pop("trigger_type", TriggerType.SESSION_COUNT),
        tiers=[
            CommissionTierCreate(tier_level=i + 1, session_threshold=threshold, session_commission_percent=Decimal(percent))
            for i, (threshold, percent) in enumerate(tiers)
        ],
        **kwargs,
    ))


def add_sessions(
    db: Session, trainer_id: int, client_id: int, count: int, session_date: datetime,
    session_value=Decimal("100.00"), validated: bool = True, package_id=None,
):
    """Insert sessions directly, bypassing the package balance check."""
    sessions = []
    for _ in range(count):
        db_obj = crud_training_session.create_session(
            db,
            trainer_id=trainer_id,
            client_id=client_id,
            package_id=package_id,
            session_date=session_date,
            session_value=Decimal(session_value),
        )
        if validated:
            db_obj.validated = True
            db_obj.validated_at = session_date
            db.commit()
        sessions.append(db_obj)
    return sessions


@pytest.fixture(scope="function")
def test_organization(db_session: Session):
    return crud_organization.create_organization(db_session, obj_in=OrganizationCreate(
        name=f"Test Gym {uuid.uuid4().hex[:6]}"
    ))


@pytest.fixture(scope="function")
def test_location(db_session: Session, test_organization):
    return crud_organization.create_location(db_session, obj_in=LocationCreate(
        organization_id=test_organization.id, name="Downtown"
    ))


@pytest.fixture(scope="function")
def test_trainer(db_session: Session, test_organization) -> UserModel:
    return create_trainer(db_session, test_organization.id)


@pytest.fixture(scope="function")
def test_admin(db_session: Session, test_organization) -> UserModel:
    return create_trainer(db_session, test_organization.id, role=Role.ADMIN)


@pytest.fixture(scope="function")
def test_client(db_session: Session, test_organization, test_location, test_trainer):
    return crud_client.create_client(db_session, obj_in=ClientCreate(
        organization_id=test_organization.id,
        name=f"Client {uuid.uuid4().hex[:6]}",
        email=f"client_{uuid.uuid4().hex[:6]}@example.com",
        location_id=test_location.id,
        primary_trainer_id=test_trainer.id,
    ))


@pytest.fixture(scope="function")
def package_factory(db_session: Session, test_client):
    """Create packages for the test client, optionally with an initial payment."""
    def _create(total_sessions=10, total_value=Decimal("1000.00"), paid=None, **kwargs):
        package = crud_package.create_package(db_session, obj_in=PackageCreate(
            name=kwargs.pop("name", f"{total_sessions} sessions"),
            client_id=kwargs.pop("client_id", test_client.id),
            total_sessions=total_sessions,
            total_value=Decimal(total_value),
            **kwargs,
        ))
        if paid is not None:
            crud_package.create_payment(db_session, package_id=package.id, obj_in=PaymentCreate(amount=Decimal(paid)))
        return package
    return _create

import pytest
import threading
from sqlalchemy.orm import Session
from types import SimpleNamespace
from datetime import datetime
from decimal import Decimal

from fitledger.core import package_balance
from fitledger.core.package_balance import (
    can_delete_payment,
    can_log_session,
    compute_unlocked_sessions,
    recompute_summary,
    sessions_unlocked_by_payment,
)
from fitledger.crud import crud_client, crud_package, crud_training_session
from fitledger.models.enums import DurationUnit, PackageStatus, Role
from fitledger.schemas.client import ClientCreate
from fitledger.schemas.package import PaymentCreate
from fitledger.schemas.training_session import TrainingSessionCreate
from tests.conftest import TestingSessionLocal, add_sessions, create_trainer

pytestmark = pytest.mark.core

SESSION_DATE = datetime(2026, 3, 10, 9, 0)


def _package(total_value="1000.00", total_sessions=10, payments=(), used=0, cancelled=0, **kwargs):
    sessions = [SimpleNamespace(cancelled=False) for _ in range(used)]
    sessions += [SimpleNamespace(cancelled=True) for _ in range(cancelled)]
    return SimpleNamespace(
        id=kwargs.get("id", 1),
        total_value=Decimal(total_value),
        total_sessions=total_sessions,
        payments=[SimpleNamespace(amount=Decimal(a)) for a in payments],
        sessions=sessions,
        is_active=kwargs.get("is_active", True),
        expires_at=kwargs.get("expires_at"),
    )


# Pure unlock rules

@pytest.mark.parametrize("paid, expected", [
    ("0", 0),
    ("99.99", 0),
    ("100.00", 1),
    ("250.00", 2),
    ("500.00", 5),
    ("999.99", 9),
    ("1000.00", 10),
    ("1500.00", 10),
    ("-50.00", 0),
])
def test_compute_unlocked_sessions_boundaries(paid, expected):
    assert compute_unlocked_sessions(Decimal(paid), Decimal("1000.00"), 10) == expected

def test_compute_unlocked_sessions_floors_uneven_splits():
    # 333.33 * 3 / 1000 is just under one session
    assert compute_unlocked_sessions(Decimal("333.33"), Decimal("1000.00"), 3) == 0
    assert compute_unlocked_sessions(Decimal("333.34"), Decimal("1000.00"), 3) == 1
    assert compute_unlocked_sessions(Decimal("666.67"), Decimal("1000.00"), 3) == 2

def test_compute_unlocked_sessions_comped_package():
    assert compute_unlocked_sessions(Decimal("0"), Decimal("0"), 5) == 0
    assert compute_unlocked_sessions(Decimal("0.01"), Decimal("0"), 5) == 5

def test_compute_unlocked_sessions_without_sessions():
    assert compute_unlocked_sessions(Decimal("100"), Decimal("100"), 0) == 0

def test_compute_unlocked_sessions_is_monotonic_and_bounded():
    previous = 0
    paid = Decimal("0")
    while paid <= Decimal("1200"):
        unlocked = compute_unlocked_sessions(paid, Decimal("1000.00"), 12)
        assert 0 <= unlocked <= 12
        assert unlocked >= previous
        previous = unlocked
        paid += Decimal("7.50")
    assert previous == 12

def test_compute_unlocked_sessions_accepts_plain_numbers():
    assert compute_unlocked_sessions(300, "1000", 10) == 3
    assert compute_unlocked_sessions(0.1, 1, 10) == 1

def test_sessions_unlocked_by_payment():
    assert sessions_unlocked_by_payment(Decimal("0"), Decimal("250"), Decimal("1000"), 10) == 2
    assert sessions_unlocked_by_payment(Decimal("250"), Decimal("50"), Decimal("1000"), 10) == 1
    assert sessions_unlocked_by_payment(Decimal("900"), Decimal("500"), Decimal("1000"), 10) == 1


# Summary and guards on loaded packages

def test_recompute_summary_partial_payment():
    package = _package(payments=["150.00", "100.00"], used=1, cancelled=3)
    summary = recompute_summary(package)
    assert summary.paid_amount == Decimal("250.00")
    assert summary.unlocked_sessions == 2
    assert summary.locked_sessions == 8
    assert summary.used_sessions == 1  # cancelled sessions don't count
    assert summary.remaining_sessions == 1
    assert summary.remaining_balance == Decimal("750.00")
    assert summary.payment_progress == Decimal("25.00")
    assert summary.is_fully_paid is False

def test_recompute_summary_never_reports_negative_remaining_sessions():
    package = _package(payments=["100.00"], used=4)
    summary = recompute_summary(package)
    assert summary.unlocked_sessions == 1
    assert summary.remaining_sessions == 0

def test_recompute_summary_fully_paid():
    summary = recompute_summary(_package(payments=["1000.00"]))
    assert summary.is_fully_paid is True
    assert summary.remaining_balance == Decimal("0.00")
    assert summary.payment_progress == Decimal("100.00")

def test_can_delete_payment_refuses_when_used_sessions_would_be_uncovered():
    package = _package(payments=["500.00"], used=6)
    guard = can_delete_payment(package, package.payments[0])
    assert guard.allowed is False
    assert guard.used_sessions == 6
    assert guard.unlocked_sessions == 0
    assert "6 sessions have been used" in guard.reason
    assert "only leave 0 sessions unlocked" in guard.reason

def test_can_delete_payment_allows_when_credits_remain():
    package = _package(payments=["500.00", "500.00"], used=5)
    guard = can_delete_payment(package, package.payments[0])
    assert guard.allowed is True
    assert guard.reason is None
    assert guard.unlocked_sessions == 5

def test_can_delete_payment_ignores_cancelled_sessions():
    package = _package(payments=["500.00"], used=0, cancelled=5)
    assert can_delete_payment(package, package.payments[0]).allowed is True

def test_can_delete_payment_does_not_touch_package():
    package = _package(payments=["500.00"], used=6)
    can_delete_payment(package, package.payments[0])
    assert len(package.payments) == 1
    assert recompute_summary(package).paid_amount == Decimal("500.00")

def test_can_log_session_reasons():
    assert can_log_session(_package(payments=["1000.00"], is_active=False)).reason == "Package is not active"

    expired = _package(payments=["1000.00"], expires_at=datetime(2026, 1, 31))
    assert can_log_session(expired, at=datetime(2026, 2, 1)).reason == "Package expired on 2026-01-31"
    assert can_log_session(expired, at=datetime(2026, 1, 30)).allowed is True

    assert can_log_session(_package(payments=["1000.00"], used=10)).reason == "All sessions have been used"

    guard = can_log_session(_package(payments=["200.00"], used=2))
    assert guard.allowed is False
    assert "2 of 10 sessions are unlocked" in guard.reason
    assert "Outstanding balance: $800.00" in guard.reason

    assert can_log_session(_package(payments=["200.00"], used=1)).allowed is True


# Transactional operations

def test_record_payment_returns_refreshed_summary(db_session: Session, package_factory, test_admin):
    package = package_factory()
    result = package_balance.record_payment(
        db_session, package.id, PaymentCreate(amount=Decimal("300.00")), acting_user=test_admin
    )
    assert result.success is True
    assert result.payment.amount == Decimal("300.00")
    assert result.summary.unlocked_sessions == 3
    assert result.summary.remaining_balance == Decimal("700.00")
    assert crud_package.get_payment(db_session, result.payment.id).created_by_id == test_admin.id

def test_record_payment_rejects_amount_over_remaining_balance(db_session: Session, package_factory):
    package = package_factory(paid="600.00")
    result = package_balance.record_payment(db_session, package.id, PaymentCreate(amount=Decimal("400.02")))
    assert result.success is False
    assert result.message == "Amount exceeds remaining balance of $400.00"
    assert crud_package.get_paid_amount(db_session, package_id=package.id) == Decimal("600.00")

def test_record_payment_allows_rounding_tolerance(db_session: Session, package_factory):
    package = package_factory(paid="600.00")
    result = package_balance.record_payment(db_session, package.id, PaymentCreate(amount=Decimal("400.01")))
    assert result.success is True
    assert result.summary.is_fully_paid is True
    assert result.summary.unlocked_sessions == 10

def test_record_payment_unknown_package(db_session: Session):
    result = package_balance.record_payment(db_session, 9999, PaymentCreate(amount=Decimal("10")))
    assert result.success is False
    assert result.message == "Package not found"

def test_record_payment_requires_capability(db_session: Session, package_factory, test_trainer):
    package = package_factory()
    result = package_balance.record_payment(
        db_session, package.id, PaymentCreate(amount=Decimal("100")), acting_user=test_trainer
    )
    assert result.success is False
    assert "not allowed to record payments" in result.message
    assert crud_package.get_payments_by_package(db_session, package_id=package.id) == []

def test_delete_payment_refused_when_sessions_used(db_session: Session, package_factory, test_client, test_trainer):
    package = package_factory(paid="500.00")
    add_sessions(db_session, test_trainer.id, test_client.id, 6, SESSION_DATE, validated=False, package_id=package.id)
    payment = crud_package.get_payments_by_package(db_session, package_id=package.id)[0]

    result = package_balance.delete_payment(db_session, package.id, payment.id)

    assert result.success is False
    assert "6 sessions have been used" in result.message
    assert "only leave 0 sessions unlocked" in result.message
    assert crud_package.get_payment(db_session, payment.id) is not None

def test_delete_payment_succeeds_after_sessions_cancelled(db_session: Session, package_factory, test_client, test_trainer):
    package = package_factory(paid="500.00")
    sessions = add_sessions(db_session, test_trainer.id, test_client.id, 2, SESSION_DATE, validated=False, package_id=package.id)
    payment = crud_package.get_payments_by_package(db_session, package_id=package.id)[0]
    assert package_balance.delete_payment(db_session, package.id, payment.id).success is False

    for s in sessions:
        assert package_balance.set_session_cancelled(db_session, s.id, True).success is True

    result = package_balance.delete_payment(db_session, package.id, payment.id)
    assert result.success is True
    assert result.summary.paid_amount == Decimal("0.00")
    assert result.summary.unlocked_sessions == 0
    assert crud_package.get_payment(db_session, payment.id) is None

def test_delete_payment_from_other_package(db_session: Session, package_factory):
    package_a = package_factory(paid="100.00")
    package_b = package_factory(paid="100.00")
    payment_b = crud_package.get_payments_by_package(db_session, package_id=package_b.id)[0]
    result = package_balance.delete_payment(db_session, package_a.id, payment_b.id)
    assert result.success is False
    assert result.message == "Payment not found for this package"

def test_delete_payment_admin_only(db_session: Session, package_factory, test_organization):
    package = package_factory(paid="100.00")
    payment = crud_package.get_payments_by_package(db_session, package_id=package.id)[0]
    manager = create_trainer(db_session, test_organization.id, role=Role.CLUB_MANAGER)
    result = package_balance.delete_payment(db_session, package.id, payment.id, acting_user=manager)
    assert result.success is False
    assert "not allowed to delete payments" in result.message

def test_log_session_consumes_unlocked_credits(db_session: Session, package_factory, test_client, test_trainer, test_location):
    package = package_factory(paid="200.00")
    session_in = TrainingSessionCreate(
        trainer_id=test_trainer.id, client_id=test_client.id, package_id=package.id, session_date=SESSION_DATE
    )

    first = package_balance.log_session(db_session, session_in)
    assert first.success is True
    assert first.session.session_value == Decimal("100.00")
    assert first.session.location_id == test_location.id
    assert package_balance.log_session(db_session, session_in).success is True

    third = package_balance.log_session(db_session, session_in)
    assert third.success is False
    assert third.message.startswith("Payment required.")
    assert crud_training_session.count_used_sessions(db_session, package_id=package.id) == 2

def test_log_session_explicit_value(db_session: Session, package_factory, test_client, test_trainer):
    package = package_factory(paid="1000.00")
    result = package_balance.log_session(db_session, TrainingSessionCreate(
        trainer_id=test_trainer.id, client_id=test_client.id, package_id=package.id,
        session_date=SESSION_DATE, session_value=Decimal("80.00"),
    ))
    assert result.session.session_value == Decimal("80.00")

def test_log_session_fully_used_package(db_session: Session, package_factory, test_client, test_trainer):
    package = package_factory(total_sessions=2, total_value="200.00", paid="200.00")
    session_in = TrainingSessionCreate(
        trainer_id=test_trainer.id, client_id=test_client.id, package_id=package.id, session_date=SESSION_DATE
    )
    package_balance.log_session(db_session, session_in)
    package_balance.log_session(db_session, session_in)
    result = package_balance.log_session(db_session, session_in)
    assert result.success is False
    assert result.message == "All sessions have been used"

def test_log_session_rejects_other_clients_package(db_session: Session, package_factory, test_organization, test_trainer):
    package = package_factory(paid="1000.00")
    other_client = crud_client.create_client(db_session, obj_in=ClientCreate(
        organization_id=test_organization.id, name="Someone Else"
    ))
    result = package_balance.log_session(db_session, TrainingSessionCreate(
        trainer_id=test_trainer.id, client_id=other_client.id, package_id=package.id, session_date=SESSION_DATE
    ))
    assert result.success is False
    assert result.message == "Package does not belong to this client"

def test_log_session_expired_package(db_session: Session, package_factory, test_client, test_trainer):
    package = package_factory(
        paid="1000.00", start_date=datetime(2026, 1, 31), duration_value=1, duration_unit=DurationUnit.MONTHS
    )
    assert package.expires_at == datetime(2026, 2, 28)
    result = package_balance.log_session(db_session, TrainingSessionCreate(
        trainer_id=test_trainer.id, client_id=test_client.id, package_id=package.id, session_date=SESSION_DATE
    ))
    assert result.success is False
    assert result.message == "Package expired on 2026-02-28"

def test_log_session_without_package_needs_value(db_session: Session, test_client, test_trainer):
    session_in = TrainingSessionCreate(trainer_id=test_trainer.id, client_id=test_client.id, session_date=SESSION_DATE)
    result = package_balance.log_session(db_session, session_in)
    assert result.success is False

    session_in.session_value = Decimal("60.00")
    result = package_balance.log_session(db_session, session_in)
    assert result.success is True
    assert result.session.package_id is None

def test_cancel_frees_credit_and_reinstatement_is_guarded(db_session: Session, package_factory, test_client, test_trainer):
    package = package_factory(paid="100.00")
    session_in = TrainingSessionCreate(
        trainer_id=test_trainer.id, client_id=test_client.id, package_id=package.id, session_date=SESSION_DATE
    )
    first = package_balance.log_session(db_session, session_in)
    assert package_balance.log_session(db_session, session_in).success is False

    cancelled = package_balance.set_session_cancelled(db_session, first.session.id, True)
    assert cancelled.success is True
    assert cancelled.session.cancelled_at is not None
    assert package_balance.get_package_summary(db_session, package.id).used_sessions == 0

    assert package_balance.log_session(db_session, session_in).success is True

    reinstated = package_balance.set_session_cancelled(db_session, first.session.id, False)
    assert reinstated.success is False
    assert reinstated.message.startswith("Cannot reinstate session. Payment required.")
    assert "1 of 10 sessions are unlocked and 1 have been used" in reinstated.message
    assert crud_training_session.get_session(db_session, first.session.id).cancelled is True

def test_cancelled_session_cannot_be_validated(db_session: Session, test_client, test_trainer):
    session = add_sessions(db_session, test_trainer.id, test_client.id, 1, SESSION_DATE, validated=False)[0]
    package_balance.set_session_cancelled(db_session, session.id, True)
    result = package_balance.set_session_validated(db_session, session.id, True)
    assert result.success is False
    assert result.message == "A cancelled session cannot be validated"

def test_validate_and_unvalidate_session(db_session: Session, test_client, test_trainer, test_admin):
    session = add_sessions(db_session, test_trainer.id, test_client.id, 1, SESSION_DATE, validated=False)[0]

    denied = package_balance.set_session_validated(db_session, session.id, True, acting_user=test_trainer)
    assert denied.success is False

    result = package_balance.set_session_validated(db_session, session.id, True, acting_user=test_admin)
    assert result.success is True
    assert result.session.validated is True
    assert result.session.validated_at is not None

    result = package_balance.set_session_validated(db_session, session.id, False)
    assert result.session.validated is False
    assert result.session.validated_at is None

def test_payment_list(db_session: Session, package_factory):
    package = package_factory(paid="100.00")
    package_balance.record_payment(db_session, package.id, PaymentCreate(amount=Decimal("150.00")))
    listing = package_balance.get_payment_list(db_session, package.id)
    assert [p.amount for p in listing.payments] == [Decimal("100.00"), Decimal("150.00")]
    assert listing.summary.unlocked_sessions == 2
    assert package_balance.get_payment_list(db_session, 9999) is None

def test_record_payment_rejects_archived_package(db_session: Session, package_factory):
    package = package_factory(paid="100.00")
    package.is_active = False
    db_session.commit()

    result = package_balance.record_payment(db_session, package.id, PaymentCreate(amount=Decimal("100.00")))

    assert result.success is False
    assert result.message == "Package is not active"
    assert crud_package.get_paid_amount(db_session, package_id=package.id) == Decimal("100.00")

def test_reinstating_on_archived_package_is_refused(db_session: Session, package_factory, test_client, test_trainer):
    package = package_factory(paid="1000.00")
    logged = package_balance.log_session(db_session, TrainingSessionCreate(
        trainer_id=test_trainer.id, client_id=test_client.id, package_id=package.id, session_date=SESSION_DATE
    ))
    package_balance.set_session_cancelled(db_session, logged.session.id, True)
    package.is_active = False
    db_session.commit()

    result = package_balance.set_session_cancelled(db_session, logged.session.id, False)

    assert result.success is False
    assert result.message == "Cannot reinstate session. Package is not active"
    assert crud_training_session.get_session(db_session, logged.session.id).cancelled is True

def test_get_package_state(db_session: Session, package_factory, test_client, test_trainer):
    package = package_factory(
        total_sessions=2, total_value="200.00", paid="200.00",
        start_date=datetime(2026, 3, 1), duration_value=30, duration_unit=DurationUnit.DAYS,
    )
    assert package_balance.get_package_state(db_session, package.id, at=datetime(2026, 3, 2)) == PackageStatus.ACTIVE
    assert package_balance.get_package_state(db_session, package.id, at=datetime(2026, 3, 25)) == PackageStatus.EXPIRING_SOON
    assert package_balance.get_package_state(db_session, package.id, at=datetime(2026, 4, 1)) == PackageStatus.EXPIRED

    add_sessions(db_session, test_trainer.id, test_client.id, 2, SESSION_DATE, validated=False, package_id=package.id)
    assert package_balance.get_package_state(db_session, package.id, at=datetime(2026, 3, 25)) == PackageStatus.COMPLETED
    assert package_balance.get_package_state(db_session, 9999) is None

def test_concurrent_log_session_cannot_overspend_last_credit(
    db_session: Session, package_factory, test_client, test_trainer, monkeypatch
):
    package = package_factory(paid="100.00")
    session_in = TrainingSessionCreate(
        trainer_id=test_trainer.id, client_id=test_client.id, package_id=package.id, session_date=SESSION_DATE
    )
    package_id = package.id
    # release the fixture session's lock before the writers start
    db_session.commit()

    # Each writer waits here after passing the balance check, so without a
    # database lock both would insert against the single unlocked credit.
    barrier = threading.Barrier(2)
    create_session = crud_training_session.create_session

    def create_after_barrier(*args, **kwargs):
        try:
            barrier.wait(timeout=1)
        except threading.BrokenBarrierError:
            pass
        return create_session(*args, **kwargs)

    monkeypatch.setattr(crud_training_session, "create_session", create_after_barrier)

    results, errors = [], []

    def log():
        db = TestingSessionLocal()
        try:
            results.append(package_balance.log_session(db, session_in).success)
        except Exception as e:
            errors.append(e)
        finally:
            db.close()

    threads = [threading.Thread(target=log) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert sorted(results) == [False, True]
    assert crud_training_session.count_used_sessions(db_session, package_id=package_id) == 1

"""
Package balance tracking.

A package sells `total_sessions` credits for `total_value`. Credits unlock in
proportion to what has been paid, and a session can only be logged against
an unlocked, unused credit. The pure functions at the top of this module
work on plain values or loaded ORM objects; the operations at the bottom
take a row lock on the package, re-read payments and sessions from the
database and write inside a single transaction.
"""
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.orm import Session

from fitledger.core.config import PAYMENT_TOLERANCE
from fitledger.core.exceptions import PermissionDeniedError
from fitledger.core.package_expiry import get_package_status, is_package_expired
from fitledger.core.permissions import Capability, require_capability
from fitledger.crud import crud_client, crud_package, crud_training_session, crud_user
from fitledger.db.transaction import db_transaction
from fitledger.models.enums import PackageStatus
from fitledger.schemas.package import (
    GuardResult,
    PackageSummary,
    Payment as PaymentSchema,
    PaymentCreate,
    PaymentList,
    PaymentOperationResult,
)
from fitledger.schemas.training_session import (
    SessionOperationResult,
    TrainingSession as TrainingSessionSchema,
    TrainingSessionCreate,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from dragging in binary noise
    return Decimal(str(value))


def compute_unlocked_sessions(paid_amount, total_value, total_sessions: int) -> int:
    """
    Number of session credits unlocked by `paid_amount`.

    floor(paid / total_value * total_sessions), clamped to [0, total_sessions].
    A package with no value (comped) unlocks everything on any payment.
    """
    if total_sessions <= 0:
        return 0
    paid = to_decimal(paid_amount)
    total = to_decimal(total_value)

    if total <= 0:
        return total_sessions if paid > 0 else 0
    if paid <= 0:
        return 0
    if paid >= total:
        return total_sessions

    unlocked = int((paid * total_sessions) // total)
    return max(0, min(unlocked, total_sessions))


def sessions_unlocked_by_payment(current_paid, amount, total_value, total_sessions: int) -> int:
    """How many additional credits a payment of `amount` would unlock."""
    before = compute_unlocked_sessions(current_paid, total_value, total_sessions)
    after = compute_unlocked_sessions(to_decimal(current_paid) + to_decimal(amount), total_value, total_sessions)
    return after - before


def paid_amount_of(package) -> Decimal:
    return sum((to_decimal(p.amount) for p in package.payments), Decimal("0"))


def used_sessions_of(package) -> int:
    return sum(1 for s in package.sessions if not s.cancelled)


def recompute_summary(package, paid_amount=None, used_sessions: Optional[int] = None) -> PackageSummary:
    """
    Derive the balance state of a package. Paid and used counts are taken
    from the loaded collections unless given explicitly.
    """
    paid = to_decimal(paid_amount) if paid_amount is not None else paid_amount_of(package)
    used = used_sessions if used_sessions is not None else used_sessions_of(package)
    total_value = to_decimal(package.total_value)
    total_sessions = package.total_sessions

    unlocked = compute_unlocked_sessions(paid, total_value, total_sessions)

    if total_value > 0:
        progress = min(Decimal("100"), paid / total_value * 100)
    else:
        progress = Decimal("100") if paid > 0 else Decimal("0")

    return PackageSummary(
        package_id=package.id,
        total_value=total_value.quantize(CENT),
        total_sessions=total_sessions,
        paid_amount=paid.quantize(CENT),
        remaining_balance=max(Decimal("0"), total_value - paid).quantize(CENT),
        unlocked_sessions=unlocked,
        locked_sessions=total_sessions - unlocked,
        used_sessions=used,
        remaining_sessions=max(0, unlocked - used),
        is_fully_paid=paid >= total_value,
        payment_progress=progress.quantize(CENT, rounding=ROUND_HALF_UP),
    )


def can_delete_payment(package, payment, paid_amount=None, used_sessions: Optional[int] = None) -> GuardResult:
    """
    Check that removing `payment` would still leave every used session covered
    by an unlocked credit.
    """
    paid = to_decimal(paid_amount) if paid_amount is not None else paid_amount_of(package)
    used = used_sessions if used_sessions is not None else used_sessions_of(package)

    new_unlocked = compute_unlocked_sessions(
        paid - to_decimal(payment.amount), package.total_value, package.total_sessions
    )
    if used > new_unlocked:
        return GuardResult(
            allowed=False,
            reason=(
                f"Cannot delete payment. {used} sessions have been used, but deleting this payment "
                f"would only leave {new_unlocked} sessions unlocked. "
                f"Please delete or cancel some sessions first."
            ),
            used_sessions=used,
            unlocked_sessions=new_unlocked,
        )
    return GuardResult(allowed=True, used_sessions=used, unlocked_sessions=new_unlocked)


def can_log_session(
    package, at: Optional[datetime] = None, paid_amount=None, used_sessions: Optional[int] = None
) -> GuardResult:
    paid = to_decimal(paid_amount) if paid_amount is not None else paid_amount_of(package)
    used = used_sessions if used_sessions is not None else used_sessions_of(package)
    unlocked = compute_unlocked_sessions(paid, package.total_value, package.total_sessions)

    def deny(reason: str) -> GuardResult:
        return GuardResult(allowed=False, reason=reason, used_sessions=used, unlocked_sessions=unlocked)

    if not package.is_active:
        return deny("Package is not active")
    if is_package_expired(package, at):
        return deny(f"Package expired on {package.expires_at:%Y-%m-%d}")
    if used >= package.total_sessions:
        return deny("All sessions have been used")
    if used >= unlocked:
        outstanding = max(Decimal("0"), to_decimal(package.total_value) - paid).quantize(CENT)
        return deny(
            f"Payment required. {unlocked} of {package.total_sessions} sessions are unlocked "
            f"and {used} have been used. Outstanding balance: ${outstanding}"
        )
    return GuardResult(allowed=True, used_sessions=used, unlocked_sessions=unlocked)


# Transactional operations

def _permission_error(acting_user, capability: Capability) -> Optional[str]:
    if acting_user is None:
        return None
    try:
        require_capability(acting_user, capability)
    except PermissionDeniedError as e:
        logger.warning(f"User ID: {acting_user.id} denied: {e}")
        return str(e)
    return None


def _summary_from_db(db: Session, package) -> PackageSummary:
    return recompute_summary(
        package,
        paid_amount=crud_package.get_paid_amount(db, package_id=package.id),
        used_sessions=crud_training_session.count_used_sessions(db, package_id=package.id),
    )


def get_package_summary(db: Session, package_id: int) -> Optional[PackageSummary]:
    package = crud_package.get_package(db, package_id)
    if not package:
        return None
    return _summary_from_db(db, package)


def get_package_state(db: Session, package_id: int, at: Optional[datetime] = None) -> Optional[PackageStatus]:
    """Active, completed, expired or expiring soon, judged on sessions left out of the package total."""
    package = crud_package.get_package(db, package_id)
    if not package:
        return None
    used = crud_training_session.count_used_sessions(db, package_id=package_id)
    return get_package_status(package, package.total_sessions - used, at)


def get_payment_list(db: Session, package_id: int) -> Optional[PaymentList]:
    package = crud_package.get_package(db, package_id)
    if not package:
        return None
    payments = crud_package.get_payments_by_package(db, package_id=package_id)
    return PaymentList(
        payments=[PaymentSchema.model_validate(p) for p in payments],
        summary=_summary_from_db(db, package),
    )


def record_payment(
    db: Session, package_id: int, payment_in: PaymentCreate, acting_user=None
) -> PaymentOperationResult:
    """
    Record a payment against a package. Amounts above the remaining balance
    (plus PAYMENT_TOLERANCE) are rejected.
    """
    denied = _permission_error(acting_user, Capability.RECORD_PAYMENT)
    if denied:
        return PaymentOperationResult(success=False, message=denied)

    with db_transaction(db):
        package = crud_package.get_package_for_update(db, package_id)
        if not package:
            return PaymentOperationResult(success=False, message="Package not found")
        if not package.is_active:
            return PaymentOperationResult(success=False, message="Package is not active")

        paid = crud_package.get_paid_amount(db, package_id=package_id)
        remaining = to_decimal(package.total_value) - paid
        if payment_in.amount > remaining + PAYMENT_TOLERANCE:
            return PaymentOperationResult(
                success=False,
                message=f"Amount exceeds remaining balance of ${max(Decimal('0'), remaining).quantize(CENT)}",
            )

        payment = crud_package.create_payment(
            db,
            package_id=package_id,
            obj_in=payment_in,
            created_by_id=acting_user.id if acting_user is not None else None,
            commit=False,
        )
        summary = _summary_from_db(db, package)
        result = PaymentOperationResult(
            success=True,
            message="Payment recorded",
            payment=PaymentSchema.model_validate(payment),
            summary=summary,
        )

    logger.info(
        f"Recorded payment ID: {payment.id} of {payment_in.amount} on package ID: {package_id}, "
        f"unlocked sessions now {summary.unlocked_sessions}/{summary.total_sessions}"
    )
    return result


def delete_payment(db: Session, package_id: int, payment_id: int, acting_user=None) -> PaymentOperationResult:
    """
    Delete a payment unless that would leave used sessions without unlocked credits.
    """
    denied = _permission_error(acting_user, Capability.DELETE_PAYMENT)
    if denied:
        return PaymentOperationResult(success=False, message=denied)

    with db_transaction(db):
        package = crud_package.get_package_for_update(db, package_id)
        if not package:
            return PaymentOperationResult(success=False, message="Package not found")

        payment = crud_package.get_payment(db, payment_id)
        if not payment or payment.package_id != package_id:
            return PaymentOperationResult(success=False, message="Payment not found for this package")

        guard = can_delete_payment(
            package,
            payment,
            paid_amount=crud_package.get_paid_amount(db, package_id=package_id),
            used_sessions=crud_training_session.count_used_sessions(db, package_id=package_id),
        )
        if not guard.allowed:
            logger.info(f"Refused to delete payment ID: {payment_id} on package ID: {package_id}: {guard.reason}")
            return PaymentOperationResult(success=False, message=guard.reason)

        deleted = PaymentSchema.model_validate(payment)
        crud_package.delete_payment(db, db_obj=payment, commit=False)
        summary = _summary_from_db(db, package)
        result = PaymentOperationResult(success=True, message="Payment deleted", payment=deleted, summary=summary)

    logger.info(f"Deleted payment ID: {payment_id} from package ID: {package_id}")
    return result


def log_session(db: Session, session_in: TrainingSessionCreate, acting_user=None) -> SessionOperationResult:
    """
    Log a training session. When a package is given the session consumes one
    of its unlocked credits and, unless a value is supplied, is credited at
    the package's per-session value.
    """
    denied = _permission_error(acting_user, Capability.LOG_SESSION)
    if denied:
        return SessionOperationResult(success=False, message=denied)

    with db_transaction(db):
        client = crud_client.get_client(db, session_in.client_id)
        if not client:
            return SessionOperationResult(success=False, message="Client not found")
        if not crud_user.get_user(db, session_in.trainer_id):
            return SessionOperationResult(success=False, message="Trainer not found")

        session_value = session_in.session_value
        if session_in.package_id is not None:
            package = crud_package.get_package_for_update(db, session_in.package_id)
            if not package:
                return SessionOperationResult(success=False, message="Package not found")
            if package.client_id != session_in.client_id:
                return SessionOperationResult(success=False, message="Package does not belong to this client")

            guard = can_log_session(
                package,
                at=session_in.session_date,
                paid_amount=crud_package.get_paid_amount(db, package_id=package.id),
                used_sessions=crud_training_session.count_used_sessions(db, package_id=package.id),
            )
            if not guard.allowed:
                return SessionOperationResult(success=False, message=guard.reason)
            if session_value is None:
                session_value = package.session_value
        elif session_value is None:
            return SessionOperationResult(
                success=False, message="A session value is required when no package is given"
            )

        db_obj = crud_training_session.create_session(
            db,
            trainer_id=session_in.trainer_id,
            client_id=session_in.client_id,
            package_id=session_in.package_id,
            location_id=session_in.location_id or client.location_id,
            session_date=session_in.session_date,
            session_value=session_value,
            notes=session_in.notes,
            commit=False,
        )
        result = SessionOperationResult(
            success=True, message="Session logged", session=TrainingSessionSchema.model_validate(db_obj)
        )

    logger.info(
        f"Logged session ID: {db_obj.id} for trainer ID: {session_in.trainer_id}, package ID: {session_in.package_id}"
    )
    return result


def set_session_cancelled(db: Session, session_id: int, cancelled: bool, acting_user=None) -> SessionOperationResult:
    """
    Cancel a session, which frees its package credit, or reinstate it.
    Reinstating passes the same package check as logging a new session.
    """
    denied = _permission_error(acting_user, Capability.VALIDATE_SESSION)
    if denied:
        return SessionOperationResult(success=False, message=denied)

    with db_transaction(db):
        db_obj = crud_training_session.get_session(db, session_id)
        if not db_obj:
            return SessionOperationResult(success=False, message="Session not found")
        if db_obj.cancelled == cancelled:
            state = "cancelled" if cancelled else "active"
            return SessionOperationResult(
                success=True, message=f"Session is already {state}",
                session=TrainingSessionSchema.model_validate(db_obj),
            )

        if not cancelled and db_obj.package_id is not None:
            package = crud_package.get_package_for_update(db, db_obj.package_id)
            guard = can_log_session(
                package,
                at=db_obj.session_date,
                paid_amount=crud_package.get_paid_amount(db, package_id=package.id),
                used_sessions=crud_training_session.count_used_sessions(db, package_id=package.id),
            )
            if not guard.allowed:
                return SessionOperationResult(success=False, message=f"Cannot reinstate session. {guard.reason}")

        db_obj.cancelled = cancelled
        db_obj.cancelled_at = datetime.utcnow() if cancelled else None
        db.add(db_obj)
        db.flush()
        result = SessionOperationResult(
            success=True,
            message="Session cancelled" if cancelled else "Session reinstated",
            session=TrainingSessionSchema.model_validate(db_obj),
        )

    logger.info(f"Session ID: {session_id} cancelled={cancelled}")
    return result


def set_session_validated(db: Session, session_id: int, validated: bool, acting_user=None) -> SessionOperationResult:
    denied = _permission_error(acting_user, Capability.VALIDATE_SESSION)
    if denied:
        return SessionOperationResult(success=False, message=denied)

    with db_transaction(db):
        db_obj = crud_training_session.get_session(db, session_id)
        if not db_obj:
            return SessionOperationResult(success=False, message="Session not found")
        if validated and db_obj.cancelled:
            return SessionOperationResult(success=False, message="A cancelled session cannot be validated")

        db_obj.validated = validated
        db_obj.validated_at = datetime.utcnow() if validated else None
        db.add(db_obj)
        db.flush()
        result = SessionOperationResult(
            success=True,
            message="Session validated" if validated else "Session validation removed",
            session=TrainingSessionSchema.model_validate(db_obj),
        )

    logger.info(f"Session ID: {session_id} validated={validated}")
    return result

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from fitledger.core.commission_tiers import resolve_tier_for_session_index, validate_tiers
from fitledger.core.exceptions import CommissionConfigurationError, FitLedgerError
from fitledger.core.permissions import Capability, require_capability
from fitledger.crud import crud_commission, crud_package, crud_training_session, crud_user
from fitledger.models.enums import CalculationMethod, TriggerType
from fitledger.schemas.commission import (
    CommissionReport,
    CommissionStatus,
    SaleCommissionLine,
    SessionCommissionLine,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

__all__ = [
    "resolve_tier_for_session_index",
    "calculate_commission",
    "calculate_commission_for_period",
    "calculate_organization_commissions",
    "record_commission_calculation",
]


def _billing_order(session):
    return (session.session_date, session.created_at or datetime.min, session.id or 0)


def _tier_rate(tier, calculation_method: CalculationMethod) -> Decimal:
    if calculation_method == CalculationMethod.PERCENTAGE:
        rate = tier.session_commission_percent
    else:
        rate = tier.session_flat_fee
    if rate is None:
        raise CommissionConfigurationError(f"Tier {tier.tier_level} has no rate for {calculation_method.value}")
    return Decimal(str(rate))


def _session_commission(session_value: Decimal, rate: Decimal, calculation_method: CalculationMethod) -> Decimal:
    if calculation_method == CalculationMethod.PERCENTAGE:
        return (session_value * rate / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)
    return rate.quantize(CENT, rounding=ROUND_HALF_UP)


def _sale_commission(package_value: Decimal, tier) -> Decimal:
    """A flat sales fee wins over a sales percent."""
    flat_fee = getattr(tier, "sales_flat_fee", None)
    if flat_fee is not None:
        return Decimal(str(flat_fee)).quantize(CENT, rounding=ROUND_HALF_UP)
    percent = getattr(tier, "sales_commission_percent", None)
    if percent is not None:
        return (package_value * Decimal(str(percent)) / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)
    return Decimal("0.00")


def calculate_commission(
    profile,
    sessions: Iterable,
    packages: Iterable = (),
    *,
    trainer_id: int,
    period_start: datetime,
    period_end: datetime,
    calculated_at: Optional[datetime] = None,
) -> CommissionReport:
    """
    Price a trainer's sessions against a commission profile.

    Validated sessions are billed in (session_date, created_at, id) order. Each
    one is priced at the tier reached by the validated sessions billed before
    it in the same counting window, then advances the counter. Unvalidated
    sessions are listed but earn nothing. Cancelled sessions are ignored.

    `packages` are the packages the trainer sold in the period. Each earns the
    sales rate of the highest tier reached (the base tier when no session was
    validated). That tier's bonus is paid once on top.
    """
    calculated_at = calculated_at or datetime.utcnow()
    ordered = sorted((s for s in sessions if not s.cancelled), key=_billing_order)
    sold = sorted(packages, key=lambda p: (p.created_at, p.id))
    validated_count = sum(1 for s in ordered if s.validated)

    report = CommissionReport(
        trainer_id=trainer_id,
        profile_id=profile.id if profile is not None else None,
        status=CommissionStatus.OK,
        period_start=period_start,
        period_end=period_end,
        session_count=len(ordered),
        validated_count=validated_count,
        total_session_value=sum(
            (Decimal(str(s.session_value)) for s in ordered if s.validated), Decimal("0")
        ).quantize(CENT),
        packages_sold=len(sold),
        total_sales_value=sum((Decimal(str(p.total_value)) for p in sold), Decimal("0")).quantize(CENT),
        calculated_at=calculated_at,
    )
    unpriced_lines = [
        SessionCommissionLine(
            session_id=s.id, session_date=s.session_date,
            session_value=Decimal(str(s.session_value)), validated=s.validated,
        )
        for s in ordered
    ]
    unpriced_sales = [
        SaleCommissionLine(
            package_id=p.id, client_id=p.client_id, sold_at=p.created_at, package_value=Decimal(str(p.total_value)),
        )
        for p in sold
    ]

    if profile is None or not profile.is_active:
        report.status = CommissionStatus.UNCONFIGURED
        report.message = "Trainer has no active commission profile"
        report.breakdown = unpriced_lines
        report.sales = unpriced_sales
        return report

    report.calculation_method = profile.calculation_method
    report.trigger_type = profile.trigger_type

    try:
        validate_tiers(profile.tiers, profile.calculation_method)
        lines = []
        session_total = Decimal("0")
        reached = None
        counter = 0
        window = None
        for session in ordered:
            value = Decimal(str(session.session_value))
            if not session.validated:
                lines.append(SessionCommissionLine(
                    session_id=session.id, session_date=session.session_date,
                    session_value=value, validated=False,
                ))
                continue

            if profile.trigger_type == TriggerType.MONTHLY_SESSION_COUNT:
                month = (session.session_date.year, session.session_date.month)
                if month != window:
                    window = month
                    counter = 0
            index = 0 if profile.trigger_type == TriggerType.NONE else counter

            tier = resolve_tier_for_session_index(profile, index)
            rate = _tier_rate(tier, profile.calculation_method)
            commission = _session_commission(value, rate, profile.calculation_method)

            lines.append(SessionCommissionLine(
                session_id=session.id,
                session_date=session.session_date,
                session_value=value,
                validated=True,
                cumulative_index=index,
                tier_level=tier.tier_level,
                rate=rate,
                commission=commission,
            ))
            session_total += commission
            counter += 1
            if reached is None or tier.tier_level > reached.tier_level:
                reached = tier

        sales_tier = reached if reached is not None else resolve_tier_for_session_index(profile, 0)
        sales = [
            SaleCommissionLine(
                package_id=p.id,
                client_id=p.client_id,
                sold_at=p.created_at,
                package_value=Decimal(str(p.total_value)),
                commission=_sale_commission(Decimal(str(p.total_value)), sales_tier),
            )
            for p in sold
        ]
        bonus = Decimal("0")
        if reached is not None and getattr(reached, "tier_bonus", None) is not None:
            bonus = Decimal(str(reached.tier_bonus)).quantize(CENT, rounding=ROUND_HALF_UP)
    except CommissionConfigurationError as e:
        logger.warning(f"Commission profile ID: {profile.id} cannot price trainer ID: {trainer_id}: {e}")
        report.status = CommissionStatus.MISCONFIGURED
        report.message = str(e)
        report.breakdown = unpriced_lines
        report.sales = unpriced_sales
        return report

    sales_total = sum((line.commission for line in sales), Decimal("0"))
    report.breakdown = lines
    report.sales = sales
    report.session_commission = session_total.quantize(CENT)
    report.sales_commission = sales_total.quantize(CENT)
    report.tier_bonus = bonus
    report.total_commission = (session_total + sales_total + bonus).quantize(CENT)
    report.tier_reached = reached.tier_level if reached is not None else None
    return report


def calculate_commission_for_period(
    db: Session,
    trainer_id: int,
    period_start: datetime,
    period_end: datetime,
    location_id: Optional[int] = None,
    calculated_at: Optional[datetime] = None,
) -> CommissionReport:
    """
    Commission owed to one trainer for sessions dated within [period_start, period_end],
    plus sales commission on packages sold to their clients in that window.
    """
    trainer = crud_user.get_user_with_profile(db, trainer_id)
    if not trainer:
        return CommissionReport(
            trainer_id=trainer_id,
            status=CommissionStatus.ERROR,
            message="Trainer not found",
            period_start=period_start,
            period_end=period_end,
            calculated_at=calculated_at or datetime.utcnow(),
        )

    sessions = crud_training_session.get_sessions_for_trainer(
        db, trainer_id=trainer_id, period_start=period_start, period_end=period_end, location_id=location_id
    )
    packages = crud_package.get_packages_sold_by_trainer(
        db, trainer_id=trainer_id, period_start=period_start, period_end=period_end, location_id=location_id
    )
    report = calculate_commission(
        trainer.commission_profile,
        sessions,
        packages,
        trainer_id=trainer_id,
        period_start=period_start,
        period_end=period_end,
        calculated_at=calculated_at,
    )
    logger.info(
        f"Commission for trainer ID: {trainer_id} ({period_start:%Y-%m-%d} to {period_end:%Y-%m-%d}): "
        f"status={report.status.value}, validated={report.validated_count}, "
        f"packages={report.packages_sold}, total={report.total_commission}"
    )
    return report


def calculate_organization_commissions(
    db: Session,
    organization_id: int,
    period_start: datetime,
    period_end: datetime,
    acting_user=None,
) -> List[CommissionReport]:
    """
    Report every active trainer of an organization, highest commission first.
    A failure for one trainer becomes an `error` report for that trainer only.
    Database errors are not caught.
    """
    if acting_user is not None:
        require_capability(acting_user, Capability.VIEW_ALL_COMMISSIONS)

    calculated_at = datetime.utcnow()
    reports = []
    for trainer in crud_user.get_trainers_by_organization(db, organization_id=organization_id):
        try:
            report = calculate_commission_for_period(
                db, trainer.id, period_start, period_end, calculated_at=calculated_at
            )
        except (FitLedgerError, ArithmeticError, TypeError, ValueError) as e:
            logger.error(f"Commission report failed for trainer ID: {trainer.id}: {e}", exc_info=True)
            report = CommissionReport(
                trainer_id=trainer.id,
                profile_id=trainer.commission_profile_id,
                status=CommissionStatus.ERROR,
                message=str(e),
                period_start=period_start,
                period_end=period_end,
                calculated_at=calculated_at,
            )
        reports.append(report)

    reports.sort(key=lambda r: (-r.total_commission, r.trainer_id))
    return reports


def record_commission_calculation(db: Session, report: CommissionReport, organization_id: Optional[int] = None):
    """
    Save a report as a CommissionCalculation row for payroll history.
    """
    if organization_id is None:
        trainer = crud_user.get_user(db, report.trainer_id)
        organization_id = trainer.organization_id
    db_obj = crud_commission.create_commission_calculation(db, report=report, organization_id=organization_id)
    logger.info(f"Saved commission calculation ID: {db_obj.id} for trainer ID: {report.trainer_id}")
    return db_obj

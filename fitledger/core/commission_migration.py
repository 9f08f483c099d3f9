"""
One-shot migration of v1 organization-wide commission tiers to v2 per-trainer
commission profiles.

Each organization gets a single PERCENTAGE profile, "Default Commission
Structure", built from its legacy tiers and assigned to every trainer that has
no profile yet. Organizations are migrated in their own transaction, so one
organization's bad data never blocks the others, and an organization that
already has a profile is skipped, so the whole run can be repeated safely.
"""
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fitledger.core.exceptions import FitLedgerError, LegacyTierError
from fitledger.core.periods import month_bounds
from fitledger.core.permissions import Capability, require_capability
from fitledger.crud import crud_audit, crud_commission, crud_organization, crud_training_session, crud_user
from fitledger.db.transaction import db_transaction
from fitledger.models.enums import CalculationMethod, LegacyCommissionMethod, TriggerType
from fitledger.schemas.commission import CommissionProfileCreate, CommissionTierCreate
from fitledger.schemas.migration import MigrationResult, MigrationStatus, MigrationSummary, VerificationResult

logger = logging.getLogger(__name__)

ORGANIZATION_PAGE_SIZE = 500


def normalize_legacy_percentage(value) -> Decimal:
    """
    v1 stored some rates as fractions (0.25) and some as percents (25).
    Anything below 1 is read as a fraction.
    """
    percent = Decimal(str(value))
    if percent < 0 or percent > 100:
        raise LegacyTierError(f"Legacy commission percentage {value} is outside 0-100")
    if percent < 1:
        percent = percent * 100
    return percent.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class CommissionMigrationService:
    PROFILE_NAME = "Default Commission Structure"
    AUDIT_ACTION = "COMMISSION_MIGRATION_V1_TO_V2"

    def __init__(self, db: Session):
        self.db = db

    def migrate_organization(self, organization_id: int) -> MigrationResult:
        organization = crud_organization.get_organization(self.db, organization_id)
        if not organization:
            return MigrationResult(
                organization_id=organization_id, status=MigrationStatus.FAILED, error="Organization not found"
            )
        name = organization.name

        if crud_commission.count_profiles_for_organization(self.db, organization_id=organization_id) > 0:
            logger.info(f"Organization ID: {organization_id} already has commission profiles, skipping")
            return MigrationResult(organization_id=organization_id, organization_name=name, status=MigrationStatus.SKIPPED)

        try:
            with db_transaction(self.db):
                result = self._migrate(organization)
        except (FitLedgerError, IntegrityError, ValueError, ArithmeticError) as e:
            logger.error(f"Commission migration failed for organization ID: {organization_id}: {e}")
            return MigrationResult(
                organization_id=organization_id, organization_name=name, status=MigrationStatus.FAILED, error=str(e)
            )

        logger.info(
            f"Migrated organization ID: {organization_id} to profile ID: {result.profile_id} "
            f"({result.tiers_created} tiers, {result.trainers_assigned} trainers)"
        )
        return result

    def _migrate(self, organization) -> MigrationResult:
        raw_method = organization.legacy_commission_method
        try:
            method = LegacyCommissionMethod(raw_method)
        except ValueError:
            raise LegacyTierError(f"Unrecognized legacy commission method: {raw_method!r}")

        legacy_tiers = crud_organization.get_legacy_commission_tiers(self.db, organization_id=organization.id)
        if not legacy_tiers:
            raise LegacyTierError("Organization has no v1 commission tiers to migrate")

        tiers_in = []
        for index, row in enumerate(legacy_tiers):
            threshold = row.min_sessions
            if index == 0 and threshold != 0:
                # v1 priced counts below the first tier at the first tier's rate
                logger.info(
                    f"Organization ID: {organization.id} lowest v1 tier starts at {threshold}, migrating it from 0"
                )
                threshold = 0
            tiers_in.append(CommissionTierCreate(
                tier_level=index + 1,
                name=f"Tier {index + 1}",
                session_threshold=threshold,
                session_commission_percent=normalize_legacy_percentage(row.percentage),
            ))

        profile_in = CommissionProfileCreate(
            organization_id=organization.id,
            name=self.PROFILE_NAME,
            description=f"Migrated from v1 {method.value.lower()} commission tiers",
            is_default=True,
            calculation_method=CalculationMethod.PERCENTAGE,
            trigger_type=TriggerType.SESSION_COUNT,
            tiers=tiers_in,
        )
        profile = crud_commission.create_commission_profile(self.db, obj_in=profile_in, commit=False)

        trainers = crud_user.get_trainers_without_profile(self.db, organization_id=organization.id)
        for trainer in trainers:
            crud_user.assign_commission_profile(self.db, db_obj=trainer, profile_id=profile.id, commit=False)

        crud_audit.create_audit_log(
            self.db,
            action=self.AUDIT_ACTION,
            entity_type="organization",
            entity_id=organization.id,
            old_value={
                "commission_method": method.value,
                "tiers": [
                    {
                        "min_sessions": row.min_sessions,
                        "max_sessions": row.max_sessions,
                        "percentage": str(row.percentage),
                    }
                    for row in legacy_tiers
                ],
            },
            new_value={
                "profile_id": profile.id,
                "profile_name": profile.name,
                "tiers": [
                    {
                        "tier_level": t.tier_level,
                        "session_threshold": t.session_threshold,
                        "session_commission_percent": str(t.session_commission_percent),
                    }
                    for t in tiers_in
                ],
                "trainer_ids": [t.id for t in trainers],
            },
            commit=False,
        )

        return MigrationResult(
            organization_id=organization.id,
            organization_name=organization.name,
            status=MigrationStatus.SUCCEEDED,
            profile_id=profile.id,
            tiers_created=len(tiers_in),
            trainers_assigned=len(trainers),
        )

    def migrate_all(self, acting_user=None) -> MigrationSummary:
        """
        Migrate every organization. Failures are collected, never raised.
        """
        if acting_user is not None:
            require_capability(acting_user, Capability.RUN_MIGRATION)

        summary = MigrationSummary()
        skip = 0
        while True:
            organizations = crud_organization.get_organizations(self.db, skip=skip, limit=ORGANIZATION_PAGE_SIZE)
            if not organizations:
                break
            organization_ids = [o.id for o in organizations]
            for organization_id in organization_ids:
                result = self.migrate_organization(organization_id)
                if result.status == MigrationStatus.SUCCEEDED:
                    summary.succeeded.append(result)
                elif result.status == MigrationStatus.SKIPPED:
                    summary.skipped.append(result)
                else:
                    summary.failed.append(result)
            skip += ORGANIZATION_PAGE_SIZE

        logger.info(
            f"Commission migration finished: {len(summary.succeeded)} succeeded, "
            f"{len(summary.failed)} failed, {len(summary.skipped)} skipped"
        )
        return summary

    def verify_migration(self, organization_id: int, at: Optional[datetime] = None) -> VerificationResult:
        """
        Spot-check one trainer: report whether they have a profile and how many
        validated sessions they have this calendar month.
        """
        trainers = crud_user.get_trainers_by_organization(self.db, organization_id=organization_id)
        if not trainers:
            return VerificationResult(verified=True, message="No trainers to verify")

        trainer = next((t for t in trainers if t.commission_profile_id is not None), trainers[0])
        period_start, period_end = month_bounds(at)
        session_count = crud_training_session.count_validated_sessions_for_trainer(
            self.db, trainer_id=trainer.id, period_start=period_start, period_end=period_end
        )

        profile_assigned = trainer.commission_profile_id is not None
        if profile_assigned:
            message = (
                f"Trainer {trainer.name} is on profile '{trainer.commission_profile.name}' "
                f"with {session_count} validated sessions this month"
            )
        else:
            message = "No trainer in this organization has a commission profile"

        return VerificationResult(
            verified=profile_assigned,
            message=message,
            trainer_id=trainer.id,
            trainer_name=trainer.name,
            profile_assigned=profile_assigned,
            profile_id=trainer.commission_profile_id,
            session_count=session_count,
        )

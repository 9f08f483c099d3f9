import enum
from pydantic import BaseModel
from typing import Optional, List

class MigrationStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

class MigrationResult(BaseModel):
    organization_id: int
    organization_name: Optional[str] = None
    status: MigrationStatus
    profile_id: Optional[int] = None
    tiers_created: int = 0
    trainers_assigned: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        # Skipped organizations are already on v2, which is not a failure
        return self.status != MigrationStatus.FAILED

class MigrationSummary(BaseModel):
    succeeded: List[MigrationResult] = []
    failed: List[MigrationResult] = []
    skipped: List[MigrationResult] = []

    @property
    def results(self) -> List[MigrationResult]:
        return self.succeeded + self.failed + self.skipped

class VerificationResult(BaseModel):
    verified: bool
    message: Optional[str] = None
    trainer_id: Optional[int] = None
    trainer_name: Optional[str] = None
    profile_assigned: bool = False
    profile_id: Optional[int] = None
    session_count: int = 0

class FitLedgerError(Exception):
    """Base class for errors raised by the balance and commission engine."""


class CommissionConfigurationError(FitLedgerError):
    """A commission profile cannot be used to price sessions."""


class NoTierDefinedError(CommissionConfigurationError):
    def __init__(self, cumulative_session_count: int, lowest_threshold=None):
        self.cumulative_session_count = cumulative_session_count
        self.lowest_threshold = lowest_threshold
        if lowest_threshold is None:
            message = "Commission profile has no tiers"
        else:
            message = (
                f"No tier covers a cumulative count of {cumulative_session_count} sessions "
                f"(lowest threshold is {lowest_threshold})"
            )
        super().__init__(message)


class DuplicateTierThresholdError(CommissionConfigurationError):
    def __init__(self, threshold: int):
        self.threshold = threshold
        super().__init__(f"More than one tier uses session threshold {threshold}")


class LegacyTierError(FitLedgerError):
    """Historical v1 commission data that cannot be translated."""


class PermissionDeniedError(FitLedgerError):
    def __init__(self, role, capability):
        self.role = role
        self.capability = capability
        super().__init__(f"Role {role.value} is not allowed to {capability.value}")

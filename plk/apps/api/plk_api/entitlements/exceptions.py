"""Entitlement engine exceptions.

Only configuration and caller defects are raised. Quota denials and lost races are
returned as typed results (CommitOutcome / MissionContactConfirmation) so callers can
branch on `allowed` / `committed` without try/except plumbing.
"""

from typing import Optional


class EntitlementError(Exception):
    """Base exception for entitlement errors."""

    pass


class CatalogError(EntitlementError):
    """Raised when the tier catalog document is missing or invalid."""

    pass


class UnknownTierError(EntitlementError):
    """Raised when a tier is not defined in the catalog (never defaults)."""

    def __init__(self, tier: str, user_type: Optional[str] = None):
        self.tier = tier
        self.user_type = user_type
        if user_type:
            message = f"Unknown tier '{tier}' for user type '{user_type}'"
        else:
            message = f"Unknown tier '{tier}'"
        super().__init__(message)


class UnknownFeatureError(EntitlementError):
    """Raised when a feature key is not defined in the catalog (never defaults)."""

    def __init__(self, feature_key: str, tier: Optional[str] = None):
        self.feature_key = feature_key
        self.tier = tier
        if tier:
            message = f"Unknown feature '{feature_key}' for plan '{tier}'"
        else:
            message = f"Unknown feature '{feature_key}'"
        super().__init__(message)


class InvalidDurationError(EntitlementError, ValueError):
    """Raised when a mission duration is not a positive whole number of days."""

    def __init__(self, mission_days):
        self.mission_days = mission_days
        super().__init__(f"Mission duration must be a positive number of days, got {mission_days!r}")


class TrackingModeError(EntitlementError):
    """Raised when a counter is mutated through the wrong primitive.

    Incremental features may only be committed; absolute features may only be set.
    """

    def __init__(self, feature_key: str, tracking: str, operation: str):
        self.feature_key = feature_key
        self.tracking = tracking
        self.operation = operation
        super().__init__(
            f"Feature '{feature_key}' is tracked as {tracking}; '{operation}' is not allowed"
        )


class AccountNotFoundError(EntitlementError):
    """Raised when the account directory has no record of an account."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")

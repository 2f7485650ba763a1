"""
PharmaLink Entitlements Module
Tier catalog, usage ledger, quota evaluation and contact fees
"""

from .models import (
    TierCatalogModel,
    TierModel,
    CurrencyModel,
    FeatureModel,
    FeatureLimitModel,
    ContactFeeModel,
    UserTypeModel,
    FeeBracketModel,
    UNLIMITED,
    normalize_user_type,
)

from .exceptions import (
    EntitlementError,
    CatalogError,
    UnknownTierError,
    UnknownFeatureError,
    InvalidDurationError,
    TrackingModeError,
    AccountNotFoundError,
)

from .catalog import (
    TierCatalog,
    FeatureLimits,
)

from .catalog_loader import (
    CatalogLoader,
    get_catalog_loader,
    load_tier_catalog,
)

from .periods import (
    current_period_key,
    billing_cycle_start,
    utc_now,
)

from .ledger import (
    UsageLedger,
    InMemoryUsageLedger,
)

from .accounts import (
    Account,
    AccountDirectory,
    InMemoryAccountDirectory,
    SupabaseAccountDirectory,
)

from .evaluator import (
    QuotaDecision,
    QuotaEvaluator,
)

from .fees import (
    FeeQuote,
    FeeCalculator,
)

from .facade import (
    EntitlementFacade,
    AccountStatus,
    CommitOutcome,
    MissionContactConfirmation,
)

__all__ = [
    # Models
    "TierCatalogModel",
    "TierModel",
    "CurrencyModel",
    "FeatureModel",
    "FeatureLimitModel",
    "ContactFeeModel",
    "UserTypeModel",
    "FeeBracketModel",
    "UNLIMITED",
    "normalize_user_type",

    # Exceptions
    "EntitlementError",
    "CatalogError",
    "UnknownTierError",
    "UnknownFeatureError",
    "InvalidDurationError",
    "TrackingModeError",
    "AccountNotFoundError",

    # Catalog
    "TierCatalog",
    "FeatureLimits",
    "CatalogLoader",
    "get_catalog_loader",
    "load_tier_catalog",

    # Periods
    "current_period_key",
    "billing_cycle_start",
    "utc_now",

    # Ledger
    "UsageLedger",
    "InMemoryUsageLedger",

    # Accounts
    "Account",
    "AccountDirectory",
    "InMemoryAccountDirectory",
    "SupabaseAccountDirectory",

    # Evaluation and fees
    "QuotaDecision",
    "QuotaEvaluator",
    "FeeQuote",
    "FeeCalculator",

    # Facade
    "EntitlementFacade",
    "AccountStatus",
    "CommitOutcome",
    "MissionContactConfirmation",
]

"""Request context management for observability.

Context variables carried across the request so every log line of an
entitlement decision can be correlated.
"""

from contextvars import ContextVar

# Request ID - unique per HTTP request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Account being evaluated or charged
account_id_var: ContextVar[str] = ContextVar("account_id", default="")

# Metered feature of the current request
feature_key_var: ContextVar[str] = ContextVar("feature_key", default="")

from .counter_store import ExpiringCounterStore, RateCounterEntry
from .rate_limiter import RateGovernor, RateLimitPolicy, settings_policy

__all__ = [
    "ExpiringCounterStore",
    "RateCounterEntry",
    "RateGovernor",
    "RateLimitPolicy",
    "settings_policy",
]

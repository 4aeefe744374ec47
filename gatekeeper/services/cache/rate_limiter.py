import time
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from gatekeeper.core.config import Settings
from gatekeeper.core.exceptions.rate_limiter import RateLimitConfigurationError
from gatekeeper.core.types import RateLimitInfoDict
from gatekeeper.services.cache.counter_store import ExpiringCounterStore


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    """Maximum admitted requests per sliding window of `window` seconds."""

    max_requests: int
    window: float


PolicyProvider = Callable[[], RateLimitPolicy]


def settings_policy(app_settings: Settings) -> PolicyProvider:
    """
    Build a policy provider that reads the limit and window from the live
    settings object on every call, so changing them takes effect on the next
    request without a restart.
    """

    def provider() -> RateLimitPolicy:
        return RateLimitPolicy(
            max_requests=app_settings.rate_limit_max_requests,
            window=app_settings.rate_limit_window_seconds,
        )

    return provider


class RateGovernor:
    """
    Admission control in front of every request, keyed by client address or
    token subject and backed by an ExpiringCounterStore.

    A request is admitted while the key's count in its sliding window is at
    most the policy limit. A request whose key cannot be determined is
    admitted (fail open) and logged as a warning.

    Example:
        ```python
        governor = RateGovernor(ExpiringCounterStore(), settings_policy(settings))

        if not governor.admit(f"{RateLimitPrefix.IP}{ip}"):
            return PlainTextResponse("Too many requests", status_code=429)
        ```
    """

    def __init__(self, store: ExpiringCounterStore, policy_provider: PolicyProvider):
        self.store = store
        self._policy_provider = policy_provider

    def check(
        self, key: str | None, policy: RateLimitPolicy | None = None
    ) -> tuple[bool, RateLimitInfoDict | None]:
        """
        Count a request for a key and decide whether it is admitted.

        Args:
            key: Rate limit key, None when it could not be determined
            policy: Override for the provider's policy (per-endpoint quotas)

        Returns:
            tuple[bool, RateLimitInfoDict | None]: (is_allowed, rate_limit_info)
                rate_limit_info is None when the request was admitted without a key

        Raises:
            RateLimitConfigurationError: If the limit or window is not positive
        """
        policy = policy or self._policy_provider()

        if policy.max_requests <= 0:
            raise RateLimitConfigurationError(
                f"Rate limit must be positive, got {policy.max_requests}"
            )
        if policy.window <= 0:
            raise RateLimitConfigurationError(
                f"Rate limit window must be positive, got {policy.window}"
            )

        if not key:
            logger.warning("Rate limit key could not be determined, allowing request")
            return True, None

        request_count = self.store.increment_and_get(key, policy.window)
        is_allowed = request_count <= policy.max_requests

        rate_limit_info = RateLimitInfoDict(
            limit=policy.max_requests,
            remaining=max(0, policy.max_requests - request_count),
            reset_time=int(time.time() + policy.window),
        )

        if not is_allowed:
            logger.warning(
                f"Rate limit exceeded for key {key} ({request_count}/{policy.max_requests})"
            )

        return is_allowed, rate_limit_info

    def admit(self, key: str | None) -> bool:
        """True if the request for this key may proceed."""
        is_allowed, _ = self.check(key)
        return is_allowed

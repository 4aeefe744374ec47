from typing import Annotated

from fastapi import Depends, Request

from gatekeeper.api.v1.deps.auth import get_current_subject
from gatekeeper.core.config import settings
from gatekeeper.core.constants import RateLimitPrefix
from gatekeeper.core.exceptions.http_exceptions import TooManyRequestsException
from gatekeeper.middleware.rate_limit import rate_limit_headers
from gatekeeper.services.cache import RateGovernor, RateLimitPolicy


def get_rate_governor(request: Request) -> RateGovernor:
    return request.app.state.rate_governor


def _subject_limiter(full_prefix: str, limit: int | None, window: float | None):
    async def subject_limiter(
        request: Request,
        subject: Annotated[str, Depends(get_current_subject)],
        governor: Annotated[RateGovernor, Depends(get_rate_governor)],
    ) -> None:
        policy = RateLimitPolicy(
            max_requests=limit if limit is not None else settings.rate_limit_user,
            window=window if window is not None else settings.rate_limit_window_seconds,
        )
        is_allowed, info = governor.check(f"{full_prefix}{subject}", policy=policy)

        # Picked up by RateLimitMiddleware for the response headers
        request.state.rate_limit_info = info

        if not is_allowed:
            raise TooManyRequestsException(
                detail="Rate limit exceeded. Please slow down your requests.",
                headers=rate_limit_headers(info) if info else None,
            )

    return subject_limiter


# Subject-keyed quota for authenticated endpoints: settings.rate_limit_user requests
# per settings.rate_limit_window. Runs after authentication, behind the IP gate.
rate_limit_user = _subject_limiter(RateLimitPrefix.USER, limit=None, window=None)


def create_rate_limit(prefix: str, limit: int | None = None, window: float | None = None):
    """
    Factory for endpoint-specific, subject-keyed quotas.

    Args:
        prefix: Key category (without "ratelimit:" and ":")
        limit: Maximum requests per window, defaults to settings.rate_limit_user
        window: Window in seconds, defaults to settings.rate_limit_window

    Returns:
        Async dependency to use with Depends()

    Raises:
        ValueError: If prefix conflicts with a registered prefix

    Example:
        ```python
        renew_limit = create_rate_limit("renew", limit=5, window=300)

        @router.post("/renew", dependencies=[Depends(renew_limit)])
        async def renew(...):
            pass
        ```
    """
    full_prefix = f"ratelimit:{prefix}:"
    RateLimitPrefix.validate_prefix(full_prefix)

    return _subject_limiter(full_prefix, limit=limit, window=window)

from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import PlainTextResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from gatekeeper.core.config import Settings
from gatekeeper.core.constants import RateLimitPrefix
from gatekeeper.core.types import RateLimitInfoDict
from gatekeeper.core.utils import get_client_ip
from gatekeeper.services.cache.rate_limiter import RateGovernor

RATE_LIMITED_BODY = "Too many requests"


def rate_limit_headers(info: RateLimitInfoDict) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(info["limit"]),
        "X-RateLimit-Remaining": str(info["remaining"]),
        "X-RateLimit-Reset": str(info["reset_time"]),
    }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    First gate of the request pipeline: IP-keyed admission control.

    Runs before routing, so a rejected request never reaches authentication
    or any handler. Rejections are answered with 429 and a plain-text body.
    Admitted responses get X-RateLimit-* headers, taken from the most specific
    gate that ran (a subject-keyed dependency overrides the IP gate).

    `rate_limit_enabled` and `trust_forwarded_headers` are read from the
    settings object on every request.

    Example:
        ```python
        app.add_middleware(RateLimitMiddleware, governor=governor, app_settings=settings)
        ```
    """

    def __init__(self, app: ASGIApp, governor: RateGovernor, app_settings: Settings):
        super().__init__(app)
        self.governor = governor
        self.app_settings = app_settings

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.app_settings.rate_limit_enabled:
            return await call_next(request)

        ip = get_client_ip(request, self.app_settings.trust_forwarded_headers)
        key = f"{RateLimitPrefix.IP}{ip}" if ip else None

        is_allowed, info = self.governor.check(key)

        if not is_allowed:
            logger.warning(f"Rejected {request.method} {request.url.path} from {ip}: rate limited")
            return PlainTextResponse(
                RATE_LIMITED_BODY,
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                headers=rate_limit_headers(info) if info else None,
            )

        if info is not None:
            request.state.rate_limit_info = info

        response: Response = await call_next(request)

        info = getattr(request.state, "rate_limit_info", None)
        if info is not None:
            response.headers.update(rate_limit_headers(info))

        return response

from typing import Any, Optional

from starlette import status

from gatekeeper.core.exceptions.base import HTTPException


class UnauthorizedException(HTTPException):
    def __init__(
        self,
        detail: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """
        No usable credential was presented: the bearer token is missing,
        malformed, expired, or fails signature, issuer or audience checks.
        Callers should send a `WWW-Authenticate: Bearer` challenge header.
        :param detail: Message returned in the response body.
        :param headers: Extra response headers.
        """
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers=headers,
        )


class ForbiddenException(HTTPException):
    def __init__(
        self,
        detail: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """
        The caller is authenticated but its subject may not use the resource.
        :param detail: Message returned in the response body.
        :param headers: Extra response headers.
        """
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            headers=headers,
        )


class ConflictException(HTTPException):
    def __init__(
        self,
        detail: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """
        The token is valid but the account it names is not in the expected
        state (e.g. the user no longer exists).
        :param detail: Message returned in the response body.
        :param headers: Extra response headers.
        """
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            headers=headers,
        )


class TooManyRequestsException(HTTPException):
    def __init__(
        self,
        detail: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """
        A subject-keyed quota was exhausted for the current window.
        :param detail: Message returned in the response body.
        :param headers: X-RateLimit-* headers for the rejected request.
        """
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            headers=headers,
        )

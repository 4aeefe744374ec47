from typing import Annotated

from fastapi import Depends, Header, Request

from gatekeeper.core.exceptions import http_exceptions
from gatekeeper.core.utils import extract_bearer_token
from gatekeeper.repos import UserRepo
from gatekeeper.services.token import IdentityProviderValidator, TokenService


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_identity_provider(request: Request) -> IdentityProviderValidator:
    return request.app.state.identity_provider


def get_user_repo(request: Request) -> UserRepo:
    return request.app.state.user_repo


async def get_bearer_token(
    authorization: Annotated[str | None, Header()] = None,
) -> str | None:
    """
    Bearer credential from the Authorization header, None when absent or malformed
    """
    return extract_bearer_token(authorization)


async def get_optional_subject(
    token: Annotated[str | None, Depends(get_bearer_token)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
) -> str | None:
    """
    Subject of a valid bearer token, or None for anonymous callers

    Use on public routes that behave differently for authenticated callers.
    Invalid credentials are treated like no credential.
    """
    if token is None:
        return None

    subject, ok = token_service.validate_token(token)

    return subject if ok else None


async def get_current_subject(
    subject: Annotated[str | None, Depends(get_optional_subject)],
) -> str:
    """
    Get current authenticated subject from the bearer token

    Returns:
        Subject (user e-mail) carried by the token

    Raises:
        UnauthorizedException: If the token is missing or invalid
    """
    if subject is None:
        raise http_exceptions.UnauthorizedException(
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return subject


async def require_admin(
    subject: Annotated[str, Depends(get_current_subject)],
    user_repo: Annotated[UserRepo, Depends(get_user_repo)],
) -> str:
    """
    Authenticated subject with administrator rights

    Raises:
        ForbiddenException: If the subject is not an administrator
    """
    if not await user_repo.is_admin(subject):
        raise http_exceptions.ForbiddenException(detail="Administrator privileges required")

    return subject

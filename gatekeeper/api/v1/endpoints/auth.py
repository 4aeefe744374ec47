from typing import Annotated

from fastapi import APIRouter, Depends, status
from loguru import logger

from gatekeeper.api.v1.deps.auth import (
    get_current_subject,
    get_identity_provider,
    get_token_service,
    get_user_repo,
)
from gatekeeper.core import responses
from gatekeeper.core.exceptions import http_exceptions
from gatekeeper.repos import UserRepo
from gatekeeper.schemas import IdentityProviderLogin, SubjectResponse, Token
from gatekeeper.services.token import IdentityProviderValidator, TokenService

router = APIRouter()


def _token_response(token_service: TokenService, subject: str) -> Token:
    return Token(
        access_token=token_service.issue_token(subject),
        expires_in=int(token_service.lifetime.total_seconds()),
    )


@router.get(
    "/verify",
    response_model=SubjectResponse,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": responses.UnauthorizedResponse},
    },
    summary="Verify bearer token",
    description="Check the presented bearer token and return the subject it carries.",
)
async def verify_token(subject: Annotated[str, Depends(get_current_subject)]):
    return SubjectResponse(subject=subject)


@router.post(
    "/renew",
    response_model=Token,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": responses.UnauthorizedResponse},
        status.HTTP_409_CONFLICT: {"model": responses.ConflictResponse},
    },
    summary="Renew bearer token",
    description="Exchange a valid bearer token for a new one with a full lifetime.",
)
async def renew_token(
    subject: Annotated[str, Depends(get_current_subject)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
    user_repo: Annotated[UserRepo, Depends(get_user_repo)],
):
    if not await user_repo.exists_by_email(subject):
        raise http_exceptions.ConflictException(detail="User does not exist")

    return _token_response(token_service, subject)


@router.post(
    "/identity-provider",
    response_model=Token,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": responses.UnauthorizedResponse},
        status.HTTP_409_CONFLICT: {"model": responses.ConflictResponse},
    },
    summary="Login with identity provider",
    description="Exchange an identity provider ID token for a bearer token of this service.",
)
async def login_with_identity_provider(
    login: IdentityProviderLogin,
    identity_provider: Annotated[IdentityProviderValidator, Depends(get_identity_provider)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
    user_repo: Annotated[UserRepo, Depends(get_user_repo)],
):
    subject, ok = await identity_provider.validate_token(login.id_token)

    if not ok or subject is None:
        raise http_exceptions.UnauthorizedException(
            detail="Invalid ID token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not await user_repo.exists_by_email(subject):
        raise http_exceptions.ConflictException(detail="User does not exist")

    logger.info(f"User '{subject}' logged in via identity provider")

    return _token_response(token_service, subject)

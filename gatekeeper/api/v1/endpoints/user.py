from typing import Annotated

from fastapi import APIRouter, Depends, status

from gatekeeper.api.v1.deps.auth import get_current_subject, get_user_repo, require_admin
from gatekeeper.api.v1.deps.rate_limit import rate_limit_user
from gatekeeper.core import responses
from gatekeeper.repos import UserRepo
from gatekeeper.schemas import SubjectResponse

router = APIRouter()


@router.get(
    "/me",
    response_model=SubjectResponse,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": responses.UnauthorizedResponse},
        status.HTTP_429_TOO_MANY_REQUESTS: {
            "model": responses.TooManyRequestsResponse,
            "headers": {
                "X-RateLimit-Limit": {
                    "description": "Maximum requests allowed per subject",
                    "schema": {"type": "integer", "example": 300},
                },
                "X-RateLimit-Remaining": {
                    "description": "Requests remaining in current window",
                    "schema": {"type": "integer", "example": 299},
                },
                "X-RateLimit-Reset": {
                    "description": "Unix timestamp when limit resets",
                    "schema": {"type": "integer", "example": 1764425820},
                },
            },
        },
    },
    dependencies=[Depends(rate_limit_user)],
    summary="Read current user",
    description="Get the subject of the currently authenticated caller.",
)
async def read_current_user(
    subject: Annotated[str, Depends(get_current_subject)],
    user_repo: Annotated[UserRepo, Depends(get_user_repo)],
):
    return SubjectResponse(subject=subject, is_admin=await user_repo.is_admin(subject))


@router.get(
    "/admin",
    response_model=SubjectResponse,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": responses.UnauthorizedResponse},
        status.HTTP_403_FORBIDDEN: {"model": responses.ForbiddenResponse},
    },
    summary="Check administrator access",
)
async def read_admin(subject: Annotated[str, Depends(require_admin)]):
    return SubjectResponse(subject=subject, is_admin=True)

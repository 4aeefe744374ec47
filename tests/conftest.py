import os

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-bytes-long")
os.environ.setdefault("JWT_ISSUER", "https://gatekeeper.test")
os.environ.setdefault("JWT_AUDIENCE", "gatekeeper-clients")
os.environ.setdefault("JWT_LIFETIME", "01:00:00")
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "1000")
os.environ.setdefault("RATE_LIMIT_WINDOW", "00:01:00")
os.environ.setdefault("IDP_AUDIENCES", "com.example.app")

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from faker import Faker  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from gatekeeper.main import create_app  # noqa: E402
from gatekeeper.repos import InMemoryUserRepo  # noqa: E402
from gatekeeper.schemas import Token  # noqa: E402
from gatekeeper.services.token import TokenService  # noqa: E402
from tests.utils import ADMIN_EMAIL, CLIENT_IP  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def faker() -> Faker:
    """Create a Faker instance for generating test data."""
    return Faker()


@pytest.fixture
def user_email() -> str:
    return "alice@example.com"


@pytest.fixture
def user_repo(user_email: str) -> InMemoryUserRepo:
    """User store with one regular user and one administrator."""
    return InMemoryUserRepo(users=[user_email], admins=[ADMIN_EMAIL])


@pytest.fixture
def test_app(user_repo: InMemoryUserRepo) -> FastAPI:
    """Fresh application, so request counters never leak between tests."""
    return create_app(user_repo=user_repo)


@pytest.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing, connecting from CLIENT_IP."""
    transport = ASGITransport(app=test_app, client=(CLIENT_IP, 51234))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def token_service(test_app: FastAPI) -> TokenService:
    return test_app.state.token_service


@pytest.fixture
def token(token_service: TokenService, user_email: str) -> Token:
    """Create a test token."""
    return Token(
        access_token=token_service.issue_token(user_email),
        expires_in=int(token_service.lifetime.total_seconds()),
    )


@pytest.fixture
def admin_token(token_service: TokenService) -> Token:
    return Token(
        access_token=token_service.issue_token(ADMIN_EMAIL),
        expires_in=int(token_service.lifetime.total_seconds()),
    )

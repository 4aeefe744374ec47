from fastapi import FastAPI
from fastapi.concurrency import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from gatekeeper.api.routes import api_router
from gatekeeper.core.config import Environment, settings
from gatekeeper.core.logger import configure_uvicorn_logging, setup_logger, shutdown_logger
from gatekeeper.middleware.logging import LoggingMiddleware
from gatekeeper.middleware.rate_limit import RateLimitMiddleware
from gatekeeper.repos import InMemoryUserRepo, UserRepo
from gatekeeper.services.cache import ExpiringCounterStore, RateGovernor, settings_policy
from gatekeeper.services.token import IdentityProviderValidator, TokenService


async def _shutdown_dependencies(app: FastAPI):
    """Shutdown essential dependencies gracefully"""

    await app.state.identity_provider.close()
    logger.success("Identity provider client closed.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""

    setup_logger()
    configure_uvicorn_logging()

    logger.info(
        f"Rate limit: {settings.rate_limit_max_requests} requests per "
        f"{settings.rate_limit_window} (enabled: {settings.rate_limit_enabled})"
    )

    yield  # Application runs here

    logger.info("Cleaning up resources...")
    await _shutdown_dependencies(app)
    logger.success("Resources cleaned up.")
    shutdown_logger()


ALLOWED_ENVIRONMENTS = {Environment.LOCAL, Environment.DEV, Environment.STG}


def create_app(
    user_repo: UserRepo | None = None,
    identity_provider: IdentityProviderValidator | None = None,
) -> FastAPI:
    """
    Build the application with its token service, rate governor and
    identity provider validator attached to `app.state`.

    Raises:
        TokenConfigurationError: If the token settings are unusable
    """
    docs_enabled = settings.current_environment in ALLOWED_ENVIRONMENTS

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        description=settings.app_description,
        openapi_url="/openapi.json" if docs_enabled else None,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        lifespan=lifespan,
        generate_unique_id_function=lambda route: f"{route.tags[0]}-{route.name}",
    )

    counter_store = ExpiringCounterStore(max_entries=settings.rate_limit_max_entries)
    rate_governor = RateGovernor(counter_store, settings_policy(settings))

    app.state.token_service = TokenService.from_settings(settings)
    app.state.counter_store = counter_store
    app.state.rate_governor = rate_governor
    app.state.identity_provider = identity_provider or IdentityProviderValidator.from_settings(
        settings
    )
    app.state.user_repo = user_repo if user_repo is not None else InMemoryUserRepo()

    # Set CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Set logging middleware
    app.add_middleware(LoggingMiddleware)

    # Registered last so it runs first: every request, preflights included, is counted
    app.add_middleware(RateLimitMiddleware, governor=rate_governor, app_settings=settings)

    # Include API router
    app.include_router(api_router)

    return app


app = create_app()

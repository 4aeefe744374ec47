import logging
import os
import tomllib
from datetime import timedelta
from enum import StrEnum
from pathlib import Path
from typing import Annotated

from pydantic import BeforeValidator, PositiveInt, computed_field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from gatekeeper.core.utils import parse_duration, split_csv

PROJECT_DIR = Path(__file__).parent.parent.parent
PROJECT_TOML_PATH = PROJECT_DIR / "pyproject.toml"

with open(PROJECT_TOML_PATH, "rb") as f:
    PYPROJECT_CONTENT = tomllib.load(f)["project"]


class Environment(StrEnum):
    LOCAL = "local"
    DEV = "dev"
    STG = "stg"
    PRD = "prd"


def convert_app_name(s: str) -> str:
    return " ".join(word.capitalize() for word in s.split("-"))


Duration = Annotated[timedelta, BeforeValidator(parse_duration)]
CsvList = Annotated[list[str], NoDecode, BeforeValidator(split_csv)]


class Settings(BaseSettings):
    """
    Application settings.

    These parameters can be configured
    with environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=False,
        extra="ignore",
    )

    # App variables
    app_name: str = PYPROJECT_CONTENT["name"]
    app_title: str = os.getenv("APP_TITLE", convert_app_name(app_name))
    app_version: str = PYPROJECT_CONTENT["version"]
    app_description: str = PYPROJECT_CONTENT["description"]

    backend_host: str = "127.0.0.1"
    backend_port: int = 8000
    cors_origins: str = ""

    # Number of workers for uvicorn
    workers_count: int = 1

    # Enable uvicorn reloading
    reload_uvicorn: bool = False

    # Current working environment
    current_environment: Environment = Environment.LOCAL
    log_level: int = logging.INFO
    debug: bool = False

    # Token settings, all required
    jwt_secret_key: str
    jwt_issuer: str
    jwt_audience: str
    jwt_lifetime: Duration  # e.g. "01:00:00"
    jwt_algorithm: str = "HS256"

    # Rate limiting settings (requests per sliding window)
    rate_limit_enabled: bool = True
    rate_limit_max_requests: PositiveInt
    rate_limit_window: Duration  # e.g. "00:01:00"
    rate_limit_user: PositiveInt = 300  # Per-subject quota for authenticated endpoints
    rate_limit_max_entries: int | None = None  # None keeps every key until it expires
    trust_forwarded_headers: bool = False

    # External identity provider (secondary token path)
    idp_jwks_url: str = "https://appleid.apple.com/auth/keys"
    idp_issuer: str = "https://appleid.apple.com"
    idp_audiences: CsvList = []
    idp_algorithms: CsvList = ["ES256"]
    idp_subject_claim: str = "email"
    idp_jwks_cache_ttl: Duration = timedelta(hours=1)

    @field_validator("jwt_lifetime", "rate_limit_window", "idp_jwks_cache_ttl")
    @classmethod
    def check_positive_duration(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            raise ValueError("Duration must be positive")

        return v

    @computed_field
    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS origins from a comma-separated string.
        """
        return split_csv(self.cors_origins)

    @computed_field
    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window.total_seconds()


settings = Settings()  # type: ignore

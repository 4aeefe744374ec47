import time
from datetime import timedelta
from typing import Any, Callable

from loguru import logger

from gatekeeper.core.config import Settings
from gatekeeper.core.exceptions.token import TokenConfigurationError, TokenValidationError
from gatekeeper.core.utils import parse_duration
from gatekeeper.services.token.codec import ClaimsCodec

# HMAC-SHA256 key material shorter than the digest size weakens the signature
MIN_SECRET_KEY_BYTES = 32


class TokenService:
    """
    Issues and validates the service's own bearer tokens.

    The signing key is derived once, at construction, from the UTF-8 bytes of
    the configured secret. There is no key rotation: changing the secret
    invalidates every token issued before the change.

    Validation collapses every failure to `(None, False)`; the specific reason
    is logged and remains available through `inspect_token`.

    Example:
        ```python
        token_service = TokenService.from_settings(settings)

        token = token_service.issue_token("alice@example.com")
        subject, ok = token_service.validate_token(token)
        ```
    """

    def __init__(
        self,
        secret_key: str,
        issuer: str,
        audience: str,
        lifetime: timedelta | str | int | float,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ):
        missing = [
            name
            for name, value in (
                ("secret_key", secret_key),
                ("issuer", issuer),
                ("audience", audience),
                ("lifetime", lifetime),
            )
            if value is None or value == ""
        ]
        if missing:
            raise TokenConfigurationError(f"Missing token configuration: {', '.join(missing)}")

        try:
            lifetime = parse_duration(lifetime)
        except ValueError as e:
            raise TokenConfigurationError(f"Unparsable token lifetime: {lifetime!r}", e)

        if lifetime <= timedelta(0):
            raise TokenConfigurationError(f"Token lifetime must be positive, got {lifetime}")

        if not algorithm.upper().startswith("HS"):
            raise TokenConfigurationError(
                f"Only HMAC algorithms are supported for issued tokens, got {algorithm}"
            )

        signing_key = secret_key.encode("utf-8")
        if len(signing_key) < MIN_SECRET_KEY_BYTES:
            logger.warning(
                f"Token secret key is {len(signing_key)} bytes, "
                f"at least {MIN_SECRET_KEY_BYTES} bytes are recommended"
            )

        self.issuer = issuer
        self.audience = audience
        self.lifetime = lifetime
        self._clock = clock
        self._codec = ClaimsCodec(signing_key, algorithm=algorithm, clock=clock)

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "TokenService":
        return cls(
            secret_key=app_settings.jwt_secret_key,
            issuer=app_settings.jwt_issuer,
            audience=app_settings.jwt_audience,
            lifetime=app_settings.jwt_lifetime,
            algorithm=app_settings.jwt_algorithm,
        )

    def issue_token(self, subject: str) -> str:
        """
        Issue a signed token for a subject

        Args:
            subject: Principal the token is issued to (user e-mail)

        Returns:
            Compact signed token, valid for the configured lifetime
        """
        if not isinstance(subject, str) or not subject:
            raise ValueError("Token subject must be a non-empty string")

        # Whole seconds, matching the iat claim the lifetime is measured from
        issued_at = int(self._clock())
        token = self._codec.encode(
            {"sub": subject, "iss": self.issuer, "aud": self.audience},
            expires_at=issued_at + self.lifetime.total_seconds(),
            issued_at=issued_at,
        )
        logger.debug(f"Issued token for subject {subject}")

        return token

    def validate_token(self, token: str | None) -> tuple[str | None, bool]:
        """
        Validate a bearer token and extract its subject

        Args:
            token: Compact token string, None when no credential was presented

        Returns:
            (subject, True) for a valid token, (None, False) otherwise
        """
        if not token:
            logger.info("Token validation failed: no token presented")
            return None, False

        try:
            claims = self._codec.verify(token, self.issuer, self.audience)
        except TokenValidationError as e:
            logger.info(f"Token validation failed: {e.message}")
            return None, False
        except Exception as e:
            logger.warning(f"Unexpected error during token validation: {e}")
            return None, False

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            logger.info("Token validation failed: subject claim is missing")
            return None, False

        logger.info(f"Token validated for subject {subject}")
        return subject, True

    def inspect_token(self, token: str) -> dict[str, Any]:
        """
        Verify a token and return its claims, raising the specific
        TokenValidationError on failure. For diagnostics, not request handling.
        """
        return self._codec.verify(token, self.issuer, self.audience)

    def decode_unverified(self, token: str) -> dict[str, Any]:
        """Claims of a token without any verification."""
        return self._codec.decode(token)

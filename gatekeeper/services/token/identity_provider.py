import time
from typing import Any, Callable, Sequence

import anyio
import httpx
from jose import jwt
from jose.exceptions import JWTError
from loguru import logger

from gatekeeper.core.config import Settings
from gatekeeper.core.exceptions.token import (
    AudienceMismatchError,
    IssuerMismatchError,
    KeySetUnavailableError,
    MalformedTokenError,
    SignatureInvalidError,
    TokenExpiredError,
    TokenNotYetValidError,
    TokenValidationError,
)

# Minimum seconds between forced key set refreshes, and the wait after a failed fetch
MIN_REFRESH_INTERVAL = 60.0


class IdentityProviderValidator:
    """
    Validates ID tokens issued by an external identity provider (e.g. Sign in
    with Apple) against the provider's published JSON Web Key Set.

    Runs alongside TokenService and shares only its result contract,
    `validate_token(token) -> (subject, ok)`. Tokens are asymmetrically signed
    (ES256 by default); the key is picked by the token's `kid` header.

    The key set is cached for `cache_ttl` seconds. An unknown `kid` forces one
    refresh (providers rotate keys), at most every MIN_REFRESH_INTERVAL
    seconds. When a fetch fails the endpoint is not asked again for
    MIN_REFRESH_INTERVAL seconds; the last known key set (if any) keeps being
    used until then.
    """

    def __init__(
        self,
        jwks_url: str,
        issuer: str,
        audiences: Sequence[str],
        algorithms: Sequence[str] = ("ES256",),
        subject_claim: str = "email",
        cache_ttl: float = 3600.0,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.jwks_url = jwks_url
        self.issuer = issuer
        self.audiences = tuple(audiences)
        self.algorithms = tuple(algorithms)
        self.subject_claim = subject_claim
        self.cache_ttl = cache_ttl

        self._client = http_client
        self._owns_client = http_client is None
        self._clock = clock

        self._keys: list[dict[str, Any]] | None = None
        self._fetched_at: float = 0.0
        self._retry_after: float = 0.0
        self._lock = anyio.Lock()

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "IdentityProviderValidator":
        return cls(
            jwks_url=app_settings.idp_jwks_url,
            issuer=app_settings.idp_issuer,
            audiences=app_settings.idp_audiences,
            algorithms=app_settings.idp_algorithms,
            subject_claim=app_settings.idp_subject_claim,
            cache_ttl=app_settings.idp_jwks_cache_ttl.total_seconds(),
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0)
        return self._client

    async def get_key_set(self, force_refresh: bool = False) -> list[dict[str, Any]]:
        """
        Get the provider's signing keys from cache or from the JWKS endpoint.

        Raises:
            KeySetUnavailableError: If nothing is cached and the endpoint failed, now or
                within the last MIN_REFRESH_INTERVAL seconds
        """
        if not force_refresh and not self._needs_refresh():
            return self._cached_keys()

        async with self._lock:
            # Another task may have refreshed (or failed to) while we waited
            if not force_refresh and not self._needs_refresh():
                return self._cached_keys()

            try:
                response = await self._get_client().get(self.jwks_url)
                response.raise_for_status()
                keys = response.json().get("keys")

                if not isinstance(keys, list):
                    raise ValueError("JWKS document has no 'keys' list")

            except (httpx.HTTPError, ValueError, AttributeError) as e:
                self._retry_after = self._clock() + MIN_REFRESH_INTERVAL

                if self._keys is not None:
                    logger.warning(
                        f"Failed to refresh JWKS from {self.jwks_url}, using stale keys: {e}"
                    )
                    return self._keys

                logger.error(f"Failed to fetch JWKS from {self.jwks_url}: {e}")
                raise KeySetUnavailableError(exception=e)

            self._keys = keys
            self._fetched_at = self._clock()
            self._retry_after = 0.0
            logger.info(f"JWKS refreshed from {self.jwks_url} ({len(keys)} keys)")

            return keys

    def _needs_refresh(self) -> bool:
        now = self._clock()
        if self._keys is not None and now - self._fetched_at < self.cache_ttl:
            return False

        return now >= self._retry_after

    def _cached_keys(self) -> list[dict[str, Any]]:
        if self._keys is None:
            raise KeySetUnavailableError(
                f"JWKS fetch from {self.jwks_url} failed recently, not retrying yet"
            )

        return self._keys

    async def get_signing_key(self, kid: str) -> dict[str, Any] | None:
        """Find the published key for a key id, refreshing once on a miss."""
        for key in await self.get_key_set():
            if key.get("kid") == kid:
                return key

        now = self._clock()
        if now - self._fetched_at < MIN_REFRESH_INTERVAL or now < self._retry_after:
            return None

        for key in await self.get_key_set(force_refresh=True):
            if key.get("kid") == kid:
                return key

        return None

    async def verify(self, token: str) -> dict[str, Any]:
        """
        Verify a provider ID token and return its claims.

        Raises:
            TokenValidationError: Subclass naming the failed check
            KeySetUnavailableError: If the provider's keys cannot be fetched
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise MalformedTokenError(exception=e)

        algorithm = header.get("alg")
        if algorithm not in self.algorithms:
            raise SignatureInvalidError(f"Signing algorithm {algorithm!r} is not accepted")

        kid = header.get("kid")
        if not kid:
            raise MalformedTokenError("Token header has no key id")

        key = await self.get_signing_key(kid)
        if key is None:
            raise SignatureInvalidError(f"No published key matches key id {kid!r}")

        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=list(self.algorithms),
                options={
                    "verify_aud": False,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_at_hash": False,
                },
            )
        except JWTError as e:
            raise SignatureInvalidError(exception=e)

        now = self._clock()
        expires_at = claims.get("exp")
        issued_at = claims.get("iat")

        if not isinstance(expires_at, (int, float)):
            raise MalformedTokenError("Token has no expiry")
        if now >= expires_at:
            raise TokenExpiredError()
        if isinstance(issued_at, (int, float)) and now < issued_at:
            raise TokenNotYetValidError()

        if claims.get("iss") != self.issuer:
            raise IssuerMismatchError()

        audience = claims.get("aud")
        token_audiences = audience if isinstance(audience, list) else [audience]
        if not any(aud in self.audiences for aud in token_audiences):
            raise AudienceMismatchError()

        return claims

    async def validate_token(self, token: str | None) -> tuple[str | None, bool]:
        """
        Validate a provider ID token

        Args:
            token: Compact ID token, None when none was presented

        Returns:
            (subject, True) for a valid token, (None, False) otherwise.
            The subject is read from `subject_claim` (the e-mail by default).
        """
        if not token:
            return None, False

        try:
            claims = await self.verify(token)
        except TokenValidationError as e:
            logger.info(f"Identity provider token rejected: {e.message}")
            return None, False
        except KeySetUnavailableError as e:
            logger.warning(f"Identity provider token not checked: {e.message}")
            return None, False

        subject = claims.get(self.subject_claim)
        if not isinstance(subject, str) or not subject:
            logger.info(f"Identity provider token has no '{self.subject_claim}' claim")
            return None, False

        logger.info(f"Identity provider token validated for subject {subject}")
        return subject, True

    async def close(self):
        """Close the HTTP client if this validator created it"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

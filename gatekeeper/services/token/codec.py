import math
import time
from datetime import datetime
from typing import Any, Callable, Mapping

from jose import jwt
from jose.exceptions import JWTError

from gatekeeper.core.exceptions.token import (
    AudienceMismatchError,
    IssuerMismatchError,
    MalformedTokenError,
    SignatureInvalidError,
    TokenExpiredError,
    TokenNotYetValidError,
)
from gatekeeper.core.types import JWTPayloadDict

# Registered claims are checked here, in a fixed order, so each failure keeps its own type
_SIGNATURE_ONLY = {
    "verify_signature": True,
    "verify_aud": False,
    "verify_iss": False,
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_sub": False,
    "verify_jti": False,
    "verify_at_hash": False,
}


def _to_timestamp(value: datetime | int | float, round_up: bool = False) -> int:
    seconds = value.timestamp() if isinstance(value, datetime) else value

    return math.ceil(seconds) if round_up else int(seconds)


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ClaimsCodec:
    """
    Compact JWS (JWT) codec for the primary, symmetrically signed tokens.

    The key material and algorithm are fixed at construction. `decode` parses
    a token without trusting it; `verify` checks, in order, structure,
    signature, lifetime, issuer and audience and raises a distinct
    TokenValidationError subclass for each failure.

    Lifetime is exclusive at expiry with zero clock skew: a token is live
    while issued_at <= now < expires_at.
    """

    def __init__(
        self,
        signing_key: bytes | str,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ):
        self._signing_key = signing_key
        self.algorithm = algorithm
        self._clock = clock

    def encode(
        self,
        claims: Mapping[str, Any],
        expires_at: datetime | int | float,
        issued_at: datetime | int | float | None = None,
    ) -> str:
        """
        Sign a claim set into a compact token string.

        Args:
            claims: Claims to embed (sub, iss, aud)
            expires_at: Expiry instant (datetime or UNIX seconds)
            issued_at: Issue instant, defaults to the codec clock

        Returns:
            Compact token string "header.payload.signature"
        """
        payload: JWTPayloadDict = dict(claims)  # type: ignore[assignment]
        payload["iat"] = _to_timestamp(issued_at if issued_at is not None else self._clock())
        # iat rounds down and exp rounds up, so a live lifetime never shrinks to zero
        payload["exp"] = _to_timestamp(expires_at, round_up=True)

        return jwt.encode(payload, self._signing_key, algorithm=self.algorithm)

    def decode(self, token: str) -> dict[str, Any]:
        """
        Parse a token's claims WITHOUT verifying its signature.
        Only for diagnostics and error reporting.

        Raises:
            MalformedTokenError: If the structure or payload cannot be parsed
        """
        if not isinstance(token, str) or token.count(".") != 2:
            raise MalformedTokenError("Token is not a compact JWS string")

        try:
            jwt.get_unverified_header(token)
            return jwt.get_unverified_claims(token)
        except JWTError as e:
            raise MalformedTokenError(exception=e)

    def verify(self, token: str, expected_issuer: str, expected_audience: str) -> dict[str, Any]:
        """
        Verify a token and return its claims.

        Raises:
            MalformedTokenError: Unparsable structure or missing lifetime claims
            SignatureInvalidError: Signature or algorithm does not match the key
            TokenExpiredError: now >= exp
            TokenNotYetValidError: now < iat
            IssuerMismatchError: iss differs from expected_issuer
            AudienceMismatchError: aud differs from expected_audience
        """
        self.decode(token)

        try:
            claims = jwt.decode(
                token,
                self._signing_key,
                algorithms=[self.algorithm],
                options=_SIGNATURE_ONLY,
            )
        except JWTError as e:
            raise SignatureInvalidError(exception=e)

        expires_at = claims.get("exp")
        issued_at = claims.get("iat")

        if not _is_timestamp(expires_at) or not _is_timestamp(issued_at):
            raise MalformedTokenError("Token lifetime claims are missing or not numeric")

        now = self._clock()

        if now >= expires_at:
            raise TokenExpiredError()

        if now < issued_at:
            raise TokenNotYetValidError()

        if claims.get("iss") != expected_issuer:
            raise IssuerMismatchError()

        audience = claims.get("aud")
        if isinstance(audience, list):
            audience_matches = expected_audience in audience
        else:
            audience_matches = audience == expected_audience

        if not audience_matches:
            raise AudienceMismatchError()

        return claims

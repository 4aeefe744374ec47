from typing import TypedDict


class JWTPayloadDict(TypedDict, total=False):
    """JWT payload structure for encoding/decoding."""

    sub: str  # Subject (user e-mail)
    iss: str  # Issuer
    aud: str | list[str]  # Audience
    exp: int  # Expiration timestamp
    iat: int  # Issued at timestamp


class RateLimitInfoDict(TypedDict):
    """Rate limit information for headers."""

    limit: int
    remaining: int
    reset_time: int

import time
from typing import Any

import httpx
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from jose import jwk, jwt

CLIENT_IP = "203.0.113.5"
ADMIN_EMAIL = "admin@example.com"

IDP_ISSUER = "https://appleid.apple.com"
IDP_AUDIENCE = "com.example.app"
IDP_JWKS_URL = "https://idp.test/auth/keys"


class FakeClock:
    """Manually advanced clock for time-dependent components"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class IdentityProviderKey:
    """
    EC P-256 key pair posing as an identity provider signing key.
    Publishes its public half as a JWK and signs ES256 ID tokens.
    """

    def __init__(self, kid: str = "idp-key-1"):
        self.kid = kid
        private_key = ec.generate_private_key(ec.SECP256R1())

        self.private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

        self.public_jwk = jwk.construct(public_pem, algorithm="ES256").to_dict()
        self.public_jwk["kid"] = kid
        self.public_jwk["use"] = "sig"

    def sign(self, **overrides: Any) -> str:
        """Sign an ID token with valid defaults; keyword arguments replace claims"""
        now = int(time.time())
        claims: dict[str, Any] = {
            "iss": IDP_ISSUER,
            "aud": IDP_AUDIENCE,
            "sub": "001234.abcdef",
            "email": "alice@example.com",
            "iat": now,
            "exp": now + 600,
        }
        claims.update(overrides)
        claims = {name: value for name, value in claims.items() if value is not None}

        return jwt.encode(claims, self.private_pem, algorithm="ES256", headers={"kid": self.kid})


def jwks_transport(*keys: IdentityProviderKey, calls: list | None = None) -> httpx.MockTransport:
    """Mock transport serving a JWKS document with the given keys"""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(200, json={"keys": [key.public_jwk for key in keys]})

    return httpx.MockTransport(handler)

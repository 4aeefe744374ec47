from .codec import ClaimsCodec
from .identity_provider import IdentityProviderValidator
from .service import TokenService

__all__ = ["ClaimsCodec", "IdentityProviderValidator", "TokenService"]

from .base import BaseSchema
from .health_check import HealthCheckResponse
from .token import IdentityProviderLogin, SubjectResponse, Token

__all__ = [
    "BaseSchema",
    "HealthCheckResponse",
    "IdentityProviderLogin",
    "SubjectResponse",
    "Token",
]

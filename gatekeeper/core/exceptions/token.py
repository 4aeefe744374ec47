from gatekeeper.core.exceptions.base import AppException, CustomException


class TokenConfigurationError(CustomException):
    """
    Token service cannot be built from the given configuration.
    Raised at startup, never per request.
    """


class TokenValidationError(AppException):
    """Base for every reason a presented token is rejected."""

    def __init__(self, message: str = "Invalid token", exception: Exception | None = None):
        super().__init__(message, exception)


class MalformedTokenError(TokenValidationError):
    """Token structure, header or payload cannot be parsed."""

    def __init__(self, message: str = "Malformed token", exception: Exception | None = None):
        super().__init__(message, exception)


class SignatureInvalidError(TokenValidationError):
    """Signature does not verify against the expected key."""

    def __init__(
        self, message: str = "Token signature is invalid", exception: Exception | None = None
    ):
        super().__init__(message, exception)


class TokenExpiredError(TokenValidationError):
    """Current time is at or past the expiry instant."""

    def __init__(self, message: str = "Token has expired", exception: Exception | None = None):
        super().__init__(message, exception)


class TokenNotYetValidError(TokenValidationError):
    """Current time is before the issued-at instant."""

    def __init__(
        self, message: str = "Token is not yet valid", exception: Exception | None = None
    ):
        super().__init__(message, exception)


class IssuerMismatchError(TokenValidationError):
    def __init__(
        self, message: str = "Token issuer does not match", exception: Exception | None = None
    ):
        super().__init__(message, exception)


class AudienceMismatchError(TokenValidationError):
    def __init__(
        self, message: str = "Token audience does not match", exception: Exception | None = None
    ):
        super().__init__(message, exception)


class KeySetUnavailableError(AppException):
    """The identity provider's published key set could not be fetched."""

    def __init__(
        self,
        message: str = "Identity provider key set unavailable",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)

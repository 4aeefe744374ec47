from gatekeeper.schemas.base import BaseSchema


class Token(BaseSchema):
    """Token response schema"""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int

    def __str__(self):
        return self.token_type + " " + self.access_token


class IdentityProviderLogin(BaseSchema):
    """ID token issued by the external identity provider"""

    id_token: str


class SubjectResponse(BaseSchema):
    """Principal carried by a validated token"""

    subject: str
    is_admin: bool | None = None

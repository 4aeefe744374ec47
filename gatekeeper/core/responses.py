from pydantic import BaseModel


class ForbiddenResponse(BaseModel):
    detail: str = "Forbidden"


class TooManyRequestsResponse(BaseModel):
    detail: str = "Too many requests"


class UnauthorizedResponse(BaseModel):
    detail: str = "Unauthorized"


class ConflictResponse(BaseModel):
    detail: str = "Conflict"

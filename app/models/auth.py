"""Pydantic models for the authenticated caller and error envelopes."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Actor(BaseModel):
    """The verified identity behind a request."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, frozen=True)

    uid: str = Field(..., description="User ID (Firebase UID)")
    email: str = Field("", description="Email address from the token")
    is_admin: bool = Field(False, description="Whether the caller has administrative rights")


class ErrorDetail(BaseModel):
    """Error detail with machine-readable code and human-readable message."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")


class ApiErrorResponse(BaseModel):
    """Error envelope returned by every endpoint."""

    error: ErrorDetail

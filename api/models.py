"""
API request and response models for InviteGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request fields are all optional on purpose: a missing username must reach the
authority so it can answer with the same error a wrong password gets, rather
than a framework-generated validation error that reveals which field was
absent.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth?action=login."""

    model_config = ConfigDict(extra="ignore")

    username: Optional[str] = None
    password: Optional[str] = None
    fingerprint: Any = None


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth?action=register.

    invitationCode is the wire name; invitation_code is accepted too.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    username: Optional[str] = None
    password: Optional[str] = None
    invitation_code: Optional[str] = Field(default=None, alias="invitationCode")
    fingerprint: Any = None


class LogoutRequest(BaseModel):
    """Request body for POST /api/v1/auth?action=logout."""

    model_config = ConfigDict(extra="ignore")

    token: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AuthResponse(BaseModel):
    """Success envelope. Unset fields are dropped from the JSON body."""

    success: bool = True
    token: Optional[str] = None
    user: Optional[dict[str, Any]] = None
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)

"""
api/routes/v1/auth.py -- Action-dispatch authentication endpoint.

Routes:
  POST    /api/v1/auth?action=login     -- username/password login; returns token + user
  POST    /api/v1/auth?action=register  -- create account (optional invitation code)
  POST    /api/v1/auth?action=logout    -- audit-only logout; always succeeds
  POST    /api/v1/auth?action=check     -- resolve Authorization: Bearer <token> to a user
  OPTIONS /api/v1/auth                  -- 200, empty (CORS preflights are answered by middleware)
  any other method                      -- 405

Errors are raised as core.errors exceptions and rendered as {"error": message}
by the handler in api/main.py, so every failure shares one envelope.

Security:
  Cache-Control: no-store on every response that may carry a token.
  Logout does not invalidate the token; tokens are bearer credentials that
  stay valid until they expire.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from api.models import AuthResponse, LoginRequest, LogoutRequest, RegisterRequest
from auth.authority import CredentialAuthority
from auth.dependencies import get_authority, request_context
from core.errors import InvalidAction, ValidationError

router = APIRouter()


# Stands in for a body that is present but is not JSON.
_MALFORMED = object()


async def json_body(request: Request) -> Any:
    """Decoded JSON body, None when empty, _MALFORMED when undecodable.

    Login and register answer 400 for anything but an object. Logout treats a
    bad body as a missing token. Check never looks at the body.
    """
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return _MALFORMED


def _parse(model: type[BaseModel], body: Any) -> Any:
    if body is not None and not isinstance(body, dict):
        raise ValidationError("Invalid request body")
    try:
        return model.model_validate(body or {})
    except PydanticValidationError as exc:
        raise ValidationError("Invalid request body") from exc


def _respond(payload: AuthResponse) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=payload.model_dump(exclude_none=True))
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth", response_model=AuthResponse)
def auth_action(
    request: Request,
    action: Optional[str] = Query(default=None),
    body: Any = Depends(json_body),
    authority: CredentialAuthority = Depends(get_authority),
) -> JSONResponse:
    """Dispatch on ?action=. Runs in the threadpool: the store does blocking file I/O."""
    if action == "login":
        req = _parse(LoginRequest, body)
        session = authority.login(
            req.username,
            req.password,
            fingerprint=req.fingerprint,
            context=request_context(request),
        )
        return _respond(AuthResponse(token=session.token, user=session.user, message="Login successful"))

    if action == "register":
        req = _parse(RegisterRequest, body)
        session = authority.register(
            req.username,
            req.password,
            invitation_code=req.invitation_code,
            fingerprint=req.fingerprint,
            context=request_context(request),
        )
        return _respond(AuthResponse(token=session.token, user=session.user, message="Registration successful"))

    if action == "logout":
        # Logout cannot fail from the caller's side: a malformed or non-object
        # body is treated the same as a missing token.
        token = None
        if isinstance(body, dict):
            try:
                token = LogoutRequest.model_validate(body).token
            except PydanticValidationError:
                token = None
        authority.logout(token)
        return _respond(AuthResponse(message="Logged out"))

    if action == "check":
        user = authority.check_auth(request.headers.get("Authorization"))
        return _respond(AuthResponse(user=user))

    raise InvalidAction()


@router.options("/auth", include_in_schema=False)
async def auth_options() -> Response:
    return Response(status_code=200)


@router.api_route("/auth", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def auth_method_not_allowed() -> JSONResponse:
    return JSONResponse(
        status_code=405,
        content={"error": "Method not allowed"},
        headers={"Allow": "POST, OPTIONS"},
    )

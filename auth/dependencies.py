"""
auth/dependencies.py -- FastAPI Depends() helpers for the auth routes.

get_authority() hands route handlers the CredentialAuthority built in the
application lifespan, so routes never construct stores or read secrets.

request_context() collects the caller details written to the audit trail.
X-Forwarded-For is honoured (first hop) because the service normally runs
behind a reverse proxy; without it the socket peer address is used.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.authority import CredentialAuthority
from auth.models import RequestContext


def get_authority(request: Request) -> CredentialAuthority:
    return request.app.state.authority


def request_context(request: Request) -> RequestContext:
    forwarded = request.headers.get("X-Forwarded-For", "")
    ip = forwarded.split(",")[0].strip() if forwarded else None
    if not ip:
        ip = request.client.host if request.client else None
    return RequestContext(ip=ip, user_agent=request.headers.get("User-Agent"))

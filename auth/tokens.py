"""
auth/tokens.py -- Password hashing and signed session tokens.

Security design decisions:
  Passwords: SHA-256 over (password || PASSWORD_SALT), hex encoded. The salt
       is process-wide, not per-user, so identical passwords produce identical
       hashes. This keeps hashes compatible with existing data files; it is a
       known limitation, not a recommendation. Comparison uses
       hmac.compare_digest so verification time does not depend on how many
       leading characters match.

  Tokens: a minimal signed-token scheme, not a general JWT implementation.
       Explicit steps:
         1. build_claims()  -- {userId, username, userType, exp}
         2. encode_claims() -- canonical JSON (sorted keys, compact separators)
         3. sign_claims()   -- python-jose JWS, HS256 over header.payload
         4. verify_token()  -- segment count, constant-time signature check
                               (jose), JSON payload, finite numeric exp >= now
       There is no algorithm negotiation (only HS256 is accepted), no key
       rotation, and no revocation list: a token stays valid until exp.

  Secrets are passed in explicitly. The authority receives them once from
  core.config at startup; nothing here reads configuration.

Layer rule: no imports from api/ or records/.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import math
import time
from typing import Any

from jose import jws
from jose.exceptions import JWSError

ALGORITHM = "HS256"

_REQUIRED_CLAIMS = ("userId", "username", "exp")


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, salt: str) -> str:
    """Return sha256_hex(plain + salt). Deterministic for a given salt."""
    return hashlib.sha256((plain + salt).encode("utf-8")).hexdigest()


def verify_password(plain: str, hashed: str, salt: str) -> bool:
    """Return True if plain hashes to hashed under salt."""
    if not isinstance(plain, str) or not isinstance(hashed, str):
        return False
    return hmac.compare_digest(hash_password(plain, salt).encode("utf-8"), hashed.encode("utf-8"))


# Verified against when the username does not exist, so the unknown-user path
# does the same work as the wrong-password path.
DUMMY_HASH: str = hash_password("invitegate_timing_dummy", "")


# ---------------------------------------------------------------------------
# Token issue / verify
# ---------------------------------------------------------------------------


def build_claims(user_id: str, username: str, user_type: str, expire_seconds: int, now: float | None = None) -> dict:
    issued = int(time.time() if now is None else now)
    return {
        "userId": user_id,
        "username": username,
        "userType": user_type,
        "exp": issued + expire_seconds,
    }


def encode_claims(claims: dict[str, Any]) -> bytes:
    return json.dumps(claims, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sign_claims(claims: dict[str, Any], secret: str) -> str:
    """Return header.payload.signature for the given claims."""
    return jws.sign(encode_claims(claims), secret, algorithm=ALGORITHM)


def create_token(
    user_id: str,
    username: str,
    user_type: str,
    secret: str,
    expire_seconds: int,
    now: float | None = None,
) -> str:
    """Build, canonicalize and sign the claims for one user session."""
    return sign_claims(build_claims(user_id, username, user_type, expire_seconds, now), secret)


def verify_token(token: Any, secret: str, now: float | None = None) -> dict | None:
    """Verify a token and return its claims, or None on any failure.

    Returning None (rather than raising) keeps callers simple: the authority
    turns None into InvalidToken, logout ignores it.
    """
    if not isinstance(token, str) or token.count(".") != 2:
        return None
    try:
        payload = jws.verify(token, secret, algorithms=[ALGORITHM])
    except JWSError:
        return None
    try:
        claims = json.loads(payload)
    except ValueError:
        return None
    if not isinstance(claims, dict) or any(k not in claims for k in _REQUIRED_CLAIMS):
        return None
    exp = claims["exp"]
    if isinstance(exp, bool) or not isinstance(exp, (int, float)) or not math.isfinite(exp):
        return None
    if exp < (time.time() if now is None else now):
        return None
    return claims

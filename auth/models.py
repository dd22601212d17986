"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class + Data Mapper. The dataclasses own the domain shape with
Python names; from_record() / to_record() translate to and from the camelCase
JSON documents the record store persists. Keys the mappers do not know about
(fields written by other collaborators, such as trial-usage tracking) are kept
in `extra` so a read-modify-write cycle never drops them.

Layer rule: no imports from api/ or records/.
"""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass, field
from typing import Any

TRIAL = "trial"
REGISTERED = "registered"

# Never leaves the server. "password" is the hash key used by older data files.
SECRET_FIELDS = frozenset({"passwordHash", "password"})

_BASE36 = string.digits + string.ascii_lowercase


def _base36(n: int) -> str:
    digits = []
    while True:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
        if n == 0:
            return "".join(reversed(digits))


def new_user_id() -> str:
    """Millisecond timestamp in base36 followed by five random base36 chars."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return _base36(int(time.time() * 1000)) + suffix


@dataclass
class TrialData:
    """Trial-usage counters. Zeroed at registration, maintained elsewhere."""

    count: int
    created_at: str
    first_use: str
    last_update: str

    @classmethod
    def fresh(cls, now: str) -> TrialData:
        return cls(count=0, created_at=now, first_use=now, last_update=now)

    @classmethod
    def from_record(cls, record: Any) -> TrialData:
        record = record if isinstance(record, dict) else {}
        return cls(
            count=record.get("count", 0),
            created_at=record.get("createdAt", ""),
            first_use=record.get("firstUse", ""),
            last_update=record.get("lastUpdate", ""),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "createdAt": self.created_at,
            "firstUse": self.first_use,
            "lastUpdate": self.last_update,
        }


@dataclass
class User:
    """A registered identity.

    user_type is "trial" for accounts created without an invitation code and
    "registered" for accounts that consumed one. fingerprint is an opaque
    client-supplied value (string or object) and is omitted when unset.
    """

    id: str
    username: str
    password_hash: str
    user_type: str  # "trial" | "registered"
    registration_date: str
    last_login: str
    trial_data: TrialData
    fingerprint: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = frozenset(
        {"id", "username", "passwordHash", "userType", "registrationDate", "lastLogin", "trialData", "fingerprint"}
    )

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> User:
        return cls(
            id=record.get("id", ""),
            username=record.get("username", ""),
            password_hash=record.get("passwordHash") or record.get("password") or "",
            user_type=record.get("userType", TRIAL),
            registration_date=record.get("registrationDate", ""),
            last_login=record.get("lastLogin", ""),
            trial_data=TrialData.from_record(record.get("trialData")),
            fingerprint=record.get("fingerprint"),
            extra={k: v for k, v in record.items() if k not in cls._KNOWN and k not in SECRET_FIELDS},
        )

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "username": self.username,
            "passwordHash": self.password_hash,
            "userType": self.user_type,
            "registrationDate": self.registration_date,
            "lastLogin": self.last_login,
            "trialData": self.trial_data.to_record(),
        }
        if self.fingerprint is not None:
            record["fingerprint"] = self.fingerprint
        record.update(self.extra)
        return record

    def public(self) -> dict[str, Any]:
        """The record as returned to clients: everything except secret material."""
        return {k: v for k, v in self.to_record().items() if k not in SECRET_FIELDS}


@dataclass
class InvitationCode:
    """A single-use registration code. used flips to True exactly once."""

    code: str
    used: bool = False
    used_by: str | None = None
    used_date: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = frozenset({"code", "used", "usedBy", "usedDate"})

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> InvitationCode:
        return cls(
            code=record.get("code", ""),
            used=bool(record.get("used", False)),
            used_by=record.get("usedBy"),
            used_date=record.get("usedDate"),
            extra={k: v for k, v in record.items() if k not in cls._KNOWN},
        )

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"code": self.code, "used": self.used}
        if self.used_by is not None:
            record["usedBy"] = self.used_by
        if self.used_date is not None:
            record["usedDate"] = self.used_date
        record.update(self.extra)
        return record


@dataclass
class RequestContext:
    """Caller details supplied by the HTTP layer for the audit trail."""

    ip: str | None = None
    user_agent: str | None = None


@dataclass
class Session:
    """Result of a successful login or registration."""

    token: str
    user: dict[str, Any]

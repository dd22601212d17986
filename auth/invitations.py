"""
auth/invitations.py -- Out-of-band invitation code management.

Codes are minted by an operator (see main.py) and consumed by
CredentialAuthority.register(). Minting runs inside a store transaction on
invitations.json so a code can never be issued twice, even if two operators
mint at the same time.
"""

from __future__ import annotations

import secrets
import string

from auth.models import InvitationCode
from core.errors import StorageError
from records.store import INVITATIONS, RecordStore

CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_CODE_LENGTH = 8


def _random_code(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def create_invitations(store: RecordStore, count: int = 1, length: int = DEFAULT_CODE_LENGTH) -> list[str]:
    """Mint count fresh, unused codes and persist them. Returns the new codes."""
    if count < 1:
        raise ValueError("count must be at least 1")
    if length < 4:
        raise ValueError("length must be at least 4")

    with store.transaction(INVITATIONS) as tx:
        invitations = tx.read(INVITATIONS)
        if not isinstance(invitations, list):
            raise StorageError()
        taken = {r.get("code") for r in invitations if isinstance(r, dict)}
        created: list[str] = []
        while len(created) < count:
            code = _random_code(length)
            if code in taken:
                continue
            taken.add(code)
            created.append(code)
            invitations.append(InvitationCode(code=code).to_record())
        tx.stage(INVITATIONS, invitations)
    return created


def list_invitations(store: RecordStore, unused_only: bool = False) -> list[InvitationCode]:
    records = store.read(INVITATIONS)
    if not isinstance(records, list):
        return []
    invites = [InvitationCode.from_record(r) for r in records if isinstance(r, dict)]
    if unused_only:
        invites = [i for i in invites if not i.used]
    return invites

"""
auth/authority.py -- The credential authority: login, register, logout, check.

CredentialAuthority composes RecordStore transactions with the hashing and
token helpers in auth/tokens.py. It owns no module-level state: the store and
the secrets are injected at construction (api/main.py lifespan, the CLI, or a
test fixture).

Every operation either returns a result or raises an InviteGateError subclass
from core/errors.py. Rules worth knowing before changing anything here:

  - Unknown username and wrong password raise the same InvalidCredentials.
    The unknown path still runs a hash comparison against DUMMY_HASH.
  - Invitation consumption and user creation are one store transaction over
    users.json + invitations.json: both documents are written or neither is.
  - Logout only writes an audit entry. Tokens are bearer credentials with no
    revocation list and stay valid until they expire.
  - Audit appends happen after the transaction commits. A failed append is
    logged but does not fail the operation.
  - Responses never include the password hash (User.public()).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from auth import tokens
from auth.models import REGISTERED, TRIAL, InvitationCode, RequestContext, Session, TrialData, User, new_user_id
from core.config import SEVEN_DAYS
from core.errors import (
    CodeAlreadyUsed,
    DuplicateUser,
    InvalidCode,
    InvalidCredentials,
    InvalidToken,
    MissingToken,
    StorageError,
    UnknownUser,
    ValidationError,
)
from records.store import AUDIT_LOG, INVITATIONS, USERS, RecordStore

logger = logging.getLogger("invitegate.auth")

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6

_BEARER_PREFIX = "Bearer "


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _find_index(records: Any, key: str, value: Any) -> int | None:
    if not isinstance(records, list):
        return None
    for i, record in enumerate(records):
        if isinstance(record, dict) and record.get(key) == value:
            return i
    return None


class CredentialAuthority:
    """Issues, validates and audits session credentials.

    Usage:
        store = RecordStore("./data")
        store.initialize()
        authority = CredentialAuthority(store, secret_key=..., password_salt=...)
        session = authority.register("alice", "secret1")
        user = authority.check_auth(f"Bearer {session.token}")
    """

    def __init__(
        self,
        store: RecordStore,
        secret_key: str,
        password_salt: str,
        token_expire_seconds: int = SEVEN_DAYS,
    ) -> None:
        self.store = store
        self._secret_key = secret_key
        self._password_salt = password_salt
        self._token_expire_seconds = token_expire_seconds

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def hash_password(self, plain: str) -> str:
        return tokens.hash_password(plain, self._password_salt)

    def verify_password(self, plain: str, hashed: str) -> bool:
        return tokens.verify_password(plain, hashed, self._password_salt)

    def issue_token(self, user: User) -> str:
        return tokens.create_token(
            user.id, user.username, user.user_type, self._secret_key, self._token_expire_seconds
        )

    def verify_token(self, token: Any) -> dict | None:
        return tokens.verify_token(token, self._secret_key)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def login(
        self,
        username: str | None,
        password: str | None,
        fingerprint: Any = None,
        context: RequestContext | None = None,
    ) -> Session:
        """Authenticate with username and password and mint a session token."""
        if not username or not password:
            raise InvalidCredentials()

        with self.store.transaction(USERS) as tx:
            users = tx.read(USERS)
            index = _find_index(users, "username", username)
            if index is None:
                self.verify_password(password, tokens.DUMMY_HASH)
                raise InvalidCredentials()

            user = User.from_record(users[index])
            if not self.verify_password(password, user.password_hash):
                raise InvalidCredentials()

            user.last_login = _now_iso()
            if fingerprint:
                user.fingerprint = fingerprint
            users[index] = user.to_record()
            tx.stage(USERS, users)

        token = self.issue_token(user)
        context = context or RequestContext()
        self._audit("login", username=user.username, ip=context.ip, userAgent=context.user_agent)
        logger.info("Login succeeded for %s", user.username)
        return Session(token=token, user=user.public())

    def register(
        self,
        username: str | None,
        password: str | None,
        invitation_code: str | None = None,
        fingerprint: Any = None,
        context: RequestContext | None = None,
    ) -> Session:
        """Create an account, consuming an invitation code when one is given.

        No code -> "trial" tier. A valid unused code -> "registered" tier.
        """
        if not username or len(username) < MIN_USERNAME_LENGTH:
            raise ValidationError(f"Username must be at least {MIN_USERNAME_LENGTH} characters")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        collections = (USERS, INVITATIONS) if invitation_code else (USERS,)
        with self.store.transaction(*collections) as tx:
            users = tx.read(USERS)
            if not isinstance(users, list):
                logger.error("Collection %s is not a list; cannot register %s", USERS, username)
                raise StorageError()
            if _find_index(users, "username", username) is not None:
                raise DuplicateUser()

            now = _now_iso()
            user_type = TRIAL
            if invitation_code:
                invitations = tx.read(INVITATIONS)
                self._consume_invitation(invitations, invitation_code, username, now)
                tx.stage(INVITATIONS, invitations)
                user_type = REGISTERED

            user = User(
                id=new_user_id(),
                username=username,
                password_hash=self.hash_password(password),
                user_type=user_type,
                registration_date=now,
                last_login=now,
                trial_data=TrialData.fresh(now),
                fingerprint=fingerprint or None,
            )
            users.append(user.to_record())
            tx.stage(USERS, users)

        token = self.issue_token(user)
        self._audit(
            "register",
            username=user.username,
            userType=user.user_type,
            invitationCode=invitation_code or "none",
        )
        logger.info("Registered %s (%s)", user.username, user.user_type)
        return Session(token=token, user=user.public())

    def logout(self, token: Any = None) -> None:
        """Record a logout for a valid token. Never fails; never revokes."""
        if not token:
            return
        claims = self.verify_token(token)
        if claims is None:
            return
        self._audit("logout", username=claims.get("username"))

    def check_auth(self, authorization: str | None) -> dict[str, Any]:
        """Resolve an Authorization header to the public user record."""
        if not authorization or not authorization.startswith(_BEARER_PREFIX):
            raise MissingToken()

        claims = self.verify_token(authorization[len(_BEARER_PREFIX) :])
        if claims is None:
            raise InvalidToken()

        users = self.store.read(USERS)
        index = _find_index(users, "id", claims["userId"])
        if index is None:
            raise UnknownUser()
        return User.from_record(users[index]).public()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _consume_invitation(invitations: Any, code: str, username: str, now: str) -> None:
        """Mark the first unused record matching code as used by username, in place."""
        if not isinstance(invitations, list):
            raise InvalidCode()
        seen_used = False
        for i, record in enumerate(invitations):
            if not isinstance(record, dict) or record.get("code") != code:
                continue
            invite = InvitationCode.from_record(record)
            if invite.used:
                seen_used = True
                continue
            invite.used = True
            invite.used_by = username
            invite.used_date = now
            invitations[i] = invite.to_record()
            return
        raise CodeAlreadyUsed() if seen_used else InvalidCode()

    def _audit(self, event_type: str, **fields: Any) -> None:
        if not self.store.append(AUDIT_LOG, {"type": event_type, **fields}):
            logger.warning("Audit append failed for %s event", event_type)

"""
core/errors.py -- Exception taxonomy for InviteGate.

Every domain failure is an InviteGateError subclass carrying the HTTP status
the API layer should answer with and a user-facing message. The API maps these
to {"error": message} in a single exception handler, so route code never builds
error payloads by hand.

Authentication failures deliberately share one message per class: a wrong
password and an unknown username both raise InvalidCredentials with the same
text, so the response body cannot be used to enumerate usernames.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or records/.
"""

from __future__ import annotations


class InviteGateError(Exception):
    """Base class for all expected failures.

    status_code and message are class attributes so subclasses can be raised
    without arguments. Passing a message overrides the default text.
    """

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# 400 -- user-correctable input
# ---------------------------------------------------------------------------


class ValidationError(InviteGateError):
    status_code = 400
    message = "Invalid request"


class InvalidAction(ValidationError):
    message = "Invalid action"


# ---------------------------------------------------------------------------
# 401 -- bad credentials or token
# ---------------------------------------------------------------------------


class AuthenticationError(InviteGateError):
    status_code = 401
    message = "Authentication failed"


class InvalidCredentials(AuthenticationError):
    message = "Invalid username or password"


class MissingToken(AuthenticationError):
    message = "No authentication token provided"


class InvalidToken(AuthenticationError):
    message = "Invalid authentication token"


# ---------------------------------------------------------------------------
# Conflicts and missing records
# ---------------------------------------------------------------------------


class ConflictError(InviteGateError):
    status_code = 400
    message = "Conflict"


class DuplicateUser(ConflictError):
    message = "Username already exists"


class CodeAlreadyUsed(ConflictError):
    message = "This invitation code has already been used"


class NotFoundError(InviteGateError):
    status_code = 400
    message = "Not found"


class InvalidCode(NotFoundError):
    message = "Invalid invitation code"


class UnknownUser(NotFoundError):
    # A token for a deleted user is an authentication failure from the
    # caller's point of view.
    status_code = 401
    message = "User does not exist"


# ---------------------------------------------------------------------------
# 500 -- server side
# ---------------------------------------------------------------------------


class StorageError(InviteGateError):
    status_code = 500
    message = "Internal server error"


class UnexpectedError(InviteGateError):
    status_code = 500
    message = "Internal server error"

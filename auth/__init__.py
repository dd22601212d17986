"""auth/ -- Credential authority for InviteGate.

Password hashing, signed session tokens, and the login / register / logout /
check operations.

Layer rule: auth/ imports from core/ and records/ only.
api/ imports from auth/, not the other way around.
"""

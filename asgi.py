"""
asgi.py -- ASGI entry point for InviteGate.

Run with:  uvicorn asgi:app --reload

The app itself is assembled in api/main.py; this module only gives process
managers a stable import path.
"""

from api.main import app

__all__ = ["app"]

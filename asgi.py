"""
asgi.py -- ASGI entry point for SecAudit.

The application is assembled in api/main.py; this module only exposes it
under the name ASGI servers look for.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]

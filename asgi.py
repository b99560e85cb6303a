"""
asgi.py -- ASGI entry point for RailAuth.

Static pages (landing, login, register, dashboards) are served by the
front-end deployment, not by this process. Their paths stay in the access
policy table so the same rules apply if they are ever mounted here.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]

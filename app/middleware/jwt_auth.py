"""
JWT Auth Middleware: Parses JWT from Authorization header, sets g.jwt_*.

  Authorization: Bearer <token>  →  g.jwt_user_id, g.jwt_roles

The middleware never rejects a request by itself.  Views that need an
acting user call ``get_current_user()``, which raises AuthenticationRequired
when no valid token was presented.
"""

import logging

import jwt as pyjwt
from flask import g, request

from app.core.exceptions import AuthenticationRequired
from app.models import db
from app.models.auth import User
from app.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        # Clear JWT context
        g.jwt_user_id = None
        g.jwt_roles = []
        g.jwt_error = None

        # Skip non-API routes and probes
        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        # Check for Bearer token
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
            g.jwt_user_id = int(payload["sub"])
            g.jwt_roles = payload.get("roles", [])
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Token expired"
        except (pyjwt.InvalidTokenError, KeyError, ValueError):
            g.jwt_error = "Invalid token"
            logger.info("Rejected bearer token on %s", path, extra={"event_type": "invalid_token"})


def get_current_user() -> User:
    """Return the acting user for this request.

    Raises:
        AuthenticationRequired: no valid token, or the user is unknown/inactive.
    """
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        raise AuthenticationRequired(getattr(g, "jwt_error", None) or "Authentication required")
    user = db.session.get(User, user_id)
    if user is None or user.status != "active":
        raise AuthenticationRequired("Unknown or inactive user")
    return user

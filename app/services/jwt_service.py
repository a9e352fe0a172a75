"""
JWT Service: access-token generation and verification.

Access token:  15 minutes (configurable via JWT_ACCESS_EXPIRES)
Algorithm:     HS256

Login, refresh and sessions are handled upstream; this application only
issues tokens for local use (``flask issue-token``) and verifies them.

Token payload (access):
{
    "sub": "<user_id>",
    "roles": ["hr_manager", ...],
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app


# ─── Defaults ────────────────────────────────────────────────
DEFAULT_ACCESS_EXPIRES = 900       # 15 minutes
ALGORITHM = "HS256"


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def generate_access_token(user_id: int, roles: list[str], expires_in: int | None = None) -> str:
    """Generate a short-lived access token."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "roles": list(roles),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=expires_in or _get_access_expires()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_token(token: str, expected_type: str = "access") -> dict:
    """
    Decode and verify a JWT token.

    Returns the payload dict on success.
    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])

    # Verify token type
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected {expected_type} token, got {payload.get('type')}")

    return payload


def decode_access_token(token: str) -> dict:
    """Decode an access token: convenience wrapper."""
    return decode_token(token, expected_type="access")

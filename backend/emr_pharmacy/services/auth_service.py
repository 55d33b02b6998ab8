# Overview: Bearer token issue/verify for the pharmacy API.

"""
Authentication contract for the pharmacy API.

Users, passwords and sessions live in the surrounding EMR. This service only
needs to know who is acting and in which role, so it trusts a signed token
of the form {"id": <user id>, "role": <role>} issued by the EMR login flow.

SECURITY NOTES:
- Tokens are signed with SECRET_KEY (itsdangerous, timestamped)
- Tokens older than AUTH_TOKEN_MAX_AGE_SECONDS are rejected
- Unknown roles authenticate but hold no permissions
"""

from __future__ import annotations

from dataclasses import dataclass

from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer

TOKEN_SALT = "emr-pharmacy-auth"


@dataclass(frozen=True)
class AuthContext:
    user_id: int
    role: str


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)


def issue_token(secret_key: str, *, user_id: int, role: str) -> str:
    return _serializer(secret_key).dumps({"id": user_id, "role": role})


def verify_token(secret_key: str, token: str, *, max_age: int | None = None) -> AuthContext | None:
    """Return the caller's context, or None for a bad, tampered or expired token."""
    try:
        data = _serializer(secret_key).loads(token, max_age=max_age)
    except SignatureExpired:
        return None
    except BadData:
        return None

    if not isinstance(data, dict):
        return None
    user_id = data.get("id")
    role = data.get("role")
    if isinstance(user_id, bool) or not isinstance(user_id, int) or not isinstance(role, str):
        return None
    return AuthContext(user_id=user_id, role=role)

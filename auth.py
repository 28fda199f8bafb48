"""
Caller identity — Flask-Login request loader over bearer tokens.

Local demo sessions carry an unsigned token ``local.<payload>`` where the
payload is base64url JSON ``{uid, name, email, role}``. Any other bearer
token belongs to the remote backend; its claims are read (not verified) only
to key the local fallback services.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging

from flask import current_app, jsonify
from flask_login import LoginManager, UserMixin

logger = logging.getLogger(__name__)

login_manager = LoginManager()

ROLES = ("student", "parent", "teacher", "admin")


class SessionUser(UserMixin):
    """The caller of the current request."""

    def __init__(self, id: str, name: str = "", email: str = "", role: str = "student",
                 token: str = "", is_local: bool = True):
        self.id = str(id)
        self.name = name
        self.email = email
        self.role = role if role in ROLES else "student"
        self.token = token
        self.is_local = is_local

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role}


def _b64decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def make_local_token(user: dict, prefix: str = "local.") -> str:
    """Mint a local demo session token for ``user``."""
    payload = {
        "uid": str(user["id"]),
        "name": user.get("name", ""),
        "email": user.get("email", ""),
        "role": user.get("role", "student"),
    }
    return prefix + _b64encode(json.dumps(payload).encode())


def _claims(segment: str) -> dict:
    try:
        data = json.loads(_b64decode(segment))
        return data if isinstance(data, dict) else {}
    except (ValueError, TypeError):
        return {}


def user_from_token(token: str, local_prefix: str = "local.") -> SessionUser | None:
    if not token:
        return None
    if token.startswith(local_prefix):
        claims = _claims(token[len(local_prefix):])
        if not claims.get("uid"):
            logger.warning("Rejected malformed local session token")
            return None
        return SessionUser(claims["uid"], claims.get("name", ""), claims.get("email", ""),
                           claims.get("role", "student"), token=token, is_local=True)

    # Remote JWT: payload is the second segment
    parts = token.split(".")
    claims = _claims(parts[1]) if len(parts) >= 2 else {}
    uid = claims.get("uid") or claims.get("sub") or hashlib.sha256(token.encode()).hexdigest()[:16]
    return SessionUser(uid, claims.get("name", ""), claims.get("email", ""),
                       claims.get("role", "student"), token=token, is_local=False)


@login_manager.request_loader
def load_user_from_request(request):
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    prefix = current_app.config.get("LOCAL_TOKEN_PREFIX", "local.")
    return user_from_token(header[len("Bearer "):].strip(), prefix)


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Authentication required"}), 401

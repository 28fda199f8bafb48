"""
Shared helpers used across blueprints.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, current_app, jsonify, request
from flask_login import current_user

from data_source import Sources, resolve_sources
from extensions import ServiceRegistry, UserServices


def services() -> UserServices:
    """Local simulation services for the current caller."""
    return ServiceRegistry.for_user(current_user)


def sources() -> Sources:
    """Data sources (local or remote) for the current call."""
    return resolve_sources(
        current_user,
        current_app.config,
        services(),
        current_app.extensions.get("remote_transport"),
    )


def json_body(*required: str) -> dict[str, Any]:
    """Return the JSON request body, aborting with 400 when a required field is missing."""
    data = request.get_json(silent=True) or {}
    missing = [f for f in required if data.get(f) in (None, "")]
    if missing:
        abort(400, description=f"Missing required field(s): {', '.join(missing)}")
    return data


def not_found(what: str):
    return jsonify({"error": f"{what} not found"}), 404


def role_required(*roles: str) -> Callable:
    """Decorator that restricts an endpoint to the given roles."""
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated(*args: Any, **kwargs: Any) -> Any:
            if getattr(current_user, "role", "student") not in roles:
                abort(403)
            return f(*args, **kwargs)
        return decorated
    return decorator

"""Demo session routes: mint a local token and register presence."""

from __future__ import annotations

import uuid

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from auth import ROLES, make_local_token
from extensions import ServiceRegistry, limiter
from helpers import json_body, services
from presence import get_tracker

bp = Blueprint("session", __name__, url_prefix="/api/v1/session")


@bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    data = json_body("name")
    role = data.get("role", "student")
    if role not in ROLES:
        return jsonify({"error": f"role must be one of {', '.join(ROLES)}"}), 400
    user = {
        "id": str(data.get("id") or f"user-{uuid.uuid4().hex[:8]}"),
        "name": data["name"],
        "email": data.get("email", ""),
        "role": role,
    }
    token = make_local_token(user, current_app.config.get("LOCAL_TOKEN_PREFIX", "local."))
    get_tracker().user_logged_in(user, data.get("current_page", "/"))
    return jsonify({"token": token, "user": user})


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """End the session and drop everything kept locally for the caller."""
    get_tracker().user_logged_out(current_user.id)
    cleared = services().user_data.clear()
    ServiceRegistry.forget(current_user.id)
    return jsonify({"success": True, "data_cleared": cleared})


@bp.route("/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict(), "local": current_user.is_local})

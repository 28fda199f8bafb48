"""Online presence routes."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from helpers import json_body, role_required
from presence import get_tracker

bp = Blueprint("presence", __name__, url_prefix="/api/v1/presence")


@bp.route("")
@login_required
@role_required("teacher", "admin")
def online_users():
    tracker = get_tracker()
    return jsonify({
        "users": [r.to_dict() for r in tracker.get_online_users()],
        "counts": tracker.status_counts(),
    })


@bp.route("/activity", methods=["POST"])
@login_required
def activity():
    data = json_body()
    tracked = get_tracker().update_user_activity(current_user.id, data.get("current_page"))
    return jsonify({"tracked": tracked})


@bp.route("/navigate", methods=["POST"])
@login_required
def navigate():
    data = json_body("page")
    tracked = get_tracker().record_navigation(current_user.id, data["page"])
    return jsonify({"tracked": tracked})

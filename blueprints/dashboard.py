"""Dashboard stats, notifications and preferences routes."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from helpers import json_body, not_found, services
from stats import compute_stats

bp = Blueprint("dashboard", __name__, url_prefix="/api/v1")


@bp.route("/stats")
@login_required
def stats():
    svc = services()
    return jsonify(compute_stats(svc.user_data, svc.ledger, svc.engine))


@bp.route("/notifications")
@login_required
def notifications():
    user_data = services().user_data
    return jsonify({
        "notifications": user_data.get_notifications(),
        "unread": user_data.unread_notifications(),
    })


@bp.route("/notifications/<notif_id>/read", methods=["PUT"])
@login_required
def notification_read(notif_id):
    if not services().user_data.mark_notification_read(notif_id):
        return not_found("Notification")
    return jsonify({"success": True})


@bp.route("/preferences", methods=["GET"])
@login_required
def get_preferences():
    return jsonify({"preferences": services().user_data.get_preferences()})


@bp.route("/preferences", methods=["PUT"])
@login_required
def update_preferences():
    return jsonify({"preferences": services().user_data.update_preferences(json_body())})

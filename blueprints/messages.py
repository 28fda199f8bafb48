"""Direct messaging routes."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from helpers import json_body, sources

bp = Blueprint("messages", __name__, url_prefix="/api/v1/messages")


@bp.route("/conversations")
@login_required
def conversations():
    return jsonify({"conversations": sources().messages.conversations()})


@bp.route("/unread-count")
@login_required
def unread_count():
    return jsonify({"unread_count": sources().messages.unread_count()})


@bp.route("/<counterpart_id>")
@login_required
def thread(counterpart_id):
    return jsonify({"messages": sources().messages.thread(counterpart_id)})


@bp.route("", methods=["POST"])
@login_required
def send():
    data = json_body("receiver_id", "content")
    message = sources().messages.send(
        str(data["receiver_id"]),
        data["content"],
        data.get("receiver_name", ""),
        data.get("receiver_role", ""),
    )
    return jsonify({"message": message}), 201


@bp.route("/<message_id>/read", methods=["PUT"])
@login_required
def mark_read(message_id):
    return jsonify({"success": sources().messages.mark_read(message_id)})

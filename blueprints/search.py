"""Global search routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from extensions import ServiceRegistry
from helpers import json_body

bp = Blueprint("search", __name__, url_prefix="/api/v1/search")


@bp.route("")
@login_required
def search():
    query = request.args.get("q", "")
    role = request.args.get("role") or current_user.role
    results = ServiceRegistry.search().search(query, role)
    return jsonify({"query": query, "results": [r.to_dict() for r in results]})


@bp.route("/recent", methods=["GET"])
@login_required
def recent():
    return jsonify({"recent": ServiceRegistry.search().get_recent_searches()})


@bp.route("/recent", methods=["POST"])
@login_required
def add_recent():
    data = json_body("query")
    return jsonify({"recent": ServiceRegistry.search().add_to_recent_searches(data["query"])})


@bp.route("/recent", methods=["DELETE"])
@login_required
def clear_recent():
    ServiceRegistry.search().clear_recent_searches()
    return jsonify({"recent": []})


@bp.route("/popular")
@login_required
def popular():
    return jsonify({"popular": ServiceRegistry.search().get_popular_searches()})

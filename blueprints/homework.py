"""Homework ledger routes."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from helpers import json_body, not_found, sources

bp = Blueprint("homework", __name__, url_prefix="/api/v1/homework")


@bp.route("", methods=["GET"])
@login_required
def list_homework():
    return jsonify({"homework": sources().homework.list()})


@bp.route("", methods=["POST"])
@login_required
def create_homework():
    data = json_body("subject", "title", "due_date")
    return jsonify({"homework": sources().homework.create(data)}), 201


@bp.route("/<homework_id>", methods=["GET"])
@login_required
def get_homework(homework_id):
    item = sources().homework.get(homework_id)
    if item is None:
        return not_found("Homework")
    return jsonify({"homework": item})


@bp.route("/<homework_id>", methods=["PUT", "PATCH"])
@login_required
def update_homework(homework_id):
    item = sources().homework.update(homework_id, json_body())
    if item is None:
        return not_found("Homework")
    return jsonify({"homework": item})


@bp.route("/<homework_id>/complete", methods=["POST"])
@login_required
def complete_homework(homework_id):
    result = sources().homework.complete(homework_id)
    if result is None:
        return not_found("Homework")
    return jsonify(result)


@bp.route("/<homework_id>", methods=["DELETE"])
@login_required
def delete_homework(homework_id):
    return jsonify({"success": sources().homework.delete(homework_id)})

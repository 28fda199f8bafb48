"""Points, badges, leaderboard and reward routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from helpers import json_body, sources

bp = Blueprint("gamification", __name__, url_prefix="/api/v1/gamification")


@bp.route("/points")
@login_required
def points():
    return jsonify(sources().gamification.points())


@bp.route("/badges")
@login_required
def badges():
    return jsonify({"badges": sources().gamification.badges()})


@bp.route("/badges/earned")
@login_required
def earned_badges():
    return jsonify({"badges": sources().gamification.earned_badges()})


@bp.route("/leaderboard")
@login_required
def leaderboard():
    limit = request.args.get("limit", type=int)
    return jsonify({"leaderboard": sources().gamification.leaderboard(limit)})


@bp.route("/rewards")
@login_required
def rewards():
    return jsonify({"rewards": sources().gamification.rewards()})


@bp.route("/rewards/redeem", methods=["POST"])
@login_required
def redeem():
    data = json_body("reward_id")
    result = sources().gamification.redeem(data["reward_id"])
    status = 200 if result.get("success") else 400
    return jsonify(result), status

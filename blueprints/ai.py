"""Study assistant routes (homework help, chat, quizzes)."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from flask_login import login_required

from helpers import json_body, services

bp = Blueprint("ai", __name__, url_prefix="/api/v1/ai")


@bp.before_request
def _assistant_enabled():
    if not current_app.config.get("FEATURE_FLAGS", {}).get("study_assistant", True):
        return jsonify({"error": "Study assistant is disabled"}), 404
    return None


@bp.route("/homework-help", methods=["POST"])
@login_required
def homework_help():
    data = json_body("question", "subject")
    return jsonify(services().assistant.solve_homework(data["question"], data["subject"]))


@bp.route("/chat", methods=["POST"])
@login_required
def chat():
    data = json_body("message")
    return jsonify(services().assistant.chat(data["message"], data.get("session_id", "demo-session")))


@bp.route("/quiz", methods=["POST"])
@login_required
def quiz():
    data = json_body("subject", "topic")
    return jsonify(services().assistant.generate_quiz(
        data["subject"],
        data["topic"],
        data.get("difficulty", "medium"),
        int(data.get("num_questions", 5)),
    ))


@bp.route("/quiz/result", methods=["POST"])
@login_required
def quiz_result():
    data = json_body("subject", "total")
    return jsonify(services().assistant.record_quiz_result(
        data["subject"], int(data.get("score", 0)), int(data["total"]),
        duration=int(data.get("duration", 0)),
    ))

"""
Learning Hub — Flask Web Application

JSON API over the learning-platform simulation: homework ledger,
gamification, messaging, presence, search and the study assistant.
"""

from __future__ import annotations

import os
from typing import Any

import httpx
from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException

from auth import login_manager
from blueprints import register_blueprints
from extensions import ServiceRegistry, limiter
from presence import init_tracker
from storage import init_storage


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    app.secret_key = app.config.get("SECRET_KEY", "dev-key-change-in-production")

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Durable storage (Redis if configured, in-memory fallback)
    init_storage(app)
    ServiceRegistry.reset()

    # Presence tracker with configured thresholds
    init_tracker(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    # Bearer-token identity
    login_manager.init_app(app)

    # Register all blueprints
    register_blueprints(app)

    @app.route("/healthz")
    def healthz():
        from storage import get_storage
        store = get_storage()
        return jsonify({
            "status": "ok",
            "storage": type(store.medium).__name__,
            "storage_used": store.size_formatted(),
        })

    # JSON error bodies for the API
    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(ValueError)
    def handle_value_error(e: ValueError):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(httpx.HTTPStatusError)
    def handle_upstream_error(e: httpx.HTTPStatusError):
        app.logger.warning("Remote backend rejected request: %s", e)
        return jsonify({"error": "Remote backend rejected the request"}), e.response.status_code

    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    # Start centralized scheduler (presence sweep)
    if not app.config.get("TESTING"):
        from scheduler import init_scheduler
        init_scheduler(app)

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)

"""
Blueprint registration for the Learning Hub API.

Every blueprint carries its own ``/api/v1/...`` URL prefix.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.session import bp as session_bp
    from blueprints.homework import bp as homework_bp
    from blueprints.gamification import bp as gamification_bp
    from blueprints.messages import bp as messages_bp
    from blueprints.presence import bp as presence_bp
    from blueprints.search import bp as search_bp
    from blueprints.ai import bp as ai_bp
    from blueprints.dashboard import bp as dashboard_bp

    app.register_blueprint(session_bp)
    app.register_blueprint(homework_bp)
    app.register_blueprint(gamification_bp)
    app.register_blueprint(messages_bp)
    app.register_blueprint(presence_bp)
    app.register_blueprint(search_bp)
    app.register_blueprint(ai_bp)
    app.register_blueprint(dashboard_bp)

"""
Math Mastery — Flask Web Application

Course platform for 2 BAC Sciences Mathématiques students: marketing
landing page, student dashboard of chapters and lessons, and an admin panel
for content and user roles.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any

from flask import Flask, Response, jsonify, render_template, request
from flask_babel import format_datetime

import database
import math_markup
from auth import auth_bp, close_auth_context, get_auth_context, login_manager
from blueprints import register_blueprints
from extensions import babel, csrf, limiter

logger = logging.getLogger(__name__)

FRENCH_DATETIME = "d MMMM yyyy 'à' HH:mm"


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    env = "testing" if test_config is not None else os.environ.get("FLASK_ENV", "development")
    cfg = config_by_name.get(env, config_by_name["development"])
    app.config.from_object(cfg)
    if test_config is not None:
        app.config.update(test_config)
    elif hasattr(cfg, "validate"):
        cfg.validate()

    app.secret_key = app.config["SECRET_KEY"]

    # CSRF protection (also exposes csrf_token() to templates)
    csrf.init_app(app)

    # i18n: dates and numbers in French
    babel.init_app(app)

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Register database teardown
    database.init_app(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    # Register auth blueprint and login manager; the auth context lives for one
    # request and is torn down before the connection it reads from
    app.register_blueprint(auth_bp)
    login_manager.init_app(app)
    app.teardown_request(close_auth_context)
    app.teardown_appcontext(close_auth_context)

    # Register all application blueprints
    register_blueprints(app)

    # Template helpers
    math_markup.init_app(app)

    @app.template_filter("date_fr")
    def date_fr(value: Any, empty: str = "Jamais connecté") -> str:
        dt = _parse_timestamp(value)
        if dt is None:
            return empty
        # Stored timestamps are naive server-local time; Babel reads naive as UTC
        if dt.tzinfo is None:
            dt = dt.astimezone()
        return format_datetime(dt, FRENCH_DATETIME)

    @app.context_processor
    def auth_helpers() -> dict[str, Any]:
        return {"current_auth": get_auth_context().resolve()}

    # Error pages
    @app.errorhandler(403)
    def forbidden(e):
        if request.path.startswith("/api/"):
            return jsonify({"error": "Accès refusé."}), 403
        return render_template("errors/403.html"), 403

    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith("/api/"):
            return jsonify({"error": "Ressource introuvable."}), 404
        return render_template("errors/404.html"), 404

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
            "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net https://fonts.googleapis.com; "
            "font-src 'self' https://fonts.gstatic.com https://cdn.jsdelivr.net; "
            "img-src 'self' data:; "
            "connect-src 'self'"
        )
        if not app.debug and not app.testing:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    logger.debug("Application created (env=%s)", env)
    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)

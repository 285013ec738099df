"""
Blueprint registration for Math Mastery.

All blueprints are registered without URL prefixes; each one declares its
own full paths.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.landing import bp as landing_bp
    from blueprints.dashboard import bp as dashboard_bp
    from blueprints.admin import bp as admin_bp
    from blueprints.api import bp as api_bp

    app.register_blueprint(landing_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(api_bp)

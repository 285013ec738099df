"""
Shared helpers used across blueprints.

The protected-route gate lives here: view decorators that hold a view back
until the auth context has resolved, then redirect or render.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import jsonify, redirect, render_template, url_for

from auth import AuthContext, get_auth_context, login_manager


class GateState(enum.Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "checked-unauthenticated"
    UNAUTHORIZED = "checked-unauthorized"
    AUTHORIZED = "checked-authorized"


def gate_state(ctx: AuthContext, admin_only: bool = False) -> GateState:
    """Decide what a protected view may do, from user / loading / is_admin only."""
    if ctx.loading:
        return GateState.LOADING
    if ctx.user is None:
        return GateState.UNAUTHENTICATED
    if admin_only and not ctx.is_admin:
        return GateState.UNAUTHORIZED
    return GateState.AUTHORIZED


def _protect(admin_only: bool, api: bool) -> Callable:
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated(*args: Any, **kwargs: Any) -> Any:
            state = gate_state(get_auth_context().resolve(), admin_only)
            if state is GateState.AUTHORIZED:
                return f(*args, **kwargs)
            if api:
                if state is GateState.UNAUTHORIZED:
                    return jsonify({"error": "Accès réservé aux administrateurs."}), 403
                if state is GateState.LOADING:
                    return jsonify({"error": "Chargement..."}), 503
                return jsonify({"error": "Authentification requise."}), 401
            if state is GateState.LOADING:
                return render_template("loading.html"), 503
            if state is GateState.UNAUTHENTICATED:
                return login_manager.unauthorized()
            return redirect(url_for("landing.index"))
        return decorated
    return decorator


def login_required(f: Callable) -> Callable:
    """Require a signed-in user; anonymous visitors go to /login."""
    return _protect(admin_only=False, api=False)(f)


def admin_required(f: Callable) -> Callable:
    """Require the admin role; students go to /, anonymous visitors to /login."""
    return _protect(admin_only=True, api=False)(f)


def api_login_required(f: Callable) -> Callable:
    return _protect(admin_only=False, api=True)(f)


def current_user_id() -> str | None:
    """Return the current authenticated user's ID, or None for visitors."""
    ctx = get_auth_context().resolve()
    return ctx.user.id if ctx.user else None

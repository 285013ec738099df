"""
User Authentication — request-scoped auth context and Flask-Login blueprint.

The AuthContext is the one shared piece of state every view consults: it
resolves the backend session held in the Flask session, loads (or lazily
creates) the profile row, and follows auth-state-change events for the rest
of the request. Provides sign-in, sign-up, sign-out and confirmation routes.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from flask import Blueprint, flash, g, redirect, render_template, request, url_for
from flask import session as flask_session
from flask_login import LoginManager, UserMixin, current_user, login_user, logout_user

from audit import log_event
from auth_service import (
    SIGNED_IN,
    SIGNED_OUT,
    TOKEN_REFRESHED,
    USER_UPDATED,
    AuthError,
    auth_state_changed,
)
from backend import Backend, BackendError, get_backend
from email_service import EmailService
from extensions import limiter

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"

auth_bp = Blueprint("auth", __name__)
login_manager = LoginManager()
login_manager.login_view = "auth.login"
login_manager.login_message = "Veuillez vous connecter pour accéder à cette page."
login_manager.login_message_category = "error"

# Known service messages (matched by substring) and their French wording.
AUTH_ERROR_MESSAGES: list[tuple[str, str]] = [
    ("User already registered", "Un compte avec cette adresse email existe déjà."),
    ("Invalid login credentials", "Email ou mot de passe incorrect."),
    ("Email not confirmed", "Veuillez confirmer votre adresse email avant de vous connecter."),
    ("Password should be at least", "Le mot de passe doit contenir au moins 6 caractères."),
    ("Unable to validate email address", "Adresse email invalide."),
]
DEFAULT_AUTH_ERROR = "Une erreur est survenue. Veuillez réessayer."


def localize_auth_error(message: str) -> str:
    for needle, french in AUTH_ERROR_MESSAGES:
        if needle in (message or ""):
            return french
    return DEFAULT_AUTH_ERROR


class AuthFailure(Exception):
    """A sign-in/up/out failure carrying the French message to display."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.message = message
        self.raw = raw


class User(UserMixin):
    """Signed-in account merged with its profile row."""

    def __init__(self, id: str, email: str, role: str = "student", created_at: str = "",
                 profile: dict | None = None, metadata: dict | None = None):
        self.id = id
        self.email = email
        self.role = role
        self.created_at = created_at
        self.profile = profile
        self.metadata = metadata or {}

    @classmethod
    def from_records(cls, auth_user: dict, profile: dict | None) -> User:
        """Build a User; the profile role wins over the metadata role."""
        metadata = auth_user.get("user_metadata") or {}
        role = (profile or {}).get("role") or metadata.get("role") or "student"
        return cls(
            id=auth_user["id"],
            email=auth_user["email"],
            role=role,
            created_at=auth_user.get("created_at", ""),
            profile=profile,
            metadata=metadata,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def first_name(self) -> str:
        return (self.profile or {}).get("first_name") or self.metadata.get("first_name", "")

    @property
    def last_name(self) -> str:
        return (self.profile or {}).get("last_name") or self.metadata.get("last_name", "")

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "created_at": self.created_at,
            "profile": self.profile,
        }


class AuthContext:
    """Current user, loading flag and auth operations for one request."""

    def __init__(self, backend: Backend):
        self.backend = backend
        self.user: User | None = None
        self.loading = True
        auth_state_changed.connect(self._on_auth_state_change)

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.is_admin

    def close(self) -> None:
        auth_state_changed.disconnect(self._on_auth_state_change)

    # ── state ───────────────────────────────────────────────

    def resolve(self) -> AuthContext:
        """Load the session and profile once; later calls are no-ops."""
        if not self.loading:
            return self
        token = flask_session.get(ACCESS_TOKEN_KEY)
        try:
            session = self.backend.auth.get_session(token)
        except (BackendError, sqlite3.Error) as e:
            logger.error("Session lookup failed: %s", e)
            session = None

        if session is None:
            if token:
                flask_session.pop(ACCESS_TOKEN_KEY, None)
            self.user = None
            self.loading = False
            return self

        if session.expires_soon(self.backend.auth.ttl_seconds):
            try:
                self.backend.auth.refresh_session(token)
            except (BackendError, sqlite3.Error) as e:
                logger.warning("Token refresh failed: %s", e)
        if self.loading:
            self.fetch_user_profile(session.user)
        return self

    def fetch_user_profile(self, auth_user: dict) -> User:
        """Read the profile row, creating it from metadata when missing.

        Any backend failure leaves a basic user built from the session, and
        loading always ends.
        """
        profile = None
        try:
            profile = (
                self.backend.table("user_profiles")
                .select("*")
                .eq("user_id", auth_user["id"])
                .maybe_single()
                .execute()
                .data
            )
            if profile is None:
                profile = self._create_profile(auth_user)
        except (BackendError, sqlite3.Error) as e:
            logger.error("Error fetching user profile for %s: %s", auth_user.get("id"), e)
        finally:
            self.user = User.from_records(auth_user, profile)
            self.loading = False
        return self.user

    def _create_profile(self, auth_user: dict) -> dict | None:
        metadata = auth_user.get("user_metadata") or {}
        try:
            return (
                self.backend.table("user_profiles")
                .insert({
                    "user_id": auth_user["id"],
                    "first_name": metadata.get("first_name", ""),
                    "last_name": metadata.get("last_name", ""),
                    "role": metadata.get("role", "student"),
                })
                .single()
                .execute()
                .data
            )
        except BackendError as e:
            logger.warning("Could not create profile for %s: %s", auth_user["id"], e.message)
            return None

    def _on_auth_state_change(self, sender, event: str, user_id: str | None = None, session=None) -> None:
        if sender.backend is not self.backend:
            return
        if event == SIGNED_OUT:
            self.user = None
            self.loading = False
        elif event in (SIGNED_IN, TOKEN_REFRESHED, USER_UPDATED):
            if session is not None:
                self.fetch_user_profile(session.user)
            elif self.user is not None and user_id == self.user.id:
                auth_user = self.backend.auth.admin.get_user_by_id(user_id)
                if auth_user is not None:
                    self.fetch_user_profile(auth_user)

    # ── operations ──────────────────────────────────────────

    def sign_in(self, email: str, password: str) -> User:
        try:
            session = self.backend.auth.sign_in_with_password(email, password)
        except AuthError as e:
            log_event("login_failed", None, f"email={email} reason={e.code}")
            raise AuthFailure(localize_auth_error(e.message), e.message) from e

        flask_session[ACCESS_TOKEN_KEY] = session.access_token
        user = self.user or self.fetch_user_profile(session.user)
        login_user(user)
        log_event("login_success", user.id)
        flash("Connexion réussie!", "success")
        return user

    def sign_up(self, email: str, password: str, first_name: str, last_name: str) -> User | None:
        try:
            result = self.backend.auth.sign_up(
                email, password,
                data={"role": "student", "first_name": first_name, "last_name": last_name},
            )
        except AuthError as e:
            raise AuthFailure(localize_auth_error(e.message), e.message) from e

        auth_user = result["user"]
        try:
            self.backend.table("user_profiles").upsert({
                "user_id": auth_user["id"],
                "first_name": first_name,
                "last_name": last_name,
                "role": "student",
            }, on_conflict="user_id").execute()
        except BackendError as e:
            logger.error("Error creating profile: %s", e.message)

        if result["confirmation_token"]:
            EmailService.send_confirmation(auth_user["email"], auth_user["id"], result["confirmation_token"])

        log_event("register", auth_user["id"], f"email={auth_user['email']}")
        flash("Compte créé avec succès! Vérifiez votre email.", "success")

        session = result["session"]
        if session is None:
            return None
        flask_session[ACCESS_TOKEN_KEY] = session.access_token
        user = self.fetch_user_profile(auth_user)
        login_user(user)
        return user

    def sign_out(self) -> None:
        self.resolve()
        uid = self.user.id if self.user else None
        try:
            self.backend.auth.sign_out(flask_session.get(ACCESS_TOKEN_KEY))
        except (BackendError, sqlite3.Error) as e:
            raise AuthFailure("Erreur lors de la déconnexion", str(e)) from e
        finally:
            flask_session.pop(ACCESS_TOKEN_KEY, None)
            logout_user()
        log_event("logout", uid)
        flash("Déconnexion réussie!", "success")


def get_auth_context() -> AuthContext:
    """Return the request's AuthContext, creating it on first use."""
    if "auth_context" not in g:
        g.auth_context = AuthContext(get_backend())
    return g.auth_context


def close_auth_context(e=None) -> None:
    ctx = g.pop("auth_context", None)
    if ctx is not None:
        ctx.close()


@login_manager.user_loader
def load_user(user_id):
    ctx = get_auth_context().resolve()
    if ctx.user is not None and ctx.user.id == user_id:
        return ctx.user
    return None


# ── Routes ──────────────────────────────────────────────────


@auth_bp.route("/login", methods=["GET", "POST"])
@limiter.limit("5 per 15 minutes", methods=["POST"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("dashboard.dashboard"))

    if request.method == "POST":
        email = request.form.get("email", "").strip().lower()
        password = request.form.get("password", "")

        if not email or not password:
            flash("L'email et le mot de passe sont requis.", "error")
            return render_template("login.html", email=email)

        try:
            get_auth_context().sign_in(email, password)
        except AuthFailure as e:
            flash(e.message, "error")
            return render_template("login.html", email=email)

        next_page = request.args.get("next")
        if not next_page or not next_page.startswith("/") or next_page.startswith("//"):
            next_page = url_for("dashboard.dashboard")
        return redirect(next_page)

    return render_template("login.html")


@auth_bp.route("/register", methods=["GET", "POST"])
@limiter.limit("3 per hour", methods=["POST"])
def register():
    if current_user.is_authenticated:
        return redirect(url_for("dashboard.dashboard"))

    if request.method == "POST":
        first_name = request.form.get("first_name", "").strip()
        last_name = request.form.get("last_name", "").strip()
        email = request.form.get("email", "").strip().lower()
        password = request.form.get("password", "")
        confirm = request.form.get("confirm_password", "")
        form = {"first_name": first_name, "last_name": last_name, "email": email}

        if not first_name or not last_name or not email or not password:
            flash("Tous les champs sont requis.", "error")
            return render_template("register.html", form=form)

        if password != confirm:
            flash("Les mots de passe ne correspondent pas.", "error")
            return render_template("register.html", form=form)

        try:
            user = get_auth_context().sign_up(email, password, first_name, last_name)
        except AuthFailure as e:
            flash(e.message, "error")
            return render_template("register.html", form=form)

        if user is None:
            return redirect(url_for("auth.login"))
        return redirect(url_for("dashboard.dashboard"))

    return render_template("register.html", form={})


@auth_bp.route("/logout", methods=["GET", "POST"])
def logout():
    try:
        get_auth_context().sign_out()
    except AuthFailure as e:
        flash(e.message, "error")
    return redirect(url_for("auth.login"))


@auth_bp.route("/auth/confirm/<user_id>/<token>")
def confirm_email(user_id, token):
    if get_backend().auth.confirm_email(user_id, token):
        log_event("email_confirmed", user_id, f"at={datetime.now().isoformat()}")
        flash("Adresse email confirmée. Vous pouvez vous connecter.", "success")
    else:
        flash("Lien de confirmation invalide ou expiré.", "error")
    return redirect(url_for("auth.login"))

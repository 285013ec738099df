"""
Backend auth subsystem — accounts, access tokens and state-change events.

Reached through ``Backend.auth``. Errors are raised as :class:`AuthError`
with stable English messages; the web layer maps them to French text.

Every transition is announced on the ``auth_state_changed`` signal with one
of ``SIGNED_IN``, ``SIGNED_OUT``, ``TOKEN_REFRESHED`` or ``USER_UPDATED``.
"""

from __future__ import annotations

import json
import logging
import re
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from blinker import Namespace
from werkzeug.security import check_password_hash, generate_password_hash

from backend import BackendError

if TYPE_CHECKING:
    from backend import Backend

logger = logging.getLogger(__name__)

_signals = Namespace()
auth_state_changed = _signals.signal("auth-state-changed")

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"
USER_UPDATED = "USER_UPDATED"

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AuthError(BackendError):
    """Raised by the auth subsystem; ``message`` is the raw service text."""


@dataclass
class AuthSession:
    access_token: str
    user: dict
    expires_at: datetime

    def expires_soon(self, ttl_seconds: int) -> bool:
        """True once less than half of the session lifetime remains."""
        return self.expires_at - datetime.now() < timedelta(seconds=ttl_seconds / 2)


def _user_from_row(row) -> dict:
    return {
        "id": row["id"],
        "email": row["email"],
        "user_metadata": json.loads(row["user_metadata"] or "{}"),
        "created_at": row["created_at"],
        "email_confirmed_at": row["email_confirmed_at"],
        "last_sign_in_at": row["last_sign_in_at"],
    }


class AdminAPI:
    """Privileged account operations (service-role calls)."""

    def __init__(self, service: AuthService):
        self._service = service

    def get_user_by_id(self, user_id: str) -> dict | None:
        row = self._service.db.execute(
            "SELECT * FROM auth_users WHERE id = ?", (user_id,)
        ).fetchone()
        return _user_from_row(row) if row else None

    def get_user_by_email(self, email: str) -> dict | None:
        row = self._service.db.execute(
            "SELECT * FROM auth_users WHERE email = ?", (email.strip().lower(),)
        ).fetchone()
        return _user_from_row(row) if row else None

    def update_user_by_id(self, user_id: str, user_metadata: dict) -> dict:
        """Merge ``user_metadata`` into the account's metadata."""
        user = self.get_user_by_id(user_id)
        if user is None:
            raise AuthError("User not found", "user_not_found")
        metadata = {**user["user_metadata"], **user_metadata}
        db = self._service.db
        db.execute(
            "UPDATE auth_users SET user_metadata = ?, updated_at = ? WHERE id = ?",
            (json.dumps(metadata), datetime.now().isoformat(), user_id),
        )
        db.commit()
        user["user_metadata"] = metadata
        self._service.emit(USER_UPDATED, user_id=user_id)
        return user


class AuthService:
    def __init__(self, backend: Backend):
        self.backend = backend
        self.admin = AdminAPI(self)

    @property
    def db(self):
        return self.backend.db

    @property
    def ttl_seconds(self) -> int:
        return int(self.backend.config.get("SESSION_TTL_SECONDS", 3600))

    def emit(self, event: str, user_id: str | None = None, session: AuthSession | None = None) -> None:
        logger.debug("auth event %s user_id=%s", event, user_id)
        auth_state_changed.send(self, event=event, user_id=user_id, session=session)

    # ── sessions ────────────────────────────────────────────

    def _create_session(self, user: dict) -> AuthSession:
        now = datetime.now()
        session = AuthSession(
            access_token=secrets.token_urlsafe(32),
            user=user,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )
        self.db.execute(
            "INSERT INTO auth_sessions (access_token, user_id, created_at, expires_at) VALUES (?, ?, ?, ?)",
            (session.access_token, user["id"], now.isoformat(), session.expires_at.isoformat()),
        )
        self.db.execute(
            "UPDATE auth_users SET last_sign_in_at = ? WHERE id = ?", (now.isoformat(), user["id"])
        )
        self.db.commit()
        user["last_sign_in_at"] = now.isoformat()
        return session

    def get_session(self, access_token: str | None) -> AuthSession | None:
        """Return the live session for ``access_token``; expired ones are purged."""
        if not access_token:
            return None
        row = self.db.execute(
            "SELECT s.access_token, s.expires_at, u.* FROM auth_sessions s "
            "JOIN auth_users u ON u.id = s.user_id WHERE s.access_token = ?",
            (access_token,),
        ).fetchone()
        if row is None:
            return None
        expires_at = datetime.fromisoformat(row["expires_at"])
        if expires_at <= datetime.now():
            self.db.execute("DELETE FROM auth_sessions WHERE access_token = ?", (access_token,))
            self.db.commit()
            return None
        return AuthSession(access_token=row["access_token"], user=_user_from_row(row), expires_at=expires_at)

    def refresh_session(self, access_token: str) -> AuthSession:
        session = self.get_session(access_token)
        if session is None:
            raise AuthError("Invalid Refresh Token", "session_expired")
        session.expires_at = datetime.now() + timedelta(seconds=self.ttl_seconds)
        self.db.execute(
            "UPDATE auth_sessions SET expires_at = ? WHERE access_token = ?",
            (session.expires_at.isoformat(), access_token),
        )
        self.db.commit()
        self.emit(TOKEN_REFRESHED, user_id=session.user["id"], session=session)
        return session

    def get_user(self, access_token: str | None) -> dict | None:
        session = self.get_session(access_token)
        return session.user if session else None

    # ── sign up / in / out ─────────────────────────────────

    def sign_up(self, email: str, password: str, data: dict[str, Any] | None = None) -> dict:
        """Create an account.

        Returns ``{"user", "session", "confirmation_token"}``. When email
        confirmation is required there is no session yet and the raw
        confirmation token must be mailed to the user.
        """
        email = (email or "").strip().lower()
        if not EMAIL_RE.match(email):
            raise AuthError("Unable to validate email address: invalid format", "email_address_invalid")
        min_len = int(self.backend.config.get("MIN_PASSWORD_LENGTH", 6))
        if len(password or "") < min_len:
            raise AuthError(f"Password should be at least {min_len} characters", "weak_password")
        if self.admin.get_user_by_email(email) is not None:
            raise AuthError("User already registered", "user_already_exists")

        now = datetime.now().isoformat()
        metadata = {"role": "student", **(data or {})}
        require_confirmation = bool(self.backend.config.get("REQUIRE_EMAIL_CONFIRMATION"))
        raw_token = secrets.token_urlsafe(32) if require_confirmation else ""
        user_id = str(uuid.uuid4())
        self.db.execute(
            "INSERT INTO auth_users (id, email, password_hash, user_metadata, confirmation_token, "
            "email_confirmed_at, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                user_id, email, generate_password_hash(password), json.dumps(metadata),
                generate_password_hash(raw_token) if raw_token else "",
                None if require_confirmation else now,
                now, now,
            ),
        )
        self.db.commit()
        user = self.admin.get_user_by_id(user_id)

        session = None
        if not require_confirmation:
            session = self._create_session(user)
            self.emit(SIGNED_IN, user_id=user_id, session=session)
        return {"user": user, "session": session, "confirmation_token": raw_token}

    def confirm_email(self, user_id: str, token: str) -> bool:
        row = self.db.execute(
            "SELECT confirmation_token FROM auth_users WHERE id = ?", (user_id,)
        ).fetchone()
        if not row or not row["confirmation_token"]:
            return False
        if not check_password_hash(row["confirmation_token"], token):
            return False
        self.db.execute(
            "UPDATE auth_users SET email_confirmed_at = ?, confirmation_token = '' WHERE id = ?",
            (datetime.now().isoformat(), user_id),
        )
        self.db.commit()
        self.emit(USER_UPDATED, user_id=user_id)
        return True

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        email = (email or "").strip().lower()
        row = self.db.execute("SELECT * FROM auth_users WHERE email = ?", (email,)).fetchone()
        if row is None or not check_password_hash(row["password_hash"], password or ""):
            raise AuthError("Invalid login credentials", "invalid_credentials")
        if not row["email_confirmed_at"] and self.backend.config.get("REQUIRE_EMAIL_CONFIRMATION"):
            raise AuthError("Email not confirmed", "email_not_confirmed")

        session = self._create_session(_user_from_row(row))
        self.emit(SIGNED_IN, user_id=row["id"], session=session)
        return session

    def sign_out(self, access_token: str | None) -> None:
        session = self.get_session(access_token)
        if access_token:
            self.db.execute("DELETE FROM auth_sessions WHERE access_token = ?", (access_token,))
            self.db.commit()
        self.emit(SIGNED_OUT, user_id=session.user["id"] if session else None)

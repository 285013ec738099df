"""
Test fixtures for Math Mastery.

Provides app, client, db and backend fixtures backed by a file SQLite
database, signed-in student/admin clients, and a small seeded curriculum.
"""

from __future__ import annotations

import json
import sqlite3
import sys
import uuid
from datetime import datetime
from pathlib import Path

import pytest
from werkzeug.security import generate_password_hash

sys.path.insert(0, str(Path(__file__).parent.parent))

STUDENT = {"email": "student@test.ma", "password": "student123", "first_name": "Salma", "last_name": "Benali"}
ADMIN = {"email": "admin@test.ma", "password": "admin1234", "first_name": "Karim", "last_name": "Alaoui"}


def insert_user(db, email: str, password: str = "secret123", role: str = "student",
                first_name: str = "", last_name: str = "", with_profile: bool = True,
                confirmed: bool = True) -> str:
    """Create an auth user (and optionally its profile row) directly in SQL."""
    uid = str(uuid.uuid4())
    now = datetime.now().isoformat()
    metadata = {"role": role, "first_name": first_name, "last_name": last_name}
    db.execute(
        "INSERT INTO auth_users (id, email, password_hash, user_metadata, email_confirmed_at, "
        "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
        (uid, email, generate_password_hash(password), json.dumps(metadata),
         now if confirmed else None, now, now),
    )
    if with_profile:
        db.execute(
            "INSERT INTO user_profiles (id, user_id, first_name, last_name, role, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (str(uuid.uuid4()), uid, first_name, last_name, role, now, now),
        )
    db.commit()
    return uid


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
        "WTF_CSRF_ENABLED": False,
        "EMAIL_BACKEND": "log",
        "REQUIRE_EMAIL_CONFIRMATION": False,
    })

    with app.app_context():
        from database import init_db, run_migrations

        init_db()
        run_migrations()
        app._db_initialized = True

    yield app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


@pytest.fixture
def db(app):
    """Direct database access on its own connection, outside any app context."""
    conn = sqlite3.connect(app.config["DATABASE"])
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    yield conn
    conn.close()


@pytest.fixture
def backend(app):
    """Request-independent Backend bound to its own app context."""
    with app.app_context():
        from backend import get_backend
        yield get_backend()


@pytest.fixture
def make_user(app):
    """Factory inserting users; returns the new user id."""
    def _make(email, **kwargs):
        with app.app_context():
            from database import get_db
            return insert_user(get_db(), email, **kwargs)
    return _make


def _signed_in_client(app, make_user, account: dict, role: str):
    make_user(
        account["email"],
        password=account["password"],
        role=role,
        first_name=account["first_name"],
        last_name=account["last_name"],
    )
    client = app.test_client()
    client.post("/login", data={"email": account["email"], "password": account["password"]})
    return client


@pytest.fixture
def student_client(app, make_user):
    """Test client signed in as a student."""
    return _signed_in_client(app, make_user, STUDENT, "student")


@pytest.fixture
def admin_client(app, make_user):
    """Test client signed in as an admin."""
    return _signed_in_client(app, make_user, ADMIN, "admin")


@pytest.fixture
def seeded_content(db):
    """Two chapters; the first holds three lessons, the first lesson two exercises."""
    now = datetime.now().isoformat()
    ids = {"chapters": [], "lessons": [], "exercises": []}

    for i, (title, color, icon) in enumerate([
        ("Analyse", "bg-blue-500", "Calculator"),
        ("Algèbre", "bg-emerald-500", "Target"),
    ]):
        cid = str(uuid.uuid4())
        db.execute(
            "INSERT INTO chapters (id, title, description, color, icon, order_index, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (cid, title, f"Chapitre {title}", color, icon, i, now, now),
        )
        ids["chapters"].append(cid)

    for i, title in enumerate(["Limites", "Dérivées", "Intégrales"]):
        lid = str(uuid.uuid4())
        db.execute(
            "INSERT INTO lessons (id, chapter_id, title, content, order_index, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (lid, ids["chapters"][0], title, f"Leçon sur les {title.lower()} : $f(x) = x^2$", i, now, now),
        )
        ids["lessons"].append(lid)

    for i, (title, difficulty) in enumerate([("Limite simple", "easy"), ("Limite en l'infini", "hard")]):
        eid = str(uuid.uuid4())
        db.execute(
            "INSERT INTO exercises (id, lesson_id, title, problem, solution, difficulty, order_index, "
            "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (eid, ids["lessons"][0], title, "Calculer $\\lim_{x \\to 0} x$", "$0$", difficulty, i, now, now),
        )
        ids["exercises"].append(eid)

    db.commit()
    return ids

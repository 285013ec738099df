"""
Seed Content — Standalone script and test helper.

Creates an admin account, a demo student, and a starter curriculum of
chapters, lessons and exercises with math markup.

Usage:
    python seed_content.py           # Seed into the configured database
    python seed_content.py --reset   # Remove seeded content first
"""

from __future__ import annotations

import json
import sys
import uuid
from datetime import datetime

from werkzeug.security import generate_password_hash

DEMO_ACCOUNTS = [
    {"email": "admin@mathmastery.ma", "first_name": "Admin", "last_name": "Math Mastery",
     "role": "admin", "password": "admin123"},
    {"email": "etudiant@mathmastery.ma", "first_name": "Yasmine", "last_name": "El Idrissi",
     "role": "student", "password": "etudiant123"},
]

CURRICULUM = [
    {
        "title": "Limites et Continuité",
        "description": "Limites usuelles, formes indéterminées et théorème des valeurs intermédiaires.",
        "color": "bg-blue-500",
        "icon": "Calculator",
        "lessons": [
            {
                "title": "Limites usuelles",
                "content": (
                    "Pour tout entier $n \\geq 1$, on a $\\lim_{x \\to +\\infty} x^n = +\\infty$.\n"
                    "La limite fondamentale : $$\\lim_{x \\to 0} \\frac{\\sin x}{x} = 1$$"
                ),
                "exercises": [
                    {"title": "Forme indéterminée", "difficulty": "easy",
                     "problem": "Calculer $\\lim_{x \\to 2} \\frac{x^2 - 4}{x - 2}$.",
                     "solution": "On factorise : $\\frac{(x-2)(x+2)}{x-2} = x + 2$, donc la limite vaut $4$."},
                    {"title": "Racines", "difficulty": "medium",
                     "problem": "Calculer $\\lim_{x \\to +\\infty} \\sqrt{x^2 + x} - x$.",
                     "solution": "Par la quantité conjuguée, la limite vaut $\\frac{1}{2}$."},
                ],
            },
            {
                "title": "Continuité et TVI",
                "content": (
                    "Si $f$ est continue sur $[a, b]$ et $f(a) f(b) < 0$, alors l'équation "
                    "$f(x) = 0$ admet au moins une solution dans $]a, b[$."
                ),
                "exercises": [
                    {"title": "Existence d'une racine", "difficulty": "hard",
                     "problem": "Montrer que $x^3 + x - 1 = 0$ admet une unique solution dans $]0, 1[$.",
                     "solution": "$f$ est continue, strictement croissante, $f(0) = -1 < 0$ et $f(1) = 1 > 0$."},
                ],
            },
        ],
    },
    {
        "title": "Nombres Complexes",
        "description": "Forme algébrique, trigonométrique et exponentielle.",
        "color": "bg-emerald-500",
        "icon": "Target",
        "lessons": [
            {
                "title": "Forme exponentielle",
                "content": "Tout complexe non nul s'écrit $z = r e^{i\\theta}$ avec $r = |z|$.",
                "exercises": [
                    {"title": "Module et argument", "difficulty": "easy",
                     "problem": "Écrire $z = 1 + i$ sous forme exponentielle.",
                     "solution": "$|z| = \\sqrt{2}$ et $\\arg z = \\frac{\\pi}{4}$, donc $z = \\sqrt{2} e^{i\\pi/4}$."},
                ],
            },
        ],
    },
    {
        "title": "Probabilités",
        "description": "Dénombrement, probabilités conditionnelles et lois usuelles.",
        "color": "bg-orange-500",
        "icon": "BarChart3",
        "lessons": [],
    },
]


def _new_id() -> str:
    return str(uuid.uuid4())


def seed(db) -> dict:
    """Seed accounts and curriculum. Returns summary dict."""
    now = datetime.now().isoformat()
    accounts = 0
    for account in DEMO_ACCOUNTS:
        if db.execute("SELECT 1 FROM auth_users WHERE email = ?", (account["email"],)).fetchone():
            continue
        uid = _new_id()
        metadata = {k: account[k] for k in ("role", "first_name", "last_name")}
        db.execute(
            "INSERT INTO auth_users (id, email, password_hash, user_metadata, email_confirmed_at, "
            "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (uid, account["email"], generate_password_hash(account["password"]),
             json.dumps(metadata), now, now, now),
        )
        db.execute(
            "INSERT INTO user_profiles (id, user_id, first_name, last_name, role, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (_new_id(), uid, account["first_name"], account["last_name"], account["role"], now, now),
        )
        accounts += 1

    counts = {"chapters": 0, "lessons": 0, "exercises": 0}
    existing = db.execute("SELECT COUNT(*) FROM chapters").fetchone()[0]
    for c_index, chapter in enumerate(CURRICULUM, start=existing):
        chapter_id = _new_id()
        db.execute(
            "INSERT INTO chapters (id, title, description, color, icon, order_index, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (chapter_id, chapter["title"], chapter["description"], chapter["color"],
             chapter["icon"], c_index, now, now),
        )
        counts["chapters"] += 1
        for l_index, lesson in enumerate(chapter["lessons"]):
            lesson_id = _new_id()
            db.execute(
                "INSERT INTO lessons (id, title, content, chapter_id, order_index, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (lesson_id, lesson["title"], lesson["content"], chapter_id, l_index, now, now),
            )
            counts["lessons"] += 1
            for e_index, exercise in enumerate(lesson["exercises"]):
                db.execute(
                    "INSERT INTO exercises (id, lesson_id, title, problem, solution, difficulty, "
                    "order_index, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (_new_id(), lesson_id, exercise["title"], exercise["problem"], exercise["solution"],
                     exercise["difficulty"], e_index, now, now),
                )
                counts["exercises"] += 1

    db.commit()
    return {"accounts": accounts, **counts}


def clear_seeded(db) -> None:
    """Remove seeded chapters (cascading to lessons/exercises) and demo accounts."""
    titles = [c["title"] for c in CURRICULUM]
    db.executemany("DELETE FROM chapters WHERE title = ?", [(t,) for t in titles])
    emails = [a["email"] for a in DEMO_ACCOUNTS]
    for email in emails:
        row = db.execute("SELECT id FROM auth_users WHERE email = ?", (email,)).fetchone()
        if row:
            db.execute("DELETE FROM user_profiles WHERE user_id = ?", (row["id"],))
            db.execute("DELETE FROM auth_sessions WHERE user_id = ?", (row["id"],))
            db.execute("DELETE FROM auth_users WHERE id = ?", (row["id"],))
    db.commit()


if __name__ == "__main__":
    from app import create_app
    from database import get_db, init_db, run_migrations

    app = create_app()
    with app.app_context():
        init_db()
        run_migrations()
        db = get_db()
        if "--reset" in sys.argv:
            clear_seeded(db)
            print("[Seed] Seeded content cleared.")
        result = seed(db)
        print(f"[Seed] Done: {result}")

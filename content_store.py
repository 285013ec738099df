"""
Backend-backed stores for course content and user administration.

Each store wraps table calls on the request's Backend. Creation appends at
``order_index = current sibling count``; deletions never re-index, so gaps
stay until an admin edits the ordering.
"""

from __future__ import annotations

import logging

from backend import BackendError, get_backend

logger = logging.getLogger(__name__)

CHAPTER_COLORS = [
    ("bg-blue-500", "Bleu"),
    ("bg-emerald-500", "Vert"),
    ("bg-purple-500", "Violet"),
    ("bg-orange-500", "Orange"),
    ("bg-red-500", "Rouge"),
    ("bg-yellow-500", "Jaune"),
]
CHAPTER_ICONS = [
    ("Calculator", "Calculatrice"),
    ("Target", "Cible"),
    ("BarChart3", "Graphique"),
    ("BookOpen", "Livre"),
]
DIFFICULTIES = [
    ("easy", "Facile"),
    ("medium", "Moyen"),
    ("hard", "Difficile"),
]

DEFAULT_COLOR = "bg-blue-500"
DEFAULT_ICON = "Calculator"
FALLBACK_ICON = "BookOpen"


def chapter_icon(name: str | None) -> str:
    """Icon to draw for a chapter; unknown names fall back to a book."""
    return name if name in dict(CHAPTER_ICONS) else FALLBACK_ICON


def _invalid(message: str) -> BackendError:
    return BackendError(message, "invalid_input")


def _require_title(title: str) -> str:
    title = (title or "").strip()
    if not title:
        raise _invalid("Le titre est requis.")
    return title


def _sibling_count(table: str, parent_column: str | None = None, parent_id: str | None = None) -> int:
    query = get_backend().table(table).select("id", count="exact")
    if parent_column:
        query = query.eq(parent_column, parent_id)
    return query.execute().count


# ── Chapters ─────────────────────────────────────────────────────────


class ChapterStore:
    @staticmethod
    def list() -> list[dict]:
        return (
            get_backend().table("chapters").select("*")
            .order("order_index").order("created_at").execute().data
        )

    @staticmethod
    def get(chapter_id: str) -> dict | None:
        return get_backend().table("chapters").select("*").eq("id", chapter_id).maybe_single().execute().data

    @staticmethod
    def _validate(color: str, icon: str) -> None:
        if color not in dict(CHAPTER_COLORS):
            raise _invalid("Couleur invalide.")
        if icon not in dict(CHAPTER_ICONS):
            raise _invalid("Icône invalide.")

    @staticmethod
    def create(title: str, description: str = "", color: str = DEFAULT_COLOR,
               icon: str = DEFAULT_ICON) -> dict:
        title = _require_title(title)
        ChapterStore._validate(color, icon)
        return get_backend().table("chapters").insert({
            "title": title,
            "description": description,
            "color": color,
            "icon": icon,
            "order_index": _sibling_count("chapters"),
        }).single().execute().data

    @staticmethod
    def update(chapter_id: str, title: str, description: str, color: str, icon: str) -> dict:
        title = _require_title(title)
        ChapterStore._validate(color, icon)
        return get_backend().table("chapters").update({
            "title": title,
            "description": description,
            "color": color,
            "icon": icon,
        }).eq("id", chapter_id).single().execute().data

    @staticmethod
    def delete(chapter_id: str) -> None:
        get_backend().table("chapters").delete().eq("id", chapter_id).execute()


# ── Lessons ──────────────────────────────────────────────────────────


class LessonStore:
    @staticmethod
    def list(chapter_id: str | None = None) -> list[dict]:
        query = get_backend().table("lessons").select("*")
        if chapter_id is not None:
            query = query.eq("chapter_id", chapter_id)
        return query.order("order_index").order("created_at").execute().data

    @staticmethod
    def get(lesson_id: str) -> dict | None:
        return get_backend().table("lessons").select("*").eq("id", lesson_id).maybe_single().execute().data

    @staticmethod
    def _require_chapter(chapter_id: str) -> None:
        if not chapter_id or ChapterStore.get(chapter_id) is None:
            raise _invalid("Veuillez choisir un chapitre existant.")

    @staticmethod
    def create(title: str, content: str, chapter_id: str) -> dict:
        title = _require_title(title)
        LessonStore._require_chapter(chapter_id)
        return get_backend().table("lessons").insert({
            "title": title,
            "content": content,
            "chapter_id": chapter_id,
            "order_index": _sibling_count("lessons", "chapter_id", chapter_id),
        }).single().execute().data

    @staticmethod
    def update(lesson_id: str, title: str, content: str, chapter_id: str) -> dict:
        title = _require_title(title)
        LessonStore._require_chapter(chapter_id)
        return get_backend().table("lessons").update({
            "title": title,
            "content": content,
            "chapter_id": chapter_id,
        }).eq("id", lesson_id).single().execute().data

    @staticmethod
    def delete(lesson_id: str) -> None:
        get_backend().table("lessons").delete().eq("id", lesson_id).execute()


# ── Exercises ────────────────────────────────────────────────────────


class ExerciseStore:
    @staticmethod
    def list(lesson_id: str | None = None) -> list[dict]:
        query = get_backend().table("exercises").select("*")
        if lesson_id is not None:
            query = query.eq("lesson_id", lesson_id)
        return query.order("order_index").order("created_at").execute().data

    @staticmethod
    def get(exercise_id: str) -> dict | None:
        return get_backend().table("exercises").select("*").eq("id", exercise_id).maybe_single().execute().data

    @staticmethod
    def _validate(lesson_id: str, difficulty: str) -> None:
        if not lesson_id or LessonStore.get(lesson_id) is None:
            raise _invalid("Veuillez choisir une leçon existante.")
        if difficulty not in dict(DIFFICULTIES):
            raise _invalid("Difficulté invalide.")

    @staticmethod
    def create(title: str, problem: str, solution: str, difficulty: str, lesson_id: str) -> dict:
        title = _require_title(title)
        ExerciseStore._validate(lesson_id, difficulty)
        return get_backend().table("exercises").insert({
            "title": title,
            "problem": problem,
            "solution": solution,
            "difficulty": difficulty,
            "lesson_id": lesson_id,
            "order_index": _sibling_count("exercises", "lesson_id", lesson_id),
        }).single().execute().data

    @staticmethod
    def update(exercise_id: str, title: str, problem: str, solution: str,
               difficulty: str, lesson_id: str) -> dict:
        title = _require_title(title)
        ExerciseStore._validate(lesson_id, difficulty)
        return get_backend().table("exercises").update({
            "title": title,
            "problem": problem,
            "solution": solution,
            "difficulty": difficulty,
            "lesson_id": lesson_id,
        }).eq("id", exercise_id).single().execute().data

    @staticmethod
    def delete(exercise_id: str) -> None:
        get_backend().table("exercises").delete().eq("id", exercise_id).execute()


# ── Users ────────────────────────────────────────────────────────────


class UserDirectory:
    """Admin view over accounts and their roles."""

    @staticmethod
    def list() -> list[dict]:
        return get_backend().table("user_management").select("*").order("created_at", desc=True).execute().data

    @staticmethod
    def promote(email: str) -> None:
        get_backend().rpc("promote_user_to_admin", {"user_email": email})

    @staticmethod
    def demote(email: str, users: list[dict]) -> None:
        """Set a user back to student.

        The metadata update is attempted first and falls back to a direct
        profile update; the profile role is then written again regardless.
        The two writes are not atomic.
        """
        backend = get_backend()
        target = next((u for u in users if u["email"] == email), None)
        if target is None:
            raise BackendError("Utilisateur non trouvé", "not_found")

        try:
            backend.auth.admin.update_user_by_id(target["id"], {"role": "student"})
        except BackendError as e:
            logger.warning("Metadata demotion failed for %s: %s", email, e.message)
            backend.table("user_profiles").update({"role": "student"}).eq("user_id", target["id"]).execute()

        backend.table("user_profiles").update({"role": "student"}).eq("user_id", target["id"]).execute()

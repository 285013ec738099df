"""Read-only JSON API — auth state and course content for scripted clients."""

from __future__ import annotations

from flask import Blueprint, jsonify

from auth import get_auth_context
from backend import BackendError
from content_store import ChapterStore, ExerciseStore, LessonStore
from helpers import api_login_required

bp = Blueprint("api", __name__)


@bp.route("/api/auth/state")
def api_auth_state():
    ctx = get_auth_context().resolve()
    return jsonify({
        "loading": ctx.loading,
        "is_admin": ctx.is_admin,
        "user": ctx.user.to_dict() if ctx.user else None,
    })


@bp.route("/api/chapters")
@api_login_required
def api_chapters():
    try:
        chapters = ChapterStore.list()
    except BackendError as e:
        return jsonify({"error": e.message}), 502
    return jsonify({"chapters": chapters})


@bp.route("/api/chapters/<chapter_id>/lessons")
@api_login_required
def api_chapter_lessons(chapter_id):
    try:
        chapter = ChapterStore.get(chapter_id)
        lessons = LessonStore.list(chapter_id) if chapter else []
    except BackendError as e:
        return jsonify({"error": e.message}), 502
    if chapter is None:
        return jsonify({"error": "Chapitre introuvable."}), 404
    return jsonify({"lessons": lessons})


@bp.route("/api/lessons/<lesson_id>")
@api_login_required
def api_lesson(lesson_id):
    try:
        lesson = LessonStore.get(lesson_id)
        exercises = ExerciseStore.list(lesson_id) if lesson else []
    except BackendError as e:
        return jsonify({"error": e.message}), 502
    if lesson is None:
        return jsonify({"error": "Leçon introuvable."}), 404
    return jsonify({"lesson": lesson, "exercises": exercises})

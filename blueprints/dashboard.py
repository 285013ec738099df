"""Student dashboard — chapters, their lessons, and the lesson reader."""

from __future__ import annotations

import logging

from flask import Blueprint, abort, flash, redirect, render_template, request, url_for

from backend import BackendError
from content_store import ChapterStore, ExerciseStore, LessonStore, chapter_icon
from helpers import login_required

logger = logging.getLogger(__name__)

bp = Blueprint("dashboard", __name__)


@bp.route("/dashboard")
@login_required
def dashboard():
    try:
        chapters = ChapterStore.list()
    except BackendError as e:
        logger.error("Error fetching chapters: %s", e.message)
        flash("Erreur lors du chargement des chapitres", "error")
        chapters = []

    selected = None
    lessons: list[dict] = []
    chapter_id = request.args.get("chapter")
    if chapter_id:
        selected = next((c for c in chapters if c["id"] == chapter_id), None)
        try:
            lessons = LessonStore.list(chapter_id)
        except BackendError as e:
            logger.error("Error fetching lessons for %s: %s", chapter_id, e.message)
            flash("Erreur lors du chargement des leçons", "error")

    return render_template(
        "dashboard.html",
        chapters=chapters,
        selected_chapter=selected,
        lessons=lessons,
        chapter_icon=chapter_icon,
    )


@bp.route("/dashboard/lessons/<lesson_id>")
@login_required
def lesson(lesson_id):
    try:
        lesson = LessonStore.get(lesson_id)
        chapter = ChapterStore.get(lesson["chapter_id"]) if lesson else None
    except BackendError as e:
        logger.error("Error fetching lesson %s: %s", lesson_id, e.message)
        flash("Erreur lors du chargement de la leçon", "error")
        return redirect(url_for("dashboard.dashboard"))
    if lesson is None:
        abort(404)
    try:
        exercises = ExerciseStore.list(lesson_id)
    except BackendError as e:
        logger.error("Error fetching exercises for %s: %s", lesson_id, e.message)
        flash("Erreur lors du chargement des exercices", "error")
        exercises = []
    return render_template("lesson.html", lesson=lesson, chapter=chapter, exercises=exercises)

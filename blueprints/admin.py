"""Admin panel — content CRUD (chapters, lessons, exercises) and user roles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from flask import Blueprint, abort, flash, redirect, render_template, request, url_for

from audit import log_event
from auth import get_auth_context
from backend import BackendError
from content_store import (
    CHAPTER_COLORS,
    CHAPTER_ICONS,
    DEFAULT_COLOR,
    DEFAULT_ICON,
    DIFFICULTIES,
    ChapterStore,
    ExerciseStore,
    LessonStore,
    UserDirectory,
)
from helpers import admin_required, current_user_id

logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__)

TABS = ("chapters", "lessons", "exercises", "users")
DEFAULT_TAB = "chapters"
RESOURCE_PATH = "<any(chapters, lessons, exercises):resource>"


@dataclass(frozen=True)
class Resource:
    store: Any
    fields: tuple[str, ...]
    created: str
    updated: str
    deleted: str
    confirm: str
    label: str


RESOURCES = {
    "chapters": Resource(
        store=ChapterStore,
        fields=("title", "description", "color", "icon"),
        created="Chapitre créé",
        updated="Chapitre mis à jour",
        deleted="Chapitre supprimé",
        confirm="Êtes-vous sûr de vouloir supprimer ce chapitre ?",
        label="chapitre",
    ),
    "lessons": Resource(
        store=LessonStore,
        fields=("title", "content", "chapter_id"),
        created="Leçon créée",
        updated="Leçon mise à jour",
        deleted="Leçon supprimée",
        confirm="Êtes-vous sûr de vouloir supprimer cette leçon ?",
        label="leçon",
    ),
    "exercises": Resource(
        store=ExerciseStore,
        fields=("title", "problem", "solution", "difficulty", "lesson_id"),
        created="Exercice créé",
        updated="Exercice mis à jour",
        deleted="Exercice supprimé",
        confirm="Êtes-vous sûr de vouloir supprimer cet exercice ?",
        label="exercice",
    ),
}

FORM_DEFAULTS = {
    "chapters": {"color": DEFAULT_COLOR, "icon": DEFAULT_ICON},
    "exercises": {"difficulty": "medium"},
}


def _form_values(resource: str) -> dict[str, str]:
    return {field: request.form.get(field, "") for field in RESOURCES[resource].fields}


def _render_form(resource: str, item: dict | None, values: dict, status: int = 200):
    chapters = lessons = []
    try:
        if resource == "lessons":
            chapters = ChapterStore.list()
        elif resource == "exercises":
            lessons = LessonStore.list()
    except BackendError as e:
        flash(e.message, "error")
    return render_template(
        "admin_form.html",
        resource=resource,
        label=RESOURCES[resource].label,
        item=item,
        values=values,
        chapters=chapters,
        lessons=lessons,
        colors=CHAPTER_COLORS,
        icons=CHAPTER_ICONS,
        difficulties=DIFFICULTIES,
    ), status


def _display_name(user: dict) -> str:
    """Profile name first, then the sign-up metadata name, else N/A."""
    for first, last in (
        (user.get("profile_first_name"), user.get("profile_last_name")),
        (user.get("first_name"), user.get("last_name")),
    ):
        name = f"{first or ''} {last or ''}".strip()
        if name:
            return name
    return "N/A"


# ── Panel ──────────────────────────────────────────────────


@bp.route("/admin")
@admin_required
def admin_panel():
    tab = request.args.get("tab", DEFAULT_TAB)
    if tab not in TABS:
        tab = DEFAULT_TAB

    # Fetched one after another on the request connection, not concurrently
    lists: dict[str, list[dict]] = {}
    for name, fetch in (
        ("chapters", ChapterStore.list),
        ("lessons", LessonStore.list),
        ("exercises", ExerciseStore.list),
        ("users", UserDirectory.list),
    ):
        try:
            lists[name] = fetch()
        except BackendError as e:
            logger.error("Error loading %s: %s", name, e.message)
            flash(e.message, "error")
            lists[name] = []

    chapter_titles = {c["id"]: c["title"] for c in lists["chapters"]}
    lesson_titles = {l["id"]: l["title"] for l in lists["lessons"]}
    for user in lists["users"]:
        user["display_name"] = _display_name(user)

    return render_template(
        "admin.html",
        tab=tab,
        tabs=TABS,
        chapters=lists["chapters"],
        lessons=lists["lessons"],
        exercises=lists["exercises"],
        users=lists["users"],
        chapter_titles=chapter_titles,
        lesson_titles=lesson_titles,
        difficulties=dict(DIFFICULTIES),
        current_user_id=current_user_id(),
    )


# ── Content CRUD ───────────────────────────────────────────


class ItemUnavailable(Exception):
    """The item lookup itself failed; the panel is shown instead."""


def _load_item(resource: str, item_id: str) -> dict:
    try:
        item = RESOURCES[resource].store.get(item_id)
    except BackendError as e:
        logger.error("Error fetching %s %s: %s", resource, item_id, e.message)
        flash(e.message, "error")
        raise ItemUnavailable(resource) from e
    if item is None:
        abort(404)
    return item


@bp.errorhandler(ItemUnavailable)
def item_unavailable(e):
    return redirect(url_for("admin.admin_panel", tab=e.args[0]))


@bp.route(f"/admin/{RESOURCE_PATH}/new")
@admin_required
def new_item(resource):
    values = {field: "" for field in RESOURCES[resource].fields}
    values.update(FORM_DEFAULTS.get(resource, {}))
    if resource == "lessons":
        values["chapter_id"] = request.args.get("chapter_id", "")
    elif resource == "exercises":
        values["lesson_id"] = request.args.get("lesson_id", "")
    return _render_form(resource, None, values)


@bp.route(f"/admin/{RESOURCE_PATH}/<item_id>/edit")
@admin_required
def edit_item(resource, item_id):
    item = _load_item(resource, item_id)
    values = {field: item.get(field) or "" for field in RESOURCES[resource].fields}
    return _render_form(resource, item, values)


@bp.route(f"/admin/{RESOURCE_PATH}", methods=["POST"])
@admin_required
def create_item(resource):
    entry = RESOURCES[resource]
    values = _form_values(resource)
    try:
        created = entry.store.create(**values)
    except BackendError as e:
        flash(e.message, "error")
        return _render_form(resource, None, values, 400)
    logger.info("Created %s %s", entry.label, created["id"])
    flash(entry.created, "success")
    return redirect(url_for("admin.admin_panel", tab=resource))


@bp.route(f"/admin/{RESOURCE_PATH}/<item_id>", methods=["POST"])
@admin_required
def update_item(resource, item_id):
    entry = RESOURCES[resource]
    item = _load_item(resource, item_id)
    values = _form_values(resource)
    try:
        entry.store.update(item_id, **values)
    except BackendError as e:
        flash(e.message, "error")
        return _render_form(resource, item, values, 400)
    flash(entry.updated, "success")
    return redirect(url_for("admin.admin_panel", tab=resource))


@bp.route(f"/admin/{RESOURCE_PATH}/<item_id>/delete", methods=["GET", "POST"])
@admin_required
def delete_item(resource, item_id):
    entry = RESOURCES[resource]
    item = _load_item(resource, item_id)

    if request.method == "GET":
        return render_template(
            "admin_confirm_delete.html",
            resource=resource,
            item=item,
            prompt=entry.confirm,
        )

    if request.form.get("confirm") != "yes":
        return redirect(url_for("admin.admin_panel", tab=resource))

    try:
        entry.store.delete(item_id)
    except BackendError as e:
        flash(e.message, "error")
    else:
        log_event(f"delete_{resource}", current_user_id(), f"id={item_id} title={item.get('title', '')}")
        flash(entry.deleted, "success")
    return redirect(url_for("admin.admin_panel", tab=resource))


# ── Roles ──────────────────────────────────────────────────


def _is_own_account(email: str) -> bool:
    user = get_auth_context().user
    return user is not None and user.email == email


@bp.route("/admin/users/promote", methods=["POST"])
@admin_required
def promote_user():
    email = request.form.get("email", "").strip().lower()
    if _is_own_account(email):
        flash("Vous ne pouvez pas modifier votre propre rôle.", "error")
        return redirect(url_for("admin.admin_panel", tab="users"))
    try:
        UserDirectory.promote(email)
    except BackendError as e:
        logger.error("Error promoting %s: %s", email, e.message)
        flash(e.message or "Erreur lors de la promotion", "error")
    else:
        log_event("promote_admin", current_user_id(), f"email={email}")
        flash(f"Utilisateur {email} promu en admin avec succès", "success")
    return redirect(url_for("admin.admin_panel", tab="users"))


@bp.route("/admin/users/demote", methods=["POST"])
@admin_required
def demote_user():
    email = request.form.get("email", "").strip().lower()
    if _is_own_account(email):
        flash("Vous ne pouvez pas modifier votre propre rôle.", "error")
        return redirect(url_for("admin.admin_panel", tab="users"))
    try:
        UserDirectory.demote(email, UserDirectory.list())
    except BackendError as e:
        logger.error("Error demoting %s: %s", email, e.message)
        flash(e.message or "Erreur lors de la rétrogradation", "error")
    else:
        log_event("demote_admin", current_user_id(), f"email={email}")
        flash(f"Utilisateur {email} rétrogradé en étudiant avec succès", "success")
    return redirect(url_for("admin.admin_panel", tab="users"))

"""Landing page — marketing sections, no persistence."""

from __future__ import annotations

from flask import Blueprint, render_template, request

import landing_content as content

bp = Blueprint("landing", __name__)


@bp.route("/")
def index():
    section = content.resolve_section(request.args.get("section"))
    return render_template(
        "landing.html",
        section=section,
        navigation=content.NAVIGATION_ITEMS,
        hero=content.HERO,
        quick_stats=content.QUICK_STATS,
        premium_stats=content.PREMIUM_STATS,
        chapter_previews=content.CHAPTER_PREVIEWS,
        exercise_levels=content.EXERCISE_LEVELS,
        featured_exercises=content.FEATURED_EXERCISES,
    )

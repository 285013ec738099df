"""Tests for content_store.py: ordering, validation, user roles."""

import pytest

from backend import BackendError
from conftest import insert_user
from content_store import ChapterStore, ExerciseStore, LessonStore, UserDirectory, chapter_icon


class TestChapterStore:
    def test_create_appends_at_sibling_count(self, backend, seeded_content):
        chapter = ChapterStore.create("Trigonométrie", "Cercle trigonométrique")
        assert chapter["order_index"] == 2
        titles = [c["title"] for c in ChapterStore.list()]
        assert titles == ["Analyse", "Algèbre", "Trigonométrie"]

    def test_delete_leaves_gap(self, backend, seeded_content):
        ChapterStore.delete(seeded_content["chapters"][0])
        chapter = ChapterStore.create("Géométrie")
        indexes = [c["order_index"] for c in ChapterStore.list()]
        assert indexes == [1, 1]
        assert chapter["order_index"] == 1

    def test_ties_broken_by_created_at(self, backend, db):
        db.execute("INSERT INTO chapters (id, title, order_index, created_at) VALUES ('b', 'Second', 0, '2026-01-02')")
        db.execute("INSERT INTO chapters (id, title, order_index, created_at) VALUES ('a', 'Premier', 0, '2026-01-01')")
        db.commit()
        assert [c["title"] for c in ChapterStore.list()] == ["Premier", "Second"]

    @pytest.mark.parametrize("kwargs, message", [
        ({"title": "  "}, "Le titre est requis."),
        ({"title": "X", "color": "bg-pink-500"}, "Couleur invalide."),
        ({"title": "X", "icon": "Rocket"}, "Icône invalide."),
    ])
    def test_validation(self, backend, kwargs, message):
        with pytest.raises(BackendError, match=message):
            ChapterStore.create(**kwargs)

    def test_update(self, backend, seeded_content):
        cid = seeded_content["chapters"][1]
        updated = ChapterStore.update(cid, "Algèbre linéaire", "Matrices", "bg-red-500", "BookOpen")
        assert updated["title"] == "Algèbre linéaire"
        assert updated["order_index"] == 1
        assert ChapterStore.get(cid)["color"] == "bg-red-500"

    def test_unknown_icon_falls_back(self):
        assert chapter_icon("Target") == "Target"
        assert chapter_icon("Rocket") == "BookOpen"
        assert chapter_icon(None) == "BookOpen"


class TestLessonStore:
    def test_create_counts_siblings_in_chapter_only(self, backend, seeded_content):
        other = LessonStore.create("Polynômes", "", seeded_content["chapters"][1])
        assert other["order_index"] == 0
        same = LessonStore.create("Suites", "", seeded_content["chapters"][0])
        assert same["order_index"] == 3

    def test_requires_existing_chapter(self, backend):
        with pytest.raises(BackendError, match="Veuillez choisir un chapitre existant."):
            LessonStore.create("Orpheline", "", "missing")

    def test_delete_keeps_siblings(self, backend, seeded_content):
        LessonStore.delete(seeded_content["lessons"][1])
        remaining = LessonStore.list(seeded_content["chapters"][0])
        assert [l["title"] for l in remaining] == ["Limites", "Intégrales"]
        assert [l["order_index"] for l in remaining] == [0, 2]

    def test_delete_cascades_to_exercises(self, backend, seeded_content):
        LessonStore.delete(seeded_content["lessons"][0])
        assert ExerciseStore.list() == []


class TestExerciseStore:
    def test_create(self, backend, seeded_content):
        exercise = ExerciseStore.create("Dérivée", "$f'(x)$ ?", "$2x$", "medium", seeded_content["lessons"][0])
        assert exercise["order_index"] == 2
        assert exercise["difficulty"] == "medium"

    def test_invalid_difficulty(self, backend, seeded_content):
        with pytest.raises(BackendError, match="Difficulté invalide."):
            ExerciseStore.create("X", "", "", "extreme", seeded_content["lessons"][0])

    def test_requires_existing_lesson(self, backend):
        with pytest.raises(BackendError, match="Veuillez choisir une leçon existante."):
            ExerciseStore.create("X", "", "", "easy", "missing")

    def test_move_to_other_lesson(self, backend, seeded_content):
        eid = seeded_content["exercises"][0]
        ExerciseStore.update(eid, "Limite simple", "p", "s", "easy", seeded_content["lessons"][2])
        assert [e["id"] for e in ExerciseStore.list(seeded_content["lessons"][2])] == [eid]


class TestUserDirectory:
    def test_list_newest_first(self, backend, db):
        insert_user(db, "old@test.ma")
        db.execute("UPDATE auth_users SET created_at = '2020-01-01' WHERE email = 'old@test.ma'")
        db.commit()
        insert_user(db, "new@test.ma")
        assert [u["email"] for u in UserDirectory.list()] == ["new@test.ma", "old@test.ma"]

    def test_promote(self, backend, db):
        insert_user(db, "eleve@test.ma", role="student")
        UserDirectory.promote("eleve@test.ma")
        assert UserDirectory.list()[0]["role"] == "admin"

    def test_demote_writes_metadata_and_profile(self, backend, db):
        uid = insert_user(db, "prof@test.ma", role="admin")
        UserDirectory.demote("prof@test.ma", UserDirectory.list())
        assert backend.auth.admin.get_user_by_id(uid)["user_metadata"]["role"] == "student"
        assert db.execute("SELECT role FROM user_profiles WHERE user_id = ?", (uid,)).fetchone()["role"] == "student"

    def test_demote_unknown_user(self, backend):
        with pytest.raises(BackendError, match="Utilisateur non trouvé"):
            UserDirectory.demote("ghost@test.ma", [])

    def test_demote_falls_back_to_profile_update(self, backend, db, monkeypatch):
        from auth_service import AdminAPI

        uid = insert_user(db, "prof@test.ma", role="admin")
        calls = []

        def failing_update(self, user_id, user_metadata):
            calls.append(user_id)
            raise BackendError("Service unavailable", "unavailable")

        monkeypatch.setattr(AdminAPI, "update_user_by_id", failing_update)
        UserDirectory.demote("prof@test.ma", UserDirectory.list())
        assert calls == [uid]
        assert db.execute("SELECT role FROM user_profiles WHERE user_id = ?", (uid,)).fetchone()["role"] == "student"
        assert UserDirectory.list()[0]["role"] == "student"

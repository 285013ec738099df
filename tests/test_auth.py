"""Tests for auth.py: register, login, logout, confirmation, auth context."""

import pytest

from conftest import STUDENT, insert_user


def _register(client, email="nouveau@test.ma", password="motdepasse", confirm=None, **extra):
    data = {
        "first_name": "Nadia",
        "last_name": "Tazi",
        "email": email,
        "password": password,
        "confirm_password": password if confirm is None else confirm,
    }
    data.update(extra)
    return client.post("/register", data=data, follow_redirects=True)


class TestRegister:
    def test_register_page_loads(self, client):
        resp = client.get("/register")
        assert resp.status_code == 200
        assert "Créer un compte" in resp.get_data(as_text=True)

    def test_register_success_signs_in(self, client, db):
        resp = _register(client)
        html = resp.get_data(as_text=True)
        assert resp.request.path == "/dashboard"
        assert "Compte créé avec succès! Vérifiez votre email." in html

        row = db.execute(
            "SELECT p.first_name, p.last_name, p.role FROM user_profiles p "
            "JOIN auth_users u ON u.id = p.user_id WHERE u.email = ?",
            ("nouveau@test.ma",),
        ).fetchone()
        assert (row["first_name"], row["last_name"], row["role"]) == ("Nadia", "Tazi", "student")

    def test_register_password_mismatch(self, client):
        resp = _register(client, confirm="autrechose")
        assert "Les mots de passe ne correspondent pas." in resp.get_data(as_text=True)

    def test_register_missing_fields(self, client):
        resp = client.post("/register", data={"email": "x@test.ma", "password": "abcdef"})
        assert "Tous les champs sont requis." in resp.get_data(as_text=True)

    def test_register_short_password(self, client):
        resp = _register(client, password="abc")
        assert "Le mot de passe doit contenir au moins 6 caractères." in resp.get_data(as_text=True)

    def test_register_invalid_email(self, client):
        resp = _register(client, email="pas-un-email")
        assert "Adresse email invalide." in resp.get_data(as_text=True)

    def test_register_duplicate_email(self, client):
        _register(client, email="double@test.ma")
        client.post("/logout")
        resp = _register(client, email="double@test.ma")
        html = resp.get_data(as_text=True)
        assert "Un compte avec cette adresse email existe déjà." in html
        assert "User already registered" not in html


class TestLogin:
    def test_login_page_loads(self, client):
        resp = client.get("/login")
        assert resp.status_code == 200
        assert "Connexion" in resp.get_data(as_text=True)

    def test_login_success(self, client, make_user):
        make_user("eleve@test.ma", password="secret123")
        resp = client.post("/login", data={"email": "eleve@test.ma", "password": "secret123"})
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/dashboard")

        resp = client.get("/dashboard")
        assert resp.status_code == 200
        assert "Connexion réussie!" in resp.get_data(as_text=True)

    def test_login_wrong_password(self, client, make_user):
        make_user("eleve@test.ma", password="secret123")
        resp = client.post("/login", data={"email": "eleve@test.ma", "password": "mauvais"})
        assert "Email ou mot de passe incorrect." in resp.get_data(as_text=True)

    def test_login_unknown_email(self, client):
        resp = client.post("/login", data={"email": "inconnu@test.ma", "password": "secret123"})
        assert "Email ou mot de passe incorrect." in resp.get_data(as_text=True)

    def test_login_respects_next(self, client, make_user):
        make_user("eleve@test.ma", password="secret123")
        resp = client.post("/login?next=/dashboard?chapter=abc",
                           data={"email": "eleve@test.ma", "password": "secret123"})
        assert resp.headers["Location"].endswith("/dashboard?chapter=abc")

    def test_login_ignores_external_next(self, client, make_user):
        make_user("eleve@test.ma", password="secret123")
        resp = client.post("/login?next=//evil.example.com",
                           data={"email": "eleve@test.ma", "password": "secret123"})
        assert resp.headers["Location"].endswith("/dashboard")

    def test_login_writes_audit_entries(self, client, make_user, db):
        uid = make_user("eleve@test.ma", password="secret123")
        client.post("/login", data={"email": "eleve@test.ma", "password": "nope123"})
        client.post("/login", data={"email": "eleve@test.ma", "password": "secret123"})
        actions = [r["action"] for r in db.execute("SELECT action FROM audit_log ORDER BY id").fetchall()]
        assert actions == ["login_failed", "login_success"]
        row = db.execute("SELECT user_id FROM audit_log WHERE action = 'login_success'").fetchone()
        assert row["user_id"] == uid


class TestLogout:
    def test_logout_clears_session(self, student_client):
        resp = student_client.post("/logout", follow_redirects=True)
        assert "Déconnexion réussie!" in resp.get_data(as_text=True)

        resp = student_client.get("/dashboard")
        assert resp.status_code == 302
        assert "/login" in resp.headers["Location"]

    def test_logout_revokes_backend_session(self, student_client, db):
        assert db.execute("SELECT COUNT(*) FROM auth_sessions").fetchone()[0] == 1
        student_client.post("/logout")
        assert db.execute("SELECT COUNT(*) FROM auth_sessions").fetchone()[0] == 0


class TestEmailConfirmation:
    @pytest.fixture
    def sent(self, app, monkeypatch):
        app.config["REQUIRE_EMAIL_CONFIRMATION"] = True
        captured = []
        monkeypatch.setattr(
            "auth.EmailService.send_confirmation",
            lambda to, user_id, token: captured.append((to, user_id, token)) or True,
        )
        return captured

    def test_unconfirmed_user_cannot_sign_in(self, client, sent):
        resp = _register(client, email="conf@test.ma")
        assert resp.request.path == "/login"
        assert len(sent) == 1

        resp = client.post("/login", data={"email": "conf@test.ma", "password": "motdepasse"})
        assert "Veuillez confirmer votre adresse email avant de vous connecter." in resp.get_data(as_text=True)

    def test_confirmation_link_enables_sign_in(self, client, sent):
        _register(client, email="conf@test.ma")
        _, user_id, token = sent[0]

        resp = client.get(f"/auth/confirm/{user_id}/{token}", follow_redirects=True)
        assert "Adresse email confirmée" in resp.get_data(as_text=True)

        resp = client.post("/login", data={"email": "conf@test.ma", "password": "motdepasse"})
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/dashboard")

    def test_bad_confirmation_token(self, client, sent):
        _register(client, email="conf@test.ma")
        _, user_id, _ = sent[0]
        resp = client.get(f"/auth/confirm/{user_id}/wrong-token", follow_redirects=True)
        assert "Lien de confirmation invalide ou expiré." in resp.get_data(as_text=True)


class TestAuthContext:
    def _sign_in(self, app, email, password):
        from auth import get_auth_context
        ctx = get_auth_context()
        ctx.sign_in(email, password)
        return ctx

    def test_missing_profile_is_created_from_metadata(self, app, db):
        insert_user(db, "sans.profil@test.ma", password="secret123", role="student",
                    first_name="Omar", last_name="Fassi", with_profile=False)

        with app.test_request_context():
            ctx = self._sign_in(app, "sans.profil@test.ma", "secret123")
            assert ctx.user.first_name == "Omar"
            assert ctx.loading is False

        row = db.execute(
            "SELECT p.first_name, p.role FROM user_profiles p JOIN auth_users u ON u.id = p.user_id "
            "WHERE u.email = ?", ("sans.profil@test.ma",),
        ).fetchone()
        assert row["first_name"] == "Omar"
        assert row["role"] == "student"

    def test_profile_role_wins_over_metadata(self, app, db):
        uid = insert_user(db, "mixte@test.ma", password="secret123", role="student")
        db.execute("UPDATE user_profiles SET role = 'admin' WHERE user_id = ?", (uid,))
        db.commit()

        with app.test_request_context():
            ctx = self._sign_in(app, "mixte@test.ma", "secret123")
            assert ctx.is_admin

    def test_user_update_triggers_profile_refetch(self, app, db):
        insert_user(db, STUDENT["email"], password=STUDENT["password"], role="student")

        with app.test_request_context():
            from backend import get_backend
            ctx = self._sign_in(app, STUDENT["email"], STUDENT["password"])
            assert not ctx.is_admin

            get_backend().rpc("promote_user_to_admin", {"user_email": STUDENT["email"]})
            assert ctx.is_admin

    def test_updates_for_other_users_are_ignored(self, app, db):
        insert_user(db, STUDENT["email"], password=STUDENT["password"], role="student")
        other = insert_user(db, "autre@test.ma", role="student")

        with app.test_request_context():
            from backend import get_backend
            ctx = self._sign_in(app, STUDENT["email"], STUDENT["password"])
            before = ctx.user
            get_backend().auth.admin.update_user_by_id(other, {"role": "admin"})
            assert ctx.user is before

    def test_sign_out_event_clears_user(self, app, db):
        insert_user(db, STUDENT["email"], password=STUDENT["password"])

        with app.test_request_context():
            ctx = self._sign_in(app, STUDENT["email"], STUDENT["password"])
            ctx.sign_out()
            assert ctx.user is None
            assert ctx.loading is False

    def test_backend_failure_falls_back_to_basic_user(self, app, db, monkeypatch):
        from backend import BackendError, QueryBuilder

        insert_user(db, STUDENT["email"], password=STUDENT["password"], role="student",
                    first_name="Salma", last_name="Benali")

        def broken(self):
            raise BackendError("Service unavailable: database is locked", "unavailable")

        with app.test_request_context():
            monkeypatch.setattr(QueryBuilder, "execute", broken)
            ctx = self._sign_in(app, STUDENT["email"], STUDENT["password"])
            assert ctx.loading is False
            assert ctx.user.email == STUDENT["email"]
            assert ctx.user.profile is None
            assert ctx.user.first_name == "Salma"

    def test_context_is_dropped_when_request_ends(self, app):
        from flask import g

        from auth import get_auth_context

        with app.app_context():
            with app.test_request_context():
                get_auth_context()
                assert "auth_context" in g
            assert "auth_context" not in g

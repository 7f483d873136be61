"""Tests for local account management.

Tests cover:
- Registration: validation, duplicate email, digest storage, token issue
- Login: uniform invalid-credential errors, last_login update
- Profile read/update with duplicate-email guard
- Admin listing, lookup and soft deactivation
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from kindred.db.models import User, UserRole
from tests.helpers import create_local_user, local_headers


def register(client, name="A", email="a@x.com", password="secret1"):
    return client.post(
        "/auth/register", json={"name": name, "email": email, "password": password}
    )


class TestRegister:
    def test_register_success(self, client, db_session, token_codec):
        response = register(client)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user"]["email"] == "a@x.com"
        assert data["user"]["authSource"] == "local"
        assert "passwordHash" not in data["user"]
        assert token_codec.decode(data["token"]) == db_session.scalar(
            select(User.id).where(User.email == "a@x.com")
        )

    def test_password_stored_as_digest(self, client, db_session):
        register(client)

        user = db_session.scalar(select(User).where(User.email == "a@x.com"))
        assert user.password_hash
        assert user.password_hash != "secret1"

    def test_duplicate_email_rejected(self, client):
        assert register(client).status_code == 201

        response = register(client, email="A@X.com")

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "E_EMAIL_TAKEN"
        assert body["errors"][0]["field"] == "email"

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({"name": "", "email": "a@x.com", "password": "secret1"}, "name"),
            ({"name": "   ", "email": "a@x.com", "password": "secret1"}, "name"),
            ({"name": "x" * 51, "email": "a@x.com", "password": "secret1"}, "name"),
            ({"name": "A", "email": "not-an-email", "password": "secret1"}, "email"),
            ({"name": "A", "email": "a@x.com", "password": "12345"}, "password"),
        ],
    )
    def test_validation(self, client, payload, field):
        response = client.post("/auth/register", json=payload)

        assert response.status_code == 400
        assert any(e["field"] == field for e in response.json()["errors"])

    def test_name_is_trimmed(self, client):
        response = register(client, name="  Ada  ")
        assert response.json()["data"]["user"]["name"] == "Ada"


class TestLogin:
    def test_scenario(self, client):
        assert register(client).status_code == 201
        assert register(client).status_code == 400

        wrong = client.post("/auth/login", json={"email": "a@x.com", "password": "wrong"})
        assert wrong.status_code == 401

        ok = client.post("/auth/login", json={"email": "a@x.com", "password": "secret1"})
        assert ok.status_code == 200
        assert ok.json()["data"]["token"]

    def test_wrong_password_and_unknown_email_look_identical(self, client):
        register(client)

        wrong = client.post("/auth/login", json={"email": "a@x.com", "password": "nope99"})
        unknown = client.post("/auth/login", json={"email": "b@x.com", "password": "nope99"})

        assert wrong.status_code == unknown.status_code == 401
        strip = lambda body: {k: v for k, v in body.items() if k != "requestId"}  # noqa: E731
        assert strip(wrong.json()) == strip(unknown.json())
        assert wrong.json()["code"] == "E_INVALID_CREDENTIALS"

    def test_external_account_cannot_password_login(self, client, db_session):
        db_session.add(User(name="Ext", email="ext@x.com", external_id="user_ext"))
        db_session.commit()

        response = client.post("/auth/login", json={"email": "ext@x.com", "password": "whatever"})

        assert response.status_code == 401
        assert response.json()["code"] == "E_INVALID_CREDENTIALS"

    def test_inactive_account_cannot_login(self, client, db_session):
        create_local_user(db_session, "off@x.com", is_active=False)

        response = client.post("/auth/login", json={"email": "off@x.com", "password": "secret1"})
        assert response.status_code == 401

    def test_login_updates_last_login(self, client, db_session):
        user = create_local_user(db_session, "l@x.com")
        assert user.last_login is None

        client.post("/auth/login", json={"email": "l@x.com", "password": "secret1"})

        db_session.expire_all()
        assert db_session.get(User, user.id).last_login is not None

    def test_email_lookup_is_case_insensitive(self, client, db_session):
        create_local_user(db_session, "case@x.com")

        response = client.post("/auth/login", json={"email": "CASE@x.com", "password": "secret1"})
        assert response.status_code == 200


class TestProfile:
    def test_logout(self, client, db_session, token_codec):
        user = create_local_user(db_session, "p@x.com")

        response = client.post("/auth/logout", headers=local_headers(token_codec, user.id))

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_get_profile(self, client, db_session, token_codec):
        user = create_local_user(db_session, "p@x.com", name="Pat")

        response = client.get("/users/profile", headers=local_headers(token_codec, user.id))

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Pat"

    def test_partial_update(self, client, db_session, token_codec):
        user = create_local_user(db_session, "p@x.com", name="Pat")

        response = client.put(
            "/users/profile",
            json={"avatar": "https://example.com/me.png"},
            headers=local_headers(token_codec, user.id),
        )

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["name"] == "Pat"
        assert data["avatar"] == "https://example.com/me.png"

    def test_update_email_conflict(self, client, db_session, token_codec):
        create_local_user(db_session, "taken@x.com")
        user = create_local_user(db_session, "p@x.com")

        response = client.put(
            "/users/profile",
            json={"email": "taken@x.com"},
            headers=local_headers(token_codec, user.id),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "E_EMAIL_TAKEN"

    def test_update_to_own_email_is_allowed(self, client, db_session, token_codec):
        user = create_local_user(db_session, "p@x.com")

        response = client.put(
            "/users/profile",
            json={"email": "P@x.com", "name": "New"},
            headers=local_headers(token_codec, user.id),
        )

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "New"

    def test_invalid_avatar_rejected(self, client, db_session, token_codec):
        user = create_local_user(db_session, "p@x.com")

        response = client.put(
            "/users/profile",
            json={"avatar": "ftp://nope"},
            headers=local_headers(token_codec, user.id),
        )
        assert response.status_code == 400


class TestAdmin:
    @pytest.fixture
    def admin_headers(self, db_session, token_codec):
        admin = create_local_user(db_session, "admin@x.com", role=UserRole.admin.value)
        return local_headers(token_codec, admin.id)

    def test_list_users_excludes_inactive_by_default(self, client, db_session, admin_headers):
        create_local_user(db_session, "on@x.com")
        create_local_user(db_session, "off@x.com", is_active=False)

        response = client.get("/users", headers=admin_headers)
        emails = {u["email"] for u in response.json()["data"]}

        assert "on@x.com" in emails
        assert "off@x.com" not in emails
        assert response.json()["count"] == len(emails)

        response = client.get("/users?includeInactive=true", headers=admin_headers)
        assert "off@x.com" in {u["email"] for u in response.json()["data"]}

    def test_get_user_by_id(self, client, db_session, admin_headers):
        user = create_local_user(db_session, "find@x.com")

        response = client.get(f"/users/{user.id}", headers=admin_headers)
        assert response.json()["data"]["email"] == "find@x.com"

        missing = client.get(f"/users/{uuid4()}", headers=admin_headers)
        assert missing.status_code == 404
        assert missing.json()["code"] == "E_USER_NOT_FOUND"

    def test_deactivate_user(self, client, db_session, token_codec, admin_headers):
        user = create_local_user(db_session, "bye@x.com")

        response = client.delete(f"/users/{user.id}", headers=admin_headers)
        assert response.status_code == 200

        db_session.expire_all()
        stored = db_session.get(User, user.id)
        assert stored.is_active is False
        assert stored.deleted_at is not None

        # Deactivated accounts can no longer authenticate
        me = client.get("/auth/me", headers=local_headers(token_codec, user.id))
        assert me.status_code == 401

    def test_non_admin_cannot_deactivate(self, client, db_session, token_codec):
        user = create_local_user(db_session, "u@x.com")
        other = create_local_user(db_session, "o@x.com")

        response = client.delete(f"/users/{other.id}", headers=local_headers(token_codec, user.id))
        assert response.status_code == 403

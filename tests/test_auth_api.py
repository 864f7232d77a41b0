"""Tests for login, logout and the session endpoint."""

from datetime import datetime, timedelta, timezone

from sgcheckout.models import AuthSession
from sgcheckout.services.auth import verify_password


class TestLogin:
    def test_success(self, client, create_user, user_password):
        user = create_user(username="alice", email="alice@example.com")
        r = client.post("/api/auth/login", json={"username": "alice", "password": user_password})
        assert r.status_code == 200
        data = r.json()
        assert data["token"]
        assert data["user"]["username"] == "alice"
        assert data["user"]["email"] == "alice@example.com"
        assert "expiresAt" in data
        assert "sg_session_id" in r.cookies

    def test_bad_password(self, client, create_user):
        create_user(username="alice")
        r = client.post("/api/auth/login", json={"username": "alice", "password": "nope"})
        assert r.status_code == 401
        assert r.json()["detail"] == "Invalid credentials"

    def test_unknown_user(self, client):
        r = client.post("/api/auth/login", json={"username": "ghost", "password": "x"})
        assert r.status_code == 401

    def test_malformed_stored_hash(self, client, create_user, user_password):
        create_user(username="alice", password_hash="pbkdf2_sha256$x$salt$digest")
        r = client.post("/api/auth/login", json={"username": "alice", "password": user_password})
        assert r.status_code == 401
        assert r.json()["detail"] == "Invalid credentials"

    def test_passwords_stored_as_bcrypt(self, create_user, user_password):
        user = create_user()
        assert user.password_hash.startswith("$2b$04$")
        assert verify_password(user_password, user.password_hash)
        assert not verify_password("wrong", user.password_hash)


class TestMe:
    def test_with_bearer_token(self, client, create_user, login):
        user = create_user(display_name="Alice A")
        token = login(user)
        r = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 200
        data = r.json()
        assert data["id"] == user.id
        assert data["displayName"] == "Alice A"

    def test_unprefixed_route(self, client, auth_headers):
        r = client.get("/me", headers=auth_headers())
        assert r.status_code == 200

    def test_with_cookie(self, client, create_user, user_password):
        user = create_user()
        client.post("/api/auth/login", json={"username": user.username, "password": user_password})
        r = client.get("/api/me")
        assert r.status_code == 200
        assert r.json()["username"] == user.username

    def test_anonymous(self, client):
        r = client.get("/api/me")
        assert r.status_code == 401
        assert r.json()["detail"] == "Authentication required"

    def test_garbage_token(self, client):
        r = client.get("/api/me", headers={"Authorization": "Bearer not-a-session"})
        assert r.status_code == 401

    def test_expired_session_is_removed(self, client, db, create_user, login):
        token = login(create_user())
        session = db.query(AuthSession).filter(AuthSession.token == token).first()
        session.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db.commit()

        r = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 401
        assert db.query(AuthSession).filter(AuthSession.token == token).first() is None


class TestLogout:
    def test_revokes_session(self, client, create_user, login):
        token = login(create_user())
        headers = {"Authorization": f"Bearer {token}"}
        r = client.post("/api/auth/logout", headers=headers)
        assert r.status_code == 204
        assert client.get("/api/me", headers=headers).status_code == 401

    def test_idempotent(self, client):
        r = client.post("/api/auth/logout")
        assert r.status_code == 204

"""
Tests for signup, login and token handling
"""
from datetime import timedelta

from media_studio.auth import create_access_token, get_password_hash, verify_password, verify_token


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = get_password_hash("correct horse battery")
        assert verify_password("correct horse battery", hashed)
        assert not verify_password("wrong", hashed)

    def test_long_passwords_are_not_truncated(self):
        """Passwords past bcrypt's 72-byte limit still differ"""
        base = "x" * 80
        hashed = get_password_hash(base + "a")
        assert verify_password(base + "a", hashed)
        assert not verify_password(base + "b", hashed)


class TestTokens:

    def test_round_trip(self):
        token = create_access_token({"sub": "42"})
        payload = verify_token(token)
        assert payload["sub"] == "42"
        assert "jti" in payload

    def test_expired_token(self):
        token = create_access_token({"sub": "42"}, expires_delta=timedelta(seconds=-1))
        assert verify_token(token) is None

    def test_garbage_token(self):
        assert verify_token("not-a-jwt") is None


class TestAuthRoutes:

    def test_signup_returns_token_and_defaults(self, client):
        response = client.post(
            "/api/auth/signup",
            json={"email": "Fresh@Example.com", "password": "supersecret", "full_name": "Fresh"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "fresh@example.com"
        assert data["user"]["image_credits"] == 100
        assert data["user"]["video_credits"] == 50
        assert "auth_token" in response.cookies

    def test_signup_duplicate_email_case_insensitive(self, client, test_user):
        response = client.post("/api/auth/signup", json={"email": "TEST@EXAMPLE.COM", "password": "supersecret"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Email already registered"

    def test_signup_short_password(self, client):
        response = client.post("/api/auth/signup", json={"email": "a@example.com", "password": "short"})
        assert response.status_code == 400

    def test_login(self, client, test_user):
        response = client.post(
            "/api/auth/login",
            data={"username": "Test@Example.com", "password": "testpassword123"},
        )
        assert response.status_code == 200
        token = response.json()["access_token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "test@example.com"

    def test_login_wrong_password(self, client, test_user):
        response = client.post("/api/auth/login", data={"username": "test@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTH_ERROR"

    def test_inactive_user(self, client, db_session, test_user, auth_headers):
        test_user.is_active = False
        db_session.commit()

        assert client.post(
            "/api/auth/login", data={"username": "test@example.com", "password": "testpassword123"}
        ).status_code == 403
        assert client.get("/api/auth/me", headers=auth_headers).status_code == 403

    def test_cookie_auth(self, client, test_user):
        client.post("/api/auth/login", data={"username": "test@example.com", "password": "testpassword123"})
        assert client.get("/api/auth/me").status_code == 200

        client.post("/api/auth/logout")
        assert client.get("/api/auth/me").status_code == 401

    def test_token_for_deleted_user(self, client, db_session, test_user, auth_headers):
        db_session.delete(test_user)
        db_session.commit()
        assert client.get("/api/auth/me", headers=auth_headers).status_code == 401

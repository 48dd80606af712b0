"""
Unit tests for registration, login and the current-user endpoint.
"""
from app.deps import create_access_token


def get_auth_header(token: str) -> dict:
    """Helper function to create authorization header."""
    return {"Authorization": f"Bearer {token}"}


class TestUserRegistration:
    """Tests for user registration endpoint."""

    def test_register_user_success(self, client):
        response = client.post(
            "/users/register",
            json={
                "name": "New User",
                "username": "newuser",
                "email": "newuser@example.com",
                "password": "password123",
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "newuser"
        assert data["role"] == "regular"
        assert data["id"]
        assert "password" not in data
        assert "hashed_password" not in data

    def test_register_duplicate_username(self, client, regular_user):
        response = client.post(
            "/users/register",
            json={
                "name": "Another User",
                "username": "regularuser",
                "email": "different@example.com",
                "password": "password123",
            },
        )
        assert response.status_code == 400
        assert "already exists" in response.json()["detail"]

    def test_register_invalid_email(self, client):
        response = client.post(
            "/users/register",
            json={
                "name": "Test User",
                "username": "testuser",
                "email": "not-an-email",
                "password": "password123",
            },
        )
        assert response.status_code == 422


class TestUserLogin:
    """Tests for user login endpoint."""

    def test_login_success(self, client, regular_user):
        response = client.post(
            "/users/login",
            data={"username": "regularuser", "password": "regularpass123"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]

    def test_login_wrong_password(self, client, regular_user):
        response = client.post(
            "/users/login",
            data={"username": "regularuser", "password": "wrong"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    def test_login_ignores_query_string_credentials(self, client, regular_user):
        response = client.post(
            "/users/login",
            params={"username": "regularuser", "password": "regularpass123"},
        )
        assert response.status_code == 422
        assert "access_token" not in response.json()

    def test_token_without_subject_rejected(self, client, regular_user):
        token = create_access_token({"role": "regular"})
        response = client.get("/users/me", headers=get_auth_header(token))
        assert response.status_code == 401


class TestCurrentUser:
    """Tests for GET /users/me."""

    def test_me_returns_booking_identity(self, client, regular_user, regular_token):
        response = client.get("/users/me", headers=get_auth_header(regular_token))
        assert response.status_code == 200
        assert response.json()["id"] == regular_user.id

    def test_me_requires_valid_token(self, client):
        response = client.get("/users/me", headers=get_auth_header("garbage"))
        assert response.status_code == 401

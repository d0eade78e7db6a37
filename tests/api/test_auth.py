"""Tests for authentication API endpoints."""

from fastapi.testclient import TestClient

PASSWORD = "secret123"


def register(client: TestClient, email: str = "carol@example.com", username: str = "carol"):
    """Register a user through the API."""
    return client.post(
        "/api/auth/register",
        json={"email": email, "username": username, "password": PASSWORD},
    )


class TestRegister:
    """Tests for POST /api/auth/register."""

    def test_register(self, client: TestClient) -> None:
        """Returns the user and a token, never the password."""
        response = register(client)

        assert response.status_code == 201
        data = response.json()
        assert data["token"]
        assert data["user"]["email"] == "carol@example.com"
        assert data["user"]["username"] == "carol"
        assert "password" not in str(data["user"]).lower()

    def test_duplicate_email(self, client: TestClient) -> None:
        """Email must be unique."""
        register(client)
        response = register(client, username="other")

        assert response.status_code == 409
        assert response.json()["message"] == "User with this email or username already exists"

    def test_duplicate_username(self, client: TestClient) -> None:
        """Username must be unique."""
        register(client)
        response = register(client, email="other@example.com")
        assert response.status_code == 409

    def test_invalid_input(self, client: TestClient) -> None:
        """Bad email or short password is rejected."""
        response = client.post(
            "/api/auth/register",
            json={"email": "not-an-email", "username": "carol", "password": "123"},
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"


class TestLogin:
    """Tests for POST /api/auth/login."""

    def test_login(self, client: TestClient, alice) -> None:
        """Valid credentials return a token that works."""
        response = client.post(
            "/api/auth/login",
            json={"email": alice.email, "password": PASSWORD},
        )

        assert response.status_code == 200
        token = response.json()["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["id"] == alice.id

    def test_wrong_password(self, client: TestClient, alice) -> None:
        """Wrong password gives 401."""
        response = client.post(
            "/api/auth/login",
            json={"email": alice.email, "password": "wrong-password"},
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_unknown_email(self, client: TestClient) -> None:
        """Unknown email gives the same 401."""
        response = client.post(
            "/api/auth/login",
            json={"email": "nobody@example.com", "password": PASSWORD},
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"


class TestMe:
    """Tests for GET /api/auth/me."""

    def test_me(self, client: TestClient, alice) -> None:
        """Returns the caller's profile."""
        response = client.get("/api/auth/me", headers=alice.headers)

        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "alice"
        assert "createdAt" in data

    def test_requires_auth(self, client: TestClient) -> None:
        """Anonymous callers get 401."""
        assert client.get("/api/auth/me").status_code == 401

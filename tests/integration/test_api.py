"""
Integration tests for API endpoints.
"""

import pytest

from libris.security import SessionIssuer

pytestmark = pytest.mark.asyncio


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"

    async def test_root_lists_endpoints(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["endpoints"]["books"] == "/api/books"

    async def test_request_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    async def test_unknown_route_uses_envelope(self, client):
        response = await client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json()["success"] is False


class TestAuthEndpoints:
    """Tests for registration, login and the session gate."""

    async def test_register_returns_token_and_user(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"name": "Alice", "email": "Alice@Example.com", "password": "secret1"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["token"]
        assert body["user"]["email"] == "alice@example.com"
        assert body["user"]["theme"] == "dark"
        assert "password" not in str(body["user"]).lower()

    async def test_register_duplicate_email(self, client, register_user):
        await register_user()

        response = await client.post(
            "/api/auth/register",
            json={"name": "Alice Again", "email": "ALICE@example.com", "password": "secret9"},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    async def test_register_missing_fields(self, client):
        response = await client.post("/api/auth/register", json={"email": "a@example.com"})

        assert response.status_code == 400
        assert response.json()["message"] == "Please provide name, email, and password"

    async def test_register_overlong_password(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"name": "Alice", "email": "alice@example.com", "password": "p" * 80},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_login(self, client, register_user):
        _, user = await register_user()

        response = await client.post(
            "/api/auth/login",
            json={"email": "alice@example.com", "password": "secret1"},
        )

        assert response.status_code == 200
        assert response.json()["user"]["id"] == user["id"]

    async def test_login_failures_are_indistinguishable(self, client, register_user):
        await register_user()

        wrong_password = await client.post(
            "/api/auth/login",
            json={"email": "alice@example.com", "password": "nope99"},
        )
        unknown_email = await client.post(
            "/api/auth/login",
            json={"email": "nobody@example.com", "password": "secret1"},
        )

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json()["message"] == unknown_email.json()["message"] == "Invalid email or password"

    async def test_login_missing_fields(self, client):
        response = await client.post("/api/auth/login", json={"email": "alice@example.com"})

        assert response.status_code == 400
        assert response.json()["message"] == "Please provide email and password"

    async def test_me(self, client, register_user):
        token, user = await register_user()

        response = await client.get("/api/auth/me", headers=auth_header(token))

        assert response.status_code == 200
        assert response.json()["user"]["id"] == user["id"]

    async def test_gate_without_token(self, client):
        response = await client.get("/api/books")

        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized. Please log in to access this resource."

    async def test_gate_ignores_non_bearer_scheme(self, client, register_user):
        token, _ = await register_user()

        response = await client.get("/api/books", headers={"Authorization": f"Basic {token}"})

        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized. Please log in to access this resource."

    async def test_gate_with_bad_token(self, client):
        response = await client.get("/api/books", headers=auth_header("garbage"))

        assert response.status_code == 401
        assert response.json()["message"] == "Token is invalid or expired. Please log in again."

    async def test_gate_with_unknown_account(self, client, settings):
        token = SessionIssuer(settings.secret_key).issue("no-such-account")

        response = await client.get("/api/books", headers=auth_header(token))

        assert response.status_code == 401
        assert response.json()["message"] == "User not found. Please log in again."

    async def test_theme(self, client, register_user):
        token, _ = await register_user()

        response = await client.put("/api/auth/theme", json={"theme": "light"}, headers=auth_header(token))
        assert response.status_code == 200
        assert response.json()["theme"] == "light"

        me = await client.get("/api/auth/me", headers=auth_header(token))
        assert me.json()["user"]["theme"] == "light"

    async def test_invalid_theme(self, client, register_user):
        token, _ = await register_user()

        response = await client.put("/api/auth/theme", json={"theme": "sepia"}, headers=auth_header(token))

        assert response.status_code == 400


class TestPasswordResetEndpoints:
    """Tests for the forgotten password flow."""

    async def test_reset_flow(self, client, register_user, notifier):
        await register_user()

        response = await client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
        assert response.status_code == 200
        assert response.json()["message"] == "Password reset link sent to your email"

        email, url = notifier.sent[-1]
        assert email == "alice@example.com"
        assert url.startswith("http://client.test/reset-password/")

        response = await client.post(
            f"/api/auth/reset-password/{notifier.last_token}",
            json={"password": "newsecret"},
        )
        assert response.status_code == 200

        login = await client.post(
            "/api/auth/login",
            json={"email": "alice@example.com", "password": "newsecret"},
        )
        assert login.status_code == 200

    async def test_reset_token_is_single_use(self, client, register_user, notifier):
        await register_user()
        await client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
        url = f"/api/auth/reset-password/{notifier.last_token}"

        first = await client.post(url, json={"password": "newsecret"})
        second = await client.post(url, json={"password": "another1"})

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["message"] == "Invalid or expired reset token"

    async def test_reset_with_overlong_password(self, client, register_user, notifier):
        await register_user()
        await client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
        url = f"/api/auth/reset-password/{notifier.last_token}"

        rejected = await client.post(url, json={"password": "\u00e9" * 40})
        accepted = await client.post(url, json={"password": "newsecret"})

        assert rejected.status_code == 400
        assert accepted.status_code == 200

    async def test_forgot_password_unknown_email(self, client, notifier):
        response = await client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})

        assert response.status_code == 404
        assert notifier.sent == []

    async def test_reset_requires_password(self, client):
        response = await client.post("/api/auth/reset-password/abc", json={})

        assert response.status_code == 400
        assert response.json()["message"] == "Please provide a new password"


class TestBooksEndpoints:
    """Tests for book CRUD endpoints."""

    async def test_catalogue_lifecycle(self, client, register_user, dune):
        token, _ = await register_user()
        headers = auth_header(token)

        created = await client.post("/api/books", json=dune, headers=headers)
        assert created.status_code == 201
        assert created.json()["message"] == "Book added successfully to your library"
        book_id = created.json()["data"]["id"]

        listing = await client.get("/api/books", headers=headers)
        assert listing.json()["count"] == 1
        assert listing.json()["data"][0]["title"] == "Dune"

        updated = await client.put(f"/api/books/{book_id}", json={"year": 1966}, headers=headers)
        assert updated.status_code == 200
        assert updated.json()["data"]["year"] == 1966
        assert updated.json()["data"]["title"] == "Dune"

        deleted = await client.delete(f"/api/books/{book_id}", headers=headers)
        assert deleted.status_code == 200
        assert deleted.json()["message"] == '"Dune" has been removed from your library'

        missing = await client.get(f"/api/books/{book_id}", headers=headers)
        assert missing.status_code == 404

        logs = await client.get("/api/logs", headers=headers)
        assert [e["action"] for e in logs.json()["data"]] == ["DELETE", "EDIT", "ADD"]
        assert logs.json()["data"][0]["details"]["year"] == 1966

    async def test_duplicate_isbn_in_same_account(self, client, register_user, dune):
        token, _ = await register_user()

        await client.post("/api/books", json=dune, headers=auth_header(token))
        response = await client.post("/api/books", json=dune, headers=auth_header(token))

        assert response.status_code == 400
        assert response.json()["success"] is False

    async def test_same_isbn_in_different_accounts(self, client, register_user, dune):
        alice_token, _ = await register_user()
        bob_token, _ = await register_user("Bob", "bob@example.com", "secret2")

        a = await client.post("/api/books", json=dune, headers=auth_header(alice_token))
        b = await client.post("/api/books", json=dune, headers=auth_header(bob_token))

        assert a.status_code == b.status_code == 201

    async def test_missing_field(self, client, register_user):
        token, _ = await register_user()

        response = await client.post(
            "/api/books",
            json={"title": "Dune", "author": "Herbert"},
            headers=auth_header(token),
        )

        assert response.status_code == 400
        assert response.json()["message"] == "All fields are required (title, author, isbn, year)"

    async def test_malformed_year_type(self, client, register_user, dune):
        token, _ = await register_user()

        response = await client.post(
            "/api/books",
            json={**dune, "year": [1965]},
            headers=auth_header(token),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_other_account_sees_not_found(self, client, register_user, dune):
        alice_token, _ = await register_user()
        bob_token, _ = await register_user("Bob", "bob@example.com", "secret2")
        book_id = (await client.post("/api/books", json=dune, headers=auth_header(alice_token))).json()["data"]["id"]

        bob = auth_header(bob_token)
        assert (await client.get(f"/api/books/{book_id}", headers=bob)).status_code == 404
        assert (await client.put(f"/api/books/{book_id}", json={"title": "Mine"}, headers=bob)).status_code == 404
        assert (await client.delete(f"/api/books/{book_id}", headers=bob)).status_code == 404
        assert (await client.get("/api/books", headers=bob)).json()["count"] == 0

        still_there = await client.get(f"/api/books/{book_id}", headers=auth_header(alice_token))
        assert still_there.json()["data"]["title"] == "Dune"

        bob_logs = await client.get("/api/logs", headers=bob)
        assert bob_logs.json()["count"] == 0


class TestLogsEndpoints:
    """Tests for the activity history endpoints."""

    async def test_limit(self, client, register_user, sample_books_batch):
        token, _ = await register_user()
        for book in sample_books_batch:
            await client.post("/api/books", json=book, headers=auth_header(token))

        response = await client.get("/api/logs", params={"limit": 2}, headers=auth_header(token))

        assert response.json()["count"] == 2
        assert response.json()["data"][0]["book_title"] == sample_books_batch[-1]["title"]

    async def test_limit_out_of_range(self, client, register_user):
        token, _ = await register_user()

        response = await client.get("/api/logs", params={"limit": 0}, headers=auth_header(token))

        assert response.status_code == 400

    async def test_clear_is_scoped(self, client, register_user, dune):
        alice_token, _ = await register_user()
        bob_token, _ = await register_user("Bob", "bob@example.com", "secret2")
        await client.post("/api/books", json=dune, headers=auth_header(alice_token))
        await client.post("/api/books", json=dune, headers=auth_header(bob_token))

        response = await client.delete("/api/logs", headers=auth_header(alice_token))

        assert response.status_code == 200
        assert response.json()["message"] == "Activity history cleared successfully"
        assert (await client.get("/api/logs", headers=auth_header(alice_token))).json()["count"] == 0
        assert (await client.get("/api/logs", headers=auth_header(bob_token))).json()["count"] == 1

        # Books survive a history clear
        assert (await client.get("/api/books", headers=auth_header(alice_token))).json()["count"] == 1


class TestBookFieldTypes:
    """Malformed field types on book requests."""

    async def test_foreign_book_is_not_found_before_field_types(self, client, register_user, dune):
        alice_token, _ = await register_user()
        bob_token, _ = await register_user("Bob", "bob@example.com", "secret2")
        book_id = (await client.post("/api/books", json=dune, headers=auth_header(alice_token))).json()["data"]["id"]

        response = await client.put(f"/api/books/{book_id}", json={"title": 5}, headers=auth_header(bob_token))

        assert response.status_code == 404

    async def test_own_book_with_wrong_type(self, client, register_user, dune):
        token, _ = await register_user()
        book_id = (await client.post("/api/books", json=dune, headers=auth_header(token))).json()["data"]["id"]

        response = await client.put(f"/api/books/{book_id}", json={"title": 5}, headers=auth_header(token))

        assert response.status_code == 400
        assert response.json()["message"] == "Title must be a string"

    async def test_create_with_wrong_type(self, client, register_user, dune):
        token, _ = await register_user()

        response = await client.post("/api/books", json={**dune, "isbn": 9780441013593}, headers=auth_header(token))

        assert response.status_code == 400
        assert response.json()["message"] == "ISBN must be a string"

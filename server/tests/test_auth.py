# ─────────────────────────────────────────────────────────────────────────────
# Tests — Sign-in and the admin bearer gate
# ─────────────────────────────────────────────────────────────────────────────

import pytest
from conftest import ADMIN_PASSWORD, ADMIN_USER, FakeClock
from dirty_equals import IsUUID
from fastapi.testclient import TestClient

from storefront.auth import SessionStore, bearer_token, hash_password
from storefront.exceptions import InvalidTokenFormatError

_CHALLENGE = 'Basic realm="restricted", charset="UTF-8"'


# ── Helpers ──────────────────────────────────────────────────────────────────


class TestBearerToken:
    def test_extracts_token(self) -> None:
        assert bearer_token("Bearer abc-123") == "abc-123"

    @pytest.mark.parametrize("header", ["", "abc-123", "Bearer", "Bearer   ", "Token abc"])
    def test_rejects_malformed(self, header: str) -> None:
        with pytest.raises(InvalidTokenFormatError):
            bearer_token(header)


class TestSessionStore:
    def test_issue_and_lookup(self) -> None:
        sessions = SessionStore()
        token = sessions.issue("admin")
        assert token == IsUUID(4)
        assert sessions.username_for(token) == "admin"
        assert len(sessions) == 1

    def test_unknown_token(self) -> None:
        assert SessionStore().username_for("nope") is None


def test_hash_password_is_bcrypt() -> None:
    hashed = hash_password("hunter2")
    assert hashed.startswith("$2")
    assert hashed != "hunter2"


# ── POST /signin ─────────────────────────────────────────────────────────────


class TestSignIn:
    def test_valid_credentials_issue_token(self, client: TestClient) -> None:
        response = client.post("/signin", auth=(ADMIN_USER, ADMIN_PASSWORD))
        assert response.status_code == 202
        assert response.json() == {"token": IsUUID(4)}

    def test_issued_token_opens_admin_routes(self, client: TestClient) -> None:
        token = client.post("/signin", auth=(ADMIN_USER, ADMIN_PASSWORD)).json()["token"]
        response = client.get("/product/prod_tee_m", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200

    def test_wrong_password(self, client: TestClient) -> None:
        response = client.post("/signin", auth=(ADMIN_USER, "wrong"))
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == _CHALLENGE
        assert response.json()["error"] == "Invalid Credentials"

    def test_unknown_user(self, client: TestClient) -> None:
        response = client.post("/signin", auth=("mallory", ADMIN_PASSWORD))
        assert response.status_code == 401

    def test_missing_credentials(self, client: TestClient) -> None:
        response = client.post("/signin")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == _CHALLENGE

    def test_rate_limited_at_five_per_minute(
        self, client: TestClient, clock: FakeClock
    ) -> None:
        codes = [client.post("/signin", auth=(ADMIN_USER, "wrong")).status_code for _ in range(6)]
        assert codes == [401] * 5 + [429]
        clock.advance(60.0)
        assert client.post("/signin", auth=(ADMIN_USER, ADMIN_PASSWORD)).status_code == 202


# ── Admin gate ───────────────────────────────────────────────────────────────


class TestAdminGate:
    def test_static_bearer_accepted(
        self, client: TestClient, admin_headers: dict[str, str]
    ) -> None:
        assert client.get("/product/prod_tee_m", headers=admin_headers).status_code == 200

    def test_missing_header_is_format_error(self, client: TestClient) -> None:
        response = client.get("/product/prod_tee_m")
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_TOKEN_FORMAT"

    def test_wrong_scheme_is_format_error(self, client: TestClient) -> None:
        response = client.get("/product/prod_tee_m", headers={"Authorization": "Basic abc"})
        assert response.status_code == 400

    def test_unknown_token_forbidden(self, client: TestClient) -> None:
        response = client.get("/product/prod_tee_m", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 403
        assert response.json()["error"] == "INVALID_TOKEN"

    def test_rate_limit_runs_before_auth(self, client: TestClient) -> None:
        """Unauthenticated probing still spends the caller's admin-route budget."""
        codes = [client.get("/product/prod_tee_m").status_code for _ in range(31)]
        assert codes == [400] * 30 + [429]

    def test_public_routes_need_no_token(self, client: TestClient) -> None:
        assert client.get("/products").status_code == 200

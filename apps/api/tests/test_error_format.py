"""Error format contract (RFC 9457 Problem Details).

Every error response:
- Content-Type: application/problem+json
- Required fields: type, title, status, detail, instance
- ``code``: stable machine-readable extension member
- instance is opaque (urn:raidsignup:trace:{request_id}), no path leaks

Status codes tested: 400, 401, 403, 404, 409, 422, 500, 503
"""

import json
import re
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from raid_api.db.session import get_db
from raid_api.errors import InternalError, StorageError
from raid_api.main import _error_response, app

FUTURE = "2099-06-01T20:00:00Z"


def assert_problem_details(resp, expected_status: int, expected_code: str | None = None):
    content_type = resp.headers.get("content-type", "")
    assert content_type.startswith("application/problem+json"), \
        f"Expected application/problem+json, got: {content_type}"

    data = resp.json()
    for field in ("type", "title", "status", "detail", "instance"):
        assert field in data, f"Missing required field: {field}"

    assert data["status"] == expected_status
    assert data["type"].startswith("https://api.raid-signup.dev/problems/")

    instance = data["instance"]
    assert re.match(r"^urn:raidsignup:trace:[A-Za-z0-9._:-]{8,}$", instance), \
        f"Invalid instance format: {instance}"
    assert "/" not in instance

    if expected_code is not None:
        assert data["code"] == expected_code
    return data


@pytest.fixture
def broken_db_client(token_service):
    """Client whose database session fails on commit."""
    session = MagicMock()
    app.dependency_overrides[get_db] = lambda: session
    headers = {"Authorization": f"Bearer {token_service.issue(1, 'ext-broken').token}"}
    yield TestClient(app, raise_server_exceptions=False), session, headers
    app.dependency_overrides.clear()


class TestErrorFormat:
    """All error responses follow RFC 9457 Problem Details."""

    def test_400_validation(self, test_client, login):
        _, headers = login("U-e400")
        resp = test_client.post("/me/characters", json={"name": " "}, headers=headers)

        data = assert_problem_details(resp, 400, "empty_name")
        assert data["type"].endswith("/empty-name")
        assert data["title"] == "Validation Failed"

    def test_401_missing_token(self, test_client):
        resp = test_client.get("/me")

        assert_problem_details(resp, 401, "token_missing")
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    def test_403_not_owner(self, test_client, login):
        _, owner = login("U-e403-a")
        _, other = login("U-e403-b")
        cid = test_client.post("/me/characters", json={"name": "X"}, headers=owner).json()["id"]

        resp = test_client.put(f"/me/characters/{cid}/default", headers=other)
        assert_problem_details(resp, 403, "not_character_owner")

    def test_404_not_found(self, test_client, login):
        _, headers = login("U-e404")
        resp = test_client.delete("/raids/424242", headers=headers)

        data = assert_problem_details(resp, 404, "raid_not_found")
        assert "424242" not in data["instance"]

    def test_404_unknown_route(self, test_client):
        resp = test_client.get("/no-such-route")
        assert_problem_details(resp, 404)

    def test_409_conflict(self, test_client, login):
        _, headers = login("U-e409")
        cid = test_client.post("/me/characters", json={"name": "Y"}, headers=headers).json()["id"]
        raid_id = test_client.post("/raids", json={"title": "T", "startTime": FUTURE}, headers=headers).json()["id"]
        test_client.post(f"/raids/{raid_id}/signup", json={"characterId": cid}, headers=headers)

        resp = test_client.post(f"/raids/{raid_id}/signup", json={"characterId": cid}, headers=headers)
        data = assert_problem_details(resp, 409, "duplicate_signup")
        assert data["title"] == "Conflict"

    def test_422_request_validation(self, test_client, login):
        _, headers = login("U-e422")
        resp = test_client.post("/raids/1/signup", json={"characterId": "not-a-number"}, headers=headers)

        data = assert_problem_details(resp, 422, "request_validation_failed")
        assert data["errors"][0]["loc"][-1] == "characterId"

    def test_instance_carries_request_id(self, test_client):
        resp = test_client.get("/me", headers={"X-Request-ID": "req-trace-0001"})

        assert resp.json()["instance"] == "urn:raidsignup:trace:req-trace-0001"
        assert resp.headers["X-Request-ID"] == "req-trace-0001"


class TestStorageFailures:
    def test_503_when_commit_fails(self, broken_db_client):
        client, session, headers = broken_db_client
        session.commit.side_effect = OperationalError("COMMIT", {}, Exception("could not connect to server"))

        resp = client.post("/raids", json={"title": "T", "startTime": FUTURE}, headers=headers)

        data = assert_problem_details(resp, 503, "storage_unavailable")
        assert "could not connect" not in data["detail"]
        session.rollback.assert_called_once()

    def test_500_on_unexpected_error(self, broken_db_client):
        client, session, headers = broken_db_client
        session.commit.side_effect = RuntimeError("secret internals")

        resp = client.post("/raids", json={"title": "T", "startTime": FUTURE}, headers=headers)

        data = assert_problem_details(resp, 500, "internal_error")
        assert "secret internals" not in data["detail"]


@pytest.mark.parametrize(
    "exc,status",
    [(StorageError(), 503), (InternalError(), 500)],
)
def test_error_response_renders_server_errors(exc, status):
    resp = _error_response(exc)
    data = json.loads(resp.body)

    assert resp.status_code == status
    assert resp.media_type == "application/problem+json"
    assert data["code"] == exc.code
    assert data["type"].endswith(exc.code.replace("_", "-"))
    assert "WWW-Authenticate" not in resp.headers

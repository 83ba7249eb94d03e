"""
HTTP surface: object writes and reads, validation, health, and the TTL path
end to end through the running controllers.
"""

import time

import pytest
from fastapi.testclient import TestClient

from app import app


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def _wait_gone(client, path, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if client.get(path).status_code == 404:
            return True
        time.sleep(0.02)
    return False


class TestBuilds:

    def test_put_get_list_delete(self, client):
        r = client.put("/v1/builds/ns/b1", json={"retention": {"succeeded_limit": 3, "ttl_after_failed": "1h"}})
        assert r.status_code == 200
        assert r.json()["created"] is True

        got = client.get("/v1/builds/ns/b1").json()
        assert got["retention"]["succeeded_limit"] == 3
        assert got["retention"]["ttl_after_failed"] == "1h"

        again = client.put("/v1/builds/ns/b1", json={"retention": {"succeeded_limit": 2}})
        assert again.json()["created"] is False

        names = [b["name"] for b in client.get("/v1/builds", params={"namespace": "ns"}).json()["items"]]
        assert names == ["b1"]

        assert client.delete("/v1/builds/ns/b1").json() == {"ok": True, "deleted": True}
        assert client.delete("/v1/builds/ns/b1").json() == {"ok": True, "deleted": False}
        assert client.get("/v1/builds/ns/b1").status_code == 404

    def test_invalid_duration_rejected(self, client):
        r = client.put("/v1/builds/ns/b1", json={"retention": {"ttl_after_failed": "soon"}})
        assert r.status_code == 422

    def test_zero_limit_rejected(self, client):
        r = client.put("/v1/builds/ns/b1", json={"retention": {"failed_limit": 0}})
        assert r.status_code == 422


class TestBuildRuns:

    def test_snapshot_captured_from_owner(self, client):
        client.put("/v1/builds/ns/b1", json={"retention": {"ttl_after_succeeded": "2h"}})
        r = client.put("/v1/buildruns/ns/r1", json={"build_ref": "b1", "succeeded": "Unknown"})
        assert r.status_code == 200

        run = r.json()["buildrun"]
        assert run["status_build_retention"]["ttl_after_succeeded"] == "2h"
        assert run["completion_time"] is None

    def test_completion_time_defaults_on_completion(self, client):
        client.put("/v1/buildruns/ns/r1", json={"succeeded": "Unknown"})
        before = time.time()
        run = client.put("/v1/buildruns/ns/r1", json={"succeeded": "False"}).json()["buildrun"]
        assert run["completion_time"] >= before - 1

    def test_terminal_condition_cannot_change(self, client):
        client.put("/v1/buildruns/ns/r1", json={"succeeded": "True", "completion_time": "2024-01-01T00:00:00Z"})
        r = client.put("/v1/buildruns/ns/r1", json={"succeeded": "Unknown"})
        assert r.status_code == 409

    def test_completion_time_before_completion_rejected(self, client):
        r = client.put("/v1/buildruns/ns/r1", json={"succeeded": "Unknown", "completion_time": 1000})
        assert r.status_code == 422
        assert client.get("/v1/buildruns/ns/r1").status_code == 404

    def test_nan_completion_time_rejected(self, client):
        r = client.put(
            "/v1/buildruns/ns/r1",
            content='{"succeeded": "True", "completion_time": NaN, "retention": {"ttl_after_succeeded": "1h"}}',
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 422
        assert client.get("/v1/buildruns/ns/r1").status_code == 404

    def test_bad_condition_rejected(self, client):
        assert client.put("/v1/buildruns/ns/r1", json={"succeeded": "Maybe"}).status_code == 422

    def test_list_by_build(self, client):
        client.put("/v1/buildruns/ns/a", json={"build_ref": "b1"})
        client.put("/v1/buildruns/ns/b", json={"build_ref": "b2"})
        items = client.get("/v1/buildruns", params={"build": "b1"}).json()["items"]
        assert [i["name"] for i in items] == ["a"]

    def test_missing_run(self, client):
        assert client.get("/v1/buildruns/ns/nope").status_code == 404
        assert client.delete("/v1/buildruns/ns/nope").json()["deleted"] is False

    def test_ttl_deletes_completed_run(self, client):
        client.put("/v1/buildruns/ns/r1", json={"succeeded": "Unknown", "retention": {"ttl_after_succeeded": "200ms"}})
        client.put(
            "/v1/buildruns/ns/r1",
            json={"succeeded": "True", "retention": {"ttl_after_succeeded": "200ms"}},
        )
        assert _wait_gone(client, "/v1/buildruns/ns/r1")

    def test_inherited_ttl_deletes_failed_run(self, client):
        client.put("/v1/builds/ns/b1", json={"retention": {"ttl_after_failed": "100ms"}})
        client.put("/v1/buildruns/ns/r1", json={"build_ref": "b1", "succeeded": "Unknown"})
        client.put("/v1/buildruns/ns/r1", json={"build_ref": "b1", "succeeded": "False"})
        assert _wait_gone(client, "/v1/buildruns/ns/r1")

    def test_limit_prunes_oldest(self, client):
        client.put("/v1/builds/ns/b1", json={"retention": {"failed_limit": 1}})
        client.put("/v1/buildruns/ns/old", json={"build_ref": "b1", "succeeded": "False", "completion_time": 1000})
        client.put("/v1/buildruns/ns/new", json={"build_ref": "b1", "succeeded": "Unknown"})
        client.put("/v1/buildruns/ns/new", json={"build_ref": "b1", "succeeded": "False"})

        assert _wait_gone(client, "/v1/buildruns/ns/old")
        assert client.get("/v1/buildruns/ns/new").status_code == 200


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.text.startswith("ok builds=")
    assert "buildrun-ttl-cleanup-controller=" in r.text


def test_not_started():
    # No startup hooks without the context manager.
    c = TestClient(app)
    assert c.get("/healthz").status_code == 503
    assert c.get("/v1/builds").status_code == 503

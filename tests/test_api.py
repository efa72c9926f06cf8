"""
HTTP API tests using FastAPI's TestClient.
"""
import os
import time
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from holders_ingest.api import create_app
from holders_ingest.ingestion.ranking import rank_records
from holders_ingest.models import Snapshot, utc_now
from holders_ingest.service import build_service
from tests.conftest import ScriptedSource, holders


def wait_until(client: TestClient, predicate, timeout: float = 5.0) -> dict:
    """Poll /api/health until predicate(body) holds."""
    deadline = time.monotonic() + timeout
    while True:
        body = client.get("/api/health").json()
        if predicate(body) or time.monotonic() > deadline:
            return body
        time.sleep(0.02)


@pytest.fixture
def source():
    return ScriptedSource(pages=[holders(("0xNew", 7), ("0xBig", 900))])


@pytest.fixture
def service(settings, source):
    return build_service(settings, source_factory=lambda: source)


@pytest.fixture
def populated(service):
    service.store.replace(
        Snapshot(
            records=tuple(rank_records(holders(("0xAAA", "10"), ("0xbbb", "300"), ("0xCcC", "25")))),
            taken_at=utc_now(),
            complete=True,
        )
    )
    return service


@pytest.fixture
def client(populated, settings):
    return TestClient(create_app(settings, service=populated))


class TestHolders:

    def test_returns_ranked_list(self, client):
        response = client.get("/api/holders")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [h["TokenHolderAddress"] for h in body["data"]] == ["0xbbb", "0xCcC", "0xAAA"]
        assert body["data"][0]["TokenHolderQuantity"] == "300"
        assert body["totalHolders"] == 3
        assert body["isComplete"] is True
        assert body["isFetching"] is False
        assert body["lastUpdate"] is not None

    def test_empty_store(self, service, settings):
        client = TestClient(create_app(settings, service=service))

        body = client.get("/api/holders").json()

        assert body["success"] is True
        assert body["data"] == []
        assert body["totalHolders"] == 0
        assert body["lastUpdate"] is None

    def test_reports_fetch_in_progress(self, client, populated):
        populated.store.begin_fetch()
        populated.store.set_progress(35)

        body = client.get("/api/holders").json()

        assert body["isFetching"] is True
        assert body["fetchProgress"] == 35
        assert body["totalHolders"] == 3


class TestRank:

    def test_rank_by_path(self, client):
        body = client.get("/api/rank/0xccc").json()

        assert body["success"] is True
        assert body["data"] == {
            "rank": 2,
            "address": "0xCcC",
            "balance": "25",
            "totalHolders": 3,
        }
        assert body["lastUpdate"] is not None

    def test_rank_by_body(self, client):
        body = client.post("/api/rank", json={"address": "0xBBB"}).json()

        assert body["success"] is True
        assert body["data"]["rank"] == 1

    def test_unknown_address(self, client):
        response = client.get("/api/rank/0xnothere")

        assert response.status_code == 200
        assert response.json() == {"success": False, "message": "Address not found"}

    @pytest.mark.parametrize("payload", [{}, {"address": ""}])
    def test_missing_address_in_body_rejected(self, client, payload):
        assert client.post("/api/rank", json=payload).status_code == 422


class TestHealth:

    def test_ready(self, client):
        body = client.get("/api/health").json()

        assert body["status"] == "ok"
        assert body["dataReady"] is True
        assert body["totalHolders"] == 3
        assert body["isFetching"] is False
        # scheduler not started without the lifespan
        assert body["nextUpdate"] is None

    def test_not_ready_when_empty(self, service, settings):
        client = TestClient(create_app(settings, service=service))

        body = client.get("/api/health").json()

        assert body["status"] == "ok"
        assert body["dataReady"] is False
        assert body["lastUpdate"] is None


class TestRefresh:

    def test_already_fetching(self, client, populated):
        populated.store.begin_fetch()

        for method in ("get", "post"):
            response = getattr(client, method)("/api/refresh")
            assert response.json() == {"success": False, "message": "Already fetching data"}

    def test_refresh_runs_in_background(self, service, settings, backup):
        # a fresh backup means the scheduler does not fire on startup
        backup.save(holders(("0xOld", 1)))

        with TestClient(create_app(settings, service=service)) as client:
            assert client.get("/api/holders").json()["totalHolders"] == 1

            response = client.post("/api/refresh")
            assert response.json() == {"success": True, "message": "Data refresh started"}

            health = wait_until(client, lambda b: not b["isFetching"] and b["totalHolders"] == 2)
            assert health["fetchProgress"] == 100
            assert health["nextUpdate"] is not None

            body = client.get("/api/holders").json()
            assert [h["TokenHolderAddress"] for h in body["data"]] == ["0xBig", "0xNew"]
            assert body["isComplete"] is True

        assert [r.address for r in backup.load().records] == ["0xBig", "0xNew"]


class TestStartup:

    def test_cold_load_from_backup(self, service, settings, backup):
        backup.save(holders(("0xLow", 1), ("0xHigh", 50)))

        with TestClient(create_app(settings, service=service)) as client:
            body = client.get("/api/holders").json()

        assert [h["TokenHolderAddress"] for h in body["data"]] == ["0xHigh", "0xLow"]
        assert body["isComplete"] is True

    def test_no_backup_fetches_immediately(self, service, settings, source):
        with TestClient(create_app(settings, service=service)) as client:
            health = wait_until(client, lambda b: b["dataReady"] and not b["isFetching"])

        assert health["totalHolders"] == 2
        assert source.calls >= 1

    def test_stale_backup_still_served_while_refreshing(self, service, settings, backup, source):
        backup.save(holders(("0xOld", 1)))
        stale = time.time() - timedelta(hours=7).total_seconds()
        os.utime(backup.path, (stale, stale))

        with TestClient(create_app(settings, service=service)) as client:
            first = client.get("/api/holders").json()
            health = wait_until(client, lambda b: b["totalHolders"] == 2 and not b["isFetching"])

        assert first["totalHolders"] in (1, 2)
        assert health["dataReady"] is True

    def test_root(self, client):
        body = client.get("/").json()
        assert body["status"] == "running"

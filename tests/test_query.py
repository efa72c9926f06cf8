"""
Query layer: rank lookup, health and refresh requests.
"""
from holders_ingest import query
from holders_ingest.models import Snapshot, utc_now
from tests.conftest import holders


class FakeScheduler:
    def __init__(self, accept: bool):
        self.accept = accept

    def trigger_now(self) -> bool:
        return self.accept


class TestRankOf:

    def test_rank_is_one_based(self, store):
        taken_at = utc_now()
        store.replace(Snapshot(records=tuple(holders(("0xA", 9), ("0xB", 4))), taken_at=taken_at, complete=True))

        result = query.rank_of(store, "0xb")

        assert result.rank == 2
        assert result.address == "0xB"
        assert result.balance == "4"
        assert result.total_holders == 2
        assert result.last_update == taken_at

    def test_empty_store(self, store):
        assert query.rank_of(store, "0xA") is None

    def test_blank_address_not_found(self, store):
        store.replace(Snapshot(records=tuple(holders(("0xA", 1)))))
        assert query.rank_of(store, "  ") is None


class TestHealth:

    def test_ready_only_with_records(self, store):
        assert not query.health(store).ready

        store.replace(Snapshot(records=tuple(holders(("0xA", 1))), taken_at=utc_now()))
        status = query.health(store)

        assert status.ready
        assert status.total_holders == 1
        assert status.next_update is None

    def test_reflects_fetch_state(self, store):
        store.begin_fetch()
        store.set_progress(60)

        status = query.health(store)

        assert status.fetch_state.is_fetching
        assert status.fetch_state.progress == 60


class TestRequestRefresh:

    def test_started(self):
        outcome = query.request_refresh(FakeScheduler(accept=True))
        assert outcome.started
        assert outcome.message == "Data refresh started"

    def test_already_running(self):
        outcome = query.request_refresh(FakeScheduler(accept=False))
        assert not outcome.started
        assert outcome.message == "Already fetching data"

import pytest
from sqlalchemy import update

from bidmonitor.core.monitor import MonitoredWebsite, MonitorState, ResultItem
from bidmonitor.core.monitor import state as st
from bidmonitor.persistence import RECORD_VERSION, StateRecord, StateStore, session_scope


def populated_state(results=3):
    state, _ = st.add_website(MonitorState(), MonitoredWebsite.create("https://tenders.example.gov/"))
    items = [
        ResultItem.create(f"Bid {i}", f"https://tenders.example.gov/{i}", "tenders.example.gov", "d")
        for i in range(results)
    ]
    state, _ = st.merge_results(state, items, cap=1000)
    return st.record_success(st.record_attempt(state))


class TestStateStore:
    """Unit tests for state persistence"""

    def test_load_empty(self, memory_store):
        loaded = memory_store.load()
        assert loaded.ok
        assert not loaded.found
        assert loaded.state == MonitorState()

    def test_save_and_load(self, memory_store):
        state = populated_state()
        assert memory_store.save(state).ok

        loaded = memory_store.load()
        assert loaded.ok and loaded.found
        assert loaded.state == state

    def test_save_overwrites(self, memory_store):
        memory_store.save(populated_state(3))
        memory_store.save(populated_state(1))
        assert len(memory_store.load().state.results) == 1

    def test_save_applies_result_cap(self):
        store = StateStore.from_url("sqlite://", result_cap=2)
        store.save(populated_state(5))
        assert len(store.load().state.results) == 2

    def test_file_database(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'nested' / 'state.db'}"
        StateStore.from_url(url).save(populated_state())

        assert StateStore.from_url(url).load().state.results
        assert (tmp_path / "nested" / "state.db").exists()

    def test_namespaces_are_separate(self, memory_store):
        other = StateStore(memory_store.engine, namespace="other")
        memory_store.save(populated_state())

        assert other.load().state == MonitorState()

    def test_clear(self, memory_store):
        memory_store.save(populated_state())
        assert memory_store.clear().ok

        loaded = memory_store.load()
        assert loaded.ok and not loaded.found

    def test_corrupt_record_loads_empty(self, memory_store):
        memory_store.save(populated_state())
        with session_scope(memory_store.engine) as session:
            session.execute(
                update(StateRecord)
                .where(StateRecord.namespace == memory_store.namespace)
                .values(payload={"websites": [{"name": "missing url"}]})
            )

        loaded = memory_store.load()
        assert not loaded.ok
        assert loaded.found
        assert loaded.state == MonitorState()
        assert "Corrupt" in loaded.error

    @pytest.mark.parametrize("payload", [
        {"websites": [], "results": [], "stats": "garbage"},
        {"websites": [], "results": [], "stats": [1, 2]},
        {"websites": "example.gov", "results": []},
        {"websites": [], "results": [["Bid", "https://x.gov"]]},
    ])
    def test_wrong_shapes_load_empty(self, memory_store, payload):
        memory_store.save(populated_state())
        with session_scope(memory_store.engine) as session:
            session.execute(
                update(StateRecord)
                .where(StateRecord.namespace == memory_store.namespace)
                .values(payload=payload)
            )

        loaded = memory_store.load()
        assert not loaded.ok
        assert loaded.state == MonitorState()
        assert "must be an object" in loaded.error

    def test_other_version_loads_empty(self, memory_store):
        memory_store.save(populated_state())
        with session_scope(memory_store.engine) as session:
            session.execute(
                update(StateRecord)
                .where(StateRecord.namespace == memory_store.namespace)
                .values(version=RECORD_VERSION + 1)
            )

        loaded = memory_store.load()
        assert not loaded.ok
        assert loaded.state == MonitorState()

"""
Tests for the local sync record.
"""

import json

import pytest

from packsync.core.errors import LocalIOError
from packsync.sync.state import SyncState


class TestSyncState:

    @pytest.fixture
    def record_path(self, temp_dir):
        return temp_dir / "data" / "index.json"

    def test_missing_file_reads_empty(self, record_path):
        state = SyncState(record_path).load()
        assert state.names() == []
        assert state.get_version("pack") is None

    def test_commit_persists(self, record_path):
        SyncState(record_path).load().commit("pack", "3", {"objects": {"a": "b"}})

        reloaded = SyncState(record_path).load()
        assert reloaded.is_up_to_date("pack", "3")
        assert not reloaded.is_up_to_date("pack", "4")
        assert reloaded.get("pack")["objects"] == {"a": "b"}

    def test_commit_leaves_no_temp_file(self, record_path):
        SyncState(record_path).load().commit("pack", "1")
        assert [p.name for p in record_path.parent.iterdir()] == ["index.json"]

    def test_numeric_version_compares_as_string(self, record_path):
        state = SyncState(record_path).load()
        state.commit("pack", 2)
        assert state.is_up_to_date("pack", "2")

    def test_corrupt_file_reads_empty(self, record_path):
        record_path.parent.mkdir(parents=True)
        record_path.write_text("{not json")
        assert SyncState(record_path).load().names() == []

    def test_non_list_reads_empty(self, record_path):
        record_path.parent.mkdir(parents=True)
        record_path.write_text(json.dumps({"modpack_name": "pack"}))
        assert SyncState(record_path).load().names() == []

    def test_entries_without_name_skipped(self, record_path):
        record_path.parent.mkdir(parents=True)
        record_path.write_text(json.dumps([{"modpack_version": "1"}, {"modpack_name": "ok"}]))
        assert SyncState(record_path).load().names() == ["ok"]

    def test_forget(self, record_path):
        state = SyncState(record_path).load()
        state.commit("pack", "1")
        assert state.forget("pack")
        assert not state.forget("pack")
        assert SyncState(record_path).load().names() == []

    def test_save_failure_is_local_io_error(self, temp_dir):
        # The record path is a directory, so the final replace fails
        target = temp_dir / "index.json"
        target.mkdir()
        (target / "keep").write_text("x")
        state = SyncState(target)
        with pytest.raises(LocalIOError):
            state.commit("pack", "1")

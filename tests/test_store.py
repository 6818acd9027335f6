"""
Tests for CacheStore: execution log, golden uniqueness and JSON persistence.

Run with: pytest tests/test_store.py -v
"""

import json
import threading
from datetime import timedelta

import pytest

from surfer_api.shared.errors import ConflictError
from surfer_api.store import CacheStore, ExecutionStatus, GoldenRecord

from conftest import INVOICE_ACME, NOW


def _golden(uuid, execution_uuid, minutes_ago=0, function_name="parse_invoice"):
    return GoldenRecord(
        uuid=uuid,
        function_name=function_name,
        execution_uuid=execution_uuid,
        created_at=NOW - timedelta(minutes=minutes_ago),
        note="",
        tags=["core"],
    )


class TestExecutions:
    def test_list_is_most_recent_first(self, seeded_store):
        uuids = [e.uuid for e in seeded_store.list_executions()]
        assert uuids == ["e1", "e2", "e3", "e4", "e5"]

    def test_filters_combine(self, seeded_store):
        records = seeded_store.list_executions(
            function_name="parse_invoice",
            status=ExecutionStatus.SUCCESS,
            since=NOW - timedelta(minutes=15),
        )
        assert [e.uuid for e in records] == ["e1", "e2"]

    def test_duplicate_uuid_conflicts(self, seeded_store, make_execution):
        with pytest.raises(ConflictError):
            seeded_store.add_execution(make_execution("e1"))

    def test_vectors_only_for_embeddable_input(self, store, make_execution):
        store.add_execution(make_execution("with-text", input_preview=INVOICE_ACME))
        store.add_execution(make_execution("no-text"))
        store.add_execution(make_execution("punctuation", input_preview="?!"))
        assert store.vector("with-text") is not None
        assert store.vector("no-text") is None
        assert store.vector("punctuation") is None

    def test_function_names_sorted(self, store, make_execution):
        store.add_execution(make_execution("a", function_name="summarize"))
        store.add_execution(make_execution("b", function_name="classify"))
        store.add_execution(make_execution("c", function_name="summarize"))
        assert store.function_names() == ["classify", "summarize"]


class TestGoldenRecords:
    def test_execution_can_only_be_golden_once(self, seeded_store):
        seeded_store.add_golden(_golden("g1", "e1"))
        with pytest.raises(ConflictError) as exc_info:
            seeded_store.add_golden(_golden("g2", "e1"))
        assert exc_info.value.details == {"uuid": "g1"}

    def test_concurrent_registration_yields_one_record(self, seeded_store):
        results = []
        barrier = threading.Barrier(8)

        def register(i):
            barrier.wait()
            try:
                seeded_store.add_golden(_golden(f"g{i}", "e2"))
                results.append("ok")
            except ConflictError:
                results.append("conflict")

        threads = [threading.Thread(target=register, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1
        assert results.count("conflict") == 7
        assert len(seeded_store.list_golden("parse_invoice")) == 1

    def test_upsert_golden_creates_then_replaces(self, seeded_store):
        record, created = seeded_store.upsert_golden("e1", lambda existing: _golden("g1", "e1"))
        assert created is True
        assert record.uuid == "g1"

        def rename(existing):
            assert existing.uuid == "g1"
            return GoldenRecord(
                uuid=existing.uuid,
                function_name=existing.function_name,
                execution_uuid=existing.execution_uuid,
                created_at=existing.created_at,
                note="edited",
            )

        record, created = seeded_store.upsert_golden("e1", rename)
        assert created is False
        assert seeded_store.get_golden("g1").note == "edited"
        assert len(seeded_store.list_golden()) == 1

    def test_remove_frees_the_execution(self, seeded_store):
        seeded_store.add_golden(_golden("g1", "e1"))
        assert seeded_store.remove_golden("g1").uuid == "g1"
        assert seeded_store.remove_golden("g1") is None
        assert seeded_store.golden_for_execution("e1") is None
        seeded_store.add_golden(_golden("g2", "e1"))

    def test_list_golden_order_and_filter(self, seeded_store):
        seeded_store.add_golden(_golden("old", "e1", minutes_ago=10))
        seeded_store.add_golden(_golden("new", "e2", minutes_ago=1))
        assert [g.uuid for g in seeded_store.list_golden()] == ["new", "old"]
        assert seeded_store.list_golden("other_function") == []


class TestPersistence:
    def test_reload_restores_records_and_vectors(self, tmp_path, make_execution):
        path = tmp_path / "store.json"
        first = CacheStore(path=path)
        first.add_execution(make_execution("e1", input_preview=INVOICE_ACME))
        first.add_golden(_golden("g1", "e1"))

        second = CacheStore(path=path)
        assert second.get_execution("e1").input_preview == INVOICE_ACME
        assert second.get_execution("e1").timestamp_utc == NOW - timedelta(minutes=5)
        assert second.get_golden("g1").tags == ["core"]
        assert second.golden_for_execution("e1").uuid == "g1"
        assert second.vector("e1") is not None

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")
        store = CacheStore(path=path)
        assert store.list_executions() == []

    def test_golden_with_unknown_execution_is_dropped(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text(
            json.dumps({"executions": [], "golden": [_golden("g1", "missing").to_dict()]}),
            encoding="utf-8",
        )
        store = CacheStore(path=path)
        assert store.get_golden("g1") is None

    def test_in_memory_store_writes_nothing(self, tmp_path, make_execution):
        store = CacheStore()
        store.add_execution(make_execution("e1"))
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.parametrize(
        "payload",
        [
            [1, 2],
            "just a string",
            {"executions": "not a list"},
            {"executions": [], "golden": ["g1"]},
            {"executions": [{"uuid": "e1"}]},
        ],
    )
    def test_malformed_file_starts_empty(self, tmp_path, payload):
        path = tmp_path / "store.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        store = CacheStore(path=path)
        assert store.list_executions() == []
        assert store.list_golden() == []

    def test_save_replaces_file_without_leftovers(self, tmp_path, make_execution):
        path = tmp_path / "store.json"
        store = CacheStore(path=path)
        store.add_execution(make_execution("e1"))
        store.add_execution(make_execution("e2"))

        assert [p.name for p in tmp_path.iterdir()] == ["store.json"]
        assert len(json.loads(path.read_text(encoding="utf-8"))["executions"]) == 2

    def test_failed_save_keeps_previous_file(self, tmp_path, make_execution, monkeypatch):
        path = tmp_path / "store.json"
        store = CacheStore(path=path)
        store.add_execution(make_execution("e1"))
        before = path.read_text(encoding="utf-8")

        def fail_replace(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr("surfer_api.store.os.replace", fail_replace)
        with pytest.raises(OSError, match="disk full"):
            store.add_execution(make_execution("e2"))

        assert path.read_text(encoding="utf-8") == before
        assert [p.name for p in tmp_path.iterdir()] == ["store.json"]

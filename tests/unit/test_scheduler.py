"""
Unit tests for the import scheduler.
"""

import threading

import pytest

from logferry.batch.importer import SourceImporter
from logferry.batch.scheduler import ImportScheduler
from logferry.core.errors import (
    ConfigurationError,
    LoadError,
    RecordValidationError,
    SourceDecodeError,
    SourceImportError,
)
from logferry.core.models import Destination, LoadRequest, ObjectRef, SourceDescriptor
from logferry.policy import CallablePolicy
from logferry.storage import MemoryObjectStore

DST_A = Destination(dataset="logs", table="a")
DST_B = Destination(dataset="logs", table="b")


def routing_rule(raw):
    return {
        "logs": [{
            "id": raw["id"],
            "timestamp": raw.get("ts", 1.0),
            "data": {"id": raw["id"]},
            "destination": {"dataset": "logs", "table": raw["table"]},
        }]
    }


def build(store, objects: dict[str, bytes]) -> tuple[ImportScheduler, list[LoadRequest]]:
    requests = []
    for name, data in objects.items():
        obj = store.put("test-bucket", name, data)
        requests.append(LoadRequest(object=obj, source=SourceDescriptor(schema="example")))
    importer = SourceImporter(store, CallablePolicy({"data.schema.example": routing_rule}))
    return ImportScheduler(importer, max_workers=4), requests


@pytest.mark.unit
class TestImportScheduler:
    """Tests for ImportScheduler.run"""

    def test_merges_all_sources(self):
        """Test that every record of every source ends up in the merged set"""
        store = MemoryObjectStore()
        objects = {
            f"obj-{i}.json": "\n".join(
                f'{{"id": "{i}-{j}", "table": "{"a" if j % 2 else "b"}"}}' for j in range(5)
            ).encode()
            for i in range(10)
        }
        scheduler, requests = build(store, objects)

        result = scheduler.run(requests)

        assert result.error is None
        assert len(result.source_logs) == 10
        assert all(log.success for log in result.source_logs)
        assert sum(log.row_count for log in result.source_logs) == 50
        assert result.record_set.total_records() == 50
        assert set(result.record_set.destinations()) == {DST_A, DST_B}

    def test_source_order_preserved(self):
        """Test that records of one source stay in object order"""
        store = MemoryObjectStore()
        data = "\n".join(f'{{"id": "{j}", "table": "a"}}' for j in range(20)).encode()
        scheduler, requests = build(store, {"single.json": data})

        result = scheduler.run(requests)

        assert [r.id for r in result.record_set.get(DST_A)] == [str(j) for j in range(20)]

    def test_partial_failure(self):
        """Test that failing sources are aggregated and others still merge"""
        store = MemoryObjectStore()
        scheduler, requests = build(store, {
            "good-1.json": b'{"id": "1", "table": "a"}',
            "bad.json": b'{"id": ',
            "good-2.json": b'{"id": "2", "table": "a"}',
        })
        requests.append(
            LoadRequest(
                object=ObjectRef(bucket="test-bucket", name="missing.json"),
                source=SourceDescriptor(schema="example"),
            )
        )

        result = scheduler.run(requests)

        assert len(result.source_logs) == 4
        assert sum(1 for log in result.source_logs if not log.success) == 2
        assert sorted(r.id for r in result.record_set.get(DST_A)) == ["1", "2"]
        assert isinstance(result.error, LoadError)
        assert len(result.error.errors) == 2
        assert all(isinstance(e, SourceDecodeError) for e in result.error.errors)
        message = str(result.error)
        assert "object=test-bucket/bad.json" in message
        assert "object=test-bucket/missing.json" in message
        assert "good-1.json" not in message

    def test_configuration_error_names_object(self):
        """Test that a bad source descriptor is reported with its object"""
        store = MemoryObjectStore()
        scheduler, _ = build(store, {})
        obj = store.put("test-bucket", "cfg.json", b'{"id": "1", "table": "a"}')
        request = LoadRequest(object=obj, source=SourceDescriptor(schema="example", compress="zstd"))

        result = scheduler.run([request])

        assert isinstance(result.error.errors[0], ConfigurationError)
        assert "object=test-bucket/cfg.json" in str(result.error)

    def test_out_of_range_timestamp_fails_only_its_source(self):
        """Test that a millisecond timestamp aborts its source, not the destination"""
        store = MemoryObjectStore()
        scheduler, requests = build(store, {
            "good.json": b'{"id": "1", "table": "a", "ts": 1700000000.5}',
            "ms.json": b'{"id": "2", "table": "a", "ts": 1700000000500.0}',
        })

        result = scheduler.run(requests)

        outcomes = {log.object_name: log.success for log in result.source_logs}
        assert outcomes == {"good.json": True, "ms.json": False}
        assert [r.id for r in result.record_set.get(DST_A)] == ["1"]
        assert isinstance(result.error.errors[0], RecordValidationError)
        assert "object=test-bucket/ms.json" in str(result.error)

    def test_raising_importer_is_folded_into_errors(self):
        """Test that an import that raises still yields a failed source log"""
        store = MemoryObjectStore()
        scheduler, requests = build(store, {
            "good.json": b'{"id": "1", "table": "a"}',
            "boom.json": b'{"id": "2", "table": "a"}',
        })
        real = scheduler.importer

        class RaisingImporter:
            def import_source(self, request):
                if request.object.name == "boom.json":
                    raise RuntimeError("worker crashed")
                return real.import_source(request)

        result = ImportScheduler(RaisingImporter(), max_workers=2).run(requests)

        assert len(result.source_logs) == 2
        failed = [log for log in result.source_logs if not log.success]
        assert [log.object_name for log in failed] == ["boom.json"]
        assert "worker crashed" in failed[0].error
        assert [r.id for r in result.record_set.get(DST_A)] == ["1"]
        assert isinstance(result.error.errors[0], SourceImportError)
        assert "object=test-bucket/boom.json" in str(result.error)

    def test_concurrency_bounded(self):
        """Test that no more than max_workers imports run at once"""
        active = 0
        peak = 0
        lock = threading.Lock()
        gate = threading.Event()

        class SlowImporter:
            def import_source(self, request):
                nonlocal active, peak
                with lock:
                    active += 1
                    peak = max(peak, active)
                gate.wait(0.05)
                with lock:
                    active -= 1
                return real.import_source(request)

        store = MemoryObjectStore()
        objects = {f"obj-{i}.json": f'{{"id": "{i}", "table": "a"}}'.encode() for i in range(12)}
        scheduler, requests = build(store, objects)
        real = scheduler.importer

        result = ImportScheduler(SlowImporter(), max_workers=3).run(requests)

        assert peak <= 3
        assert result.record_set.total_records() == 12

    def test_empty_requests(self):
        store = MemoryObjectStore()
        scheduler, _ = build(store, {})
        result = scheduler.run([])
        assert result.source_logs == []
        assert result.error is None

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            ImportScheduler(SourceImporter(MemoryObjectStore(), CallablePolicy()), max_workers=0)

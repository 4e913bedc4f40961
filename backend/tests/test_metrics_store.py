"""
Tests for the metrics store and NDJSON persistence.
"""

import json
import pytest
from concurrent.futures import ThreadPoolExecutor

from chaoscope.exceptions import MetricsFileError
from chaoscope.services.metrics.models import ChaosType, RequestMetric
from chaoscope.services.metrics.store import MetricsStore, load_metrics


class TestMetricsStore:
    """Tests for in-memory accumulation."""

    def test_record_and_snapshot(self, store, make_metric):
        """Recorded metrics are returned in completion order."""
        first = make_metric(path="/a")
        second = make_metric(path="/b")

        store.record(first)
        store.record(second)

        assert store.snapshot() == [first, second]
        assert len(store) == 2

    def test_snapshot_is_independent(self, store, make_metric):
        """Mutating a snapshot does not affect the store."""
        store.record(make_metric())

        snapshot = store.snapshot()
        snapshot.clear()

        assert len(store) == 1

    def test_clear(self, store, make_metric):
        """Clear removes everything."""
        store.record(make_metric())
        store.clear()

        assert store.snapshot() == []

    def test_concurrent_records_are_all_kept(self, make_metric):
        """Records from many threads are never lost."""
        store = MetricsStore()
        metric = make_metric()

        def record_many(_):
            for _ in range(250):
                store.record(metric)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(record_many, range(8)))

        assert len(store) == 2000


class TestNdjsonExport:
    """Tests for writing and reading NDJSON files."""

    def test_write_then_load(self, tmp_path, store, make_metric):
        """Exported files load back to the same records."""
        metrics = [
            make_metric(method="POST", path="/login", status_code=503, latency_ms=3,
                        chaos_type=ChaosType.FAILURE),
            make_metric(path="/orders", status_code=200, latency_ms=2042, chaos_type=ChaosType.DELAY),
            make_metric(path="/products", status_code=500, latency_ms=12),
        ]
        for metric in metrics:
            store.record(metric)
        path = tmp_path / "metrics.ndjson"

        count = store.write_ndjson(path)

        assert count == 3
        assert load_metrics(path) == metrics

    def test_one_object_per_line(self, tmp_path, store, make_metric):
        """Each line is a standalone JSON object with the expected fields."""
        store.record(make_metric(method="POST", path="/login", chaos_type=ChaosType.FAILURE, status_code=503))
        path = tmp_path / "metrics.ndjson"

        store.write_ndjson(path)

        lines = path.read_text().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["method"] == "POST"
        assert record["path"] == "/login"
        assert record["status_code"] == 503
        assert record["chaos_applied"] is True
        assert record["chaos_type"] == "failure"
        assert record["backend_error"] is False
        assert record["timestamp"].startswith("2026-01-01T12:00:00")

    def test_write_overwrites(self, tmp_path, store, make_metric):
        """write_ndjson replaces an existing file."""
        path = tmp_path / "metrics.ndjson"
        path.write_text("stale\n")
        store.record(make_metric())

        store.write_ndjson(path)

        assert len(load_metrics(path)) == 1

    def test_append_adds_to_existing_file(self, tmp_path, make_metric):
        """append_ndjson keeps earlier runs."""
        path = tmp_path / "metrics.ndjson"
        first_run = MetricsStore()
        first_run.record(make_metric(path="/a"))
        first_run.write_ndjson(path)

        second_run = MetricsStore()
        second_run.record(make_metric(path="/b"))
        second_run.append_ndjson(path)

        assert [m.path for m in load_metrics(path)] == ["/a", "/b"]

    def test_empty_store_writes_empty_file(self, tmp_path, store):
        """An empty store produces an empty file."""
        path = tmp_path / "metrics.ndjson"

        assert store.write_ndjson(path) == 0
        assert path.read_text() == ""
        assert load_metrics(path) == []

    def test_export_failure_keeps_metrics(self, tmp_path, store, make_metric):
        """An I/O error propagates and leaves the store untouched."""
        store.record(make_metric())

        with pytest.raises(OSError):
            store.write_ndjson(tmp_path / "missing-dir" / "metrics.ndjson")

        assert len(store) == 1


class TestLoadMetrics:
    """Tests for parsing NDJSON files."""

    def test_malformed_line_fails_whole_file(self, tmp_path, make_metric):
        """A bad line raises with its line number."""
        path = tmp_path / "metrics.ndjson"
        good = make_metric().model_dump_json()
        path.write_text(f"{good}\n{{not json}}\n{good}\n")

        with pytest.raises(MetricsFileError) as exc_info:
            load_metrics(path)

        assert exc_info.value.line_number == 2
        assert "failed to parse line" in str(exc_info.value)

    def test_missing_field_is_malformed(self, tmp_path):
        """Records missing required fields are rejected."""
        path = tmp_path / "metrics.ndjson"
        path.write_text('{"method": "GET", "path": "/a"}\n')

        with pytest.raises(MetricsFileError):
            load_metrics(path)

    def test_invalid_utf8_is_malformed(self, tmp_path, make_metric):
        """Bytes that are not UTF-8 fail with the offending line number."""
        path = tmp_path / "metrics.ndjson"
        good = make_metric().model_dump_json().encode("utf-8")
        path.write_bytes(good + b"\n" + b"\xff\xfe garbage\n")

        with pytest.raises(MetricsFileError) as exc_info:
            load_metrics(path)

        assert exc_info.value.line_number == 2
        assert "not valid UTF-8" in str(exc_info.value)

    def test_missing_file_raises_os_error(self, tmp_path):
        """Unreadable files surface as OSError."""
        with pytest.raises(OSError):
            load_metrics(tmp_path / "nope.ndjson")

    def test_negative_latency_rejected(self):
        """Latency cannot be negative."""
        with pytest.raises(ValueError):
            RequestMetric(method="GET", path="/", status_code=200, latency_ms=-1)

"""
Metrics store - thread-safe accumulation and NDJSON export of request metrics.

A single lock guards both the in-memory list and file export so a concurrent
record() can never interleave with a write in progress.
"""

import threading
import structlog
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError

from chaoscope.exceptions import MetricsFileError
from chaoscope.services.metrics.models import RequestMetric

logger = structlog.get_logger()

PathLike = Union[str, Path]


class MetricsStore:
    """
    Append-only, concurrency-safe collection of RequestMetric records.

    Records are kept in completion order. The timestamp field carries the
    real time of each observation.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._metrics: List[RequestMetric] = []

    def record(self, metric: RequestMetric) -> None:
        """Append a metric."""
        with self._lock:
            self._metrics.append(metric)

    def snapshot(self) -> List[RequestMetric]:
        """Return an independent copy of every metric recorded so far."""
        with self._lock:
            return list(self._metrics)

    def clear(self) -> None:
        """Remove all stored metrics."""
        with self._lock:
            self._metrics.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)

    def write_ndjson(self, path: PathLike) -> int:
        """
        Write all metrics to a file, one JSON object per line.

        The target is overwritten. I/O errors propagate and leave the
        in-memory store untouched.

        Returns:
            Number of records written
        """
        return self._export(path, mode="w")

    def append_ndjson(self, path: PathLike) -> int:
        """Append all metrics to a file using the same NDJSON encoding."""
        return self._export(path, mode="a")

    def _export(self, path: PathLike, mode: str) -> int:
        with self._lock:
            with open(path, mode, encoding="utf-8") as f:
                for metric in self._metrics:
                    f.write(metric.model_dump_json())
                    f.write("\n")
            count = len(self._metrics)

        logger.info("Metrics exported", path=str(path), mode=mode, records=count)
        return count


def load_metrics(path: PathLike) -> List[RequestMetric]:
    """
    Load metrics from an NDJSON file.

    Any malformed line fails the whole file; partial results are never
    returned.

    Raises:
        MetricsFileError: if a line is not a valid metric record
        OSError: if the file cannot be read
    """
    metrics: List[RequestMetric] = []

    with open(path, "rb") as f:
        for line_number, raw_line in enumerate(f, start=1):
            try:
                line = raw_line.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MetricsFileError(path, line_number, f"line is not valid UTF-8: {e}") from e
            try:
                metrics.append(RequestMetric.model_validate_json(line))
            except ValidationError as e:
                raise MetricsFileError(path, line_number, f"failed to parse line: {e}") from e

    logger.debug("Metrics loaded", path=str(path), records=len(metrics))
    return metrics

"""Passive endpoint discovery from observed traffic."""
import threading
import structlog
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

logger = structlog.get_logger()


class Endpoint(BaseModel):
    """An endpoint seen in proxied traffic."""
    method: str
    path: str
    description: str = ""
    tags: Optional[List[str]] = None


class EndpointList(BaseModel):
    """Serialized output of a discovery run."""
    endpoints: List[Endpoint] = Field(default_factory=list)
    source: str = "passive"
    timestamp: str


def normalize_path(path: str) -> str:
    # IDs and UUIDs are not templated; every distinct path is its own endpoint
    return path


class EndpointCollector:
    """Thread-safe set of unique (method, path) pairs."""

    def __init__(self):
        self._lock = threading.Lock()
        self._endpoints: Dict[str, Endpoint] = {}

    def record_endpoint(self, method: str, path: str) -> None:
        key = f"{method}:{path}"
        with self._lock:
            if key not in self._endpoints:
                self._endpoints[key] = Endpoint(method=method, path=normalize_path(path))
                logger.debug("Endpoint discovered", method=method, path=path)

    def get_endpoints(self) -> List[Endpoint]:
        """Snapshot of discovered endpoints, sorted by path then method."""
        with self._lock:
            endpoints = list(self._endpoints.values())
        return sorted(endpoints, key=lambda ep: (ep.path, ep.method))

    def write_to_file(self, path: Union[str, Path]) -> int:
        """
        Write discovered endpoints as a JSON document.

        Returns:
            Number of endpoints written
        """
        endpoint_list = EndpointList(
            endpoints=self.get_endpoints(),
            timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )
        with open(path, "w", encoding="utf-8") as f:
            f.write(endpoint_list.model_dump_json(indent=2, exclude_none=True))
            f.write("\n")

        logger.info("Discovered endpoints written", path=str(path), count=len(endpoint_list.endpoints))
        return len(endpoint_list.endpoints)

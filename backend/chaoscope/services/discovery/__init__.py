"""Passive endpoint discovery."""

from chaoscope.services.discovery.collector import (
    Endpoint,
    EndpointList,
    EndpointCollector,
    normalize_path,
)

__all__ = [
    "Endpoint",
    "EndpointList",
    "EndpointCollector",
    "normalize_path",
]

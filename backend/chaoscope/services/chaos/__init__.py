"""
Chaos injection for proxied traffic.

This module provides:
- Injection rules with first-match lookup
- The interception engine that delays, fails or forwards requests
- Reverse forwarding to the backend with status recording
"""

from chaoscope.services.chaos.rules import (
    ChaosRule,
    RuleSet,
    load_rules,
    DEFAULT_FAILURE_STATUS,
    DEFAULT_ERROR_BODY,
)
from chaoscope.services.chaos.recorder import StatusRecorder
from chaoscope.services.chaos.forwarder import ReverseForwarder, parse_target_url
from chaoscope.services.chaos.interceptor import ChaosInterceptor

__all__ = [
    # Rules
    "ChaosRule",
    "RuleSet",
    "load_rules",
    "DEFAULT_FAILURE_STATUS",
    "DEFAULT_ERROR_BODY",
    # Engine
    "StatusRecorder",
    "ReverseForwarder",
    "parse_target_url",
    "ChaosInterceptor",
]

"""
Injection rules.

A rule matches a request when each of its matchers is empty (wildcard) or
equal to the request's path/method. Rules are evaluated in configured order
and the first match wins.
"""

import json
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from chaoscope.exceptions import ConfigurationError

DEFAULT_FAILURE_STATUS = 503
DEFAULT_ERROR_BODY = '{"error":"chaos injected"}'


class ChaosRule(BaseModel):
    """A single match/action injection rule."""
    path: str = Field(default="", description="Exact path to match, empty matches any path")
    method: str = Field(default="", description="Exact method to match, empty matches any method")
    delay: float = Field(default=0.0, ge=0, description="Delay to inject, in seconds")
    failure_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    status_code: int = Field(default=0, ge=0, le=599, description="Injected status, 0 means 503")
    error_body: str = Field(default="", description="Injected body, empty means a JSON error")

    @field_validator("status_code")
    @classmethod
    def status_code_in_http_range(cls, value: int) -> int:
        if value != 0 and value < 100:
            raise ValueError("status_code must be 0 (default) or between 100 and 599")
        return value

    def matches(self, path: str, method: str) -> bool:
        if self.path and self.path != path:
            return False
        if self.method and self.method != method:
            return False
        return True

    @property
    def effective_status_code(self) -> int:
        return self.status_code or DEFAULT_FAILURE_STATUS

    @property
    def effective_error_body(self) -> str:
        return self.error_body or DEFAULT_ERROR_BODY

    def describe(self) -> str:
        return (
            f"{self.method or '*'} {self.path or '*'} "
            f"delay={self.delay}s failure_rate={self.failure_rate}"
        )


class RuleSet:
    """Ordered list of injection rules with first-match lookup."""

    def __init__(self, rules: Optional[List[ChaosRule]] = None):
        self.rules: List[ChaosRule] = list(rules or [])

    def find_matching_rule(self, path: str, method: str) -> Optional[ChaosRule]:
        """Return the first rule matching path and method, or None."""
        for rule in self.rules:
            if rule.matches(path, method):
                return rule
        return None

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self):
        return iter(self.rules)


_rule_list = TypeAdapter(List[ChaosRule])


def load_rules(path: Union[str, Path]) -> RuleSet:
    """
    Load a rule set from a JSON file containing a list of rule objects.

    Raises:
        ConfigurationError: if the file is missing or a rule is invalid
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read rules file {path}: {e}") from e

    try:
        rules = _rule_list.validate_python(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid rule in {path}: {e}") from e

    return RuleSet(rules)

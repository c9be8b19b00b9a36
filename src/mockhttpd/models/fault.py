"""Fault rule models for the mock server."""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FaultKind(str, Enum):
    """Faults that can be injected into a response.

    none          serve the file unmodified
    not_found     404 even if the file exists
    truncate      full Content-Length, half the body, then close
    size_mismatch half Content-Length, half the body
    slow          correct response, body delayed by the rule's delay
    """

    NONE = "none"
    NOT_FOUND = "not_found"
    TRUNCATE = "truncate"
    SIZE_MISMATCH = "size_mismatch"
    SLOW = "slow"


class MatchEnum(str, Enum):
    """How a rule pattern is compared against a filename."""

    SUBSTRING = "substring"
    REGEX = "regex"


class FaultRule(BaseModel):
    """Single entry of the fault table.

    Example:
        {"pattern": "pkg-1.0", "kind": "truncate"}
        {"pattern": "\\.sig$", "match": "regex", "kind": "not_found"}
    """

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(..., min_length=1, description="Substring or regex to look for")
    kind: FaultKind = Field(..., description="Fault injected on match")
    match: MatchEnum = Field(default=MatchEnum.SUBSTRING, description="Match mode")
    delay: float = Field(
        default=1.0, ge=0, description="Seconds to stall before the body (slow only)"
    )

    @model_validator(mode="after")
    def pattern_compiles(self) -> "FaultRule":
        """Reject regex rules that do not compile."""
        if self.match == MatchEnum.REGEX:
            try:
                re.compile(self.pattern)
            except re.error as e:
                raise ValueError(f"Invalid regex pattern {self.pattern!r}: {e}")
        return self

    def matches(self, name: str) -> bool:
        """Check whether this rule applies to a filename."""
        if self.match == MatchEnum.REGEX:
            return re.search(self.pattern, name) is not None
        return self.pattern in name

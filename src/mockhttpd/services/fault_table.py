"""Ordered fault table and rule-file loading."""

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from pydantic import ValidationError

from mockhttpd.models.fault import FaultKind, FaultRule, MatchEnum


class FaultTable:
    """Read-only, ordered list of fault rules. First match wins."""

    def __init__(self, rules: Iterable[FaultRule] = ()):
        self.logger = logging.getLogger("mockhttpd.faults")
        self._rules: tuple[FaultRule, ...] = tuple(rules)
        self.logger.debug(f"Fault table loaded with {len(self._rules)} rule(s)")

    @property
    def rules(self) -> tuple[FaultRule, ...]:
        return self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def lookup(self, name: str) -> Optional[FaultRule]:
        """Return the first rule matching a filename, or None."""
        for rule in self._rules:
            if rule.matches(name):
                return rule
        return None

    def classify(self, name: str) -> FaultKind:
        """Return the fault kind for a filename (NONE when nothing matches)."""
        rule = self.lookup(name)
        return rule.kind if rule else FaultKind.NONE


def parse_fault_option(text: str, match: MatchEnum = MatchEnum.SUBSTRING) -> FaultRule:
    """Parse a command-line rule of the form ``KIND:PATTERN``.

    ``slow`` accepts an optional delay: ``slow@2.5:PATTERN``.

    Raises:
        ValueError: If the text is malformed or names an unknown fault
    """
    kind, sep, pattern = text.partition(":")
    if not sep or not pattern:
        raise ValueError(f"Invalid fault rule {text!r} (expected KIND:PATTERN)")

    kind, _, delay = kind.partition("@")
    data = {"kind": kind, "pattern": pattern, "match": match}
    if delay:
        data["delay"] = delay

    try:
        return FaultRule(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid fault rule {text!r}: {e}") from e


def load_fault_rules(path: Path) -> list[FaultRule]:
    """Load rules from a JSON file.

    Accepts either a list of rule objects or ``{"rules": [...]}``.

    Raises:
        ValueError: If the file cannot be read or does not describe valid rules
    """
    logger = logging.getLogger("mockhttpd.faults")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Cannot read fault rule file {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("rules")
    if not isinstance(data, list):
        raise ValueError(f"Fault rule file {path} must contain a list of rules")

    try:
        rules = [FaultRule(**entry) for entry in data]
    except (TypeError, ValidationError) as e:
        raise ValueError(f"Invalid rule in {path}: {e}") from e

    logger.info(f"Loaded {len(rules)} fault rule(s) from {path}")
    return rules

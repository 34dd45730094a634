import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from schemas import CompensationRule

log = logging.getLogger(__name__)


class RuleBook:
    """In-memory compensation rules, one per designation."""

    def __init__(self, rules: Optional[List[CompensationRule]] = None):
        self._rules: Dict[str, CompensationRule] = {}
        self._lock = threading.Lock()
        for rule in rules or []:
            self.save(rule)

    def all(self) -> List[CompensationRule]:
        with self._lock:
            return list(self._rules.values())

    def get(self, designation: Optional[str]) -> Optional[CompensationRule]:
        if not designation:
            return None
        with self._lock:
            return self._rules.get(designation.strip())

    def save(self, rule: CompensationRule) -> bool:
        """Insert or replace by designation. Returns True if it was new."""
        if not rule.designation:
            raise ValueError("Compensation rule needs a designation")
        with self._lock:
            created = rule.designation not in self._rules
            self._rules[rule.designation] = rule
        log.info("%s salary rule %r", "Added" if created else "Updated", rule.designation)
        return created

    def delete(self, designation: str) -> bool:
        with self._lock:
            removed = self._rules.pop(designation.strip(), None) is not None
        if removed:
            log.info("Deleted salary rule %r", designation)
        return removed

    def load_file(self, path: Union[str, Path]) -> int:
        """Seed from a JSON array of rules. Returns how many were loaded."""
        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
        if not isinstance(payload, list):
            raise ValueError(f"{path}: expected a JSON array of salary rules")
        count = 0
        for raw in payload:
            rule = CompensationRule.model_validate(raw)
            if not rule.designation:
                log.warning("Skipping salary rule without designation in %s", path)
                continue
            self.save(rule)
            count += 1
        log.info("Loaded %d salary rules from %s", count, path)
        return count

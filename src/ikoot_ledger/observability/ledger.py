from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class LedgerSnapshot:
    outcomes: Dict[str, Dict[str, int]]
    retries: Dict[str, int]
    failures: Dict[str, int]

    def as_dict(self) -> Dict[str, object]:
        return {
            "outcomes": {key: dict(value) for key, value in self.outcomes.items()},
            "retries": dict(self.retries),
            "failures": dict(self.failures),
        }


class LedgerObservabilityStore:
    """Collect ledger operation telemetry for dashboards and alerting."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._outcomes: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._retries: Dict[str, int] = defaultdict(int)
        self._failures: Dict[str, int] = defaultdict(int)

    def record_outcome(self, operation: str, outcome: str) -> None:
        with self._lock:
            self._outcomes[operation][outcome] += 1

    def record_retry(self, operation: str) -> None:
        with self._lock:
            self._retries[operation] += 1

    def record_failure(self, operation: str, *, transient: bool) -> None:
        with self._lock:
            self._failures["total"] += 1
            kind = "transient" if transient else "fatal"
            self._failures[f"{kind}:{operation}"] += 1

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            outcomes = {key: dict(value) for key, value in self._outcomes.items()}
            retries = dict(self._retries)
            failures = dict(self._failures)
        return LedgerSnapshot(outcomes=outcomes, retries=retries, failures=failures)

    def reset(self) -> None:
        with self._lock:
            self._outcomes.clear()
            self._retries.clear()
            self._failures.clear()


_STORE = LedgerObservabilityStore()


def get_ledger_store() -> LedgerObservabilityStore:
    return _STORE


__all__ = ["get_ledger_store", "LedgerObservabilityStore", "LedgerSnapshot"]

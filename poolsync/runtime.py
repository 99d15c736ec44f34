from __future__ import annotations

from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Iterator


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class ReconcileOutcome:
    service: str
    action: str  # up|down|refresh
    result: str  # changed|unchanged|skipped|failed
    message: str
    at: str = field(default_factory=utc_now)


class RuntimeState:
    """In-memory process state: per-key locks and a short outcome history.

    Nothing here feeds reconciliation decisions; the control plane stays the
    only source of truth.
    """

    def __init__(self, history: int = 200) -> None:
        self.lock = Lock()
        # One lock per key ever seen, never evicted: bounded by the number of services.
        self.key_locks: dict[tuple[str, ...], Lock] = {}
        self.outcomes: deque[ReconcileOutcome] = deque(maxlen=max(1, history))

    def lock_for(self, key: tuple[str, ...]) -> Lock:
        with self.lock:
            lk = self.key_locks.get(key)
            if lk is None:
                lk = self.key_locks[key] = Lock()
            return lk

    @contextmanager
    def serialized(self, key: tuple[str, ...]) -> Iterator[None]:
        """Hold the lock for `key`, e.g. (region, service name), for the block."""
        lk = self.lock_for(key)
        with lk:
            yield

    def record(self, outcome: ReconcileOutcome) -> None:
        with self.lock:
            self.outcomes.append(outcome)

    def recent_outcomes(self, limit: int = 50) -> list[ReconcileOutcome]:
        with self.lock:
            items = list(self.outcomes)
        return list(reversed(items))[: max(0, limit)]

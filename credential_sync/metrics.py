"""Per-sync timing and counter telemetry.

SyncMetrics — frozen snapshot of one full fetch: duration and record counts.
SyncTimer   — async context manager; read .result / .to_dict() after exit.

Usage::

    async with SyncTimer("fetch_all", namespace="garden-dev") as t:
        payload = await client.fetch_credentials(namespace)
        store.replace_all(...)
        t.record_counts(store.counts(), store.virtual_binding_count)
    summary = t.to_dict()   # JSON-serialisable

A failed sync still produces a result, with ``ok=False`` and no counts.
"""

from __future__ import annotations

import dataclasses
import time
from typing import Any


@dataclasses.dataclass(frozen=True)
class SyncMetrics:
    """Timing and counter snapshot for one sync operation.

    Fields
    ------
    operation:       "fetch_all" (the only full sync the service performs).
    namespace:       Namespace scope of the sync.
    start_ts:        Unix timestamp at start (time.time()).
    end_ts:          Unix timestamp at end.
    duration_ms:     (end_ts - start_ts) * 1000.
    ok:              False when the block raised.
    counts:          Records per store mapping after the sync.
    virtual_bindings: Virtual bindings synthesized (included in
                     counts["credentialsBindings"]).
    """

    operation: str
    namespace: str
    start_ts: float
    end_ts: float
    duration_ms: float
    ok: bool
    counts: dict[str, int] = dataclasses.field(default_factory=dict)
    virtual_bindings: int = 0


class SyncTimer:
    """Async context manager that records a SyncMetrics for its block."""

    def __init__(self, operation: str, namespace: str = "") -> None:
        self.operation = operation
        self.namespace = namespace
        self.counts: dict[str, int] = {}
        self.virtual_bindings: int = 0
        self._start_ts: float = 0.0
        self._result: SyncMetrics | None = None

    def record_counts(self, counts: dict[str, int], virtual_bindings: int = 0) -> None:
        self.counts = dict(counts)
        self.virtual_bindings = virtual_bindings

    async def __aenter__(self) -> "SyncTimer":
        self._start_ts = time.time()
        return self

    async def __aexit__(self, exc_type: object, *_args: object) -> None:
        end_ts = time.time()
        self._result = SyncMetrics(
            operation=self.operation,
            namespace=self.namespace,
            start_ts=self._start_ts,
            end_ts=end_ts,
            duration_ms=(end_ts - self._start_ts) * 1000,
            ok=exc_type is None,
            counts=self.counts if exc_type is None else {},
            virtual_bindings=self.virtual_bindings if exc_type is None else 0,
        )

    @property
    def result(self) -> SyncMetrics | None:
        """Finalized SyncMetrics after the context manager exits, else None."""
        return self._result

    def to_dict(self) -> dict[str, Any]:
        """Return the finalized SyncMetrics as a dict ({} before exit)."""
        return dataclasses.asdict(self._result) if self._result is not None else {}

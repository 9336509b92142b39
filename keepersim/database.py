"""In-memory store for OCR state, configuration and pending transmissions."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ReportTimestamp:
    config_digest: bytes
    epoch: int
    round: int


@dataclass
class PendingTransmission:
    time: datetime
    extra_hash: bytes = b""
    report: bytes = b""
    attributed_signatures: list[Any] = field(default_factory=list)


class SimulatedDatabase:
    """Keeps persistent OCR data in memory; lookups of missing items raise."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._states: dict[bytes, Any] = {}
        self._pending: dict[ReportTimestamp, PendingTransmission] = {}
        self._config: Any = None

    def read_state(self, config_digest: bytes) -> Any:
        with self._lock:
            try:
                return self._states[config_digest]
            except KeyError:
                raise KeyError("not found") from None

    def write_state(self, config_digest: bytes, state: Any) -> None:
        with self._lock:
            self._states[config_digest] = state

    def read_config(self) -> Any:
        with self._lock:
            if self._config is None:
                raise LookupError("not found")
            return self._config

    def write_config(self, config: Any) -> None:
        with self._lock:
            self._config = config

    def store_pending_transmission(
        self, timestamp: ReportTimestamp, transmission: PendingTransmission
    ) -> None:
        with self._lock:
            self._pending[timestamp] = transmission

    def pending_transmissions_with_config_digest(
        self, digest: bytes
    ) -> dict[ReportTimestamp, PendingTransmission]:
        with self._lock:
            return {
                ts: tr for ts, tr in self._pending.items() if ts.config_digest == digest
            }

    def delete_pending_transmission(self, timestamp: ReportTimestamp) -> None:
        with self._lock:
            self._pending.pop(timestamp, None)

    def delete_pending_transmissions_older_than(self, moment: datetime) -> None:
        with self._lock:
            self._pending = {
                ts: tr for ts, tr in self._pending.items() if not tr.time < moment
            }
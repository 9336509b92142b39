"""Queue of transmitted reports that are included in the next simulated block."""

from __future__ import annotations

import base64
import dataclasses
import hashlib
import threading
from dataclasses import dataclass

from keepersim.config import SymBlock


@dataclass
class TransmitEvent:
    """A report sent by an account and the block it landed in."""

    sending_address: str
    report: bytes
    hash: str
    epoch: int
    round: int
    in_block: str = "0"


def report_hash(data: bytes) -> str:
    """Base64 of the SHA-256 digest of data."""
    return base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")


class TransmitLoader:
    """Collects transmitted reports and loads them into the next block."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queue: list[TransmitEvent] = []
        self._transmitted: dict[str, TransmitEvent] = {}

    def load(self, block: SymBlock) -> None:
        """Move all queued reports into block and mark them with its number."""
        with self._lock:
            if not self._queue:
                return
            last_epoch = 0
            for event in self._queue:
                last_epoch = max(last_epoch, event.epoch)
                event.in_block = str(block.block_number)
                block.transmitted_data.append(event.report)
            block.latest_epoch = last_epoch
            self._queue = []

    def transmit(self, sender: str, report: bytes, epoch: int, rnd: int) -> None:
        """Queue a report; raises ValueError when the same report was sent before."""
        with self._lock:
            digest = report_hash(report)
            if digest in self._transmitted:
                raise ValueError(f"report already transmitted in epoch {epoch}")
            event = TransmitEvent(
                sending_address=sender,
                report=bytes(report),
                hash=digest,
                epoch=epoch,
                round=rnd,
            )
            self._queue.append(event)
            self._transmitted[digest] = event

    def results(self) -> list[TransmitEvent]:
        """Copies of every transmitted report."""
        with self._lock:
            return [dataclasses.replace(event) for event in self._transmitted.values()]
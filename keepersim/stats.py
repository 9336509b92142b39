"""Per-upkeep and per-account statistics for the simulation summary."""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol

from keepersim.generate import SimulatedUpkeep
from keepersim.transmit import TransmitEvent

_BLOCK_NUMBER = re.compile(r"[+-]?\d+")


class ReportDecoder(Protocol):
    def decode_report(self, report: bytes) -> list[Any]: ...


@dataclass
class UpkeepStats:
    eligible: int
    missed: int
    avg_perform_delay: float
    avg_check_delay: float


@dataclass
class TransmitStats:
    account: str
    count: int
    pct: float


def _parse_block(text: str) -> int:
    if not _BLOCK_NUMBER.fullmatch(text):
        raise ValueError(f"block '{text}' not parsable as big int")
    return int(text)


def _upkeep_id(key: Any) -> str:
    splitter = getattr(key, "block_key_and_upkeep_id", None)
    if callable(splitter):
        try:
            return str(splitter()[1])
        except ValueError:
            return ""
    text = key.decode() if isinstance(key, (bytes, bytearray)) else str(key)
    parts = text.split("|")
    return parts[1] if len(parts) == 2 else ""


def _average_delay(eligible: list[str], observed: list[str]) -> float:
    # points are compared as strings, matching how they are sorted
    delay = -1.0
    start = 0
    for point in eligible:
        if start >= len(observed):
            continue
        match = next(
            ((j, value) for j, value in enumerate(observed[start:], start) if value > point),
            None,
        )
        if match is None:
            continue
        index, value = match
        start = index + 1
        diff = int(value) - int(point)
        if diff >= 0:
            delay = float(diff) if delay < 0 else (diff + delay) / 2
    return delay


class UpkeepStatsBuilder:
    """Combines generated upkeeps, transmits and checks into statistics."""

    def __init__(
        self,
        upkeeps: Iterable[SimulatedUpkeep],
        transmits: Iterable[TransmitEvent],
        checks: Mapping[str, list[str]] | None,
        encoder: ReportDecoder,
    ) -> None:
        self._src = list(upkeeps)
        self._account_transmits: Counter[str] = Counter()
        self._performs: dict[str, list[str]] = {}
        self._transmits: dict[str, list[TransmitEvent]] = {}

        for event in transmits:
            block = str(_parse_block(event.in_block))
            self._account_transmits[event.sending_address] += 1
            try:
                results = encoder.decode_report(event.report)
            except Exception as err:
                raise ValueError(f"error decoding report: {err}") from err
            for result in results:
                upkeep_id = _upkeep_id(result.key)
                self._performs.setdefault(upkeep_id, []).append(block)
                self._transmits.setdefault(upkeep_id, []).append(event)

        self._eligibles = {
            str(upkeep.id): [str(point) for point in upkeep.eligible_at]
            for upkeep in self._src
        }
        self._checks: dict[str, list[str]] = dict(checks or {})

    def upkeep_ids(self) -> list[str]:
        """Ids of all upkeeps, without repeats, in their original order."""
        return list(dict.fromkeys(str(upkeep.id) for upkeep in self._src))

    def eligibles(self, upkeep_id: str) -> list[str]:
        return list(self._eligibles.get(upkeep_id, []))

    def performs(self, upkeep_id: str) -> list[str]:
        return list(self._performs.get(upkeep_id, []))

    def transmit_events(self, upkeep_id: str) -> list[TransmitEvent]:
        return list(self._transmits.get(upkeep_id, []))

    def checks(self, upkeep_id: str) -> list[str]:
        return list(self._checks.get(upkeep_id, []))

    def upkeep_stats(self, upkeep_id: str) -> UpkeepStats:
        """Eligibility count, misses and average delays in blocks (-1 when unknown)."""
        eligible = sorted(self._eligibles.get(upkeep_id, []))
        performed = sorted(self._performs.get(upkeep_id, []))
        checked = sorted(self._checks.get(upkeep_id, []))
        return UpkeepStats(
            eligible=len(eligible),
            missed=len(eligible) - len(performed),
            avg_perform_delay=_average_delay(eligible, performed),
            avg_check_delay=_average_delay(eligible, checked),
        )

    def transmits(self) -> list[TransmitStats]:
        """Transmit count and share in percent for every sending account."""
        total = sum(self._account_transmits.values())
        return [
            TransmitStats(account=account, count=count, pct=count / total * 100)
            for account, count in self._account_transmits.items()
        ]
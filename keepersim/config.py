"""Run book configuration for the keeper network simulation."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

_NANOSECONDS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_MAX_NANOSECONDS = 2**63 - 1
_COMPONENT = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]*)")


def _parse_nanoseconds(text: str) -> int:
    body = text
    negative = False
    if body and body[0] in "+-":
        negative = body[0] == "-"
        body = body[1:]
    if body == "0":
        return 0
    if not body:
        raise ValueError(f"invalid duration {text!r}")

    total = 0
    pos = 0
    while pos < len(body):
        match = _COMPONENT.match(body, pos)
        whole, fraction, unit = match.groups()
        if not whole and not fraction and fraction is None:
            raise ValueError(f"invalid duration {text!r}")
        if not whole and not fraction:
            raise ValueError(f"invalid duration {text!r}")
        if not unit:
            raise ValueError(f"missing unit in duration {text!r}")
        scale = _NANOSECONDS_PER_UNIT.get(unit)
        if scale is None:
            raise ValueError(f"unknown unit {unit!r} in duration {text!r}")
        total += int(whole or "0") * scale
        if fraction:
            total += int(fraction) * scale // 10 ** len(fraction)
        if total > _MAX_NANOSECONDS:
            raise ValueError(f"invalid duration {text!r}")
        pos = match.end()

    return -total if negative else total


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "300ms" or "1h15m30.5s".

    Precision below one microsecond is truncated.
    """
    if not isinstance(text, str):
        raise ValueError("duration must be a string")
    nanoseconds = _parse_nanoseconds(text)
    magnitude = timedelta(microseconds=abs(nanoseconds) // 1000)
    return -magnitude if nanoseconds < 0 else magnitude


def _with_fraction(value: int, precision: int) -> str:
    whole, fraction = divmod(value, 10**precision)
    digits = f"{fraction:0{precision}d}".rstrip("0")
    return f"{whole}.{digits}" if digits else str(whole)


def format_duration(value: timedelta) -> str:
    """Format a duration in the same notation that parse_duration reads."""
    nanoseconds = (
        (value.days * 86_400 + value.seconds) * 1_000_000_000
        + value.microseconds * 1000
    )
    if nanoseconds == 0:
        return "0s"
    sign = "-" if nanoseconds < 0 else ""
    magnitude = abs(nanoseconds)

    if magnitude < 1_000_000_000:
        if magnitude < 1000:
            return f"{sign}{magnitude}ns"
        if magnitude < 1_000_000:
            return f"{sign}{_with_fraction(magnitude, 3)}\u00b5s"
        return f"{sign}{_with_fraction(magnitude, 6)}ms"

    seconds, fraction = divmod(magnitude, 1_000_000_000)
    minutes, seconds = divmod(seconds, 60)
    text = _with_fraction(seconds * 1_000_000_000 + fraction, 9) + "s"
    if minutes:
        hours, minutes = divmod(minutes, 60)
        text = f"{minutes}m{text}"
        if hours:
            text = f"{hours}h{text}"
    return sign + text


@dataclass
class Blocks:
    """Block production settings."""

    genesis: int | None = None
    cadence: timedelta = timedelta(0)
    # average amount of variance applied to the cadence
    jitter: timedelta = timedelta(0)
    # number of blocks to simulate before broadcasting stops
    duration: int = 0
    # extra blocks at the end so that pending transmits can land
    end_padding: int = 0


@dataclass
class RPC:
    """Simulated RPC behaviour."""

    # maximum time in ms for a block to reach a node
    max_block_delay: int = 0
    # average time in ms that an RPC call takes
    average_latency: int = 0
    # chance that any RPC call fails
    error_rate: float = 0.0
    # calls per second above which calls are rate limited
    rate_limit_threshold: int = 0


@dataclass
class ConfigEvent:
    """A new OCR configuration that becomes active at a given block."""

    block: int | None = None
    f: int = 0
    offchain: str = ""
    rmax: int = 0
    delta_progress: timedelta = timedelta(0)
    delta_resend: timedelta = timedelta(0)
    delta_round: timedelta = timedelta(0)
    delta_grace: timedelta = timedelta(0)
    delta_stage: timedelta = timedelta(0)
    max_query: timedelta = timedelta(0)
    max_observation: timedelta = timedelta(0)
    max_report: timedelta = timedelta(0)
    max_accept: timedelta = timedelta(0)
    max_transmit: timedelta = timedelta(0)


@dataclass
class Upkeep:
    """A batch of upkeeps to generate."""

    count: int = 0
    start_id: int | None = None
    generate_func: str = ""
    offset_func: str = ""


@dataclass
class RunBook:
    """The whole simulation description."""

    nodes: int = 0
    max_service_workers: int = 0
    max_queue_size: int = 0
    avg_network_latency: timedelta = timedelta(0)
    rpc_detail: RPC = field(default_factory=RPC)
    block_cadence: Blocks = field(default_factory=Blocks)
    config_events: list[ConfigEvent] = field(default_factory=list)
    upkeeps: list[Upkeep] = field(default_factory=list)


@dataclass
class SymBlock:
    """A simulated block as handed to subscribers."""

    block_number: int
    transmitted_data: list[bytes] = field(default_factory=list)
    latest_epoch: int | None = None
    config: Any = None


def _lookup(obj: dict, key: str) -> Any:
    if key in obj:
        return obj[key]
    lowered = key.lower()
    for name, value in obj.items():
        if name.lower() == lowered:
            return value
    return None


def _object(value: Any, what: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{what}: expected a JSON object")
    return value


def _list(value: Any, what: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{what}: expected a JSON array")
    return value


def _int(value: Any, what: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{what}: expected an integer")
    return value


def _big(value: Any, what: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{what}: expected an integer")
    return value


def _float(value: Any, what: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{what}: expected a number")
    return float(value)


def _str(value: Any, what: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{what}: expected a string")
    return value


def _duration(value: Any, what: str) -> timedelta:
    if value is None:
        return timedelta(0)
    if not isinstance(value, str):
        raise ValueError(f"{what}: expected a duration string")
    return parse_duration(value)


def _blocks(value: Any) -> Blocks:
    obj = _object(value, "blockDetail")
    return Blocks(
        genesis=_big(_lookup(obj, "genesisBlock"), "genesisBlock"),
        cadence=_duration(_lookup(obj, "blockCadence"), "blockCadence"),
        jitter=_duration(_lookup(obj, "blockCadenceJitter"), "blockCadenceJitter"),
        duration=_int(_lookup(obj, "durationInBlocks"), "durationInBlocks"),
        end_padding=_int(_lookup(obj, "endPadding"), "endPadding"),
    )


def _rpc(value: Any) -> RPC:
    obj = _object(value, "rpcDetail")
    return RPC(
        max_block_delay=_int(_lookup(obj, "maxBlockDelay"), "maxBlockDelay"),
        average_latency=_int(_lookup(obj, "averageLatency"), "averageLatency"),
        error_rate=_float(_lookup(obj, "errorRate"), "errorRate"),
        rate_limit_threshold=_int(
            _lookup(obj, "rateLimitThreshold"), "rateLimitThreshold"
        ),
    )


_EVENT_DURATIONS = {
    "delta_progress": "deltaProgress",
    "delta_resend": "deltaResend",
    "delta_round": "deltaRound",
    "delta_grace": "deltaGrace",
    "delta_stage": "deltaStage",
    "max_query": "maxQueryTime",
    "max_observation": "maxObservationTime",
    "max_report": "maxReportTime",
    "max_accept": "maxShouldAcceptTime",
    "max_transmit": "maxShouldTransmitTime",
}


def _config_event(value: Any) -> ConfigEvent:
    obj = _object(value, "configEvents")
    rmax = _int(_lookup(obj, "maxRoundsPerEpoch"), "maxRoundsPerEpoch")
    if not 0 <= rmax <= 255:
        raise ValueError("maxRoundsPerEpoch: value out of range for uint8")
    durations = {
        attr: _duration(_lookup(obj, key), key) for attr, key in _EVENT_DURATIONS.items()
    }
    return ConfigEvent(
        block=_big(_lookup(obj, "triggerBlockNumber"), "triggerBlockNumber"),
        f=_int(_lookup(obj, "maxFaultyNodes"), "maxFaultyNodes"),
        offchain=_str(_lookup(obj, "offchainConfigJSON"), "offchainConfigJSON"),
        rmax=rmax,
        **durations,
    )


def _upkeep(value: Any) -> Upkeep:
    obj = _object(value, "upkeeps")
    return Upkeep(
        count=_int(_lookup(obj, "count"), "count"),
        start_id=_big(_lookup(obj, "startID"), "startID"),
        generate_func=_str(_lookup(obj, "generateFunc"), "generateFunc"),
        offset_func=_str(_lookup(obj, "offsetFunc"), "offsetFunc"),
    )


def load_runbook(text: str | bytes) -> RunBook:
    """Read a run book from its JSON text; raises ValueError when malformed."""
    raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ValueError("run book must be a JSON object")
    return RunBook(
        nodes=_int(_lookup(raw, "nodes"), "nodes"),
        max_service_workers=_int(
            _lookup(raw, "maxNodeServiceWorkers"), "maxNodeServiceWorkers"
        ),
        max_queue_size=_int(
            _lookup(raw, "maxNodeServiceQueueSize"), "maxNodeServiceQueueSize"
        ),
        avg_network_latency=_duration(
            _lookup(raw, "avgNetworkLatency"), "avgNetworkLatency"
        ),
        rpc_detail=_rpc(_lookup(raw, "rpcDetail")),
        block_cadence=_blocks(_lookup(raw, "blockDetail")),
        config_events=[
            _config_event(item)
            for item in _list(_lookup(raw, "configEvents"), "configEvents")
        ],
        upkeeps=[_upkeep(item) for item in _list(_lookup(raw, "upkeeps"), "upkeeps")],
    )
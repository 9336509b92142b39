"""Simulated keeper registry contract fed by the simulated block source."""

from __future__ import annotations

import dataclasses
import logging
import queue
import re
import threading
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable, Protocol

from keepersim.config import SymBlock
from keepersim.generate import SimulatedUpkeep
from keepersim.rpc import SimulatedRPC
from keepersim.sortedmap import SortedKeyMap

_POLL_SECONDS = 0.1
_NOTIFY_BUFFER = 1000
_PERFORM_LOG_BLOCKS = 100
_BLOCK_NUMBER = re.compile(r"[+-]?\d+")


class UpkeepState(IntEnum):
    ELIGIBLE = 0
    NOT_ELIGIBLE = 1


@dataclass
class PerformLog:
    """A perform of an upkeep key found in a transmitted block."""

    key: Any
    transmit_block: str
    confirmations: int = 0


@dataclass
class UpkeepResult:
    """The outcome of checking one upkeep key."""

    key: Any
    state: UpkeepState
    gas_used: int = 0
    perform_data: bytes = b""
    fast_gas_wei: int = 0
    link_native: int = 0
    check_block_number: int = 0
    check_block_hash: bytes = bytes(32)


@dataclass(frozen=True)
class ReportContext:
    config_digest: bytes = bytes(32)
    epoch: int = 0
    round: int = 0


class BlockSource(Protocol):
    def subscribe(self, delay: bool) -> tuple[int, queue.Queue]: ...

    def unsubscribe(self, subscription_id: int) -> None: ...


class Transmitter(Protocol):
    def transmit(self, sender: str, report: bytes, epoch: int, rnd: int) -> None: ...


class ReportDecoder(Protocol):
    def decode_report(self, report: bytes) -> list[Any]: ...


class ContractTelemetry(Protocol):
    def check_key(self, key: Any) -> None: ...


def _split_key(key: Any) -> tuple[str, str]:
    """Return (block key, upkeep id) of an upkeep key; raises ValueError when malformed."""
    splitter = getattr(key, "block_key_and_upkeep_id", None)
    if callable(splitter):
        block, upkeep_id = splitter()
        return str(block), str(upkeep_id)
    text = key.decode() if isinstance(key, (bytes, bytearray)) else str(key)
    parts = text.split("|")
    if len(parts) != 2:
        raise ValueError(f"upkeep key {text!r} is not of the form block|id")
    return parts[0], parts[1]


class SimulatedContract:
    """A node's view of the registry contract, built from broadcast blocks.

    Blocks arrive through a delayed subscription to the block source; every
    processed block number is put on the notify queue. Calls that reach the
    chain go through a SimulatedRPC and raise its RPCError on failure.
    """

    def __init__(
        self,
        src: BlockSource,
        digester: Any,
        upkeeps: Iterable[SimulatedUpkeep],
        encoder: ReportDecoder,
        transmitter: Transmitter | None,
        avg_latency: int,
        account: str,
        rpc_error_rate: float,
        rpc_load_limit_threshold: int,
        telemetry: ContractTelemetry | None = None,
        rpc_telemetry: Any = None,
        logger: logging.Logger | None = None,
        *,
        rpc: SimulatedRPC | None = None,
    ) -> None:
        self._src = src
        self.digester = digester
        self._encoder = encoder
        self._transmitter = transmitter
        self.avg_latency = avg_latency
        self._account = account
        self._telemetry = telemetry
        self._logger = logger or logging.getLogger(__name__)
        self._rpc = rpc or SimulatedRPC(
            rpc_error_rate, rpc_load_limit_threshold, avg_latency, rpc_telemetry
        )

        self.upkeeps: dict[str, SimulatedUpkeep] = {
            str(upkeep.id): dataclasses.replace(upkeep, performs={})
            for upkeep in upkeeps
        }

        self._lock = threading.RLock()
        self._blocks: dict[str, SymBlock] = {}
        self._run_configs: dict[str, Any] = {}
        self._last_block: int | None = None
        self._last_config: int | None = None
        self._last_epoch = 0
        self._perform_logs = SortedKeyMap()
        self._heads: queue.Queue = queue.Queue(maxsize=1)
        self._notify: queue.Queue = queue.Queue(maxsize=_NOTIFY_BUFFER)
        self._subscription: int | None = None
        self._started = False
        self._done = threading.Event()

    # lifecycle

    def start(self) -> None:
        """Subscribe to blocks and start processing them; later calls do nothing."""
        with self._lock:
            if self._started:
                return
            self._started = True
            self._subscription, blocks = self._src.subscribe(True)
            heads_id, heads = self._src.subscribe(False)
        threading.Thread(target=self._run, args=(blocks,), daemon=True).start()
        threading.Thread(
            target=self._forward_heads, args=(heads_id, heads), daemon=True
        ).start()

    def stop(self) -> None:
        with self._lock:
            subscription = self._subscription
            self._subscription = None
        if subscription is not None:
            self._src.unsubscribe(subscription)
        self._done.set()
        self._rpc.stop()

    def __enter__(self) -> SimulatedContract:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _next(self, channel: queue.Queue) -> SymBlock | None:
        while not self._done.is_set():
            try:
                return channel.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                continue
        return None

    def _run(self, channel: queue.Queue) -> None:
        while (block := self._next(channel)) is not None:
            self._receive(block)

    def _forward_heads(self, subscription_id: int, channel: queue.Queue) -> None:
        try:
            while (block := self._next(channel)) is not None:
                try:
                    self._heads.put_nowait(str(block.block_number))
                except queue.Full:
                    pass
        finally:
            self._src.unsubscribe(subscription_id)

    def _receive(self, block: SymBlock) -> None:
        number = block.block_number
        key = str(number)
        self._logger.debug("received block %s", key)

        with self._lock:
            self._blocks[key] = block
            self._last_block = number

            if block.config is not None:
                self._logger.debug("new config identified at block: %s", key)
                self._last_config = number
                self._run_configs[key] = block.config

            if block.latest_epoch is not None:
                self._last_epoch = max(self._last_epoch, block.latest_epoch)
                for data in block.transmitted_data:
                    self._record_transmit(key, data)

        try:
            self._notify.put_nowait(number)
        except queue.Full:
            pass

    def _record_transmit(self, block_key: str, data: bytes) -> None:
        try:
            results = self._encoder.decode_report(data)
        except Exception:  # undecodable reports are not performs
            return

        logs = []
        for result in results:
            log = PerformLog(key=result.key, transmit_block=block_key)
            logs.append(log)
            try:
                _, upkeep_id = _split_key(result.key)
            except ValueError:
                continue
            upkeep = self.upkeeps.get(upkeep_id)
            if upkeep is not None:
                upkeep.performs[block_key] = log
            self._logger.debug("log for key '%s' found in block '%s'", result.key, block_key)

        existing = self._perform_logs.get(block_key)
        self._perform_logs.set(block_key, (existing or []) + logs)

    # block and config data

    def notify(self) -> queue.Queue:
        """The queue that receives the number of every processed block."""
        return self._notify

    def head_ticker(self) -> queue.Queue:
        """The queue of latest block keys; holds at most one pending key."""
        return self._heads

    def latest_block_height(self) -> int:
        with self._lock:
            if self._last_block is None:
                raise LookupError("no config found")
            return self._last_block

    def latest_config_details(self) -> tuple[int, bytes]:
        """The block of the latest config and its digest."""
        with self._lock:
            if self._last_config is None:
                raise LookupError("no config found")
            conf = self._run_configs.get(str(self._last_config))
            if conf is None:
                raise LookupError("config not available")
            return self._last_config, conf.config_digest

    def latest_config(self, changed_in_block: int) -> Any:
        with self._lock:
            conf = self._run_configs.get(str(changed_in_block))
            if conf is None:
                raise LookupError(f"config not found at {changed_in_block}")
            return conf

    def perform_logs(self) -> list[PerformLog]:
        """Perform logs of recent blocks with their confirmation counts."""
        with self._lock:
            last_block = self._last_block
        if last_block is None:
            return []

        logs = []
        for key in self._perform_logs.keys(_PERFORM_LOG_BLOCKS):
            for log in self._perform_logs.get(key) or []:
                if not _BLOCK_NUMBER.fullmatch(log.transmit_block):
                    continue
                logs.append(
                    dataclasses.replace(
                        log, confirmations=last_block - int(log.transmit_block)
                    )
                )
        return logs

    def stale_report_logs(self) -> list[Any]:
        """Stale reports are not simulated."""
        return []

    # registry

    def get_active_upkeep_ids(self) -> list[str]:
        with self._lock:
            self._logger.debug("getting keys at block %s", self._last_block)
            ids = list(self.upkeeps)

        self._rpc.call("getState", self._done).result()
        self._rpc.call("getActiveIDs", self._done).result()
        return ids

    def _check_one(self, key: Any, errors: list[str]) -> UpkeepResult | None:
        block_key, upkeep_id = _split_key(key)
        if not _BLOCK_NUMBER.fullmatch(block_key):
            errors.append("block in key not parsable as big int")
            return None
        block = int(block_key)
        upkeep = self.upkeeps.get(upkeep_id)
        if upkeep is None:
            errors.append("upkeep not registered")
            return None

        result = UpkeepResult(
            key=key,
            state=UpkeepState.NOT_ELIGIBLE,
            # the real contract checks against the previous block
            check_block_number=block - 1,
        )
        if self._telemetry is not None:
            self._telemetry.check_key(key)

        # the latest eligibility point at or before the block decides
        eligible = next(
            (point for point in reversed(upkeep.eligible_at) if block >= point), None
        )
        if eligible is not None:
            performed = any(
                str(number) in upkeep.performs for number in range(eligible, block + 1)
            )
            if not performed:
                result.state = UpkeepState.ELIGIBLE
        return result

    def check_upkeep(self, *args: Any) -> list[UpkeepResult]:
        """Check each given upkeep key against the upkeeps' eligibility and performs."""
        errors: list[str] = []
        with self._lock:
            results = [self._check_one(key, errors) for key in args]
        if errors:
            raise ValueError("; ".join(errors))

        self._rpc.call("checkUpkeep", self._done).result()
        self._rpc.call("simulatePerform", self._done).result()
        return [result for result in results if result is not None]

    # transmission

    def transmit(
        self, report_context: ReportContext, report: bytes, signatures: list[Any]
    ) -> None:
        """Hand the report to the transmitter on behalf of this contract's account."""
        with self._lock:
            if self._transmitter is None:
                raise RuntimeError("no transmitter configured")
            self._last_epoch = report_context.epoch
            self._transmitter.transmit(
                self._account, bytes(report), report_context.epoch, report_context.round
            )

    def latest_config_digest_and_epoch(self) -> tuple[bytes, int]:
        with self._lock:
            conf = self._run_configs.get(str(self._last_config))
            if self._last_config is None or conf is None:
                raise LookupError("config not found")
            return conf.config_digest, self._last_epoch

    def from_account(self) -> str:
        with self._lock:
            return self._account
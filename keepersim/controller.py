"""Round-based OCR controller that drives simulated nodes through their phases."""

from __future__ import annotations

import dataclasses
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_REPORT_MARGIN = 0.02
_ROUND_MARGIN = 0.01
_POLL = 0.01
_LINE_WIDTH = 64


@dataclass(frozen=True)
class OCRCall:
    """A call to a node: the deadline it must finish by, its round, epoch and data."""

    deadline: float | None
    round: int
    epoch: int
    data: Any = None


@dataclass
class OCRReceiver:
    """The queues a simulated node receives its calls on."""

    name: str
    init: queue.Queue = field(default_factory=lambda: queue.Queue(maxsize=1))
    query: queue.Queue = field(default_factory=lambda: queue.Queue(maxsize=1))
    observations: queue.Queue = field(default_factory=lambda: queue.Queue(maxsize=1))
    report: queue.Queue = field(default_factory=lambda: queue.Queue(maxsize=1))
    stop: threading.Event = field(default_factory=threading.Event)


def _remaining(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())


def _put(channel: queue.Queue, item: Any, deadline: float | None) -> bool:
    try:
        channel.put(item, timeout=_remaining(deadline))
    except queue.Full:
        return False
    return True


def _get(channel: queue.Queue, deadline: float | None) -> tuple[bool, Any]:
    try:
        return True, channel.get(timeout=_remaining(deadline))
    except queue.Empty:
        return False, None


def _limit(deadline: float | None, seconds: float) -> float | None:
    """Tighten deadline to at most `seconds` from now when seconds is positive."""
    if seconds <= 0:
        return deadline
    limited = time.monotonic() + seconds
    return limited if deadline is None else min(deadline, limited)


class OCRController:
    """Runs OCR rounds: init, query, observation and report over all receivers.

    Times are in seconds; a time of 0 means no limit. Deadlines are values of
    time.monotonic(), or None for no deadline.
    """

    def __init__(
        self,
        round_time: float,
        rounds: int,
        logger: logging.Logger | None,
        *receivers: OCRReceiver,
    ) -> None:
        self.round_time = round_time
        self.query_time = 0.0
        self.observation_time = 0.0
        self.report_time = 0.0
        self.receivers = list(receivers)
        self.max_rounds = rounds
        self.max_query_length = 0
        self.max_observation_length = 0
        self.max_report_length = 0
        self.queries: queue.Queue = queue.Queue(maxsize=1)
        self.observations: queue.Queue = queue.Queue(maxsize=max(len(receivers), 1))
        self.reports: queue.Queue = queue.Queue(maxsize=max(len(receivers), 1))
        self.stop_signal = threading.Event()
        self.collection: list[bytes] = []
        self.complete_reports: list[list[bytes]] = []
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()

    def _send_all(self, attr: str, call: OCRCall, deadline: float | None, message: str) -> None:
        def send(receiver: OCRReceiver) -> None:
            if _put(getattr(receiver, attr), call, deadline):
                self._logger.info(message, receiver.name)

        threads = [
            threading.Thread(target=send, args=(receiver,), daemon=True)
            for receiver in self.receivers
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    def send_init_call(self, deadline: float | None, call: OCRCall) -> None:
        """Send the round's init call to the first receiver, acting as leader."""
        call = dataclasses.replace(
            call, deadline=_limit(call.deadline, self.query_time), data=None
        )
        leader = self.receivers[0]
        if _put(leader.init, call, deadline):
            self._logger.info("init call sent to %s", leader.name)

    def send_queries(self, deadline: float | None, call: OCRCall) -> None:
        """Wait for the leader's query and pass it to every receiver."""
        received, query = _get(self.queries, deadline)
        if not received:
            return
        self._logger.info("received query from leader")
        if len(query) > self.max_query_length:
            self._logger.error("max query length exceeded")

        call = dataclasses.replace(
            call, deadline=_limit(call.deadline, self.observation_time), data=query
        )
        self._send_all("query", call, deadline, "sent query to %s")

    def collect_observations(self, deadline: float | None) -> None:
        """Gather one observation per receiver until the deadline."""
        collection = [b""] * len(self.receivers)
        with self._lock:
            self.collection = collection

        for index, receiver in enumerate(self.receivers):
            received, observation = _get(self.observations, deadline)
            if not received:
                continue
            if len(observation) > self.max_observation_length:
                self._logger.error(
                    "max observation length exceeded from %s", receiver.name
                )
            self._logger.info("received observation from %s", receiver.name)
            with self._lock:
                collection[index] = observation

    def send_observations(self, deadline: float | None, call: OCRCall) -> None:
        """Send the collected observations to every receiver."""
        with self._lock:
            collected = list(self.collection)
        call = dataclasses.replace(
            call, deadline=_limit(call.deadline, self.report_time), data=collected
        )
        self._send_all("observations", call, deadline, "sent observations to %s")

    def collect_reports(self, deadline: float | None, call: OCRCall) -> None:
        """Gather reports, record them and send the final report to every receiver.

        Nothing happens when too little time is left before the deadline.
        Raises ValueError when the round produced no reports.
        """
        stop_at = deadline if deadline is not None else time.monotonic()
        stop_at -= len(self.receivers) * _REPORT_MARGIN
        if stop_at < time.monotonic():
            return

        reports: list[bytes] = []
        for receiver in self.receivers:
            received, report = _get(self.reports, deadline)
            if not received:
                break
            if len(report) > self.max_report_length:
                self._logger.error("max report length exceeded from %s", receiver.name)
            self._logger.info("report received from %s", receiver.name)
            reports.append(report)

        with self._lock:
            self.complete_reports.append(reports)

        if not reports:
            raise ValueError("cannot collapse reports of length 0")

        # all nodes are assumed to agree, so the first report stands for all
        final = dataclasses.replace(call, data=reports[0])
        self._send_all("report", final, deadline, "sent final report to %s")

    def _stop_receivers(self) -> None:
        for receiver in self.receivers:
            receiver.stop.set()

    def _wait(self, delay: float, stop_event: threading.Event | None) -> bool:
        end = time.monotonic() + delay
        while True:
            if self.stop_signal.is_set() or (stop_event is not None and stop_event.is_set()):
                return True
            remaining = end - time.monotonic()
            if remaining <= 0:
                return False
            self.stop_signal.wait(min(remaining, _POLL))

    def _round(self, iteration: int) -> None:
        deadline = time.monotonic() + self.round_time - _ROUND_MARGIN
        call = OCRCall(deadline=deadline, round=iteration, epoch=1)
        self._logger.info("-----> round %d begins", iteration)
        self.send_init_call(deadline, call)
        self.send_queries(deadline, call)
        self.collect_observations(deadline)
        self.send_observations(deadline, call)
        self.collect_reports(deadline, call)
        self._logger.info("<----- round %d ends", iteration)

    def _run(self, stop_event: threading.Event | None, done: threading.Event) -> None:
        self._logger.info(
            "starting OCR controller with round time of %d seconds", int(self.round_time)
        )
        delay = 0.0
        iteration = 0
        try:
            while not self._wait(delay, stop_event):
                iteration += 1
                self._round(iteration)
                if self.max_rounds > 0 and iteration == self.max_rounds:
                    self._logger.info("max rounds encountered; terminating process")
                    self.stop_signal.set()
                delay = self.round_time
        except Exception:
            self._logger.exception("controller round failed")
        finally:
            self._logger.info("receivers stopping")
            self._stop_receivers()
            self._logger.info("receivers stopped")
            done.set()

    def start(self, stop_event: threading.Event | None = None) -> threading.Event:
        """Run rounds in the background until stopped; the returned event marks the end."""
        done = threading.Event()
        threading.Thread(target=self._run, args=(stop_event, done), daemon=True).start()
        return done

    def write_reports(self, path: str | Path) -> None:
        """Write each report as hex, 64 characters per line, one file per node and round.

        A trailing part shorter than a full line is not written.
        """
        directory = Path(path)
        with self._lock:
            rounds = [list(reports) for reports in self.complete_reports]

        for round_index, node_reports in enumerate(rounds, start=1):
            for node_index, report in enumerate(node_reports, start=1):
                encoded = bytes(report).hex()
                full = len(encoded) // _LINE_WIDTH * _LINE_WIDTH
                content = "".join(
                    encoded[start : start + _LINE_WIDTH] + "\n"
                    for start in range(0, full, _LINE_WIDTH)
                )
                target = directory / f"node_{node_index}_round_{round_index}"
                try:
                    target.write_text(content, encoding="ascii")
                except OSError as err:
                    self._logger.error("%s", err)
"""Simulated RPC endpoint with latency, rate limiting and random load failures."""

from __future__ import annotations

import math
import random
import threading
import time
from concurrent.futures import Future
from datetime import timedelta
from typing import Callable, Protocol

_FAILURE_LATENCY = timedelta(milliseconds=50)
_BASE_LATENCY = timedelta(milliseconds=50)
_LOAD_ACCURACY = 10_000
_RATE_WINDOW = 10


class RPCError(Exception):
    """Base class of the failures a simulated RPC call can report."""


class RPCContextCancelled(RPCError):
    def __init__(self, message: str = "rpc context cancelled") -> None:
        super().__init__(message)


class RPCRateLimitExceeded(RPCError):
    def __init__(self, message: str = "rpc rate limit exceeded") -> None:
        super().__init__(message)


class RPCLoadLimitExceeded(RPCError):
    def __init__(self, message: str = "rpc load limit exceeded") -> None:
        super().__init__(message)


class RPCTelemetry(Protocol):
    def register_call(
        self, name: str, latency: timedelta, error: Exception | None
    ) -> None: ...

    def add_rate_data_point(self, calls: int) -> None: ...


class _BinomialLatency:
    """Binomial samples drawn from the operating system's random source."""

    def __init__(self, trials: int, probability: float = 0.4) -> None:
        self._trials = max(trials, 0)
        self._probability = probability
        self._rng = random.SystemRandom()

    def __call__(self) -> float:
        return float(
            sum(1 for _ in range(self._trials) if self._rng.random() < self._probability)
        )


class SimulatedRPC:
    """Answers calls after a random latency, or fails them when overloaded.

    Every call returns a Future that resolves to None on success or holds an
    RPCError. A background thread records the number of calls per tick; the
    sum of the last ten ticks above rate_limit makes calls fail.
    """

    def __init__(
        self,
        load_limit_probability: float,
        rate_limit: int,
        avg_latency: int,
        telemetry: RPCTelemetry | None = None,
        *,
        tick_interval: float | None = 0.1,
        distribution: Callable[[], float] | None = None,
    ) -> None:
        if not 0 <= load_limit_probability <= 1:
            raise ValueError("load limit probability must be between 0 and 1")
        self.load_limit_probability = load_limit_probability
        self.rate_limit = rate_limit
        self.avg_latency = avg_latency
        self._telemetry = telemetry
        self._distribution = distribution or _BinomialLatency(avg_latency * 2)
        self._lock = threading.Lock()
        self._total_calls = 0
        self._increment = 0
        self._data_points: list[int] = []
        self._done = threading.Event()
        if tick_interval is not None:
            threading.Thread(target=self._run, args=(tick_interval,), daemon=True).start()

    @property
    def total_calls(self) -> int:
        with self._lock:
            return self._total_calls

    def __enter__(self) -> SimulatedRPC:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def call(self, name: str, cancelled: threading.Event | None = None) -> Future:
        """Start a call; cancelled, when set before the latency passes, aborts it."""
        future: Future = Future()
        with self._lock:
            self._total_calls += 1
            self._increment += 1
            if self._rate() > self.rate_limit:
                self._spawn(self._fail, future, name, RPCRateLimitExceeded())
            elif self._at_load_limit():
                self._spawn(self._fail, future, name, RPCLoadLimitExceeded())
            else:
                latency = timedelta(milliseconds=int(self._distribution())) + _BASE_LATENCY
                self._spawn(self._respond, future, name, latency, cancelled)
        return future

    @staticmethod
    def _spawn(target: Callable[..., None], *args: object) -> None:
        threading.Thread(target=target, args=args, daemon=True).start()

    def _register(self, name: str, latency: timedelta, error: Exception | None) -> None:
        if self._telemetry is not None:
            self._telemetry.register_call(name, latency, error)

    def _fail(self, future: Future, name: str, error: RPCError) -> None:
        self._register(name, _FAILURE_LATENCY, error)
        time.sleep(_FAILURE_LATENCY.total_seconds())
        future.set_exception(error)

    def _respond(
        self,
        future: Future,
        name: str,
        latency: timedelta,
        cancelled: threading.Event | None,
    ) -> None:
        seconds = latency.total_seconds()
        if cancelled is not None:
            was_cancelled = cancelled.wait(seconds)
        else:
            time.sleep(seconds)
            was_cancelled = False

        if was_cancelled:
            error = RPCContextCancelled()
            self._register(name, latency, error)
            future.set_exception(error)
        else:
            self._register(name, latency, None)
            future.set_result(None)

    def _rate(self) -> int:
        return sum(self._data_points[-_RATE_WINDOW:])

    def _at_load_limit(self) -> bool:
        draw = random.randrange(_LOAD_ACCURACY)
        threshold = math.floor(self.load_limit_probability * _LOAD_ACCURACY + 0.5)
        return draw < threshold

    def collect_increment(self) -> int:
        """Record the calls made since the last collection and return their count."""
        with self._lock:
            calls = self._increment
            self._increment = 0
            self._data_points.append(calls)
            if self._telemetry is not None:
                self._telemetry.add_rate_data_point(calls)
            return calls

    def _run(self, interval: float) -> None:
        while not self._done.wait(interval):
            self.collect_increment()

    def stop(self) -> None:
        """Stop the background rate collection."""
        self._done.set()
"""Produces simulated blocks at a steady cadence and hands them to subscribers."""

from __future__ import annotations

import logging
import math
import queue
import random
import threading
from datetime import timedelta
from typing import Protocol

from keepersim.config import Blocks, SymBlock

_log = logging.getLogger(__name__)


class BlockLoader(Protocol):
    """Something that adds data to a block before it is broadcast."""

    def load(self, block: SymBlock) -> None: ...


class BlockBroadcaster:
    """Broadcasts blocks from genesis until genesis + duration + end padding.

    Subscribers receive SymBlock objects on a queue; after unsubscribing the
    queue receives None.
    """

    def __init__(self, conf: Blocks, max_delay: int, *loaders: BlockLoader) -> None:
        if conf.genesis is None:
            raise ValueError("genesis block required")
        self._next_block = conf.genesis
        self._limit = conf.genesis + conf.duration + conf.end_padding
        self._cadence = conf.cadence
        self._jitter = conf.jitter
        self._max_delay = max_delay
        self._loaders = list(loaders)
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._subscriptions: dict[int, queue.Queue] = {}
        self._delays: dict[int, bool] = {}
        self._sub_count = 0
        self._started = False

    @property
    def next_block(self) -> int:
        with self._lock:
            return self._next_block

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active_subscriptions(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _cadence_with_jitter(self) -> float:
        seconds = self._cadence.total_seconds()
        jitter_us = self._jitter // timedelta(microseconds=1)
        if jitter_us > 0:
            offset = random.randrange(jitter_us) - jitter_us / 2
            applied = math.copysign(math.floor(abs(offset) + 0.5), offset)
            seconds += applied / 1_000_000
        return max(seconds, 0.0)

    def _run(self) -> None:
        self._broadcast()
        while not self._done.wait(self._cadence_with_jitter()):
            with self._lock:
                self._next_block += 1
                current = self._next_block
            _log.debug("next block: %d", current)
            if current > self._limit:
                self._done.set()
                return
            self._broadcast()

    def _deliver(self, subscription_id: int, channel: queue.Queue, block: SymBlock) -> None:
        with self._lock:
            if self._subscriptions.get(subscription_id) is channel:
                channel.put(block)

    def _broadcast(self) -> None:
        with self._lock:
            block = SymBlock(block_number=self._next_block)
            targets = [
                (sid, channel, self._delays[sid])
                for sid, channel in self._subscriptions.items()
            ]

        for loader in self._loaders:
            loader.load(block)

        for sid, channel, delay in targets:
            if delay and self._max_delay > 0:
                wait = random.randrange(self._max_delay) / 1000
                timer = threading.Timer(wait, self._deliver, (sid, channel, block))
                timer.daemon = True
                timer.start()
            else:
                self._deliver(sid, channel, block)

    def subscribe(self, delay: bool) -> tuple[int, queue.Queue]:
        """Register a subscriber; with delay, blocks arrive up to max_delay ms late."""
        with self._lock:
            self._sub_count += 1
            channel: queue.Queue = queue.Queue()
            self._subscriptions[self._sub_count] = channel
            self._delays[self._sub_count] = delay
            return self._sub_count, channel

    def unsubscribe(self, subscription_id: int) -> None:
        with self._lock:
            channel = self._subscriptions.pop(subscription_id, None)
            self._delays.pop(subscription_id, None)
            if channel is not None:
                channel.put(None)

    def start(self) -> threading.Event:
        """Start broadcasting once; the returned event is set when it ends."""
        with self._lock:
            if not self._started:
                self._started = True
                threading.Thread(target=self._run, daemon=True).start()
        return self._done

    def stop(self) -> None:
        self._done.set()
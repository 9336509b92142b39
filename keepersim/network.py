"""In-process network of simulated OCR peers with random delivery delay."""

from __future__ import annotations

import queue
import random
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta

_QUEUE_SIZE = 1000
_BROADCAST_DELAY_MS = 100


@dataclass(frozen=True)
class BinaryMessage:
    msg: bytes
    sender: int


class SimulatedNetwork:
    """Routes messages between endpoints registered under peer ids."""

    def __init__(self, avg_latency: timedelta) -> None:
        self._latency = int(avg_latency / timedelta(milliseconds=1))
        self._lock = threading.Lock()
        self._endpoints: dict[str, queue.Queue] = {}

    def new_factory(self) -> SimulatedEndpointFactory:
        """A factory for a new peer with a random id."""
        return SimulatedEndpointFactory(str(uuid.uuid4()), self)

    def register_endpoint(self, peer_id: str) -> queue.Queue:
        channel: queue.Queue = queue.Queue(maxsize=_QUEUE_SIZE)
        with self._lock:
            self._endpoints[peer_id] = channel
        return channel

    def send_to(self, sender: int, payload: bytes, to: str) -> None:
        """Deliver payload to peer `to` after a random delay below the latency."""
        with self._lock:
            channel = self._endpoints.get(to)
        if channel is None:
            return
        if self._latency > 0:
            time.sleep(random.randrange(self._latency) / 1000)
        channel.put(BinaryMessage(msg=bytes(payload), sender=sender))

    def broadcast(self, sender: int, payload: bytes) -> None:
        """Deliver payload to every registered peer, the sender included."""
        time.sleep(random.randrange(_BROADCAST_DELAY_MS) / 1000)
        with self._lock:
            channels = list(self._endpoints.values())
        for channel in channels:
            channel.put(BinaryMessage(msg=bytes(payload), sender=sender))


class SimulatedEndpointFactory:
    """Creates the network endpoint of one peer."""

    def __init__(self, peer_id: str, network: SimulatedNetwork) -> None:
        self._peer_id = peer_id
        self.network = network
        self.peer_lookup: dict[int, str] = {}

    @property
    def peer_id(self) -> str:
        return self._peer_id

    def new_endpoint(self, config_digest: bytes, peer_ids: list[str]) -> SimulatedEndpoint:
        """Register this peer and map oracle ids to the given peer ids."""
        this_id = 0
        for index, peer in enumerate(peer_ids):
            if peer == self._peer_id:
                this_id = index
            self.peer_lookup[index] = peer
        channel = self.network.register_endpoint(self._peer_id)
        return SimulatedEndpoint(self.peer_lookup, this_id, self.network, channel)


class SimulatedEndpoint:
    """One peer's view of the simulated network."""

    def __init__(
        self,
        peer_lookup: dict[int, str],
        oracle_id: int,
        network: SimulatedNetwork,
        channel: queue.Queue,
    ) -> None:
        self.peer_lookup = peer_lookup
        self.id = oracle_id
        self.network = network
        self._channel = channel

    def send_to(self, payload: bytes, to: int) -> None:
        peer = self.peer_lookup.get(to)
        if peer is not None:
            self.network.send_to(self.id, payload, peer)

    def broadcast(self, payload: bytes) -> None:
        self.network.broadcast(self.id, payload)

    def receive(self) -> queue.Queue:
        """The queue that carries every message sent to this peer."""
        return self._channel

    def start(self) -> None:
        """Endpoints need no start-up work."""

    def close(self) -> None:
        """Endpoints hold no resources to release."""
import queue
from datetime import timedelta

import pytest

from keepersim.broadcaster import BlockBroadcaster
from keepersim.config import Blocks


class _Recorder:
    def __init__(self):
        self.numbers = []

    def load(self, block):
        self.numbers.append(block.block_number)


def _drain(channel, count):
    return [channel.get(timeout=2).block_number for _ in range(count)]


def test_broadcasts_until_limit():
    recorder = _Recorder()
    conf = Blocks(genesis=5, cadence=timedelta(milliseconds=5), duration=2)
    bb = BlockBroadcaster(conf, 0, recorder)
    _, channel = bb.subscribe(False)

    done = bb.start()
    assert done.wait(timeout=5)
    assert _drain(channel, 3) == [5, 6, 7]
    assert recorder.numbers == [5, 6, 7]
    assert channel.empty()


def test_end_padding_extends_limit():
    conf = Blocks(genesis=1, cadence=timedelta(milliseconds=1), duration=1, end_padding=2)
    bb = BlockBroadcaster(conf, 0)
    assert bb.limit == 4


def test_delayed_subscriber_still_receives():
    conf = Blocks(genesis=3, cadence=timedelta(seconds=10), duration=5)
    bb = BlockBroadcaster(conf, 5)
    _, channel = bb.subscribe(True)
    bb.start()
    block = channel.get(timeout=2)
    bb.stop()
    assert block.block_number == 3


def test_stop_ends_broadcasting():
    conf = Blocks(genesis=10, cadence=timedelta(seconds=10), duration=100)
    bb = BlockBroadcaster(conf, 0)
    _, channel = bb.subscribe(False)
    done = bb.start()
    assert channel.get(timeout=2).block_number == 10
    bb.stop()
    assert done.is_set()
    with pytest.raises(queue.Empty):
        channel.get(timeout=0.05)


def test_subscribe_and_unsubscribe():
    conf = Blocks(genesis=1, cadence=timedelta(seconds=1), duration=1)
    bb = BlockBroadcaster(conf, 0)
    first_id, first = bb.subscribe(False)
    second_id, _ = bb.subscribe(True)
    assert (first_id, second_id) == (1, 2)
    assert bb.active_subscriptions == 2

    bb.unsubscribe(first_id)
    assert bb.active_subscriptions == 1
    assert first.get(timeout=1) is None


def test_missing_genesis_raises():
    with pytest.raises(ValueError):
        BlockBroadcaster(Blocks(), 0)
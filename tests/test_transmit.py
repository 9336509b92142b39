import pytest

from keepersim.config import SymBlock
from keepersim.transmit import TransmitLoader, report_hash


def test_report_hash_of_empty_input():
    assert report_hash(b"") == "47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU="


def test_report_hash_differs_per_input():
    assert report_hash(b"one") != report_hash(b"two")
    assert len(report_hash(b"one")) == 44


def test_load_moves_queue_into_block():
    loader = TransmitLoader()
    loader.transmit("acc1", b"report-a", 3, 1)
    loader.transmit("acc2", b"report-b", 7, 2)

    block = SymBlock(block_number=12)
    loader.load(block)

    assert block.transmitted_data == [b"report-a", b"report-b"]
    assert block.latest_epoch == 7
    assert {e.in_block for e in loader.results()} == {"12"}


def test_queue_is_emptied_after_load():
    loader = TransmitLoader()
    loader.transmit("acc1", b"report-a", 1, 1)
    loader.load(SymBlock(block_number=1))

    second = SymBlock(block_number=2)
    loader.load(second)
    assert second.transmitted_data == []
    assert second.latest_epoch is None


def test_duplicate_transmit_raises():
    loader = TransmitLoader()
    loader.transmit("acc1", b"same", 1, 1)
    loader.load(SymBlock(block_number=4))
    with pytest.raises(ValueError):
        loader.transmit("acc2", b"same", 2, 1)
    assert len(loader.results()) == 1


def test_results_are_copies():
    loader = TransmitLoader()
    loader.transmit("acc1", b"data", 5, 3)
    first = loader.results()
    first[0].in_block = "999"
    again = loader.results()
    assert again[0].in_block == "0"
    assert again[0].sending_address == "acc1"
    assert again[0].epoch == 5
    assert again[0].round == 3
import pytest

from keepersim.sortedmap import SortedKeyMap


def test_set_and_get():
    m = SortedKeyMap()
    m.set("5", ["log"])
    assert m.get("5") == ["log"]
    assert m.get("6") is None
    assert "5" in m
    assert "6" not in m


def test_overwrite_keeps_single_key():
    m = SortedKeyMap()
    m.set("a", 1)
    m.set("a", 2)
    assert m.get("a") == 2
    assert len(m) == 1
    assert m.keys(10) == ["a"]


def test_keys_are_returned_in_descending_order():
    m = SortedKeyMap()
    for key in ["3", "1", "2"]:
        m.set(key, key)
    assert m.keys(10) == ["3", "2", "1"]


def test_keys_sort_as_strings():
    m = SortedKeyMap()
    m.set("9", None)
    m.set("10", None)
    assert m.keys(2) == ["9", "10"]


def test_keys_limit_takes_lowest_keys():
    m = SortedKeyMap()
    for key in ["c", "a", "b"]:
        m.set(key, 0)
    assert m.keys(2) == ["b", "a"]
    assert m.keys(0) == []


def test_negative_limit_raises():
    with pytest.raises(ValueError):
        SortedKeyMap().keys(-1)
from datetime import datetime, timedelta

import pytest

from keepersim.database import PendingTransmission, ReportTimestamp, SimulatedDatabase

DIGEST_A = bytes(32)
DIGEST_B = bytes([1]) * 32


def test_state_round_trip():
    db = SimulatedDatabase()
    db.write_state(DIGEST_A, {"epoch": 3})
    assert db.read_state(DIGEST_A) == {"epoch": 3}


def test_missing_state_raises():
    with pytest.raises(KeyError):
        SimulatedDatabase().read_state(DIGEST_A)


def test_config_round_trip_and_missing():
    db = SimulatedDatabase()
    with pytest.raises(LookupError):
        db.read_config()
    db.write_config({"f": 1})
    assert db.read_config() == {"f": 1}


def test_pending_filtered_by_digest():
    db = SimulatedDatabase()
    now = datetime(2024, 1, 1)
    ts_a = ReportTimestamp(DIGEST_A, 1, 1)
    ts_b = ReportTimestamp(DIGEST_B, 1, 2)
    tr = PendingTransmission(time=now, report=b"r")
    db.store_pending_transmission(ts_a, tr)
    db.store_pending_transmission(ts_b, PendingTransmission(time=now))
    assert db.pending_transmissions_with_config_digest(DIGEST_A) == {ts_a: tr}


def test_delete_pending():
    db = SimulatedDatabase()
    ts = ReportTimestamp(DIGEST_A, 2, 1)
    db.store_pending_transmission(ts, PendingTransmission(time=datetime(2024, 1, 1)))
    db.delete_pending_transmission(ts)
    assert db.pending_transmissions_with_config_digest(DIGEST_A) == {}


def test_delete_older_than_keeps_newer():
    db = SimulatedDatabase()
    cutoff = datetime(2024, 1, 1)
    old = ReportTimestamp(DIGEST_A, 1, 1)
    new = ReportTimestamp(DIGEST_A, 1, 2)
    new_tr = PendingTransmission(time=cutoff + timedelta(seconds=1))
    db.store_pending_transmission(old, PendingTransmission(time=cutoff - timedelta(seconds=1)))
    db.store_pending_transmission(new, new_tr)
    db.delete_pending_transmissions_older_than(cutoff)
    assert db.pending_transmissions_with_config_digest(DIGEST_A) == {new: new_tr}
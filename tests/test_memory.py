import io
import logging
from dataclasses import dataclass

from fedkit.codec import U64
from fedkit.db.batch import Accumulator
from fedkit.db.memory import MemDatabase
from fedkit.derive import consensus_struct


@consensus_struct(U64)
@dataclass(frozen=True)
class SampleVal:
    value: int


@consensus_struct(U64)
@dataclass(frozen=True)
class SampleKey:
    value: int
    DB_PREFIX = 0x42
    VALUE_TYPE = SampleVal


def test_basic_rw():
    db = MemDatabase()
    assert db.insert_entry(SampleKey(42), SampleVal(1337)) is None
    assert db.get_value(SampleKey(42)) == SampleVal(1337)
    assert db.remove_entry(SampleKey(42)) == SampleVal(1337)
    assert db.get_value(SampleKey(42)) is None


def test_raw_insert_get_remove():
    db = MemDatabase()
    assert db.raw_insert_entry(b"\x01a", b"x") is None
    assert db.raw_insert_entry(b"\x01a", b"y") == b"x"
    assert db.raw_get_value(b"\x01a") == b"y"
    assert db.raw_remove_entry(b"\x01a") == b"y"
    assert db.raw_remove_entry(b"\x01a") is None
    assert db.raw_get_value(b"\x01a") is None


def test_raw_find_by_prefix_sorted_and_filtered():
    db = MemDatabase()
    for key in (b"\x02c", b"\x01b", b"\x02a", b"\x03a", b"\x02"):
        db.raw_insert_entry(key, key[::-1])
    assert list(db.raw_find_by_prefix(b"\x02")) == [
        (b"\x02", b"\x02"),
        (b"\x02a", b"a\x02"),
        (b"\x02c", b"c\x02"),
    ]
    assert list(db.raw_find_by_prefix(b"\x09")) == []


def test_find_by_prefix_is_a_snapshot():
    db = MemDatabase()
    db.raw_insert_entry(b"\x01a", b"1")
    results = db.raw_find_by_prefix(b"\x01")
    db.raw_insert_entry(b"\x01b", b"2")
    assert list(results) == [(b"\x01a", b"1")]


def test_dump_db():
    db = MemDatabase()
    db.raw_insert_entry(b"\xab", b"\x01\x02")
    db.raw_insert_entry(b"\x0a", b"\xff")
    out = io.StringIO()
    db.dump_db(out)
    assert out.getvalue() == "0a: ff\nab: 0102\n"


def test_apply_batch_operations():
    db = MemDatabase()
    db.insert_entry(SampleKey(2), SampleVal(2))
    batch = Accumulator()
    with batch.transaction() as tx:
        tx.append_insert(SampleKey(1), SampleVal(10))
        tx.append_maybe_delete(SampleKey(2))
        tx.append_maybe_delete(SampleKey(3))
        tx.commit()
    db.raw_apply_batch(batch)
    assert db.get_value(SampleKey(1)) == SampleVal(10)
    assert db.get_value(SampleKey(2)) is None


def test_apply_batch_logs_replaced_element(caplog):
    db = MemDatabase()
    db.insert_entry(SampleKey(1), SampleVal(1))
    batch = Accumulator()
    batch.autocommit(lambda tx: tx.append_insert_new(SampleKey(1), SampleVal(2)))
    with caplog.at_level(logging.ERROR, logger="fedkit.db.memory"):
        db.raw_apply_batch(batch)
    assert db.get_value(SampleKey(1)) == SampleVal(2)
    assert "Database replaced element!" in caplog.text


def test_apply_batch_logs_absent_delete(caplog):
    db = MemDatabase()
    batch = Accumulator()
    batch.autocommit(lambda tx: tx.append_delete(SampleKey(5)))
    with caplog.at_level(logging.ERROR, logger="fedkit.db.memory"):
        db.raw_apply_batch(batch)
    assert "Database deleted absent element!" in caplog.text


def test_rolled_back_batch_applies_nothing():
    db = MemDatabase()
    batch = Accumulator()
    with batch.transaction() as tx:
        tx.append_insert(SampleKey(1), SampleVal(1))
    db.apply_batch(batch)
    assert list(db.raw_find_by_prefix(b"")) == []
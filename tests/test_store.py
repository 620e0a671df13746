"""Tests for the SQLAlchemy-backed record store."""

from datetime import datetime

import pytest

from models import TransportLeg
from store import ByCode, BySurrogate, parse_identifier
from tests.factories import seed_apple_chain


@pytest.mark.parametrize("raw,expected", [
    ("BATCH-1234", ByCode("BATCH-1234")),
    ("  BATCH-1234 ", ByCode("BATCH-1234")),
    ("42", BySurrogate(42)),
    ("5f1a2b3c4d5e6f7a8b9c0d1e", ByCode("5f1a2b3c4d5e6f7a8b9c0d1e")),
    ("999999999999999999", BySurrogate(999999999999999999)),
    ("9999999999999999999", ByCode("9999999999999999999")),
    ("\u00b2", ByCode("\u00b2")),
    ("\u0663", ByCode("\u0663")),
])
def test_parse_identifier(raw, expected):
    assert parse_identifier(raw) == expected


def test_find_batch_by_code_and_id(db, record_store):
    rows = seed_apple_chain(db)
    by_code = record_store.find_batch(ByCode("BATCH-1234"))
    by_id = record_store.find_batch(BySurrogate(rows["batch"].id))
    assert by_code == by_id
    assert by_code.producer.name == "John Doe"
    assert by_code.processing is None


def test_find_batch_missing(db, record_store):
    seed_apple_chain(db)
    assert record_store.find_batch(ByCode("UNKNOWN-999")) is None
    assert record_store.find_batch(BySurrogate(999)) is None


def test_legs_resolve_transporter_and_samples(db, record_store):
    rows = seed_apple_chain(db)
    legs = record_store.find_legs_for_batch(rows["batch"].id)
    assert len(legs) == 1
    leg = legs[0]
    assert leg.transporter.name == "Bob Trucker"
    assert leg.origin.address.city == "Fresno"
    assert leg.origin.coordinates.longitude == pytest.approx(-119.7871)
    assert [s.temperature_c for s in leg.temperature_logs] == [4.0, 9.5]


def test_legs_sorted_by_departure(db, record_store):
    rows = seed_apple_chain(db)
    batch = rows["batch"]
    db.add_all([
        TransportLeg(transport_code="TRANS-LATE", batch_id=batch.id, transporter_id=rows["farmer"].id,
                     origin_name="Store XYZ", destination_name="Outlet", departure_time=datetime(2023, 10, 9),
                     status="in-transit"),
        TransportLeg(transport_code="TRANS-UNDATED", batch_id=batch.id, transporter_id=rows["farmer"].id,
                     origin_name="Depot", destination_name="Farm ABC", status="pending"),
    ])
    db.commit()
    codes = [leg.transport_code for leg in record_store.find_legs_for_batch(batch.id)]
    assert codes == ["TRANS-UNDATED", "TRANS-1", "TRANS-LATE"]


def test_inventory_resolves_retailer_and_store(db, record_store):
    rows = seed_apple_chain(db)
    entries = record_store.find_inventory_for_batch(rows["batch"].id)
    assert len(entries) == 1
    assert entries[0].retailer.name == "Alice Store"
    assert entries[0].store.name == "Alice Groceries"
    assert entries[0].sku == "SKU-APPLES"


def test_empty_relations(db, record_store):
    assert record_store.find_legs_for_batch(12345) == []
    assert record_store.find_inventory_for_batch(12345) == []


def test_search_and_counts(db, record_store):
    rows = seed_apple_chain(db)
    assert [b.batch_code for b in record_store.search_batches("apple")] == ["BATCH-1234"]
    assert [b.batch_code for b in record_store.search_batches("batch-12")] == ["BATCH-1234"]
    assert record_store.search_batches("pears") == []
    assert record_store.count_legs(rows["batch"].id) == 1
    assert record_store.count_inventory(rows["batch"].id) == 1


@pytest.mark.parametrize("raw", ["99999999999999999999999", "\u00b2", "\u0663\u0664"])
def test_oversized_or_non_ascii_digits_find_nothing(db, record_store, raw):
    seed_apple_chain(db)
    assert record_store.find_batch(parse_identifier(raw)) is None

"""Tests for traceability report assembly."""

from datetime import datetime

import pytest

from config import EvaluatorConfig
from errors import BatchNotFound
from models import Batch, InventoryEntry, TransportLeg
from schemas import CurrentStatus, RiskFlag, Stage
from store import BySurrogate
from tests.factories import seed_apple_chain
from traceability import get_status_snapshot, get_traceability_report, search_batches

NOW = datetime(2023, 10, 10)


def test_apple_scenario(db, record_store):
    seed_apple_chain(db)
    report = get_traceability_report("BATCH-1234", record_store, now=NOW, base_url="https://trace.example")

    assert report.summary.current_status is CurrentStatus.AVAILABLE_AT_RETAIL
    assert report.summary.total_journey_days == 2
    assert report.summary.total_transport_steps == 1
    assert report.summary.total_retail_locations == 1

    assert report.batch.trace_url == "https://trace.example/trace/BATCH-1234"
    assert report.producer.name == "John Doe"
    assert report.transport_history[0].transporter.name == "Bob Trucker"
    assert report.retail_locations[0].retailer.store_name == "Alice Groceries"
    assert report.retail_locations[0].expiry_date == datetime(2023, 11, 1)
    assert [e.stage for e in report.timeline] == [
        Stage.PRODUCTION, Stage.TRANSPORTATION, Stage.TRANSPORTATION, Stage.RETAIL,
    ]


def test_code_and_id_give_identical_reports(db, record_store):
    rows = seed_apple_chain(db)
    by_code = get_traceability_report("BATCH-1234", record_store, now=NOW)
    by_id = get_traceability_report(str(rows["batch"].id), record_store, now=NOW)
    by_tag = get_traceability_report(BySurrogate(rows["batch"].id), record_store, now=NOW)
    assert by_code == by_id == by_tag
    # repeated reads project the same report
    assert get_traceability_report("BATCH-1234", record_store, now=NOW) == by_code


def test_unknown_batch(db, record_store):
    seed_apple_chain(db)
    with pytest.raises(BatchNotFound):
        get_traceability_report("UNKNOWN-999", record_store, now=NOW)


def test_expired_batch_without_downstream_records(db, record_store):
    rows = seed_apple_chain(db)
    stale = Batch(batch_code="OLD-1", product_name="Pears", producer_id=rows["farmer"].id,
                  harvest_date=datetime(2019, 12, 1), expiry_date=datetime(2020, 1, 1),
                  quantity=10, unit="kg")
    db.add(stale); db.commit()

    report = get_traceability_report("OLD-1", record_store, now=NOW)
    assert report.summary.current_status is CurrentStatus.EXPIRED
    assert report.summary.total_transport_steps == 0
    assert report.summary.total_retail_locations == 0
    assert report.transport_history == []
    assert report.retail_locations == []
    assert len(report.timeline) == 1


def test_fresh_batch_with_no_data_is_with_producer(db, record_store):
    rows = seed_apple_chain(db)
    db.add(Batch(batch_code="NEW-1", product_name="Kale", producer_id=rows["farmer"].id,
                 harvest_date=datetime(2023, 10, 8), expiry_date=datetime(2023, 10, 30),
                 quantity=5, unit="kg"))
    db.commit()
    report = get_traceability_report("NEW-1", record_store, now=NOW)
    assert report.summary.current_status is CurrentStatus.WITH_PRODUCER
    assert report.summary.total_journey_days == 2


def test_transport_step_risk_and_route(db, record_store):
    seed_apple_chain(db)
    step = get_traceability_report("BATCH-1234", record_store, now=NOW).transport_history[0]

    assert [r.risk_flag for r in step.temperature_logs] == [RiskFlag.NORMAL, RiskFlag.HIGH_RISK]
    assert step.risk_flag is RiskFlag.HIGH_RISK
    assert step.max_temperature_c == 9.5
    assert step.route is not None
    assert step.route.distance_meters > 1000
    assert step.route.start_address == "Farm ABC, Fresno, CA"


def test_threshold_override_flows_through(db, record_store):
    seed_apple_chain(db)
    lenient = EvaluatorConfig(temperature_threshold_c=10.0)
    step = get_traceability_report("BATCH-1234", record_store, config=lenient, now=NOW).transport_history[0]
    assert step.risk_flag is RiskFlag.NORMAL


def test_route_omitted_without_coordinates(db, record_store):
    seed_apple_chain(db, with_coordinates=False)
    report = get_traceability_report("BATCH-1234", record_store, now=NOW)
    assert report.transport_history[0].route is None
    assert report.summary.total_transport_steps == 1


def test_store_expiry_overrides_batch_expiry(db, record_store):
    rows = seed_apple_chain(db)
    entry = db.get(InventoryEntry, rows["entry"].id)
    entry.expiry_date = datetime(2023, 10, 20)
    db.commit()
    report = get_traceability_report("BATCH-1234", record_store, now=NOW)
    assert report.retail_locations[0].expiry_date == datetime(2023, 10, 20)


def test_multi_hop_journey(db, record_store):
    rows = seed_apple_chain(db)
    db.add(TransportLeg(
        transport_code="TRANS-2", batch_id=rows["batch"].id, transporter_id=rows["farmer"].id,
        origin_name="Store XYZ", destination_name="Outlet",
        departure_time=datetime(2023, 10, 5), actual_arrival_time=datetime(2023, 10, 6),
        status="delivered",
    ))
    db.commit()
    report = get_traceability_report("BATCH-1234", record_store, now=NOW)
    assert report.summary.total_transport_steps == 2
    assert report.summary.total_journey_days == 5
    assert len(report.timeline) == 1 + 2 * 2 + 1
    stamps = [e.timestamp for e in report.timeline]
    assert stamps == sorted(stamps)


def test_status_snapshot(db, record_store):
    seed_apple_chain(db)
    snap = get_status_snapshot("BATCH-1234", record_store, now=NOW)
    assert snap.status is CurrentStatus.AVAILABLE_AT_RETAIL
    assert snap.is_expired is False
    assert snap.days_until_expiry == 22

    with pytest.raises(BatchNotFound):
        get_status_snapshot("UNKNOWN-999", record_store, now=NOW)


def test_search_batches(db, record_store):
    seed_apple_chain(db)
    results = search_batches("Apples", record_store)
    assert len(results) == 1
    assert results[0].transport_count == 1
    assert results[0].inventory_count == 1


@pytest.mark.parametrize("identifier", ["99999999999999999999999", "\u00b2", "999999999999999999"])
def test_unresolvable_digit_identifiers(db, record_store, identifier):
    seed_apple_chain(db)
    with pytest.raises(BatchNotFound):
        get_traceability_report(identifier, record_store, now=NOW)
    with pytest.raises(BatchNotFound):
        get_status_snapshot(identifier, record_store, now=NOW)

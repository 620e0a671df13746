"""
Traceability reports.

``get_traceability_report`` is the read-side projection a consumer sees
after scanning a batch QR code. It resolves the batch, pulls its transport
legs and retail inventory, and folds them into a single report with a
journey timeline and a derived status. Nothing here writes.

The legs and inventory are two separate reads, not a snapshot: a report
may pair a slightly older leg list with fresher inventory.
"""
import logging
from datetime import datetime
from typing import List, Optional, Union

from config import BASE_URL, DEFAULT_EVALUATOR, EvaluatorConfig, trace_url
from errors import BatchNotFound
from schemas import (
    BatchRecord, BatchSummary, InventoryRecord, LegRecord, ProducerInfo, ReportSummary,
    RetailerInfo, RetailLocation, SearchResult, StatusSnapshot, TemperatureReading,
    TraceabilityReport, TransporterInfo, TransportStep,
)
from status import days_until_expiry, infer_status, is_expired, journey_days
from store import Identifier, RecordStore, parse_identifier
from timeline import build_timeline
from utils import estimate_leg_route, evaluate_risk, utcnow

logger = logging.getLogger(__name__)


def resolve_batch(store: RecordStore, identifier: Union[str, Identifier]) -> BatchRecord:
    ident = parse_identifier(identifier) if isinstance(identifier, str) else identifier
    batch = store.find_batch(ident)
    if batch is None:
        logger.info("traceability lookup missed: %r", ident)
        raise BatchNotFound(identifier)
    return batch


def transport_step(leg: LegRecord, config: EvaluatorConfig = DEFAULT_EVALUATOR) -> TransportStep:
    readings = [
        TemperatureReading(**s.model_dump(), risk_flag=evaluate_risk(s.temperature_c, config))
        for s in leg.temperature_logs
    ]
    return TransportStep(
        transport_code=leg.transport_code,
        transporter=TransporterInfo(
            name=leg.transporter.name,
            contact=leg.transporter.contact,
            email=leg.transporter.email,
        ),
        origin=leg.origin,
        destination=leg.destination,
        departure_time=leg.departure_time,
        estimated_arrival_time=leg.estimated_arrival_time,
        actual_arrival_time=leg.actual_arrival_time,
        vehicle=leg.vehicle,
        driver=leg.driver,
        temperature_logs=readings,
        max_temperature_c=max((r.temperature_c for r in readings), default=None),
        risk_flag=readings[-1].risk_flag if readings else None,
        condition_notes=leg.condition_notes,
        status=leg.status,
        route=estimate_leg_route(leg.origin, leg.destination, config),
    )


def retail_location(entry: InventoryRecord, batch: BatchRecord) -> RetailLocation:
    store = entry.store
    return RetailLocation(
        sku=entry.sku,
        retailer=RetailerInfo(
            name=entry.retailer.name,
            contact=entry.retailer.contact,
            email=entry.retailer.email,
            store_name=store.name if store else "Unknown Store",
            store_address=store.address if store else None,
        ),
        product_name=batch.product_name,
        quantity_available=entry.quantity_available,
        unit_price=entry.unit_price,
        currency=entry.currency,
        quality_status=entry.quality_status,
        status=entry.status,
        store=store,
        shelf_date=entry.stocked_at,
        # store-level expiry overrides the batch's own
        expiry_date=entry.expiry_date or batch.expiry_date,
        last_restocked=entry.last_restocked,
        last_sold=entry.last_sold,
    )


def get_traceability_report(
    identifier: Union[str, Identifier],
    store: RecordStore,
    config: EvaluatorConfig = DEFAULT_EVALUATOR,
    now: Optional[datetime] = None,
    base_url: str = BASE_URL,
) -> TraceabilityReport:
    now = now or utcnow()
    batch = resolve_batch(store, identifier)
    legs = store.find_legs_for_batch(batch.id)
    entries = store.find_inventory_for_batch(batch.id)
    logger.debug("batch %s: %d legs, %d inventory entries", batch.batch_code, len(legs), len(entries))

    status = infer_status(batch, legs, entries, now)
    report = TraceabilityReport(
        batch=BatchSummary(
            id=batch.id,
            batch_code=batch.batch_code,
            product_name=batch.product_name,
            quantity=batch.quantity,
            unit=batch.unit,
            quality_grade=batch.quality_grade,
            organic_certified=batch.organic_certified,
            pesticide_residue=batch.pesticide_residue,
            status=batch.status,
            notes=batch.notes,
            trace_url=trace_url(batch.batch_code, base_url),
        ),
        producer=ProducerInfo(
            name=batch.producer.name,
            username=batch.producer.username,
            email=batch.producer.email,
            contact=batch.producer.contact,
            address=batch.producer.address,
            harvest_date=batch.harvest_date,
            expiry_date=batch.expiry_date,
            farm_location=batch.farm_location,
            processing=batch.processing,
            storage=batch.storage,
        ),
        transport_history=[transport_step(leg, config) for leg in legs],
        retail_locations=[retail_location(e, batch) for e in entries],
        timeline=build_timeline(batch, legs, entries),
        summary=ReportSummary(
            total_transport_steps=len(legs),
            total_retail_locations=len(entries),
            total_journey_days=journey_days(batch.harvest_date, legs, now),
            current_status=status,
        ),
    )
    logger.info("traceability report for %s: status=%s", batch.batch_code, status.value)
    return report


def get_status_snapshot(
    identifier: Union[str, Identifier],
    store: RecordStore,
    now: Optional[datetime] = None,
) -> StatusSnapshot:
    now = now or utcnow()
    batch = resolve_batch(store, identifier)
    legs = store.find_legs_for_batch(batch.id)
    entries = store.find_inventory_for_batch(batch.id)
    return StatusSnapshot(
        batch_code=batch.batch_code,
        product_name=batch.product_name,
        status=infer_status(batch, legs, entries, now),
        is_expired=is_expired(batch, now),
        expiry_date=batch.expiry_date,
        days_until_expiry=days_until_expiry(batch, now),
    )


def search_batches(query: str, store: RecordStore, limit: int = 20) -> List[SearchResult]:
    return [
        SearchResult(
            batch_code=b.batch_code,
            product_name=b.product_name,
            harvest_date=b.harvest_date,
            expiry_date=b.expiry_date,
            status=b.status,
            quality_grade=b.quality_grade,
            transport_count=store.count_legs(b.id),
            inventory_count=store.count_inventory(b.id),
        )
        for b in store.search_batches(query, limit)
    ]

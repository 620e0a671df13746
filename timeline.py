"""
Journey timeline for one batch.

Harvest, processing, each transport departure/arrival and each retail
stocking are emitted as ``JourneyEvent`` rows, then stably sorted by
timestamp. Events without a timestamp sort first.
"""
from typing import List, Sequence

from schemas import (
    BatchRecord, InventoryRecord, JourneyEvent, LegRecord, Place, Stage,
)
from utils import chronological_key


def production_event(batch: BatchRecord) -> JourneyEvent:
    return JourneyEvent(
        stage=Stage.PRODUCTION,
        event="Product harvested",
        timestamp=batch.harvest_date,
        location=batch.farm_location,
        details={
            "farmer": batch.producer.username,
            "batch_code": batch.batch_code,
            "quantity": batch.quantity,
            "unit": batch.unit,
            "quality_grade": batch.quality_grade,
        },
        status="completed",
    )


def processing_event(batch: BatchRecord) -> JourneyEvent:
    proc = batch.processing
    return JourneyEvent(
        stage=Stage.PROCESSING,
        event="Product processed",
        timestamp=proc.start_date,
        location=Place(name=proc.facility_name) if proc.facility_name else None,
        details={
            "facility_name": proc.facility_name,
            "certifications": list(proc.certifications),
            "end_date": proc.end_date,
        },
        status="completed",
    )


def transport_events(leg: LegRecord) -> List[JourneyEvent]:
    details = {
        "transport_code": leg.transport_code,
        "transporter": leg.transporter.username,
        "origin": leg.origin.name,
        "destination": leg.destination.name,
    }
    events = [JourneyEvent(
        stage=Stage.TRANSPORTATION,
        event="Product transported",
        timestamp=leg.departure_time,
        location=leg.origin,
        details={
            **details,
            "vehicle": leg.vehicle.vehicle_type,
            "driver": leg.driver.name,
        },
        status=leg.status,
    )]
    if leg.actual_arrival_time is not None:
        events.append(JourneyEvent(
            stage=Stage.TRANSPORTATION,
            event="Product arrived at destination",
            timestamp=leg.actual_arrival_time,
            location=leg.destination,
            details=details,
            status="completed",
        ))
    return events


def retail_event(entry: InventoryRecord) -> JourneyEvent:
    store = entry.store
    location = None
    if store is not None:
        location = Place(name=store.name, coordinates=store.coordinates)
    return JourneyEvent(
        stage=Stage.RETAIL,
        event="Product stocked at retail location",
        timestamp=entry.stocked_at,
        location=location,
        details={
            "retailer": entry.retailer.username,
            "store_name": store.name if store else None,
            "sku": entry.sku,
            "quantity": entry.quantity_available,
            "price": entry.unit_price,
        },
        status=entry.status,
    )


def build_timeline(
    batch: BatchRecord,
    legs: Sequence[LegRecord],
    entries: Sequence[InventoryRecord],
) -> List[JourneyEvent]:
    events = [production_event(batch)]
    if batch.processing is not None and batch.processing.is_present:
        events.append(processing_event(batch))
    for leg in legs:
        events.extend(transport_events(leg))
    events.extend(retail_event(e) for e in entries)
    # sorted() is stable, so equal timestamps keep emission order
    return sorted(events, key=lambda ev: chronological_key(ev.timestamp))

"""
Read-only access to batches, transport legs and retail inventory.

Rows are mapped to the pydantic records in ``schemas`` with every foreign
account and store already resolved, so nothing downstream touches the
database again.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Protocol, Union

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session, selectinload

from models import Account, Batch, TransportLeg, InventoryEntry
from schemas import (
    Address, BatchRecord, DriverDetails, GeoPoint, InventoryRecord, LegRecord, Party, Place,
    ProcessingDetails, StorageConditions, StoreInfo, TemperatureSample, VehicleDetails,
)
from utils import chronological_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ByCode:
    code: str


@dataclass(frozen=True)
class BySurrogate:
    id: int


Identifier = Union[ByCode, BySurrogate]


SURROGATE_ID = re.compile(r"[0-9]{1,18}")


def parse_identifier(raw: str) -> Identifier:
    """
    Up to 18 ASCII digits is a surrogate id; anything else is a batch code.

    Longer digit runs stay batch codes so they cannot overflow the id column;
    they simply resolve to nothing.
    """
    raw = raw.strip()
    if SURROGATE_ID.fullmatch(raw):
        return BySurrogate(int(raw))
    return ByCode(raw)


class RecordStore(Protocol):
    def find_batch(self, identifier: Identifier) -> Optional[BatchRecord]: ...

    def find_legs_for_batch(self, batch_id: int) -> List[LegRecord]: ...

    def find_inventory_for_batch(self, batch_id: int) -> List[InventoryRecord]: ...

    def search_batches(self, query: str, limit: int = 20) -> List[BatchRecord]: ...

    def count_legs(self, batch_id: int) -> int: ...

    def count_inventory(self, batch_id: int) -> int: ...


# ---------- Row mapping ----------
def _point(lon: Optional[float], lat: Optional[float]) -> Optional[GeoPoint]:
    if lon is None or lat is None:
        return None
    return GeoPoint(longitude=lon, latitude=lat)


def to_party(acc: Account) -> Party:
    name = f"{acc.first_name or ''} {acc.last_name or ''}".strip() or acc.username
    return Party(
        id=acc.id,
        username=acc.username,
        name=name,
        email=acc.email,
        contact=acc.contact_number,
        address=acc.address,
    )


def to_batch_record(row: Batch) -> BatchRecord:
    processing = ProcessingDetails(
        facility_name=row.processing_facility,
        start_date=row.processing_start,
        end_date=row.processing_end,
        certifications=list(row.processing_certifications or []),
    )
    return BatchRecord(
        id=row.id,
        batch_code=row.batch_code,
        product_name=row.product_name,
        producer=to_party(row.producer),
        harvest_date=row.harvest_date,
        expiry_date=row.expiry_date,
        quantity=row.quantity,
        unit=row.unit,
        quality_grade=row.quality_grade,
        organic_certified=bool(row.organic_certified),
        pesticide_residue=row.pesticide_residue,
        farm_location=Place(name=row.farm_location, coordinates=_point(row.farm_longitude, row.farm_latitude)),
        processing=processing if processing.is_present else None,
        storage=StorageConditions(
            temperature=row.storage_temperature,
            humidity=row.storage_humidity,
            notes=row.storage_notes,
        ),
        status=row.status,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def to_leg_record(row: TransportLeg) -> LegRecord:
    return LegRecord(
        id=row.id,
        transport_code=row.transport_code,
        batch_id=row.batch_id,
        transporter=to_party(row.transporter),
        origin=Place(
            name=row.origin_name,
            address=Address(**row.origin_address) if row.origin_address else None,
            coordinates=_point(row.origin_longitude, row.origin_latitude),
        ),
        destination=Place(
            name=row.destination_name,
            address=Address(**row.destination_address) if row.destination_address else None,
            coordinates=_point(row.destination_longitude, row.destination_latitude),
        ),
        departure_time=row.departure_time,
        estimated_arrival_time=row.estimated_arrival_time,
        actual_arrival_time=row.actual_arrival_time,
        vehicle=VehicleDetails(
            vehicle_type=row.vehicle_type,
            vehicle_number=row.vehicle_number,
            refrigerated=bool(row.refrigerated),
        ),
        driver=DriverDetails(
            name=row.driver_name,
            license_number=row.driver_license,
            contact_number=row.driver_contact,
        ),
        temperature_logs=[
            TemperatureSample(
                recorded_at=t.recorded_at,
                temperature_c=t.temperature_c,
                location=_point(t.longitude, t.latitude),
            )
            for t in row.temperature_logs
        ],
        condition_notes=row.condition_notes,
        status=row.status,
        created_at=row.created_at,
    )


def to_inventory_record(row: InventoryEntry) -> InventoryRecord:
    store = None
    if row.store is not None:
        store = StoreInfo(
            id=row.store.id,
            name=row.store.name,
            address=row.store.address,
            coordinates=_point(row.store.longitude, row.store.latitude),
        )
    return InventoryRecord(
        id=row.id,
        sku=row.sku,
        batch_id=row.batch_id,
        retailer=to_party(row.retailer),
        store=store,
        quantity_available=row.quantity_available or 0,
        unit_price=row.unit_price,
        currency=row.currency,
        quality_status=row.quality_status,
        status=row.status,
        shelf_date=row.shelf_date,
        expiry_date=row.expiry_date,
        last_restocked=row.last_restocked,
        last_sold=row.last_sold,
        created_at=row.created_at,
    )


# ---------- SQLAlchemy adapter ----------
class SqlRecordStore:
    def __init__(self, db: Session):
        self.db = db

    def find_batch(self, identifier: Identifier) -> Optional[BatchRecord]:
        stmt = select(Batch).options(selectinload(Batch.producer))
        if isinstance(identifier, BySurrogate):
            stmt = stmt.where(Batch.id == identifier.id)
        else:
            stmt = stmt.where(Batch.batch_code == identifier.code)
        row = self.db.scalar(stmt)
        if row is None:
            logger.debug("no batch for %r", identifier)
            return None
        return to_batch_record(row)

    def find_legs_for_batch(self, batch_id: int) -> List[LegRecord]:
        rows = self.db.scalars(
            select(TransportLeg)
            .where(TransportLeg.batch_id == batch_id)
            .options(selectinload(TransportLeg.transporter), selectinload(TransportLeg.temperature_logs))
            .order_by(TransportLeg.id.asc())
        ).all()
        legs = [to_leg_record(r) for r in rows]
        # stable: legs sharing a departure time keep insertion order
        return sorted(legs, key=lambda leg: chronological_key(leg.departure_time))

    def find_inventory_for_batch(self, batch_id: int) -> List[InventoryRecord]:
        rows = self.db.scalars(
            select(InventoryEntry)
            .where(InventoryEntry.batch_id == batch_id)
            .options(selectinload(InventoryEntry.retailer), selectinload(InventoryEntry.store))
            .order_by(InventoryEntry.id.asc())
        ).all()
        return [to_inventory_record(r) for r in rows]

    def search_batches(self, query: str, limit: int = 20) -> List[BatchRecord]:
        like = f"%{query}%"
        rows = self.db.scalars(
            select(Batch)
            .where(or_(Batch.product_name.ilike(like), Batch.batch_code.ilike(like)))
            .options(selectinload(Batch.producer))
            .order_by(Batch.id.desc())
            .limit(limit)
        ).all()
        return [to_batch_record(r) for r in rows]

    def count_legs(self, batch_id: int) -> int:
        return self.db.scalar(
            select(func.count()).select_from(TransportLeg).where(TransportLeg.batch_id == batch_id)
        ) or 0

    def count_inventory(self, batch_id: int) -> int:
        return self.db.scalar(
            select(func.count()).select_from(InventoryEntry).where(InventoryEntry.batch_id == batch_id)
        ) or 0

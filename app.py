import io
import logging
import time
import uuid
from datetime import timedelta

from fastapi import FastAPI, HTTPException, Depends, Response, Query
from fastapi.middleware.cors import CORSMiddleware

from sqlalchemy import select
from sqlalchemy.orm import Session

import qrcode

from config import BASE_URL, LOG_LEVEL, trace_url
from database import Base, engine, SessionLocal
from errors import BatchNotFound
from models import Account, Batch, TransportLeg, TemperatureLog, RetailStore, InventoryEntry
import schemas
from schemas import (
    CreateAccount, CreateBatch, CreateTransportLeg, TemperatureSampleIn, UpdateLegStatus,
    CreateStore, CreateInventoryEntry, TraceabilityReport, StatusSnapshot,
)
from store import SqlRecordStore
from traceability import get_traceability_report, get_status_snapshot, search_batches, resolve_batch
from utils import evaluate_risk, utcnow

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="FarmTrace", version="0.2.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # restrict to known origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------- DB ----------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> SqlRecordStore:
    return SqlRecordStore(db)


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)

# ---------- Helpers ----------
def _get_or_404(db: Session, model, pk: int, label: str):
    row = db.get(model, pk)
    if row is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return row


def _leg_by_code(db: Session, transport_code: str) -> TransportLeg:
    leg = db.scalar(select(TransportLeg).where(TransportLeg.transport_code == transport_code))
    if not leg:
        raise HTTPException(status_code=404, detail="transport leg not found")
    return leg


def _new_transport_code() -> str:
    return f"TRANS-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9].upper()}"

# ---------- APIs: records ----------
@app.post("/api/accounts")
def create_account(body: CreateAccount, db: Session = Depends(get_db)):
    if db.scalar(select(Account).where(Account.username == body.username)):
        raise HTTPException(status_code=400, detail="username already exists")
    acc = Account(**body.model_dump())
    db.add(acc); db.commit(); db.refresh(acc)
    return {"id": acc.id, "username": acc.username, "role": acc.role}


@app.post("/api/batches")
def create_batch(body: CreateBatch, db: Session = Depends(get_db)):
    if db.scalar(select(Batch).where(Batch.batch_code == body.batch_code)):
        raise HTTPException(status_code=400, detail="batch_code already exists")
    _get_or_404(db, Account, body.producer_id, "producer")
    proc = body.processing or schemas.ProcessingDetails()
    storage = body.storage or schemas.StorageConditions()
    coords = body.farm_coordinates
    batch = Batch(
        batch_code=body.batch_code,
        product_name=body.product_name,
        producer_id=body.producer_id,
        harvest_date=body.harvest_date,
        expiry_date=body.expiry_date,
        quantity=body.quantity,
        unit=body.unit,
        quality_grade=body.quality_grade,
        organic_certified=body.organic_certified,
        pesticide_residue=body.pesticide_residue,
        farm_location=body.farm_location,
        farm_longitude=coords.longitude if coords else None,
        farm_latitude=coords.latitude if coords else None,
        processing_facility=proc.facility_name,
        processing_start=proc.start_date,
        processing_end=proc.end_date,
        processing_certifications=list(proc.certifications),
        storage_temperature=storage.temperature,
        storage_humidity=storage.humidity,
        storage_notes=storage.notes,
        notes=body.notes,
    )
    db.add(batch); db.commit(); db.refresh(batch)
    logger.info("batch %s registered by account %s", batch.batch_code, batch.producer_id)
    return {"id": batch.id, "batch_code": batch.batch_code, "trace_url": trace_url(batch.batch_code)}


@app.post("/api/transport")
def create_transport_leg(body: CreateTransportLeg, db: Session = Depends(get_db)):
    _get_or_404(db, Batch, body.batch_id, "batch")
    _get_or_404(db, Account, body.transporter_id, "transporter")
    code = body.transport_code or _new_transport_code()
    if db.scalar(select(TransportLeg).where(TransportLeg.transport_code == code)):
        raise HTTPException(status_code=400, detail="transport_code already exists")
    vehicle = body.vehicle or schemas.VehicleDetails()
    driver = body.driver or schemas.DriverDetails()
    o, d = body.origin, body.destination
    leg = TransportLeg(
        transport_code=code,
        batch_id=body.batch_id,
        transporter_id=body.transporter_id,
        origin_name=o.name,
        origin_address=o.address.model_dump() if o.address else None,
        origin_longitude=o.coordinates.longitude if o.coordinates else None,
        origin_latitude=o.coordinates.latitude if o.coordinates else None,
        destination_name=d.name,
        destination_address=d.address.model_dump() if d.address else None,
        destination_longitude=d.coordinates.longitude if d.coordinates else None,
        destination_latitude=d.coordinates.latitude if d.coordinates else None,
        departure_time=body.departure_time,
        estimated_arrival_time=body.estimated_arrival_time,
        actual_arrival_time=body.actual_arrival_time,
        vehicle_type=vehicle.vehicle_type,
        vehicle_number=vehicle.vehicle_number,
        refrigerated=vehicle.refrigerated,
        driver_name=driver.name,
        driver_license=driver.license_number,
        driver_contact=driver.contact_number,
        condition_notes=body.condition_notes,
        status=body.status,
    )
    if body.storage_temperature_c is not None:
        leg.temperature_logs.append(TemperatureLog(
            recorded_at=body.departure_time,
            temperature_c=body.storage_temperature_c,
        ))
    db.add(leg); db.commit(); db.refresh(leg)
    return {"id": leg.id, "transport_code": leg.transport_code}


@app.post("/api/transport/{transport_code}/temperature")
def add_temperature_sample(transport_code: str, body: TemperatureSampleIn, db: Session = Depends(get_db)):
    leg = _leg_by_code(db, transport_code)
    sample = TemperatureLog(
        leg_id=leg.id,
        recorded_at=body.timestamp or utcnow(),
        temperature_c=body.temperature_c,
        longitude=body.location.longitude if body.location else None,
        latitude=body.location.latitude if body.location else None,
    )
    db.add(sample); db.commit()
    flag = evaluate_risk(body.temperature_c)
    if flag is schemas.RiskFlag.HIGH_RISK:
        logger.warning("leg %s logged %.1f C", transport_code, body.temperature_c)
    return {"status": "ok", "risk_flag": flag}


@app.put("/api/transport/{transport_code}/status")
def update_leg_status(transport_code: str, body: UpdateLegStatus, db: Session = Depends(get_db)):
    leg = _leg_by_code(db, transport_code)
    if body.status == "delivered":
        arrival = body.actual_arrival_time or leg.actual_arrival_time
        if arrival is None:
            raise HTTPException(status_code=400, detail="delivered legs need actual_arrival_time")
        leg.actual_arrival_time = arrival
    else:
        # only delivered legs carry an arrival
        leg.actual_arrival_time = None
    leg.status = body.status
    db.commit()
    return {"status": "ok", "transport_code": transport_code, "leg_status": leg.status}


@app.post("/api/stores")
def create_store(body: CreateStore, db: Session = Depends(get_db)):
    _get_or_404(db, Account, body.manager_id, "manager")
    st = RetailStore(
        name=body.name,
        address=body.address,
        longitude=body.coordinates.longitude if body.coordinates else None,
        latitude=body.coordinates.latitude if body.coordinates else None,
        manager_id=body.manager_id,
    )
    db.add(st); db.commit(); db.refresh(st)
    return {"id": st.id, "name": st.name}


@app.post("/api/inventory")
def create_inventory_entry(body: CreateInventoryEntry, db: Session = Depends(get_db)):
    if db.scalar(select(InventoryEntry).where(InventoryEntry.sku == body.sku)):
        raise HTTPException(status_code=400, detail="sku already exists")
    _get_or_404(db, Batch, body.batch_id, "batch")
    _get_or_404(db, Account, body.retailer_id, "retailer")
    if body.store_id is not None:
        _get_or_404(db, RetailStore, body.store_id, "store")
    now = utcnow()
    entry = InventoryEntry(**body.model_dump(), last_restocked=now)
    if entry.shelf_date is None:
        entry.shelf_date = now
    db.add(entry); db.commit(); db.refresh(entry)
    return {"id": entry.id, "sku": entry.sku}

# ---------- APIs: traceability ----------
@app.get("/api/trace/search", response_model=list[schemas.SearchResult])
def search(
    q: str = Query(..., min_length=1, description="product name or batch code fragment"),
    limit: int = Query(20, ge=1, le=100),
    store: SqlRecordStore = Depends(get_store),
):
    return search_batches(q, store, limit)


@app.get("/api/trace/{identifier}", response_model=TraceabilityReport)
def trace_report(identifier: str, store: SqlRecordStore = Depends(get_store)):
    try:
        return get_traceability_report(identifier, store)
    except BatchNotFound:
        raise HTTPException(status_code=404, detail="batch not found")


@app.get("/api/trace/{identifier}/status", response_model=StatusSnapshot)
def trace_status(identifier: str, store: SqlRecordStore = Depends(get_store)):
    try:
        return get_status_snapshot(identifier, store)
    except BatchNotFound:
        raise HTTPException(status_code=404, detail="batch not found")


@app.get("/api/trace/{identifier}/qrcode")
def trace_qrcode(identifier: str, store: SqlRecordStore = Depends(get_store)):
    try:
        batch = resolve_batch(store, identifier)
    except BatchNotFound:
        raise HTTPException(status_code=404, detail="batch not found")
    img = qrcode.make(trace_url(batch.batch_code, BASE_URL))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return Response(content=buf.getvalue(), media_type="image/png")

# ---------- Seed ----------
@app.get("/api/seed")
def seed(db: Session = Depends(get_db)):
    default_code = "BATCH-1234"
    if db.scalar(select(Batch).where(Batch.batch_code == default_code)):
        return {"status": "exists", "batch_code": default_code}

    farmer = Account(username="farmer", email="farmer@example.com", first_name="John",
                     last_name="Doe", contact_number="555-0101", role="farmer")
    driver = Account(username="trucker", email="trucker@example.com", first_name="Bob",
                     last_name="Trucker", contact_number="555-0102", role="distributor")
    retailer = Account(username="grocer", email="grocer@example.com", first_name="Alice",
                       last_name="Store", contact_number="555-0103", role="retailer")
    db.add_all([farmer, driver, retailer]); db.flush()

    harvest = utcnow() - timedelta(days=3)
    batch = Batch(
        batch_code=default_code, product_name="Organic Apples", producer_id=farmer.id,
        harvest_date=harvest, expiry_date=harvest + timedelta(days=30),
        quantity=100, unit="kg", quality_grade="A", organic_certified=True,
        pesticide_residue="None", farm_location="Green Valley Orchard",
        farm_longitude=-122.4194, farm_latitude=37.7749,
        processing_facility="Valley Packhouse", processing_start=harvest + timedelta(hours=6),
        processing_certifications=["USDA Organic"],
    )
    db.add(batch); db.flush()

    leg = TransportLeg(
        transport_code="TRANS-SEED-1", batch_id=batch.id, transporter_id=driver.id,
        origin_name="Valley Packhouse", origin_longitude=-122.4194, origin_latitude=37.7749,
        destination_name="Oakland Market", destination_longitude=-122.2711, destination_latitude=37.8044,
        departure_time=harvest + timedelta(days=1),
        estimated_arrival_time=harvest + timedelta(days=1, hours=2),
        actual_arrival_time=harvest + timedelta(days=1, hours=2),
        vehicle_type="Reefer Truck", vehicle_number="CA-7TRK", refrigerated=True,
        driver_name="Bob Trucker", status="delivered",
    )
    leg.temperature_logs = [
        TemperatureLog(recorded_at=harvest + timedelta(days=1), temperature_c=4.5),
        TemperatureLog(recorded_at=harvest + timedelta(days=1, hours=1), temperature_c=6.0),
    ]
    shop = RetailStore(name="Alice Groceries", address="12 Market St, Oakland",
                       longitude=-122.2711, latitude=37.8044, manager_id=retailer.id)
    db.add_all([leg, shop]); db.flush()

    db.add(InventoryEntry(
        sku="SKU-APPLES", batch_id=batch.id, retailer_id=retailer.id, store_id=shop.id,
        quantity_available=50, unit_price=5.99, currency="USD", quality_status="good",
        status="available", shelf_date=harvest + timedelta(days=2),
    ))
    db.commit()
    return {"status": "seeded", "batch_code": default_code}


@app.get("/")
def root():
    return {"service": "FarmTrace", "trace": f"{BASE_URL}/api/trace/{{batch_code}}"}

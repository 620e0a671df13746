from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, Float, Boolean, DateTime, JSON, ForeignKey

from database import Base
from utils import utcnow


class Account(Base):
    __tablename__ = "accounts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255))
    first_name: Mapped[str] = mapped_column(String(100), default="")
    last_name: Mapped[str] = mapped_column(String(100), default="")
    contact_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(32), index=True)


class Batch(Base):
    __tablename__ = "batches"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    batch_code: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    product_name: Mapped[str] = mapped_column(String(255))
    producer_id: Mapped[int] = mapped_column(Integer, ForeignKey("accounts.id"), index=True)
    harvest_date: Mapped[datetime] = mapped_column(DateTime, index=True)
    expiry_date: Mapped[datetime] = mapped_column(DateTime, index=True)
    quantity: Mapped[float] = mapped_column(Float)
    unit: Mapped[str] = mapped_column(String(16))
    quality_grade: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    organic_certified: Mapped[bool] = mapped_column(Boolean, default=False)
    pesticide_residue: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    farm_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    farm_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    farm_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    processing_facility: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    processing_start: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    processing_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    processing_certifications: Mapped[list] = mapped_column(JSON, default=list)
    storage_temperature: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    storage_humidity: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    storage_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="active", index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    producer: Mapped[Account] = relationship("Account")
    legs: Mapped[list["TransportLeg"]] = relationship("TransportLeg", back_populates="batch", cascade="all, delete-orphan")
    inventory: Mapped[list["InventoryEntry"]] = relationship("InventoryEntry", back_populates="batch", cascade="all, delete-orphan")


class TransportLeg(Base):
    __tablename__ = "transport_legs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    transport_code: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    batch_id: Mapped[int] = mapped_column(Integer, ForeignKey("batches.id"), index=True)
    transporter_id: Mapped[int] = mapped_column(Integer, ForeignKey("accounts.id"), index=True)
    origin_name: Mapped[str] = mapped_column(String(255))
    origin_address: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    origin_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    origin_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    destination_name: Mapped[str] = mapped_column(String(255))
    destination_address: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    destination_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    destination_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    departure_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    estimated_arrival_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    actual_arrival_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    vehicle_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    vehicle_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    refrigerated: Mapped[bool] = mapped_column(Boolean, default=False)
    driver_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    driver_license: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    driver_contact: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    condition_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="in-transit", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    batch: Mapped[Batch] = relationship("Batch", back_populates="legs")
    transporter: Mapped[Account] = relationship("Account")
    temperature_logs: Mapped[list["TemperatureLog"]] = relationship(
        "TemperatureLog",
        back_populates="leg",
        cascade="all, delete-orphan",
        order_by=lambda: [TemperatureLog.recorded_at, TemperatureLog.id],
    )


class TemperatureLog(Base):
    __tablename__ = "temperature_logs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    leg_id: Mapped[int] = mapped_column(Integer, ForeignKey("transport_legs.id"), index=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    temperature_c: Mapped[float] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    leg: Mapped[TransportLeg] = relationship("TransportLeg", back_populates="temperature_logs")


class RetailStore(Base):
    __tablename__ = "retail_stores"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    manager_id: Mapped[int] = mapped_column(Integer, ForeignKey("accounts.id"), index=True)


class InventoryEntry(Base):
    __tablename__ = "inventory_entries"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    sku: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    batch_id: Mapped[int] = mapped_column(Integer, ForeignKey("batches.id"), index=True)
    retailer_id: Mapped[int] = mapped_column(Integer, ForeignKey("accounts.id"), index=True)
    store_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("retail_stores.id"), nullable=True)
    quantity_available: Mapped[float] = mapped_column(Float, default=0)
    unit_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(8), default="USD")
    quality_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="available", index=True)
    shelf_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_restocked: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_sold: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    batch: Mapped[Batch] = relationship("Batch", back_populates="inventory")
    retailer: Mapped[Account] = relationship("Account")
    store: Mapped[Optional[RetailStore]] = relationship("RetailStore")

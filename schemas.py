from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Optional, Any, Dict, List

from pydantic import AfterValidator, BaseModel, Field, StringConstraints, field_validator, model_validator


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; aware inputs are converted, naive ones kept."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


UtcDatetime = Annotated[datetime, AfterValidator(as_naive_utc)]
Code = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=64)]

# path segments under /api/trace/ that are routes, not batch codes
RESERVED_CODES = ("search",)


# ---------- Enums ----------
class RiskFlag(str, Enum):
    NORMAL = "Normal"
    HIGH_RISK = "High Risk"


class CurrentStatus(str, Enum):
    EXPIRED = "expired"
    AVAILABLE_AT_RETAIL = "available_at_retail"
    SOLD_OUT = "sold_out"
    IN_TRANSIT = "in_transit"
    DELIVERED_TO_RETAIL = "delivered_to_retail"
    WITH_PRODUCER = "with_producer"


class Stage(str, Enum):
    PRODUCTION = "Production"
    PROCESSING = "Processing"
    TRANSPORTATION = "Transportation"
    RETAIL = "Retail"


LEG_STATUSES = ("pending", "in-transit", "delivered", "delayed", "cancelled")
BATCH_STATUSES = ("active", "inactive", "expired", "sold")
ROLES = ("farmer", "distributor", "retailer", "consumer", "admin")


# ---------- Read-side records ----------
class GeoPoint(BaseModel):
    longitude: float
    latitude: float


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class Place(BaseModel):
    name: Optional[str] = None
    address: Optional[Address] = None
    coordinates: Optional[GeoPoint] = None


class Party(BaseModel):
    """An account as seen by readers of a report."""
    id: int
    username: str
    name: str
    email: Optional[str] = None
    contact: Optional[str] = None
    address: Optional[str] = None


class ProcessingDetails(BaseModel):
    facility_name: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    certifications: List[str] = []

    @property
    def is_present(self) -> bool:
        return bool(self.facility_name or self.start_date or self.end_date or self.certifications)


class StorageConditions(BaseModel):
    temperature: Optional[str] = None
    humidity: Optional[str] = None
    notes: Optional[str] = None


class BatchRecord(BaseModel):
    id: int
    batch_code: str
    product_name: str
    producer: Party
    harvest_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    quantity: float
    unit: str
    quality_grade: Optional[str] = None
    organic_certified: bool = False
    pesticide_residue: Optional[str] = None
    farm_location: Place = Place()
    processing: Optional[ProcessingDetails] = None
    storage: StorageConditions = StorageConditions()
    status: str = "active"
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TemperatureSample(BaseModel):
    recorded_at: Optional[datetime] = None
    temperature_c: float
    location: Optional[GeoPoint] = None


class VehicleDetails(BaseModel):
    vehicle_type: Optional[str] = None
    vehicle_number: Optional[str] = None
    refrigerated: bool = False


class DriverDetails(BaseModel):
    name: Optional[str] = None
    license_number: Optional[str] = None
    contact_number: Optional[str] = None


class LegRecord(BaseModel):
    id: int
    transport_code: str
    batch_id: int
    transporter: Party
    origin: Place
    destination: Place
    departure_time: Optional[datetime] = None
    estimated_arrival_time: Optional[datetime] = None
    actual_arrival_time: Optional[datetime] = None
    vehicle: VehicleDetails = VehicleDetails()
    driver: DriverDetails = DriverDetails()
    temperature_logs: List[TemperatureSample] = []
    condition_notes: Optional[str] = None
    status: str = "in-transit"
    created_at: Optional[datetime] = None


class StoreInfo(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    coordinates: Optional[GeoPoint] = None


class InventoryRecord(BaseModel):
    id: int
    sku: str
    batch_id: int
    retailer: Party
    store: Optional[StoreInfo] = None
    quantity_available: float = 0
    unit_price: Optional[float] = None
    currency: str = "USD"
    quality_status: Optional[str] = None
    status: str = "available"
    shelf_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    last_restocked: Optional[datetime] = None
    last_sold: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def stocked_at(self) -> Optional[datetime]:
        return self.shelf_date or self.created_at


# ---------- Report ----------
class RouteEstimate(BaseModel):
    """Great-circle estimate at a nominal speed, not a road routing result."""
    distance_meters: int
    duration_seconds: int
    distance_text: str
    duration_text: str
    start_address: Optional[str] = None
    end_address: Optional[str] = None


class TemperatureReading(TemperatureSample):
    risk_flag: RiskFlag


class TransporterInfo(BaseModel):
    name: str
    contact: Optional[str] = None
    email: Optional[str] = None


class TransportStep(BaseModel):
    transport_code: str
    transporter: TransporterInfo
    origin: Place
    destination: Place
    departure_time: Optional[datetime] = None
    estimated_arrival_time: Optional[datetime] = None
    actual_arrival_time: Optional[datetime] = None
    vehicle: VehicleDetails
    driver: DriverDetails
    temperature_logs: List[TemperatureReading] = []
    max_temperature_c: Optional[float] = None
    risk_flag: Optional[RiskFlag] = None
    condition_notes: Optional[str] = None
    status: str
    route: Optional[RouteEstimate] = None


class RetailerInfo(BaseModel):
    name: str
    contact: Optional[str] = None
    email: Optional[str] = None
    store_name: str
    store_address: Optional[str] = None


class RetailLocation(BaseModel):
    sku: str
    retailer: RetailerInfo
    product_name: str
    quantity_available: float
    unit_price: Optional[float] = None
    currency: str
    quality_status: Optional[str] = None
    status: str
    store: Optional[StoreInfo] = None
    shelf_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    last_restocked: Optional[datetime] = None
    last_sold: Optional[datetime] = None


class JourneyEvent(BaseModel):
    stage: Stage
    event: str
    timestamp: Optional[datetime] = None
    location: Optional[Place] = None
    details: Dict[str, Any] = {}
    status: str


class BatchSummary(BaseModel):
    id: int
    batch_code: str
    product_name: str
    quantity: float
    unit: str
    quality_grade: Optional[str] = None
    organic_certified: bool
    pesticide_residue: Optional[str] = None
    status: str
    notes: Optional[str] = None
    trace_url: str


class ProducerInfo(BaseModel):
    name: str
    username: str
    email: Optional[str] = None
    contact: Optional[str] = None
    address: Optional[str] = None
    harvest_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    farm_location: Place
    processing: Optional[ProcessingDetails] = None
    storage: StorageConditions


class ReportSummary(BaseModel):
    total_transport_steps: int
    total_retail_locations: int
    total_journey_days: int
    current_status: CurrentStatus


class TraceabilityReport(BaseModel):
    batch: BatchSummary
    producer: ProducerInfo
    transport_history: List[TransportStep]
    retail_locations: List[RetailLocation]
    timeline: List[JourneyEvent]
    summary: ReportSummary


class StatusSnapshot(BaseModel):
    batch_code: str
    product_name: str
    status: CurrentStatus
    is_expired: bool
    expiry_date: Optional[datetime] = None
    days_until_expiry: Optional[int] = None


class SearchResult(BaseModel):
    batch_code: str
    product_name: str
    harvest_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    status: str
    quality_grade: Optional[str] = None
    transport_count: int
    inventory_count: int


# ---------- Request bodies ----------
class CreateAccount(BaseModel):
    username: str = Field(..., min_length=3, max_length=64)
    email: str
    first_name: str = ""
    last_name: str = ""
    contact_number: Optional[str] = None
    address: Optional[str] = None
    role: str

    @field_validator("role")
    @classmethod
    def _known_role(cls, v: str) -> str:
        if v not in ROLES:
            raise ValueError(f"role must be one of {', '.join(ROLES)}")
        return v


class CreateBatch(BaseModel):
    batch_code: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=64, pattern=r"\D")]  # all-digit codes clash with ids
    product_name: str
    producer_id: int
    harvest_date: UtcDatetime
    expiry_date: UtcDatetime
    quantity: float = Field(..., ge=0)
    unit: str = Field(..., pattern=r"^(kg|lbs|pieces|liters|gallons)$")
    quality_grade: Optional[str] = None
    organic_certified: bool = False
    pesticide_residue: Optional[str] = Field(None, pattern=r"^(None|Low|Moderate|High)$")
    farm_location: Optional[str] = None
    farm_coordinates: Optional[GeoPoint] = None
    processing: Optional[ProcessingDetails] = None
    storage: Optional[StorageConditions] = None
    notes: Optional[str] = None

    @field_validator("batch_code")
    @classmethod
    def _not_reserved(cls, v: str) -> str:
        if v.lower() in RESERVED_CODES:
            raise ValueError(f"batch_code '{v}' is reserved")
        return v

    @model_validator(mode="after")
    def _expiry_after_harvest(self):
        if self.expiry_date <= self.harvest_date:
            raise ValueError("expiry_date must be after harvest_date")
        return self


class PlaceIn(BaseModel):
    name: str
    address: Optional[Address] = None
    coordinates: Optional[GeoPoint] = None


class CreateTransportLeg(BaseModel):
    transport_code: Optional[Code] = None
    batch_id: int
    transporter_id: int
    origin: PlaceIn
    destination: PlaceIn
    departure_time: UtcDatetime
    estimated_arrival_time: Optional[UtcDatetime] = None
    actual_arrival_time: Optional[UtcDatetime] = None
    vehicle: Optional[VehicleDetails] = None
    driver: Optional[DriverDetails] = None
    storage_temperature_c: Optional[float] = None
    condition_notes: Optional[str] = None
    status: str = "in-transit"

    @field_validator("status")
    @classmethod
    def _known_status(cls, v: str) -> str:
        if v not in LEG_STATUSES:
            raise ValueError(f"status must be one of {', '.join(LEG_STATUSES)}")
        return v


class TemperatureSampleIn(BaseModel):
    temperature_c: float
    timestamp: Optional[UtcDatetime] = None
    location: Optional[GeoPoint] = None


class UpdateLegStatus(BaseModel):
    status: str
    actual_arrival_time: Optional[UtcDatetime] = None

    @field_validator("status")
    @classmethod
    def _known_status(cls, v: str) -> str:
        if v not in LEG_STATUSES:
            raise ValueError(f"status must be one of {', '.join(LEG_STATUSES)}")
        return v


class CreateStore(BaseModel):
    name: str
    address: Optional[str] = None
    coordinates: Optional[GeoPoint] = None
    manager_id: int


class CreateInventoryEntry(BaseModel):
    sku: Code
    batch_id: int
    retailer_id: int
    store_id: Optional[int] = None
    quantity_available: float = Field(..., ge=0)
    unit_price: Optional[float] = Field(None, ge=0)
    currency: str = "USD"
    quality_status: Optional[str] = None
    status: str = "available"
    shelf_date: Optional[UtcDatetime] = None
    expiry_date: Optional[UtcDatetime] = None

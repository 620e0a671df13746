import math
from datetime import datetime
from typing import Optional, Sequence

from schemas import BatchRecord, CurrentStatus, InventoryRecord, LegRecord
from utils import utcnow

SECONDS_PER_DAY = 24 * 3600


def is_expired(batch: BatchRecord, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return batch.expiry_date is not None and now > batch.expiry_date


def infer_status(
    batch: BatchRecord,
    legs: Sequence[LegRecord],
    entries: Sequence[InventoryRecord],
    now: Optional[datetime] = None,
) -> CurrentStatus:
    """
    Where the batch sits now. First match wins:

    expired > available at retail > sold out > in transit > delivered > with producer
    """
    if is_expired(batch, now):
        return CurrentStatus.EXPIRED
    if entries:
        if any(e.status == "available" and e.quantity_available > 0 for e in entries):
            return CurrentStatus.AVAILABLE_AT_RETAIL
        return CurrentStatus.SOLD_OUT
    if any(leg.status == "in-transit" for leg in legs):
        return CurrentStatus.IN_TRANSIT
    if any(leg.status == "delivered" for leg in legs):
        return CurrentStatus.DELIVERED_TO_RETAIL
    return CurrentStatus.WITH_PRODUCER


def _ceil_days(delta_seconds: float) -> int:
    return math.ceil(delta_seconds / SECONDS_PER_DAY)


def journey_days(
    harvest_date: Optional[datetime],
    legs: Sequence[LegRecord],
    now: Optional[datetime] = None,
) -> int:
    """Days from harvest to the latest actual arrival (or now), ceiling-rounded, never negative."""
    if harvest_date is None:
        return 0
    arrivals = [leg.actual_arrival_time for leg in legs if leg.actual_arrival_time is not None]
    end = max(arrivals) if arrivals else (now or utcnow())
    return max(0, _ceil_days((end - harvest_date).total_seconds()))


def days_until_expiry(batch: BatchRecord, now: Optional[datetime] = None) -> Optional[int]:
    if batch.expiry_date is None:
        return None
    now = now or utcnow()
    return _ceil_days((batch.expiry_date - now).total_seconds())

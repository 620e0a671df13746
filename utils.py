import logging
import math
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple, Union

from config import EvaluatorConfig, DEFAULT_EVALUATOR
from schemas import GeoPoint, Place, RiskFlag, RouteEstimate

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000.0

Coordinate = Union[GeoPoint, Sequence[float]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def evaluate_risk(temperature_c: float, config: EvaluatorConfig = DEFAULT_EVALUATOR) -> RiskFlag:
    if temperature_c > config.temperature_threshold_c:
        return RiskFlag.HIGH_RISK
    return RiskFlag.NORMAL


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _lon_lat(point: Optional[Coordinate]) -> Optional[Tuple[float, float]]:
    if point is None:
        return None
    if isinstance(point, GeoPoint):
        return point.longitude, point.latitude
    if len(point) < 2:
        return None
    return float(point[0]), float(point[1])


def haversine_meters(origin: Tuple[float, float], dest: Tuple[float, float]) -> int:
    """Great-circle distance between two (longitude, latitude) pairs, rounded to whole meters."""
    lon1, lat1 = map(math.radians, origin)
    lon2, lat2 = map(math.radians, dest)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return _round_half_up(EARTH_RADIUS_M * c)


def format_distance(meters: int) -> str:
    if meters < 1000:
        return f"{meters} m"
    return f"{meters / 1000:.2f} km"


def format_duration(seconds: int) -> str:
    minutes = _round_half_up(seconds / 60)
    if minutes < 60:
        return f"{minutes} mins"
    hours, rest = divmod(minutes, 60)
    return f"{hours} hrs {rest} mins" if rest else f"{hours} hrs"


def place_label(place: Optional[Place]) -> Optional[str]:
    if place is None:
        return None
    city = place.address.city if place.address else None
    state = place.address.state if place.address else None
    return ", ".join(p or "" for p in (place.name, city, state))


def estimate_route(
    origin: Optional[Coordinate],
    dest: Optional[Coordinate],
    config: EvaluatorConfig = DEFAULT_EVALUATOR,
) -> Optional[RouteEstimate]:
    """
    Straight-line distance and a travel time at a fixed nominal speed.

    This never queries a routing service. None means "no route data" (a
    coordinate pair is missing) and is not an error. Co-located points give a
    zero distance and duration rather than None.
    """
    a, b = _lon_lat(origin), _lon_lat(dest)
    if a is None or b is None:
        logger.debug("route estimate skipped: missing coordinates")
        return None
    meters = haversine_meters(a, b)
    hours = (meters / 1000) / config.average_speed_kmh
    seconds = _round_half_up(hours * 3600)
    return RouteEstimate(
        distance_meters=meters,
        duration_seconds=seconds,
        distance_text=format_distance(meters),
        duration_text=format_duration(seconds),
    )


def estimate_leg_route(origin: Place, dest: Place, config: EvaluatorConfig = DEFAULT_EVALUATOR) -> Optional[RouteEstimate]:
    route = estimate_route(origin.coordinates, dest.coordinates, config)
    if route is None:
        return None
    return route.model_copy(update={
        "start_address": place_label(origin),
        "end_address": place_label(dest),
    })


def chronological_key(ts: Optional[datetime]) -> Tuple[bool, datetime]:
    """Sort key putting missing timestamps first, then ascending time."""
    return (ts is not None, ts if ts is not None else datetime.min)

"""Pure calculations: fuel economy, part health, lean angle and route geometry."""

from .fuel import FUEL_TOLERANCE, FuelEntry, calculate_mileage, get_last_fuel_price
from .geo import haversine_km, to_line_string, to_wkt, track_distance_km
from .health import HealthReport, calculate_health, health_color, needs_service
from .lean import LeanAngleFilter, LeanPeaks, roll_from_gravity

__all__ = [
    "FUEL_TOLERANCE",
    "FuelEntry",
    "calculate_mileage",
    "get_last_fuel_price",
    "haversine_km",
    "to_line_string",
    "to_wkt",
    "track_distance_km",
    "HealthReport",
    "calculate_health",
    "health_color",
    "needs_service",
    "LeanAngleFilter",
    "LeanPeaks",
    "roll_from_gravity",
]

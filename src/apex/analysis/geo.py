"""Great-circle distances and route geometry encodings."""

import math
from typing import Sequence

import numpy as np

EARTH_RADIUS_KM = 6371.0

# (longitude, latitude), the GeoJSON axis order.
Coordinate = tuple[float, float]


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance between two points in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def track_distance_km(coordinates: Sequence[Coordinate]) -> float:
    """
    Total length of a ``[lon, lat]`` track in kilometres.

    Vectorised over consecutive pairs; fewer than two points is 0.
    """
    if len(coordinates) < 2:
        return 0.0

    points = np.radians(np.asarray(coordinates, dtype=np.float64))
    lon, lat = points[:, 0], points[:, 1]
    d_lat = np.diff(lat)
    d_lon = np.diff(lon)
    a = np.sin(d_lat / 2) ** 2 + np.cos(lat[:-1]) * np.cos(lat[1:]) * np.sin(d_lon / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return float(np.sum(EARTH_RADIUS_KM * c))


def to_line_string(coordinates: Sequence[Coordinate]) -> dict | None:
    """GeoJSON LineString, or None when there are fewer than two points."""
    if len(coordinates) < 2:
        return None
    return {
        "type": "LineString",
        "coordinates": [[float(lon), float(lat)] for lon, lat in coordinates],
    }


def to_wkt(coordinates: Sequence[Coordinate]) -> str | None:
    """PostGIS EWKT: ``SRID=4326;LINESTRING(lon lat, ...)``."""
    if len(coordinates) < 2:
        return None
    points = ", ".join(f"{lon} {lat}" for lon, lat in coordinates)
    return f"SRID=4326;LINESTRING({points})"

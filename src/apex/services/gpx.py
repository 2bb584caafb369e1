"""
GPX 1.1 export.

Rides store only a coordinate list, so each track point gets a timestamp
spread evenly between the ride's start and end.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from xml.sax.saxutils import escape

from ..core.errors import ExportError, NotFoundError
from ..core.models import Ride
from ..utils.formatting import format_duration
from .rides import RideService

logger = logging.getLogger(__name__)

DEFAULT_TRACK_NAME = "Apex Ride"

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def _xml(text: str) -> str:
    return escape(text, _XML_ENTITIES)


def _gpx_time(value: datetime) -> str:
    """UTC timestamp with milliseconds, e.g. ``2025-01-05T08:30:00.000Z``."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def point_time(start: datetime, end: datetime | None, index: int, total: int) -> datetime:
    """Timestamp for track point ``index`` of ``total``."""
    if end is None or total <= 1:
        return start
    return start + (end - start) * index / (total - 1)


def generate_gpx(ride: Ride) -> str:
    """
    Render a ride as a GPX 1.1 document.

    Raises:
        ExportError: The ride has no route path, or the path has no points
    """
    if ride.route_path is None:
        raise ExportError("Ride has no route path data")
    coordinates = ride.route_path.coordinates
    if not coordinates:
        raise ExportError("Ride has no route path coordinates")

    name = _xml(ride.ride_name or DEFAULT_TRACK_NAME)
    desc = f"Distance: {ride.distance_km:.2f} km"
    if ride.end_time is not None:
        desc += f", Duration: {format_duration(ride.start_time, ride.end_time)}"

    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<gpx version="1.1" creator="Apex App" xmlns="http://www.topografix.com/GPX/1/1" '
        'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
        'xsi:schemaLocation="http://www.topografix.com/GPX/1/1 http://www.topografix.com/GPX/1/1/gpx.xsd">',
        "  <metadata>",
        f"    <name>{name}</name>",
        f"    <time>{_gpx_time(ride.start_time)}</time>",
        "  </metadata>",
        "  <trk>",
        f"    <name>{name}</name>",
        f"    <desc>{_xml(desc)}</desc>",
        "    <trkseg>",
    ]
    total = len(coordinates)
    for i, (lon, lat) in enumerate(coordinates):
        when = point_time(ride.start_time, ride.end_time, i, total)
        lines.append(f'      <trkpt lat="{lat}" lon="{lon}">')
        lines.append(f"        <time>{_gpx_time(when)}</time>")
        lines.append("      </trkpt>")
    lines.extend(["    </trkseg>", "  </trk>", "</gpx>"])
    return "\n".join(lines)


def gpx_filename(ride: Ride) -> str:
    return f"ride_{ride.start_time.astimezone(timezone.utc).date().isoformat()}.gpx"


def export_gpx(rides: RideService, ride_id: str, exports_dir: str | Path) -> Path:
    """
    Write a ride's GPX file into ``exports_dir``.

    Returns:
        Path of the written file
    """
    try:
        ride = rides.get(ride_id)
    except NotFoundError as e:
        raise ExportError("Ride not found or you do not have permission to access it") from e
    document = generate_gpx(ride)

    exports_dir = Path(exports_dir)
    exports_dir.mkdir(parents=True, exist_ok=True)
    path = exports_dir / gpx_filename(ride)
    try:
        path.write_text(document, encoding="utf-8")
    except OSError as e:
        raise ExportError(f"Failed to save GPX file: {e}") from e

    logger.info(f"GPX exported: {path} ({len(ride.route_path)} points)")
    return path

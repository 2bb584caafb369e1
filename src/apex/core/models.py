"""
Row data structures.

Each dataclass mirrors one backend table row. ``from_row`` accepts the dict
the backend returns (ISO strings for dates, JSON for route paths) and
``to_dict`` produces a JSON-serializable dict in the same shape.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO timestamp (``Z`` suffix allowed) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).replace("Z", "+00:00")
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Any) -> date | None:
    """Parse ``YYYY-MM-DD`` (or a full timestamp) into a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def isoformat(value: date | datetime | None) -> str | None:
    """Serialize for the backend. Datetimes go out as UTC with a ``Z``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    return value.isoformat()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _float(value: Any, default: float = 0.0) -> float:
    return default if value is None else float(value)


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


@dataclass
class RoutePath:
    """
    GeoJSON LineString.

    Attributes:
        coordinates: ``[longitude, latitude]`` pairs in recording order
    """

    coordinates: list[tuple[float, float]] = field(default_factory=list)
    type: str = "LineString"

    @classmethod
    def from_value(cls, value: Any) -> "RoutePath | None":
        """
        Accept a dict, a JSON string, or None.

        Backends hand PostGIS geography back either as GeoJSON objects or as
        strings; anything that is not a LineString-shaped mapping yields None.
        """
        if value is None or value == "":
            return None
        if isinstance(value, RoutePath):
            return value
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return None
        if not isinstance(value, dict):
            return None
        coords = value.get("coordinates")
        if not isinstance(coords, list):
            return cls(coordinates=[], type=str(value.get("type", "LineString")))
        return cls(
            coordinates=[(float(c[0]), float(c[1])) for c in coords if len(c) >= 2],
            type=str(value.get("type", "LineString")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "coordinates": [list(c) for c in self.coordinates]}

    def __len__(self) -> int:
        return len(self.coordinates)


@dataclass
class Bike:
    """A bike in the rider's garage. Odometer is whole kilometres."""

    id: str
    user_id: str
    make: str
    model: str
    current_odo: int = 0
    year: int | None = None
    nick_name: str | None = None
    image_url: str | None = None
    specs_engine: str | None = None
    specs_power: str | None = None
    avg_mileage: float | None = None
    last_fuel_price: float | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Bike":
        return cls(
            id=str(row["id"]),
            user_id=str(row.get("user_id", "")),
            make=row.get("make") or "",
            model=row.get("model") or "",
            current_odo=int(row.get("current_odo") or 0),
            year=row.get("year"),
            nick_name=row.get("nick_name"),
            image_url=row.get("image_url"),
            specs_engine=row.get("specs_engine"),
            specs_power=row.get("specs_power"),
            avg_mileage=_optional_float(row.get("avg_mileage")),
            last_fuel_price=_optional_float(row.get("last_fuel_price")),
            created_at=parse_datetime(row.get("created_at")),
        )

    @property
    def display_name(self) -> str:
        return self.nick_name or f"{self.make} {self.model}".strip()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "make": self.make,
            "model": self.model,
            "year": self.year,
            "current_odo": self.current_odo,
            "nick_name": self.nick_name,
            "image_url": self.image_url,
            "specs_engine": self.specs_engine,
            "specs_power": self.specs_power,
            "avg_mileage": self.avg_mileage,
            "last_fuel_price": self.last_fuel_price,
            "created_at": isoformat(self.created_at),
        }


@dataclass
class Ride:
    """A recorded ride with its lean-angle peaks and GPS trace."""

    id: str
    bike_id: str
    user_id: str
    start_time: datetime
    end_time: datetime | None = None
    distance_km: float = 0.0
    max_lean_left: float = 0.0
    max_lean_right: float = 0.0
    route_path: RoutePath | None = None
    ride_name: str | None = None
    notes: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Ride":
        return cls(
            id=str(row["id"]),
            bike_id=str(row.get("bike_id", "")),
            user_id=str(row.get("user_id", "")),
            start_time=parse_datetime(row.get("start_time")) or utcnow(),
            end_time=parse_datetime(row.get("end_time")),
            distance_km=_float(row.get("distance_km")),
            max_lean_left=_float(row.get("max_lean_left")),
            max_lean_right=_float(row.get("max_lean_right")),
            route_path=RoutePath.from_value(row.get("route_path")),
            ride_name=row.get("ride_name"),
            notes=row.get("notes"),
            created_at=parse_datetime(row.get("created_at")),
        )

    @property
    def max_lean(self) -> float:
        return max(self.max_lean_left, self.max_lean_right)

    @property
    def duration_seconds(self) -> int | None:
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "bike_id": self.bike_id,
            "user_id": self.user_id,
            "start_time": isoformat(self.start_time),
            "end_time": isoformat(self.end_time),
            "distance_km": self.distance_km,
            "max_lean_left": self.max_lean_left,
            "max_lean_right": self.max_lean_right,
            "route_path": self.route_path.to_dict() if self.route_path else None,
            "ride_name": self.ride_name,
            "notes": self.notes,
            "created_at": isoformat(self.created_at),
        }


@dataclass
class FuelLog:
    """A fuel purchase. ``is_full_tank`` logs drive the mileage figure."""

    id: str
    bike_id: str
    odometer: int
    litres: float
    price_per_litre: float
    total_cost: float
    is_full_tank: bool
    date: date
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "FuelLog":
        return cls(
            id=str(row["id"]),
            bike_id=str(row.get("bike_id", "")),
            odometer=int(row.get("odometer") or 0),
            litres=_float(row.get("litres")),
            price_per_litre=_float(row.get("price_per_litre")),
            total_cost=_float(row.get("total_cost")),
            is_full_tank=bool(row.get("is_full_tank")),
            date=parse_date(row.get("date")) or utcnow().date(),
            created_at=parse_datetime(row.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "bike_id": self.bike_id,
            "odometer": self.odometer,
            "litres": self.litres,
            "price_per_litre": self.price_per_litre,
            "total_cost": self.total_cost,
            "is_full_tank": self.is_full_tank,
            "date": isoformat(self.date),
            "created_at": isoformat(self.created_at),
        }


@dataclass
class MaintenanceLog:
    id: str
    bike_id: str
    service_type: str
    odo_at_service: int
    date_performed: date
    notes: str | None = None
    receipt_url: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "MaintenanceLog":
        return cls(
            id=str(row["id"]),
            bike_id=str(row.get("bike_id", "")),
            service_type=row.get("service_type") or "",
            odo_at_service=int(row.get("odo_at_service") or 0),
            date_performed=parse_date(row.get("date_performed")) or utcnow().date(),
            notes=row.get("notes"),
            receipt_url=row.get("receipt_url"),
            created_at=parse_datetime(row.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "bike_id": self.bike_id,
            "service_type": self.service_type,
            "odo_at_service": self.odo_at_service,
            "date_performed": isoformat(self.date_performed),
            "notes": self.notes,
            "receipt_url": self.receipt_url,
            "created_at": isoformat(self.created_at),
        }


@dataclass
class MaintenanceSchedule:
    """
    A serviceable part with its distance and time intervals.

    An interval of 0 disables that dimension (e.g. chain lube has no
    calendar interval).
    """

    id: str
    bike_id: str
    part_name: str
    interval_km: int = 0
    interval_months: int = 0
    last_service_date: date | None = None
    last_service_odo: int | None = None
    is_active: bool = True
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "MaintenanceSchedule":
        last_odo = row.get("last_service_odo")
        return cls(
            id=str(row["id"]),
            bike_id=str(row.get("bike_id", "")),
            part_name=row.get("part_name") or "",
            interval_km=int(row.get("interval_km") or 0),
            interval_months=int(row.get("interval_months") or 0),
            last_service_date=parse_date(row.get("last_service_date")),
            last_service_odo=None if last_odo is None else int(last_odo),
            is_active=bool(row.get("is_active", True)),
            created_at=parse_datetime(row.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "bike_id": self.bike_id,
            "part_name": self.part_name,
            "interval_km": self.interval_km,
            "interval_months": self.interval_months,
            "last_service_date": isoformat(self.last_service_date),
            "last_service_odo": self.last_service_odo,
            "is_active": self.is_active,
            "created_at": isoformat(self.created_at),
        }


@dataclass
class ServiceHistory:
    id: str
    bike_id: str
    schedule_id: str | None
    service_date: date
    service_odo: int
    cost: float | None = None
    notes: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ServiceHistory":
        return cls(
            id=str(row["id"]),
            bike_id=str(row.get("bike_id", "")),
            schedule_id=row.get("schedule_id"),
            service_date=parse_date(row.get("service_date")) or utcnow().date(),
            service_odo=int(row.get("service_odo") or 0),
            cost=_optional_float(row.get("cost")),
            notes=row.get("notes"),
            created_at=parse_datetime(row.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "bike_id": self.bike_id,
            "schedule_id": self.schedule_id,
            "service_date": isoformat(self.service_date),
            "service_odo": self.service_odo,
            "cost": self.cost,
            "notes": self.notes,
            "created_at": isoformat(self.created_at),
        }


class NotificationType(Enum):
    """Severity of an in-app notification."""

    WARNING = "warning"
    ERROR = "error"
    INFO = "info"

    def __str__(self) -> str:
        return self.value


@dataclass
class Notification:
    id: str
    type: NotificationType
    message: str
    title: str | None = None
    bike_id: str | None = None
    schedule_id: str | None = None
    source: str | None = None
    read_at: datetime | None = None
    dismissed_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Notification":
        return cls(
            id=str(row["id"]),
            type=NotificationType(row.get("type") or "info"),
            message=row.get("message") or "",
            title=row.get("title"),
            bike_id=row.get("bike_id"),
            schedule_id=row.get("schedule_id"),
            source=row.get("source"),
            read_at=parse_datetime(row.get("read_at")),
            dismissed_at=parse_datetime(row.get("dismissed_at")),
            created_at=parse_datetime(row.get("created_at")),
        )

    @property
    def is_unread(self) -> bool:
        return self.read_at is None and self.dismissed_at is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "bike_id": self.bike_id,
            "schedule_id": self.schedule_id,
            "source": self.source,
            "read_at": isoformat(self.read_at),
            "dismissed_at": isoformat(self.dismissed_at),
            "created_at": isoformat(self.created_at),
        }

"""
Garage: the rider's bikes.
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.errors import BackendError, BikeInUseError, PermissionDeniedError, ValidationError
from ..core.models import Bike
from ..core.toasts import ToastLevel
from .base import BaseService
from .maintenance import MaintenanceScheduleService

logger = logging.getLogger(__name__)

BIKE_FIELDS = {
    "make",
    "model",
    "year",
    "current_odo",
    "nick_name",
    "image_url",
    "specs_engine",
    "specs_power",
}


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip() or None
    return value


def normalize_bike_form(values: dict[str, Any]) -> dict[str, Any]:
    """
    Turn bike form input into a ``bikes`` row fragment.

    Raises:
        ValidationError: Missing make/model, bad year, or a negative odometer
    """
    errors: dict[str, str] = {}
    row = {k: _clean(v) for k, v in values.items() if k in BIKE_FIELDS}

    for column in ("make", "model"):
        if column in row and not row[column]:
            errors[column] = "Make and Model are required"

    if row.get("year") is not None:
        try:
            row["year"] = int(row["year"])
        except (TypeError, ValueError):
            errors["year"] = "Year must be a number"

    if "current_odo" in row:
        try:
            row["current_odo"] = round(float(row["current_odo"] or 0))
        except (TypeError, ValueError):
            errors["current_odo"] = "Odometer must be a number"
        else:
            if row["current_odo"] < 0:
                errors["current_odo"] = "Odometer cannot be negative"

    if errors:
        raise ValidationError(errors)
    return row


class BikeService(BaseService):
    """
    CRUD for bikes.

    New bikes get the default maintenance schedules. A bike with recorded
    rides cannot be deleted.
    """

    def __init__(self, *args, schedules: MaintenanceScheduleService | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.schedules = schedules or MaintenanceScheduleService(self.backend, self.cache, self.toast)

    def list(self, refresh: bool = False) -> list[Bike]:
        user_id = self.require_user()
        rows = self.cached(
            ("bikes", user_id),
            lambda: self.backend.select("bikes", {"user_id": user_id}, order=[("created_at", True)]),
            refresh,
        )
        return [Bike.from_row(row) for row in rows]

    def get(self, bike_id: str) -> Bike:
        return self.require_bike(bike_id)

    def create(self, make: str, model: str, current_odo: int | float | str = 0, **extra: Any) -> Bike:
        user_id = self.require_user()
        row = normalize_bike_form({"make": make, "model": model, "current_odo": current_odo, **extra})
        row["user_id"] = user_id

        try:
            created = Bike.from_row(self.backend.insert("bikes", row)[0])
        except Exception:
            logger.exception("Error adding bike")
            self.toast(ToastLevel.ERROR, "Failed to add bike. Check your connection.")
            raise

        try:
            self.schedules.initialize_default_schedules(created.id)
        except BackendError as e:
            logger.error(f"Default schedules not created for {created.id}: {e.full_message()}")

        self.cache.invalidate("bikes")
        self.toast(ToastLevel.SUCCESS, "Bike successfully added to your fleet.")
        logger.info(f"Added bike {created.display_name} ({created.id})")
        return created

    def update(self, bike_id: str, **changes: Any) -> Bike:
        user_id = self.require_user()
        updates = normalize_bike_form(changes)
        if not updates:
            return self.require_bike(bike_id)

        rows = self.backend.update("bikes", updates, {"id": bike_id, "user_id": user_id})
        if not rows:
            raise PermissionDeniedError("Bike not found or you do not have permission to access it.")
        self.cache.invalidate("bikes")
        self.toast(ToastLevel.SUCCESS, "Bike updated successfully")
        return Bike.from_row(rows[0])

    def update_odometer(self, bike_id: str, current_odo: int) -> Bike:
        """Set the odometer to an absolute reading (whole km)."""
        return self.update(bike_id, current_odo=current_odo)

    def add_distance(self, bike_id: str, distance_km: float) -> Bike:
        """Advance the odometer by a ride's distance."""
        bike = self.require_bike(bike_id)
        if distance_km <= 0:
            return bike
        rows = self.backend.update(
            "bikes",
            {"current_odo": bike.current_odo + round(distance_km)},
            {"id": bike_id, "user_id": bike.user_id},
        )
        self.cache.invalidate("bikes")
        return Bike.from_row(rows[0]) if rows else bike

    def delete(self, bike_id: str) -> Bike:
        """
        Delete a bike.

        Raises:
            PermissionDeniedError: The bike is not the rider's, or row-level
                security blocked the delete
            BikeInUseError: The bike has recorded rides
        """
        user_id = self.require_user()
        try:
            bike = self.require_bike(bike_id)
        except PermissionDeniedError as e:
            raise PermissionDeniedError("Bike not found or you do not have permission to access it.") from e

        if self.backend.select("rides", {"bike_id": bike_id}, limit=1):
            raise BikeInUseError(
                "Cannot delete bike: It has associated rides. "
                "Please delete rides first or contact support."
            )

        try:
            deleted = self.backend.delete("bikes", {"id": bike_id, "user_id": user_id})
        except BackendError as e:
            logger.error(f"Delete bike failed: {e.full_message()}")
            if e.code == "23503":
                raise BikeInUseError(
                    "Cannot delete bike: It is referenced by other records (rides or maintenance logs)."
                ) from e
            if e.code == "PGRST301" or "permission" in e.message.lower():
                raise PermissionDeniedError(
                    "Permission denied: the bikes table does not allow this delete."
                ) from e
            raise

        if not deleted:
            logger.error(f"Delete returned no rows. Bike {bike_id}, user {user_id}")
            raise PermissionDeniedError("Deletion was blocked by row-level security.")

        for prefix in ("bikes", "fuelLogs", "maintenanceLogs", "maintenanceSchedules", "serviceHistory"):
            self.cache.invalidate(prefix)
        self.toast(ToastLevel.SUCCESS, "Bike deleted")
        logger.info(f"Deleted bike {bike.display_name} ({bike_id})")
        return bike

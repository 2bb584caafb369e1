"""
Maintenance logs, part schedules and service history.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import Any
from urllib.parse import urlparse

from ..core.cache import optimistic
from ..core.errors import NotFoundError, ValidationError
from ..core.models import MaintenanceLog, MaintenanceSchedule, ServiceHistory, isoformat, parse_date
from ..core.toasts import ToastLevel
from .base import BaseService
from .notifications import ReminderScheduler, schedule_due_reminder

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULES = (
    {"part_name": "Engine Oil", "interval_km": 5000, "interval_months": 6},
    {"part_name": "Chain Lube", "interval_km": 500, "interval_months": 0},
    {"part_name": "Chain Slack", "interval_km": 1000, "interval_months": 0},
)

SCHEDULE_FIELDS = {
    "part_name",
    "interval_km",
    "interval_months",
    "last_service_date",
    "last_service_odo",
    "is_active",
}

LOG_FIELDS = {"service_type", "odo_at_service", "date_performed", "notes", "receipt_url"}


def _schedules_key(bike_id: str | None, user_id: str | None = None) -> tuple:
    """Cache key for one bike's schedules, or for all of a rider's."""
    if bike_id:
        return ("maintenanceSchedules", bike_id)
    return ("maintenanceSchedules", None, user_id)


def validate_maintenance_log(values: dict[str, Any], current_odo: int) -> dict[str, str]:
    """Field errors for a maintenance log form."""
    errors: dict[str, str] = {}

    if not str(values.get("service_type") or "").strip():
        errors["service_type"] = "Service type is required"

    odo = values.get("odo_at_service")
    if odo is None or str(odo).strip() == "":
        errors["odo_at_service"] = "Odometer reading is required"
    else:
        try:
            odo_num = int(str(odo).strip())
        except ValueError:
            errors["odo_at_service"] = "Odometer reading must be a valid number"
        else:
            if odo_num < 0:
                errors["odo_at_service"] = "Odometer reading cannot be negative"
            elif odo_num > current_odo:
                errors["odo_at_service"] = (
                    f"Odometer reading cannot exceed current odometer ({current_odo:,} km)"
                )

    if not str(values.get("date_performed") or "").strip():
        errors["date_performed"] = "Date performed is required"

    receipt_url = str(values.get("receipt_url") or "").strip()
    if receipt_url:
        parsed = urlparse(receipt_url)
        if not parsed.scheme or not parsed.netloc:
            errors["receipt_url"] = "Please enter a valid URL"

    return errors


def _number(value: Any) -> float | None:
    """A finite float from form input, or None."""
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def validate_service(service_odo: Any, cost: Any) -> dict[str, str]:
    """Field errors for the complete-service form."""
    errors: dict[str, str] = {}
    odo = _number(service_odo) if service_odo is not None else None
    if odo is None or odo < 0 or not odo.is_integer():
        errors["service_odo"] = "Please enter a valid odometer reading"
    if cost not in (None, ""):
        amount = _number(cost)
        if amount is None or amount < 0:
            errors["cost"] = "Please enter a valid cost"
    return errors


def validate_schedule(values: dict[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if "part_name" in values and not str(values.get("part_name") or "").strip():
        errors["part_name"] = "Part name is required"
    for column in ("interval_km", "interval_months"):
        if column in values:
            try:
                if int(values[column]) < 0:
                    errors[column] = "Interval cannot be negative"
            except (TypeError, ValueError):
                errors[column] = "Interval must be a whole number"
    return errors


class MaintenanceLogService(BaseService):
    """General service log entries for a bike."""

    def list(self, bike_id: str | None = None, refresh: bool = False) -> list[MaintenanceLog]:
        user_id = self.require_user()
        filters: dict[str, Any] = {"user_id": user_id}
        if bike_id:
            filters["bike_id"] = bike_id
        rows = self.cached(
            ("maintenanceLogs", user_id, bike_id),
            lambda: self.backend.select("maintenance_logs", filters, order=[("date_performed", True)]),
            refresh,
        )
        return [MaintenanceLog.from_row(row) for row in rows]

    def create(
        self,
        bike_id: str,
        service_type: str,
        odo_at_service: int | str,
        date_performed: date | str | None = None,
        notes: str | None = None,
        receipt_url: str | None = None,
    ) -> MaintenanceLog:
        user_id = self.require_user()
        bike = self.require_bike(bike_id)

        values = {
            "service_type": service_type,
            "odo_at_service": odo_at_service,
            "date_performed": isoformat(parse_date(date_performed) or date.today()),
            "receipt_url": receipt_url,
        }
        errors = validate_maintenance_log(values, bike.current_odo)
        if errors:
            raise ValidationError(errors)

        row = {
            "bike_id": bike_id,
            "user_id": user_id,
            "service_type": service_type.strip(),
            "odo_at_service": int(str(odo_at_service).strip()),
            "date_performed": values["date_performed"],
            "notes": (notes or "").strip() or None,
            "receipt_url": (receipt_url or "").strip() or None,
        }
        try:
            created = self.backend.insert("maintenance_logs", row)[0]
        except Exception:
            self.toast(ToastLevel.ERROR, "Failed to add maintenance log")
            raise
        self.cache.invalidate("maintenanceLogs")
        self.toast(ToastLevel.SUCCESS, "Maintenance log added")
        return MaintenanceLog.from_row(created)

    def update(self, log_id: str, **changes: Any) -> MaintenanceLog:
        row = self.require_row("maintenance_logs", log_id, "Maintenance log")
        updates = {k: v for k, v in changes.items() if k in LOG_FIELDS}
        bike = self.require_bike(row["bike_id"])
        errors = validate_maintenance_log({**row, **updates}, bike.current_odo)
        if errors:
            raise ValidationError(errors)
        if "date_performed" in updates:
            updates["date_performed"] = isoformat(parse_date(updates["date_performed"]))

        updated = self.backend.update("maintenance_logs", updates, {"id": log_id})
        self.cache.invalidate("maintenanceLogs")
        self.toast(ToastLevel.SUCCESS, "Maintenance log updated")
        return MaintenanceLog.from_row(updated[0])

    def delete(self, log_id: str) -> None:
        self.require_row("maintenance_logs", log_id, "Maintenance log")
        self.backend.delete("maintenance_logs", {"id": log_id})
        self.cache.invalidate("maintenanceLogs")
        self.toast(ToastLevel.SUCCESS, "Maintenance log deleted")


class MaintenanceScheduleService(BaseService):
    """
    Per-part maintenance schedules.

    Completing a service writes a service history row, moves the schedule's
    last-service markers, and (for parts with a calendar interval) schedules a
    local reminder for when the part is next due.
    """

    def __init__(self, *args, reminders: ReminderScheduler | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.reminders = reminders

    def list(self, bike_id: str | None = None, refresh: bool = False) -> list[MaintenanceSchedule]:
        """Active schedules for one bike, or for all the rider's bikes."""
        user_id = self.require_user()
        rows = self.cached(_schedules_key(bike_id, user_id), lambda: self._select(bike_id, user_id), refresh)
        return [MaintenanceSchedule.from_row(row) for row in rows]

    def _select(self, bike_id: str | None, user_id: str) -> list[dict[str, Any]]:
        filters: dict[str, Any] = {"is_active": True}
        if bike_id:
            filters["bike_id"] = bike_id
        else:
            bike_ids = [row["id"] for row in self.backend.select("bikes", {"user_id": user_id})]
            if not bike_ids:
                return []
            filters["bike_id"] = bike_ids
        return self.backend.select("maintenance_schedules", filters, order=[("part_name", False)])

    def _edit_cached(self, bike_id: str, fn) -> None:
        """Apply ``fn`` to the bike's cached schedule rows, if any are cached."""
        key = _schedules_key(bike_id)
        if key in self.cache:
            self.cache.update(key, fn)

    def _settle(self, row: dict[str, Any]) -> None:
        """Replace optimistic rows with the confirmed ``row``."""

        def merge(rows):
            kept = [r for r in rows if r["id"] != row["id"] and not str(r["id"]).startswith("temp-")]
            if row.get("is_active", True):
                kept.append(row)
            return sorted(kept, key=lambda r: r["part_name"])

        self._edit_cached(row["bike_id"], merge)
        self.cache.discard(_schedules_key(None, self.backend.get_user_id()))

    def get(self, schedule_id: str) -> MaintenanceSchedule:
        return MaintenanceSchedule.from_row(
            self.require_row("maintenance_schedules", schedule_id, "Maintenance schedule")
        )

    def create(
        self,
        bike_id: str,
        part_name: str,
        interval_km: int = 0,
        interval_months: int = 0,
        last_service_date: date | str | None = None,
        last_service_odo: int | None = None,
    ) -> MaintenanceSchedule:
        row = {
            "bike_id": bike_id,
            "part_name": part_name.strip(),
            "interval_km": interval_km,
            "interval_months": interval_months,
            "last_service_date": isoformat(parse_date(last_service_date)),
            "last_service_odo": last_service_odo,
            "is_active": True,
        }
        errors = validate_schedule(row)
        if errors:
            raise ValidationError(errors)

        temp_row = {**row, "id": f"temp-{id(row)}"}
        try:
            with optimistic(
                self.cache,
                [_schedules_key(bike_id)],
                lambda: self._edit_cached(bike_id, lambda rows: rows + [temp_row]),
            ):
                self.require_bike(bike_id)
                created = self.backend.insert("maintenance_schedules", row)[0]
        except Exception:
            logger.exception("Error creating maintenance schedule")
            self.toast(ToastLevel.ERROR, "Failed to add maintenance schedule")
            raise

        self._settle(created)
        self.toast(ToastLevel.SUCCESS, "Maintenance schedule added")
        return MaintenanceSchedule.from_row(created)

    def update(self, schedule_id: str, **changes: Any) -> MaintenanceSchedule:
        updates = {k: v for k, v in changes.items() if k in SCHEDULE_FIELDS}
        errors = validate_schedule(updates)
        if errors:
            raise ValidationError(errors)
        if "last_service_date" in updates:
            updates["last_service_date"] = isoformat(parse_date(updates["last_service_date"]))

        row = self.require_row("maintenance_schedules", schedule_id, "Maintenance schedule")
        bike_id = row["bike_id"]

        def apply():
            self._edit_cached(
                bike_id, lambda rows: [{**r, **updates} if r["id"] == schedule_id else r for r in rows]
            )

        try:
            with optimistic(self.cache, [_schedules_key(bike_id)], apply):
                updated = self.backend.update("maintenance_schedules", updates, {"id": schedule_id})[0]
        except Exception:
            logger.exception("Error updating maintenance schedule")
            self.toast(ToastLevel.ERROR, "Failed to update schedule")
            raise

        self._settle(updated)
        self.toast(ToastLevel.SUCCESS, "Schedule updated")
        return MaintenanceSchedule.from_row(updated)

    def complete_service(
        self,
        schedule_id: str,
        bike_id: str,
        service_odo: int | str,
        cost: float | str | None = None,
        notes: str | None = None,
        service_date: date | None = None,
    ) -> MaintenanceSchedule:
        """
        Record that a part was serviced today.

        Raises:
            ValidationError: Missing or invalid odometer reading or cost
            NotFoundError: The schedule does not belong to ``bike_id``

        Returns:
            The schedule with its new last-service markers
        """
        errors = validate_service(service_odo, cost)
        if errors:
            raise ValidationError(errors)
        odo = int(float(str(service_odo).strip()))
        amount = None if cost in (None, "") else round(float(str(cost).strip()), 2)

        existing = self.require_row("maintenance_schedules", schedule_id, "Maintenance schedule")
        if existing["bike_id"] != bike_id:
            raise NotFoundError("Maintenance schedule not found for this bike")

        service_date = service_date or date.today()
        day = isoformat(service_date)

        def apply():
            self._edit_cached(
                bike_id,
                lambda rows: [
                    {**r, "last_service_date": day, "last_service_odo": odo} if r["id"] == schedule_id else r
                    for r in rows
                ],
            )

        try:
            with optimistic(self.cache, [_schedules_key(bike_id)], apply):
                bike = self.require_bike(bike_id)
                self.backend.insert(
                    "service_history",
                    {
                        "bike_id": bike_id,
                        "schedule_id": schedule_id,
                        "service_date": day,
                        "service_odo": odo,
                        "cost": amount,
                        "notes": (notes or "").strip() or None,
                    },
                )
                rows = self.backend.update(
                    "maintenance_schedules",
                    {"last_service_date": day, "last_service_odo": odo},
                    {"id": schedule_id},
                )
                schedule = MaintenanceSchedule.from_row(rows[0])
        except Exception:
            logger.exception("Error completing service")
            self.toast(ToastLevel.ERROR, "Failed to complete service")
            raise

        if self.reminders is not None and schedule.interval_months > 0:
            self.reminders.cancel(schedule_id)
            schedule_due_reminder(
                self.reminders,
                schedule_id,
                schedule.part_name,
                bike.display_name,
                service_date,
                schedule.interval_months,
            )

        self._settle(rows[0])
        self.cache.invalidate("serviceHistory")
        self.toast(ToastLevel.SUCCESS, "Service completed")
        logger.info(f"{schedule.part_name} serviced at {odo} km on {bike.display_name}")
        return schedule

    def initialize_default_schedules(self, bike_id: str) -> list[MaintenanceSchedule]:
        """
        Create the default part schedules for a bike.

        Does nothing if the bike already has any schedule.
        """
        self.require_bike(bike_id)
        existing = self.backend.select("maintenance_schedules", {"bike_id": bike_id}, limit=1)
        if existing:
            logger.debug(f"Default schedules already exist for bike {bike_id}")
            return []

        rows = [{**defaults, "bike_id": bike_id, "is_active": True} for defaults in DEFAULT_SCHEDULES]
        created = self.backend.insert("maintenance_schedules", rows)
        self.cache.invalidate("maintenanceSchedules")
        logger.debug(f"Default maintenance schedules initialized for bike {bike_id}")
        return [MaintenanceSchedule.from_row(row) for row in created]


class ServiceHistoryService(BaseService):
    def list(
        self, bike_id: str | None = None, schedule_id: str | None = None, refresh: bool = False
    ) -> list[ServiceHistory]:
        user_id = self.require_user()
        filters: dict[str, Any] = {}
        if bike_id:
            filters["bike_id"] = bike_id
        if schedule_id:
            filters["schedule_id"] = schedule_id
        rows = self.cached(
            ("serviceHistory", user_id, bike_id, schedule_id),
            lambda: self.backend.select("service_history", filters, order=[("service_date", True)]),
            refresh,
        )
        return [ServiceHistory.from_row(row) for row in rows]

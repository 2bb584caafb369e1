"""
Fuel logs.

Every mutation recomputes the bike's ``avg_mileage`` and ``last_fuel_price``
from its full log history so the garage card stays in step.
"""

from __future__ import annotations

import logging
from typing import Any

from ..analysis.fuel import FuelEntry, calculate_mileage, get_last_fuel_price
from ..core.cache import optimistic
from ..core.errors import friendly_error_message
from ..core.models import Bike, FuelLog
from ..core.toasts import ToastLevel
from .base import BaseService

logger = logging.getLogger(__name__)


class FuelLogService(BaseService):
    """CRUD for fuel logs with optimistic cache updates."""

    def list(self, bike_id: str, refresh: bool = False) -> list[FuelLog]:
        self.require_user()
        rows = self.cached(("fuelLogs", bike_id), lambda: self._select(bike_id), refresh)
        return [FuelLog.from_row(row) for row in rows]

    def _select(self, bike_id: str) -> list[dict[str, Any]]:
        return self.backend.select(
            "fuel_logs", {"bike_id": bike_id}, order=[("date", True), ("created_at", True)]
        )

    def refresh_bike_stats(self, bike_id: str) -> Bike:
        """Recompute and store mileage and last fuel price for a bike."""
        logs = [FuelLog.from_row(row) for row in self._select(bike_id)]
        updates = {
            "avg_mileage": calculate_mileage(logs),
            "last_fuel_price": get_last_fuel_price(logs),
        }
        rows = self.backend.update("bikes", updates, {"id": bike_id})
        self.cache.invalidate("bikes")
        logger.debug(f"Bike {bike_id} stats: {updates}")
        return Bike.from_row(rows[0])

    def _mutate(self, bike_id: str, apply_rows, action, success: str, failure: str):
        key = ("fuelLogs", bike_id)
        try:
            with optimistic(self.cache, [key], lambda: self.cache.update(key, apply_rows)):
                result = action()
                self.refresh_bike_stats(bike_id)
        except Exception as e:
            logger.error(f"{failure}: {e}")
            self.toast(ToastLevel.ERROR, friendly_error_message(e, failure))
            raise
        self.cache.set(key, self._select(bike_id))
        self.toast(ToastLevel.SUCCESS, success)
        return result

    def create(self, bike_id: str, entry: FuelEntry) -> FuelLog:
        """
        Add a fuel log from a refuel form.

        Raises:
            ValidationError: Invalid form (raised before anything is cached)
        """
        self.require_user()
        row = entry.to_row(bike_id)
        temp = {**row, "id": f"temp-{id(entry)}"}

        def action():
            self.require_bike(bike_id)
            return FuelLog.from_row(self.backend.insert("fuel_logs", row)[0])

        return self._mutate(
            bike_id,
            lambda rows: [temp] + rows,
            action,
            "Fuel log added",
            "Failed to add fuel log",
        )

    def update(self, log_id: str, entry: FuelEntry) -> FuelLog:
        existing = self.require_row("fuel_logs", log_id, "Fuel log")
        bike_id = existing["bike_id"]
        row = entry.to_row(bike_id)

        def action():
            return FuelLog.from_row(self.backend.update("fuel_logs", row, {"id": log_id})[0])

        return self._mutate(
            bike_id,
            lambda rows: [{**r, **row} if r["id"] == log_id else r for r in rows],
            action,
            "Fuel log updated",
            "Failed to update fuel log",
        )

    def delete(self, log_id: str) -> None:
        existing = self.require_row("fuel_logs", log_id, "Fuel log")
        bike_id = existing["bike_id"]

        self._mutate(
            bike_id,
            lambda rows: [r for r in rows if r["id"] != log_id],
            lambda: self.backend.delete("fuel_logs", {"id": log_id}),
            "Fuel log deleted",
            "Failed to delete fuel log",
        )

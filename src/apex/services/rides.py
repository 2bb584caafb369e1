"""
Recorded rides.

Route geometry is stored as PostGIS geography on the hosted backend, which
only round-trips as GeoJSON through the ``get_rides_with_geojson`` and
``insert_ride_with_geometry`` functions. When those are not deployed the
service falls back to plain table access, without route paths.
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.errors import BackendError, NotFoundError, PermissionDeniedError, is_function_missing
from ..core.models import Ride, isoformat
from ..core.recorder import RideSummary
from ..core.toasts import ToastLevel
from .base import BaseService
from .bikes import BikeService

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


class RideService(BaseService):
    def __init__(self, *args, bikes: BikeService | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.bikes = bikes or BikeService(self.backend, self.cache, self.toast)

    def list(
        self,
        bike_id: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        refresh: bool = False,
    ) -> list[Ride]:
        """Rides newest first, with route paths when the backend can supply them."""
        user_id = self.require_user()
        rows = self.cached(
            ("rides", user_id, bike_id, limit, offset),
            lambda: self._select(user_id, bike_id, limit, offset),
            refresh,
        )
        return [Ride.from_row(row) for row in rows]

    def _select(self, user_id: str, bike_id: str | None, limit: int, offset: int) -> list[dict[str, Any]]:
        try:
            rows = self.backend.rpc(
                "get_rides_with_geojson",
                {"p_user_id": user_id, "p_bike_id": bike_id, "p_limit": limit, "p_offset": offset},
            )
        except BackendError as e:
            logger.warning(f"get_rides_with_geojson unavailable, using plain query: {e.message}")
            rows = None

        if rows is None:
            filters: dict[str, Any] = {"user_id": user_id}
            if bike_id:
                filters["bike_id"] = bike_id
            rows = self.backend.select(
                "rides", filters, order=[("start_time", True)], limit=limit, offset=offset
            )
        return rows

    def count(self, bike_id: str | None = None) -> int:
        user_id = self.require_user()
        filters: dict[str, Any] = {"user_id": user_id}
        if bike_id:
            filters["bike_id"] = bike_id
        return len(self.backend.select("rides", filters))

    def get(self, ride_id: str) -> Ride:
        """
        Load one ride, including its route path when available.

        Raises:
            NotFoundError: No such ride for this rider
        """
        user_id = self.require_user()
        rows = self.backend.select("rides", {"id": ride_id, "user_id": user_id}, limit=1)
        if not rows:
            raise NotFoundError("Ride not found")
        ride = Ride.from_row(rows[0])

        if ride.route_path is None or not ride.route_path.coordinates:
            # Plain selects return geography in a non-GeoJSON encoding.
            try:
                candidates = self.backend.rpc(
                    "get_rides_with_geojson",
                    {"p_user_id": user_id, "p_bike_id": ride.bike_id, "p_limit": 200, "p_offset": 0},
                )
            except BackendError as e:
                logger.debug(f"No GeoJSON route for ride {ride_id}: {e.message}")
                candidates = None
            for row in candidates or []:
                if str(row.get("id")) == ride_id:
                    ride = Ride.from_row(row)
                    break
        return ride

    def save(self, summary: RideSummary, bike_id: str) -> Ride:
        """
        Save a finished ride and advance the bike's odometer.

        Uses the geometry RPC when there is a route; falls back to a plain
        insert without route when the function is missing.
        """
        user_id = self.require_user()
        self.require_bike(bike_id)

        row = {
            "bike_id": bike_id,
            "user_id": user_id,
            "start_time": isoformat(summary.start_time),
            "end_time": isoformat(summary.end_time),
            "distance_km": round(summary.distance_km, 2),
            "max_lean_left": round(summary.max_lean_left, 1),
            "max_lean_right": round(summary.max_lean_right, 1),
        }
        route = summary.route_path

        try:
            saved = None
            if route is not None:
                try:
                    result = self.backend.rpc(
                        "insert_ride_with_geometry",
                        {
                            "p_bike_id": row["bike_id"],
                            "p_user_id": row["user_id"],
                            "p_start_time": row["start_time"],
                            "p_end_time": row["end_time"],
                            "p_distance_km": row["distance_km"],
                            "p_max_lean_left": row["max_lean_left"],
                            "p_max_lean_right": row["max_lean_right"],
                            "p_route_path_geojson": route.to_dict(),
                        },
                    )
                    saved = result[0] if isinstance(result, list) else result
                except BackendError as e:
                    if not is_function_missing(e):
                        raise
                    logger.warning("insert_ride_with_geometry missing; saving ride without route path")

            if not saved:
                saved = self.backend.insert("rides", {**row, "route_path": None})[0]
        except BackendError as e:
            logger.error(f"Failed to save ride: {e.full_message()}")
            self.toast(ToastLevel.ERROR, "Failed to save ride")
            raise

        ride = Ride.from_row(saved)
        self.bikes.add_distance(bike_id, summary.distance_km)
        self.cache.invalidate("rides")
        self.toast(ToastLevel.SUCCESS, "Ride saved")
        logger.info(f"Saved ride {ride.id}: {ride.distance_km:.2f} km")
        return ride

    def update(self, ride_id: str, ride_name: str | None = None, notes: str | None = None) -> Ride:
        user_id = self.require_user()
        if not self.backend.select("rides", {"id": ride_id, "user_id": user_id}, limit=1):
            raise PermissionDeniedError("Ride not found or you do not have permission to update it")

        updates = {"ride_name": (ride_name or "").strip() or None, "notes": (notes or "").strip() or None}
        rows = self.backend.update("rides", updates, {"id": ride_id, "user_id": user_id})
        if not rows:
            raise PermissionDeniedError("Ride not found or you do not have permission to update it")

        self.cache.invalidate("rides")
        self.toast(ToastLevel.SUCCESS, "Ride updated")
        return Ride.from_row(rows[0])

    def delete(self, ride_id: str) -> None:
        user_id = self.require_user()
        deleted = self.backend.delete("rides", {"id": ride_id, "user_id": user_id})
        if not deleted:
            raise NotFoundError("Ride not found")
        self.cache.invalidate("rides")
        self.toast(ToastLevel.SUCCESS, "Ride deleted")

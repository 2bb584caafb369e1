"""
Unit tests for the ride service.
"""

from datetime import datetime, timedelta, timezone

import pytest

from apex.core.errors import BackendError, NotFoundError, PermissionDeniedError


class TestSave:
    """Tests for saving a finished ride."""

    def test_save_rounds_and_keeps_route(self, services, bike, make_summary, toasts):
        ride = services.rides.save(make_summary(distance_km=12.3456, lean_left=32.54, lean_right=41.08), bike.id)
        assert ride.distance_km == 12.35
        assert ride.max_lean_left == 32.5
        assert ride.max_lean_right == 41.1
        assert ride.route_path.coordinates == make_summary().coordinates
        assert ride.user_id == "rider-1"
        assert toasts.messages[-1] == "Ride saved"

    def test_save_advances_odometer(self, services, bike, make_summary):
        services.rides.save(make_summary(distance_km=42.7), bike.id)
        assert services.bikes.get(bike.id).current_odo == 12043

    def test_save_without_route(self, services, bike, make_summary):
        ride = services.rides.save(make_summary(coordinates=[(77.59, 12.97)]), bike.id)
        assert ride.route_path is None

    def test_save_falls_back_when_rpc_missing(self, services, bike, make_summary, backend, monkeypatch):
        def rpc(name, params=None):
            raise BackendError("Could not find the function public.insert_ride_with_geometry", code="PGRST202")

        monkeypatch.setattr(backend, "rpc", rpc)
        ride = services.rides.save(make_summary(), bike.id)
        assert ride.route_path is None
        assert ride.distance_km == 12.3

    def test_save_reraises_other_errors(self, services, bike, make_summary, backend, monkeypatch, toasts):
        def rpc(name, params=None):
            raise BackendError("permission denied for function", code="42501")

        monkeypatch.setattr(backend, "rpc", rpc)
        with pytest.raises(BackendError):
            services.rides.save(make_summary(), bike.id)
        assert toasts.messages[-1] == "Failed to save ride"

    def test_save_for_foreign_bike(self, services, make_summary):
        with pytest.raises(PermissionDeniedError):
            services.rides.save(make_summary(), "someone-elses-bike")


class TestQueries:
    def test_list_newest_first_with_routes(self, services, bike, make_summary):
        start = datetime(2025, 1, 5, 8, 30, tzinfo=timezone.utc)
        older = services.rides.save(make_summary(start=start), bike.id)
        newer = services.rides.save(make_summary(start=start + timedelta(days=1)), bike.id)

        rides = services.rides.list()
        assert [r.id for r in rides] == [newer.id, older.id]
        assert all(r.route_path is not None for r in rides)
        assert services.rides.count(bike.id) == 2

    def test_list_paging(self, services, bike, make_summary):
        start = datetime(2025, 1, 5, 8, 30, tzinfo=timezone.utc)
        for day in range(3):
            services.rides.save(make_summary(start=start + timedelta(days=day)), bike.id)
        page = services.rides.list(bike_id=bike.id, limit=2, offset=2)
        assert len(page) == 1
        assert page[0].start_time == start

    def test_list_plain_fallback(self, services, bike, make_summary, backend, monkeypatch):
        services.rides.save(make_summary(), bike.id)

        def rpc(name, params=None):
            raise BackendError("function missing", code="PGRST202")

        monkeypatch.setattr(backend, "rpc", rpc)
        assert len(services.rides.list()) == 1

    def test_get(self, services, bike, make_summary):
        saved = services.rides.save(make_summary(), bike.id)
        ride = services.rides.get(saved.id)
        assert ride.id == saved.id
        assert ride.duration_seconds == 1800
        assert len(ride.route_path) == 4

    def test_get_missing(self, services):
        with pytest.raises(NotFoundError, match="Ride not found"):
            services.rides.get("missing")


class TestEdit:
    def test_update_name_and_notes(self, services, bike, make_summary):
        saved = services.rides.save(make_summary(), bike.id)
        ride = services.rides.update(saved.id, ride_name="  Nandi Hills  ", notes="Foggy")
        assert ride.ride_name == "Nandi Hills"
        assert ride.notes == "Foggy"

    def test_blank_clears(self, services, bike, make_summary):
        saved = services.rides.save(make_summary(), bike.id)
        services.rides.update(saved.id, ride_name="Loop")
        ride = services.rides.update(saved.id, ride_name="   ", notes=None)
        assert ride.ride_name is None
        assert ride.notes is None

    def test_update_missing(self, services):
        with pytest.raises(PermissionDeniedError):
            services.rides.update("missing", ride_name="x")

    def test_delete(self, services, bike, make_summary, toasts):
        saved = services.rides.save(make_summary(), bike.id)
        services.rides.delete(saved.id)
        assert services.rides.list() == []
        assert toasts.messages[-1] == "Ride deleted"
        with pytest.raises(NotFoundError):
            services.rides.delete(saved.id)

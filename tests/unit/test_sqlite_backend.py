"""
Unit tests for the local SQLite backend.
"""

import pytest

from apex.backend import SQLiteBackend
from apex.core.errors import BackendError, NotAuthenticatedError


@pytest.fixture
def bike_row(backend):
    return backend.insert("bikes", {"make": "KTM", "model": "390 Adventure", "current_odo": 800})[0]


class TestSession:
    def test_signed_out_calls_fail(self):
        backend = SQLiteBackend(":memory:")
        with pytest.raises(NotAuthenticatedError):
            backend.select("bikes")
        backend.close()

    def test_sign_in_and_out(self):
        backend = SQLiteBackend(":memory:")
        backend.sign_in("rider-9")
        assert backend.get_user_id() == "rider-9"
        assert backend.select("bikes") == []
        backend.sign_out()
        assert backend.get_user_id() is None
        backend.close()

    def test_file_database_persists(self, tmp_path):
        path = tmp_path / "nested" / "apex.db"
        backend = SQLiteBackend(path, user_id="rider-1")
        backend.insert("bikes", {"make": "Honda", "model": "CB350"})
        backend.close()

        reopened = SQLiteBackend(path, user_id="rider-1")
        assert [row["make"] for row in reopened.select("bikes")] == ["Honda"]
        reopened.close()


class TestCrud:
    """Tests for select, insert, update and delete."""

    def test_insert_fills_server_columns(self, backend, bike_row):
        assert bike_row["id"]
        assert bike_row["created_at"].endswith("Z")
        assert bike_row["user_id"] == "rider-1"

    def test_insert_many(self, backend):
        rows = backend.insert("bikes", [{"make": "A", "model": "1"}, {"make": "B", "model": "2"}])
        assert {row["make"] for row in rows} == {"A", "B"}

    def test_filters(self, backend):
        backend.insert(
            "bikes",
            [
                {"make": "A", "model": "1", "year": 2020},
                {"make": "B", "model": "2", "year": None},
                {"make": "C", "model": "3", "year": 2022},
            ],
        )
        assert [r["make"] for r in backend.select("bikes", {"year": None})] == ["B"]
        assert {r["make"] for r in backend.select("bikes", {"make": ["A", "C"]})} == {"A", "C"}
        assert backend.select("bikes", {"make": []}) == []

    def test_order_limit_offset(self, backend):
        backend.insert("bikes", [{"make": m, "model": "x"} for m in "DBCA"])
        rows = backend.select("bikes", order=[("make", False)], limit=2, offset=1)
        assert [r["make"] for r in rows] == ["B", "C"]
        rows = backend.select("bikes", order=[("make", True)], limit=1)
        assert rows[0]["make"] == "D"

    def test_update_returns_rows(self, backend, bike_row):
        rows = backend.update("bikes", {"current_odo": 900}, {"id": bike_row["id"]})
        assert rows[0]["current_odo"] == 900
        assert backend.update("bikes", {"current_odo": 1}, {"id": "missing"}) == []

    def test_delete_returns_deleted(self, backend, bike_row):
        deleted = backend.delete("bikes", {"id": bike_row["id"]})
        assert [r["id"] for r in deleted] == [bike_row["id"]]
        assert backend.select("bikes") == []

    def test_booleans_round_trip(self, backend, bike_row):
        row = backend.insert(
            "fuel_logs",
            {
                "bike_id": bike_row["id"],
                "odometer": 900,
                "litres": 10,
                "price_per_litre": 100,
                "total_cost": 1000,
                "is_full_tank": True,
                "date": "2025-01-05",
            },
        )[0]
        assert row["is_full_tank"] is True

    def test_unknown_table(self, backend):
        with pytest.raises(ValueError):
            backend.select("users")

    def test_unknown_column(self, backend):
        with pytest.raises(BackendError) as excinfo:
            backend.select("bikes", {"colour": "red"})
        assert excinfo.value.code == "PGRST204"


class TestRowScoping:
    """Riders only ever see and write their own rows."""

    def test_other_riders_rows_invisible(self, backend, bike_row):
        backend.sign_in("rider-2")
        assert backend.select("bikes") == []
        assert backend.delete("bikes", {"id": bike_row["id"]}) == []

    def test_child_rows_scoped_through_bike(self, backend, bike_row):
        backend.insert(
            "maintenance_schedules", {"bike_id": bike_row["id"], "part_name": "Chain Lube", "interval_km": 500}
        )
        backend.sign_in("rider-2")
        assert backend.select("maintenance_schedules") == []

    def test_insert_for_another_rider_rejected(self, backend):
        with pytest.raises(BackendError) as excinfo:
            backend.insert("bikes", {"make": "A", "model": "1", "user_id": "rider-2"})
        assert excinfo.value.code == "42501"

    def test_insert_against_foreign_bike_rejected(self, backend, bike_row):
        backend.sign_in("rider-2")
        with pytest.raises(BackendError) as excinfo:
            backend.insert(
                "maintenance_schedules", {"bike_id": bike_row["id"], "part_name": "Oil"}
            )
        assert excinfo.value.code == "42501"


class TestConstraints:
    def test_bike_with_rides_cannot_be_deleted(self, backend, bike_row):
        backend.insert(
            "rides", {"bike_id": bike_row["id"], "start_time": "2025-01-05T08:30:00Z"}
        )
        with pytest.raises(BackendError) as excinfo:
            backend.delete("bikes", {"id": bike_row["id"]})
        assert excinfo.value.code == "23503"

    def test_check_constraint(self, backend, bike_row):
        with pytest.raises(BackendError) as excinfo:
            backend.insert(
                "fuel_logs",
                {
                    "bike_id": bike_row["id"],
                    "odometer": 900,
                    "litres": 0,
                    "price_per_litre": 100,
                    "total_cost": 0,
                    "date": "2025-01-05",
                },
            )
        assert excinfo.value.code == "23514"


class TestRpc:
    def test_insert_and_fetch_route(self, backend, bike_row):
        route = {"type": "LineString", "coordinates": [[77.59, 12.97], [77.60, 12.98]]}
        saved = backend.rpc(
            "insert_ride_with_geometry",
            {
                "p_bike_id": bike_row["id"],
                "p_user_id": "rider-1",
                "p_start_time": "2025-01-05T08:30:00Z",
                "p_end_time": "2025-01-05T09:00:00Z",
                "p_distance_km": 1.5,
                "p_max_lean_left": 20.0,
                "p_max_lean_right": 25.0,
                "p_route_path_geojson": route,
            },
        )
        assert saved["route_path"] == route

        rows = backend.rpc("get_rides_with_geojson", {"p_user_id": "rider-1", "p_bike_id": bike_row["id"]})
        assert [r["id"] for r in rows] == [saved["id"]]
        assert rows[0]["route_path"] == route

    def test_other_rider_gets_nothing(self, backend):
        assert backend.rpc("get_rides_with_geojson", {"p_user_id": "rider-2"}) == []

    def test_unknown_function(self, backend):
        with pytest.raises(BackendError) as excinfo:
            backend.rpc("calculate_everything")
        assert excinfo.value.code == "PGRST202"

"""
Unit tests for the garage service.
"""

import pytest

from apex.core.errors import BikeInUseError, NotAuthenticatedError, PermissionDeniedError, ValidationError
from apex.services.bikes import normalize_bike_form


class TestNormalizeBikeForm:
    def test_cleans_values(self):
        row = normalize_bike_form(
            {"make": " Triumph ", "model": "Speed 400", "year": "2024", "current_odo": "1500.6", "nick_name": " "}
        )
        assert row == {"make": "Triumph", "model": "Speed 400", "year": 2024, "current_odo": 1501, "nick_name": None}

    def test_unknown_fields_dropped(self):
        assert normalize_bike_form({"make": "A", "model": "B", "colour": "red"}) == {"make": "A", "model": "B"}

    @pytest.mark.parametrize(
        "values, field, message",
        [
            ({"make": "", "model": "X"}, "make", "Make and Model are required"),
            ({"make": "A", "model": "  "}, "model", "Make and Model are required"),
            ({"make": "A", "model": "B", "year": "nineteen"}, "year", "Year must be a number"),
            ({"make": "A", "model": "B", "current_odo": "-1"}, "current_odo", "Odometer cannot be negative"),
            ({"make": "A", "model": "B", "current_odo": "far"}, "current_odo", "Odometer must be a number"),
        ],
    )
    def test_errors(self, values, field, message):
        with pytest.raises(ValidationError) as excinfo:
            normalize_bike_form(values)
        assert excinfo.value.field_errors[field] == message


class TestBikeService:
    """Tests for bike CRUD."""

    def test_create(self, services, bike, toasts):
        assert bike.make == "Yamaha"
        assert bike.current_odo == 12000
        assert bike.year == 2021
        assert bike.user_id == "rider-1"
        assert "Bike successfully added to your fleet." in toasts.messages

    def test_create_adds_default_schedules(self, services, bike):
        schedules = {s.part_name: s for s in services.schedules.list(bike.id)}
        assert set(schedules) == {"Chain Lube", "Chain Slack", "Engine Oil"}
        assert schedules["Engine Oil"].interval_km == 5000
        assert schedules["Engine Oil"].interval_months == 6
        assert schedules["Chain Lube"].interval_km == 500
        assert schedules["Chain Slack"].interval_months == 0

    def test_default_schedules_only_once(self, services, bike):
        assert services.schedules.initialize_default_schedules(bike.id) == []
        assert len(services.schedules.list(bike.id)) == 3

    def test_list(self, services, bike):
        second = services.bikes.create("Honda", "CB350", 100)
        assert {b.id for b in services.bikes.list()} == {bike.id, second.id}

    def test_list_served_from_cache(self, services, bike, backend):
        services.bikes.list()
        backend.update("bikes", {"nick_name": "Blue"}, {"id": bike.id})
        assert services.bikes.list()[0].nick_name is None
        assert services.bikes.list(refresh=True)[0].nick_name == "Blue"

    def test_update_refreshes_cached_list(self, services, bike):
        services.bikes.list()
        services.bikes.update(bike.id, nick_name="Blue")
        assert services.bikes.list()[0].nick_name == "Blue"

    def test_update(self, services, bike):
        updated = services.bikes.update(bike.id, nick_name="Blue", current_odo="12500")
        assert updated.nick_name == "Blue"
        assert updated.current_odo == 12500
        assert updated.display_name == "Blue"

    def test_update_other_riders_bike(self, services, bike, backend):
        backend.sign_in("rider-2")
        with pytest.raises(PermissionDeniedError):
            services.bikes.update(bike.id, nick_name="Mine now")

    def test_add_distance_rounds(self, services, bike):
        assert services.bikes.add_distance(bike.id, 12.6).current_odo == 12013
        assert services.bikes.add_distance(bike.id, 0).current_odo == 12013

    def test_delete(self, services, bike, toasts):
        services.bikes.delete(bike.id)
        assert services.bikes.list() == []
        assert toasts.messages[-1] == "Bike deleted"

    def test_delete_with_rides(self, services, bike, make_summary):
        services.rides.save(make_summary(), bike.id)
        with pytest.raises(BikeInUseError, match="associated rides"):
            services.bikes.delete(bike.id)

    def test_delete_unknown(self, services):
        with pytest.raises(PermissionDeniedError):
            services.bikes.delete("missing")

    def test_signed_out(self, services, backend):
        backend.sign_out()
        with pytest.raises(NotAuthenticatedError):
            services.bikes.list()

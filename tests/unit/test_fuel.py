"""
Unit tests for fuel economy and the refuel form.
"""

from datetime import date, datetime, timezone

import pytest

from apex.analysis.fuel import FuelEntry, calculate_mileage, get_last_fuel_price
from apex.core.errors import ValidationError
from apex.core.models import Bike, FuelLog


def make_log(odometer, litres, full=True, price=100.0, day=date(2025, 1, 1), created=None, log_id="f"):
    return FuelLog(
        id=log_id,
        bike_id="b1",
        odometer=odometer,
        litres=litres,
        price_per_litre=price,
        total_cost=round(litres * price, 2),
        is_full_tank=full,
        date=day,
        created_at=created,
    )


class TestCalculateMileage:
    """Tests for tank-to-tank mileage."""

    def test_two_full_tanks(self):
        """Distance between fills over the later fill's litres."""
        logs = [make_log(1000, 10.0), make_log(1300, 10.0)]
        assert calculate_mileage(logs) == 30.0

    def test_uses_two_most_recent_full_tanks(self):
        logs = [make_log(500, 8.0), make_log(1000, 10.0), make_log(1400, 8.0)]
        assert calculate_mileage(logs) == 50.0

    def test_partial_fills_ignored(self):
        logs = [make_log(1000, 10.0), make_log(1100, 3.0, full=False), make_log(1300, 12.0)]
        assert calculate_mileage(logs) == 25.0

    def test_order_independent(self):
        logs = [make_log(1300, 10.0), make_log(1000, 10.0)]
        assert calculate_mileage(logs) == 30.0

    @pytest.mark.parametrize(
        "logs",
        [
            [],
            [make_log(1000, 10.0)],
            [make_log(1000, 10.0), make_log(1300, 10.0, full=False)],
        ],
    )
    def test_needs_two_full_tanks(self, logs):
        assert calculate_mileage(logs) is None

    def test_zero_litres(self):
        assert calculate_mileage([make_log(1000, 10.0), make_log(1300, 0.0)]) is None

    def test_implausible_readings_discarded(self):
        """Negative or absurd figures come from typos, not riding."""
        assert calculate_mileage([make_log(1000, 10.0), make_log(1000, 10.0)]) is None
        assert calculate_mileage([make_log(0, 1.0), make_log(50000, 1.0)]) is None

    def test_rounded_to_two_decimals(self):
        assert calculate_mileage([make_log(1000, 10.0), make_log(1100, 3.0)]) == 33.33


class TestLastFuelPrice:
    def test_empty(self):
        assert get_last_fuel_price([]) is None

    def test_latest_by_date(self):
        logs = [
            make_log(1000, 10.0, price=101.0, day=date(2025, 1, 3)),
            make_log(1300, 10.0, price=99.0, day=date(2025, 1, 1)),
        ]
        assert get_last_fuel_price(logs) == 101.0

    def test_same_day_tie_broken_by_creation(self):
        early = datetime(2025, 1, 1, 8, tzinfo=timezone.utc)
        late = datetime(2025, 1, 1, 18, tzinfo=timezone.utc)
        logs = [
            make_log(1000, 10.0, price=105.0, created=late),
            make_log(1300, 10.0, price=98.0, created=early),
        ]
        assert get_last_fuel_price(logs) == 105.0


class TestFuelEntry:
    """Tests for the refuel form model."""

    def test_derive_total(self):
        entry = FuelEntry(odometer="1000", litres="10", price_per_litre="102.5")
        assert entry.derive() == "total_cost"
        assert entry.total_cost == "1025.00"

    def test_derive_price(self):
        entry = FuelEntry(odometer="1000", litres="8", total_cost="800")
        assert entry.derive() == "price_per_litre"
        assert entry.price_per_litre == "100.00"

    def test_derive_litres(self):
        entry = FuelEntry(odometer="1000", price_per_litre="100", total_cost="550")
        assert entry.derive() == "litres"
        assert entry.litres == "5.50"

    def test_nothing_to_derive(self):
        assert FuelEntry(odometer="1000", litres="10").derive() is None
        assert FuelEntry(litres="10", price_per_litre="100", total_cost="1000").derive() is None

    def test_valid_entry(self):
        entry = FuelEntry(odometer="1000", litres="10", price_per_litre="100", total_cost="1000")
        assert entry.validate() == {}
        assert entry.is_valid

    def test_required_fields(self):
        errors = FuelEntry(date="").validate()
        assert set(errors) == {"odometer", "litres", "total_cost", "date"}

    @pytest.mark.parametrize(
        "field, value, message",
        [
            ("odometer", "-5", "Odometer reading cannot be negative"),
            ("odometer", "abc", "Odometer reading must be a valid number"),
            ("odometer", "1e400", "Odometer reading must be a valid number"),
            ("litres", "1e400", "Litres must be a valid number greater than 0"),
            ("total_cost", "inf", "Total cost must be a valid number >= 0"),
            ("litres", "0", "Litres must be a valid number greater than 0"),
            ("total_cost", "-1", "Total cost must be a valid number >= 0"),
            ("price_per_litre", "-1", "Price per litre must be a valid number >= 0"),
            ("date", "05/01/2025", "Date must be YYYY-MM-DD"),
        ],
    )
    def test_field_messages(self, field, value, message):
        entry = FuelEntry(odometer="1000", litres="10", price_per_litre="100", total_cost="1000")
        setattr(entry, field, value)
        assert entry.validate()[field] == message

    def test_total_must_match_litres_times_price(self):
        entry = FuelEntry(odometer="1000", litres="10", price_per_litre="100", total_cost="1200")
        assert "does not match" in entry.validate()["total_cost"]

    def test_small_rounding_difference_allowed(self):
        entry = FuelEntry(odometer="1000", litres="10.333", price_per_litre="100", total_cost="1033.32")
        assert entry.validate() == {}

    def test_to_row_derives_and_rounds(self):
        entry = FuelEntry(odometer="1234", litres="9.876", total_cost="1000", is_full_tank=True, date="2025-01-05")
        row = entry.to_row("bike-9")
        assert row == {
            "bike_id": "bike-9",
            "odometer": 1234,
            "litres": 9.88,
            "price_per_litre": 101.26,
            "total_cost": 1000.0,
            "is_full_tank": True,
            "date": "2025-01-05",
        }

    def test_to_row_raises_with_field_errors(self):
        with pytest.raises(ValidationError) as excinfo:
            FuelEntry(odometer="", litres="10", total_cost="100").to_row("b1")
        assert "odometer" in excinfo.value.field_errors

    def test_for_bike_prefills(self):
        bike = Bike(id="b1", user_id="u", make="KTM", model="390", current_odo=4321, last_fuel_price=104.2)
        entry = FuelEntry.for_bike(bike)
        assert entry.odometer == "4321"
        assert entry.price_per_litre == "104.2"
        assert entry.litres == ""

    def test_from_log(self):
        entry = FuelEntry.from_log(make_log(1500, 10.0, day=date(2025, 2, 1)))
        assert entry.odometer == "1500"
        assert entry.total_cost == "1000.0"
        assert entry.date == "2025-02-01"
        assert entry.is_full_tank is True

    def test_from_log_with_rounded_price_is_valid(self):
        log = FuelLog(
            id="f", bike_id="b1", odometer=2000, litres=4.88, price_per_litre=102.5,
            total_cost=500.0, is_full_tank=False, date=date(2025, 1, 1),
        )
        entry = FuelEntry.from_log(log)
        assert entry.validate() == {}
        assert entry.to_row("b1")["price_per_litre"] == 102.46


class TestDerivedEntries:
    """Derived values that do not divide evenly still validate and save."""

    def test_litres_from_price_and_total(self):
        entry = FuelEntry(odometer="1000", price_per_litre="102.5", total_cost="500")
        assert entry.derive() == "litres"
        assert entry.litres == "4.88"
        assert entry.validate() == {}
        row = entry.to_row("b1")
        assert row["litres"] == 4.88
        assert row["price_per_litre"] == 102.5
        assert row["total_cost"] == 500.0

    def test_price_from_litres_and_total(self):
        entry = FuelEntry(odometer="1000", litres="30", total_cost="100")
        assert entry.derive() == "price_per_litre"
        assert entry.price_per_litre == "3.33"
        assert entry.validate() == {}
        assert entry.to_row("b1")["price_per_litre"] == 3.33

    @pytest.mark.parametrize(
        "litres, price, total",
        [
            ("", "97.3", "333"),
            ("", "101.99", "1234.56"),
            ("", "3.7", "10"),
            ("7", "", "100"),
            ("13.3", "", "999.99"),
            ("3", "", "10"),
            ("7.777", "99.99", ""),
            ("0.333", "3.33", ""),
        ],
    )
    def test_uneven_derivations_validate(self, litres, price, total):
        entry = FuelEntry(odometer="1000", litres=litres, price_per_litre=price, total_cost=total)
        assert entry.derive() is not None
        assert entry.validate() == {}
        row = entry.to_row("b1")
        assert abs(row["litres"] * row["price_per_litre"] - row["total_cost"]) < 1.0

    @pytest.mark.parametrize(
        "total, valid",
        [("1000.04", True), ("999.96", True), ("1000.06", False), ("999.94", False)],
    )
    def test_tolerance_boundary(self, total, valid):
        entry = FuelEntry(odometer="1000", litres="10", price_per_litre="100", total_cost=total)
        assert entry.is_valid is valid

    def test_all_three_typed_are_cross_checked(self):
        entry = FuelEntry(odometer="1000", litres="10", price_per_litre="100", total_cost="1000")
        entry.derive()
        entry.total_cost = "1100"
        assert "does not match" in entry.validate()["total_cost"]

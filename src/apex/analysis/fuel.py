"""
Fuel economy and the refuel form model.

Mileage is measured tank-to-tank: the distance between the two most recent
full-tank fills divided by the litres of the later fill, which is what it
took to refill the distance covered since the earlier one.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Sequence

from ..core.errors import ValidationError
from ..core.models import Bike, FuelLog, isoformat, parse_date

logger = logging.getLogger(__name__)

# Absolute difference allowed between litres * price and total cost.
FUEL_TOLERANCE = 0.05

# Mileage readings above this are treated as data-entry mistakes.
MAX_PLAUSIBLE_MILEAGE = 1000.0


def calculate_mileage(logs: Sequence[FuelLog]) -> float | None:
    """
    Calculate km/L from the two most recent full-tank logs.

    Args:
        logs: Fuel logs for one bike, in any order

    Returns:
        Mileage rounded to 2 decimals, or None when it cannot be measured
    """
    full_tanks = sorted((log for log in logs if log.is_full_tank), key=lambda log: log.odometer, reverse=True)
    if len(full_tanks) < 2:
        return None

    latest, previous = full_tanks[0], full_tanks[1]
    if latest.litres == 0:
        return None

    mileage = (latest.odometer - previous.odometer) / latest.litres
    if mileage <= 0 or mileage > MAX_PLAUSIBLE_MILEAGE:
        logger.debug(f"Discarding implausible mileage {mileage:.2f} km/L")
        return None

    return round(mileage, 2)


def get_last_fuel_price(logs: Sequence[FuelLog]) -> float | None:
    """Price per litre of the most recent fill (by date, then creation time)."""
    if not logs:
        return None
    latest = max(
        logs,
        key=lambda log: (log.date, isoformat(log.created_at) or ""),
    )
    return latest.price_per_litre


def _parse_number(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return float("nan")


def _is_number(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


@dataclass
class FuelEntry:
    """
    Refuel form state.

    Fields hold what the rider typed (strings or numbers). Any two of
    litres, price per litre and total cost determine the third. ``derived``
    names the one computed from the other two; its text is the 2-decimal
    display value, and checks and saved rows recompute it at full precision.
    """

    odometer: Any = ""
    litres: Any = ""
    price_per_litre: Any = ""
    total_cost: Any = ""
    is_full_tank: bool = False
    date: Any = field(default_factory=lambda: date.today().isoformat())
    derived: str | None = None

    @classmethod
    def for_bike(cls, bike: Bike) -> "FuelEntry":
        """New entry prefilled with the bike's odometer and last fuel price."""
        return cls(
            odometer=str(bike.current_odo),
            price_per_litre="" if bike.last_fuel_price is None else str(bike.last_fuel_price),
        )

    @classmethod
    def from_log(cls, log: FuelLog) -> "FuelEntry":
        return cls(
            odometer=str(log.odometer),
            litres=str(log.litres),
            price_per_litre=str(log.price_per_litre),
            total_cost=str(log.total_cost),
            is_full_tank=log.is_full_tank,
            date=isoformat(log.date),
            derived="price_per_litre",
        )

    def derive(self) -> str | None:
        """
        Fill in the missing one of litres, price and total.

        Returns:
            Name of the field that was derived, or None
        """
        litres = _parse_number(self.litres)
        price = _parse_number(self.price_per_litre)
        total = _parse_number(self.total_cost)
        have_litres, have_price, have_total = _is_number(litres), _is_number(price), _is_number(total)

        if have_litres and have_price and total is None:
            self.total_cost = f"{litres * price:.2f}"
            self.derived = "total_cost"
        elif have_litres and have_total and price is None and litres > 0:
            self.price_per_litre = f"{total / litres:.2f}"
            self.derived = "price_per_litre"
        elif have_price and have_total and litres is None and price > 0:
            self.litres = f"{total / price:.2f}"
            self.derived = "litres"
        else:
            return None
        return self.derived

    def _amounts(self) -> tuple[float | None, float | None, float | None]:
        """Litres, price and total, with the derived one unrounded."""
        litres = _parse_number(self.litres)
        price = _parse_number(self.price_per_litre)
        total = _parse_number(self.total_cost)
        if self.derived == "total_cost" and _is_number(litres) and _is_number(price):
            total = litres * price
        elif self.derived == "price_per_litre" and _is_number(total) and _is_number(litres) and litres > 0:
            price = total / litres
        elif self.derived == "litres" and _is_number(total) and _is_number(price) and price > 0:
            litres = total / price
        return litres, price, total

    def validate(self) -> dict[str, str]:
        """Return field name -> message for every invalid field."""
        errors: dict[str, str] = {}

        odometer = _text(self.odometer)
        if not odometer:
            errors["odometer"] = "Odometer reading is required"
        else:
            try:
                if int(float(odometer)) < 0:
                    errors["odometer"] = "Odometer reading cannot be negative"
            except (ValueError, OverflowError):
                errors["odometer"] = "Odometer reading must be a valid number"

        litres, price, total = self._amounts()
        if litres is None:
            errors["litres"] = "Litres is required"
        elif not _is_number(litres) or litres <= 0:
            errors["litres"] = "Litres must be a valid number greater than 0"

        if total is None:
            errors["total_cost"] = "Total cost is required"
        elif not _is_number(total) or total < 0:
            errors["total_cost"] = "Total cost must be a valid number >= 0"

        if price is not None and (not _is_number(price) or price < 0):
            errors["price_per_litre"] = "Price per litre must be a valid number >= 0"

        if not _text(self.date):
            errors["date"] = "Date is required"
        else:
            try:
                parse_date(_text(self.date))
            except ValueError:
                errors["date"] = "Date must be YYYY-MM-DD"

        if not errors and _is_number(price) and abs(litres * price - total) > FUEL_TOLERANCE:
            errors["total_cost"] = (
                f"Total cost {total:.2f} does not match {litres:.2f} L x {price:.2f}/L"
            )

        return errors

    @property
    def is_valid(self) -> bool:
        return not self.validate()

    def to_row(self, bike_id: str) -> dict[str, Any]:
        """
        Build the ``fuel_logs`` row, deriving and rounding values.

        Raises:
            ValidationError: If any field is invalid
        """
        self.derive()
        errors = self.validate()
        if errors:
            raise ValidationError(errors)

        litres, price, total = self._amounts()
        if not _is_number(price):
            price = total / litres

        return {
            "bike_id": bike_id,
            "odometer": int(float(_text(self.odometer))),
            "litres": round(litres, 2),
            "price_per_litre": round(price, 2),
            "total_cost": round(total, 2),
            "is_full_tank": bool(self.is_full_tank),
            "date": isoformat(parse_date(_text(self.date))),
        }

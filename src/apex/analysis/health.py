"""
Maintenance health for a scheduled part.

Health % = 100 - max(km_used / interval_km, months_used / interval_months) * 100,
clamped to [0, 100]. A part with a calendar interval that has never been
serviced is at 0%.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from ..core.models import MaintenanceSchedule

DAYS_PER_MONTH = 30.44

HEALTHY_THRESHOLD = 60
SERVICE_THRESHOLD = 20

GREEN = "#00FF41"
ORANGE = "#FFA500"
RED = "#FF3B30"


@dataclass
class HealthReport:
    """Health of one schedule at a point in time."""

    health: float
    km_used: int
    time_used: float
    km_remaining: int
    time_remaining: float

    @property
    def color(self) -> str:
        return health_color(self.health)

    @property
    def needs_service(self) -> bool:
        return needs_service(self.health)

    def to_dict(self) -> dict[str, Any]:
        return {
            "health": round(self.health, 1),
            "km_used": self.km_used,
            "time_used": round(self.time_used, 1),
            "km_remaining": self.km_remaining,
            "time_remaining": round(self.time_remaining, 1),
            "color": self.color,
            "needs_service": self.needs_service,
        }


def calculate_health(
    schedule: MaintenanceSchedule,
    current_odo: int,
    now: date | datetime | None = None,
) -> HealthReport:
    """
    Calculate the health of a schedule.

    Args:
        schedule: The maintenance schedule
        current_odo: Bike odometer in km
        now: Reference time (defaults to today)

    Returns:
        HealthReport with usage and remaining figures
    """
    if now is None:
        now = date.today()
    today = now.date() if isinstance(now, datetime) else now

    km_used = max(0, current_odo - (schedule.last_service_odo or 0))
    km_remaining = max(0, schedule.interval_km - km_used)

    time_used = 0.0
    time_remaining = 0.0
    if schedule.interval_months > 0 and schedule.last_service_date is not None:
        months = (today - schedule.last_service_date).days / DAYS_PER_MONTH
        time_used = max(0.0, months)
        time_remaining = max(0.0, schedule.interval_months - time_used)

    health = 100.0
    if schedule.interval_km > 0:
        health = min(health, 100 - km_used / schedule.interval_km * 100)
    if schedule.interval_months > 0:
        if schedule.last_service_date is not None:
            health = min(health, 100 - time_used / schedule.interval_months * 100)
        else:
            health = 0.0

    health = max(0.0, min(100.0, health))

    return HealthReport(
        health=health,
        km_used=km_used,
        time_used=time_used,
        km_remaining=km_remaining,
        time_remaining=time_remaining,
    )


def health_color(health: float) -> str:
    """Green at 60% and above, orange from 20%, red below."""
    if health >= HEALTHY_THRESHOLD:
        return GREEN
    if health >= SERVICE_THRESHOLD:
        return ORANGE
    return RED


def needs_service(health: float) -> bool:
    return health < SERVICE_THRESHOLD

"""Wiring of all backend-facing services around one backend and cache."""

import logging
from dataclasses import dataclass, field

from ..backend.base import Backend
from ..core.cache import QueryCache
from ..core.preferences import Preferences
from ..core.toasts import Toaster, log_toast
from .bikes import BikeService
from .fuel_logs import FuelLogService
from .maintenance import MaintenanceLogService, MaintenanceScheduleService, ServiceHistoryService
from .notifications import (
    SERVICE_INTERVAL_KM,
    MaintenanceChecker,
    NotificationService,
    NotificationStore,
    ReminderScheduler,
)
from .rides import RideService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every service the app and the web API use, sharing one cache and toaster."""

    backend: Backend
    preferences: Preferences
    cache: QueryCache
    toast: Toaster
    reminders: ReminderScheduler
    schedules: MaintenanceScheduleService
    bikes: BikeService
    rides: RideService
    fuel_logs: FuelLogService
    maintenance_logs: MaintenanceLogService
    service_history: ServiceHistoryService
    notifications: NotificationService
    store: NotificationStore = field(default_factory=NotificationStore)
    checker: MaintenanceChecker | None = None

    def close(self) -> None:
        self.backend.close()


def create_services(
    backend: Backend,
    preferences: Preferences | None = None,
    toast: Toaster | None = None,
    service_interval_km: int = SERVICE_INTERVAL_KM,
) -> Services:
    """
    Build the service graph.

    Args:
        backend: Data backend
        preferences: Device-local store, in-memory when omitted
        toast: User feedback callback, logs when omitted
        service_interval_km: Distance between general services for the checker
    """
    preferences = preferences or Preferences()
    toast = toast or log_toast
    cache = QueryCache()

    reminders = ReminderScheduler(preferences)
    schedules = MaintenanceScheduleService(backend, cache, toast, reminders=reminders)
    bikes = BikeService(backend, cache, toast, schedules=schedules)
    store = NotificationStore()

    services = Services(
        backend=backend,
        preferences=preferences,
        cache=cache,
        toast=toast,
        reminders=reminders,
        schedules=schedules,
        bikes=bikes,
        rides=RideService(backend, cache, toast, bikes=bikes),
        fuel_logs=FuelLogService(backend, cache, toast),
        maintenance_logs=MaintenanceLogService(backend, cache, toast),
        service_history=ServiceHistoryService(backend, cache, toast),
        notifications=NotificationService(backend, cache, toast),
        store=store,
        checker=MaintenanceChecker(backend, store, toast, service_interval_km),
    )
    logger.debug(f"Services created on {type(backend).__name__}")
    return services

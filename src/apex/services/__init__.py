"""Backend-facing services: garage, rides, fuel, maintenance, notifications and exports."""

from .bikes import BikeService
from .container import Services, create_services
from .fuel_logs import FuelLogService
from .gpx import export_gpx, generate_gpx
from .maintenance import MaintenanceLogService, MaintenanceScheduleService, ServiceHistoryService
from .notifications import MaintenanceChecker, NotificationService, NotificationStore, ReminderScheduler
from .rides import RideService
from .updates import AppUpdateChecker, UpdateInfo, compare_versions

__all__ = [
    "BikeService",
    "Services",
    "create_services",
    "FuelLogService",
    "export_gpx",
    "generate_gpx",
    "MaintenanceLogService",
    "MaintenanceScheduleService",
    "ServiceHistoryService",
    "MaintenanceChecker",
    "NotificationService",
    "NotificationStore",
    "ReminderScheduler",
    "RideService",
    "AppUpdateChecker",
    "UpdateInfo",
    "compare_versions",
]

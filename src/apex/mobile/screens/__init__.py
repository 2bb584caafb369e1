"""Screen modules for Apex mobile UI."""

from .dashboard_screen import DashboardScreen
from .garage_screen import GarageScreen
from .notifications_screen import NotificationsScreen
from .rides_screen import RidesScreen
from .service_screen import ServiceScreen
from .settings_screen import SettingsScreen

__all__ = [
    "DashboardScreen",
    "GarageScreen",
    "NotificationsScreen",
    "RidesScreen",
    "ServiceScreen",
    "SettingsScreen",
]

"""Widget modules for Apex mobile UI."""

from .health_card import HealthCard
from .lean_gauge import LeanGauge
from .refuel_popup import RefuelPopup
from .ride_button import RideButton
from .toast import kivy_toaster, show_toast
from .update_popup import UpdatePopup

__all__ = ["HealthCard", "LeanGauge", "RefuelPopup", "RideButton", "UpdatePopup", "kivy_toaster", "show_toast"]

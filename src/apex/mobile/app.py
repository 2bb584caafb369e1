"""
Apex Kivy Application - motorcycle ride tracker and garage.

Main entry point for the Kivy-based mobile/desktop application.
"""

import logging
import os
import platform as sys_platform
import threading
import webbrowser

# Prevent Kivy from consuming command-line arguments
os.environ["KIVY_NO_ARGS"] = "1"

from kivy.app import App
from kivy.clock import Clock
from kivy.core.window import Window
from kivy.logger import Logger
from kivy.uix.boxlayout import BoxLayout
from kivy.uix.screenmanager import NoTransition, ScreenManager
from kivy.uix.togglebutton import ToggleButton
from kivy.utils import platform as kivy_platform
from plyer import notification

from .. import __version__
from ..backend import get_backend
from ..core.config import Config
from ..core.log_buffer import LogBuffer
from ..core.preferences import Preferences
from ..core.recorder import RideRecorder
from ..core.sensors import get_sensor_providers
from ..core.toasts import ToastLevel
from ..services.bug_report import create_bug_report_payload, open_bug_report
from ..services.container import create_services
from ..services.notifications import Reminder
from ..services.updates import DEFAULT_REPO, AppUpdateChecker, UpdateInfo
from .screens.dashboard_screen import DashboardScreen
from .screens.garage_screen import GarageScreen
from .screens.notifications_screen import NotificationsScreen
from .screens.rides_screen import RidesScreen
from .screens.service_screen import ServiceScreen
from .screens.settings_screen import AUTO_PAUSE_KEY, SettingsScreen
from .widgets.toast import kivy_toaster, show_toast
from .widgets.update_popup import UpdatePopup

logger = logging.getLogger(__name__)

REMINDER_POLL_SECONDS = 60
NAV_ITEMS = (
    ("dashboard", "Ride"),
    ("garage", "Garage"),
    ("rides", "Rides"),
    ("service", "Service"),
    ("notifications", "Alerts"),
    ("settings", "Settings"),
)


class ApexApp(App):
    """
    Main Apex Kivy application.

    Coordinates:
    - Sensors (via get_sensor_providers) feeding the RideRecorder
    - Data services (via create_services) on the configured backend
    - Local service reminders, the overdue-service check and update checks
    - Navigation between the screens
    """

    def __init__(self, app_config: Config | None = None, log_buffer: LogBuffer | None = None, **kwargs):
        """
        Initialize the Apex app.

        Args:
            app_config: Optional Config object. If not provided, loads from default location.
            log_buffer: Recent log lines, attached to bug reports
        """
        super().__init__(**kwargs)

        # app_config avoids clashing with Kivy's own App.config
        if app_config is None:
            app_config = Config()
        self.app_config = app_config
        self.log_buffer = log_buffer

        self.platform_type = self._detect_platform()

        self.data_dir = app_config.data_dir
        self.exports_dir = app_config.exports_dir
        os.makedirs(self.exports_dir, exist_ok=True)

        # Components (initialized in build())
        self.preferences = None
        self.services = None
        self.recorder = None
        self.location_provider = None
        self.motion_provider = None
        self.update_checker = None
        self.screen_manager = None
        self._nav_buttons: dict[str, ToggleButton] = {}

        Logger.info(f"Apex: Initialized on {sys_platform.system()} ({self.platform_type})")
        Logger.info(f"Apex: Data directory: {self.data_dir}")

    def _detect_platform(self) -> str:
        """Detect current platform type."""
        return "android" if kivy_platform == "android" else "desktop"

    def build(self):
        """Build the application UI."""
        if self.platform_type == "desktop":
            Window.size = (480, 900)
            self.title = "Apex"

        self.preferences = Preferences(self.app_config.preferences_path)
        self.services = create_services(
            get_backend(self.app_config),
            self.preferences,
            toast=kivy_toaster,
            service_interval_km=self.app_config.get("maintenance.service_interval_km", 5000),
        )
        Logger.info("Apex: Services initialized")

        recording_config = dict(self.app_config.get("recording", {}) or {})
        saved_pause = self.preferences.get(AUTO_PAUSE_KEY)
        if saved_pause:
            recording_config["auto_pause_minutes"] = float(saved_pause)
        self.recorder = RideRecorder(recording_config, self.preferences, kivy_toaster)

        self.location_provider, self.motion_provider = get_sensor_providers(recording_config, self.platform_type)
        Logger.info(
            f"Apex: Sensors initialized ({type(self.location_provider).__name__}, "
            f"{type(self.motion_provider).__name__})"
        )

        self.update_checker = AppUpdateChecker(
            self.preferences,
            __version__,
            platform_type=self.platform_type,
            repo=self.app_config.get("updates.repo") or DEFAULT_REPO,
            interval_hours=self.app_config.get("updates.check_interval_hours", 24),
            timeout=self.app_config.get("updates.timeout", 10),
        )

        self.screen_manager = ScreenManager(transition=NoTransition())
        self.screen_manager.add_widget(DashboardScreen(self.services, self.recorder, self))
        self.screen_manager.add_widget(GarageScreen(self.services))
        self.screen_manager.add_widget(RidesScreen(self.services, self.exports_dir, self.platform_type))
        self.screen_manager.add_widget(ServiceScreen(self.services))
        self.screen_manager.add_widget(NotificationsScreen(self.services))
        self.screen_manager.add_widget(SettingsScreen(self.recorder, self))

        root = BoxLayout(orientation="vertical")
        root.add_widget(self.screen_manager)
        root.add_widget(self._create_nav_bar())

        self.services.store.add_listener(lambda store: Clock.schedule_once(lambda dt: self._update_badge()))
        return root

    def _create_nav_bar(self) -> BoxLayout:
        nav = BoxLayout(orientation="horizontal", size_hint_y=None, height=56)
        for name, label in NAV_ITEMS:
            button = ToggleButton(
                text=label,
                group="nav",
                font_size="12sp",
                state="down" if name == "dashboard" else "normal",
                allow_no_selection=False,
            )
            button.bind(on_press=lambda x, name=name: self.show_screen(name))
            self._nav_buttons[name] = button
            nav.add_widget(button)
        return nav

    def show_screen(self, name: str) -> None:
        self.screen_manager.current = name
        self._nav_buttons[name].state = "down"

    def _update_badge(self) -> None:
        unread = self.services.store.unread_count
        self._nav_buttons["notifications"].text = f"Alerts ({unread})" if unread else "Alerts"

    # Sensors

    def start_sensors(self) -> None:
        if not self.location_provider.start(self.recorder.add_position):
            Logger.error("Apex: Failed to start location updates")
            kivy_toaster(ToastLevel.ERROR, "Location unavailable. Check GPS permission.")
        if not self.motion_provider.start(self.recorder.add_motion):
            Logger.warning("Apex: Motion sensor unavailable; lean angle disabled")

    def stop_sensors(self) -> None:
        self.location_provider.stop()
        self.motion_provider.stop()

    # Lifecycle

    def on_start(self):
        """Called when the application starts."""
        Logger.info("Apex: Application starting")
        Clock.schedule_interval(self._poll_reminders, REMINDER_POLL_SECONDS)
        self._poll_reminders(0)
        threading.Thread(target=self._run_maintenance_check, daemon=True).start()
        self.check_for_updates()

    def on_stop(self):
        """Called when the application stops."""
        Logger.info("Apex: Application stopping")

        self.stop_sensors()
        if self.recorder and self.recorder.is_recording:
            summary = self.recorder.stop()
            bike = self.screen_manager.get_screen("dashboard").bike_spinner.selected
            if summary is not None and bike is not None:
                try:
                    self.services.rides.save(summary, bike.id)
                except Exception as e:  # noqa: BLE001
                    Logger.error(f"Apex: Ride in progress not saved: {e}")

        if self.services:
            self.services.close()

        Logger.info("Apex: Application stopped")

    def on_pause(self):
        # Keep recording while backgrounded on Android.
        return True

    # Background jobs

    def _run_maintenance_check(self):
        try:
            self.services.checker.check()
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Maintenance check failed: {e}")

    def _poll_reminders(self, dt):
        for reminder in self.services.reminders.pop_due():
            self._notify(reminder)

    def _notify(self, reminder: Reminder):
        Logger.info(f"Apex: Reminder due: {reminder.title}")
        try:
            notification.notify(title=reminder.title, message=reminder.body, app_name="Apex")
        except Exception as e:  # noqa: BLE001
            logger.debug(f"System notification unavailable ({e}); showing toast")
            show_toast(f"{reminder.title}: {reminder.body}", ToastLevel.INFO, duration=6.0)

    def check_for_updates(self, force: bool = False) -> None:
        """Check for a newer release off the UI thread; show it when found."""

        def worker():
            info = self.update_checker.check(force=force)
            error = self.update_checker.last_error
            Clock.schedule_once(lambda dt: self._on_update_result(info, error, force))

        threading.Thread(target=worker, daemon=True).start()

    def _on_update_result(self, info: UpdateInfo | None, error: str | None, force: bool):
        if info is not None:
            UpdatePopup(info, on_download=webbrowser.open, on_later=self.update_checker.dismiss).open()
        elif force and error:
            kivy_toaster(ToastLevel.ERROR, error)
        elif force:
            kivy_toaster(ToastLevel.SUCCESS, "You're on the latest version")

    def report_bug(self) -> None:
        url = create_bug_report_payload(
            self.log_buffer,
            repo=self.app_config.get("bug_report.repo") or DEFAULT_REPO,
            log_lines=self.app_config.get("bug_report.log_lines", 50),
            platform_type=self.platform_type,
        )
        if not open_bug_report(url):
            kivy_toaster(ToastLevel.ERROR, "Could not open the browser")


def run_mobile_app(config: Config | None = None, log_buffer: LogBuffer | None = None):
    """
    Run the Apex mobile/desktop Kivy application.

    Args:
        config: Optional Config object.
        log_buffer: Recent log lines for bug reports.
    """
    app = ApexApp(app_config=config, log_buffer=log_buffer)
    app.run()

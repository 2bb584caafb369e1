"""
Dashboard screen for Apex.

Ride recorder: live lean gauge, distance, speed and elapsed time, with
start/stop, pause, calibration and pocket mode controls.
"""

import logging

from kivy.clock import Clock
from kivy.uix.boxlayout import BoxLayout
from kivy.uix.button import Button
from kivy.uix.label import Label
from kivy.uix.screenmanager import Screen
from kivy.uix.togglebutton import ToggleButton

from ...core.recorder import RecorderState, RideRecorder
from ...core.toasts import ToastLevel
from ...services.container import Services
from ...utils.formatting import format_km
from ..widgets.lean_gauge import LeanGauge
from ..widgets.ride_button import RideButton
from .common import BikeSpinner, left_label

logger = logging.getLogger(__name__)

REFRESH_INTERVAL = 0.2


def format_elapsed(seconds: float) -> str:
    seconds = int(seconds)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}" if hours else f"{minutes:02d}:{secs:02d}"


class StatTile(BoxLayout):
    """Caption over a large value."""

    def __init__(self, caption: str, value: str = "--", **kwargs):
        kwargs.setdefault("orientation", "vertical")
        super().__init__(**kwargs)
        self.add_widget(Label(text=caption, font_size="12sp", color=(0.6, 0.6, 0.6, 1), size_hint_y=0.35))
        self.value_label = Label(text=value, font_size="24sp", bold=True)
        self.add_widget(self.value_label)

    @property
    def value(self) -> str:
        return self.value_label.text

    @value.setter
    def value(self, text: str) -> None:
        self.value_label.text = text


class DashboardScreen(Screen):
    """
    Ride recording screen.

    Layout:
    ┌─────────────────────────────────────┐
    │  [Bike spinner               v]     │
    │            LEAN GAUGE               │
    │  Distance    Speed      Time        │
    │  [Calibrate] (START) [Pause][Pocket]│
    └─────────────────────────────────────┘
    """

    def __init__(self, services: Services, recorder: RideRecorder, app, **kwargs):
        kwargs.setdefault("name", "dashboard")
        super().__init__(**kwargs)

        self.services = services
        self.recorder = recorder
        self.app = app
        self._refresh_event = None

        self._create_ui()

    def _create_ui(self):
        root = BoxLayout(orientation="vertical", padding=[16, 12, 16, 12], spacing=10)

        top = BoxLayout(orientation="horizontal", size_hint_y=None, height=44, spacing=8)
        top.add_widget(left_label("Ride", font_size="20sp", bold=True, size_hint_x=0.3))
        self.bike_spinner = BikeSpinner()
        top.add_widget(self.bike_spinner)
        root.add_widget(top)

        self.status_label = Label(text="Ready", font_size="14sp", size_hint_y=None, height=24)
        root.add_widget(self.status_label)

        self.gauge = LeanGauge(size_hint_y=0.5)
        root.add_widget(self.gauge)

        stats = BoxLayout(orientation="horizontal", size_hint_y=None, height=80)
        self.distance_tile = StatTile("DISTANCE", "0.0 km")
        self.speed_tile = StatTile("SPEED", "0 km/h")
        self.time_tile = StatTile("TIME", "00:00")
        for tile in (self.distance_tile, self.speed_tile, self.time_tile):
            stats.add_widget(tile)
        root.add_widget(stats)

        controls = BoxLayout(orientation="horizontal", size_hint_y=None, height=150, spacing=12)
        self.calibrate_btn = Button(text="Calibrate", font_size="14sp")
        self.calibrate_btn.bind(on_press=self._on_calibrate)
        controls.add_widget(self.calibrate_btn)

        self.ride_button = RideButton(on_toggle=self._on_ride_toggle)
        controls.add_widget(self.ride_button)

        side = BoxLayout(orientation="vertical", spacing=8)
        self.pause_btn = Button(text="Pause", font_size="14sp", disabled=True)
        self.pause_btn.bind(on_press=self._on_pause)
        side.add_widget(self.pause_btn)
        self.pocket_btn = ToggleButton(text="Pocket", font_size="14sp")
        self.pocket_btn.bind(state=self._on_pocket)
        side.add_widget(self.pocket_btn)
        controls.add_widget(side)
        root.add_widget(controls)

        self.add_widget(root)

    def on_pre_enter(self, *args):
        self.refresh_bikes()
        if self._refresh_event is None:
            self._refresh_event = Clock.schedule_interval(self._refresh, REFRESH_INTERVAL)

    def on_leave(self, *args):
        # Keep refreshing while a ride is in progress so the state stays current on return.
        if self._refresh_event is not None and not self.recorder.is_recording:
            self._refresh_event.cancel()
            self._refresh_event = None

    def refresh_bikes(self):
        try:
            bikes = self.services.bikes.list()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to load bikes: {e}")
            bikes = []
        self.bike_spinner.set_bikes(bikes)
        self.bike_spinner.disabled = self.recorder.is_recording

    def _refresh(self, dt):
        recorder = self.recorder
        self.gauge.update(recorder.current_lean, recorder.max_lean_left, recorder.max_lean_right)
        self.distance_tile.value = format_km(recorder.distance_km, 2)
        self.speed_tile.value = f"{recorder.speed_kmh:.0f} km/h"
        self.time_tile.value = format_elapsed(recorder.elapsed_seconds)

        state = recorder.state
        self.status_label.text = {
            RecorderState.IDLE: "Ready",
            RecorderState.RECORDING: "Recording" + (" (pocket)" if recorder.pocket_mode else ""),
            RecorderState.PAUSED: "Paused",
        }[state]
        self.pause_btn.disabled = state == RecorderState.IDLE
        self.pause_btn.text = "Resume" if state == RecorderState.PAUSED else "Pause"
        self.ride_button.set_riding(state != RecorderState.IDLE)

    def _on_ride_toggle(self, riding: bool) -> None:
        if riding:
            self._start_ride()
        else:
            self._stop_ride()

    def _start_ride(self) -> None:
        bike = self.bike_spinner.selected
        if bike is None:
            self.ride_button.set_riding(False)
            self.services.toast(ToastLevel.ERROR, "Add a bike to your garage before riding")
            return
        if not self.recorder.start():
            self.ride_button.set_riding(False)
            return
        self.app.start_sensors()
        self.bike_spinner.disabled = True
        self.gauge.reset()
        logger.info(f"Ride started on {bike.display_name}")

    def _stop_ride(self) -> None:
        self.app.stop_sensors()
        summary = self.recorder.stop()
        self.bike_spinner.disabled = False
        bike = self.bike_spinner.selected
        if summary is None or bike is None:
            return
        try:
            self.services.rides.save(summary, bike.id)
        except Exception as e:  # noqa: BLE001
            # RideService already toasted the failure.
            logger.error(f"Ride not saved: {e}")
            return
        self.refresh_bikes()

    def _on_pause(self, instance):
        self.recorder.toggle_pause()

    def _on_calibrate(self, instance):
        self.recorder.calibrate()

    def _on_pocket(self, instance, state):
        self.recorder.pocket_mode = state == "down"

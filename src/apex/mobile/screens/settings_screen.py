"""
Settings screen for Apex.

Riding options, lean calibration, app updates and bug reporting.
"""

import logging
from typing import Callable

from kivy.uix.boxlayout import BoxLayout
from kivy.uix.button import Button
from kivy.uix.label import Label
from kivy.uix.popup import Popup
from kivy.uix.screenmanager import Screen
from kivy.uix.scrollview import ScrollView
from kivy.uix.slider import Slider
from kivy.uix.switch import Switch

from ... import __version__
from ...core.recorder import RideRecorder
from .common import MUTED_COLOR, confirm, screen_header

logger = logging.getLogger(__name__)

AUTO_PAUSE_KEY = "auto_pause_minutes"
DEBUG_LOG_LINES = 200


class SettingRow(BoxLayout):
    """A single setting row with label and control."""

    def __init__(self, label: str, **kwargs):
        kwargs.setdefault("orientation", "horizontal")
        kwargs.setdefault("size_hint_y", None)
        kwargs.setdefault("height", 50)
        kwargs.setdefault("padding", [10, 5, 10, 5])
        super().__init__(**kwargs)

        self.label = Label(
            text=label,
            font_size="14sp",
            size_hint=(0.5, 1),
            halign="left",
            valign="middle",
        )
        self.label.bind(size=self.label.setter("text_size"))
        self.add_widget(self.label)


class SwitchSetting(SettingRow):
    """Toggle switch setting."""

    def __init__(
        self,
        label: str,
        initial_value: bool = False,
        on_change: Callable[[bool], None] | None = None,
        **kwargs,
    ):
        super().__init__(label, **kwargs)

        self.on_change = on_change
        self.switch = Switch(active=initial_value, size_hint=(0.5, 1))
        self.switch.bind(active=self._on_active)
        self.add_widget(self.switch)

    def _on_active(self, instance, value):
        if self.on_change:
            self.on_change(value)

    @property
    def value(self) -> bool:
        return self.switch.active


class SliderSetting(SettingRow):
    """Numeric slider setting."""

    def __init__(
        self,
        label: str,
        min_value: float = 0,
        max_value: float = 100,
        initial_value: float = 50,
        step: float = 1,
        on_change: Callable[[float], None] | None = None,
        **kwargs,
    ):
        kwargs.setdefault("height", 70)
        super().__init__(label, **kwargs)

        self.on_change = on_change

        control_layout = BoxLayout(orientation="vertical", size_hint=(0.5, 1))
        self.value_label = Label(text=f"{initial_value:.0f}", font_size="12sp", size_hint_y=0.3)
        control_layout.add_widget(self.value_label)
        self.slider = Slider(min=min_value, max=max_value, value=initial_value, step=step, size_hint_y=0.7)
        self.slider.bind(value=self._on_value)
        control_layout.add_widget(self.slider)

        self.add_widget(control_layout)

    def _on_value(self, instance, value):
        self.value_label.text = f"{value:.0f}"
        if self.on_change:
            self.on_change(value)

    @property
    def value(self) -> float:
        return self.slider.value


class ActionSetting(SettingRow):
    """Label with a button on the right."""

    def __init__(self, label: str, button_text: str, on_press: Callable[[], None], **kwargs):
        super().__init__(label, **kwargs)
        button = Button(text=button_text, size_hint=(0.5, 1), font_size="14sp")
        button.bind(on_press=lambda x: on_press())
        self.add_widget(button)


class SettingsScreen(Screen):
    """
    Settings screen.

    Sections:
    - Riding: pocket mode, auto-pause
    - Lean angle: calibrate, reset calibration
    - App: updates, bug report, debug log
    """

    def __init__(self, recorder: RideRecorder, app, **kwargs):
        kwargs.setdefault("name", "settings")
        super().__init__(**kwargs)
        self.recorder = recorder
        self.app = app
        self._create_ui()

    def _create_ui(self):
        root = BoxLayout(orientation="vertical", padding=[10, 10, 10, 10], spacing=10)
        root.add_widget(screen_header("Settings"))

        scroll_view = ScrollView(size_hint=(1, 1))
        settings_layout = BoxLayout(orientation="vertical", size_hint_y=None, spacing=5, padding=[0, 10, 0, 10])
        settings_layout.bind(minimum_height=settings_layout.setter("height"))

        settings_layout.add_widget(self._create_section_header("Riding"))
        self.pocket_setting = SwitchSetting(
            label="Pocket Mode",
            initial_value=self.recorder.pocket_mode,
            on_change=self._on_pocket_mode_change,
        )
        settings_layout.add_widget(self.pocket_setting)
        settings_layout.add_widget(
            SliderSetting(
                label="Auto-pause (minutes)",
                min_value=1,
                max_value=30,
                initial_value=self.recorder.auto_pause_seconds / 60,
                step=1,
                on_change=self._on_auto_pause_change,
            )
        )

        settings_layout.add_widget(self._create_section_header("Lean Angle"))
        self.offset_label = Label(text="", font_size="12sp", color=MUTED_COLOR, size_hint_y=None, height=30)
        settings_layout.add_widget(self.offset_label)
        settings_layout.add_widget(ActionSetting("Hold the bike upright", "Calibrate", self._on_calibrate))
        settings_layout.add_widget(ActionSetting("Forget calibration", "Reset", self._on_reset_calibration))

        settings_layout.add_widget(self._create_section_header("App"))
        settings_layout.add_widget(
            ActionSetting(f"Version {__version__}", "Check for Updates", lambda: self.app.check_for_updates(force=True))
        )
        settings_layout.add_widget(ActionSetting("Something wrong?", "Report Bug", self.app.report_bug))
        settings_layout.add_widget(ActionSetting("Recent log output", "Show Logs", self._show_logs))

        scroll_view.add_widget(settings_layout)
        root.add_widget(scroll_view)
        self.add_widget(root)
        self._update_offset_label()

    def _create_section_header(self, text: str) -> Label:
        return Label(
            text=text,
            font_size="16sp",
            bold=True,
            color=(0.4, 0.7, 1.0, 1),
            size_hint_y=None,
            height=40,
            halign="left",
            valign="bottom",
        )

    def on_pre_enter(self, *args):
        self.pocket_setting.switch.active = self.recorder.pocket_mode
        self._update_offset_label()

    def _update_offset_label(self):
        self.offset_label.text = f"Calibration offset: {self.recorder.calibration_offset:+.1f}°"

    def _on_pocket_mode_change(self, value: bool):
        self.recorder.pocket_mode = value
        logger.info(f"Pocket mode: {value}")

    def _on_auto_pause_change(self, value: float):
        self.recorder.auto_pause_seconds = int(value) * 60
        self.app.preferences.set(AUTO_PAUSE_KEY, int(value))
        logger.info(f"Auto-pause after {int(value)} min")

    def _on_calibrate(self):
        self.recorder.calibrate()
        self._update_offset_label()

    def _on_reset_calibration(self):
        def reset():
            self.recorder.reset_calibration()
            self._update_offset_label()

        confirm("Reset Calibration", "Forget the upright position?", reset, action="Reset")

    def _show_logs(self):
        lines = self.app.log_buffer.tail(DEBUG_LOG_LINES) if self.app.log_buffer else []
        text = "\n".join(lines) or "No log output yet."

        scroll = ScrollView()
        label = Label(text=text, font_size="11sp", halign="left", valign="top", size_hint_y=None)
        label.bind(width=lambda lbl, width: setattr(lbl, "text_size", (width, None)))
        label.bind(texture_size=lambda lbl, size: setattr(lbl, "height", size[1]))
        scroll.add_widget(label)
        Popup(title="Debug Log", content=scroll, size_hint=(0.95, 0.85)).open()

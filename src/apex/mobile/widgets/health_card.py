"""
Part health card.

Shows one maintenance schedule: part name, health bar, remaining distance
and time, and a button to record the service.
"""

from typing import Callable

from kivy.graphics import Color, Rectangle, RoundedRectangle
from kivy.uix.boxlayout import BoxLayout
from kivy.uix.button import Button
from kivy.uix.label import Label
from kivy.uix.widget import Widget
from kivy.utils import get_color_from_hex

from ...analysis.health import HealthReport
from ...core.models import MaintenanceSchedule


def describe_remaining(report: HealthReport, schedule: MaintenanceSchedule) -> str:
    parts = []
    if schedule.interval_km > 0:
        parts.append(f"{max(0, round(report.km_remaining)):,} km left")
    if schedule.interval_months > 0:
        if schedule.last_service_date is None:
            parts.append("never serviced")
        else:
            parts.append(f"{max(0.0, report.time_remaining):.1f} mo left")
    return " | ".join(parts) or "No interval set"


class HealthBar(Widget):
    """Horizontal bar filled to ``health`` percent."""

    def __init__(self, health: float = 0.0, color: str = "#FF3B30", **kwargs):
        kwargs.setdefault("size_hint_y", None)
        kwargs.setdefault("height", 8)
        super().__init__(**kwargs)
        self.health = health
        self.fill_color = get_color_from_hex(color)
        self.bind(pos=self._redraw, size=self._redraw)

    def _redraw(self, *args):
        self.canvas.clear()
        with self.canvas:
            Color(0.15, 0.15, 0.15, 1)
            Rectangle(pos=self.pos, size=self.size)
            Color(*self.fill_color)
            Rectangle(pos=self.pos, size=(self.width * self.health / 100.0, self.height))


class HealthCard(BoxLayout):
    """
    Card for one schedule.

    Layout:
    ┌──────────────────────────────────┐
    │ Engine Oil                  72%  │
    │ ██████████████░░░░░░             │
    │ 1,400 km left | 4.2 mo left [✓]  │
    └──────────────────────────────────┘
    """

    def __init__(
        self,
        schedule: MaintenanceSchedule,
        report: HealthReport,
        on_complete: Callable[[MaintenanceSchedule], None] | None = None,
        **kwargs,
    ):
        kwargs.setdefault("orientation", "vertical")
        kwargs.setdefault("size_hint_y", None)
        kwargs.setdefault("height", 110)
        kwargs.setdefault("padding", [14, 10, 14, 10])
        kwargs.setdefault("spacing", 6)
        super().__init__(**kwargs)

        self.schedule = schedule
        self.report = report
        self.on_complete = on_complete
        color = get_color_from_hex(report.color)

        header = BoxLayout(orientation="horizontal", size_hint_y=0.4)
        name = Label(text=schedule.part_name, font_size="16sp", bold=True, halign="left", valign="middle")
        name.bind(size=name.setter("text_size"))
        header.add_widget(name)
        header.add_widget(
            Label(text=f"{report.health:.0f}%", font_size="16sp", bold=True, color=color, size_hint_x=0.25)
        )
        self.add_widget(header)

        self.add_widget(HealthBar(report.health, report.color))

        footer = BoxLayout(orientation="horizontal", size_hint_y=0.4, spacing=8)
        remaining = Label(
            text=describe_remaining(report, schedule),
            font_size="12sp",
            color=(0.7, 0.7, 0.7, 1),
            halign="left",
            valign="middle",
        )
        remaining.bind(size=remaining.setter("text_size"))
        footer.add_widget(remaining)

        done_btn = Button(text="Serviced", size_hint_x=0.3, font_size="12sp")
        done_btn.bind(on_press=self._on_complete)
        footer.add_widget(done_btn)
        self.add_widget(footer)

        with self.canvas.before:
            Color(0.08, 0.08, 0.08, 1)
            self._bg_rect = RoundedRectangle(pos=self.pos, size=self.size, radius=[10])
        self.bind(pos=self._update_background, size=self._update_background)

    def _update_background(self, *args):
        self._bg_rect.pos = self.pos
        self._bg_rect.size = self.size

    def _on_complete(self, instance):
        if self.on_complete:
            self.on_complete(self.schedule)

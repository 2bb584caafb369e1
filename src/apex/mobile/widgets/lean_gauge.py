"""
Lean angle gauge.

Semicircular dial with a needle for the current lean and tick marks for
the ride's max left and max right.
"""

import math

from kivy.graphics import Color, Line
from kivy.properties import NumericProperty
from kivy.uix.label import Label
from kivy.uix.widget import Widget

from ...analysis.lean import DEFAULT_MAX_LEAN

GREEN = (0.0, 1.0, 0.255, 1.0)
DIM = (0.3, 0.3, 0.3, 1.0)
WHITE = (0.886, 0.886, 0.886, 1.0)


class LeanGauge(Widget):
    """
    Lean dial. Negative angles lean left.

    Layout:
          L  ___|___  R
            /   |   \\
           /    o    \\
             42.0°
    """

    lean = NumericProperty(0.0)
    max_left = NumericProperty(0.0)
    max_right = NumericProperty(0.0)
    scale_max = NumericProperty(DEFAULT_MAX_LEAN)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        self._value_label = Label(text="0.0°", font_size="32sp", bold=True, color=WHITE)
        self._peaks_label = Label(text="L 0.0°   R 0.0°", font_size="14sp", color=DIM)
        self.add_widget(self._value_label)
        self.add_widget(self._peaks_label)

        self.bind(
            pos=self._redraw,
            size=self._redraw,
            lean=self._redraw,
            max_left=self._redraw,
            max_right=self._redraw,
        )

    def _point(self, angle_deg: float, radius: float) -> tuple[float, float]:
        # 0 deg points straight up, positive leans right.
        theta = math.radians(90 - angle_deg)
        cx, cy = self.center_x, self.y + self.height * 0.35
        return cx + radius * math.cos(theta), cy + radius * math.sin(theta)

    def _redraw(self, *args):
        radius = min(self.width / 2, self.height * 0.6) - 10
        if radius <= 0:
            return
        cx, cy = self.center_x, self.y + self.height * 0.35
        angle = max(-self.scale_max, min(self.scale_max, self.lean))

        self.canvas.before.clear()
        with self.canvas.before:
            Color(*DIM)
            # Kivy circle angles are clockwise from 12 o'clock.
            Line(circle=(cx, cy, radius, -self.scale_max, self.scale_max), width=2)

            Color(*GREEN)
            for peak in (-self.max_left, self.max_right):
                if peak:
                    Line(points=[*self._point(peak, radius - 12), *self._point(peak, radius + 6)], width=2)

            Color(*WHITE)
            Line(points=[cx, cy, *self._point(angle, radius - 16)], width=3)

        self._value_label.center = (cx, self.y + self.height * 0.15)
        self._value_label.text = f"{abs(self.lean):.1f}°"
        self._peaks_label.center = (cx, self.y + 14)
        self._peaks_label.text = f"L {self.max_left:.1f}°   R {self.max_right:.1f}°"

    def update(self, lean: float, max_left: float, max_right: float) -> None:
        self.lean = lean
        self.max_left = max_left
        self.max_right = max_right

    def reset(self) -> None:
        self.update(0.0, 0.0, 0.0)

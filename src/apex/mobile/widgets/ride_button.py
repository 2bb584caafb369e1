"""
Ride start/stop button for Apex.

Large round button: green START when idle, pulsing red STOP while a ride is
being recorded.
"""

import logging
from enum import Enum
from typing import Callable

from kivy.animation import Animation
from kivy.graphics import Color, Ellipse, Line
from kivy.uix.button import Button

logger = logging.getLogger(__name__)


class RideButtonState(Enum):
    """Ride button states."""

    IDLE = "idle"
    RIDING = "riding"


class RideButton(Button):
    """
    Ride toggle button with animated states.

    States:
    - IDLE: Green ring with "START" text
    - RIDING: Red pulsing circle with "STOP" text
    """

    def __init__(
        self,
        on_toggle: Callable[[bool], None] | None = None,
        **kwargs,
    ):
        """
        Initialize the ride button.

        Args:
            on_toggle: Called with True when a ride starts, False when it stops.
        """
        kwargs.setdefault("size_hint", (None, None))
        kwargs.setdefault("size", (140, 140))
        kwargs.setdefault("text", "START")
        kwargs.setdefault("font_size", "20sp")
        kwargs.setdefault("bold", True)

        super().__init__(**kwargs)

        self._state = RideButtonState.IDLE
        self._on_toggle = on_toggle
        self._pulse_animation: Animation | None = None

        self._idle_color = (0.0, 1.0, 0.255, 1.0)  # Apex green
        self._riding_color = (1.0, 0.231, 0.188, 1.0)  # Red

        self.background_color = (0, 0, 0, 0)
        self.background_normal = ""
        self.color = (1, 1, 1, 1)

        self._draw_background()
        self.bind(pos=self._update_background, size=self._update_background)
        self.bind(on_press=self._on_press)

    def _draw_background(self):
        self.canvas.before.clear()
        radius = min(self.width, self.height) / 2 - 4
        pos = (self.center_x - radius, self.center_y - radius)
        with self.canvas.before:
            if self._state == RideButtonState.RIDING:
                Color(*self._riding_color)
                Ellipse(pos=pos, size=(radius * 2, radius * 2))
            else:
                Color(0.04, 0.04, 0.04, 1)
                Ellipse(pos=pos, size=(radius * 2, radius * 2))
                Color(*self._idle_color)
                Line(circle=(self.center_x, self.center_y, radius), width=3)
        self.color = (1, 1, 1, 1) if self._state == RideButtonState.RIDING else self._idle_color

    def _update_background(self, *args):
        self._draw_background()

    def _on_press(self, instance):
        if self._state == RideButtonState.IDLE:
            self.start_ride()
        else:
            self.stop_ride()

    def start_ride(self):
        """Transition to riding state."""
        if self._state == RideButtonState.RIDING:
            return
        self.set_riding(True)
        if self._on_toggle:
            self._on_toggle(True)
        logger.info("RideButton: Ride started")

    def stop_ride(self):
        """Transition to idle state."""
        if self._state == RideButtonState.IDLE:
            return
        self.set_riding(False)
        if self._on_toggle:
            self._on_toggle(False)
        logger.info("RideButton: Ride stopped")

    def _start_pulse(self):
        if self._pulse_animation:
            self._pulse_animation.cancel(self)
        self._pulse_animation = Animation(opacity=0.6, duration=0.6) + Animation(
            opacity=1.0, duration=0.6
        )
        self._pulse_animation.repeat = True
        self._pulse_animation.start(self)

    def _stop_pulse(self):
        if self._pulse_animation:
            self._pulse_animation.cancel(self)
            self._pulse_animation = None
        self.opacity = 1.0

    @property
    def is_riding(self) -> bool:
        return self._state == RideButtonState.RIDING

    def set_riding(self, riding: bool):
        """
        Set state programmatically (without triggering callback).

        Args:
            riding: True for riding state, False for idle.
        """
        if riding and self._state == RideButtonState.IDLE:
            self._state = RideButtonState.RIDING
            self.text = "STOP"
            self._draw_background()
            self._start_pulse()
        elif not riding and self._state == RideButtonState.RIDING:
            self._state = RideButtonState.IDLE
            self.text = "START"
            self._stop_pulse()
            self._draw_background()

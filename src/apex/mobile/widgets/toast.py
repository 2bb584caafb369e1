"""
Toast messages for Apex.

Short-lived rounded banners near the bottom of the window, colored by level.
"""

import logging

from kivy.animation import Animation
from kivy.clock import Clock
from kivy.core.window import Window
from kivy.graphics import Color, RoundedRectangle
from kivy.uix.label import Label

from ...core.toasts import ToastLevel

logger = logging.getLogger(__name__)

# Border/text colors (R, G, B, A) - normalized 0-1
TOAST_COLORS = {
    ToastLevel.SUCCESS: (0.0, 1.0, 0.255, 1.0),
    ToastLevel.ERROR: (1.0, 0.231, 0.188, 1.0),
    ToastLevel.INFO: (0.886, 0.886, 0.886, 1.0),
}

TOAST_SECONDS = 3.0


class Toast(Label):
    """Single toast banner."""

    def __init__(self, message: str, level: ToastLevel = ToastLevel.INFO, **kwargs):
        kwargs.setdefault("size_hint", (None, None))
        kwargs.setdefault("font_size", "15sp")
        kwargs.setdefault("halign", "center")
        kwargs.setdefault("valign", "middle")
        super().__init__(text=message, **kwargs)

        self.level = level
        self.color = TOAST_COLORS.get(level, TOAST_COLORS[ToastLevel.INFO])
        self.text_size = (Window.width * 0.8 - 30, None)
        self.texture_update()
        self.size = (Window.width * 0.8, self.texture_size[1] + 30)

        with self.canvas.before:
            Color(0.04, 0.04, 0.04, 0.92)
            self._bg_rect = RoundedRectangle(pos=self.pos, size=self.size, radius=[12])
            Color(*self.color[:3], 0.6)
            self._border_rect = RoundedRectangle(
                pos=(self.x - 1, self.y - 1), size=(self.width + 2, self.height + 2), radius=[13]
            )
        self.bind(pos=self._update_background, size=self._update_background)

    def _update_background(self, *args):
        self._bg_rect.pos = self.pos
        self._bg_rect.size = self.size
        self._border_rect.pos = (self.x - 1, self.y - 1)
        self._border_rect.size = (self.width + 2, self.height + 2)


def show_toast(message: str, level: ToastLevel = ToastLevel.INFO, duration: float = TOAST_SECONDS) -> Toast:
    """
    Show a toast over the current window. Must run on the main thread.

    Args:
        message: Text to show
        level: Controls the color
        duration: Seconds before the toast fades out
    """
    toast = Toast(message, level)
    toast.center_x = Window.width / 2
    toast.y = Window.height * 0.12
    toast.opacity = 0
    Window.add_widget(toast)

    Animation(opacity=1, duration=0.2).start(toast)

    def fade_out(dt):
        animation = Animation(opacity=0, duration=0.4)
        animation.bind(on_complete=lambda *a: Window.remove_widget(toast))
        animation.start(toast)

    Clock.schedule_once(fade_out, duration)
    return toast


def kivy_toaster(level: ToastLevel, message: str) -> None:
    """Toaster for services; safe to call from any thread."""
    logger.debug(f"[toast:{level.value}] {message}")
    Clock.schedule_once(lambda dt: show_toast(message, level), 0)

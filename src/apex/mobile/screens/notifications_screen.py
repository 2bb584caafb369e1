"""
Notifications screen for Apex.

Shows session alerts (overdue-service warnings raised on this device)
together with the rider's stored notifications.
"""

import logging

from kivy.clock import Clock
from kivy.graphics import Color, Rectangle
from kivy.uix.boxlayout import BoxLayout
from kivy.uix.button import Button
from kivy.uix.screenmanager import Screen

from ...core.models import Notification, NotificationType
from ...services.container import Services
from ...services.notifications import NotificationStore
from ...utils.formatting import format_short_date
from .common import MUTED_COLOR, empty_message, left_label, screen_header, scrolling_list

logger = logging.getLogger(__name__)

TYPE_COLORS = {
    NotificationType.WARNING: (0.9, 0.6, 0.1, 1),
    NotificationType.ERROR: (0.85, 0.2, 0.2, 1),
    NotificationType.INFO: (0.2, 0.6, 0.9, 1),
}

LOCAL_PREFIX = "notif-"


def is_local(notification: Notification) -> bool:
    return notification.id.startswith(LOCAL_PREFIX)


class NotificationItem(BoxLayout):
    """Single notification with a coloured severity stripe."""

    def __init__(self, notification: Notification, on_read, on_dismiss, **kwargs):
        kwargs.setdefault("orientation", "horizontal")
        kwargs.setdefault("size_hint_y", None)
        kwargs.setdefault("height", 84)
        kwargs.setdefault("padding", [14, 4, 10, 4])
        kwargs.setdefault("spacing", 8)
        super().__init__(**kwargs)

        with self.canvas.before:
            Color(*TYPE_COLORS.get(notification.type, TYPE_COLORS[NotificationType.INFO]))
            self._stripe = Rectangle(pos=self.pos, size=(4, self.height))
        self.bind(pos=self._update_stripe, size=self._update_stripe)

        info = BoxLayout(orientation="vertical")
        title = notification.title or str(notification.type).capitalize()
        if notification.is_unread:
            title = f"[b]{title}[/b]"
        info.add_widget(left_label(title, font_size="14sp", markup=True, size_hint_y=0.35))
        info.add_widget(left_label(notification.message, font_size="12sp", size_hint_y=0.4))
        when = format_short_date(notification.created_at, use_relative=True) if notification.created_at else ""
        info.add_widget(left_label(when, font_size="11sp", color=MUTED_COLOR, size_hint_y=0.25))
        self.add_widget(info)

        if notification.is_unread:
            read_btn = Button(text="Read", size_hint_x=None, width=70, font_size="12sp")
            read_btn.bind(on_press=lambda x: on_read(notification))
            self.add_widget(read_btn)
        dismiss_btn = Button(text="Dismiss", size_hint_x=None, width=80, font_size="12sp")
        dismiss_btn.bind(on_press=lambda x: on_dismiss(notification))
        self.add_widget(dismiss_btn)

    def _update_stripe(self, *args):
        self._stripe.pos = self.pos
        self._stripe.size = (4, self.height)


class NotificationsScreen(Screen):
    def __init__(self, services: Services, **kwargs):
        kwargs.setdefault("name", "notifications")
        super().__init__(**kwargs)
        self.services = services
        self._remote: list[Notification] = []

        root = BoxLayout(orientation="vertical", padding=[10, 10, 10, 10], spacing=10)
        root.add_widget(
            screen_header(
                "Notifications",
                [("Read All", self._read_all), ("Dismiss All", self._dismiss_all)],
            )
        )
        scroll_view, self.list_layout = scrolling_list()
        root.add_widget(scroll_view)
        self.add_widget(root)

        services.store.add_listener(self._on_store_changed)

    @property
    def unread_count(self) -> int:
        return self.services.store.unread_count + sum(1 for n in self._remote if n.is_unread)

    def on_pre_enter(self, *args):
        self.reload()

    def reload(self):
        try:
            self._remote = self.services.notifications.list()
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Could not load stored notifications: {e}")
            self._remote = []
        self.refresh_list()

    def _on_store_changed(self, store: NotificationStore):
        # Store listeners can fire from the maintenance check thread.
        Clock.schedule_once(lambda dt: self.refresh_list())

    def refresh_list(self):
        self.list_layout.clear_widgets()
        local = [n for n in self.services.store.notifications if n.dismissed_at is None]
        items = local + [n for n in self._remote if n.dismissed_at is None]
        if not items:
            self.list_layout.add_widget(empty_message("You're all caught up."))
            return
        for notification in items:
            self.list_layout.add_widget(NotificationItem(notification, self._read, self._dismiss))

    def _read(self, notification: Notification):
        if is_local(notification):
            self.services.store.mark_as_read(notification.id)
            return
        try:
            self.services.notifications.mark_as_read(notification.id)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to mark notification read: {e}")
            return
        self.reload()

    def _dismiss(self, notification: Notification):
        if is_local(notification):
            self.services.store.dismiss(notification.id)
            return
        try:
            self.services.notifications.dismiss(notification.id)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to dismiss notification: {e}")
            return
        self.reload()

    def _read_all(self):
        self.services.store.mark_all_as_read()
        try:
            self.services.notifications.mark_all_as_read()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to mark all read: {e}")
        self.reload()

    def _dismiss_all(self):
        self.services.store.clear_all()
        try:
            self.services.notifications.dismiss_all()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to dismiss all: {e}")
        self.reload()

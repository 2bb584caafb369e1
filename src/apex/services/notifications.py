"""
In-app notifications, maintenance alerts and service-due reminders.

Three pieces live here:
- NotificationStore: the session-local notification list behind the bell icon
- NotificationService: the server-side ``notifications`` table
- MaintenanceChecker / ReminderScheduler: producers of maintenance alerts
"""

from __future__ import annotations

import calendar
import json
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Sequence

from ..backend.base import Backend
from ..core.models import Bike, MaintenanceLog, Notification, NotificationType, isoformat, parse_datetime, utcnow
from ..core.preferences import Preferences
from ..core.toasts import Toaster, ToastLevel, log_toast
from .base import BaseService

logger = logging.getLogger(__name__)

SERVICE_INTERVAL_KM = 5000

REMINDERS_KEY = "pending_reminders"

# Largest signed 32-bit int; platform notification ids must fit in it.
MAX_NOTIFICATION_ID = 2147483647


class NotificationStore:
    """
    Session-local notification list, newest first.

    Listeners are called with the store after every change.
    """

    def __init__(self):
        self._notifications: list[Notification] = []
        self._lock = threading.Lock()
        self._listeners: list[Callable[["NotificationStore"], None]] = []

    def add_listener(self, listener: Callable[["NotificationStore"], None]) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    @property
    def notifications(self) -> list[Notification]:
        with self._lock:
            return list(self._notifications)

    def set_notifications(self, notifications: Sequence[Notification]) -> None:
        with self._lock:
            self._notifications = list(notifications)
        self._changed()

    def add(
        self,
        type: NotificationType,
        message: str,
        title: str | None = None,
        bike_id: str | None = None,
        schedule_id: str | None = None,
        source: str | None = None,
    ) -> Notification:
        notification = Notification(
            id=f"notif-{uuid.uuid4().hex[:12]}",
            type=type,
            message=message,
            title=title,
            bike_id=bike_id,
            schedule_id=schedule_id,
            source=source,
            created_at=utcnow(),
        )
        with self._lock:
            self._notifications.insert(0, notification)
        self._changed()
        return notification

    def mark_as_read(self, notification_id: str) -> None:
        with self._lock:
            for notification in self._notifications:
                if notification.id == notification_id and notification.read_at is None:
                    notification.read_at = utcnow()
        self._changed()

    def mark_all_as_read(self) -> None:
        now = utcnow()
        with self._lock:
            for notification in self._notifications:
                if notification.read_at is None:
                    notification.read_at = now
        self._changed()

    def dismiss(self, notification_id: str) -> None:
        with self._lock:
            for notification in self._notifications:
                if notification.id == notification_id:
                    notification.dismissed_at = utcnow()
        self._changed()

    def clear_all(self) -> None:
        with self._lock:
            self._notifications = []
        self._changed()

    @property
    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for n in self._notifications if n.is_unread)


class NotificationService(BaseService):
    """Server-side notifications for the signed-in rider."""

    def list(self, refresh: bool = False) -> list[Notification]:
        user_id = self.require_user()
        rows = self.cached(
            ("notifications", user_id),
            lambda: self.backend.select(
                "notifications",
                {"user_id": user_id, "dismissed_at": None},
                order=[("created_at", True)],
            ),
            refresh,
        )
        return [Notification.from_row(row) for row in rows]

    def unread_count(self) -> int:
        return sum(1 for n in self.list() if n.read_at is None)

    def create(
        self,
        message: str,
        type: NotificationType = NotificationType.INFO,
        title: str | None = None,
        bike_id: str | None = None,
        schedule_id: str | None = None,
        source: str | None = None,
    ) -> Notification:
        user_id = self.require_user()
        row = {
            "user_id": user_id,
            "type": type.value,
            "message": message,
            "title": title,
            "bike_id": bike_id,
            "schedule_id": schedule_id,
            "source": source,
        }
        created = self.backend.insert("notifications", row)[0]
        self.cache.invalidate("notifications")
        return Notification.from_row(created)

    def _stamp(self, column: str, filters: dict[str, Any], success: str, failure: str) -> int:
        try:
            rows = self.backend.update("notifications", {column: isoformat(utcnow())}, filters)
        except Exception:
            logger.exception(f"Notification update failed: {failure}")
            self.toast(ToastLevel.ERROR, failure)
            raise
        self.cache.invalidate("notifications")
        self.toast(ToastLevel.SUCCESS, success)
        return len(rows)

    def mark_as_read(self, notification_id: str) -> int:
        self.require_user()
        return self._stamp(
            "read_at", {"id": notification_id, "read_at": None}, "Marked Read", "Failed to mark as read"
        )

    def dismiss(self, notification_id: str) -> int:
        self.require_user()
        return self._stamp(
            "dismissed_at", {"id": notification_id, "dismissed_at": None}, "Dismissed", "Failed to dismiss"
        )

    def mark_all_as_read(self) -> int:
        user_id = self.require_user()
        return self._stamp(
            "read_at",
            {"user_id": user_id, "read_at": None, "dismissed_at": None},
            "All Read",
            "Failed to mark all read",
        )

    def dismiss_all(self) -> int:
        user_id = self.require_user()
        return self._stamp(
            "dismissed_at",
            {"user_id": user_id, "dismissed_at": None},
            "All Dismissed",
            "Failed to dismiss all",
        )


class MaintenanceChecker:
    """
    Raises a warning for bikes overdue for a general service.

    A bike is overdue when it has covered more than ``interval_km`` since the
    odometer reading of its latest maintenance log (or since 0 without one).
    Each bike is alerted at most once per session and never while a warning
    for it is already in the store.
    """

    def __init__(
        self,
        backend: Backend,
        store: NotificationStore,
        toast: Toaster | None = None,
        interval_km: int = SERVICE_INTERVAL_KM,
    ):
        self.backend = backend
        self.store = store
        self.toast = toast or log_toast
        self.interval_km = interval_km
        self._checked: set[str] = set()

    def check(self, bikes: Sequence[Bike] | None = None) -> list[Notification]:
        """
        Check bikes and add warnings for overdue ones.

        Returns:
            The notifications that were added
        """
        user_id = self.backend.get_user_id()
        if not user_id:
            return []

        if bikes is None:
            bikes = [Bike.from_row(row) for row in self.backend.select("bikes", {"user_id": user_id})]
        if not bikes:
            return []

        rows = self.backend.select(
            "maintenance_logs",
            {"bike_id": [bike.id for bike in bikes], "user_id": user_id},
            order=[("odo_at_service", True)],
        )
        logs = [MaintenanceLog.from_row(row) for row in rows]

        added = []
        for bike in bikes:
            last_service = next((log for log in logs if log.bike_id == bike.id), None)
            km_since = bike.current_odo - (last_service.odo_at_service if last_service else 0)
            if km_since <= self.interval_km:
                continue

            key = f"maintenance-{bike.id}"
            if key in self._checked:
                continue
            existing = any(
                n.bike_id == bike.id and n.type is NotificationType.WARNING for n in self.store.notifications
            )
            if existing:
                continue

            self._checked.add(key)
            name = bike.display_name
            notification = self.store.add(
                NotificationType.WARNING,
                f"{name} requires service ({km_since:,} km since last service)",
                bike_id=bike.id,
                source="maintenance",
            )
            self.toast(ToastLevel.ERROR, f"Maintenance Required: {name}")
            logger.info(f"{name} overdue for service by {km_since - self.interval_km} km")
            added.append(notification)

        return added

    def reset(self) -> None:
        self._checked.clear()


def reminder_id(schedule_id: str) -> int:
    """Deterministic platform notification id for a schedule UUID."""
    return int(schedule_id.replace("-", "")[:8], 16) % MAX_NOTIFICATION_ID


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass
class Reminder:
    """A local notification scheduled for a future time."""

    id: int
    schedule_id: str
    title: str
    body: str
    at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "schedule_id": self.schedule_id,
            "title": self.title,
            "body": self.body,
            "at": isoformat(self.at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Reminder":
        return cls(
            id=int(data["id"]),
            schedule_id=str(data["schedule_id"]),
            title=str(data.get("title", "")),
            body=str(data.get("body", "")),
            at=parse_datetime(data["at"]) or utcnow(),
        )


class ReminderScheduler:
    """
    Pending local reminders, persisted in preferences.

    The app polls ``pop_due`` and shows each due reminder as a system
    notification.
    """

    def __init__(self, preferences: Preferences):
        self.preferences = preferences
        self._lock = threading.Lock()

    def _load(self) -> list[Reminder]:
        raw = self.preferences.get(REMINDERS_KEY)
        if not raw:
            return []
        try:
            return [Reminder.from_dict(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable reminders: {e}")
            return []

    def _save(self, reminders: list[Reminder]) -> None:
        self.preferences.set(REMINDERS_KEY, json.dumps([r.to_dict() for r in reminders]))

    def pending(self) -> list[Reminder]:
        with self._lock:
            return sorted(self._load(), key=lambda r: r.at)

    def schedule(self, reminder: Reminder) -> None:
        """Schedule a reminder, replacing any pending one with the same id."""
        with self._lock:
            reminders = [r for r in self._load() if r.id != reminder.id]
            reminders.append(reminder)
            self._save(reminders)
        logger.debug(f"Scheduled reminder {reminder.id} for {isoformat(reminder.at)}")

    def cancel(self, schedule_id: str) -> None:
        target = reminder_id(schedule_id)
        with self._lock:
            reminders = self._load()
            kept = [r for r in reminders if r.id != target]
            if len(kept) != len(reminders):
                self._save(kept)

    def pop_due(self, now: datetime | None = None) -> list[Reminder]:
        now = now or utcnow()
        with self._lock:
            reminders = self._load()
            due = [r for r in reminders if r.at <= now]
            if due:
                self._save([r for r in reminders if r.at > now])
        return due


def schedule_due_reminder(
    scheduler: ReminderScheduler,
    schedule_id: str,
    part_name: str,
    bike_name: str,
    service_date: date,
    interval_months: int,
) -> Reminder | None:
    """
    Schedule the next service-due reminder for a part.

    Returns:
        The reminder, or None when the part has no calendar interval
    """
    if interval_months <= 0:
        return None
    due = add_months(service_date, interval_months)
    reminder = Reminder(
        id=reminder_id(schedule_id),
        schedule_id=schedule_id,
        title=f"⚠️ {part_name} Due",
        body=f"{bike_name} - {part_name} service is due",
        at=datetime(due.year, due.month, due.day, 9, 0, tzinfo=timezone.utc),
    )
    scheduler.schedule(reminder)
    return reminder

"""
Unit tests for notifications, the maintenance checker and reminders.
"""

from datetime import date, datetime, timezone

import pytest

from apex.core.models import NotificationType
from apex.core.preferences import Preferences
from apex.services.notifications import (
    MAX_NOTIFICATION_ID,
    REMINDERS_KEY,
    NotificationStore,
    Reminder,
    ReminderScheduler,
    add_months,
    reminder_id,
    schedule_due_reminder,
)

SCHEDULE_ID = "3f2b9c1e-8d4a-4b6f-9e2d-1a2b3c4d5e6f"


class TestNotificationStore:
    def test_add_newest_first(self):
        store = NotificationStore()
        first = store.add(NotificationType.INFO, "first")
        second = store.add(NotificationType.WARNING, "second", bike_id="b1")
        assert [n.id for n in store.notifications] == [second.id, first.id]
        assert first.id.startswith("notif-")
        assert store.unread_count == 2

    def test_read_and_dismiss(self):
        store = NotificationStore()
        a = store.add(NotificationType.INFO, "a")
        b = store.add(NotificationType.INFO, "b")
        store.mark_as_read(a.id)
        store.dismiss(b.id)
        assert store.unread_count == 0
        assert len(store.notifications) == 2
        assert b.dismissed_at is not None

    def test_mark_all_and_clear(self):
        store = NotificationStore()
        store.add(NotificationType.INFO, "a")
        store.add(NotificationType.INFO, "b")
        store.mark_all_as_read()
        assert store.unread_count == 0
        store.clear_all()
        assert store.notifications == []

    def test_listeners(self):
        store = NotificationStore()
        counts = []
        store.add_listener(lambda s: counts.append(s.unread_count))
        note = store.add(NotificationType.INFO, "a")
        store.mark_as_read(note.id)
        assert counts == [1, 0]


class TestNotificationService:
    """Tests for server-side notifications."""

    def test_list_excludes_dismissed(self, services):
        keep = services.notifications.create("Chain lube due", NotificationType.WARNING)
        gone = services.notifications.create("Welcome")
        services.notifications.dismiss(gone.id)
        assert [n.id for n in services.notifications.list()] == [keep.id]

    def test_mark_as_read(self, services, toasts):
        note = services.notifications.create("Oil due")
        assert services.notifications.mark_as_read(note.id) == 1
        assert services.notifications.mark_as_read(note.id) == 0
        assert services.notifications.unread_count() == 0
        assert toasts.messages[-1] == "Marked Read"

    def test_bulk_operations(self, services, toasts):
        for message in ("a", "b", "c"):
            services.notifications.create(message)
        assert services.notifications.unread_count() == 3
        assert services.notifications.mark_all_as_read() == 3
        assert toasts.messages[-1] == "All Read"
        assert services.notifications.dismiss_all() == 3
        assert toasts.messages[-1] == "All Dismissed"
        assert services.notifications.list() == []

    def test_type_round_trip(self, services):
        services.notifications.create("Brake pads", NotificationType.ERROR, title="Urgent", source="maintenance")
        (note,) = services.notifications.list()
        assert note.type is NotificationType.ERROR
        assert note.to_dict()["type"] == "error"


class TestMaintenanceChecker:
    def test_no_logs_counts_from_zero(self, services, bike, toasts):
        added = services.checker.check()
        assert len(added) == 1
        assert added[0].type is NotificationType.WARNING
        assert added[0].bike_id == bike.id
        assert "12,000 km since last service" in added[0].message
        assert toasts.messages[-1] == "Maintenance Required: Yamaha MT-07"

    def test_recent_service_clears_warning(self, services, bike):
        services.maintenance_logs.create(bike.id, "General Service", 9000, date_performed="2025-01-05")
        assert services.checker.check() == []

    def test_latest_log_wins(self, services, bike):
        services.maintenance_logs.create(bike.id, "General Service", 9000, date_performed="2025-01-05")
        services.maintenance_logs.create(bike.id, "General Service", 4000, date_performed="2024-01-05")
        assert services.checker.check() == []

    def test_once_per_session(self, services, bike):
        assert len(services.checker.check()) == 1
        services.store.clear_all()
        assert services.checker.check() == []
        services.checker.reset()
        assert len(services.checker.check()) == 1

    def test_existing_warning_suppresses(self, services, bike):
        services.store.add(NotificationType.WARNING, "already told", bike_id=bike.id)
        assert services.checker.check() == []

    def test_signed_out(self, services, bike, backend):
        backend.sign_out()
        assert services.checker.check() == []


class TestReminders:
    @pytest.mark.parametrize(
        "start, months, expected",
        [
            (date(2025, 1, 15), 6, date(2025, 7, 15)),
            (date(2025, 8, 31), 6, date(2026, 2, 28)),
            (date(2023, 8, 31), 6, date(2024, 2, 29)),
            (date(2025, 11, 30), 3, date(2026, 2, 28)),
        ],
    )
    def test_add_months(self, start, months, expected):
        assert add_months(start, months) == expected

    def test_reminder_id_stable_and_bounded(self):
        assert reminder_id(SCHEDULE_ID) == reminder_id(SCHEDULE_ID)
        assert 0 <= reminder_id("ffffffff-ffff-ffff-ffff-ffffffffffff") < MAX_NOTIFICATION_ID

    def test_schedule_and_pop_due(self):
        scheduler = ReminderScheduler(Preferences())
        reminder = schedule_due_reminder(scheduler, SCHEDULE_ID, "Engine Oil", "Yamaha MT-07", date(2025, 1, 15), 6)
        assert reminder.at == datetime(2025, 7, 15, 9, 0, tzinfo=timezone.utc)

        assert scheduler.pop_due(datetime(2025, 7, 15, 8, 59, tzinfo=timezone.utc)) == []
        due = scheduler.pop_due(datetime(2025, 7, 15, 9, 0, tzinfo=timezone.utc))
        assert [r.schedule_id for r in due] == [SCHEDULE_ID]
        assert scheduler.pending() == []

    def test_reschedule_replaces(self):
        scheduler = ReminderScheduler(Preferences())
        schedule_due_reminder(scheduler, SCHEDULE_ID, "Engine Oil", "MT-07", date(2025, 1, 15), 6)
        schedule_due_reminder(scheduler, SCHEDULE_ID, "Engine Oil", "MT-07", date(2025, 3, 1), 6)
        (reminder,) = scheduler.pending()
        assert reminder.at.date() == date(2025, 9, 1)

    def test_cancel(self):
        scheduler = ReminderScheduler(Preferences())
        schedule_due_reminder(scheduler, SCHEDULE_ID, "Engine Oil", "MT-07", date(2025, 1, 15), 6)
        scheduler.cancel(SCHEDULE_ID)
        assert scheduler.pending() == []

    def test_no_calendar_interval(self):
        scheduler = ReminderScheduler(Preferences())
        assert schedule_due_reminder(scheduler, SCHEDULE_ID, "Chain Lube", "MT-07", date(2025, 1, 15), 0) is None

    def test_persisted_across_instances(self, tmp_path):
        path = tmp_path / "preferences.json"
        ReminderScheduler(Preferences(path)).schedule(
            Reminder(id=7, schedule_id=SCHEDULE_ID, title="t", body="b", at=datetime(2030, 1, 1, tzinfo=timezone.utc))
        )
        (reminder,) = ReminderScheduler(Preferences(path)).pending()
        assert reminder.id == 7

    def test_corrupt_state_discarded(self):
        preferences = Preferences()
        preferences.set(REMINDERS_KEY, "[{not json")
        assert ReminderScheduler(preferences).pending() == []

"""
Pytest fixtures for Apex tests.

Provides common test fixtures including:
- Test configuration
- An in-memory SQLite backend signed in as a test rider
- The wired service graph with a recording toaster
- A sample bike and ride factory
- A Flask test client
"""

from datetime import datetime, timedelta, timezone

import pytest

from apex.backend import SQLiteBackend
from apex.core.config import Config
from apex.core.preferences import Preferences
from apex.core.recorder import RideSummary
from apex.services.container import create_services

RIDER = "rider-1"

# A short track around a city block, (lon, lat)
SAMPLE_TRACK = [
    (77.5946, 12.9716),
    (77.5956, 12.9716),
    (77.5956, 12.9726),
    (77.5946, 12.9726),
]


@pytest.fixture
def test_config():
    """Test configuration dictionary."""
    return {
        "app": {"name": "Apex", "version": "0.4.0", "debug": False},
        "backend": {"kind": "sqlite", "user_id": RIDER},
        "storage": {"exports_dir": "exports", "preferences_file": "preferences.json"},
        "recording": {
            "ema_alpha": 0.5,
            "max_lean": 70,
            "motion_lock_kmh": 10,
            "auto_pause_minutes": 5,
        },
        "maintenance": {"service_interval_km": 5000},
        "updates": {"repo": "Purukitto/apex-app", "check_interval_hours": 24, "timeout": 5},
        "web": {"host": "127.0.0.1", "port": 5000},
        "logging": {"level": "INFO", "buffer_size": 100},
        "bug_report": {"repo": "Purukitto/apex-app", "log_lines": 50},
    }


@pytest.fixture
def config(test_config, tmp_path):
    test_config["storage"]["data_dir"] = str(tmp_path)
    return Config.from_dict(test_config)


@pytest.fixture
def backend():
    backend = SQLiteBackend(":memory:", user_id=RIDER)
    yield backend
    backend.close()


class ToastRecorder:
    """Toaster that remembers every toast."""

    def __init__(self):
        self.toasts = []

    def __call__(self, level, message):
        self.toasts.append((level, message))

    @property
    def messages(self):
        return [message for _, message in self.toasts]


@pytest.fixture
def toasts():
    return ToastRecorder()


@pytest.fixture
def preferences():
    return Preferences()


@pytest.fixture
def services(backend, preferences, toasts):
    return create_services(backend, preferences, toast=toasts)


@pytest.fixture
def bike(services):
    """A Yamaha MT-07 at 12,000 km with the default schedules."""
    return services.bikes.create("Yamaha", "MT-07", 12000, year=2021)


@pytest.fixture
def make_summary():
    """Factory for finished ride summaries."""

    def _make(
        distance_km=12.3,
        coordinates=None,
        start=None,
        minutes=30,
        lean_left=32.5,
        lean_right=41.0,
    ):
        start = start or datetime(2025, 1, 5, 8, 30, tzinfo=timezone.utc)
        return RideSummary(
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            distance_km=distance_km,
            max_lean_left=lean_left,
            max_lean_right=lean_right,
            coordinates=list(SAMPLE_TRACK if coordinates is None else coordinates),
        )

    return _make


@pytest.fixture
def app(config, services):
    from apex.web.app import create_app

    app = create_app(config, services=services)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()

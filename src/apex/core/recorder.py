"""
Ride recorder for Apex.

Accumulates GPS fixes and accelerometer samples for one ride and produces a
RideSummary ready to save. Sensor callbacks may arrive on platform threads,
so all state changes happen under a lock; listeners are called outside it.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from ..analysis.geo import haversine_km, to_line_string
from ..analysis.lean import (
    DEFAULT_ALPHA,
    DEFAULT_MAX_LEAN,
    DEFAULT_MOTION_LOCK_KMH,
    LeanAngleFilter,
    LeanPeaks,
    roll_from_gravity,
)
from .models import RoutePath, isoformat
from .preferences import Preferences
from .toasts import Toaster, ToastLevel, log_toast

logger = logging.getLogger(__name__)

CALIBRATION_KEY = "lean_calibration_offset"


class RecorderState(Enum):
    """Ride recorder state machine states."""

    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"


@dataclass
class RidePoint:
    """One GPS fix."""

    longitude: float
    latitude: float
    timestamp: float
    speed_ms: float | None = None


@dataclass
class RideSummary:
    """A finished ride, rounded for storage."""

    start_time: datetime
    end_time: datetime
    distance_km: float
    max_lean_left: float
    max_lean_right: float
    coordinates: list[tuple[float, float]] = field(default_factory=list)

    @property
    def route_path(self) -> RoutePath | None:
        """GeoJSON LineString, None for fewer than two fixes."""
        line = to_line_string(self.coordinates)
        return RoutePath.from_value(line)

    @property
    def duration_seconds(self) -> int:
        return int((self.end_time - self.start_time).total_seconds())

    def to_dict(self) -> dict[str, Any]:
        route = self.route_path
        return {
            "start_time": isoformat(self.start_time),
            "end_time": isoformat(self.end_time),
            "distance_km": self.distance_km,
            "max_lean_left": self.max_lean_left,
            "max_lean_right": self.max_lean_right,
            "route_path": route.to_dict() if route else None,
        }


class RideRecorder:
    """
    Records one ride at a time.

    State machine: IDLE -> RECORDING <-> PAUSED -> IDLE.

    Features:
    - Haversine distance between consecutive fixes
    - Auto-pause after a stretch with no movement
    - Lean angle pipeline with calibration offset
    - Pocket mode: lean angle is held while the phone is pocketed
    """

    def __init__(
        self,
        config: dict | None = None,
        preferences: Preferences | None = None,
        toast: Toaster | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize ride recorder.

        Args:
            config: ``recording`` config section
            preferences: Store for the calibration offset
            toast: Callback for user-facing messages
            clock: Time source in epoch seconds
        """
        self.config = config or {}
        self.preferences = preferences or Preferences()
        self.toast = toast or log_toast
        self.clock = clock

        self.auto_pause_seconds = float(self.config.get("auto_pause_minutes", 5)) * 60
        self.lean_filter = LeanAngleFilter(
            alpha=self.config.get("ema_alpha", DEFAULT_ALPHA),
            max_lean=self.config.get("max_lean", DEFAULT_MAX_LEAN),
            motion_lock_kmh=self.config.get("motion_lock_kmh", DEFAULT_MOTION_LOCK_KMH),
        )
        self.peaks = LeanPeaks()
        self.calibration_offset = self.preferences.get_float(CALIBRATION_KEY, 0.0)

        self._state = RecorderState.IDLE
        self._lock = threading.Lock()
        self._listeners: list[Callable[["RideRecorder"], None]] = []

        self._points: list[RidePoint] = []
        self._distance_km = 0.0
        self._start_time: datetime | None = None
        self._last_movement: float | None = None
        self._raw_roll = 0.0
        self._pocket_mode = False

    # Listeners

    def add_listener(self, listener: Callable[["RideRecorder"], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[["RideRecorder"], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:  # noqa: BLE001
                logger.error(f"Recorder listener failed: {e}")

    # State

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def is_recording(self) -> bool:
        """True while a ride is in progress, paused or not."""
        return self._state != RecorderState.IDLE

    @property
    def is_paused(self) -> bool:
        return self._state == RecorderState.PAUSED

    @property
    def distance_km(self) -> float:
        return self._distance_km

    @property
    def current_lean(self) -> float:
        return self.peaks.current

    @property
    def max_lean_left(self) -> float:
        return self.peaks.max_left

    @property
    def max_lean_right(self) -> float:
        return self.peaks.max_right

    @property
    def speed_kmh(self) -> float:
        return self.lean_filter.speed_ms * 3.6

    @property
    def coordinates(self) -> list[tuple[float, float]]:
        with self._lock:
            return [(p.longitude, p.latitude) for p in self._points]

    @property
    def start_time(self) -> datetime | None:
        return self._start_time

    @property
    def elapsed_seconds(self) -> float:
        if self._start_time is None:
            return 0.0
        return max(0.0, self.clock() - self._start_time.timestamp())

    @property
    def pocket_mode(self) -> bool:
        return self._pocket_mode

    @pocket_mode.setter
    def pocket_mode(self, enabled: bool) -> None:
        if enabled != self._pocket_mode:
            logger.info(f"Pocket mode {'on' if enabled else 'off'}")
        self._pocket_mode = enabled

    # Lifecycle

    def start(self) -> bool:
        """
        Start a new ride.

        Returns:
            True if recording started
        """
        with self._lock:
            if self._state != RecorderState.IDLE:
                logger.warning(f"Cannot start ride in state: {self._state}")
                return False

            self._points = []
            self._distance_km = 0.0
            self._start_time = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
            self._last_movement = None
            self.lean_filter.reset()
            self.lean_filter.speed_ms = 0.0
            self.peaks.reset()
            self._state = RecorderState.RECORDING

        logger.info(f"Ride started at {isoformat(self._start_time)}")
        self._notify()
        return True

    def pause(self) -> bool:
        with self._lock:
            if self._state != RecorderState.RECORDING:
                return False
            self._state = RecorderState.PAUSED
        logger.info("Ride paused")
        self._notify()
        return True

    def resume(self) -> bool:
        with self._lock:
            if self._state != RecorderState.PAUSED:
                return False
            self._state = RecorderState.RECORDING
            self._last_movement = self.clock()
        logger.info("Ride resumed")
        self._notify()
        return True

    def toggle_pause(self) -> bool:
        return self.resume() if self.is_paused else self.pause()

    def stop(self) -> RideSummary | None:
        """
        Finish the ride.

        Returns:
            Summary with distance rounded to 2 dp and leans to 1 dp, or None
            if no ride was in progress
        """
        with self._lock:
            if self._state == RecorderState.IDLE or self._start_time is None:
                logger.warning("Cannot stop: no ride in progress")
                return None

            summary = RideSummary(
                start_time=self._start_time,
                end_time=datetime.fromtimestamp(self.clock(), tz=timezone.utc),
                distance_km=round(self._distance_km, 2),
                max_lean_left=round(self.peaks.max_left, 1),
                max_lean_right=round(self.peaks.max_right, 1),
                coordinates=[(p.longitude, p.latitude) for p in self._points],
            )
            self._state = RecorderState.IDLE
            self._start_time = None
            self.lean_filter.speed_ms = 0.0

        logger.info(
            f"Ride stopped: {summary.distance_km:.2f} km, "
            f"{len(summary.coordinates)} points, "
            f"lean L{summary.max_lean_left:.1f} R{summary.max_lean_right:.1f}"
        )
        self._notify()
        return summary

    # Sensor input

    def add_position(
        self,
        longitude: float,
        latitude: float,
        speed_ms: float | None = None,
        timestamp: float | None = None,
    ) -> bool:
        """
        Add a GPS fix.

        Args:
            longitude: Degrees
            latitude: Degrees
            speed_ms: Ground speed in m/s (None when the fix has none)
            timestamp: Epoch seconds (defaults to the clock)

        Returns:
            True if the fix was recorded
        """
        now = self.clock() if timestamp is None else timestamp
        moving = speed_ms is not None and speed_ms > 0
        auto_paused = False

        with self._lock:
            if self._state != RecorderState.RECORDING:
                return False

            point = RidePoint(longitude, latitude, now, speed_ms if moving else None)
            if self._points:
                last = self._points[-1]
                self._distance_km += haversine_km(last.latitude, last.longitude, latitude, longitude)
            self._points.append(point)
            self.lean_filter.speed_ms = speed_ms if moving else 0.0

            if moving:
                self._last_movement = now
            elif self._last_movement is None:
                self._last_movement = now
            elif now - self._last_movement >= self.auto_pause_seconds:
                self._state = RecorderState.PAUSED
                auto_paused = True

        if auto_paused:
            minutes = int(self.auto_pause_seconds // 60)
            logger.info(f"Auto-paused after {minutes} minutes without movement")
            self.toast(ToastLevel.ERROR, f"Ride paused: No movement detected for {minutes} minutes.")
        self._notify()
        return True

    def add_motion(self, x: float | None, y: float | None, z: float | None) -> float | None:
        """
        Add an accelerometer sample (acceleration including gravity).

        Returns:
            Current lean in degrees, or None if the sample was ignored
        """
        roll = roll_from_gravity(x, y, z)
        if roll is None:
            logger.warning(f"Invalid motion sample: x={x} y={y} z={z}")
            return None

        with self._lock:
            self._raw_roll = roll
            if self._state != RecorderState.RECORDING or self._pocket_mode:
                return None
            calibrated = roll - self.calibration_offset
            processed = self.lean_filter.process(calibrated)
            self.peaks.update(calibrated, processed)
            current = self.peaks.current

        self._notify()
        return current

    def calibrate(self) -> float:
        """
        Take the current raw roll as upright.

        Returns:
            The new calibration offset in degrees
        """
        with self._lock:
            self.calibration_offset = self._raw_roll
            self.lean_filter.reset()
        self.preferences.set(CALIBRATION_KEY, f"{self.calibration_offset:.4f}")
        logger.info(f"Lean calibrated: offset {self.calibration_offset:.2f} deg")
        self.toast(ToastLevel.SUCCESS, "Lean angle calibrated")
        return self.calibration_offset

    def reset_calibration(self) -> None:
        self.calibration_offset = 0.0
        self.preferences.remove(CALIBRATION_KEY)

"""
Cross-platform location and motion sensors.

Provides a unified interface over:
- Android: GPS and accelerometer via plyer
- Desktop: replay of a recorded GPX track, no motion sensor
"""

import logging
import threading
import time
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable, Protocol, Sequence, runtime_checkable

from plyer import accelerometer, gps

from ..analysis.geo import haversine_km

logger = logging.getLogger(__name__)

# (longitude, latitude, speed m/s or None, epoch seconds)
LocationCallback = Callable[[float, float, float | None, float], None]
# (x, y, z) acceleration including gravity, m/s^2
MotionCallback = Callable[[float, float, float], None]


@runtime_checkable
class LocationProvider(Protocol):
    """Protocol for GPS providers."""

    def start(self, callback: LocationCallback) -> bool:
        """Start delivering fixes. Returns False if unavailable."""
        ...

    def stop(self) -> None:
        """Stop delivering fixes."""
        ...

    @property
    def is_running(self) -> bool:
        """True while fixes are being delivered."""
        ...


@runtime_checkable
class MotionProvider(Protocol):
    """Protocol for accelerometer providers."""

    def start(self, callback: MotionCallback) -> bool:
        ...

    def stop(self) -> None:
        ...

    @property
    def is_running(self) -> bool:
        ...


class AndroidLocationProvider:
    """GPS through plyer."""

    def __init__(self, config: dict):
        self._gps = gps
        self.min_time_ms = int(config.get("gps_min_time_ms", 2000))
        self.min_distance_m = float(config.get("gps_min_distance_m", 0))
        self._callback: LocationCallback | None = None
        self._running = False

    def _on_location(self, **kwargs) -> None:
        if self._callback is None:
            return
        try:
            lat = float(kwargs["lat"])
            lon = float(kwargs["lon"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"GPS fix without coordinates: {kwargs}")
            return
        speed = kwargs.get("speed")
        self._callback(lon, lat, float(speed) if speed is not None else None, time.time())

    def _on_status(self, stype, status) -> None:
        logger.info(f"GPS status: {stype} {status}")

    def start(self, callback: LocationCallback) -> bool:
        if self._running:
            return True
        self._callback = callback
        try:
            self._gps.configure(on_location=self._on_location, on_status=self._on_status)
            self._gps.start(minTime=self.min_time_ms, minDistance=self.min_distance_m)
        except (NotImplementedError, OSError) as e:
            logger.error(f"GPS unavailable: {e}")
            return False
        self._running = True
        logger.info("GPS watch started")
        return True

    def stop(self) -> None:
        if not self._running:
            return
        self._gps.stop()
        self._running = False
        self._callback = None
        logger.info("GPS watch stopped")

    @property
    def is_running(self) -> bool:
        return self._running


class AndroidMotionProvider:
    """
    Accelerometer through plyer.

    plyer exposes the accelerometer as a polled value, so a daemon thread
    samples it at a fixed rate.
    """

    def __init__(self, config: dict):
        self._accelerometer = accelerometer
        self.interval = 1.0 / float(config.get("motion_hz", 20))
        self._callback: MotionCallback | None = None
        self._thread: threading.Thread | None = None
        self._running = False

    def start(self, callback: MotionCallback) -> bool:
        if self._running:
            return True
        try:
            self._accelerometer.enable()
        except (NotImplementedError, OSError) as e:
            logger.error(f"Accelerometer unavailable: {e}")
            return False

        self._callback = callback
        self._running = True
        self._thread = threading.Thread(target=self._poll_loop, name="MotionPoller", daemon=True)
        self._thread.start()
        logger.info("Accelerometer started")
        return True

    def _poll_loop(self) -> None:
        while self._running:
            x, y, z = self._accelerometer.acceleration[:3]
            if x is not None and self._callback is not None:
                self._callback(x, y, z)
            time.sleep(self.interval)

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        self._accelerometer.disable()
        self._callback = None
        logger.info("Accelerometer stopped")

    @property
    def is_running(self) -> bool:
        return self._running


def load_gpx_track(path: str | Path) -> list[tuple[float, float]]:
    """Read ``trkpt`` coordinates from a GPX file as ``(lon, lat)`` pairs."""
    tree = ET.parse(str(path))
    points = []
    for element in tree.iter():
        if element.tag.rsplit("}", 1)[-1] == "trkpt":
            points.append((float(element.get("lon")), float(element.get("lat"))))
    return points


class ReplayLocationProvider:
    """
    Desktop GPS stand-in that replays a track.

    Fixes are emitted on a background thread, one per ``interval`` seconds,
    with speed derived from the distance to the previous point.
    """

    def __init__(self, coordinates: Sequence[tuple[float, float]], interval: float = 1.0):
        self.coordinates = list(coordinates)
        self.interval = interval
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @classmethod
    def from_gpx(cls, path: str | Path, interval: float = 1.0) -> "ReplayLocationProvider":
        coordinates = load_gpx_track(path)
        logger.info(f"Loaded {len(coordinates)} replay points from {path}")
        return cls(coordinates, interval)

    def start(self, callback: LocationCallback) -> bool:
        if not self.coordinates:
            logger.warning("Replay track is empty")
            return False
        if self.is_running:
            return True
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._replay_loop, args=(callback,), name="GPSReplay", daemon=True
        )
        self._thread.start()
        logger.info(f"Replaying {len(self.coordinates)} GPS points")
        return True

    def _replay_loop(self, callback: LocationCallback) -> None:
        previous = None
        for lon, lat in self.coordinates:
            if self._stop_event.is_set():
                break
            speed = None
            if previous is not None and self.interval > 0:
                speed = haversine_km(previous[1], previous[0], lat, lon) * 1000 / self.interval
            callback(lon, lat, speed, time.time())
            previous = (lon, lat)
            if self._stop_event.wait(self.interval):
                break

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


class NullMotionProvider:
    """Motion provider for devices without an accelerometer."""

    def start(self, callback: MotionCallback) -> bool:
        logger.info("No accelerometer on this platform; lean angle disabled")
        return False

    def stop(self) -> None:
        pass

    @property
    def is_running(self) -> bool:
        return False


def get_sensor_providers(
    config: dict, platform_type: str = "desktop"
) -> tuple[LocationProvider, MotionProvider]:
    """
    Factory function to get sensor providers for the current platform.

    Args:
        config: ``recording`` configuration section
        platform_type: Platform type ("desktop", "android", "ios")

    Returns:
        (location provider, motion provider)
    """
    if platform_type == "android":
        try:
            providers = (AndroidLocationProvider(config), AndroidMotionProvider(config))
            logger.info("Using plyer GPS and accelerometer")
            return providers
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Android sensors not available, falling back to replay: {e}")

    replay_file = config.get("replay_file")
    interval = float(config.get("replay_interval", 1.0))
    if replay_file and Path(replay_file).exists():
        location: LocationProvider = ReplayLocationProvider.from_gpx(replay_file, interval)
    else:
        location = ReplayLocationProvider([], interval)
    logger.info("Using ReplayLocationProvider")
    return location, NullMotionProvider()

"""
Lean angle from the accelerometer.

Roll is taken from the gravity vector with the phone mounted upright:
negative roll is a left lean, positive a right lean. The raw angle goes
through three stages:

1. Motion lock: below walking-the-bike speed the angle is forced to 0 and
   the smoothing state is reset, so mounting and parking do not register.
2. Exponential moving average, so the gauge moves like a needle.
3. Clamp to a realistic maximum, discarding garbage spikes.
"""

import logging
import math
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_ALPHA = 0.15
DEFAULT_MAX_LEAN = 70.0
DEFAULT_MOTION_LOCK_KMH = 10.0


def roll_from_gravity(x: float | None, y: float | None, z: float | None) -> float | None:
    """
    Roll angle in degrees from an acceleration-including-gravity sample.

    Returns:
        ``atan2(x, sqrt(y^2 + z^2))`` in degrees, or None for invalid samples
    """
    if x is None or y is None or z is None:
        return None
    if any(math.isnan(v) or math.isinf(v) for v in (x, y, z)):
        return None
    return math.degrees(math.atan2(x, math.sqrt(y * y + z * z)))


class LeanAngleFilter:
    """
    Motion lock, EMA smoothing and clamping for raw roll angles.

    Usage:
        lean_filter = LeanAngleFilter()
        lean_filter.speed_ms = 12.0
        lean = lean_filter.process(raw_roll - calibration_offset)
    """

    def __init__(
        self,
        alpha: float = DEFAULT_ALPHA,
        max_lean: float = DEFAULT_MAX_LEAN,
        motion_lock_kmh: float = DEFAULT_MOTION_LOCK_KMH,
    ):
        if not 0 < alpha <= 1:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self.alpha = alpha
        self.max_lean = max_lean
        self.motion_lock_ms = motion_lock_kmh / 3.6
        self.speed_ms = 0.0
        self._smoothed = 0.0

    @property
    def smoothed(self) -> float:
        """Signed EMA state (negative = left)."""
        return self._smoothed

    def reset(self) -> None:
        self._smoothed = 0.0

    def process(self, roll_deg: float) -> float:
        """
        Process one calibrated roll sample.

        Returns:
            Unsigned lean in degrees, 0 while motion-locked
        """
        if self.speed_ms < self.motion_lock_ms:
            self._smoothed = 0.0
            return 0.0

        self._smoothed = roll_deg * self.alpha + self._smoothed * (1 - self.alpha)
        return min(abs(self._smoothed), self.max_lean)


@dataclass
class LeanPeaks:
    """Running maximum lean to each side, in degrees."""

    max_left: float = 0.0
    max_right: float = 0.0
    current: float = 0.0

    def update(self, roll_deg: float, processed: float) -> None:
        """
        Record a processed sample.

        Args:
            roll_deg: Calibrated signed roll (sign picks the side)
            processed: Output of ``LeanAngleFilter.process``
        """
        rounded = round(processed, 1)
        self.current = rounded
        if processed <= 0:
            return
        if roll_deg < 0:
            if processed > self.max_left:
                self.max_left = rounded
        elif processed > self.max_right:
            self.max_right = rounded

    def reset(self) -> None:
        self.max_left = 0.0
        self.max_right = 0.0
        self.current = 0.0

"""
Unit tests for the ride recorder state machine.
"""

import pytest

from apex.core.preferences import Preferences
from apex.core.recorder import CALIBRATION_KEY, RecorderState, RideRecorder

START = 1_736_065_800.0  # 2025-01-05T08:30:00Z

# Accelerometer sample for a 30 degree right lean
RIGHT_30 = (4.905, 8.4957, 0.0)
LEFT_30 = (-4.905, 8.4957, 0.0)


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder(test_config, clock, toasts):
    config = dict(test_config["recording"], ema_alpha=1.0)
    return RideRecorder(config, Preferences(), toasts, clock=clock)


class TestLifecycle:
    """Tests for start, pause, resume and stop."""

    def test_initial_state(self, recorder):
        assert recorder.state == RecorderState.IDLE
        assert not recorder.is_recording
        assert recorder.stop() is None

    def test_start_once(self, recorder):
        assert recorder.start()
        assert recorder.state == RecorderState.RECORDING
        assert not recorder.start()

    def test_pause_resume(self, recorder):
        recorder.start()
        assert recorder.pause()
        assert recorder.is_paused
        assert recorder.is_recording
        assert not recorder.pause()
        assert recorder.resume()
        assert recorder.state == RecorderState.RECORDING

    def test_toggle_pause(self, recorder):
        recorder.start()
        recorder.toggle_pause()
        assert recorder.is_paused
        recorder.toggle_pause()
        assert not recorder.is_paused

    def test_stop_summary(self, recorder, clock):
        recorder.start()
        recorder.add_position(77.5946, 12.9716, 10.0)
        clock.advance(60)
        recorder.add_position(77.6046, 12.9716, 10.0)
        clock.advance(60)

        summary = recorder.stop()

        assert recorder.state == RecorderState.IDLE
        assert summary.duration_seconds == 120
        assert summary.distance_km == pytest.approx(1.08, abs=0.01)
        assert summary.coordinates == [(77.5946, 12.9716), (77.6046, 12.9716)]
        assert summary.route_path.to_dict()["type"] == "LineString"

    def test_single_point_has_no_route(self, recorder):
        recorder.start()
        recorder.add_position(77.5946, 12.9716, 10.0)
        summary = recorder.stop()
        assert summary.route_path is None
        assert summary.to_dict()["route_path"] is None

    def test_listeners_notified(self, recorder):
        states = []
        recorder.add_listener(lambda r: states.append(r.state))
        recorder.start()
        recorder.stop()
        assert states == [RecorderState.RECORDING, RecorderState.IDLE]


class TestPositions:
    def test_ignored_when_not_recording(self, recorder):
        assert not recorder.add_position(77.59, 12.97, 10.0)
        recorder.start()
        recorder.pause()
        assert not recorder.add_position(77.59, 12.97, 10.0)
        assert recorder.coordinates == []

    def test_speed(self, recorder):
        recorder.start()
        recorder.add_position(77.59, 12.97, 10.0)
        assert recorder.speed_kmh == pytest.approx(36.0)

    def test_auto_pause_after_no_movement(self, recorder, clock, toasts):
        recorder.start()
        recorder.add_position(77.59, 12.97, 0.0)
        clock.advance(299)
        recorder.add_position(77.59, 12.97, 0.0)
        assert recorder.state == RecorderState.RECORDING

        clock.advance(1)
        recorder.add_position(77.59, 12.97, 0.0)
        assert recorder.state == RecorderState.PAUSED
        assert "No movement detected for 5 minutes" in toasts.messages[-1]

    def test_movement_resets_auto_pause(self, recorder, clock):
        recorder.start()
        recorder.add_position(77.59, 12.97, 0.0)
        clock.advance(200)
        recorder.add_position(77.59, 12.97, 5.0)
        clock.advance(200)
        recorder.add_position(77.59, 12.97, 0.0)
        assert recorder.state == RecorderState.RECORDING

    def test_resume_restarts_idle_timer(self, recorder, clock):
        recorder.start()
        recorder.add_position(77.59, 12.97, 0.0)
        clock.advance(300)
        recorder.add_position(77.59, 12.97, 0.0)
        assert recorder.is_paused

        recorder.resume()
        clock.advance(10)
        recorder.add_position(77.59, 12.97, 0.0)
        assert recorder.state == RecorderState.RECORDING


class TestLean:
    """Tests for accelerometer handling during a ride."""

    def test_ignored_when_idle(self, recorder):
        assert recorder.add_motion(*RIGHT_30) is None

    def test_motion_locked_when_slow(self, recorder):
        recorder.start()
        recorder.add_position(77.59, 12.97, 1.0)
        assert recorder.add_motion(*RIGHT_30) == 0.0

    def test_peaks_per_side(self, recorder):
        recorder.start()
        recorder.add_position(77.59, 12.97, 15.0)
        recorder.add_motion(*RIGHT_30)
        recorder.add_motion(*LEFT_30)
        assert recorder.max_lean_right == pytest.approx(30.0, abs=0.1)
        assert recorder.max_lean_left == pytest.approx(30.0, abs=0.1)

    def test_pocket_mode_holds_lean(self, recorder):
        recorder.start()
        recorder.add_position(77.59, 12.97, 15.0)
        recorder.pocket_mode = True
        assert recorder.add_motion(*RIGHT_30) is None
        assert recorder.max_lean_right == 0.0

    def test_invalid_sample(self, recorder):
        recorder.start()
        assert recorder.add_motion(None, 9.8, 0.0) is None

    def test_calibration_offsets_and_persists(self, clock, test_config):
        preferences = Preferences()
        recorder = RideRecorder(dict(test_config["recording"], ema_alpha=1.0), preferences, clock=clock)
        recorder.add_motion(*RIGHT_30)  # phone mounted tilted
        offset = recorder.calibrate()

        assert offset == pytest.approx(30.0, abs=0.1)
        assert preferences.get_float(CALIBRATION_KEY) == pytest.approx(30.0, abs=0.1)

        recorder.start()
        recorder.add_position(77.59, 12.97, 15.0)
        assert recorder.add_motion(*RIGHT_30) == pytest.approx(0.0, abs=0.1)

        reloaded = RideRecorder(test_config["recording"], preferences, clock=clock)
        assert reloaded.calibration_offset == pytest.approx(30.0, abs=0.1)

    def test_reset_calibration(self, recorder):
        recorder.add_motion(*RIGHT_30)
        recorder.calibrate()
        recorder.reset_calibration()
        assert recorder.calibration_offset == 0.0
        assert recorder.preferences.get(CALIBRATION_KEY) is None

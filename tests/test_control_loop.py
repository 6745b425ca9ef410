"""
Tests for the lane keeping control cycle.
"""

import threading
import time
from unittest.mock import MagicMock

import numpy as np
import pytest

from lanekeeping.control_loop import ActuationCommand, ControlLoop, build_steering_law, round_half_away
from lanekeeping.lane_detector import LaneDetector, LanePosition
from lanekeeping.perception_bridge import PerceptionBridge
from lanekeeping.pid_controller import PIDController
from lanekeeping.stanley_controller import StanleyController
from lanekeeping.steering_law import SteeringLaw
from conftest import make_params


class FixedDetector(LaneDetector):
    """Returns queued positions, then repeats the last one."""

    def __init__(self, *positions):
        self.positions = list(positions)
        self.calls = 0

    def get_lane_position(self, frame):
        self.calls += 1
        if len(self.positions) > 1:
            return self.positions.pop(0)
        return self.positions[0]


class RecordingLaw(SteeringLaw):
    """Returns a fixed raw steering angle and records its inputs."""

    def __init__(self, output=0.0):
        self.output = output
        self.calls = []

    def compute_steering(self, cross_track_error, heading_error, speed):
        self.calls.append((cross_track_error, heading_error, float(speed)))
        return self.output


def _make_loop(params=None, detector=None, law=None, bridge=None, **kwargs):
    params = params or make_params()
    published = []
    loop = ControlLoop(
        params,
        perception=bridge or PerceptionBridge(),
        detector=detector or FixedDetector(LanePosition(200, 440)),
        publish=published.append,
        steering_law=law,
        **kwargs,
    )
    return loop, published


class TestIdle:
    def test_no_frame_skips_cycle(self):
        detector = FixedDetector(LanePosition(200, 440))
        law = RecordingLaw()
        loop, published = _make_loop(detector=detector, law=law)

        for _ in range(100):
            assert loop.step() is None

        assert published == []
        assert detector.calls == 0
        assert law.calls == []
        assert len(loop.moving_average) == 0
        assert loop.speed == pytest.approx(10.0)
        assert not loop.active

    def test_becomes_active_on_first_frame(self, blank_image):
        loop, published = _make_loop()
        assert loop.step() is None
        loop.perception.on_frame(blank_image)
        assert loop.step() is not None
        assert loop.active
        assert len(published) == 1


class TestActiveCycle:
    def test_error_from_mid_includes_offset(self, blank_image):
        """640 wide frame, lanes at 200/440: center 320, error = 320 - 320 + 6."""
        law = RecordingLaw()
        loop, _ = _make_loop(law=law)
        loop.perception.on_frame(blank_image)
        loop.step()
        assert law.calls == [(6, 0, 10.0)]

    def test_law_receives_speed_before_update(self, blank_image):
        law = RecordingLaw()
        loop, _ = _make_loop(law=law)
        loop.perception.on_frame(blank_image)
        loop.step()
        loop.step()
        assert [call[2] for call in law.calls] == [10.0, 11.0]

    def test_offset_is_configurable(self, blank_image):
        law = RecordingLaw()
        loop, _ = _make_loop(params=make_params(steering_offset=-3), law=law)
        loop.perception.on_frame(blank_image)
        loop.step()
        assert law.calls[0][0] == -3

    @pytest.mark.parametrize("raw, expected", [(1000.0, 50), (-1000.0, -50), (12.4, 12), (-12.6, -13)])
    def test_steering_is_clamped_and_rounded(self, blank_image, raw, expected):
        loop, published = _make_loop(law=RecordingLaw(raw))
        loop.perception.on_frame(blank_image)
        command = loop.step()
        assert command.angle == expected
        assert published == [command]
        assert -50.0 <= loop.steering_angle <= 50.0

    def test_speed_ramps_down_on_sharp_steering(self, blank_image):
        """speed 10, threshold 5, steering 8, deceleration 2 -> 8."""
        loop, _ = _make_loop(law=RecordingLaw(8.0))
        loop.perception.on_frame(blank_image)
        command = loop.step()
        assert loop.speed == pytest.approx(8.0)
        assert command == ActuationCommand(angle=8, speed=8)

    def test_speed_ramps_up_on_straight(self, blank_image):
        loop, _ = _make_loop(law=RecordingLaw(0.0))
        loop.perception.on_frame(blank_image)
        speeds = [loop.step().speed for _ in range(15)]
        assert speeds[:3] == [11, 12, 13]
        assert speeds[-1] == 20

    def test_clamped_steering_drives_speed_decision(self, blank_image):
        """Speed reacts to the clamped angle, never to the raw law output."""
        loop, _ = _make_loop(params=make_params(speed_control_threshold=60.0), law=RecordingLaw(1000.0))
        loop.perception.on_frame(blank_image)
        loop.step()
        assert loop.speed == pytest.approx(11.0)

    def test_stale_frame_is_reprocessed(self, blank_image):
        detector = FixedDetector(LanePosition(200, 440))
        loop, published = _make_loop(detector=detector)
        loop.perception.on_frame(blank_image)
        for _ in range(3):
            loop.step()
        assert detector.calls == 3
        assert len(published) == 3

    def test_smoothed_center_converges(self, blank_image):
        """After sample_size cycles of a constant detection the center holds."""
        detector = FixedDetector(
            LanePosition(100, 300),
            LanePosition(120, 320),
            LanePosition(200, 440),
        )
        law = RecordingLaw()
        loop, _ = _make_loop(detector=detector, law=law)
        loop.perception.on_frame(blank_image)
        for _ in range(12):
            loop.step()
        errors = [call[0] for call in law.calls]
        assert errors[0] != 6
        # Window of 5 is filled with the constant midpoint from cycle 7 onwards.
        assert errors[6:] == [6] * 6
        assert loop.moving_average.get_result() == pytest.approx(320.0)

    def test_midpoint_sample_is_truncated(self, blank_image):
        law = RecordingLaw()
        loop, _ = _make_loop(detector=FixedDetector(LanePosition(201, 440)), law=law)
        loop.perception.on_frame(blank_image)
        loop.step()
        # (201 + 440) / 2 = 320.5 -> 320
        assert law.calls[0][0] == 6

    def test_smoothed_center_is_rounded(self, blank_image):
        """Midpoints 320, 321, 321 average to 320.67, which rounds to 321."""
        detector = FixedDetector(LanePosition(200, 440), LanePosition(202, 440), LanePosition(202, 440))
        law = RecordingLaw()
        loop, _ = _make_loop(detector=detector, law=law)
        loop.perception.on_frame(blank_image)
        for _ in range(3):
            loop.step()
        # 320.5 after two cycles rounds half away from zero.
        assert [call[0] for call in law.calls] == [6, 7, 7]

    def test_debug_hook(self, blank_image):
        on_debug = MagicMock()
        loop, _ = _make_loop(on_debug=on_debug)
        loop.perception.on_frame(blank_image)
        loop.step()
        on_debug.assert_called_once_with(LanePosition(200, 440), 320)


class TestMissingDetection:
    def test_none_position_skips_without_state_change(self, blank_image):
        logger = MagicMock()
        detector = FixedDetector(None)
        law = RecordingLaw()
        loop, published = _make_loop(detector=detector, law=law, logger=logger)
        loop.perception.on_frame(blank_image)

        for _ in range(3):
            assert loop.step() is None

        assert published == []
        assert law.calls == []
        assert len(loop.moving_average) == 0
        assert loop.speed == pytest.approx(10.0)
        assert loop.missed_detections == 3
        # Warning is throttled to once per second of misses.
        assert logger.warning.call_count == 1

    def test_recovers_after_miss(self, blank_image):
        loop, published = _make_loop(detector=FixedDetector(None, LanePosition(200, 440)))
        loop.perception.on_frame(blank_image)
        assert loop.step() is None
        assert loop.step() is not None
        assert len(published) == 1


class TestSteeringLawSelection:
    def test_stanley_by_default(self):
        assert isinstance(build_steering_law(make_params()), StanleyController)

    def test_pid_selected(self):
        law = build_steering_law(make_params(steering_law="pid", pid_p_gain=1.0, pid_i_gain=0.0, pid_d_gain=0.0))
        assert isinstance(law, PIDController)

    def test_loop_output_with_pid(self, blank_image):
        params = make_params(steering_law="pid", pid_p_gain=1.0, pid_i_gain=0.0, pid_d_gain=0.0)
        loop, _ = _make_loop(params=params)
        loop.perception.on_frame(blank_image)
        assert loop.step().angle == 6


class TestPrecision:
    def test_float32_is_used_throughout(self, blank_image):
        loop, _ = _make_loop(params=make_params(precision="float32"))
        loop.perception.on_frame(blank_image)
        command = loop.step()
        assert isinstance(loop.speed, np.float32)
        assert isinstance(loop.steering_angle, np.float32)
        assert isinstance(command.angle, int)
        assert isinstance(command.speed, int)


class TestRun:
    def test_run_until_stopped(self, blank_image):
        loop, published = _make_loop(params=make_params(control_rate=200.0))
        loop.perception.on_frame(blank_image)
        stop = threading.Event()
        thread = threading.Thread(target=loop.run, args=(stop,))
        thread.start()
        time.sleep(0.2)
        stop.set()
        thread.join(timeout=2.0)

        assert not thread.is_alive()
        assert len(published) > 0
        assert loop.cycles == len(published)

    def test_run_idle_without_frames(self):
        loop, published = _make_loop(params=make_params(control_rate=200.0))
        stop = threading.Event()
        thread = threading.Thread(target=loop.run, args=(stop,))
        thread.start()
        time.sleep(0.05)
        stop.set()
        thread.join(timeout=2.0)
        assert published == []


def test_round_half_away():
    assert round_half_away(2.5) == 3
    assert round_half_away(-2.5) == -3
    assert round_half_away(0.4) == 0
    assert round_half_away(np.float32(49.6)) == 50

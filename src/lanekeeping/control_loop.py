"""Fixed-rate lane-keeping cycle: frame -> lane position -> steering and speed command."""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .config import ControlParameters
from .lane_detector import LaneDetector, LanePosition
from .moving_average_filter import MovingAverageFilter
from .perception_bridge import PerceptionBridge
from .pid_controller import PIDController
from .speed_controller import SpeedController
from .stanley_controller import StanleyController
from .steering_law import SteeringLaw


@dataclass(frozen=True)
class ActuationCommand:
    """Rounded steering angle [deg] and speed sent to the motor driver."""

    angle: int
    speed: int


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(float(value)) + 0.5), float(value)))


def build_steering_law(params: ControlParameters) -> SteeringLaw:
    """Instantiate the steering law selected in the configuration."""
    if params.steering_law == "pid":
        return PIDController(
            kp=params.pid_p_gain,
            ki=params.pid_i_gain,
            kd=params.pid_d_gain,
            dtype=params.dtype,
        )
    return StanleyController(
        gain=params.stanley_gain,
        look_ahead_distance=params.look_ahead_distance,
        heading_gain=params.heading_gain,
        dtype=params.dtype,
    )


class ControlLoop:
    """
    Perception -> decision -> actuation cycle.

    Idle until the perception bridge holds a frame, then every ``step()`` runs
    the full pipeline on the latest frame (re-using it if no new one arrived)
    and hands one ActuationCommand to ``publish``.
    """

    def __init__(
        self,
        params: ControlParameters,
        perception: PerceptionBridge,
        detector: LaneDetector,
        publish: Callable[[ActuationCommand], None],
        steering_law: Optional[SteeringLaw] = None,
        speed_controller: Optional[SpeedController] = None,
        moving_average: Optional[MovingAverageFilter] = None,
        on_debug: Optional[Callable[[LanePosition, int], None]] = None,
        logger: Optional[Any] = None,
    ):
        self.params = params
        self.dtype = params.dtype
        self.perception = perception
        self.detector = detector
        self.publish = publish
        self.steering_law = steering_law if steering_law is not None else build_steering_law(params)
        self.speed_controller = speed_controller if speed_controller is not None else SpeedController(
            min_speed=params.min_speed,
            max_speed=params.max_speed,
            speed_control_threshold=params.speed_control_threshold,
            acceleration_step=params.acceleration_step,
            deceleration_step=params.deceleration_step,
            dtype=self.dtype,
        )
        self.moving_average = (
            moving_average if moving_average is not None else MovingAverageFilter(params.sample_size, dtype=self.dtype)
        )
        self.on_debug = on_debug
        self.logger = logger or logging.getLogger(__name__)

        self.steering_limit = self.dtype(params.steering_angle_limit)
        self.speed = self.dtype(params.start_speed)
        self.steering_angle = self.dtype(0.0)
        self.cycles = 0
        self.missed_detections = 0

    @property
    def active(self) -> bool:
        return self.cycles > 0

    def step(self) -> Optional[ActuationCommand]:
        """Run one control cycle. Returns the published command, or None if the cycle was skipped."""
        frame = self.perception.current_frame()
        if frame is None:
            return None

        position = self.detector.get_lane_position(frame)
        if position is None:
            self.missed_detections += 1
            # Log the first miss and then once per second of misses.
            if (self.missed_detections - 1) % max(1, int(self.params.control_rate)) == 0:
                self.logger.warning(f"No lane position reported ({self.missed_detections} cycles skipped).")
            return None
        left_x, right_x = position

        self.moving_average.add_sample(int((left_x + right_x) / 2))
        estimated_x = round_half_away(self.moving_average.get_result())
        error_from_mid = estimated_x - frame.shape[1] // 2 + self.params.steering_offset

        raw_steering = self.steering_law.compute_steering(error_from_mid, 0, self.speed)
        self.steering_angle = self.clamp_steering(raw_steering)
        self.speed = self.speed_controller.update(self.speed, self.steering_angle)

        command = ActuationCommand(angle=round_half_away(self.steering_angle), speed=round_half_away(self.speed))
        self.cycles += 1
        self.logger.debug(
            f"lpos={left_x} rpos={right_x} mpos={estimated_x} err={error_from_mid} "
            f"steer={float(self.steering_angle):.2f} speed={float(self.speed):.2f}"
        )
        self.publish(command)

        if self.on_debug is not None:
            self.on_debug(position, estimated_x)
        return command

    def clamp_steering(self, steering: float):
        return self.dtype(max(-self.steering_limit, min(self.dtype(steering), self.steering_limit)))

    def run(self, stop_event: threading.Event) -> None:
        """Call ``step()`` at the configured rate until ``stop_event`` is set."""
        period = 1.0 / self.params.control_rate
        next_tick = time.monotonic()
        while not stop_event.is_set():
            self.step()
            next_tick += period
            delay = next_tick - time.monotonic()
            if delay > 0:
                stop_event.wait(delay)
            else:
                # Overran the period; re-anchor instead of bursting to catch up.
                next_tick = time.monotonic()

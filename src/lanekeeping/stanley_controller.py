"""Stanley lateral controller operating on pixel cross-track error."""

from __future__ import annotations

import math
from typing import Type

import numpy as np

from .steering_law import SteeringLaw


class StanleyController(SteeringLaw):
    """Compute steering commands using the Stanley method."""

    def __init__(
        self,
        gain: float,
        look_ahead_distance: float,
        heading_gain: float = 1.0,
        min_speed: float = 0.1,
        dtype: Type[np.floating] = np.float64,
    ):
        self.gain = gain
        self.look_ahead_distance = look_ahead_distance
        self.heading_gain = heading_gain
        self.min_speed = min_speed
        self.dtype = dtype

    def compute_steering(self, cross_track_error: int, heading_error: float, speed: float) -> np.floating:
        """
        Compute the steering angle using Stanley's control law.

        The look-ahead distance plays the role of the softening term, keeping the
        cross-track response finite when the vehicle is slow.

        Returns:
            steering angle [deg], not clamped.
        """
        v_eff = max(self.min_speed, abs(float(speed)))

        heading_term = self.heading_gain * heading_error
        cross_track_term = math.atan2(self.gain * cross_track_error, self.look_ahead_distance + v_eff)

        return self.dtype(math.degrees(heading_term + cross_track_term))

"""Hysteretic speed ramp driven by the commanded steering magnitude."""

from __future__ import annotations

from typing import Type

import numpy as np


class SpeedController:
    """Step speed down on sharp steering and back up otherwise, within fixed bounds."""

    def __init__(
        self,
        min_speed: float,
        max_speed: float,
        speed_control_threshold: float,
        acceleration_step: float,
        deceleration_step: float,
        dtype: Type[np.floating] = np.float64,
    ):
        if min_speed > max_speed:
            raise ValueError(f"min_speed ({min_speed}) must not exceed max_speed ({max_speed})")
        self.dtype = dtype
        self.min_speed = dtype(min_speed)
        self.max_speed = dtype(max_speed)
        self.speed_control_threshold = dtype(speed_control_threshold)
        self.acceleration_step = dtype(acceleration_step)
        self.deceleration_step = dtype(deceleration_step)

    def update(self, speed: float, steering_angle: float) -> np.floating:
        """
        Return the next speed given the previous one and the clamped steering angle.

        Holds no state of its own; the caller owns the speed value.
        """
        speed = self.dtype(speed)
        if abs(self.dtype(steering_angle)) > self.speed_control_threshold:
            return max(self.dtype(speed - self.deceleration_step), self.min_speed)
        return min(self.dtype(speed + self.acceleration_step), self.max_speed)

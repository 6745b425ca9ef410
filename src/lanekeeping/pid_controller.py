"""Discrete PID steering law, kept as an alternative to the Stanley law."""

from __future__ import annotations

from typing import Optional, Type

import numpy as np

from .steering_law import SteeringLaw


class PIDController(SteeringLaw):
    """PID on the pixel cross-track error, updated once per control cycle."""

    def __init__(
        self,
        kp: float,
        ki: float,
        kd: float,
        integral_limit: Optional[float] = None,
        dtype: Type[np.floating] = np.float64,
    ):
        self.kp = kp
        self.ki = ki
        self.kd = kd
        self.integral_limit = integral_limit
        self.dtype = dtype

        self.integral = dtype(0.0)
        self.prev_error = dtype(0.0)

    def reset(self) -> None:
        """Reset internal PID state."""
        self.integral = self.dtype(0.0)
        self.prev_error = self.dtype(0.0)

    def get_control_output(self, error: float) -> np.floating:
        """Advance one cycle and return kp*e + ki*sum(e) + kd*(e - e_prev)."""
        error = self.dtype(error)
        derivative = error - self.prev_error
        self.prev_error = error

        self.integral += error
        # Basic anti-windup
        if self.integral_limit is not None:
            self.integral = self.dtype(max(-self.integral_limit, min(self.integral, self.integral_limit)))

        return self.dtype(self.kp * error + self.ki * self.integral + self.kd * derivative)

    def compute_steering(self, cross_track_error: int, heading_error: float, speed: float) -> np.floating:
        # Heading and speed are not part of this law.
        return self.get_control_output(cross_track_error)

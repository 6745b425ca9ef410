"""Common interface for lateral steering laws."""

from __future__ import annotations

from abc import ABC, abstractmethod


class SteeringLaw(ABC):
    """A policy mapping lane-tracking errors to a raw steering angle [deg]."""

    @abstractmethod
    def compute_steering(self, cross_track_error: int, heading_error: float, speed: float) -> float:
        """
        Compute an unbounded steering angle.

        Args:
            cross_track_error: lateral offset of the lane center from the image center [px]
            heading_error: heading misalignment with the lane [rad]
            speed: current commanded vehicle speed
        """

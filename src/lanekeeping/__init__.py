"""Lane keeping controller package exposing filtering, steering, speed and loop modules."""

from .config import ConfigError, ControlParameters, DetectorParams, load_config
from .control_loop import ActuationCommand, ControlLoop
from .lane_detector import HoughTransformLaneDetector, LaneDetector, LanePosition
from .moving_average_filter import EmptyFilterError, MovingAverageFilter
from .perception_bridge import PerceptionBridge
from .pid_controller import PIDController
from .speed_controller import SpeedController
from .stanley_controller import StanleyController
from .steering_law import SteeringLaw

__all__ = [
    "ActuationCommand",
    "ConfigError",
    "ControlLoop",
    "ControlParameters",
    "DetectorParams",
    "EmptyFilterError",
    "HoughTransformLaneDetector",
    "LaneDetector",
    "LanePosition",
    "MovingAverageFilter",
    "PIDController",
    "PerceptionBridge",
    "SpeedController",
    "StanleyController",
    "SteeringLaw",
    "load_config",
]

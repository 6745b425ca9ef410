"""Loading and validation of the lane-keeping YAML configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Type

import numpy as np
import yaml

PRECISIONS: Dict[str, Type[np.floating]] = {
    "float32": np.float32,
    "float64": np.float64,
}
STEERING_LAWS = ("stanley", "pid")


class ConfigError(ValueError):
    """Raised when the configuration is missing, malformed or inconsistent."""


@dataclass(frozen=True)
class DetectorParams:
    """Settings for the Hough-transform lane detector."""

    canny_low: int = 60
    canny_high: int = 70
    blur_kernel: int = 5
    roi_start_height: int = 320
    roi_height: int = 40
    hough_rho: float = 1.0
    hough_threshold: int = 30
    hough_min_line_length: int = 20
    hough_max_line_gap: int = 10
    slope_threshold: float = 0.1


@dataclass(frozen=True)
class ControlParameters:
    """Configuration bundle read once at startup."""

    pub_topic: str
    sub_topic: str
    queue_size: int
    start_speed: float
    max_speed: float
    min_speed: float
    speed_control_threshold: float
    acceleration_step: float
    deceleration_step: float
    stanley_gain: float
    look_ahead_distance: float
    steering_angle_limit: float = 50.0
    steering_offset: int = 6
    heading_gain: float = 1.0
    sample_size: int = 20
    pid_p_gain: float = 0.5
    pid_i_gain: float = 0.0
    pid_d_gain: float = 0.1
    steering_law: str = "stanley"
    control_rate: float = 30.0
    precision: str = "float64"
    debug: bool = False
    detector: DetectorParams = field(default_factory=DetectorParams)

    @property
    def dtype(self) -> Type[np.floating]:
        return PRECISIONS[self.precision]


def _integer(value: Any) -> int:
    """int() that refuses to truncate, e.g. 2.7 or "2.7"."""
    number = float(value)
    if not number.is_integer():
        raise ValueError("expected a whole number")
    return int(number)


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = config.get(name)
    if not isinstance(value, dict):
        raise ConfigError(f"Missing or malformed section '{name}'.")
    return value


def _get(section: Dict[str, Any], key: str, cast, where: str, default: Any = None):
    name = f"{where}.{key}" if where else key
    if key not in section or section[key] is None:
        if default is None:
            raise ConfigError(f"Missing required field '{name}'.")
        return default
    value = section[key]
    if isinstance(value, (dict, list, bool)):
        raise ConfigError(f"Field '{name}' has invalid value {value!r}.")
    try:
        return cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Field '{name}' has invalid value {value!r}: {exc}") from exc


def _detector_params(config: Dict[str, Any]) -> DetectorParams:
    hough = config.get("HOUGH") or {}
    if not isinstance(hough, dict):
        raise ConfigError("Section 'HOUGH' must be a mapping.")
    defaults = DetectorParams()
    return DetectorParams(
        canny_low=_get(hough, "CANNY_LOW", _integer, "HOUGH", defaults.canny_low),
        canny_high=_get(hough, "CANNY_HIGH", _integer, "HOUGH", defaults.canny_high),
        blur_kernel=_get(hough, "BLUR_KERNEL", _integer, "HOUGH", defaults.blur_kernel),
        roi_start_height=_get(hough, "ROI_START_HEIGHT", _integer, "HOUGH", defaults.roi_start_height),
        roi_height=_get(hough, "ROI_HEIGHT", _integer, "HOUGH", defaults.roi_height),
        hough_rho=_get(hough, "RHO", float, "HOUGH", defaults.hough_rho),
        hough_threshold=_get(hough, "THRESHOLD", _integer, "HOUGH", defaults.hough_threshold),
        hough_min_line_length=_get(hough, "MIN_LINE_LENGTH", _integer, "HOUGH", defaults.hough_min_line_length),
        hough_max_line_gap=_get(hough, "MAX_LINE_GAP", _integer, "HOUGH", defaults.hough_max_line_gap),
        slope_threshold=_get(hough, "SLOPE_THRESHOLD", float, "HOUGH", defaults.slope_threshold),
    )


def parse_config(config: Dict[str, Any]) -> ControlParameters:
    """Build ControlParameters from an already parsed YAML mapping."""
    if not isinstance(config, dict):
        raise ConfigError("Configuration root must be a mapping.")

    topic = _section(config, "TOPIC")
    xycar = _section(config, "XYCAR")
    stanley = _section(config, "STANLEY")
    pid = config.get("PID") or {}
    if not isinstance(pid, dict):
        raise ConfigError("Section 'PID' must be a mapping.")
    maf = _section(config, "MOVING_AVERAGE_FILTER")
    defaults = ControlParameters  # dataclass defaults for optional fields

    if "DEBUG" not in config:
        raise ConfigError("Missing required field 'DEBUG'.")
    debug = config["DEBUG"]
    if not isinstance(debug, bool):
        raise ConfigError(f"Field 'DEBUG' must be a boolean, got {debug!r}.")

    params = ControlParameters(
        pub_topic=_get(topic, "PUB_NAME", str, "TOPIC"),
        sub_topic=_get(topic, "SUB_NAME", str, "TOPIC"),
        queue_size=_get(topic, "QUEUE_SIZE", _integer, "TOPIC"),
        start_speed=_get(xycar, "START_SPEED", float, "XYCAR"),
        max_speed=_get(xycar, "MAX_SPEED", float, "XYCAR"),
        min_speed=_get(xycar, "MIN_SPEED", float, "XYCAR"),
        speed_control_threshold=_get(xycar, "SPEED_CONTROL_THRESHOLD", float, "XYCAR"),
        acceleration_step=_get(xycar, "ACCELERATION_STEP", float, "XYCAR"),
        deceleration_step=_get(xycar, "DECELERATION_STEP", float, "XYCAR"),
        steering_angle_limit=_get(xycar, "STEERING_ANGLE_LIMIT", float, "XYCAR", defaults.steering_angle_limit),
        stanley_gain=_get(stanley, "K_GAIN", float, "STANLEY"),
        look_ahead_distance=_get(stanley, "LOOK_AHEAD_DISTANCE", float, "STANLEY"),
        heading_gain=_get(stanley, "HEADING_GAIN", float, "STANLEY", defaults.heading_gain),
        steering_offset=_get(stanley, "STEERING_OFFSET", _integer, "STANLEY", defaults.steering_offset),
        sample_size=_get(maf, "SAMPLE_SIZE", _integer, "MOVING_AVERAGE_FILTER"),
        pid_p_gain=_get(pid, "P_GAIN", float, "PID", defaults.pid_p_gain),
        pid_i_gain=_get(pid, "I_GAIN", float, "PID", defaults.pid_i_gain),
        pid_d_gain=_get(pid, "D_GAIN", float, "PID", defaults.pid_d_gain),
        steering_law=str(config.get("STEERING_LAW", defaults.steering_law)).lower(),
        control_rate=_get(config, "CONTROL_RATE", float, "", defaults.control_rate),
        precision=str(config.get("PRECISION", defaults.precision)).lower(),
        debug=debug,
        detector=_detector_params(config),
    )
    validate(params)
    return params


def validate(params: ControlParameters) -> None:
    """Check cross-field consistency; raises ConfigError on the first problem."""
    if params.queue_size < 1:
        raise ConfigError(f"TOPIC.QUEUE_SIZE must be positive, got {params.queue_size}.")
    if not params.min_speed <= params.start_speed <= params.max_speed:
        raise ConfigError(
            f"Speeds must satisfy MIN_SPEED <= START_SPEED <= MAX_SPEED, got "
            f"{params.min_speed} / {params.start_speed} / {params.max_speed}."
        )
    if params.acceleration_step < 0 or params.deceleration_step < 0:
        raise ConfigError("ACCELERATION_STEP and DECELERATION_STEP must not be negative.")
    if params.steering_angle_limit <= 0:
        raise ConfigError(f"XYCAR.STEERING_ANGLE_LIMIT must be positive, got {params.steering_angle_limit}.")
    if params.sample_size < 1:
        raise ConfigError(f"MOVING_AVERAGE_FILTER.SAMPLE_SIZE must be positive, got {params.sample_size}.")
    if params.control_rate <= 0:
        raise ConfigError(f"CONTROL_RATE must be positive, got {params.control_rate}.")
    if params.precision not in PRECISIONS:
        raise ConfigError(f"PRECISION must be one of {sorted(PRECISIONS)}, got {params.precision!r}.")
    if params.steering_law not in STEERING_LAWS:
        raise ConfigError(f"STEERING_LAW must be one of {list(STEERING_LAWS)}, got {params.steering_law!r}.")


def load_config(config_path: str | os.PathLike) -> ControlParameters:
    """Read a YAML file and return validated ControlParameters."""
    path = Path(config_path)
    if not path.is_file():
        raise ConfigError(f"Config path does not exist: {path}")
    try:
        with open(path, "r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc
    return parse_config(config or {})

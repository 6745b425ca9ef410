"""Shared fixtures for the lane keeping tests."""

from dataclasses import replace
from types import SimpleNamespace

import numpy as np
import pytest

from lanekeeping.config import ControlParameters


def make_params(**overrides) -> ControlParameters:
    """ControlParameters with test-friendly defaults."""
    params = ControlParameters(
        pub_topic="/xycar_motor",
        sub_topic="/usb_cam/image_raw",
        queue_size=1,
        start_speed=10.0,
        max_speed=20.0,
        min_speed=3.0,
        speed_control_threshold=5.0,
        acceleration_step=1.0,
        deceleration_step=2.0,
        stanley_gain=0.3,
        look_ahead_distance=3.0,
        steering_angle_limit=50.0,
        steering_offset=6,
        sample_size=5,
        control_rate=30.0,
    )
    return replace(params, **overrides)


def make_image(frame_rgb: np.ndarray, padding: int = 0) -> SimpleNamespace:
    """Wrap an RGB array as a transport image message (height/width/step/data)."""
    height, width = frame_rgb.shape[:2]
    step = width * 3 + padding
    rows = np.zeros((height, step), dtype=np.uint8)
    rows[:, : width * 3] = frame_rgb.reshape(height, width * 3)
    return SimpleNamespace(height=height, width=width, step=step, encoding="rgb8", data=rows.tobytes())


@pytest.fixture
def params() -> ControlParameters:
    return make_params()


@pytest.fixture
def blank_image() -> SimpleNamespace:
    return make_image(np.zeros((480, 640, 3), dtype=np.uint8))

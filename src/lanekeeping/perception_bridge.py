"""Frame intake: converts incoming RGB images and keeps the latest one for the control loop."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


SUPPORTED_ENCODINGS = ("rgb8", "bgr8")


def image_to_bgr(height: int, width: int, step: int, data: Any, encoding: str = "rgb8") -> np.ndarray:
    """
    Build a BGR frame from a raw 3-channel 8-bit buffer.

    Args:
        height, width: image size [px]
        step: row stride in bytes (may include padding beyond width * 3)
        data: raw pixel buffer (bytes, bytearray, array.array or ndarray)
        encoding: "rgb8" (converted) or "bgr8" (stored as is)

    Returns:
        np.ndarray of shape (height, width, 3), dtype uint8, BGR ordered.
    """
    if encoding not in SUPPORTED_ENCODINGS:
        raise ValueError(f"Unsupported image encoding '{encoding}', expected one of {list(SUPPORTED_ENCODINGS)}.")
    if step < width * 3:
        raise ValueError(f"Row stride {step} is smaller than width * 3 ({width * 3}).")
    buffer = np.frombuffer(memoryview(data), dtype=np.uint8)
    if buffer.size < height * step:
        raise ValueError(f"Image buffer holds {buffer.size} bytes, expected {height * step}.")
    rows = buffer[: height * step].reshape(height, step)
    pixels = rows[:, : width * 3].reshape(height, width, 3)
    if encoding == "bgr8":
        return pixels.copy()
    return cv2.cvtColor(pixels, cv2.COLOR_RGB2BGR)


class PerceptionBridge:
    """Single-slot, lock-guarded buffer holding the most recent camera frame."""

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self.frames_received = 0

    def on_frame(self, image: Any) -> None:
        """
        Store a new image; ``image`` exposes ``height``, ``width``, ``step``, ``data``
        and optionally ``encoding`` (missing or empty means rgb8).

        Raises ValueError for unsupported encodings or inconsistent buffers; the
        previous frame stays in place.
        """
        encoding = getattr(image, "encoding", "") or "rgb8"
        frame = image_to_bgr(int(image.height), int(image.width), int(image.step), image.data, encoding)
        with self._lock:
            self._frame = frame
            self.frames_received += 1
            if self.frames_received == 1:
                logger.info("First frame received (%dx%d).", frame.shape[1], frame.shape[0])

    def current_frame(self) -> Optional[np.ndarray]:
        """Return the latest frame, or None if nothing has arrived yet."""
        with self._lock:
            return self._frame

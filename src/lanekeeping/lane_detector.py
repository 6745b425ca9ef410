"""Lane position detection: the detector contract and a Hough-transform implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import NamedTuple, Optional, Tuple

import cv2
import numpy as np

from .config import DetectorParams


class LanePosition(NamedTuple):
    """Horizontal pixel positions of the left and right lane lines."""

    left_x: int
    right_x: int


class LaneDetector(ABC):
    """Image -> lane position capability used by the control loop."""

    @abstractmethod
    def get_lane_position(self, frame: np.ndarray) -> Optional[LanePosition]:
        """
        Estimate lane positions in a BGR frame.

        Returns None when no position can be reported; the control loop then
        skips the cycle without touching its state.
        """


class HoughTransformLaneDetector(LaneDetector):
    """
    Canny + probabilistic Hough detector on a horizontal band of the image.

    A side without any detected segment keeps its previous position, starting
    from the frame edges, so a position is always reported.
    """

    def __init__(self, params: DetectorParams, width: int = 640, height: int = 480):
        self.params = params
        self.width = width
        self.height = height
        self.prev_left_x = 0
        self.prev_right_x = width
        self._debug_frame: Optional[np.ndarray] = None

    @property
    def debug_frame(self) -> Optional[np.ndarray]:
        return self._debug_frame

    def get_lane_position(self, frame: np.ndarray) -> LanePosition:
        height, width = frame.shape[:2]
        if width != self.width:
            # Frame size changed under us; previous edge fallbacks no longer apply.
            self.width, self.height = width, height
            self.prev_left_x, self.prev_right_x = 0, width

        roi_top, roi_bottom = self._roi_bounds(height)
        lines = self._detect_lines(frame, roi_top, roi_bottom)
        left_lines, right_lines = self._separate_lines(lines, width)

        y_eval = (roi_top + roi_bottom) / 2.0
        left_x = self._line_x_at(left_lines, y_eval)
        right_x = self._line_x_at(right_lines, y_eval)

        self.prev_left_x = self.prev_left_x if left_x is None else int(np.clip(left_x, 0, width))
        self.prev_right_x = self.prev_right_x if right_x is None else int(np.clip(right_x, 0, width))

        self._debug_frame = frame.copy()
        self._draw_lines(left_lines, (255, 0, 0), roi_top)
        self._draw_lines(right_lines, (0, 0, 255), roi_top)
        return LanePosition(self.prev_left_x, self.prev_right_x)

    def draw_rectangles(self, left_x: int, right_x: int, estimated_x: int) -> None:
        """Mark the lane and estimated center positions on the debug frame."""
        if self._debug_frame is None:
            return
        roi_top, roi_bottom = self._roi_bounds(self._debug_frame.shape[0])
        y = (roi_top + roi_bottom) // 2
        mid = self._debug_frame.shape[1] // 2
        for x, color in ((left_x, (0, 255, 0)), (right_x, (0, 255, 0)), (estimated_x, (0, 0, 255))):
            cv2.rectangle(self._debug_frame, (int(x) - 5, y - 5), (int(x) + 5, y + 5), color, 2)
        cv2.rectangle(self._debug_frame, (mid - 5, y - 5), (mid + 5, y + 5), (255, 255, 255), 2)

    def _roi_bounds(self, height: int) -> Tuple[int, int]:
        top = int(np.clip(self.params.roi_start_height, 0, max(height - 1, 0)))
        bottom = int(np.clip(top + self.params.roi_height, top + 1, height))
        return top, bottom

    def _detect_lines(self, frame: np.ndarray, roi_top: int, roi_bottom: int) -> np.ndarray:
        """Return Hough segments in full-frame coordinates, shape (N, 4) = [x1, y1, x2, y2]."""
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        kernel = max(1, self.params.blur_kernel | 1)
        blurred = cv2.GaussianBlur(gray, (kernel, kernel), 0)
        edges = cv2.Canny(blurred, self.params.canny_low, self.params.canny_high)
        roi = edges[roi_top:roi_bottom, :]

        lines = cv2.HoughLinesP(
            roi,
            self.params.hough_rho,
            np.pi / 180,
            self.params.hough_threshold,
            minLineLength=self.params.hough_min_line_length,
            maxLineGap=self.params.hough_max_line_gap,
        )
        if lines is None:
            return np.empty((0, 4), dtype=np.int32)
        lines = lines.reshape(-1, 4).astype(np.int32)
        lines[:, [1, 3]] += roi_top
        return lines

    def _separate_lines(self, lines: np.ndarray, width: int) -> Tuple[np.ndarray, np.ndarray]:
        """Split segments into left (negative slope, left half) and right (positive slope, right half)."""
        if len(lines) == 0:
            empty = np.empty((0, 4), dtype=np.int32)
            return empty, empty

        x1, y1, x2, y2 = lines.T.astype(float)
        dx = np.where(x2 - x1 == 0, 1e-6, x2 - x1)
        slopes = (y2 - y1) / dx
        steep = np.abs(slopes) > self.params.slope_threshold
        center = width / 2.0

        left_mask = steep & (slopes < 0) & (np.maximum(x1, x2) < center)
        right_mask = steep & (slopes > 0) & (np.minimum(x1, x2) > center)
        return lines[left_mask], lines[right_mask]

    @staticmethod
    def _line_x_at(lines: np.ndarray, y: float) -> Optional[float]:
        """Average the segments into one line and evaluate its x at row y."""
        if len(lines) == 0:
            return None
        x1, y1, x2, y2 = lines.T.astype(float)
        dx = np.where(x2 - x1 == 0, 1e-6, x2 - x1)
        slope = float(np.mean((y2 - y1) / dx))
        x_mean = float(np.mean(np.concatenate([x1, x2])))
        y_mean = float(np.mean(np.concatenate([y1, y2])))
        if abs(slope) < 1e-6:
            return x_mean
        return (y - y_mean) / slope + x_mean

    def _draw_lines(self, lines: np.ndarray, color: Tuple[int, int, int], roi_top: int) -> None:
        for x1, y1, x2, y2 in lines:
            cv2.line(self._debug_frame, (int(x1), int(y1)), (int(x2), int(y2)), color, 2)
        cv2.line(
            self._debug_frame,
            (0, roi_top),
            (self._debug_frame.shape[1], roi_top),
            (0, 255, 255),
            1,
        )

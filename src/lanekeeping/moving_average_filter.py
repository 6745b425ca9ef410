"""Bounded moving-average filter over lane-center estimates."""

from __future__ import annotations

from collections import deque
from typing import Deque, Type

import numpy as np


class EmptyFilterError(RuntimeError):
    """Raised when the filter is read before any sample was added."""


class MovingAverageFilter:
    """Arithmetic mean of the most recent ``sample_size`` samples."""

    def __init__(self, sample_size: int, dtype: Type[np.floating] = np.float64):
        if int(sample_size) < 1:
            raise ValueError(f"sample_size must be a positive integer, got {sample_size}")
        self.sample_size = int(sample_size)
        self.dtype = dtype
        self._samples: Deque[int] = deque(maxlen=self.sample_size)

    def __len__(self) -> int:
        return len(self._samples)

    def add_sample(self, sample: int) -> None:
        """Append a sample; the oldest one is evicted once the window is full."""
        self._samples.append(int(sample))

    def get_result(self) -> np.floating:
        if not self._samples:
            raise EmptyFilterError("get_result() called before any sample was added.")
        return self.dtype(np.mean(np.asarray(self._samples, dtype=self.dtype)))

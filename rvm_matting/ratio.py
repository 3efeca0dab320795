"""Adaptive downsample-ratio control.

Nudges the ratio down when frames run over the time budget and back up when
there is headroom. Decisions are made on the mean of a full window of
latencies, and the window restarts after every change so the effect of one
step is measured before the next.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Optional

logger = logging.getLogger("rvm.ratio")

MIN_RATIO = 0.1
MAX_RATIO = 1.0


def clamp_ratio(ratio: float, low: float = MIN_RATIO, high: float = MAX_RATIO) -> float:
    return max(low, min(high, float(ratio)))


class RatioController:
    """Steps the downsample ratio toward a target frame time."""

    def __init__(
        self,
        target_frame_ms: float,
        step: float = 0.05,
        tolerance: float = 0.15,
        min_ratio: float = MIN_RATIO,
        max_ratio: float = MAX_RATIO,
        window: int = 10,
    ):
        if target_frame_ms <= 0:
            raise ValueError(f"target_frame_ms must be positive, got {target_frame_ms}")
        if window < 1:
            raise ValueError(f"window must be at least 1, got {window}")
        self.target_frame_ms = target_frame_ms
        self.step = step
        self.tolerance = tolerance
        self.min_ratio = clamp_ratio(min_ratio)
        self.max_ratio = clamp_ratio(max_ratio)
        self._samples: Deque[float] = deque(maxlen=window)

    @property
    def mean_ms(self) -> Optional[float]:
        if not self._samples:
            return None
        return sum(self._samples) / len(self._samples)

    def observe(self, elapsed_ms: float, current_ratio: float) -> Optional[float]:
        """Record one frame time; return a new ratio or None to keep the current one."""
        self._samples.append(elapsed_ms)
        if len(self._samples) < self._samples.maxlen:
            return None

        mean = self.mean_ms
        if mean > self.target_frame_ms * (1.0 + self.tolerance):
            proposed = current_ratio - self.step
        elif mean < self.target_frame_ms * (1.0 - self.tolerance):
            proposed = current_ratio + self.step
        else:
            return None

        proposed = round(clamp_ratio(proposed, self.min_ratio, self.max_ratio), 4)
        if proposed == round(current_ratio, 4):
            return None

        self._samples.clear()
        logger.debug(
            "Mean frame time %.1fms vs target %.1fms, ratio %.2f -> %.2f",
            mean, self.target_frame_ms, current_ratio, proposed,
        )
        return proposed

    def reset(self):
        self._samples.clear()

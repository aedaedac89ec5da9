"""Wall-clock timing of co-simulation steps."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional
import time

import numpy as np


class StepTimingListener:
    """Step listener measuring the time between consecutive notifications."""

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock
        self._last: Optional[float] = None
        self.last_step: Optional[int] = None
        self.durations: List[float] = []

    def on_step(self, step: int) -> None:
        now = self._clock()
        if self._last is not None:
            self.durations.append(now - self._last)
        self._last = now
        self.last_step = step

    def reset(self) -> None:
        self._last = None
        self.last_step = None
        self.durations.clear()

    def summary(self) -> Dict[str, float]:
        if not self.durations:
            return {"steps": 0.0, "mean_sec": 0.0, "p50_sec": 0.0, "p95_sec": 0.0, "max_sec": 0.0}
        values = np.asarray(self.durations, dtype=np.float64)
        return {
            "steps": float(values.size),
            "mean_sec": float(values.mean()),
            "p50_sec": float(np.percentile(values, 50)),
            "p95_sec": float(np.percentile(values, 95)),
            "max_sec": float(values.max()),
        }

"""
Timing Module

Provides wall-clock measurement for pipeline phases:
- Timer: perf_counter based, usable as a context manager
- StageTimings: named phases whose total is the sum of the phases
"""

import time
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class Timer:
    """Measures elapsed time with time.perf_counter."""

    _start_time: Optional[float] = field(default=None, repr=False)
    _end_time: Optional[float] = field(default=None, repr=False)

    def start(self) -> "Timer":
        self._start_time = time.perf_counter()
        self._end_time = None
        return self

    def stop(self) -> "Timer":
        if self._start_time is None:
            raise RuntimeError("Timer not started")
        self._end_time = time.perf_counter()
        return self

    @property
    def elapsed_seconds(self) -> float:
        if self._start_time is None:
            return 0.0
        end = self._end_time if self._end_time is not None else time.perf_counter()
        return end - self._start_time

    @property
    def elapsed_ms(self) -> float:
        return round(self.elapsed_seconds * 1000, 3)

    def __enter__(self) -> "Timer":
        return self.start()

    def __exit__(self, *args) -> None:
        self.stop()


@dataclass
class StageTimings:
    """
    Per-phase timings of one operation.

    A phase is recorded when its measure() block exits, even on error, so a
    failed generation still leaves the retrieval phase populated.
    """

    _stages: Dict[str, float] = field(default_factory=dict)

    def measure(self, stage_name: str) -> "_StageTimer":
        return _StageTimer(stage_name, self)

    def record(self, stage_name: str, elapsed_ms: float) -> None:
        self._stages[stage_name] = elapsed_ms

    def get(self, stage_name: str) -> Optional[float]:
        return self._stages.get(stage_name)

    @property
    def total_ms(self) -> float:
        return round(sum(self._stages.values()), 3)

    def to_dict(self) -> Dict[str, float]:
        result = {f"{k}_ms": v for k, v in self._stages.items()}
        result["total_ms"] = self.total_ms
        return result


class _StageTimer(Timer):
    def __init__(self, stage_name: str, parent: StageTimings):
        super().__init__()
        self._stage_name = stage_name
        self._parent = parent

    def __exit__(self, *args) -> None:
        super().__exit__(*args)
        self._parent.record(self._stage_name, self.elapsed_ms)

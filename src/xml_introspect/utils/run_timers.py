# src/xml_introspect/utils/run_timers.py
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional


class RunTimers:
    """
    Measures the total run time plus named phases ('analyze', 'sample', ...).
    """

    def __init__(self):
        self._start_time: Optional[float] = None
        self._end_time: Optional[float] = None
        self._phases: Dict[str, float] = {}

    def start(self) -> None:
        self._start_time = time.perf_counter()
        self._end_time = None

    def stop(self) -> None:
        if self._start_time is not None:
            self._end_time = time.perf_counter()

    @contextmanager
    def phase(self, name: str) -> Iterator[None]:
        """Times the enclosed block; repeated phases accumulate."""
        began = time.perf_counter()
        try:
            yield
        finally:
            self._phases[name] = self._phases.get(name, 0.0) + (time.perf_counter() - began)

    @property
    def duration(self) -> float:
        """Elapsed seconds; keeps counting while the timer is running."""
        if self._start_time is None:
            return 0.0
        end = self._end_time if self._end_time is not None else time.perf_counter()
        return end - self._start_time

    def as_dict(self) -> Dict[str, float]:
        timings = {name: round(seconds, 4) for name, seconds in self._phases.items()}
        timings["total"] = round(self.duration, 4)
        return timings

    def __repr__(self) -> str:
        phases = ", ".join(f"{k}={v:.4f}s" for k, v in self._phases.items())
        return f"<RunTimers duration={self.duration:.4f}s {phases}>".replace(" >", ">")

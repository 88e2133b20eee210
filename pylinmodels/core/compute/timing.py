"""
Wall-clock timing for fits.

Solvers time their stages (QR, IRLS iterations, PLS deviance evaluations,
refits for ANOVA tables) and store the breakdown in Result.timing.
"""

import time
from contextlib import contextmanager
from typing import Iterator


class Timer:
    """
    Total elapsed time plus named, accumulating sections.

        timer = Timer()
        timer.start()
        with timer.section('irls'):
            ...
        with timer.section('inference'):
            ...
        timer.stop()
        timer.result()   # {'total_seconds': ..., 'irls': ..., 'inference': ...}

    A section entered several times (one per refit, say) sums its
    durations. Sections are not required to partition the total.
    """

    def __init__(self) -> None:
        self._sections: dict[str, float] = {}
        self._t0: float | None = None
        self._total: float | None = None

    def start(self) -> None:
        self._t0 = time.perf_counter()

    def stop(self) -> None:
        if self._t0 is None:
            raise RuntimeError("Timer.stop() called before start()")
        self._total = time.perf_counter() - self._t0

    @contextmanager
    def section(self, name: str) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._sections[name] = self._sections.get(name, 0.0) + time.perf_counter() - t0

    def result(self) -> dict[str, float]:
        """'total_seconds' followed by the sections in first-use order."""
        if self._total is None:
            raise RuntimeError("Timer.result() called before stop()")
        return {'total_seconds': self._total, **self._sections}

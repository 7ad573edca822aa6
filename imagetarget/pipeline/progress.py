"""
Progress accounting for concurrent per-target work.

Each target owns a disjoint slice of a phase's percent range. Slices
advance independently; the callback always receives the aggregate of
all completed work, which only grows no matter how tasks interleave.
"""

from typing import Callable

ProgressCallback = Callable[[float], None]


class ProgressSlice:
    """The share of a phase owned by one target."""

    def __init__(self, reporter: "ProgressReporter", start: float, end: float, steps: int):
        self._reporter = reporter
        self.start = start
        self.end = end
        self.steps = max(steps, 1)
        self.done = 0

    @property
    def value(self) -> float:
        """Position of this slice inside [start, end]."""
        return self.start + (self.end - self.start) * self.done / self.steps

    def advance(self) -> None:
        """Mark one more step done and notify the reporter."""
        if self.done < self.steps:
            self.done += 1
            self._reporter._advance((self.end - self.start) / self.steps)


class ProgressReporter:
    """
    Splits a percent range evenly between targets.

    Example:
        >>> reporter = ProgressReporter(print, start=0.0, end=50.0, num_targets=2)
        >>> s = reporter.slice(0, steps=5)
        >>> s.advance()
        5.0
    """

    def __init__(
        self,
        callback: ProgressCallback | None,
        start: float,
        end: float,
        num_targets: int,
    ):
        self.callback = callback
        self.start = start
        self.end = end
        self.num_targets = max(num_targets, 1)
        self.percent = start

    @property
    def per_target(self) -> float:
        return (self.end - self.start) / self.num_targets

    def slice(self, index: int, steps: int) -> ProgressSlice:
        lo = self.start + index * self.per_target
        return ProgressSlice(self, lo, lo + self.per_target, steps)

    def _advance(self, amount: float) -> None:
        self.percent = min(self.percent + amount, self.end)
        if self.callback is not None:
            self.callback(self.percent)

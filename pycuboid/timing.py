"""
Wall-clock timing of execution paths.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

R = TypeVar("R")

Clock = Callable[[], float]


def now() -> float:
    """Monotonic time in seconds."""
    return time.perf_counter()


@dataclass(frozen=True)
class ExecutionRecord:
    """Start and end timestamps of one execution path."""

    label: str
    start: float
    end: float

    @property
    def elapsed(self) -> float:
        """Get elapsed time in seconds."""
        return self.end - self.start

    @property
    def elapsed_ms(self) -> float:
        """Get elapsed time in milliseconds."""
        return self.elapsed * 1000


def measure(
    fn: Callable[..., R],
    *args: Any,
    label: str = "",
    clock: Clock = now,
    **kwargs: Any,
) -> tuple[R, ExecutionRecord]:
    """
    Call ``fn`` and time it.

    Args:
        fn: Unit of work.
        *args: Positional arguments for ``fn``.
        label: Name stored on the record.
        clock: Time source, ``now`` by default.
        **kwargs: Keyword arguments for ``fn``.

    Returns:
        The result of ``fn`` and its execution record.
    """
    start = clock()
    result = fn(*args, **kwargs)
    end = clock()
    return result, ExecutionRecord(label=label or getattr(fn, "__name__", "fn"), start=start, end=end)


class Timer:
    """Collects named execution records for a run."""

    def __init__(self, clock: Clock = now) -> None:
        self._clock = clock
        self._records: dict[str, ExecutionRecord] = {}

    def measure(self, label: str, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        """Time ``fn`` and keep the record under ``label``."""
        result, record = measure(fn, *args, label=label, clock=self._clock, **kwargs)
        self._records[label] = record
        return result

    def __getitem__(self, label: str) -> ExecutionRecord:
        return self._records[label]

    def __contains__(self, label: object) -> bool:
        return label in self._records

    @property
    def records(self) -> dict[str, ExecutionRecord]:
        return dict(self._records)

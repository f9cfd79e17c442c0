"""
Side-by-side comparison of the accelerator and sequential paths.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from pycuboid.config import DEFAULT_SAMPLE_SIZE
from pycuboid.exceptions import InvalidConfigurationError, VerificationError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from pycuboid.inputs import HostArrays
    from pycuboid.timing import ExecutionRecord

logger = logging.getLogger(__name__)

SampleRow = tuple[int, int, int, int, int]


def format_sample_rows(rows: list[SampleRow]) -> list[str]:
    """Format ``(a, b, c, opencl, seq)`` rows for the console."""
    return [f"a={a}\tb={b}\tc={c}\t\topencl={cl_val}\t\tseq={seq_val}" for a, b, c, cl_val, seq_val in rows]


@dataclass
class ComparisonReport:
    """Timings, agreement and a sample of both result arrays."""

    accelerator: ExecutionRecord
    sequential: ExecutionRecord
    element_count: int
    mismatches: int
    first_mismatch: int | None = None
    sample_rows: list[SampleRow] = field(default_factory=list)

    @property
    def ratio(self) -> float:
        """Sequential time divided by accelerator time."""
        if self.accelerator.elapsed <= 0:
            return math.inf
        return self.sequential.elapsed / self.accelerator.elapsed

    @property
    def matches(self) -> bool:
        return self.mismatches == 0

    def raise_for_mismatch(self) -> None:
        """
        Raise if the two result arrays disagree anywhere.

        Raises:
            VerificationError: If any element differs.
        """
        if not self.matches:
            raise VerificationError(self.mismatches, self.first_mismatch or 0)

    def render(self) -> str:
        """Render the report as printed at the end of a run."""
        lines = [
            f"The OpenCL kernel ran in {self.accelerator.elapsed:f} seconds",
            f"The sequential code ran in {self.sequential.elapsed:f} seconds",
            "",
            f"The sequential time is {self.ratio:f}X of the OpenCL time",
            "",
            f"Results match: {self.matches} ({self.mismatches} mismatches)",
            "",
        ]
        lines.extend(format_sample_rows(self.sample_rows))
        remaining = self.element_count - len(self.sample_rows)
        if remaining > 0:
            lines.append(f"... {remaining} more items")
        return "\n".join(lines)


class Verifier:
    """Compares accelerator output against the sequential baseline."""

    def __init__(self, sample_size: int = DEFAULT_SAMPLE_SIZE) -> None:
        if sample_size < 0:
            raise InvalidConfigurationError("sample_size", sample_size, "must not be negative")
        self._sample_size = sample_size

    def compare(
        self,
        inputs: HostArrays,
        accelerator_result: NDArray[np.int32],
        sequential_result: NDArray[np.int32],
        accelerator_record: ExecutionRecord,
        sequential_record: ExecutionRecord,
    ) -> ComparisonReport:
        """
        Build a comparison report for two index-aligned result arrays.

        Raises:
            InvalidConfigurationError: If the result arrays are not aligned
                with the inputs.
        """
        n = inputs.element_count
        for name, arr in (("accelerator_result", accelerator_result), ("sequential_result", sequential_result)):
            if arr.shape != (n,):
                raise InvalidConfigurationError(name, arr.shape, f"expected shape ({n},)")

        differing = np.flatnonzero(accelerator_result != sequential_result)
        mismatches = int(differing.size)
        first = int(differing[0]) if mismatches else None
        if mismatches:
            logger.warning(f"{mismatches} of {n} results differ, first at index {first}")

        count = min(self._sample_size, n)
        rows: list[SampleRow] = [
            (
                int(inputs.a[i]),
                int(inputs.b[i]),
                int(inputs.c[i]),
                int(accelerator_result[i]),
                int(sequential_result[i]),
            )
            for i in range(count)
        ]

        return ComparisonReport(
            accelerator=accelerator_record,
            sequential=sequential_record,
            element_count=n,
            mismatches=mismatches,
            first_mismatch=first,
            sample_rows=rows,
        )

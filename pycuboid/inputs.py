"""
Host-side input arrays.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from pycuboid.exceptions import InvalidConfigurationError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

EDGE_MIN = 1
EDGE_MAX = 9
_INT32 = np.iinfo(np.int32)


def _as_int32(name: str, values: ArrayLike) -> NDArray[np.int32]:
    """Convert edge lengths to contiguous int32 without wrapping or truncating."""
    arr = np.asarray(values)
    if arr.ndim != 1:
        raise InvalidConfigurationError(name, arr.shape, "inputs must be one-dimensional")
    if arr.size == 0:
        return np.ascontiguousarray(arr, dtype=np.int32)
    if not np.issubdtype(arr.dtype, np.integer):
        raise InvalidConfigurationError(name, arr.dtype, "inputs must have an integer dtype")

    low, high = arr.min(), arr.max()
    if low < _INT32.min or high > _INT32.max:
        raise InvalidConfigurationError(
            name, (int(low), int(high)), "values do not fit in a 32-bit signed integer"
        )
    return np.ascontiguousarray(arr, dtype=np.int32)


@dataclass
class HostArrays:
    """Edge lengths ``a``, ``b`` and ``c`` of every cuboid, as int32."""

    a: NDArray[np.int32]
    b: NDArray[np.int32]
    c: NDArray[np.int32]

    def __post_init__(self) -> None:
        """Normalize to contiguous int32 and check lengths agree."""
        self.a = _as_int32("a", self.a)
        self.b = _as_int32("b", self.b)
        self.c = _as_int32("c", self.c)

        if not (len(self.a) == len(self.b) == len(self.c)):
            raise InvalidConfigurationError(
                "inputs",
                (len(self.a), len(self.b), len(self.c)),
                "a, b and c must have the same length",
            )

    @classmethod
    def from_lists(cls, a: ArrayLike, b: ArrayLike, c: ArrayLike) -> HostArrays:
        return cls(np.asarray(a), np.asarray(b), np.asarray(c))

    @property
    def element_count(self) -> int:
        return len(self.a)

    def empty_result(self) -> NDArray[np.int32]:
        """Allocate an output array aligned with the inputs."""
        return np.empty(self.element_count, dtype=np.int32)


def generate_inputs(element_count: int, seed: int | None = None) -> HostArrays:
    """
    Draw random edge lengths in ``[1, 9]``.

    Args:
        element_count: Number of cuboids.
        seed: Seed for ``numpy.random.default_rng``; ``None`` for fresh entropy.

    Returns:
        Host arrays of the requested length.
    """
    if element_count <= 0:
        raise InvalidConfigurationError("element_count", element_count, "must be positive")

    rng = np.random.default_rng(seed)
    shape = (element_count,)
    return HostArrays(
        a=rng.integers(EDGE_MIN, EDGE_MAX, size=shape, dtype=np.int32, endpoint=True),
        b=rng.integers(EDGE_MIN, EDGE_MAX, size=shape, dtype=np.int32, endpoint=True),
        c=rng.integers(EDGE_MIN, EDGE_MAX, size=shape, dtype=np.int32, endpoint=True),
    )

"""
Sequential CPU baseline.

Recomputes the cuboid surface area element by element on the host,
independent of any device state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numba import njit

if TYPE_CHECKING:
    from numpy.typing import NDArray


@njit(cache=True)
def _cuboid_area_loop(a, b, c, out):  # type: ignore[no-untyped-def]
    for i in range(a.shape[0]):
        out[i] = 2 * ((a[i] * b[i]) + (b[i] * c[i]) + (a[i] * c[i]))


def sequential_cuboid_area(
    a: NDArray[np.int32],
    b: NDArray[np.int32],
    c: NDArray[np.int32],
    out: NDArray[np.int32] | None = None,
) -> NDArray[np.int32]:
    """
    Sequential implementation of the cuboid surface area kernel.

    Runs a single-threaded loop compiled with Numba, one element at a
    time, so the timing reflects a plain sequential pass.

    Args:
        a: Edge lengths ``a``.
        b: Edge lengths ``b``.
        c: Edge lengths ``c``.
        out: Optional destination array.

    Returns:
        ``2 * (a*b + b*c + a*c)`` for every element.
    """
    if not (a.shape == b.shape == c.shape):
        raise ValueError(f"Input shapes differ: {a.shape}, {b.shape}, {c.shape}")

    if out is None:
        out = np.empty_like(a)
    _cuboid_area_loop(a, b, c, out)
    return out

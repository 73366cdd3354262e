from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ipsr.utils import normalize_rows

if TYPE_CHECKING:
    import numpy.typing as npt

    from ipsr.pre.pointcloud import Samples

# Components are drawn uniformly from the closed range [-DRAW_BOUND, DRAW_BOUND].
DRAW_BOUND: int = 500


def random_unit_normals(n: int, rng: np.random.Generator) -> npt.NDArray[np.float64]:
    """
    Draw `n` reproducible pseudo-random unit normals.

    Each normal starts as three integers drawn uniformly from
    [-DRAW_BOUND, DRAW_BOUND]. All-zero draws are redrawn until they are not
    zero, then every row is normalized. The same generator state and `n`
    always give the same result.

    Args:
        n: Number of normals.
        rng: Generator owned by the caller, e.g. np.random.default_rng(seed).

    Returns:
        (n, 3) array of unit vectors.
    """
    draws = rng.integers(-DRAW_BOUND, DRAW_BOUND, size=(n, 3), endpoint=True).astype(np.float64)

    zero_rows = np.flatnonzero(~draws.any(axis=1))
    while zero_rows.size:
        draws[zero_rows] = rng.integers(-DRAW_BOUND, DRAW_BOUND, size=(zero_rows.size, 3), endpoint=True)
        zero_rows = zero_rows[~draws[zero_rows].any(axis=1)]

    return normalize_rows(draws)


def initialize_normals(samples: Samples, rng: np.random.Generator) -> None:
    """Overwrite every sample normal with a random unit normal drawn from `rng`."""
    samples.normals[:] = random_unit_normals(len(samples), rng)

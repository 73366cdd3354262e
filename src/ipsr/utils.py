from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt


def as_points(
    array: npt.ArrayLike,
    name: str = "points",
) -> npt.NDArray[np.float64]:
    """
    Convert input to a contiguous (N, 3) float64 array.

    Raises:
        ValueError: If the array does not have shape (N, 3).
    """
    points = np.ascontiguousarray(array, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"{name} must have shape (N, 3), got {points.shape}")
    return points


def normalize_rows(vectors: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Scale every row to unit length.

    Rows of zero length are returned unchanged (they stay zero).

    Args:
        vectors: (N, 3) array.

    Returns:
        New (N, 3) array.
    """
    lengths = np.linalg.norm(vectors, axis=1)
    out = vectors.copy()
    nonzero = lengths > 0.0
    out[nonzero] /= lengths[nonzero, np.newaxis]
    return out

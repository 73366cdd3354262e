from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from scipy.spatial import cKDTree

from ipsr.utils import as_points

if TYPE_CHECKING:
    import numpy.typing as npt


class SpatialIndex:
    """
    Static nearest-neighbour index over the sample positions.

    The index is built once and never rebuilt; every query returns indices
    into the same fixed sample array. Queries must use coordinates from the
    frame the index was built in.
    """

    def __init__(self, positions: npt.ArrayLike, workers: int = -1) -> None:
        """
        Build the index.

        Args:
            positions: (N, 3) sample positions, N > 0.
            workers: Number of threads used by batched queries (-1 for all cores).

        Raises:
            ValueError: If no positions are given.
        """
        positions = as_points(positions, name="positions")
        if positions.shape[0] == 0:
            raise ValueError("Cannot build a spatial index over zero points.")

        self.workers = workers
        self._tree = cKDTree(positions)

    def __len__(self) -> int:
        return self._tree.n

    def k_nearest(self, query: npt.ArrayLike, k: int) -> npt.NDArray[np.int64]:
        """
        Indices of the `k` samples closest to one query point.

        If the index holds fewer than `k` samples, all of them are returned.
        """
        return self.k_nearest_many(np.reshape(query, (1, 3)), k)[0]

    def k_nearest_many(self, queries: npt.ArrayLike, k: int) -> npt.NDArray[np.int64]:
        """
        Batched k-nearest query, distributed over the worker pool.

        Args:
            queries: (M, 3) query points.
            k: Positive neighbour count.

        Returns:
            (M, min(k, N)) array of sample indices. Row order within a row is by distance.
        """
        if k <= 0:
            raise ValueError(f"k must be positive, got {k}")

        queries = as_points(queries, name="queries")
        k_eff = min(k, len(self))
        if queries.shape[0] == 0:
            return np.empty((0, k_eff), dtype=np.int64)

        _, indices = self._tree.query(queries, k=k_eff, workers=self.workers)
        return np.asarray(indices, dtype=np.int64).reshape(queries.shape[0], k_eff)

    def nearest(self, query: npt.ArrayLike) -> int:
        """Index of the single closest sample."""
        return int(self.nearest_many(np.reshape(query, (1, 3)))[0])

    def nearest_many(self, queries: npt.ArrayLike) -> npt.NDArray[np.int64]:
        """Index of the closest sample for each of the (M, 3) query points."""
        return self.k_nearest_many(queries, 1)[:, 0]

"""
Solver Frame & Octree Sampling
==============================
Prepares a raw point cloud for the refinement loop.

Why is this file needed?
------------------------
1. Frame: the Poisson solver works inside the unit cube. Points are mapped
   into that frame once, the spatial index is built there, and results are
   mapped back with the inverse transform.
2. Sampling: points that fall into the same leaf cell of the octree are
   merged into one weighted sample, which fixes the sample array for the
   whole run.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from ipsr.pre.pointcloud import InputError, Samples
from ipsr.utils import as_points

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

# Ratio between the unit cube edge and the bounding box edge.
FRAME_SCALE_FACTOR: float = 1.1

# Keeps integer cell coordinates well inside int64.
MAX_SAMPLING_DEPTH: int = 21


@dataclass(frozen=True)
class FrameTransform:
    """
    Similarity transform between the input frame and the solver frame.

    solver = (world - center) / scale + 0.5
    """
    center: npt.NDArray[np.float64]
    scale: float

    @classmethod
    def fit(cls, points: npt.NDArray[np.float64], scale_factor: float = FRAME_SCALE_FACTOR) -> FrameTransform:
        """
        Build the transform that centers the bounding box of `points` in the unit cube.

        Args:
            points: (N, 3) array, N > 0.
            scale_factor: Ratio of the cube edge to the largest bounding box edge.
        """
        if len(points) == 0:
            raise InputError("cannot fit a frame to an empty point cloud")

        lower = points.min(axis=0)
        upper = points.max(axis=0)
        center = 0.5 * (lower + upper)
        extent = float(np.max(upper - lower))
        scale = extent * scale_factor if extent > 0.0 else 1.0
        return cls(center=center, scale=scale)

    def forward(self, points: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Map world coordinates into the solver frame."""
        return (points - self.center) / self.scale + 0.5

    def inverse(self, points: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Map solver coordinates back into the world frame."""
        return (points - 0.5) * self.scale + self.center


def octree_sample(points: npt.ArrayLike, depth: int) -> Samples:
    """
    Merge points per leaf cell of a regular octree over the unit cube.

    Each sample is placed at the mean of the points in its cell and weighted
    by their count. Samples are ordered by the first point that falls into
    their cell, so the result is deterministic for a given input order.

    Args:
        points: (N, 3) coordinates already in the solver frame.
        depth: Octree depth; leaf cells have edge 2**-depth.

    Returns:
        The sample set, with placeholder normals.
    """
    points = as_points(points)
    if points.shape[0] == 0:
        raise InputError("point cloud contains no points")

    resolution = 2 ** min(depth, MAX_SAMPLING_DEPTH)

    # 1) Integer leaf cell of every point
    cells = np.floor(points * resolution).astype(np.int64)
    np.clip(cells, 0, resolution - 1, out=cells)

    # 2) Group points by cell, numbering groups by first occurrence
    _, first, inverse = np.unique(cells, axis=0, return_index=True, return_inverse=True)
    inverse = inverse.reshape(-1)
    order = np.argsort(first, kind="stable")
    rank = np.empty_like(order)
    rank[order] = np.arange(order.size)
    group = rank[inverse]

    # 3) Average positions, count members
    n_groups = order.size
    counts = np.bincount(group, minlength=n_groups).astype(np.float64)
    positions = np.column_stack([
        np.bincount(group, weights=points[:, axis], minlength=n_groups)
        for axis in range(3)
    ]) / counts[:, np.newaxis]

    logger.info(f"Sampled {points.shape[0]} points into {n_groups} samples at depth {depth}.")
    return Samples(positions=positions, weights=counts)

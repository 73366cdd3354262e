"""
Normal Projection
=================
Turns the faces of a reconstructed mesh back into per-sample normals.

Every triangle votes with its unit normal for the `k` samples nearest to its
centroid; each sample's new normal is the normalized sum of the votes it
received. Samples without votes keep their previous normal.

Stages:
1. Per-face geometry and neighbour queries (vectorized, queries spread over
   the index's worker pool).
2. Vote accumulation into a per-sample array (single compiled loop, the only
   stage with shared writes).
3. Per-sample normalization and write-back.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numba as nb
import numpy as np

from ipsr.utils import normalize_rows

if TYPE_CHECKING:
    import numpy.typing as npt

    from ipsr.analysis.spatial_index import SpatialIndex
    from ipsr.pre.pointcloud import Samples
    from ipsr.solvers.oracle import Mesh

logger = logging.getLogger(__name__)


@nb.jit(cache=True)
def _accumulate_votes(
    neighbors: npt.NDArray[np.int64],
    face_normals: npt.NDArray[np.float64],
    n_samples: int,
) -> npt.NDArray[np.float64]:
    """
    Sum face normals into the samples each face voted for.

    Args:
        neighbors: (F, k) sample indices per face.
        face_normals: (F, 3) unit face normals.
        n_samples: Length of the accumulator.

    Returns:
        (n_samples, 3) accumulator, zero rows for samples without votes.
    """
    votes = np.zeros((n_samples, 3), dtype=np.float64)
    for i in range(neighbors.shape[0]):
        for j in range(neighbors.shape[1]):
            s = neighbors[i, j]
            votes[s, 0] += face_normals[i, 0]
            votes[s, 1] += face_normals[i, 1]
            votes[s, 2] += face_normals[i, 2]
    return votes


@dataclass
class Votes:
    """Result of one voting pass."""
    accumulator: npt.NDArray[np.float64]
    n_triangles: int
    n_skipped_faces: int

    @property
    def received(self) -> npt.NDArray[np.bool_]:
        """Mask of samples whose accumulator is not the zero vector."""
        return self.accumulator.any(axis=1)


def face_geometry(mesh: Mesh) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    Centroids and unit normals of the triangular faces of a mesh.

    The normal is (v1 - v0) x (v2 - v0), scaled to unit length, so its
    direction follows the mesh winding. Degenerate triangles get a zero normal.

    Returns:
        centroids: (T, 3) array.
        normals: (T, 3) array.
    """
    corners = mesh.vertices[mesh.triangles]  # (T, 3, 3)
    centroids = corners.mean(axis=1)
    normals = np.cross(corners[:, 1] - corners[:, 0], corners[:, 2] - corners[:, 0])
    # unit length so every face votes equally; raw cross products would weight by area
    return centroids, normalize_rows(normals)


class NormalProjector:
    """
    Projects mesh face normals onto the samples of a fixed spatial index.
    """

    def __init__(self, index: SpatialIndex, k: int) -> None:
        """
        Initialize the projector.

        Args:
            index: Spatial index built over the sample positions.
            k: Number of samples each face votes for.
        """
        if k <= 0:
            raise ValueError(f"k must be positive, got {k}")
        self.index = index
        self.k = k

    def vote(self, mesh: Mesh) -> Votes:
        """
        Collect the votes of every triangular face of `mesh`.

        Faces with other arities do not vote.
        """
        n_samples = len(self.index)
        triangles = mesh.triangles
        n_skipped = mesh.n_faces - triangles.shape[0]
        if n_skipped:
            logger.debug(f"{n_skipped} non-triangular faces excluded from voting.")

        if triangles.shape[0] == 0:
            return Votes(np.zeros((n_samples, 3), dtype=np.float64), 0, n_skipped)

        # 1) Independent per-face work
        centroids, face_normals = face_geometry(mesh)
        neighbors = self.index.k_nearest_many(centroids, self.k)

        # 2) Sequential accumulation
        accumulator = _accumulate_votes(neighbors, face_normals, n_samples)
        return Votes(accumulator, triangles.shape[0], n_skipped)

    @staticmethod
    def apply(samples: Samples, votes: Votes) -> npt.NDArray[np.float64]:
        """
        Replace the normal of every voted sample by its normalized accumulator.

        Samples that received no vote keep their normal unchanged.

        Args:
            samples: Sample set, updated in place.
            votes: Output of `vote` for the same sample set.

        Returns:
            Squared distance between new and old normal for each voted sample.
        """
        received = votes.received
        new_normals = normalize_rows(votes.accumulator[received])
        old_normals = samples.normals[received]

        squared_changes = np.einsum("ij,ij->i", new_normals - old_normals, new_normals - old_normals)
        samples.normals[received] = new_normals
        return squared_changes

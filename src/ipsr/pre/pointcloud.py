from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

import meshio
import numpy as np

from ipsr.utils import as_points

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

# Normal carried by freshly loaded points until the initializer runs.
PLACEHOLDER_NORMAL = np.array([1.0, 0.0, 0.0], dtype=np.float64)


class InputError(ValueError):
    """Empty or malformed point cloud input."""


class Samples:
    """
    Oriented, weighted point set refined by the iteration.

    Positions and weights are fixed after construction; normals are updated in
    place every iteration. Row `i` of every array belongs to sample `i`.
    """
    def __init__(
        self,
        positions: npt.ArrayLike,
        normals: npt.ArrayLike | None = None,
        weights: npt.ArrayLike | None = None,
    ) -> None:
        """
        Initialize the sample set.

        Args:
            positions: (N, 3) sample coordinates in the solver frame.
            normals: Optional (N, 3) initial normals. Defaults to the placeholder (1, 0, 0).
            weights: Optional (N,) reconstruction weights. Defaults to ones.

        Raises:
            InputError: If the set is empty or the arrays are inconsistent.
        """
        try:
            positions = as_points(positions, name="positions").copy()
        except ValueError as e:
            raise InputError(str(e)) from None

        n = positions.shape[0]
        if n == 0:
            raise InputError("point cloud contains no points")
        if not np.all(np.isfinite(positions)):
            raise InputError("point cloud contains non-finite coordinates")

        if normals is None:
            normals = np.tile(PLACEHOLDER_NORMAL, (n, 1))
        normals = np.array(normals, dtype=np.float64)
        if normals.shape != (n, 3):
            raise InputError(f"normals must have shape ({n}, 3), got {normals.shape}")

        if weights is None:
            weights = np.ones(n, dtype=np.float64)
        weights = np.array(weights, dtype=np.float64)
        if weights.shape != (n,):
            raise InputError(f"weights must have shape ({n},), got {weights.shape}")

        positions.setflags(write=False)
        weights.setflags(write=False)

        self.positions: npt.NDArray[np.float64] = positions
        self.normals: npt.NDArray[np.float64] = normals
        self.weights: npt.NDArray[np.float64] = weights

    def __len__(self) -> int:
        return self.positions.shape[0]

    def __repr__(self) -> str:
        """String representation of the sample set."""
        return f"{self.__class__.__name__}(n={len(self)})"


def check_ply_extension(filename: str, role: str = "input") -> None:
    """
    Raise InputError unless the file name ends with '.ply' (any case).
    """
    extension = os.path.splitext(filename)[1].lower()
    if extension != ".ply":
        raise InputError(f"The {role} should be a .ply file: {filename}")


def read_points(filename: str) -> npt.NDArray[np.float64]:
    """
    Read the vertex coordinates of a PLY file.

    Faces and vertex properties other than x, y, z are ignored.

    Args:
        filename: Path to the .ply file.

    Returns:
        (N, 3) array of coordinates.

    Raises:
        InputError: If the file is not a PLY file, cannot be parsed or holds no points.
    """
    check_ply_extension(filename, role="input")
    logger.info(f"Reading points from: {filename}")

    try:
        mesh = meshio.read(filename, file_format="ply")
    except (meshio.ReadError, IndexError, ValueError, OSError) as e:
        raise InputError(f"Failed to read '{filename}': {e}") from e

    points = np.asarray(mesh.points, dtype=np.float64)
    if points.ndim != 2 or points.shape[0] == 0:
        raise InputError(f"No points found in '{filename}'.")

    if points.shape[1] == 2:
        # planar files without a z property
        points = np.column_stack((points, np.zeros(points.shape[0])))

    logger.info(f"Read {points.shape[0]} points.")
    return as_points(points)

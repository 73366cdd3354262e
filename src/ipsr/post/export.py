"""
Result Export (PLY)
Writes the final mesh and the oriented point sets through meshio.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import meshio
import numpy as np

from ipsr.pre.pointcloud import check_ply_extension

if TYPE_CHECKING:
    import numpy.typing as npt

    from ipsr.analysis.spatial_index import SpatialIndex
    from ipsr.pre.pointcloud import Samples
    from ipsr.pre.sampling import FrameTransform
    from ipsr.solvers.oracle import Mesh

logger = logging.getLogger(__name__)

CELL_TYPE_BY_ARITY: dict[int, str] = {
    3: "triangle",
    4: "quad",
}


def _cells(mesh: Mesh) -> list[tuple[str, npt.NDArray[np.int64]]]:
    cells = []
    for block in mesh.face_blocks:
        arity = block.shape[1]
        if arity < 3:
            logger.debug(f"Dropping {block.shape[0]} faces with {arity} vertices.")
            continue
        cells.append((CELL_TYPE_BY_ARITY.get(arity, "polygon"), block.astype(np.int32)))
    return cells


def write_mesh(filename: str, mesh: Mesh, binary: bool = False) -> None:
    """
    Write a polygon mesh to PLY.

    Args:
        filename: Output path, must end with '.ply'.
        mesh: Mesh in the frame it should be saved in.
        binary: Write binary instead of ASCII PLY.
    """
    check_ply_extension(filename, role="output")
    logger.info(f"Writing mesh ({mesh.n_vertices} vertices, {mesh.n_faces} faces) to {filename}")

    out = meshio.Mesh(
        points=mesh.vertices.astype(np.float32),
        cells=_cells(mesh),
    )
    meshio.write(filename, out, file_format="ply", binary=binary)


def write_oriented_points(
    filename: str,
    points: npt.NDArray[np.float64],
    normals: npt.NDArray[np.float64],
    binary: bool = False,
) -> None:
    """
    Write points with their normals (x, y, z, nx, ny, nz) to PLY.
    """
    check_ply_extension(filename, role="output")
    logger.info(f"Writing {points.shape[0]} oriented points to {filename}")

    normals = normals.astype(np.float32)
    out = meshio.Mesh(
        points=points.astype(np.float32),
        cells=[],
        point_data={"nx": normals[:, 0], "ny": normals[:, 1], "nz": normals[:, 2]},
    )
    meshio.write(filename, out, file_format="ply", binary=binary)


def write_samples(filename: str, samples: Samples, frame: FrameTransform) -> None:
    """Write the samples with their current normals, mapped back to the input frame."""
    write_oriented_points(filename, frame.inverse(samples.positions), samples.normals)


def propagate_normals(
    points: npt.NDArray[np.float64],
    samples: Samples,
    index: SpatialIndex,
    frame: FrameTransform,
) -> npt.NDArray[np.float64]:
    """
    Give every original point the normal of its nearest sample.

    Args:
        points: (N, 3) input points in the input frame.
        samples: Refined samples the index was built on.
        index: Spatial index over the sample positions (solver frame).
        frame: Transform from the input frame to the solver frame.

    Returns:
        (N, 3) normals.
    """
    nearest = index.nearest_many(frame.forward(points))
    return samples.normals[nearest].copy()

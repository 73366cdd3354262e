"""
Reconstruction Oracle
=====================
The implicit surface solver, consumed only through its input/output contract.

Why is this file needed?
------------------------
1. Decoupling: the refinement loop talks to `ReconstructionOracle` only, so
   tests can bind it to deterministic stubs and production code to a real
   Poisson solver.
2. Result type: `Mesh` is the polygon soup every oracle returns and every
   writer consumes.

Contract:
    in:  oriented, weighted samples (solver frame) + ReconstructionParams
    out: Mesh (vertex array + polygon index lists)
    The oracle must be deterministic for fixed input. Solver errors are
    raised, never swallowed; an empty mesh is a valid result.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

    from ipsr.config import ReconstructionParams
    from ipsr.pre.pointcloud import Samples

logger = logging.getLogger(__name__)


class Mesh:
    """
    Polygon soup returned by a reconstruction oracle.

    Faces are kept in blocks of equal arity, each an (F, arity) index array,
    so triangle meshes stay a single dense array.
    """

    def __init__(
        self,
        vertices: npt.ArrayLike,
        faces: npt.ArrayLike | Sequence[Sequence[int]] = (),
    ) -> None:
        """
        Initialize the mesh.

        Args:
            vertices: (M, 3) vertex coordinates.
            faces: Either an (F, k) integer array or a sequence of index lists of any length.

        Raises:
            ValueError: If a face references a vertex that does not exist.
        """
        self.vertices: npt.NDArray[np.float64] = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
        self.face_blocks: list[npt.NDArray[np.int64]] = self._to_blocks(faces)

        n_vertices = self.vertices.shape[0]
        for block in self.face_blocks:
            if block.size and (block.min() < 0 or block.max() >= n_vertices):
                raise ValueError(f"Face index out of range for a mesh with {n_vertices} vertices.")

    @staticmethod
    def _to_blocks(faces: npt.ArrayLike | Sequence[Sequence[int]]) -> list[npt.NDArray[np.int64]]:
        if isinstance(faces, np.ndarray) and faces.ndim == 2:
            return [faces.astype(np.int64, copy=False)] if faces.size else []

        # Group variable-length faces by arity, blocks in order of first appearance
        grouped: dict[int, list[Sequence[int]]] = {}
        for face in faces:
            grouped.setdefault(len(face), []).append(face)
        return [
            np.asarray(group, dtype=np.int64).reshape(-1, arity)
            for arity, group in grouped.items()
            if arity > 0
        ]

    @classmethod
    def empty(cls) -> Mesh:
        """Mesh without vertices or faces."""
        return cls(vertices=np.empty((0, 3)))

    def __repr__(self) -> str:
        """String representation of the mesh."""
        return f"{self.__class__.__name__}(vertices={self.n_vertices}, faces={self.n_faces})"

    @property
    def n_vertices(self) -> int:
        return self.vertices.shape[0]

    @property
    def n_faces(self) -> int:
        return sum(block.shape[0] for block in self.face_blocks)

    @property
    def triangles(self) -> npt.NDArray[np.int64]:
        """(T, 3) array of all faces with exactly three vertices."""
        blocks = [block for block in self.face_blocks if block.shape[1] == 3]
        if not blocks:
            return np.empty((0, 3), dtype=np.int64)
        return np.concatenate(blocks)

    @property
    def faces(self) -> list[list[int]]:
        """All faces as index lists, block by block."""
        return [face.tolist() for block in self.face_blocks for face in block]

    def transformed(self, transform) -> Mesh:
        """Copy of the mesh with `transform` applied to the vertex array."""
        mesh = Mesh(vertices=transform(self.vertices))
        mesh.face_blocks = [block.copy() for block in self.face_blocks]
        return mesh


class ReconstructionOracle(ABC):
    """
    Abstract implicit surface reconstruction.

    Implementations must not modify the samples they receive.
    """
    NAME: str = "oracle"

    @abstractmethod
    def reconstruct(self, samples: Samples, params: ReconstructionParams) -> Mesh | None:
        """
        Reconstruct a surface from oriented, weighted samples.

        Args:
            samples: Positions, normals and weights in the solver frame.
            params: Depth, point weight and boundary type, constant for a run.

        Returns:
            The reconstructed mesh. `None` or an empty mesh means the solver
            produced nothing for this input.
        """
        pass


class Open3DPoissonOracle(ReconstructionOracle):
    """
    Poisson reconstruction from Open3D.

    The Open3D binding has no per-sample weights, screening weight or
    boundary type; those parameters are ignored.
    """
    NAME = "open3d"

    def __init__(self, n_threads: int = -1) -> None:
        self.n_threads = n_threads

    def reconstruct(self, samples: Samples, params: ReconstructionParams) -> Mesh:
        import open3d as o3d

        logger.debug(
            f"Open3D ignores point_weight={params.point_weight} and boundary={params.boundary.name}."
        )

        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(np.array(samples.positions, dtype=np.float64))
        pcd.normals = o3d.utility.Vector3dVector(np.array(samples.normals, dtype=np.float64))

        mesh, _ = o3d.geometry.TriangleMesh.create_from_point_cloud_poisson(
            pcd,
            depth=params.depth,
            n_threads=self.n_threads,
        )
        return Mesh(
            vertices=np.asarray(mesh.vertices),
            faces=np.asarray(mesh.triangles),
        )


class MeshLabScreenedPoissonOracle(ReconstructionOracle):
    """
    Screened Poisson reconstruction from PyMeshLab.

    Honors depth and point weight. Per-sample weights and the boundary type
    are not exposed by the filter and are ignored.
    """
    NAME = "pymeshlab"

    def __init__(self, samples_per_node: float = 1.5) -> None:
        self.samples_per_node = samples_per_node

    def reconstruct(self, samples: Samples, params: ReconstructionParams) -> Mesh:
        import pymeshlab

        ms = pymeshlab.MeshSet()
        ms.add_mesh(pymeshlab.Mesh(
            vertex_matrix=np.array(samples.positions, dtype=np.float64),
            v_normals_matrix=np.array(samples.normals, dtype=np.float64),
        ))
        ms.generate_surface_reconstruction_screened_poisson(
            depth=params.depth,
            pointweight=params.point_weight,
            samplespernode=self.samples_per_node,
            preclean=False,
        )
        result = ms.current_mesh()
        return Mesh(
            vertices=result.vertex_matrix(),
            faces=result.face_matrix(),
        )


ORACLES: dict[str, type[ReconstructionOracle]] = {
    Open3DPoissonOracle.NAME: Open3DPoissonOracle,
    MeshLabScreenedPoissonOracle.NAME: MeshLabScreenedPoissonOracle,
}


def make_oracle(name: str) -> ReconstructionOracle:
    """Instantiate a production oracle by name."""
    try:
        return ORACLES[name]()
    except KeyError:
        raise ValueError(f"Unknown oracle '{name}'. Choose from: {', '.join(ORACLES)}") from None

"""
Iterative Poisson Surface Reconstruction
========================================
Estimates consistently oriented normals for an unorganized point cloud by
alternating between Poisson reconstruction and re-deriving every point's
normal from the nearest faces of the reconstructed mesh.

Note: This package is pure Python/NumPy. The Poisson solver itself is an
external dependency reached through `ipsr.solvers.oracle`.
"""
from ipsr.config import BoundaryType, ConfigurationError, RunConfig
from ipsr.pre.pointcloud import InputError, Samples
from ipsr.solvers.oracle import Mesh, ReconstructionOracle
from ipsr.solvers.refinement import RefinementOrchestrator, RefinementResult, refine_normals

__all__ = [
    "BoundaryType",
    "ConfigurationError",
    "InputError",
    "Mesh",
    "ReconstructionOracle",
    "RefinementOrchestrator",
    "RefinementResult",
    "RunConfig",
    "Samples",
    "refine_normals",
]

from __future__ import annotations

import logging

import numpy as np
import pytest
from scipy.spatial import ConvexHull

from ipsr.solvers.oracle import Mesh, ReconstructionOracle


def fibonacci_sphere(n: int, radius: float = 1.0, center=(0.0, 0.0, 0.0)) -> np.ndarray:
    """Evenly spread, deterministic points on a sphere."""
    i = np.arange(n) + 0.5
    phi = np.arccos(1.0 - 2.0 * i / n)
    theta = np.pi * (1.0 + 5.0 ** 0.5) * i
    unit = np.column_stack((np.cos(theta) * np.sin(phi), np.sin(theta) * np.sin(phi), np.cos(phi)))
    return unit * radius + np.asarray(center)


def outward_hull(points: np.ndarray) -> Mesh:
    """Convex hull of `points` with every triangle wound counter-clockwise seen from outside."""
    hull = ConvexHull(points)
    faces = hull.simplices.copy()
    corners = points[faces]
    normals = np.cross(corners[:, 1] - corners[:, 0], corners[:, 2] - corners[:, 0])
    outward = corners.mean(axis=1) - points.mean(axis=0)
    flip = np.einsum("ij,ij->i", normals, outward) < 0.0
    faces[flip] = faces[flip][:, ::-1]
    return Mesh(vertices=points.copy(), faces=faces)


class FixedMeshOracle(ReconstructionOracle):
    """Returns the same mesh regardless of the normals."""
    NAME = "fixed"

    def __init__(self, mesh: Mesh | None) -> None:
        self.mesh = mesh
        self.calls = 0

    def reconstruct(self, samples, params):
        self.calls += 1
        return self.mesh


class HullOracle(ReconstructionOracle):
    """Returns the outward oriented convex hull of the sample positions."""
    NAME = "hull"

    def __init__(self) -> None:
        self.calls = 0
        self.received_normals: list[np.ndarray] = []

    def reconstruct(self, samples, params):
        self.calls += 1
        self.received_normals.append(samples.normals.copy())
        return outward_hull(samples.positions)


class FailingOracle(ReconstructionOracle):
    NAME = "failing"

    def __init__(self) -> None:
        self.calls = 0

    def reconstruct(self, samples, params):
        self.calls += 1
        raise RuntimeError("solver exploded")


@pytest.fixture
def sphere_points() -> np.ndarray:
    return fibonacci_sphere(500)


@pytest.fixture
def hull_oracle() -> HullOracle:
    return HullOracle()


@pytest.fixture(autouse=True)
def detach_package_handlers():
    """Drop handlers installed by main() so they do not outlive the captured streams."""
    yield
    logger = logging.getLogger("ipsr")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)

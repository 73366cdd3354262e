import numpy as np
import pytest

from ipsr.config import ReconstructionParams
from ipsr.pre.pointcloud import Samples
from ipsr.solvers.oracle import Mesh, make_oracle, MeshLabScreenedPoissonOracle, Open3DPoissonOracle

from conftest import fibonacci_sphere


@pytest.fixture
def vertices():
    return np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [1.0, 1.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.5, 0.5, 1.0],
    ])


def test_mixed_faces_are_grouped_by_arity(vertices):
    mesh = Mesh(vertices, [[0, 1, 4], [0, 1, 2, 3], [1, 2, 4]])

    assert mesh.n_faces == 3
    assert [block.shape for block in mesh.face_blocks] == [(2, 3), (1, 4)]
    np.testing.assert_array_equal(mesh.triangles, [[0, 1, 4], [1, 2, 4]])
    assert mesh.faces == [[0, 1, 4], [1, 2, 4], [0, 1, 2, 3]]


def test_dense_triangle_array(vertices):
    mesh = Mesh(vertices, np.array([[0, 1, 4], [2, 3, 4]]))
    assert len(mesh.face_blocks) == 1
    assert mesh.triangles.dtype == np.int64


def test_mesh_without_triangles(vertices):
    mesh = Mesh(vertices, [[0, 1, 2, 3]])
    assert mesh.triangles.shape == (0, 3)


def test_out_of_range_face_rejected(vertices):
    with pytest.raises(ValueError):
        Mesh(vertices, [[0, 1, 5]])


def test_empty_mesh():
    mesh = Mesh.empty()
    assert mesh.n_vertices == 0
    assert mesh.n_faces == 0
    assert mesh.triangles.shape == (0, 3)


def test_transformed_keeps_faces(vertices):
    mesh = Mesh(vertices, [[0, 1, 4]])
    moved = mesh.transformed(lambda v: v * 2.0)

    np.testing.assert_allclose(moved.vertices, vertices * 2.0)
    np.testing.assert_array_equal(moved.triangles, mesh.triangles)
    np.testing.assert_allclose(mesh.vertices, vertices)


def test_make_oracle():
    assert isinstance(make_oracle("open3d"), Open3DPoissonOracle)
    assert isinstance(make_oracle("pymeshlab"), MeshLabScreenedPoissonOracle)
    with pytest.raises(ValueError):
        make_oracle("marching-cubes")


@pytest.fixture
def oriented_sphere():
    points = fibonacci_sphere(2000, radius=0.4, center=(0.5, 0.5, 0.5))
    return Samples(points, normals=(points - 0.5) / 0.4)


def _check_sphere_mesh(mesh, samples, positions, normals):
    assert isinstance(mesh, Mesh)
    assert mesh.n_vertices > 0
    assert mesh.triangles.shape[0] > 0
    radii = np.linalg.norm(mesh.vertices - 0.5, axis=1)
    assert abs(radii.mean() - 0.4) < 0.05
    np.testing.assert_array_equal(samples.positions, positions)
    np.testing.assert_array_equal(samples.normals, normals)


def test_open3d_oracle_reconstructs_sphere(oriented_sphere):
    pytest.importorskip("open3d")
    positions, normals = oriented_sphere.positions.copy(), oriented_sphere.normals.copy()

    mesh = Open3DPoissonOracle(n_threads=1).reconstruct(oriented_sphere, ReconstructionParams(depth=6))

    _check_sphere_mesh(mesh, oriented_sphere, positions, normals)


def test_pymeshlab_oracle_reconstructs_sphere(oriented_sphere):
    pytest.importorskip("pymeshlab")
    positions, normals = oriented_sphere.positions.copy(), oriented_sphere.normals.copy()

    mesh = MeshLabScreenedPoissonOracle().reconstruct(
        oriented_sphere, ReconstructionParams(depth=6, point_weight=4.0)
    )

    _check_sphere_mesh(mesh, oriented_sphere, positions, normals)

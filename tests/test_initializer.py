import numpy as np

from ipsr.analysis.initializer import DRAW_BOUND, initialize_normals, random_unit_normals
from ipsr.pre.pointcloud import Samples


class ScriptedGenerator:
    """Generator stand-in returning prepared draws in order."""

    def __init__(self, draws):
        self.draws = [np.asarray(d) for d in draws]
        self.calls = []

    def integers(self, low, high, size, endpoint):
        self.calls.append((low, high, size, endpoint))
        return self.draws.pop(0)


def test_unit_length():
    normals = random_unit_normals(1000, np.random.default_rng(0))
    assert normals.shape == (1000, 3)
    np.testing.assert_allclose(np.linalg.norm(normals, axis=1), 1.0, rtol=0, atol=1e-12)


def test_same_seed_same_normals():
    a = random_unit_normals(256, np.random.default_rng(0))
    b = random_unit_normals(256, np.random.default_rng(0))
    np.testing.assert_array_equal(a, b)


def test_different_seed_different_normals():
    a = random_unit_normals(64, np.random.default_rng(0))
    b = random_unit_normals(64, np.random.default_rng(1))
    assert not np.array_equal(a, b)


def test_zero_draw_is_redrawn():
    rng = ScriptedGenerator([
        [[0, 0, 0], [3, 0, 4]],
        [[0, 0, 0]],
        [[0, 2, 0]],
    ])
    normals = random_unit_normals(2, rng)

    np.testing.assert_allclose(normals, [[0.0, 1.0, 0.0], [0.6, 0.0, 0.8]])
    assert len(rng.calls) == 3
    assert rng.calls[0] == (-DRAW_BOUND, DRAW_BOUND, (2, 3), True)
    assert rng.calls[1][2] == (1, 3)


def test_initialize_normals_overwrites_placeholder():
    samples = Samples(np.random.default_rng(5).random((10, 3)))
    np.testing.assert_array_equal(samples.normals[:, 0], 1.0)

    initialize_normals(samples, np.random.default_rng(0))
    np.testing.assert_array_equal(samples.normals, random_unit_normals(10, np.random.default_rng(0)))

import numpy as np
import pytest

from ipsr.analysis.spatial_index import SpatialIndex


@pytest.fixture
def cloud():
    return np.random.default_rng(3).random((200, 3))


def test_empty_index_rejected():
    with pytest.raises(ValueError):
        SpatialIndex(np.empty((0, 3)))


def test_k_nearest_matches_brute_force(cloud):
    index = SpatialIndex(cloud)
    query = np.array([0.4, 0.5, 0.6])

    expected = np.argsort(np.linalg.norm(cloud - query, axis=1))[:7]
    assert set(index.k_nearest(query, 7)) == set(expected)


def test_k_larger_than_sample_count_returns_all():
    points = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    index = SpatialIndex(points)

    assert sorted(index.k_nearest([0.1, 0.1, 0.0], 10)) == [0, 1, 2]
    assert index.k_nearest_many(np.zeros((4, 3)), 10).shape == (4, 3)


def test_k_nearest_many_shape_for_single_neighbor(cloud):
    index = SpatialIndex(cloud, workers=1)
    result = index.k_nearest_many(cloud[:5], 1)
    assert result.shape == (5, 1)
    np.testing.assert_array_equal(result[:, 0], np.arange(5))


def test_nearest(cloud):
    index = SpatialIndex(cloud)
    assert index.nearest(cloud[42] + 1e-9) == 42
    np.testing.assert_array_equal(index.nearest_many(cloud[10:20]), np.arange(10, 20))


def test_non_positive_k_rejected(cloud):
    with pytest.raises(ValueError):
        SpatialIndex(cloud).k_nearest(cloud[0], 0)

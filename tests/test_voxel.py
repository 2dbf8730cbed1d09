import numpy as np
import pytest

from lidar_odom.voxel import voxel_downsample


def test_points_in_one_voxel_become_centroid():
    pts = np.array([[0.1, 0.1, 0.1, 1.0], [0.3, 0.3, 0.3, 3.0]])
    out = voxel_downsample(pts, 1.0)
    assert np.allclose(out, [pts.mean(axis=0)])


def test_distinct_voxels_are_kept():
    pts = np.array([[float(i), 0.0, 0.0, float(i)] for i in range(5)])
    out = voxel_downsample(pts, 0.5)
    assert np.allclose(out, pts)


def test_output_ordered_by_z_then_y_then_x():
    pts = np.array([[0.0, 0.0, 5.0, 0.0], [5.0, 0.0, 0.0, 1.0], [0.0, 5.0, 0.0, 2.0]])
    out = voxel_downsample(pts, 1.0)
    assert list(out[:, 3]) == [1.0, 2.0, 0.0]


def test_mean_is_preserved_when_weighted():
    rng = np.random.default_rng(0)
    pts = rng.uniform(-3, 3, size=(200, 4))
    out = voxel_downsample(pts, 1.0)
    assert len(out) <= len(pts)
    assert np.all(out[:, :3] >= pts[:, :3].min(axis=0) - 1e-12)
    assert np.all(out[:, :3] <= pts[:, :3].max(axis=0) + 1e-12)


def test_empty_input():
    out = voxel_downsample(np.empty((0, 4)), 0.2)
    assert out.shape == (0, 4)


def test_invalid_leaf_size():
    with pytest.raises(ValueError):
        voxel_downsample(np.zeros((1, 4)), 0.0)
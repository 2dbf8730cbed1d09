import numpy as np
import pytest

from lidar_odom.cloud_info import CloudInfo


def test_empty_sizes_rings():
    info = CloudInfo.empty(4)
    assert np.array_equal(info.start_ring_index, np.zeros(4))
    assert np.array_equal(info.end_ring_index, np.zeros(4))
    assert len(info.point_range) == 0
    assert info.imu_available is False
    assert info.odom_available is False


def test_instances_do_not_share_arrays():
    first = CloudInfo.empty(2)
    second = CloudInfo.empty(2)
    first.start_ring_index[0] = 9
    assert second.start_ring_index[0] == 0


def test_default_clouds_have_four_columns():
    info = CloudInfo()
    assert info.cloud_corner.shape == (0, 4)
    assert info.cloud_surface.shape == (0, 4)


def test_negative_ring_count_rejected():
    with pytest.raises(ValueError):
        CloudInfo.empty(-1)
import numpy as np
import pytest

from lidar_odom.params import FLT_MAX, Params


def test_defaults_follow_configuration():
    params = Params()
    assert params.project_name == "sam"
    assert params.point_cloud_topic == "points_raw"
    assert params.n_scan == 16
    assert params.horizon_scan == 1800
    assert params.imu_gravity == pytest.approx(9.80511)
    assert params.z_tolerance == FLT_MAX
    assert params.save_pcd_directory == "/tmp/loam/"


def test_default_extrinsics_are_identity():
    params = Params()
    assert np.array_equal(params.ext_rot, np.eye(3))
    assert np.array_equal(params.ext_trans, np.zeros(3))


def test_from_mapping_overrides_and_keeps_defaults():
    params = Params.from_mapping({"N_SCAN": 32, "edgeThreshold": "1.5", "unused": 7})
    assert params.n_scan == 32
    assert params.edge_threshold == 1.5
    assert params.horizon_scan == 1800


def test_from_mapping_accepts_namespaced_keys():
    params = Params.from_mapping({"sam/Horizon_SCAN": 1024, "/sam/savePCD": "true"})
    assert params.horizon_scan == 1024
    assert params.save_pcd is True


def test_from_mapping_reshapes_extrinsics():
    rot = [0, -1, 0, 1, 0, 0, 0, 0, 1]
    params = Params.from_mapping({"extrinsicRot": rot, "extrinsicTrans": [1, 2, 3]})
    assert np.array_equal(params.ext_rot, np.array(rot, dtype=float).reshape(3, 3))
    assert np.array_equal(params.ext_trans, np.array([1.0, 2.0, 3.0]))


def test_from_mapping_rejects_bad_extrinsic_length():
    with pytest.raises(ValueError):
        Params.from_mapping({"extrinsicRot": [1, 0, 0]})


def test_from_mapping_rejects_bad_boolean():
    with pytest.raises(ValueError):
        Params.from_mapping({"useGpsElevation": "maybe"})
import math

import numpy as np
import pytest

from lidar_odom.geometry import (
    Pose6D,
    get_transformation,
    point_distance,
    quaternion_to_rpy,
    rpy_to_quaternion,
    slerp,
    transform_points,
    translation_and_euler,
)


def test_point_distance():
    assert point_distance((3.0, 4.0, 0.0)) == pytest.approx(5.0)
    assert point_distance((1.0, 1.0, 1.0, 9.0), (1.0, 1.0, 1.0, 0.0)) == 0.0


def test_zero_transformation_is_identity():
    assert np.allclose(get_transformation(0, 0, 0, 0, 0, 0), np.eye(4))


def test_transformation_round_trip():
    values = (1.0, -2.0, 0.5, 0.1, -0.2, 0.3)
    assert np.allclose(translation_and_euler(get_transformation(*values)), values)


def test_yaw_rotates_x_axis_to_y_axis():
    m = get_transformation(0, 0, 0, 0, 0, math.pi / 2)
    out = transform_points(np.array([[1.0, 0.0, 0.0, 7.0]]), m)
    assert np.allclose(out, [[0.0, 1.0, 0.0, 7.0]])


def test_quaternion_round_trip():
    rpy = (0.1, -0.2, 0.3)
    assert np.allclose(quaternion_to_rpy(*rpy_to_quaternion(*rpy)), rpy)


def test_quaternion_matches_transformation():
    rpy = (0.4, 0.2, -1.1)
    from_matrix = translation_and_euler(get_transformation(0, 0, 0, *rpy))[3:]
    assert np.allclose(quaternion_to_rpy(*rpy_to_quaternion(*rpy)), from_matrix)


def test_quaternion_gimbal_lock_pitch():
    _, pitch, _ = quaternion_to_rpy(*rpy_to_quaternion(0.0, math.pi / 2, 0.0))
    assert pitch == pytest.approx(math.pi / 2)


def test_zero_quaternion_rejected():
    with pytest.raises(ValueError):
        quaternion_to_rpy(0.0, 0.0, 0.0, 0.0)


def test_slerp_endpoints_and_midpoint():
    q0 = rpy_to_quaternion(0.0, 0.0, 0.0)
    q1 = rpy_to_quaternion(0.0, 0.0, 1.0)
    assert np.allclose(slerp(q0, q1, 0.0), q0)
    assert np.allclose(slerp(q0, q1, 1.0), q1)
    assert quaternion_to_rpy(*slerp(q0, q1, 0.5))[2] == pytest.approx(0.5)


def test_slerp_takes_shortest_path():
    q0 = rpy_to_quaternion(0.0, 0.0, 0.0)
    q1 = tuple(-v for v in rpy_to_quaternion(0.0, 0.0, 1.0))
    assert quaternion_to_rpy(*slerp(q0, q1, 0.5))[2] == pytest.approx(0.5)


def test_transform_preserves_distances():
    rng = np.random.default_rng(3)
    pts = rng.normal(size=(10, 4))
    out = transform_points(pts, get_transformation(1, 2, 3, 0.3, -0.1, 2.0))
    before = np.linalg.norm(pts[0, :3] - pts[1:, :3], axis=1)
    after = np.linalg.norm(out[0, :3] - out[1:, :3], axis=1)
    assert np.allclose(before, after)
    assert np.array_equal(out[:, 3], pts[:, 3])


def test_transform_rejects_bad_shape():
    with pytest.raises(ValueError):
        transform_points(np.zeros((4, 2)), np.eye(4))


def test_pose_matrix_round_trip():
    pose = Pose6D(1.0, 2.0, 3.0, 0.1, 0.2, 0.3)
    back = Pose6D.from_matrix(pose.matrix(), time=2.0)
    assert back.time == 2.0
    assert np.allclose(
        (back.x, back.y, back.z, back.roll, back.pitch, back.yaw),
        (1.0, 2.0, 3.0, 0.1, 0.2, 0.3),
    )
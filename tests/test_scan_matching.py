import numpy as np
import pytest

from lidar_odom.geometry import get_transformation, transform_points
from lidar_odom.scan_matching import ScanMatcher, constrain


def _line_map():
    xs = np.arange(-1.0, 1.01, 0.1)
    return np.column_stack([xs, np.zeros_like(xs), np.zeros_like(xs)])


def _plane_map(z=1.0):
    g = np.arange(-1.0, 1.01, 0.2)
    xx, yy = np.meshgrid(g, g)
    return np.column_stack([xx.ravel(), yy.ravel(), np.full(xx.size, z)])


def _room():
    grid = np.arange(-4.0, 4.51, 0.5)
    heights = np.arange(-0.5, 3.01, 0.5)
    floor = np.array([(x, y, -1.0) for x in grid for y in np.arange(-4.5, 4.51, 0.5)])
    wall_x = np.array([(5.0, y, z) for y in np.arange(-4.5, 4.51, 0.5) for z in heights])
    wall_y1 = np.array([(x, 5.0, z) for x in grid for z in heights])
    wall_y2 = np.array([(x, -5.0, z) for x in grid for z in heights])
    surfaces = np.concatenate([floor, wall_x, wall_y1, wall_y2])
    zs = np.arange(-1.0, 3.01, 0.1)
    corners = np.concatenate([
        np.column_stack([np.full_like(zs, 5.0), np.full_like(zs, 5.0), zs]),
        np.column_stack([np.full_like(zs, 5.0), np.full_like(zs, -5.0), zs]),
    ])
    return corners, surfaces


@pytest.mark.parametrize("value, limit, expected", [
    (2.0, 1.0, 1.0),
    (-3.0, 1.0, -1.0),
    (0.5, 1.0, 0.5),
])
def test_constrain(value, limit, expected):
    assert constrain(value, limit) == expected


def test_corner_coefficient_points_away_from_line():
    matcher = ScanMatcher(_line_map(), _plane_map())
    kept, coef = matcher.corner_coefficients(np.array([[0.0, 0.1, 0.0, 7.0]]), np.zeros(6))
    assert kept.shape == (1, 4)
    assert kept[0, 3] == 7.0
    assert coef[0, :3] == pytest.approx([0.0, 0.91, 0.0], abs=1e-6)
    assert coef[0, 3] == pytest.approx(0.091, abs=1e-6)


def test_corner_coefficients_keep_untransformed_points():
    matcher = ScanMatcher(_line_map(), _plane_map())
    body = np.array([[0.0, 0.0, 0.0]])
    transform = np.array([0.0, 0.0, 0.0, 0.0, 0.1, 0.0])
    kept, coef = matcher.corner_coefficients(body, transform)
    assert np.allclose(kept, body)
    s = np.linalg.norm(coef[0, :3])
    assert coef[0, 3] / s == pytest.approx(0.1, abs=1e-6)


def test_far_points_give_no_coefficients():
    matcher = ScanMatcher(_line_map(), _plane_map())
    kept, coef = matcher.corner_coefficients(np.array([[20.0, 20.0, 20.0]]), np.zeros(6))
    assert kept.shape[0] == 0 and coef.shape == (0, 4)
    kept, coef = matcher.surface_coefficients(np.array([[20.0, 20.0, 20.0]]), np.zeros(6))
    assert kept.shape[0] == 0 and coef.shape == (0, 4)


def test_surface_coefficient_is_plane_normal():
    matcher = ScanMatcher(_line_map(), _plane_map(1.0))
    kept, coef = matcher.surface_coefficients(np.array([[0.0, 0.0, 1.1]]), np.zeros(6))
    assert kept.shape[0] == 1
    assert coef[0, 0] == pytest.approx(0.0, abs=1e-9)
    assert coef[0, 1] == pytest.approx(0.0, abs=1e-9)
    # residual divided by the normal component recovers the signed offset from the plane
    assert coef[0, 3] / coef[0, 2] == pytest.approx(0.1, abs=1e-6)


def test_lm_step_needs_fifty_points():
    matcher = ScanMatcher(_line_map(), _plane_map())
    transform = np.array([0.1, 0.2, 0.3, 1.0, 2.0, 3.0])
    points = np.ones((10, 3))
    coef = np.tile([0.0, 0.0, 1.0, -0.1], (10, 1))
    result, converged = matcher.lm_step(points, coef, transform, 0)
    assert np.allclose(result, transform)
    assert converged is False


def test_lm_step_mismatched_lengths():
    matcher = ScanMatcher(_line_map(), _plane_map())
    with pytest.raises(ValueError):
        matcher.lm_step(np.ones((60, 3)), np.ones((59, 4)), np.zeros(6), 0)


def test_lm_step_flags_degenerate_plane():
    matcher = ScanMatcher(_line_map(), _plane_map())
    g = np.linspace(-3.0, 3.0, 15)
    xx, yy = np.meshgrid(g, g)
    points = np.column_stack([xx.ravel(), yy.ravel(), np.zeros(xx.size)])
    coef = np.tile([0.0, 0.0, 1.0, -0.1], (len(points), 1))
    result, converged = matcher.lm_step(points, coef, np.zeros(6), 0)
    assert matcher.is_degenerate is True
    assert converged is False
    assert result[3] == pytest.approx(0.0, abs=1e-9)
    assert result[4] == pytest.approx(0.0, abs=1e-9)
    assert result[5] == pytest.approx(0.1, abs=1e-6)


def test_optimize_too_few_features_leaves_transform():
    corners, surfaces = _room()
    matcher = ScanMatcher(corners, surfaces)
    start = np.array([0.0, 0.0, 0.1, 1.0, 0.0, 0.0])
    result = matcher.optimize(corners[:5], surfaces, start)
    assert np.allclose(result, start)
    assert matcher.optimized is False


def test_optimize_recovers_offset():
    corners, surfaces = _room()
    truth = np.array([0.0, 0.0, 0.03, 0.15, -0.1, 0.05])
    world_from_body = get_transformation(truth[3], truth[4], truth[5], truth[0], truth[1], truth[2])
    body_from_world = np.linalg.inv(world_from_body)
    scan_corners = transform_points(corners, body_from_world)
    scan_surfaces = transform_points(surfaces, body_from_world)
    matcher = ScanMatcher(corners, surfaces)
    result = matcher.optimize(scan_corners, scan_surfaces, np.zeros(6))
    assert matcher.optimized is True
    assert np.allclose(result, truth, atol=1e-2)
    moved = transform_points(scan_surfaces, get_transformation(*result[3:], *result[:3]))
    assert np.abs(moved - surfaces).max() < 0.1
"""Rigid transforms, Euler angles and quaternions."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

Quaternion = tuple[float, float, float, float]


def _rotation(roll: float, pitch: float, yaw: float) -> np.ndarray:
    cr, sr = math.cos(roll), math.sin(roll)
    cp, sp = math.cos(pitch), math.sin(pitch)
    cy, sy = math.cos(yaw), math.sin(yaw)
    rx = np.array([[1.0, 0.0, 0.0], [0.0, cr, -sr], [0.0, sr, cr]])
    ry = np.array([[cp, 0.0, sp], [0.0, 1.0, 0.0], [-sp, 0.0, cp]])
    rz = np.array([[cy, -sy, 0.0], [sy, cy, 0.0], [0.0, 0.0, 1.0]])
    return rz @ ry @ rx


def point_distance(p: Sequence[float], q: Optional[Sequence[float]] = None) -> float:
    """Euclidean distance of the xyz parts of two points, or of one from the origin."""
    a = np.asarray(p, dtype=float)[:3]
    if q is None:
        return float(np.linalg.norm(a))
    return float(np.linalg.norm(a - np.asarray(q, dtype=float)[:3]))


def get_transformation(x: float, y: float, z: float,
                       roll: float, pitch: float, yaw: float) -> np.ndarray:
    """4x4 transform with rotation Rz(yaw) Ry(pitch) Rx(roll) and the given translation."""
    matrix = np.eye(4)
    matrix[:3, :3] = _rotation(roll, pitch, yaw)
    matrix[:3, 3] = (x, y, z)
    return matrix


def translation_and_euler(matrix: np.ndarray) -> tuple[float, float, float, float, float, float]:
    """Split a 4x4 transform into (x, y, z, roll, pitch, yaw)."""
    m = np.asarray(matrix, dtype=float)
    roll = math.atan2(m[2, 1], m[2, 2])
    pitch = math.asin(max(-1.0, min(1.0, -m[2, 0])))
    yaw = math.atan2(m[1, 0], m[0, 0])
    return float(m[0, 3]), float(m[1, 3]), float(m[2, 3]), roll, pitch, yaw


def _quaternion_matrix(x: float, y: float, z: float, w: float) -> np.ndarray:
    norm = math.sqrt(x * x + y * y + z * z + w * w)
    if norm == 0.0:
        raise ValueError("zero-length quaternion")
    x, y, z, w = x / norm, y / norm, z / norm, w / norm
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
        [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
        [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
    ])


def quaternion_to_rpy(x: float, y: float, z: float, w: float) -> tuple[float, float, float]:
    """Roll, pitch and yaw of a quaternion given as (x, y, z, w)."""
    m = _quaternion_matrix(x, y, z, w)
    pitch = -math.asin(max(-1.0, min(1.0, m[2, 0])))
    if abs(math.cos(pitch)) < 1e-9:
        return math.atan2(-m[1, 2], m[1, 1]), pitch, 0.0
    roll = math.atan2(m[2, 1], m[2, 2])
    yaw = math.atan2(m[1, 0], m[0, 0])
    return roll, pitch, yaw


def rpy_to_quaternion(roll: float, pitch: float, yaw: float) -> Quaternion:
    """Quaternion (x, y, z, w) of fixed-axis roll, pitch and yaw."""
    cr, sr = math.cos(roll / 2), math.sin(roll / 2)
    cp, sp = math.cos(pitch / 2), math.sin(pitch / 2)
    cy, sy = math.cos(yaw / 2), math.sin(yaw / 2)
    return (
        sr * cp * cy - cr * sp * sy,
        cr * sp * cy + sr * cp * sy,
        cr * cp * sy - sr * sp * cy,
        cr * cp * cy + sr * sp * sy,
    )


def slerp(q0: Sequence[float], q1: Sequence[float], t: float) -> Quaternion:
    """Spherical interpolation along the shortest path between two (x, y, z, w) quaternions."""
    a = np.asarray(q0, dtype=float)
    b = np.asarray(q1, dtype=float)
    a = a / np.linalg.norm(a)
    b = b / np.linalg.norm(b)
    dot = float(np.dot(a, b))
    if dot < 0.0:
        b, dot = -b, -dot
    if dot > 0.9995:
        result = a + t * (b - a)
        result /= np.linalg.norm(result)
    else:
        theta = math.acos(dot)
        result = (math.sin((1 - t) * theta) * a + math.sin(t * theta) * b) / math.sin(theta)
    return tuple(float(v) for v in result)  # type: ignore[return-value]


def transform_points(points: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Apply a 4x4 transform to the xyz columns of an (N, >=3) array, keeping other columns."""
    pts = np.asarray(points, dtype=float)
    if pts.ndim != 2 or pts.shape[1] < 3:
        raise ValueError("points must be an (N, >=3) array")
    m = np.asarray(matrix, dtype=float)
    out = pts.copy()
    out[:, :3] = pts[:, :3] @ m[:3, :3].T + m[:3, 3]
    return out


@dataclass(frozen=True)
class Pose6D:
    """Position and orientation of a key frame, with its index and time."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0
    intensity: float = 0.0
    time: float = 0.0

    def matrix(self) -> np.ndarray:
        return get_transformation(self.x, self.y, self.z, self.roll, self.pitch, self.yaw)

    @classmethod
    def from_matrix(cls, matrix: np.ndarray, time: float = 0.0) -> "Pose6D":
        x, y, z, roll, pitch, yaw = translation_and_euler(matrix)
        return cls(x, y, z, roll, pitch, yaw, 0.0, time)
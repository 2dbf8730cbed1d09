"""IMU samples and their conversion into the lidar frame."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

import numpy as np

from .geometry import quaternion_to_rpy

Vector3 = tuple[float, float, float]
Quaternion = tuple[float, float, float, float]


class InvalidQuaternionError(ValueError):
    """Raised when a converted orientation is not a usable quaternion."""


@dataclass(frozen=True)
class ImuSample:
    """One IMU reading; orientation is (x, y, z, w)."""

    time: float
    linear_acceleration: Vector3 = (0.0, 0.0, 0.0)
    angular_velocity: Vector3 = (0.0, 0.0, 0.0)
    orientation: Quaternion = (0.0, 0.0, 0.0, 1.0)

    def rpy(self) -> tuple[float, float, float]:
        return quaternion_to_rpy(*self.orientation)


def _matrix_to_quaternion(m: np.ndarray) -> np.ndarray:
    """Quaternion (w, x, y, z) of a rotation matrix."""
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0:
        t = math.sqrt(trace + 1.0)
        w = 0.5 * t
        t = 0.5 / t
        return np.array([w, (m[2, 1] - m[1, 2]) * t, (m[0, 2] - m[2, 0]) * t, (m[1, 0] - m[0, 1]) * t])
    i = 0
    if m[1, 1] > m[0, 0]:
        i = 1
    if m[2, 2] > m[i, i]:
        i = 2
    j, k = (i + 1) % 3, (i + 2) % 3
    t = math.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
    vec = np.zeros(3)
    vec[i] = 0.5 * t
    t = 0.5 / t
    vec[j] = (m[j, i] + m[i, j]) * t
    vec[k] = (m[k, i] + m[i, k]) * t
    return np.array([(m[k, j] - m[j, k]) * t, *vec])


def _multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    aw, ax, ay, az = a
    bw, bx, by, bz = b
    return np.array([
        aw * bw - ax * bx - ay * by - az * bz,
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
    ])


class ImuConverter:
    """Rotates IMU readings by the IMU-to-lidar extrinsics."""

    def __init__(self, ext_rot, ext_rpy) -> None:
        self.ext_rot = np.asarray(ext_rot, dtype=float).reshape(3, 3)
        self._ext_q = _matrix_to_quaternion(np.asarray(ext_rpy, dtype=float).reshape(3, 3))

    def convert(self, sample: ImuSample) -> ImuSample:
        acc = self.ext_rot @ np.asarray(sample.linear_acceleration, dtype=float)
        gyr = self.ext_rot @ np.asarray(sample.angular_velocity, dtype=float)
        x, y, z, w = sample.orientation
        q = _multiply(np.array([w, x, y, z], dtype=float), self._ext_q)
        if np.linalg.norm(q) < 0.1:
            raise InvalidQuaternionError("Invalid quaternion, please use a 9-axis IMU!")
        return replace(
            sample,
            linear_acceleration=tuple(float(v) for v in acc),
            angular_velocity=tuple(float(v) for v in gyr),
            orientation=(float(q[1]), float(q[2]), float(q[3]), float(q[0])),
        )
"""Per-scan information passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


def _empty_cloud() -> np.ndarray:
    return np.zeros((0, 4))


@dataclass(eq=False)
class CloudInfo:
    """Ring layout, ranges and initial guesses attached to one lidar scan."""

    start_ring_index: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    end_ring_index: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    point_col_ind: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    point_range: np.ndarray = field(default_factory=lambda: np.zeros(0))

    timestamp: float = 0.0

    imu_available: bool = False
    odom_available: bool = False

    imu_roll_init: float = 0.0
    imu_pitch_init: float = 0.0
    imu_yaw_init: float = 0.0

    odom_x: float = 0.0
    odom_y: float = 0.0
    odom_z: float = 0.0
    odom_roll: float = 0.0
    odom_pitch: float = 0.0
    odom_yaw: float = 0.0
    odom_reset_id: int = 0

    cloud_deskewed: np.ndarray = field(default_factory=_empty_cloud)
    cloud_corner: np.ndarray = field(default_factory=_empty_cloud)
    cloud_surface: np.ndarray = field(default_factory=_empty_cloud)

    @classmethod
    def empty(cls, n_scan: int) -> "CloudInfo":
        """Info with zeroed ring indices for ``n_scan`` rings."""
        if n_scan < 0:
            raise ValueError("n_scan must not be negative")
        return cls(
            start_ring_index=np.zeros(n_scan, dtype=np.int64),
            end_ring_index=np.zeros(n_scan, dtype=np.int64),
        )
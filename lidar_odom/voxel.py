"""Voxel-grid downsampling of point arrays."""

from __future__ import annotations

import numpy as np


def voxel_downsample(points: np.ndarray, leaf_size: float) -> np.ndarray:
    """Replace the points in each cubic voxel by their centroid.

    All columns (intensity included) are averaged. Voxels come out ordered
    by their z, then y, then x cell index.
    """
    if leaf_size <= 0:
        raise ValueError("leaf_size must be positive")
    pts = np.asarray(points, dtype=float)
    if pts.ndim != 2 or pts.shape[1] < 3:
        raise ValueError("points must be an (N, >=3) array")
    if len(pts) == 0:
        return pts.copy()
    cells = np.floor(pts[:, :3] / leaf_size).astype(np.int64)[:, ::-1]
    _, inverse, counts = np.unique(cells, axis=0, return_inverse=True, return_counts=True)
    inverse = np.asarray(inverse).reshape(-1)
    sums = np.zeros((len(counts), pts.shape[1]))
    np.add.at(sums, inverse, pts)
    return sums / counts[:, None]
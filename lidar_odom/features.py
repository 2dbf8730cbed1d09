"""Edge and planar feature extraction from a ring-ordered lidar scan."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .cloud_info import CloudInfo
from .voxel import voxel_downsample

_KERNEL = np.array([1.0] * 5 + [-10.0] + [1.0] * 5)
_SECTORS = 6
_NEIGHBOURS = 5
_COLUMN_GAP = 10


def _cdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


@dataclass
class FeatureSet:
    """Edge (corner) points and downsampled planar (surface) points of one scan."""

    corners: np.ndarray
    surfaces: np.ndarray


@dataclass
class FeatureExtractor:
    """Selects sharp edge points and flat surface points by local range curvature."""

    edge_threshold: float = 0.1
    surf_threshold: float = 0.1
    surf_leaf_size: float = 0.2
    max_corners_per_sector: int = 20

    def smoothness(self, ranges) -> np.ndarray:
        """Squared range curvature over an 11-point window; zero at the five border points."""
        r = np.asarray(ranges, dtype=float)
        curvature = np.zeros_like(r)
        if len(r) > 2 * _NEIGHBOURS:
            curvature[_NEIGHBOURS:-_NEIGHBOURS] = np.convolve(r, _KERNEL, mode="valid") ** 2
        return curvature

    def occluded_mask(self, ranges, columns) -> np.ndarray:
        """Mark points next to occlusion edges and points on beams parallel to a surface."""
        r = np.asarray(ranges, dtype=float)
        c = np.asarray(columns, dtype=np.int64)
        n = len(r)
        mask = np.zeros(n, dtype=bool)
        if n <= 12:
            return mask
        idx = np.arange(5, n - 6)
        depth1, depth2 = r[idx], r[idx + 1]
        close = np.abs(c[idx + 1] - c[idx]) < _COLUMN_GAP
        farther_first = close & (depth1 - depth2 > 0.3)
        nearer_first = close & ~farther_first & (depth2 - depth1 > 0.3)
        for i in idx[farther_first]:
            mask[i - 5:i + 1] = True
        for i in idx[nearer_first]:
            mask[i + 1:i + 7] = True
        diff1 = np.abs(r[idx - 1] - r[idx])
        diff2 = np.abs(r[idx + 1] - r[idx])
        parallel = (diff1 > 0.02 * r[idx]) & (diff2 > 0.02 * r[idx])
        mask[idx[parallel]] = True
        return mask

    @staticmethod
    def _mark_neighbours(picked: np.ndarray, columns: np.ndarray, ind: int) -> None:
        n = len(picked)
        for step in (1, -1):
            for offset in range(1, _NEIGHBOURS + 1):
                neighbour = ind + step * offset
                if not 0 <= neighbour < n:
                    break
                if abs(int(columns[neighbour]) - int(columns[neighbour - step])) > _COLUMN_GAP:
                    break
                picked[neighbour] = True

    def extract(self, cloud, info: CloudInfo) -> FeatureSet:
        """Split a deskewed scan into corner and surface features, ring by ring."""
        points = np.asarray(cloud, dtype=float)
        if points.ndim != 2 or points.shape[1] < 3:
            raise ValueError("cloud must be an (N, >=3) array")
        n, width = points.shape
        ranges = np.asarray(info.point_range, dtype=float)[:n]
        columns = np.asarray(info.point_col_ind, dtype=np.int64)[:n]
        if len(ranges) < n or len(columns) < n:
            raise ValueError("cloud info holds fewer ranges or columns than points")

        curvature = self.smoothness(ranges)
        picked = self.occluded_mask(ranges, columns)
        labels = np.zeros(n, dtype=np.int8)
        order = np.arange(n)

        corners: list[np.ndarray] = []
        surface_parts: list[np.ndarray] = []

        for start, end in zip(info.start_ring_index, info.end_ring_index):
            start, end = int(start), int(end)
            ring_surfaces: list[np.ndarray] = []
            for sector in range(_SECTORS):
                sp = _cdiv(start * (_SECTORS - sector) + end * sector, _SECTORS)
                ep = _cdiv(start * (_SECTORS - 1 - sector) + end * (sector + 1), _SECTORS) - 1
                if sp >= ep:
                    continue
                if sp < 0 or ep >= n:
                    raise ValueError("ring indices fall outside the cloud")

                segment = order[sp:ep]
                order[sp:ep] = segment[np.argsort(curvature[segment], kind="stable")]
                candidates = order[sp:ep + 1].copy()

                taken = 0
                for ind in candidates[::-1]:
                    if picked[ind] or curvature[ind] <= self.edge_threshold:
                        continue
                    taken += 1
                    if taken > self.max_corners_per_sector:
                        break
                    labels[ind] = 1
                    corners.append(points[ind])
                    picked[ind] = True
                    self._mark_neighbours(picked, columns, ind)

                for ind in candidates:
                    if picked[ind] or curvature[ind] >= self.surf_threshold:
                        continue
                    labels[ind] = -1
                    picked[ind] = True
                    self._mark_neighbours(picked, columns, ind)

                ring_surfaces.append(points[sp:ep + 1][labels[sp:ep + 1] <= 0])

            if ring_surfaces:
                surface_parts.append(voxel_downsample(np.concatenate(ring_surfaces), self.surf_leaf_size))

        corner_array = np.array(corners) if corners else np.empty((0, width))
        surface_array = np.concatenate(surface_parts) if surface_parts else np.empty((0, width))
        return FeatureSet(corners=corner_array, surfaces=surface_array)
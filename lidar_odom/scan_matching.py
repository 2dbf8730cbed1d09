"""Scan-to-map registration of edge and planar features."""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np
from scipy.spatial import cKDTree

from .geometry import get_transformation, transform_points

log = logging.getLogger(__name__)

_NEIGHBOURS = 5
_MAX_SQ_DISTANCE = 1.0
_EIGEN_THRESHOLD = 100.0


def constrain(value: float, limit: float) -> float:
    """Clamp ``value`` into ``[-limit, limit]``."""
    if value < -limit:
        value = -limit
    if value > limit:
        value = limit
    return value


def _as_points(points) -> np.ndarray:
    pts = np.asarray(points, dtype=float)
    if pts.ndim == 1 and pts.size == 0:
        return np.empty((0, 3))
    if pts.ndim != 2 or pts.shape[1] < 3:
        raise ValueError("points must be an (N, >=3) array")
    return pts


def _transform_matrix(transform) -> np.ndarray:
    t = np.asarray(transform, dtype=float).reshape(6)
    return get_transformation(t[3], t[4], t[5], t[0], t[1], t[2])


class _FeatureMap:
    """A map cloud with a kd-tree over its positions."""

    def __init__(self, points) -> None:
        self.points = _as_points(points)[:, :3].copy()
        self.tree: Optional[cKDTree] = (
            cKDTree(self.points) if len(self.points) >= _NEIGHBOURS else None
        )

    def neighbours(self, queries: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Indices of the five nearest map points and whether they all lie within reach."""
        if self.tree is None or len(queries) == 0:
            return np.empty((len(queries), _NEIGHBOURS), dtype=np.int64), np.zeros(len(queries), dtype=bool)
        dist, idx = self.tree.query(queries, k=_NEIGHBOURS)
        dist = np.asarray(dist).reshape(len(queries), _NEIGHBOURS)
        idx = np.asarray(idx).reshape(len(queries), _NEIGHBOURS)
        return idx, dist[:, -1] ** 2 < _MAX_SQ_DISTANCE


class ScanMatcher:
    """Refines a pose [roll, pitch, yaw, x, y, z] by matching features against a local map."""

    def __init__(self, corner_map, surface_map, *,
                 edge_feature_min_valid_num: int = 10,
                 surf_feature_min_valid_num: int = 100,
                 max_iterations: int = 30) -> None:
        self._corner_map = _FeatureMap(corner_map)
        self._surface_map = _FeatureMap(surface_map)
        self.edge_feature_min_valid_num = edge_feature_min_valid_num
        self.surf_feature_min_valid_num = surf_feature_min_valid_num
        self.max_iterations = max_iterations
        self.is_degenerate = False
        self.optimized = False
        self._projection = np.zeros((6, 6))

    def corner_coefficients(self, corners, transform) -> tuple[np.ndarray, np.ndarray]:
        """Point-to-line residuals of edge points; returns the kept points and (x, y, z, residual) rows."""
        pts = _as_points(corners)
        selected = transform_points(pts, _transform_matrix(transform))[:, :3] if len(pts) else np.empty((0, 3))
        idx, valid = self._corner_map.neighbours(selected)
        kept: list[np.ndarray] = []
        coeffs: list[tuple[float, float, float, float]] = []
        for i in np.flatnonzero(valid):
            neighbours = self._corner_map.points[idx[i]]
            centre = neighbours.mean(axis=0)
            centred = neighbours - centre
            values, vectors = np.linalg.eigh(centred.T @ centred / _NEIGHBOURS)
            if not values[2] > 3 * values[1]:
                continue
            direction = vectors[:, 2]
            x0, y0, z0 = selected[i]
            x1, y1, z1 = centre + 0.1 * direction
            x2, y2, z2 = centre - 0.1 * direction

            cxy = (x0 - x1) * (y0 - y2) - (x0 - x2) * (y0 - y1)
            cxz = (x0 - x1) * (z0 - z2) - (x0 - x2) * (z0 - z1)
            cyz = (y0 - y1) * (z0 - z2) - (y0 - y2) * (z0 - z1)
            a012 = math.sqrt(cxy * cxy + cxz * cxz + cyz * cyz)
            l12 = math.sqrt((x1 - x2) ** 2 + (y1 - y2) ** 2 + (z1 - z2) ** 2)
            if a012 == 0.0 or l12 == 0.0:
                continue
            la = ((y1 - y2) * cxy + (z1 - z2) * cxz) / a012 / l12
            lb = -((x1 - x2) * cxy - (z1 - z2) * cyz) / a012 / l12
            lc = -((x1 - x2) * cxz + (y1 - y2) * cyz) / a012 / l12
            ld2 = a012 / l12
            s = 1 - 0.9 * abs(ld2)
            if s > 0.1:
                kept.append(pts[i])
                coeffs.append((s * la, s * lb, s * lc, s * ld2))
        return self._pack(kept, coeffs, pts.shape[1])

    def surface_coefficients(self, surfaces, transform) -> tuple[np.ndarray, np.ndarray]:
        """Point-to-plane residuals of planar points; returns the kept points and (x, y, z, residual) rows."""
        pts = _as_points(surfaces)
        selected = transform_points(pts, _transform_matrix(transform))[:, :3] if len(pts) else np.empty((0, 3))
        idx, valid = self._surface_map.neighbours(selected)
        kept: list[np.ndarray] = []
        coeffs: list[tuple[float, float, float, float]] = []
        rhs = -np.ones(_NEIGHBOURS)
        for i in np.flatnonzero(valid):
            neighbours = self._surface_map.points[idx[i]]
            solution = np.linalg.lstsq(neighbours, rhs, rcond=None)[0]
            norm = float(np.linalg.norm(solution))
            if norm == 0.0:
                continue
            normal = solution / norm
            pd = 1.0 / norm
            if np.any(np.abs(neighbours @ normal + pd) > 0.2):
                continue
            point = selected[i]
            distance = float(normal @ point + pd)
            radius = math.sqrt(math.sqrt(float(point @ point)))
            if radius == 0.0:
                continue
            s = 1 - 0.9 * abs(distance) / radius
            if s > 0.1:
                kept.append(pts[i])
                coeffs.append((s * normal[0], s * normal[1], s * normal[2], s * distance))
        return self._pack(kept, coeffs, pts.shape[1])

    @staticmethod
    def _pack(kept, coeffs, width: int) -> tuple[np.ndarray, np.ndarray]:
        if not kept:
            return np.empty((0, width)), np.empty((0, 4))
        return np.array(kept), np.array(coeffs, dtype=float)

    def lm_step(self, points, coefficients, transform, iteration: int) -> tuple[np.ndarray, bool]:
        """One Gauss-Newton update; returns the new transform and whether it has converged."""
        t = np.asarray(transform, dtype=float).reshape(6).copy()
        pts = _as_points(points)
        coef = np.asarray(coefficients, dtype=float).reshape(-1, 4)
        if len(pts) != len(coef):
            raise ValueError("points and coefficients differ in length")
        if len(pts) < 50:
            return t, False

        srx, crx = math.sin(t[1]), math.cos(t[1])
        sry, cry = math.sin(t[2]), math.cos(t[2])
        srz, crz = math.sin(t[0]), math.cos(t[0])

        # The Jacobian is written in a camera-style frame: x <- y, y <- z, z <- x.
        px, py, pz = pts[:, 1], pts[:, 2], pts[:, 0]
        cx, cy, cz, ci = coef[:, 1], coef[:, 2], coef[:, 0], coef[:, 3]

        arx = ((crx * sry * srz * px + crx * crz * sry * py - srx * sry * pz) * cx
               + (-srx * srz * px - crz * srx * py - crx * pz) * cy
               + (crx * cry * srz * px + crx * cry * crz * py - cry * srx * pz) * cz)
        ary = (((cry * srx * srz - crz * sry) * px
                + (sry * srz + cry * crz * srx) * py + crx * cry * pz) * cx
               + ((-cry * crz - srx * sry * srz) * px
                  + (cry * srz - crz * srx * sry) * py - crx * sry * pz) * cz)
        arz = (((crz * srx * sry - cry * srz) * px + (-cry * crz - srx * sry * srz) * py) * cx
               + (crx * crz * px - crx * srz * py) * cy
               + ((sry * srz + cry * crz * srx) * px + (crz * sry - cry * srx * srz) * py) * cz)

        a = np.column_stack([arz, arx, ary, cz, cx, cy])
        b = -ci
        ata = a.T @ a
        atb = a.T @ b
        x = np.linalg.lstsq(ata, atb, rcond=None)[0]

        if iteration == 0:
            values, vectors = np.linalg.eigh(ata)
            order = np.argsort(values)[::-1]
            values = values[order]
            rows = vectors[:, order].T
            kept_rows = rows.copy()
            self.is_degenerate = False
            for i in range(5, -1, -1):
                if values[i] < _EIGEN_THRESHOLD:
                    kept_rows[i] = 0.0
                    self.is_degenerate = True
                else:
                    break
            self._projection = np.linalg.inv(rows) @ kept_rows

        if self.is_degenerate:
            x = self._projection @ x

        t += x
        delta_r = math.sqrt(float(np.sum(np.degrees(x[:3]) ** 2)))
        delta_t = math.sqrt(float(np.sum((x[3:] * 100) ** 2)))
        return t, delta_r < 0.05 and delta_t < 0.05

    def optimize(self, corners, surfaces, transform) -> np.ndarray:
        """Iterate matching and updates; returns the refined transform.

        When there are too few features the transform comes back unchanged
        and ``optimized`` is False.
        """
        t = np.asarray(transform, dtype=float).reshape(6).copy()
        corner_pts = _as_points(corners)
        surface_pts = _as_points(surfaces)
        self.optimized = False
        if (len(corner_pts) <= self.edge_feature_min_valid_num
                or len(surface_pts) <= self.surf_feature_min_valid_num):
            log.warning("Not enough features! Only %d edge and %d planar features available.",
                        len(corner_pts), len(surface_pts))
            return t

        for iteration in range(self.max_iterations):
            corner_kept, corner_coef = self.corner_coefficients(corner_pts, t)
            surface_kept, surface_coef = self.surface_coefficients(surface_pts, t)
            points = np.concatenate([corner_kept[:, :3], surface_kept[:, :3]])
            coefficients = np.concatenate([corner_coef, surface_coef])
            t, converged = self.lm_step(points, coefficients, t, iteration)
            if converged:
                break
        self.optimized = True
        return t
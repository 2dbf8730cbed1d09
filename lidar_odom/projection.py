"""Range-image projection and motion deskewing of raw lidar scans."""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .cloud_info import CloudInfo
from .geometry import get_transformation, quaternion_to_rpy, translation_and_euler
from .imu import ImuConverter, ImuSample
from .params import Params

log = logging.getLogger(__name__)

DEFAULT_FIELDS = ("x", "y", "z", "intensity", "ring", "time")


class PointCloudFormatError(ValueError):
    """Raised when an incoming scan lacks what the projection needs."""


def _round(value: float) -> int:
    """Round half away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


@dataclass(frozen=True)
class OdometrySample:
    """A pose estimate; ``reset_id`` marks which run of the estimator produced it."""

    time: float
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    orientation: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    reset_id: float = 0.0


@dataclass(frozen=True)
class ScanPoint:
    """One raw lidar return with its ring and time relative to the scan start."""

    x: float
    y: float
    z: float
    intensity: float = 0.0
    ring: int = 0
    time: float = 0.0


@dataclass(frozen=True)
class Scan:
    """A raw lidar sweep as received from the sensor."""

    time: float
    points: Sequence[ScanPoint] = ()
    fields: tuple[str, ...] = DEFAULT_FIELDS
    is_dense: bool = True


class ImageProjector:
    """Projects scans onto a range image, removing motion distortion with IMU data."""

    def __init__(self, params: Optional[Params] = None) -> None:
        self.params = params if params is not None else Params()
        self._converter = ImuConverter(self.params.ext_rot, self.params.ext_rpy)
        self._imu_lock = threading.Lock()
        self._odom_lock = threading.Lock()
        self._imu_queue: deque[ImuSample] = deque()
        self._odom_queue: deque[OdometrySample] = deque()
        self._cloud_queue: deque[Scan] = deque()
        self._ring_checked = False
        self._deskew_enabled: Optional[bool] = None
        self.time_scan_cur = 0.0
        self.time_scan_next = 0.0
        self.imu_available = False
        self.odom_increment = (0.0, 0.0, 0.0)
        self._reset()

    def _reset(self) -> None:
        self._imu_time: list[float] = [0.0]
        self._imu_rot: list[np.ndarray] = [np.zeros(3)]
        self._imu_pointer = 0
        self._first_point = True
        self._trans_start_inverse = np.eye(4)
        self.odom_deskew = False

    def add_imu(self, sample: ImuSample) -> None:
        """Queue an IMU reading after rotating it into the lidar frame."""
        converted = self._converter.convert(sample)
        with self._imu_lock:
            self._imu_queue.append(converted)

    def add_odometry(self, sample: OdometrySample) -> None:
        """Queue an odometry estimate."""
        with self._odom_lock:
            self._odom_queue.append(sample)

    def process(self, scan: Scan) -> Optional[CloudInfo]:
        """Feed one scan; return the projected info of the oldest buffered scan, if ready."""
        current = self._cache(scan)
        if current is None:
            return None
        with self._imu_lock, self._odom_lock:
            queue = self._imu_queue
            if (not queue or queue[0].time > self.time_scan_cur
                    or queue[-1].time < self.time_scan_next):
                log.debug("Waiting for IMU data ...")
                return None
            self._reset()
            info = CloudInfo.empty(self.params.n_scan)
            info.timestamp = self.time_scan_cur
            self._imu_deskew_info(info)
            self._odom_deskew_info(info)
        ranges, full = self._project(current)
        self._extract(info, ranges, full)
        return info

    def _cache(self, scan: Scan) -> Optional[Scan]:
        self._cloud_queue.append(scan)
        if len(self._cloud_queue) <= 2:
            return None
        current = self._cloud_queue.popleft()
        self.time_scan_cur = current.time
        self.time_scan_next = self._cloud_queue[0].time
        if not current.is_dense:
            raise PointCloudFormatError(
                "Point cloud is not in dense format, please remove NaN points first!")
        if not self._ring_checked:
            if "ring" not in current.fields:
                raise PointCloudFormatError(
                    "Point cloud ring channel not available, please configure your point cloud data!")
            self._ring_checked = True
        if self._deskew_enabled is None:
            self._deskew_enabled = self.params.time_field in current.fields
            if not self._deskew_enabled:
                log.warning("Point cloud timestamp not available, deskew function disabled, "
                            "system will drift significantly!")
        return current

    def _imu_deskew_info(self, info: CloudInfo) -> None:
        info.imu_available = False
        self.imu_available = False
        queue = self._imu_queue
        while queue and queue[0].time < self.time_scan_cur - 0.01:
            queue.popleft()
        if not queue:
            return
        times: list[float] = []
        rots: list[np.ndarray] = []
        for sample in queue:
            t = sample.time
            if t <= self.time_scan_cur:
                info.imu_roll_init, info.imu_pitch_init, info.imu_yaw_init = sample.rpy()
            if t > self.time_scan_next + 0.01:
                break
            if not times:
                times.append(t)
                rots.append(np.zeros(3))
                continue
            dt = t - times[-1]
            rots.append(rots[-1] + np.asarray(sample.angular_velocity, dtype=float) * dt)
            times.append(t)
        if times:
            self._imu_time, self._imu_rot = times, rots
        self._imu_pointer = len(times) - 1
        if self._imu_pointer <= 0:
            return
        info.imu_available = True
        self.imu_available = True

    def _odom_deskew_info(self, info: CloudInfo) -> None:
        info.odom_available = False
        queue = self._odom_queue
        while queue and queue[0].time < self.time_scan_cur - 0.01:
            queue.popleft()
        if not queue or queue[0].time > self.time_scan_cur:
            return

        start = next((s for s in queue if s.time >= self.time_scan_cur), queue[-1])
        roll, pitch, yaw = quaternion_to_rpy(*start.orientation)
        info.odom_x, info.odom_y, info.odom_z = (float(v) for v in start.position)
        info.odom_roll, info.odom_pitch, info.odom_yaw = roll, pitch, yaw
        info.odom_reset_id = _round(start.reset_id)
        info.odom_available = True

        self.odom_deskew = False
        if queue[-1].time < self.time_scan_next:
            return
        end = next((s for s in queue if s.time >= self.time_scan_next), queue[-1])
        if _round(start.reset_id) != _round(end.reset_id):
            return
        begin = get_transformation(*start.position, roll, pitch, yaw)
        end_t = get_transformation(*end.position, *quaternion_to_rpy(*end.orientation))
        between = np.linalg.inv(begin) @ end_t
        self.odom_increment = translation_and_euler(between)[:3]
        self.odom_deskew = True

    def find_rotation(self, point_time: float) -> tuple[float, float, float]:
        """Integrated IMU rotation at ``point_time``, interpolated between samples."""
        times, rots = self._imu_time, self._imu_rot
        front = 0
        while front < self._imu_pointer and point_time >= times[front]:
            front += 1
        if point_time > times[front] or front == 0:
            rot = rots[front]
        else:
            back = front - 1
            span = times[front] - times[back]
            ratio_front = (point_time - times[back]) / span
            ratio_back = (times[front] - point_time) / span
            rot = rots[front] * ratio_front + rots[back] * ratio_back
        return float(rot[0]), float(rot[1]), float(rot[2])

    def deskew_point(self, point: Sequence[float], rel_time: float) -> np.ndarray:
        """Move a point (x, y, z, intensity) into the frame of the scan's first point."""
        p = np.asarray(point, dtype=float)
        if not self._deskew_enabled or not self.imu_available:
            return p.copy()
        rx, ry, rz = self.find_rotation(self.time_scan_cur + rel_time)
        transform = get_transformation(0.0, 0.0, 0.0, rx, ry, rz)
        if self._first_point:
            self._trans_start_inverse = np.linalg.inv(transform)
            self._first_point = False
        between = self._trans_start_inverse @ transform
        out = p.copy()
        out[:3] = between[:3, :3] @ p[:3] + between[:3, 3]
        return out

    def _project(self, scan: Scan) -> tuple[np.ndarray, np.ndarray]:
        n_scan, horizon = self.params.n_scan, self.params.horizon_scan
        rate = self.params.downsample_rate
        ranges = np.full((n_scan, horizon), np.inf)
        full = np.zeros((n_scan * horizon, 4))
        ang_res = 360.0 / horizon
        for pt in scan.points:
            row = int(pt.ring)
            if not 0 <= row < n_scan or row % rate != 0:
                continue
            angle = math.degrees(math.atan2(pt.x, pt.y))
            col = -_round((angle - 90.0) / ang_res) + horizon // 2
            if col >= horizon:
                col -= horizon
            if not 0 <= col < horizon:
                continue
            distance = math.sqrt(pt.x * pt.x + pt.y * pt.y + pt.z * pt.z)
            if distance < 1.0 or math.isfinite(ranges[row, col]):
                continue
            ranges[row, col] = distance
            full[col + row * horizon] = self.deskew_point((pt.x, pt.y, pt.z, pt.intensity), pt.time)
        return ranges, full

    def _extract(self, info: CloudInfo, ranges: np.ndarray, full: np.ndarray) -> None:
        horizon = self.params.horizon_scan
        columns: list[np.ndarray] = []
        values: list[np.ndarray] = []
        points: list[np.ndarray] = []
        count = 0
        for i, row in enumerate(ranges):
            info.start_ring_index[i] = count - 1 + 5
            js = np.flatnonzero(np.isfinite(row))
            columns.append(js)
            values.append(row[js])
            points.append(full[i * horizon + js])
            count += len(js)
            info.end_ring_index[i] = count - 1 - 5
        if columns:
            info.point_col_ind = np.concatenate(columns).astype(np.int64)
            info.point_range = np.concatenate(values)
            info.cloud_deskewed = np.concatenate(points).reshape(-1, 4)
"""Lidar odometry building blocks: projection, deskewing, feature extraction and scan matching."""

__version__ = "0.1.0"

__all__ = [
    "params",
    "geometry",
    "imu",
    "timing",
    "voxel",
    "cloud_info",
    "features",
    "projection",
    "scan_matching",
]
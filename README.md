# lidar_odom

Building blocks for lidar odometry in Python on top of NumPy and SciPy.

Given raw scans from a spinning multi-beam lidar and IMU samples, the package
projects each scan into a range image, removes the rotation the sensor made
during the sweep, picks out edge and planar features, and registers those
features against a local map to refine a pose.

## Modules

- `lidar_odom.params` – `Params`, a dataclass holding every tuning value,
  with defaults for a 16-beam, 1800-column sensor.
- `lidar_odom.geometry` – `get_transformation` (4x4 transform from
  x, y, z, roll, pitch, yaw), `translation_and_euler` (the inverse split),
  `quaternion_to_rpy`, `rpy_to_quaternion`, `slerp`, `transform_points`,
  `point_distance`, and the `Pose6D` dataclass with `matrix()` and
  `Pose6D.from_matrix()`.
- `lidar_odom.imu` – `ImuSample` (time, acceleration, angular velocity,
  orientation as x, y, z, w; `rpy()` gives its roll, pitch, yaw) and
  `ImuConverter`, which rotates samples by the IMU-to-lidar extrinsics and
  raises `InvalidQuaternionError` when the resulting orientation is unusable.
- `lidar_odom.timing` – `TicToc`, a stopwatch whose `toc()` returns the
  milliseconds since the last `tic()`.
- `lidar_odom.voxel` – `voxel_downsample(points, leaf_size)` replaces the
  points of each cubic voxel by their centroid, averaging every column.
- `lidar_odom.cloud_info` – `CloudInfo`, the per-scan record of ring start
  and end indices, column indices, ranges, IMU and odometry initial guesses
  and the deskewed, corner and surface clouds.
- `lidar_odom.projection` – `ImageProjector` with the input types `Scan`,
  `ScanPoint` and `OdometrySample`.
- `lidar_odom.features` – `FeatureExtractor` and its result `FeatureSet`.
- `lidar_odom.scan_matching` – `ScanMatcher` and the helper `constrain`.

Point clouds throughout are NumPy arrays of shape `(N, >=3)`; the first three
columns are x, y, z and a fourth, where present, is intensity.

## Configuration

Build `Params` from any mapping, such as a parsed YAML or JSON file. Keys
use the configuration names (`N_SCAN`, `edgeThreshold`, `extrinsicRot`, …)
and may carry a namespace prefix such as `sam/N_SCAN`; unknown keys are
ignored and missing ones keep their defaults:

```python
from lidar_odom.params import Params

params = Params.from_mapping({"N_SCAN": 32, "sam/edgeThreshold": 0.2})
```

## Projection and deskewing

`ImageProjector.add_imu()` converts and queues an IMU sample;
`add_odometry()` queues an odometry estimate. `process(scan)` buffers scans
and returns `None` until a third scan has arrived and the IMU queue covers
the oldest buffered scan; it then returns a `CloudInfo` for that scan, whose
`cloud_deskewed` holds the kept points ring by ring as `(x, y, z, intensity)`
rows. Points outside the rings, closer than 1 m, or landing on an occupied
range-image cell are dropped.

`process` raises `PointCloudFormatError` if a scan is not dense or has no
`ring` field. If the scan lacks the configured time field, deskewing is
switched off and a warning is logged.

## Features

```python
from lidar_odom.features import FeatureExtractor

extractor = FeatureExtractor(
    edge_threshold=params.edge_threshold,
    surf_threshold=params.surf_threshold,
    surf_leaf_size=params.odometry_surf_leaf_size,
)
features = extractor.extract(info.cloud_deskewed, info)
features.corners   # sharp edge points, at most 20 per sector of each ring
features.surfaces  # flat points, voxel-downsampled per ring
```

`smoothness(ranges)` and `occluded_mask(ranges, columns)` expose the
curvature score and the occlusion / parallel-beam mask used for selection.

## Scan matching

```python
import numpy as np
from lidar_odom.scan_matching import ScanMatcher

matcher = ScanMatcher(corner_map, surface_map,
                      edge_feature_min_valid_num=params.edge_feature_min_valid_num,
                      surf_feature_min_valid_num=params.surf_feature_min_valid_num)
pose = matcher.optimize(features.corners, features.surfaces, np.zeros(6))
```

Poses are `[roll, pitch, yaw, x, y, z]`. `optimize` runs up to 30 rounds of
point-to-line and point-to-plane matching followed by a Gauss–Newton update
(`lm_step`), projecting out directions whose eigenvalues fall below 100 on
the first round (`is_degenerate`). With too few features it returns the pose
unchanged, logs a warning and leaves `optimized` False.
`corner_coefficients` and `surface_coefficients` can be called on their own.

## What the package does not do

It has no keyframe selection, pose-graph optimisation, loop closure, global
map assembly or map saving: keeping a trajectory and a map across scans is
left to the caller. It has no command-line program and no message transport;
scans, IMU samples and odometry are passed in as Python objects.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```
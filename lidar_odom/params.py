"""Tunable parameters of the lidar odometry pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import numpy as np

FLT_MAX = 3.4028234663852886e38


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "on"}:
            return True
        if lowered in {"false", "0", "no", "off"}:
            return False
        raise ValueError(f"not a boolean: {value!r}")
    return bool(value)


def _matrix(rows: int, cols: int) -> Callable[[Any], np.ndarray]:
    def convert(values: Any) -> np.ndarray:
        array = np.asarray(values, dtype=float)
        if array.size != rows * cols:
            raise ValueError(f"expected {rows * cols} values, got {array.size}")
        shaped = array.reshape(rows, cols)
        return shaped[:, 0].copy() if cols == 1 else shaped

    return convert


_KEYS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "PROJECT_NAME": ("project_name", str),
    "robot_id": ("robot_id", str),
    "pointCloudTopic": ("point_cloud_topic", str),
    "imuTopic": ("imu_topic", str),
    "odomTopic": ("odom_topic", str),
    "gpsTopic": ("gps_topic", str),
    "useImuHeadingInitialization": ("use_imu_heading_initialization", _to_bool),
    "useGpsElevation": ("use_gps_elevation", _to_bool),
    "gpsCovThreshold": ("gps_cov_threshold", float),
    "poseCovThreshold": ("pose_cov_threshold", float),
    "savePCD": ("save_pcd", _to_bool),
    "savePCDDirectory": ("save_pcd_directory", str),
    "N_SCAN": ("n_scan", int),
    "Horizon_SCAN": ("horizon_scan", int),
    "timeField": ("time_field", str),
    "downsampleRate": ("downsample_rate", int),
    "imuAccNoise": ("imu_acc_noise", float),
    "imuGyrNoise": ("imu_gyr_noise", float),
    "imuAccBiasN": ("imu_acc_bias_n", float),
    "imuGyrBiasN": ("imu_gyr_bias_n", float),
    "imuGravity": ("imu_gravity", float),
    "extrinsicRot": ("ext_rot", _matrix(3, 3)),
    "extrinsicRPY": ("ext_rpy", _matrix(3, 3)),
    "extrinsicTrans": ("ext_trans", _matrix(3, 1)),
    "edgeThreshold": ("edge_threshold", float),
    "surfThreshold": ("surf_threshold", float),
    "edgeFeatureMinValidNum": ("edge_feature_min_valid_num", int),
    "surfFeatureMinValidNum": ("surf_feature_min_valid_num", int),
    "odometrySurfLeafSize": ("odometry_surf_leaf_size", float),
    "mappingCornerLeafSize": ("mapping_corner_leaf_size", float),
    "mappingSurfLeafSize": ("mapping_surf_leaf_size", float),
    "z_tollerance": ("z_tolerance", float),
    "rotation_tollerance": ("rotation_tolerance", float),
    "numberOfCores": ("number_of_cores", int),
    "mappingProcessInterval": ("mapping_process_interval", float),
    "surroundingkeyframeAddingDistThreshold": ("keyframe_adding_dist_threshold", float),
    "surroundingkeyframeAddingAngleThreshold": ("keyframe_adding_angle_threshold", float),
    "surroundingKeyframeDensity": ("surrounding_keyframe_density", float),
    "surroundingKeyframeSearchRadius": ("surrounding_keyframe_search_radius", float),
    "loopClosureEnableFlag": ("loop_closure_enable", _to_bool),
    "surroundingKeyframeSize": ("surrounding_keyframe_size", int),
    "historyKeyframeSearchRadius": ("history_keyframe_search_radius", float),
    "historyKeyframeSearchTimeDiff": ("history_keyframe_search_time_diff", float),
    "historyKeyframeSearchNum": ("history_keyframe_search_num", int),
    "historyKeyframeFitnessScore": ("history_keyframe_fitness_score", float),
    "globalMapVisualizationSearchRadius": ("global_map_visualization_search_radius", float),
    "globalMapVisualizationPoseDensity": ("global_map_visualization_pose_density", float),
    "globalMapVisualizationLeafSize": ("global_map_visualization_leaf_size", float),
}


@dataclass(eq=False)
class Params:
    """All settings of the pipeline, with their usual defaults."""

    project_name: str = "sam"
    robot_id: str = "roboat"
    point_cloud_topic: str = "points_raw"
    imu_topic: str = "imu_correct"
    odom_topic: str = "odometry/imu"
    gps_topic: str = "odometry/gps"

    use_imu_heading_initialization: bool = False
    use_gps_elevation: bool = False
    gps_cov_threshold: float = 2.0
    pose_cov_threshold: float = 25.0

    save_pcd: bool = False
    save_pcd_directory: str = "/tmp/loam/"

    n_scan: int = 16
    horizon_scan: int = 1800
    time_field: str = "time"
    downsample_rate: int = 1

    imu_acc_noise: float = 0.01
    imu_gyr_noise: float = 0.001
    imu_acc_bias_n: float = 0.0002
    imu_gyr_bias_n: float = 0.00003
    imu_gravity: float = 9.80511
    ext_rot: np.ndarray = field(default_factory=lambda: np.eye(3))
    ext_rpy: np.ndarray = field(default_factory=lambda: np.eye(3))
    ext_trans: np.ndarray = field(default_factory=lambda: np.zeros(3))

    edge_threshold: float = 0.1
    surf_threshold: float = 0.1
    edge_feature_min_valid_num: int = 10
    surf_feature_min_valid_num: int = 100

    odometry_surf_leaf_size: float = 0.2
    mapping_corner_leaf_size: float = 0.2
    mapping_surf_leaf_size: float = 0.2

    z_tolerance: float = FLT_MAX
    rotation_tolerance: float = FLT_MAX

    number_of_cores: int = 2
    mapping_process_interval: float = 0.15

    keyframe_adding_dist_threshold: float = 1.0
    keyframe_adding_angle_threshold: float = 0.2
    surrounding_keyframe_density: float = 1.0
    surrounding_keyframe_search_radius: float = 50.0

    loop_closure_enable: bool = False
    surrounding_keyframe_size: int = 50
    history_keyframe_search_radius: float = 10.0
    history_keyframe_search_time_diff: float = 30.0
    history_keyframe_search_num: int = 25
    history_keyframe_fitness_score: float = 0.3

    global_map_visualization_search_radius: float = 1e3
    global_map_visualization_pose_density: float = 10.0
    global_map_visualization_leaf_size: float = 1.0

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "Params":
        """Build parameters from configuration keys such as ``N_SCAN``.

        Keys may carry a namespace prefix (``sam/N_SCAN``); unknown keys are
        ignored and missing ones keep their defaults.
        """
        kwargs: dict[str, Any] = {}
        for key, value in values.items():
            spec = _KEYS.get(key.strip("/").rsplit("/", 1)[-1])
            if spec is None:
                continue
            name, convert = spec
            kwargs[name] = convert(value)
        return cls(**kwargs)
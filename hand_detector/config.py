"""
Configuration for hand detection.
"""

import math
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict


@dataclass
class HandDetectionConfig:
    """Thresholds for hand detection. Distances in meters unless noted."""

    # General settings
    xyz_average_size: int = 9       # Pixels averaged when sampling xyz at an ij point
    bottom_edge_thresh: int = 10    # Pixels from bottom edge counted as "on the edge"
    side_edge_thresh: int = 10      # Pixels from left/right edges counted as "on the edge"
    contour_scaling_factor: int = 2  # Contour is traced on a mask downscaled by this factor
    cluster_snap_radius: int = 25   # Max pixels searched when snapping a point onto the cluster

    # Cluster gating
    hand_min_area: float = 0.01     # m^2
    hand_max_area: float = 0.056    # m^2
    hand_require_edge_connected: bool = False
    hand_edge_connect_max_y: float = 0.50  # Fraction of image height

    # Classifier gating
    hand_use_svm: bool = True
    hand_svm_confidence_thresh: float = 0.45

    # Palm
    center_max_dist_from_top: float = 0.155

    # Wrist
    contact_bot_edge_thresh: int = 8    # pixels
    contact_side_edge_thresh: int = 25  # pixels
    wrist_width_min: float = 0.030
    wrist_width_max: float = 0.085
    wrist_center_dist_thresh: float = 0.075

    # Fingers
    finger_len_min: float = 0.014
    finger_len_max: float = 0.125
    finger_dist_min: float = 0.01
    finger_defect_slope_min: float = -1.0
    finger_center_slope_min: float = -0.45
    finger_curve_near_min: float = 0.95
    finger_curve_near_max: float = 2.80
    finger_curve_far_min: float = 0.05
    finger_curve_far_max: float = 1.20
    min_points_to_defect: int = 10  # contour points between tip and defect

    # Single finger fallback
    single_finger_len_min: float = 0.04
    single_finger_len_max: float = 0.11
    single_finger_angle_thresh: float = 0.08  # radians
    single_finger_skip_curvature: bool = False

    # Defects
    defect_max_angle: float = 0.70 * math.pi
    defect_min_dist: float = 0.02
    defect_far_center_min_dist: float = 0.01
    defect_far_center_max_dist: float = 0.105
    defect_start_end_min_dist: float = 0.01
    defect_max_y_from_center: int = 30  # pixels
    centroid_defect_finger_angle_min: float = 0.40 * math.pi

    # Debug
    debug_mode: bool = False

    def __post_init__(self):
        """Validate configuration."""
        for name in ("bottom_edge_thresh", "side_edge_thresh",
                     "contact_bot_edge_thresh", "contact_side_edge_thresh"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.xyz_average_size < 1:
            raise ValueError("xyz_average_size must be >= 1")
        if self.contour_scaling_factor < 1:
            raise ValueError("contour_scaling_factor must be >= 1")
        if not 0.0 <= self.hand_edge_connect_max_y <= 1.0:
            raise ValueError("hand_edge_connect_max_y must be in [0, 1]")
        if not 0.0 <= self.hand_svm_confidence_thresh <= 1.0:
            raise ValueError("hand_svm_confidence_thresh must be in [0, 1]")

        ranges = [
            ("hand_min_area", "hand_max_area"),
            ("wrist_width_min", "wrist_width_max"),
            ("finger_len_min", "finger_len_max"),
            ("finger_curve_near_min", "finger_curve_near_max"),
            ("finger_curve_far_min", "finger_curve_far_max"),
            ("single_finger_len_min", "single_finger_len_max"),
            ("defect_far_center_min_dist", "defect_far_center_max_dist"),
        ]
        for lo, hi in ranges:
            if getattr(self, lo) > getattr(self, hi):
                raise ValueError(f"{lo} must not exceed {hi}")

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "HandDetectionConfig":
        """Build a config from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in known})

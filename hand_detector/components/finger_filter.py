"""
Accepts or rejects fingertip candidates and removes duplicates.
"""

import logging
from typing import List, Tuple

import numpy as np
from scipy.spatial.distance import cdist

from ..config import HandDetectionConfig
from ..geometry import (
    angle_at,
    arc_distance,
    average_around_point,
    contour_curvature,
    euclidean_distance,
    slope,
)
from ..hand import Cluster, ContourGeometry, Finger, PalmCircle
from .finger_candidates import FingerCandidates

logger = logging.getLogger(__name__)


def curvature_samples(contour: np.ndarray, tip_index: int, points_to_defect: int) -> Tuple[float, float]:
    """
    Contour curvature near the tip and further down the finger.

    Window offsets scale with the tip-to-defect arc length: near at 1/20,
    mid at 1/5 and far at 9/10 of it.

    Returns:
        Tuple of (near_curvature, far_curvature), far being min(mid, far)
    """
    near_lo = max(2, points_to_defect // 20)
    mid_lo = max(2, points_to_defect // 5)
    far_lo = max(2, points_to_defect * 9 // 10)

    near = contour_curvature(contour, tip_index, near_lo, near_lo + 4)
    mid = contour_curvature(contour, tip_index, mid_lo, mid_lo + 5)
    far = contour_curvature(contour, tip_index, far_lo, far_lo + 5)

    return near, min(mid, far)


def passes_curvature(contour: np.ndarray, tip_index: int, points_to_defect: int,
                     config: HandDetectionConfig) -> bool:
    near, far = curvature_samples(contour, tip_index, points_to_defect)
    return (config.finger_curve_near_min <= near <= config.finger_curve_near_max and
            config.finger_curve_far_min <= far <= config.finger_curve_far_max)


def drop_close_fingers(fingers: List[Finger], min_dist: float) -> List[Finger]:
    """
    Drop any finger that has another finger higher in the image (strictly
    smaller row) closer than ``min_dist`` in 3D.
    """
    if len(fingers) < 2:
        return list(fingers)

    tips = np.array([f.tip_xyz for f in fingers], dtype=np.float64)
    rows = np.array([f.tip_ij[1] for f in fingers])

    dists = cdist(tips, tips)
    higher = rows[None, :] < rows[:, None]
    dists = np.where(higher, dists, np.inf)

    return [f for f, nearest in zip(fingers, dists.min(axis=1)) if not nearest < min_dist]


class FingerFilter:
    """Applies the length, slope, angle and curvature criteria to candidates."""

    def __init__(self, config: HandDetectionConfig):
        self.config = config

    def accept(
        self,
        geometry: ContourGeometry,
        candidates: FingerCandidates,
        palm: PalmCircle,
        cluster: Cluster
    ) -> List[Finger]:
        """Fingers passing every per-candidate criterion, before deduplication."""
        contour = geometry.contour
        n = len(contour)
        xyz_map = cluster.xyz_map
        tl = np.array(cluster.top_left)
        center = np.array(palm.center_ij) - tl
        full_height = cluster.full_map_size[1]
        cfg = self.config

        accepted = []

        for tip_idx, defect_idx in zip(candidates.tip_indices, candidates.defect_indices):
            finger_ij = contour[tip_idx] - tl
            defect_ij = contour[defect_idx] - tl

            if not (defect_ij[1] < center[1] + cfg.defect_max_y_from_center and
                    defect_ij[1] + tl[1] < full_height - cfg.bottom_edge_thresh):
                continue

            finger_xyz = average_around_point(xyz_map, finger_ij, cfg.xyz_average_size)
            defect_xyz = average_around_point(xyz_map, defect_ij, cfg.xyz_average_size)

            finger_length = euclidean_distance(finger_xyz, defect_xyz)
            defect_center_dist = euclidean_distance(palm.center_xyz, defect_xyz)
            defect_slope = slope(defect_ij[1] - finger_ij[1], defect_ij[0] - finger_ij[0])
            center_slope = slope(center[1] - finger_ij[1], center[0] - finger_ij[0])
            center_defect_angle = angle_at(defect_ij, finger_ij, center)

            points_to_defect = arc_distance(tip_idx, defect_idx, n)
            if points_to_defect < cfg.min_points_to_defect:
                continue

            near, far = curvature_samples(contour, tip_idx, points_to_defect)

            logger.debug(
                "Candidate %d: len=%.4f defect-center=%.4f slopes=(%.2f, %.2f) angle=%.2f curve=(%.2f, %.2f)",
                tip_idx, finger_length, defect_center_dist, defect_slope, center_slope,
                center_defect_angle, near, far
            )

            if (cfg.finger_len_min <= finger_length <= cfg.finger_len_max and
                    defect_slope >= cfg.finger_defect_slope_min and
                    center_slope >= cfg.finger_center_slope_min and
                    center_defect_angle >= cfg.centroid_defect_finger_angle_min and
                    finger_xyz[2] != 0 and
                    cfg.finger_curve_near_min <= near <= cfg.finger_curve_near_max and
                    cfg.finger_curve_far_min <= far <= cfg.finger_curve_far_max):
                accepted.append(Finger(
                    tip_ij=(int(contour[tip_idx][0]), int(contour[tip_idx][1])),
                    tip_xyz=finger_xyz,
                    defect_ij=(int(contour[defect_idx][0]), int(contour[defect_idx][1])),
                    defect_xyz=defect_xyz,
                    tip_index=int(tip_idx),
                    defect_index=int(defect_idx),
                ))

        return accepted

    def filter(
        self,
        geometry: ContourGeometry,
        candidates: FingerCandidates,
        palm: PalmCircle,
        cluster: Cluster
    ) -> List[Finger]:
        accepted = self.accept(geometry, candidates, palm, cluster)
        fingers = drop_close_fingers(accepted, self.config.finger_dist_min)
        logger.debug("%d candidates accepted, %d after removing close fingers", len(accepted), len(fingers))
        return fingers

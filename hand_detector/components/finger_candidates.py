"""
Orders convexity defects around the palm and proposes fingertip candidates.
"""

import logging
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import List, Tuple

import numpy as np

from ..config import HandDetectionConfig
from ..geometry import (
    angle_at,
    average_around_point,
    ccw_angle_from_bottom,
    euclidean_distance,
    nearest_point_on_cluster,
    point_in_image,
    point_on_edge,
)
from ..hand import Cluster, ContourGeometry, PalmCircle, WristPair

logger = logging.getLogger(__name__)


@dataclass
class FingerCandidates:
    """Fingertip candidates paired with defect far points (contour indices)."""

    tip_indices: List[int] = field(default_factory=list)
    defect_indices: List[int] = field(default_factory=list)
    good_defects: List[np.ndarray] = field(default_factory=list)

    def __len__(self):
        return len(self.tip_indices)


def far_point_angle_table(contour: np.ndarray, defects: np.ndarray, center_ij: Tuple[int, int]) -> np.ndarray:
    """
    Counter-clockwise angle (from straight down) of each defect far point
    around the palm center, indexed by contour index.
    """
    table = np.zeros(len(contour), dtype=np.float64)
    center = np.asarray(center_ij)
    for defect in defects:
        far = int(defect[2])
        table[far] = ccw_angle_from_bottom(contour[far] - center)
    return table


def compare_far_points(idx_a: int, idx_b: int, table: np.ndarray) -> int:
    """Order two far points: the one less counter-clockwise from the bottom comes first."""
    a, b = table[idx_a], table[idx_b]
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def order_defects(contour: np.ndarray, defects: np.ndarray, center_ij: Tuple[int, int]) -> List[np.ndarray]:
    table = far_point_angle_table(contour, defects, center_ij)
    key = cmp_to_key(lambda a, b: compare_far_points(int(a[2]), int(b[2]), table))
    return sorted(list(defects), key=key)


def on_wrist_arc(far: int, wrist_l: int, wrist_r: int, direction: int) -> bool:
    """Check whether a contour index lies on the arc between the wrist points below the palm."""
    if direction == -1:
        if wrist_l <= wrist_r:
            return wrist_l <= far <= wrist_r
        return far <= wrist_r or far >= wrist_l

    if wrist_l <= wrist_r:
        return far <= wrist_l or far >= wrist_r
    return wrist_r <= far <= wrist_l


class FingerCandidateGenerator:
    """
    Filters convexity defects and turns their start/end points into
    fingertip candidates.
    """

    def __init__(self, config: HandDetectionConfig):
        self.config = config

    def generate(
        self,
        geometry: ContourGeometry,
        palm: PalmCircle,
        wrist: WristPair,
        cluster: Cluster
    ) -> FingerCandidates:
        contour = geometry.contour
        xyz_map = cluster.xyz_map
        tl = np.array(cluster.top_left)
        cfg = self.config

        result = FingerCandidates()
        last_end = None
        first = True

        for defect in order_defects(contour, geometry.defects, palm.center_ij):
            s_idx, e_idx, f_idx = int(defect[0]), int(defect[1]), int(defect[2])

            if on_wrist_arc(f_idx, wrist.left_index, wrist.right_index, wrist.direction):
                continue

            start = nearest_point_on_cluster(xyz_map, contour[s_idx] - tl, cfg.cluster_snap_radius)
            end = nearest_point_on_cluster(xyz_map, contour[e_idx] - tl, cfg.cluster_snap_radius)
            far = nearest_point_on_cluster(xyz_map, contour[f_idx] - tl, cfg.cluster_snap_radius)

            if not (point_in_image(xyz_map, far) and point_in_image(xyz_map, start) and
                    point_in_image(xyz_map, end)):
                continue

            far_xyz = average_around_point(xyz_map, far, cfg.xyz_average_size)
            start_xyz = average_around_point(xyz_map, start, cfg.xyz_average_size)
            end_xyz = average_around_point(xyz_map, end, cfg.xyz_average_size)

            far_center_dist = euclidean_distance(far_xyz, palm.center_xyz)
            start_end_dist = euclidean_distance(start_xyz, end_xyz)

            if not (cfg.defect_far_center_min_dist < far_center_dist < cfg.defect_far_center_max_dist and
                    start_end_dist > cfg.defect_start_end_min_dist):
                continue

            result.good_defects.append(defect)

            # wide defects are kept as evidence but cannot start a finger
            if angle_at(far, start, end) > cfg.defect_max_angle:
                continue

            start_full = np.array(start) + tl
            end_full = np.array(end) + tl

            if not point_on_edge(cluster.full_map_size, start_full, cfg.bottom_edge_thresh, cfg.side_edge_thresh) and \
                    (first or euclidean_distance(last_end, start_xyz) > cfg.defect_min_dist):
                result.tip_indices.append(s_idx)
                result.defect_indices.append(f_idx)
                first = False

            if not point_on_edge(cluster.full_map_size, end_full, cfg.bottom_edge_thresh, cfg.side_edge_thresh):
                result.tip_indices.append(e_idx)
                result.defect_indices.append(f_idx)

            last_end = end_xyz

        logger.debug("%d good defects, %d finger candidates", len(result.good_defects), len(result))
        return result

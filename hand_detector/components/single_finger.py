"""
Fallback finger detection for hands showing one finger or none.
"""

import logging
from typing import List, Optional

import numpy as np

from ..config import HandDetectionConfig
from ..geometry import (
    angle_at,
    arc_distance,
    average_around_point,
    euclidean_distance,
    nearest_point_on_cluster,
    point_on_edge,
    slope,
)
from ..hand import Cluster, ContourGeometry, Finger, PalmCircle
from .finger_filter import passes_curvature

logger = logging.getLogger(__name__)

# Pixel window used when sampling hull points
HULL_SAMPLE_SIZE = 22
# Pixel window used when sampling the chosen fingertip
TIP_SAMPLE_SIZE = 10
# Hull points this close to the bottom of the frame are ignored
BOTTOM_CUTOFF = 10
# Minimum slope from a hull point up to the palm center
MIN_CENTER_SLOPE = -0.1


class SingleFingerDetector:
    """
    Takes the hull point farthest from the palm as the fingertip and pairs it
    with the nearest good defect.
    """

    def __init__(self, config: HandDetectionConfig):
        self.config = config

    def farthest_hull_point(self, geometry: ContourGeometry, palm: PalmCircle, cluster: Cluster):
        """
        Returns:
            Position k in the hull list of the best fingertip candidate, or None
        """
        hull = geometry.hull_points
        if len(hull) <= 1:
            return None

        cfg = self.config
        tl = np.array(cluster.top_left)
        full_height = cluster.full_map_size[1]
        palm_x, palm_y = palm.center_ij

        best, farthest = None, 0.0
        for k, pt in enumerate(hull):
            if point_on_edge(cluster.full_map_size, pt, cfg.bottom_edge_thresh, cfg.side_edge_thresh):
                continue

            pt_xyz = average_around_point(cluster.xyz_map, pt - tl, HULL_SAMPLE_SIZE)
            dist = euclidean_distance(pt_xyz, palm.center_xyz)
            center_slope = slope(palm_y - pt[1], pt[0] - palm_x)

            if center_slope > MIN_CENTER_SLOPE and pt[1] < full_height - BOTTOM_CUTOFF and dist > farthest:
                best, farthest = k, dist

        return best

    def detect(
        self,
        geometry: ContourGeometry,
        palm: PalmCircle,
        good_defects: List[np.ndarray],
        cluster: Cluster
    ) -> Optional[Finger]:
        cfg = self.config
        contour = geometry.contour
        hull = geometry.hull_points
        xyz_map = cluster.xyz_map
        tl = np.array(cluster.top_left)

        k = self.farthest_hull_point(geometry, palm, cluster)
        if k is None:
            return None

        tip_index = int(geometry.hull_indices[k])
        right = hull[(k + 1) % len(hull)]
        left = hull[(k - 1) % len(hull)]

        tip = np.array(nearest_point_on_cluster(xyz_map, hull[k] - tl, None)) + tl
        tip_xyz = average_around_point(xyz_map, tip - tl, TIP_SAMPLE_SIZE)

        if angle_at(tip, left, right) <= cfg.single_finger_angle_thresh:
            logger.debug("Single finger rejected: hull angle too narrow")
            return None
        if point_on_edge(cluster.full_map_size, tip, cfg.bottom_edge_thresh, cfg.side_edge_thresh):
            logger.debug("Single finger rejected: tip on the edge")
            return None
        if not good_defects:
            logger.debug("Single finger rejected: no good defects")
            return None

        best, defect_ij, defect_xyz, defect_index = np.inf, None, None, -1
        for defect in good_defects:
            far = contour[int(defect[2])] - tl
            far_xyz = average_around_point(xyz_map, far, cfg.xyz_average_size)
            far = nearest_point_on_cluster(xyz_map, far, cfg.cluster_snap_radius)

            dist = euclidean_distance(far_xyz, tip_xyz)
            if cfg.single_finger_len_min < dist < best:
                best = dist
                defect_ij = (int(far[0] + tl[0]), int(far[1] + tl[1]))
                defect_xyz = far_xyz
                defect_index = int(defect[2])

        if defect_ij is None:
            # no defect is far enough; the palm center stands in
            defect_ij, defect_xyz = palm.center_ij, palm.center_xyz
            arc_anchor = int(np.argmin(np.linalg.norm(contour - np.array(palm.center_ij), axis=1)))
        else:
            arc_anchor = defect_index

        points_to_defect = arc_distance(arc_anchor, tip_index, len(contour))
        if points_to_defect < cfg.min_points_to_defect:
            logger.debug("Single finger rejected: %d points to defect", points_to_defect)
            return None

        if not cfg.single_finger_skip_curvature and \
                not passes_curvature(contour, tip_index, points_to_defect, cfg):
            logger.debug("Single finger rejected: curvature")
            return None

        finger = Finger(
            tip_ij=(int(tip[0]), int(tip[1])),
            tip_xyz=tip_xyz,
            defect_ij=defect_ij,
            defect_xyz=np.asarray(defect_xyz, dtype=np.float64),
            tip_index=tip_index,
            defect_index=defect_index,
        )

        if not cfg.single_finger_len_min <= finger.length <= cfg.single_finger_len_max:
            logger.debug("Single finger rejected: length %.4f", finger.length)
            return None

        return finger

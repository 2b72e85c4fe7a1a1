"""
Palm center detection via the largest inscribed circle of the hand contour.
"""

import logging

import cv2
import numpy as np

from ..config import HandDetectionConfig
from ..geometry import average_around_point, contour_centroid, nearest_point_on_cluster
from ..hand import Cluster, PalmCircle

logger = logging.getLogger(__name__)


class PalmLocator:
    """
    Finds the palm as the largest circle inscribed in the contour whose
    center lies within ``center_max_dist_from_top`` (3D) of the cluster's
    topmost point.
    """

    def __init__(self, config: HandDetectionConfig, distance_type: int = cv2.DIST_L2, mask_size: int = 5):
        self.config = config
        self.distance_type = distance_type
        self.mask_size = mask_size if mask_size in [3, 5] else 5

    def contour_mask(self, contour: np.ndarray, cluster: Cluster) -> np.ndarray:
        """Filled contour as a binary mask the size of the depth window."""
        h, w = cluster.xyz_map.shape[:2]
        mask = np.zeros((h, w), dtype=np.uint8)
        local = (contour - np.array(cluster.top_left)).reshape(-1, 1, 2).astype(np.int32)
        cv2.drawContours(mask, [local], -1, 255, thickness=cv2.FILLED)
        return mask

    def calculate_distance_transform(self, mask: np.ndarray) -> np.ndarray:
        """Distance from each pixel inside the contour to the nearest outside pixel."""
        return cv2.distanceTransform(mask, self.distance_type, self.mask_size)

    def locate(self, contour: np.ndarray, cluster: Cluster) -> PalmCircle:
        """
        Locate the palm circle.

        Args:
            contour: Full-frame contour points
            cluster: Cluster being evaluated

        Returns:
            PalmCircle with full-frame center; radius 0 if no qualifying
            center exists (the snapped contour centroid is used then)
        """
        xyz_map = cluster.xyz_map
        tl = np.array(cluster.top_left)
        avg_size = self.config.xyz_average_size

        top_xyz = average_around_point(xyz_map, np.array(cluster.top_point()) - tl, avg_size)

        centroid = np.array(contour_centroid(contour)) - tl
        centroid = nearest_point_on_cluster(xyz_map, centroid, self.config.cluster_snap_radius)

        dist = self.calculate_distance_transform(self.contour_mask(contour, cluster))

        # each pixel's own xyz; only the top point is averaged
        offsets = np.linalg.norm(xyz_map.astype(np.float64) - top_xyz, axis=2)
        candidates = (dist > 0) & (xyz_map[:, :, 2] != 0) & (offsets <= self.config.center_max_dist_from_top)

        if np.any(candidates):
            scores = np.where(candidates, dist, -1.0)
            y, x = np.unravel_index(int(np.argmax(scores)), scores.shape)
            center = (int(x), int(y))
            radius = float(dist[y, x])
        else:
            logger.debug("No inscribed circle center near the top point; using centroid")
            center = centroid
            radius = 0.0

        center_xyz = average_around_point(xyz_map, center, avg_size)
        center_ij = (center[0] + int(tl[0]), center[1] + int(tl[1]))

        return PalmCircle(center_ij=center_ij, center_xyz=center_xyz, radius=radius)

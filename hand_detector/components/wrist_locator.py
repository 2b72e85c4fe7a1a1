"""
Wrist detection by walking the contour from the edge contact points toward the palm.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from ..config import HandDetectionConfig
from ..geometry import average_around_point, euclidean_distance, point_on_edge
from ..hand import Cluster, WristPair

logger = logging.getLogger(__name__)


class WristLocator:
    """
    Locates the two wrist points of a hand.

    1. Pick seed contacts: the leftmost and rightmost contour points touching
       the lower frame edges, or the lowest contour point if the cluster is
       not connected to an edge.
    2. Infer which way around the contour leads from the contacts to the palm.
    3. Walk from each contact until the contour comes within
       ``wrist_center_dist_thresh`` of the palm center.
    """

    def __init__(self, config: HandDetectionConfig):
        self.config = config

    def find_contacts(
        self,
        contour: np.ndarray,
        full_map_size: Tuple[int, int],
        touching_edge: bool
    ) -> Tuple[int, int]:
        """
        Returns:
            Tuple of (left_contact_index, right_contact_index), (-1, -1) if none
        """
        width, height = full_map_size
        l_margin = self.config.contact_side_edge_thresh
        r_margin = width - self.config.contact_side_edge_thresh
        min_y = height * self.config.hand_edge_connect_max_y

        contact_l = contact_r = -1

        for i, pt in enumerate(contour):
            x, y = int(pt[0]), int(pt[1])

            if not touching_edge:
                if contact_l == -1 or y > contour[contact_l][1]:
                    contact_l = contact_r = i
                continue

            if y <= min_y or not point_on_edge(full_map_size, pt, self.config.contact_bot_edge_thresh,
                                               self.config.contact_side_edge_thresh):
                continue

            if contact_l == -1:
                contact_l = contact_r = i
                continue

            ccl, ccr = contour[contact_l], contour[contact_r]

            if x <= l_margin:
                if ccl[0] > l_margin or ccl[1] > y:
                    contact_l = i
                if ccr[0] <= l_margin and ccr[1] < y:
                    contact_r = i
            elif x >= r_margin:
                if ccr[0] < r_margin or ccr[1] > y:
                    contact_r = i
                if ccl[0] >= r_margin and ccl[1] < y:
                    contact_l = i
            else:
                if ccl[0] > x:
                    contact_l = i
                if ccr[0] < x:
                    contact_r = i

        return contact_l, contact_r

    @staticmethod
    def traversal_direction(contact_l: int, contact_r: int, n: int) -> int:
        """+1: the left walk moves to increasing indices, -1: decreasing."""
        half = n // 2
        if (contact_r > contact_l and contact_r - contact_l < half) or \
                (contact_r <= contact_l and contact_l - contact_r >= half):
            return -1
        return 1

    def walk_to_palm(
        self,
        contour: np.ndarray,
        start: int,
        stop: int,
        step: int,
        palm_xyz: np.ndarray,
        cluster: Cluster
    ) -> Optional[int]:
        """
        Step around the contour from ``start`` until a point is close enough
        to the palm center. Gives up on reaching ``stop``.
        """
        n = len(contour)
        tl = np.array(cluster.top_left)
        i = start
        while True:
            xyz = average_around_point(cluster.xyz_map, contour[i] - tl, self.config.xyz_average_size)
            if euclidean_distance(xyz, palm_xyz) <= self.config.wrist_center_dist_thresh:
                return i
            i = (i + step) % n
            if i == stop:
                return None

    def locate(
        self,
        contour: np.ndarray,
        palm_xyz: np.ndarray,
        cluster: Cluster,
        touching_edge: bool
    ) -> Optional[WristPair]:
        """
        Locate the wrist pair.

        Returns:
            WristPair, or None when no contact exists or a walk goes all the
            way around without reaching the palm
        """
        n = len(contour)
        if n == 0:
            return None

        contact_l, contact_r = self.find_contacts(contour, cluster.full_map_size, touching_edge)
        if contact_l < 0 or contact_r < 0:
            logger.debug("No wrist contact points found")
            return None

        direction = self.traversal_direction(contact_l, contact_r, n)

        wrist_l = self.walk_to_palm(contour, contact_l, contact_r, direction, palm_xyz, cluster)
        wrist_r = self.walk_to_palm(contour, contact_r, contact_l, -direction, palm_xyz, cluster)
        if wrist_l is None or wrist_r is None:
            logger.debug("Wrist walk did not reach the palm (contacts %d, %d)", contact_l, contact_r)
            return None

        tl = np.array(cluster.top_left)
        avg_size = self.config.xyz_average_size
        left_ij = (int(contour[wrist_l][0]), int(contour[wrist_l][1]))
        right_ij = (int(contour[wrist_r][0]), int(contour[wrist_r][1]))

        return WristPair(
            left_ij=left_ij,
            right_ij=right_ij,
            left_xyz=average_around_point(cluster.xyz_map, np.array(left_ij) - tl, avg_size),
            right_xyz=average_around_point(cluster.xyz_map, np.array(right_ij) - tl, avg_size),
            left_index=wrist_l,
            right_index=wrist_r,
            direction=direction,
            contact_indices=(contact_l, contact_r),
        )

    def valid_width(self, wrist: WristPair) -> bool:
        return self.config.wrist_width_min <= wrist.width <= self.config.wrist_width_max

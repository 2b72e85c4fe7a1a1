"""
Default contour, convex hull and convexity defect extraction for a cluster.
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from .hand import ContourGeometry

logger = logging.getLogger(__name__)


def empty_geometry() -> ContourGeometry:
    return ContourGeometry(
        contour=np.zeros((0, 2), dtype=np.int32),
        hull_indices=np.zeros(0, dtype=np.int64),
        defects=np.zeros((0, 4), dtype=np.int64),
    )


def cluster_mask(xyz_map: np.ndarray) -> np.ndarray:
    """Binary mask (0/255) of the samples with valid depth."""
    return (xyz_map[:, :, 2] != 0).astype(np.uint8) * 255


def compute_contour_geometry(
    xyz_map: np.ndarray,
    top_left: Tuple[int, int] = (0, 0),
    scaling_factor: int = 2
) -> ContourGeometry:
    """
    Trace the outer contour of a depth window and compute its hull and defects.

    The mask is downscaled by ``scaling_factor`` before tracing to smooth out
    pixel noise; the returned contour is scaled back up and shifted into
    full-frame coordinates.

    Args:
        xyz_map: H x W x 3 depth window holding only the cluster
        top_left: Full-frame position of the window's top-left corner
        scaling_factor: Downscale factor used for tracing

    Returns:
        ContourGeometry (empty if the window holds no cluster pixels)
    """
    mask = cluster_mask(xyz_map)
    h, w = mask.shape

    if scaling_factor > 1:
        small_size = (max(1, w // scaling_factor), max(1, h // scaling_factor))
        mask = cv2.resize(mask, small_size, interpolation=cv2.INTER_NEAREST)

    contours = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_NONE)[-2]
    if not contours:
        return empty_geometry()

    largest = max(contours, key=cv2.contourArea)
    if len(largest) < 3:
        return empty_geometry()

    hull_indices = cv2.convexHull(largest, returnPoints=False).reshape(-1)

    defects = np.zeros((0, 4), dtype=np.int64)
    if len(hull_indices) > 3:
        try:
            raw = cv2.convexityDefects(largest, hull_indices.reshape(-1, 1).astype(np.int32))
        except cv2.error as e:
            logger.warning("Convexity defect computation failed: %s", e)
            raw = None
        if raw is not None:
            defects = raw.reshape(-1, 4).astype(np.int64)

    contour = largest.reshape(-1, 2).astype(np.int32) * max(1, scaling_factor)
    contour = contour + np.array(top_left, dtype=np.int32)

    return ContourGeometry(contour=contour, hull_indices=hull_indices, defects=defects)

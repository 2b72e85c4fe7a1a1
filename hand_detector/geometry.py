"""
Geometry helpers shared by the hand detection components.

Pixel points are ``(x, y)`` pairs (column, row). Functions taking an
``xyz_map`` expect points relative to that window; contours are kept in
full-frame coordinates and callers subtract ``top_left`` first.
"""

import math
from typing import Sequence, Tuple

import cv2
import numpy as np
from scipy.spatial.distance import cdist

# Stand-in for an infinite slope when two points share a column
VERTICAL_SLOPE = 1e9

# Largest finite value of a 32-bit float
FLT_MAX = float(np.finfo(np.float32).max)


def to_point(pt) -> Tuple[int, int]:
    """Convert any 2-sequence to an integer (x, y) tuple."""
    return int(pt[0]), int(pt[1])


def point_in_image(xyz_map: np.ndarray, pt) -> bool:
    """Check that a window-relative point lies inside the xyz map."""
    h, w = xyz_map.shape[:2]
    return 0 <= pt[0] < w and 0 <= pt[1] < h


def average_around_point(xyz_map: np.ndarray, pt, size: int = 9) -> np.ndarray:
    """
    Average the valid xyz samples in a size x size window around a point.

    Args:
        xyz_map: H x W x 3 depth window
        pt: Window-relative (x, y) point
        size: Window side length in pixels

    Returns:
        Mean xyz as float array, or zeros if no sample in the window is valid
    """
    h, w = xyz_map.shape[:2]
    x, y = to_point(pt)
    r = max(0, size // 2)

    x0, x1 = max(0, x - r), min(w, x + r + 1)
    y0, y1 = max(0, y - r), min(h, y + r + 1)
    if x0 >= x1 or y0 >= y1:
        return np.zeros(3)

    patch = xyz_map[y0:y1, x0:x1].reshape(-1, 3)
    valid = patch[patch[:, 2] != 0]
    if len(valid) == 0:
        return np.zeros(3)

    return valid.mean(axis=0).astype(np.float64)


def nearest_point_on_cluster(
    xyz_map: np.ndarray,
    pt,
    max_radius: float = 25
) -> Tuple[int, int]:
    """
    Snap a window-relative point to the nearest pixel with valid depth.

    Args:
        xyz_map: H x W x 3 depth window
        pt: Window-relative (x, y) point
        max_radius: Search radius in pixels (None = unbounded)

    Returns:
        The snapped point, or the input point if nothing is in range
    """
    x, y = to_point(pt)
    if point_in_image(xyz_map, (x, y)) and xyz_map[y, x, 2] != 0:
        return x, y

    ys, xs = np.nonzero(xyz_map[:, :, 2])
    if len(xs) == 0:
        return x, y

    dist_sq = (xs - x) ** 2 + (ys - y) ** 2
    best = int(np.argmin(dist_sq))
    if max_radius is not None and dist_sq[best] > max_radius * max_radius:
        return x, y

    return int(xs[best]), int(ys[best])


def euclidean_distance(a, b) -> float:
    """Distance between two points of any dimension."""
    return float(np.linalg.norm(np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)))


def angle_at(vertex, a, b) -> float:
    """
    Angle in radians formed at ``vertex`` by the rays towards ``a`` and ``b``.
    Works for 2D and 3D points. Degenerate rays give 0.
    """
    v = np.asarray(vertex, dtype=np.float64)
    da = np.asarray(a, dtype=np.float64) - v
    db = np.asarray(b, dtype=np.float64) - v

    na, nb = np.linalg.norm(da), np.linalg.norm(db)
    if na == 0 or nb == 0:
        return 0.0

    cos = float(np.dot(da, db) / (na * nb))
    return math.acos(max(-1.0, min(1.0, cos)))


def slope(dy: float, dx: float) -> float:
    """
    Compute dy / |dx| for image-space points.

    A zero horizontal displacement returns +/-VERTICAL_SLOPE following the
    sign of dy (0 when both are zero).
    """
    if dx == 0:
        if dy == 0:
            return 0.0
        return VERTICAL_SLOPE if dy > 0 else -VERTICAL_SLOPE
    return dy / abs(dx)


def point_to_angle(vec) -> float:
    """Polar angle of an image-space vector, y axis pointing up, in [-pi, pi]."""
    return math.atan2(-float(vec[1]), float(vec[0]))


def ccw_angle_from_bottom(vec) -> float:
    """
    Counter-clockwise angle of an image-space vector measured from the
    downward direction, in [0, 2*pi).
    """
    return (point_to_angle(vec) + math.pi / 2) % (2 * math.pi)


def arc_distance(i: int, j: int, n: int) -> int:
    """Number of contour steps between indices i and j on a closed contour of length n."""
    d = abs(i - j)
    return min(d, n - d)


def contour_curvature(contour: np.ndarray, idx: int, lo: int, hi: int) -> float:
    """
    Estimate contour curvature at an index.

    For every offset k in [lo, hi] the angle at ``contour[idx]`` between the
    chords to ``contour[idx - k]`` and ``contour[idx + k]`` is measured; the
    mean of those angles is returned.
    """
    n = len(contour)
    if n == 0:
        return 0.0

    center = contour[idx % n]
    angles = [
        angle_at(center, contour[(idx - k) % n], contour[(idx + k) % n])
        for k in range(lo, hi + 1)
    ]
    return float(np.mean(angles))


def point_on_edge(full_map_size: Tuple[int, int], pt, bottom_thresh: int, side_thresh: int) -> bool:
    """Check whether a full-frame point touches the bottom or side edges."""
    width, height = full_map_size
    return (pt[1] >= height - bottom_thresh or
            pt[0] <= side_thresh or
            pt[0] >= width - side_thresh)


def contour_centroid(contour: np.ndarray) -> Tuple[int, int]:
    """Centroid of a contour using image moments (mean of points if degenerate)."""
    moments = cv2.moments(contour.reshape(-1, 1, 2).astype(np.int32))
    if moments['m00'] == 0:
        mean = contour.mean(axis=0)
        return int(round(mean[0])), int(round(mean[1]))

    cx = int(moments['m10'] / moments['m00'])
    cy = int(moments['m01'] / moments['m00'])
    return cx, cy


def diameter(contour: np.ndarray) -> Tuple[float, int, int]:
    """
    Largest pixel distance between two contour points.

    Returns:
        Tuple of (distance, index_a, index_b)
    """
    if len(contour) < 2:
        return 0.0, 0, 0

    pts = contour.astype(np.float64)
    dists = cdist(pts, pts)
    ia, ib = np.unravel_index(int(np.argmax(dists)), dists.shape)
    return float(dists[ia, ib]), int(ia), int(ib)


def surface_area(xyz_map: np.ndarray) -> float:
    """
    Approximate the 3D surface area covered by valid samples of a depth window.

    Every 2 x 2 block of valid samples is split into two triangles whose
    areas are summed.
    """
    if xyz_map.shape[0] < 2 or xyz_map.shape[1] < 2:
        return 0.0

    pts = xyz_map.astype(np.float64)
    valid = pts[:, :, 2] != 0

    p00, p01 = pts[:-1, :-1], pts[:-1, 1:]
    p10, p11 = pts[1:, :-1], pts[1:, 1:]
    cell = valid[:-1, :-1] & valid[:-1, 1:] & valid[1:, :-1] & valid[1:, 1:]

    tri_a = np.linalg.norm(np.cross(p01 - p00, p10 - p00), axis=2)
    tri_b = np.linalg.norm(np.cross(p01 - p11, p10 - p11), axis=2)

    return float(0.5 * (tri_a[cell].sum() + tri_b[cell].sum()))


def polygon_area(points: Sequence) -> float:
    """Area of a polygon given as a point sequence."""
    pts = np.asarray(points, dtype=np.float32).reshape(-1, 1, 2)
    if len(pts) < 3:
        return 0.0
    return float(cv2.contourArea(pts))


def polygon_arc_length(points: Sequence) -> float:
    """Perimeter of a closed polygon given as a point sequence."""
    pts = np.asarray(points, dtype=np.float32).reshape(-1, 1, 2)
    if len(pts) < 2:
        return 0.0
    return float(cv2.arcLength(pts, True))

"""
Converts a detected hand into the numeric feature vector used by the classifier.

Layout (every value is rescaled by a fixed constant; models trained on
these vectors depend on the exact order and scaling):

    [0]      number of fingers (the vector ends here when it is 0)
    [1:12]   hand-level features, see ``hand_level_features``
    [12:]    per-finger blocks ordered by descending finger length,
             7 values each, or 11 when the hand has more than one finger
"""

import math
from typing import List, Tuple

import numpy as np

from .geometry import (
    FLT_MAX,
    angle_at,
    average_around_point,
    diameter,
    euclidean_distance,
    point_to_angle,
    polygon_arc_length,
    polygon_area,
)
from .hand import HandResult

NUM_HAND_FEATURES = 11
FINGER_FEATURES_SINGLE = 7
FINGER_FEATURES_MULTI = 11


def feature_vector_length(num_fingers: int) -> int:
    """Expected vector length for a hand with the given number of fingers."""
    if num_fingers <= 0:
        return 1
    per_finger = FINGER_FEATURES_MULTI if num_fingers > 1 else FINGER_FEATURES_SINGLE
    return 1 + NUM_HAND_FEATURES + num_fingers * per_finger


def _ratio(num: float, den: float) -> float:
    if den == 0:
        return math.nan
    return num / den


def radial_statistics(points_xyz: np.ndarray, center: np.ndarray) -> Tuple[float, float, float, float]:
    """
    Mean / variance of the planar (x, y) distance of every point to the
    center, and mean / variance of depth.
    """
    if len(points_xyz) == 0:
        return 1.0, 0.0, 1.0, 0.0

    pts = np.asarray(points_xyz, dtype=np.float64)
    radial = np.hypot(pts[:, 0] - center[0], pts[:, 1] - center[1])
    depth = pts[:, 2]
    return float(radial.mean()), float(radial.var()), float(depth.mean()), float(depth.var())


def hand_level_features(
    hand: HandResult,
    xyz_map: np.ndarray,
    top_left: Tuple[int, int],
    img_scale: float = 1.0
) -> List[float]:
    cluster, geometry, wrist = hand.cluster, hand.geometry, hand.wrist
    center = np.asarray(hand.palm_center_xyz, dtype=np.float64)
    tl = np.asarray(top_left, dtype=np.float64)

    avg_dist, _, _, var_depth = radial_statistics(cluster.points_xyz, center)

    contour = geometry.contour.astype(np.float64) * img_scale
    hull = geometry.hull_points.astype(np.float64) * img_scale
    cont_area = polygon_area(contour)
    _, _, box_w, box_h = cluster.bounding_box()

    diam, pa, pb = diameter(contour)
    pa_xyz = average_around_point(xyz_map, contour[pa] - tl) if len(contour) else np.zeros(3)
    pb_xyz = average_around_point(xyz_map, contour[pb] - tl) if len(contour) else np.zeros(3)

    mid_wrist = wrist.midpoint if wrist is not None else center
    n = hand.num_fingers
    avg_len = sum(f.length for f in hand.fingers) / n
    avg_mid_wrist = sum(euclidean_distance(f.tip_xyz, mid_wrist) for f in hand.fingers) / n

    return [
        # mean planar distance of the cluster to the palm
        avg_dist * 20.0,
        hand.surface_area * 10.0,
        math.sqrt(var_depth) * 25.0,
        _ratio(cont_area, polygon_area(hull)),
        _ratio(cont_area, box_w * box_h * img_scale * img_scale),
        _ratio(polygon_arc_length(contour), polygon_arc_length(hull)) * 0.5,
        _ratio(hand.circle_radius * img_scale, diam) * 2.0,
        euclidean_distance(pa_xyz, pb_xyz),
        wrist.width if wrist is not None else math.nan,
        avg_len * 5.0,
        avg_mid_wrist * 2.0,
    ]


def finger_features(hand: HandResult, full_width: int) -> List[float]:
    fingers = hand.fingers
    n = len(fingers)
    center = np.asarray(hand.palm_center_xyz, dtype=np.float64)
    center_ij = np.asarray(hand.palm_center_ij, dtype=np.float64)

    order = sorted(range(n), key=lambda i: (-fingers[i].length, i))

    result = []
    for j in order:
        finger = fingers[j]
        tip_ij = np.asarray(finger.tip_ij, dtype=np.float64)
        defect_ij = np.asarray(finger.defect_ij, dtype=np.float64)

        result.append(euclidean_distance(finger.tip_xyz, finger.defect_xyz) * 5.0)
        result.append(euclidean_distance(finger.defect_xyz, center) * 5.0)
        result.append(euclidean_distance(finger.tip_xyz, center) * 5.0)

        result.append(angle_at(finger.tip_xyz, finger.defect_xyz, center) / math.pi)
        result.append(angle_at(tip_ij, center_ij, defect_ij) / math.pi)

        result.append(point_to_angle(tip_ij - center_ij))
        result.append(point_to_angle(defect_ij - center_ij))

        if n > 1:
            others = [fingers[jj] for jj in range(n) if jj != j]
            tip_dists = [euclidean_distance(finger.tip_xyz, o.tip_xyz) for o in others]
            defect_dists = [euclidean_distance(finger.defect_xyz, o.defect_xyz) for o in others]

            result.append(min(tip_dists + [full_width]) * 5.0)
            result.append(max(tip_dists + [0.0]) * 5.0)
            result.append(min(defect_dists + [full_width]) * 5.0)
            result.append(max(defect_dists + [0.0]) * 5.0)

    return result


def sanitize(values: List[float]) -> List[float]:
    """Replace non-finite values with 1.0 and huge values with 100.0."""
    clean = []
    for v in values:
        v = float(v)
        if not math.isfinite(v):
            clean.append(1.0)
        elif v >= FLT_MAX:
            clean.append(100.0)
        else:
            clean.append(v)
    return clean


def extract_hand_features(
    hand: HandResult,
    xyz_map: np.ndarray,
    top_left: Tuple[int, int] = (0, 0),
    img_scale: float = 1.0,
    full_width: int = -1
) -> List[float]:
    """
    Build the classifier feature vector for a hand.

    Args:
        hand: Hand with palm, wrist, fingers, cluster and contour geometry set
        xyz_map: Depth window the hand was detected in
        top_left: Full-frame position of the window's top-left corner
        img_scale: Scale of contour coordinates relative to the depth map
        full_width: Width of the full frame (defaults to the window width)

    Returns:
        Feature vector of length ``feature_vector_length(hand.num_fingers)``
    """
    if full_width < 0:
        full_width = xyz_map.shape[1]

    n = hand.num_fingers
    result = [float(n)]
    if n == 0:
        return result

    result.extend(hand_level_features(hand, xyz_map, top_left, img_scale))
    result.extend(finger_features(hand, full_width))

    return sanitize(result)

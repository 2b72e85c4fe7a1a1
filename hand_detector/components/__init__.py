"""Hand detection pipeline components."""

from .edge_connectivity import EdgeConnectivityAnalyzer
from .finger_candidates import (
    FingerCandidateGenerator,
    FingerCandidates,
    compare_far_points,
    far_point_angle_table,
    on_wrist_arc,
    order_defects,
)
from .finger_filter import FingerFilter, drop_close_fingers
from .palm_locator import PalmLocator
from .single_finger import SingleFingerDetector
from .wrist_locator import WristLocator

__all__ = [
    'EdgeConnectivityAnalyzer',
    'FingerCandidateGenerator',
    'FingerCandidates',
    'FingerFilter',
    'PalmLocator',
    'SingleFingerDetector',
    'WristLocator',
    'compare_far_points',
    'drop_close_fingers',
    'far_point_angle_table',
    'on_wrist_arc',
    'order_defects',
]

"""
Main HandDetector class.
Runs the geometric pipeline on a cluster and gates the result with the classifier.
"""

import logging
from collections import Counter
from typing import Any, Callable, Dict, Optional

from .classifier import HandClassifier
from .components import (
    EdgeConnectivityAnalyzer,
    FingerCandidateGenerator,
    FingerFilter,
    PalmLocator,
    SingleFingerDetector,
    WristLocator,
)
from .config import HandDetectionConfig
from .contour import compute_contour_geometry
from .features import extract_hand_features
from .geometry import surface_area
from .hand import Cluster, ContourGeometry, HandResult

logger = logging.getLogger(__name__)

MAX_FINGERS = 6

# observer(stage, data) receives intermediate geometry
Observer = Callable[[str, Dict[str, Any]], None]


class HandDetector:
    """
    Decides whether a depth cluster is a hand and extracts its landmarks.

    Usage:
        detector = HandDetector(classifier=SVMHandClassifier("models/svm"))
        result = detector.detect(cluster)
        if result.is_hand:
            print(result.fingers_ij)
    """

    def __init__(
        self,
        config: Optional[HandDetectionConfig] = None,
        classifier: Optional[HandClassifier] = None,
        observer: Optional[Observer] = None,
        geometry_fn: Callable[..., ContourGeometry] = compute_contour_geometry
    ):
        """
        Initialize hand detector.

        Args:
            config: HandDetectionConfig object (uses defaults if None)
            classifier: Loaded hand classifier used as the final gate (optional)
            observer: Callback receiving intermediate geometry (optional)
            geometry_fn: Computes contour, hull and defects for a depth window
        """
        self.config = config or HandDetectionConfig()
        self.classifier = classifier
        self.observer = observer
        self.geometry_fn = geometry_fn

        self.edge_analyzer = EdgeConnectivityAnalyzer(self.config)
        self.palm_locator = PalmLocator(self.config)
        self.wrist_locator = WristLocator(self.config)
        self.candidate_generator = FingerCandidateGenerator(self.config)
        self.finger_filter = FingerFilter(self.config)
        self.single_finger = SingleFingerDetector(self.config)

        # Statistics
        self.stats = {
            'processed': 0,
            'hands': 0,
            'rejected': Counter(),
        }

    def _notify(self, stage: str, **data) -> None:
        if self.observer is not None:
            self.observer(stage, data)

    def _reject(self, result: HandResult, reason: str) -> HandResult:
        result.is_hand = False
        result.rejection = reason
        self.stats['rejected'][reason] += 1
        level = logging.INFO if self.config.debug_mode else logging.DEBUG
        logger.log(level, "Cluster rejected: %s", reason)
        self._notify("rejected", reason=reason, result=result)
        return result

    def detect(self, cluster: Cluster, geometry: Optional[ContourGeometry] = None) -> HandResult:
        """
        Evaluate a cluster.

        Args:
            cluster: Candidate cluster and its depth window
            geometry: Precomputed contour/hull/defects (computed from the
                depth window when omitted)

        Returns:
            HandResult; ``is_hand`` is False with ``rejection`` set when any
            stage fails
        """
        self.stats['processed'] += 1
        cfg = self.config
        result = HandResult(cluster=cluster)

        result.left_edge_connected, result.right_edge_connected = self.edge_analyzer.analyze(
            cluster.xyz_map, cluster.top_left, cluster.full_map_size
        )
        result.surface_area = surface_area(cluster.xyz_map)

        if cluster.num_points == 0:
            return self._reject(result, "empty_cluster")
        if not cfg.hand_min_area <= result.surface_area <= cfg.hand_max_area:
            return self._reject(result, "surface_area")
        if cfg.hand_require_edge_connected and not result.touching_edge():
            return self._reject(result, "not_edge_connected")

        if geometry is None:
            geometry = self.geometry_fn(cluster.xyz_map, cluster.top_left, cfg.contour_scaling_factor)
        result.geometry = geometry
        if len(geometry.contour) < 3:
            return self._reject(result, "degenerate_contour")
        self._notify("contour", geometry=geometry)

        # Palm
        result.palm = self.palm_locator.locate(geometry.contour, cluster)
        self._notify("palm", palm=result.palm)

        # Wrist
        wrist = self.wrist_locator.locate(geometry.contour, result.palm.center_xyz, cluster,
                                          result.touching_edge())
        if wrist is None:
            return self._reject(result, "wrist_not_found")
        result.wrist = wrist
        self._notify("wrist", wrist=wrist, contour=geometry.contour)
        if not self.wrist_locator.valid_width(wrist):
            return self._reject(result, "wrist_width")

        # Fingers
        candidates = self.candidate_generator.generate(geometry, result.palm, wrist, cluster)
        self._notify("candidates", candidates=candidates, contour=geometry.contour)

        fingers = self.finger_filter.filter(geometry, candidates, result.palm, cluster)
        if len(fingers) <= 1:
            finger = self.single_finger.detect(geometry, result.palm, candidates.good_defects, cluster)
            fingers = [finger] if finger is not None else []
        result.fingers = fingers
        self._notify("fingers", fingers=fingers)

        if not 1 <= len(fingers) <= MAX_FINGERS:
            return self._reject(result, "finger_count")

        # Final classifier check
        if cfg.hand_use_svm and self.classifier is not None and self.classifier.is_trained():
            features = extract_hand_features(result, cluster.xyz_map, cluster.top_left, 1.0,
                                             cluster.full_map_size[0])
            result.confidence = self.classifier.classify(features)
            if result.confidence < cfg.hand_svm_confidence_thresh:
                return self._reject(result, "classifier_confidence")

        result.is_hand = True
        self.stats['hands'] += 1
        self._notify("result", result=result)
        return result

    def get_stats(self) -> dict:
        """Counts of processed clusters, accepted hands and rejections by reason."""
        return {
            'processed': self.stats['processed'],
            'hands': self.stats['hands'],
            'rejected': dict(self.stats['rejected']),
        }

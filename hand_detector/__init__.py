"""
Hand Detector Package
Decides whether a depth-image cluster is a hand and extracts palm, wrist and finger landmarks.
"""

from .classifier import EnsembleHandClassifier, HandClassifier, SVMHandClassifier, bucket_index
from .config import HandDetectionConfig
from .contour import compute_contour_geometry
from .detector import HandDetector
from .exceptions import (
    ClassifierError,
    ClassifierLoadError,
    ClassifierNotTrainedError,
    HandDetectionError,
    InvalidClusterError,
)
from .features import extract_hand_features, feature_vector_length
from .hand import Cluster, ContourGeometry, Finger, HandResult, PalmCircle, WristPair
from .visualizer import HandDebugVisualizer

__version__ = "1.0.0"
__all__ = [
    "HandDetector",
    "HandDetectionConfig",
    "HandResult",
    "Cluster",
    "ContourGeometry",
    "Finger",
    "PalmCircle",
    "WristPair",
    "HandClassifier",
    "EnsembleHandClassifier",
    "SVMHandClassifier",
    "bucket_index",
    "compute_contour_geometry",
    "extract_hand_features",
    "feature_vector_length",
    "HandDebugVisualizer",
    "HandDetectionError",
    "InvalidClusterError",
    "ClassifierError",
    "ClassifierNotTrainedError",
    "ClassifierLoadError",
]

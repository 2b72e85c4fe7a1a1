"""
Custom exceptions for hand detection.
"""


class HandDetectionError(Exception):
    """Base exception for hand detection errors."""
    pass


class InvalidClusterError(HandDetectionError, ValueError):
    """Raised when cluster pixel and xyz arrays do not line up."""
    pass


class ClassifierError(HandDetectionError):
    """Base exception for hand classifier errors."""
    pass


class ClassifierNotTrainedError(ClassifierError):
    """Raised when classify() is called on a classifier with no trained models."""
    pass


class ClassifierLoadError(ClassifierError):
    """Raised when training data cannot be read."""
    pass

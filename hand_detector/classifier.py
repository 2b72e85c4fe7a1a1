"""
Hand classifiers: an ensemble of regression models bucketed by finger count.
"""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from .exceptions import ClassifierLoadError, ClassifierNotTrainedError
from .features import FINGER_FEATURES_MULTI, NUM_HAND_FEATURES

logger = logging.getLogger(__name__)

NUM_BUCKETS = 4
MAX_FEATURES = 1 + NUM_HAND_FEATURES + 6 * FINGER_FEATURES_MULTI

# Environment variable holding a base directory for relative model paths
MODEL_DIR_ENV = "HAND_DETECTOR_MODEL_DIR"

DATA_LABELS_FILE_NAME = "labels.txt"
DATA_FEATURES_FILE_NAME = "features.txt"


def bucket_index(num_fingers: int, num_buckets: int = NUM_BUCKETS) -> int:
    """Model bucket used for a hand with the given number of fingers."""
    return min(num_fingers - 1, num_buckets - 1)


def resolve_model_dir(path: Union[str, Path]) -> Path:
    """Prefix a model path with $HAND_DETECTOR_MODEL_DIR when it is set."""
    env = os.environ.get(MODEL_DIR_ENV)
    path = Path(path)
    if env:
        return Path(env) / path
    return path


class HandClassifier(ABC):
    """
    Decides how likely a feature vector is to describe a real hand.

    Usage:
        if classifier.is_trained():
            confidence = classifier.classify(features)
    """

    def __init__(self):
        self.trained = False

    def is_trained(self) -> bool:
        return self.trained

    @abstractmethod
    def classify(self, features: Sequence[float]) -> float:
        """
        Returns:
            Confidence in [0, 1] that the features describe a hand

        Raises:
            ClassifierNotTrainedError: If no trained model is loaded
        """


class EnsembleHandClassifier(HandClassifier):
    """
    K independent regressors, one per finger-count bucket.

    Subclasses provide model loading and prediction; bucket selection,
    feature truncation/padding and output clamping live here. The ensemble
    only counts as trained when every bucket holds a trained model.
    """

    def __init__(self, models: Optional[List] = None, num_buckets: int = NUM_BUCKETS,
                 max_features: int = MAX_FEATURES):
        super().__init__()
        self.num_buckets = num_buckets
        self.max_features = max_features
        self.models: List = [None] * num_buckets

        if models is not None:
            self.set_models(models)

    def set_models(self, models: List) -> bool:
        models = list(models)
        if len(models) != self.num_buckets:
            raise ValueError(f"Expected {self.num_buckets} models, got {len(models)}")
        self.models = models
        self.trained = all(m is not None and self.model_trained(m) for m in models)
        return self.trained

    def model_trained(self, model) -> bool:
        return True

    def input_width(self, model) -> Optional[int]:
        """Number of features the bucket model expects (None = unknown)."""
        return None

    @abstractmethod
    def predict(self, model, sample: np.ndarray) -> float:
        """Raw regression output for a single 1 x N float32 sample."""

    def prepare_sample(self, model, features: Sequence[float]) -> np.ndarray:
        feats = list(features[:self.max_features])[1:]

        width = self.input_width(model)
        if width is not None:
            feats = feats[:width] + [0.0] * max(0, width - len(feats))

        return np.asarray(feats, dtype=np.float32).reshape(1, -1)

    def classify(self, features: Sequence[float]) -> float:
        if not self.trained:
            raise ClassifierNotTrainedError("Hand classifier has no trained models")

        if len(features) == 0:
            return 0.0

        num_fingers = int(features[0])
        if num_fingers < 1:
            return 0.0

        model = self.models[bucket_index(num_fingers, self.num_buckets)]
        result = self.predict(model, self.prepare_sample(model, features))

        return float(max(min(1.0, result), 0.0))


class SVMHandClassifier(EnsembleHandClassifier):
    """
    Ensemble of OpenCV epsilon-SVR models with RBF kernels.

    Models are stored as ``svm_<bucket>.xml`` inside a model directory.

    Usage:
        classifier = SVMHandClassifier("models/svm")
        confidence = classifier.classify(features)
    """

    DEFAULT_HYPERPARAMS = [
        {"gamma": 0.8219, "coef0": 0.5, "C": 0.5000, "p": 9e-16},
        {"gamma": 0.3425, "coef0": 0.5, "C": 0.4041, "p": 1e-16},
        {"gamma": 0.3425, "coef0": 0.5, "C": 0.5493, "p": 1e-16},
        {"gamma": 0.2740, "coef0": 0.5, "C": 0.4100, "p": 1e-16},
    ]

    def __init__(
        self,
        paths: Union[None, str, Path, Sequence[Union[str, Path]]] = None,
        hyperparams: Optional[List[Dict[str, float]]] = None
    ):
        """
        Initialize the classifier.

        Args:
            paths: Model directory, or several to try in order (first one
                that loads completely wins). None leaves the classifier untrained.
            hyperparams: Per-bucket SVM settings used for training
        """
        super().__init__(num_buckets=NUM_BUCKETS)
        self.hyperparams = hyperparams or self.DEFAULT_HYPERPARAMS
        self.models = self.create_models(self.hyperparams)

        if paths is not None:
            if isinstance(paths, (str, Path)):
                paths = [paths]
            for path in paths:
                if self.load(path):
                    break

    @staticmethod
    def create_models(hyperparams: List[Dict[str, float]]) -> List:
        models = []
        for params in hyperparams:
            svm = cv2.ml.SVM_create()
            svm.setType(cv2.ml.SVM_EPS_SVR)
            svm.setKernel(cv2.ml.SVM_RBF)
            svm.setGamma(params["gamma"])
            svm.setCoef0(params["coef0"])
            svm.setC(params["C"])
            svm.setP(params["p"])
            models.append(svm)
        return models

    def model_trained(self, model) -> bool:
        return bool(model.isTrained())

    def input_width(self, model) -> Optional[int]:
        return int(model.getVarCount())

    def predict(self, model, sample: np.ndarray) -> float:
        _, output = model.predict(sample)
        return float(output[0, 0])

    def load(self, path: Union[str, Path]) -> bool:
        """
        Load every bucket model from a directory.

        Returns:
            True if all buckets loaded and are trained
        """
        model_dir = resolve_model_dir(path)
        models = []

        for i in range(self.num_buckets):
            model_path = model_dir / f"svm_{i}.xml"
            if not model_path.exists():
                logger.warning("Hand classifier model missing: %s", model_path)
                self.trained = False
                return False

            svm = cv2.ml.SVM_load(str(model_path))
            if not svm.isTrained():
                logger.warning("Hand classifier model not trained: %s", model_path)
                self.trained = False
                return False
            models.append(svm)

        self.set_models(models)
        logger.info("Loaded hand classifier from %s", model_dir)
        return self.trained

    def export(self, path: Union[str, Path]) -> bool:
        """Save every bucket model to a directory."""
        model_dir = Path(path)
        model_dir.mkdir(parents=True, exist_ok=True)
        for i, svm in enumerate(self.models):
            svm.save(str(model_dir / f"svm_{i}.xml"))
        return True

    def train(self, samples: Sequence[Sequence[float]], labels: Sequence[int]) -> Dict[str, object]:
        """
        Fit every bucket from labeled feature vectors.

        Samples are partitioned by finger count; each bucket is trained on
        its samples truncated to the shortest vector in that bucket.

        Args:
            samples: Feature vectors as produced by extract_hand_features
            labels: 1 for hand, 0 for not hand

        Returns:
            Dictionary with per-bucket and overall accuracy at a 0.5 threshold
        """
        self.models = self.create_models(self.hyperparams)
        self.trained = False

        buckets: List[List[Tuple[List[float], int]]] = [[] for _ in range(self.num_buckets)]
        for feats, label in zip(samples, labels):
            if len(feats) == 0 or int(feats[0]) < 1:
                continue
            buckets[bucket_index(int(feats[0]), self.num_buckets)].append((list(feats), int(label)))

        for i, bucket in enumerate(buckets):
            if not bucket:
                logger.warning("No training samples for SVM #%d", i)
                return {"buckets": [0.0] * self.num_buckets, "overall": 0.0}

            width = min(len(feats) for feats, _ in bucket) - 1
            data = np.array([feats[1:width + 1] for feats, _ in bucket], dtype=np.float32)
            responses = np.array([label for _, label in bucket], dtype=np.float32)

            logger.info("Training SVM #%d on %d samples (%d features)", i, len(bucket), width)
            train_data = cv2.ml.TrainData_create(data, cv2.ml.ROW_SAMPLE, responses)
            self.models[i].train(train_data)

        self.trained = all(m.isTrained() for m in self.models)
        return self.evaluate(buckets)

    def evaluate(self, buckets: List[List[Tuple[List[float], int]]]) -> Dict[str, object]:
        good_total, count_total = 0, 0
        accuracy = []

        for i, bucket in enumerate(buckets):
            good = 0
            for feats, label in bucket:
                res = self.classify(feats)
                if (res < 0.5 and label == 0) or (res > 0.5 and label == 1):
                    good += 1
            accuracy.append(good / len(bucket) if bucket else 0.0)
            good_total += good
            count_total += len(bucket)
            logger.info("SVM #%d: %.1f%% correct", i, accuracy[-1] * 100)

        overall = good_total / count_total if count_total else 0.0
        logger.info("Overall: %.1f%% correct", overall * 100)
        return {"buckets": accuracy, "overall": overall}


def load_training_data(data_dir: Union[str, Path]) -> Tuple[List[List[float]], List[int]]:
    """
    Read labeled feature vectors from a training data directory.

    ``labels.txt`` holds the sample count followed by ``name label`` pairs;
    ``features.txt`` holds a header line followed by
    ``name num_features num_fingers f1 f2 ...`` lines. Samples are matched by
    name.

    Returns:
        Tuple of (feature_vectors, labels)

    Raises:
        ClassifierLoadError: If either file is missing or malformed
    """
    data_dir = Path(data_dir)
    labels_path = data_dir / DATA_LABELS_FILE_NAME
    features_path = data_dir / DATA_FEATURES_FILE_NAME

    try:
        tokens = labels_path.read_text().split()
        feature_lines = features_path.read_text().splitlines()[1:]
    except OSError as e:
        raise ClassifierLoadError(f"Could not read training data in {data_dir}: {e}") from e

    try:
        count = int(tokens[0])
        label_map = {tokens[i]: int(tokens[i + 1]) for i in range(1, 2 * count + 1, 2)}

        samples, labels = [], []
        for line in feature_lines:
            parts = line.split()
            if not parts:
                continue
            name, num_features, num_fingers = parts[0], int(parts[1]), int(parts[2])
            if name not in label_map:
                continue
            values = [float(v) for v in parts[3:3 + num_features - 1]]
            samples.append([float(num_fingers)] + values)
            labels.append(label_map[name])
    except (IndexError, ValueError) as e:
        raise ClassifierLoadError(f"Malformed training data in {data_dir}: {e}") from e

    return samples, labels

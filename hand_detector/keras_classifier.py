"""
Hand classifier ensemble backed by Keras regression models.
Requires the ``keras`` extra (TensorFlow).
"""

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
from tensorflow.keras.models import load_model

from .classifier import NUM_BUCKETS, EnsembleHandClassifier, resolve_model_dir

logger = logging.getLogger(__name__)


class KerasHandClassifier(EnsembleHandClassifier):
    """
    Ensemble of Keras models stored as ``bucket_<i>.keras``; each model maps
    a feature row to a single hand-likelihood output.

    Usage:
        classifier = KerasHandClassifier(model_dir="models/keras")
        confidence = classifier.classify(features)
    """

    def __init__(self, model_dir: Optional[Union[str, Path]] = None, num_buckets: int = NUM_BUCKETS):
        super().__init__(num_buckets=num_buckets)
        if model_dir is not None:
            self.load(model_dir)

    def load(self, model_dir: Union[str, Path]) -> bool:
        """
        Load every bucket model from a directory.

        Returns:
            True if all buckets loaded
        """
        model_dir = resolve_model_dir(model_dir)
        models = []

        for i in range(self.num_buckets):
            model_path = model_dir / f"bucket_{i}.keras"
            if not model_path.exists():
                logger.warning("Hand classifier model missing: %s", model_path)
                self.trained = False
                return False
            models.append(load_model(str(model_path)))

        self.set_models(models)
        logger.info("Loaded Keras hand classifier from %s", model_dir)
        return self.trained

    def input_width(self, model) -> Optional[int]:
        width = model.input_shape[-1]
        return int(width) if width is not None else None

    def predict(self, model, sample: np.ndarray) -> float:
        predictions = model.predict(sample, verbose=0)
        return float(np.asarray(predictions).reshape(-1)[0])

    def get_model_info(self) -> dict:
        """
        Get information about the loaded models.

        Returns:
            Dictionary with model information
        """
        return {
            "num_buckets": self.num_buckets,
            "trained": self.trained,
            "input_shapes": [m.input_shape if m is not None else None for m in self.models],
        }

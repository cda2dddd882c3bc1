"""Classification inference framework."""

from digit_classifier.inference.base import BaseClassificationInferencer
from digit_classifier.inference.checkpoint_inferencer import (
    CheckpointClassificationInferencer,
    infer,
)

__all__ = [
    "BaseClassificationInferencer",
    "CheckpointClassificationInferencer",
    "infer",
]

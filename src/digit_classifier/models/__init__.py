"""Classification model implementations."""

from digit_classifier.models.base import DigitClassificationModel
from digit_classifier.models.cnn import MnistCNN

__all__ = [
    "DigitClassificationModel",
    "MnistCNN",
]

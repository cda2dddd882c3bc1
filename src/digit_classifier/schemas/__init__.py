"""Prediction schemas."""

from digit_classifier.schemas.prediction import ClassificationPrediction

__all__ = ["ClassificationPrediction"]

"""Abstract base class for classification inferencers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from digit_classifier.schemas.prediction import ClassificationPrediction
from digit_classifier.types import RawImageRecord


class BaseClassificationInferencer(ABC):
    """Base class for classification inferencers.

    Subclasses must implement ``predict`` (single record) and
    ``predict_batch`` (multiple records).
    """

    @abstractmethod
    def predict(self, record: RawImageRecord) -> ClassificationPrediction:
        """Run inference on a single record."""

    @abstractmethod
    def predict_batch(
        self, records: Sequence[RawImageRecord]
    ) -> list[ClassificationPrediction]:
        """Run inference on several records, one prediction per record, in order."""

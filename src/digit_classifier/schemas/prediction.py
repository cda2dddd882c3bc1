"""Classification prediction schema."""

from __future__ import annotations

from pydantic import BaseModel


class ClassificationPrediction(BaseModel, frozen=True):
    """Prediction for a single record.

    ``confidence`` is the softmax probability of ``class_id``; ``logits``
    are the raw scores for every class. ``target`` is the record's own
    label, carried along for comparison only.
    """

    class_id: int
    confidence: float
    logits: list[float]
    target: int | None = None

    @property
    def correct(self) -> bool | None:
        if self.target is None:
            return None
        return self.class_id == self.target

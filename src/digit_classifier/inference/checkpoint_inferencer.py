"""Inference from a training artifact directory."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import torch
from loguru import logger

from digit_classifier.backend import ComputeBackend
from digit_classifier.config import ModelConfig, TrainingConfig
from digit_classifier.data.batcher import MnistBatcher
from digit_classifier.errors import ConfigMismatchError
from digit_classifier.inference.base import BaseClassificationInferencer
from digit_classifier.io.artifacts import (
    CONFIG_FILENAME,
    MODEL_FILENAME,
    apply_state_dict,
    load_state_dict,
)
from digit_classifier.schemas.prediction import ClassificationPrediction
from digit_classifier.types import RawImageRecord


def _config_differences(saved: ModelConfig, requested: ModelConfig) -> list[str]:
    return [
        f"{name}: checkpoint={getattr(saved, name)!r}, requested={getattr(requested, name)!r}"
        for name in type(saved).model_fields
        if getattr(saved, name) != getattr(requested, name)
    ]


class CheckpointClassificationInferencer(BaseClassificationInferencer):
    """Run a trained :class:`MnistCNN` loaded from ``artifact_dir``.

    Reads ``config.json`` to rebuild the model and its normalization, then
    loads ``model.pt`` into it. The model is placed on ``backend`` with
    gradient tracking off and is never written to afterwards, so one
    instance can serve concurrent callers.

    Args:
        artifact_dir: Directory written by :func:`digit_classifier.training.train`.
        backend: Device to run on. Defaults to CPU.
        model_config: Expected model configuration. When given it must equal
            the one saved with the checkpoint.

    Raises:
        LoadError: ``config.json`` or ``model.pt`` is missing or unreadable.
        ConfigMismatchError: ``model_config`` or the stored weights do not
            match the saved configuration.
    """

    def __init__(
        self,
        artifact_dir: str | Path,
        backend: ComputeBackend | None = None,
        model_config: ModelConfig | None = None,
    ) -> None:
        artifact_dir = Path(artifact_dir)
        backend = (backend or ComputeBackend()).without_autodiff()

        self.config = TrainingConfig.load(artifact_dir / CONFIG_FILENAME)
        if model_config is not None and model_config != self.config.model:
            diffs = _config_differences(self.config.model, model_config)
            raise ConfigMismatchError(
                f"Requested model config does not match {artifact_dir}: "
                + "; ".join(diffs)
            )

        model = self.config.model.init()
        apply_state_dict(model, load_state_dict(artifact_dir / MODEL_FILENAME))
        self.model = backend.place(model)
        self.backend = backend
        self.batcher = MnistBatcher(backend, self.config.normalization)
        logger.info(f"Loaded model from {artifact_dir} onto {backend.device}")

    def predict(self, record: RawImageRecord) -> ClassificationPrediction:
        """Single record inference (batch of one)."""
        return self.predict_batch([record])[0]

    def predict_batch(
        self, records: Sequence[RawImageRecord]
    ) -> list[ClassificationPrediction]:
        if not records:
            return []
        size = self.config.normalization.image_size
        for position, record in enumerate(records):
            if record.image.shape != (size, size):
                raise ConfigMismatchError(
                    f"Record {position} has image shape {tuple(record.image.shape)}, "
                    f"but the checkpoint expects ({size}, {size})"
                )

        batch = self.batcher(records)
        with torch.inference_mode():
            logits = self.model(batch["images"], training=False).float().cpu()
        probs = logits.softmax(dim=-1)
        class_ids = logits.argmax(dim=-1)

        return [
            ClassificationPrediction(
                class_id=int(class_ids[i]),
                confidence=float(probs[i, class_ids[i]]),
                logits=logits[i].tolist(),
                target=record.label,
            )
            for i, record in enumerate(records)
        ]


def infer(
    artifact_dir: str | Path,
    backend: ComputeBackend | None,
    record: RawImageRecord,
    model_config: ModelConfig | None = None,
) -> ClassificationPrediction:
    """Load the model from ``artifact_dir`` and classify one record."""
    inferencer = CheckpointClassificationInferencer(
        artifact_dir, backend=backend, model_config=model_config
    )
    prediction = inferencer.predict(record)
    logger.info(
        f"Predicted {prediction.class_id} (confidence {prediction.confidence:.3f}), "
        f"expected {record.label}"
    )
    return prediction

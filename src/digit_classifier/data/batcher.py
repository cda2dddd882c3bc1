"""Batcher — turns raw image records into one normalized batch."""

from __future__ import annotations

from collections.abc import Sequence

import torch

from digit_classifier.backend import ComputeBackend
from digit_classifier.config import NormalizationConfig
from digit_classifier.errors import ShapeError, UsageError
from digit_classifier.types import ClassificationBatch, RawImageRecord


class MnistBatcher:
    """Stack records into a :class:`ClassificationBatch` on a fixed backend.

    Each image is reshaped to ``[1, H, W]``, scaled to ``[0, 1]`` and
    normalized with ``(x / max_value - mean) / std``; the single-item
    tensors are then concatenated along the first axis, giving ``[B, H, W]``.
    Labels are concatenated in the same order as ``[B]`` int64.

    Holds no state besides the backend and normalization values, so one
    instance can be shared by DataLoader workers and used as ``collate_fn``.

    Args:
        backend: Where the batch tensors are created. Defaults to CPU.
        normalization: Pixel statistics and expected image size.
    """

    def __init__(
        self,
        backend: ComputeBackend | None = None,
        normalization: NormalizationConfig | None = None,
    ) -> None:
        self.backend = backend or ComputeBackend()
        self.normalization = normalization or NormalizationConfig()

    def __call__(self, items: Sequence[RawImageRecord]) -> ClassificationBatch:
        return self.batch(items)

    def batch(self, items: Sequence[RawImageRecord]) -> ClassificationBatch:
        if len(items) == 0:
            raise UsageError("Cannot build a batch from an empty sequence of records")

        size = self.normalization.image_size
        images = []
        for position, item in enumerate(items):
            if item.image.shape != (size, size):
                raise ShapeError(
                    f"Record {position} has image shape {tuple(item.image.shape)}, "
                    f"expected ({size}, {size})"
                )
            tensor = self.backend.float_tensor(item.image).reshape(1, size, size)
            images.append(self._normalize(tensor))

        labels = self.backend.int_tensor([item.label for item in items])
        return {"images": torch.cat(images, dim=0), "labels": labels}

    def _normalize(self, tensor: torch.Tensor) -> torch.Tensor:
        norm = self.normalization
        return (tensor / norm.max_value - norm.mean) / norm.std

"""Type aliases and record types for digit_classifier inter-module contracts."""

from __future__ import annotations

from typing import Any, TypedDict

import numpy as np
import torch
from pydantic import BaseModel, field_validator


class ClassificationBatch(TypedDict):
    """A single batch produced by the batcher.

    images: Float tensor of shape (B, 28, 28), normalized with MNIST stats.
    labels: Long tensor of shape (B,), integer class indices.
    """

    images: torch.Tensor
    labels: torch.Tensor


class RawImageRecord(BaseModel, frozen=True, arbitrary_types_allowed=True):
    """One dataset entry: a 2-D intensity grid in [0, 255] and its label.

    The image array is copied and marked read-only on construction.
    """

    image: np.ndarray  # type: ignore[type-arg]
    label: int

    @field_validator("image", mode="before")
    @classmethod
    def _as_readonly_array(cls, value: Any) -> np.ndarray:  # type: ignore[type-arg]
        if isinstance(value, torch.Tensor):
            value = value.detach().cpu().numpy()
        array = np.array(value, copy=True)
        array.setflags(write=False)
        return array

    @field_validator("label", mode="before")
    @classmethod
    def _as_int(cls, value: Any) -> int:
        if isinstance(value, torch.Tensor):
            return int(value.item())
        return int(value)

"""Loss functions for classification training."""

from __future__ import annotations

import torch
import torch.nn as nn
import torch.nn.functional as F

from digit_classifier.errors import InvalidLabelError


def validate_labels(labels: torch.Tensor, num_classes: int) -> None:
    """Raise :class:`InvalidLabelError` for the first label outside ``[0, num_classes)``."""
    invalid = (labels < 0) | (labels >= num_classes)
    if bool(invalid.any()):
        raise InvalidLabelError(int(labels[invalid][0].item()), num_classes)


class ClassificationLoss(nn.Module):
    """Cross-entropy over logits that rejects out-of-range labels.

    ``F.cross_entropy`` reports an out-of-range target as a device-side
    assert on CUDA and a bare ``IndexError`` on CPU; checking first gives
    the same :class:`InvalidLabelError` everywhere.

    Parameters
    ----------
    num_classes:
        Width of the logits' class axis.
    """

    def __init__(self, num_classes: int) -> None:
        super().__init__()
        self.num_classes = num_classes

    def forward(self, logits: torch.Tensor, targets: torch.Tensor) -> torch.Tensor:
        """Compute mean cross-entropy.

        Parameters
        ----------
        logits:
            Raw model output of shape ``(B, C)``.
        targets:
            Ground-truth class indices of shape ``(B,)``.
        """
        validate_labels(targets, self.num_classes)
        return F.cross_entropy(logits, targets)

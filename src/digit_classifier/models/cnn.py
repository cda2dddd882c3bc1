"""Convolutional network for 28x28 single-channel images.

Architecture (forward order):
    - reshape [B, 28, 28] -> [B, 1, 28, 28]
    - Conv2d(1, 8, 3) -> Dropout -> Conv2d(8, 16, 3) -> Dropout -> ReLU
    - AdaptiveAvgPool2d(8, 8) -> Flatten (1024)
    - Linear(1024, hidden) -> Dropout -> ReLU -> Linear(hidden, num_classes)
"""

from __future__ import annotations

import torch
import torch.nn as nn
import torch.nn.functional as F

from digit_classifier.errors import ShapeError

INPUT_SIZE = 28
POOL_SIZE = 8
CONV2_CHANNELS = 16


class MnistCNN(nn.Module):
    """Conv -> pool -> linear classifier producing per-class logits.

    Dropout is a call-time mode: ``forward(images, training=True)`` samples
    dropout masks, ``training=False`` is deterministic. The module's own
    ``train()``/``eval()`` flag is never consulted, so one parameter set
    can be evaluated both ways without mutating it.

    Input: normalized images (batch_size, 28, 28)
    Output: class logits (batch_size, num_classes)
    """

    def __init__(self, num_classes: int = 10, hidden_size: int = 512, dropout: float = 0.5) -> None:
        super().__init__()
        self.num_classes = num_classes
        self.hidden_size = hidden_size

        # (batch, 1, 28, 28) -> (batch, 8, 26, 26)
        self.conv1 = nn.Conv2d(in_channels=1, out_channels=8, kernel_size=3)
        # (batch, 8, 26, 26) -> (batch, 16, 24, 24)
        self.conv2 = nn.Conv2d(in_channels=8, out_channels=CONV2_CHANNELS, kernel_size=3)
        # Any spatial size -> (batch, 16, 8, 8)
        self.pool = nn.AdaptiveAvgPool2d((POOL_SIZE, POOL_SIZE))
        self.dropout = nn.Dropout(dropout)
        self.linear1 = nn.Linear(CONV2_CHANNELS * POOL_SIZE * POOL_SIZE, hidden_size)
        self.linear2 = nn.Linear(hidden_size, num_classes)
        self.activation = nn.ReLU()

    def forward(self, images: torch.Tensor, training: bool = False) -> torch.Tensor:
        """Compute logits.

        Args:
            images: Tensor of shape (batch_size, 28, 28).
            training: Apply dropout when True.

        Returns:
            Tensor of shape (batch_size, num_classes).
        """
        if images.ndim != 3 or tuple(images.shape[1:]) != (INPUT_SIZE, INPUT_SIZE):
            raise ShapeError(
                f"Expected images of shape [B, {INPUT_SIZE}, {INPUT_SIZE}], "
                f"got {list(images.shape)}"
            )
        batch_size, height, width = images.shape
        p = self.dropout.p

        # Create a channel.
        x = images.reshape(batch_size, 1, height, width)

        x = self.conv1(x)  # [batch_size, 8, 26, 26]
        x = F.dropout(x, p, training=training)
        x = self.conv2(x)  # [batch_size, 16, 24, 24]
        x = F.dropout(x, p, training=training)
        x = self.activation(x)

        x = self.pool(x)  # [batch_size, 16, 8, 8]
        x = x.reshape(batch_size, CONV2_CHANNELS * POOL_SIZE * POOL_SIZE)
        x = self.linear1(x)
        x = F.dropout(x, p, training=training)
        x = self.activation(x)

        return self.linear2(x)  # type: ignore[no-any-return]

    def get_num_params(self) -> int:
        """Return the total number of parameters."""
        return sum(p.numel() for p in self.parameters())

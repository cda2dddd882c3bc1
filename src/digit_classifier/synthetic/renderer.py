"""Synthetic handwritten-style digit renderer.

Draws the class index as text onto a black 28x28 canvas, then applies a
small rotation, a random offset and pixel noise, producing MNIST-like
records for smoke runs and tests without downloading anything.
"""

from __future__ import annotations

import random

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from digit_classifier.data.dataset import RecordListDataset
from digit_classifier.types import RawImageRecord


class DigitRenderer:
    """Renders grayscale digit images in MNIST layout.

    Args:
        image_size: Output image size (square).
        seed: Random seed for reproducibility.
    """

    def __init__(self, image_size: int = 28, seed: int = 42) -> None:
        self.image_size = image_size
        self.rng = random.Random(seed)  # noqa: S311
        self.np_rng = np.random.default_rng(seed)

    def render(self, label: int) -> np.ndarray:  # type: ignore[type-arg]
        """Render ``label`` as a uint8 array of shape ``(image_size, image_size)``."""
        size = self.image_size
        text = str(label)

        img = Image.new("L", (size, size), 0)
        draw = ImageDraw.Draw(img)
        font_size = self.rng.randint(int(size * 0.6), int(size * 0.8))
        font = ImageFont.load_default(size=font_size)
        bbox = draw.textbbox((0, 0), text, font=font)
        text_w = bbox[2] - bbox[0]
        text_h = bbox[3] - bbox[1]

        # Center with slight random offset
        cx = (size - text_w) / 2 + self.rng.uniform(-size * 0.08, size * 0.08)
        cy = (size - text_h) / 2 + self.rng.uniform(-size * 0.08, size * 0.08)
        draw.text((cx - bbox[0], cy - bbox[1]), text, fill=255, font=font)

        angle = self.rng.uniform(-15, 15)
        img = img.rotate(angle, resample=Image.Resampling.BILINEAR, fillcolor=0)

        arr = np.array(img, dtype=np.float32)
        noise = self.np_rng.normal(0, 8.0, arr.shape).astype(np.float32)
        return np.clip(arr + noise, 0, 255).astype(np.uint8)


class SyntheticDigitDataset(RecordListDataset):
    """Deterministic in-memory dataset of rendered digits.

    Record ``i`` has label ``i % num_classes``, so every class appears as
    soon as ``num_records >= num_classes``.

    Args:
        num_records: Number of records to render.
        num_classes: Number of distinct labels.
        seed: Renderer seed; equal seeds give identical datasets.
    """

    def __init__(self, num_records: int, num_classes: int = 10, seed: int = 42) -> None:
        renderer = DigitRenderer(seed=seed)
        super().__init__(
            [
                RawImageRecord(image=renderer.render(i % num_classes), label=i % num_classes)
                for i in range(num_records)
            ]
        )
        self.num_classes = num_classes

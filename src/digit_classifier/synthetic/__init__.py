"""Synthetic digit image generation."""

from digit_classifier.synthetic.renderer import DigitRenderer, SyntheticDigitDataset

__all__ = ["DigitRenderer", "SyntheticDigitDataset"]

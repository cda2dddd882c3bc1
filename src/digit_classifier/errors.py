"""Exception hierarchy for digit_classifier.

Every error is terminal for the call that raised it; nothing in the package
retries or silently recovers.
"""

from __future__ import annotations


class DigitClassifierError(Exception):
    """Base class for all digit_classifier errors."""


class UsageError(DigitClassifierError, ValueError):
    """Malformed or missing configuration, or an empty batch request."""


class ShapeError(DigitClassifierError, ValueError):
    """A tensor or image does not match the ``[28, 28]`` / ``[B, 28, 28]`` contract."""


class InvalidLabelError(DigitClassifierError, ValueError):
    """A label falls outside ``[0, num_classes)``."""

    def __init__(self, label: int, num_classes: int) -> None:
        self.label = label
        self.num_classes = num_classes
        super().__init__(
            f"Label {label} is outside the valid range [0, {num_classes})"
        )


class LoadError(DigitClassifierError, RuntimeError):
    """A checkpoint or its configuration is missing or unreadable."""


class ConfigMismatchError(LoadError, ShapeError):
    """A checkpoint is incompatible with the requested configuration or input."""


class DivergenceError(DigitClassifierError, RuntimeError):
    """Training produced a non-finite loss under the ``abort`` policy."""

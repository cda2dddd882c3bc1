"""Artifact directory I/O."""

from digit_classifier.io.artifacts import (
    CONFIG_FILENAME,
    MODEL_FILENAME,
    apply_state_dict,
    atomic_write_bytes,
    load_state_dict,
    save_checkpoint,
    save_state_dict,
)

__all__ = [
    "CONFIG_FILENAME",
    "MODEL_FILENAME",
    "apply_state_dict",
    "atomic_write_bytes",
    "load_state_dict",
    "save_checkpoint",
    "save_state_dict",
]

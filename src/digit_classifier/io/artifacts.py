"""Artifact directory I/O: atomic writes and checkpoint (de)serialization."""

from __future__ import annotations

import io
import os
import pickle
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import torch
from loguru import logger

from digit_classifier.errors import ConfigMismatchError, LoadError

if TYPE_CHECKING:
    from digit_classifier.config import TrainingConfig

CONFIG_FILENAME = "config.json"
MODEL_FILENAME = "model.pt"


def _stage(path: Path, data: bytes) -> Path:
    """Write ``data`` to a synced temporary file next to ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return Path(tmp_name)


def _commit(staged: list[tuple[Path, Path]]) -> None:
    """Move every staged temporary over its target; drop leftovers on failure."""
    try:
        for tmp, path in staged:
            os.replace(tmp, path)
    finally:
        for tmp, _ in staged:
            tmp.unlink(missing_ok=True)


def atomic_write_bytes(path: Path, data: bytes) -> Path:
    """Write ``data`` to ``path`` without ever exposing a partial file.

    The bytes go to a temporary file in the same directory, which is then
    moved over ``path`` with ``os.replace``. If the process dies mid-write
    the previous contents of ``path`` are untouched.
    """
    _commit([(_stage(path, data), path)])
    return path


def _state_dict_bytes(model: torch.nn.Module) -> bytes:
    state = {k: v.detach().cpu() for k, v in model.state_dict().items()}
    buffer = io.BytesIO()
    torch.save(state, buffer)
    return buffer.getvalue()


def save_state_dict(model: torch.nn.Module, path: Path) -> Path:
    """Atomically persist ``model.state_dict()`` (moved to CPU) to ``path``."""
    data = _state_dict_bytes(model)
    atomic_write_bytes(path, data)
    logger.debug(f"Saved checkpoint to {path} ({len(data) / 1024:.1f} KB)")
    return path


def save_checkpoint(
    model: torch.nn.Module, config: TrainingConfig, artifact_dir: Path
) -> Path:
    """Write ``model.pt`` and the ``config.json`` describing it as one unit.

    Both files are fully written and synced under temporary names before
    either is moved into place, so a failure while serializing leaves the
    previous pair untouched.

    Returns:
        Path of the written ``model.pt``.
    """
    model_path = artifact_dir / MODEL_FILENAME
    config_path = artifact_dir / CONFIG_FILENAME
    weights = _state_dict_bytes(model)
    staged = [(_stage(model_path, weights), model_path)]
    try:
        staged.append((_stage(config_path, config.to_json()), config_path))
    except BaseException:
        staged[0][0].unlink(missing_ok=True)
        raise
    _commit(staged)
    logger.debug(f"Saved checkpoint to {model_path} ({len(weights) / 1024:.1f} KB)")
    return model_path


def load_state_dict(path: Path) -> dict[str, torch.Tensor]:
    """Read a state dict written by :func:`save_state_dict`.

    Raises:
        LoadError: The file is missing or cannot be deserialized.
    """
    if not path.is_file():
        raise LoadError(f"Checkpoint not found: {path}")
    try:
        state = torch.load(path, map_location="cpu", weights_only=True)
    except (OSError, RuntimeError, EOFError, pickle.UnpicklingError) as e:
        raise LoadError(f"Cannot read checkpoint {path}: {e}") from e
    if not isinstance(state, dict):
        raise LoadError(f"Checkpoint {path} does not contain a state dict")
    return state


def apply_state_dict(model: torch.nn.Module, state: dict[str, torch.Tensor]) -> None:
    """Copy ``state`` into ``model`` after checking names and shapes.

    Raises:
        ConfigMismatchError: A parameter is missing, unexpected, or has a
            different shape than the model built from the configuration.
    """
    expected = model.state_dict()
    missing = sorted(set(expected) - set(state))
    unexpected = sorted(set(state) - set(expected))
    if missing or unexpected:
        raise ConfigMismatchError(
            f"Checkpoint parameters do not match the model: "
            f"missing={missing}, unexpected={unexpected}"
        )
    for name, tensor in expected.items():
        if tuple(state[name].shape) != tuple(tensor.shape):
            raise ConfigMismatchError(
                f"Parameter {name!r} has shape {tuple(state[name].shape)} in the "
                f"checkpoint but {tuple(tensor.shape)} in the configured model"
            )
    model.load_state_dict(state)

"""Training loop orchestration.

One call to :func:`train` runs ``num_epochs`` epochs of (train pass,
validation pass) through a Lightning ``Trainer`` and leaves two files in
the artifact directory:

* ``model.pt``: the network weights, written after every epoch (when
  enabled) and always once more after the last epoch;
* ``config.json``: the :class:`TrainingConfig`, replaced together with
  every ``model.pt`` write. A run that fails before its first checkpoint
  leaves the previous pair untouched.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import lightning as L
import torch
from lightning.pytorch.loggers import CSVLogger
from loguru import logger
from pydantic import BaseModel

from digit_classifier.backend import ComputeBackend
from digit_classifier.callbacks.checkpoint import AtomicCheckpointCallback
from digit_classifier.callbacks.divergence import DivergenceMonitorCallback
from digit_classifier.callbacks.plotting import TrainingHistoryCallback
from digit_classifier.config import TrainingConfig
from digit_classifier.data.datamodule import MnistDataModule
from digit_classifier.data.dataset import RecordDataset
from digit_classifier.errors import UsageError
from digit_classifier.io.artifacts import CONFIG_FILENAME, save_checkpoint
from digit_classifier.models.base import DigitClassificationModel

_PRECISION_BY_DTYPE: dict[torch.dtype, str] = {
    torch.float32: "32-true",
    torch.float64: "64-true",
}


class TrainingResult(BaseModel, frozen=True, arbitrary_types_allowed=True):
    """Outcome of :func:`train`."""

    model: DigitClassificationModel
    checkpoint_path: Path
    config_path: Path
    history: list[dict[str, Any]]
    train_passes: int
    validation_passes: int


def _precision(backend: ComputeBackend) -> str:
    try:
        return _PRECISION_BY_DTYPE[backend.dtype]
    except KeyError as e:
        raise UsageError(
            f"Unsupported training dtype {backend.dtype}; use float32 or float64"
        ) from e


def train(
    artifact_dir: str | Path,
    config: TrainingConfig,
    backend: ComputeBackend,
    train_dataset: RecordDataset | None = None,
    val_dataset: RecordDataset | None = None,
    *,
    data_root: str = "./data",
    callbacks: list[L.Callback] | None = None,
    plot_history: bool = False,
) -> TrainingResult:
    """Train a fresh model and checkpoint it into ``artifact_dir``.

    Args:
        artifact_dir: Directory for ``config.json``, ``model.pt`` and logs.
        config: Complete training configuration.
        backend: Device and dtype to train on.
        train_dataset: Training records; MNIST train split when None.
        val_dataset: Validation records; MNIST test split when None.
        data_root: MNIST directory used for splits that are not given.
        callbacks: Extra Lightning callbacks (model info, statistics, ...).
        plot_history: Write loss/accuracy PNGs under ``artifact_dir``.

    Returns:
        The trained module, checkpoint location and per-epoch history.

    Raises:
        InvalidLabelError: A training or validation label is out of range.
        ShapeError: A record or batch has the wrong image shape.
        DivergenceError: Non-finite loss under the ``abort`` policy.
    """
    artifact_dir = Path(artifact_dir)
    artifact_dir.mkdir(parents=True, exist_ok=True)
    precision = _precision(backend)

    L.seed_everything(config.seed, workers=True)

    datamodule = MnistDataModule(
        config.data,
        train_dataset=train_dataset,
        val_dataset=val_dataset,
        normalization=config.normalization,
        data_root=data_root,
    )
    module = DigitClassificationModel.from_config(config)

    history = TrainingHistoryCallback(output_dir=artifact_dir, plot=plot_history)
    all_callbacks: list[L.Callback] = [
        history,
        DivergenceMonitorCallback(policy=config.divergence_policy),
    ]
    if config.checkpoint_every_epoch:
        all_callbacks.append(AtomicCheckpointCallback(artifact_dir, config))
    all_callbacks.extend(callbacks or [])

    if config.num_epochs > 0:
        trainer = L.Trainer(
            accelerator=backend.accelerator,
            devices=backend.devices,
            precision=precision,  # type: ignore[arg-type]
            max_epochs=config.num_epochs,
            callbacks=all_callbacks,
            logger=CSVLogger(save_dir=artifact_dir, name="logs") if config.log_metrics else False,
            enable_checkpointing=False,
            enable_progress_bar=config.progress_bar,
            num_sanity_val_steps=0,
            log_every_n_steps=10,
            default_root_dir=artifact_dir,
        )
        trainer.fit(module, datamodule=datamodule)
    else:
        logger.info("num_epochs=0: skipping training, checkpointing initial weights")

    checkpoint_path = save_checkpoint(module.net, config, artifact_dir)
    config_path = artifact_dir / CONFIG_FILENAME
    logger.info(
        f"Training done after {history.train_passes} epoch(s); "
        f"model saved to {checkpoint_path}"
    )
    return TrainingResult(
        model=module,
        checkpoint_path=checkpoint_path,
        config_path=config_path,
        history=history.history,
        train_passes=history.train_passes,
        validation_passes=history.validation_passes,
    )

"""Per-epoch checkpointing of the network weights and their configuration."""

from __future__ import annotations

from pathlib import Path

import lightning as L
from loguru import logger

from digit_classifier.config import TrainingConfig
from digit_classifier.io.artifacts import save_checkpoint


class AtomicCheckpointCallback(L.Callback):
    """Write ``model.pt`` and ``config.json`` to ``artifact_dir`` after every epoch.

    Both files are replaced together, so an interrupted run keeps the last
    complete checkpoint along with the configuration it was trained with.
    Only the bare network (``pl_module.net``) is saved, which is what the
    inference path reloads.

    Args:
        artifact_dir: Directory receiving the checkpoint.
        config: Configuration of the run being checkpointed.
    """

    def __init__(self, artifact_dir: str | Path, config: TrainingConfig) -> None:
        super().__init__()
        self.artifact_dir = Path(artifact_dir)
        self.config = config
        self.saved_epochs: list[int] = []

    def on_train_epoch_end(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        if trainer.sanity_checking:
            return
        net = getattr(pl_module, "net", pl_module)
        path = save_checkpoint(net, self.config, self.artifact_dir)
        self.saved_epochs.append(trainer.current_epoch)
        logger.info(f"Epoch {trainer.current_epoch}: checkpoint written to {path}")

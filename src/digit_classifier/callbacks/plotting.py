"""Training history callback — per-epoch metrics and optional curve PNGs."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import lightning as L
import matplotlib
import matplotlib.pyplot as plt
import torch
from loguru import logger

from digit_classifier.types import ClassificationBatch


class TrainingHistoryCallback(L.Callback):
    """Record one history row per completed epoch.

    Each row holds the epoch index, the mean training loss over the
    epoch's batches, and the validation loss and top-1 accuracy. The
    number of train and validation passes is counted separately
    (sanity-check validation is not counted).

    With ``plot=True`` two PNG files are overwritten after every epoch:
    - ``loss_history.png``: train_loss vs val_loss
    - ``accuracy_history.png``: val_acc_top1

    Args:
        output_dir: Root directory for saved plots.
        plot: Draw the PNG curves.
    """

    def __init__(self, output_dir: str | Path = "outputs", plot: bool = False) -> None:
        super().__init__()
        self.output_dir = Path(output_dir) / "training_history"
        self.plot = plot
        self.history: list[dict[str, float | int | None]] = []
        self.train_passes = 0
        self.validation_passes = 0
        self._loss_sum = 0.0
        self._loss_count = 0

    def on_train_epoch_start(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        self._loss_sum = 0.0
        self._loss_count = 0

    def on_train_batch_end(
        self,
        trainer: L.Trainer,
        pl_module: L.LightningModule,
        outputs: torch.Tensor | Mapping[str, Any] | None,
        batch: ClassificationBatch,
        batch_idx: int,
    ) -> None:
        loss = outputs.get("loss") if isinstance(outputs, Mapping) else outputs
        if loss is not None:
            self._loss_sum += float(loss.detach())
            self._loss_count += 1

    def on_validation_epoch_end(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        if not trainer.sanity_checking:
            self.validation_passes += 1

    def on_train_epoch_end(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        """Collect metrics at end of training epoch (validation has already run)."""
        self.train_passes += 1
        metrics = trainer.callback_metrics

        val_loss = metrics.get("val/loss")
        val_acc = metrics.get("val/acc_top1")
        row: dict[str, float | int | None] = {
            "epoch": trainer.current_epoch,
            "train_loss": self._loss_sum / self._loss_count if self._loss_count else None,
            "val_loss": val_loss.item() if val_loss is not None else None,
            "val_acc_top1": val_acc.item() if val_acc is not None else None,
        }
        self.history.append(row)
        logger.info(
            "Epoch {epoch}: train_loss={train_loss} val_loss={val_loss} "
            "val_acc_top1={val_acc_top1}".format(**row)
        )

        if self.plot:
            try:
                self._plot_metrics()
            except Exception as e:
                logger.error(f"Failed to plot training history: {e}")

    def _series(self, key: str) -> list[float | None]:
        return [row[key] for row in self.history]  # type: ignore[misc]

    def _plot_metrics(self) -> None:
        """Draw and save loss + accuracy plots."""
        matplotlib.use("Agg")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        epochs = self._series("epoch")

        # --- Loss plot ---
        fig, ax = plt.subplots(figsize=(10, 6))
        for key, label, marker in [
            ("train_loss", "Train Loss", "o"),
            ("val_loss", "Val Loss", "s"),
        ]:
            values = self._series(key)
            if any(v is not None for v in values):
                ax.plot(epochs, values, label=label, marker=marker)  # type: ignore[arg-type]
        ax.set_title("Training and Validation Loss")
        ax.set_xlabel("Epoch")
        ax.set_ylabel("Loss")
        ax.legend()
        ax.grid(True, linestyle="--", alpha=0.7)
        fig.tight_layout()
        fig.savefig(self.output_dir / "loss_history.png", dpi=150)
        plt.close(fig)

        # --- Accuracy plot ---
        fig, ax = plt.subplots(figsize=(10, 6))
        values = self._series("val_acc_top1")
        if any(v is not None for v in values):
            ax.plot(epochs, values, label="Val Top-1", marker="s")  # type: ignore[arg-type]
        ax.set_title("Accuracy")
        ax.set_xlabel("Epoch")
        ax.set_ylabel("Accuracy")
        ax.legend()
        ax.grid(True, linestyle="--", alpha=0.7)
        fig.tight_layout()
        fig.savefig(self.output_dir / "accuracy_history.png", dpi=150)
        plt.close(fig)

        logger.info(f"Training history plots updated in {self.output_dir}")

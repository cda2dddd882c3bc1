"""Divergence monitor — reacts to non-finite training losses."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

import lightning as L
import torch
from loguru import logger

from digit_classifier.errors import DivergenceError
from digit_classifier.types import ClassificationBatch


class DivergenceMonitorCallback(L.Callback):
    """Check every training loss for NaN/Inf.

    Each occurrence is logged as a warning. With ``policy="abort"`` the
    first one raises :class:`DivergenceError`, which ends ``trainer.fit``.

    Args:
        policy: ``"warn"`` to keep training, ``"abort"`` to stop.
    """

    def __init__(self, policy: Literal["warn", "abort"] = "warn") -> None:
        super().__init__()
        self.policy = policy
        self.occurrences: list[tuple[int, int]] = []

    def on_train_batch_end(
        self,
        trainer: L.Trainer,
        pl_module: L.LightningModule,
        outputs: torch.Tensor | Mapping[str, Any] | None,
        batch: ClassificationBatch,
        batch_idx: int,
    ) -> None:
        loss = outputs.get("loss") if isinstance(outputs, Mapping) else outputs
        if loss is None or bool(torch.isfinite(loss).all()):
            return

        epoch = trainer.current_epoch
        self.occurrences.append((epoch, batch_idx))
        logger.warning(
            f"Non-finite training loss {loss.item()} at epoch {epoch}, batch {batch_idx}"
        )
        if self.policy == "abort":
            raise DivergenceError(
                f"Training loss diverged at epoch {epoch}, batch {batch_idx}"
            )

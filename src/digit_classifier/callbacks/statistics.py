"""Dataset statistics callback — prints class distribution at training start."""

from __future__ import annotations

from collections import Counter

import lightning as L
from loguru import logger
from rich import box
from rich.console import Console
from rich.table import Table


class DatasetStatisticsCallback(L.Callback):
    """Print a rich table of class distribution from the training dataset.

    Reads ``trainer.datamodule.train_dataset.labels`` and displays counts
    sorted by class index. Classes the model knows about but that never
    occur in the split are listed with a zero count.
    """

    def on_fit_start(self, trainer: L.Trainer, pl_module: L.LightningModule) -> None:
        """Compute and display class distribution at training start."""
        datamodule = getattr(trainer, "datamodule", None)
        if datamodule is None:
            logger.warning("No datamodule found. Skipping dataset statistics.")
            return

        train_dataset = getattr(datamodule, "train_dataset", None)
        if train_dataset is None:
            logger.warning(
                "No train_dataset found on datamodule. Skipping dataset statistics."
            )
            return

        counts = Counter(train_dataset.labels)
        num_classes = int(pl_module.hparams.get("num_classes", 0))
        for idx in range(num_classes):
            counts.setdefault(idx, 0)

        total = sum(counts.values())
        logger.info(f"Training dataset: {total} records, {len(counts)} classes")

        table = Table(
            title="Dataset Class Distribution",
            header_style="bold magenta",
            box=box.SQUARE,
            show_lines=True,
        )
        table.add_column("Class", justify="right", style="cyan")
        table.add_column("Count", justify="right", style="green")
        table.add_column("Percentage", justify="right", style="yellow")

        for idx in sorted(counts):
            count = counts[idx]
            pct = count / total * 100 if total > 0 else 0.0
            table.add_row(str(idx), str(count), f"{pct:.1f}%")

        Console().print(table)

        out_of_range = [idx for idx in counts if not 0 <= idx < num_classes]
        if num_classes and out_of_range:
            logger.warning(
                f"Training split has labels outside [0, {num_classes}): "
                f"{sorted(out_of_range)}"
            )

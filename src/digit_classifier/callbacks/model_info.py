"""Model info callback — reports per-layer and total parameter counts."""

from __future__ import annotations

import lightning as L
import torch
from loguru import logger
from rich import box
from rich.console import Console
from rich.table import Table


def model_summary_table(model: torch.nn.Module, title: str = "Model Information") -> Table:
    """Build a rich table with one row per top-level layer plus totals."""
    table = Table(
        title=title,
        header_style="bold magenta",
        box=box.SQUARE,
        show_lines=True,
    )
    table.add_column("Layer", style="cyan")
    table.add_column("Module", style="white")
    table.add_column("Parameters", justify="right", style="green")

    for name, child in model.named_children():
        params = sum(p.numel() for p in child.parameters())
        table.add_row(name, repr(child), f"{params:,}")

    total_params = sum(p.numel() for p in model.parameters())
    param_size = sum(p.numel() * p.element_size() for p in model.parameters())
    table.add_row("Total Parameters", type(model).__name__, f"{total_params:,}")
    table.add_row("Model Size", "", f"{param_size / (1024 * 1024):.2f} MB")
    return table


class ModelInfoCallback(L.Callback):
    """Compute and display model statistics at training start.

    Reports total parameters, trainable parameters, and model size in MB,
    and prints the per-layer table for the wrapped network.
    """

    def on_fit_start(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        """Compute model stats and print the table."""
        total_params = sum(p.numel() for p in pl_module.parameters())
        trainable_params = sum(
            p.numel() for p in pl_module.parameters() if p.requires_grad
        )
        param_size = sum(
            p.numel() * p.element_size() for p in pl_module.parameters()
        )
        buffer_size = sum(
            b.numel() * b.element_size() for b in pl_module.buffers()
        )
        model_size_mb = (param_size + buffer_size) / (1024 * 1024)

        net = getattr(pl_module, "net", pl_module)
        Console().print(model_summary_table(net))

        logger.info(
            f"Model: {type(pl_module).__name__} | "
            f"Params: {total_params:,} ({trainable_params:,} trainable) | "
            f"Size: {model_size_mb:.2f} MB"
        )

"""Hydra training entrypoint for digit_classifier.

Usage:
    digit-classifier-train                                   # defaults
    digit-classifier-train training.num_epochs=3             # override epochs
    digit-classifier-train training.data.batch_size=32       # override batch size
    digit-classifier-train synthetic_records=512 device=cpu  # offline smoke run
"""

from __future__ import annotations

import sys

import hydra
import lightning as L
from loguru import logger
from omegaconf import DictConfig, OmegaConf

from digit_classifier.backend import resolve_backend
from digit_classifier.config import TrainingConfig, parse_config
from digit_classifier.synthetic.renderer import SyntheticDigitDataset
from digit_classifier.training import TrainingResult, train


def run(cfg: DictConfig) -> TrainingResult:
    """Train with a composed config. Separate from ``main`` so tests can call it."""
    logger.info(f"Configuration:\n{OmegaConf.to_yaml(cfg)}")

    container = OmegaConf.to_container(cfg.training, resolve=True)
    config: TrainingConfig = parse_config(TrainingConfig, container)  # type: ignore[arg-type]
    backend = resolve_backend(cfg.get("device", "auto"))

    train_dataset = val_dataset = None
    synthetic_records = cfg.get("synthetic_records")
    if synthetic_records:
        num_classes = config.model.num_classes
        train_dataset = SyntheticDigitDataset(synthetic_records, num_classes=num_classes, seed=0)
        val_dataset = SyntheticDigitDataset(
            max(1, synthetic_records // 4), num_classes=num_classes, seed=1
        )

    callbacks: list[L.Callback] = []
    if cfg.get("callbacks"):
        for v in cfg.callbacks.values():
            if v is not None and "_target_" in v:
                callbacks.append(hydra.utils.instantiate(v))

    return train(
        cfg.artifact_dir,
        config,
        backend,
        train_dataset,
        val_dataset,
        data_root=cfg.get("data_root", "./data"),
        callbacks=callbacks,
        plot_history=bool(cfg.get("plot_history", False)),
    )


@hydra.main(version_base=None, config_path="conf", config_name="train")
def main(cfg: DictConfig) -> None:
    """Run training with the given Hydra config."""
    logger.remove()
    logger.add(sys.stderr, level=cfg.get("log_level", "INFO"))
    run(cfg)


if __name__ == "__main__":
    main()

"""LightningModule wrapping MnistCNN with loss, metrics and optimizer."""

from __future__ import annotations

import lightning as L
import torch
from torchmetrics.classification import MulticlassAccuracy

from digit_classifier.config import AdamConfig, ModelConfig, TrainingConfig
from digit_classifier.losses import ClassificationLoss
from digit_classifier.models.cnn import MnistCNN
from digit_classifier.types import ClassificationBatch


class DigitClassificationModel(L.LightningModule):
    """Training wrapper around :class:`MnistCNN`.

    ``training_step`` runs the network with dropout on, ``validation_step``
    with dropout off; the mode is passed explicitly on each call. The
    optimizer is Adam with the configured learning rate and no scheduler.

    Build from a :class:`TrainingConfig` with :meth:`from_config`; the bare
    network (the part that gets checkpointed) is ``self.net``.
    """

    def __init__(
        self,
        num_classes: int = 10,
        hidden_size: int = 512,
        dropout: float = 0.5,
        learning_rate: float = 1e-4,
        beta_1: float = 0.9,
        beta_2: float = 0.999,
        epsilon: float = 1e-5,
        weight_decay: float = 0.0,
    ) -> None:
        super().__init__()
        self.save_hyperparameters()

        self.net = MnistCNN(
            num_classes=num_classes, hidden_size=hidden_size, dropout=dropout
        )
        self.loss_fn = ClassificationLoss(num_classes)

        # Updated per step, computed and reset at epoch end.
        self.train_top1 = MulticlassAccuracy(
            num_classes=num_classes, top_k=1, average="micro"
        )
        self.val_top1 = MulticlassAccuracy(
            num_classes=num_classes, top_k=1, average="micro"
        )
        self.val_per_cls = MulticlassAccuracy(
            num_classes=num_classes, top_k=1, average="none"
        )

    @classmethod
    def from_config(cls, config: TrainingConfig) -> DigitClassificationModel:
        return cls(
            num_classes=config.model.num_classes,
            hidden_size=config.model.hidden_size,
            dropout=config.model.dropout,
            learning_rate=config.optimizer.learning_rate,
            beta_1=config.optimizer.beta_1,
            beta_2=config.optimizer.beta_2,
            epsilon=config.optimizer.epsilon,
            weight_decay=config.optimizer.weight_decay,
        )

    @property
    def model_config(self) -> ModelConfig:
        return ModelConfig(
            num_classes=self.hparams["num_classes"],
            hidden_size=self.hparams["hidden_size"],
            dropout=self.hparams["dropout"],
        )

    @property
    def optimizer_config(self) -> AdamConfig:
        return AdamConfig(
            learning_rate=self.hparams["learning_rate"],
            beta_1=self.hparams["beta_1"],
            beta_2=self.hparams["beta_2"],
            epsilon=self.hparams["epsilon"],
            weight_decay=self.hparams["weight_decay"],
        )

    def forward(self, images: torch.Tensor, training: bool = False) -> torch.Tensor:
        return self.net(images, training=training)  # type: ignore[no-any-return]

    def training_step(
        self, batch: ClassificationBatch, batch_idx: int
    ) -> torch.Tensor:
        images, labels = batch["images"], batch["labels"]
        logits = self(images, training=True)
        loss: torch.Tensor = self.loss_fn(logits, labels)
        self.log(
            "train/loss", loss, on_step=True, on_epoch=True, prog_bar=True
        )
        self.train_top1.update(logits, labels)
        return loss

    def on_train_epoch_end(self) -> None:
        self.log("train/acc_top1", self.train_top1.compute())
        self.train_top1.reset()

    def validation_step(
        self, batch: ClassificationBatch, batch_idx: int
    ) -> None:
        images, labels = batch["images"], batch["labels"]
        logits = self(images, training=False)
        loss = self.loss_fn(logits, labels)
        self.log(
            "val/loss", loss, on_step=False, on_epoch=True, prog_bar=True
        )
        self.val_top1.update(logits, labels)
        self.val_per_cls.update(logits, labels)

    def on_validation_epoch_end(self) -> None:
        self.log("val/acc_top1", self.val_top1.compute(), prog_bar=True)
        per_cls: torch.Tensor = self.val_per_cls.compute()
        for i, acc in enumerate(per_cls):
            self.log(f"val/acc_class_{i}", acc)
        self.val_top1.reset()
        self.val_per_cls.reset()

    def configure_optimizers(self) -> torch.optim.Optimizer:
        return torch.optim.Adam(
            self.parameters(),
            lr=self.hparams["learning_rate"],
            betas=(self.hparams["beta_1"], self.hparams["beta_2"]),
            eps=self.hparams["epsilon"],
            weight_decay=self.hparams["weight_decay"],
        )

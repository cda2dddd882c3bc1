"""Pydantic frozen configuration models for digit_classifier."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import orjson
from pydantic import BaseModel, Field, ValidationError, model_validator

from digit_classifier.errors import LoadError, UsageError
from digit_classifier.io.artifacts import atomic_write_bytes

if TYPE_CHECKING:
    from digit_classifier.backend import ComputeBackend
    from digit_classifier.models.cnn import MnistCNN


class NormalizationConfig(BaseModel, frozen=True):
    """Pixel normalization applied by the batcher.

    ``mean`` and ``std`` are the measured statistics of the MNIST training
    split. Checkpoints trained with them only reproduce their predictions
    when the same values are used at inference time.
    ``image_size`` is fixed at 28, the only input size the network accepts.
    """

    mean: float = 0.1307
    std: float = Field(default=0.3081, gt=0.0)
    max_value: float = Field(default=255.0, gt=0.0)
    image_size: Literal[28] = 28


class ModelConfig(BaseModel, frozen=True):
    """Hyperparameters of :class:`~digit_classifier.models.cnn.MnistCNN`.

    ``hidden_size`` has no default and must always be given.
    """

    num_classes: int = Field(default=10, ge=2)
    hidden_size: int = Field(ge=1)
    dropout: float = Field(default=0.5, ge=0.0, lt=1.0)

    def init(self, backend: ComputeBackend | None = None) -> MnistCNN:
        """Return a freshly initialized model on ``backend`` (CPU by default)."""
        from digit_classifier.models.cnn import MnistCNN

        model = MnistCNN(
            num_classes=self.num_classes,
            hidden_size=self.hidden_size,
            dropout=self.dropout,
        )
        if backend is not None:
            model = backend.place(model)
        return model


class AdamConfig(BaseModel, frozen=True):
    """Adam optimizer settings."""

    learning_rate: float = Field(default=1e-4, gt=0.0)
    beta_1: float = Field(default=0.9, ge=0.0, lt=1.0)
    beta_2: float = Field(default=0.999, ge=0.0, lt=1.0)
    epsilon: float = Field(default=1e-5, gt=0.0)
    weight_decay: float = Field(default=0.0, ge=0.0)


class DataModuleConfig(BaseModel, frozen=True):
    """Configuration for MnistDataModule.

    ``persistent_workers`` is forced off when ``num_workers`` is 0.
    """

    batch_size: int = Field(default=64, ge=1)
    num_workers: int = Field(default=4, ge=0)
    pin_memory: bool = False
    persistent_workers: bool = True
    shuffle: bool = True
    seed: int = 42

    @model_validator(mode="after")
    def _persistent_workers_requires_workers(self) -> DataModuleConfig:
        """persistent_workers=True with num_workers=0 silently does nothing."""
        if self.persistent_workers and self.num_workers == 0:
            # Use object.__setattr__ because model is frozen
            object.__setattr__(self, "persistent_workers", False)
        return self


class TrainingConfig(BaseModel, frozen=True):
    """Everything one training run needs. Created once, never mutated.

    ``divergence_policy`` decides what a non-finite training loss does:
    ``"warn"`` logs it and keeps going, ``"abort"`` raises
    :class:`~digit_classifier.errors.DivergenceError`.
    """

    model: ModelConfig
    optimizer: AdamConfig = Field(default_factory=AdamConfig)
    data: DataModuleConfig = Field(default_factory=DataModuleConfig)
    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    num_epochs: int = Field(default=10, ge=0)
    seed: int = 42
    checkpoint_every_epoch: bool = True
    divergence_policy: Literal["warn", "abort"] = "warn"
    log_metrics: bool = True
    progress_bar: bool = True

    def to_json(self) -> bytes:
        return orjson.dumps(self.model_dump(), option=orjson.OPT_INDENT_2)

    def save(self, path: Path) -> None:
        """Write the configuration as JSON, replacing ``path`` atomically."""
        atomic_write_bytes(path, self.to_json())

    @classmethod
    def load(cls, path: Path) -> TrainingConfig:
        """Read a configuration written by :meth:`save`.

        Raises:
            LoadError: The file is missing, not JSON, or not a valid config.
        """
        try:
            raw = orjson.loads(path.read_bytes())
        except FileNotFoundError as e:
            raise LoadError(f"Training config not found: {path}") from e
        except (OSError, orjson.JSONDecodeError) as e:
            raise LoadError(f"Cannot read training config {path}: {e}") from e
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise LoadError(f"Invalid training config in {path}: {e}") from e


def parse_config(cls: type[BaseModel], values: dict[str, Any]) -> Any:
    """Validate user-supplied ``values`` into ``cls``.

    Pydantic's ``ValidationError`` is re-raised as :class:`UsageError` so that
    callers see one error type for bad configuration, wherever it came from.
    """
    try:
        return cls.model_validate(values)
    except ValidationError as e:
        raise UsageError(f"Invalid {cls.__name__}: {e}") from e

"""Shared pytest fixtures for digit_classifier tests."""

from pathlib import Path

import numpy as np
import pytest

from digit_classifier.backend import ComputeBackend
from digit_classifier.config import DataModuleConfig, ModelConfig, TrainingConfig
from digit_classifier.data.dataset import RecordListDataset
from digit_classifier.synthetic import SyntheticDigitDataset
from digit_classifier.types import RawImageRecord


def make_record(value: int, label: int) -> RawImageRecord:
    """28x28 record with every pixel set to ``value``."""
    return RawImageRecord(image=np.full((28, 28), value, dtype=np.uint8), label=label)


@pytest.fixture()
def cpu_backend() -> ComputeBackend:
    return ComputeBackend()


@pytest.fixture()
def records() -> list[RawImageRecord]:
    """Four records with distinct constant intensities and labels 0..3."""
    return [make_record(v, i) for i, v in enumerate((0, 85, 170, 255))]


@pytest.fixture()
def synthetic_train() -> SyntheticDigitDataset:
    """8 rendered records over 4 classes."""
    return SyntheticDigitDataset(8, num_classes=4, seed=0)


@pytest.fixture()
def synthetic_val() -> SyntheticDigitDataset:
    return SyntheticDigitDataset(4, num_classes=4, seed=1)


@pytest.fixture()
def small_config() -> TrainingConfig:
    """1 epoch, 4 classes, batch size 4, no workers, quiet."""
    return TrainingConfig(
        model=ModelConfig(num_classes=4, hidden_size=16),
        data=DataModuleConfig(batch_size=4, num_workers=0),
        num_epochs=1,
        log_metrics=False,
        progress_bar=False,
    )


@pytest.fixture()
def trained_artifact_dir(
    tmp_path: Path,
    small_config: TrainingConfig,
    cpu_backend: ComputeBackend,
    synthetic_train: SyntheticDigitDataset,
    synthetic_val: SyntheticDigitDataset,
) -> Path:
    """Artifact directory after a 1-epoch training run."""
    from digit_classifier.training import train

    artifact_dir = tmp_path / "artifact"
    train(artifact_dir, small_config, cpu_backend, synthetic_train, synthetic_val)
    return artifact_dir


@pytest.fixture()
def bad_label_dataset() -> RecordListDataset:
    """4 records whose last label equals num_classes (4)."""
    return RecordListDataset([make_record(10 * i, label) for i, label in enumerate((0, 1, 2, 4))])

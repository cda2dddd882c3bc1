"""Unit tests for the training callbacks.

Callbacks are driven directly with lightweight stand-ins for the Trainer;
the full Trainer path is covered in test_training.py.
"""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
import torch

from digit_classifier.callbacks import (
    AtomicCheckpointCallback,
    DatasetStatisticsCallback,
    DivergenceMonitorCallback,
    ModelInfoCallback,
    TrainingHistoryCallback,
)
from digit_classifier.config import ModelConfig, TrainingConfig
from digit_classifier.data.dataset import RecordListDataset
from digit_classifier.errors import DivergenceError
from digit_classifier.io.artifacts import load_state_dict
from digit_classifier.models import DigitClassificationModel
from digit_classifier.types import RawImageRecord


def _trainer(**fields: object) -> SimpleNamespace:
    defaults: dict[str, object] = {
        "current_epoch": 0,
        "sanity_checking": False,
        "callback_metrics": {},
    }
    defaults.update(fields)
    return SimpleNamespace(**defaults)


@pytest.fixture()
def module() -> DigitClassificationModel:
    return DigitClassificationModel.from_config(
        TrainingConfig(model=ModelConfig(num_classes=4, hidden_size=8))
    )


# ---------------------------------------------------------------------------
# DivergenceMonitorCallback
# ---------------------------------------------------------------------------


class TestDivergenceMonitor:
    def test_finite_loss_is_ignored(self, module: DigitClassificationModel) -> None:
        cb = DivergenceMonitorCallback(policy="abort")
        cb.on_train_batch_end(_trainer(), module, torch.tensor(0.5), {}, 0)  # type: ignore[arg-type]
        assert cb.occurrences == []

    def test_warn_records_and_continues(self, module: DigitClassificationModel) -> None:
        cb = DivergenceMonitorCallback(policy="warn")
        trainer = _trainer(current_epoch=2)
        cb.on_train_batch_end(trainer, module, torch.tensor(float("nan")), {}, 3)  # type: ignore[arg-type]
        cb.on_train_batch_end(trainer, module, {"loss": torch.tensor(float("inf"))}, {}, 4)  # type: ignore[arg-type]
        assert cb.occurrences == [(2, 3), (2, 4)]

    def test_abort_raises(self, module: DigitClassificationModel) -> None:
        cb = DivergenceMonitorCallback(policy="abort")
        with pytest.raises(DivergenceError, match="epoch 1, batch 0"):
            cb.on_train_batch_end(
                _trainer(current_epoch=1), module, torch.tensor(float("nan")), {}, 0  # type: ignore[arg-type]
            )

    def test_missing_outputs_are_ignored(self, module: DigitClassificationModel) -> None:
        cb = DivergenceMonitorCallback(policy="abort")
        cb.on_train_batch_end(_trainer(), module, None, {}, 0)  # type: ignore[arg-type]
        assert cb.occurrences == []


# ---------------------------------------------------------------------------
# AtomicCheckpointCallback
# ---------------------------------------------------------------------------


class TestAtomicCheckpoint:
    def test_writes_network_state_and_config(
        self, tmp_path: Path, module: DigitClassificationModel, small_config: TrainingConfig
    ) -> None:
        cb = AtomicCheckpointCallback(tmp_path, small_config)
        cb.on_train_epoch_end(_trainer(current_epoch=3), module)  # type: ignore[arg-type]

        state = load_state_dict(tmp_path / "model.pt")
        assert set(state) == set(module.net.state_dict())
        assert cb.saved_epochs == [3]
        assert TrainingConfig.load(tmp_path / "config.json") == small_config

    def test_skips_sanity_check(
        self, tmp_path: Path, module: DigitClassificationModel, small_config: TrainingConfig
    ) -> None:
        cb = AtomicCheckpointCallback(tmp_path, small_config)
        cb.on_train_epoch_end(_trainer(sanity_checking=True), module)  # type: ignore[arg-type]
        assert not (tmp_path / "model.pt").exists()
        assert not (tmp_path / "config.json").exists()


# ---------------------------------------------------------------------------
# TrainingHistoryCallback
# ---------------------------------------------------------------------------


class TestTrainingHistory:
    def test_row_per_epoch(self, tmp_path: Path, module: DigitClassificationModel) -> None:
        cb = TrainingHistoryCallback(output_dir=tmp_path)
        trainer = _trainer(
            callback_metrics={
                "val/loss": torch.tensor(1.5),
                "val/acc_top1": torch.tensor(0.25),
            }
        )
        cb.on_train_epoch_start(trainer, module)  # type: ignore[arg-type]
        cb.on_train_batch_end(trainer, module, torch.tensor(1.0), {}, 0)  # type: ignore[arg-type]
        cb.on_train_batch_end(trainer, module, {"loss": torch.tensor(3.0)}, {}, 1)  # type: ignore[arg-type]
        cb.on_validation_epoch_end(trainer, module)  # type: ignore[arg-type]
        cb.on_train_epoch_end(trainer, module)  # type: ignore[arg-type]

        assert cb.history == [
            {"epoch": 0, "train_loss": 2.0, "val_loss": 1.5, "val_acc_top1": 0.25}
        ]
        assert cb.train_passes == 1
        assert cb.validation_passes == 1

    def test_sanity_validation_not_counted(self, module: DigitClassificationModel) -> None:
        cb = TrainingHistoryCallback()
        cb.on_validation_epoch_end(_trainer(sanity_checking=True), module)  # type: ignore[arg-type]
        assert cb.validation_passes == 0

    def test_plot_writes_pngs(self, tmp_path: Path, module: DigitClassificationModel) -> None:
        cb = TrainingHistoryCallback(output_dir=tmp_path, plot=True)
        trainer = _trainer(callback_metrics={"val/loss": torch.tensor(1.0)})
        cb.on_train_epoch_start(trainer, module)  # type: ignore[arg-type]
        cb.on_train_batch_end(trainer, module, torch.tensor(1.0), {}, 0)  # type: ignore[arg-type]
        cb.on_train_epoch_end(trainer, module)  # type: ignore[arg-type]

        out = tmp_path / "training_history"
        assert (out / "loss_history.png").exists()
        assert (out / "accuracy_history.png").exists()


# ---------------------------------------------------------------------------
# Reporting callbacks
# ---------------------------------------------------------------------------


class TestReportingCallbacks:
    def test_model_info_prints_table(
        self, module: DigitClassificationModel, capsys: pytest.CaptureFixture[str]
    ) -> None:
        ModelInfoCallback().on_fit_start(_trainer(), module)  # type: ignore[arg-type]
        out = capsys.readouterr().out
        assert "Total Parameters" in out
        assert "conv1" in out

    def test_statistics_prints_zero_filled_classes(
        self,
        module: DigitClassificationModel,
        records: list[RawImageRecord],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        dataset = RecordListDataset(records[:2])
        trainer = _trainer(datamodule=SimpleNamespace(train_dataset=dataset))
        DatasetStatisticsCallback().on_fit_start(trainer, module)  # type: ignore[arg-type]
        out = capsys.readouterr().out
        assert "Dataset Class Distribution" in out
        assert "0.0%" in out

    def test_statistics_without_datamodule(self, module: DigitClassificationModel) -> None:
        DatasetStatisticsCallback().on_fit_start(_trainer(), module)  # type: ignore[arg-type]

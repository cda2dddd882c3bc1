"""Tests for MnistDataModule."""

import pytest
import torch

from digit_classifier.config import DataModuleConfig
from digit_classifier.data import MnistDataModule
from digit_classifier.synthetic import SyntheticDigitDataset


def _datamodule(
    train: SyntheticDigitDataset, val: SyntheticDigitDataset, **overrides: object
) -> MnistDataModule:
    cfg = DataModuleConfig(batch_size=4, num_workers=0, **overrides)  # type: ignore[arg-type]
    dm = MnistDataModule(cfg, train_dataset=train, val_dataset=val)
    dm.setup("fit")
    return dm


class TestMnistDataModule:
    def test_injected_datasets_are_kept(
        self, synthetic_train: SyntheticDigitDataset, synthetic_val: SyntheticDigitDataset
    ) -> None:
        dm = _datamodule(synthetic_train, synthetic_val)
        assert dm.train_dataset is synthetic_train
        assert dm.val_dataset is synthetic_val

    def test_train_batches_come_from_batcher(
        self, synthetic_train: SyntheticDigitDataset, synthetic_val: SyntheticDigitDataset
    ) -> None:
        dm = _datamodule(synthetic_train, synthetic_val)
        batch = next(iter(dm.train_dataloader()))
        assert batch["images"].shape == (4, 28, 28)
        assert batch["images"].dtype == torch.float32
        assert batch["labels"].shape == (4,)

    def test_number_of_train_batches(
        self, synthetic_train: SyntheticDigitDataset, synthetic_val: SyntheticDigitDataset
    ) -> None:
        dm = _datamodule(synthetic_train, synthetic_val)
        assert len(dm.train_dataloader()) == 2
        assert len(dm.val_dataloader()) == 1

    def test_seeded_shuffle_is_reproducible(
        self, synthetic_train: SyntheticDigitDataset, synthetic_val: SyntheticDigitDataset
    ) -> None:
        def order(dm: MnistDataModule) -> list[int]:
            return [
                label for batch in dm.train_dataloader() for label in batch["labels"].tolist()
            ]

        first = order(_datamodule(synthetic_train, synthetic_val, seed=7))
        second = order(_datamodule(synthetic_train, synthetic_val, seed=7))
        assert first == second
        assert sorted(first) == sorted(synthetic_train.labels)

    @pytest.mark.parametrize("num_workers", [1, 2])
    def test_epoch_order_independent_of_worker_count(
        self,
        synthetic_train: SyntheticDigitDataset,
        synthetic_val: SyntheticDigitDataset,
        num_workers: int,
    ) -> None:
        def epochs(workers: int, count: int = 3) -> list[list[list[int]]]:
            cfg = DataModuleConfig(
                batch_size=3, num_workers=workers, persistent_workers=True, seed=5
            )
            dm = MnistDataModule(cfg, train_dataset=synthetic_train, val_dataset=synthetic_val)
            loader = dm.train_dataloader()
            assert loader.persistent_workers is (workers > 0)
            return [[batch["labels"].tolist() for batch in loader] for _ in range(count)]

        single = epochs(0)
        assert epochs(num_workers) == single
        assert single[0] != single[1] or single[1] != single[2]

    def test_no_shuffle_keeps_dataset_order(
        self, synthetic_train: SyntheticDigitDataset, synthetic_val: SyntheticDigitDataset
    ) -> None:
        dm = _datamodule(synthetic_train, synthetic_val, shuffle=False)
        labels = [label for batch in dm.train_dataloader() for label in batch["labels"].tolist()]
        assert labels == synthetic_train.labels

    def test_val_loader_is_sequential(
        self, synthetic_train: SyntheticDigitDataset, synthetic_val: SyntheticDigitDataset
    ) -> None:
        dm = _datamodule(synthetic_train, synthetic_val)
        labels = [label for batch in dm.val_dataloader() for label in batch["labels"].tolist()]
        assert labels == synthetic_val.labels

    def test_persistent_workers_disabled_without_workers(
        self, synthetic_train: SyntheticDigitDataset, synthetic_val: SyntheticDigitDataset
    ) -> None:
        dm = _datamodule(synthetic_train, synthetic_val)
        assert dm.train_dataloader().persistent_workers is False

    def test_dataloader_before_setup_raises(self) -> None:
        dm = MnistDataModule(DataModuleConfig(num_workers=0))
        with pytest.raises(RuntimeError, match="setup"):
            dm.train_dataloader()

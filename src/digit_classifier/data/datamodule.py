"""LightningDataModule feeding MNIST-layout records through the batcher."""

from __future__ import annotations

import lightning as L
import torch
from loguru import logger
from torch.utils.data import DataLoader, RandomSampler

from digit_classifier.config import DataModuleConfig, NormalizationConfig
from digit_classifier.data.batcher import MnistBatcher
from digit_classifier.data.dataset import MnistRecordDataset, RecordDataset
from digit_classifier.types import RawImageRecord


class MnistDataModule(L.LightningDataModule):
    """DataModule for the train and validation splits.

    Datasets can be injected (tests, synthetic runs); otherwise the MNIST
    train split is used for training and the MNIST test split for
    validation. The :class:`MnistBatcher` is the ``collate_fn`` of every
    loader, so normalization runs inside the DataLoader workers. Batches
    are built on CPU; the Trainer moves them to the training device.

    The training loader shuffles through a :class:`RandomSampler` that owns
    a generator seeded from ``config.seed``. The DataLoader draws worker
    base seeds from a second generator, once per iterator, so persistent
    workers do not shift the shuffle stream: with a fixed seed the
    epoch-by-epoch batch order is the same whatever ``num_workers`` is.

    Args:
        config: DataModuleConfig frozen model with all DataLoader parameters.
            If provided, flat kwargs are ignored.
        train_dataset: Records for the training pass.
        val_dataset: Records for the validation pass.
        normalization: Pixel statistics handed to the batcher.
        data_root: MNIST directory, used when datasets are not injected.
        download: Download MNIST into ``data_root`` when missing.
        batch_size: Batch size for DataLoaders (default: 64).
        num_workers: Number of DataLoader workers (default: 4).
        pin_memory: Whether to pin memory (default: False).
        persistent_workers: Keep workers alive between epochs (default: True).
        shuffle: Shuffle the training split each epoch (default: True).
        seed: Seed of the shuffling generator (default: 42).
    """

    def __init__(
        self,
        config: DataModuleConfig | None = None,
        *,
        train_dataset: RecordDataset | None = None,
        val_dataset: RecordDataset | None = None,
        normalization: NormalizationConfig | None = None,
        data_root: str = "./data",
        download: bool = True,
        batch_size: int = 64,
        num_workers: int = 4,
        pin_memory: bool = False,
        persistent_workers: bool = True,
        shuffle: bool = True,
        seed: int = 42,
    ) -> None:
        super().__init__()
        if config is not None:
            self._config = config
        else:
            self._config = DataModuleConfig(
                batch_size=batch_size,
                num_workers=num_workers,
                pin_memory=pin_memory,
                persistent_workers=persistent_workers,
                shuffle=shuffle,
                seed=seed,
            )
        self._data_root = data_root
        self._download = download
        self.batcher = MnistBatcher(normalization=normalization)

        # MPS guard: multiprocessing DataLoader workers crash on Apple Silicon.
        num_workers = self._config.num_workers
        if torch.backends.mps.is_available() and num_workers > 0:
            logger.warning(
                "MPS detected: setting num_workers=0 to avoid multiprocessing "
                "crash. Use linux-64 / CUDA for multi-worker DataLoading."
            )
            num_workers = 0

        self._num_workers = num_workers
        self._pin_memory = self._config.pin_memory
        # persistent_workers is meaningless (and silently ignored) with 0 workers
        self._persistent_workers = self._config.persistent_workers and num_workers > 0
        self._batch_size = self._config.batch_size

        self._train_dataset = train_dataset
        self._val_dataset = val_dataset

    @property
    def train_dataset(self) -> RecordDataset | None:
        return self._train_dataset

    @property
    def val_dataset(self) -> RecordDataset | None:
        return self._val_dataset

    def setup(self, stage: str | None = None) -> None:
        """Load MNIST splits that were not injected.

        Args:
            stage: "fit", "validate" or None. Other stages load nothing.
        """
        if stage not in ("fit", "validate", None):
            return
        if self._train_dataset is None and stage in ("fit", None):
            self._train_dataset = MnistRecordDataset(
                root=self._data_root, train=True, download=self._download
            )
        if self._val_dataset is None:
            self._val_dataset = MnistRecordDataset(
                root=self._data_root, train=False, download=self._download
            )
        logger.info(
            f"Setup {stage}: train={len(self._train_dataset or [])}, "
            f"val={len(self._val_dataset)} records"
        )

    def train_dataloader(self) -> DataLoader[RawImageRecord]:
        """Return the training DataLoader (seeded shuffle)."""
        if self._train_dataset is None:
            raise RuntimeError("Call setup('fit') first")
        sampler = None
        if self._config.shuffle:
            shuffle_generator = torch.Generator()
            shuffle_generator.manual_seed(self._config.seed)
            sampler = RandomSampler(self._train_dataset, generator=shuffle_generator)
        worker_generator = torch.Generator()
        worker_generator.manual_seed(self._config.seed)
        return DataLoader(
            self._train_dataset,
            batch_size=self._batch_size,
            sampler=sampler,
            generator=worker_generator,
            num_workers=self._num_workers,
            pin_memory=self._pin_memory,
            persistent_workers=self._persistent_workers,
            collate_fn=self.batcher,
        )

    def val_dataloader(self) -> DataLoader[RawImageRecord]:
        """Return the validation DataLoader (deterministic order)."""
        if self._val_dataset is None:
            raise RuntimeError("Call setup('fit') first")
        return DataLoader(
            self._val_dataset,
            batch_size=self._batch_size,
            shuffle=False,
            num_workers=self._num_workers,
            pin_memory=self._pin_memory,
            persistent_workers=self._persistent_workers,
            collate_fn=self.batcher,
        )

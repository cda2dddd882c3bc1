"""Data pipeline for digit_classifier."""

from digit_classifier.data.batcher import MnistBatcher
from digit_classifier.data.datamodule import MnistDataModule
from digit_classifier.data.dataset import (
    MnistRecordDataset,
    RecordDataset,
    RecordListDataset,
)

__all__ = [
    "MnistBatcher",
    "MnistDataModule",
    "MnistRecordDataset",
    "RecordDataset",
    "RecordListDataset",
]

"""Record datasets: MNIST on disk and in-memory record lists."""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from loguru import logger
from torch.utils.data import Dataset
from torchvision import datasets

from digit_classifier.types import RawImageRecord


class RecordDataset(Dataset[RawImageRecord]):
    """Indexable source of :class:`RawImageRecord`.

    Subclasses implement ``__len__`` and ``__getitem__``. Records are
    returned unnormalized; normalization happens in the batcher.
    """

    def __len__(self) -> int:
        raise NotImplementedError

    def __getitem__(self, index: int) -> RawImageRecord:
        raise NotImplementedError

    def get(self, index: int) -> RawImageRecord:
        """Return record ``index``, raising ``IndexError`` when out of range."""
        if not 0 <= index < len(self):
            raise IndexError(
                f"Record index {index} out of range for dataset of size {len(self)}"
            )
        return self[index]

    def __iter__(self) -> Iterator[RawImageRecord]:
        for index in range(len(self)):
            yield self[index]

    @property
    def labels(self) -> list[int]:
        """Label of every record, in index order."""
        return [self[i].label for i in range(len(self))]


class RecordListDataset(RecordDataset):
    """Dataset over an in-memory sequence of records."""

    def __init__(self, records: Sequence[RawImageRecord]) -> None:
        self.records = list(records)

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, index: int) -> RawImageRecord:
        return self.records[index]


class MnistRecordDataset(RecordDataset):
    """MNIST split read through torchvision, exposed as raw 28x28 records.

    torchvision keeps the whole split as one uint8 tensor (``data``) plus a
    label tensor (``targets``); records are sliced out of those without the
    PIL round trip.

    Args:
        root: Directory holding (or receiving) the MNIST files.
        train: Training split if True, test split otherwise.
        download: Download the files when they are not present.
    """

    def __init__(self, root: str = "./data", train: bool = True, download: bool = True) -> None:
        self._mnist = datasets.MNIST(root=root, train=train, download=download)
        split = "train" if train else "test"
        logger.info(f"MNIST {split}: {len(self._mnist)} records from {root}")

    def __len__(self) -> int:
        return len(self._mnist)

    def __getitem__(self, index: int) -> RawImageRecord:
        return RawImageRecord(
            image=self._mnist.data[index].numpy(),
            label=int(self._mnist.targets[index]),
        )

    @property
    def labels(self) -> list[int]:
        return self._mnist.targets.tolist()  # type: ignore[no-any-return]

"""Tests for artifact directory I/O."""

from pathlib import Path

import pytest
import torch

from digit_classifier.config import ModelConfig, TrainingConfig
from digit_classifier.errors import ConfigMismatchError, LoadError
from digit_classifier.io import artifacts
from digit_classifier.io.artifacts import (
    apply_state_dict,
    atomic_write_bytes,
    load_state_dict,
    save_checkpoint,
    save_state_dict,
)


class TestAtomicWrite:
    def test_writes_and_replaces(self, tmp_path: Path) -> None:
        path = tmp_path / "file.bin"
        atomic_write_bytes(path, b"first")
        atomic_write_bytes(path, b"second")
        assert path.read_bytes() == b"second"

    def test_creates_parent_dirs(self, tmp_path: Path) -> None:
        path = tmp_path / "a" / "b" / "file.bin"
        atomic_write_bytes(path, b"x")
        assert path.read_bytes() == b"x"

    def test_failed_replace_keeps_old_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = tmp_path / "model.pt"
        atomic_write_bytes(path, b"complete")

        def _fail(src: str, dst: object) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(artifacts.os, "replace", _fail)
        with pytest.raises(OSError, match="disk full"):
            atomic_write_bytes(path, b"partial")

        assert path.read_bytes() == b"complete"
        assert [p.name for p in tmp_path.iterdir()] == ["model.pt"]


class TestStateDict:
    def test_save_load_apply(self, tmp_path: Path) -> None:
        source = ModelConfig(num_classes=4, hidden_size=8).init()
        target = ModelConfig(num_classes=4, hidden_size=8).init()
        path = save_state_dict(source, tmp_path / "model.pt")

        apply_state_dict(target, load_state_dict(path))
        for name, tensor in source.state_dict().items():
            assert torch.equal(target.state_dict()[name], tensor)

    def test_missing_checkpoint(self, tmp_path: Path) -> None:
        with pytest.raises(LoadError, match="not found"):
            load_state_dict(tmp_path / "model.pt")

    def test_corrupt_checkpoint(self, tmp_path: Path) -> None:
        path = tmp_path / "model.pt"
        path.write_bytes(b"not a checkpoint")
        with pytest.raises(LoadError):
            load_state_dict(path)

    def test_shape_mismatch_names_parameter(self, tmp_path: Path) -> None:
        path = save_state_dict(ModelConfig(hidden_size=32).init(), tmp_path / "model.pt")
        with pytest.raises(ConfigMismatchError, match="linear1.weight"):
            apply_state_dict(ModelConfig(hidden_size=16).init(), load_state_dict(path))

    def test_missing_keys(self) -> None:
        model = ModelConfig(hidden_size=8).init()
        state = dict(model.state_dict())
        del state["linear2.bias"]
        with pytest.raises(ConfigMismatchError, match="missing"):
            apply_state_dict(model, state)


class TestSaveCheckpoint:
    def test_writes_weights_and_config(
        self, tmp_path: Path, small_config: TrainingConfig
    ) -> None:
        model = small_config.model.init()
        path = save_checkpoint(model, small_config, tmp_path)
        assert path == tmp_path / "model.pt"
        assert TrainingConfig.load(tmp_path / "config.json") == small_config
        assert set(load_state_dict(path)) == set(model.state_dict())

    def test_failed_write_keeps_previous_pair(
        self, tmp_path: Path, small_config: TrainingConfig, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        save_checkpoint(small_config.model.init(), small_config, tmp_path)
        before = {p.name: p.read_bytes() for p in tmp_path.iterdir()}

        wider = small_config.model_copy(
            update={"model": ModelConfig(num_classes=4, hidden_size=32)}
        )

        stage = artifacts._stage

        def _fail_on_config(path: Path, data: bytes) -> Path:
            if path.name == "config.json":
                raise OSError("disk full")
            return stage(path, data)

        monkeypatch.setattr(artifacts, "_stage", _fail_on_config)
        with pytest.raises(OSError, match="disk full"):
            save_checkpoint(wider.model.init(), wider, tmp_path)

        assert {p.name: p.read_bytes() for p in tmp_path.iterdir()} == before

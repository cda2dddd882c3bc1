"""Compute backend handle threaded through the batcher, model and inferencer."""

from __future__ import annotations

from typing import TypeVar

import torch
from loguru import logger
from pydantic import BaseModel

from digit_classifier.errors import UsageError

ModuleT = TypeVar("ModuleT", bound=torch.nn.Module)


class ComputeBackend(BaseModel, frozen=True, arbitrary_types_allowed=True):
    """Where tensors live and whether gradients are tracked.

    The rest of the package never inspects the device; it only asks the
    backend to create or place tensors and modules.

    Args:
        device: Torch device tensors are created on.
        dtype: Floating-point element type for images and parameters.
        autodiff: Whether gradient tracking is wanted. Inference backends
            set this to False and run under ``torch.inference_mode``.
    """

    device: torch.device = torch.device("cpu")
    dtype: torch.dtype = torch.float32
    autodiff: bool = True

    @property
    def accelerator(self) -> str:
        """Lightning accelerator name for this device."""
        if self.device.type == "cuda":
            return "gpu"
        return self.device.type

    @property
    def devices(self) -> list[int] | int:
        """Lightning ``devices`` argument selecting exactly this device."""
        if self.device.type == "cuda":
            return [self.device.index or 0]
        return 1

    def without_autodiff(self) -> ComputeBackend:
        """Same device and dtype, gradient tracking disabled."""
        return self.model_copy(update={"autodiff": False})

    def float_tensor(self, data: object) -> torch.Tensor:
        """Copy ``data`` into a new tensor; read-only record arrays stay untouched."""
        return torch.tensor(data, dtype=self.dtype, device=self.device)

    def int_tensor(self, data: object) -> torch.Tensor:
        return torch.as_tensor(data, dtype=torch.long, device=self.device)

    def place(self, module: ModuleT) -> ModuleT:
        """Move ``module`` onto this backend and set its gradient tracking."""
        module = module.to(device=self.device, dtype=self.dtype)
        module.requires_grad_(self.autodiff)
        return module


def resolve_backend(selector: str = "auto", autodiff: bool = True) -> ComputeBackend:
    """Build a backend from a device selector string.

    ``"auto"`` picks CUDA, then MPS, then CPU. Anything else is handed to
    ``torch.device`` (``"cpu"``, ``"cuda"``, ``"cuda:1"``, ``"mps"``).
    """
    if selector == "auto":
        if torch.cuda.is_available():
            selector = "cuda:0"
        elif torch.backends.mps.is_available():
            selector = "mps"
        else:
            selector = "cpu"
    try:
        device = torch.device(selector)
    except RuntimeError as e:
        raise UsageError(f"Unknown device selector: {selector!r}") from e
    logger.info(f"Device: {device}")
    return ComputeBackend(device=device, autodiff=autodiff)

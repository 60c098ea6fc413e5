"""Backend availability detection (CUDA / MPS / CPU).

Every kernel in this package is plain torch, so the same code runs on any
device torch supports. This module only decides which device to use.
"""

from __future__ import annotations

import platform

import torch

__all__ = [
    "cuda_supported",
    "mps_supported",
    "get_device",
    "resolve_device",
]


def cuda_supported() -> bool:
    return bool(torch.cuda.is_available())


def mps_supported() -> bool:
    """Whether the current runtime can execute on Apple Silicon (MPS)."""
    if platform.system() != "Darwin":
        return False
    try:
        return bool(torch.backends.mps.is_available())
    except (AttributeError, RuntimeError):
        return False


def get_device() -> str:
    """Pick the fastest available device."""
    if cuda_supported():
        return "cuda"
    if mps_supported():
        return "mps"
    return "cpu"


def resolve_device(requested: str | torch.device | None) -> torch.device:
    """Return `requested` as a torch.device, or the fastest one if None."""
    if requested is None or str(requested) == "auto":
        return torch.device(get_device())
    return torch.device(requested)

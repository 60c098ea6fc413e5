"""Field storage: double-buffered trail field, deposit scratch, presentation image.

The trail field lives in a fixed pair of `(S, H, W)` tensors. `active_index`
names the copy that holds the current state; kernels read it and write the
other copy, and the orchestrator flips the index once the write is ordered.
"""

from __future__ import annotations

from dataclasses import dataclass

import torch

from .errors import FatalInitError


@dataclass
class TrailField:
    buffers: tuple[torch.Tensor, torch.Tensor]  # two (S, H, W) float32 copies (A, B)

    @classmethod
    def allocate(
        cls,
        species_count: int,
        height: int,
        width: int,
        *,
        device: torch.device,
        dtype: torch.dtype = torch.float32,
    ) -> "TrailField":
        shape = (int(species_count), int(height), int(width))
        try:
            a = torch.zeros(shape, device=device, dtype=dtype)
            b = torch.zeros(shape, device=device, dtype=dtype)
        except (RuntimeError, MemoryError) as e:
            raise FatalInitError(f"failed to allocate trail field {shape} on {device}: {e}") from e
        return cls(buffers=(a, b))

    @property
    def shape(self) -> tuple[int, int, int]:
        return tuple(self.buffers[0].shape)  # type: ignore[return-value]

    def read(self, active_index: int) -> torch.Tensor:
        """The copy holding the current state."""
        return self.buffers[int(active_index) & 1]

    def write_target(self, active_index: int) -> torch.Tensor:
        """The copy kernels write the next state into."""
        return self.buffers[(int(active_index) & 1) ^ 1]


@dataclass
class DepositField:
    values: torch.Tensor  # (S, H, W) float32, additive scratch for one sub-step

    @classmethod
    def allocate(
        cls,
        species_count: int,
        height: int,
        width: int,
        *,
        device: torch.device,
    ) -> "DepositField":
        shape = (int(species_count), int(height), int(width))
        try:
            values = torch.zeros(shape, device=device, dtype=torch.float32)
        except (RuntimeError, MemoryError) as e:
            raise FatalInitError(f"failed to allocate deposit field {shape} on {device}: {e}") from e
        return cls(values=values)

    def clear(self) -> None:
        self.values.zero_()

    def is_clear(self) -> bool:
        return not bool(torch.any(self.values != 0.0).item())


def allocate_presentation(height: int, width: int, *, device: torch.device) -> torch.Tensor:
    """RGBA8 presentation buffer, `(H, W, 4)` uint8."""
    try:
        return torch.zeros((int(height), int(width), 4), device=device, dtype=torch.uint8)
    except (RuntimeError, MemoryError) as e:
        raise FatalInitError(f"failed to allocate presentation buffer on {device}: {e}") from e

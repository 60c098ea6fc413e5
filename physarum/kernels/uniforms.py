"""Device-side settings tables and the per-sub-step time uniform.

Settings dataclasses are converted once into tensors indexed by species so the
kernels can gather per-agent parameters with a single index operation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import torch

from ..config import DisplaySettings, SpeciesSettings


@dataclass(frozen=True)
class TimeUniform:
    total: float  # elapsed simulated time at the start of the sub-step
    delta: float  # fixed sub-step length


@dataclass(frozen=True)
class SpeciesTable:
    trail_weight: torch.Tensor   # (S,)
    move_speed: torch.Tensor     # (S,)
    turn_speed: torch.Tensor     # (S,)
    sensor_angle: torch.Tensor   # (S,) radians
    sensor_offset: torch.Tensor  # (S,)
    sensing_weights: torch.Tensor  # (S, S) row s weights every layer for species s
    sensor_sizes: tuple[int, ...]  # host-side, used to group layers by stencil radius

    @classmethod
    def from_settings(cls, species: tuple[SpeciesSettings, ...], *, device: torch.device) -> "SpeciesTable":
        n = len(species)

        def column(name: str) -> torch.Tensor:
            return torch.tensor([float(getattr(s, name)) for s in species], device=device, dtype=torch.float32)

        weights = torch.empty((n, n), dtype=torch.float32)
        for i, s in enumerate(species):
            weights[i].fill_(float(s.cross_follow))
            weights[i, i] = float(s.self_follow)

        return cls(
            trail_weight=column("trail_weight"),
            move_speed=column("move_speed"),
            turn_speed=column("turn_speed"),
            sensor_angle=torch.tensor(
                [math.radians(float(s.sensor_angle_degrees)) for s in species],
                device=device,
                dtype=torch.float32,
            ),
            sensor_offset=column("sensor_offset"),
            sensing_weights=weights.to(device),
            sensor_sizes=tuple(int(s.sensor_size) for s in species),
        )

    @property
    def species_count(self) -> int:
        return int(self.trail_weight.shape[0])


@dataclass(frozen=True)
class DisplayTable:
    color_weight: torch.Tensor  # (S, 3) colour premultiplied by weight

    @classmethod
    def from_settings(cls, display: tuple[DisplaySettings, ...], *, device: torch.device) -> "DisplayTable":
        rows = [[float(c) * float(d.weight) for c in d.color] for d in display]
        return cls(color_weight=torch.tensor(rows, device=device, dtype=torch.float32).reshape(len(display), 3))

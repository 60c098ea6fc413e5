"""Agent population stored as a structure of arrays.

One row per agent across three tensors. The batch is created once and updated
in place by the update kernel for the whole run; its size never changes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import torch

from .config import SimulationConfig
from .errors import FatalInitError

AGENT_FIELDS: tuple[str, ...] = (
    "positions",
    "directions",
    "species",
)


@dataclass
class AgentBatch:
    positions: torch.Tensor   # (N, 2) float32, (x, y) in field pixels
    directions: torch.Tensor  # (N,) float32 heading in radians
    species: torch.Tensor     # (N,) int64 species index

    def __post_init__(self) -> None:
        if self.positions.ndim != 2 or self.positions.shape[1] != 2:
            raise ValueError(f"positions must have shape (N,2), got {tuple(self.positions.shape)}")
        n = int(self.positions.shape[0])
        if self.directions.shape != (n,):
            raise ValueError(f"directions must have shape (N,), got {tuple(self.directions.shape)}")
        if self.species.shape != (n,):
            raise ValueError(f"species must have shape (N,), got {tuple(self.species.shape)}")

    @classmethod
    def from_state(cls, state: dict[str, torch.Tensor], device: torch.device) -> "AgentBatch":
        return cls(
            positions=state["positions"].to(device=device, dtype=torch.float32).contiguous(),
            directions=state["directions"].to(device=device, dtype=torch.float32).contiguous(),
            species=state["species"].to(device=device, dtype=torch.int64).contiguous(),
        )

    def to_state(self) -> dict[str, torch.Tensor]:
        return {
            "positions": self.positions,
            "directions": self.directions,
            "species": self.species,
        }

    def size(self) -> int:
        return int(self.positions.shape[0])

    @property
    def device(self) -> torch.device:
        return self.positions.device


def round_robin_species(count: int, species_count: int, *, device: torch.device) -> torch.Tensor:
    return torch.arange(count, device=device, dtype=torch.int64) % int(species_count)


def spawn_disk(
    count: int,
    *,
    center: tuple[float, float],
    radius: float,
    species_count: int,
    inward: bool = True,
    generator: torch.Generator | None = None,
    device: torch.device | str = "cpu",
) -> AgentBatch:
    """Uniform-in-disk placement with headings toward (or away from) the centre."""
    dev = torch.device(device)
    # sqrt of a uniform radius fraction gives uniform density over the disk area
    r = float(radius) * torch.sqrt(torch.rand(count, generator=generator, dtype=torch.float32))
    theta = (torch.rand(count, generator=generator, dtype=torch.float32) * 2.0 - 1.0) * math.pi
    offset = torch.stack((torch.cos(theta), torch.sin(theta)), dim=1) * r[:, None]
    positions = offset + torch.tensor(center, dtype=torch.float32)
    sign = -1.0 if inward else 1.0
    directions = torch.atan2(sign * offset[:, 1], sign * offset[:, 0])
    return AgentBatch(
        positions=positions.to(dev),
        directions=directions.to(dev),
        species=round_robin_species(count, species_count, device=dev),
    )


def spawn_point(
    count: int,
    *,
    center: tuple[float, float],
    species_count: int,
    generator: torch.Generator | None = None,
    device: torch.device | str = "cpu",
) -> AgentBatch:
    """Every agent at the centre with a uniformly random heading."""
    dev = torch.device(device)
    directions = (torch.rand(count, generator=generator, dtype=torch.float32) * 2.0 - 1.0) * math.pi
    positions = torch.tensor(center, dtype=torch.float32).expand(count, 2).clone()
    return AgentBatch(
        positions=positions.to(dev),
        directions=directions.to(dev),
        species=round_robin_species(count, species_count, device=dev),
    )


def spawn_agents(config: SimulationConfig, device: torch.device) -> AgentBatch:
    """Generate the initial population described by `config`.

    Random draws happen on the CPU with a seeded generator so a seed gives the
    same population on every device.
    """
    generator = torch.Generator(device="cpu")
    generator.manual_seed(int(config.seed))
    center = (config.width / 2.0, config.height / 2.0)
    if config.spawn == "point":
        return spawn_point(
            config.agent_count,
            center=center,
            species_count=config.species_count,
            generator=generator,
            device=device,
        )
    if config.spawn in ("disk_inward", "disk_outward"):
        return spawn_disk(
            config.agent_count,
            center=center,
            radius=config.resolved_spawn_radius,
            species_count=config.species_count,
            inward=config.spawn == "disk_inward",
            generator=generator,
            device=device,
        )
    raise FatalInitError(f"unknown spawn layout {config.spawn!r}")

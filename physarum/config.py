"""Configuration for the physarum simulation.

All settings are frozen dataclasses built once at startup. `validate()` is the
single gate between a configuration and the allocation of device resources; an
invalid configuration raises `FatalInitError` and the run never starts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from .errors import FatalInitError

SPAWN_LAYOUTS = ("disk_inward", "disk_outward", "point")


@dataclass(frozen=True)
class SpeciesSettings:
    """Movement and deposit tuning for one species."""

    trail_weight: float = 5.0
    self_follow: float = 4.0
    move_speed: float = 15.0
    turn_speed: float = 15.0
    sensor_angle_degrees: float = 30.0
    sensor_offset: float = 25.0
    sensor_size: int = 1
    # Weight of every other species' layer when sensing (negative repels).
    cross_follow: float = -1.0


@dataclass(frozen=True)
class GlobalSettings:
    # Fraction of trail lost per unit of simulated time.
    decay_rate: float = 0.5
    # Blend strength toward the 3x3 neighbourhood mean per unit of simulated time.
    diffuse_rate: float = 4.0


@dataclass(frozen=True)
class DisplaySettings:
    color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    weight: float = 1.0


def hue_to_rgb(hue: float) -> tuple[float, float, float]:
    """HSV(hue, 1, 1) to RGB; hue wraps into [0, 1)."""
    adj = (hue % 1.0) * 6.0
    v = 1.0 - abs(adj % 2.0 - 1.0)
    sector = int(adj) % 6
    if sector == 0:
        return (1.0, v, 0.0)
    if sector == 1:
        return (v, 1.0, 0.0)
    if sector == 2:
        return (0.0, 1.0, v)
    if sector == 3:
        return (0.0, v, 1.0)
    if sector == 4:
        return (v, 0.0, 1.0)
    return (1.0, 0.0, v)


def generate_species(
    species_count: int,
    *,
    template: SpeciesSettings | None = None,
    weight: float = 1.0,
    hue_offset: float = 0.2,
) -> tuple[tuple[SpeciesSettings, ...], tuple[DisplaySettings, ...]]:
    """Build `species_count` behaviour entries and a smooth hue cycle of colours."""
    if species_count <= 0:
        raise FatalInitError(f"species_count must be positive, got {species_count}")
    behaviour = template if template is not None else SpeciesSettings()
    species = tuple(behaviour for _ in range(species_count))
    display = tuple(
        DisplaySettings(color=hue_to_rgb(hue_offset + i / species_count), weight=float(weight))
        for i in range(species_count)
    )
    return species, display


@dataclass(frozen=True)
class SimulationConfig:
    """Per-run constants for the simulation engine."""

    # Population and field
    agent_count: int = 500_000
    width: int = 1080
    height: int = 1080
    species: tuple[SpeciesSettings, ...] = field(default_factory=lambda: generate_species(8)[0])
    display: tuple[DisplaySettings, ...] = field(default_factory=lambda: generate_species(8)[1])
    global_settings: GlobalSettings = field(default_factory=GlobalSettings)

    # Time stepping: `runs_per_frame` fixed sub-steps per displayed frame
    fixed_delta_time: float = 1.0 / 50.0
    runs_per_frame: int = 5

    # Dispatch sizing
    workgroup_size: int = 32
    layers_per_texture: int = 4

    # Initial population
    spawn: str = "disk_inward"
    spawn_radius: Optional[float] = None  # None: min(width, height) / 2 - 20
    seed: int = 0

    # Device (None picks cuda, then mps, then cpu)
    device: Optional[str] = None

    # Presentation and optional disk capture
    display_enabled: bool = True
    capture_dir: Optional[Path] = None
    capture_async: bool = False

    @classmethod
    def generated(
        cls,
        species_count: int = 8,
        *,
        template: SpeciesSettings | None = None,
        **overrides,
    ) -> "SimulationConfig":
        """Config with `species_count` generated species and hue-cycled colours."""
        species, display = generate_species(species_count, template=template)
        return cls(species=species, display=display, **overrides)

    @property
    def species_count(self) -> int:
        return len(self.species)

    @property
    def texture_slices(self) -> int:
        """Number of packed layer groups (`layers_per_texture` species each)."""
        return -(-self.species_count // self.layers_per_texture)

    @property
    def resolved_spawn_radius(self) -> float:
        if self.spawn_radius is not None:
            return float(self.spawn_radius)
        return max(min(self.width, self.height) / 2.0 - 20.0, 0.0)

    def with_overrides(self, **changes) -> "SimulationConfig":
        return replace(self, **changes)

    def validate(self) -> "SimulationConfig":
        """Raise FatalInitError if the configuration cannot run."""
        if self.species_count == 0:
            raise FatalInitError("at least one species is required")
        if len(self.display) != self.species_count:
            raise FatalInitError(
                f"display settings ({len(self.display)}) must match species count ({self.species_count})"
            )
        for name in ("agent_count", "width", "height", "runs_per_frame", "workgroup_size", "layers_per_texture"):
            value = getattr(self, name)
            if int(value) <= 0:
                raise FatalInitError(f"{name} must be positive, got {value}")
        if not (math.isfinite(self.fixed_delta_time) and self.fixed_delta_time > 0.0):
            raise FatalInitError(f"fixed_delta_time must be > 0, got {self.fixed_delta_time}")
        if self.spawn not in SPAWN_LAYOUTS:
            raise FatalInitError(f"unknown spawn layout {self.spawn!r}; expected one of {SPAWN_LAYOUTS}")
        if self.spawn_radius is not None and not (math.isfinite(self.spawn_radius) and self.spawn_radius >= 0.0):
            raise FatalInitError(f"spawn_radius must be >= 0, got {self.spawn_radius}")

        g = self.global_settings
        for name in ("decay_rate", "diffuse_rate"):
            value = getattr(g, name)
            if not (math.isfinite(value) and value >= 0.0):
                raise FatalInitError(f"global {name} must be finite and >= 0, got {value}")

        for i, s in enumerate(self.species):
            numbers = (
                s.trail_weight, s.self_follow, s.cross_follow, s.move_speed,
                s.turn_speed, s.sensor_angle_degrees, s.sensor_offset,
            )
            if not all(math.isfinite(float(x)) for x in numbers):
                raise FatalInitError(f"species {i} has non-finite settings: {s}")
            if int(s.sensor_size) < 0:
                raise FatalInitError(f"species {i} sensor_size must be >= 0, got {s.sensor_size}")
        for i, d in enumerate(self.display):
            if len(d.color) != 3 or not all(math.isfinite(float(c)) for c in d.color):
                raise FatalInitError(f"display {i} color must be three finite floats, got {d.color}")
            if not math.isfinite(float(d.weight)):
                raise FatalInitError(f"display {i} weight must be finite, got {d.weight}")
        return self

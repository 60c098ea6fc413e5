"""Workgroup grid sizing for each kernel of a sub-step."""

from __future__ import annotations

from dataclasses import dataclass


def dispatch_groups(n: int, workgroup_size: int) -> int:
    """ceil(n / workgroup_size)."""
    if workgroup_size <= 0:
        raise ValueError(f"workgroup_size must be positive, got {workgroup_size}")
    return -(-int(n) // int(workgroup_size))


@dataclass(frozen=True)
class DispatchGrid:
    update: tuple[int, int, int]
    blur: tuple[int, int, int]
    combine: tuple[int, int, int]

    @classmethod
    def for_field(
        cls,
        *,
        agent_count: int,
        width: int,
        height: int,
        species_count: int,
        workgroup_size: int = 32,
        layers_per_texture: int = 4,
    ) -> "DispatchGrid":
        gx = dispatch_groups(width, workgroup_size)
        gy = dispatch_groups(height, workgroup_size)
        return cls(
            update=(dispatch_groups(agent_count, workgroup_size), 1, 1),
            blur=(gx, gy, dispatch_groups(species_count, layers_per_texture)),
            combine=(gx, gy, 1),
        )

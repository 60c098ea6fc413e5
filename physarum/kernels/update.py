"""Agent kernel: sense, steer, move, reflect off the field edge, deposit.

Every agent is processed independently. The only shared write target is the
deposit field, which receives order-independent additive contributions, so
agents landing on the same cell never lose trail.

Steering policy:
- forward reading not below either side: keep heading;
- one side strictly higher than the other: turn toward it by `turn_speed * dt`;
- all three equal, or both sides equal and above forward: turn by a hashed
  jitter in `[-turn_speed * dt, turn_speed * dt)`.
"""

from __future__ import annotations

import math

import torch
import torch.nn.functional as F

from ..agents import AgentBatch
from .hashing import agent_uniform
from .uniforms import SpeciesTable, TimeUniform


def _upper_bound(extent: int) -> float:
    """Largest float32 strictly below `extent`."""
    bound = torch.nextafter(
        torch.tensor(float(extent), dtype=torch.float32),
        torch.tensor(0.0, dtype=torch.float32),
    )
    return float(bound.item())


def sensing_maps(trail: torch.Tensor, table: SpeciesTable) -> torch.Tensor:
    """Per-species sensed map, box-averaged with each species' sensor radius.

    trail: (S, H, W). Returns (S, H, W) where layer s is
    `sum_l w[s, l] * trail[l]` averaged over a `(2r+1)^2` window with edge
    replication, r being species s' sensor size.
    """
    weighted = torch.einsum("sl,lhw->shw", table.sensing_weights, trail)
    out = torch.empty_like(weighted)
    by_radius: dict[int, list[int]] = {}
    for s, r in enumerate(table.sensor_sizes):
        by_radius.setdefault(int(r), []).append(s)

    for r, layers in by_radius.items():
        idx = torch.tensor(layers, device=trail.device, dtype=torch.int64)
        group = weighted.index_select(0, idx)
        if r > 0:
            padded = F.pad(group.unsqueeze(0), (r, r, r, r), mode="replicate")
            group = F.avg_pool2d(padded, kernel_size=2 * r + 1, stride=1).squeeze(0)
        out.index_copy_(0, idx, group)
    return out


def _probe(
    sensed: torch.Tensor,
    species: torch.Tensor,
    x: torch.Tensor,
    y: torch.Tensor,
    angle: torch.Tensor,
    offset: torch.Tensor,
) -> torch.Tensor:
    _, h, w = sensed.shape
    px = x + torch.cos(angle) * offset
    py = y + torch.sin(angle) * offset
    ix = torch.floor(px).clamp(0, w - 1).to(torch.int64)
    iy = torch.floor(py).clamp(0, h - 1).to(torch.int64)
    return sensed[species, iy, ix]


def update_agents(
    agents: AgentBatch,
    table: SpeciesTable,
    trail: torch.Tensor,
    deposit: torch.Tensor,
    *,
    time: TimeUniform,
    sub_step: int,
    seed: int = 0,
) -> None:
    """Advance every agent by one sub-step in place and deposit its trail.

    trail: (S, H, W) current state, read only.
    deposit: (S, H, W) contiguous, accumulated into.
    """
    if trail.ndim != 3 or deposit.shape != trail.shape:
        raise ValueError(f"trail/deposit shape mismatch: {tuple(trail.shape)} vs {tuple(deposit.shape)}")
    n = agents.size()
    if n == 0:
        return

    _, h, w = trail.shape
    dt = float(time.delta)
    dev = agents.device
    sp = agents.species

    # Re-home anything non-finite before it reaches an index computation.
    pos = agents.positions
    center = torch.tensor([w / 2.0, h / 2.0], device=dev, dtype=torch.float32)
    finite = torch.isfinite(pos).all(dim=1, keepdim=True)
    pos = torch.where(finite, pos, center)
    theta = agents.directions
    theta = torch.where(torch.isfinite(theta), theta, torch.zeros_like(theta))
    x, y = pos[:, 0], pos[:, 1]

    # Sense
    sensed = sensing_maps(trail, table)
    angle = table.sensor_angle[sp]
    offset = table.sensor_offset[sp]
    forward = _probe(sensed, sp, x, y, theta, offset)
    left = _probe(sensed, sp, x, y, theta - angle, offset)
    right = _probe(sensed, sp, x, y, theta + angle, offset)

    # Steer
    turn = table.turn_speed[sp] * dt
    index = torch.arange(n, device=dev, dtype=torch.int64)
    jitter = (agent_uniform(index, sub_step, seed) - 0.5) * 2.0 * turn
    forward_best = (forward >= left) & (forward >= right)
    tied = ((forward == left) & (forward == right)) | (~forward_best & (left == right))
    steer = torch.zeros_like(theta)
    steer = torch.where(right > left, turn, steer)
    steer = torch.where(left > right, -turn, steer)
    steer = torch.where(forward_best, torch.zeros_like(steer), steer)
    steer = torch.where(tied, jitter, steer)
    theta = theta + steer

    # Move
    step = table.move_speed[sp] * dt
    nx = x + torch.cos(theta) * step
    ny = y + torch.sin(theta) * step

    # Reflect off the edge: mirror the offending heading component, clamp inside.
    out_x = (nx < 0.0) | (nx >= float(w))
    out_y = (ny < 0.0) | (ny >= float(h))
    theta = torch.where(out_x, math.pi - theta, theta)
    theta = torch.where(out_y, -theta, theta)
    nx = nx.clamp(0.0, _upper_bound(w))
    ny = ny.clamp(0.0, _upper_bound(h))
    theta = torch.remainder(theta + math.pi, 2.0 * math.pi) - math.pi

    agents.positions.copy_(torch.stack((nx, ny), dim=1))
    agents.directions.copy_(theta)

    # Deposit into the cell containing the new position.
    ix = torch.floor(nx).to(torch.int64).clamp_(0, w - 1)
    iy = torch.floor(ny).to(torch.int64).clamp_(0, h - 1)
    flat = (sp * h + iy) * w + ix
    deposit.view(-1).index_add_(0, flat, table.trail_weight[sp])

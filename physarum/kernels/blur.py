"""Diffusion/decay kernel.

Per species layer and cell:

    mean     = unweighted 3x3 mean of the current field (edge replicated)
    blended  = current + (mean - current) * clamp(diffuse_rate * dt, 0, 1)
    blended += deposit
    result   = max(0, blended * max(0, 1 - decay_rate * dt))

The result goes to the other copy of the double buffer. Reading and writing the
same tensor would let neighbours see half-updated values, so aliasing is
rejected.
"""

from __future__ import annotations

import torch
import torch.nn.functional as F

from ..config import GlobalSettings


def neighborhood_mean(field: torch.Tensor) -> torch.Tensor:
    """3x3 mean of each (H, W) layer of `field` (S, H, W), clamped to the edge."""
    padded = F.pad(field.unsqueeze(0), (1, 1, 1, 1), mode="replicate")
    return F.avg_pool2d(padded, kernel_size=3, stride=1).squeeze(0)


def diffuse_and_decay(
    trail: torch.Tensor,
    deposit: torch.Tensor,
    out: torch.Tensor,
    *,
    settings: GlobalSettings,
    delta_time: float,
) -> torch.Tensor:
    """Write the next trail state into `out` and return it."""
    if trail.shape != deposit.shape or trail.shape != out.shape:
        raise ValueError(
            f"shape mismatch: trail={tuple(trail.shape)} deposit={tuple(deposit.shape)} out={tuple(out.shape)}"
        )
    if out.data_ptr() == trail.data_ptr() or out.data_ptr() == deposit.data_ptr():
        raise ValueError("blur output must not alias its inputs")

    dt = float(delta_time)
    blend = min(max(float(settings.diffuse_rate) * dt, 0.0), 1.0)
    keep = max(0.0, 1.0 - float(settings.decay_rate) * dt)

    mean = neighborhood_mean(trail)
    blended = trail + (mean - trail) * blend
    blended = blended + deposit
    result = torch.nan_to_num(blended * keep, nan=0.0, neginf=0.0)
    out.copy_(result.clamp_(min=0.0))
    return out

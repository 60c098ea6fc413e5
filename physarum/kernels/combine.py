"""Combine kernel: species layers to one RGBA8 image."""

from __future__ import annotations

import torch

from .uniforms import DisplayTable


def combine_layers(trail: torch.Tensor, table: DisplayTable, out: torch.Tensor) -> torch.Tensor:
    """rgb = clamp(sum_s colour_s * weight_s * trail_s, 0, 1), alpha = 1.

    trail: (S, H, W) float; out: (H, W, 4) uint8, written in place and returned.
    """
    s, h, w = trail.shape
    if table.color_weight.shape != (s, 3):
        raise ValueError(f"display table has shape {tuple(table.color_weight.shape)}, expected ({s}, 3)")
    if out.shape != (h, w, 4) or out.dtype != torch.uint8:
        raise ValueError(f"presentation buffer must be ({h}, {w}, 4) uint8, got {tuple(out.shape)} {out.dtype}")

    rgb = torch.einsum("sc,shw->hwc", table.color_weight, trail)
    rgb = torch.nan_to_num(rgb, nan=0.0).clamp_(0.0, 1.0)
    out[..., :3] = torch.round(rgb * 255.0).to(torch.uint8)
    out[..., 3] = 255
    return out

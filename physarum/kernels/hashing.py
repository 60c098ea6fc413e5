"""Counter-based pseudo-randomness for parallel agents.

Each agent derives its random number from `(agent_index, sub_step)` alone, so
there is no shared generator state and a given step is reproducible.

All arithmetic is on int64 tensors holding unsigned 32-bit values. Products are
split into 16-bit halves so no intermediate exceeds 48 bits.
"""

from __future__ import annotations

import torch

_MASK32 = 0xFFFFFFFF
_MASK16 = 0xFFFF
_SEED_XOR = 2747636419
_MULTIPLIER = 2654435769


def _mul32(a: torch.Tensor, b: int) -> torch.Tensor:
    """(a * b) mod 2**32 for a in [0, 2**32)."""
    lo = (a & _MASK16) * b
    hi = ((a >> 16) * b) & _MASK16
    return (lo + (hi << 16)) & _MASK32


def hash_u32(x: torch.Tensor) -> torch.Tensor:
    """Integer hash of unsigned 32-bit values (int64 in, int64 out)."""
    x = (x.to(torch.int64) & _MASK32) ^ _SEED_XOR
    x = _mul32(x, _MULTIPLIER)
    x = x ^ (x >> 16)
    x = _mul32(x, _MULTIPLIER)
    x = x ^ (x >> 16)
    x = _mul32(x, _MULTIPLIER)
    return x


def agent_uniform(agent_index: torch.Tensor, sub_step: int, seed: int = 0) -> torch.Tensor:
    """Uniform float32 in [0, 1) per agent for the given sub-step and run seed."""
    dev = agent_index.device
    seed_hash = hash_u32(torch.tensor(int(seed) & _MASK32, dtype=torch.int64, device=dev))
    salt = hash_u32(torch.tensor(int(sub_step) & _MASK32, dtype=torch.int64, device=dev) ^ seed_hash)
    h = hash_u32(agent_index.to(torch.int64) ^ salt)
    # top 24 bits are exact in float32, keeping the result strictly below 1
    return (h >> 8).to(torch.float32) * (1.0 / 16777216.0)

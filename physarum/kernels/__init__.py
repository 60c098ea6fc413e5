"""Data-parallel kernels of the simulation.

Each kernel is a plain torch function over whole tensors, so one call is one
dispatch over every agent or every cell on whichever device holds the data.
"""
from __future__ import annotations

from .blur import diffuse_and_decay, neighborhood_mean
from .combine import combine_layers
from .dispatch import DispatchGrid, dispatch_groups
from .hashing import agent_uniform, hash_u32
from .uniforms import DisplayTable, SpeciesTable, TimeUniform
from .update import sensing_maps, update_agents

__all__ = [
    "DispatchGrid",
    "DisplayTable",
    "SpeciesTable",
    "TimeUniform",
    "agent_uniform",
    "combine_layers",
    "diffuse_and_decay",
    "dispatch_groups",
    "hash_u32",
    "neighborhood_mean",
    "sensing_maps",
    "update_agents",
]

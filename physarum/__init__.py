"""Physarum.

Multi-species slime-mold trail simulation on torch:
- `physarum.kernels` holds the data-parallel update / blur / combine kernels
- `physarum.orchestrator` sequences them into double-buffered sub-steps per frame
- `physarum.simulator` is the host loop behind `run.py`

Keep this module light so importing the kernels does not open a window.
"""

from __future__ import annotations

from .config import (
    DisplaySettings,
    GlobalSettings,
    SimulationConfig,
    SpeciesSettings,
    generate_species,
    hue_to_rgb,
)
from .errors import (
    CaptureError,
    FatalInitError,
    FrameError,
    PhysarumError,
    ReentrantFrameError,
    TransientPresentError,
)
from .orchestrator import FrameOrchestrator, FrameResult, OrchestratorState

__all__ = [
    "CaptureError",
    "DisplaySettings",
    "FatalInitError",
    "FrameError",
    "FrameOrchestrator",
    "FrameResult",
    "GlobalSettings",
    "OrchestratorState",
    "PhysarumError",
    "ReentrantFrameError",
    "SimulationConfig",
    "SpeciesSettings",
    "TransientPresentError",
    "generate_species",
    "hue_to_rgb",
]

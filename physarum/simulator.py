"""Host frame scheduler.

Calls `FrameOrchestrator.advance_and_present` once per displayed frame until a
frame budget is reached or the user presses Ctrl+C.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import torch

from .config import SimulationConfig
from .console import console
from .orchestrator import FrameOrchestrator
from .surface import PresentSurface


def run_simulation(
    config: SimulationConfig,
    *,
    frames: Optional[int] = None,
    surface: Optional[PresentSurface] = None,
) -> Dict[str, Any]:
    """Run the simulation for `frames` displayed frames (forever if None)."""
    torch.manual_seed(int(config.seed))

    with console.spinner("Allocating fields and spawning agents..."):
        orchestrator = FrameOrchestrator(config, surface=surface)

    console.header(
        "PHYSARUM SIMULATION",
        Device=str(orchestrator.device),
        Field=f"{config.width} x {config.height}",
        Agents=f"{config.agent_count:,}",
        Species=str(config.species_count),
        Substeps=f"{config.runs_per_frame} x {config.fixed_delta_time:.4f}s per frame",
        Rates=f"decay {config.global_settings.decay_rate}, diffuse {config.global_settings.diffuse_rate}",
        Capture=str(config.capture_dir) if config.capture_dir is not None else "off",
        Display="on" if (config.display_enabled and surface is not None) else "off",
    )
    if frames is None:
        console.info("Press Ctrl+C to stop")

    start = time.perf_counter()
    completed = 0
    presented = 0
    try:
        while frames is None or completed < frames:
            if surface is not None:
                surface.poll()
            enabled = bool(config.display_enabled and surface is not None and surface.display_enabled)
            result = orchestrator.advance_and_present(enabled)
            completed += 1
            presented += int(result.presented)
    except KeyboardInterrupt:
        console.warn("Interrupted", detail=f"after {completed} frames")
    finally:
        orchestrator.close()

    wall = time.perf_counter() - start
    state = orchestrator.state
    summary = {
        "frames": completed,
        "presented": presented,
        "sub_steps": state.sub_step,
        "elapsed_simulated_time": state.elapsed_simulated_time,
        "active_buffer": state.active_buffer,
        "wall_time_s": wall,
        "fps": completed / wall if wall > 0.0 else 0.0,
        "total_trail_mass": orchestrator.total_trail_mass(),
    }
    console.success(
        f"Simulated {completed} frames",
        detail=f"{state.elapsed_simulated_time:.2f}s simulated in {wall:.2f}s ({summary['fps']:.1f} fps)",
        title="PHYSARUM",
    )
    return summary

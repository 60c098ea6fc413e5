"""Frame orchestrator: runs the sub-step pipeline for each displayed frame.

Per sub-step, in dispatch order on one device stream:

    1. time uniform  <- {elapsed, fixed dt}
    2. update        reads trail[active], accumulates into deposit
    3. blur          reads trail[active] + deposit, writes trail[inactive]
    4. deposit       cleared to zero
    5. state         elapsed += dt, active index flipped

After `runs_per_frame` sub-steps the combine kernel turns the active buffer into
the RGBA presentation buffer, which is optionally captured to disk and then
presented when display updates are enabled.

The orchestrator state is an immutable value replaced after each sub-step. A
non-blocking lock rejects a second `advance_and_present` call issued while one
is still running.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np
import torch

from .agents import AgentBatch, spawn_agents
from .capture import FrameCapture
from .config import SimulationConfig
from .console import console
from .errors import CaptureError, FatalInitError, ReentrantFrameError, TransientPresentError
from .fields import DepositField, TrailField, allocate_presentation
from .kernels import (
    DispatchGrid,
    DisplayTable,
    SpeciesTable,
    TimeUniform,
    combine_layers,
    diffuse_and_decay,
    update_agents,
)
from .runtime import resolve_device
from .surface import PresentSurface

BUFFER_NAMES = ("A", "B")


@dataclass(frozen=True)
class OrchestratorState:
    elapsed_simulated_time: float = 0.0
    active_index: int = 0  # 0: A holds the current state, 1: B
    sub_step: int = 0

    @property
    def active_buffer(self) -> str:
        return BUFFER_NAMES[self.active_index]

    def advanced(self, delta_time: float) -> "OrchestratorState":
        return replace(
            self,
            elapsed_simulated_time=self.elapsed_simulated_time + float(delta_time),
            active_index=self.active_index ^ 1,
            sub_step=self.sub_step + 1,
        )


@dataclass(frozen=True)
class FrameResult:
    frame_index: int
    state: OrchestratorState
    presented: bool
    captured: bool
    presentation: torch.Tensor  # (H, W, 4) uint8, owned by the orchestrator
    dispatch: DispatchGrid


class FrameOrchestrator:
    """Owns agents, both trail buffers, the deposit field and the presentation buffer."""

    def __init__(
        self,
        config: SimulationConfig,
        *,
        surface: Optional[PresentSurface] = None,
        capture: Optional[FrameCapture] = None,
        agents: Optional[AgentBatch] = None,
        device: str | torch.device | None = None,
    ) -> None:
        self.config = config.validate()
        self.device = resolve_device(device if device is not None else config.device)

        s, h, w = config.species_count, config.height, config.width
        try:
            self.species_table = SpeciesTable.from_settings(config.species, device=self.device)
            self.display_table = DisplayTable.from_settings(config.display, device=self.device)
            if agents is None:
                agents = spawn_agents(config, self.device)
            else:
                agents = AgentBatch.from_state(agents.to_state(), device=self.device)
        except FatalInitError:
            raise
        except (RuntimeError, ValueError, MemoryError) as e:
            raise FatalInitError(f"failed to initialise simulation resources: {e}") from e
        if agents.size() != config.agent_count:
            raise FatalInitError(f"agent batch has {agents.size()} agents, config expects {config.agent_count}")
        if agents.size() and (int(agents.species.min().item()) < 0 or int(agents.species.max().item()) >= s):
            raise FatalInitError(f"agent species indices must lie in [0, {s})")

        self.agents = agents
        self.trail = TrailField.allocate(s, h, w, device=self.device)
        self.deposit = DepositField.allocate(s, h, w, device=self.device)
        self.presentation = allocate_presentation(h, w, device=self.device)
        self.dispatch = DispatchGrid.for_field(
            agent_count=config.agent_count,
            width=w,
            height=h,
            species_count=s,
            workgroup_size=config.workgroup_size,
            layers_per_texture=config.layers_per_texture,
        )

        if capture is None and config.capture_dir is not None:
            capture = FrameCapture(config.capture_dir, asynchronous=config.capture_async)
        self.capture = capture
        self.surface = surface

        self.time_uniform = TimeUniform(total=0.0, delta=float(config.fixed_delta_time))
        self._state = OrchestratorState()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def active_field(self) -> torch.Tensor:
        return self.trail.read(self._state.active_index)

    @property
    def frame_index(self) -> int:
        """Index of the most recently completed frame (-1 before the first)."""
        per_frame = self.config.fixed_delta_time * self.config.runs_per_frame
        return int(round(self._state.elapsed_simulated_time / per_frame)) - 1

    def total_trail_mass(self) -> float:
        return float(self.active_field.to(torch.float64).sum().item())

    def snapshot(self) -> dict[str, np.ndarray]:
        """Host-side copies of the agents and the active trail field."""
        out = {k: v.detach().cpu().numpy().copy() for k, v in self.agents.to_state().items()}
        out["trail"] = self.active_field.detach().cpu().numpy().copy()
        return out

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def run_sub_step(self) -> OrchestratorState:
        """One update + blur cycle; returns the new state."""
        state = self._state
        dt = float(self.config.fixed_delta_time)
        self.time_uniform = TimeUniform(total=state.elapsed_simulated_time, delta=dt)

        current = self.trail.read(state.active_index)
        target = self.trail.write_target(state.active_index)
        update_agents(
            self.agents,
            self.species_table,
            current,
            self.deposit.values,
            time=self.time_uniform,
            sub_step=state.sub_step,
            seed=self.config.seed,
        )
        diffuse_and_decay(
            current,
            self.deposit.values,
            target,
            settings=self.config.global_settings,
            delta_time=dt,
        )
        self.deposit.clear()

        self._state = state.advanced(dt)
        return self._state

    def render(self) -> torch.Tensor:
        """Combine the active buffer into the presentation buffer."""
        return combine_layers(self.active_field, self.display_table, self.presentation)

    def advance_and_present(self, display_enabled: bool = True) -> FrameResult:
        """Run one displayed frame: sub-steps, combine, capture, present."""
        if not self._lock.acquire(blocking=False):
            raise ReentrantFrameError("advance_and_present called while a frame is in flight")
        try:
            for _ in range(self.config.runs_per_frame):
                self.run_sub_step()
            self.render()

            frame_index = self.frame_index
            pixels: Optional[np.ndarray] = None
            if self.capture is not None or (display_enabled and self.surface is not None):
                pixels = self.presentation.cpu().numpy()

            captured = self._capture(pixels, frame_index)
            presented = self._present(pixels) if display_enabled else False
            return FrameResult(
                frame_index=frame_index,
                state=self._state,
                presented=presented,
                captured=captured,
                presentation=self.presentation,
                dispatch=self.dispatch,
            )
        finally:
            self._lock.release()

    def _capture(self, pixels: Optional[np.ndarray], frame_index: int) -> bool:
        if self.capture is None or pixels is None:
            return False
        try:
            self.capture.save(pixels, self.config.width, self.config.height, frame_index)
        except CaptureError as e:
            console.error("Frame capture failed", detail=str(e))
            return False
        return True

    def _present(self, pixels: Optional[np.ndarray]) -> bool:
        if self.surface is None or pixels is None:
            return False
        try:
            self.surface.acquire()
            self.surface.clear()
            self.surface.draw(pixels)
        except TransientPresentError as e:
            console.warn("Skipping presentation for this frame", detail=str(e))
            return False
        return True

    def close(self) -> None:
        if self.capture is not None:
            self.capture.close()

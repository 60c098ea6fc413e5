"""Frame orchestrator behaviour on a small CPU field.

Covers buffer alternation, deposit isolation, mass conservation with decay and
diffusion disabled, frame numbering, and presentation / capture failure paths.
"""

from __future__ import annotations

import pytest
import torch

from physarum.agents import AgentBatch
from physarum.config import GlobalSettings, SimulationConfig, SpeciesSettings
from physarum.errors import CaptureError, FatalInitError, ReentrantFrameError
from physarum.orchestrator import FrameOrchestrator
from physarum.simulator import run_simulation
from physarum.surface import HeadlessSurface


def _config(**overrides) -> SimulationConfig:
    base = dict(
        agent_count=512,
        width=48,
        height=40,
        runs_per_frame=3,
        seed=1,
        device="cpu",
        display_enabled=True,
    )
    base.update(overrides)
    return SimulationConfig.generated(2, **base)


def test_initial_state():
    orch = FrameOrchestrator(_config())
    assert orch.state.active_buffer == "A"
    assert orch.state.elapsed_simulated_time == 0.0
    assert orch.frame_index == -1
    assert orch.total_trail_mass() == 0.0
    assert orch.deposit.is_clear()


def test_buffers_alternate_every_sub_step():
    orch = FrameOrchestrator(_config())
    dt = orch.config.fixed_delta_time
    for k in range(1, 8):
        state = orch.run_sub_step()
        assert state.active_index == k % 2
        assert state.sub_step == k
        assert state.elapsed_simulated_time == pytest.approx(k * dt)
        assert orch.deposit.is_clear()


def test_sub_step_never_writes_the_buffer_it_reads():
    orch = FrameOrchestrator(_config())
    orch.run_sub_step()
    orch.run_sub_step()
    assert orch.state.active_buffer == "A"
    before = orch.trail.buffers[0].clone()
    orch.run_sub_step()
    assert torch.equal(orch.trail.buffers[0], before)
    assert not torch.equal(orch.trail.buffers[1], before)


def test_first_sub_step_leaves_buffer_a_empty():
    orch = FrameOrchestrator(_config())
    orch.run_sub_step()
    assert float(orch.trail.buffers[0].abs().sum()) == 0.0
    assert float(orch.trail.buffers[1].sum()) > 0.0


def test_mass_is_conserved_without_decay_or_diffusion():
    cfg = SimulationConfig.generated(
        1,
        template=SpeciesSettings(trail_weight=5.0, self_follow=0.0, cross_follow=0.0),
        agent_count=1000,
        width=64,
        height=64,
        runs_per_frame=10,
        global_settings=GlobalSettings(decay_rate=0.0, diffuse_rate=0.0),
        device="cpu",
    )
    orch = FrameOrchestrator(cfg)
    for _ in range(10):
        orch.advance_and_present(display_enabled=False)
    assert orch.state.sub_step == 100
    assert orch.total_trail_mass() == 500000.0


def test_frame_index_counts_completed_frames():
    orch = FrameOrchestrator(_config())
    first = orch.advance_and_present(display_enabled=False)
    second = orch.advance_and_present(display_enabled=False)
    assert first.frame_index == 0
    assert second.frame_index == 1
    assert second.state.sub_step == 6
    assert second.dispatch.update == (16, 1, 1)


def test_agents_stay_in_bounds_over_many_frames():
    orch = FrameOrchestrator(_config(template=SpeciesSettings(move_speed=300.0)))
    for _ in range(10):
        orch.advance_and_present(display_enabled=False)
    pos = orch.agents.positions
    assert torch.all(pos[:, 0] >= 0.0) and torch.all(pos[:, 0] < 48)
    assert torch.all(pos[:, 1] >= 0.0) and torch.all(pos[:, 1] < 40)


def test_presents_to_headless_surface():
    surface = HeadlessSurface(48, 40)
    orch = FrameOrchestrator(_config(), surface=surface)
    result = orch.advance_and_present(display_enabled=True)
    assert result.presented
    assert not result.captured
    assert surface.frames_presented == 1
    assert (surface.image[..., 3] == 255).all()
    assert (surface.image == result.presentation.numpy()).all()


def test_display_disabled_still_simulates():
    surface = HeadlessSurface(48, 40)
    orch = FrameOrchestrator(_config(), surface=surface)
    result = orch.advance_and_present(display_enabled=False)
    assert not result.presented
    assert surface.frames_presented == 0
    assert result.state.sub_step == 3


def test_unavailable_surface_skips_presentation():
    surface = HeadlessSurface(48, 40)
    surface.available = False
    orch = FrameOrchestrator(_config(), surface=surface)
    result = orch.advance_and_present(display_enabled=True)
    assert not result.presented
    assert result.frame_index == 0
    surface.available = True
    assert orch.advance_and_present(display_enabled=True).presented


class _FailingCapture:
    def __init__(self) -> None:
        self.calls = 0

    def save(self, pixels, width, height, frame_index) -> None:
        self.calls += 1
        raise CaptureError("disk full")

    def close(self) -> None:
        pass


def test_capture_failure_does_not_stop_the_frame():
    capture = _FailingCapture()
    orch = FrameOrchestrator(_config(), capture=capture, surface=HeadlessSurface(48, 40))
    result = orch.advance_and_present(display_enabled=True)
    assert capture.calls == 1
    assert not result.captured
    assert result.presented
    assert orch.advance_and_present(display_enabled=True).frame_index == 1


class _ReentrantSurface(HeadlessSurface):
    def __init__(self, width: int, height: int) -> None:
        super().__init__(width, height)
        self.orchestrator = None

    def draw(self, image) -> None:
        self.orchestrator.advance_and_present(display_enabled=True)


def test_reentrant_frame_is_rejected():
    surface = _ReentrantSurface(48, 40)
    orch = FrameOrchestrator(_config(), surface=surface)
    surface.orchestrator = orch
    with pytest.raises(ReentrantFrameError):
        orch.advance_and_present(display_enabled=True)
    # the lock is released and the rejected call did no work
    assert orch.state.sub_step == 3
    surface.orchestrator = None
    assert not orch.advance_and_present(display_enabled=False).presented


def test_rejects_invalid_configuration():
    with pytest.raises(FatalInitError):
        FrameOrchestrator(SimulationConfig(species=(), display=(), device="cpu"))
    with pytest.raises(FatalInitError):
        FrameOrchestrator(_config(width=0))


def test_rejects_out_of_range_species():
    cfg = _config(agent_count=4)
    positions = torch.full((4, 2), 5.0)
    directions = torch.zeros(4)
    for bad in ([0, 1, -1, 0], [0, 1, 2, 0]):
        agents = AgentBatch(positions=positions, directions=directions, species=torch.tensor(bad))
        with pytest.raises(FatalInitError):
            FrameOrchestrator(cfg, agents=agents)

    ok = AgentBatch(positions=positions, directions=directions, species=torch.tensor([0, 1, 1, 0]))
    orch = FrameOrchestrator(cfg, agents=ok)
    assert orch.advance_and_present(display_enabled=False).frame_index == 0


def test_same_seed_same_run():
    a = FrameOrchestrator(_config())
    b = FrameOrchestrator(_config())
    for _ in range(3):
        ra = a.advance_and_present(display_enabled=False)
        rb = b.advance_and_present(display_enabled=False)
    assert torch.equal(a.agents.positions, b.agents.positions)
    assert torch.equal(ra.presentation, rb.presentation)


def test_snapshot_copies_state():
    orch = FrameOrchestrator(_config())
    orch.advance_and_present(display_enabled=False)
    snap = orch.snapshot()
    assert snap["positions"].shape == (512, 2)
    assert snap["trail"].shape == (2, 40, 48)
    assert snap["trail"].sum() == pytest.approx(orch.total_trail_mass(), rel=1e-5)


def test_run_simulation_summary():
    surface = HeadlessSurface(48, 40)
    summary = run_simulation(_config(), frames=4, surface=surface)
    assert summary["frames"] == 4
    assert summary["presented"] == 4
    assert summary["sub_steps"] == 12
    assert summary["active_buffer"] == "A"
    assert summary["total_trail_mass"] > 0.0


def test_run_simulation_is_reproducible_and_reports(capsys):
    first = run_simulation(_config(), frames=2)
    second = run_simulation(_config(), frames=2)
    assert first["total_trail_mass"] == second["total_trail_mass"]
    assert first["presented"] == 0
    out = capsys.readouterr().out
    assert "Simulated 2 frames" in out
    assert "PHYSARUM" in out

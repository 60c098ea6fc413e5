#!/usr/bin/env python3
"""Physarum Simulation Entrypoint

Runs the multi-species trail simulation and shows it in a matplotlib window,
optionally writing every frame to disk.

Usage:
    python run.py                          # Run with defaults until Ctrl+C
    python run.py --headless --frames 100  # No window, fixed frame count
    python run.py --capture-dir images     # Save frame_N.png files
    python run.py --species 3 --agents 100000 --width 512 --height 512

Press space in the window to pause display updates (the simulation keeps
running).
"""

from __future__ import annotations

import argparse
from pathlib import Path

from physarum.config import GlobalSettings, SimulationConfig, SPAWN_LAYOUTS
from physarum.errors import FatalInitError
from physarum.console import console
from physarum.simulator import run_simulation
from physarum.surface import make_surface


def main():
    parser = argparse.ArgumentParser(
        description="Physarum Simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument("--agents", type=int, default=500_000, help="Number of agents")
    parser.add_argument("--width", type=int, default=1080, help="Field width in cells")
    parser.add_argument("--height", type=int, default=1080, help="Field height in cells")
    parser.add_argument("--species", type=int, default=8, help="Number of species")
    parser.add_argument("--frames", type=int, default=None, help="Frames to run (default: until Ctrl+C)")
    parser.add_argument("--runs-per-frame", type=int, default=5, help="Sub-steps per displayed frame")
    parser.add_argument("--dt", type=float, default=1.0 / 50.0, help="Fixed sub-step length in seconds")
    parser.add_argument("--decay-rate", type=float, default=0.5, help="Trail fraction lost per second")
    parser.add_argument("--diffuse-rate", type=float, default=4.0, help="Neighbour blend strength per second")
    parser.add_argument("--spawn", choices=SPAWN_LAYOUTS, default="disk_inward", help="Initial agent layout")
    parser.add_argument("--seed", type=int, default=0, help="Random seed")
    parser.add_argument("--device", type=str, default=None, help="Device (cuda, mps, cpu)")
    parser.add_argument("--capture-dir", type=str, default=None, help="Write frame_N.png files here")
    parser.add_argument("--capture-async", action="store_true", help="Write captured frames on a background thread")
    parser.add_argument("--headless", action="store_true", help="Do not open a window")

    args = parser.parse_args()

    try:
        config = SimulationConfig.generated(
            args.species,
            agent_count=args.agents,
            width=args.width,
            height=args.height,
            global_settings=GlobalSettings(decay_rate=args.decay_rate, diffuse_rate=args.diffuse_rate),
            fixed_delta_time=args.dt,
            runs_per_frame=args.runs_per_frame,
            spawn=args.spawn,
            seed=args.seed,
            device=args.device,
            display_enabled=not args.headless,
            capture_dir=(None if args.capture_dir is None else Path(args.capture_dir)),
            capture_async=args.capture_async,
        ).validate()
        surface = None if args.headless else make_surface(config.width, config.height, headless=False)
        result = run_simulation(config, frames=args.frames, surface=surface)
    except FatalInitError as e:
        console.error("Cannot start simulation", detail=str(e))
        raise SystemExit(1) from e

    console.info(f"Final trail mass: {result['total_trail_mass']:.2f}")


if __name__ == "__main__":
    main()

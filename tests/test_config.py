from __future__ import annotations

import math

import pytest

from physarum.config import (
    DisplaySettings,
    GlobalSettings,
    SimulationConfig,
    SpeciesSettings,
    generate_species,
    hue_to_rgb,
)
from physarum.errors import FatalInitError


def test_hue_to_rgb_primary_points():
    assert hue_to_rgb(0.0) == (1.0, 0.0, 0.0)
    assert hue_to_rgb(0.5) == (0.0, 1.0, 1.0)
    # hue wraps into [0, 1)
    assert hue_to_rgb(1.25) == pytest.approx((0.5, 1.0, 0.0))


def test_generate_species_hue_cycle():
    species, display = generate_species(4)
    assert len(species) == 4
    assert len(display) == 4
    for i, d in enumerate(display):
        assert d.color == pytest.approx(hue_to_rgb(0.2 + i / 4))
        assert d.weight == 1.0
    assert all(s == SpeciesSettings() for s in species)


def test_generate_species_rejects_zero():
    with pytest.raises(FatalInitError):
        generate_species(0)


def test_defaults_match_reference_run():
    cfg = SimulationConfig()
    assert cfg.species_count == 8
    assert cfg.texture_slices == 2
    assert cfg.fixed_delta_time == pytest.approx(0.02)
    assert cfg.runs_per_frame == 5
    assert cfg.resolved_spawn_radius == pytest.approx(520.0)
    assert cfg.validate() is cfg


@pytest.mark.parametrize("count,slices", [(1, 1), (4, 1), (5, 2), (8, 2), (9, 3)])
def test_texture_slices(count, slices):
    assert SimulationConfig.generated(count).texture_slices == slices


@pytest.mark.parametrize(
    "overrides",
    [
        {"width": 0},
        {"height": -4},
        {"agent_count": 0},
        {"runs_per_frame": 0},
        {"workgroup_size": 0},
        {"fixed_delta_time": 0.0},
        {"fixed_delta_time": math.nan},
        {"spawn": "spiral"},
        {"spawn_radius": -1.0},
        {"global_settings": GlobalSettings(decay_rate=-0.1)},
        {"global_settings": GlobalSettings(diffuse_rate=math.inf)},
    ],
)
def test_validate_rejects_malformed(overrides):
    with pytest.raises(FatalInitError):
        SimulationConfig.generated(2, **overrides).validate()


def test_validate_rejects_empty_species():
    with pytest.raises(FatalInitError):
        SimulationConfig(species=(), display=()).validate()


def test_validate_rejects_display_mismatch():
    species, display = generate_species(3)
    with pytest.raises(FatalInitError):
        SimulationConfig(species=species, display=display[:2]).validate()


def test_validate_rejects_bad_species_and_display():
    species, display = generate_species(2)
    bad_species = (SpeciesSettings(sensor_size=-1), species[1])
    with pytest.raises(FatalInitError):
        SimulationConfig(species=bad_species, display=display).validate()

    bad_display = (DisplaySettings(color=(1.0, math.nan, 0.0)), display[1])
    with pytest.raises(FatalInitError):
        SimulationConfig(species=species, display=bad_display).validate()


def test_config_is_immutable():
    cfg = SimulationConfig.generated(1)
    with pytest.raises(AttributeError):
        cfg.width = 10  # type: ignore[misc]
    changed = cfg.with_overrides(width=10)
    assert changed.width == 10
    assert cfg.width == 1080

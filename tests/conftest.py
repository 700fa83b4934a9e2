"""Pytest configuration and shared fixtures for cosmic_mc tests."""

import pytest
import numpy as np

from cosmic_mc.config import SimulationConfig
from cosmic_mc.core import units
from cosmic_mc.core.candidate import Candidate
from cosmic_mc.core.particle import nucleus_id
from cosmic_mc.core.rng import Random
from cosmic_mc.physics.cosmology import Cosmology
from cosmic_mc.physics.grid import ScalarGrid


PROTON = nucleus_id(1, 1)


@pytest.fixture
def rng():
    """Seeded random stream."""
    return Random(seed=20240917)


@pytest.fixture
def proton_candidate():
    """10 EeV proton at 10 Mpc on the x-axis heading to the origin."""
    return Candidate(
        id=PROTON,
        energy=10 * units.EeV,
        position=(10 * units.Mpc, 0.0, 0.0),
        direction=(-1.0, 0.0, 0.0),
    )


@pytest.fixture(scope="session")
def cosmology():
    """Default cosmology (tabulation is shared by all tests)."""
    return Cosmology()


@pytest.fixture
def sparse_grid():
    """4x4x4 grid with two occupied cells of density 1 and 3."""
    values = np.zeros((4, 4, 4))
    values[1, 2, 3] = 1.0
    values[3, 0, 0] = 3.0
    return ScalarGrid(values, origin=(-2.0, -2.0, -2.0), spacing=1.0)


@pytest.fixture
def serial_config():
    """Single-threaded, quiet engine configuration."""
    return SimulationConfig(n_threads=1, show_progress=False, max_steps=10_000)

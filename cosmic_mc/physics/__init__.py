"""Physics module: Cosmology and density grids."""

from cosmic_mc.physics.cosmology import Cosmology, default_cosmology
from cosmic_mc.physics.grid import ScalarGrid

__all__ = ["Cosmology", "default_cosmology", "ScalarGrid"]

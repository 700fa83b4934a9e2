"""
COSMIC_MC: Cosmic-Ray Propagation Monte Carlo

Propagates cosmic-ray candidates from composable sources through a chain
of modules until observers detect them.

Modules:
    core: Particle state, candidates, weighted sampling, random numbers
    physics: Cosmology and density grids
    source: Sources and source features
    modules: Propagation, observers, output
    transport: Propagation engine
"""

__version__ = "0.1.0"

from cosmic_mc.core.particle import ParticleState, nucleus_id, particle_id
from cosmic_mc.core.candidate import Candidate
from cosmic_mc.core.sampling import WeightedSampler
from cosmic_mc.core.rng import Random
from cosmic_mc.config import SimulationConfig
from cosmic_mc.source.source import Source, SourceList
from cosmic_mc.modules.observer import Observer, DetectionState
from cosmic_mc.transport.engine import PropagationEngine

__all__ = [
    "ParticleState",
    "Candidate",
    "WeightedSampler",
    "Random",
    "SimulationConfig",
    "Source",
    "SourceList",
    "Observer",
    "DetectionState",
    "PropagationEngine",
    "nucleus_id",
    "particle_id",
]

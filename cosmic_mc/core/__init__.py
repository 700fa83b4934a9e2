"""Core module: Particle state, candidates, sampling and random numbers."""

from cosmic_mc.core.particle import ParticleState, nucleus_id, particle_id
from cosmic_mc.core.candidate import Candidate
from cosmic_mc.core.sampling import WeightedSampler
from cosmic_mc.core.rng import Random

__all__ = [
    "ParticleState",
    "Candidate",
    "WeightedSampler",
    "Random",
    "nucleus_id",
    "particle_id",
]

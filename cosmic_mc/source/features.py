"""
Source features: particle type, energy, position, direction, redshift.

Each feature sets one aspect of a new candidate. Features that draw random
values take every draw from the Random stream passed in by the Source.
Parameters are validated at construction; features are read-only
afterwards and may be shared between threads.
"""

from typing import Optional, Sequence, Union

import numpy as np

from cosmic_mc.core import units
from cosmic_mc.core.candidate import Candidate
from cosmic_mc.core.errors import ConfigurationError
from cosmic_mc.core.particle import ParticleState
from cosmic_mc.core.rng import Random
from cosmic_mc.core.sampling import WeightedSampler
from cosmic_mc.physics.cosmology import Cosmology, default_cosmology
from cosmic_mc.physics.grid import ScalarGrid
from cosmic_mc.source.source import SourceFeature

ID = frozenset({"id"})
ENERGY = frozenset({"energy"})
POSITION = frozenset({"position"})
DIRECTION = frozenset({"direction"})
REDSHIFT = frozenset({"redshift"})


def _fmt_vector(v: np.ndarray, unit: float = units.Mpc) -> str:
    v = np.asarray(v) / unit
    return f"({v[0]:g}, {v[1]:g}, {v[2]:g})"


def _unit_direction(direction: Sequence[float]) -> np.ndarray:
    # ParticleState normalizes and rejects degenerate vectors
    return ParticleState(direction=direction).direction


# ============================================================================
# Particle type
# ============================================================================

class SourceParticleType(SourceFeature):
    """Fixed particle type."""

    provides = ID

    def __init__(self, id: int):
        self.id = int(id)

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        state.id = self.id

    @property
    def description(self) -> str:
        return f"SourceParticleType: {self.id}"


class SourceMultipleParticleTypes(SourceFeature):
    """Particle types drawn with individual relative abundances."""

    provides = ID

    def __init__(self):
        self.sampler = WeightedSampler()

    def add(self, id: int, weight: float = 1.0) -> "SourceMultipleParticleTypes":
        self.sampler.add(int(id), weight)
        return self

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        state.id = self.sampler.sample(rng.uniform())

    @property
    def description(self) -> str:
        types = ", ".join(
            f"{i} ({p:.3g})"
            for i, p in zip(self.sampler.values, self.sampler.probabilities())
        )
        return f"SourceMultipleParticleTypes: {types}"


# ============================================================================
# Energy
# ============================================================================

class SourceEnergy(SourceFeature):
    """Fixed energy."""

    provides = ENERGY

    def __init__(self, energy: float):
        self.energy = float(energy)

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        state.energy = self.energy

    @property
    def description(self) -> str:
        return f"SourceEnergy: {self.energy / units.EeV:g} EeV"


class SourcePowerLawSpectrum(SourceFeature):
    """
    Energy following dN/dE ~ E^index on [e_min, e_max].

    Sampled by inverse transform; index = -1 is uniform in log(E).
    """

    provides = ENERGY

    def __init__(self, e_min: float, e_max: float, index: float):
        """
        Parameters:
            e_min: Minimum energy [J] (> 0)
            e_max: Maximum energy [J] (> e_min)
            index: Spectral index
        """
        if not 0 < e_min < e_max:
            raise ConfigurationError(
                f"Power law needs 0 < e_min < e_max, got {e_min}, {e_max}"
            )
        self.e_min = float(e_min)
        self.e_max = float(e_max)
        self.index = float(index)

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        state.energy = rng.power_law(self.index, self.e_min, self.e_max)

    @property
    def description(self) -> str:
        return (f"SourcePowerLawSpectrum: {self.e_min / units.EeV:g} - "
                f"{self.e_max / units.EeV:g} EeV, E^{self.index:g}")


# ============================================================================
# Position
# ============================================================================

class SourcePosition(SourceFeature):
    """
    Point source.

    A scalar argument d places the source at (d, 0, 0), the convention of
    one-dimensional simulations with the observer at x = 0.
    """

    provides = POSITION

    def __init__(self, position: Union[float, Sequence[float]]):
        if np.ndim(position) == 0:
            position = (float(position), 0.0, 0.0)
        self.position = ParticleState(position=position).position

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        state.position = self.position

    @property
    def description(self) -> str:
        return f"SourcePosition: {_fmt_vector(self.position)} Mpc"


class SourceMultiplePositions(SourceFeature):
    """Point sources with individual luminosities."""

    provides = POSITION

    def __init__(self):
        self.sampler = WeightedSampler()

    def add(self, position: Sequence[float], weight: float = 1.0) -> "SourceMultiplePositions":
        self.sampler.add(ParticleState(position=position).position, weight)
        return self

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        state.position = self.sampler.sample(rng.uniform())

    @property
    def description(self) -> str:
        return f"SourceMultiplePositions: {len(self.sampler)} positions"


class SourceUniformSphere(SourceFeature):
    """Uniform random positions inside a sphere."""

    provides = POSITION

    def __init__(self, center: Sequence[float], radius: float):
        if radius < 0:
            raise ConfigurationError(f"Sphere radius must be non-negative, got {radius}")
        self.center = np.array(center, dtype=np.float64)
        self.radius = float(radius)

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        r = self.radius * rng.uniform() ** (1.0 / 3.0)
        state.position = self.center + r * rng.unit_vector()

    @property
    def description(self) -> str:
        return (f"SourceUniformSphere: center {_fmt_vector(self.center)} Mpc, "
                f"radius {self.radius / units.Mpc:g} Mpc")


class SourceUniformShell(SourceFeature):
    """Uniform random positions on a spherical surface."""

    provides = POSITION

    def __init__(self, center: Sequence[float], radius: float):
        if radius < 0:
            raise ConfigurationError(f"Shell radius must be non-negative, got {radius}")
        self.center = np.array(center, dtype=np.float64)
        self.radius = float(radius)

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        state.position = self.center + self.radius * rng.unit_vector()

    @property
    def description(self) -> str:
        return (f"SourceUniformShell: center {_fmt_vector(self.center)} Mpc, "
                f"radius {self.radius / units.Mpc:g} Mpc")


class SourceUniformBox(SourceFeature):
    """Uniform random positions inside an axis-aligned box."""

    provides = POSITION

    def __init__(self, origin: Sequence[float], size: Sequence[float]):
        """
        Parameters:
            origin: Lower box corner [m]
            size: Box edge lengths [m]
        """
        self.origin = np.array(origin, dtype=np.float64)
        self.size = np.array(size, dtype=np.float64)
        if np.any(self.size < 0):
            raise ConfigurationError(f"Box size must be non-negative, got {self.size}")

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        state.position = self.origin + rng.vector3() * self.size

    @property
    def description(self) -> str:
        return (f"SourceUniformBox: origin {_fmt_vector(self.origin)} Mpc, "
                f"size {_fmt_vector(self.size)} Mpc")


class SourceUniform1D(SourceFeature):
    """
    Uniform source distribution along x in an expanding universe.

    Draws a light-travel distance uniformly between the bounds and converts
    it to a comoving x-coordinate. Bounds are given as comoving distances.
    Without cosmology the comoving distance itself is drawn uniformly.
    """

    provides = POSITION

    def __init__(self, min_d: float, max_d: float, with_cosmology: bool = True,
                 cosmology: Optional[Cosmology] = None):
        """
        Parameters:
            min_d: Minimum comoving distance [m]
            max_d: Maximum comoving distance [m]
            with_cosmology: Account for the expansion of the universe
            cosmology: Cosmology to use (default parameters if None)
        """
        if not 0 <= min_d <= max_d:
            raise ConfigurationError(
                f"SourceUniform1D needs 0 <= min_d <= max_d, got {min_d}, {max_d}"
            )
        self.with_cosmology = with_cosmology
        self.cosmology = None
        if with_cosmology:
            self.cosmology = cosmology if cosmology is not None else default_cosmology()
            self.min_d = self.cosmology.comoving_to_light_travel(min_d)
            self.max_d = self.cosmology.comoving_to_light_travel(max_d)
        else:
            self.min_d = float(min_d)
            self.max_d = float(max_d)

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        d = rng.uniform_range(self.min_d, self.max_d)
        if self.with_cosmology:
            d = self.cosmology.light_travel_to_comoving(d)
        state.position = (d, 0.0, 0.0)

    @property
    def description(self) -> str:
        kind = "light travel" if self.with_cosmology else "comoving"
        return (f"SourceUniform1D: {kind} distance {self.min_d / units.Mpc:g} - "
                f"{self.max_d / units.Mpc:g} Mpc")


class SourceDensityGrid(SourceFeature):
    """Random positions following a 3-D density grid."""

    provides = POSITION

    def __init__(self, grid: ScalarGrid):
        self.grid = grid

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        index, _ = self.grid.sample_cell(rng.uniform())
        state.position = self.grid.cell_to_position(index, rng.vector3())

    @property
    def description(self) -> str:
        return f"SourceDensityGrid: {self.grid}"


class SourceDensityGrid1D(SourceFeature):
    """Random x-positions following a 1-D density grid."""

    provides = POSITION

    def __init__(self, grid: ScalarGrid):
        nx, ny, nz = grid.shape
        if ny != 1 or nz != 1:
            raise ConfigurationError(
                f"SourceDensityGrid1D needs a grid of shape (n, 1, 1), got {grid.shape}"
            )
        self.grid = grid

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        index, _ = self.grid.sample_cell(rng.uniform())
        x = self.grid.cell_to_position(index, (rng.uniform(), 0.5, 0.5))[0]
        state.position = (x, 0.0, 0.0)

    @property
    def description(self) -> str:
        return f"SourceDensityGrid1D: {self.grid}"


# ============================================================================
# Direction
# ============================================================================

class SourceIsotropicEmission(SourceFeature):
    """Isotropic emission."""

    provides = DIRECTION

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        state.direction = rng.unit_vector()

    @property
    def description(self) -> str:
        return "SourceIsotropicEmission"


class SourceDirection(SourceFeature):
    """Emission in a fixed direction."""

    provides = DIRECTION

    def __init__(self, direction: Sequence[float] = (-1.0, 0.0, 0.0)):
        self.direction = _unit_direction(direction)

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        state.direction = self.direction

    @property
    def description(self) -> str:
        d = self.direction
        return f"SourceDirection: ({d[0]:g}, {d[1]:g}, {d[2]:g})"


class SourceEmissionCone(SourceFeature):
    """Uniform random emission inside a cone around an axis."""

    provides = DIRECTION

    def __init__(self, direction: Sequence[float], aperture: float):
        """
        Parameters:
            direction: Cone axis
            aperture: Half-opening angle [radians], in (0, pi]
        """
        if not 0 < aperture <= np.pi:
            raise ConfigurationError(f"Cone aperture must be in (0, pi], got {aperture}")
        self.direction = _unit_direction(direction)
        self.aperture = float(aperture)

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        state.direction = rng.cone_vector(self.direction, self.aperture)

    @property
    def description(self) -> str:
        d = self.direction
        return (f"SourceEmissionCone: axis ({d[0]:g}, {d[1]:g}, {d[2]:g}), "
                f"aperture {self.aperture / units.degree:g} deg")


# ============================================================================
# Redshift
# ============================================================================

class SourceRedshift(SourceFeature):
    """Discrete redshift (time of emission)."""

    provides = REDSHIFT

    def __init__(self, z: float):
        if z < 0:
            raise ConfigurationError(f"Redshift must be non-negative, got {z}")
        self.z = float(z)

    def prepare_candidate(self, candidate: Candidate, rng: Random) -> None:
        candidate.redshift = self.z

    @property
    def description(self) -> str:
        return f"SourceRedshift: z = {self.z:g}"


class SourceUniformRedshift(SourceFeature):
    """Uniform redshift distribution (time of emission)."""

    provides = REDSHIFT

    def __init__(self, z_min: float, z_max: float):
        if not 0 <= z_min <= z_max:
            raise ConfigurationError(
                f"Redshift range needs 0 <= z_min <= z_max, got {z_min}, {z_max}"
            )
        self.z_min = float(z_min)
        self.z_max = float(z_max)

    def prepare_candidate(self, candidate: Candidate, rng: Random) -> None:
        candidate.redshift = rng.uniform_range(self.z_min, self.z_max)

    @property
    def description(self) -> str:
        return f"SourceUniformRedshift: z = {self.z_min:g} - {self.z_max:g}"


class SourceRedshift1D(SourceFeature):
    """
    Redshift from the comoving distance of the source position to the origin.

    Must be added after a feature that sets the position.
    """

    provides = REDSHIFT
    requires = POSITION

    def __init__(self, cosmology: Optional[Cosmology] = None):
        self.cosmology = cosmology if cosmology is not None else default_cosmology()

    def prepare_candidate(self, candidate: Candidate, rng: Random) -> None:
        d = float(np.linalg.norm(candidate.current.position))
        candidate.redshift = self.cosmology.redshift_at_comoving_distance(d)

    @property
    def description(self) -> str:
        return "SourceRedshift1D"

"""
Particle identity and state.

Particles are identified by their PDG Monte Carlo number. Nuclei use the
10-digit scheme 100ZZZAAAI, e.g. 1000260560 for Fe-56. Charge and rest
mass are pure functions of the id and are never stored independently.
"""

import math
from typing import Sequence

import numpy as np

from cosmic_mc.core import units
from cosmic_mc.core.errors import (
    ConfigurationError,
    DegenerateDirectionError,
    PhysicsError,
)

PHOTON = 22
ELECTRON = 11
MUON = 13
TAU = 15
NU_E = 12
NU_MU = 14
NU_TAU = 16
PROTON_PDG = 2212
NEUTRON_PDG = 2112
PION_CHARGED = 211
PION_NEUTRAL = 111

NEUTRINOS = frozenset({NU_E, NU_MU, NU_TAU})
CHARGED_LEPTONS = frozenset({ELECTRON, MUON, TAU})

# Charge numbers of particles (antiparticles flip the sign)
_ELEMENTARY_CHARGE = {
    ELECTRON: -1,
    MUON: -1,
    TAU: -1,
    NU_E: 0,
    NU_MU: 0,
    NU_TAU: 0,
    PHOTON: 0,
    PROTON_PDG: 1,
    NEUTRON_PDG: 0,
    PION_CHARGED: 1,
    PION_NEUTRAL: 0,
}

_ELEMENTARY_MASS = {
    ELECTRON: units.mass_electron,
    MUON: units.mass_muon,
    TAU: units.mass_tau,
    NU_E: 0.0,
    NU_MU: 0.0,
    NU_TAU: 0.0,
    PHOTON: 0.0,
    PROTON_PDG: units.mass_proton,
    NEUTRON_PDG: units.mass_neutron,
    PION_CHARGED: 139.57039 * units.MeV / units.c_squared,
    PION_NEUTRAL: 134.9768 * units.MeV / units.c_squared,
}


def nucleus_id(A: int, Z: int) -> int:
    """
    PDG id of a nucleus.

    Parameters:
        A: Mass number
        Z: Charge number

    Returns:
        PDG id 1000000000 + 10000*Z + 10*A
    """
    if A < 0 or Z < 0 or Z > A:
        raise ConfigurationError(f"Invalid nucleus A={A}, Z={Z}")
    return 1000000000 + 10000 * Z + 10 * A


def is_nucleus(pdg_id: int) -> bool:
    """True for ids in the 100ZZZAAAI nucleus scheme."""
    return abs(pdg_id) >= 1000000000


def charge_number(pdg_id: int) -> int:
    """Charge in units of e (Z for nuclei, sign-flipped for antiparticles)."""
    sign = 1 if pdg_id >= 0 else -1
    a = abs(pdg_id)
    if a >= 1000000000:
        return sign * ((a // 10000) % 1000)
    return sign * _ELEMENTARY_CHARGE.get(a, 0)


def mass_number(pdg_id: int) -> int:
    """Mass number A of a nucleus (0 for anything else)."""
    if not is_nucleus(pdg_id):
        return 0
    return (abs(pdg_id) // 10) % 1000


def particle_mass(pdg_id: int) -> float:
    """Rest mass [kg]; 0 for photons, neutrinos and unknown ids."""
    a = abs(pdg_id)
    if a >= 1000000000:
        A = mass_number(a)
        Z = abs(charge_number(a))
        if A == 1 and Z == 1:
            return units.mass_proton
        return Z * units.mass_proton + (A - Z) * units.mass_neutron
    return _ELEMENTARY_MASS.get(a, 0.0)


# Named particles accepted by particle_id()
_NAMED_NUCLEI = {
    'proton': (1, 1),
    'H-1': (1, 1),
    'deuteron': (2, 1),
    'H-2': (2, 1),
    'triton': (3, 1),
    'H-3': (3, 1),
    'He-3': (3, 2),
    'He-4': (4, 2),
    'alpha': (4, 2),
    'Li-7': (7, 3),
    'Be-9': (9, 4),
    'B-11': (11, 5),
    'C-12': (12, 6),
    'N-14': (14, 7),
    'O-16': (16, 8),
    'Ne-20': (20, 10),
    'Mg-24': (24, 12),
    'Si-28': (28, 14),
    'Fe-56': (56, 26),
}

_NAMED_ELEMENTARY = {
    'photon': PHOTON,
    'gamma': PHOTON,
    'electron': ELECTRON,
    'positron': -ELECTRON,
    'muon': MUON,
    'tau': TAU,
    'nu_e': NU_E,
    'nu_mu': NU_MU,
    'nu_tau': NU_TAU,
    'neutron': nucleus_id(1, 0),
}


def particle_id(name: str) -> int:
    """
    Parse a particle name to its PDG id.

    Examples:
        'proton' or 'H-1' -> 1000010010
        'Fe-56' -> 1000260560
        'photon' -> 22

    Raises:
        ConfigurationError: For unknown names
    """
    if name in _NAMED_NUCLEI:
        A, Z = _NAMED_NUCLEI[name]
        return nucleus_id(A, Z)
    if name in _NAMED_ELEMENTARY:
        return _NAMED_ELEMENTARY[name]
    raise ConfigurationError(
        f"Unknown particle '{name}'. "
        f"Available: {list(_NAMED_NUCLEI) + list(_NAMED_ELEMENTARY)}"
    )


def _as_vector(value: Sequence[float]) -> np.ndarray:
    vector = np.array(value, dtype=np.float64)
    if vector.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {vector.shape}")
    return vector


class ParticleState:
    """
    Physical state of one particle: identity, energy, position, direction.

    Energies are in joule, positions in metre (see cosmic_mc.core.units).
    Assigning a negative energy stores 0; assigning a direction stores it
    normalized to unit length.
    """

    def __init__(self, id: int = 0, energy: float = 0.0,
                 position: Sequence[float] = (0.0, 0.0, 0.0),
                 direction: Sequence[float] = (-1.0, 0.0, 0.0)):
        """
        Initialize particle state.

        Parameters:
            id: PDG id
            energy: Total energy [J] (negative values clamp to 0)
            position: (x, y, z) position [m]
            direction: (dx, dy, dz) direction (normalized internally)
        """
        self.id = id
        self.energy = energy
        self.position = position
        self.direction = direction

    @property
    def id(self) -> int:
        return self._id

    @id.setter
    def id(self, value: int):
        self._id = int(value)
        self._charge = charge_number(self._id) * units.eplus

    @property
    def charge(self) -> float:
        """Electric charge [C]."""
        return self._charge

    @property
    def mass(self) -> float:
        """Rest mass [kg]."""
        return particle_mass(self._id)

    @property
    def energy(self) -> float:
        return self._energy

    @energy.setter
    def energy(self, value: float):
        self._energy = max(0.0, float(value))  # no negative energies

    @property
    def position(self) -> np.ndarray:
        return self._position

    @position.setter
    def position(self, value: Sequence[float]):
        self._position = _as_vector(value)

    @property
    def direction(self) -> np.ndarray:
        return self._direction

    @direction.setter
    def direction(self, value: Sequence[float]):
        vector = _as_vector(value)
        norm = np.linalg.norm(vector)
        if not math.isfinite(norm) or norm == 0.0:
            raise DegenerateDirectionError(
                f"Direction must have finite non-zero length, got {vector}"
            )
        self._direction = vector / norm

    @property
    def lorentz_factor(self) -> float:
        """E / (m c^2); infinite for massless particles with energy."""
        mass = self.mass
        if mass == 0.0:
            return math.inf if self._energy > 0.0 else 0.0
        return self._energy / (mass * units.c_squared)

    @lorentz_factor.setter
    def lorentz_factor(self, value: float):
        mass = self.mass
        if mass == 0.0:
            raise PhysicsError(
                f"Lorentz factor is undefined for massless particle {self._id}"
            )
        self._energy = max(0.0, float(value)) * mass * units.c_squared

    @property
    def velocity(self) -> np.ndarray:
        """Velocity [m/s] (ultra-relativistic: |v| = c)."""
        return self._direction * units.c_light

    @property
    def momentum(self) -> np.ndarray:
        """Momentum [kg m/s] (ultra-relativistic: |p| = E/c)."""
        return self._direction * (self._energy / units.c_light)

    def copy(self) -> "ParticleState":
        """Independent snapshot of this state."""
        state = ParticleState.__new__(ParticleState)
        state._id = self._id
        state._charge = self._charge
        state._energy = self._energy
        state._position = self._position.copy()
        state._direction = self._direction.copy()
        return state

    def __eq__(self, other) -> bool:
        if not isinstance(other, ParticleState):
            return NotImplemented
        return (self._id == other._id
                and self._energy == other._energy
                and np.array_equal(self._position, other._position)
                and np.array_equal(self._direction, other._direction))

    def description(self) -> str:
        pos = self._position / units.Mpc
        return (f"Particle {self._id}, E = {self._energy / units.EeV:g} EeV, "
                f"x = ({pos[0]:g}, {pos[1]:g}, {pos[2]:g}) Mpc, "
                f"p = ({self._direction[0]:g}, {self._direction[1]:g}, "
                f"{self._direction[2]:g})")

    def __repr__(self) -> str:
        return f"ParticleState({self.description()})"

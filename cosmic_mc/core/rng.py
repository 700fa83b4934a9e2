"""
Random-number source for all sampling in cosmic_mc.

Every draw made by a source feature goes through a :class:`Random`, a thin
wrapper around ``numpy.random.Generator``. Generators are not thread-safe:
each worker thread owns its own stream, either spawned explicitly with
:meth:`Random.spawn` or taken from the per-thread default.
"""

import threading
from typing import List, Optional, Sequence

import numpy as np
import numba

_EPSILON = np.finfo(np.float64).eps


@numba.njit(cache=True)
def power_law_inverse(u: float, index: float, x_min: float, x_max: float) -> float:
    """
    Inverse CDF of a power law x^index on [x_min, x_max].

    Parameters:
        u: Uniform draw in [0, 1)
        index: Spectral index (the density is proportional to x^index)
        x_min: Lower bound (> 0)
        x_max: Upper bound

    Returns:
        Sampled value in [x_min, x_max]
    """
    if abs(index + 1.0) < _EPSILON:
        # dN/dx ~ 1/x: uniform in log(x)
        log_min = np.log(x_min)
        log_max = np.log(x_max)
        return np.exp((log_max - log_min) * u + log_min)

    exponent = index + 1.0
    part_max = x_max ** exponent
    part_min = x_min ** exponent
    return ((part_max - part_min) * u + part_min) ** (1.0 / exponent)


@numba.njit(fastmath=True, cache=True)
def rotate_to_axis(axis: np.ndarray, cos_theta: float, phi: float) -> np.ndarray:
    """
    Direction at polar angle theta and azimuth phi around a unit axis.

    Parameters:
        axis: Unit vector [x, y, z] the polar angle is measured from
        cos_theta: Cosine of the polar angle
        phi: Azimuthal angle [radians]

    Returns:
        Unit vector [x, y, z]
    """
    ux, uy, uz = axis[0], axis[1], axis[2]

    # Helper axis not parallel to the direction
    if abs(uz) > 0.99:
        hx, hy, hz = 1.0, 0.0, 0.0
    else:
        hx, hy, hz = 0.0, 0.0, 1.0

    # First perpendicular: helper with its component along the axis removed
    dot = hx * ux + hy * uy + hz * uz
    e1x = hx - dot * ux
    e1y = hy - dot * uy
    e1z = hz - dot * uz
    norm = np.sqrt(e1x * e1x + e1y * e1y + e1z * e1z)
    e1x /= norm
    e1y /= norm
    e1z /= norm

    # Second perpendicular: axis x e1
    e2x = uy * e1z - uz * e1y
    e2y = uz * e1x - ux * e1z
    e2z = ux * e1y - uy * e1x

    sin_theta = np.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
    cos_phi = np.cos(phi)
    sin_phi = np.sin(phi)

    result = np.empty(3, dtype=np.float64)
    result[0] = cos_theta * ux + sin_theta * (cos_phi * e1x + sin_phi * e2x)
    result[1] = cos_theta * uy + sin_theta * (cos_phi * e1y + sin_phi * e2y)
    result[2] = cos_theta * uz + sin_theta * (cos_phi * e1z + sin_phi * e2z)

    norm = np.sqrt(result[0] ** 2 + result[1] ** 2 + result[2] ** 2)
    result /= norm
    return result


class Random:
    """
    Seedable uniform random source.

    Usage:
        rng = Random(seed=42)
        u = rng.uniform()
        direction = rng.unit_vector()
        workers = rng.spawn(8)
    """

    def __init__(self, seed: Optional[int] = None,
                 generator: Optional[np.random.Generator] = None):
        """
        Initialize random source.

        Parameters:
            seed: Seed for a new generator (ignored if generator is given)
            generator: Existing numpy Generator to wrap
        """
        self.seed = seed
        if generator is None:
            generator = np.random.default_rng(None if seed is None else int(seed))
        self.generator = generator

    def uniform(self) -> float:
        """Uniform draw in [0, 1)."""
        return float(self.generator.random())

    def uniform_range(self, low: float, high: float) -> float:
        """Uniform draw in [low, high)."""
        return low + (high - low) * self.uniform()

    def vector3(self) -> np.ndarray:
        """Three independent uniform draws in [0, 1)."""
        return self.generator.random(3)

    def unit_vector(self) -> np.ndarray:
        """Direction uniformly distributed over the full solid angle."""
        z = self.uniform_range(-1.0, 1.0)
        phi = self.uniform_range(0.0, 2.0 * np.pi)
        r = np.sqrt(1.0 - z * z)
        return np.array([r * np.cos(phi), r * np.sin(phi), z])

    def cone_vector(self, axis: Sequence[float], aperture: float) -> np.ndarray:
        """
        Direction uniformly distributed inside a cone.

        Parameters:
            axis: Unit vector of the cone axis
            aperture: Half-opening angle [radians]

        Returns:
            Unit vector within `aperture` of `axis`
        """
        cos_theta = self.uniform_range(1.0, np.cos(aperture))
        phi = self.uniform_range(0.0, 2.0 * np.pi)
        return rotate_to_axis(np.asarray(axis, dtype=np.float64), cos_theta, phi)

    def power_law(self, index: float, x_min: float, x_max: float) -> float:
        """Draw from x^index on [x_min, x_max]."""
        return float(power_law_inverse(self.uniform(), index, x_min, x_max))

    def spawn(self, n: int) -> List["Random"]:
        """Spawn `n` statistically independent child streams."""
        n = int(n)
        if n <= 0:
            return []
        return [Random(generator=child) for child in self.generator.spawn(n)]

    def __repr__(self) -> str:
        return f"Random(seed={self.seed})"


_local = threading.local()


def make_rng(seed: Optional[int] = None) -> Random:
    """Create a Random from an optional seed."""
    return Random(seed=seed)


def default_rng() -> Random:
    """Per-thread default stream, created on first use."""
    rng = getattr(_local, "rng", None)
    if rng is None:
        rng = Random()
        _local.rng = rng
    return rng


def seed_default_rng(seed: Optional[int]) -> Random:
    """Reseed the calling thread's default stream."""
    _local.rng = Random(seed=seed)
    return _local.rng


def ensure_rng(rng: Optional[Random] = None, seed: Optional[int] = None) -> Random:
    """Return rng if provided, else a new stream for `seed`, else the thread default."""
    if rng is not None:
        return rng
    if seed is not None:
        return make_rng(seed)
    return default_rng()

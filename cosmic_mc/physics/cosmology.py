"""
Flat Lambda-CDM distance/redshift relations.

Comoving and light-travel distances are tabulated once against redshift
by integrating 1/E(z) and then interpolated. Instances are immutable after
construction and safe to share between threads.

References:
    - Hogg, "Distance measures in cosmology", astro-ph/9905116
    - Planck 2013 results XVI (default parameters)
"""

import logging
import threading
from typing import Optional, Union

import numpy as np
from scipy.integrate import cumulative_trapezoid

from cosmic_mc.core import units

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]


def _result(value: np.ndarray, scalar: bool) -> ArrayLike:
    return float(value) if scalar else value


class Cosmology:
    """
    Distance measures in a flat expanding universe.

    Usage:
        cosmo = Cosmology()
        d = cosmo.comoving_distance(0.1)
        z = cosmo.redshift_at_comoving_distance(100 * Mpc)
    """

    def __init__(self, h: float = 0.673, omega_m: float = 0.315,
                 omega_l: float = 0.685, n: int = 1000, z_max: float = 100.0):
        """
        Initialize and tabulate distances.

        Parameters:
            h: Dimensionless Hubble parameter (H0 = h * 100 km/s/Mpc)
            omega_m: Matter density parameter
            omega_l: Dark energy density parameter
            n: Number of table points
            z_max: Largest tabulated redshift
        """
        if h <= 0 or omega_m < 0 or omega_l < 0:
            raise ValueError(f"Invalid cosmology h={h}, omega_m={omega_m}, omega_l={omega_l}")
        if n < 3 or z_max <= 0:
            raise ValueError(f"Invalid table n={n}, z_max={z_max}")

        self.h = h
        self.omega_m = omega_m
        self.omega_l = omega_l
        self.H0 = h * 1e5 / units.Mpc  # [1/s]
        self.hubble_distance = units.c_light / self.H0  # [m]

        # Redshift table: z = 0 plus logarithmic spacing up to z_max
        self.z_table = np.concatenate(
            ([0.0], np.logspace(-4, np.log10(z_max), n - 1))
        )
        inv_E = 1.0 / self._E(self.z_table)
        self.comoving_table = self.hubble_distance * cumulative_trapezoid(
            inv_E, self.z_table, initial=0.0
        )
        self.light_travel_table = self.hubble_distance * cumulative_trapezoid(
            inv_E / (1.0 + self.z_table), self.z_table, initial=0.0
        )

        logger.debug("Tabulated cosmology h=%g, Om=%g, OL=%g up to z=%g",
                     h, omega_m, omega_l, z_max)

    def _E(self, z: np.ndarray) -> np.ndarray:
        return np.sqrt(self.omega_m * (1.0 + z) ** 3 + self.omega_l)

    def hubble_rate(self, z: ArrayLike = 0.0) -> ArrayLike:
        """Hubble rate H(z) [1/s]."""
        z_arr, scalar = self._check(z, "redshift", self.z_table[-1])
        return _result(self.H0 * self._E(z_arr), scalar)

    def comoving_distance(self, z: ArrayLike) -> ArrayLike:
        """Comoving distance [m] to redshift z."""
        z_arr, scalar = self._check(z, "redshift", self.z_table[-1])
        return _result(np.interp(z_arr, self.z_table, self.comoving_table), scalar)

    def redshift_at_comoving_distance(self, d: ArrayLike) -> ArrayLike:
        """Redshift at comoving distance d [m]."""
        d_arr, scalar = self._check(d, "comoving distance", self.comoving_table[-1])
        return _result(np.interp(d_arr, self.comoving_table, self.z_table), scalar)

    def light_travel_distance(self, z: ArrayLike) -> ArrayLike:
        """Light-travel distance [m] to redshift z."""
        z_arr, scalar = self._check(z, "redshift", self.z_table[-1])
        return _result(np.interp(z_arr, self.z_table, self.light_travel_table), scalar)

    def comoving_to_light_travel(self, d: ArrayLike) -> ArrayLike:
        """Convert comoving distance [m] to light-travel distance [m]."""
        d_arr, scalar = self._check(d, "comoving distance", self.comoving_table[-1])
        return _result(
            np.interp(d_arr, self.comoving_table, self.light_travel_table), scalar
        )

    def light_travel_to_comoving(self, d: ArrayLike) -> ArrayLike:
        """Convert light-travel distance [m] to comoving distance [m]."""
        d_arr, scalar = self._check(d, "light-travel distance", self.light_travel_table[-1])
        return _result(
            np.interp(d_arr, self.light_travel_table, self.comoving_table), scalar
        )

    @staticmethod
    def _check(value: ArrayLike, name: str, upper: float):
        arr = np.asarray(value, dtype=np.float64)
        if np.any(arr < 0):
            raise ValueError(f"{name} must be non-negative, got {value}")
        if np.any(arr > upper):
            raise ValueError(f"{name} {value} is beyond the tabulated range ({upper:g})")
        return arr, arr.ndim == 0

    def __repr__(self) -> str:
        return (f"Cosmology(h={self.h}, omega_m={self.omega_m}, "
                f"omega_l={self.omega_l})")


_default: Optional[Cosmology] = None
_default_lock = threading.Lock()


def default_cosmology() -> Cosmology:
    """Shared Cosmology with default parameters, built on first use."""
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = Cosmology()
    return _default

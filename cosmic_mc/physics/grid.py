"""
Scalar density grid used for source-position sampling.

The grid is a regular Cartesian lattice of cells; value[ix, iy, iz] is the
density of the cell whose lower corner is origin + (ix, iy, iz) * spacing.
Sampling picks a cell with probability proportional to its density and
then a uniform position inside that cell.
"""

import logging
from pathlib import Path
from typing import Sequence, Tuple, Union

import h5py
import numpy as np

from cosmic_mc.core.errors import ConfigurationError
from cosmic_mc.core.sampling import WeightedSampler

logger = logging.getLogger(__name__)

CellIndex = Tuple[int, int, int]


class ScalarGrid:
    """
    Immutable 3-D (or 1-D) scalar density field.

    Usage:
        grid = ScalarGrid(density, origin=(0, 0, 0), spacing=1 * Mpc)
        index, rho = grid.sample_cell(rng.uniform())
        pos = grid.cell_to_position(index, rng.vector3())
    """

    def __init__(self, values: np.ndarray,
                 origin: Sequence[float] = (0.0, 0.0, 0.0),
                 spacing: Union[float, Sequence[float]] = 1.0):
        """
        Initialize grid.

        Parameters:
            values: Densities, shape (nx, ny, nz); a 1-D array becomes (n, 1, 1)
            origin: Lower corner of cell (0, 0, 0) [m]
            spacing: Cell size [m], scalar or per axis
        """
        values = np.array(values, dtype=np.float64)
        if values.ndim == 1:
            values = values.reshape(-1, 1, 1)
        if values.ndim != 3:
            raise ConfigurationError(f"Grid must be 1-D or 3-D, got shape {values.shape}")
        if not np.all(np.isfinite(values)) or np.any(values < 0):
            raise ConfigurationError("Grid densities must be finite and non-negative")

        spacing = np.broadcast_to(np.asarray(spacing, dtype=np.float64), (3,)).copy()
        if np.any(spacing <= 0):
            raise ConfigurationError(f"Grid spacing must be positive, got {spacing}")

        self.values = values
        self.values.setflags(write=False)
        self.origin = np.array(origin, dtype=np.float64)
        self.spacing = spacing

        # Only cells with positive density can be drawn
        flat = self.values.ravel()
        occupied = np.flatnonzero(flat > 0)
        if len(occupied) == 0:
            raise ConfigurationError("Grid has no cell with positive density")
        self._sampler = WeightedSampler.from_weights(occupied, flat[occupied])

        logger.debug("ScalarGrid %s with %d occupied cells", self.shape, len(occupied))

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.values.shape

    @property
    def total_weight(self) -> float:
        """Sum of all cell densities."""
        return self._sampler.total_weight

    def sample_cell(self, u: float) -> Tuple[CellIndex, float]:
        """
        Draw a cell with probability proportional to its density.

        Parameters:
            u: Uniform draw in [0, 1)

        Returns:
            ((ix, iy, iz), density)
        """
        flat_index = self._sampler.sample(u)
        index = tuple(int(i) for i in np.unravel_index(flat_index, self.shape))
        return index, float(self.values[index])

    def cell_center(self, index: CellIndex) -> np.ndarray:
        """Centre of a cell [m]."""
        return self.cell_to_position(index, (0.5, 0.5, 0.5))

    def cell_to_position(self, index: CellIndex,
                         offset: Sequence[float]) -> np.ndarray:
        """
        Position inside a cell.

        Parameters:
            index: (ix, iy, iz)
            offset: Fractional position inside the cell, each in [0, 1)

        Returns:
            Position [m]
        """
        return self.origin + (np.asarray(index, dtype=np.float64)
                              + np.asarray(offset, dtype=np.float64)) * self.spacing

    @classmethod
    def from_hdf5(cls, path: Union[str, Path], dataset: str = "density") -> "ScalarGrid":
        """
        Load a grid from an HDF5 dataset.

        The dataset holds the densities; optional attributes `origin` and
        `spacing` give the geometry.
        """
        with h5py.File(path, "r") as f:
            ds = f[dataset]
            values = ds[...]
            origin = ds.attrs.get("origin", (0.0, 0.0, 0.0))
            spacing = ds.attrs.get("spacing", 1.0)
        logger.info("Loaded density grid %s from %s", values.shape, path)
        return cls(values, origin=origin, spacing=spacing)

    def to_hdf5(self, path: Union[str, Path], dataset: str = "density") -> None:
        """Save the grid so that from_hdf5() restores it."""
        with h5py.File(path, "a") as f:
            if dataset in f:
                del f[dataset]
            ds = f.create_dataset(dataset, data=self.values, compression="gzip")
            ds.attrs["origin"] = self.origin
            ds.attrs["spacing"] = self.spacing

    def __repr__(self) -> str:
        return f"ScalarGrid(shape={self.shape}, total_weight={self.total_weight:g})"

"""
Weighted random selection by inverse-transform sampling.

A WeightedSampler keeps a cumulative weight table (CDF). A uniform draw u
is scaled to u * total_weight and the entry whose CDF interval contains it
is found by binary search. Entry i is selected with probability
weight_i / sum(weights).
"""

import math
from typing import Any, Generic, List, TypeVar

import numpy as np
import numba

from cosmic_mc.core.errors import ConfigurationError, InvalidWeightError

T = TypeVar("T")


@numba.njit(cache=True)
def cdf_index(cdf: np.ndarray, draw: float) -> int:
    """
    Smallest index i with cdf[i] >= draw.

    Parameters:
        cdf: Non-decreasing cumulative weights
        draw: Value in [0, cdf[-1]]

    Returns:
        Index into cdf (clamped to the last entry)
    """
    i = np.searchsorted(cdf, draw)  # side='left'
    n = len(cdf)
    if i >= n:
        return n - 1
    return i


class WeightedSampler(Generic[T]):
    """
    Discrete distribution over arbitrary values.

    Usage:
        sampler = WeightedSampler()
        sampler.add(nucleus_id(1, 1), 3.0)
        sampler.add(nucleus_id(4, 2), 1.0)
        particle = sampler.sample(rng.uniform())
    """

    def __init__(self):
        self._values: List[T] = []
        self._cdf = np.zeros(0, dtype=np.float64)

    @classmethod
    def from_weights(cls, values, weights) -> "WeightedSampler":
        """
        Build a sampler from parallel sequences in one pass.

        Parameters:
            values: Values to select from
            weights: Relative weights (all finite, > 0)

        Returns:
            WeightedSampler with one entry per value
        """
        weights = np.asarray(weights, dtype=np.float64)
        values = list(values)
        if weights.ndim != 1 or len(weights) != len(values):
            raise ConfigurationError(
                f"Got {len(values)} values but weights of shape {weights.shape}"
            )
        if not np.all(np.isfinite(weights)) or np.any(weights <= 0.0):
            raise InvalidWeightError("Sampling weights must be finite and positive")
        sampler = cls()
        sampler._values = values
        sampler._cdf = np.cumsum(weights)
        return sampler

    def add(self, value: T, weight: float = 1.0) -> None:
        """
        Append an entry.

        Parameters:
            value: Value returned when this entry is drawn
            weight: Relative weight (finite, > 0)

        Raises:
            InvalidWeightError: If weight is zero, negative or not finite
        """
        weight = float(weight)
        if not math.isfinite(weight) or weight <= 0.0:
            raise InvalidWeightError(
                f"Sampling weight must be finite and positive, got {weight}"
            )
        self._values.append(value)
        self._cdf = np.append(self._cdf, self.total_weight + weight)

    @property
    def total_weight(self) -> float:
        """Sum of all weights."""
        return float(self._cdf[-1]) if len(self._cdf) > 0 else 0.0

    @property
    def values(self) -> List[T]:
        return list(self._values)

    @property
    def cdf(self) -> np.ndarray:
        return self._cdf.copy()

    def probabilities(self) -> np.ndarray:
        """Selection probability of every entry."""
        if len(self._cdf) == 0:
            return np.zeros(0)
        return np.diff(self._cdf, prepend=0.0) / self.total_weight

    def sample_index(self, u: float) -> int:
        """
        Index of the entry selected by a uniform draw.

        Parameters:
            u: Uniform draw in [0, 1)

        Returns:
            Selected index

        Raises:
            ConfigurationError: If the sampler is empty
        """
        if len(self._values) == 0:
            raise ConfigurationError("Cannot sample from an empty WeightedSampler")
        return int(cdf_index(self._cdf, u * self.total_weight))

    def sample(self, u: float) -> Any:
        """Value of the entry selected by a uniform draw in [0, 1)."""
        return self._values[self.sample_index(u)]

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"WeightedSampler(n={len(self)}, total_weight={self.total_weight:g})"

"""
Propagation and break-condition modules.

SimplePropagation is the rectilinear integrator: it consumes the step bound
negotiated by the other modules, snapshots the previous state, advances the
candidate and opens a new negotiation. It never advances further than the
negotiated bound.
"""

import math

import numba

from cosmic_mc.core import units
from cosmic_mc.core.candidate import Candidate
from cosmic_mc.core.errors import ConfigurationError
from cosmic_mc.modules.module import Module


@numba.njit(cache=True)
def clip_step(next_step: float, min_step: float, max_step: float) -> float:
    """
    Step actually taken for a negotiated bound.

    Parameters:
        next_step: Bound proposed by the modules [m] (may be inf)
        min_step: Step taken off a boundary, when the bound is 0 [m]
        max_step: Largest allowed step [m]

    Returns:
        min(next_step, max_step), or min_step if next_step is 0
    """
    if next_step <= 0.0:
        return min_step
    return min(next_step, max_step)


class SimplePropagation(Module):
    """
    Straight-line propagation.

    Step = min(candidate.next_step, max_step). A bound of exactly 0 means a
    module reported the candidate sitting on a boundary; the candidate then
    moves off it by min_step.
    """

    def __init__(self, min_step: float = 10 * units.kpc, max_step: float = 1 * units.Mpc):
        """
        Parameters:
            min_step: Step off a boundary [m] (> 0)
            max_step: Largest step [m] (>= min_step)
        """
        if not 0 < min_step <= max_step:
            raise ConfigurationError(
                f"SimplePropagation needs 0 < min_step <= max_step, got {min_step}, {max_step}"
            )
        self.min_step = float(min_step)
        self.max_step = float(max_step)

    def process(self, candidate: Candidate) -> None:
        step = clip_step(candidate.next_step, self.min_step, self.max_step)

        candidate.update_previous()
        state = candidate.current
        state.position = state.position + step * state.direction

        candidate.current_step = step
        candidate.trajectory_length += step
        candidate.reset_next_step()

    @property
    def description(self) -> str:
        return (f"SimplePropagation: step {self.min_step / units.kpc:g} kpc - "
                f"{self.max_step / units.kpc:g} kpc")


class MaximumTrajectoryLength(Module):
    """Deactivates candidates once their trajectory reaches a maximum length."""

    def __init__(self, max_length: float = 100 * units.Mpc):
        if not max_length > 0:
            raise ConfigurationError(f"Maximum trajectory length must be positive, got {max_length}")
        self.max_length = float(max_length)

    def process(self, candidate: Candidate) -> None:
        if self.max_length - candidate.trajectory_length <= 0:
            candidate.active = False
        else:
            self.limit_step(candidate)

    def limit_step(self, candidate: Candidate) -> None:
        remaining = self.max_length - candidate.trajectory_length
        if remaining > 0:
            candidate.limit_next_step(remaining)

    @property
    def description(self) -> str:
        return f"MaximumTrajectoryLength: {self.max_length / units.Mpc:g} Mpc"


class MinimumEnergy(Module):
    """Deactivates candidates at or below an energy threshold."""

    def __init__(self, min_energy: float = 1 * units.EeV):
        if not (min_energy >= 0 and math.isfinite(min_energy)):
            raise ConfigurationError(f"Minimum energy must be finite and >= 0, got {min_energy}")
        self.min_energy = float(min_energy)

    def process(self, candidate: Candidate) -> None:
        if candidate.current.energy <= self.min_energy:
            candidate.active = False

    @property
    def description(self) -> str:
        return f"MinimumEnergy: {self.min_energy / units.EeV:g} EeV"

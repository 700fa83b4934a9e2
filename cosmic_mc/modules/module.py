"""
Module: the unit of the propagation pipeline.

A module's process() is called once per step for every active candidate.
It may read and mutate the candidate, set or clear properties, deactivate
it, and tighten the next step with candidate.limit_next_step(). Modules
never know about each other; the step bound is the minimum of all their
proposals.

Before a candidate's first pass the engine calls limit_step() on every
module, so the first step is bounded even when the integrator runs ahead
of the boundary-sensitive modules in the chain.
"""

from cosmic_mc.core.candidate import Candidate


class Module:
    """Abstract base class of all pipeline modules."""

    def process(self, candidate: Candidate) -> None:
        raise NotImplementedError(f"{type(self).__name__} does not implement process()")

    def limit_step(self, candidate: Candidate) -> None:
        """Propose a step bound for the current position without acting on the candidate."""

    @property
    def description(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return self.description

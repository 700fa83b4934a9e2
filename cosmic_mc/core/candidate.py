"""
Candidate: the unit of work moved through the module chain.

A candidate carries three ParticleState snapshots:
    source:   state at creation, never changed afterwards
    current:  state mutated by the modules
    previous: copy of current taken before the latest propagation step

plus trajectory/redshift bookkeeping, the active flag, a property bag used
by observers and outputs, the next-step bound negotiated between modules,
and the secondaries spawned by interactions.
"""

import math
from numbers import Real
from typing import Dict, List, Optional, Union

from cosmic_mc.core.particle import ParticleState

PropertyValue = Union[bool, str, int, float]


class Candidate:
    """Full propagation record of one simulated particle."""

    def __init__(self, id: int = 0, energy: float = 0.0,
                 position=(0.0, 0.0, 0.0), direction=(-1.0, 0.0, 0.0),
                 redshift: float = 0.0):
        """
        Initialize candidate with identical source/current/previous states.

        Parameters:
            id: PDG id
            energy: Energy [J]
            position: Position [m]
            direction: Direction (normalized internally)
            redshift: Redshift at emission
        """
        self.current = ParticleState(id, energy, position, direction)
        self.source = self.current.copy()
        self.previous = self.current.copy()

        self.redshift = float(redshift)
        self.trajectory_length = 0.0
        self.current_step = 0.0
        self.next_step = math.inf
        self.active = True

        self.properties: Dict[str, PropertyValue] = {}
        self.secondaries: List["Candidate"] = []

    @classmethod
    def from_state(cls, state: ParticleState, redshift: float = 0.0) -> "Candidate":
        """Candidate whose three snapshots are copies of `state`."""
        candidate = cls(redshift=redshift)
        candidate.current = state.copy()
        candidate.source = state.copy()
        candidate.previous = state.copy()
        return candidate

    # ------------------------------------------------------------------
    # Step-size negotiation
    # ------------------------------------------------------------------

    def limit_next_step(self, step: float) -> None:
        """
        Propose an upper bound for the next propagation step.

        The bound only ever decreases; proposals larger than the current
        bound are ignored.

        Parameters:
            step: Proposed maximum step [m] (>= 0)
        """
        step = float(step)
        if math.isnan(step) or step < 0.0:
            raise ValueError(f"Step limit must be a non-negative number, got {step}")
        if step < self.next_step:
            self.next_step = step

    def reset_next_step(self) -> None:
        """Start a new negotiation: the bound goes back to +inf."""
        self.next_step = math.inf

    def update_previous(self) -> None:
        """Snapshot current into previous (called before every advance)."""
        self.previous = self.current.copy()

    # ------------------------------------------------------------------
    # Property bag
    # ------------------------------------------------------------------

    def set_property(self, name: str, value: PropertyValue = True) -> None:
        """
        Set a named property.

        Parameters:
            name: Property name
            value: Presence flag (bool), string or number
        """
        if not isinstance(value, (bool, str, Real)):
            raise TypeError(
                f"Property '{name}' must be a bool, str or number, "
                f"got {type(value).__name__}"
            )
        self.properties[name] = value

    def get_property(self, name: str,
                     default: Optional[PropertyValue] = None) -> Optional[PropertyValue]:
        return self.properties.get(name, default)

    def has_property(self, name: str) -> bool:
        return name in self.properties

    def remove_property(self, name: str) -> None:
        self.properties.pop(name, None)

    def clear_properties(self) -> None:
        self.properties.clear()

    # ------------------------------------------------------------------
    # Secondaries
    # ------------------------------------------------------------------

    def add_secondary(self, id: int, energy: float) -> "Candidate":
        """
        Spawn a secondary at the current position and direction.

        The secondary inherits redshift and trajectory length; its source
        state is the parent's current state with the new id and energy.

        Parameters:
            id: PDG id of the secondary
            energy: Energy of the secondary [J]

        Returns:
            The new candidate (also appended to `secondaries`)
        """
        state = self.current.copy()
        state.id = id
        state.energy = energy

        secondary = Candidate.from_state(state, redshift=self.redshift)
        secondary.trajectory_length = self.trajectory_length
        self.secondaries.append(secondary)
        return secondary

    def clear_secondaries(self) -> None:
        self.secondaries.clear()

    def __repr__(self) -> str:
        return (f"Candidate(id={self.current.id}, active={self.active}, "
                f"D={self.trajectory_length:g} m, z={self.redshift:g})")

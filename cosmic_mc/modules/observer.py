"""
Observers: detection of candidates by a set of observer features.

Every feature returns a DetectionState for the current step. The verdicts
combine as VETO > DETECTED > NOTHING: one VETO suppresses any detection in
the same pass. Only a combined DETECTED triggers the features'
on_detection() hooks and, optionally, deactivates the candidate.

Geometric features infer "crossed the boundary" from the previous and the
current position, and limit the next step to the distance to the boundary
so the integrator can never step across it unnoticed.
"""

import enum
from typing import List, Optional, Sequence

import numpy as np

from cosmic_mc.core import units
from cosmic_mc.core.candidate import Candidate, PropertyValue
from cosmic_mc.core.errors import ConfigurationError
from cosmic_mc.core.particle import CHARGED_LEPTONS, NEUTRINOS, PHOTON
from cosmic_mc.modules.module import Module
from cosmic_mc.modules.output import (
    HEADER_1D_TRAJECTORY,
    HEADER_3D,
    PathLike,
    TextWriter,
    format_event_1d,
    format_event_3d,
)


class DetectionState(enum.IntEnum):
    """Verdict of an observer feature; larger values take precedence."""

    NOTHING = 0
    DETECTED = 1
    VETO = 2


class ObserverFeature:
    """Base class of observer features; detects nothing by default."""

    def check_detection(self, candidate: Candidate) -> DetectionState:
        return DetectionState.NOTHING

    def limit_step(self, candidate: Candidate) -> None:
        """Propose a step bound for the current position."""

    def on_detection(self, candidate: Candidate) -> None:
        pass

    @property
    def description(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return self.description


class Observer(Module):
    """
    Module combining observer features.

    Usage:
        obs = Observer()
        obs.add(ObserverSmallSphere(center, radius))
        obs.add(ObserverPhotonVeto())
        obs.set_flag("Detected")
    """

    def __init__(self, make_inactive: bool = True):
        """
        Parameters:
            make_inactive: Deactivate candidates on detection
        """
        self.make_inactive = make_inactive
        self.features: List[ObserverFeature] = []
        self.flag_key: Optional[str] = None
        self.flag_value: PropertyValue = True

    def add(self, feature: ObserverFeature) -> "Observer":
        self.features.append(feature)
        return self

    def set_flag(self, key: str, value: PropertyValue = True) -> None:
        """Property set on every detected candidate."""
        self.flag_key = key
        self.flag_value = value

    def check(self, candidate: Candidate) -> DetectionState:
        """Combined verdict of all features (every feature is asked)."""
        state = DetectionState.NOTHING
        for feature in self.features:
            state = max(state, feature.check_detection(candidate))
        return state

    def process(self, candidate: Candidate) -> None:
        if self.check(candidate) != DetectionState.DETECTED:
            return

        if self.flag_key is not None:
            candidate.set_property(self.flag_key, self.flag_value)
        for feature in self.features:
            feature.on_detection(candidate)
        if self.make_inactive:
            candidate.active = False

    def limit_step(self, candidate: Candidate) -> None:
        for feature in self.features:
            feature.limit_step(candidate)

    @property
    def description(self) -> str:
        lines = ["Observer"]
        lines += [f"    {feature.description}" for feature in self.features]
        if self.flag_key is not None:
            lines.append(f"    Flag: '{self.flag_key}' -> '{self.flag_value}'")
        if self.make_inactive:
            lines.append("    MakeInactive: yes")
        return "\n".join(lines)


# ============================================================================
# Geometric features
# ============================================================================

# Distances within this fraction of the radius from a sphere count as on the
# boundary, i.e. as crossed. Approaching along |d - R| bounds converges on
# the boundary without reaching it, so the band ends the approach.
BOUNDARY_TOLERANCE = 1e-9


class _SphereFeature(ObserverFeature):

    def __init__(self, center: Sequence[float] = (0.0, 0.0, 0.0), radius: float = 0.0):
        if radius < 0:
            raise ConfigurationError(f"Observer radius must be non-negative, got {radius}")
        self.center = np.array(center, dtype=np.float64)
        self.radius = float(radius)
        self.tolerance = BOUNDARY_TOLERANCE * self.radius

    def distance(self, position: np.ndarray) -> float:
        return float(np.linalg.norm(position - self.center))

    def limit_step(self, candidate: Candidate) -> None:
        # conservatively limit next step to prevent overshooting
        gap = abs(self.distance(candidate.current.position) - self.radius)
        if gap > self.tolerance:
            candidate.limit_next_step(gap)

    @property
    def description(self) -> str:
        c = self.center / units.Mpc
        return (f"{type(self).__name__}: center = ({c[0]:g}, {c[1]:g}, {c[2]:g}) Mpc, "
                f"radius = {self.radius / units.Mpc:g} Mpc")


class ObserverSmallSphere(_SphereFeature):
    """Detects particles entering a sphere."""

    def inside(self, position: np.ndarray) -> bool:
        return self.distance(position) <= self.radius + self.tolerance

    def check_detection(self, candidate: Candidate) -> DetectionState:
        self.limit_step(candidate)

        if not self.inside(candidate.current.position):
            return DetectionState.NOTHING

        # inside in the previous step as well: already detected
        if self.inside(candidate.previous.position):
            return DetectionState.NOTHING

        return DetectionState.DETECTED


class ObserverLargeSphere(_SphereFeature):
    """Detects particles leaving a sphere."""

    def outside(self, position: np.ndarray) -> bool:
        return self.distance(position) >= self.radius - self.tolerance

    def check_detection(self, candidate: Candidate) -> DetectionState:
        self.limit_step(candidate)

        if not self.outside(candidate.current.position):
            return DetectionState.NOTHING

        # outside in the previous step as well: already detected
        if self.outside(candidate.previous.position):
            return DetectionState.NOTHING

        return DetectionState.DETECTED


class ObserverPoint(ObserverFeature):
    """Detects particles reaching x <= 0 (one-dimensional observer)."""

    def limit_step(self, candidate: Candidate) -> None:
        x = candidate.current.position[0]
        if x > 0:
            candidate.limit_next_step(x)

    def check_detection(self, candidate: Candidate) -> DetectionState:
        if candidate.current.position[0] > 0:
            self.limit_step(candidate)
            return DetectionState.NOTHING
        return DetectionState.DETECTED

    @property
    def description(self) -> str:
        return "ObserverPoint: observer at x = 0"


class ObserverDetectAll(ObserverFeature):
    """Detects every candidate on every pass."""

    def check_detection(self, candidate: Candidate) -> DetectionState:
        return DetectionState.DETECTED


# ============================================================================
# Vetoes
# ============================================================================

class ObserverRedshiftWindow(ObserverFeature):
    """Vetoes candidates with redshift outside [z_min, z_max]."""

    def __init__(self, z_min: float = 0.0, z_max: float = 0.1):
        if z_min > z_max:
            raise ConfigurationError(f"Redshift window needs z_min <= z_max, got {z_min}, {z_max}")
        self.z_min = float(z_min)
        self.z_max = float(z_max)

    def check_detection(self, candidate: Candidate) -> DetectionState:
        z = candidate.redshift
        if z > self.z_max or z < self.z_min:
            return DetectionState.VETO
        return DetectionState.NOTHING

    @property
    def description(self) -> str:
        return f"ObserverRedshiftWindow: z = {self.z_min:g} - {self.z_max:g}"


class ObserverNeutrinoVeto(ObserverFeature):
    """Vetoes everything except (anti-)neutrinos."""

    def check_detection(self, candidate: Candidate) -> DetectionState:
        if abs(candidate.current.id) in NEUTRINOS:
            return DetectionState.NOTHING
        return DetectionState.VETO


class ObserverChargedLeptonVeto(ObserverFeature):
    """Vetoes everything except charged leptons (e, mu, tau and antiparticles)."""

    def check_detection(self, candidate: Candidate) -> DetectionState:
        if abs(candidate.current.id) in CHARGED_LEPTONS:
            return DetectionState.NOTHING
        return DetectionState.VETO


class ObserverPhotonVeto(ObserverFeature):
    """Vetoes everything except photons."""

    def check_detection(self, candidate: Candidate) -> DetectionState:
        if candidate.current.id == PHOTON:
            return DetectionState.NOTHING
        return DetectionState.VETO


# ============================================================================
# Output on detection
# ============================================================================

class _OutputFeature(ObserverFeature):
    """Observer feature writing detected candidates to a TextWriter."""

    header = ""

    def __init__(self, filename: PathLike):
        self.writer = TextWriter(filename, self.header)

    def close(self) -> None:
        self.writer.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def description(self) -> str:
        return f"{type(self).__name__}: {self.writer.filename}"


class ObserverOutput3D(_OutputFeature):
    """Writes the full 3-D state of every detected candidate."""

    header = HEADER_3D

    def on_detection(self, candidate: Candidate) -> None:
        self.writer.write(format_event_3d(candidate))


class ObserverOutput1D(_OutputFeature):
    """Writes type, energy and trajectory length of every detected candidate."""

    header = HEADER_1D_TRAJECTORY

    def on_detection(self, candidate: Candidate) -> None:
        self.writer.write(format_event_1d(candidate, candidate.trajectory_length))

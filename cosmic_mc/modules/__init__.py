"""Modules: Propagation, observers and output."""

from cosmic_mc.modules.module import Module
from cosmic_mc.modules.observer import (
    DetectionState,
    ObserverFeature,
    Observer,
    ObserverSmallSphere,
    ObserverLargeSphere,
    ObserverPoint,
    ObserverDetectAll,
    ObserverRedshiftWindow,
    ObserverNeutrinoVeto,
    ObserverChargedLeptonVeto,
    ObserverPhotonVeto,
    ObserverOutput3D,
    ObserverOutput1D,
)
from cosmic_mc.modules.propagation import (
    SimplePropagation,
    MaximumTrajectoryLength,
    MinimumEnergy,
)
from cosmic_mc.modules.output import (
    TextWriter,
    TrajectoryOutput,
    ConditionalOutput,
    TrajectoryOutput1D,
    EventOutput1D,
)

__all__ = [
    "Module",
    "DetectionState",
    "ObserverFeature",
    "Observer",
    "ObserverSmallSphere",
    "ObserverLargeSphere",
    "ObserverPoint",
    "ObserverDetectAll",
    "ObserverRedshiftWindow",
    "ObserverNeutrinoVeto",
    "ObserverChargedLeptonVeto",
    "ObserverPhotonVeto",
    "ObserverOutput3D",
    "ObserverOutput1D",
    "SimplePropagation",
    "MaximumTrajectoryLength",
    "MinimumEnergy",
    "TextWriter",
    "TrajectoryOutput",
    "ConditionalOutput",
    "TrajectoryOutput1D",
    "EventOutput1D",
]

"""Source module: Sources, source lists and source features."""

from cosmic_mc.source.source import SourceFeature, Source, SourceList
from cosmic_mc.source.features import (
    SourceParticleType,
    SourceMultipleParticleTypes,
    SourceEnergy,
    SourcePowerLawSpectrum,
    SourcePosition,
    SourceMultiplePositions,
    SourceUniformSphere,
    SourceUniformShell,
    SourceUniformBox,
    SourceUniform1D,
    SourceDensityGrid,
    SourceDensityGrid1D,
    SourceIsotropicEmission,
    SourceDirection,
    SourceEmissionCone,
    SourceRedshift,
    SourceUniformRedshift,
    SourceRedshift1D,
)

__all__ = [
    "SourceFeature",
    "Source",
    "SourceList",
    "SourceParticleType",
    "SourceMultipleParticleTypes",
    "SourceEnergy",
    "SourcePowerLawSpectrum",
    "SourcePosition",
    "SourceMultiplePositions",
    "SourceUniformSphere",
    "SourceUniformShell",
    "SourceUniformBox",
    "SourceUniform1D",
    "SourceDensityGrid",
    "SourceDensityGrid1D",
    "SourceIsotropicEmission",
    "SourceDirection",
    "SourceEmissionCone",
    "SourceRedshift",
    "SourceUniformRedshift",
    "SourceRedshift1D",
]

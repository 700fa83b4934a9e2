"""
Sources: composable candidate generators.

A Source is an ordered container of SourceFeatures. Each feature sets one
aspect of a new candidate (particle type, energy, position, direction,
redshift). Features run in registration order, first their
prepare_particle() hooks on the current state, then their
prepare_candidate() hooks on the whole candidate.

Every feature declares which quantities it `provides` and which it
`requires`; Source.add() rejects a feature whose requirements are not yet
provided by an earlier feature.
"""

import logging
from typing import FrozenSet, List, Optional

from cosmic_mc.core.candidate import Candidate
from cosmic_mc.core.errors import ConfigurationError, FeatureOrderError
from cosmic_mc.core.particle import ParticleState
from cosmic_mc.core.rng import Random, ensure_rng
from cosmic_mc.core.sampling import WeightedSampler

logger = logging.getLogger(__name__)


class SourceFeature:
    """Base class of source features; both hooks default to no-ops."""

    provides: FrozenSet[str] = frozenset()
    requires: FrozenSet[str] = frozenset()

    def prepare_particle(self, state: ParticleState, rng: Random) -> None:
        pass

    def prepare_candidate(self, candidate: Candidate, rng: Random) -> None:
        pass

    @property
    def description(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return self.description


class Source:
    """
    General cosmic-ray source.

    Usage:
        source = Source()
        source.add(SourceParticleType(nucleus_id(1, 1)))
        source.add(SourcePowerLawSpectrum(1 * EeV, 100 * EeV, -1))
        source.add(SourceUniform1D(3 * Mpc, 100 * Mpc))
        source.add(SourceRedshift1D())
        candidate = source.get_candidate(rng)
    """

    def __init__(self):
        self.features: List[SourceFeature] = []

    def add(self, feature: SourceFeature) -> "Source":
        """
        Append a feature.

        Raises:
            FeatureOrderError: If the feature needs a quantity that no
                previously added feature provides
        """
        provided = set()
        for f in self.features:
            provided |= f.provides
        missing = feature.requires - provided
        if missing:
            raise FeatureOrderError(
                f"{feature.description} requires {sorted(missing)}; "
                f"add a feature providing it first"
            )
        self.features.append(feature)
        logger.debug("Source feature added: %s", feature.description)
        return self

    def get_candidate(self, rng: Optional[Random] = None) -> Candidate:
        """
        Build a new candidate from all features.

        Parameters:
            rng: Random stream (defaults to the calling thread's stream)

        Returns:
            Candidate with source and previous equal to current
        """
        rng = ensure_rng(rng)
        candidate = Candidate()
        for feature in self.features:
            feature.prepare_particle(candidate.current, rng)
        for feature in self.features:
            feature.prepare_candidate(candidate, rng)
        candidate.source = candidate.current.copy()
        candidate.previous = candidate.current.copy()
        return candidate

    @property
    def description(self) -> str:
        lines = ["Cosmic ray source"]
        lines += [f"    {feature.description}" for feature in self.features]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Source(features={len(self.features)})"


class SourceList(Source):
    """
    Weighted collection of sources, itself usable as a source.

    Each get_candidate() call picks one sub-source with probability
    proportional to its weight and delegates to it.
    """

    def __init__(self):
        super().__init__()
        self.sources = WeightedSampler()

    def add(self, source: Source, weight: float = 1.0) -> "SourceList":
        """
        Add a sub-source.

        Parameters:
            source: Source (or SourceList) to draw from
            weight: Relative luminosity (> 0)
        """
        if not isinstance(source, Source):
            raise ConfigurationError(
                f"SourceList accepts sources only, got {type(source).__name__}"
            )
        self.sources.add(source, weight)
        return self

    def get_candidate(self, rng: Optional[Random] = None) -> Candidate:
        rng = ensure_rng(rng)
        source = self.sources.sample(rng.uniform())
        return source.get_candidate(rng)

    @property
    def description(self) -> str:
        lines = [f"List of cosmic ray sources ({len(self.sources)})"]
        for source, p in zip(self.sources.values, self.sources.probabilities()):
            lines.append(f"  weight {p:.3g}: " + source.description.replace("\n", "\n  "))
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"SourceList(sources={len(self.sources)})"

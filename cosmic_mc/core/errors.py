"""Custom exceptions for the :mod:`cosmic_mc` package."""


class CosmicMCError(Exception):
    """Base exception for cosmic-ray propagation errors."""


class ConfigurationError(CosmicMCError, ValueError):
    """Invalid source, observer, module or engine configuration."""


class InvalidWeightError(ConfigurationError):
    """A sampling weight that is zero, negative or not finite."""


class FeatureOrderError(ConfigurationError):
    """A source feature registered before the feature it depends on."""


class DegenerateDirectionError(CosmicMCError, ValueError):
    """A direction vector of zero (or non-finite) length."""


class PhysicsError(CosmicMCError, ValueError):
    """A physically undefined request, e.g. the Lorentz factor of a photon."""


__all__ = [
    "CosmicMCError",
    "ConfigurationError",
    "InvalidWeightError",
    "FeatureOrderError",
    "DegenerateDirectionError",
    "PhysicsError",
]

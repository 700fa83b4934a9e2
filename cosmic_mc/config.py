"""
Engine configuration.

SimulationConfig holds the settings of a PropagationEngine run. It can be
built in code or read from the `simulation:` section of a YAML file:

    simulation:
      n_threads: 8
      max_steps: 100000
      seed: 42
      show_progress: false

Only run settings live here; sources and module chains are built in code.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml

from cosmic_mc.core.errors import ConfigurationError


def _default_threads() -> int:
    return os.cpu_count() or 1


def _is_int(value) -> bool:
    # YAML true/false load as bool, which is an int subclass
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class SimulationConfig:
    """
    Settings of a propagation run.

    Attributes:
        n_threads: Worker threads for batch runs
        max_steps: Passes over the module chain before a candidate is stopped
        seed: Seed of the run's random stream (None: non-reproducible)
        show_progress: Display a tqdm progress bar for batch runs
        recursive: Also propagate secondaries
    """

    n_threads: int = field(default_factory=_default_threads)
    max_steps: int = 1_000_000
    seed: Optional[int] = None
    show_progress: bool = True
    recursive: bool = True

    def __post_init__(self):
        if not _is_int(self.n_threads) or self.n_threads < 1:
            raise ConfigurationError(f"n_threads must be a positive integer, got {self.n_threads!r}")
        if not _is_int(self.max_steps) or self.max_steps < 1:
            raise ConfigurationError(f"max_steps must be a positive integer, got {self.max_steps!r}")
        if self.seed is not None and not _is_int(self.seed):
            raise ConfigurationError(f"seed must be an integer or None, got {self.seed!r}")

    @classmethod
    def from_dict(cls, mapping: Mapping[str, Any]) -> "SimulationConfig":
        """Build from a mapping; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = set(mapping) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown simulation settings: {sorted(unknown)}. Available: {sorted(known)}"
            )
        return cls(**dict(mapping))

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SimulationConfig":
        """Load the `simulation:` section of a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"{path}: expected a mapping at top level")
        section = data.get("simulation", {}) or {}
        if not isinstance(section, Mapping):
            raise ConfigurationError(f"{path}: 'simulation' must be a mapping")
        return cls.from_dict(section)

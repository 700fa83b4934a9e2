"""Transport module: Propagation engine."""

from cosmic_mc.transport.engine import PropagationEngine

__all__ = ["PropagationEngine"]

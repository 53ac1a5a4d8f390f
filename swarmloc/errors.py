"""
Exception types for cooperative swarm localization.

Three failure classes are distinguished:
    - ConstructionError: invalid scenario parameters (bounds, noise levels,
      particle counts). Raised when the object is built, never at first use.
    - DegenerateFilterError: every particle weight of a filter collapsed to
      zero (or became non-finite) during normalization.
    - VisualizationSinkError: the external visualization collaborator failed.
"""

from typing import Optional


class SwarmLocError(Exception):
    """Base class for all swarmloc errors."""


class ConstructionError(SwarmLocError, ValueError):
    """Invalid geometry, noise level or filter parameter."""


class DegenerateFilterError(SwarmLocError, RuntimeError):
    """All particle weights vanished; the posterior cannot be normalized."""

    def __init__(self, weight_sum: float, agent: Optional[str] = None):
        self.weight_sum = weight_sum
        self.agent = agent
        msg = f"Particle weights sum to {weight_sum!r}; filter is degenerate"
        if agent is not None:
            msg = f"{agent}: {msg}"
        super().__init__(msg)

    def for_agent(self, agent: str) -> "DegenerateFilterError":
        """Return a copy of this error tagged with the owning agent's name."""
        return DegenerateFilterError(self.weight_sum, agent=agent)


class VisualizationSinkError(SwarmLocError, RuntimeError):
    """The visualization sink is unavailable or rejected a command."""

"""
Swarm elements and anchors.

A swarm element couples one motion model (its hidden ground truth) with one
particle filter (its belief about that truth). Anchors are fixed reference
points with known positions that every element can range to.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from swarmloc.errors import ConstructionError, DegenerateFilterError
from swarmloc.estimators.particle_filter import ParticleFilter
from swarmloc.rf.measurement_models import combined_std, range_measurement


def _check_std(value: float, name: str) -> float:
    if not np.isfinite(value) or value <= 0:
        raise ConstructionError(f"{name} must be positive, got {value}")
    return float(value)


@dataclass(frozen=True, eq=False)
class Anchor:
    """
    Fixed reference point.

    Attributes:
        position: Known position [x, y, z] in meters.
        ranging_noise_std: Standard deviation of this anchor's ranging noise (m).
        name: Label used in visualization and logs.
    """

    position: np.ndarray
    ranging_noise_std: float
    name: str = "anchor"

    def __post_init__(self) -> None:
        position = np.array(self.position, dtype=float)
        if position.shape != (3,):
            raise ConstructionError(
                f"Anchor position must be a 3D point, got shape {position.shape}"
            )
        position.setflags(write=False)
        object.__setattr__(self, "position", position)
        _check_std(self.ranging_noise_std, "Anchor ranging_noise_std")


class SwarmElement:
    """
    One agent of the swarm.

    Attributes:
        name: Unique label.
        motion_model: Ground truth motion model (exclusively owned).
        particle_filter: Position belief (exclusively owned).
        transmission_noise_std: Noise this element adds to ranges peers
            measure to it (m).
        ranging_noise_std: Noise of this element's own ranging radio (m).
        velocity_noise_std: Per-axis noise of the velocity measurement used
            as control input for particle prediction (m/s).
        est_position: Posterior mean from the last update_estimate().
        prev_positions: (true, estimated) positions of the previous timestep.
        divergence: The DegenerateFilterError that stopped this element's
            filter, or None.
    """

    def __init__(
        self,
        name: str,
        motion_model,
        particle_filter: ParticleFilter,
        transmission_noise_std: float,
        ranging_noise_std: float,
        velocity_noise_std: float = 0.0,
    ):
        """
        Raises:
            ConstructionError: If a noise standard deviation is not positive
                (velocity_noise_std may be zero).
        """
        if not name:
            raise ConstructionError("SwarmElement name must be a non-empty string")
        if not np.isfinite(velocity_noise_std) or velocity_noise_std < 0:
            raise ConstructionError(
                f"velocity_noise_std must be non-negative, got {velocity_noise_std}"
            )

        self.name = name
        self.motion_model = motion_model
        self.particle_filter = particle_filter
        self.transmission_noise_std = _check_std(
            transmission_noise_std, "transmission_noise_std"
        )
        self.ranging_noise_std = _check_std(ranging_noise_std, "ranging_noise_std")
        self.velocity_noise_std = float(velocity_noise_std)

        self.est_position = particle_filter.estimate()
        self.prev_positions: Tuple[np.ndarray, np.ndarray] = (
            self.true_position,
            self.est_position.copy(),
        )
        self.divergence: Optional[DegenerateFilterError] = None

    @property
    def true_position(self) -> np.ndarray:
        """Ground truth position (simulation only)."""
        return self.motion_model.position

    @property
    def true_velocity(self) -> np.ndarray:
        return self.motion_model.velocity

    @property
    def diverged(self) -> bool:
        return self.divergence is not None

    @property
    def n_particles(self) -> int:
        return self.particle_filter.n_particles

    def effective_sample_size(self) -> float:
        return self.particle_filter.effective_sample_size()

    def estimation_error(self) -> float:
        """Euclidean distance between true and estimated position."""
        return float(np.linalg.norm(self.true_position - self.est_position))

    def move(self, dt: float, rng: Optional[np.random.Generator] = None) -> None:
        """Remember the current positions, then advance the ground truth."""
        self.prev_positions = (self.true_position, self.est_position.copy())
        self.motion_model.step(dt, rng)

    def measured_velocity(self, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """True velocity plus N(0, velocity_noise_std²) on each axis."""
        velocity = self.true_velocity
        if self.velocity_noise_std == 0.0:
            return velocity
        if rng is None:
            rng = np.random.default_rng()
        return velocity + rng.normal(0.0, self.velocity_noise_std, size=3)

    def anchor_range_std(self, anchor: Anchor) -> float:
        """Combined noise of a range from this element to an anchor."""
        return combined_std(self.ranging_noise_std, anchor.ranging_noise_std)

    def peer_range_std(self, peer: "SwarmElement") -> float:
        """Combined noise of a range from this element to a peer."""
        return combined_std(self.ranging_noise_std, peer.transmission_noise_std)

    def range_to_anchor(
        self, anchor: Anchor, rng: Optional[np.random.Generator] = None
    ) -> Tuple[float, float]:
        """
        Simulate a range observation to an anchor.

        Returns:
            Tuple of (observed_range, combined_std).
        """
        std = self.anchor_range_std(anchor)
        return range_measurement(self.true_position, anchor.position, std, rng), std

    def range_to_peer(
        self, peer: "SwarmElement", rng: Optional[np.random.Generator] = None
    ) -> Tuple[float, float]:
        """
        Simulate a range observation to another element's true position.

        Returns:
            Tuple of (observed_range, combined_std).
        """
        std = self.peer_range_std(peer)
        return range_measurement(self.true_position, peer.true_position, std, rng), std

    def update_estimate(self) -> np.ndarray:
        """Recompute est_position as the particle filter's posterior mean."""
        self.est_position = self.particle_filter.estimate()
        return self.est_position

    def mark_diverged(self, error: DegenerateFilterError) -> None:
        self.divergence = error if error.agent == self.name else error.for_agent(self.name)

    def __repr__(self) -> str:
        return (
            f"SwarmElement(name={self.name!r}, n_particles={self.n_particles}, "
            f"diverged={self.diverged})"
        )

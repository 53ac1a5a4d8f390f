"""
Visualization commands emitted by the localization loop.

The localizer owns no rendering logic. After every completed timestep it
produces an ordered list of immutable commands that an external viewer can
replay:

- SetFrame: set the current frame index
- LogPoints: a named point cloud with per-point radius and optional RGBA color
- LogLineSegment: one segment appended to a named trajectory
- LogScalar: one sample of a named scalar time series

Entity paths follow ``<element>/<channel>`` (e.g. ``"agent_0/particle_filter"``).
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

TRUE_COLOR = (0, 200, 0, 255)
ESTIMATE_COLOR = (220, 30, 30, 255)
ANCHOR_COLOR = (30, 60, 220, 255)


def _frozen_array(value, dtype=float) -> np.ndarray:
    array = np.array(value, dtype=dtype)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class SetFrame:
    """Set the current frame (timestep) index."""

    index: int


@dataclass(frozen=True, eq=False)
class LogPoints:
    """
    Named 3D point cloud.

    Attributes:
        path: Entity path.
        positions: Points, shape (N, 3), read-only.
        radii: Per-point radius, shape (N,), read-only.
        colors: Optional per-point RGBA in 0..255, shape (N, 4), read-only.
    """

    path: str
    positions: np.ndarray
    radii: np.ndarray
    colors: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        positions = _frozen_array(self.positions).reshape(-1, 3)
        radii = _frozen_array(np.broadcast_to(self.radii, positions.shape[:1]))
        object.__setattr__(self, "positions", positions)
        object.__setattr__(self, "radii", radii)

        if self.colors is not None:
            colors = np.broadcast_to(
                np.asarray(self.colors, dtype=np.uint8), (positions.shape[0], 4)
            )
            object.__setattr__(self, "colors", _frozen_array(colors, dtype=np.uint8))


@dataclass(frozen=True, eq=False)
class LogLineSegment:
    """Segment from ``start`` to ``end`` appended to trajectory ``path``."""

    path: str
    start: np.ndarray
    end: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", _frozen_array(self.start))
        object.__setattr__(self, "end", _frozen_array(self.end))


@dataclass(frozen=True)
class LogScalar:
    """One sample of scalar series ``path`` at the current frame."""

    path: str
    value: float


def weight_radii(weights: np.ndarray, base_radius: float) -> np.ndarray:
    """
    Map particle weights to display radii in [base/2, base].

    The heaviest particle is drawn at ``base_radius``.
    """
    weights = np.asarray(weights, dtype=float)
    peak = weights.max() if weights.size else 0.0
    if peak <= 0.0:
        return np.full(weights.shape, 0.5 * base_radius)
    return base_radius * (0.5 + 0.5 * weights / peak)


def snapshot_commands(
    frame: int,
    elements: Sequence,
    anchors: Sequence,
    particle_radius: float = 0.2,
    marker_radius: float = 1.0,
) -> List[object]:
    """
    Build the commands describing one completed timestep.

    Args:
        frame: Timestep index.
        elements: Swarm elements (read only).
        anchors: Anchors (read only).
        particle_radius: Display radius of the heaviest particle.
        marker_radius: Display radius of truth/estimate/anchor markers.

    Returns:
        Commands in emission order, starting with SetFrame.
    """
    commands: List[object] = [SetFrame(frame)]

    if anchors:
        commands.append(
            LogPoints(
                "anchors",
                np.array([a.position for a in anchors]),
                marker_radius,
                ANCHOR_COLOR,
            )
        )

    for element in elements:
        particles, weights = element.particle_filter.get_particles()
        true_position = element.true_position
        prev_true, prev_est = element.prev_positions

        commands.append(
            LogPoints(
                f"{element.name}/particle_filter",
                particles,
                weight_radii(weights, particle_radius),
            )
        )
        commands.append(
            LogPoints(f"{element.name}/true_position", true_position, marker_radius, TRUE_COLOR)
        )
        commands.append(
            LogPoints(
                f"{element.name}/estimate", element.est_position, marker_radius, ESTIMATE_COLOR
            )
        )
        commands.append(LogLineSegment(f"{element.name}/trajectory/true", prev_true, true_position))
        commands.append(
            LogLineSegment(f"{element.name}/trajectory/estimate", prev_est, element.est_position)
        )
        commands.append(LogScalar(f"{element.name}/error", element.estimation_error()))
        commands.append(
            LogScalar(f"{element.name}/ess", float(element.effective_sample_size()))
        )

    return commands

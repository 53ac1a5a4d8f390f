"""
Sampling regions used to seed particle populations.

An enclosure is any object with ``sample(rng)`` and ``sample_many(n, rng)``
returning points inside a fixed 3D region. Two regions are provided:

- BoundingBox: uniform in an axis-aligned box
- Sphere: uniform in the volume of a ball
"""

from typing import Optional, Protocol, Sequence, Union, runtime_checkable

import numpy as np

from swarmloc.errors import ConstructionError

ArrayLike = Union[Sequence[float], np.ndarray]


def _as_point(value: ArrayLike, name: str) -> np.ndarray:
    point = np.asarray(value, dtype=float)
    if point.shape != (3,):
        raise ConstructionError(f"{name} must be a 3D point, got shape {point.shape}")
    if not np.all(np.isfinite(point)):
        raise ConstructionError(f"{name} must be finite, got {point}")
    return point


@runtime_checkable
class Enclosure(Protocol):
    """Region that can draw random points from its interior."""

    def sample(self, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        ...

    def sample_many(
        self, n: int, rng: Optional[np.random.Generator] = None
    ) -> np.ndarray:
        ...


class BoundingBox:
    """
    Axis-aligned box with uniform sampling.

    Example:
        >>> box = BoundingBox([0.0, 0.0, 0.0], [1.0, 2.0, 3.0])
        >>> p = box.sample(np.random.default_rng(0))
        >>> bool(np.all((p >= box.min_corner) & (p <= box.max_corner)))
        True
    """

    def __init__(self, min_corner: ArrayLike, max_corner: ArrayLike):
        """
        Args:
            min_corner: Lower corner [x, y, z].
            max_corner: Upper corner [x, y, z].

        Raises:
            ConstructionError: If min >= max on any axis.
        """
        self.min_corner = _as_point(min_corner, "min_corner")
        self.max_corner = _as_point(max_corner, "max_corner")

        bad_axes = np.flatnonzero(self.min_corner >= self.max_corner)
        if bad_axes.size:
            raise ConstructionError(
                f"BoundingBox needs min < max on every axis; "
                f"violated on axes {bad_axes.tolist()} "
                f"(min={self.min_corner}, max={self.max_corner})"
            )

    @property
    def center(self) -> np.ndarray:
        return 0.5 * (self.min_corner + self.max_corner)

    def sample(self, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        return self.sample_many(1, rng)[0]

    def sample_many(
        self, n: int, rng: Optional[np.random.Generator] = None
    ) -> np.ndarray:
        if rng is None:
            rng = np.random.default_rng()
        return rng.uniform(self.min_corner, self.max_corner, size=(n, 3))

    def __repr__(self) -> str:
        return (
            f"BoundingBox(min_corner={self.min_corner.tolist()}, "
            f"max_corner={self.max_corner.tolist()})"
        )


class Sphere:
    """
    Solid ball with points distributed uniformly in volume.

    The radius is drawn as ``R * U^(1/3)`` so that the radial density grows
    with ``r^2``; the direction comes from a normalized isotropic Gaussian.
    """

    def __init__(self, radius: float, center: ArrayLike = (0.0, 0.0, 0.0)):
        """
        Args:
            radius: Ball radius, must be positive.
            center: Ball center [x, y, z].

        Raises:
            ConstructionError: If radius <= 0.
        """
        if not np.isfinite(radius) or radius <= 0:
            raise ConstructionError(f"Sphere radius must be positive, got {radius}")
        self.radius = float(radius)
        self.center = _as_point(center, "center")

    def sample(self, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        return self.sample_many(1, rng)[0]

    def sample_many(
        self, n: int, rng: Optional[np.random.Generator] = None
    ) -> np.ndarray:
        if rng is None:
            rng = np.random.default_rng()

        directions = rng.standard_normal(size=(n, 3))
        norms = np.linalg.norm(directions, axis=1, keepdims=True)
        # A zero draw has probability zero, but keep the division well defined
        norms[norms == 0.0] = 1.0
        directions /= norms

        radii = self.radius * np.cbrt(rng.uniform(0.0, 1.0, size=(n, 1)))
        return self.center + radii * directions

    def __repr__(self) -> str:
        return f"Sphere(radius={self.radius}, center={self.center.tolist()})"

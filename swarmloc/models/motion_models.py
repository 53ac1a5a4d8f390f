"""
Motion models for swarm elements.

A motion model owns one element's hidden kinematic state (position, velocity)
and offers two operations:

- ``step``: advance its own state by dt (ground truth evolution)
- ``predict`` / ``predict_many``: apply the same spatial update to arbitrary
  positions and a control velocity without touching its own state (particle
  propagation)

Models share the ``MotionModel`` protocol rather than a common base class.
Available models:

- WhiteNoiseAcceleration: random acceleration, drawn per axis from N(mean, sigma)
- ConstantVelocity3D: deterministic constant velocity
"""

from typing import Optional, Protocol, Sequence, Union, runtime_checkable

import numpy as np

from swarmloc.errors import ConstructionError

ArrayLike = Union[Sequence[float], np.ndarray]


def _as_vector(value: ArrayLike, name: str) -> np.ndarray:
    vec = np.array(value, dtype=float)
    if vec.shape != (3,):
        raise ConstructionError(f"{name} must be a 3-vector, got shape {vec.shape}")
    if not np.all(np.isfinite(vec)):
        raise ConstructionError(f"{name} must be finite, got {vec}")
    return vec


@runtime_checkable
class MotionModel(Protocol):
    """Capabilities the swarm element and particle filter rely on."""

    @property
    def position(self) -> np.ndarray:
        ...

    @property
    def velocity(self) -> np.ndarray:
        ...

    def step(self, dt: float, rng: Optional[np.random.Generator] = None) -> None:
        ...

    def predict(
        self,
        dt: float,
        position: np.ndarray,
        velocity: np.ndarray,
        rng: Optional[np.random.Generator] = None,
    ) -> np.ndarray:
        ...

    def predict_many(
        self,
        dt: float,
        positions: np.ndarray,
        velocity: np.ndarray,
        rng: Optional[np.random.Generator] = None,
    ) -> np.ndarray:
        ...


class WhiteNoiseAcceleration:
    """
    3D kinematic model driven by white-noise acceleration.

    State: position p and velocity v (both 3-vectors).
    Per step an acceleration a ~ N(mean_accel, diag(sigma_accel²)) is drawn
    and integrated exactly over dt:

        p_{k+1} = p_k + v_k dt + ½ a dt²
        v_{k+1} = v_k + a dt

    Draws are independent across calls, axes and particles.

    Example:
        >>> model = WhiteNoiseAcceleration(
        ...     position=[0.0, 0.0, 0.0], velocity=[1.0, 0.0, 0.0],
        ...     mean_accel=[0.0, 0.0, 0.0], sigma_accel=[0.0, 0.0, 0.0])
        >>> model.step(0.5)
        >>> model.position
        array([0.5, 0. , 0. ])
    """

    def __init__(
        self,
        position: ArrayLike,
        velocity: ArrayLike,
        mean_accel: ArrayLike = (0.0, 0.0, 0.0),
        sigma_accel: ArrayLike = (0.0, 0.0, 0.0),
    ):
        """
        Args:
            position: Initial position [x, y, z] in meters.
            velocity: Initial velocity [vx, vy, vz] in m/s.
            mean_accel: Mean acceleration per axis in m/s².
            sigma_accel: Acceleration standard deviation per axis in m/s².
                Zero makes that axis deterministic.

        Raises:
            ConstructionError: On a malformed vector or negative sigma.
        """
        self._position = _as_vector(position, "position")
        self._velocity = _as_vector(velocity, "velocity")
        self.mean_accel = _as_vector(mean_accel, "mean_accel")
        self.sigma_accel = _as_vector(sigma_accel, "sigma_accel")

        if np.any(self.sigma_accel < 0):
            raise ConstructionError(
                f"sigma_accel must be non-negative, got {self.sigma_accel}"
            )

    @property
    def position(self) -> np.ndarray:
        return self._position.copy()

    @property
    def velocity(self) -> np.ndarray:
        return self._velocity.copy()

    def sample_acceleration(
        self, rng: Optional[np.random.Generator] = None, size: Optional[int] = None
    ) -> np.ndarray:
        """
        Draw acceleration samples.

        Args:
            rng: Random generator (defaults to a fresh one).
            size: Number of independent samples; None for a single 3-vector.

        Returns:
            Array of shape (3,) or (size, 3).
        """
        if rng is None:
            rng = np.random.default_rng()
        shape = (3,) if size is None else (size, 3)
        return rng.normal(self.mean_accel, self.sigma_accel, size=shape)

    def step(self, dt: float, rng: Optional[np.random.Generator] = None) -> None:
        """Advance the model's own state by dt."""
        a = self.sample_acceleration(rng)
        self._position = self._position + self._velocity * dt + 0.5 * a * dt * dt
        self._velocity = self._velocity + a * dt

    def predict(
        self,
        dt: float,
        position: np.ndarray,
        velocity: np.ndarray,
        rng: Optional[np.random.Generator] = None,
    ) -> np.ndarray:
        """
        Propagate an arbitrary position with a given velocity.

        The model's own state is left untouched.

        Returns:
            Predicted position, shape (3,).
        """
        a = self.sample_acceleration(rng)
        position = np.asarray(position, dtype=float)
        velocity = np.asarray(velocity, dtype=float)
        return position + velocity * dt + 0.5 * a * dt * dt

    def predict_many(
        self,
        dt: float,
        positions: np.ndarray,
        velocity: np.ndarray,
        rng: Optional[np.random.Generator] = None,
    ) -> np.ndarray:
        """
        Propagate a population of positions with one shared control velocity.

        Each row receives its own acceleration draw.

        Args:
            dt: Time step in seconds.
            positions: Particle positions, shape (N, 3).
            velocity: Control velocity shared by all particles, shape (3,).
            rng: Random generator.

        Returns:
            Predicted positions, shape (N, 3).
        """
        positions = np.asarray(positions, dtype=float)
        velocity = np.asarray(velocity, dtype=float)
        a = self.sample_acceleration(rng, size=positions.shape[0])
        return positions + velocity * dt + 0.5 * a * dt * dt

    def __repr__(self) -> str:
        return (
            f"WhiteNoiseAcceleration(position={self._position.tolist()}, "
            f"velocity={self._velocity.tolist()}, "
            f"mean_accel={self.mean_accel.tolist()}, "
            f"sigma_accel={self.sigma_accel.tolist()})"
        )


class ConstantVelocity3D:
    """
    Deterministic 3D constant velocity model.

    Dynamics: p_{k+1} = p_k + v dt, velocity unchanged.

    ``rng`` arguments are accepted for protocol compatibility and ignored.
    """

    def __init__(self, position: ArrayLike, velocity: ArrayLike):
        self._position = _as_vector(position, "position")
        self._velocity = _as_vector(velocity, "velocity")

    @property
    def position(self) -> np.ndarray:
        return self._position.copy()

    @property
    def velocity(self) -> np.ndarray:
        return self._velocity.copy()

    def step(self, dt: float, rng: Optional[np.random.Generator] = None) -> None:
        self._position = self._position + self._velocity * dt

    def predict(
        self,
        dt: float,
        position: np.ndarray,
        velocity: np.ndarray,
        rng: Optional[np.random.Generator] = None,
    ) -> np.ndarray:
        return np.asarray(position, dtype=float) + np.asarray(velocity, dtype=float) * dt

    def predict_many(
        self,
        dt: float,
        positions: np.ndarray,
        velocity: np.ndarray,
        rng: Optional[np.random.Generator] = None,
    ) -> np.ndarray:
        return np.asarray(positions, dtype=float) + np.asarray(velocity, dtype=float) * dt

    def __repr__(self) -> str:
        return (
            f"ConstantVelocity3D(position={self._position.tolist()}, "
            f"velocity={self._velocity.tolist()})"
        )
